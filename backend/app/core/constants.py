"""Application-wide constants for the Hive Wellness payments backend."""

from __future__ import annotations

import os

BRAND_NAME = os.getenv("BRAND_NAME", "Hive Wellness")

# API metadata
API_TITLE = f"{BRAND_NAME} Payments API"
API_DESCRIPTION = "Session cancellation, refund and therapist earnings endpoints"
API_VERSION = "1.0.0"

# Money
MINOR_UNITS_PER_MAJOR = 100
DEFAULT_CURRENCY = "gbp"

# Payouts (major units, GBP)
MINIMUM_PAYOUT_AMOUNT = 10
INSTANT_PAYOUT_FEE_RATE = 0.01
INSTANT_PAYOUT_FEE_MIN = 0.50
INSTANT_PAYOUT_FEE_MAX = 10.00

# Stripe list limits
TRANSFER_LOOKUP_LIMIT = 100
PAYOUT_HISTORY_LIMIT = 10
RECENT_SESSIONS_LIMIT = 20

# Metadata source tag for payouts requested through the portal
PAYOUT_SOURCE_TAG = "hive_wellness_portal"
