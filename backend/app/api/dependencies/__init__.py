# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .services import get_cancellation_service, get_earnings_service, get_payment_processor

__all__ = [
    "get_payment_processor",
    "get_cancellation_service",
    "get_earnings_service",
]
