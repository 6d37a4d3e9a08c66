# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from .api.dependencies.services import get_payment_processor
from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .integrations import FakeStripePaymentClient
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import prometheus
from .routes.v1 import cancellations as cancellations_v1, earnings as earnings_v1, health as health_v1
from .schemas.main_responses import RootResponse

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} payments API starting up...")
    logger.info(f"Environment: {settings.environment} (SITE_MODE={settings.site_mode or 'unset'})")

    processor = get_payment_processor()
    if isinstance(processor, FakeStripePaymentClient):
        logger.warning(
            "STRIPE_SECRET_KEY not configured; serving payments from the in-memory fake client"
        )

    yield

    logger.info(f"{BRAND_NAME} payments API shutting down...")


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)
# Register unified error envelope handlers
register_error_handlers(app)

app.add_middleware(PrometheusMiddleware)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(cancellations_v1.router, prefix="/cancellations")
api_v1.include_router(earnings_v1.router, prefix="/earnings")
api_v1.include_router(health_v1.router, prefix="/health")

app.include_router(api_v1)

# Unversioned: scraped at a fixed path by monitoring infrastructure
app.include_router(prometheus.router)


@app.get("/", response_model=RootResponse)
def read_root() -> RootResponse:
    """Root endpoint - API information"""
    return RootResponse(
        message=f"Welcome to the {BRAND_NAME} payments API",
        version=API_VERSION,
        docs="/docs",
        environment=settings.environment,
    )
