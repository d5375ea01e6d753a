# backend/practicebook/main.py
"""
FastAPI application for booking orchestration.

Run locally with:
    uvicorn practicebook.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.config import settings
from .errors import register_error_handlers
from .routes.v1 import booking_series as booking_series_v1
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import health as health_v1
from .routes.v1 import metrics as metrics_v1
from .routes.v1 import payments as payments_v1

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(f"Starting practicebook API {__version__} ({settings.environment})")
    if not settings.stripe_secret_key:
        logger.warning("STRIPE_SECRET_KEY not set; paid bookings will be created without payment links")
    yield
    logger.info("Shutting down practicebook API")


app = FastAPI(
    title="Practicebook API",
    description="Booking lifecycle orchestration for practitioner calendars and payments",
    version=__version__,
    lifespan=app_lifespan,
)
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(booking_series_v1.router, prefix="/series")
api_v1.include_router(payments_v1.router, prefix="/payments")

app.include_router(api_v1)
app.include_router(health_v1.router, prefix="/health")
app.include_router(metrics_v1.router, prefix="/metrics")
