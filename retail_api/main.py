"""
Retail Directory API - Main Application Entry Point
Multi-tenant retail directory and storefront backend
"""

from contextlib import asynccontextmanager
import logging
import random
import sys
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
import structlog

from retail_api import __version__
from retail_api.core.cache import TTLCache
from retail_api.core.config import Settings, get_settings
from retail_api.core.database import DatabaseProvider
from retail_api.core.errors import register_exception_handlers
from retail_api.core.state import ChangeRateLimiter, FlagOverrideStore
from retail_api.api import (
    admin, categories, directory, feature_flags, gdpr,
    inventory, orders, payments, recommendations, tenants, webhooks
)
from retail_api.services.featured import FeaturedProductSampler
from retail_api.services.images import ImageFetcher
from retail_api.services.stripe_gateway import StripeGateway
from retail_api.services.stripe_webhooks import StripeWebhookProcessor

logger = structlog.get_logger(__name__)


def configure_logging(settings: Settings) -> None:
    """Configure structured logging"""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing Retail Directory backend", environment=app.state.settings.ENVIRONMENT)
    # Tables and materialized views are created by Alembic migrations
    logger.info("Database managed by Alembic migrations")

    yield

    # Shutdown
    app.state.db.dispose()
    logger.info("Shutting down Retail Directory backend")


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """Build the application and the services it shares across requests"""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Retail Directory API",
        description="Multi-tenant retail directory, storefronts, orders and payments",
        version=__version__,
        lifespan=lifespan,
    )

    # Process-wide state
    db = DatabaseProvider(settings, engine)
    app.state.settings = settings
    app.state.db = db
    app.state.flag_overrides = FlagOverrideStore()
    app.state.subdomain_rate_limiter = ChangeRateLimiter(settings.SUBDOMAIN_CHANGES_PER_HOUR)
    app.state.featured_sampler = FeaturedProductSampler(
        TTLCache(settings.FEATURED_CACHE_TTL_SECONDS, settings.FEATURED_CACHE_MAX_ENTRIES),
        rng=random.Random(),
    )
    app.state.stripe_gateway = StripeGateway(
        secret_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        timeout_seconds=settings.STRIPE_TIMEOUT_SECONDS,
    )
    app.state.webhook_processor = StripeWebhookProcessor(db)
    app.state.image_fetcher = ImageFetcher(settings.IMAGE_FETCH_TIMEOUT_SECONDS)

    # Configure middleware stack
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Include routers
    prefix = settings.API_PREFIX
    app.include_router(directory.router, prefix=prefix)
    app.include_router(recommendations.router, prefix=prefix)
    app.include_router(categories.router, prefix=prefix)
    app.include_router(feature_flags.router, prefix=prefix)
    app.include_router(admin.router, prefix=prefix)
    app.include_router(tenants.router, prefix=prefix)
    app.include_router(inventory.router, prefix=prefix)
    app.include_router(orders.router, prefix=prefix)
    app.include_router(payments.router, prefix=prefix)
    app.include_router(webhooks.router, prefix=prefix)
    app.include_router(gdpr.router, prefix=prefix)

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "retail-directory-api"}

    @app.get("/")
    def root():
        """Root endpoint"""
        return {
            "message": "Retail Directory API",
            "version": __version__,
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "retail_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
