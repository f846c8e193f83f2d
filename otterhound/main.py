"""FastAPI application entry point for the webhook ingestion service."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from otterhound.core.config import settings, validate_runtime_config
from otterhound.core.database import create_engine_from_settings
from otterhound.core.error_handlers import delivery_rejected_handler, generic_exception_handler
from otterhound.core.exceptions import AuthError, ParseError
from otterhound.log.logging import logger, InterceptHandler
from otterhound.middleware.correlation import setup_correlation_middleware
from otterhound.routers.healthcheck_router import router as healthcheck_router
from otterhound.routers.webhooks import router as webhooks_router
from otterhound.services.delivery_executor import DeliveryExecutor
from otterhound.services.event_router import build_event_router
from otterhound.services.poll_service import PollCursorTracker
from otterhound.services.stripe_client import StripeClient
from otterhound.services.subscription_activation import SubscriptionActivationService

# Intercept standard logging (uvicorn, sqlalchemy, httpx) into loguru
logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
for noisy in ("httpcore", "httpx", "asyncio"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire both ingress channels to one executor and tear them down in order."""
    logger.info("Starting application", status="starting", event="service_startup")

    config_valid, validation_details = validate_runtime_config(settings)
    if not config_valid:
        logger.critical(
            "Runtime configuration is incomplete",
            event_type="startup_config_invalid",
            issues=validation_details["issues"]
        )
    for warning in validation_details["warnings"]:
        logger.warning(warning, event_type="startup_warning")

    engine = create_engine_from_settings(settings)
    stripe_client = StripeClient.from_settings(settings)
    activation_service = SubscriptionActivationService(stripe_client, engine)
    event_router = build_event_router(activation_service)
    executor = DeliveryExecutor(event_router)

    app.state.engine = engine
    app.state.executor = executor
    app.state.poll_tracker = None

    poll_task = None
    if settings.POLL_ENABLED:
        tracker = PollCursorTracker(stripe_client, executor, interval=settings.POLL_INTERVAL_SECONDS)
        app.state.poll_tracker = tracker
        poll_task = asyncio.create_task(tracker.run(), name="poll-loop")

    logger.info(
        "Application startup complete",
        status="running",
        event="service_ready",
        handled_event_types=event_router.event_types,
        poll_enabled=settings.POLL_ENABLED
    )

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown", status="stopping", event="service_shutdown_start")

        if poll_task is not None:
            poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poll_task

        await executor.drain(timeout=settings.SHUTDOWN_DRAIN_SECONDS)
        await stripe_client.aclose()
        await engine.dispose()

        logger.info("Application shutdown complete", status="stopped", event="service_shutdown_complete")


app = FastAPI(
    title="Otterhound",
    description="""
## Stripe webhook ingestion

Activates user subscriptions from `checkout.session.completed` events
received over two channels:

* **Push** - Stripe posts signed deliveries to `POST /`
* **Poll** - the service lists `GET /events` every few seconds as a fallback

Both channels feed the same idempotent activation, so an event seen twice
is only applied once.
""",
    version="1.0.0",
    lifespan=lifespan,
)

setup_correlation_middleware(app)

app.add_exception_handler(AuthError, delivery_rejected_handler)
app.add_exception_handler(ParseError, delivery_rejected_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(webhooks_router)
app.include_router(healthcheck_router)
