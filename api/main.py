from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from common.core.config import settings
from api.v1.routes.router import api_router
from common.db.session import init_db
from common.providers.rate_limiter.limiter import limiter
from packages.billing.services.billing_scheduler import BillingScheduler
from packages.billing.services.subscription_service import SubscriptionService
from packages.webhooks.services.webhook_reconciler import WebhookReconciler
from packages.webhooks.workers.notification_worker import NotificationWorker

# Initialize Axiom OpenTelemetry exporter (must be first)
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from common.core.otel_axiom_exporter import (
    _initialize_telemetry,
    get_logger,
)  # noqa


_initialize_telemetry()

# Get logger
logger = get_logger(__name__)


def build_billing_runtime(app: FastAPI) -> None:
    """Create the process-wide scheduler, services and worker on app.state."""
    scheduler = BillingScheduler()
    subscription_service = SubscriptionService(scheduler)
    reconciler = WebhookReconciler(subscription_service)
    app.state.billing_scheduler = scheduler
    app.state.subscription_service = subscription_service
    app.state.notification_worker = NotificationWorker(reconciler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    await init_db()
    logger.info("Database initialized")

    build_billing_runtime(app)
    await app.state.notification_worker.start()
    restored = await app.state.billing_scheduler.restore()
    logger.info(f"Billing scheduler restored {restored} scheduled charges")
    yield
    # Shutdown
    logger.info("Shutting down application...")
    await app.state.notification_worker.stop()
    await app.state.billing_scheduler.shutdown()


# Only expose OpenAPI docs in local development
docs_url = "/docs" if settings.environment == "local" else None
redoc_url = "/redoc" if settings.environment == "local" else None
openapi_url = "/openapi.json" if settings.environment == "local" else None

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url,
    openapi_url=openapi_url,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api_router, prefix="/api/v1")


# Internal health endpoint for k8s probes - not under /api/v1 to avoid external spam
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"status": "ok"}
