"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.config import settings
from marketplace.database import Base, engine
from marketplace.errors import GatewayUnavailable, MarketplaceError

# Import routers
from marketplace.routers import assistant, catalog, order_groups, orders, payments, proposals

# Import all models so Base.metadata knows about them
from marketplace.models.supplier import Supplier                        # noqa: F401
from marketplace.models.offering import Offering                        # noqa: F401
from marketplace.models.brief import EventBrief                         # noqa: F401
from marketplace.models.proposal import Proposal, ProposalLine          # noqa: F401
from marketplace.models.order_group import OrderGroup                   # noqa: F401
from marketplace.models.order import Order, OrderItem                   # noqa: F401
from marketplace.models.order_status_change import OrderStatusChange    # noqa: F401
from marketplace.models.payment import Payment, PaymentReconciliation   # noqa: F401

logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("marketplace").setLevel(settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Events Rental Marketplace",
    description="Budget-bounded event rental proposals, multi-supplier order groups and single-payment reconciliation",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(catalog.router, prefix="/api", tags=["Catalog"])
app.include_router(proposals.router, prefix="/api/proposals", tags=["Proposals"])
app.include_router(order_groups.router, prefix="/api/order-groups", tags=["OrderGroups"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
app.include_router(assistant.router, prefix="/api/assistant", tags=["Assistant"])


@app.exception_handler(MarketplaceError)
def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Render domain errors as ``{"detail": {"code", "message", ...}}``."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    headers = None
    if isinstance(exc, GatewayUnavailable):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()}, headers=headers)


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
