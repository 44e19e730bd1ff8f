"""
SOBS Banking API Application Factory
"""

from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import DemoSessionStore
from .users import router as users_router
from .accounts import router as accounts_router
from .cards import router as cards_router
from .transfers import router as transfers_router, bills_router
from .savings import router as savings_router
from .beneficiaries import router as beneficiaries_router
from .scheduled import router as scheduled_router
from .notifications import router as notifications_router
from .analytics import router as analytics_router
from .. import __version__
from ..seed import seed_demo_data
from ..system import BankingSystem


def create_app(system: Optional[BankingSystem] = None, seed: Optional[bool] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Banking system to serve; a fresh in-memory one if omitted
        seed: Seed the demo user; defaults to the ``seed_demo_data`` setting
    """
    system = system or BankingSystem()
    config = system.config

    app = FastAPI(
        title=config.api_title,
        description="Online banking ledger with card policy enforcement",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.banking_system = system
    app.state.sessions = DemoSessionStore(
        otp_length=config.otp_length,
        otp_expiry_seconds=config.otp_expiry_seconds
    )

    if config.seed_demo_data if seed is None else seed:
        seed_demo_data(system)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in config.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def envelope_http_exception(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict):
            content = {"success": False, **exc.detail}
        else:
            content = {"success": False, "message": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    # Include routers
    app.include_router(users_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(accounts_router, prefix="/api/accounts", tags=["Accounts"])
    app.include_router(cards_router, prefix="/api/cards", tags=["Cards"])
    app.include_router(transfers_router, prefix="/api/transfers", tags=["Transfers"])
    app.include_router(bills_router, prefix="/api/bills", tags=["Bills"])
    app.include_router(savings_router, prefix="/api/savings", tags=["Savings"])
    app.include_router(beneficiaries_router, prefix="/api/beneficiaries", tags=["Beneficiaries"])
    app.include_router(scheduled_router, prefix="/api/scheduled-payments", tags=["Scheduled Payments"])
    app.include_router(notifications_router, prefix="/api/notifications", tags=["Notifications"])
    app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "sobs_banking_api",
            "version": __version__
        }

    return app
