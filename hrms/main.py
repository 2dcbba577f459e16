"""HRMS API — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from hrms.admin.router import router as admin_router
from hrms.auth.router import router as auth_router
from hrms.common.exceptions import register_exception_handlers
from hrms.common.logging_config import configure_logging
from hrms.common.rate_limit import limiter
from hrms.config import settings
from hrms.core_hr.router import (
    departments_router,
    employees_router,
    locations_router,
    positions_router,
)
from hrms.database import engine
from hrms.employment.router import router as employments_router
from hrms.excel.router import downloads_router, uploads_router
from hrms.funding.router import router as funding_router
from hrms.grants.router import router as grants_router
from hrms.leave.router import router as leave_router
from hrms.notifications.router import router as notifications_router
from hrms.notifications.router import ws_router
from hrms.payroll.router import advances_router, benefit_settings_router
from hrms.payroll.router import router as payroll_router
from hrms.personnel_actions.router import router as personnel_actions_router
from hrms.recruitment.router import offers_router
from hrms.recruitment.router import router as interviews_router
from hrms.resignations.router import router as resignations_router
from hrms.tax.router import brackets_router, calculations_router
from hrms.tax.router import settings_router as tax_settings_router
from hrms.travel.router import router as travel_router

APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    configure_logging(settings.LOG_LEVEL)
    logger.info("HRMS API starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("HRMS API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="HRMS API",
        description="Employees, grants, funding allocations, payroll, leave, travel and personnel actions",
        version=APP_VERSION,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers ({success, message, errors} envelope)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(departments_router, prefix="/api/v1/departments", tags=["departments"])
    app.include_router(positions_router, prefix="/api/v1/positions", tags=["positions"])
    app.include_router(locations_router, prefix="/api/v1/work-locations", tags=["work-locations"])
    app.include_router(employments_router, prefix="/api/v1/employments", tags=["employments"])
    app.include_router(grants_router, prefix="/api/v1/grants", tags=["grants"])
    app.include_router(funding_router, prefix="/api/v1/funding-allocations", tags=["funding-allocations"])
    app.include_router(brackets_router, prefix="/api/v1/tax-brackets", tags=["tax"])
    app.include_router(tax_settings_router, prefix="/api/v1/tax-settings", tags=["tax"])
    app.include_router(calculations_router, prefix="/api/v1/tax-calculations", tags=["tax"])
    app.include_router(payroll_router, prefix="/api/v1/payrolls", tags=["payroll"])
    app.include_router(advances_router, prefix="/api/v1/inter-organization-advances", tags=["payroll"])
    app.include_router(benefit_settings_router, prefix="/api/v1/benefit-settings", tags=["payroll"])
    app.include_router(leave_router, prefix="/api/v1/leaves", tags=["leave"])
    app.include_router(travel_router, prefix="/api/v1/travel-requests", tags=["travel"])
    app.include_router(interviews_router, prefix="/api/v1/interviews", tags=["interviews"])
    app.include_router(offers_router, prefix="/api/v1/job-offers", tags=["job-offers"])
    app.include_router(resignations_router, prefix="/api/v1/resignations", tags=["resignations"])
    app.include_router(personnel_actions_router, prefix="/api/v1/personnel-actions", tags=["personnel-actions"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
    app.include_router(downloads_router, prefix="/api/v1/downloads", tags=["downloads"])
    app.include_router(uploads_router, prefix="/api/v1/uploads", tags=["uploads"])
    app.include_router(ws_router, prefix="/api/v1", tags=["realtime"])

    return app


app = create_app()
