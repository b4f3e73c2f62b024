"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings, get_settings
from app.core.database import close_engine, transaction
from app.core.metrics import build_metrics_response, instrument_http_request
from app.modules.admin.router import router as admin_router
from app.modules.audit.router import router as audit_router
from app.modules.change_requests.router import router as change_requests_router
from app.modules.classes.router import router as classes_router
from app.modules.faqs.router import router as faqs_router
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.router import router as identity_router
from app.modules.identity.service import IdentityService
from app.modules.notifications.router import router as notifications_router
from app.modules.reservations.router import router as reservations_router
from app.modules.scheduling.router import router as scheduling_router
from app.modules.site_settings.router import router as site_settings_router
from app.shared.exceptions import register_exception_handlers
from app.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

API_ROUTERS = (
    identity_router,
    classes_router,
    scheduling_router,
    reservations_router,
    change_requests_router,
    notifications_router,
    admin_router,
    audit_router,
    faqs_router,
    site_settings_router,
)


def _log_integration_state(config: Settings) -> None:
    if not config.notifications_enabled:
        logger.info("Customer notifications are disabled")
    elif not config.aligo_api_key:
        logger.warning("Notifications enabled but no Aligo API key is set; every send will fail")
    if not config.google_credentials_configured:
        logger.info("No Google service account; calendar and sheet sync are no-ops")
    else:
        logger.info(
            "Google sync: calendar=%s sheet=%s",
            "on" if config.google_calendar_id else "off",
            "on" if config.google_sheets_spreadsheet_id else "off",
        )


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("Starting %s (%s)", settings.app_name, settings.app_env)

    async with transaction() as session:
        identity = IdentityService(IdentityRepository(session))
        await identity.ensure_default_roles()
        logger.info("Default roles ensured")
        if settings.bootstrap_admin_email and settings.bootstrap_admin_password:
            _, created = await identity.ensure_admin(settings.bootstrap_admin_email, settings.bootstrap_admin_password)
            logger.info(
                "Bootstrap admin %s %s",
                settings.bootstrap_admin_email,
                "created" if created else "verified",
            )
    _log_integration_state(settings)

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_engine()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.middleware("http")(instrument_http_request)
register_exception_handlers(app)
for api_router in API_ROUTERS:
    app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    try:
        async with transaction() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.exception("Database readiness check failed")
        return False
    return True


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness probe: 503 until the database answers."""
    if not await _is_database_ready():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database is not ready")
    return {"status": "ready", "database": "ok", "timestamp": utc_now().isoformat()}


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    return build_metrics_response()
