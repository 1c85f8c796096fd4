from datetime import UTC, datetime
from time import monotonic

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.responses import Response

from app.api.admin import router as admin_router
from app.api.analytics import router as analytics_router
from app.api.auth import router as auth_router
from app.api.conversations import router as conversations_router
from app.api.customers import router as customers_router
from app.api.messages import router as messages_router
from app.api.notes import router as notes_router
from app.api.templates import router as templates_router
from app.config import settings
from app.db import get_db
from app.errors import register_error_handlers
from app.logging import configure_logging, get_logger
from app.middleware.api_rate_limit import APIRateLimitMiddleware
from app.observability import ObservabilityMiddleware
from app.services.auth_dependencies import require_user_auth
from app.telemetry import setup_otel
from app.websocket.manager import get_connection_manager
from app.websocket.router import router as ws_router

logger = get_logger(__name__)

_STARTED_AT = monotonic()

app = FastAPI(title="omnidesk API", version=settings.app_version)

configure_logging()
setup_otel(app)
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(APIRateLimitMiddleware)  # Global API rate limiting
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api", dependencies=dependencies)


for api_router in (
    auth_router,
    customers_router,
    conversations_router,
    messages_router,
    templates_router,
    notes_router,
    analytics_router,
    admin_router,
):
    _include_api_router(api_router, dependencies=[Depends(require_user_auth)])

app.include_router(ws_router)


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    timestamp = datetime.now(UTC).isoformat()
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_check_failed error=%s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "error": str(exc), "timestamp": timestamp},
        )
    return {
        "status": "healthy",
        "timestamp": timestamp,
        "uptime": round(monotonic() - _STARTED_AT, 3),
        "version": settings.app_version,
    }


@app.head("/health")
def head_health():
    return Response(status_code=200)


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.on_event("startup")
async def _start_websocket_manager():
    get_connection_manager().start()


@app.on_event("shutdown")
async def _stop_websocket_manager():
    await get_connection_manager().stop()
