"""authgate FastAPI application"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from authgate import __version__
from authgate.api.v1 import auth, users
from authgate.config import settings
from authgate.core.database import SessionLocal, init_db
from authgate.core.error_handlers import register_exception_handlers
from authgate.schemas.response import HealthResponse
from authgate.schemas.user import UserCreate, UserRole
from authgate.services.user_service import user_service


def configure_logging() -> None:
    handlers = [logging.StreamHandler()]
    if settings.LOG_FILE:
        log_file = Path(settings.get_log_file())
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


configure_logging()
logger = logging.getLogger(__name__)

HTTP_REQUESTS = Counter(
    "authgate_http_requests_total",
    "HTTP requests by route and status",
    ["method", "route", "status"],
)
HTTP_LATENCY = Histogram(
    "authgate_http_request_duration_seconds",
    "HTTP request latency by route",
    ["method", "route"],
)

SLOW_REQUEST_SECONDS = 1.0


def bootstrap_admin() -> None:
    """Create the configured admin account on first start"""
    db = SessionLocal()
    try:
        if user_service.find_by_email(db, settings.ADMIN_EMAIL) is None:
            admin = user_service.create_user(
                db,
                UserCreate(
                    email=settings.ADMIN_EMAIL,
                    name=settings.ADMIN_NAME,
                    password=settings.ADMIN_PASSWORD,
                    role=UserRole.ADMIN,
                ),
            )
            logger.info("Bootstrap admin created (id=%s)", admin.id)
    except ValidationError as e:
        logger.error(f"Invalid admin bootstrap settings, admin not created: {e.error_count()} error(s)")
    except SQLAlchemyError as e:
        logger.error(f"Could not bootstrap admin account: {e}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_security_settings()
    logger.info(
        "%s v%s starting (environment=%s, db_init=%s)",
        settings.APP_NAME, __version__, settings.ENVIRONMENT, settings.DB_INIT_MODE,
    )
    init_db()
    bootstrap_admin()
    yield
    logger.info("%s stopping", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=__version__,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)

register_exception_handlers(app)


@app.middleware("http")
async def observe_request(request: Request, call_next):
    """Tag the request, harden response headers and record metrics"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id

    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    # Token responses must never be cached by browsers or proxies.
    response.headers.update({
        "Cache-Control": "no-store",
        "Pragma": "no-cache",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-Request-ID": request_id,
    })

    route = getattr(request.scope.get("route"), "path", "unmatched")
    HTTP_REQUESTS.labels(request.method, route, str(response.status_code)).inc()
    HTTP_LATENCY.labels(request.method, route).observe(elapsed)
    if elapsed > SLOW_REQUEST_SECONDS:
        logger.warning("Slow request %s %s (%.2fs) id=%s", request.method, route, elapsed, request_id)
    return response


@app.get("/health", response_model=HealthResponse)
async def health():
    """Liveness plus database readiness"""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database = {"ok": True, "error": None}
    except SQLAlchemyError as exc:
        database = {"ok": False, "error": exc.__class__.__name__}
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if database["ok"] else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        readiness={"database": database},
    )


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "authgate.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
    )
