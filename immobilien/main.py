from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from immobilien.config import settings
from immobilien.database import Database
from immobilien.exceptions import APIError, DependencyError, InternalError
from immobilien.limits import limiter, RateLimitExceeded, SlowAPIMiddleware
from immobilien.routers import auth, contact, favorites, properties, upload, users
from immobilien.services.bootstrap import ensure_admin_user

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _debug() -> bool:
    return settings.ENVIRONMENT != "production"


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = getattr(app.state, "database", None)
    if database is None:
        database = Database(settings.DATABASE_URL)
        app.state.database = database

    # Only create tables for SQLite (local dev); other databases use Alembic
    if database.is_sqlite:
        database.create_all()

    with database.transaction() as session:
        ensure_admin_user(session, settings)

    logger.info("Immobilien API started (%s)", settings.ENVIRONMENT)
    yield
    database.dispose()
    logger.info("Immobilien API stopped")


app = FastAPI(
    title="Immobilien Ghumman API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Rate limiting middleware and handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    if isinstance(exc, (DependencyError, InternalError)):
        logger.error(
            "%s on %s %s: %s",
            exc.code,
            request.method,
            request.url.path,
            exc.debug_detail or exc.message,
        )
    else:
        logger.info("%s on %s %s", exc.code, request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_debug=_debug()),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]) or None,
            "message": error["msg"],
            "location": error["loc"][0] if error["loc"] else None,
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validierungsfehler", "code": "validation_error", "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Endpoint nicht gefunden"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


# Database error handler
@app.exception_handler(OperationalError)
async def database_operational_error_handler(request: Request, exc: OperationalError):
    """Handle database connection/operation errors"""
    logger.error(f"Database operational error: {exc}", exc_info=True)
    error = DependencyError("Datenbank vorübergehend nicht erreichbar", detail=str(exc.orig))
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(include_debug=_debug()),
        headers={"Retry-After": "5"},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Handle general SQLAlchemy errors"""
    logger.error(f"Database error: {exc}", exc_info=True)
    error = InternalError("Datenbankfehler", detail=str(exc))
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(include_debug=_debug()),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    content = {"error": "Interner Serverfehler", "code": InternalError.code}
    if _debug():
        content["detail"] = str(exc)
        content["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content
    )


@app.get("/", status_code=status.HTTP_200_OK)
def root():
    return {
        "message": "Willkommen bei der Immobilien Ghumman API",
        "version": app.version,
        "endpoints": {
            "auth": f"{settings.API_PREFIX}/auth",
            "properties": f"{settings.API_PREFIX}/properties",
            "contact": f"{settings.API_PREFIX}/contact",
            "users": f"{settings.API_PREFIX}/users",
            "upload": f"{settings.API_PREFIX}/upload",
            "favorites": f"{settings.API_PREFIX}/favorites",
            "health": f"{settings.API_PREFIX}/health",
        },
    }


@app.get(f"{settings.API_PREFIX}/health", status_code=status.HTTP_200_OK)
def health_check(request: Request):
    database_ok = True
    try:
        request.app.state.database.ping()
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable", exc_info=True)
        database_ok = False
    return {
        "status": "OK" if database_ok else "DEGRADED",
        "message": "Immobilien API läuft",
        "database": "up" if database_ok else "down",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


for module in (auth, properties, contact, users, upload, favorites):
    app.include_router(module.router, prefix=settings.API_PREFIX)
