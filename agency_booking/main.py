"""FastAPI application for public booking pages.

Every error leaves the API as ``{"error": "<message>"}``: rejections from the
booking router, HTTP errors, rate limiting and request validation alike.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from agency_booking.core.config import settings
from agency_booking.core.rate_limit import limiter, rate_limit_exceeded_handler
from agency_booking.db.session import engine
from agency_booking.routers import booking

logger = logging.getLogger(__name__)

# Loc prefixes that say where a field came from, not which field it is
_LOC_SOURCES = {"body", "query", "path", "header"}


def _init_sentry() -> None:
    """Error tracking outside dev when a DSN is configured."""
    if not settings.SENTRY_DSN or settings.ENV == "dev":
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        release=settings.VERSION,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # client names and emails stay out of Sentry
    )
    logger.info("Sentry initialized (env=%s)", settings.ENV)


def _format_validation_error(exc: RequestValidationError) -> str:
    """First validation error as ``field: message``."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in _LOC_SOURCES]
    message = str(first.get("msg", "Invalid value")).removeprefix("Value error, ")
    return f"{'.'.join(loc)}: {message}" if loc else message


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": _format_validation_error(exc)})


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


_init_sentry()

app = FastAPI(
    title="Agency Booking API",
    description="Public appointment booking for multi-tenant agencies",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url=None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

# Booking pages are embedded on agency sites; no cookies are involved
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Tenant-ID"],
    expose_headers=["Retry-After"],
)

app.include_router(booking.router, prefix="/book", tags=["booking"])


@app.get("/health")
def health():
    """Liveness plus a database round trip."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check database probe failed: %s", type(e).__name__)
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "unreachable", "version": settings.VERSION},
        )
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
