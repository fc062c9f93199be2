import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Every model module must be imported before create_all and the audit listener run
from . import (
    models,  # noqa: F401
    models_assembly,  # noqa: F401
    models_audit,  # noqa: F401
    models_billing,  # noqa: F401
    models_finance,  # noqa: F401
)
from .auth import client_ip
from .config import (
    ALLOWED_ORIGINS,
    BACKUP_PATH,
    SECURITY_HEADERS_ENABLED,
    SECURITY_HEADERS_EXCLUDED_PATHS,
    STORAGE_PATH,
)
from .database import Base, engine
from .domain.assemblies.router import router as assemblies_router
from .domain.audit.router import router as audit_router
from .domain.backups.router import router as backups_router
from .domain.billing.router import router as billing_router
from .domain.condominiums.router import router as condominiums_router
from .domain.documents.router import router as documents_router
from .domain.fees.router import router as fees_router
from .domain.finance.router import router as finance_router
from .domain.messaging.router import notifications_router
from .domain.messaging.router import router as messages_router
from .domain.occurrences.router import router as occurrences_router
from .domain.spaces.router import router as spaces_router
from .domain.suppliers.router import router as suppliers_router
from .exceptions import CondoHubError
from .rate_limiter import get_redis_client, redis_health
from .request_context import set_request_context
from .routes.auth import router as auth_router
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🏢 CondoHub API starting up...")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info(f"🗄️ {len(Base.metadata.tables)} tables ready")

    for path in (STORAGE_PATH, BACKUP_PATH):
        os.makedirs(path, exist_ok=True)
    logger.info(f"📂 Storage at {STORAGE_PATH}, backups at {BACKUP_PATH}")

    if get_redis_client() is None:
        logger.warning("⚠️ Redis unavailable, login rate limits are kept per process")
    else:
        logger.info("📡 Rate limits shared through Redis")

    yield
    logger.info("👋 CondoHub API shutting down")


app = FastAPI(title="CondoHub API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"Authentication failed for {request.url.path}: Missing or invalid Authorization header")
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."},
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raised ValueError, which is not JSON serializable
    return [{k: (str(v) if k == "ctx" else v) for k, v in error.items()} for error in exc.errors()]


@app.exception_handler(CondoHubError)
async def condohub_exception_handler(request: Request, exc: CondoHubError):
    logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Anonymous actor until get_current_user identifies the caller
    set_request_context(None, client_ip(request), request.headers.get("User-Agent"))
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"💥 {request.method} {request.url.path} failed: {e}")
        raise
    elapsed_ms = (time.perf_counter() - started) * 1000
    if response.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=SECURITY_HEADERS_EXCLUDED_PATHS)
    logger.info("🛡️ Security headers enabled")
else:
    logger.warning("⚠️ Security headers DISABLED, development only")

logger.info(f"🌐 CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(condominiums_router)
app.include_router(fees_router)
app.include_router(finance_router)
app.include_router(assemblies_router)
app.include_router(documents_router)
app.include_router(spaces_router)
app.include_router(occurrences_router)
app.include_router(suppliers_router)
app.include_router(messages_router)
app.include_router(notifications_router)
app.include_router(billing_router)
app.include_router(backups_router)
app.include_router(audit_router)


@app.get("/")
def root():
    return {"message": "CondoHub API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
def redis_health_check():
    """Rate limit backend connectivity, for monitoring"""
    return redis_health()
