"""
main.py — Ardhi Registries Entry Point
=======================================
Builds the FastAPI app: logging, startup (tables, ledger), CORS, the
{"success": false, "message": ...} error envelope, the /api routers and
the status endpoints.

Start locally:
    uvicorn main:app --reload --port 3001
    python main.py                  # same, using HOST/PORT from settings
"""

import logging
import traceback
import uvicorn
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings

# ── Database ──────────────────────────────────────────────────────────────────
from db.session import init_db, ping_db

# ── Core systems ──────────────────────────────────────────────────────────────
from core.blockchain import blockchain          # the ledger connection object
from core.errors import RegistryError
from core.ratelimit import rate_limiter

# ── API Routers ───────────────────────────────────────────────────────────────
from api.routes_users import router as users_router
from api.routes_lands import router as lands_router


# ── Logging setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    handlers=[
        logging.StreamHandler(),                          # print to terminal
        logging.FileHandler(settings.LOG_FILE),           # also save to file
    ],
)
logger = logging.getLogger("ardhi.main")


# ── Lifespan: runs on startup and shutdown ────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting ({settings.ENVIRONMENT})")
    await init_db()
    logger.info("Registry tables ready")
    await blockchain.connect()
    logger.info(f"Serving on http://{settings.HOST}:{settings.PORT}/api")

    yield

    await blockchain.disconnect()
    logger.info(f"{settings.APP_NAME} stopped")


# ── Create the FastAPI app ────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Land registration, government approval and purchase requests",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# ── Middleware ─────────────────────────────────────────────────────────────────
# CORS: lets the browser frontend call this API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ── Error envelope ────────────────────────────────────────────────────────────
# Every error leaves as {"success": false, "message": ...}
def _envelope(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


# ── Rate limit & security headers ─────────────────────────────────────────────
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
}


@app.middleware("http")
async def guard_requests(request: Request, call_next):
    client = request.client.host if request.client else "unknown"
    if not rate_limiter.hit(client):
        response = _envelope(429, "Too many requests from this IP, please try again later.")
        response.headers["Retry-After"] = str(rate_limiter.retry_after(client))
    else:
        response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    return response


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError):
    extra = {"errors": exc.errors} if exc.errors else {}
    return _envelope(exc.status_code, exc.message, **extra)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _envelope(404, "Route not found")
    return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return _envelope(400, "Validation error", errors=errors)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    extra = {}
    if settings.ENVIRONMENT != "production":
        extra["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return _envelope(500, "Internal server error", **extra)


# ── Register all routers ──────────────────────────────────────────────────────
# Users first: /api/profile and /api/users must win over /api/{land_id}
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(lands_router, prefix="/api", tags=["Lands"])


# ── Status endpoints ──────────────────────────────────────────────────────────
@app.get("/", tags=["Status"])
async def root():
    return {
        "success": True,
        "message": f"Welcome to {settings.APP_NAME}",
        "api": "/api",
        "ledger": settings.BLOCKCHAIN_BACKEND,
        "docs": "/docs",
    }


@app.get("/health", tags=["Status"])
async def health_check():
    """Liveness probe — also reports database and ledger reachability."""
    return {
        "success": True,
        "message": f"{settings.APP_NAME} API is running",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.ENVIRONMENT,
        "version": settings.APP_VERSION,
        "database": await ping_db(),
        "blockchain": await blockchain.ping(),
    }


# ── Run directly ──────────────────────────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
