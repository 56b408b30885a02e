from dotenv import load_dotenv
load_dotenv()

import logging
import traceback

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import ConnectionFailure, DuplicateKeyError, ExecutionTimeout
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import connect_db, close_db, get_db
from utils.cache import connect_cache, close_cache, get_cache
from utils.errors import format_validation_errors
from utils.indexes import ensure_indexes

# ENV
from config.env import (
    ENV,
    LOG_LEVEL,
    CORS_ALLOWED_ORIGINS,
    validate_production_env,
)

# ROUTES
from routes.auth import router as auth_router
from routes.products import router as products_router
from routes.seller import router as seller_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("ecosource")

validate_production_env()
logger.info("ENV: %s", ENV)

IS_PRODUCTION = (ENV or "").lower() == "production"

app = FastAPI(
    title="EcoSource API",
    version="1.0.0",
    docs_url=None if IS_PRODUCTION else "/docs",
    redoc_url=None if IS_PRODUCTION else "/redoc",
    openapi_url=None if IS_PRODUCTION else "/openapi.json",
)

# -----------------------------
# CORS
# -----------------------------

allowed_origins = [origin.strip() for origin in CORS_ALLOWED_ORIGINS if origin.strip()]
if not allowed_origins:
    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# ERROR ENVELOPE
# -----------------------------

def _error(status_code: int, message: str, errors=None, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), getattr(exc, "errors", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, "Validation Error", format_validation_errors(exc.errors()))


@app.exception_handler(PydanticValidationError)
async def model_validation_handler(request: Request, exc: PydanticValidationError):
    return _error(400, "Validation Error", format_validation_errors(exc.errors()))


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return _error(400, "Resource already exists")


@app.exception_handler(ConnectionFailure)
@app.exception_handler(ExecutionTimeout)
async def store_unavailable_handler(request: Request, exc: Exception):
    logger.exception("STORE_UNAVAILABLE path=%s", request.url.path)
    return _error(503, "Service temporarily unavailable, please retry")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("UNHANDLED_ERROR path=%s", request.url.path)
    extra = {}
    if not IS_PRODUCTION:
        extra["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return _error(500, "Internal Server Error", **extra)


# -----------------------------
# ROUTES
# -----------------------------

app.include_router(auth_router, prefix="/api")
app.include_router(products_router, prefix="/api")
app.include_router(seller_router, prefix="/api")

# -----------------------------
# HEALTH CHECKS
# -----------------------------

@app.get("/api/health")
async def health():

    return {"status": "ok"}


@app.get("/api/health/db")
async def health_db(db=Depends(get_db)):
    await db.command("ping")
    return {"status": "mongodb connected"}


@app.get("/api/health/cache")
async def health_cache(cache=Depends(get_cache)):
    if await cache.ping():
        return {"status": "redis connected"}
    return _error(503, "Cache unavailable, serving from database")


# -----------------------------
# PROCESS RESOURCES
# -----------------------------

@app.on_event("startup")
async def open_resources():
    db = connect_db()
    connect_cache()
    try:
        await ensure_indexes(db)
    except (ConnectionFailure, ExecutionTimeout):
        logger.exception("INDEX_SETUP_ERROR")


@app.on_event("shutdown")
async def close_resources():
    await close_cache()
    close_db()
