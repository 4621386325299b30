from dotenv import load_dotenv
load_dotenv()

import logging
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import get_db

# ENV
from config.env import ENV, LOG_LEVEL, CORS_ALLOWED_ORIGINS, is_development, validate_production_env

# ROUTES
from routes.auth import router as auth_router
from routes.accounts import router as accounts_router
from routes.listings import router as listings_router
from routes.cart import router as cart_router
from routes.purchases import router as purchases_router

from utils.errors import ApiError, Internal
from utils.indexes import ensure_indexes

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("ecofinds")

validate_production_env()
logger.info("ENV: %s", ENV)

app = FastAPI(
    title="EcoFinds API",
    version="1.0.0",
    docs_url=None if ENV == "production" else "/docs",
    redoc_url=None if ENV == "production" else "/redoc",
    openapi_url=None if ENV == "production" else "/openapi.json",
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

def error_body(message: str, errors=None, **extra) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.errors, **exc.extra),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({
            "field": ".".join(loc) or None,
            "message": err.get("msg"),
        })
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", errors),
    )


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    fields = list((exc.details or {}).get("keyValue", {}).keys())
    message = f"{fields[0].capitalize()} is already taken" if fields else "Resource already exists"
    return JSONResponse(status_code=400, content=error_body(message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("UNHANDLED_ERROR %s %s", request.method, request.url.path)
    extra = {"error": str(exc)} if is_development() else {}
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", **extra),
    )

# -----------------------------
# ROUTES
# -----------------------------

app.include_router(auth_router, prefix="/api")
app.include_router(accounts_router, prefix="/api")
app.include_router(listings_router, prefix="/api")
app.include_router(cart_router, prefix="/api")
app.include_router(purchases_router, prefix="/api")

# -----------------------------
# HEALTH CHECKS
# -----------------------------

@app.get("/api/health")
async def health():
    return {
        "success": True,
        "message": "EcoFinds API is running successfully!",
        "data": {"status": "ok", "environment": ENV, "version": app.version},
    }

@app.get("/api/health/db")
async def health_db(db=Depends(get_db)):
    try:
        await db.command("ping")
    except PyMongoError:
        logger.exception("DB_HEALTH_CHECK_FAILED")
        raise Internal("Database unavailable")
    return {"success": True, "message": "mongodb connected", "data": {"status": "ok"}}

# -----------------------------
# STARTUP
# -----------------------------

@app.on_event("startup")
async def create_indexes():
    await ensure_indexes(get_db())
