# ototamirci/main.py

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .database import Base, engine
from .exceptions import AppError
from .rate_limiter import api_rate_limit
from .responses import failure
from .routers import appointments, auth, reviews, shops

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Boundary messages for the request fields clients most often get wrong
FIELD_MESSAGES = {
    "lat": "Valid latitude is required",
    "lng": "Valid longitude is required",
    "radius": "Radius must be between 1 and 100 km",
    "latitude": "Valid latitude is required",
    "longitude": "Valid longitude is required",
    "name": "Name is required",
    "email": "Valid email is required",
    "password": "Password must be at least 6 characters",
    "role": "Role must be customer or mechanic",
    "avatar_url": "avatar_url must be a valid URL",
    "address": "Address is required",
    "phone": "Phone is required",
    "categories": "Categories must be an array",
    "is_open": "is_open must be a boolean",
    "rating": "Rating must be between 1 and 5",
    "shop_id": "Valid shop_id is required",
    "car_model": "Car model is required",
    "appointment_date": "Valid appointment date is required",
    "service_type": "Service type is required",
    "status": "Invalid status",
}


# ────────────────────────────── LIFESPAN ──────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up (environment=%s)", config.ENVIRONMENT)
    Base.metadata.create_all(bind=engine, checkfirst=True)
    yield
    logger.info("Application shutting down...")


app = FastAPI(
    title="Ototamirci API",
    description="Find nearby repair shops, book appointments and review mechanics",
    version="1.0.0",
    lifespan=lifespan,
)


# ────────────────────────────── ERRORS ──────────────────────────────

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return failure(exc.status_code, exc.message, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.info("Validation error for %s: %s", request.url.path, errors)
    message = "Invalid request"
    if errors:
        loc = [part for part in errors[0].get("loc", ()) if isinstance(part, str)]
        if loc:
            message = FIELD_MESSAGES.get(loc[-1], f"{loc[-1]}: {errors[0].get('msg')}")
        else:
            message = errors[0].get("msg", message)
    return failure(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = "Route not found" if exc.status_code == 404 else str(exc.detail)
    return failure(exc.status_code, message, getattr(exc, "headers", None))


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return failure(500, "Server error")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if config.ENVIRONMENT == "development" else "Internal server error"
    return failure(500, message)


# ────────────────────────────── MIDDLEWARE ──────────────────────────────

if config.ENVIRONMENT == "development":

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method, request.url.path, response.status_code, (time.time() - start) * 1000,
        )
        return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ────────────────────────────── ROUTES ──────────────────────────────

@app.get("/health")
def health():
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


for module in (auth, shops, reviews, appointments):
    app.include_router(module.router, prefix="/api", dependencies=[Depends(api_rate_limit)])
