# server.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from butchery import analytics, categories, delivery, finance, orders, products, promotions, reports, reviews
from butchery.db import Base, engine
from butchery.schemas import failure
from butchery.settings import settings

# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)

# --- App Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Storefront API for the butcher shop: catalog, orders, delivery, finance and analytics.",
    version="1.0.0",
)

# --- CORS Middleware ---
origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Database Startup Event ---
@app.on_event("startup")
async def on_startup():
    """Create database tables on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database tables verified/created.")


# --- Error Envelope ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path", "header"))
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(
        status_code=400,
        content=failure("; ".join(messages) or "Invalid request").model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=failure("Internal server error").model_dump(exclude_none=True))


# =======================================
# ROUTER INCLUSION
# =======================================

for module in (categories, products, orders, promotions, delivery, finance, reviews, analytics, reports):
    app.include_router(module.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    return {"success": True, "message": f"{settings.PROJECT_NAME} is running"}


@app.get("/health")
async def health():
    return {"success": True, "status": "ok"}
