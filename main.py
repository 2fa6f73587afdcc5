"""Main FastAPI application"""
import os
import logging
import logging.config
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from routes import router as api_router, LedgerUnavailable
from services.ledger import Ledger
from utils.database import resolve_database_url, create_db_engine, create_schema
from starlette.middleware.base import BaseHTTPMiddleware

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

load_dotenv() # Searches current dir and parents

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(name)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "class": "rich.logging.RichHandler",
            "formatter": "default",
            "level": "DEBUG",
            "rich_tracebacks": True,
            "show_time": True,
            "show_path": False,
            "log_time_format": "%Y-%m-%d %H:%M:%S",
            "markup": False
        },
    },
    "loggers": {
        "uvicorn": {
             "handlers": ["default"],
             "level": "INFO",
             "propagate": False,
        },
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "": { # Root logger for our application
            "handlers": ["default"],
            "level": os.getenv("LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        },
    },
}

logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = int(os.getenv("MAX_BODY_SIZE", str(64 * 1024)))
BODY_LIMITED_PATH = "/expenses"
RATE_LIMIT = os.getenv("RATE_LIMIT", "120/minute")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

# Application state to hold the database engine and the ledger
app_state = {}

# --- Rate Limiter Setup ---
limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT], enabled=RATE_LIMIT_ENABLED)

# --- Middleware for Request Body Size Limit ---
class LimitBodySizeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method == "POST" and request.url.path == BODY_LIMITED_PATH:
            content_length_header = request.headers.get("content-length")
            if content_length_header:
                try:
                    content_length = int(content_length_header)
                    max_body_size = request.app.state.max_body_size
                    if content_length > max_body_size:
                        logger.warning(f"Request rejected: body size {content_length} exceeds limit {max_body_size}.")
                        return JSONResponse(status_code=413, content={"error": f"Request body exceeds {max_body_size} bytes."})
                except ValueError:
                    logger.warning("Request rejected: invalid Content-Length header.")
                    return JSONResponse(status_code=400, content={"error": "Invalid Content-Length header."})

        response = await call_next(request)
        return response

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: open the store and build the Ledger on top of it
    try:
        database_url = resolve_database_url()
        logger.info(f"Connecting to database at {database_url}...")
        engine = create_db_engine(database_url)
        create_schema(engine)
        app_state["engine"] = engine
        app_state["ledger"] = Ledger(engine)
        logger.info("Ledger ready.")
    except Exception as e:
        logger.error(f"Failed to set up the database: {e}")
        app_state["engine"] = None
        app_state["ledger"] = None

    yield # Application runs here

    # Shutdown: release pooled connections
    if app_state.get("engine") is not None:
        logger.info("Closing database connections...")
        app_state["engine"].dispose()
        logger.info("Database connections closed.")
    app_state.clear()

app = FastAPI(
    title="Expense Ledger API",
    description="API for recording expenses and retrieving them by date.",
    version="0.1.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.state.max_body_size = MAX_BODY_SIZE
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

@app.exception_handler(LedgerUnavailable)
async def ledger_unavailable_handler(request: Request, exc: LedgerUnavailable):
    return JSONResponse(status_code=503, content={"error": "Database service not available."})

# --- Add Middleware (Order Matters) ---
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LimitBodySizeMiddleware)

app.include_router(api_router, tags=["expenses"])

# Make app state accessible via middleware
@app.middleware("http")
async def add_ledger_to_request(request: Request, call_next):
    """Adds the Ledger to the request state."""
    request.state.ledger = app_state.get("ledger")
    response = await call_next(request)
    return response

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("LEDGER_ENV", "production").lower() == "development"
    )
