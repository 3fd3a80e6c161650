"""Main FastAPI application"""
import os
import logging
import logging.config
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from routes import router as api_router, limiter
from services.expense_store import InMemoryExpenseStore, MongoExpenseStore
from services.expenses_service import ExpenseService

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

load_dotenv() # Searches current dir and parents for .env

# --- Unified Logging Configuration with Rich ---
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            # RichHandler renders its own timestamp and colors
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

MONGODB_URI = os.getenv("MONGODB_URI")
DB_NAME = os.getenv("DB_NAME", "finance_db")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "expenses")
STORE_BACKEND = os.getenv("STORE_BACKEND", "mongo").lower() # "mongo" or "memory"
STRICT_DELETE = os.getenv("STRICT_DELETE", "false").lower() == "true"
RATE_LIMIT = os.getenv("RATE_LIMIT", "") # e.g. "60/minute"; empty disables limiting
STORE_BACKENDS = ("mongo", "memory")

if STORE_BACKEND not in STORE_BACKENDS:
    logger.error(f"Unknown STORE_BACKEND '{STORE_BACKEND}', expected one of {STORE_BACKENDS}. The expense service will be unavailable.")
if STORE_BACKEND == "mongo" and not MONGODB_URI:
    logger.error("MONGODB_URI environment variable not set! Database connection will fail.")

# Application state holding the database client and the expense service
app_state = {}

# --- Rate Limiter Setup ---
# Routes carry the limit themselves; it only applies while RATE_LIMIT is set
limiter.enabled = bool(RATE_LIMIT)

@asynccontextmanager
async def lifespan(app: FastAPI):
    app_state["strict_delete"] = STRICT_DELETE
    logger.info(f"Configuration: STORE_BACKEND = {STORE_BACKEND}, STRICT_DELETE = {STRICT_DELETE}")
    if STORE_BACKEND not in STORE_BACKENDS:
        logger.error(f"Refusing to start the expense service with unknown STORE_BACKEND '{STORE_BACKEND}'.")
        app_state["db_client"] = None
        app_state["expense_service"] = None
    elif STORE_BACKEND == "memory":
        logger.warning("Using in-memory expense store. Data will not survive a restart.")
        app_state["db_client"] = None
        app_state["expense_service"] = ExpenseService(InMemoryExpenseStore())
    else:
        logger.info(f"Connecting to MongoDB at {MONGODB_URI}...")
        try:
            app_state["db_client"] = AsyncIOMotorClient(MONGODB_URI)
            collection = app_state["db_client"][DB_NAME].get_collection(COLLECTION_NAME)
            await app_state["db_client"].admin.command('ping')
            logger.info(f"Successfully connected to MongoDB database: {DB_NAME}")
            app_state["expense_service"] = ExpenseService(MongoExpenseStore(collection))
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            app_state["expense_service"] = None

    yield # Application runs here

    if app_state.get("db_client"):
        logger.info("Closing MongoDB connection...")
        app_state["db_client"].close()
        logger.info("MongoDB connection closed.")
    app_state.clear()

app = FastAPI(
    title="Expense Records API",
    description="API for recording expenses and querying them by date, category and summary.",
    version="0.1.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # The mobile client is not origin-restricted
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api", tags=["api"])

@app.middleware("http")
async def add_app_config_to_request(request: Request, call_next):
    """Adds the expense service and configuration settings to the request state."""
    request.state.expense_service = app_state.get("expense_service")
    request.state.strict_delete = app_state.get("strict_delete", False)
    response = await call_next(request)
    return response

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8080")),
        reload=True
    )
