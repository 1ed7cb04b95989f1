# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import FastAPI, Request, status

from app.core.config import get_settings
from app.core.email_client import build_email_client
from app.core.google_oauth import GoogleOAuthClient
from app.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from app.models import user as _user_models  # noqa: F401
from app.models import unverified_user as _unverified_user_models  # noqa: F401


# Routers
from app.routers.users import router as users_router
from app.routers.users import settings_router
from app.routers.google_auth import router as google_auth_router

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
      - Build the mail client (refreshing Gmail OAuth credentials if set).
      - Build the Google sign-in client.

    Shutdown:
      - No special cleanup needed for sync engine or the mail client.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise

    app.state.email_client = build_email_client(settings)
    app.state.google_oauth_client = GoogleOAuthClient(settings)
    yield
    logger.info("Shutdown: bye.")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies answer 400 with a fixed message instead of 422."""
    # Field locations only; error inputs can echo passwords back
    problems = [(error["loc"], error["type"]) for error in exc.errors()]
    logger.info("Rejected request to %s: %s", request.url.path, problems)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request"},
    )


app.include_router(users_router)
app.include_router(settings_router)
app.include_router(google_auth_router)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "fake-so-backend"}
