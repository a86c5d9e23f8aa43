# couplequiz/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from couplequiz.core.config import get_settings
from couplequiz.core.errors import CoupleQuizError, StoreUnavailable
from couplequiz.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from couplequiz.models import profile as _profile_models  # noqa: F401
from couplequiz.models import couple as _couple_models  # noqa: F401
from couplequiz.models import quiz as _quiz_models  # noqa: F401

# Routers
from couplequiz.routers.profiles import router as profiles_router
from couplequiz.routers.couples import router as couples_router
from couplequiz.routers.quiz import router as quiz_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("🔄 Startup: Connecting to Supabase Postgres...")
    try:
        create_db_and_tables()
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "CoupleQuiz API",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Error handlers ---


@app.exception_handler(CoupleQuizError)
async def couplequiz_error_handler(request: Request, exc: CoupleQuizError):
    """Render domain errors as {"detail", "code"} with their HTTP status."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
async def store_unavailable_handler(request: Request, exc: OperationalError):
    """Database unreachable / connection dropped."""
    logger.error(
        f"Store unavailable: {request.method} {request.url.path}: {exc}",
    )
    err = StoreUnavailable()
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(profiles_router, prefix=settings.API_V1_STR)
app.include_router(couples_router, prefix=settings.API_V1_STR)
app.include_router(quiz_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "couplequiz-backend"}
