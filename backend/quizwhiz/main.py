import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quizwhiz.routers import cache, quiz
from quizwhiz.database import init_db
from quizwhiz.config import get_settings
from quizwhiz.services.session_registry import get_session_registry


def setup_logging():
    settings = get_settings()
    logger = logging.getLogger("quizwhiz")
    logger.setLevel(settings.LOG_LEVEL)

    if not os.path.exists(settings.LOG_DIR):
        os.makedirs(settings.LOG_DIR, exist_ok=True)
    log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)
    # Also configure root logger to see logs from other libraries
    logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the fallback cache database on startup, stop timers on shutdown."""
    await init_db()
    yield
    get_session_registry().shutdown()


def create_app() -> FastAPI:
    setup_logging()
    settings = get_settings()

    app = FastAPI(
        title="QuizWhiz Quiz Engine",
        description="Quiz sessions, scoring and result sync for flashcard decks",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS - configurable via ALLOWED_ORIGINS env var
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(quiz.router, prefix="/api", tags=["quiz"])
    app.include_router(cache.router, prefix="/api", tags=["cache"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
