import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .config import load_settings
from .routes.generate import router as generate_router
from .routes.health import router as health_router
from .routes.preview import router as preview_router
from .routes.session import router as session_router
from .routes.workspace import router as workspace_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    # Load environment variables from .env if present
    if os.getenv("DOTENV_DISABLED", "false").lower() not in {"1", "true", "yes"}:
        load_dotenv()

    settings = load_settings()
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; generation turns will return a diagnostic comment")

    app = FastAPI(title="AI Website Builder API", version="0.1.0")

    # CORS
    cors_origins = settings.cors_allow_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(health_router, prefix="/api")
    app.include_router(generate_router, prefix="/api")
    app.include_router(session_router, prefix="/api")
    app.include_router(preview_router, prefix="/api")
    app.include_router(workspace_router)

    return app
