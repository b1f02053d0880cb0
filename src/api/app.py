"""
FastAPI application for the Abbas Image Studio.

Run with: python main.py serve --reload
"""

import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from dotenv import load_dotenv

from src.api.deps import reset_shell_registry
from src.api.middleware import ApiKeyMiddleware
from src.api.routes import health, history, sessions
from src.core.cloudwatch_logging import setup_cloudwatch_logging, flush_cloudwatch_logging
from src.core.config import GenerationConfig, StudioConfig
from src.db.engine import init_db, close_db


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Application starting up...")

    # CloudWatch logging (engine logs only, opt-in via CLOUDWATCH_ENABLED=true)
    setup_cloudwatch_logging()

    generation = GenerationConfig()
    if generation.validate():
        logger.info(f"Image generation configured (backend={generation.backend})")
    else:
        logger.warning(
            f"Image generation backend '{generation.backend}' is not configured - "
            "set GENERATION_URL or OPENROUTER_API_KEY"
        )

    # Initialize database
    await init_db()

    yield

    # Shutdown: close mounted views, then the database
    registry = reset_shell_registry()
    if registry is not None:
        await registry.close_all()
    await close_db()
    logger.info("Application shutting down...")
    flush_cloudwatch_logging()


app = FastAPI(
    title="Abbas Image Studio API",
    description="""
Turn prompts into images and educational infographics, and keep a personal
history of every generation.

## Workflow
1. **POST** `/api/v1/sessions` - Mount a generator view (loads recent history)
2. **PUT** `/api/v1/sessions/{session_id}/prompt` - Update the prompt draft
3. **POST** `/api/v1/sessions/{session_id}/attachment` - Optionally attach a reference image
4. **POST** `/api/v1/sessions/{session_id}/generate` - Generate; the result is saved to history
5. **GET** `/api/v1/sessions/{session_id}/download` - Download the result as PNG

Prompts mentioning an infographic (English or Arabic) are automatically
styled as educational material; history keeps the prompt as typed.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Trusted Host middleware: reject requests with unexpected Host headers
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,test").split(","),
)

# CORS middleware: only allow the frontend origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv(
        "CORS_ORIGINS", "http://localhost:8080,http://localhost:5173"
    ).split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-User-Id", "X-Api-Key"],
)

# Shared-secret check between the auth edge and this API (disabled when unset)
app.add_middleware(
    ApiKeyMiddleware,
    api_key=StudioConfig().api_key,
    exempt_paths={"/", "/api/v1/health"},
)

# Include routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(sessions.router, prefix="/api/v1")
app.include_router(history.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    """Redirect to API documentation."""
    return {
        "message": "Abbas Image Studio API",
        "docs": "/docs",
        "redoc": "/redoc",
    }
