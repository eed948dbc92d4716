from __future__ import annotations

import os

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.exception_handlers import register_exception_handlers
from api.routes import chat, health
from core.constants import get_settings
from core.title_generator import TitleGenerator
from integrations.ocr import OcrClient
from integrations.openai_adapter import OpenAIAdapter
from integrations.registry import AdapterRegistry
from utils.client_factory import create_http_client
from utils.logger import logger

# Load environment variables from src/.env at module load time
env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(env_path)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: one shared HTTP client for every provider call."""
    http_client = create_http_client(enable_logging=settings.http_request_logging)
    app.state.adapters = AdapterRegistry(http_client=http_client, settings=settings)
    openai_adapter = OpenAIAdapter(http_client=http_client, settings=settings)
    app.state.title_generator = TitleGenerator(openai_adapter)
    app.state.image_analyzer = openai_adapter
    app.state.ocr_client = OcrClient(http_client=http_client, settings=settings)
    logger.info("Provider clients initialized")

    try:
        yield
    finally:
        await http_client.aclose()
        logger.info("Provider clients closed")


app = FastAPI(
    title="Multichat API",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS for the browser client
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routes
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(chat.router, prefix="/api", tags=["chat"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        reload_dirs=["src"],
    )
