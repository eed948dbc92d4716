from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from core.title_generator import TitleGenerator
from integrations.ocr import OcrClient
from integrations.openai_adapter import OpenAIAdapter
from integrations.registry import AdapterRegistry


async def get_adapters(request: Request) -> AdapterRegistry:
    """Get the provider adapter registry from application state."""
    return request.app.state.adapters


async def get_title_generator(request: Request) -> TitleGenerator:
    return request.app.state.title_generator


async def get_ocr_client(request: Request) -> OcrClient:
    return request.app.state.ocr_client


async def get_image_analyzer(request: Request) -> OpenAIAdapter:
    return request.app.state.image_analyzer


# Type aliases for cleaner route signatures
Adapters = Annotated[AdapterRegistry, Depends(get_adapters)]
Titles = Annotated[TitleGenerator, Depends(get_title_generator)]
Ocr = Annotated[OcrClient, Depends(get_ocr_client)]
ImageAnalyzer = Annotated[OpenAIAdapter, Depends(get_image_analyzer)]
