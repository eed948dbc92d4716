"""
Request and response models for the proxy HTTP API.
Field names follow the browser client's camelCase JSON.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from core.constants import DEFAULT_MAX_TOKENS, DEFAULT_MODEL, DEFAULT_TEMPERATURE
from models.chat_models import CamelModel, Message


class ChatRequest(CamelModel):
    """Body of POST /api/chat."""

    messages: list[Message] = Field(..., min_length=1)
    model: str = DEFAULT_MODEL
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)


class TitleRequest(BaseModel):
    message: str


class TitleResponse(BaseModel):
    title: str


class SummaryRequest(BaseModel):
    messages: list[Message]


class SummaryResponse(BaseModel):
    summary: str


class OcrRequest(CamelModel):
    image_data: str = Field(..., min_length=1, description="base64 data URL")


class OcrResponse(BaseModel):
    text: str


class AnalyzeImageRequest(CamelModel):
    image_data: str = Field(..., min_length=1, description="base64 data URL")


class AnalyzeImageResponse(BaseModel):
    analysis: str


class ModelInfo(CamelModel):
    id: str
    display_name: str
    provider: str
    token_limit: int
    supports_vision: bool


__all__ = [
    "AnalyzeImageRequest",
    "AnalyzeImageResponse",
    "ChatRequest",
    "ModelInfo",
    "OcrRequest",
    "OcrResponse",
    "SummaryRequest",
    "SummaryResponse",
    "TitleRequest",
    "TitleResponse",
]
