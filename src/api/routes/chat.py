"""
Chat proxy routes.

POST /api/chat streams plain-text fragments from the adapter matching the
requested model. A provider failure before the first fragment becomes a JSON
error envelope; a failure after streaming started ends the stream.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from api.dependencies import Adapters, ImageAnalyzer, Ocr, Titles
from core.constants import FALLBACK_CHAT_TITLE_EN
from core.exceptions import MalformedResponseError, ProviderError
from integrations.base import ModelParams
from models.api_models import (
    AnalyzeImageRequest,
    AnalyzeImageResponse,
    ChatRequest,
    OcrRequest,
    OcrResponse,
    SummaryRequest,
    SummaryResponse,
    TitleRequest,
    TitleResponse,
)
from utils.logger import logger

router = APIRouter()


async def _relay(first: str | None, stream: AsyncGenerator[str, None]) -> AsyncGenerator[str, None]:
    try:
        if first is not None:
            yield first
        async for fragment in stream:
            yield fragment
    except (ProviderError, MalformedResponseError) as e:
        logger.error(f"Stream interrupted: {e}")
    finally:
        await stream.aclose()


@router.post("/chat")
async def chat(body: ChatRequest, adapters: Adapters) -> StreamingResponse:
    """Stream the reply of the model named in the request."""
    adapter = adapters.for_model(body.model)
    params = ModelParams(model=body.model, temperature=body.temperature, max_tokens=body.max_tokens)
    stream = adapter.send_messages(body.messages, params)

    # Errors raised before the first fragment go through the exception handlers
    try:
        first: str | None = await anext(stream)
    except StopAsyncIteration:
        first = None
    except Exception:
        await stream.aclose()
        raise

    return StreamingResponse(
        _relay(first, stream),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache"},
    )


@router.post("/chat/title")
async def chat_title(body: TitleRequest, titles: Titles) -> TitleResponse:
    """Generate a short title for the first message of a chat."""
    title = await titles.generate_chat_title(body.message, fallback=FALLBACK_CHAT_TITLE_EN)
    return TitleResponse(title=title)


@router.post("/chat/summary")
async def chat_summary(body: SummaryRequest, titles: Titles) -> SummaryResponse:
    summary = await titles.generate_chat_summary(body.messages)
    return SummaryResponse(summary=summary)


@router.post("/ocr")
async def ocr(body: OcrRequest, ocr_client: Ocr) -> OcrResponse:
    """Extract text from a base64 image data URL."""
    text = await ocr_client.extract_text(body.image_data)
    return OcrResponse(text=text)


@router.post("/chat/analyze-image")
async def analyze_image(body: AnalyzeImageRequest, analyzer: ImageAnalyzer) -> AnalyzeImageResponse:
    """Describe an attached image with the OpenAI vision model."""
    analysis = await analyzer.analyze_image(body.image_data)
    return AnalyzeImageResponse(analysis=analysis)
