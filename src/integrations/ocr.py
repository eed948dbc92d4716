"""
OCR client for Google Cloud Vision TEXT_DETECTION.

Treated as an opaque text-extraction function: one request, no retry.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.constants import OCR_NO_TEXT_FOUND, VISION_API_ENDPOINT, Settings, get_settings
from core.exceptions import MalformedResponseError, ProviderError
from integrations.base import error_body
from utils.client_factory import create_http_client
from utils.content_utils import strip_data_url_header
from utils.logger import logger

PROVIDER_VISION = "vision"


class OcrClient:
    """Extracts text from base64 image data URLs."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, settings: Settings | None = None):
        self._http_client = http_client
        self._owns_client = http_client is None
        self._settings = settings or get_settings()

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = create_http_client(enable_logging=self._settings.http_request_logging)
        return self._http_client

    async def extract_text(self, image_data: str) -> str:
        """Return the full text detected in the image.

        Args:
            image_data: ``data:image/...;base64,`` URL or raw base64

        Raises:
            ProviderError: Missing key, transport failure or non-2xx response
            MalformedResponseError: The response is not the documented shape
        """
        api_key = self._settings.google_cloud_api_key
        if not api_key:
            raise ProviderError(PROVIDER_VISION, None, "GOOGLE_CLOUD_API_KEY is not configured")

        body = {
            "requests": [
                {
                    "image": {"content": strip_data_url_header(image_data)},
                    "features": [{"type": "TEXT_DETECTION"}],
                }
            ]
        }

        try:
            response = await self._get_client().post(VISION_API_ENDPOINT, params={"key": api_key}, json=body)
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER_VISION, None, str(e)) from e

        if not response.is_success:
            raise ProviderError(PROVIDER_VISION, response.status_code, error_body(response))

        try:
            data: Any = response.json()
            result = data["responses"][0]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(PROVIDER_VISION, f"missing responses[0] ({e!r})") from e

        annotations = result.get("textAnnotations") if isinstance(result, dict) else None
        if not annotations:
            logger.info("OCR found no text in image")
            return OCR_NO_TEXT_FOUND

        text = annotations[0].get("description", "")
        logger.info(f"OCR extracted {len(text)} characters")
        return str(text)

    async def aclose(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


__all__ = ["PROVIDER_VISION", "OcrClient"]
