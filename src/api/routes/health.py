from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from core.constants import MODEL_CONFIGS
from models.api_models import ModelInfo

router = APIRouter()


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    """Liveness probe (just confirms process is running)."""
    return {"alive": True}


@router.get("/models")
async def list_models() -> list[dict[str, Any]]:
    """Supported models in display order."""
    return [
        ModelInfo(
            id=config.id,
            display_name=config.display_name,
            provider=config.provider,
            token_limit=config.token_limit,
            supports_vision=config.supports_vision,
        ).to_dict()
        for config in MODEL_CONFIGS
    ]
