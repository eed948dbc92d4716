"""
Utility functions for token estimation used by the token-limit guard.
"""

from functools import lru_cache
from hashlib import blake2b
from typing import Any

import tiktoken

from core.constants import DEFAULT_MODEL, TOKEN_CACHE_SIZE, get_model_config

# Cache for tiktoken encoders to avoid recreation
_encoder_cache: dict[str, Any] = {}

# Hash-to-count mapping for better cache hit rates with similar content
_hash_to_count_cache: dict[str, int] = {}


def _get_encoder(model: str) -> Any:
    """Get cached encoder for model."""
    if model not in _encoder_cache:
        try:
            _encoder_cache[model] = tiktoken.encoding_for_model(model)
        except KeyError:
            # Claude/Gemini and unknown models use cl100k_base as an estimate
            _encoder_cache[model] = tiktoken.get_encoding("cl100k_base")
    return _encoder_cache[model]


def _hash_text(text: str) -> str:
    """Fast hash of text for cache keys (Blake2b for speed)."""
    return blake2b(text.encode("utf-8"), digest_size=16).hexdigest()


@lru_cache(maxsize=TOKEN_CACHE_SIZE * 2)
def _count_tokens_cached(text_hash: str, text: str, model: str) -> int:
    """Cached token counting with hash-based keys."""
    cache_key = f"{text_hash}:{model}"
    if cache_key in _hash_to_count_cache:
        return _hash_to_count_cache[cache_key]

    count = len(_get_encoder(model).encode(text))
    _hash_to_count_cache[cache_key] = count
    return count


def count_tokens(text: str, model: str = DEFAULT_MODEL) -> dict[str, Any]:
    """
    Count tokens using tiktoken.

    Args:
        text: The text to count tokens for
        model: Chat model id (resolved to the provider's API model name)

    Returns:
        Dict with exact token counts and metadata
    """
    api_model = get_model_config(model).api_model
    exact_count = _count_tokens_cached(_hash_text(text), text, api_model)

    char_count = len(text)
    chars_per_token = char_count / exact_count if exact_count > 0 else 0

    return {
        "exact_tokens": exact_count,
        "char_count": char_count,
        "chars_per_token": round(chars_per_token, 2),
        "model": api_model,
        "encoding": _get_encoder(api_model).name,
    }


def estimate_tokens(text: str, model: str = DEFAULT_MODEL) -> int:
    """Return only the token count for ``text``."""
    if not text:
        return 0
    return int(count_tokens(text, model)["exact_tokens"])
