"""
Constants and configuration for Multichat.
Centralizes all magic numbers and configuration values.
Includes Pydantic validation for environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ============================================================================
# Project Paths
# ============================================================================

#: Project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

#: Default location of the JSON file backing the local key-value store
DEFAULT_STORAGE_PATH = PROJECT_ROOT / "data" / "local_storage.json"

# ============================================================================
# Model Configuration - Single Source of Truth
# ============================================================================

#: Provider identifiers. Each one maps to exactly one stream adapter.
PROVIDER_OPENAI = "openai"
PROVIDER_CLAUDE = "claude"
PROVIDER_GEMINI = "gemini"


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Single source of truth for model configuration.

    All model-related constants are derived from MODEL_CONFIGS tuple.
    To add a new model, add ONE entry to MODEL_CONFIGS below.

    Attributes:
        id: Model identifier stored on a chat (e.g., "claude")
        display_name: Human-readable name for UI (e.g., "Claude")
        provider: Provider key used to pick the stream adapter
        api_model: Model name sent to the provider API
        token_limit: Maximum input context window size
        supports_vision: Whether the model accepts inline images
    """

    id: str
    display_name: str
    provider: str
    api_model: str
    token_limit: int
    supports_vision: bool = False


#: Master model configuration - ADD NEW MODELS HERE ONLY!
#: Order determines display order in the model selector.
MODEL_CONFIGS: tuple[ModelConfig, ...] = (
    ModelConfig("gpt-4-0125-preview", "GPT-4 Turbo", PROVIDER_OPENAI, "gpt-4-0125-preview", 128000),
    ModelConfig("gpt-4", "GPT-4", PROVIDER_OPENAI, "gpt-4", 8192),
    ModelConfig("gpt-4-vision-preview", "GPT-4 Vision", PROVIDER_OPENAI, "gpt-4-vision-preview", 128000, True),
    ModelConfig("gpt-3.5-turbo", "GPT-3.5", PROVIDER_OPENAI, "gpt-3.5-turbo", 16385),
    ModelConfig("claude", "Claude", PROVIDER_CLAUDE, "claude-3-opus-20240229", 200000),
    ModelConfig("gemini-pro", "Gemini Pro", PROVIDER_GEMINI, "gemini-pro", 30720, True),
)

#: Model used when a chat carries an unknown model id.
DEFAULT_MODEL = "gpt-4-0125-preview"

#: Low-cost model used for titles and summaries.
AUXILIARY_MODEL = "gpt-3.5-turbo"

#: Ordered list of supported model ids (derived from MODEL_CONFIGS).
SUPPORTED_MODELS: list[str] = [m.id for m in MODEL_CONFIGS]

#: Model id -> provider key (derived from MODEL_CONFIGS).
MODEL_PROVIDERS: dict[str, str] = {m.id: m.provider for m in MODEL_CONFIGS}

#: Model id -> input context window (derived from MODEL_CONFIGS).
MODEL_TOKEN_LIMITS: dict[str, int] = {m.id: m.token_limit for m in MODEL_CONFIGS}

_MODEL_INDEX: dict[str, ModelConfig] = {m.id: m for m in MODEL_CONFIGS}


def get_model_config(model: str) -> ModelConfig:
    """Resolve a model id, falling back to DEFAULT_MODEL for unknown ids."""
    return _MODEL_INDEX.get(model, _MODEL_INDEX[DEFAULT_MODEL])


# ============================================================================
# Chat Settings Defaults
# ============================================================================

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
DEFAULT_USE_CONTEXT = True
DEFAULT_MAX_CONTEXT_MESSAGES = 10

#: Default token budget for a single chat before continuation is suggested.
DEFAULT_TOKEN_LIMIT = 8000

#: Fraction of the token limit at which a chat is reported as near the limit.
TOKEN_WARNING_THRESHOLD = 0.8

# ============================================================================
# Storage Configuration
# ============================================================================

#: Local storage key holding the JSON array of chats.
STORAGE_KEY_CHATS = "chats"

#: Local storage key holding the JSON settings object.
STORAGE_KEY_SETTINGS = "chatSettings"

#: Length of the random hex part of generated chat ids.
CHAT_ID_LENGTH = 12

#: Prefix of generated chat ids.
CHAT_ID_PREFIX = "chat_"

# ============================================================================
# Export / Import
# ============================================================================

#: The only export envelope version this build reads and writes.
EXPORT_VERSION = "1.0.0"

#: Export file naming: chat-export-YYYY-MM-DD.json
EXPORT_FILENAME_TEMPLATE = "chat-export-{date}.json"

ERROR_INCOMPATIBLE_VERSION = "互換性のないバージョンです"
ERROR_INVALID_FORMAT = "無効なデータ形式です"
ERROR_FILE_READ = "ファイルの読み込み中にエラーが発生しました"

# ============================================================================
# Titles, Summaries and Context
# ============================================================================

#: Title used for new chats and whenever title generation fails.
DEFAULT_CHAT_TITLE = "新しいチャット"

#: Title fallback used by the HTTP title endpoint.
FALLBACK_CHAT_TITLE_EN = "New Chat"

#: Maximum characters kept from a generated title.
TITLE_MAX_LENGTH = 20

#: Completion budget for title generation.
TITLE_MAX_TOKENS = 50

#: Completion budget for summary generation.
SUMMARY_MAX_TOKENS = 200

#: Default number of related chats merged into contextIds after a turn.
MAX_RELATED_CHATS = 3

#: Keywords shorter than or equal to this length are ignored.
KEYWORD_MIN_LENGTH = 3

#: Synthetic system message closing an injected context block.
CONTEXT_END_DELIMITER = "---End of previous context---"

#: Synthetic system message carrying a context summary.
CONTEXT_SUMMARY_TEMPLATE = "Previous chat context ({chat_id}): {summary}"

#: Notice forwarded when a reply is cut at the token limit.
TOKEN_LIMIT_NOTICE = "[トークン制限に達したため、応答を途中で打ち切りました。新しいスレッドで続けてください。]"

# ============================================================================
# Message Content Markup
# ============================================================================

#: Replacement for image markup when text is prepared for title generation.
IMAGE_PLACEHOLDER = "[画像]"

#: Vision model and completion budget for POST /api/chat/analyze-image.
IMAGE_ANALYSIS_MODEL = "gpt-4-vision-preview"
IMAGE_ANALYSIS_MAX_TOKENS = 500

#: Analysis returned when the vision model replies with no content.
IMAGE_ANALYSIS_FALLBACK = "画像の分析に失敗しました。"

#: Heading that introduces OCR text embedded in a user message.
OCR_TEXT_HEADING = "検出されたテキスト:"

#: OCR result when the image contains no text.
OCR_NO_TEXT_FOUND = "画像からテキストを検出できませんでした。"

# ============================================================================
# Provider Endpoints
# ============================================================================

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
#: Messages API accepts temperature in [0, 1]; chat settings allow up to 2
ANTHROPIC_MAX_TEMPERATURE = 1.0

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
GEMINI_TEXT_MODEL = "gemini-pro"
GEMINI_VISION_MODEL = "gemini-pro-vision"
GEMINI_MAX_OUTPUT_TOKENS = 2048

VISION_API_ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"

# ============================================================================
# HTTP Client Timeouts
# ============================================================================

#: Time to establish a connection.
HTTP_CONNECT_TIMEOUT = 30.0

#: Streaming replies can pause for a long time between chunks.
HTTP_READ_TIMEOUT = 600.0

HTTP_WRITE_TIMEOUT = 30.0
HTTP_POOL_TIMEOUT = 30.0

# ============================================================================
# Logging Configuration
# ============================================================================

#: Maximum size in bytes for log files before rotation (10MB).
LOG_MAX_SIZE = 10 * 1024 * 1024

#: Number of conversation log backups to retain during rotation.
LOG_BACKUP_COUNT_CONVERSATIONS = 5

#: Number of error log backups to retain during rotation.
LOG_BACKUP_COUNT_ERRORS = 3

#: Maximum characters to show in log previews for user input/response.
LOG_PREVIEW_LENGTH = 50

#: LRU cache size for token counting operations.
TOKEN_CACHE_SIZE = 128


# ============================================================================
# Environment Configuration with Pydantic Validation
# ============================================================================


class Settings(BaseSettings):
    """Environment settings with validation.

    Loads from environment variables and .env file.
    Provider keys are optional so the store and codec work offline; an adapter
    reports a missing key when it is actually used.
    """

    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    openai_base_url: str | None = Field(default=None, description="Optional OpenAI-compatible base URL")
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key for Claude")
    google_ai_api_key: str | None = Field(default=None, description="Google AI Studio key for Gemini")
    google_cloud_api_key: str | None = Field(default=None, description="Google Cloud Vision key for OCR")

    debug: bool = Field(default=False, description="Enable debug logging")
    http_request_logging: bool = Field(default=False, description="Enable HTTP request/response logging")

    storage_path: Path = Field(default=DEFAULT_STORAGE_PATH, description="JSON file backing local storage")

    api_host: str = Field(default="127.0.0.1", description="FastAPI host")
    api_port: int = Field(default=8000, description="FastAPI port")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("openai_api_key", "anthropic_api_key", "google_ai_api_key", "google_cloud_api_key")
    @classmethod
    def blank_key_is_missing(cls, v: str | None) -> str | None:
        """Treat empty strings from .env files as unset keys."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("api_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate API port range."""
        if not 0 < v < 65536:
            raise ValueError("api_port must be between 1 and 65535")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to ensure we only load and validate settings once.
    """
    return Settings()
