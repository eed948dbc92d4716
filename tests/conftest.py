"""Shared test fixtures for the Multichat test suite.

This module provides common fixtures used across all test modules,
including in-memory stores, sample chats and scripted provider adapters.
"""

from __future__ import annotations

import asyncio
import tempfile

from collections.abc import AsyncGenerator, Callable, Generator, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from core.chat_store import ChatStore
from core.constants import Settings
from core.storage import MemoryStorage
from integrations.base import ModelParams, ProviderAdapter
from models.chat_models import Chat, Message

# ============================================================================
# Test Isolation: Cache Management
# ============================================================================


def _clear_token_caches() -> None:
    from utils import token_utils

    token_utils._count_tokens_cached.cache_clear()
    token_utils._hash_to_count_cache.clear()
    token_utils._encoder_cache.clear()


@pytest.fixture(autouse=True)
def clear_token_cache() -> Generator[None, None, None]:
    """Clear token count caches between tests.

    Tests that mock tiktoken would otherwise see counts cached by earlier tests.
    """
    _clear_token_caches()
    yield
    _clear_token_caches()


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def mock_settings() -> Settings:
    """Settings with every provider key configured and no .env lookup."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        openai_api_key="sk-test-openai",
        anthropic_api_key="sk-ant-test",
        google_ai_api_key="google-ai-test",
        google_cloud_api_key="google-cloud-test",
    )


@pytest.fixture
def empty_settings() -> Settings:
    """Settings without any provider key."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        openai_api_key=None,
        anthropic_api_key=None,
        google_ai_api_key=None,
        google_cloud_api_key=None,
    )


# ============================================================================
# Chats and Store
# ============================================================================


def make_chat(
    chat_id: str,
    messages: Sequence[tuple[str, str]] = (),
    *,
    title: str = "テスト",
    model: str = "gpt-4",
    created_at: int = 1_700_000_000_000,
    **fields: Any,
) -> Chat:
    """Build a chat from ``(role, content)`` pairs."""
    return Chat(
        id=chat_id,
        title=title,
        messages=[
            Message(role=role, content=content, timestamp=created_at + i)  # type: ignore[arg-type]
            for i, (role, content) in enumerate(messages)
        ],
        model=model,
        created_at=created_at,
        updated_at=created_at,
        **fields,
    )


@pytest.fixture
def chat_factory() -> Callable[..., Chat]:
    return make_chat


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(memory_storage: MemoryStorage) -> ChatStore:
    """Empty store backed by in-memory storage."""
    return ChatStore(memory_storage)


@pytest.fixture
def sample_chats() -> list[Chat]:
    """A parent with one child, plus an unrelated chat."""
    parent = make_chat(
        "chat_parent",
        [("user", "Python asyncio streaming question"), ("assistant", "Use async generators for streaming")],
        summary="asyncio streaming",
    )
    child = make_chat(
        "chat_child",
        [("user", "More about generators please")],
        parent_id="chat_parent",
        context_ids=["chat_parent"],
    )
    other = make_chat("chat_other", [("user", "Recipe for curry rice")], model="claude")
    return [parent, child, other]


@pytest.fixture
def populated_store(store: ChatStore, sample_chats: list[Chat]) -> ChatStore:
    store.replace_state(sample_chats)
    return store


# ============================================================================
# File System Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# Provider Doubles
# ============================================================================


class FakeAdapter(ProviderAdapter):
    """Adapter yielding scripted fragments.

    ``gate`` (when set) is awaited before each fragment so tests can hold a
    stream open; ``error`` is raised after the scripted fragments.
    """

    provider = "fake"

    def __init__(
        self,
        fragments: Sequence[str] = ("Hello", " world"),
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ):
        super().__init__(http_client=Mock(), settings=Mock())
        self.fragments = list(fragments)
        self.error = error
        self.gate = gate
        self.calls: list[tuple[list[Message], ModelParams]] = []
        self.closed = False

    async def send_messages(self, messages: Sequence[Message], params: ModelParams) -> AsyncGenerator[str, None]:
        self.calls.append((list(messages), params))
        try:
            for fragment in self.fragments:
                if self.gate is not None:
                    await self.gate.wait()
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def adapter_registry(fake_adapter: FakeAdapter) -> Mock:
    """Registry double returning ``fake_adapter`` for every model."""
    registry = Mock()
    registry.for_model = Mock(return_value=fake_adapter)
    registry.aclose = AsyncMock()
    return registry


@pytest.fixture
def title_generator() -> Mock:
    generator = Mock()
    generator.generate_chat_title = AsyncMock(return_value="生成タイトル")
    generator.generate_chat_summary = AsyncMock(return_value="要約です")
    return generator


@pytest.fixture
def mock_openai_client() -> Mock:
    """Mock AsyncOpenAI client."""
    client = Mock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def adapter_factory() -> type[FakeAdapter]:
    """The FakeAdapter class, for tests that need custom scripts."""
    return FakeAdapter
