"""Tests for the chat orchestrator.

Covers the send-message cycle, cancellation between concurrent operations,
the token-limit guard and the chat UI actions.
"""

from __future__ import annotations

import asyncio

from collections.abc import Callable
from unittest.mock import AsyncMock, Mock

import pytest

from core.chat_store import ChatStore
from core.constants import CONTEXT_END_DELIMITER, DEFAULT_CHAT_TITLE, TOKEN_LIMIT_NOTICE
from core.exceptions import ChatNotFoundError, MalformedResponseError, PayloadValidationError, ProviderError
from core.orchestrator import ChatOrchestrator, OperationState
from models.chat_models import Chat


def char_counter(text: str, model: str) -> int:
    return len(text)


async def wait_for_state(orchestrator: ChatOrchestrator, chat_id: str, state: OperationState) -> None:
    for _ in range(200):
        if orchestrator.get_state(chat_id) == state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"chat {chat_id} never reached {state}")


@pytest.fixture
def orchestrator(store: ChatStore, adapter_registry: Mock, title_generator: Mock) -> ChatOrchestrator:
    return ChatOrchestrator(
        store, adapters=adapter_registry, title_generator=title_generator, token_counter=char_counter
    )


@pytest.fixture
def empty_chat(store: ChatStore, chat_factory: Callable[..., Chat]) -> Chat:
    chat = chat_factory("chat_a", title=DEFAULT_CHAT_TITLE)
    store.add_chat(chat)
    return chat


class TestSendMessage:
    """Tests for a complete send-message cycle."""

    @pytest.mark.asyncio
    async def test_success_persists_both_messages(
        self, orchestrator: ChatOrchestrator, store: ChatStore, empty_chat: Chat
    ) -> None:
        fragments: list[str] = []

        outcome = await orchestrator.handle_send_message("chat_a", "hello", on_fragment=fragments.append)

        assert outcome.state == OperationState.SUCCESS
        assert outcome.content == "Hello world"
        assert outcome.truncated is False
        assert fragments == ["Hello", " world"]

        chat = store.require_chat("chat_a")
        assert [(m.role, m.content) for m in chat.messages] == [("user", "hello"), ("assistant", "Hello world")]
        assert chat.title == "生成タイトル"
        assert chat.continuation is not None
        assert chat.continuation.token_count == len("hello") + len("Hello world")
        assert orchestrator.get_state("chat_a") == OperationState.SUCCESS
        assert not orchestrator.is_active("chat_a")

    @pytest.mark.asyncio
    async def test_title_only_generated_for_first_message(
        self,
        orchestrator: ChatOrchestrator,
        store: ChatStore,
        title_generator: Mock,
        chat_factory: Callable[..., Chat],
    ) -> None:
        store.add_chat(chat_factory("chat_b", [("user", "earlier"), ("assistant", "reply")], title="既存"))

        await orchestrator.handle_send_message("chat_b", "again")

        title_generator.generate_chat_title.assert_not_called()
        assert store.require_chat("chat_b").title == "既存"

    @pytest.mark.asyncio
    async def test_async_fragment_callback(self, orchestrator: ChatOrchestrator, empty_chat: Chat) -> None:
        callback = AsyncMock()

        await orchestrator.handle_send_message("chat_a", "hello", on_fragment=callback)

        assert [call.args[0] for call in callback.await_args_list] == ["Hello", " world"]

    @pytest.mark.asyncio
    async def test_unknown_chat_raises(self, orchestrator: ChatOrchestrator) -> None:
        with pytest.raises(ChatNotFoundError):
            await orchestrator.handle_send_message("missing", "hello")

    @pytest.mark.asyncio
    async def test_request_uses_chat_model_and_settings(
        self, orchestrator: ChatOrchestrator, store: ChatStore, fake_adapter, adapter_registry: Mock, empty_chat: Chat
    ) -> None:
        store.update_settings(temperature=0.2, max_tokens=321)

        await orchestrator.handle_send_message("chat_a", "hello")

        adapter_registry.for_model.assert_called_once_with("gpt-4")
        messages, params = fake_adapter.calls[0]
        assert [m.content for m in messages] == ["hello"]
        assert params.model == "gpt-4"
        assert params.temperature == 0.2
        assert params.max_tokens == 321

    @pytest.mark.asyncio
    async def test_context_prepended_when_enabled(
        self, orchestrator: ChatOrchestrator, populated_store: ChatStore, fake_adapter
    ) -> None:
        await orchestrator.handle_send_message("chat_child", "next")

        messages, _ = fake_adapter.calls[0]
        contents = [m.content for m in messages]
        assert contents[0] == "Previous chat context (chat_parent): asyncio streaming"
        assert CONTEXT_END_DELIMITER in contents
        assert contents[-2:] == ["More about generators please", "next"]

    @pytest.mark.asyncio
    async def test_context_skipped_when_disabled(
        self, orchestrator: ChatOrchestrator, populated_store: ChatStore, fake_adapter
    ) -> None:
        populated_store.update_settings(use_context=False)

        await orchestrator.handle_send_message("chat_child", "next")

        messages, _ = fake_adapter.calls[0]
        assert [m.content for m in messages] == ["More about generators please", "next"]

    @pytest.mark.asyncio
    async def test_related_chats_merged_into_context_ids(
        self, orchestrator: ChatOrchestrator, populated_store: ChatStore
    ) -> None:
        await orchestrator.handle_send_message("chat_other", "curry")

        chat = populated_store.require_chat("chat_other")
        assert set(chat.context_ids) == {"chat_parent", "chat_child"}


class TestFailures:
    """Tests for provider failures."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [ProviderError("openai", 500, "boom"), MalformedResponseError("gemini", "missing text")],
    )
    async def test_error_outcome_keeps_user_message_only(
        self,
        store: ChatStore,
        adapter_registry: Mock,
        adapter_factory,
        title_generator: Mock,
        empty_chat: Chat,
        error: Exception,
    ) -> None:
        adapter_registry.for_model.return_value = adapter_factory(["partial"], error=error)
        orchestrator = ChatOrchestrator(store, adapter_registry, title_generator, token_counter=char_counter)

        outcome = await orchestrator.handle_send_message("chat_a", "hello")

        assert outcome.state == OperationState.ERROR
        assert outcome.error == str(error)
        assert outcome.content == "partial"
        assert [m.role for m in store.require_chat("chat_a").messages] == ["user"]
        assert orchestrator.get_state("chat_a") == OperationState.ERROR


class TestTokenLimit:
    """Tests for the token-limit guard."""

    @pytest.mark.asyncio
    async def test_reply_cut_at_limit(
        self,
        store: ChatStore,
        adapter_registry: Mock,
        adapter_factory,
        title_generator: Mock,
        empty_chat: Chat,
    ) -> None:
        adapter = adapter_factory(["abc", "def", "ghi"])
        adapter_registry.for_model.return_value = adapter
        store.update_settings(token_limit=5)
        orchestrator = ChatOrchestrator(store, adapter_registry, title_generator, token_counter=char_counter)
        fragments: list[str] = []

        outcome = await orchestrator.handle_send_message("chat_a", "hi", on_fragment=fragments.append)

        notice = f"\n\n{TOKEN_LIMIT_NOTICE}"
        assert outcome.state == OperationState.SUCCESS
        assert outcome.truncated is True
        assert fragments == ["abc", "def", notice]
        assert store.require_chat("chat_a").messages[-1].content == f"abcdef{notice}"
        assert adapter.closed is True


class TestCancellation:
    """Tests for aborting in-flight operations."""

    @pytest.mark.asyncio
    async def test_second_send_supersedes_first(
        self,
        store: ChatStore,
        adapter_registry: Mock,
        adapter_factory,
        title_generator: Mock,
        chat_factory: Callable[..., Chat],
    ) -> None:
        store.add_chat(chat_factory("chat_a", [("user", "start"), ("assistant", "ok")]))
        gate = asyncio.Event()
        stalled = adapter_factory(["never"], gate=gate)
        adapter_registry.for_model.side_effect = [stalled, adapter_factory(["second reply"])]
        orchestrator = ChatOrchestrator(store, adapter_registry, title_generator, token_counter=char_counter)

        first = asyncio.create_task(orchestrator.handle_send_message("chat_a", "first"))
        await wait_for_state(orchestrator, "chat_a", OperationState.STREAMING)

        second = await orchestrator.handle_send_message("chat_a", "second")
        first_outcome = await first
        gate.set()

        assert first_outcome.state == OperationState.ABORTED
        assert second.state == OperationState.SUCCESS
        contents = [m.content for m in store.require_chat("chat_a").messages]
        assert "never" not in contents
        assert contents[-1] == "second reply"
        assert orchestrator.get_state("chat_a") == OperationState.SUCCESS

    @pytest.mark.asyncio
    async def test_switch_chat_aborts_previous(
        self,
        store: ChatStore,
        adapter_registry: Mock,
        adapter_factory,
        title_generator: Mock,
        chat_factory: Callable[..., Chat],
    ) -> None:
        store.add_chat(chat_factory("chat_b"))
        store.add_chat(chat_factory("chat_a", [("user", "start")]))
        gate = asyncio.Event()
        adapter_registry.for_model.return_value = adapter_factory(["late"], gate=gate)
        orchestrator = ChatOrchestrator(store, adapter_registry, title_generator, token_counter=char_counter)

        task = asyncio.create_task(orchestrator.handle_send_message("chat_a", "go"))
        await wait_for_state(orchestrator, "chat_a", OperationState.STREAMING)
        await orchestrator.switch_chat("chat_b")
        outcome = await task
        gate.set()

        assert outcome.state == OperationState.ABORTED
        assert store.current_chat_id == "chat_b"
        assert [m.role for m in store.require_chat("chat_a").messages] == ["user", "user"]
        assert orchestrator.get_state("chat_a") == OperationState.ABORTED

    @pytest.mark.asyncio
    async def test_other_chats_keep_streaming(
        self,
        store: ChatStore,
        adapter_registry: Mock,
        adapter_factory,
        title_generator: Mock,
        chat_factory: Callable[..., Chat],
    ) -> None:
        store.add_chat(chat_factory("chat_a", [("user", "a")]))
        store.add_chat(chat_factory("chat_b", [("user", "b")]))
        gate = asyncio.Event()
        adapter_registry.for_model.side_effect = [adapter_factory(["A"], gate=gate), adapter_factory(["B"], gate=gate)]
        orchestrator = ChatOrchestrator(store, adapter_registry, title_generator, token_counter=char_counter)

        task_a = asyncio.create_task(orchestrator.handle_send_message("chat_a", "go"))
        task_b = asyncio.create_task(orchestrator.handle_send_message("chat_b", "go"))
        await wait_for_state(orchestrator, "chat_a", OperationState.STREAMING)
        await wait_for_state(orchestrator, "chat_b", OperationState.STREAMING)

        assert await orchestrator.abort("chat_a") is True
        gate.set()
        outcome_a, outcome_b = await asyncio.gather(task_a, task_b)

        assert outcome_a.state == OperationState.ABORTED
        assert outcome_b.state == OperationState.SUCCESS
        assert store.require_chat("chat_b").messages[-1].content == "B"

    @pytest.mark.asyncio
    async def test_delete_mid_stream_aborts(
        self,
        store: ChatStore,
        adapter_registry: Mock,
        adapter_factory,
        title_generator: Mock,
        chat_factory: Callable[..., Chat],
    ) -> None:
        store.add_chat(chat_factory("chat_a", [("user", "start")]))
        gate = asyncio.Event()
        adapter_registry.for_model.return_value = adapter_factory(["late"], gate=gate)
        orchestrator = ChatOrchestrator(store, adapter_registry, title_generator, token_counter=char_counter)

        task = asyncio.create_task(orchestrator.handle_send_message("chat_a", "go"))
        await wait_for_state(orchestrator, "chat_a", OperationState.STREAMING)
        await orchestrator.delete_chat("chat_a")
        outcome = await task
        gate.set()

        assert outcome.state == OperationState.ABORTED
        assert store.get_chat("chat_a") is None

    @pytest.mark.asyncio
    async def test_abort_without_operation(self, orchestrator: ChatOrchestrator) -> None:
        assert await orchestrator.abort("chat_a") is False

    @pytest.mark.asyncio
    async def test_shutdown_aborts_and_closes_adapters(
        self,
        store: ChatStore,
        adapter_registry: Mock,
        adapter_factory,
        title_generator: Mock,
        chat_factory: Callable[..., Chat],
    ) -> None:
        store.add_chat(chat_factory("chat_a", [("user", "start")]))
        gate = asyncio.Event()
        adapter_registry.for_model.return_value = adapter_factory(["late"], gate=gate)
        orchestrator = ChatOrchestrator(store, adapter_registry, title_generator, token_counter=char_counter)

        task = asyncio.create_task(orchestrator.handle_send_message("chat_a", "go"))
        await wait_for_state(orchestrator, "chat_a", OperationState.STREAMING)
        await orchestrator.shutdown()
        outcome = await task

        assert outcome.state == OperationState.ABORTED
        adapter_registry.aclose.assert_awaited_once()


class TestUiActions:
    """Tests for chat management actions."""

    @pytest.mark.asyncio
    async def test_new_chat_without_current(self, orchestrator: ChatOrchestrator, store: ChatStore) -> None:
        store.update_settings(model="claude")

        chat = await orchestrator.new_chat()

        assert chat.model == "claude"
        assert chat.parent_id is None
        assert store.current_chat_id == chat.id

    @pytest.mark.asyncio
    async def test_new_chat_threads_under_current(
        self, orchestrator: ChatOrchestrator, populated_store: ChatStore, title_generator: Mock
    ) -> None:
        populated_store.set_current_chat_id("chat_other")

        chat = await orchestrator.new_chat()

        assert chat.parent_id == "chat_other"
        assert chat.context_ids == ["chat_other"]
        assert chat.model == "claude"
        title_generator.generate_chat_summary.assert_awaited_once()
        assert populated_store.require_chat("chat_other").summary == "要約です"
        assert populated_store.current_chat_id == chat.id

    @pytest.mark.asyncio
    async def test_new_chat_keeps_existing_summary(
        self, orchestrator: ChatOrchestrator, populated_store: ChatStore, title_generator: Mock
    ) -> None:
        populated_store.set_current_chat_id("chat_parent")

        await orchestrator.new_chat()

        title_generator.generate_chat_summary.assert_not_called()

    @pytest.mark.asyncio
    async def test_refresh_summary_empty_result_leaves_chat(
        self, orchestrator: ChatOrchestrator, populated_store: ChatStore, title_generator: Mock
    ) -> None:
        title_generator.generate_chat_summary.return_value = ""

        summary = await orchestrator.refresh_summary("chat_parent")

        assert summary == ""
        assert populated_store.require_chat("chat_parent").summary == "asyncio streaming"

    @pytest.mark.asyncio
    async def test_continue_chat_links_both_chats(
        self, orchestrator: ChatOrchestrator, populated_store: ChatStore
    ) -> None:
        successor = await orchestrator.continue_chat("chat_parent")

        previous = populated_store.require_chat("chat_parent")
        assert previous.continuation is not None
        assert previous.continuation.to_id == successor.id
        assert successor.continuation is not None
        assert successor.continuation.from_id == "chat_parent"
        assert successor.parent_id == "chat_parent"
        assert populated_store.current_chat_id == successor.id

    @pytest.mark.asyncio
    async def test_delete_chat_with_children(self, orchestrator: ChatOrchestrator, populated_store: ChatStore) -> None:
        await orchestrator.delete_chat("chat_parent", delete_children=True)

        assert [chat.id for chat in populated_store.chats] == ["chat_other"]

    def test_rename_chat(self, orchestrator: ChatOrchestrator, populated_store: ChatStore) -> None:
        orchestrator.rename_chat("chat_other", "カレー")

        assert populated_store.require_chat("chat_other").title == "カレー"

    def test_change_model(self, orchestrator: ChatOrchestrator, populated_store: ChatStore) -> None:
        orchestrator.change_model("chat_other", "gemini-pro")

        assert populated_store.require_chat("chat_other").model == "gemini-pro"

        with pytest.raises(PayloadValidationError):
            orchestrator.change_model("chat_other", "gpt-99")

    @pytest.mark.asyncio
    async def test_get_token_info_after_turn(
        self, orchestrator: ChatOrchestrator, store: ChatStore, empty_chat: Chat
    ) -> None:
        store.update_settings(token_limit=20)

        await orchestrator.handle_send_message("chat_a", "hello")
        info = orchestrator.get_token_info("chat_a")

        assert info.count == 16
        assert info.limit == 20
        assert info.is_near_limit is True
