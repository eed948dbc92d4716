"""
Chat orchestrator: drives a full send-message cycle and the chat UI actions.

Per send-message invocation the operation moves through
IDLE -> SENDING -> STREAMING -> SUCCESS | ERROR | ABORTED.

Each operation owns one CancellationToken. Starting another send in the same
chat, switching away from the chat, deleting it or shutting down cancels the
token; the cancellation scope interrupts a blocked network read and the token
is checked after every await, so fragments of a cancelled run are never
applied or persisted. Other chats keep streaming.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import time

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from core.chat_store import ChatStore
from core.constants import DEFAULT_CHAT_TITLE, SUPPORTED_MODELS, TOKEN_LIMIT_NOTICE
from core.context_resolver import (
    build_messages_with_context,
    create_child_chat,
    create_continuation_chat,
    detect_related_chats,
    get_related_context,
    get_token_info,
    merge_context_ids,
)
from core.exceptions import MalformedResponseError, PayloadValidationError, ProviderError
from core.title_generator import TitleGenerator
from integrations.base import ModelParams
from integrations.registry import AdapterRegistry
from models.chat_models import Chat, Continuation, Message, TokenInfo, create_new_chat, now_ms
from utils.cancellation import CancellationToken
from utils.logger import logger
from utils.token_utils import estimate_tokens

FragmentCallback = Callable[[str], Awaitable[None] | None]
TokenCounter = Callable[[str, str], int]


class OperationState(str, Enum):
    """State of the latest send-message operation of a chat."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    SUCCESS = "success"
    ERROR = "error"
    ABORTED = "aborted"


@dataclass
class SendOutcome:
    """Settled result of handle_send_message."""

    chat_id: str
    state: OperationState
    content: str = ""
    error: str | None = None
    truncated: bool = False


@dataclass
class _Operation:
    chat_id: str
    token: CancellationToken = field(default_factory=CancellationToken)
    outcome: SendOutcome | None = None


class ChatOrchestrator:
    """Coordinates the store, context resolver, adapters and title generator."""

    def __init__(
        self,
        store: ChatStore,
        adapters: AdapterRegistry | None = None,
        title_generator: TitleGenerator | None = None,
        token_counter: TokenCounter | None = None,
    ):
        """
        Args:
            store: Conversation store (the only shared mutable state)
            adapters: Provider adapters by model (default: real adapters)
            title_generator: Title/summary generator (default: OpenAI-backed)
            token_counter: ``(text, model) -> tokens`` estimate (default: tiktoken)
        """
        self.store = store
        self.adapters = adapters or AdapterRegistry()
        self.title_generator = title_generator or TitleGenerator()
        self.count_tokens: TokenCounter = token_counter or estimate_tokens
        self._operations: dict[str, _Operation] = {}
        self._states: dict[str, OperationState] = {}

    # ------------------------------------------------------------------
    # Operation bookkeeping
    # ------------------------------------------------------------------

    def get_state(self, chat_id: str) -> OperationState:
        return self._states.get(chat_id, OperationState.IDLE)

    def is_active(self, chat_id: str) -> bool:
        return chat_id in self._operations

    def _set_state(self, operation: _Operation, state: OperationState) -> None:
        # A superseded operation no longer owns the chat's state
        if self._operations.get(operation.chat_id) is operation:
            self._states[operation.chat_id] = state
            logger.debug(f"Chat {operation.chat_id} -> {state.value}", chat_id=operation.chat_id)

    def _settle(self, operation: _Operation, outcome: SendOutcome) -> SendOutcome:
        operation.outcome = outcome
        self._set_state(operation, outcome.state)
        return outcome

    async def abort(self, chat_id: str, reason: str = "aborted") -> bool:
        """Cancel the chat's in-flight operation.

        Returns:
            True if an operation was cancelled
        """
        operation = self._operations.get(chat_id)
        if operation is None or operation.token.is_cancelled:
            return False
        logger.info(f"Aborting operation for chat {chat_id}: {reason}", chat_id=chat_id)
        await operation.token.cancel(reason)
        return True

    async def shutdown(self) -> None:
        """UI teardown: cancel every in-flight operation and close adapters."""
        for chat_id in list(self._operations):
            await self.abort(chat_id, "shutdown")
        await self.adapters.aclose()

    # ------------------------------------------------------------------
    # Send message
    # ------------------------------------------------------------------

    async def handle_send_message(
        self,
        chat_id: str,
        content: str,
        on_fragment: FragmentCallback | None = None,
    ) -> SendOutcome:
        """Send a user message and stream the assistant reply.

        Args:
            chat_id: Target chat
            content: User message content (may embed images and OCR text)
            on_fragment: Called with every forwarded fragment, sync or async

        Returns:
            Settled outcome; provider failures are reported, not raised

        Raises:
            ChatNotFoundError: If the chat does not exist
        """
        self.store.require_chat(chat_id)
        await self.abort(chat_id, "superseded")

        operation = _Operation(chat_id)
        self._operations[chat_id] = operation
        token = operation.token

        try:
            async with token.cancellation_scope():
                return await self._run(operation, content, on_fragment)
        except asyncio.CancelledError:
            if not token.is_cancelled:
                raise
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                task.uncancel()
            if operation.outcome is not None:
                return operation.outcome
            logger.info(f"Send aborted for chat {chat_id}: {token.cancel_reason}", chat_id=chat_id)
            return self._settle(operation, SendOutcome(chat_id, OperationState.ABORTED))
        finally:
            if self._operations.get(chat_id) is operation:
                del self._operations[chat_id]

    async def _run(self, operation: _Operation, content: str, on_fragment: FragmentCallback | None) -> SendOutcome:
        chat_id = operation.chat_id
        token = operation.token
        started = time.perf_counter()
        self._set_state(operation, OperationState.SENDING)

        chat = self.store.require_chat(chat_id)
        is_first_message = not chat.messages
        chat = chat.with_message(Message(role="user", content=content))
        self.store.update_chat(chat)

        if is_first_message:
            title = await self.title_generator.generate_chat_title(content)
            token.check()
            latest = self.store.get_chat(chat_id)
            if latest is None:
                return self._settle(operation, SendOutcome(chat_id, OperationState.ABORTED))
            chat = latest.evolve(title=title or DEFAULT_CHAT_TITLE, updated_at=now_ms())
            self.store.update_chat(chat)

        settings = self.store.settings
        contexts = (
            get_related_context(chat, self.store.chats, settings.max_context_messages) if settings.use_context else []
        )
        request_messages = build_messages_with_context(chat.messages, contexts)
        adapter = self.adapters.for_model(chat.model)
        params = ModelParams.for_chat(chat.model, settings)

        self._set_state(operation, OperationState.STREAMING)
        parts: list[str] = []
        reply_tokens = 0
        truncated = False

        try:
            async with contextlib.aclosing(adapter.send_messages(request_messages, params)) as stream:
                async for fragment in stream:
                    token.check()
                    parts.append(fragment)
                    await self._emit(on_fragment, fragment)
                    token.check()

                    reply_tokens += self.count_tokens(fragment, chat.model)
                    if reply_tokens > settings.token_limit:
                        truncated = True
                        break
        except (ProviderError, MalformedResponseError) as e:
            token.check()
            logger.error(f"Send failed for chat {chat_id}: {e}", chat_id=chat_id, model=chat.model)
            return self._settle(operation, SendOutcome(chat_id, OperationState.ERROR, "".join(parts), error=str(e)))

        token.check()
        if truncated:
            notice = f"\n\n{TOKEN_LIMIT_NOTICE}"
            parts.append(notice)
            logger.warning(f"Reply for chat {chat_id} cut at token limit {settings.token_limit}", chat_id=chat_id)
            await self._emit(on_fragment, notice)
            token.check()

        reply = "".join(parts)
        latest = self.store.get_chat(chat_id)
        if latest is None:
            return self._settle(operation, SendOutcome(chat_id, OperationState.ABORTED))

        final = latest.with_message(Message(role="assistant", content=reply))
        related_ids = detect_related_chats(final, self.store.chats)
        continuation = (final.continuation or Continuation()).model_copy(
            update={"token_count": self._chat_tokens(final.messages, final.model)}
        )
        final = final.evolve(context_ids=merge_context_ids(final, related_ids), continuation=continuation)
        self.store.update_chat(final)

        duration_ms = (time.perf_counter() - started) * 1000
        logger.log_conversation_turn(
            user_input=content,
            response=reply,
            chat_id=chat_id,
            model=final.model,
            duration_ms=duration_ms,
            tokens_used=reply_tokens,
        )
        return self._settle(operation, SendOutcome(chat_id, OperationState.SUCCESS, reply, truncated=truncated))

    @staticmethod
    async def _emit(callback: FragmentCallback | None, fragment: str) -> None:
        if callback is None:
            return
        result = callback(fragment)
        if inspect.isawaitable(result):
            await result

    def _chat_tokens(self, messages: Sequence[Message], model: str) -> int:
        return sum(self.count_tokens(message.content, model) for message in messages)

    # ------------------------------------------------------------------
    # UI actions
    # ------------------------------------------------------------------

    async def new_chat(self, model: str | None = None) -> Chat:
        """Create a chat, threaded under the current chat when there is one."""
        current = self.store.current_chat
        if current is None:
            chat = create_new_chat(model=model or self.store.settings.model)
        else:
            await self.abort(current.id, "new chat")
            if current.messages and not current.summary:
                await self.refresh_summary(current.id)
            parent = self.store.get_chat(current.id) or current
            chat = create_child_chat(parent, model)

        self.store.add_chat(chat)
        return chat

    async def switch_chat(self, chat_id: str | None) -> None:
        """Select a chat, aborting the operation of the chat switched away from."""
        previous = self.store.current_chat_id
        if previous is not None and previous != chat_id:
            await self.abort(previous, "switched chat")
        self.store.set_current_chat_id(chat_id)

    def rename_chat(self, chat_id: str, title: str) -> Chat:
        chat = self.store.require_chat(chat_id).evolve(title=title, updated_at=now_ms())
        self.store.update_chat(chat)
        return chat

    def change_model(self, chat_id: str, model: str) -> Chat:
        """Switch the model of a chat.

        Raises:
            PayloadValidationError: If the model id is not supported
        """
        if model not in SUPPORTED_MODELS:
            raise PayloadValidationError(f"Unsupported model: {model}")
        chat = self.store.require_chat(chat_id).evolve(model=model, updated_at=now_ms())
        self.store.update_chat(chat)
        return chat

    async def delete_chat(self, chat_id: str, delete_children: bool = False) -> None:
        """Delete a chat (and optionally its descendants), aborting their operations."""
        self.store.require_chat(chat_id)
        doomed = [chat_id]
        if delete_children:
            doomed.extend(self.store.get_all_descendant_ids(chat_id))
        for doomed_id in doomed:
            await self.abort(doomed_id, "chat deleted")
        self.store.delete_chat(chat_id, delete_children=delete_children)

    async def refresh_summary(self, chat_id: str) -> str:
        """Regenerate ``Chat.summary``; an empty result leaves the chat unchanged."""
        chat = self.store.require_chat(chat_id)
        summary = await self.title_generator.generate_chat_summary(chat.messages)
        latest = self.store.get_chat(chat_id)
        if summary and latest is not None:
            self.store.update_chat(latest.evolve(summary=summary))
        return summary

    async def continue_chat(self, chat_id: str) -> Chat:
        """Start a continuation chat once a chat has used up its token budget."""
        previous = self.store.require_chat(chat_id)
        await self.abort(chat_id, "continued in new chat")

        successor = create_continuation_chat(previous)
        continuation = (previous.continuation or Continuation()).model_copy(update={"to_id": successor.id})
        self.store.update_chat(previous.evolve(continuation=continuation, updated_at=now_ms()))
        self.store.add_chat(successor)
        logger.info(f"Continued chat {chat_id} in {successor.id}", chat_id=chat_id)
        return successor

    def get_token_info(self, chat_id: str) -> TokenInfo:
        return get_token_info(self.store.require_chat(chat_id), self.store.settings.token_limit)


__all__ = ["ChatOrchestrator", "FragmentCallback", "OperationState", "SendOutcome"]
