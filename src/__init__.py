"""
Multichat - Multi-model AI chat core
====================================

Conversation trees over OpenAI, Claude and Gemini with cross-chat context,
cancellable streaming and portable JSON export.

Key Features:
    - **Conversation Store**: Persistent chat tree with parent, context and continuation links
    - **Context Resolver**: Parent and related-chat history injected ahead of each request
    - **Provider Adapters**: One streaming interface over three provider wire formats
    - **Cancellation**: Switching, deleting or re-sending a chat aborts its in-flight reply
    - **Export/Import**: Versioned JSON envelope with id collision handling
    - **Structured Logging**: JSON logs through python-json-logger

Modules:
    core: Store, context resolution, orchestration, export/import, titles, settings
    integrations: Provider stream adapters, OCR client, adapter registry
    models: Pydantic models for chats, API payloads and error envelopes
    utils: Logging, cancellation, token counting, content parsing, HTTP clients
    api: FastAPI proxy exposing the provider adapters over HTTP

Example:
    Send one message through the orchestrator::

        from core.chat_store import ChatStore
        from core.orchestrator import ChatOrchestrator

        store = ChatStore.from_path("data/chats.json")
        orchestrator = ChatOrchestrator(store)
        chat = orchestrator.new_chat()
        outcome = await orchestrator.handle_send_message(chat.id, "こんにちは", on_fragment=print)
"""
