"""
Core Application Layer - Conversations and Orchestration
========================================================

Modules:
    chat_store: Chat tree, selection and settings with pluggable persistence
    storage: Key-value storage backends (memory, JSON file)
    context_resolver: Related-context lookup, keyword similarity, child/continuation chats
    orchestrator: Send-message workflow, per-chat cancellation, UI actions
    export_import: Versioned export envelope, validation and collision-safe import
    title_generator: Auxiliary-model titles and summaries with fallbacks
    search: Keyword and filter search over chat messages
    prompts: Auxiliary prompt templates
    constants: Model table, defaults, fixed strings and pydantic-settings configuration
    exceptions: Domain exception hierarchy

See Also:
    :mod:`integrations`: Provider adapters used by the orchestrator
    :mod:`api`: HTTP proxy over the same adapters
"""
