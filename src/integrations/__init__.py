"""
Integrations Module - Provider Adapters
=======================================

Modules:
    base: ModelParams and the ProviderAdapter interface
    openai_adapter: Chat-completions streaming through the openai SDK
    claude_adapter: Anthropic Messages API server-sent events over httpx
    gemini_adapter: Gemini generateContent, yielded as a single fragment
    ocr: Google Cloud Vision text detection
    registry: Provider lookup by model name with shared HTTP client
"""
