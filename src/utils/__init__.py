"""
Utils Module - Infrastructure Utilities
=======================================

Modules:
    logger: JSON structured logging with rotation and conversation-turn records
    cancellation: Cooperative cancellation tokens for streaming operations
    token_utils: tiktoken-based token counting with caching
    content_utils: Embedded image and OCR-block parsing of message content
    client_factory: httpx and OpenAI client construction
    http_logger: Request/response logging hooks with secret masking
    json_utils: JSON helpers preserving non-ASCII text
"""
