"""
Models Module - Data Models and Type Definitions
================================================

Pydantic v2 models with camelCase aliases so persisted and exported JSON
matches the browser client's field names.

Modules:
    chat_models: Chat, Message, ChatSettings, export envelope and import result
    api_models: Request/response bodies of the HTTP proxy
    error_models: Error codes and the error response envelope
"""
