"""
Prizm Connect - Business-to-consumer messaging backend
======================================================

FastAPI service connecting consumers with local businesses.

Key Features:
    - **Direct Messaging**: One write path for every message, with best-effort live push over WebSocket
    - **Connection Registry**: One live channel per user, last registration wins
    - **AI Assistant**: Conversational replies with a fixed apology when the model is unavailable
    - **Business Matching**: Model-ranked search that falls back to unranked results

Modules:
    api: FastAPI routes, services, middleware, and WebSocket handling
    core: Settings, prompts and the intelligence gateway
    models: Pydantic records, request schemas and error envelopes
    utils: Logging, client factories, database pool and JSON helpers
    integrations: Model provider adapters
"""
