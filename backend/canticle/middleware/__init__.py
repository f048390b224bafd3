# Middleware package init
"""
Canticle Backend — Middleware Package
=======================================

Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    Rate limiting runs first and rejects before any other work. The logging
    middleware runs inside the request-ID middleware, so every access line
    carries the request ID.
"""
