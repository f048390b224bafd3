"""
Canticle Backend — Application Errors
=======================================

What:  The small set of errors services raise on purpose.
How:   Every error carries a client-safe `message` plus a `context` dict.
       main.register_exception_handlers turns each class into one HTTP
       status and one JSON body shape.

    CanticleError
    ├── ValidationError          400  input breaks a business rule
    ├── NotFoundError            404  book, chapter, verse, song or songbook missing
    ├── DatabaseError            500  query failed; message stays generic
    └── RateLimitExceededError   429  per-IP window full

Nothing here is raised by the transposer or the search ranker. Bad chord
markup passes through unchanged, bad query syntax falls back to plain
words, and a search without hits is an empty 200 response.
"""

from typing import Any, Dict, Optional


class CanticleError(Exception):
    """Root of the hierarchy. `context` is for logs and 400/429 details."""

    def __init__(self, message: str = "Something went wrong", context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})


class ValidationError(CanticleError):
    """
    A request that parsed fine but refers to things that do not exist
    (unknown songbook or tag) or carries an empty verse text.

    Type and range problems never reach the services: FastAPI answers
    those with 422 before any handler runs.
    """

    def __init__(
        self,
        message: str = "Invalid input",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.field = field
        if field:
            self.context["field"] = field


class NotFoundError(CanticleError):
    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if resource_id:
            text = f"{resource.capitalize()} '{resource_id}' does not exist"
        else:
            text = f"No such {resource}"
        super().__init__(text, context)
        self.context["resource"] = resource
        if resource_id:
            self.context["resource_id"] = resource_id


class DatabaseError(CanticleError):
    """Wraps driver/ORM failures. Only the context mentions the cause."""

    def __init__(self, message: str = "Database unavailable, try again shortly.", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)


class RateLimitExceededError(CanticleError):
    """Built by RateLimitMiddleware; `retry_after` feeds the Retry-After header."""

    def __init__(self, retry_after: int = 60, context: Optional[Dict[str, Any]] = None):
        super().__init__(f"Too many requests. Retry in {retry_after} s.", context)
        self.retry_after = retry_after
        self.context["retry_after"] = retry_after
