"""
Extended middleware components for Harrier.

- SessionMiddleware: Session lifecycle around each request
- OptionalSessionMiddleware: Pass-through when no store is configured
"""

from .session_middleware import (
    SessionMiddleware,
    OptionalSessionMiddleware,
    create_session_middleware,
)

__all__ = [
    "SessionMiddleware",
    "OptionalSessionMiddleware",
    "create_session_middleware",
]
