"""
Middleware system - Composable, async-first middleware chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING
import logging

from .request import Request
from .response import Response
from .faults import Fault, FaultDomain

if TYPE_CHECKING:
    from .sessions import Session


@dataclass
class RequestCtx:
    """
    Per-request context passed alongside the request through the chain.

    SessionMiddleware fills ``session``; handlers may stash anything else
    in ``state``.
    """

    request: Request
    session: Optional["Session"] = None
    state: Dict[str, Any] = field(default_factory=dict)


Handler = Callable[[Request, RequestCtx], Awaitable[Response]]
Middleware = Callable[[Request, RequestCtx, Handler], Awaitable[Response]]


@dataclass
class MiddlewareDescriptor:
    """Descriptor for middleware registration."""
    middleware: Middleware
    scope: str  # "global", "app:name", "route:pattern"
    priority: int
    name: str


class MiddlewareStack:
    """
    Manages middleware stack with deterministic ordering.
    Order: Global < App < Route, then by priority (lower runs first).
    """

    def __init__(self):
        self.middlewares: List[MiddlewareDescriptor] = []
        self._sorted = True

    def add(
        self,
        middleware: Middleware,
        scope: str = "global",
        priority: int = 50,
        name: Optional[str] = None,
    ):
        """Add middleware to stack."""
        if name is None:
            name = getattr(middleware, "__name__", type(middleware).__name__)

        self.middlewares.append(MiddlewareDescriptor(
            middleware=middleware,
            scope=scope,
            priority=priority,
            name=name,
        ))
        self._sorted = False  # Deferred until build_handler()

    def _sort_middlewares(self):
        """Sort middlewares by scope and priority (stable)."""
        scope_order = {"global": 0, "app": 1, "route": 2}

        def sort_key(desc: MiddlewareDescriptor):
            scope_type = desc.scope.split(":")[0]
            return (scope_order.get(scope_type, 99), desc.priority)

        self.middlewares.sort(key=sort_key)

    def build_handler(self, final_handler: Handler) -> Handler:
        """Build middleware chain wrapping the final handler."""
        if not self._sorted:
            self._sort_middlewares()
            self._sorted = True

        handler = final_handler

        # Wrap in reverse order so first middleware is outermost
        for desc in reversed(self.middlewares):
            handler = self._wrap_middleware(desc.middleware, handler)

        return handler

    def _wrap_middleware(self, middleware: Middleware, next_handler: Handler) -> Handler:
        """Wrap a handler with middleware."""
        async def wrapped(request: Request, ctx: RequestCtx) -> Response:
            return await middleware(request, ctx, next_handler)

        return wrapped


class ExceptionMiddleware:
    """
    Catches exceptions and converts them to JSON error responses.

    Faults map to a status by code, then by domain. Non-public fault
    messages are hidden unless ``debug`` is on.
    """

    _UNAUTHENTICATED_CODES = {"SESSION_REQUIRED"}

    _STATUS_BY_DOMAIN = {
        FaultDomain.SECURITY: 403,
        FaultDomain.IO: 502,
        FaultDomain.CONFIG: 500,
        FaultDomain.SESSION: 500,
        FaultDomain.SYSTEM: 500,
    }

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger("harrier.exceptions")

    def status_for(self, fault: Fault) -> int:
        if fault.code in self._UNAUTHENTICATED_CODES:
            return 401
        if fault.retryable:
            return 503
        return self._STATUS_BY_DOMAIN.get(fault.domain, 500)

    async def __call__(self, request: Request, ctx: RequestCtx, next: Handler) -> Response:
        try:
            return await next(request, ctx)

        except Fault as e:
            status = self.status_for(e)
            message = e.message if (e.public or self.debug) else "Internal server error"

            if status >= 500:
                self.logger.error(f"Fault {e.code}: {e.message}")
            else:
                self.logger.warning(f"Fault {e.code}: {e.message}")

            return Response.json(
                {
                    "error": {
                        "code": e.code,
                        "message": message,
                        "domain": str(e.domain),
                    }
                },
                status=status,
            )

        except Exception as e:
            self.logger.error(f"Unhandled exception: {e}", exc_info=True)

            error_data = {"error": "Internal server error"}
            if self.debug:
                error_data["detail"] = str(e)

            return Response.json(error_data, status=500)


__all__ = [
    "RequestCtx",
    "Handler",
    "Middleware",
    "MiddlewareDescriptor",
    "MiddlewareStack",
    "ExceptionMiddleware",
]
