"""
ASGI adapter - Bridges the ASGI protocol to Harrier's request/response types.

The middleware chain is built once, on the first request, and cached.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Optional
import logging

from .request import Request
from .response import Response
from .middleware import Handler, MiddlewareStack, RequestCtx


Hook = Callable[[], Awaitable[Any]]


class ASGIAdapter:
    """
    ASGI 3 application.

    Wraps a final handler in a middleware stack and serves ``http`` and
    ``lifespan`` scopes. Lifespan hooks are the place to connect and
    disconnect session stores.

    Example:
        >>> stack = MiddlewareStack()
        >>> stack.add(ExceptionMiddleware(), priority=1)
        >>> stack.add(SessionMiddleware(store), priority=15)
        >>> app = ASGIAdapter(handler, stack, on_shutdown=[store.shutdown])
    """

    __slots__ = (
        "handler",
        "middleware_stack",
        "on_startup",
        "on_shutdown",
        "logger",
        "_cached_middleware_chain",
    )

    def __init__(
        self,
        handler: Handler,
        middleware_stack: Optional[MiddlewareStack] = None,
        *,
        on_startup: Optional[List[Hook]] = None,
        on_shutdown: Optional[List[Hook]] = None,
    ):
        self.handler = handler
        self.middleware_stack = middleware_stack or MiddlewareStack()
        self.on_startup = list(on_startup or [])
        self.on_shutdown = list(on_shutdown or [])
        self.logger = logging.getLogger("harrier.asgi")
        self._cached_middleware_chain: Optional[Handler] = None

    def _build_cached_chain(self) -> Handler:
        if self._cached_middleware_chain is None:
            self._cached_middleware_chain = self.middleware_stack.build_handler(self.handler)
        return self._cached_middleware_chain

    # ------------------------------------------------------------------
    # ASGI entry point
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "websocket":
            await self.handle_websocket(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable):
        """Handle one HTTP request."""
        chain = self._build_cached_chain()

        request = Request(scope, receive)
        ctx = RequestCtx(request=request)

        try:
            response = await chain(request, ctx)
        except Exception as e:
            self.logger.error(f"Critical error in request pipeline: {e}", exc_info=True)
            response = Response.json({"error": "Internal server error"}, status=500)

        await response.send_asgi(send)

    async def handle_websocket(self, scope: dict, receive: Callable, send: Callable):
        """WebSockets are not served."""
        self.logger.warning("WebSocket connection attempt rejected")
        await send({"type": "websocket.close", "code": 1003})

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable):
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    for hook in self.on_startup:
                        await hook()
                    self.logger.debug("Startup complete")
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error(f"Startup error: {e}", exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    for hook in self.on_shutdown:
                        await hook()
                    self.logger.debug("Shutdown complete")
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error(f"Shutdown error: {e}", exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break


__all__ = ["ASGIAdapter"]
