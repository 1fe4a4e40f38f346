"""
Session Middleware - Drives the Session lifecycle around each request.

Per request:
1. Read the identifier from the cookie (malformed or unknown ids are
   replaced by a fresh one)
2. Start a session over the configured store
3. Bind it to ``request.state["session"]`` and ``ctx.session``
4. Run the downstream handler
5. Close the session (persist, regenerate, or settle a destroy)
6. Emit the cookie matching the session's final identifier
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional
import logging

from harrier.middleware import Handler, RequestCtx
from harrier.request import Request, SESSION_STATE_KEY
from harrier.response import Response
from harrier.sessions.core import Session, SessionID
from harrier.sessions.faults import SessionTransportFault
from harrier.sessions.policy import TransportPolicy
from harrier.sessions.transport import CookieTransport

if TYPE_CHECKING:
    from harrier.sessions.store import SessionStore


class SessionMiddleware:
    """
    Middleware that runs one Session per request.

    A failed start or close is a fatal request error: the carried fault is
    raised so an outer ExceptionMiddleware can turn it into a response.
    Exceptions from the downstream handler propagate untouched; the session
    is not closed and no cookie is emitted for a failed request.

    Architecture:
        Request -> SessionMiddleware -> [start] -> Handler -> [close] -> Response

    Example:
        >>> middleware = SessionMiddleware(MemoryStore(), TransportPolicy())
        >>> stack.add(middleware, priority=15)
    """

    def __init__(
        self,
        store: "SessionStore",
        policy: TransportPolicy | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize session middleware.

        Args:
            store: Session store shared by all requests
            policy: Cookie transport policy
            logger: Optional logger
        """
        self.store = store
        self.policy = policy or TransportPolicy()
        self.transport = CookieTransport(self.policy)
        self.logger = logger or logging.getLogger("harrier.middleware.session")

    def _extract_id(self, request: Request) -> Optional[str]:
        try:
            session_id = self.transport.extract(request)
        except SessionTransportFault as e:
            self.logger.warning(f"Ignoring session cookie: {e.message}")
            return None

        if session_id is not None and not SessionID.is_valid(session_id):
            self.logger.warning("Discarding malformed session identifier")
            return None
        return session_id

    async def _resolve_id(self, request: Request) -> Optional[str]:
        """Identifier to resume, or None to start under a fresh one."""
        session_id = self._extract_id(request)
        if session_id is None:
            return None

        if not await self.store.exists(session_id):
            self.logger.info(
                f"Unknown session identifier {SessionID.hash(session_id)}, issuing a new one"
            )
            return None
        return session_id

    async def __call__(
        self,
        request: Request,
        ctx: RequestCtx,
        next_handler: Handler,
    ) -> Response:
        """
        Process request with session management.

        Raises:
            SessionFault: Session could not be started or closed
        """
        session = Session(self.store)

        result = await session.start(await self._resolve_id(request))
        result.raise_for_failure()

        request.state[SESSION_STATE_KEY] = session
        if hasattr(ctx, "session"):
            ctx.session = session

        response = await next_handler(request, ctx)

        result = await session.close()
        result.raise_for_failure()

        self.transport.emit(response, session, request)
        return response


class OptionalSessionMiddleware:
    """
    Session middleware that passes requests through when no store is set.

    Use this when sessions are opt-in per deployment.
    """

    def __init__(
        self,
        store: Optional["SessionStore"] = None,
        policy: TransportPolicy | None = None,
    ):
        self.inner = SessionMiddleware(store, policy) if store is not None else None

    async def __call__(
        self,
        request: Request,
        ctx: RequestCtx,
        next_handler: Handler,
    ) -> Response:
        if self.inner is None:
            return await next_handler(request, ctx)
        return await self.inner(request, ctx, next_handler)


def create_session_middleware(
    store: Optional["SessionStore"] = None,
    policy: TransportPolicy | None = None,
    optional: bool = False,
) -> SessionMiddleware | OptionalSessionMiddleware:
    """
    Factory function to create session middleware.

    Args:
        store: Session store
        policy: Cookie transport policy
        optional: If True, create OptionalSessionMiddleware

    Example:
        >>> middleware = create_session_middleware(MemoryStore())
        >>> stack.add(middleware, priority=15)
    """
    if optional:
        return OptionalSessionMiddleware(store, policy)

    if store is None:
        raise ValueError("store required when optional=False")

    return SessionMiddleware(store, policy)


__all__ = [
    "SessionMiddleware",
    "OptionalSessionMiddleware",
    "create_session_middleware",
]
