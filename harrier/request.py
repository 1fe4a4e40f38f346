"""
Request - Minimal ASGI request wrapper.

Provides:
- Method, path, scheme and client from the ASGI scope
- Case-insensitive headers and parsed cookies
- Per-request ``state`` attribute bag (where the session is bound)
- Body access
"""

from __future__ import annotations

from http.cookies import SimpleCookie
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TYPE_CHECKING

from ._datastructures import Headers
from .faults import Fault, FaultDomain, Severity

if TYPE_CHECKING:
    from .sessions import Session


# Key under which SessionMiddleware binds the session in ``request.state``
SESSION_STATE_KEY = "session"


class Request:
    """
    Request object for Harrier.

    Wraps an ASGI HTTP scope. Parsed values (headers, cookies) are cached
    on first access.
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Optional[Callable[..., Awaitable[dict]]] = None,
    ):
        """
        Initialize Request.

        Args:
            scope: ASGI scope dict
            receive: ASGI receive callable
        """
        self.scope = scope
        self._receive = receive

        # State
        self.state: Dict[str, Any] = {}

        # Cached values
        self._headers: Optional[Headers] = None
        self._cookies: Optional[Dict[str, str]] = None
        self._body: Optional[bytes] = None

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        """Request path (decoded)."""
        return self.scope.get("path", "/")

    @property
    def scheme(self) -> str:
        """URL scheme ("http" or "https")."""
        return self.scope.get("scheme", "http")

    @property
    def is_secure(self) -> bool:
        """True if the request arrived over an encrypted transport."""
        return self.scheme in ("https", "wss")

    @property
    def client(self) -> Optional[tuple]:
        """Client address (host, port)."""
        return self.scope.get("client")

    # ========================================================================
    # Headers
    # ========================================================================

    @property
    def headers(self) -> Headers:
        """Get parsed headers."""
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    # ========================================================================
    # Cookies
    # ========================================================================

    @property
    def cookies(self) -> Mapping[str, str]:
        """
        Get parsed cookies.

        Raises:
            http.cookies.CookieError: Cookie header cannot be parsed
        """
        if self._cookies is None:
            cookies: Dict[str, str] = {}
            for cookie_header in self.headers.get_all("cookie"):
                cookie = SimpleCookie()
                cookie.load(cookie_header)
                cookies.update({key: morsel.value for key, morsel in cookie.items()})
            self._cookies = cookies
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single cookie value."""
        return self.cookies.get(name, default)

    # ========================================================================
    # Body
    # ========================================================================

    async def body(self) -> bytes:
        """Read the full request body (cached)."""
        if self._body is None:
            chunks = []
            if self._receive is not None:
                more_body = True
                while more_body:
                    message = await self._receive()
                    if message["type"] == "http.disconnect":
                        break
                    chunks.append(message.get("body", b""))
                    more_body = message.get("more_body", False)
            self._body = b"".join(chunks)
        return self._body

    # ========================================================================
    # Session Integration
    # ========================================================================

    @property
    def session(self) -> Optional["Session"]:
        """
        Get session (set by SessionMiddleware).

        Returns:
            Session object if available, None otherwise
        """
        return self.state.get(SESSION_STATE_KEY)

    def require_session(self) -> "Session":
        """
        Get session or raise SESSION_REQUIRED fault.

        Raises:
            Fault: SESSION_REQUIRED if no session is bound
        """
        session = self.session
        if session is None:
            raise Fault(
                code="SESSION_REQUIRED",
                message="Session required",
                domain=FaultDomain.SESSION,
                severity=Severity.WARN,
                metadata={"path": self.path, "method": self.method},
            )
        return session


__all__ = ["Request", "SESSION_STATE_KEY"]
