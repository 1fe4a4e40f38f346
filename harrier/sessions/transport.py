"""
HarrierSessions - Cookie transport.

Reads the session identifier from the request cookie and writes the
resulting identifier (or a deletion) back to the response. The transport
only moves identifiers; it never touches session data or the store.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from http.cookies import CookieError
from typing import Callable, Optional, TYPE_CHECKING

from .faults import SessionTransportFault
from .policy import TransportPolicy

if TYPE_CHECKING:
    from harrier.request import Request
    from harrier.response import Response
    from .core import Session


class CookieTransport:
    """
    Cookie-based session transport.

    Features:
    - HttpOnly always (no script access)
    - Secure flag when the request came over TLS (or as forced by policy)
    - SameSite policy (CSRF protection)
    - Configurable path and domain
    - Sliding expiry: now + inactivity timeout, on every response

    Example:
        >>> transport = CookieTransport(TransportPolicy(cookie_path="/app"))
        >>> session_id = transport.extract(request)
        >>> transport.emit(response, session, request)
    """

    def __init__(
        self,
        policy: TransportPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize cookie transport.

        Args:
            policy: Transport policy with cookie settings
            clock: Returns the current UTC time (for tests)
        """
        self.policy = policy or TransportPolicy()
        self.cookie_name = self.policy.cookie_name
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def extract(self, request: Request) -> Optional[str]:
        """
        Extract session ID from cookie.

        Returns:
            Identifier, or None when the cookie is absent or empty

        Raises:
            SessionTransportFault: Cookie header cannot be parsed
        """
        try:
            value = request.cookie(self.cookie_name)
        except CookieError as e:
            raise SessionTransportFault(transport_type="cookie", cause=str(e))
        return value or None

    def inject(self, response: Response, session_id: str, request: Request) -> None:
        """Set the identifier cookie with a fresh inactivity expiry."""
        timeout = self.policy.inactivity_timeout
        expires = self._clock() + timedelta(seconds=timeout)

        response.set_cookie(
            self.cookie_name,
            session_id,
            max_age=timeout,
            expires=expires,
            path=self.policy.cookie_path,
            domain=self.policy.cookie_domain,
            secure=self.policy.is_secure(request.is_secure),
            httponly=True,
            samesite=self.policy.cookie_samesite,
        )

    def clear(self, response: Response, request: Request) -> None:
        """Expire the identifier cookie (session destroyed)."""
        response.delete_cookie(
            self.cookie_name,
            path=self.policy.cookie_path,
            domain=self.policy.cookie_domain,
            secure=self.policy.is_secure(request.is_secure),
            httponly=True,
            samesite=self.policy.cookie_samesite,
        )

    def emit(self, response: Response, session: Session, request: Request) -> None:
        """
        Write the cookie matching a closed session.

        A null identifier means the session was destroyed; the cookie is
        expired. Otherwise the current identifier is (re)sent.
        """
        if session.id is None:
            self.clear(response, request)
        else:
            self.inject(response, session.id, request)
