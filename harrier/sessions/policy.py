"""
HarrierSessions - Transport policy.

Controls how the session identifier travels between server and client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, Union

from harrier.faults import ConfigInvalidFault


SameSite = Literal["strict", "lax", "none"]


@dataclass
class TransportPolicy:
    """
    Controls how sessions travel across network.

    Attributes:
        cookie_name: Name of session cookie. Defaults to the generic "id"
            so the cookie does not fingerprint the framework (OWASP).
        cookie_path: Cookie path (mirror the deployment's session path)
        cookie_domain: Cookie domain (None = host-only)
        cookie_samesite: SameSite policy (CSRF protection)
        cookie_secure: True/False, or "auto" to set Secure only when the
            request arrived over TLS
        inactivity_timeout: Seconds of inactivity before the cookie
            expires; recomputed on every response

    HttpOnly is always set.

    Example:
        >>> policy = TransportPolicy(
        ...     cookie_path="/app",
        ...     cookie_samesite="strict",
        ...     inactivity_timeout=1800,
        ... )
    """

    cookie_name: str = "id"
    cookie_path: str = "/"
    cookie_domain: str | None = None
    cookie_samesite: SameSite = "lax"
    cookie_secure: Union[bool, Literal["auto"]] = "auto"
    inactivity_timeout: int = 900

    def __post_init__(self):
        if self.cookie_samesite not in ("strict", "lax", "none"):
            raise ConfigInvalidFault("cookie_samesite", f"expected strict, lax or none, got {self.cookie_samesite!r}")
        if self.cookie_secure not in (True, False, "auto"):
            raise ConfigInvalidFault("cookie_secure", f"expected true, false or 'auto', got {self.cookie_secure!r}")
        if not isinstance(self.inactivity_timeout, int) or self.inactivity_timeout <= 0:
            raise ConfigInvalidFault("inactivity_timeout", "must be a positive number of seconds")
        if not self.cookie_name:
            raise ConfigInvalidFault("cookie_name", "must not be empty")

    def is_secure(self, request_secure: bool) -> bool:
        """Resolve the Secure flag for one request."""
        if self.cookie_secure == "auto":
            return request_secure
        return bool(self.cookie_secure)

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> TransportPolicy:
        """
        Create policy from configuration dictionary.

        Args:
            config: Transport configuration (see ConfigLoader.get_session_config)

        Returns:
            TransportPolicy instance
        """
        secure = config.get("cookie_secure", "auto")
        if isinstance(secure, str):
            lowered = secure.lower()
            secure = "auto" if lowered == "auto" else lowered in ("true", "yes", "1")

        return cls(
            cookie_name=config.get("cookie_name", "id"),
            cookie_path=config.get("cookie_path", "/"),
            cookie_domain=config.get("cookie_domain"),
            cookie_samesite=str(config.get("cookie_samesite", "lax")).lower(),
            cookie_secure=secure,
            inactivity_timeout=int(config.get("inactivity_timeout", 900)),
        )

