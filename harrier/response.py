"""
Response - HTTP response builder for ASGI.

Provides:
- bytes, str and dict/list (JSON) bodies
- Multi-value headers (several Set-Cookie lines)
- RFC 6265 cookie helpers (set_cookie / delete_cookie)
- ASGI 3 sending
"""

from __future__ import annotations

import json
from datetime import datetime
from email.utils import formatdate
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union


# Expires value for deleted cookies
EPOCH_HTTP_DATE = "Thu, 01 Jan 1970 00:00:00 GMT"


class Response:
    """
    HTTP response with ASGI 3 sending support.

    Example:
        >>> response = Response.json({"ok": True})
        >>> response.set_cookie("id", session_id, max_age=900)
        >>> await response.send_asgi(send)
    """

    def __init__(
        self,
        content: Union[bytes, str, Mapping, Sequence] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, Sequence[str]]]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        """
        Initialize Response.

        Args:
            content: Response body (bytes, str, dict/list as JSON)
            status: HTTP status code
            headers: Response headers (supports multi-value)
            media_type: Content-Type override
            encoding: Text encoding (default utf-8)
        """
        self.status = status
        self.encoding = encoding

        # Initialize headers dict (handle multi-value)
        self._headers: Dict[str, Union[str, List[str]]] = {}
        if headers:
            for key, value in headers.items():
                if isinstance(value, (list, tuple)):
                    self._headers[key.lower()] = list(value)
                else:
                    self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers:
            self._headers["content-type"] = self._detect_media_type(content)

        self._content = self._encode(content)

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        """Get response headers."""
        return self._headers

    @property
    def body(self) -> bytes:
        return self._content

    def _detect_media_type(self, content: Any) -> str:
        """Auto-detect media type from content."""
        if isinstance(content, (dict, list)):
            return "application/json; charset=utf-8"
        if isinstance(content, str):
            return "text/plain; charset=utf-8"
        return "application/octet-stream"

    def _encode(self, content: Any) -> bytes:
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode(self.encoding)
        return json.dumps(content, ensure_ascii=False).encode(self.encoding)

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(cls, obj: Any, status: int = 200, *, headers: Optional[Mapping[str, str]] = None) -> "Response":
        """Create JSON response."""
        return cls(
            content=json.dumps(obj, ensure_ascii=False),
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        """Create plain text response."""
        return cls(content=content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    # ========================================================================
    # Headers & Cookies
    # ========================================================================

    def add_header(self, name: str, value: str) -> None:
        """Append a header value, keeping existing values."""
        key = name.lower()
        existing = self._headers.get(key)
        if existing is None:
            self._headers[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            self._headers[key] = [existing, value]

    def get_all(self, name: str) -> List[str]:
        """All values of a header."""
        value = self._headers.get(name.lower())
        if value is None:
            return []
        return list(value) if isinstance(value, list) else [value]

    def set_cookie(
        self,
        name: str,
        value: str,
        *,
        max_age: Optional[int] = None,
        expires: Optional[Union[datetime, str]] = None,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = True,
        httponly: bool = True,
        samesite: Optional[str] = "Lax",
    ) -> None:
        """
        Set a cookie.

        Args:
            name: Cookie name
            value: Cookie value
            max_age: Max age in seconds
            expires: Expiration datetime (or preformatted HTTP date)
            path: Cookie path
            domain: Cookie domain
            secure: Secure flag
            httponly: HttpOnly flag
            samesite: SameSite policy (Strict, Lax, None)
        """
        cookie_parts = [f"{name}={value}"]

        if max_age is not None:
            cookie_parts.append(f"Max-Age={max_age}")

        if expires is not None:
            if isinstance(expires, datetime):
                expires = formatdate(expires.timestamp(), usegmt=True)
            cookie_parts.append(f"Expires={expires}")

        cookie_parts.append(f"Path={path}")

        if domain:
            cookie_parts.append(f"Domain={domain}")

        if secure:
            cookie_parts.append("Secure")

        if httponly:
            cookie_parts.append("HttpOnly")

        if samesite:
            cookie_parts.append(f"SameSite={samesite.capitalize()}")

        # Support multiple Set-Cookie headers
        self.add_header("set-cookie", "; ".join(cookie_parts))

    def delete_cookie(
        self,
        name: str,
        *,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = True,
        samesite: Optional[str] = "Lax",
    ) -> None:
        """Delete a cookie (empty value, expiry in the past)."""
        self.set_cookie(
            name,
            "",
            max_age=0,
            expires=EPOCH_HTTP_DATE,
            path=path,
            domain=domain,
            secure=secure,
            httponly=httponly,
            samesite=samesite,
        )

    # ========================================================================
    # ASGI
    # ========================================================================

    def _prepare_headers(self) -> List[tuple]:
        headers = []
        for key, value in self._headers.items():
            values = value if isinstance(value, list) else [value]
            for v in values:
                headers.append((key.encode("latin-1"), str(v).encode("latin-1")))
        return headers

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]]) -> None:
        """Send response via ASGI."""
        self._headers.setdefault("content-length", str(len(self._content)))

        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": self._content,
            "more_body": False,
        })
