"""
Shared test fixtures and helpers for the Harrier test suite.
"""

import pytest
from typing import Any, Dict, List, Optional

from harrier.request import Request
from harrier.middleware import RequestCtx
from harrier.sessions.faults import SessionStoreUnavailableFault
from harrier.sessions.store import MemoryStore


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8") if isinstance(query_string, str) else query_string,
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("127.0.0.1", 8000),
        "client": client or ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or chunked list."""
    if chunks:
        messages = []
        for i, chunk in enumerate(chunks):
            messages.append({
                "type": "http.request",
                "body": chunk,
                "more_body": i < len(chunks) - 1,
            })
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    scheme: str = "http",
    cookie: Optional[str] = None,
) -> Request:
    """Build a Request, optionally carrying a Cookie header."""
    headers = list(headers or [])
    if cookie is not None:
        headers.append(("cookie", cookie))
    scope = make_scope(method=method, path=path, headers=headers, scheme=scheme)
    return Request(scope, make_receive(body))


def make_ctx(request: Request) -> RequestCtx:
    return RequestCtx(request=request)


# ============================================================================
# Store Helpers
# ============================================================================


class FlakyStore(MemoryStore):
    """
    MemoryStore whose operations can be made to fail on demand.

    Each ``fail_*`` flag makes the matching call raise
    SessionStoreUnavailableFault. Calls are recorded in ``calls``.
    """

    name = "flaky"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.fail_load = False
        self.fail_save = False
        self.fail_delete = False
        self.calls: List[tuple] = []

    async def load(self, session_id: str) -> Dict[str, Any]:
        self.calls.append(("load", session_id))
        if self.fail_load:
            raise SessionStoreUnavailableFault(store_name=self.name, cause="load refused")
        return await super().load(session_id)

    async def save(self, session_id: str, data) -> None:
        self.calls.append(("save", session_id))
        if self.fail_save:
            raise SessionStoreUnavailableFault(store_name=self.name, cause="save refused")
        await super().save(session_id, data)

    async def delete(self, session_id: str) -> None:
        self.calls.append(("delete", session_id))
        if self.fail_delete:
            raise SessionStoreUnavailableFault(store_name=self.name, cause="delete refused")
        await super().delete(session_id)

    def ops(self) -> List[str]:
        return [op for op, _ in self.calls]


def sequential_ids(prefix: str = "id"):
    """Deterministic identifier factory: id-1, id-2, ..."""
    counter = 0

    def factory() -> str:
        nonlocal counter
        counter += 1
        return f"{prefix}-{counter}"

    return factory


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()
