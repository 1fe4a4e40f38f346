"""
HTTP glue: Request, Response and the middleware stack.
"""

from datetime import datetime, timezone

import pytest

from harrier.faults import Fault, FaultDomain
from harrier.middleware import ExceptionMiddleware, MiddlewareStack, RequestCtx
from harrier.request import Request, SESSION_STATE_KEY
from harrier.response import Response
from harrier.sessions.faults import SessionRegenerationFault, SessionStoreUnavailableFault

from tests.conftest import make_ctx, make_receive, make_request, make_scope


# ============================================================================
# Request
# ============================================================================

class TestRequest:

    def test_basic_properties(self):
        request = make_request(method="POST", path="/login", scheme="https")
        assert request.method == "POST"
        assert request.path == "/login"
        assert request.is_secure is True
        assert request.client == ("127.0.0.1", 12345)

    def test_plain_http_is_not_secure(self):
        assert make_request().is_secure is False

    def test_headers_case_insensitive(self):
        request = make_request(headers=[("X-Trace", "t1"), ("x-trace", "t2")])
        assert request.header("x-TRACE") == "t1"
        assert request.headers.get_all("X-Trace") == ["t1", "t2"]
        assert "x-trace" in request.headers
        assert request.header("missing", "dflt") == "dflt"

    def test_cookies_from_several_headers(self):
        request = make_request(headers=[("cookie", "a=1"), ("cookie", "id=abc; b=2")])
        assert request.cookies == {"a": "1", "id": "abc", "b": "2"}
        assert request.cookie("id") == "abc"
        assert request.cookie("nope") is None

    @pytest.mark.asyncio
    async def test_body_chunks(self):
        request = Request(make_scope(method="POST"), make_receive(chunks=[b"ab", b"cd"]))
        assert await request.body() == b"abcd"
        assert await request.body() == b"abcd"

    def test_session_binding(self):
        request = make_request()
        assert request.session is None

        sentinel = object()
        request.state[SESSION_STATE_KEY] = sentinel
        assert request.session is sentinel
        assert request.require_session() is sentinel

    def test_require_session_without_middleware(self):
        with pytest.raises(Fault) as exc_info:
            make_request(path="/cart").require_session()
        assert exc_info.value.code == "SESSION_REQUIRED"
        assert exc_info.value.metadata["path"] == "/cart"


# ============================================================================
# Response
# ============================================================================

class TestResponse:

    def test_json(self):
        response = Response.json({"a": 1}, status=201)
        assert response.status == 201
        assert response.body == b'{"a": 1}'
        assert response.headers["content-type"] == "application/json; charset=utf-8"

    def test_text(self):
        response = Response.text("hi")
        assert response.body == b"hi"
        assert response.headers["content-type"].startswith("text/plain")

    def test_multiple_cookies(self):
        response = Response(b"")
        response.set_cookie("a", "1", secure=False, httponly=False, samesite=None)
        response.set_cookie("b", "2")

        assert response.get_all("set-cookie") == [
            "a=1; Path=/",
            "b=2; Path=/; Secure; HttpOnly; SameSite=Lax",
        ]

    def test_expires_from_datetime(self):
        response = Response(b"")
        response.set_cookie("a", "1", expires=datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc))
        assert "Expires=Sat, 01 Jun 2030 12:00:00 GMT" in response.get_all("set-cookie")[0]

    def test_delete_cookie(self):
        response = Response(b"")
        response.delete_cookie("id", path="/app")
        assert response.get_all("set-cookie") == [
            "id=; Max-Age=0; Expires=Thu, 01 Jan 1970 00:00:00 GMT; Path=/app; HttpOnly; SameSite=Lax"
        ]

    @pytest.mark.asyncio
    async def test_send_asgi(self):
        response = Response.text("hello")
        response.set_cookie("a", "1")
        response.set_cookie("b", "2")
        sent = []

        async def send(message):
            sent.append(message)

        await response.send_asgi(send)

        start, body = sent
        assert start["status"] == 200
        assert (b"content-length", b"5") in start["headers"]
        assert [v for k, v in start["headers"] if k == b"set-cookie"] == [
            b"a=1; Path=/; Secure; HttpOnly; SameSite=Lax",
            b"b=2; Path=/; Secure; HttpOnly; SameSite=Lax",
        ]
        assert body == {"type": "http.response.body", "body": b"hello", "more_body": False}


# ============================================================================
# MiddlewareStack
# ============================================================================

def tagging(tag, order):
    async def middleware(request, ctx, next_handler):
        order.append(tag)
        return await next_handler(request, ctx)
    middleware.__name__ = tag
    return middleware


class TestMiddlewareStack:

    @pytest.mark.asyncio
    async def test_priority_order(self):
        order = []
        stack = MiddlewareStack()
        stack.add(tagging("late", order), priority=90)
        stack.add(tagging("early", order), priority=10)
        stack.add(tagging("route", order), scope="route:/x", priority=1)

        async def final(request, ctx):
            order.append("handler")
            return Response.text("ok")

        handler = stack.build_handler(final)
        request = make_request()
        await handler(request, make_ctx(request))

        assert order == ["early", "late", "route", "handler"]
        assert [d.name for d in stack.middlewares] == ["early", "late", "route"]

    def test_request_ctx_defaults(self):
        request = make_request()
        ctx = RequestCtx(request=request)
        assert ctx.session is None
        assert ctx.state == {}


class TestExceptionMiddleware:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fault,status", [
        (SessionStoreUnavailableFault("redis"), 503),
        (SessionRegenerationFault("old", "new"), 503),
        (Fault(code="SESSION_REQUIRED", message="Session required", domain=FaultDomain.SESSION), 401),
    ])
    async def test_fault_status(self, fault, status):
        async def raising(request, ctx):
            raise fault

        request = make_request()
        response = await ExceptionMiddleware()(request, make_ctx(request), raising)

        assert response.status == status

    @pytest.mark.asyncio
    async def test_private_message_hidden(self):
        async def raising(request, ctx):
            raise SessionStoreUnavailableFault("redis", cause="10.0.0.5 refused")

        request = make_request()
        response = await ExceptionMiddleware()(request, make_ctx(request), raising)

        assert b"10.0.0.5" not in response.body
        assert b"Internal server error" in response.body

    @pytest.mark.asyncio
    async def test_debug_shows_detail(self):
        async def raising(request, ctx):
            raise ValueError("bad thing")

        request = make_request()
        response = await ExceptionMiddleware(debug=True)(request, make_ctx(request), raising)

        assert response.status == 500
        assert b"bad thing" in response.body
