"""
HandlerResult, the Response writer and response dispatch middleware.
"""

import json
from decimal import Decimal

import pytest

from specweave.faults import (
    BodyAlreadySetFault,
    HeadersAlreadySentFault,
    InternalServerError,
    InvalidHeaderFault,
    InvalidStatusCodeFault,
    ResponseNotSentFault,
    UnhandledResultFault,
)
from specweave.metadata import ArgumentBinding
from specweave.pipeline import (
    HandlerResult,
    MethodHandler,
    fallback_middleware,
    is_plain_json,
    json_response_middleware,
    response_validation_middleware,
    result_object_middleware,
)
from specweave.response import Response
from tests.conftest import SendCapture, make_context, make_request_context, make_response

DISPATCH = [fallback_middleware, result_object_middleware, json_response_middleware]


async def dispatch(handler, *, operation=None, middleware=(), handler_args=(), method="get"):
    context = make_context(operation, handler=handler, handler_args=handler_args, method=method)
    ctx, send = make_request_context(context)
    await MethodHandler(context, [], [*DISPATCH, *middleware]).handle(ctx.request, ctx.response)
    return send


# ============================================================================
# HandlerResult
# ============================================================================

class TestHandlerResult:

    def test_static_and_chained(self):
        result = HandlerResult.status(201).header("Location", "/widgets/1").json({"id": 1})
        assert result.status_code == 201
        assert result.get_header("location") == "/widgets/1"
        assert result.get_header("content-type") == "application/json"
        assert result.is_json
        assert result.body_value == {"id": 1}

    def test_body_set_twice(self):
        with pytest.raises(BodyAlreadySetFault):
            HandlerResult.json({}).body("text")

    def test_raw_body(self):
        result = HandlerResult.body("hello")
        assert result.has_body
        assert not result.is_json
        assert result.get_header("content-type") is None

    def test_json_keeps_explicit_content_type(self):
        result = HandlerResult.header("Content-Type", "application/problem+json").json({})
        assert result.get_header("content-type") == "application/problem+json"

    def test_cookies(self):
        result = HandlerResult.cookie("session", "abc", httponly=True)
        assert result.cookies == {"session": {"value": "abc", "httponly": True}}

    def test_each_static_call_is_new(self):
        assert HandlerResult.status(200) is not HandlerResult.status(200)

    @pytest.mark.asyncio
    async def test_apply(self):
        response, send = make_response()
        await HandlerResult.status(201).cookie("session", "abc").json({"ok": True}).apply(response)

        assert send.status == 201
        assert send.headers["content-type"] == "application/json"
        assert send.headers["set-cookie"] == "session=abc; Path=/"
        assert json.loads(send.body) == {"ok": True}

    @pytest.mark.asyncio
    async def test_apply_without_body_ends(self):
        response, send = make_response()
        await HandlerResult.status(204).apply(response)
        assert send.status == 204
        assert send.body == b""

    @pytest.mark.asyncio
    async def test_unencodable_body_leaves_response_untouched(self):
        response, send = make_response()
        result = HandlerResult.status(201).header("X-Custom", "1").cookie("session", "abc").json({"v": Decimal("1")})

        with pytest.raises(TypeError):
            await result.apply(response)
        assert response.headers == {}
        assert not response.status_set
        assert send.messages == []


# ============================================================================
# Response
# ============================================================================

@pytest.mark.asyncio
class TestResponse:

    async def test_text(self):
        response, send = make_response()
        await response.send("hi")
        assert send.headers["content-type"] == "text/plain; charset=utf-8"
        assert send.headers["content-length"] == "2"
        assert send.body == b"hi"

    async def test_second_write_fails(self):
        response, send = make_response()
        await response.end()
        with pytest.raises(HeadersAlreadySentFault):
            await response.end()
        assert send.starts == 1

    async def test_header_after_send_fails(self):
        response, _ = make_response()
        await response.end()
        with pytest.raises(HeadersAlreadySentFault):
            response.set_header("x-late", "1")

    async def test_head_has_no_body(self):
        response, send = make_response("HEAD")
        await response.json({"a": 1})
        assert send.body == b""
        assert send.headers["content-length"] == str(len(b'{"a":1}'))

    async def test_repeated_headers(self):
        response, send = make_response()
        response.add_header("Vary", "Accept")
        response.add_header("Vary", "Origin")
        await response.end()
        start = send.start
        assert [value for name, value in start["headers"] if name == b"vary"] == [b"Accept", b"Origin"]

    async def test_unencodable_header(self):
        response, send = make_response()
        response.set_header("X-Name", "\u2713")

        with pytest.raises(InvalidHeaderFault):
            await response.end()
        assert not response.headers_sent

        response.clear_headers()
        await response.end()
        assert send.starts == 1

    async def test_disconnected_client(self):
        send = SendCapture()
        response = Response(send, is_disconnected=lambda: True)
        await response.send("dropped")
        assert response.headers_sent
        assert send.messages == []


# ============================================================================
# Dispatch
# ============================================================================

@pytest.mark.asyncio
class TestDispatch:

    async def test_is_plain_json(self):
        assert is_plain_json({"a": [1, 2.5, True, None, "x"]})
        assert is_plain_json(0)
        assert not is_plain_json(None)
        assert not is_plain_json({1: "a"})
        assert not is_plain_json(object())

    async def test_plain_json_gets_200(self):
        send = await dispatch(lambda: {"id": 1})
        assert send.status == 200
        assert send.headers["content-type"] == "application/json"
        assert json.loads(send.body) == {"id": 1}

    async def test_json_keeps_status_set_by_handler(self):
        def handler(response):
            response.status(202)
            return ["queued"]

        send = await dispatch(handler, handler_args=[ArgumentBinding.response()])
        assert send.status == 202

    async def test_json_keeps_content_type_set_by_handler(self):
        def handler(response):
            response.status(422)
            response.set_header("Content-Type", "application/problem+json")
            return {"title": "Invalid"}

        send = await dispatch(handler, handler_args=[ArgumentBinding.response()])
        assert send.status == 422
        assert send.headers["content-type"] == "application/problem+json"

    async def test_handler_result(self):
        send = await dispatch(lambda: HandlerResult.status(201).header("Location", "/widgets/1").json({"id": 1}))
        assert send.status == 201
        assert send.headers["location"] == "/widgets/1"

    async def test_handler_writes_directly(self):
        async def handler(response):
            await response.send("done")

        send = await dispatch(handler, handler_args=[ArgumentBinding.response()])
        assert send.body == b"done"

    async def test_nothing_sent(self):
        with pytest.raises(ResponseNotSentFault):
            await dispatch(lambda: None)

    async def test_unhandled_value(self):
        with pytest.raises(UnhandledResultFault):
            await dispatch(lambda: object())

    async def test_result_after_direct_write(self):
        async def handler(response):
            await response.end()
            return HandlerResult.status(200)

        with pytest.raises(HeadersAlreadySentFault):
            await dispatch(handler, handler_args=[ArgumentBinding.response()])

    async def test_json_after_direct_write(self):
        async def handler(response):
            await response.end()
            return {"late": True}

        with pytest.raises(HeadersAlreadySentFault):
            await dispatch(handler, handler_args=[ArgumentBinding.response()])

    async def test_user_middleware_sees_raw_result(self):
        seen = []

        async def spy(ctx, next):
            result = await next()
            seen.append(result)
            return result

        await dispatch(lambda: {"id": 1}, middleware=[spy])
        assert seen == [{"id": 1}]


# ============================================================================
# Response validation
# ============================================================================

WIDGET_OPERATION = {
    "responses": {
        "200": {
            "description": "OK",
            "content": {"application/json": {"schema": {"type": "object", "required": ["id"]}}},
        },
        "default": {
            "description": "Error",
            "content": {"application/json": {"schema": {"type": "object", "required": ["error"]}}},
        },
    }
}


@pytest.mark.asyncio
class TestResponseValidation:

    async def test_valid(self):
        send = await dispatch(lambda: {"id": 1}, operation=WIDGET_OPERATION, middleware=[response_validation_middleware()])
        assert send.status == 200

    async def test_invalid(self):
        with pytest.raises(InternalServerError) as exc_info:
            await dispatch(lambda: {"name": "x"}, operation=WIDGET_OPERATION, middleware=[response_validation_middleware()])
        assert exc_info.value.message.startswith(
            "The server returned an invalid response according to the OpenAPI schema: "
        )

    async def test_default_response(self):
        with pytest.raises(InternalServerError):
            await dispatch(
                lambda: HandlerResult.status(500).json({"oops": True}),
                operation=WIDGET_OPERATION,
                middleware=[response_validation_middleware()],
            )

    async def test_undeclared_status_lenient(self):
        operation = {"responses": {"200": WIDGET_OPERATION["responses"]["200"]}}
        send = await dispatch(
            lambda: HandlerResult.status(202).json({}),
            operation=operation,
            middleware=[response_validation_middleware()],
        )
        assert send.status == 202

    async def test_undeclared_status_strict(self):
        operation = {"responses": {"200": WIDGET_OPERATION["responses"]["200"]}}
        with pytest.raises(InternalServerError):
            await dispatch(
                lambda: HandlerResult.status(202).json({}),
                operation=operation,
                middleware=[response_validation_middleware(strict=True)],
            )

    async def test_undeclared_content_type_strict(self):
        with pytest.raises(InternalServerError):
            await dispatch(
                lambda: HandlerResult.body("plain"),
                operation=WIDGET_OPERATION,
                middleware=[response_validation_middleware(strict=True)],
            )

    async def test_error_handler_lets_result_through(self):
        errors = []
        send = await dispatch(
            lambda: {"name": "x"},
            operation=WIDGET_OPERATION,
            middleware=[response_validation_middleware(error_handler=errors.append)],
        )
        assert send.status == 200
        assert len(errors) == 1

    async def test_invalid_status_key(self):
        operation = {"responses": {"2XX": {"description": "OK"}}}
        with pytest.raises(InvalidStatusCodeFault):
            await dispatch(lambda: {}, operation=operation, middleware=[response_validation_middleware()])
