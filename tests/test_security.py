"""
Security processing: credential extraction, alternatives and principals.
"""

import base64

import pytest

from specweave.auth import HttpBasicCredentials, SecurityProcessor, bind_authenticator, security_processor_factory
from specweave.faults import Forbidden, SpecResolutionFault, Unauthorized, UnknownSecuritySchemeFault
from specweave.openapi import AUTHENTICATOR_EXTENSION
from tests.conftest import make_context, make_request_context


class RecordingAuthenticator:
    """Accepts one credential value and records every call."""

    def __init__(self, accept, principal="principal"):
        self.accept = accept
        self.principal = principal
        self.calls = []

    def authenticate(self, value, scopes, ctx):
        self.calls.append((value, list(scopes)))
        return self.principal if value == self.accept else None


def scheme(definition, authenticator):
    return {**definition, AUTHENTICATOR_EXTENSION: {"controller": authenticator, "handler": "authenticate"}}


def basic_header(username, password):
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return ("Authorization", f"Basic {token}")


def secured_context(security, schemes):
    return make_context(
        {"security": security, "responses": {}},
        components={"securitySchemes": schemes},
    )


# ============================================================================
# Binding
# ============================================================================

class TestBindAuthenticator:

    def test_binds_instance_method(self):
        auth = RecordingAuthenticator("k")
        binding = bind_authenticator("key", scheme({"type": "apiKey"}, auth))
        assert binding.authenticate == auth.authenticate

    def test_missing_extension(self):
        with pytest.raises(SpecResolutionFault):
            bind_authenticator("key", {"type": "apiKey"})

    def test_class_needs_resolver(self):
        with pytest.raises(SpecResolutionFault) as exc_info:
            bind_authenticator("key", scheme({"type": "apiKey"}, RecordingAuthenticator))
        assert "is a class" in exc_info.value.message

    def test_resolver_instantiates(self):
        binding = bind_authenticator(
            "key",
            scheme({"type": "apiKey"}, RecordingAuthenticator),
            resolve_controller=lambda cls: cls("k"),
        )
        assert callable(binding.authenticate)


# ============================================================================
# Compile-time checks
# ============================================================================

class TestCompile:

    def test_unknown_scheme(self):
        with pytest.raises(UnknownSecuritySchemeFault):
            SecurityProcessor(secured_context([{"missing": []}], {}))

    def test_unknown_scheme_type(self):
        schemes = {"oauth": scheme({"type": "oauth2"}, RecordingAuthenticator("x"))}
        with pytest.raises(SpecResolutionFault):
            SecurityProcessor(secured_context([{"oauth": []}], schemes))

    def test_unknown_http_scheme(self):
        schemes = {"digest": scheme({"type": "http", "scheme": "digest"}, RecordingAuthenticator("x"))}
        with pytest.raises(SpecResolutionFault):
            SecurityProcessor(secured_context([{"digest": []}], schemes))

    def test_api_key_needs_name(self):
        schemes = {"key": scheme({"type": "apiKey", "in": "header"}, RecordingAuthenticator("x"))}
        with pytest.raises(SpecResolutionFault):
            SecurityProcessor(secured_context([{"key": []}], schemes))

    def test_unsecured_operation_has_no_processor(self):
        assert security_processor_factory()(make_context()) is None

    def test_document_default_security(self):
        context = make_context(components={"securitySchemes": {}})
        context.document["security"] = [{}]
        assert len(SecurityProcessor(context).alternatives) == 1


# ============================================================================
# Processing
# ============================================================================

@pytest.mark.asyncio
class TestProcess:

    async def test_api_key_header(self):
        auth = RecordingAuthenticator("secret", principal={"user": "ada"})
        schemes = {"key": scheme({"type": "apiKey", "in": "header", "name": "X-API-Key"}, auth)}
        context = secured_context([{"key": ["read"]}], schemes)
        ctx, _ = make_request_context(context, headers=[("X-API-Key", "secret")])

        await SecurityProcessor(context).process(ctx)
        assert ctx.get_request_data("openapi-security-key") == {"user": "ada"}
        assert auth.calls == [("secret", ["read"])]

    async def test_api_key_query_and_cookie(self):
        query_auth = RecordingAuthenticator("q1")
        cookie_auth = RecordingAuthenticator("c1")
        schemes = {
            "query": scheme({"type": "apiKey", "in": "query", "name": "key"}, query_auth),
            "cookie": scheme({"type": "apiKey", "in": "cookie", "name": "sid"}, cookie_auth),
        }
        context = secured_context([{"query": [], "cookie": []}], schemes)
        ctx, _ = make_request_context(context, query_string="key=q1", headers=[("Cookie", "sid=c1")])

        await SecurityProcessor(context).process(ctx)
        assert ctx.get_request_data("openapi-security-query") == "principal"
        assert ctx.get_request_data("openapi-security-cookie") == "principal"

    async def test_missing_credential_skips_authenticator(self):
        auth = RecordingAuthenticator("secret")
        schemes = {"key": scheme({"type": "apiKey", "in": "header", "name": "X-API-Key"}, auth)}
        context = secured_context([{"key": []}], schemes)
        ctx, _ = make_request_context(context)

        with pytest.raises(Unauthorized):
            await SecurityProcessor(context).process(ctx)
        assert auth.calls == []

    async def test_rejected_credential(self):
        auth = RecordingAuthenticator("secret")
        schemes = {"key": scheme({"type": "apiKey", "in": "header", "name": "X-API-Key"}, auth)}
        context = secured_context([{"key": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("X-API-Key", "wrong")])

        with pytest.raises(Unauthorized):
            await SecurityProcessor(context).process(ctx)

    async def test_basic_credentials(self):
        auth = RecordingAuthenticator(HttpBasicCredentials("ada", "pw"))
        schemes = {"basic": scheme({"type": "http", "scheme": "basic"}, auth)}
        context = secured_context([{"basic": []}], schemes)
        ctx, _ = make_request_context(context, headers=[basic_header("ada", "pw")])

        await SecurityProcessor(context).process(ctx)
        assert ctx.get_request_data("openapi-security-basic") == "principal"

    async def test_malformed_basic_header(self):
        auth = RecordingAuthenticator("x")
        schemes = {"basic": scheme({"type": "http", "scheme": "basic"}, auth)}
        context = secured_context([{"basic": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("Authorization", "Basic !!!")])

        with pytest.raises(Unauthorized) as exc_info:
            await SecurityProcessor(context).process(ctx)
        assert exc_info.value.message == 'Invalid HTTP basic authentication header "Basic !!!".'

    async def test_bearer(self):
        auth = RecordingAuthenticator("token123")
        schemes = {"bearer": scheme({"type": "http", "scheme": "bearer"}, auth)}
        context = secured_context([{"bearer": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("Authorization", "Bearer token123")])

        await SecurityProcessor(context).process(ctx)
        assert auth.calls == [("token123", [])]

    async def test_wrong_authorization_scheme(self):
        auth = RecordingAuthenticator("token123")
        schemes = {"bearer": scheme({"type": "http", "scheme": "bearer"}, auth)}
        context = secured_context([{"bearer": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("Authorization", "Token token123")])

        with pytest.raises(Unauthorized) as exc_info:
            await SecurityProcessor(context).process(ctx)
        assert "bearer" in exc_info.value.message

    async def test_second_alternative_wins(self):
        first = RecordingAuthenticator("a")
        second = RecordingAuthenticator("b", principal="second")
        schemes = {
            "first": scheme({"type": "apiKey", "in": "header", "name": "X-First"}, first),
            "second": scheme({"type": "apiKey", "in": "header", "name": "X-Second"}, second),
        }
        context = secured_context([{"first": []}, {"second": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("X-Second", "b")])

        await SecurityProcessor(context).process(ctx)
        assert not ctx.has_request_data("openapi-security-first")
        assert ctx.get_request_data("openapi-security-second") == "second"

    async def test_single_alternative_reraises_fault(self):
        class Denying:
            def authenticate(self, value, scopes, ctx):
                raise Forbidden("Not yours.")

        schemes = {"key": scheme({"type": "apiKey", "in": "header", "name": "X-Key"}, Denying())}
        context = secured_context([{"key": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("X-Key", "k")])

        with pytest.raises(Forbidden):
            await SecurityProcessor(context).process(ctx)

    async def test_several_alternatives_raise_unauthorized(self):
        class Denying:
            def authenticate(self, value, scopes, ctx):
                raise Forbidden("Not yours.")

        schemes = {
            "key": scheme({"type": "apiKey", "in": "header", "name": "X-Key"}, Denying()),
            "other": scheme({"type": "apiKey", "in": "header", "name": "X-Other"}, RecordingAuthenticator("o")),
        }
        context = secured_context([{"key": []}, {"other": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("X-Key", "k")])

        with pytest.raises(Unauthorized):
            await SecurityProcessor(context).process(ctx)

    async def test_anonymous_alternative(self):
        auth = RecordingAuthenticator("secret")
        schemes = {"key": scheme({"type": "apiKey", "in": "header", "name": "X-API-Key"}, auth)}
        context = secured_context([{"key": []}, {}], schemes)
        ctx, _ = make_request_context(context)

        await SecurityProcessor(context).process(ctx)
        assert not ctx.has_request_data("openapi-security-key")

    async def test_async_authenticator(self):
        class AsyncAuth:
            async def authenticate(self, value, scopes, ctx):
                return {"token": value}

        schemes = {"bearer": scheme({"type": "http", "scheme": "bearer"}, AsyncAuth())}
        context = secured_context([{"bearer": []}], schemes)
        ctx, _ = make_request_context(context, headers=[("Authorization", "Bearer t")])

        await SecurityProcessor(context).process(ctx)
        assert ctx.get_request_data("openapi-security-bearer") == {"token": "t"}
