"""
Assembly of controllers into an OpenAPI document.
"""

import pytest

from specweave.controller import (
    authenticator,
    bind_operation,
    bind_param,
    bound_controller,
    controller,
    get,
    json_response,
    middleware,
    openapi,
    openapi_operation,
    path_param,
    post,
    query_param,
    require_authentication,
    required_json_body,
)
from specweave.faults import (
    ArgumentUnboundFault,
    DecoratorMisuseFault,
    DuplicateOperationFault,
    EmptyControllerFault,
    SchemeConflictFault,
    SpecResolutionFault,
    UnknownSecuritySchemeFault,
)
from specweave.metadata import ArgumentBinding
from specweave.openapi import (
    AUTHENTICATOR_EXTENSION,
    METHOD_EXTENSION,
    SpecAssembler,
    addend_openapi_from_controllers,
    create_openapi_from_controllers,
    has_extensions,
    merge_security_requirements,
    strip_extensions,
)
from specweave.openapi.paths import compile_path_pattern, join_url_paths, normalize_path_template


# ============================================================================
# Sample controllers
# ============================================================================

@authenticator("basic", {"type": "http", "scheme": "basic"})
class BasicAuth:
    def authenticate(self, value, scopes, ctx):
        return value


@controller("/widgets", tags=["widgets"])
class WidgetsController:

    @get("/")
    @query_param("limit", "integer")
    @json_response(200, {"type": "array"})
    def list_widgets(self, limit):
        return []

    @get("/:id")
    @path_param("id", "integer")
    @json_response(200, {"type": "object"})
    def get_widget(self, id):
        return {"id": id}

    @post("/", operation_id="createWidget")
    @required_json_body({"type": "object"})
    @json_response(201, {"type": "object"})
    def create_widget(self, body):
        return body


# ============================================================================
# Paths
# ============================================================================

class TestPaths:

    @pytest.mark.parametrize("parts,expected", [
        (("/", "/"), "/"),
        (("/widgets", "/"), "/widgets"),
        (("/widgets/", "/{id}"), "/widgets/{id}"),
        (("", "widgets"), "/widgets"),
        ((None, "/a/b/"), "/a/b"),
    ])
    def test_join(self, parts, expected):
        assert join_url_paths(*parts) == expected

    def test_normalize_colon(self):
        assert normalize_path_template("/widgets/:id/parts/:part") == "/widgets/{id}/parts/{part}"

    def test_colon_inside_segment_is_literal(self):
        assert normalize_path_template("/items:batch") == "/items:batch"
        assert normalize_path_template("/items/:id/v1:export") == "/items/{id}/v1:export"

    def test_compile_pattern(self):
        pattern, names = compile_path_pattern("/widgets/{id}.json")
        assert names == ["id"]
        assert pattern.match("/widgets/42.json").group("p0") == "42"
        assert pattern.match("/widgets/4/2.json") is None


# ============================================================================
# Custom controllers
# ============================================================================

class TestCustomControllers:

    def test_document_shape(self, store, info):
        result = SpecAssembler(store).assemble([WidgetsController()], info)
        document = result.document

        assert document["openapi"] == "3.1.0"
        assert document["info"] == info
        assert set(document["paths"]) == {"/widgets", "/widgets/{id}"}
        assert set(document["paths"]["/widgets"]) == {"get", "post"}
        assert document["components"] == {"schemas": {}, "securitySchemes": {}}

    def test_operation_defaults(self, store, info):
        result = SpecAssembler(store).assemble([WidgetsController()], info)
        operation = result.document["paths"]["/widgets/{id}"]["get"]

        assert operation["operationId"] == "WidgetsController.get_widget"
        assert operation["tags"] == ["widgets"]
        assert operation["parameters"][0]["name"] == "id"
        assert operation["responses"]["200"]["content"]["application/json"]["schema"] == {"type": "object"}

    def test_explicit_operation_id(self, store, info):
        result = SpecAssembler(store).assemble([WidgetsController()], info)
        assert result.document["paths"]["/widgets"]["post"]["operationId"] == "createWidget"
        assert result.get("/widgets", "POST").operation_id == "createWidget"

    def test_request_body(self, store, info):
        result = SpecAssembler(store).assemble([WidgetsController()], info)
        request_body = result.document["paths"]["/widgets"]["post"]["requestBody"]
        assert request_body["required"] is True

    def test_method_extension(self, store, info):
        widgets = WidgetsController()
        result = SpecAssembler(store).assemble([widgets], info)
        extension = result.document["paths"]["/widgets/{id}"]["get"][METHOD_EXTENSION]

        assert extension["controller"] is widgets
        assert extension["handler"] == "get_widget"
        assert extension["handlerArgs"] == [{"type": "openapi-parameter", "parameterName": "id"}]
        assert extension["handlerMiddleware"] == []

    def test_compiled_operations(self, store, info):
        widgets = WidgetsController()
        result = SpecAssembler(store).assemble([widgets], info)

        assert len(result) == 3
        operation = result.get("/widgets/:id", "get")
        assert operation.controller is widgets
        assert operation.bindings == (ArgumentBinding.parameter("id"),)
        assert operation.label == "GET /widgets/{id}"

    def test_public_strips_extensions(self, store, info):
        result = SpecAssembler(store).assemble([WidgetsController()], info)
        public = result.public()
        assert not has_extensions(public)
        assert has_extensions(result.document)

    def test_info_defaults(self, store):
        result = SpecAssembler(store).assemble([WidgetsController()])
        assert result.document["info"] == {"title": "API", "version": "1.0.0"}

    def test_servers(self, store, info):
        result = SpecAssembler(store).assemble([WidgetsController()], info, servers=[{"url": "/api"}])
        assert result.document["servers"] == [{"url": "/api"}]

    def test_controller_fragments(self, store, info):
        @controller("/things")
        @openapi({"components": {"schemas": {"Thing": {"type": "object"}}}})
        @openapi_operation({"externalDocs": {"url": "https://example.com"}})
        class Things:
            @get("/")
            @openapi_operation({"summary": "List things"})
            def list(self):
                return []

        result = SpecAssembler(store).assemble([Things()], info)
        operation = result.document["paths"]["/things"]["get"]
        assert operation["summary"] == "List things"
        assert operation["externalDocs"] == {"url": "https://example.com"}
        assert result.document["components"]["schemas"]["Thing"] == {"type": "object"}

    def test_middleware_order(self, store, info):
        async def outer(ctx, next):
            return await next()

        async def inner(ctx, next):
            return await next()

        @controller("/m")
        @middleware(outer)
        class Things:
            @get("/")
            @middleware(inner)
            def list(self):
                return []

        result = SpecAssembler(store).assemble([Things()], info)
        assert result.get("/m", "get").middleware == (outer, inner)

    def test_inherited_handlers(self, store, info):
        class Base:
            @get("/ping")
            def ping(self):
                return "pong"

        @controller("/child")
        class Child(Base):
            pass

        result = SpecAssembler(store).assemble([Child()], info)
        assert "/child/ping" in result.document["paths"]

    def test_spec_only_classes(self, store, info):
        result = SpecAssembler(store).assemble([WidgetsController], info)
        assert len(result) == 3


# ============================================================================
# Authoring errors
# ============================================================================

class TestAuthoringErrors:

    def test_duplicate_operation(self, store, info):
        @controller("/widgets")
        class Other:
            @get("/")
            def list(self):
                return []

        with pytest.raises(DuplicateOperationFault) as exc_info:
            SpecAssembler(store).assemble([WidgetsController(), Other()], info)
        assert "GET /widgets" in exc_info.value.message

    def test_unbound_argument(self, store, info):
        @controller("/x")
        class Broken:
            @get("/")
            def list(self, limit):
                return []

        with pytest.raises(ArgumentUnboundFault) as exc_info:
            SpecAssembler(store).assemble([Broken()], info)
        assert "(limit)" in exc_info.value.message

    def test_binding_beyond_signature(self, store, info):
        @controller("/x")
        class Broken:
            @get("/")
            @query_param("q", index=3)
            def list(self, *args):
                return []

        with pytest.raises(ArgumentUnboundFault):
            SpecAssembler(store).assemble([Broken()], info)

    def test_empty_controller(self, store, info):
        class Nothing:
            pass

        with pytest.raises(EmptyControllerFault):
            SpecAssembler(store).assemble([Nothing()], info)

    def test_ignore_empty_controllers(self, store, info):
        class Nothing:
            pass

        result = SpecAssembler(store, ignore_empty_controllers=True).assemble([Nothing()], info)
        assert result.document["paths"] == {}

    def test_handler_without_method(self, store, info):
        @controller("/x")
        class Broken:
            @query_param("q")
            def list(self, q):
                return []

        with pytest.raises(DecoratorMisuseFault):
            SpecAssembler(store).assemble([Broken()], info)

    def test_unknown_security_scheme(self, store, info):
        @controller("/x")
        class Secured:
            @get("/")
            @require_authentication("missing")
            def list(self):
                return []

        with pytest.raises(UnknownSecuritySchemeFault) as exc_info:
            SpecAssembler(store).assemble([Secured()], info)
        assert "missing" in exc_info.value.message

    def test_bind_param_requires_declared_parameter(self, store, info):
        @controller("/x")
        class Broken:
            @get("/")
            @bind_param("id")
            def list(self, id):
                return []

        with pytest.raises(SpecResolutionFault):
            SpecAssembler(store).assemble([Broken()], info)

    def test_scheme_conflict(self, store, info):
        @authenticator("basic", {"type": "http", "scheme": "bearer"})
        class OtherAuth:
            def authenticate(self, value, scopes, ctx):
                return value

        with pytest.raises(SchemeConflictFault):
            SpecAssembler(store).assemble([BasicAuth(), OtherAuth()], info)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            SpecAssembler(security_merge="union")


# ============================================================================
# Security
# ============================================================================

class TestSecurity:

    def test_authenticator_registers_scheme(self, store, info):
        auth = BasicAuth()
        result = SpecAssembler(store).assemble([auth], info)
        scheme = result.document["components"]["securitySchemes"]["basic"]

        assert scheme["type"] == "http"
        assert scheme[AUTHENTICATOR_EXTENSION] == {"controller": auth, "handler": "authenticate"}
        assert result.public()["components"]["securitySchemes"]["basic"] == {"type": "http", "scheme": "basic"}

    def test_controller_and_handler_requirements(self, store, info):
        @controller("/secure")
        @require_authentication(BasicAuth)
        class Secured:
            @get("/")
            def list(self):
                return []

            @get("/admin")
            @require_authentication(BasicAuth, ["admin"])
            def admin(self):
                return []

        result = SpecAssembler(store).assemble([BasicAuth(), Secured()], info)
        paths = result.document["paths"]
        assert paths["/secure"]["get"]["security"] == [{"basic": []}]
        assert paths["/secure/admin"]["get"]["security"] == [{"basic": ["admin"]}]

    def test_replace_strategy(self):
        merged = merge_security_requirements(
            [{"basic": []}, {"basic": [], "apiKey": []}],
            [{"basic": ["admin"]}, {"oauth": ["read"]}],
        )
        assert merged == [
            {"basic": ["admin"]},
            {"basic": ["admin"], "apiKey": []},
            {"oauth": ["read"]},
        ]

    def test_merge_strategy(self):
        merged = merge_security_requirements(
            [{"basic": []}],
            [{"basic": ["admin"]}, {"basic": []}],
            "merge",
        )
        assert merged == [{"basic": []}, {"basic": ["admin"]}]

    def test_anonymous_alternative(self):
        assert merge_security_requirements([{}], []) == [{}]


# ============================================================================
# Bound controllers
# ============================================================================

BASE_DOCUMENT = {
    "openapi": "3.1.0",
    "info": {"title": "Widgets", "version": "2.0.0"},
    "paths": {
        "/widgets/{id}": {
            "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}],
            "get": {
                "operationId": "getWidget",
                "responses": {"200": {"description": "OK"}},
            },
        },
    },
}


@bound_controller
class BoundWidgets:
    @bind_operation("getWidget")
    @bind_param("id")
    def get_widget(self, id):
        return {"id": id}


class TestBoundControllers:

    def test_binds_existing_operation(self, store):
        widgets = BoundWidgets()
        document = addend_openapi_from_controllers(BASE_DOCUMENT, [widgets], store=store)
        operation = document["paths"]["/widgets/{id}"]["get"]

        assert operation[METHOD_EXTENSION]["controller"] is widgets
        assert operation[METHOD_EXTENSION]["handlerArgs"] == [{"type": "openapi-parameter", "parameterName": "id"}]
        assert document["info"]["version"] == "2.0.0"

    def test_does_not_mutate_base(self, store):
        addend_openapi_from_controllers(BASE_DOCUMENT, [BoundWidgets()], store=store)
        assert METHOD_EXTENSION not in BASE_DOCUMENT["paths"]["/widgets/{id}"]["get"]

    def test_unknown_operation(self, store):
        @bound_controller
        class Missing:
            @bind_operation("nope")
            def handler(self):
                return None

        with pytest.raises(SpecResolutionFault):
            addend_openapi_from_controllers(BASE_DOCUMENT, [Missing()], store=store)

    def test_operation_bound_twice(self, store):
        @bound_controller
        class Again:
            @bind_operation("getWidget")
            @bind_param("id")
            def again(self, id):
                return None

        with pytest.raises(DuplicateOperationFault):
            addend_openapi_from_controllers(BASE_DOCUMENT, [BoundWidgets(), Again()], store=store)

    def test_custom_method_on_bound_controller(self, store):
        @bound_controller
        class Mixed:
            @get("/x")
            def custom(self):
                return None

        with pytest.raises(DecoratorMisuseFault):
            addend_openapi_from_controllers(BASE_DOCUMENT, [Mixed()], store=store)


# ============================================================================
# Functional API
# ============================================================================

class TestFunctionalAPI:

    def test_create_openapi(self, info):
        document = create_openapi_from_controllers(info, [WidgetsController()])
        assert has_extensions(document)

    def test_create_openapi_stripped(self, info):
        document = create_openapi_from_controllers(info, [WidgetsController()], strip=True)
        assert not has_extensions(document)

    def test_strip_is_idempotent(self, info):
        document = create_openapi_from_controllers(info, [WidgetsController()])
        once = strip_extensions(document)
        assert strip_extensions(once) == once
