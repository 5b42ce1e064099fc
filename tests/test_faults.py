"""
Fault taxonomy: codes, domains, exposure and HTTP status mapping.
"""

import pytest

from specweave.faults import (
    ArgumentReboundFault,
    AuthenticatorNameFault,
    AuthoringFault,
    BadRequest,
    BodyAlreadySetFault,
    ConfigInvalidFault,
    DuplicateOperationFault,
    Fault,
    FaultDomain,
    Forbidden,
    HTTPFault,
    InternalServerError,
    MethodNotAllowed,
    NotFound,
    PipelineFault,
    Severity,
    Unauthorized,
    UnhandledResultFault,
    http_fault,
)


# ============================================================================
# Base Fault
# ============================================================================

class TestFault:

    def test_requires_code_message_domain(self):
        with pytest.raises(TypeError):
            Fault(code="X")

    def test_to_dict(self):
        fault = Fault(code="WIDGET", message="Widget missing", domain=FaultDomain.FLOW, public=True)
        data = fault.to_dict()
        assert data["code"] == "WIDGET"
        assert data["message"] == "Widget missing"
        assert data["domain"] == "flow"
        assert data["public"] is True

    def test_str_includes_code(self):
        fault = Fault(code="WIDGET", message="Widget missing", domain=FaultDomain.FLOW)
        assert str(fault) == "[WIDGET] Widget missing"


# ============================================================================
# Authoring faults
# ============================================================================

class TestAuthoringFaults:

    def test_never_public(self):
        fault = ArgumentReboundFault("get_widget", 1)
        assert isinstance(fault, AuthoringFault)
        assert fault.public is False
        assert fault.domain is FaultDomain.REGISTRY
        assert fault.severity is Severity.FATAL

    def test_rebound_names_handler_and_index(self):
        fault = ArgumentReboundFault("get_widget", 1)
        assert "get_widget" in fault.message
        assert "index 1" in fault.message

    def test_duplicate_names_path_and_method(self):
        fault = DuplicateOperationFault("/widgets", "get", "A.list", "B.list")
        assert "GET /widgets" in fault.message
        assert fault.metadata["existing"] == "A.list"

    def test_authenticator_name_message(self):
        assert AuthenticatorNameFault().message == "Authenticator name cannot be empty."

    def test_config_invalid(self):
        fault = ConfigInvalidFault("server.port", "must be positive")
        assert fault.domain is FaultDomain.CONFIG
        assert "server.port" in fault.message


# ============================================================================
# HTTP faults
# ============================================================================

class TestHTTPFaults:

    @pytest.mark.parametrize("cls,status,public", [
        (BadRequest, 400, True),
        (Unauthorized, 401, True),
        (Forbidden, 403, True),
        (NotFound, 404, True),
        (MethodNotAllowed, 405, True),
        (InternalServerError, 500, False),
    ])
    def test_status_and_exposure(self, cls, status, public):
        fault = cls()
        assert fault.status == status
        assert fault.expose is public

    def test_custom_message(self):
        assert BadRequest("Query parameter \"q\" is required.").message == 'Query parameter "q" is required.'

    def test_method_not_allowed_carries_allowed(self):
        fault = MethodNotAllowed(["GET", "POST"])
        assert fault.allowed == ["GET", "POST"]

    def test_http_fault_known_status(self):
        fault = http_fault(404, "gone")
        assert isinstance(fault, NotFound)
        assert fault.message == "gone"

    def test_http_fault_arbitrary_status(self):
        fault = http_fault(413, "Too big")
        assert isinstance(fault, HTTPFault)
        assert fault.status == 413
        assert fault.code == "HTTP_413"
        assert fault.public is True

    def test_http_fault_server_errors_private(self):
        assert http_fault(503).public is False

    def test_http_fault_public_override(self):
        assert http_fault(503, public=True).public is True


# ============================================================================
# Pipeline faults
# ============================================================================

class TestPipelineFaults:

    def test_are_private_500s(self):
        fault = UnhandledResultFault("oops")
        assert isinstance(fault, PipelineFault)
        assert fault.status == 500
        assert fault.expose is False

    def test_body_already_set_message(self):
        assert BodyAlreadySetFault().message == "Body has already been set."
