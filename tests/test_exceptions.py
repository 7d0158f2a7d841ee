#!/usr/bin/env python3
"""Tests for the exception hierarchy and JSON-RPC error mapping."""
import pytest

from src.fleet_onboard.api.client import create_http_error, create_rpc_error, raise_for_rpc_error
from src.fleet_onboard.api.exceptions import (
    APIError,
    AuthenticationError,
    CollectionError,
    ConfigurationError,
    DuplicateEntityError,
    FleetOnboardError,
    InvalidCredentialsError,
    NotFoundError,
    PartialApplyError,
    RateLimitError,
    RecordMutationError,
    ServerError,
    SessionExpiredError,
    SyncError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Tests for exception classes."""

    def test_base_to_dict(self):
        cause = ValueError("inner")
        error = FleetOnboardError("outer", code="X", details={"k": "v"}, cause=cause)

        data = error.to_dict()

        assert data["error_type"] == "FleetOnboardError"
        assert data["code"] == "X"
        assert data["details"] == {"k": "v"}
        assert data["cause"] == "inner"
        assert error.__cause__ is cause

    def test_str_includes_code_and_details(self):
        error = ConfigurationError("Missing keys", missing_keys=["MYGEOTAB_USERNAME"])
        assert str(error).startswith("[CONFIGURATION_ERROR] Missing keys")
        assert "MYGEOTAB_USERNAME" in str(error)
        assert error.recoverable is False

    def test_session_expired_is_authentication_error(self):
        error = SessionExpiredError()
        assert isinstance(error, AuthenticationError)
        assert error.recoverable is True

    def test_rate_limit_default_wait(self):
        assert RateLimitError().retry_after == 60
        assert RateLimitError(retry_after=5).retry_after == 5

    def test_collection_error_details(self):
        error = CollectionError("failed", source="GetCurrentDeviceDatabases", records_before_failure=1000)
        assert isinstance(error, SyncError)
        assert error.details["records_before_failure"] == 1000

    def test_partial_apply_error(self):
        error = PartialApplyError("not configured", serial_number="G9AB-0001", device_id="b1")
        assert isinstance(error, RecordMutationError)
        assert error.code == "PARTIAL_APPLY_FAILED"
        assert error.details["device_id"] == "b1"
        assert error.details["serial_number"] == "G9AB-0001"


class TestRpcErrorMapping:
    """Tests for create_rpc_error and raise_for_rpc_error."""

    @staticmethod
    def rpc_error(name: str, message: str = "failed") -> dict:
        return {"message": message, "errors": [{"name": name, "message": message}]}

    def test_invalid_user_while_authenticating(self):
        error = create_rpc_error(self.rpc_error("InvalidUserException"), "Authenticate", authenticating=True)
        assert isinstance(error, InvalidCredentialsError)

    def test_invalid_user_on_regular_call_is_expired_session(self):
        error = create_rpc_error(self.rpc_error("InvalidUserException"), "Get")
        assert isinstance(error, SessionExpiredError)

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("OverLimitException", RateLimitError),
            ("DbUnavailableException", ServerError),
            ("DuplicateException", DuplicateEntityError),
            ("ArgumentException", ValidationError),
            ("ObjectNotFoundException", NotFoundError),
            ("SomethingElseException", APIError),
        ],
    )
    def test_error_names(self, name, expected):
        error = create_rpc_error(self.rpc_error(name), "Add")
        assert type(error) is expected
        assert error.method == "Add"

    def test_name_from_data_type(self):
        error = create_rpc_error({"message": "dup", "data": {"type": "DuplicateException"}}, "Add")
        assert isinstance(error, DuplicateEntityError)

    def test_raise_for_rpc_error_returns_result(self):
        assert raise_for_rpc_error({"result": [1, 2]}, "Get") == [1, 2]

    def test_raise_for_rpc_error_raises(self):
        with pytest.raises(DuplicateEntityError):
            raise_for_rpc_error({"error": self.rpc_error("DuplicateException")}, "Add")

    def test_malformed_payload(self):
        with pytest.raises(APIError):
            raise_for_rpc_error("<html>", "Get")


class TestHttpErrorMapping:
    """Tests for create_http_error."""

    @pytest.mark.parametrize(
        "status, expected",
        [
            (404, NotFoundError),
            (429, RateLimitError),
            (400, ValidationError),
            (503, ServerError),
            (403, APIError),
        ],
    )
    def test_status_codes(self, status, expected):
        error = create_http_error(status, "Get", "body")
        assert type(error) is expected
