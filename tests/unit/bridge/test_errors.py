"""Unit tests for the bridge error taxonomy."""

import pytest

from chrome_cmd.bridge.errors import (
    BridgeError,
    CommandTimeoutError,
    DuplicateRequestError,
    InvalidRequestError,
    RegistrationError,
    RouteNotFoundError,
    failure_reply,
    success_reply,
)

pytestmark = [pytest.mark.bridge, pytest.mark.bridge_unit]


class TestErrorResponses:
    @pytest.mark.parametrize(
        "error,status,message",
        [
            (InvalidRequestError(), 400, "Invalid JSON"),
            (RouteNotFoundError(), 404, "Not found"),
            (DuplicateRequestError(), 409, "Duplicate request id"),
            (CommandTimeoutError(), 504, "Timeout"),
        ],
    )
    def test_status_and_body(self, error, status, message):
        assert error.status == status
        assert error.to_response() == {"success": False, "error": message}

    def test_data_included_when_present(self):
        error = BridgeError(message="Bad", data={"field": "id"})

        assert error.to_response() == {"success": False, "error": "Bad", "data": {"field": "id"}}

    def test_str_is_message(self):
        assert str(RegistrationError(message="installationId is required")) == (
            "installationId is required"
        )

    def test_is_exception(self):
        with pytest.raises(BridgeError):
            raise CommandTimeoutError()


class TestReplies:
    def test_success_reply(self):
        assert success_reply("1", {"x": 1}) == {"id": "1", "success": True, "result": {"x": 1}}

    def test_failure_reply(self):
        assert failure_reply("1", "nope") == {"id": "1", "success": False, "error": "nope"}
