"""Tests for the envelope codec."""

import pytest

from panelbridge.mcp.protocol.errors import INTERNAL_ERROR
from panelbridge.mcp.protocol.messages import (
    EnvelopeKind,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    decode_envelope,
)


class TestDecodeEnvelope:
    """Tests for classifying inbound payloads."""

    def test_response_with_result(self):
        envelope = decode_envelope({"jsonrpc": "2.0", "id": 1, "result": {"ok": True}})
        assert isinstance(envelope, JSONRPCResponse)
        assert envelope.kind is EnvelopeKind.RESPONSE
        assert envelope.id == 1
        assert envelope.result == {"ok": True}
        assert not envelope.is_error

    def test_response_with_error(self):
        envelope = decode_envelope(
            {"jsonrpc": "2.0", "id": 3, "error": {"code": -32000, "message": "boom"}}
        )
        assert envelope.kind is EnvelopeKind.RESPONSE
        assert envelope.is_error
        assert envelope.error.code == -32000
        assert envelope.error.message == "boom"

    def test_error_without_message_gets_default(self):
        envelope = decode_envelope({"id": 3, "error": {}})
        # Empty error object is falsy, so this is a success with no result
        assert not envelope.is_error

        envelope = decode_envelope({"id": 3, "error": {"code": 5}})
        assert envelope.error.message == "Unknown error"

    def test_non_object_error(self):
        envelope = decode_envelope({"id": 3, "error": "nope"})
        assert envelope.error.code == INTERNAL_ERROR
        assert envelope.error.message == "nope"

    def test_null_error_is_success(self):
        envelope = decode_envelope({"id": 3, "result": {"a": 1}, "error": None})
        assert not envelope.is_error
        assert envelope.result == {"a": 1}

    def test_response_wins_over_method(self):
        envelope = decode_envelope({"id": 1, "method": "x", "result": {}})
        assert envelope.kind is EnvelopeKind.RESPONSE

    def test_request(self):
        envelope = decode_envelope(
            {"jsonrpc": "2.0", "id": "init-1", "method": "ui/initialize", "params": {"a": 1}}
        )
        assert isinstance(envelope, JSONRPCRequest)
        assert envelope.kind is EnvelopeKind.REQUEST
        assert envelope.id == "init-1"
        assert envelope.params == {"a": 1}

    def test_notification(self):
        envelope = decode_envelope(
            {"jsonrpc": "2.0", "method": "ui/notifications/tool-result"}
        )
        assert isinstance(envelope, JSONRPCNotification)
        assert envelope.kind is EnvelopeKind.NOTIFICATION
        assert envelope.params is None

    def test_missing_version_is_accepted(self):
        assert decode_envelope({"method": "ping"}) is not None

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            "hello",
            42,
            ["jsonrpc"],
            {},
            {"jsonrpc": "1.0", "id": 1, "result": {}},
            {"id": 1},
            {"id": True, "result": {}},
            {"id": 1.5, "result": {}},
            {"method": 7},
            {"method": ""},
            {"method": "x", "params": [1, 2]},
            {"result": {}},
        ],
    )
    def test_malformed_payloads_decode_to_none(self, payload):
        assert decode_envelope(payload) is None


class TestEncoding:
    """Tests for outbound envelope shapes."""

    def test_request_to_dict(self):
        request = JSONRPCRequest(
            id=1,
            method="tools/call",
            params={"name": "todo_add", "arguments": {"text": "milk"}},
        )
        assert request.to_dict() == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "tools/call",
            "params": {"name": "todo_add", "arguments": {"text": "milk"}},
        }

    def test_request_without_params(self):
        assert "params" not in JSONRPCRequest(id=2, method="x").to_dict()

    def test_success_response_keeps_empty_result(self):
        assert JSONRPCResponse.success(id="t", result={}).to_dict() == {
            "jsonrpc": "2.0",
            "id": "t",
            "result": {},
        }

    def test_error_response(self):
        msg = JSONRPCResponse.error_response(id=9, code=-32601, message="Method not found").to_dict()
        assert msg["error"] == {"code": -32601, "message": "Method not found"}
        assert "result" not in msg

    def test_notification_to_dict(self):
        notification = JSONRPCNotification(method="ui/notifications/initialized", params={})
        assert notification.to_dict() == {
            "jsonrpc": "2.0",
            "method": "ui/notifications/initialized",
            "params": {},
        }
