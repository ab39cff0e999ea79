"""Tests for request correlation and expiry."""

import asyncio

import pytest

from panelbridge.mcp.protocol.correlator import RequestCorrelator
from panelbridge.mcp.protocol.errors import REQUEST_TIMEOUT, BridgeError


class Outcomes:
    """Collects resolve/reject calls for one request."""

    def __init__(self):
        self.results = []
        self.errors = []

    def resolve(self, result):
        self.results.append(result)

    def reject(self, error):
        self.errors.append(error)


class TestRequestCorrelator:
    """Tests for RequestCorrelator."""

    def test_ids_increase_from_one(self):
        correlator = RequestCorrelator()
        assert [correlator.allocate_id() for _ in range(3)] == [1, 2, 3]

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValueError, match="timeout must be positive"):
            RequestCorrelator(timeout=0)

    @pytest.mark.asyncio
    async def test_settle_resolves_once(self):
        """Test that a response resolves its request and removes it."""
        correlator = RequestCorrelator(timeout=5)
        outcomes = Outcomes()
        request_id = correlator.allocate_id()
        correlator.register(request_id, outcomes.resolve, outcomes.reject, method="tools/call")

        assert request_id in correlator
        assert correlator.settle(request_id, result={"ok": True})
        assert not correlator.settle(request_id, result={"ok": False})

        assert outcomes.results == [{"ok": True}]
        assert outcomes.errors == []
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_settle_with_error_rejects(self):
        correlator = RequestCorrelator(timeout=5)
        outcomes = Outcomes()
        correlator.register(1, outcomes.resolve, outcomes.reject)

        correlator.settle(1, error=BridgeError(code=-32000, message="boom"))

        assert outcomes.results == []
        assert [e.message for e in outcomes.errors] == ["boom"]

    def test_unmatched_settle_is_noop(self):
        correlator = RequestCorrelator()
        assert not correlator.settle(99, result={})
        assert not correlator.settle("foreign", result={})

    @pytest.mark.asyncio
    async def test_duplicate_register_rejected(self):
        correlator = RequestCorrelator(timeout=5)
        outcomes = Outcomes()
        correlator.register(1, outcomes.resolve, outcomes.reject)
        with pytest.raises(ValueError, match="already pending"):
            correlator.register(1, outcomes.resolve, outcomes.reject)
        correlator.close()

    @pytest.mark.asyncio
    async def test_timeout_rejects_once_and_removes(self):
        """Test that an unanswered request expires without any inbound traffic."""
        correlator = RequestCorrelator(timeout=0.05)
        outcomes = Outcomes()
        correlator.register(1, outcomes.resolve, outcomes.reject)

        await asyncio.sleep(0.15)

        assert len(outcomes.errors) == 1
        assert outcomes.errors[0].code == REQUEST_TIMEOUT
        assert outcomes.errors[0].is_timeout
        assert 1 not in correlator

    @pytest.mark.asyncio
    async def test_late_response_after_timeout_ignored(self):
        correlator = RequestCorrelator(timeout=0.05)
        outcomes = Outcomes()
        correlator.register(1, outcomes.resolve, outcomes.reject)

        await asyncio.sleep(0.15)
        assert not correlator.settle(1, result={"late": True})

        assert outcomes.results == []
        assert len(outcomes.errors) == 1

    @pytest.mark.asyncio
    async def test_expiry_follows_each_deadline(self):
        """Test that requests expire independently in deadline order."""
        correlator = RequestCorrelator(timeout=0.2)
        first, second = Outcomes(), Outcomes()
        correlator.register(1, first.resolve, first.reject)
        await asyncio.sleep(0.1)
        correlator.register(2, second.resolve, second.reject)

        await asyncio.sleep(0.15)
        assert len(first.errors) == 1
        assert second.errors == []
        assert correlator.pending_ids == [2]

        await asyncio.sleep(0.15)
        assert len(second.errors) == 1
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_settled_request_never_times_out(self):
        correlator = RequestCorrelator(timeout=0.05)
        outcomes = Outcomes()
        correlator.register(1, outcomes.resolve, outcomes.reject)
        correlator.settle(1, result={})

        await asyncio.sleep(0.1)

        assert outcomes.results == [{}]
        assert outcomes.errors == []

    @pytest.mark.asyncio
    async def test_discard_drops_without_settling(self):
        correlator = RequestCorrelator(timeout=0.05)
        outcomes = Outcomes()
        correlator.register(1, outcomes.resolve, outcomes.reject)

        assert correlator.discard(1) is not None
        await asyncio.sleep(0.1)

        assert outcomes.results == []
        assert outcomes.errors == []

    @pytest.mark.asyncio
    async def test_close_keeps_pending(self):
        correlator = RequestCorrelator(timeout=0.05)
        outcomes = Outcomes()
        correlator.register(1, outcomes.resolve, outcomes.reject)

        correlator.close()
        await asyncio.sleep(0.1)

        assert correlator.pending_ids == [1]
        assert outcomes.errors == []

    @pytest.mark.asyncio
    async def test_raising_reject_does_not_stop_expiry(self):
        """Test that a failing timeout callback leaves later requests expiring."""
        correlator = RequestCorrelator(timeout=0.05)
        later = Outcomes()

        def broken_reject(error):
            raise RuntimeError("caller blew up")

        correlator.register(1, Outcomes().resolve, broken_reject)
        await asyncio.sleep(0.01)
        correlator.register(2, later.resolve, later.reject)

        await asyncio.sleep(0.3)

        assert len(later.errors) == 1
        assert later.errors[0].is_timeout
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_raising_resolve_is_contained(self):
        correlator = RequestCorrelator(timeout=0.05)
        other = Outcomes()

        def broken_resolve(result):
            raise RuntimeError("caller blew up")

        correlator.register(1, broken_resolve, Outcomes().reject)
        correlator.register(2, other.resolve, other.reject)

        assert correlator.settle(1, result={})
        assert 1 not in correlator

        await asyncio.sleep(0.15)
        assert len(other.errors) == 1
