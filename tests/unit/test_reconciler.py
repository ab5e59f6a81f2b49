"""
Unit tests for the reconciliation loop.
"""

import asyncio
import base64

import httpx
import pytest

from proof_orchestrator.proofs.reconciler import is_timed_out, process_pending_proofs
from proof_orchestrator.proofs.tasks import submission_task_name
from proof_orchestrator.proofs.types import ProofType, RequestStatus
from proof_orchestrator.shared.exceptions import (
    InvalidTransitionException,
    MalformedResponseException,
    ProverTransportException,
)


def _proving(store, start, end, proof_id="p-1", proof_type=ProofType.SPAN):
    request = store.new_entry(proof_type, start, end)
    store.update_status(request.id, RequestStatus.WITNESSGEN)
    store.update_status(request.id, RequestStatus.PROVING)
    if proof_id:
        store.set_prover_request_id(request.id, proof_id)
    return store.get(request.id)


class TestIsTimedOut:
    """Tests for is_timed_out."""

    def test_strictly_greater_than_timeout(self, memory_store, clock):
        request = _proving(memory_store, 0, 10)
        start = int(clock.now)
        assert not is_timed_out(request, start + 3600, 3600)
        assert is_timed_out(request, start + 3601, 3600)

    def test_never_dispatched(self, memory_store):
        request = memory_store.new_entry(ProofType.SPAN, 0, 10)
        assert not is_timed_out(request, 10**12, 1)


class TestProcessPendingProofs:
    """Tests for process_pending_proofs."""

    @pytest.mark.asyncio
    async def test_nothing_to_do(self, make_ctx, fake_prover):
        summary = await process_pending_proofs(make_ctx())
        assert summary.checked == 0
        assert fake_prover.calls == []

    @pytest.mark.asyncio
    async def test_fulfilled_is_committed(self, make_ctx, memory_store, fake_prover):
        request = _proving(memory_store, 100, 200)
        fake_prover.reply(
            "/status",
            {"status": "PROOF_FULFILLED", "proof": base64.b64encode(b"P").decode()},
        )

        summary = await process_pending_proofs(make_ctx())

        stored = memory_store.get(request.id)
        assert stored.status == RequestStatus.COMPLETE
        assert stored.proof == b"P"
        assert summary.fulfilled == 1
        assert fake_prover.calls[0].url.path == "/status/p-1"

    @pytest.mark.asyncio
    async def test_fulfilled_wins_over_timeout(
        self, make_ctx, memory_store, fake_prover, clock
    ):
        request = _proving(memory_store, 100, 200)
        clock.advance(10_000)
        fake_prover.reply("/status", {"status": "PROOF_FULFILLED", "proof": ""})

        await process_pending_proofs(make_ctx())

        assert memory_store.get(request.id).status == RequestStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_in_progress_is_left_alone(self, make_ctx, memory_store, fake_prover):
        request = _proving(memory_store, 100, 200)
        fake_prover.reply("/status", {"status": "PROOF_CLAIMED"})

        summary = await process_pending_proofs(make_ctx())

        assert memory_store.get(request.id).status == RequestStatus.PROVING
        assert summary.pending == 1

    @pytest.mark.asyncio
    async def test_unclaimed_program_error_splits(
        self, make_ctx, memory_store, fake_prover
    ):
        request = _proving(memory_store, 100, 200)
        fake_prover.reply(
            "/status",
            {"status": "PROOF_UNCLAIMED", "unclaimDescription": "PROGRAM_EXECUTION_ERROR"},
        )

        summary = await process_pending_proofs(make_ctx())

        assert memory_store.get(request.id).status == RequestStatus.FAILED
        new = memory_store.get_all_with_status(RequestStatus.UNREQUESTED)
        assert [(r.start_block, r.end_block) for r in new] == [(100, 150), (150, 200)]
        assert summary.split == 1

    @pytest.mark.asyncio
    async def test_unclaimed_other_retries(self, make_ctx, memory_store, fake_prover):
        _proving(memory_store, 100, 200)
        fake_prover.reply(
            "/status", {"status": "PROOF_UNCLAIMED", "unclaimDescription": "OTHER"}
        )

        summary = await process_pending_proofs(make_ctx())

        new = memory_store.get_all_with_status(RequestStatus.UNREQUESTED)
        assert [(r.start_block, r.end_block) for r in new] == [(100, 200)]
        assert summary.retried == 1

    @pytest.mark.asyncio
    async def test_timeout_retries_same_range_even_on_program_error(
        self, make_ctx, memory_store, fake_prover, clock
    ):
        request = _proving(memory_store, 100, 200)
        clock.advance(3601)
        fake_prover.reply(
            "/status",
            {"status": "PROOF_UNCLAIMED", "unclaimDescription": "PROGRAM_EXECUTION_ERROR"},
        )

        summary = await process_pending_proofs(make_ctx(proof_timeout=3600))

        new = memory_store.get_all_with_status(RequestStatus.UNREQUESTED)
        assert [(r.start_block, r.end_block) for r in new] == [(100, 200)]
        assert summary.timed_out == [request.id]
        assert summary.split == 0

    @pytest.mark.asyncio
    async def test_missing_prover_id_waits_then_times_out(
        self, make_ctx, memory_store, fake_prover, clock
    ):
        request = _proving(memory_store, 100, 200, proof_id=None)
        ctx = make_ctx(proof_timeout=3600)

        summary = await process_pending_proofs(ctx)
        assert summary.pending == 1
        assert memory_store.get(request.id).status == RequestStatus.PROVING

        clock.advance(3601)
        summary = await process_pending_proofs(ctx)
        assert memory_store.get(request.id).status == RequestStatus.FAILED
        assert summary.timed_out == [request.id]
        assert fake_prover.calls == []

    @pytest.mark.asyncio
    async def test_status_error_aborts_tick(self, make_ctx, memory_store, fake_prover):
        first = _proving(memory_store, 100, 200, proof_id="p-1")
        second = _proving(memory_store, 200, 300, proof_id="p-2")

        def handler(request):
            if request.url.path.endswith("p-1"):
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"status": "PROOF_FULFILLED", "proof": ""})

        fake_prover.route("/status", handler)

        with pytest.raises(ProverTransportException):
            await process_pending_proofs(make_ctx())

        assert memory_store.get(first.id).status == RequestStatus.PROVING
        assert memory_store.get(second.id).status == RequestStatus.PROVING

    @pytest.mark.asyncio
    async def test_malformed_status_propagates(self, make_ctx, memory_store, fake_prover):
        _proving(memory_store, 100, 200)
        fake_prover.reply("/status", {"state": "done"})

        with pytest.raises(MalformedResponseException):
            await process_pending_proofs(make_ctx())

    @pytest.mark.asyncio
    async def test_rejected_completion_aborts_tick(
        self, make_ctx, rejecting_store, fake_prover
    ):
        first = _proving(rejecting_store, 100, 200, proof_id="p-1")
        second = _proving(rejecting_store, 200, 300, proof_id="p-2")
        fake_prover.reply(
            "/status",
            {"status": "PROOF_FULFILLED", "proof": base64.b64encode(b"P").decode()},
        )

        with pytest.raises(InvalidTransitionException):
            await process_pending_proofs(make_ctx(store=rejecting_store))

        for request in (first, second):
            stored = rejecting_store.get(request.id)
            assert stored.status == RequestStatus.PROVING
            assert stored.proof is None
        assert rejecting_store.get_next_unrequested_proof() is None
        assert [c.url.path for c in fake_prover.calls] == ["/status/p-1"]


class TestStalledWitnessgen:
    """WITNESSGEN requests left behind without a running submission."""

    @staticmethod
    def _witnessgen(store, start, end):
        request = store.new_entry(ProofType.SPAN, start, end)
        store.update_status(request.id, RequestStatus.WITNESSGEN)
        return store.get(request.id)

    @pytest.mark.asyncio
    async def test_stalled_request_is_retried_after_timeout(
        self, make_ctx, memory_store, fake_prover, clock
    ):
        request = self._witnessgen(memory_store, 100, 200)
        clock.advance(3601)

        summary = await process_pending_proofs(make_ctx(proof_timeout=3600))

        assert memory_store.get(request.id).status == RequestStatus.FAILED
        new = memory_store.get_all_with_status(RequestStatus.UNREQUESTED)
        assert [(r.start_block, r.end_block) for r in new] == [(100, 200)]
        assert summary.stalled == [request.id]
        assert memory_store.get_count_by_statuses(RequestStatus.WITNESSGEN) == 0
        assert fake_prover.calls == []

    @pytest.mark.asyncio
    async def test_recent_request_is_left_alone(self, make_ctx, memory_store, clock):
        request = self._witnessgen(memory_store, 100, 200)
        clock.advance(3600)

        summary = await process_pending_proofs(make_ctx(proof_timeout=3600))

        assert memory_store.get(request.id).status == RequestStatus.WITNESSGEN
        assert summary.stalled == []

    @pytest.mark.asyncio
    async def test_request_with_running_submission_is_left_alone(
        self, make_ctx, memory_store, clock
    ):
        request = self._witnessgen(memory_store, 100, 200)
        ctx = make_ctx(proof_timeout=3600)
        release = asyncio.Event()
        ctx.pool.submit(release.wait(), name=submission_task_name(request))
        clock.advance(10 * 3600)

        summary = await process_pending_proofs(ctx)

        assert memory_store.get(request.id).status == RequestStatus.WITNESSGEN
        assert summary.stalled == []
        release.set()
        await ctx.pool.drain()
