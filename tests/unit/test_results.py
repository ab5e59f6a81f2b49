"""
Unit tests for the per-tick result types.
"""

from proof_orchestrator.shared.results import (
    AggDerivation,
    DispatchOutcome,
    ReconciliationSummary,
    SpanBatchSummary,
)


class TestReconciliationSummary:
    """Tests for ReconciliationSummary."""

    def test_defaults(self):
        summary = ReconciliationSummary()
        assert summary.checked == 0
        assert summary.timed_out == []

    def test_timed_out_lists_are_independent(self):
        first = ReconciliationSummary()
        second = ReconciliationSummary()
        first.timed_out.append(1)
        assert second.timed_out == []

    def test_to_dict(self):
        summary = ReconciliationSummary(
            checked=3, fulfilled=1, retried=1, split=1, timed_out=[7], stalled=[9]
        )
        assert summary.to_dict() == {
            "checked": 3,
            "fulfilled": 1,
            "retried": 1,
            "split": 1,
            "pending": 0,
            "timed_out": [7],
            "stalled": [9],
        }


class TestAggDerivation:
    """Tests for AggDerivation."""

    def test_blocks_to_prove(self):
        derivation = AggDerivation(latest_proven_block=100, next_required_block=250)
        assert derivation.blocks_to_prove == 150
        assert derivation.created is False
        assert derivation.end_block is None


class TestSpanBatchSummary:
    """Tests for SpanBatchSummary."""

    def test_count(self):
        summary = SpanBatchSummary(from_block=0, finalized_block=500)
        summary.created.append({"id": 1, "start": 0, "end": 100})
        assert summary.count == 1


class TestDispatchOutcome:
    """Tests for DispatchOutcome."""

    def test_values(self):
        assert {o.value for o in DispatchOutcome} == {
            "idle",
            "checkpointed",
            "throttled",
            "dispatched",
        }
