"""
Unit tests for the admission controller.
"""

import pytest

from proof_orchestrator.proofs.admission import AdmissionDecision, check_admission
from proof_orchestrator.shared.constants import MAX_CONCURRENT_WITNESS_GEN


class TestCheckAdmission:
    """Tests for check_admission."""

    def test_allows_when_below_both_caps(self):
        decision = check_admission(0, 0, max_concurrent_proof_requests=10)
        assert decision.allowed is True
        assert decision.reason is None
        assert bool(decision) is True

    def test_witnessgen_cap_is_five(self):
        assert MAX_CONCURRENT_WITNESS_GEN == 5

    def test_blocks_at_witnessgen_cap(self):
        """The witness generation gate trips even with a large overall cap."""
        decision = check_admission(5, 0, max_concurrent_proof_requests=100)
        assert not decision
        assert "max witness generation reached (5/5)" in decision.reason

    def test_blocks_at_in_flight_cap(self):
        decision = check_admission(2, 8, max_concurrent_proof_requests=10)
        assert not decision
        assert "max concurrent proof requests reached (10/10)" in decision.reason

    def test_allows_one_below_in_flight_cap(self):
        assert check_admission(2, 7, max_concurrent_proof_requests=10)

    def test_witnessgen_gate_checked_first(self):
        decision = check_admission(5, 10, max_concurrent_proof_requests=10)
        assert decision.reason.startswith("max witness generation")

    @pytest.mark.parametrize(
        "witnessgen,proving,cap,expected",
        [
            (0, 0, 1, True),
            (0, 1, 1, False),
            (4, 0, 5, True),
            (4, 1, 5, False),
            (4, 0, 4, False),
        ],
    )
    def test_boundaries(self, witnessgen, proving, cap, expected):
        assert bool(check_admission(witnessgen, proving, cap)) is expected

    def test_custom_witnessgen_cap(self):
        assert not check_admission(
            2, 0, max_concurrent_proof_requests=10, max_concurrent_witness_gen=2
        )


class TestAdmissionDecision:
    """Tests for the AdmissionDecision value."""

    def test_is_falsy_when_denied(self):
        assert not AdmissionDecision(allowed=False, reason="full")

    def test_is_frozen(self):
        decision = AdmissionDecision(allowed=True)
        with pytest.raises(AttributeError):
            decision.allowed = False
