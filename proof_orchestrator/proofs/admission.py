"""
Admission control for new proof dispatches.

Two independent gates, both evaluated every tick:
1. witness generation is capped at MAX_CONCURRENT_WITNESS_GEN, a physical
   limit of the witness generation server
2. WITNESSGEN + PROVING is capped by the operator's
   max_concurrent_proof_requests

Counts are point-in-time store queries. The store's reserve_witnessgen
re-runs this check inside the same transaction that moves a request to
WITNESSGEN, which closes the window between counting and acting.
"""

from dataclasses import dataclass
from typing import Optional

from proof_orchestrator.shared.constants import MAX_CONCURRENT_WITNESS_GEN


@dataclass(frozen=True)
class AdmissionDecision:
    """Whether a new dispatch may proceed, and if not, why."""

    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


def check_admission(
    witnessgen_count: int,
    proving_count: int,
    max_concurrent_proof_requests: int,
    max_concurrent_witness_gen: int = MAX_CONCURRENT_WITNESS_GEN,
) -> AdmissionDecision:
    """
    Decide whether one more request may enter witness generation.

    Args:
        witnessgen_count: Requests currently in WITNESSGEN
        proving_count: Requests currently in PROVING
        max_concurrent_proof_requests: Operator cap on in-flight requests
        max_concurrent_witness_gen: Witness generation cap

    Returns:
        AdmissionDecision, falsy when either gate trips
    """
    if witnessgen_count >= max_concurrent_witness_gen:
        return AdmissionDecision(
            allowed=False,
            reason=(
                f"max witness generation reached "
                f"({witnessgen_count}/{max_concurrent_witness_gen})"
            ),
        )

    in_flight = witnessgen_count + proving_count
    if in_flight >= max_concurrent_proof_requests:
        return AdmissionDecision(
            allowed=False,
            reason=(
                f"max concurrent proof requests reached "
                f"({in_flight}/{max_concurrent_proof_requests})"
            ),
        )

    return AdmissionDecision(allowed=True)
