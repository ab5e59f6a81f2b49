"""
Request store contract.

Defines the Protocol every store implementation must follow, plus the
life-cycle rules both implementations share: the allowed status
transitions, the dispatch order of unrequested proofs and the walk over
completed span proofs.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from proof_orchestrator.proofs.types import (
    ProofRequest,
    ProofType,
    RequestStatus,
)
from proof_orchestrator.shared.exceptions import (
    IncompleteCoverageException,
    InvalidTransitionException,
)

# COMPLETE is only reachable through add_fulfilled_proof.
ALLOWED_TRANSITIONS: Dict[RequestStatus, Tuple[RequestStatus, ...]] = {
    RequestStatus.UNREQUESTED: (RequestStatus.WITNESSGEN, RequestStatus.FAILED),
    RequestStatus.WITNESSGEN: (RequestStatus.PROVING, RequestStatus.FAILED),
    RequestStatus.PROVING: (RequestStatus.FAILED,),
    RequestStatus.COMPLETE: (),
    RequestStatus.FAILED: (),
}


class RequestStore(Protocol):
    """
    Protocol for proof request storage.

    Every mutation goes through the typed operations below; none of the
    orchestrator components keep request state in memory between ticks.
    """

    def get(self, request_id: int) -> Optional[ProofRequest]:
        """Return one request by id, or None."""
        ...

    def get_all_with_status(self, status: RequestStatus) -> List[ProofRequest]:
        """Return every request currently in the given status."""
        ...

    def get_next_unrequested_proof(self) -> Optional[ProofRequest]:
        """
        Return the next UNREQUESTED request to dispatch, or None.

        Order is deterministic: AGG requests first (their span coverage is
        already satisfied), then lowest start block, then lowest id.
        """
        ...

    def get_count_by_statuses(self, *statuses: RequestStatus) -> int:
        """Count requests in any of the given statuses."""
        ...

    def new_entry(
        self, proof_type: ProofType, start_block: int, end_block: int
    ) -> ProofRequest:
        """Insert a new UNREQUESTED request and return it."""
        ...

    def update_status(self, request_id: int, status: RequestStatus) -> None:
        """
        Transition a request to a new status.

        Raises:
            InvalidTransitionException: if the life-cycle forbids it
            RequestNotFoundException: if the request does not exist
        """
        ...

    def reserve_witnessgen(
        self, request_id: int, max_concurrent_proof_requests: int
    ) -> bool:
        """
        Atomically re-check admission and move UNREQUESTED -> WITNESSGEN.

        Returns:
            False when admission is refused; the request is left untouched.
        """
        ...

    def add_fulfilled_proof(self, request_id: int, proof: bytes) -> None:
        """
        Store the proof and mark the request COMPLETE.

        Raises:
            InvalidTransitionException: if the request is not PROVING
        """
        ...

    def set_prover_request_id(
        self, request_id: int, prover_request_id: str
    ) -> None:
        """Record the backend's handle for a request."""
        ...

    def get_consecutive_span_proofs(
        self, start_block: int, end_block: int
    ) -> List[ProofRequest]:
        """
        Return COMPLETE span proofs that tile [start_block, end_block].

        Raises:
            IncompleteCoverageException: if there is any gap
        """
        ...

    def try_create_agg_proof_from_span_proofs(
        self, from_block: int, to_block: int
    ) -> Tuple[bool, int]:
        """
        Queue an AGG request over the contiguous span run starting at from_block.

        Returns:
            (created, actual_end); (False, 0) when the run does not reach
            to_block or an AGG request already covers the range.
        """
        ...

    def add_l1_block_info_to_agg_request(
        self,
        start_block: int,
        end_block: int,
        l1_block_number: int,
        l1_block_hash: str,
    ) -> ProofRequest:
        """Checkpoint an UNREQUESTED AGG request to an L1 block."""
        ...

    def get_max_span_end_block(self) -> Optional[int]:
        """Highest end block over SPAN requests that have not failed."""
        ...

    def close(self) -> None:
        """Release any underlying resources."""
        ...


# =============================================================================
# SHARED RULES
# =============================================================================


def check_transition(
    request: ProofRequest, new_status: RequestStatus
) -> None:
    """Raise unless request.status -> new_status is an allowed transition."""
    if new_status not in ALLOWED_TRANSITIONS[request.status]:
        raise InvalidTransitionException(
            f"Request {request.id} cannot move from "
            f"{request.status.value} to {new_status.value}"
        )


def check_fulfillable(request: ProofRequest) -> None:
    """Raise unless the request may receive its proof."""
    if request.status != RequestStatus.PROVING:
        raise InvalidTransitionException(
            f"Request {request.id} is {request.status.value}, "
            f"only PROVING requests can be fulfilled"
        )


def check_range(start_block: int, end_block: int) -> None:
    if start_block < 0 or end_block < 0:
        raise ValueError("Block numbers must be non-negative")
    if start_block >= end_block:
        raise ValueError(
            f"start block must be less than end block, got [{start_block}, {end_block}]"
        )


def dispatch_order(request: ProofRequest) -> Tuple[int, int, int]:
    """Sort key for get_next_unrequested_proof."""
    return (
        0 if request.type == ProofType.AGG else 1,
        request.start_block,
        request.id,
    )


def _index_by_start(
    spans: Iterable[ProofRequest],
) -> Dict[int, List[ProofRequest]]:
    by_start: Dict[int, List[ProofRequest]] = defaultdict(list)
    for span in spans:
        by_start[span.start_block].append(span)
    return by_start


def consecutive_span_chain(
    spans: Iterable[ProofRequest], start_block: int, end_block: int
) -> List[ProofRequest]:
    """
    Pick a chain of completed span proofs tiling [start_block, end_block].

    Walks backwards from end_block so a dead end on a longer proof never
    hides a valid chain through shorter ones. Ties go to the longest proof,
    then the lowest id.
    """
    by_start = _index_by_start(spans)
    next_hop: Dict[int, Optional[ProofRequest]] = {end_block: None}

    for position in sorted(by_start, reverse=True):
        if position < start_block or position >= end_block:
            continue
        candidates = sorted(
            by_start[position], key=lambda r: (-r.end_block, r.id)
        )
        for candidate in candidates:
            if candidate.end_block <= end_block and candidate.end_block in next_hop:
                next_hop[position] = candidate
                break

    if start_block not in next_hop or start_block == end_block:
        raise IncompleteCoverageException(
            f"Completed span proofs do not cover [{start_block}, {end_block}]"
        )

    chain: List[ProofRequest] = []
    position = start_block
    while position != end_block:
        hop = next_hop[position]
        chain.append(hop)
        position = hop.end_block
    return chain


def max_contiguous_span_end(
    spans: Iterable[ProofRequest], start_block: int
) -> Optional[int]:
    """End of the longest contiguous run of span proofs from start_block."""
    by_start = _index_by_start(spans)
    reachable = {start_block}

    for position in sorted(by_start):
        if position in reachable:
            reachable.update(span.end_block for span in by_start[position])

    best = max(reachable)
    return best if best > start_block else None
