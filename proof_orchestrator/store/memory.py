"""In-process request store, used by tests and mock deployments."""

import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from proof_orchestrator.proofs.admission import check_admission
from proof_orchestrator.proofs.types import (
    ProofRequest,
    ProofType,
    RequestStatus,
)
from proof_orchestrator.shared.exceptions import RequestNotFoundException
from proof_orchestrator.store.base import (
    check_fulfillable,
    check_range,
    check_transition,
    consecutive_span_chain,
    dispatch_order,
    max_contiguous_span_end,
)


class InMemoryRequestStore:
    """
    RequestStore kept in a dict.

    A single lock serializes every operation, which makes each of them
    atomic in the same way a database transaction would. Callers receive
    copies, never the stored objects.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.RLock()
        self._requests: Dict[int, ProofRequest] = {}
        self._next_id = 1

    def _require(self, request_id: int) -> ProofRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise RequestNotFoundException(f"No proof request with id {request_id}")
        return request

    def _count(self, *statuses: RequestStatus) -> int:
        return sum(1 for r in self._requests.values() if r.status in statuses)

    def _set_status(self, request: ProofRequest, status: RequestStatus) -> None:
        request.status = status
        if status == RequestStatus.WITNESSGEN:
            request.proof_request_time = int(self._clock())

    def get(self, request_id: int) -> Optional[ProofRequest]:
        with self._lock:
            request = self._requests.get(request_id)
            return replace(request) if request is not None else None

    def all(self) -> List[ProofRequest]:
        with self._lock:
            return [replace(r) for r in sorted(self._requests.values(), key=lambda r: r.id)]

    def get_all_with_status(self, status: RequestStatus) -> List[ProofRequest]:
        with self._lock:
            return [
                replace(r)
                for r in sorted(self._requests.values(), key=lambda r: r.id)
                if r.status == status
            ]

    def get_next_unrequested_proof(self) -> Optional[ProofRequest]:
        with self._lock:
            candidates = [
                r
                for r in self._requests.values()
                if r.status == RequestStatus.UNREQUESTED
            ]
            if not candidates:
                return None
            return replace(min(candidates, key=dispatch_order))

    def get_count_by_statuses(self, *statuses: RequestStatus) -> int:
        with self._lock:
            return self._count(*statuses)

    def new_entry(
        self, proof_type: ProofType, start_block: int, end_block: int
    ) -> ProofRequest:
        check_range(start_block, end_block)
        with self._lock:
            request = ProofRequest(
                id=self._next_id,
                type=ProofType(proof_type),
                start_block=start_block,
                end_block=end_block,
            )
            self._requests[request.id] = request
            self._next_id += 1
            return replace(request)

    def update_status(self, request_id: int, status: RequestStatus) -> None:
        with self._lock:
            request = self._require(request_id)
            check_transition(request, status)
            self._set_status(request, status)

    def reserve_witnessgen(
        self, request_id: int, max_concurrent_proof_requests: int
    ) -> bool:
        with self._lock:
            request = self._require(request_id)
            check_transition(request, RequestStatus.WITNESSGEN)
            decision = check_admission(
                self._count(RequestStatus.WITNESSGEN),
                self._count(RequestStatus.PROVING),
                max_concurrent_proof_requests,
            )
            if not decision:
                return False
            self._set_status(request, RequestStatus.WITNESSGEN)
            return True

    def add_fulfilled_proof(self, request_id: int, proof: bytes) -> None:
        with self._lock:
            request = self._require(request_id)
            check_fulfillable(request)
            request.proof = bytes(proof)
            request.status = RequestStatus.COMPLETE

    def set_prover_request_id(
        self, request_id: int, prover_request_id: str
    ) -> None:
        with self._lock:
            self._require(request_id).prover_request_id = prover_request_id

    def _complete_spans(self) -> List[ProofRequest]:
        return [
            r
            for r in self._requests.values()
            if r.type == ProofType.SPAN and r.status == RequestStatus.COMPLETE
        ]

    def get_consecutive_span_proofs(
        self, start_block: int, end_block: int
    ) -> List[ProofRequest]:
        with self._lock:
            chain = consecutive_span_chain(
                self._complete_spans(), start_block, end_block
            )
            return [replace(r) for r in chain]

    def try_create_agg_proof_from_span_proofs(
        self, from_block: int, to_block: int
    ) -> Tuple[bool, int]:
        with self._lock:
            actual_end = max_contiguous_span_end(
                self._complete_spans(), from_block
            )
            if actual_end is None or actual_end < to_block:
                return False, 0

            for r in self._requests.values():
                if (
                    r.type == ProofType.AGG
                    and r.status != RequestStatus.FAILED
                    and r.overlaps(from_block, actual_end)
                ):
                    return False, 0

            self.new_entry(ProofType.AGG, from_block, actual_end)
            return True, actual_end

    def add_l1_block_info_to_agg_request(
        self,
        start_block: int,
        end_block: int,
        l1_block_number: int,
        l1_block_hash: str,
    ) -> ProofRequest:
        with self._lock:
            for r in sorted(self._requests.values(), key=lambda r: r.id):
                if (
                    r.type == ProofType.AGG
                    and r.status == RequestStatus.UNREQUESTED
                    and r.start_block == start_block
                    and r.end_block == end_block
                ):
                    r.l1_block_number = l1_block_number
                    r.l1_block_hash = l1_block_hash
                    return replace(r)
            raise RequestNotFoundException(
                f"No unrequested AGG request for [{start_block}, {end_block}]"
            )

    def get_max_span_end_block(self) -> Optional[int]:
        with self._lock:
            ends = [
                r.end_block
                for r in self._requests.values()
                if r.type == ProofType.SPAN and r.status != RequestStatus.FAILED
            ]
            return max(ends) if ends else None

    def close(self) -> None:
        pass
