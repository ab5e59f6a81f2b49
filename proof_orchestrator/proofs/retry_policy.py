"""
Retry/split policy for failed proof requests.

A failed request is marked FAILED and its range is re-queued:
- program execution errors split the range in two, since a narrower range
  needs less memory on the prover
- everything else (timeout, other unclaim reasons, submission failures)
  re-queues the identical range

Either way the replacement ranges cover the failed range exactly.
"""

from typing import TYPE_CHECKING, Tuple

from proof_orchestrator.proofs.types import (
    ProofRequest,
    ProofStatusResponse,
    RequestStatus,
    RetryAction,
    RetryOutcome,
)
from proof_orchestrator.shared.logging import get_logger

if TYPE_CHECKING:
    from proof_orchestrator.store.base import RequestStore

_logger = get_logger(__name__)

# Narrower ranges cannot be split into two non-empty halves.
MIN_SPLIT_WIDTH = 2


def split_range(start: int, end: int) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """
    Split [start, end] at mid = (start + end) // 2.

    The halves share the mid block. For end - start == 1 this yields
    mid == start, i.e. a zero-width first half; callers guard against it.
    """
    mid = (start + end) // 2
    return (start, mid), (mid, end)


def can_split(request: ProofRequest) -> bool:
    return request.width >= MIN_SPLIT_WIDTH


def retry_request(
    store: "RequestStore",
    request: ProofRequest,
    status: ProofStatusResponse,
) -> RetryOutcome:
    """
    Mark a request FAILED and queue its replacement(s).

    Args:
        store: Request store
        request: The failing request
        status: Backend status for the failure; ProofStatusResponse.empty()
                when the backend never classified it

    Returns:
        RetryOutcome with the action taken and the new UNREQUESTED requests

    Raises:
        StoreException: if any store mutation fails
    """
    store.update_status(request.id, RequestStatus.FAILED)
    failed = store.get(request.id) or request

    if status.is_program_execution_error and can_split(request):
        (first_start, first_end), (second_start, second_end) = split_range(
            request.start_block, request.end_block
        )
        replacements = [
            store.new_entry(request.type, first_start, first_end),
            store.new_entry(request.type, second_start, second_end),
        ]
        _logger.info(
            "Split %s request %s [%s, %s] into [%s, %s] and [%s, %s]",
            request.type.value,
            request.id,
            request.start_block,
            request.end_block,
            first_start,
            first_end,
            second_start,
            second_end,
        )
        return RetryOutcome(
            failed=failed, action=RetryAction.SPLIT, replacements=replacements
        )

    if status.is_program_execution_error:
        _logger.warning(
            "Request %s [%s, %s] is too narrow to split, retrying the same range",
            request.id,
            request.start_block,
            request.end_block,
        )

    replacement = store.new_entry(
        request.type, request.start_block, request.end_block
    )
    _logger.info(
        "Retrying %s request %s [%s, %s] as request %s",
        request.type.value,
        request.id,
        request.start_block,
        request.end_block,
        replacement.id,
    )
    return RetryOutcome(
        failed=failed, action=RetryAction.RETRY, replacements=[replacement]
    )
