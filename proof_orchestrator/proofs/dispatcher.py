"""
Dispatch loop: hand the next unrequested proof to the proving backend.

Each tick looks at exactly one candidate. AGG requests are first anchored
to an L1 block and only dispatched on a later tick, once the checkpoint is
persisted. SPAN requests pass through admission control. The submission
itself runs in the SubmissionPool so the tick returns without waiting for
the backend.
"""

from typing import TYPE_CHECKING

from proof_orchestrator.proofs.admission import check_admission
from proof_orchestrator.proofs.retry_policy import retry_request
from proof_orchestrator.proofs.tasks import SubmissionPoolFull, submission_task_name
from proof_orchestrator.proofs.types import (
    FailureReason,
    FulfilledMock,
    ProofRequest,
    ProofStatusResponse,
    ProofType,
    RequestStatus,
    SubmissionResult,
    Submitted,
)
from proof_orchestrator.shared.exceptions import (
    InvalidTransitionException,
    MalformedResponseException,
    ProverException,
    StoreException,
)
from proof_orchestrator.shared.results import DispatchOutcome

if TYPE_CHECKING:
    from proof_orchestrator.proofs.context import OrchestratorContext

# Failures that happen before the backend accepted the request; they all
# lead to a same-range retry. StoreException covers missing span coverage
# and read errors while collecting AGG subproofs.
SUBMISSION_FAILURES = (
    ProverException,
    MalformedResponseException,
    StoreException,
    ValueError,
)


async def request_queued_proofs(ctx: "OrchestratorContext") -> DispatchOutcome:
    """
    Run one dispatch tick.

    Returns:
        DispatchOutcome describing what happened

    Raises:
        StoreException: store failures abort the tick
        ChainReadException: if the L1 checkpoint cannot be read
    """
    log = ctx.logger
    request = ctx.store.get_next_unrequested_proof()
    if request is None:
        return DispatchOutcome.IDLE

    if request.type == ProofType.AGG:
        if not request.is_checkpointed:
            l1_number, l1_hash = await ctx.chain.checkpoint_l1_block()
            ctx.store.add_l1_block_info_to_agg_request(
                request.start_block, request.end_block, l1_number, l1_hash
            )
            log.info(
                "Checkpointed AGG request %s [%s, %s] to L1 block %s, "
                "dispatching next tick",
                request.id,
                request.start_block,
                request.end_block,
                l1_number,
            )
            return DispatchOutcome.CHECKPOINTED
        log.info("Found AGG request %s with checkpointed L1 block info", request.id)

    if not ctx.pool.has_capacity():
        log.info(
            "Submission pool full (%d pending), waiting for next cycle",
            ctx.pool.pending,
        )
        return DispatchOutcome.THROTTLED

    if request.type == ProofType.SPAN:
        witnessgen = ctx.store.get_count_by_statuses(RequestStatus.WITNESSGEN)
        proving = ctx.store.get_count_by_statuses(RequestStatus.PROVING)
        decision = check_admission(
            witnessgen, proving, ctx.config.max_concurrent_proof_requests
        )
        if not decision:
            log.info("%s, waiting for next cycle", decision.reason)
            return DispatchOutcome.THROTTLED

        # Re-checked atomically with the transition.
        reserved = ctx.store.reserve_witnessgen(
            request.id, ctx.config.max_concurrent_proof_requests
        )
        if not reserved:
            log.info("Admission lost to a concurrent dispatch, waiting for next cycle")
            return DispatchOutcome.THROTTLED
    else:
        ctx.store.update_status(request.id, RequestStatus.WITNESSGEN)

    log.info(
        "Requesting %s proof [%s, %s] from server, request id %s",
        request.type.value,
        request.start_block,
        request.end_block,
        request.id,
    )
    try:
        ctx.pool.submit(
            submit_proof(ctx, request),
            name=submission_task_name(request),
        )
    except SubmissionPoolFull:
        # Unreachable while has_capacity() is checked above on the same loop.
        retry_request(ctx.store, request, ProofStatusResponse.empty())
        raise
    return DispatchOutcome.DISPATCHED


async def _request_from_backend(
    ctx: "OrchestratorContext", request: ProofRequest
) -> SubmissionResult:
    if request.type == ProofType.AGG:
        subproofs = ctx.store.get_consecutive_span_proofs(
            request.start_block, request.end_block
        )
        return await ctx.prover.request_agg_proof(
            [span.proof or b"" for span in subproofs], request.l1_block_hash
        )
    return await ctx.prover.request_span_proof(
        request.start_block, request.end_block
    )


async def submit_proof(ctx: "OrchestratorContext", request: ProofRequest) -> None:
    """
    Submit a WITNESSGEN request and record the backend's answer.

    Submission failures are handed to the retry policy with an empty status
    (same-range retry). If recording an accepted submission fails, the
    request is retried the same way so it never stays in WITNESSGEN.
    A transition the store refuses (InvalidTransitionException) is not
    retried; it propagates to the pool, which logs it.
    """
    try:
        result = await _request_from_backend(ctx, request)
    except SUBMISSION_FAILURES as e:
        ctx.logger.error(
            "Witness generation request failed for %s request %s [%s, %s] (%s): %s",
            request.type.value,
            request.id,
            request.start_block,
            request.end_block,
            FailureReason.SUBMISSION_FAILED.value,
            e,
        )
        retry_request(ctx.store, request, ProofStatusResponse.empty())
        return

    try:
        _record_submission(ctx, request, result)
    except InvalidTransitionException:
        raise
    except StoreException as e:
        current = ctx.store.get(request.id)
        if current is None or current.status.is_terminal:
            raise
        ctx.logger.error(
            "Could not record submission for %s request %s [%s, %s], retrying: %s",
            request.type.value,
            request.id,
            request.start_block,
            request.end_block,
            e,
        )
        retry_request(ctx.store, current, ProofStatusResponse.empty())


def _record_submission(
    ctx: "OrchestratorContext", request: ProofRequest, result: SubmissionResult
) -> None:
    # add_fulfilled_proof requires PROVING, so mock proofs pass through it too.
    ctx.store.update_status(request.id, RequestStatus.PROVING)

    match result:
        case Submitted(prover_request_id=proof_id):
            ctx.store.set_prover_request_id(request.id, proof_id)
            ctx.logger.info(
                "Request %s is proving as backend proof %s", request.id, proof_id
            )
        case FulfilledMock(proof=proof):
            ctx.store.add_fulfilled_proof(request.id, proof)
            ctx.logger.info(
                "Request %s completed with a mock proof (%d bytes)",
                request.id,
                len(proof),
            )
