"""
Reconciliation loop: poll every PROVING request and settle it.

A fulfilled proof is committed. A request that is unclaimed, or older than
the configured proof timeout, goes through the retry/split policy. Anything
else is left for a later tick. A failed status query aborts the whole tick.

WITNESSGEN requests whose submission is no longer in flight (the process
restarted, or recording the result failed) are retried once they are older
than the proof timeout, so they stop holding admission slots.
"""

from typing import TYPE_CHECKING

from proof_orchestrator.proofs.retry_policy import retry_request
from proof_orchestrator.proofs.tasks import submission_task_name
from proof_orchestrator.proofs.types import (
    FailureReason,
    ProofRequest,
    ProofStatusResponse,
    RequestStatus,
    RetryAction,
)
from proof_orchestrator.shared.results import ReconciliationSummary

if TYPE_CHECKING:
    from proof_orchestrator.proofs.context import OrchestratorContext


def is_timed_out(request: ProofRequest, now: int, proof_timeout: int) -> bool:
    if request.proof_request_time is None:
        return False
    return now > request.proof_request_time + proof_timeout


def _retry(
    ctx: "OrchestratorContext",
    request: ProofRequest,
    status: ProofStatusResponse,
    summary: ReconciliationSummary,
) -> None:
    outcome = retry_request(ctx.store, request, status)
    if outcome.action == RetryAction.SPLIT:
        summary.split += 1
    else:
        summary.retried += 1


async def process_pending_proofs(ctx: "OrchestratorContext") -> ReconciliationSummary:
    """
    Run one reconciliation tick.

    Returns:
        ReconciliationSummary of what was settled

    Raises:
        ProverException: if a status query fails (the tick is aborted)
        MalformedResponseException: if a status response cannot be decoded
        StoreException: if a store mutation fails
    """
    log = ctx.logger
    summary = ReconciliationSummary()
    now = ctx.now()
    timeout = ctx.config.proof_timeout

    for request in ctx.store.get_all_with_status(RequestStatus.WITNESSGEN):
        if ctx.pool.is_running(submission_task_name(request)):
            continue
        if is_timed_out(request, now, timeout):
            log.info(
                "Witness generation stalled with no submission in flight, request %s",
                request.id,
            )
            summary.stalled.append(request.id)
            _retry(ctx, request, ProofStatusResponse.empty(), summary)

    for request in ctx.store.get_all_with_status(RequestStatus.PROVING):
        if not request.prover_request_id:
            # Marked PROVING but the backend id was never recorded.
            if is_timed_out(request, now, timeout):
                log.info(
                    "Proof timed out before a prover id was recorded, request %s",
                    request.id,
                )
                summary.timed_out.append(request.id)
                _retry(ctx, request, ProofStatusResponse.empty(), summary)
            else:
                summary.pending += 1
            continue

        summary.checked += 1
        status = await ctx.prover.get_proof_status(request.prover_request_id)

        if status.is_fulfilled:
            log.info(
                "Fulfilled proof %s for request %s",
                request.prover_request_id,
                request.id,
            )
            ctx.store.add_fulfilled_proof(request.id, status.proof)
            summary.fulfilled += 1
            continue

        if is_timed_out(request, now, timeout):
            log.info(
                "Proof timed out, id %s reason %s",
                request.prover_request_id,
                FailureReason.TIMEOUT.value,
            )
            summary.timed_out.append(request.id)
            # A timeout always re-queues the identical range.
            _retry(ctx, request, ProofStatusResponse.empty(), summary)
            continue

        if status.is_unclaimed:
            reason = status.unclaim_description
            log.info(
                "Proof unclaimed, id %s reason %s",
                request.prover_request_id,
                reason.name if reason else FailureReason.UNCLAIMED.value,
            )
            _retry(ctx, request, status, summary)
            continue

        summary.pending += 1

    if summary.checked or summary.timed_out or summary.stalled:
        log.info(f"Reconciliation summary: {summary.to_dict()}")
    return summary
