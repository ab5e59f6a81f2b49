"""
Derivation of new proof requests from on-chain state.

derive_agg_proofs queues an AGG request once completed span proofs reach the
block the output oracle expects next. derive_new_span_batches queues fresh
SPAN requests for finalized L2 blocks that no request covers yet.
Neither function writes to the chain; chain read errors propagate.
"""

from typing import TYPE_CHECKING

from proof_orchestrator.proofs.types import ProofType
from proof_orchestrator.shared.results import AggDerivation, SpanBatchSummary

if TYPE_CHECKING:
    from proof_orchestrator.proofs.context import OrchestratorContext


async def derive_agg_proofs(ctx: "OrchestratorContext") -> AggDerivation:
    """
    Queue an AGG request from the latest proven block if span coverage allows.

    The oracle's next block number is the minimum block the aggregation must
    reach; the store extends it to the end of the contiguous span run.

    Raises:
        ChainReadException: if the oracle cannot be read
        StoreException: if the store fails
    """
    latest = await ctx.chain.latest_block_number()
    min_to = await ctx.chain.next_block_number()
    derivation = AggDerivation(latest_proven_block=latest, next_required_block=min_to)

    ctx.logger.info(
        "Checking for AGG proof, blocks to prove %s, latest proven block %s, "
        "min block to aggregate to %s",
        derivation.blocks_to_prove,
        latest,
        min_to,
    )
    created, end = ctx.store.try_create_agg_proof_from_span_proofs(latest, min_to)
    if created:
        derivation.created = True
        derivation.end_block = end
        ctx.logger.info("Created new AGG proof request [%s, %s]", latest, end)
    return derivation


async def derive_new_span_batches(ctx: "OrchestratorContext") -> SpanBatchSummary:
    """
    Queue SPAN requests of max_block_range_per_span_proof blocks each.

    Starts after the highest block already covered by a live SPAN request
    (or the latest proven block, whichever is higher) and stops before the
    first batch that would pass the finalized L2 head. Partial batches are
    left for a later tick.

    Raises:
        ChainReadException: if the oracle or L2 head cannot be read
        StoreException: if the store fails
    """
    latest = await ctx.chain.latest_block_number()
    finalized = await ctx.chain.l2_finalized_block_number()

    covered = ctx.store.get_max_span_end_block()
    start = latest if covered is None else max(latest, covered)
    summary = SpanBatchSummary(from_block=start, finalized_block=finalized)

    width = ctx.config.max_block_range_per_span_proof
    while start + width <= finalized:
        request = ctx.store.new_entry(ProofType.SPAN, start, start + width)
        summary.created.append(
            {"id": request.id, "start": request.start_block, "end": request.end_block}
        )
        start += width

    if summary.created:
        ctx.logger.info(
            "Queued %d span proof requests from block %s up to finalized block %s",
            summary.count,
            summary.from_block,
            finalized,
        )
    return summary
