"""
Periodic driver for the proposer loops.

Each loop runs on its own asyncio timer. An exception from one tick is
logged and the timer carries on with the next tick; the other loops are
unaffected.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from proof_orchestrator.proofs.aggregator import (
    derive_agg_proofs,
    derive_new_span_batches,
)
from proof_orchestrator.proofs.dispatcher import request_queued_proofs
from proof_orchestrator.proofs.reconciler import process_pending_proofs

if TYPE_CHECKING:
    from proof_orchestrator.proofs.context import OrchestratorContext

LoopFn = Callable[["OrchestratorContext"], Awaitable[Any]]

DEFAULT_LOOPS: Dict[str, LoopFn] = {
    "process_pending_proofs": process_pending_proofs,
    "derive_new_span_batches": derive_new_span_batches,
    "derive_agg_proofs": derive_agg_proofs,
    "request_queued_proofs": request_queued_proofs,
}


class ProposerDriver:
    """
    Runs the proposer loops until stopped.

    Args:
        ctx: Orchestrator context shared by every loop
        interval: Seconds between ticks (defaults to config.poll_interval)
        loops: Loop functions by name (defaults to all four proposer loops)
    """

    def __init__(
        self,
        ctx: "OrchestratorContext",
        interval: Optional[float] = None,
        loops: Optional[Dict[str, LoopFn]] = None,
    ):
        self.ctx = ctx
        self.interval = ctx.config.poll_interval if interval is None else interval
        self.loops = dict(DEFAULT_LOOPS if loops is None else loops)
        self.tick_errors: Dict[str, int] = {name: 0 for name in self.loops}
        self._stop = asyncio.Event()

    def stop(self) -> None:
        """Ask every timer to exit after its current tick."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    async def run_once(self, name: str) -> Any:
        """Run a single tick of a loop, logging instead of raising."""
        try:
            return await self.loops[name](self.ctx)
        except Exception as e:
            self.tick_errors[name] += 1
            self.ctx.logger.error(
                "%s tick failed: %s", name, e, exc_info=True
            )
            return None

    async def _periodic(self, name: str) -> None:
        while not self._stop.is_set():
            await self.run_once(name)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    async def start(self, validate: bool = True) -> None:
        """
        Validate the backend config, then run every loop until stop().

        The submission pool is drained and clients are closed on exit.

        Raises:
            ConfigValidationException: if the backend config does not match
            ProverUnavailableException: if the backend never answered
        """
        try:
            if validate:
                await self.ctx.prover.validate_config(self.ctx.config.l2oo_address)
                self.ctx.logger.info("Proving backend config validated")

            self.ctx.logger.info(
                "Starting loops %s every %ss", ", ".join(self.loops), self.interval
            )
            tasks: List[asyncio.Task] = [
                asyncio.create_task(self._periodic(name), name=name)
                for name in self.loops
            ]
            await asyncio.gather(*tasks)
        finally:
            self.ctx.logger.info("Shutting down, draining in-flight submissions")
            await self.ctx.aclose()
