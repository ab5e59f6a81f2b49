"""
Explicit orchestrator context.

Everything a loop needs (config, store, proving client, chain reader,
submission pool, clock, logger) is bundled here, built once at startup and
passed to every loop function.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from proof_orchestrator.proofs.client import ProvingClient
from proof_orchestrator.proofs.tasks import SubmissionPool
from proof_orchestrator.shared.constants import OrchestratorConfig
from proof_orchestrator.shared.logging import get_logger

if TYPE_CHECKING:
    from proof_orchestrator.contracts.reader import OutputOracleReader
    from proof_orchestrator.store.base import RequestStore


@dataclass
class OrchestratorContext:
    config: OrchestratorConfig
    store: "RequestStore"
    prover: ProvingClient
    chain: "OutputOracleReader"
    pool: SubmissionPool
    clock: Callable[[], float] = time.time
    logger: logging.Logger = field(
        default_factory=lambda: get_logger("proof_orchestrator")
    )

    def now(self) -> int:
        return int(self.clock())

    async def aclose(self) -> None:
        """Wait for in-flight submissions, then release clients and the store."""
        await self.pool.drain()
        await self.prover.aclose()
        self.store.close()


def build_context(config: OrchestratorConfig) -> OrchestratorContext:
    """Wire the production collaborators from a validated config."""
    from proof_orchestrator.contracts.reader import OutputOracleReader
    from proof_orchestrator.shared.services.web3_service import Web3Service
    from proof_orchestrator.store.sqlite import SQLiteRequestStore

    config.validate()

    store = SQLiteRequestStore(config.db_path)
    prover = ProvingClient(config.prover_server_url, mock=config.mock)
    chain = OutputOracleReader(
        Web3Service(config.l1_rpc_url),
        Web3Service(config.l2_rpc_url),
        config.l2oo_address,
    )
    return OrchestratorContext(
        config=config,
        store=store,
        prover=prover,
        chain=chain,
        pool=SubmissionPool(config.max_pending_submissions),
    )
