"""
Read-only chain access for the orchestrator.

Wraps the output oracle's view functions and the L1/L2 head lookups the
loops need. web3 calls block, so each one runs in the default executor to
keep the event loop free.
"""

import asyncio
from typing import Any, Callable, Tuple

from proof_orchestrator.shared.exceptions import ChainReadException
from proof_orchestrator.shared.logging import get_logger
from proof_orchestrator.shared.services.web3_service import Web3Service

_logger = get_logger(__name__)

L2_OUTPUT_ORACLE_ABI = "l2_output_oracle"


class OutputOracleReader:
    """
    Reads the output oracle and chain heads.

    Args:
        l1_service: Web3Service connected to L1 (oracle, checkpoints)
        l2_service: Web3Service connected to L2 (finalized head)
        oracle_address: Output oracle contract address on L1
    """

    def __init__(
        self,
        l1_service: Web3Service,
        l2_service: Web3Service,
        oracle_address: str,
    ):
        self.l1_service = l1_service
        self.l2_service = l2_service
        self.oracle_address = oracle_address
        self.oracle = l1_service.get_contract(oracle_address, L2_OUTPUT_ORACLE_ABI)

    async def _call(self, label: str, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn, *args)
        except Exception as e:
            raise ChainReadException(f"failed to read {label}: {e}") from e

    async def latest_block_number(self) -> int:
        """Latest L2 block with a proposed output."""
        return int(
            await self._call(
                "latestBlockNumber", self.oracle.functions.latestBlockNumber().call
            )
        )

    async def next_block_number(self) -> int:
        """Next L2 block the oracle accepts an output for."""
        return int(
            await self._call(
                "nextBlockNumber", self.oracle.functions.nextBlockNumber().call
            )
        )

    async def checkpoint_l1_block(self) -> Tuple[int, str]:
        """Number and hash of the current L1 head, to anchor an AGG proof."""
        number, block_hash = await self._call(
            "L1 head", self.l1_service.get_block_number_and_hash, "latest"
        )
        _logger.info("Checkpointing L1 block %s (%s)", number, block_hash)
        return number, block_hash

    async def l2_finalized_block_number(self) -> int:
        """Number of the latest finalized L2 block."""
        number, _ = await self._call(
            "L2 finalized head",
            self.l2_service.get_block_number_and_hash,
            "finalized",
        )
        return number
