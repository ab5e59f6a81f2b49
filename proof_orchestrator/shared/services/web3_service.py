"""
Web3 Service module for read-only access to the L1 and L2 chains.

The orchestrator never sends transactions; it only needs block headers
(for L1 checkpoints and the L2 finalized head) and view calls against the
output oracle.
"""

from typing import Any, Dict, Tuple

from web3 import Web3

from proof_orchestrator.shared.services.resource_manager import (
    resource_manager,
)


class Web3Service:
    """
    A service class for managing a Web3 connection and contract handles.
    """

    def __init__(self, rpc_url: str, request_timeout: float = 30.0):
        """
        Initialize the Web3Service.

        Args:
            rpc_url (str): The RPC URL to use.
            request_timeout (float): HTTP deadline for each RPC call.
        """
        self.rpc_url = rpc_url
        self.w3 = Web3(
            Web3.HTTPProvider(
                rpc_url, request_kwargs={"timeout": request_timeout}
            )
        )
        self._contract_cache: Dict[Tuple[str, str], Any] = {}

    def get_block(self, block_identifier) -> Dict[str, Any]:
        """Get a block by number or tag ("latest", "finalized", ...)"""
        return self.w3.eth.get_block(block_identifier)

    def get_block_number_and_hash(self, block_identifier) -> Tuple[int, str]:
        """Return (number, 0x-prefixed hash) for the given block"""
        block = self.get_block(block_identifier)
        block_hash = block["hash"]
        if isinstance(block_hash, (bytes, bytearray)):
            block_hash = Web3.to_hex(block_hash)
        elif not str(block_hash).startswith("0x"):
            block_hash = "0x" + str(block_hash)
        return int(block["number"]), block_hash

    def get_contract(self, address: str, abi_name: str) -> Any:
        """Get a contract instance for a given address and ABI name"""
        key = (address.lower(), abi_name)
        if key not in self._contract_cache:
            abi = resource_manager.load_abi(abi_name)
            self._contract_cache[key] = self.w3.eth.contract(
                address=Web3.to_checksum_address(address.lower()), abi=abi
            )
        return self._contract_cache[key]
