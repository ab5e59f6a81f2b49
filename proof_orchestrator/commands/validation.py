from typing import Optional

from eth_utils import is_address, to_checksum_address

from proof_orchestrator.proofs.types import RequestStatus


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_status(status: Optional[str]) -> Optional[RequestStatus]:
    """Validate and normalize a request status filter"""
    if status is None:
        return None
    try:
        return RequestStatus(status.upper())
    except ValueError:
        valid = ", ".join(s.value for s in RequestStatus)
        raise ValueError(
            f"Invalid status: {status}. Must be one of {valid}"
        ) from None
