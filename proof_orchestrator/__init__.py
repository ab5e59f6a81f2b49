"""Proof Orchestrator - proof request scheduling for a rollup proposer."""

__version__ = "0.1.0"

from .proofs import ProofRequest, ProofType, ProvingClient, RequestStatus
from .store import InMemoryRequestStore, SQLiteRequestStore

__all__ = [
    "ProofRequest",
    "ProofType",
    "RequestStatus",
    "ProvingClient",
    "InMemoryRequestStore",
    "SQLiteRequestStore",
]
