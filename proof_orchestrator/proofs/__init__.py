from proof_orchestrator.proofs.aggregator import (
    derive_agg_proofs,
    derive_new_span_batches,
)
from proof_orchestrator.proofs.client import ProvingClient
from proof_orchestrator.proofs.dispatcher import request_queued_proofs
from proof_orchestrator.proofs.reconciler import process_pending_proofs
from proof_orchestrator.proofs.types import (
    FulfilledMock,
    ProofRequest,
    ProofStatusResponse,
    ProofType,
    RequestStatus,
    Submitted,
)

__all__ = [
    "ProvingClient",
    "ProofRequest",
    "ProofType",
    "RequestStatus",
    "ProofStatusResponse",
    "Submitted",
    "FulfilledMock",
    "request_queued_proofs",
    "process_pending_proofs",
    "derive_agg_proofs",
    "derive_new_span_batches",
]
