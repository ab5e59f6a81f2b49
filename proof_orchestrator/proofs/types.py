"""
Types shared by the proof request life-cycle.

Two families live here:
- the persisted ProofRequest entity and its enums
- the proving backend's wire vocabulary (proof status, unclaim reasons,
  submission results)
"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from proof_orchestrator.shared.exceptions import MalformedResponseException

# =============================================================================
# PERSISTED ENTITY
# =============================================================================


class ProofType(str, Enum):
    """SPAN proofs cover a block range, AGG proofs combine span proofs."""

    SPAN = "SPAN"
    AGG = "AGG"


class RequestStatus(str, Enum):
    """Life-cycle status of a proof request."""

    UNREQUESTED = "UNREQUESTED"
    WITNESSGEN = "WITNESSGEN"
    PROVING = "PROVING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.COMPLETE, RequestStatus.FAILED)


@dataclass
class ProofRequest:
    """
    A proof request as persisted by the request store.

    Attributes:
        id: Store-assigned identity
        type: SPAN or AGG
        start_block: First block of the range
        end_block: Last block of the range (start_block < end_block)
        status: Current life-cycle status
        prover_request_id: Backend handle, set once the backend accepted it
        proof_request_time: Unix seconds at dispatch, used for timeouts
        l1_block_number: L1 checkpoint number (AGG only)
        l1_block_hash: L1 checkpoint hash (AGG only)
        proof: Proof bytes, set on transition to COMPLETE
    """

    id: int
    type: ProofType
    start_block: int
    end_block: int
    status: RequestStatus = RequestStatus.UNREQUESTED
    prover_request_id: Optional[str] = None
    proof_request_time: Optional[int] = None
    l1_block_number: Optional[int] = None
    l1_block_hash: Optional[str] = None
    proof: Optional[bytes] = None

    @property
    def is_checkpointed(self) -> bool:
        return bool(self.l1_block_hash)

    @property
    def width(self) -> int:
        return self.end_block - self.start_block

    def overlaps(self, start: int, end: int) -> bool:
        """Half-open overlap test against [start, end)."""
        return self.start_block < end and start < self.end_block

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display and JSON output."""
        return {
            "id": self.id,
            "type": self.type.value,
            "start_block": self.start_block,
            "end_block": self.end_block,
            "status": self.status.value,
            "prover_request_id": self.prover_request_id,
            "proof_request_time": self.proof_request_time,
            "l1_block_number": self.l1_block_number,
            "l1_block_hash": self.l1_block_hash,
            "proof_size": len(self.proof) if self.proof is not None else None,
        }


# =============================================================================
# PROVING BACKEND WIRE TYPES
# =============================================================================


class ProverStatus(str, Enum):
    """Proof status as reported by the proving network."""

    UNSPECIFIED = "PROOF_UNSPECIFIED_STATUS"
    PREPARING = "PROOF_PREPARING"
    REQUESTED = "PROOF_REQUESTED"
    CLAIMED = "PROOF_CLAIMED"
    UNCLAIMED = "PROOF_UNCLAIMED"
    FULFILLED = "PROOF_FULFILLED"

    @classmethod
    def parse(cls, raw: Any) -> "ProverStatus":
        return _parse_wire_enum(cls, raw, "status")


class UnclaimDescription(str, Enum):
    """Why a proof was unclaimed."""

    UNEXPECTED_PROVER_ERROR = "UNEXPECTED_PROVER_ERROR"
    PROGRAM_EXECUTION_ERROR = "PROGRAM_EXECUTION_ERROR"
    CYCLE_LIMIT_EXCEEDED = "CYCLE_LIMIT_EXCEEDED"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, raw: Any) -> Optional["UnclaimDescription"]:
        if raw is None or raw == "":
            return None
        return _parse_wire_enum(cls, raw, "unclaim description")


def _parse_wire_enum(enum_cls, raw: Any, label: str):
    # The backend sends either the enum name or its ordinal.
    members = list(enum_cls)
    if isinstance(raw, bool):
        raise MalformedResponseException(f"Invalid {label}: {raw!r}")
    if isinstance(raw, int):
        if 0 <= raw < len(members):
            return members[raw]
        raise MalformedResponseException(f"Unknown {label} ordinal: {raw}")
    if isinstance(raw, str):
        token = raw.strip().upper()
        for member in members:
            if token in (member.value, member.name):
                return member
    raise MalformedResponseException(f"Unknown {label}: {raw!r}")


def encode_proof_bytes(proof: bytes) -> str:
    """Encode proof bytes the way the backend expects them in JSON."""
    return base64.b64encode(proof).decode("ascii")


def decode_proof_bytes(raw: Any) -> bytes:
    """Decode proof bytes from a JSON value (base64 string or byte array)."""
    if raw is None:
        return b""
    if isinstance(raw, str):
        try:
            return base64.b64decode(raw, validate=True)
        except (ValueError, TypeError) as e:
            raise MalformedResponseException(
                f"Proof is not valid base64: {e}"
            )
    if isinstance(raw, list):
        try:
            return bytes(raw)
        except (ValueError, TypeError) as e:
            raise MalformedResponseException(
                f"Proof is not a byte array: {e}"
            )
    raise MalformedResponseException(
        f"Unsupported proof encoding: {type(raw).__name__}"
    )


def _pick(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


@dataclass
class ProofStatusResponse:
    """
    Status of a proof as reported by the backend.

    An empty response (no status at all) stands for a failure that happened
    before the backend could classify it, e.g. a failed submission.
    """

    status: Optional[ProverStatus] = None
    proof: bytes = b""
    unclaim_description: Optional[UnclaimDescription] = None

    @classmethod
    def empty(cls) -> "ProofStatusResponse":
        return cls()

    @classmethod
    def from_json(cls, data: Any) -> "ProofStatusResponse":
        if not isinstance(data, dict):
            raise MalformedResponseException(
                f"Expected a JSON object, got {type(data).__name__}"
            )
        if "status" not in data:
            raise MalformedResponseException("Response has no status field")

        return cls(
            status=ProverStatus.parse(data["status"]),
            proof=decode_proof_bytes(data.get("proof")),
            unclaim_description=UnclaimDescription.parse(
                _pick(data, "unclaimDescription", "unclaim_description")
            ),
        )

    @property
    def is_fulfilled(self) -> bool:
        return self.status == ProverStatus.FULFILLED

    @property
    def is_unclaimed(self) -> bool:
        return self.status == ProverStatus.UNCLAIMED

    @property
    def is_program_execution_error(self) -> bool:
        return (
            self.unclaim_description
            == UnclaimDescription.PROGRAM_EXECUTION_ERROR
        )


@dataclass(frozen=True)
class Submitted:
    """The backend accepted a real proof request."""

    prover_request_id: str


@dataclass(frozen=True)
class FulfilledMock:
    """The backend produced a mock proof synchronously."""

    proof: bytes


SubmissionResult = Union[Submitted, FulfilledMock]


@dataclass(frozen=True)
class ValidateConfigResponse:
    """Result of comparing the backend's keys with the on-chain values."""

    rollup_config_hash_valid: bool
    agg_vkey_valid: bool
    range_vkey_valid: bool

    @classmethod
    def from_json(cls, data: Any) -> "ValidateConfigResponse":
        if not isinstance(data, dict):
            raise MalformedResponseException(
                f"Expected a JSON object, got {type(data).__name__}"
            )
        values = {}
        for attr, keys in (
            ("rollup_config_hash_valid", ("rollupConfigHashValid", "rollup_config_hash_valid")),
            ("agg_vkey_valid", ("aggVkeyValid", "agg_vkey_valid")),
            ("range_vkey_valid", ("rangeVkeyValid", "range_vkey_valid")),
        ):
            value = _pick(data, *keys)
            if not isinstance(value, bool):
                raise MalformedResponseException(
                    f"Missing or non-boolean field {keys[0]}"
                )
            values[attr] = value
        return cls(**values)

    def invalid_fields(self) -> List[str]:
        invalid = []
        if not self.rollup_config_hash_valid:
            invalid.append("rollup config hash")
        if not self.agg_vkey_valid:
            invalid.append("aggregation verification key")
        if not self.range_vkey_valid:
            invalid.append("range verification key")
        return invalid


# =============================================================================
# RETRY / SPLIT
# =============================================================================


class RetryAction(str, Enum):
    """What the retry policy did with a failed request."""

    RETRY = "retry"
    SPLIT = "split"


class FailureReason(str, Enum):
    """Why a request is being retried."""

    TIMEOUT = "timeout"
    UNCLAIMED = "unclaimed"
    SUBMISSION_FAILED = "submission_failed"


@dataclass
class RetryOutcome:
    """The failed request and the requests created to re-cover its range."""

    failed: ProofRequest
    action: RetryAction
    replacements: List[ProofRequest] = field(default_factory=list)
