"""
Result types describing what a single loop tick did.

Ticks raise on failure; these types only report the work done on success
so that the driver can log it and tests can assert on it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DispatchOutcome(Enum):
    """What one dispatch tick did."""

    IDLE = "idle"  # Nothing to request
    CHECKPOINTED = "checkpointed"  # AGG request anchored to L1, dispatch next tick
    THROTTLED = "throttled"  # Admission control or a full pool said no
    DISPATCHED = "dispatched"  # Submission handed to the pool


@dataclass
class ReconciliationSummary:
    """
    Summary of one reconciliation tick.

    Attributes:
        checked: PROVING requests polled
        fulfilled: Requests moved to COMPLETE
        retried: Requests re-queued on the same range
        split: Requests re-queued as two halves
        pending: Requests still in progress
        timed_out: Ids of requests retried because of the proof timeout
        stalled: Ids of WITNESSGEN requests retried because no submission
                 was in flight and the proof timeout had passed
    """

    checked: int = 0
    fulfilled: int = 0
    retried: int = 0
    split: int = 0
    pending: int = 0
    timed_out: List[int] = field(default_factory=list)
    stalled: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "checked": self.checked,
            "fulfilled": self.fulfilled,
            "retried": self.retried,
            "split": self.split,
            "pending": self.pending,
            "timed_out": self.timed_out,
            "stalled": self.stalled,
        }


@dataclass
class AggDerivation:
    """Outcome of one aggregation-derivation tick."""

    latest_proven_block: int
    next_required_block: int
    created: bool = False
    end_block: Optional[int] = None

    @property
    def blocks_to_prove(self) -> int:
        return self.next_required_block - self.latest_proven_block


@dataclass
class SpanBatchSummary:
    """Span requests queued by one span-derivation tick."""

    from_block: int
    finalized_block: int
    created: List[Dict[str, int]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.created)
