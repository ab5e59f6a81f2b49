"""All constants and runtime configuration for the proof orchestrator"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from proof_orchestrator.shared.exceptions import ConfigurationException

load_dotenv()

# Kona's native I/O keeps roughly num_cpu / 2 witness generation processes
# alive at once; beyond that the witness generation server falls over.
MAX_CONCURRENT_WITNESS_GEN = 5

# Witness generation runs inside the submission call, so it gets a long deadline.
WITNESS_GEN_TIMEOUT = 20 * 60.0
PROOF_STATUS_TIMEOUT = 30.0

CONFIG_VALIDATION_MAX_ATTEMPTS = 5
CONFIG_VALIDATION_BASE_DELAY = 1.0


class ProverEndpoints:
    """Paths exposed by the proving backend"""

    REQUEST_SPAN_PROOF = "request_span_proof"
    REQUEST_MOCK_SPAN_PROOF = "request_mock_span_proof"
    REQUEST_AGG_PROOF = "request_agg_proof"
    REQUEST_MOCK_AGG_PROOF = "request_mock_agg_proof"
    STATUS = "status"
    VALIDATE_CONFIG = "validate_config"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigurationException(
            f"Environment variable {name} must be an integer, got {raw!r}"
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigurationException(
            f"Environment variable {name} must be a number, got {raw!r}"
        )


@dataclass
class OrchestratorConfig:
    """
    Operator configuration for the proof orchestrator.

    Attributes:
        prover_server_url: Base URL of the proving backend
        mock: Request mock proofs instead of real ones
        max_concurrent_proof_requests: Cap on WITNESSGEN + PROVING requests
        proof_timeout: Seconds a dispatched request may stay in flight
        max_block_range_per_span_proof: Width of freshly derived span requests
        l1_rpc_url: L1 execution RPC (output oracle, checkpoints)
        l2_rpc_url: L2 execution RPC (finalized head)
        l2oo_address: Output oracle contract address
        db_path: SQLite file backing the request store
        poll_interval: Seconds between ticks of each loop
        max_pending_submissions: Bound on in-flight submission tasks
    """

    prover_server_url: str
    mock: bool = False
    max_concurrent_proof_requests: int = 10
    proof_timeout: int = 4 * 60 * 60
    max_block_range_per_span_proof: int = 300
    l1_rpc_url: Optional[str] = None
    l2_rpc_url: Optional[str] = None
    l2oo_address: Optional[str] = None
    db_path: str = "proofs.sqlite"
    poll_interval: float = 12.0
    max_pending_submissions: Optional[int] = None

    def __post_init__(self):
        self.prover_server_url = self.prover_server_url.rstrip("/")
        if self.max_pending_submissions is None:
            self.max_pending_submissions = self.max_concurrent_proof_requests

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Build a config from PO_* environment variables (.env is honoured)."""
        prover_server_url = os.getenv("PO_PROVER_SERVER_URL")
        if not prover_server_url:
            raise ConfigurationException(
                "PO_PROVER_SERVER_URL environment variable is not set"
            )

        return cls(
            prover_server_url=prover_server_url,
            mock=_env_bool("PO_MOCK", False),
            max_concurrent_proof_requests=_env_int(
                "PO_MAX_CONCURRENT_PROOF_REQUESTS", 10
            ),
            proof_timeout=_env_int("PO_PROOF_TIMEOUT", 4 * 60 * 60),
            max_block_range_per_span_proof=_env_int(
                "PO_MAX_BLOCK_RANGE_PER_SPAN_PROOF", 300
            ),
            l1_rpc_url=os.getenv("PO_L1_RPC_URL"),
            l2_rpc_url=os.getenv("PO_L2_RPC_URL"),
            l2oo_address=os.getenv("PO_L2OO_ADDRESS"),
            db_path=os.getenv("PO_DB_PATH", "proofs.sqlite"),
            poll_interval=_env_float("PO_POLL_INTERVAL", 12.0),
            max_pending_submissions=_env_int("PO_MAX_PENDING_SUBMISSIONS", None),
        )

    def validate(self, require_chain: bool = True) -> None:
        """
        Check the configuration and raise if anything is invalid.

        Every problem is collected so that operators see them all at once.

        Args:
            require_chain: Also require the RPC URLs and oracle address
                           (needed by the driver, not by validate-config)
        """
        problems: List[str] = []

        if not self.prover_server_url.startswith(("http://", "https://")):
            problems.append(
                f"prover_server_url must be an http(s) URL, got {self.prover_server_url!r}"
            )
        if self.max_concurrent_proof_requests < 1:
            problems.append("max_concurrent_proof_requests must be at least 1")
        if self.proof_timeout <= 0:
            problems.append("proof_timeout must be positive")
        if self.max_block_range_per_span_proof < 1:
            problems.append("max_block_range_per_span_proof must be at least 1")
        if self.poll_interval <= 0:
            problems.append("poll_interval must be positive")
        if self.max_pending_submissions < 1:
            problems.append("max_pending_submissions must be at least 1")

        if require_chain:
            for field_name in ("l1_rpc_url", "l2_rpc_url", "l2oo_address"):
                if not getattr(self, field_name):
                    problems.append(f"{field_name} is required")

        if problems:
            raise ConfigurationException(
                "Invalid configuration: " + "; ".join(problems)
            )
