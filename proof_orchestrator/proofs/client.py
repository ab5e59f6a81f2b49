"""
HTTP client for the proving backend.

Submits span and aggregation proof requests, polls proof status and
validates the backend's configuration against the chain. The client is
stateless apart from its connection pool; the mock flag chosen at
construction decides which submission endpoints are used and how their
responses are read.
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from proof_orchestrator.proofs.types import (
    FulfilledMock,
    ProofStatusResponse,
    ProofType,
    SubmissionResult,
    Submitted,
    ValidateConfigResponse,
    encode_proof_bytes,
)
from proof_orchestrator.shared.constants import (
    CONFIG_VALIDATION_BASE_DELAY,
    CONFIG_VALIDATION_MAX_ATTEMPTS,
    PROOF_STATUS_TIMEOUT,
    WITNESS_GEN_TIMEOUT,
    ProverEndpoints,
)
from proof_orchestrator.shared.exceptions import (
    ConfigValidationException,
    MalformedResponseException,
    ProverRequestException,
    ProverTimeoutException,
    ProverTransportException,
    ProverUnavailableException,
)
from proof_orchestrator.shared.logging import get_logger
from proof_orchestrator.shared.retry import RetryConfig
from proof_orchestrator.shared.services.http_client import build_async_client

_logger = get_logger(__name__)


def get_proof_endpoint(proof_type: ProofType, mock: bool) -> str:
    """Select the submission endpoint for a proof type and mode."""
    if mock:
        if proof_type == ProofType.AGG:
            return ProverEndpoints.REQUEST_MOCK_AGG_PROOF
        return ProverEndpoints.REQUEST_MOCK_SPAN_PROOF
    if proof_type == ProofType.AGG:
        return ProverEndpoints.REQUEST_AGG_PROOF
    return ProverEndpoints.REQUEST_SPAN_PROOF


class ProvingClient:
    """
    Client for the proving backend.

    Args:
        base_url: Backend base URL, e.g. http://localhost:3000
        mock: Use the mock submission endpoints
        http_client: Optional pre-built httpx.AsyncClient (tests inject one
                     backed by httpx.MockTransport)
        submission_timeout: Deadline for submissions, which include
                            witness generation
        status_timeout: Deadline for status polls and config validation
        validation_retry: Backoff schedule for validate_config
    """

    def __init__(
        self,
        base_url: str,
        mock: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
        submission_timeout: float = WITNESS_GEN_TIMEOUT,
        status_timeout: float = PROOF_STATUS_TIMEOUT,
        validation_retry: Optional[RetryConfig] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.mock = mock
        self.submission_timeout = submission_timeout
        self.status_timeout = status_timeout
        self.validation_retry = validation_retry or RetryConfig(
            max_attempts=CONFIG_VALIDATION_MAX_ATTEMPTS,
            base_delay=CONFIG_VALIDATION_BASE_DELAY,
            max_delay=CONFIG_VALIDATION_BASE_DELAY
            * 2 ** (CONFIG_VALIDATION_MAX_ATTEMPTS - 1),
            retryable_exceptions=(ProverTransportException, ProverRequestException),
        )
        self._client = http_client or build_async_client(timeout=status_timeout)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    async def _send(
        self,
        method: str,
        path: str,
        timeout: float,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        try:
            response = await self._client.request(
                method, self._url(path), json=body, timeout=timeout
            )
        except httpx.TimeoutException as e:
            raise ProverTimeoutException(
                f"{method} /{path} timed out after {timeout:.0f}s: {e}",
                timeout=timeout,
            ) from e
        except httpx.HTTPError as e:
            raise ProverTransportException(
                f"{method} /{path} failed to send request: {e}"
            ) from e

        if response.status_code != 200:
            raise ProverRequestException(
                f"{method} /{path} received non-200 status code: "
                f"{response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponseException(
                f"{method} /{path} returned a body that is not JSON: {e}"
            ) from e

    async def _submit(
        self, proof_type: ProofType, body: Dict[str, Any]
    ) -> SubmissionResult:
        path = get_proof_endpoint(proof_type, self.mock)
        data = await self._send("POST", path, self.submission_timeout, body)

        if self.mock:
            status = ProofStatusResponse.from_json(data)
            _logger.info(
                "Produced mock %s proof (%d bytes reported)",
                proof_type.value,
                len(status.proof),
            )
            # sp1-sdk reports a 4-byte payload for mock groth16/plonk proofs;
            # the aggregation verifier expects an empty proof instead.
            if proof_type == ProofType.AGG:
                return FulfilledMock(proof=b"")
            return FulfilledMock(proof=status.proof)

        if not isinstance(data, dict):
            raise MalformedResponseException(
                f"Expected a JSON object from /{path}, got {type(data).__name__}"
            )
        proof_id = data.get("proofId", data.get("proof_id"))
        if not isinstance(proof_id, str) or not proof_id:
            raise MalformedResponseException(
                f"/{path} response has no proof id: {data!r}"
            )
        _logger.info("Submitted %s proof, proof id %s", proof_type.value, proof_id)
        return Submitted(prover_request_id=proof_id)

    async def request_span_proof(
        self, start_block: int, end_block: int
    ) -> SubmissionResult:
        """
        Request a span proof for [start_block, end_block].

        Returns:
            Submitted in real mode, FulfilledMock in mock mode

        Raises:
            ValueError: if start_block >= end_block
            ProverException: on transport errors, timeouts, non-200 replies
            MalformedResponseException: on undecodable replies
        """
        if start_block >= end_block:
            raise ValueError("start must be less than end")

        _logger.info("Requesting span proof [%s, %s]", start_block, end_block)
        return await self._submit(
            ProofType.SPAN, {"start": start_block, "end": end_block}
        )

    async def request_agg_proof(
        self, subproofs: List[bytes], l1_head: str
    ) -> SubmissionResult:
        """
        Request an aggregation proof over consecutive span proofs.

        Args:
            subproofs: Span proof bytes in block order
            l1_head: 0x-prefixed L1 block hash the proof is anchored to
        """
        _logger.info(
            "Requesting agg proof over %d span proofs, l1 head %s",
            len(subproofs),
            l1_head,
        )
        body = {
            "subproofs": [encode_proof_bytes(p) for p in subproofs],
            "l1Head": l1_head,
        }
        return await self._submit(ProofType.AGG, body)

    async def get_proof_status(self, proof_id: str) -> ProofStatusResponse:
        """
        Get the status of a proof given its backend id.

        Raises:
            ProverException: on transport errors, timeouts, non-200 replies
            MalformedResponseException: on undecodable replies
        """
        data = await self._send(
            "GET", f"{ProverEndpoints.STATUS}/{proof_id}", self.status_timeout
        )
        return ProofStatusResponse.from_json(data)

    async def _post_validate_config(self, address: str) -> ValidateConfigResponse:
        data = await self._send(
            "POST",
            ProverEndpoints.VALIDATE_CONFIG,
            self.status_timeout,
            {"address": address},
        )
        return ValidateConfigResponse.from_json(data)

    async def validate_config(self, address: str) -> None:
        """
        Check the backend's verification keys and rollup config hash against
        the contract at `address`.

        The backend may still be starting up, so transport failures and
        non-200 replies are retried with exponential backoff.

        Raises:
            ProverUnavailableException: the backend never answered successfully
            ConfigValidationException: one or more values do not match
        """
        _logger.info("Requesting config validation for %s", address)

        def _log_retry(exc: Exception, attempt: int, delay: float) -> None:
            _logger.info(
                "Prover server not ready (attempt %d), retrying in %.0fs",
                attempt,
                delay,
            )

        try:
            response = await self.validation_retry.run(
                self._post_validate_config,
                address,
                operation_name="validate_config",
                on_retry=_log_retry,
            )
        except ProverTimeoutException as e:
            raise ProverUnavailableException(
                f"prover server timed out after "
                f"{self.validation_retry.max_attempts} attempts: {e.message}"
            ) from e
        except (ProverTransportException, ProverRequestException) as e:
            raise ProverUnavailableException(
                f"prover server not healthy after "
                f"{self.validation_retry.max_attempts} attempts: {e.message}"
            ) from e

        invalid_fields = response.invalid_fields()
        if invalid_fields:
            raise ConfigValidationException(invalid_fields)
        _logger.info("Prover config matches contract %s", address)

    async def aclose(self) -> None:
        await self._client.aclose()
