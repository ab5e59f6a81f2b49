"""
Unit tests for proof request and wire types.
"""

import base64

import pytest

from proof_orchestrator.proofs.types import (
    FulfilledMock,
    ProofRequest,
    ProofStatusResponse,
    ProofType,
    ProverStatus,
    RequestStatus,
    Submitted,
    UnclaimDescription,
    ValidateConfigResponse,
    decode_proof_bytes,
    encode_proof_bytes,
)
from proof_orchestrator.shared.exceptions import MalformedResponseException


class TestProofRequest:
    """Tests for the ProofRequest dataclass."""

    def test_defaults(self):
        request = ProofRequest(id=1, type=ProofType.SPAN, start_block=1, end_block=5)
        assert request.status == RequestStatus.UNREQUESTED
        assert request.width == 4
        assert request.is_checkpointed is False

    def test_overlaps_is_half_open(self):
        request = ProofRequest(id=1, type=ProofType.AGG, start_block=100, end_block=200)
        assert request.overlaps(150, 250)
        assert request.overlaps(0, 101)
        assert not request.overlaps(200, 300)
        assert not request.overlaps(0, 100)

    def test_to_dict(self):
        request = ProofRequest(
            id=3,
            type=ProofType.SPAN,
            start_block=1,
            end_block=5,
            status=RequestStatus.COMPLETE,
            proof=b"abcd",
        )
        data = request.to_dict()
        assert data["type"] == "SPAN"
        assert data["status"] == "COMPLETE"
        assert data["proof_size"] == 4

    def test_terminal_statuses(self):
        assert RequestStatus.COMPLETE.is_terminal
        assert RequestStatus.FAILED.is_terminal
        assert not RequestStatus.PROVING.is_terminal


class TestWireEnums:
    """Tests for ProverStatus / UnclaimDescription parsing."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("PROOF_FULFILLED", ProverStatus.FULFILLED),
            ("FULFILLED", ProverStatus.FULFILLED),
            ("proof_unclaimed", ProverStatus.UNCLAIMED),
            (0, ProverStatus.UNSPECIFIED),
            (2, ProverStatus.REQUESTED),
            (5, ProverStatus.FULFILLED),
        ],
    )
    def test_status_parse(self, raw, expected):
        assert ProverStatus.parse(raw) == expected

    @pytest.mark.parametrize("raw", [6, -1, True, None, "NOPE", 1.5])
    def test_status_parse_rejects(self, raw):
        with pytest.raises(MalformedResponseException):
            ProverStatus.parse(raw)

    def test_unclaim_description_optional(self):
        assert UnclaimDescription.parse(None) is None
        assert UnclaimDescription.parse("") is None
        assert UnclaimDescription.parse(2) == UnclaimDescription.CYCLE_LIMIT_EXCEEDED


class TestProofBytes:
    """Tests for proof byte encoding."""

    def test_encode_is_base64(self):
        assert encode_proof_bytes(b"\x00\xff") == base64.b64encode(b"\x00\xff").decode()

    def test_decode_accepts_byte_array(self):
        assert decode_proof_bytes([1, 2, 255]) == b"\x01\x02\xff"

    def test_decode_none_is_empty(self):
        assert decode_proof_bytes(None) == b""

    @pytest.mark.parametrize("raw", ["not base64!", [256], {"a": 1}])
    def test_decode_rejects(self, raw):
        with pytest.raises(MalformedResponseException):
            decode_proof_bytes(raw)


class TestProofStatusResponse:
    """Tests for ProofStatusResponse."""

    def test_empty_is_not_a_program_error(self):
        status = ProofStatusResponse.empty()
        assert status.status is None
        assert not status.is_fulfilled
        assert not status.is_unclaimed
        assert not status.is_program_execution_error

    def test_from_json_snake_case(self):
        status = ProofStatusResponse.from_json(
            {"status": "PROOF_UNCLAIMED", "unclaim_description": "PROGRAM_EXECUTION_ERROR"}
        )
        assert status.is_unclaimed
        assert status.is_program_execution_error
        assert status.proof == b""

    @pytest.mark.parametrize("data", [[], "PROOF_FULFILLED", {"proof": ""}])
    def test_from_json_rejects(self, data):
        with pytest.raises(MalformedResponseException):
            ProofStatusResponse.from_json(data)


class TestSubmissionResults:
    """Tests for the tagged submission results."""

    def test_match_dispatches_on_variant(self):
        def describe(result):
            match result:
                case Submitted(prover_request_id=proof_id):
                    return f"submitted {proof_id}"
                case FulfilledMock(proof=proof):
                    return f"mock {len(proof)}"

        assert describe(Submitted("abc")) == "submitted abc"
        assert describe(FulfilledMock(b"xyz")) == "mock 3"


class TestValidateConfigResponse:
    """Tests for ValidateConfigResponse."""

    def test_invalid_fields_in_order(self):
        response = ValidateConfigResponse.from_json(
            {"rollupConfigHashValid": False, "aggVkeyValid": True, "rangeVkeyValid": False}
        )
        assert response.invalid_fields() == [
            "rollup config hash",
            "range verification key",
        ]

    def test_missing_field(self):
        with pytest.raises(MalformedResponseException):
            ValidateConfigResponse.from_json({"aggVkeyValid": True})
