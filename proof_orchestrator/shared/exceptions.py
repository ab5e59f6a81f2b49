"""
Exception hierarchy for the proof orchestrator.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (prover, RPC)
- NonRetryableException: Permanent failures that won't benefit from retry
- ConfigurationException: Startup/config errors that prevent operation

Mapping to the orchestrator's failure classes:
- ProverTransportException / ProverTimeoutException -> transport failures;
  on submission they are routed to the same-range retry, on status polling
  they abort the tick
- ProverRequestException -> the backend answered with a non-200 status
- MalformedResponseException -> the backend answered with an undecodable body
- StoreException -> the request store refused or failed an operation
"""

from typing import List, Optional


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - Prover server unreachable or slow
    - RPC timeouts
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid state transitions
    - Undecodable responses
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - Required environment variables are missing
    - Invalid configuration values
    """

    pass


class ConfigValidationException(NonRetryableException):
    """
    The prover's verification keys or rollup config hash do not match
    the values registered on-chain.
    """

    def __init__(self, invalid_fields: List[str]):
        super().__init__(f"config is invalid: {', '.join(invalid_fields)}")
        self.invalid_fields = invalid_fields


class ProverException(RetryableException):
    """Base class for proving backend failures."""

    pass


class ProverTransportException(ProverException):
    """The proving backend could not be reached or the connection broke."""

    pass


class ProverTimeoutException(ProverTransportException):
    """The proving backend did not answer within the request deadline."""

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class ProverRequestException(ProverException):
    """The proving backend answered with a non-200 status code."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class ProverUnavailableException(ProverException):
    """The proving backend never became healthy during config validation."""

    pass


class MalformedResponseException(NonRetryableException):
    """A proving backend response could not be decoded."""

    pass


class ChainReadException(RetryableException):
    """A read-only call against L1/L2 or the output oracle failed."""

    pass


class StoreException(NonRetryableException):
    """Base class for request store failures."""

    pass


class InvalidTransitionException(StoreException):
    """A status change that the request life-cycle does not allow."""

    pass


class IncompleteCoverageException(StoreException):
    """The completed span proofs do not tile the requested range."""

    pass


class RequestNotFoundException(StoreException):
    """No request matches the given identity or range."""

    pass
