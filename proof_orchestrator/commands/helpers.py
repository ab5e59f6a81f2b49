"""Shared command helpers and utilities."""

import sys
from typing import Callable, Optional, Tuple, Type

from rich import print as rprint

from proof_orchestrator.shared.exceptions import (
    ConfigurationException,
    ConfigValidationException,
    ProverException,
    ProverUnavailableException,
    StoreException,
)

# First match wins, so subclasses come before their bases.
ERROR_HINTS: Tuple[Tuple[Type[Exception], str, Optional[str]], ...] = (
    (
        ProverUnavailableException,
        "Proving backend unavailable",
        "Check that the prover server is running and PO_PROVER_SERVER_URL points at it",
    ),
    (
        ConfigValidationException,
        "Prover config mismatch",
        "Redeploy the prover with the keys and rollup config the contract expects",
    ),
    (ProverException, "Proving backend error", None),
    (StoreException, "Request store error", "Check PO_DB_PATH / --db-path"),
    (ConfigurationException, "Configuration error", "See PO_* in your .env"),
    (ValueError, "Error", None),
)


def describe_error(error: Exception) -> Tuple[str, Optional[str]]:
    """Return the (label, hint) pair used to report an error."""
    for error_type, label, hint in ERROR_HINTS:
        if isinstance(error, error_type):
            return label, hint
    return "Unexpected error", None


def handle_command_error(
    error: Exception, show_usage_fn: Optional[Callable[[], None]] = None
) -> None:
    """
    Print an error for the operator and exit with status 1.

    Args:
        error: The exception that occurred
        show_usage_fn: Printed after input errors (ValueError)
    """
    label, hint = describe_error(error)
    rprint(f"[red]{label}:[/red] {error}")
    if hint:
        rprint(f"[dim]{hint}[/dim]")

    if show_usage_fn and isinstance(error, ValueError):
        show_usage_fn()

    sys.exit(1)
