"""Shared formatting and file utilities for commands."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from rich.console import Console
from rich.table import Table

from proof_orchestrator.proofs.types import ProofRequest, RequestStatus

# Shared console instance
console = Console()

STATUS_STYLES = {
    RequestStatus.UNREQUESTED: "dim",
    RequestStatus.WITNESSGEN: "yellow",
    RequestStatus.PROVING: "cyan",
    RequestStatus.COMPLETE: "green",
    RequestStatus.FAILED: "red",
}


def format_hash(value: Optional[str], length: int = 10) -> str:
    """
    Format a hash or identifier to show first and last characters.

    Args:
        value: Hex string or opaque id
        length: Values up to this length are shown as-is

    Returns:
        Formatted value like "0x1234...5678"
    """
    if not value:
        return "N/A"
    if len(value) <= length:
        return value
    return f"{value[:6]}...{value[-4:]}"


def format_timestamp(
    timestamp: Optional[int], format_str: str = "%Y-%m-%d %H:%M"
) -> str:
    """Format a Unix timestamp to a readable date string."""
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime(format_str)


def format_status(status: RequestStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def create_requests_table() -> Table:
    """
    Create a Rich table with standard proof request columns.

    Returns:
        Configured Rich Table for request display
    """
    table = Table(
        show_header=True,
        header_style="bold cyan",
        show_lines=False,
        pad_edge=False,
        box=None,
    )
    table.add_column("ID", width=6, justify="right")
    table.add_column("Type", width=5)
    table.add_column("Range", width=22)
    table.add_column("Status", width=12, justify="center")
    table.add_column("Prover ID", width=14)
    table.add_column("Requested", width=16)
    table.add_column("L1 Block", width=12, justify="right")
    return table


def add_request_to_table(table: Table, request: ProofRequest) -> None:
    """Add a proof request row to the requests table."""
    table.add_row(
        str(request.id),
        request.type.value,
        f"[{request.start_block}, {request.end_block}]",
        format_status(request.status),
        format_hash(request.prover_request_id, length=14),
        format_timestamp(request.proof_request_time),
        str(request.l1_block_number) if request.l1_block_number else "-",
    )


def build_requests_table(requests: Iterable[ProofRequest]) -> Table:
    table = create_requests_table()
    for request in requests:
        add_request_to_table(table, request)
    return table


def save_json_output(
    data: Dict[str, Any],
    filename: str,
    output_dir: str = "output",
    print_path: bool = True,
) -> str:
    """
    Save data to a JSON file with automatic directory creation.

    Args:
        data: Data to save
        filename: Output filename (can include subdirectories)
        output_dir: Base output directory (default: 'output')
        print_path: Whether to print the saved file path

    Returns:
        Full path to saved file
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    filepath = output_path / filename

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)

    if print_path:
        console.print(f"[cyan]Data saved to:[/cyan] {filepath}")

    return str(filepath)
