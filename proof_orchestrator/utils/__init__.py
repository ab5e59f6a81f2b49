from proof_orchestrator.utils.formatters import (
    build_requests_table,
    console,
    format_hash,
    format_timestamp,
    save_json_output,
)

__all__ = [
    "console",
    "build_requests_table",
    "format_hash",
    "format_timestamp",
    "save_json_output",
]
