#!/usr/bin/env python3
"""
Unified CLI for the Proof Orchestrator.

Examples:
  - Run the proposer loops (configuration from PO_* env vars / .env)
    proof-orchestrator run
    proof-orchestrator run --mock --skip-validation

  - Check the proving backend against the on-chain config
    proof-orchestrator validate-config --address 0x...

  - Inspect the request store
    proof-orchestrator requests --status PROVING
    proof-orchestrator requests --json --output requests.json
"""

import argparse
import asyncio
import os
import signal
from typing import List, Optional

from proof_orchestrator.commands.helpers import handle_command_error
from proof_orchestrator.commands.validation import (
    validate_eth_address,
    validate_status,
)
from proof_orchestrator.proofs.client import ProvingClient
from proof_orchestrator.proofs.context import build_context
from proof_orchestrator.proofs.driver import ProposerDriver
from proof_orchestrator.shared.constants import OrchestratorConfig
from proof_orchestrator.shared.exceptions import ConfigurationException
from proof_orchestrator.shared.logging import set_log_level
from proof_orchestrator.store.sqlite import SQLiteRequestStore
from proof_orchestrator.utils.formatters import (
    build_requests_table,
    console,
    save_json_output,
)


def cmd_run(args: argparse.Namespace) -> None:
    config = OrchestratorConfig.from_env()
    if args.mock:
        config.mock = True
    if args.interval is not None:
        config.poll_interval = args.interval
    if args.db_path:
        config.db_path = args.db_path

    async def run():
        driver = ProposerDriver(build_context(config))
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, driver.stop)

        console.print(
            f"[cyan]Starting proposer loops[/cyan] "
            f"(mock={config.mock}, interval={config.poll_interval}s, "
            f"db={config.db_path})"
        )
        await driver.start(validate=not args.skip_validation)
        console.print("[green]Stopped cleanly[/green]")

    asyncio.run(run())


def cmd_validate_config(args: argparse.Namespace) -> None:
    address = validate_eth_address(args.address, "address")
    prover_url = args.prover_url or os.getenv("PO_PROVER_SERVER_URL")
    if not prover_url:
        raise ConfigurationException(
            "Pass --prover-url or set PO_PROVER_SERVER_URL"
        )

    async def run():
        client = ProvingClient(prover_url)
        try:
            await client.validate_config(address)
        finally:
            await client.aclose()
        console.print(
            f"[green]✓ Proving backend config matches contract {address}[/green]"
        )

    asyncio.run(run())


def cmd_requests(args: argparse.Namespace) -> None:
    status = validate_status(args.status)
    db_path = args.db_path or os.getenv("PO_DB_PATH", "proofs.sqlite")

    store = SQLiteRequestStore(db_path)
    try:
        requests = (
            store.get_all_with_status(status) if status else store.all()
        )
    finally:
        store.close()

    if args.json:
        filename = args.output or "proof_requests.json"
        save_json_output(
            {"requests": [r.to_dict() for r in requests]}, filename
        )
        return

    label = status.value if status else "all"
    console.print(f"Proof requests ({label}): {len(requests)}")
    if requests:
        console.print(build_requests_table(requests))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proof-orchestrator",
        description="Proof request orchestrator for a rollup proposer",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Log level (DEBUG, INFO, WARNING, ERROR); overrides PO_LOG_LEVEL",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # run
    p_run = sub.add_parser("run", help="Run the proposer loops")
    p_run.add_argument(
        "--mock", action="store_true", help="Request mock proofs"
    )
    p_run.add_argument(
        "--interval", type=float, help="Seconds between loop ticks"
    )
    p_run.add_argument("--db-path", type=str, help="SQLite request store")
    p_run.add_argument(
        "--skip-validation",
        action="store_true",
        help="Do not validate the backend config at startup",
    )
    p_run.set_defaults(func=cmd_run)

    # validate-config
    p_vc = sub.add_parser(
        "validate-config",
        help="Check backend verification keys against a contract",
    )
    p_vc.add_argument("--address", type=str, required=True)
    p_vc.add_argument("--prover-url", type=str, help="Proving backend URL")
    p_vc.set_defaults(func=cmd_validate_config)

    # requests
    p_rq = sub.add_parser("requests", help="List proof requests in the store")
    p_rq.add_argument(
        "--status", type=str, help="Filter by status (e.g. PROVING)"
    )
    p_rq.add_argument("--db-path", type=str, help="SQLite request store")
    p_rq.add_argument("--json", action="store_true", help="Output JSON")
    p_rq.add_argument("--output", type=str, help="Output filename")
    p_rq.set_defaults(func=cmd_requests)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)
    try:
        args.func(args)
    except Exception as e:
        handle_command_error(e, show_usage_fn=parser.print_usage)


if __name__ == "__main__":
    main()
