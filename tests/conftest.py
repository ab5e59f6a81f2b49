"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests.
"""

import json
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from proof_orchestrator.proofs.client import ProvingClient
from proof_orchestrator.proofs.context import OrchestratorContext
from proof_orchestrator.proofs.tasks import SubmissionPool
from proof_orchestrator.shared.constants import OrchestratorConfig
from proof_orchestrator.shared.exceptions import InvalidTransitionException
from proof_orchestrator.shared.services.http_client import build_async_client
from proof_orchestrator.store.memory import InMemoryRequestStore
from proof_orchestrator.store.sqlite import SQLiteRequestStore

PROVER_URL = "http://prover.test"


class FakeClock:
    """Manually advanced clock (unix seconds)."""

    def __init__(self, start: float = 1_700_000_000):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProver:
    """
    Scripted proving backend for httpx.MockTransport.

    Records every request and answers from per-path handlers.
    """

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def route(self, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[path] = handler

    def reply(self, path: str, payload: Any, status_code: int = 200):
        self.routes[path] = lambda request: httpx.Response(
            status_code, json=payload
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        for prefix, handler in self.routes.items():
            if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
                return handler(request)
        return httpx.Response(404, json={"error": f"no route for {path}"})

    def bodies(self, path: str) -> List[Dict[str, Any]]:
        return [
            json.loads(call.content)
            for call in self.calls
            if call.url.path == path
        ]


class FlakyStore(InMemoryRequestStore):
    """In-memory store whose next update_status into `fail_on` raises `error`."""

    def __init__(self, clock, fail_on=None, error=None):
        super().__init__(clock=clock)
        self.fail_on = fail_on
        self.error = error

    def update_status(self, request_id, status):
        if self.fail_on is not None and status == self.fail_on:
            self.fail_on = None
            raise self.error
        super().update_status(request_id, status)


class RejectingStore(InMemoryRequestStore):
    """In-memory store that refuses to complete any request."""

    def add_fulfilled_proof(self, request_id, proof):
        raise InvalidTransitionException(
            f"Request {request_id} cannot be completed"
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> InMemoryRequestStore:
    return InMemoryRequestStore(clock=clock)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, clock, tmp_path):
    """Run store-contract tests against every implementation."""
    if request.param == "memory":
        yield InMemoryRequestStore(clock=clock)
        return
    sqlite_store = SQLiteRequestStore(tmp_path / "proofs.sqlite", clock=clock)
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def flaky_store(clock) -> FlakyStore:
    return FlakyStore(clock)


@pytest.fixture
def rejecting_store(clock) -> RejectingStore:
    return RejectingStore(clock=clock)


@pytest.fixture
def fake_prover() -> FakeProver:
    return FakeProver()


@pytest.fixture
def make_prover(fake_prover) -> Callable[..., ProvingClient]:
    """Factory for ProvingClient instances backed by fake_prover."""

    def _make(mock: bool = False, **kwargs) -> ProvingClient:
        http_client = build_async_client(
            transport=httpx.MockTransport(fake_prover)
        )
        return ProvingClient(PROVER_URL, mock=mock, http_client=http_client, **kwargs)

    return _make


@pytest.fixture
def fake_chain() -> MagicMock:
    """OutputOracleReader stand-in with async reads."""
    chain = MagicMock()
    chain.latest_block_number = AsyncMock(return_value=100)
    chain.next_block_number = AsyncMock(return_value=200)
    chain.checkpoint_l1_block = AsyncMock(return_value=(19_000_000, "0x" + "ab" * 32))
    chain.l2_finalized_block_number = AsyncMock(return_value=1000)
    return chain


@pytest.fixture
def config() -> OrchestratorConfig:
    return OrchestratorConfig(
        prover_server_url=PROVER_URL,
        max_concurrent_proof_requests=10,
        proof_timeout=3600,
        max_block_range_per_span_proof=100,
        l1_rpc_url="http://l1.test",
        l2_rpc_url="http://l2.test",
        l2oo_address="0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6",
        poll_interval=0.01,
    )


@pytest.fixture
def make_ctx(config, memory_store, fake_chain, make_prover, clock):
    """Factory for OrchestratorContext with test collaborators."""

    def _make(
        store=None,
        mock: bool = False,
        pool: Optional[SubmissionPool] = None,
        **config_overrides,
    ) -> OrchestratorContext:
        for key, value in config_overrides.items():
            setattr(config, key, value)
        return OrchestratorContext(
            config=config,
            store=store if store is not None else memory_store,
            prover=make_prover(mock=mock),
            chain=fake_chain,
            pool=pool or SubmissionPool(config.max_pending_submissions),
            clock=clock,
        )

    return _make


@pytest.fixture
def sample_l1_hash() -> str:
    """Sample L1 block hash for tests."""
    return "0x" + "ef" * 32


@pytest.fixture
def sample_oracle_address() -> str:
    """Sample output oracle address for tests."""
    return "0x52f541764E6e90eeBc5c21Ff570De0e2D63766B6"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line("markers", "slow: mark test as slow-running")
