"""
Unit tests for the bounded submission pool.
"""

import asyncio
import logging

import pytest

from proof_orchestrator.proofs.tasks import (
    SubmissionPool,
    SubmissionPoolFull,
    submission_task_name,
)
from proof_orchestrator.proofs.types import ProofType


class TestSubmissionPool:
    """Tests for SubmissionPool."""

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            SubmissionPool(0)

    @pytest.mark.asyncio
    async def test_runs_and_counts_completed(self):
        pool = SubmissionPool(2)
        done = []

        async def work():
            done.append(True)

        pool.submit(work(), name="work-1")
        await pool.drain()

        assert done == [True]
        assert pool.completed == 1
        assert pool.failed == 0
        assert pool.pending == 0

    @pytest.mark.asyncio
    async def test_refuses_when_full(self):
        pool = SubmissionPool(1)
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()

        pool.submit(blocked(), name="blocked")
        assert pool.has_capacity() is False

        with pytest.raises(SubmissionPoolFull):
            pool.submit(blocked(), name="second")

        gate.set()
        await pool.drain()
        assert pool.has_capacity() is True

    @pytest.mark.asyncio
    async def test_failures_are_logged_and_counted(self, caplog):
        pool = SubmissionPool(1)

        async def broken():
            raise RuntimeError("store rejected completion")

        with caplog.at_level(logging.ERROR):
            pool.submit(broken(), name="span-7")
            await pool.drain()

        assert pool.failed == 1
        assert isinstance(pool.last_error, RuntimeError)
        assert "span-7" in caplog.text
        assert "store rejected completion" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_waits_for_tasks_started_meanwhile(self):
        pool = SubmissionPool(2)
        order = []

        async def second():
            order.append("second")

        async def first():
            await asyncio.sleep(0)
            pool.submit(second(), name="second")
            order.append("first")

        pool.submit(first(), name="first")
        await pool.drain()

        assert order == ["first", "second"]
        assert pool.completed == 2

    @pytest.mark.asyncio
    async def test_is_running_tracks_named_tasks(self, memory_store):
        request = memory_store.new_entry(ProofType.AGG, 100, 200)
        name = submission_task_name(request)
        pool = SubmissionPool(2)
        release = asyncio.Event()

        pool.submit(release.wait(), name=name)
        assert name == f"agg-{request.id}"
        assert pool.is_running(name)
        assert not pool.is_running(f"span-{request.id}")

        release.set()
        await pool.drain()
        assert not pool.is_running(name)
