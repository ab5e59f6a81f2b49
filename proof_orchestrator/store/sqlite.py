"""
SQLite request store.

All proof requests live in a single table. Each mutation runs inside one
transaction on a single shared connection, so compound operations such as
reserve_witnessgen and try_create_agg_proof_from_span_proofs are atomic
with respect to each other.

Unlike the chain reader, which moves blocking web3 calls into the default
executor, store calls run directly on the event-loop thread. They are
short local-file queries, and running them inline keeps every loop's
check-then-act sequence (count, reserve, transition) free of interleaving
with other coroutines. A slow disk therefore stalls every loop for the
duration of the query.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from proof_orchestrator.proofs.admission import check_admission
from proof_orchestrator.proofs.types import (
    ProofRequest,
    ProofType,
    RequestStatus,
)
from proof_orchestrator.shared.exceptions import (
    RequestNotFoundException,
    StoreException,
)
from proof_orchestrator.shared.logging import get_logger
from proof_orchestrator.store.base import (
    check_fulfillable,
    check_range,
    check_transition,
    consecutive_span_chain,
    max_contiguous_span_end,
)

_logger = get_logger(__name__)

TABLE_NAME = "proof_requests"

CREATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL,
    start_block INTEGER NOT NULL,
    end_block INTEGER NOT NULL,
    status TEXT NOT NULL,
    prover_request_id TEXT,
    proof_request_time INTEGER,
    l1_block_number INTEGER,
    l1_block_hash TEXT,
    proof BLOB,
    CHECK (start_block < end_block)
)
"""

CREATE_INDEXES = (
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_status ON {TABLE_NAME} (status)",
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_type_status_start "
    f"ON {TABLE_NAME} (type, status, start_block)",
)

_COLUMNS = (
    "id, type, start_block, end_block, status, prover_request_id, "
    "proof_request_time, l1_block_number, l1_block_hash, proof"
)


def _row_to_request(row: sqlite3.Row) -> ProofRequest:
    proof = row["proof"]
    return ProofRequest(
        id=row["id"],
        type=ProofType(row["type"]),
        start_block=row["start_block"],
        end_block=row["end_block"],
        status=RequestStatus(row["status"]),
        prover_request_id=row["prover_request_id"],
        proof_request_time=row["proof_request_time"],
        l1_block_number=row["l1_block_number"],
        l1_block_hash=row["l1_block_hash"],
        proof=bytes(proof) if proof is not None else None,
    )


class SQLiteRequestStore:
    """
    RequestStore backed by a SQLite file.

    Use ":memory:" for a throwaway database.
    """

    def __init__(
        self, path: Path | str, clock: Callable[[], float] = time.time
    ) -> None:
        self._path = str(path)
        self._clock = clock
        self._lock = threading.RLock()

        if self._path != ":memory:":
            Path(self._path).expanduser().parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StoreException(f"Could not open request store at {self._path}: {e}")
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        with self._transaction() as cur:
            cur.execute(CREATE_TABLE)
            for statement in CREATE_INDEXES:
                cur.execute(statement)

    def _transaction(self):
        return _Transaction(self._conn, self._lock)

    def _fetch_one(self, cur: sqlite3.Cursor, request_id: int) -> ProofRequest:
        row = cur.execute(
            f"SELECT {_COLUMNS} FROM {TABLE_NAME} WHERE id = ?", (request_id,)
        ).fetchone()
        if row is None:
            raise RequestNotFoundException(f"No proof request with id {request_id}")
        return _row_to_request(row)

    def _count(self, cur: sqlite3.Cursor, *statuses: RequestStatus) -> int:
        if not statuses:
            return 0
        placeholders = ", ".join("?" for _ in statuses)
        row = cur.execute(
            f"SELECT COUNT(*) FROM {TABLE_NAME} WHERE status IN ({placeholders})",
            tuple(s.value for s in statuses),
        ).fetchone()
        return int(row[0])

    def _write_status(
        self, cur: sqlite3.Cursor, request_id: int, status: RequestStatus
    ) -> None:
        if status == RequestStatus.WITNESSGEN:
            cur.execute(
                f"UPDATE {TABLE_NAME} SET status = ?, proof_request_time = ? WHERE id = ?",
                (status.value, int(self._clock()), request_id),
            )
        else:
            cur.execute(
                f"UPDATE {TABLE_NAME} SET status = ? WHERE id = ?",
                (status.value, request_id),
            )

    def _insert(
        self,
        cur: sqlite3.Cursor,
        proof_type: ProofType,
        start_block: int,
        end_block: int,
    ) -> ProofRequest:
        check_range(start_block, end_block)
        cur.execute(
            f"INSERT INTO {TABLE_NAME} (type, start_block, end_block, status) "
            f"VALUES (?, ?, ?, ?)",
            (
                ProofType(proof_type).value,
                start_block,
                end_block,
                RequestStatus.UNREQUESTED.value,
            ),
        )
        return self._fetch_one(cur, cur.lastrowid)

    def _complete_spans(self, cur: sqlite3.Cursor) -> List[ProofRequest]:
        rows = cur.execute(
            f"SELECT {_COLUMNS} FROM {TABLE_NAME} "
            f"WHERE type = ? AND status = ? ORDER BY start_block, id",
            (ProofType.SPAN.value, RequestStatus.COMPLETE.value),
        ).fetchall()
        return [_row_to_request(r) for r in rows]

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, request_id: int) -> Optional[ProofRequest]:
        with self._transaction() as cur:
            try:
                return self._fetch_one(cur, request_id)
            except RequestNotFoundException:
                return None

    def all(self) -> List[ProofRequest]:
        with self._transaction() as cur:
            rows = cur.execute(
                f"SELECT {_COLUMNS} FROM {TABLE_NAME} ORDER BY id"
            ).fetchall()
            return [_row_to_request(r) for r in rows]

    def get_all_with_status(self, status: RequestStatus) -> List[ProofRequest]:
        with self._transaction() as cur:
            rows = cur.execute(
                f"SELECT {_COLUMNS} FROM {TABLE_NAME} WHERE status = ? ORDER BY id",
                (status.value,),
            ).fetchall()
            return [_row_to_request(r) for r in rows]

    def get_next_unrequested_proof(self) -> Optional[ProofRequest]:
        with self._transaction() as cur:
            row = cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM {TABLE_NAME}
                WHERE status = ?
                ORDER BY CASE type WHEN ? THEN 0 ELSE 1 END, start_block, id
                LIMIT 1
                """,
                (RequestStatus.UNREQUESTED.value, ProofType.AGG.value),
            ).fetchone()
            return _row_to_request(row) if row is not None else None

    def get_count_by_statuses(self, *statuses: RequestStatus) -> int:
        with self._transaction() as cur:
            return self._count(cur, *statuses)

    def get_consecutive_span_proofs(
        self, start_block: int, end_block: int
    ) -> List[ProofRequest]:
        with self._transaction() as cur:
            return consecutive_span_chain(
                self._complete_spans(cur), start_block, end_block
            )

    def get_max_span_end_block(self) -> Optional[int]:
        with self._transaction() as cur:
            row = cur.execute(
                f"SELECT MAX(end_block) FROM {TABLE_NAME} WHERE type = ? AND status != ?",
                (ProofType.SPAN.value, RequestStatus.FAILED.value),
            ).fetchone()
            return int(row[0]) if row[0] is not None else None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def new_entry(
        self, proof_type: ProofType, start_block: int, end_block: int
    ) -> ProofRequest:
        with self._transaction() as cur:
            return self._insert(cur, proof_type, start_block, end_block)

    def update_status(self, request_id: int, status: RequestStatus) -> None:
        with self._transaction() as cur:
            request = self._fetch_one(cur, request_id)
            check_transition(request, status)
            self._write_status(cur, request_id, status)

    def reserve_witnessgen(
        self, request_id: int, max_concurrent_proof_requests: int
    ) -> bool:
        with self._transaction() as cur:
            request = self._fetch_one(cur, request_id)
            check_transition(request, RequestStatus.WITNESSGEN)
            decision = check_admission(
                self._count(cur, RequestStatus.WITNESSGEN),
                self._count(cur, RequestStatus.PROVING),
                max_concurrent_proof_requests,
            )
            if not decision:
                return False
            self._write_status(cur, request_id, RequestStatus.WITNESSGEN)
            return True

    def add_fulfilled_proof(self, request_id: int, proof: bytes) -> None:
        with self._transaction() as cur:
            request = self._fetch_one(cur, request_id)
            check_fulfillable(request)
            cur.execute(
                f"UPDATE {TABLE_NAME} SET proof = ?, status = ? WHERE id = ?",
                (
                    sqlite3.Binary(bytes(proof)),
                    RequestStatus.COMPLETE.value,
                    request_id,
                ),
            )

    def set_prover_request_id(
        self, request_id: int, prover_request_id: str
    ) -> None:
        with self._transaction() as cur:
            self._fetch_one(cur, request_id)
            cur.execute(
                f"UPDATE {TABLE_NAME} SET prover_request_id = ? WHERE id = ?",
                (prover_request_id, request_id),
            )

    def try_create_agg_proof_from_span_proofs(
        self, from_block: int, to_block: int
    ) -> Tuple[bool, int]:
        with self._transaction() as cur:
            actual_end = max_contiguous_span_end(
                self._complete_spans(cur), from_block
            )
            if actual_end is None or actual_end < to_block:
                return False, 0

            row = cur.execute(
                f"""
                SELECT COUNT(*) FROM {TABLE_NAME}
                WHERE type = ? AND status != ?
                  AND start_block < ? AND ? < end_block
                """,
                (
                    ProofType.AGG.value,
                    RequestStatus.FAILED.value,
                    actual_end,
                    from_block,
                ),
            ).fetchone()
            if row[0] > 0:
                return False, 0

            self._insert(cur, ProofType.AGG, from_block, actual_end)
            return True, actual_end

    def add_l1_block_info_to_agg_request(
        self,
        start_block: int,
        end_block: int,
        l1_block_number: int,
        l1_block_hash: str,
    ) -> ProofRequest:
        with self._transaction() as cur:
            row = cur.execute(
                f"""
                SELECT id FROM {TABLE_NAME}
                WHERE type = ? AND status = ? AND start_block = ? AND end_block = ?
                ORDER BY id LIMIT 1
                """,
                (
                    ProofType.AGG.value,
                    RequestStatus.UNREQUESTED.value,
                    start_block,
                    end_block,
                ),
            ).fetchone()
            if row is None:
                raise RequestNotFoundException(
                    f"No unrequested AGG request for [{start_block}, {end_block}]"
                )
            cur.execute(
                f"UPDATE {TABLE_NAME} SET l1_block_number = ?, l1_block_hash = ? WHERE id = ?",
                (l1_block_number, l1_block_hash, row["id"]),
            )
            return self._fetch_one(cur, row["id"])

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class _Transaction:
    """Serialize access to the connection and commit or roll back as a unit."""

    def __init__(self, conn: sqlite3.Connection, lock: threading.RLock):
        self._conn = conn
        self._lock = lock
        self._cursor: Optional[sqlite3.Cursor] = None

    def __enter__(self) -> sqlite3.Cursor:
        self._lock.acquire()
        self._cursor = self._conn.cursor()
        return self._cursor

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self._conn.commit()
            else:
                self._conn.rollback()
        finally:
            self._cursor.close()
            self._lock.release()

        if exc_type is not None and issubclass(exc_type, sqlite3.Error):
            _logger.error("Request store operation failed: %s", exc)
            raise StoreException(f"Request store operation failed: {exc}") from exc
        return False
