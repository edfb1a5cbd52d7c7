# src/storage/sqlite_store.py — v1
"""SQLite-backed pipeline store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3. Each row keeps the full pydantic document in a JSON
``data`` column next to the indexed columns used for filtering. Stage
status filters and per-stage updates go through SQLite's JSON functions.
The one-active-run-per-batch rule is a partial unique index, so a second
insert fails inside the database rather than in application code.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Iterable

from enliterator.core.errors import NotFoundError, RunConflictError
from enliterator.core.models import (
    Batch,
    Item,
    ItemStatus,
    PipelineRun,
    RunStatus,
    StageRecord,
)
from enliterator.core.stages import StageName
from enliterator.storage.base_store import ACTIVE_RUN_STATUSES, BasePipelineStore

logger = logging.getLogger(__name__)

_ACTIVE_SQL = ", ".join(f"'{s.value}'" for s in sorted(ACTIVE_RUN_STATUSES, key=lambda s: s.value))

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS batches (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    batch_id TEXT NOT NULL REFERENCES batches(id),
    ordinal INTEGER NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_items_batch ON items(batch_id, ordinal);
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    batch_id TEXT NOT NULL REFERENCES batches(id),
    status TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_runs_batch ON runs(batch_id, status);
CREATE UNIQUE INDEX IF NOT EXISTS idx_runs_one_active
    ON runs(batch_id) WHERE status IN ({_ACTIVE_SQL});
"""


class SqlitePipelineStore(BasePipelineStore):
    """SQLite store for batches, items and runs."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)

    # --- Batches ---

    async def create_batch(self, batch: Batch, items: list[Item]) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO batches (id, data, created_at) VALUES (?, ?, ?)",
                (batch.id, batch.model_dump_json(), batch.created_at.isoformat()),
            )
            self._conn.executemany(
                "INSERT INTO items (id, batch_id, ordinal, data) VALUES (?, ?, ?, ?)",
                [(i.id, i.batch_id, i.ordinal, i.model_dump_json()) for i in items],
            )

    async def get_batch(self, batch_id: str) -> Batch:
        row = self._conn.execute("SELECT data FROM batches WHERE id = ?", (batch_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Batch {batch_id} not found")
        return Batch.model_validate_json(row[0])

    async def save_batch(self, batch: Batch) -> None:
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE batches SET data = ? WHERE id = ?", (batch.model_dump_json(), batch.id)
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Batch {batch.id} not found")

    async def list_batches(self) -> list[Batch]:
        rows = self._conn.execute(
            "SELECT data FROM batches ORDER BY created_at DESC, rowid DESC"
        ).fetchall()
        return [Batch.model_validate_json(r[0]) for r in rows]

    # --- Items ---

    async def get_item(self, item_id: str) -> Item:
        row = self._conn.execute("SELECT data FROM items WHERE id = ?", (item_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Item {item_id} not found")
        return Item.model_validate_json(row[0])

    async def list_items(
        self,
        batch_id: str,
        stage: StageName | None = None,
        statuses: Iterable[ItemStatus] | None = None,
    ) -> list[Item]:
        sql = "SELECT data FROM items WHERE batch_id = ?"
        params: list[object] = [batch_id]
        if stage is not None and statuses is not None:
            wanted = [s.value for s in statuses]
            if not wanted:
                return []
            placeholders = ", ".join("?" for _ in wanted)
            sql += (
                f" AND COALESCE(json_extract(data, '$.stages.{stage.value}.status'),"
                f" '{ItemStatus.NOT_STARTED.value}') IN ({placeholders})"
            )
            params.extend(wanted)
        sql += " ORDER BY ordinal"
        rows = self._conn.execute(sql, params).fetchall()
        return [Item.model_validate_json(r[0]) for r in rows]

    async def save_item(self, item: Item) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE items SET data = ?, ordinal = ? WHERE id = ?",
                (item.model_dump_json(), item.ordinal, item.id),
            )

    async def update_item_stage(
        self, item_id: str, stage: StageName, record: StageRecord
    ) -> None:
        with self._conn:
            cursor = self._conn.execute(
                f"UPDATE items SET data = json_set(data, '$.stages.{stage.value}', json(?))"
                " WHERE id = ?",
                (record.model_dump_json(), item_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Item {item_id} not found")

    # --- Runs ---

    async def create_run(self, run: PipelineRun) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO runs (id, batch_id, status, data, created_at) VALUES (?, ?, ?, ?, ?)",
                    (run.id, run.batch_id, run.status.value, run.model_dump_json(),
                     run.created_at.isoformat()),
                )
        except sqlite3.IntegrityError as e:
            active = await self.active_run(run.batch_id)
            if active is None:
                raise
            raise RunConflictError(run.batch_id, active.id) from e

    async def get_run(self, run_id: str) -> PipelineRun:
        row = self._conn.execute("SELECT data FROM runs WHERE id = ?", (run_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"Pipeline run {run_id} not found")
        return PipelineRun.model_validate_json(row[0])

    async def save_run(self, run: PipelineRun) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE runs SET status = ?, data = ? WHERE id = ?",
                (run.status.value, run.model_dump_json(), run.id),
            )

    async def list_runs(
        self,
        batch_id: str | None = None,
        statuses: Iterable[RunStatus] | None = None,
    ) -> list[PipelineRun]:
        sql = "SELECT data FROM runs WHERE 1 = 1"
        params: list[object] = []
        if batch_id is not None:
            sql += " AND batch_id = ?"
            params.append(batch_id)
        if statuses is not None:
            wanted = [s.value for s in statuses]
            if not wanted:
                return []
            sql += f" AND status IN ({', '.join('?' for _ in wanted)})"
            params.extend(wanted)
        sql += " ORDER BY created_at DESC, rowid DESC"
        rows = self._conn.execute(sql, params).fetchall()
        return [PipelineRun.model_validate_json(r[0]) for r in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
