import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id  TEXT    NOT NULL,
    command     TEXT    NOT NULL,
    status      TEXT    NOT NULL DEFAULT 'pending',
    metadata    TEXT    DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS runs_session ON runs (session_id);
"""


class RunStatus(str, Enum):
    pending = "pending"
    rejected = "rejected"
    done = "done"
    failed = "failed"


class Run(BaseModel):
    id: int | None = None
    session_id: str
    command: str
    status: RunStatus = RunStatus.pending
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: aiosqlite.Row) -> "Run":
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            command=row["command"],
            status=RunStatus(row["status"]),
            metadata=json.loads(row["metadata"] or "{}"),
        )


async def init_db(db_path: str) -> None:
    """Create DB file + schema if not present."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(db_path) as db:
        await db.executescript(DB_SCHEMA)
        await db.commit()
    logger.debug("Run history initialised at %s", db_path)


async def record_run(
    db_path: str,
    session_id: str,
    command: str,
    metadata: dict | None = None,
) -> int:
    """Insert a new pending run; returns its id."""
    async with aiosqlite.connect(db_path) as db:
        cursor = await db.execute(
            "INSERT INTO runs (session_id, command, status, metadata) VALUES (?, ?, ?, ?)",
            (session_id, command, RunStatus.pending.value, json.dumps(metadata or {})),
        )
        await db.commit()
        return cursor.lastrowid  # type: ignore[return-value]


async def update_run_status(
    db_path: str,
    run_id: int,
    status: RunStatus,
    metadata: dict | None = None,
) -> None:
    """Update a run's status, merging *metadata* into what is already stored."""
    async with aiosqlite.connect(db_path) as db:
        if metadata is not None:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT metadata FROM runs WHERE id = ?", (run_id,)) as cursor:
                row = await cursor.fetchone()
            merged = json.loads(row["metadata"] or "{}") if row else {}
            merged.update(metadata)
            await db.execute(
                "UPDATE runs SET status=?, metadata=? WHERE id=?",
                (status.value, json.dumps(merged), run_id),
            )
        else:
            await db.execute(
                "UPDATE runs SET status=? WHERE id=?",
                (status.value, run_id),
            )
        await db.commit()


async def get_run_by_id(db_path: str, run_id: int) -> Run | None:
    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute("SELECT * FROM runs WHERE id = ?", (run_id,)) as cursor:
            row = await cursor.fetchone()
    return Run.from_row(row) if row else None


async def get_recent_runs(db_path: str, limit: int = 20) -> list[Run]:
    """Return the most recent runs, newest first."""
    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM runs ORDER BY id DESC LIMIT ?",
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()
    return [Run.from_row(r) for r in rows]


async def get_session_runs(db_path: str, session_id: str) -> list[Run]:
    """Return every run recorded for *session_id*, oldest first."""
    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM runs WHERE session_id = ? ORDER BY id ASC",
            (session_id,),
        ) as cursor:
            rows = await cursor.fetchall()
    return [Run.from_row(r) for r in rows]


async def clear_runs(db_path: str, session_id: str | None = None) -> int:
    """Delete all runs, or only those of *session_id*; returns the number removed."""
    async with aiosqlite.connect(db_path) as db:
        if session_id is None:
            cursor = await db.execute("DELETE FROM runs")
        else:
            cursor = await db.execute("DELETE FROM runs WHERE session_id = ?", (session_id,))
        await db.commit()
        return cursor.rowcount


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def atomic_write(path: str | Path, content: str) -> None:
    """Write *content* to *path* atomically using a temp file + os.replace."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except Exception:
        os.unlink(tmp_path)
        raise


def setup_logging(log_dir: str, level: int = logging.INFO) -> None:
    """Configure rotating file + stderr logging."""
    import logging.handlers

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = (log_path / "fusy.log").resolve()

    root = logging.getLogger()
    if any(getattr(h, "baseFilename", None) == str(log_file) for h in root.handlers):
        return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
    )
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.WARNING)

    root.setLevel(level)
    root.addHandler(handler)
    root.addHandler(stream_handler)
