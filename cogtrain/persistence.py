from __future__ import annotations

import json
import os
import sqlite3
import time
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from .results import TrainingResult

SCHEMA_VERSION = 1

DB_PATH_ENV = "COGTRAIN_DB_PATH"
CACHE_PATH_ENV = "COGTRAIN_CACHE_PATH"

LOCAL_ID_PREFIX = "local_"


def default_db_path() -> Path:
    explicit = os.environ.get(DB_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".cogtrain" / "records.sqlite3"


def default_cache_path() -> Path:
    explicit = os.environ.get(CACHE_PATH_ENV)
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".cogtrain" / "local_cache.json"


@dataclass(frozen=True, slots=True)
class TrainingRecord:
    id: str
    created_at_utc: str
    result: TrainingResult

    @property
    def is_local(self) -> bool:
        return self.id.startswith(LOCAL_ID_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "created_at_utc": self.created_at_utc, "result": asdict(self.result)}

    @classmethod
    def from_dict(cls, payload: object) -> TrainingRecord | None:
        if not isinstance(payload, dict):
            return None
        raw = payload.get("result")
        record_id = str(payload.get("id", "")).strip()
        if record_id == "" or not isinstance(raw, dict):
            return None
        try:
            result = TrainingResult(
                task_code=str(raw["task_code"]),
                difficulty=int(raw["difficulty"]),
                seed=int(raw["seed"]),
                score=int(raw["score"]),
                accuracy=float(raw["accuracy"]),
                duration_s=float(raw["duration_s"]),
                details=dict(raw.get("details") or {}),
            )
        except (KeyError, TypeError, ValueError):
            return None
        return cls(id=record_id, created_at_utc=str(payload.get("created_at_utc", "")), result=result)


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def open_db(path: Path) -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS training_record (
                id TEXT PRIMARY KEY,
                task_code TEXT NOT NULL,
                difficulty INTEGER NOT NULL,
                rng_seed INTEGER NOT NULL,
                score INTEGER NOT NULL,
                accuracy REAL NOT NULL,
                duration_s REAL NOT NULL,
                created_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS record_metric (
                record_id TEXT NOT NULL REFERENCES training_record(id) ON DELETE CASCADE,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (record_id, key)
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_training_record_task ON training_record(task_code, created_at_utc);"
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class RecordStore:
    """SQLite store: training_record rows plus one record_metric row per detail."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def insert(self, record: TrainingRecord) -> str:
        conn = open_db(self._path)
        try:
            r = record.result
            with conn:
                conn.execute(
                    """
                    INSERT INTO training_record(
                        id, task_code, difficulty, rng_seed, score, accuracy, duration_s, created_at_utc
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        r.task_code,
                        int(r.difficulty),
                        int(r.seed),
                        int(r.score),
                        float(r.accuracy),
                        float(r.duration_s),
                        record.created_at_utc,
                    ),
                )
                for k, v in r.details.items():
                    conn.execute(
                        "INSERT INTO record_metric(record_id, key, value) VALUES (?, ?, ?)",
                        (record.id, str(k), json.dumps(v)),
                    )
            return record.id
        finally:
            conn.close()

    def list_records(self, *, task_code: str | None = None, limit: int | None = None) -> list[TrainingRecord]:
        """Newest first."""

        conn = open_db(self._path)
        try:
            sql = (
                "SELECT id, task_code, difficulty, rng_seed, score, accuracy, duration_s, created_at_utc "
                "FROM training_record"
            )
            params: list[Any] = []
            if task_code is not None:
                sql += " WHERE task_code = ?"
                params.append(task_code)
            sql += " ORDER BY created_at_utc DESC, rowid DESC"
            if limit is not None:
                sql += " LIMIT ?"
                params.append(int(limit))
            rows = conn.execute(sql, params).fetchall()

            records: list[TrainingRecord] = []
            for rid, code, difficulty, seed, score, accuracy, duration, created in rows:
                metrics = conn.execute(
                    "SELECT key, value FROM record_metric WHERE record_id = ? ORDER BY key", (rid,)
                ).fetchall()
                details = {k: json.loads(v) for k, v in metrics}
                result = TrainingResult(
                    task_code=str(code),
                    difficulty=int(difficulty),
                    seed=int(seed),
                    score=int(score),
                    accuracy=float(accuracy),
                    duration_s=float(duration),
                    details=details,
                )
                records.append(TrainingRecord(id=str(rid), created_at_utc=str(created), result=result))
            return records
        finally:
            conn.close()


class LocalCache:
    """JSON file holding records that could not reach the store.

    A missing or unreadable file yields an empty cache.
    """

    _version = 1

    def __init__(self, path: Path) -> None:
        self._path = path
        self._records: list[TrainingRecord] = []
        self._pending: list[str] = []
        self._device_id = ""
        self._load()
        if self._device_id == "":
            self._device_id = uuid.uuid4().hex
            self.save()

    @property
    def device_id(self) -> str:
        return self._device_id

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("local cache at {} is unreadable; starting empty", self._path)
            return
        if not isinstance(payload, dict):
            return

        self._device_id = str(payload.get("device_id", "")).strip()
        raw_records = payload.get("records")
        if isinstance(raw_records, list):
            for item in raw_records:
                record = TrainingRecord.from_dict(item)
                if record is not None:
                    self._records.append(record)
        known = {r.id for r in self._records}
        raw_pending = payload.get("pending")
        if isinstance(raw_pending, list):
            self._pending = [str(p) for p in raw_pending if str(p) in known]

    def save(self) -> None:
        payload = {
            "version": self._version,
            "device_id": self._device_id,
            "records": [r.to_dict() for r in self._records],
            "pending": list(self._pending),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            logger.warning("could not write local cache {}: {}", self._path, exc)

    def add(self, record: TrainingRecord, *, pending: bool = True) -> None:
        self._records = [r for r in self._records if r.id != record.id]
        self._records.append(record)
        if pending and record.id not in self._pending:
            self._pending.append(record.id)
        self.save()

    def records(self, *, task_code: str | None = None, limit: int | None = None) -> list[TrainingRecord]:
        """Newest first."""

        out = [r for r in reversed(self._records) if task_code is None or r.result.task_code == task_code]
        out.sort(key=lambda r: r.created_at_utc, reverse=True)
        return out if limit is None else out[: max(0, int(limit))]

    def pending_records(self) -> list[TrainingRecord]:
        by_id = {r.id: r for r in self._records}
        return [by_id[p] for p in self._pending if p in by_id]

    def mark_synced(self, record_ids: list[str]) -> None:
        done = set(record_ids)
        self._pending = [p for p in self._pending if p not in done]
        self._records = [r for r in self._records if r.id not in done]
        self.save()


class TrainingRecorder:
    """Saves results to the store, falling back to the local cache."""

    def __init__(
        self,
        *,
        store: RecordStore,
        cache: LocalCache,
        now_utc: Callable[[], str] = _utc_now_iso,
    ) -> None:
        self._store = store
        self._cache = cache
        self._now_utc = now_utc

    @classmethod
    def default(cls) -> TrainingRecorder:
        return cls(store=RecordStore(default_db_path()), cache=LocalCache(default_cache_path()))

    @property
    def cache(self) -> LocalCache:
        return self._cache

    def save_record(self, result: TrainingResult) -> TrainingRecord:
        record = TrainingRecord(id=uuid.uuid4().hex, created_at_utc=self._now_utc(), result=result)
        try:
            self._store.insert(record)
            return record
        except (sqlite3.Error, OSError) as exc:
            logger.warning("saving {} record failed ({}); caching locally", result.task_code, exc)

        local = TrainingRecord(
            id=f"{LOCAL_ID_PREFIX}{record.id}",
            created_at_utc=record.created_at_utc,
            result=result,
        )
        self._cache.add(local, pending=True)
        return local

    def get_records(self, *, task_code: str | None = None, limit: int | None = None) -> list[TrainingRecord]:
        cached = self._cache.records(task_code=task_code)
        try:
            stored = self._store.list_records(task_code=task_code, limit=limit)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("reading records failed ({}); using local cache", exc)
            stored = []

        seen = {r.id for r in stored}
        merged = stored + [r for r in cached if r.id not in seen]
        merged.sort(key=lambda r: r.created_at_utc, reverse=True)
        return merged if limit is None else merged[: max(0, int(limit))]

    def sync_pending(self) -> int:
        """Push queued local records to the store. Returns how many went through."""

        synced: list[str] = []
        for record in self._cache.pending_records():
            try:
                self._store.insert(record)
            except sqlite3.IntegrityError:
                # Already stored by an earlier, interrupted sync.
                synced.append(record.id)
            except (sqlite3.Error, OSError) as exc:
                logger.warning("sync stopped at {} ({})", record.id, exc)
                break
            else:
                synced.append(record.id)

        if synced:
            self._cache.mark_synced(synced)
            logger.info("synced {} cached record(s)", len(synced))
        return len(synced)
