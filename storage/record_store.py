"""SQLite-backed record store.

Provides key-addressed record collections (one per entity type) in a single
SQLite file. Each row carries a checksum over its canonical JSON payload so
append-only collections can be audited for tampering.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import structlog
from blake3 import blake3

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1


class ImmutableRecordError(RuntimeError):
    """Raised when an append-only record would be overwritten."""


def _canonical_bytes(payload: Mapping[str, Any]) -> bytes:
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def compute_checksum(collection: str, payload: Mapping[str, Any]) -> str:
    """Compute the row checksum for a payload.

    Args:
        collection: Name of the collection the record belongs to.
        payload: JSON-serializable mapping.

    Returns:
        Hex blake3 digest over the collection name and canonical JSON.
    """
    return blake3(collection.encode("utf-8") + _canonical_bytes(payload)).hexdigest()


@dataclass(frozen=True)
class StoredRecord:
    """Stored row."""

    collection: str
    id: str
    space_id: str | None
    data: Mapping[str, Any]
    checksum: str
    schema_ver: int


class RecordStore:
    """SQLite record store.

    Creates the ``records`` table if it does not exist. Uses WAL for durability.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = db_path
        if str(db_path) != ":memory:":
            path = Path(db_path)
            if path.parent and not path.parent.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path))
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute(
            (
                "CREATE TABLE IF NOT EXISTS records (\n"
                "  seq INTEGER PRIMARY KEY AUTOINCREMENT,\n"
                "  collection TEXT NOT NULL,\n"
                "  id TEXT NOT NULL,\n"
                "  space_id TEXT NULL,\n"
                "  data TEXT NOT NULL,\n"
                "  checksum TEXT NOT NULL,\n"
                "  schema_ver INTEGER NOT NULL,\n"
                "  UNIQUE (collection, id)\n"
                ")"
            )
        )
        self._conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_records_space ON records(collection, space_id)"
        )
        self._conn.commit()

    def collection(self, name: str, *, append_only: bool = False) -> "Collection":
        """Return a handle on a named collection."""
        return Collection(self, name, append_only=append_only)

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._conn.close()

    # -----------------------------
    # Row-level primitives used by Collection
    # -----------------------------

    def _select(self, where: str, params: tuple) -> list[StoredRecord]:
        cur = self._conn.execute(
            "SELECT collection, id, space_id, data, checksum, schema_ver FROM records "
            f"WHERE {where} ORDER BY seq ASC",
            params,
        )
        return [
            StoredRecord(
                collection=str(r[0]),
                id=str(r[1]),
                space_id=r[2],
                data=json.loads(r[3]),
                checksum=str(r[4]),
                schema_ver=int(r[5]),
            )
            for r in cur.fetchall()
        ]

    def _write(
        self,
        collection: str,
        record_id: str,
        space_id: str | None,
        payload: Mapping[str, Any],
        *,
        replace: bool,
    ) -> None:
        data = _canonical_bytes(payload).decode("utf-8")
        checksum = compute_checksum(collection, payload)
        if replace:
            sql = (
                "INSERT INTO records (collection, id, space_id, data, checksum, schema_ver) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(collection, id) DO UPDATE SET "
                "space_id = excluded.space_id, data = excluded.data, "
                "checksum = excluded.checksum, schema_ver = excluded.schema_ver"
            )
        else:
            sql = (
                "INSERT INTO records (collection, id, space_id, data, checksum, schema_ver) "
                "VALUES (?, ?, ?, ?, ?, ?)"
            )
        try:
            self._conn.execute(
                sql, (collection, record_id, space_id, data, checksum, SCHEMA_VERSION)
            )
        except sqlite3.IntegrityError as e:
            self._conn.rollback()
            raise ImmutableRecordError(
                f"Record {record_id!r} already exists in append-only collection {collection!r}"
            ) from e
        self._conn.commit()

    def _delete(self, where: str, params: tuple) -> int:
        cur = self._conn.execute(f"DELETE FROM records WHERE {where}", params)
        self._conn.commit()
        return int(cur.rowcount)


class Collection:
    """A key-addressed set of JSON records of one entity type.

    Records are returned in insertion order. Upserts keep a record's original
    position. Append-only collections reject both upserts and overwrites.
    """

    def __init__(self, store: RecordStore, name: str, *, append_only: bool = False) -> None:
        self._store = store
        self.name = name
        self.append_only = append_only

    def get(self, record_id: str) -> dict[str, Any] | None:
        rows = self._store._select("collection = ? AND id = ?", (self.name, record_id))
        return dict(rows[0].data) if rows else None

    def all(self) -> list[dict[str, Any]]:
        return [dict(r.data) for r in self._store._select("collection = ?", (self.name,))]

    def by_space(self, space_id: str) -> list[dict[str, Any]]:
        rows = self._store._select("collection = ? AND space_id = ?", (self.name, space_id))
        return [dict(r.data) for r in rows]

    def find_by(self, field: str, value: Any) -> list[dict[str, Any]]:
        """Return records whose top-level ``field`` equals ``value``."""
        rows = self._store._select(
            "collection = ? AND json_extract(data, ?) = ?",
            (self.name, f"$.{field}", value),
        )
        return [dict(r.data) for r in rows]

    def insert(self, record_id: str, payload: Mapping[str, Any], *, space_id: str | None = None) -> None:
        """Insert a new record; raise ``ImmutableRecordError`` if the id exists."""
        self._store._write(self.name, record_id, space_id, payload, replace=False)
        logger.debug("record_inserted", collection=self.name, id=record_id)

    def upsert(self, record_id: str, payload: Mapping[str, Any], *, space_id: str | None = None) -> None:
        if self.append_only:
            raise ImmutableRecordError(f"Collection {self.name!r} is append-only")
        self._store._write(self.name, record_id, space_id, payload, replace=True)
        logger.debug("record_upserted", collection=self.name, id=record_id)

    def delete(self, record_id: str) -> bool:
        return self._store._delete("collection = ? AND id = ?", (self.name, record_id)) > 0

    def delete_by(self, field: str, value: Any) -> int:
        n = self._store._delete(
            "collection = ? AND json_extract(data, ?) = ?", (self.name, f"$.{field}", value)
        )
        logger.debug("records_deleted", collection=self.name, field=field, count=n)
        return n

    def delete_by_space(self, space_id: str) -> int:
        return self._store._delete("collection = ? AND space_id = ?", (self.name, space_id))

    def clear(self) -> int:
        return self._store._delete("collection = ?", (self.name,))

    def corrupted_ids(self) -> list[str]:
        """Return ids whose stored checksum no longer matches their payload."""
        return [
            r.id
            for r in self._store._select("collection = ?", (self.name,))
            if compute_checksum(self.name, r.data) != r.checksum
        ]
