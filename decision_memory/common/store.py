"""
Event Store

Persistence for raw events (append-only), normalized events and decisions
(upsert by id). ``EventStore`` is the interface the pipeline is written
against; ``SQLiteEventStore`` is the single-file implementation.

Every batch write runs in one transaction: either the whole batch lands or
none of it does, so replaying an ingestion or a normalization run is safe.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .schemas import Decision, NormalizedEvent, RawEvent

logger = logging.getLogger("decision_memory.common.store")


SQL_CREATE = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    type TEXT NOT NULL,
    action TEXT NOT NULL,
    source TEXT NOT NULL,
    repository TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp);
CREATE INDEX IF NOT EXISTS idx_events_type_repo ON events(type, repository);
CREATE INDEX IF NOT EXISTS idx_events_repository ON events(repository);

CREATE TABLE IF NOT EXISTS normalized_events (
    id TEXT PRIMARY KEY,
    original_event_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    event_type TEXT NOT NULL,
    repository TEXT NOT NULL,
    title TEXT,
    content TEXT,
    confidence_score REAL NOT NULL,
    record TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_norm_repo_conf ON normalized_events(repository, confidence_score);
CREATE INDEX IF NOT EXISTS idx_norm_timestamp ON normalized_events(timestamp);

CREATE TABLE IF NOT EXISTS decisions (
    id TEXT PRIMARY KEY,
    source_event_id TEXT NOT NULL,
    repository TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    decision_statement TEXT NOT NULL,
    rationale TEXT,
    decision_type TEXT NOT NULL,
    extraction_confidence REAL NOT NULL,
    record TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_decisions_repo ON decisions(repository);
CREATE INDEX IF NOT EXISTS idx_decisions_type ON decisions(decision_type);
CREATE INDEX IF NOT EXISTS idx_decisions_timestamp ON decisions(timestamp);
"""


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 text, so lexical order is chronological order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class EventStore(ABC):
    """Storage engine interface used by the pipeline."""

    # Raw events

    @abstractmethod
    def store_batch(self, events: Sequence[RawEvent]) -> int:
        """Append raw events atomically. Already-stored ids are ignored.

        Returns:
            Number of events newly inserted
        """
        pass

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[RawEvent]:
        pass

    @abstractmethod
    def get_events(
        self,
        repository: Optional[str] = None,
        event_type: Optional[str] = None,
        after: Optional[datetime] = None,
        before: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[RawEvent]:
        """Raw events, newest first."""
        pass

    @abstractmethod
    def search_events(
        self,
        term: str,
        repository: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[RawEvent]:
        """Raw events whose payload contains ``term``, newest first."""
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def list_repositories(self) -> List[Dict[str, Any]]:
        pass

    # Normalized events

    @abstractmethod
    def upsert_normalized_batch(self, events: Sequence[NormalizedEvent]) -> int:
        pass

    @abstractmethod
    def get_normalized_event(self, event_id: str) -> Optional[NormalizedEvent]:
        pass

    @abstractmethod
    def get_normalized_events(
        self,
        repository: str,
        event_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[NormalizedEvent]:
        pass

    @abstractmethod
    def search_normalized_events(
        self,
        term: str,
        repository: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[NormalizedEvent]:
        pass

    @abstractmethod
    def get_decision_candidates(
        self,
        repository: str,
        min_confidence: float = 0.4,
        limit: Optional[int] = None,
    ) -> List[NormalizedEvent]:
        """Candidates ordered by confidence desc, then timestamp desc."""
        pass

    @abstractmethod
    def get_normalization_stats(self, repository: str) -> Dict[str, Any]:
        pass

    # Decisions

    @abstractmethod
    def upsert_decision(self, decision: Decision) -> None:
        pass

    @abstractmethod
    def get_decision(self, decision_id: str) -> Optional[Decision]:
        pass

    @abstractmethod
    def get_decisions(
        self,
        repository: Optional[str] = None,
        decision_type: Optional[str] = None,
        min_confidence: Optional[float] = None,
        after: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Decision]:
        pass

    @abstractmethod
    def find_decisions(
        self,
        repository: str,
        term: str,
        limit: Optional[int] = None,
    ) -> List[Decision]:
        """Decisions whose statement or rationale contains ``term``."""
        pass

    @abstractmethod
    def get_extraction_stats(self, repository: str) -> Dict[str, Any]:
        pass

    def close(self) -> None:
        pass


class SQLiteEventStore(EventStore):
    """
    SQLite-backed event store.

    One connection shared across threads, serialized by a re-entrant lock.
    WAL journaling lets readers proceed while a batch is being written.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or ":memory:"
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_db()
        logger.info("Event store initialized at %s", self.path)

    def _init_db(self) -> None:
        with self._lock:
            if self.path != ":memory:":
                self.conn.execute("PRAGMA journal_mode = WAL")
            self.conn.executescript(SQL_CREATE)
            self.conn.commit()

    def close(self) -> None:
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, tuple(params)).fetchall()

    # ------------------------------------------------------------------
    # Raw events
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_raw(row: sqlite3.Row) -> RawEvent:
        return RawEvent(
            id=row["id"],
            timestamp=row["timestamp"],
            type=row["type"],
            action=row["action"],
            source=row["source"],
            repository=row["repository"],
            data=json.loads(row["data"]),
        )

    def store_batch(self, events: Sequence[RawEvent]) -> int:
        if not events:
            return 0
        rows = [
            (
                e.id,
                format_timestamp(e.timestamp),
                e.type,
                e.action,
                e.source,
                e.repository,
                json.dumps(e.data, ensure_ascii=False),
            )
            for e in events
        ]
        with self._lock:
            try:
                with self.conn:
                    before = self.conn.total_changes
                    self.conn.executemany(
                        "INSERT OR IGNORE INTO events "
                        "(id, timestamp, type, action, source, repository, data) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?)",
                        rows,
                    )
                    inserted = self.conn.total_changes - before
            except sqlite3.Error as e:
                logger.error("Batch storage failed: %s", e)
                raise
        logger.info("Stored batch of %d events (%d new)", len(rows), inserted)
        return inserted

    def get_event(self, event_id: str) -> Optional[RawEvent]:
        rows = self._query("SELECT * FROM events WHERE id = ?", (event_id,))
        return self._row_to_raw(rows[0]) if rows else None

    def get_events(
        self,
        repository: Optional[str] = None,
        event_type: Optional[str] = None,
        after: Optional[datetime] = None,
        before: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[RawEvent]:
        sql = "SELECT * FROM events WHERE 1=1"
        params: List[Any] = []
        if event_type:
            sql += " AND type = ?"
            params.append(event_type)
        if repository:
            sql += " AND repository = ?"
            params.append(repository)
        if after:
            sql += " AND timestamp > ?"
            params.append(format_timestamp(after))
        if before:
            sql += " AND timestamp < ?"
            params.append(format_timestamp(before))
        sql += " ORDER BY timestamp DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_raw(r) for r in self._query(sql, params)]

    def search_events(
        self,
        term: str,
        repository: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[RawEvent]:
        sql = "SELECT * FROM events WHERE data LIKE ? ESCAPE '\\'"
        params: List[Any] = [_like_pattern(term)]
        if repository:
            sql += " AND repository = ?"
            params.append(repository)
        if event_type:
            sql += " AND type = ?"
            params.append(event_type)
        sql += " ORDER BY timestamp DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_raw(r) for r in self._query(sql, params)]

    def get_stats(self) -> Dict[str, Any]:
        total = self._query("SELECT COUNT(*) AS count FROM events")[0]["count"]
        by_type = self._query(
            "SELECT type, COUNT(*) AS count FROM events GROUP BY type ORDER BY count DESC"
        )
        by_repo = self._query(
            "SELECT repository, COUNT(*) AS count FROM events "
            "GROUP BY repository ORDER BY count DESC"
        )
        return {
            "total": total,
            "by_type": {r["type"]: r["count"] for r in by_type},
            "by_repository": {r["repository"]: r["count"] for r in by_repo},
        }

    def list_repositories(self) -> List[Dict[str, Any]]:
        rows = self._query(
            "SELECT repository, COUNT(*) AS count, MAX(timestamp) AS last_activity "
            "FROM events GROUP BY repository ORDER BY repository"
        )
        return [
            {
                "repository": r["repository"],
                "event_count": r["count"],
                "last_activity": r["last_activity"],
            }
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Normalized events
    # ------------------------------------------------------------------

    def upsert_normalized_batch(self, events: Sequence[NormalizedEvent]) -> int:
        if not events:
            return 0
        rows = [
            (
                e.id,
                e.original_event_id,
                format_timestamp(e.timestamp),
                e.event_type.value,
                e.repository,
                e.title,
                e.content,
                e.confidence_score,
                e.model_dump_json(),
            )
            for e in events
        ]
        with self._lock:
            with self.conn:
                self.conn.executemany(
                    "INSERT OR REPLACE INTO normalized_events "
                    "(id, original_event_id, timestamp, event_type, repository, "
                    "title, content, confidence_score, record) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
        return len(rows)

    @staticmethod
    def _row_to_normalized(row: sqlite3.Row) -> NormalizedEvent:
        return NormalizedEvent.model_validate_json(row["record"])

    def get_normalized_event(self, event_id: str) -> Optional[NormalizedEvent]:
        rows = self._query("SELECT record FROM normalized_events WHERE id = ?", (event_id,))
        return self._row_to_normalized(rows[0]) if rows else None

    def get_normalized_events(
        self,
        repository: str,
        event_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[NormalizedEvent]:
        sql = "SELECT record FROM normalized_events WHERE repository = ?"
        params: List[Any] = [repository]
        if event_type:
            sql += " AND event_type = ?"
            params.append(event_type)
        sql += " ORDER BY timestamp DESC, id"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_normalized(r) for r in self._query(sql, params)]

    def search_normalized_events(
        self,
        term: str,
        repository: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[NormalizedEvent]:
        pattern = _like_pattern(term)
        sql = (
            "SELECT record FROM normalized_events "
            "WHERE (title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')"
        )
        params: List[Any] = [pattern, pattern]
        if repository:
            sql += " AND repository = ?"
            params.append(repository)
        sql += " ORDER BY timestamp DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_normalized(r) for r in self._query(sql, params)]

    def get_decision_candidates(
        self,
        repository: str,
        min_confidence: float = 0.4,
        limit: Optional[int] = None,
    ) -> List[NormalizedEvent]:
        sql = (
            "SELECT record FROM normalized_events "
            "WHERE repository = ? AND confidence_score >= ? "
            "ORDER BY confidence_score DESC, timestamp DESC"
        )
        params: List[Any] = [repository, min_confidence]
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_normalized(r) for r in self._query(sql, params)]

    def get_normalization_stats(self, repository: str) -> Dict[str, Any]:
        row = self._query(
            """
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN confidence_score >= 0.7 THEN 1 ELSE 0 END) AS high,
                SUM(CASE WHEN confidence_score >= 0.4 AND confidence_score < 0.7 THEN 1 ELSE 0 END) AS medium,
                SUM(CASE WHEN confidence_score >= 0.1 AND confidence_score < 0.4 THEN 1 ELSE 0 END) AS low,
                SUM(CASE WHEN confidence_score < 0.1 THEN 1 ELSE 0 END) AS no_signal
            FROM normalized_events WHERE repository = ?
            """,
            (repository,),
        )[0]
        by_type = self._query(
            "SELECT event_type, COUNT(*) AS count, AVG(confidence_score) AS avg_confidence "
            "FROM normalized_events WHERE repository = ? "
            "GROUP BY event_type ORDER BY count DESC",
            (repository,),
        )
        return {
            "total": row["total"] or 0,
            "confidence": {
                "high": row["high"] or 0,
                "medium": row["medium"] or 0,
                "low": row["low"] or 0,
                "none": row["no_signal"] or 0,
            },
            "by_type": {
                r["event_type"]: {
                    "count": r["count"],
                    "avg_confidence": round(r["avg_confidence"] or 0.0, 3),
                }
                for r in by_type
            },
        }

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def upsert_decision(self, decision: Decision) -> None:
        with self._lock:
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO decisions "
                    "(id, source_event_id, repository, timestamp, decision_statement, "
                    "rationale, decision_type, extraction_confidence, record) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        decision.id,
                        decision.source_event_id,
                        decision.repository,
                        format_timestamp(decision.timestamp),
                        decision.decision_statement,
                        decision.rationale,
                        decision.decision_type.value,
                        decision.extraction_confidence,
                        decision.model_dump_json(),
                    ),
                )

    @staticmethod
    def _row_to_decision(row: sqlite3.Row) -> Decision:
        return Decision.model_validate_json(row["record"])

    def get_decision(self, decision_id: str) -> Optional[Decision]:
        rows = self._query("SELECT record FROM decisions WHERE id = ?", (decision_id,))
        return self._row_to_decision(rows[0]) if rows else None

    def get_decisions(
        self,
        repository: Optional[str] = None,
        decision_type: Optional[str] = None,
        min_confidence: Optional[float] = None,
        after: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Decision]:
        sql = "SELECT record FROM decisions WHERE 1=1"
        params: List[Any] = []
        if repository:
            sql += " AND repository = ?"
            params.append(repository)
        if decision_type:
            sql += " AND decision_type = ?"
            params.append(decision_type)
        if min_confidence is not None:
            sql += " AND extraction_confidence >= ?"
            params.append(min_confidence)
        if after:
            sql += " AND timestamp > ?"
            params.append(format_timestamp(after))
        sql += " ORDER BY timestamp DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_decision(r) for r in self._query(sql, params)]

    def find_decisions(
        self,
        repository: str,
        term: str,
        limit: Optional[int] = None,
    ) -> List[Decision]:
        pattern = _like_pattern(term)
        sql = (
            "SELECT record FROM decisions WHERE repository = ? "
            "AND (decision_statement LIKE ? ESCAPE '\\' OR rationale LIKE ? ESCAPE '\\') "
            "ORDER BY extraction_confidence DESC, timestamp DESC"
        )
        params: List[Any] = [repository, pattern, pattern]
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_decision(r) for r in self._query(sql, params)]

    def get_extraction_stats(self, repository: str) -> Dict[str, Any]:
        row = self._query(
            """
            SELECT
                COUNT(*) AS total,
                AVG(extraction_confidence) AS avg_confidence,
                SUM(CASE WHEN extraction_confidence >= 0.8 THEN 1 ELSE 0 END) AS high,
                SUM(CASE WHEN extraction_confidence >= 0.6 AND extraction_confidence < 0.8 THEN 1 ELSE 0 END) AS medium,
                SUM(CASE WHEN extraction_confidence < 0.6 THEN 1 ELSE 0 END) AS low
            FROM decisions WHERE repository = ?
            """,
            (repository,),
        )[0]
        by_type = self._query(
            "SELECT decision_type, COUNT(*) AS count FROM decisions "
            "WHERE repository = ? GROUP BY decision_type ORDER BY count DESC",
            (repository,),
        )
        return {
            "total": row["total"] or 0,
            "avg_confidence": round(row["avg_confidence"] or 0.0, 3),
            "confidence": {
                "high": row["high"] or 0,
                "medium": row["medium"] or 0,
                "low": row["low"] or 0,
            },
            "by_type": {r["decision_type"]: r["count"] for r in by_type},
        }
