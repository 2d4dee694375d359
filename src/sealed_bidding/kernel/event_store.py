"""
SQLite Event Store - Append-only event log with idempotency

The event store is the single source of truth for requirements, bids and
commission records. It provides:
- Append-only semantics (events never modified or deleted)
- Idempotency via command_id (same command = same events, never duplicates)
- Optimistic locking via stream versioning
- Atomic multi-stream batches (dispatch + commission + requirement close
  commit together or not at all)
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, NamedTuple, Protocol

from sealed_bidding.kernel.errors import ConflictError, EventStoreError
from sealed_bidding.kernel.events import Event
from sealed_bidding.kernel.logging import get_logger
from sealed_bidding.kernel.metrics import (
    events_appended_total,
    stream_version_conflicts_total,
)

logger = get_logger(__name__)

_EVENT_COLUMNS = """
    event_id, stream_id, stream_type, version,
    command_id, event_type, occurred_at, actor_id, payload_json
"""


class StreamAppend(NamedTuple):
    """
    Events to append to one stream, guarded by the version the writer read

    An append with no events is a read guard: the stream's version is
    checked in the same transaction but nothing is written to it.
    """

    stream_id: str
    expected_version: int
    events: list[Event]


class EventStore(Protocol):
    """Storage interface the facade depends on"""

    def append(
        self, stream_id: str, expected_version: int, events: list[Event]
    ) -> list[Event]: ...

    def append_batch(self, appends: list[StreamAppend]) -> list[Event]: ...

    def load_stream(self, stream_id: str) -> list[Event]: ...

    def load_all_events(self) -> list[Event]: ...

    def get_stream_version(self, stream_id: str) -> int: ...

    def load_command_events(self, command_id: str) -> list[Event]: ...


class SQLiteEventStore:
    """
    SQLite-based event store with append-only semantics

    Schema:
    - events: append-only log, UNIQUE(stream_id, version), global insertion
      sequence for deterministic replay
    - processed_commands: one row per command_id, written in the same
      transaction as its events
    """

    def __init__(self, db_path: str | Path, timeout_seconds: float = 5.0) -> None:
        """
        Initialize event store with SQLite database

        Args:
            db_path: Path to SQLite database file
            timeout_seconds: How long a connection waits on a locked database
        """
        self.db_path = Path(db_path)
        self.timeout_seconds = timeout_seconds
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    sequence INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id TEXT NOT NULL UNIQUE,
                    stream_id TEXT NOT NULL,
                    stream_type TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    command_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    actor_id TEXT,
                    payload_json TEXT NOT NULL,

                    UNIQUE(stream_id, version)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS processed_commands (
                    command_id TEXT PRIMARY KEY,
                    processed_at TEXT NOT NULL
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_command ON events(command_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type)"
            )

            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that is always closed on exit"""
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout_seconds)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def append(
        self,
        stream_id: str,
        expected_version: int,
        events: list[Event],
    ) -> list[Event]:
        """
        Append events to a single stream with optimistic locking

        Returns:
            The appended events, or the original events if this command
            was already processed

        Raises:
            ConflictError: If the stream version doesn't match expected
            EventStoreError: On other database errors
        """
        return self.append_batch([StreamAppend(stream_id, expected_version, events)])

    def append_batch(self, appends: list[StreamAppend]) -> list[Event]:
        """
        Append events to several streams in one transaction

        Every stream's version is checked against the version its writer
        read, including read guards (appends with no events) for streams
        the command validated against without writing. One mismatch rolls
        back the entire batch. All events in a batch must share one
        command_id.

        Args:
            appends: One StreamAppend per stream touched by the command

        Returns:
            The appended events in batch order (or the originally stored
            events when the command was already processed)

        Raises:
            ConflictError: If any stream version doesn't match expected
            sqlite3.OperationalError: On lock contention (retryable upstream)
            EventStoreError: On other database errors
        """
        writes = [a for a in appends if a.events]
        if not writes:
            return []

        command_id = writes[0].events[0].command_id
        if any(e.command_id != command_id for a in writes for e in a.events):
            raise EventStoreError("All events in a batch must share one command_id")

        existing = self.load_command_events(command_id)
        if existing:
            logger.info("Command already processed, returning stored events", command_id=command_id)
            return existing

        current_append: StreamAppend | None = None
        with self._connect() as conn:
            try:
                conn.execute(
                    "INSERT INTO processed_commands (command_id, processed_at) VALUES (?, ?)",
                    (command_id, writes[0].events[0].occurred_at.isoformat()),
                )

                for current_append in appends:
                    actual = self._get_stream_version(conn, current_append.stream_id)
                    if actual != current_append.expected_version:
                        raise ConflictError(
                            current_append.stream_id,
                            current_append.expected_version,
                            actual,
                        )

                    for event in current_append.events:
                        conn.execute(
                            f"INSERT INTO events ({_EVENT_COLUMNS}) "
                            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                            (
                                event.event_id,
                                event.stream_id,
                                event.stream_type,
                                event.version,
                                event.command_id,
                                event.event_type,
                                event.occurred_at.isoformat(),
                                event.actor_id,
                                json.dumps(event.payload),
                            ),
                        )

                conn.commit()

            except ConflictError as e:
                conn.rollback()
                self._record_conflict(appends, e.stream_id)
                raise

            except sqlite3.IntegrityError as e:
                conn.rollback()
                error_msg = str(e).lower()

                # Same command raced us between the check and the insert
                if "processed_commands" in error_msg:
                    return self.load_command_events(command_id)

                if "stream_id" in error_msg and "version" in error_msg and current_append:
                    actual = self._get_stream_version(conn, current_append.stream_id)
                    self._record_conflict(appends, current_append.stream_id)
                    raise ConflictError(
                        current_append.stream_id,
                        current_append.expected_version,
                        actual,
                    ) from e

                raise EventStoreError(f"Failed to append events: {e}") from e

            except sqlite3.OperationalError:
                conn.rollback()
                raise

            except Exception as e:
                conn.rollback()
                raise EventStoreError(f"Unexpected error appending events: {e}") from e

        stored = [event for append in appends for event in append.events]
        for event in stored:
            events_appended_total.labels(
                stream_type=event.stream_type, event_type=event.event_type
            ).inc()
        return stored

    def _record_conflict(self, appends: list[StreamAppend], stream_id: str) -> None:
        stream_type = next(
            (a.events[0].stream_type for a in appends if a.stream_id == stream_id and a.events),
            "unknown",
        )
        stream_version_conflicts_total.labels(stream_type=stream_type).inc()
        logger.warning("Stream version conflict", stream_id=stream_id, stream_type=stream_type)

    def load_stream(self, stream_id: str) -> list[Event]:
        """Load all events of a stream in version order"""
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE stream_id = ? ORDER BY version ASC",
                (stream_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def load_all_events(self) -> list[Event]:
        """Load every event in insertion order (for projection rebuilding)"""
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events ORDER BY sequence ASC"
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_stream_version(self, stream_id: str) -> int:
        """Current version of a stream (0 if the stream doesn't exist)"""
        with self._connect() as conn:
            return self._get_stream_version(conn, stream_id)

    def _get_stream_version(self, conn: sqlite3.Connection, stream_id: str) -> int:
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE stream_id = ?",
            (stream_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def load_command_events(self, command_id: str) -> list[Event]:
        with self._connect() as conn:
            cursor = conn.execute(
                f"SELECT {_EVENT_COLUMNS} FROM events WHERE command_id = ? ORDER BY sequence ASC",
                (command_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            stream_type=row["stream_type"],
            version=row["version"],
            command_id=row["command_id"],
            event_type=row["event_type"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            actor_id=row["actor_id"],
            payload=json.loads(row["payload_json"]),
        )

    def count_events(self) -> int:
        """Total number of events in the store"""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
