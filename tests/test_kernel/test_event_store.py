"""
Tests for SQLite Event Store

Verifies core event sourcing properties:
- Append-only semantics
- Idempotency via command_id
- Optimistic locking via stream versioning
- Atomic multi-stream batches

Fun fact: Event sourcing tests are like archaeology - we're verifying
that the historical record is complete, immutable, and replayable!
"""

import pytest

from sealed_bidding.kernel.errors import ConflictError, EventStoreError
from sealed_bidding.kernel.event_store import SQLiteEventStore, StreamAppend
from sealed_bidding.kernel.ids import generate_id
from tests.helpers import make_event


def test_append_and_load_single_event(event_store: SQLiteEventStore) -> None:
    """Test appending and loading a single event"""
    event = make_event("stream-1", 1, payload={"message": "Hello"})

    appended = event_store.append("stream-1", 0, [event])
    assert len(appended) == 1
    assert appended[0].event_id == event.event_id

    loaded = event_store.load_stream("stream-1")
    assert len(loaded) == 1
    assert loaded[0].event_id == event.event_id
    assert loaded[0].payload == {"message": "Hello"}
    assert loaded[0].occurred_at == event.occurred_at


def test_stream_versioning(event_store: SQLiteEventStore) -> None:
    """Test that stream versioning works correctly"""
    event_store.append("stream-2", 0, [make_event("stream-2", 1)])
    assert event_store.get_stream_version("stream-2") == 1

    event_store.append("stream-2", 1, [make_event("stream-2", 2)])
    assert event_store.get_stream_version("stream-2") == 2

    events = event_store.load_stream("stream-2")
    assert [e.version for e in events] == [1, 2]


def test_unknown_stream_has_version_zero(event_store: SQLiteEventStore) -> None:
    assert event_store.get_stream_version("nope") == 0
    assert event_store.load_stream("nope") == []


def test_version_conflict_raises(event_store: SQLiteEventStore) -> None:
    """A writer holding a stale version loses"""
    event_store.append("stream-3", 0, [make_event("stream-3", 1)])

    with pytest.raises(ConflictError) as exc_info:
        event_store.append("stream-3", 0, [make_event("stream-3", 1)])

    assert exc_info.value.stream_id == "stream-3"
    assert exc_info.value.expected_version == 0
    assert exc_info.value.actual_version == 1
    assert exc_info.value.retryable is True
    assert event_store.count_events() == 1


def test_same_command_id_returns_stored_events(event_store: SQLiteEventStore) -> None:
    """Replaying a command returns what was stored the first time"""
    command_id = generate_id()
    first = make_event("stream-4", 1, command_id=command_id)
    event_store.append("stream-4", 0, [first])

    retry = make_event("stream-4", 1, command_id=command_id)
    returned = event_store.append("stream-4", 0, [retry])

    assert [e.event_id for e in returned] == [first.event_id]
    assert event_store.count_events() == 1


def test_batch_appends_across_streams(event_store: SQLiteEventStore) -> None:
    """All streams of a batch are written together"""
    command_id = generate_id()
    event_store.append("bid-1", 0, [make_event("bid-1", 1)])

    stored = event_store.append_batch(
        [
            StreamAppend("bid-1", 1, [make_event("bid-1", 2, command_id=command_id)]),
            StreamAppend("commission-1", 0, [make_event("commission-1", 1, command_id=command_id)]),
        ]
    )

    assert len(stored) == 2
    assert event_store.get_stream_version("bid-1") == 2
    assert event_store.get_stream_version("commission-1") == 1
    assert len(event_store.load_command_events(command_id)) == 2


def test_batch_conflict_rolls_back_every_stream(event_store: SQLiteEventStore) -> None:
    """One stale stream means nothing from the batch is written"""
    event_store.append("commission-2", 0, [make_event("commission-2", 1)])
    command_id = generate_id()

    with pytest.raises(ConflictError):
        event_store.append_batch(
            [
                StreamAppend("bid-2", 0, [make_event("bid-2", 1, command_id=command_id)]),
                # stale: commission-2 is already at version 1
                StreamAppend(
                    "commission-2", 0, [make_event("commission-2", 1, command_id=command_id)]
                ),
            ]
        )

    assert event_store.get_stream_version("bid-2") == 0
    assert event_store.get_stream_version("commission-2") == 1
    assert event_store.load_command_events(command_id) == []

    # The command id was not burned by the failed attempt
    retried = event_store.append_batch(
        [StreamAppend("bid-2", 0, [make_event("bid-2", 1, command_id=command_id)])]
    )
    assert len(retried) == 1


def test_read_guard_checks_version_without_writing(event_store: SQLiteEventStore) -> None:
    """A stream the command only read must still be at the version it read"""
    event_store.append("requirement-1", 0, [make_event("requirement-1", 1)])
    command_id = generate_id()

    stored = event_store.append_batch(
        [
            StreamAppend("bid-1", 0, [make_event("bid-1", 1, command_id=command_id)]),
            StreamAppend("requirement-1", 1, []),
        ]
    )

    assert [e.stream_id for e in stored] == ["bid-1"]
    assert event_store.get_stream_version("requirement-1") == 1


def test_stale_read_guard_rolls_back_batch(event_store: SQLiteEventStore) -> None:
    event_store.append("requirement-1", 0, [make_event("requirement-1", 1)])
    event_store.append("requirement-1", 1, [make_event("requirement-1", 2)])
    command_id = generate_id()

    with pytest.raises(ConflictError) as exc_info:
        event_store.append_batch(
            [
                StreamAppend("bid-1", 0, [make_event("bid-1", 1, command_id=command_id)]),
                StreamAppend("requirement-1", 1, []),
            ]
        )

    assert exc_info.value.stream_id == "requirement-1"
    assert exc_info.value.actual_version == 2
    assert event_store.get_stream_version("bid-1") == 0
    assert event_store.load_command_events(command_id) == []


def test_batch_requires_single_command_id(event_store: SQLiteEventStore) -> None:
    with pytest.raises(EventStoreError):
        event_store.append_batch(
            [
                StreamAppend("a", 0, [make_event("a", 1)]),
                StreamAppend("b", 0, [make_event("b", 1)]),
            ]
        )
    assert event_store.count_events() == 0


def test_empty_batch_is_noop(event_store: SQLiteEventStore) -> None:
    assert event_store.append_batch([]) == []
    assert event_store.append_batch([StreamAppend("a", 0, [])]) == []


def test_load_all_events_in_append_order(event_store: SQLiteEventStore) -> None:
    """Replay order is the global append order, not the stream order"""
    event_store.append("z-stream", 0, [make_event("z-stream", 1)])
    event_store.append("a-stream", 0, [make_event("a-stream", 1)])
    event_store.append("z-stream", 1, [make_event("z-stream", 2)])

    all_events = event_store.load_all_events()
    assert [(e.stream_id, e.version) for e in all_events] == [
        ("z-stream", 1),
        ("a-stream", 1),
        ("z-stream", 2),
    ]


def test_events_survive_reopen(temp_db) -> None:
    """A second store on the same file sees the same log"""
    SQLiteEventStore(temp_db).append("s", 0, [make_event("s", 1)])

    reopened = SQLiteEventStore(temp_db)
    assert reopened.get_stream_version("s") == 1
    assert reopened.count_events() == 1
