"""Tests for the key-value media, goal repository and audit storage."""

import json
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from savings_sync.models.audit import AuditEventBuilder
from savings_sync.models.goal import Goal, GoalTarget
from savings_sync.services.storage import (
    CorruptDataError,
    GoalRepository,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    StorageError,
)


class FailingStore(InMemoryKeyValueStore):
    """Medium whose writes always fail."""

    def set(self, key, value):
        raise StorageError(f"disk full while writing {key}")


class TestInMemoryKeyValueStore:
    """Tests for the dict-backed medium."""

    def test_missing_key_is_none(self):
        """Test get() on an unknown key."""
        assert InMemoryKeyValueStore().get("nope") is None

    def test_set_then_get(self):
        """Test a simple write and read."""
        store = InMemoryKeyValueStore()
        store.set("k", "v")
        assert store.get("k") == "v"
        assert store.keys() == ["k"]


class TestJsonFileKeyValueStore:
    """Tests for the file-backed medium."""

    def test_value_survives_new_instance(self, tmp_path):
        """Test that data is durable across store instances."""
        JsonFileKeyValueStore(tmp_path).set("savings_v2_user-1", "[]")
        assert JsonFileKeyValueStore(tmp_path).get("savings_v2_user-1") == "[]"

    def test_key_is_encoded_into_filename(self, tmp_path):
        """Test that path separators in a key stay inside the data dir."""
        store = JsonFileKeyValueStore(tmp_path)
        store.set("a/b", "x")
        assert (tmp_path / "a%2Fb.json").exists()
        assert store.get("a/b") == "x"

    def test_no_temp_file_left_behind(self, tmp_path):
        """Test the atomic replace."""
        JsonFileKeyValueStore(tmp_path).set("k", "v")
        assert sorted(os.listdir(tmp_path)) == ["k.json"]

    def test_missing_key_is_none(self, tmp_path):
        """Test get() before anything was written."""
        assert JsonFileKeyValueStore(tmp_path).get("k") is None

    def test_empty_key_rejected(self, tmp_path):
        """Test that an empty key is a storage error."""
        with pytest.raises(StorageError):
            JsonFileKeyValueStore(tmp_path).set("", "v")

    def test_unwritable_directory_raises_storage_error(self, tmp_path):
        """Test that write failures surface as StorageError after retries."""
        store = JsonFileKeyValueStore(tmp_path / "data")
        (tmp_path / "data").rmdir()
        (tmp_path / "data").write_text("not a directory")
        with pytest.raises(StorageError):
            store.set("k", "v")


class TestGoalRepository:
    """Tests for GoalRepository."""

    def test_storage_key_format(self, repository):
        """Test the per-user, schema-tagged key."""
        assert repository.storage_key("user-1") == "savings_v2_user-1"

    def test_load_without_data(self, repository):
        """Test that a new user has no goals."""
        assert repository.load("user-1") == []

    def test_save_and_load_keeps_order(self, repository):
        """Test that the goal set comes back in stored order."""
        goals = [
            Goal(name="Bike", target=GoalTarget(amount=500)),
            Goal(name="Trip", target=GoalTarget(amount="1200.50", currency="EUR")),
        ]
        goals[0].state.current_amount = Decimal("150")
        goals[0].recompute_progress()

        repository.save("user-1", goals)
        loaded = repository.load("user-1")

        assert [g.name for g in loaded] == ["Bike", "Trip"]
        assert loaded[0].state.current_amount == Decimal("150.00")
        assert loaded[0].state.progress_percentage == 30.0
        assert loaded[1].target.currency == "EUR"

    def test_saved_payload_is_camel_case_json_array(self, store, repository):
        """Test the stored representation."""
        repository.save("user-1", [Goal(name="Bike", target=GoalTarget(amount=500))])
        payload = json.loads(store.get("savings_v2_user-1"))
        assert isinstance(payload, list)
        assert payload[0]["targetDetails"]["amount"] == 500.0
        assert payload[0]["state"]["currentAmount"] == 0.0

    def test_users_are_isolated(self, repository):
        """Test that one user's goals are invisible to another."""
        repository.save("user-1", [Goal(name="Bike", target=GoalTarget(amount=500))])
        assert repository.load("user-2") == []

    def test_schema_tag_change_orphans_data(self, store, repository):
        """Test that a new schema tag starts from an empty goal set."""
        repository.save("user-1", [Goal(name="Bike", target=GoalTarget(amount=500))])
        assert GoalRepository(store, schema_tag="v3").load("user-1") == []

    def test_corrupt_payload(self, store, repository):
        """Test that garbage under the key raises CorruptDataError."""
        store.set("savings_v2_user-1", '{"not": "a list"}')
        with pytest.raises(CorruptDataError):
            repository.load("user-1")

    def test_write_failure_propagates(self):
        """Test that the repository does not swallow storage errors."""
        repository = GoalRepository(FailingStore())
        with pytest.raises(StorageError):
            repository.save("user-1", [])


class TestKeyValueAuditStorage:
    """Tests for the audit trail storage."""

    def test_append_and_query_by_entity(self, audit_storage):
        """Test events are found by the entity they describe."""
        event = AuditEventBuilder.goal_created("user-1", "g1", "Bike", "500.00", "USD")
        assert audit_storage.append_event(event) is True

        found = audit_storage.get_events_by_entity("goal", "g1")
        assert [e.event_id for e in found] == [event.event_id]

    def test_query_by_correlation_id(self, audit_storage):
        """Test correlation lookups return events in order."""
        correlation_id = uuid4()
        first = AuditEventBuilder.sync_accepted("user-1", "g1", "t1", 2, correlation_id)
        second = AuditEventBuilder.sync_accepted("user-1", "g1", "t2", 3, uuid4())
        audit_storage.append_event(first)
        audit_storage.append_event(second)

        found = audit_storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_id for e in found] == [first.event_id]

    def test_recent_events_newest_first(self, audit_storage):
        """Test recency ordering and limit."""
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        events = [
            AuditEventBuilder.goals_loaded("user-1", n, "savings_v2_user-1").model_copy(
                update={"timestamp": start + timedelta(seconds=n)}
            )
            for n in range(3)
        ]
        for event in events:
            audit_storage.append_event(event)

        recent = audit_storage.get_recent_events(limit=2)
        assert [e.event_id for e in recent] == [events[2].event_id, events[1].event_id]

    def test_append_failure_returns_false(self):
        """Test that a broken medium does not raise from append."""
        storage = KeyValueAuditStorage(FailingStore(), key="audit")
        event = AuditEventBuilder.goal_created("user-1", "g1", "Bike", "500.00", "USD")
        assert storage.append_event(event) is False

    def test_malformed_entries_are_skipped(self, store, audit_storage):
        """Test that one bad record does not hide the rest."""
        event = AuditEventBuilder.goal_created("user-1", "g1", "Bike", "500.00", "USD")
        audit_storage.append_event(event)
        records = json.loads(store.get(audit_storage.chunk_key(0)))
        records.append({"event_type": "no_such_type"})
        store.set(audit_storage.chunk_key(0), json.dumps(records))

        assert len(audit_storage.get_recent_events()) == 1

    def test_append_writes_only_current_chunk(self, store):
        """Test that a full chunk is left alone once the next one starts."""
        storage = KeyValueAuditStorage(store, key="audit", chunk_size=2, max_chunks=3)
        for n in range(3):
            storage.append_event(AuditEventBuilder.goals_loaded("user-1", n, "k"))

        assert len(json.loads(store.get("audit_0"))) == 2
        assert len(json.loads(store.get("audit_1"))) == 1
        assert json.loads(store.get("audit")) == {"head": 1}

    def test_oldest_chunks_are_dropped(self, store):
        """Test that the log never holds more than chunk_size * max_chunks events."""
        storage = KeyValueAuditStorage(store, key="audit", chunk_size=2, max_chunks=3)
        events = [AuditEventBuilder.goals_loaded("user-1", n, "k") for n in range(10)]
        for event in events:
            assert storage.append_event(event) is True

        kept = {e.event_id for e in storage.get_recent_events(limit=None)}
        assert kept == {e.event_id for e in events[4:]}
        assert sorted(k for k in store.keys() if k.startswith("audit_")) == ["audit_0", "audit_1", "audit_2"]

    def test_corrupt_chunk_is_reported(self, store, audit_storage):
        """Test that queries raise instead of silently returning nothing."""
        audit_storage.append_event(AuditEventBuilder.goal_created("user-1", "g1", "Bike", "500.00", "USD"))
        store.set(audit_storage.chunk_key(0), "not json")

        with pytest.raises(CorruptDataError):
            audit_storage.get_recent_events()

    def test_append_continues_after_corrupt_chunk(self, store, audit_storage):
        """Test that a corrupt chunk does not stop auditing."""
        store.set(audit_storage.chunk_key(0), "{broken")
        event = AuditEventBuilder.goal_created("user-1", "g1", "Bike", "500.00", "USD")

        assert audit_storage.append_event(event) is True

        assert store.get(audit_storage.chunk_key(0)) == "{broken"
        records = json.loads(store.get(audit_storage.chunk_key(1)))
        assert [r["event_id"] for r in records] == [str(event.event_id)]

    def test_corrupt_index_fails_append(self, store, audit_storage):
        """Test that an unreadable index is reported through the return value."""
        store.set(audit_storage.key, "[]")
        event = AuditEventBuilder.goal_created("user-1", "g1", "Bike", "500.00", "USD")

        assert audit_storage.append_event(event) is False
        with pytest.raises(CorruptDataError):
            audit_storage.get_recent_events()

    def test_sizes_must_be_positive(self, store):
        """Test constructor bounds."""
        with pytest.raises(ValueError):
            KeyValueAuditStorage(store, key="audit", chunk_size=0)
