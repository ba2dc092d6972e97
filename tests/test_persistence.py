"""
Tests for snapshot persistence, rehydration and import/export.
"""

import json
from datetime import date
from pathlib import Path

import pytest

from billbook.models.audit import AuditEventType, AuditSeverity
from billbook.models.bill import AppSnapshot
from billbook.services.persistence import DEFAULT_STATE_KEY, SnapshotPersistence
from billbook.services.storage import (
    ImportDocumentError,
    InMemorySnapshotStorage,
    JsonFileSnapshotStorage,
    StorageQuotaExceededError,
    StorageUnavailableError,
)
from billbook.store import HouseholdStore, default_snapshot

TODAY = date(2024, 3, 1)


def storage_with(document) -> InMemorySnapshotStorage:
    raw = document if isinstance(document, str) else json.dumps(document)
    return InMemorySnapshotStorage(initial={DEFAULT_STATE_KEY: raw})


class TestSaveAndLoad:
    """Tests for the durable snapshot."""

    def test_round_trip(self, persistence, snapshot, bill_factory):
        snapshot.bills.append(bill_factory(paid=True, paid_by="u2", notes="autopay"))

        assert persistence.save(snapshot) is True
        patch = persistence.load()

        restored = AppSnapshot().merged(patch)
        assert restored.to_document() == snapshot.to_document()

    def test_document_shape(self, persistence, storage, snapshot, bill_factory):
        """Keys are camelCase; absent optional fields are omitted."""
        snapshot.bills.append(bill_factory())
        persistence.save(snapshot)

        document = json.loads(storage.read(DEFAULT_STATE_KEY))
        assert set(document) == {
            "members", "categories", "defaultReminderDays", "defaultRecipients", "bills",
        }
        bill = document["bills"][0]
        assert bill["dueISO"] == "2024-03-16"
        assert bill["createdBy"] == "u1"
        assert "paidBy" not in bill
        assert "reminderDays" not in bill

    def test_missing_key_loads_nothing(self, persistence):
        assert persistence.load() is None

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", "null", '"text"'])
    def test_unusable_snapshot_loads_nothing(self, raw, audit_logger):
        persistence = SnapshotPersistence(storage_with(raw), audit_logger=audit_logger)
        assert persistence.load() is None
        assert audit_logger.recent_events()[0].event_type == AuditEventType.LOAD_FAILED

    def test_unavailable_storage_loads_nothing(self):
        persistence = SnapshotPersistence(InMemorySnapshotStorage(available=False))
        assert persistence.load() is None

    def test_partial_snapshot(self):
        persistence = SnapshotPersistence(storage_with({"defaultReminderDays": 5}))
        patch = persistence.load()
        assert patch.present_fields() == {"default_reminder_days": 5}

    def test_invalid_field_is_skipped(self, audit_logger):
        """One bad field does not cost the others."""
        persistence = SnapshotPersistence(
            storage_with({
                "bills": [{"id": "b1", "title": "", "amount": 10}],
                "categories": ["Home", "Pets", "Home"],
                "defaultReminderDays": -2,
            }),
            audit_logger=audit_logger,
        )

        patch = persistence.load()

        assert patch.present_fields() == {"categories": ["Home", "Pets"]}
        event = audit_logger.recent_events()[0]
        assert event.event_type == AuditEventType.SNAPSHOT_LOADED
        assert event.severity == AuditSeverity.WARNING
        assert set(event.details["skipped"]) == {"bills", "defaultReminderDays"}

    def test_duplicate_bill_ids_skip_bills(self):
        bill = {"id": "b1", "title": "A", "amount": 1, "dueISO": "2024-03-01"}
        persistence = SnapshotPersistence(storage_with({"bills": [bill, bill]}))
        assert persistence.load().is_empty

    def test_save_quota_exceeded_returns_false(self, snapshot, audit_logger):
        persistence = SnapshotPersistence(
            InMemorySnapshotStorage(quota_bytes=5), audit_logger=audit_logger
        )
        assert persistence.save(snapshot) is False
        assert audit_logger.recent_events()[0].event_type == AuditEventType.SAVE_FAILED

    def test_clear(self, persistence, snapshot):
        persistence.save(snapshot)
        assert persistence.clear() is True
        assert persistence.load() is None
        assert persistence.clear() is False


class TestRehydrate:
    """Restoring a store from storage at startup."""

    def test_store_restored_from_snapshot(self, bill_factory):
        source = default_snapshot(TODAY, seed_sample_bills=False)
        source.bills.append(bill_factory())
        source.default_reminder_days = 4
        storage = storage_with(source.to_document())

        store = HouseholdStore(persistence=SnapshotPersistence(storage), clock=lambda: TODAY)

        assert store.rehydrate() is True
        assert store.snapshot.to_document() == source.to_document()

    def test_missing_field_keeps_current_value(self):
        """A snapshot without bills leaves the in-memory bills alone."""
        snapshot = default_snapshot(TODAY, seed_sample_bills=True)
        storage = storage_with({"categories": ["Only"]})
        store = HouseholdStore(
            snapshot=snapshot,
            persistence=SnapshotPersistence(storage),
            clock=lambda: TODAY,
        )

        store.rehydrate()

        assert store.categories == ("Only",)
        assert [b.id for b in store.bills] == ["b1", "b2"]
        assert len(store.members) == 2

    def test_nothing_stored(self, store):
        assert store.rehydrate() is False
        assert len(store.members) == 2

    def test_rehydrate_does_not_write(self):
        storage = storage_with({"defaultReminderDays": 2})
        store = HouseholdStore(persistence=SnapshotPersistence(storage))
        store.rehydrate()
        assert storage.write_count == 0

    @pytest.mark.parametrize(
        "bill, payer",
        [
            ({"createdBy": "u2"}, "u2"),
            ({}, "u1"),
        ],
    )
    def test_stored_paid_bill_gets_a_payer(self, bill, payer):
        """A paid bill saved without paidBy is credited to its creator, else the first member."""
        stored = {"id": "b1", "title": "X", "amount": 1, "dueISO": "2024-03-01", "paid": True, **bill}
        store = HouseholdStore(
            persistence=SnapshotPersistence(storage_with({"bills": [stored]})),
            clock=lambda: TODAY,
        )

        store.rehydrate()

        assert store.get("b1").paid is True
        assert store.get("b1").paid_by == payer

    def test_stored_empty_member_list_is_skipped(self):
        storage = storage_with({"members": [], "categories": ["Only"]})
        store = HouseholdStore(persistence=SnapshotPersistence(storage), clock=lambda: TODAY)

        store.rehydrate()

        assert [m.id for m in store.members] == ["u1", "u2"]
        assert store.categories == ("Only",)


class TestFileStorage:
    """Tests for the JSON file backend."""

    def test_write_then_read(self, tmp_path):
        storage = JsonFileSnapshotStorage(tmp_path / "data")
        storage.write("state", '{"a": 1}')

        assert storage.read("state") == '{"a": 1}'
        assert (tmp_path / "data" / "state.json").exists()

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        storage = JsonFileSnapshotStorage(tmp_path)
        storage.write("state", "1")
        storage.write("state", "2")

        assert storage.read("state") == "2"
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_missing_file(self, tmp_path):
        assert JsonFileSnapshotStorage(tmp_path).read("nothing") is None

    def test_quota(self, tmp_path):
        storage = JsonFileSnapshotStorage(tmp_path, max_bytes=4)
        with pytest.raises(StorageQuotaExceededError):
            storage.write("state", "too long")
        assert storage.read("state") is None

    def test_delete(self, tmp_path):
        storage = JsonFileSnapshotStorage(tmp_path)
        storage.write("state", "1")
        assert storage.delete("state") is True
        assert storage.delete("state") is False

    def test_delete_failure_is_a_storage_error(self, tmp_path, monkeypatch):
        """A file that cannot be removed reports the storage as unavailable."""
        storage = JsonFileSnapshotStorage(tmp_path)
        storage.write(DEFAULT_STATE_KEY, "{}")

        def refuse(self, *args, **kwargs):
            raise PermissionError("read-only file system")

        monkeypatch.setattr(Path, "unlink", refuse)

        with pytest.raises(StorageUnavailableError):
            storage.delete(DEFAULT_STATE_KEY)
        assert SnapshotPersistence(storage).clear() is False

    def test_store_survives_restart(self, tmp_path):
        """A second store on the same directory sees the first one's bills."""
        first = HouseholdStore(
            persistence=SnapshotPersistence(JsonFileSnapshotStorage(tmp_path)),
            clock=lambda: TODAY,
        )
        bill = first.create({"title": "Internet", "amount": 60, "due_iso": "2024-03-16"})

        second = HouseholdStore(
            persistence=SnapshotPersistence(JsonFileSnapshotStorage(tmp_path)),
            clock=lambda: TODAY,
        )
        second.rehydrate()

        assert second.get(bill.id).model_dump() == bill.model_dump()


class TestExportImport:
    """Tests for exporting and importing the household document."""

    def test_export_filename_and_format(self, store):
        store.create({"title": "Internet", "amount": 60, "due_iso": "2024-03-16"})

        filename, content = store.export_document()

        assert filename == "bills-2024-03-01.json"
        text = content.decode("utf-8")
        assert text.startswith("{\n  ")
        assert json.loads(text) == store.snapshot.to_document()

    def test_building_export_is_not_audited(self, store, audit_logger):
        """Preparing the download on every page render logs nothing."""
        store.export_payload()
        store.export_payload()
        types = [e.event_type for e in audit_logger.recent_events()]
        assert AuditEventType.DOCUMENT_EXPORTED not in types

    def test_recorded_export_is_audited(self, store, audit_logger):
        filename, _ = store.export_payload()
        store.record_export(filename)
        events = [
            e for e in audit_logger.recent_events()
            if e.event_type == AuditEventType.DOCUMENT_EXPORTED
        ]
        assert len(events) == 1
        assert filename in events[0].description

    def test_export_then_import_restores_state(self, store, bill_factory):
        store.update(bill_factory(id="x", notes="café"))
        store.set_default_reminder_days(2)
        _, content = store.export_document()
        exported = store.snapshot.to_document()

        other = HouseholdStore(clock=lambda: TODAY)
        other.import_document(content)

        assert other.snapshot.to_document() == exported

    def test_import_is_written_through(self, store, storage):
        document = json.dumps({"categories": ["A", "B"]})
        store.import_document(document)
        assert json.loads(storage.read(DEFAULT_STATE_KEY))["categories"] == ["A", "B"]

    def test_import_partial_document_merges(self, store):
        store.create({"title": "Keep me", "amount": 1})
        store.import_document(json.dumps({"defaultReminderDays": 7}))
        assert store.settings.default_reminder_days == 7
        assert [b.title for b in store.bills] == ["Keep me"]

    def test_import_accepts_byte_order_mark(self, store):
        data = b"\xef\xbb\xbf" + json.dumps({"defaultReminderDays": 3}).encode("utf-8")
        store.import_document(data)
        assert store.settings.default_reminder_days == 3

    @pytest.mark.parametrize(
        "data",
        [
            b"{broken",
            b"[]",
            b"{}",
            b'{"unrelated": true}',
            b"\xff\xfe\x00",
            json.dumps({"bills": [{"id": "b1", "title": "X", "amount": -1, "dueISO": "2024-03-01"}]}),
            json.dumps({"categories": ["A"], "defaultReminderDays": "soon"}),
        ],
    )
    def test_bad_documents_rejected_atomically(self, store, storage, audit_logger, data):
        """Nothing at all is applied when any part is invalid."""
        store.create({"title": "Keep me", "amount": 1})
        before = store.snapshot.to_document()
        writes = storage.write_count

        with pytest.raises(ImportDocumentError):
            store.import_document(data)

        assert store.snapshot.to_document() == before
        assert storage.write_count == writes
        assert audit_logger.recent_events()[0].event_type == AuditEventType.IMPORT_FAILED

    def test_invalid_field_reported(self, store):
        with pytest.raises(ImportDocumentError) as exc_info:
            store.import_document(json.dumps({"defaultReminderDays": -1}))
        assert exc_info.value.field == "defaultReminderDays"

    def test_import_cannot_empty_household(self, store, storage):
        writes = storage.write_count
        with pytest.raises(ImportDocumentError) as exc_info:
            store.import_document(json.dumps({"members": []}))
        assert exc_info.value.field == "members"
        assert len(store.members) == 2
        assert storage.write_count == writes

    def test_imported_paid_bill_gets_a_payer(self, store):
        bill = {"id": "b9", "title": "Rent", "amount": 1200, "dueISO": "2024-03-01",
                "paid": True, "createdBy": "u2"}
        store.import_document(json.dumps({"bills": [bill]}))
        assert store.get("b9").paid_by == "u2"

    def test_import_paid_bill_without_anyone_is_unpaid(self):
        """With no creator and no member to credit, the bill comes in unpaid."""
        store = HouseholdStore(snapshot=AppSnapshot(), clock=lambda: TODAY)
        bill = {"id": "b9", "title": "Rent", "amount": 1200, "dueISO": "2024-03-01", "paid": True}
        store.import_document(json.dumps({"bills": [bill]}))
        assert store.get("b9").paid is False
        assert store.get("b9").paid_by is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
