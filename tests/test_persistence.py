"""Tests for persistence layer — proves audit log and document store work correctly."""

import json
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from govassets.errors import ConflictError, ErrorKind, RegistryError
from govassets.persistence.audit_log import CHAIN_ROOT_HASH, AuditLog, AuditLogEntry
from govassets.persistence.document_store import ACCOUNTS, ASSETS, DocumentStore


def _entry(
    entry_id: str,
    previous_hash: str = CHAIN_ROOT_HASH,
    action: str = "staff.approve",
    user_id: str = "owner-1",
    resource_id: str = "u-1",
    ts: datetime = None,
) -> AuditLogEntry:
    return AuditLogEntry.create(
        entry_id=entry_id,
        user_id=user_id,
        user_email=f"{user_id}@gov.example",
        user_role="ministry-admin",
        action=action,
        resource_type="user",
        resource_id=resource_id,
        details="Approved staff",
        metadata={"ministryId": "MIN-1"},
        previous_hash=previous_hash,
        timestamp_utc=ts,
    )


def _append_chain(log: AuditLog, *entry_ids: str, action: str = "staff.approve") -> None:
    for eid in entry_ids:
        log.append(_entry(eid, previous_hash=log.head_hash, action=action))


# =====================================================================
# AuditLogEntry Tests
# =====================================================================


class TestAuditLogEntry:
    def test_create_produces_hash(self) -> None:
        entry = _entry("AUD-1")
        assert entry.entry_hash.startswith("sha256:")
        assert len(entry.entry_hash) == 71  # "sha256:" + 64 hex chars
        assert entry.previous_hash == CHAIN_ROOT_HASH

    def test_deterministic_hash(self) -> None:
        ts = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        e1 = _entry("AUD-1", ts=ts)
        e2 = _entry("AUD-1", ts=ts)
        assert e1.entry_hash == e2.entry_hash

    def test_previous_hash_changes_entry_hash(self) -> None:
        ts = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        e1 = _entry("AUD-1", ts=ts)
        e2 = _entry("AUD-1", previous_hash="sha256:" + "1" * 64, ts=ts)
        assert e1.entry_hash != e2.entry_hash

    def test_timestamp_is_server_assigned_utc(self) -> None:
        entry = _entry("AUD-1")
        assert entry.timestamp.endswith("Z")

    def test_record_round_trip_keeps_hash_valid(self) -> None:
        entry = _entry("AUD-1")
        restored = AuditLogEntry.from_record(entry.to_record())
        assert restored == entry
        assert restored.computed_hash() == restored.entry_hash


# =====================================================================
# AuditLog Tests
# =====================================================================


class TestAuditLog:
    def test_append_and_count(self) -> None:
        log = AuditLog()
        _append_chain(log, "AUD-1")
        assert log.count == 1
        assert log.last_entry.entry_id == "AUD-1"

    def test_duplicate_id_rejected(self) -> None:
        log = AuditLog()
        _append_chain(log, "AUD-1")
        with pytest.raises(ValueError, match="Duplicate"):
            log.append(_entry("AUD-1", previous_hash=log.head_hash))

    def test_fork_rejected(self) -> None:
        log = AuditLog()
        _append_chain(log, "AUD-1", "AUD-2")
        with pytest.raises(ValueError, match="Chain link mismatch"):
            log.append(_entry("AUD-3", previous_hash=CHAIN_ROOT_HASH))

    def test_head_hash_tracks_last_entry(self) -> None:
        log = AuditLog()
        assert log.head_hash == CHAIN_ROOT_HASH
        _append_chain(log, "AUD-1")
        assert log.head_hash == log.last_entry.entry_hash

    def test_filters(self) -> None:
        log = AuditLog()
        _append_chain(log, "AUD-1", "AUD-2", action="staff.approve")
        _append_chain(log, "AUD-3", action="asset.reject")
        assert len(log.entries()) == 3
        assert len(log.entries(action="staff.approve")) == 2
        assert len(log.entries(action="asset.reject")) == 1
        assert len(log.entries(user_id="owner-1")) == 3
        assert log.entries(resource_id="nobody") == []

    def test_entries_since(self) -> None:
        log = AuditLog()
        ts1 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
        ts2 = datetime(2026, 3, 1, 14, 0, tzinfo=timezone.utc)
        log.append(_entry("AUD-1", ts=ts1))
        log.append(_entry("AUD-2", previous_hash=log.head_hash, ts=ts2))
        assert [e.entry_id for e in log.entries_since("2026-03-01T12:00:00Z")] == ["AUD-2"]

    def test_verify_chain_intact(self) -> None:
        log = AuditLog()
        _append_chain(log, "AUD-1", "AUD-2", "AUD-3")
        assert log.verify_chain() == []

    def test_file_persistence(self, tmp_path: Path) -> None:
        """Entries persist to file and can be loaded back."""
        log_path = tmp_path / "audit.jsonl"
        log1 = AuditLog(storage_path=log_path)
        _append_chain(log1, "AUD-1", "AUD-2")

        log2 = AuditLog(storage_path=log_path)
        assert log2.count == 2
        assert [e.entry_id for e in log2.entries()] == ["AUD-1", "AUD-2"]
        assert log2.head_hash == log1.head_hash

    def test_append_after_reload_continues_chain(self, tmp_path: Path) -> None:
        log_path = tmp_path / "audit.jsonl"
        _append_chain(AuditLog(storage_path=log_path), "AUD-1")
        log = AuditLog(storage_path=log_path)
        _append_chain(log, "AUD-2")
        assert AuditLog(storage_path=log_path).verify_chain() == []


class TestAuditLogTamperDetection:
    def _write_log(self, tmp_path: Path) -> Path:
        log_path = tmp_path / "audit.jsonl"
        _append_chain(AuditLog(storage_path=log_path), "AUD-1", "AUD-2", "AUD-3")
        return log_path

    def test_edited_entry_rejected_on_load(self, tmp_path: Path) -> None:
        log_path = self._write_log(tmp_path)
        lines = log_path.read_text(encoding="utf-8").splitlines()
        record = json.loads(lines[1])
        record["details"] = "Nothing happened here"
        lines[1] = json.dumps(record, sort_keys=True)
        log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Integrity check failed"):
            AuditLog(storage_path=log_path)

    def test_deleted_entry_rejected_on_load(self, tmp_path: Path) -> None:
        log_path = self._write_log(tmp_path)
        lines = log_path.read_text(encoding="utf-8").splitlines()
        del lines[1]
        log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Chain broken"):
            AuditLog(storage_path=log_path)

    def test_reordered_entries_rejected_on_load(self, tmp_path: Path) -> None:
        log_path = self._write_log(tmp_path)
        lines = log_path.read_text(encoding="utf-8").splitlines()
        lines[0], lines[1] = lines[1], lines[0]
        log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Chain broken"):
            AuditLog(storage_path=log_path)

    def test_duplicated_line_rejected_on_load(self, tmp_path: Path) -> None:
        log_path = self._write_log(tmp_path)
        lines = log_path.read_text(encoding="utf-8").splitlines()
        lines.append(lines[0])
        log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Duplicate"):
            AuditLog(storage_path=log_path)


# =====================================================================
# DocumentStore Tests
# =====================================================================


class TestDocumentStore:
    def test_create_and_get(self) -> None:
        store = DocumentStore()
        snap = store.create(ACCOUNTS, "u-1", {"userId": "u-1", "role": "uploader"})
        assert snap.version == 1
        loaded = store.get(ACCOUNTS, "u-1")
        assert loaded.data == {"userId": "u-1", "role": "uploader"}
        assert loaded.version == 1

    def test_get_missing_returns_none(self) -> None:
        assert DocumentStore().get(ACCOUNTS, "nobody") is None

    def test_create_existing_conflicts(self) -> None:
        store = DocumentStore()
        store.create(ACCOUNTS, "u-1", {"a": 1})
        with pytest.raises(ConflictError):
            store.create(ACCOUNTS, "u-1", {"a": 2})
        assert store.get(ACCOUNTS, "u-1").data == {"a": 1}

    def test_snapshots_are_copies(self) -> None:
        store = DocumentStore()
        store.create(ASSETS, "a-1", {"tags": ["x"]})
        snap = store.get(ASSETS, "a-1")
        snap.data["tags"].append("y")
        assert store.get(ASSETS, "a-1").data == {"tags": ["x"]}

    def test_update_with_matching_version(self) -> None:
        store = DocumentStore()
        store.create(ACCOUNTS, "u-1", {"n": 1})
        snap = store.update(ACCOUNTS, "u-1", {"n": 2}, expected_version=1)
        assert snap.version == 2
        assert store.get(ACCOUNTS, "u-1").data == {"n": 2}

    def test_update_with_stale_version_conflicts(self) -> None:
        store = DocumentStore()
        store.create(ACCOUNTS, "u-1", {"n": 1})
        store.update(ACCOUNTS, "u-1", {"n": 2}, expected_version=1)
        with pytest.raises(ConflictError):
            store.update(ACCOUNTS, "u-1", {"n": 99}, expected_version=1)
        assert store.get(ACCOUNTS, "u-1").data == {"n": 2}

    def test_update_missing_conflicts(self) -> None:
        with pytest.raises(ConflictError):
            DocumentStore().update(ACCOUNTS, "u-1", {}, expected_version=1)

    def test_query_with_predicate(self) -> None:
        store = DocumentStore()
        store.create(ASSETS, "a-1", {"status": "pending"})
        store.create(ASSETS, "a-2", {"status": "approved"})
        store.create(ASSETS, "a-3", {"status": "pending"})
        pending = store.query(ASSETS, lambda d: d["status"] == "pending")
        assert sorted(s.doc_id for s in pending) == ["a-1", "a-3"]
        assert len(store.query(ASSETS)) == 3
        assert store.query(ACCOUNTS) == []

    def test_new_id_unique(self) -> None:
        ids = {DocumentStore.new_id() for _ in range(100)}
        assert len(ids) == 100


class TestDocumentStoreTransaction:
    def test_transaction_applies_mutation(self) -> None:
        store = DocumentStore()
        store.create(ASSETS, "a-1", {"status": "pending"})

        def _approve(data):
            data["status"] = "approved"
            return "ok"

        assert store.transaction(ASSETS, "a-1", _approve) == "ok"
        snap = store.get(ASSETS, "a-1")
        assert snap.data["status"] == "approved"
        assert snap.version == 2

    def test_failed_mutation_writes_nothing(self) -> None:
        store = DocumentStore()
        store.create(ASSETS, "a-1", {"status": "approved"})

        def _approve(data):
            data["status"] = "garbage"
            raise RegistryError.failed_precondition("Asset is approved")

        with pytest.raises(RegistryError):
            store.transaction(ASSETS, "a-1", _approve)
        snap = store.get(ASSETS, "a-1")
        assert snap.data["status"] == "approved"
        assert snap.version == 1

    def test_missing_document_is_not_found(self) -> None:
        store = DocumentStore()
        with pytest.raises(RegistryError) as exc:
            store.transaction(ASSETS, "nope", lambda d: None, not_found="Asset not found")
        assert exc.value.kind == ErrorKind.NOT_FOUND
        assert exc.value.reason == "Asset not found"

    def test_concurrent_transactions_never_lose_updates(self) -> None:
        store = DocumentStore()
        store.create(ACCOUNTS, "counter", {"n": 0})

        def _inc(data):
            data["n"] += 1

        def _worker():
            for _ in range(50):
                store.transaction(ACCOUNTS, "counter", _inc)

        threads = [threading.Thread(target=_worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snap = store.get(ACCOUNTS, "counter")
        assert snap.data["n"] == 400
        assert snap.version == 401


class TestDocumentStoreFile:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "registry.json"
        store = DocumentStore(path)
        store.create(ACCOUNTS, "u-1", {"email": "u1@gov.example"})
        store.transaction(ACCOUNTS, "u-1", lambda d: d.update(name="Ada"))

        reloaded = DocumentStore(path)
        snap = reloaded.get(ACCOUNTS, "u-1")
        assert snap.data == {"email": "u1@gov.example", "name": "Ada"}
        assert snap.version == 2

    def test_in_memory_store_writes_no_file(self, tmp_path: Path) -> None:
        store = DocumentStore()
        store.create(ACCOUNTS, "u-1", {})
        assert list(tmp_path.iterdir()) == []
