"""Append-only audit log — the record of every privileged transition.

Every successful account, ministry, and asset transition appends one
entry. Entries are immutable once written and hash-chained: each entry
commits to the hash of its predecessor, so removing, reordering, or
editing a stored line breaks verification on load.

The log can be persisted to a JSONL file (one JSON object per line)
and loaded back for recovery.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

CHAIN_ROOT_HASH = "sha256:" + "0" * 64

_HASHED_FIELDS = (
    "entryId",
    "userId",
    "userEmail",
    "userRole",
    "action",
    "resourceType",
    "resourceId",
    "details",
    "metadata",
    "timestamp",
    "previousHash",
)


def _entry_hash(record: dict[str, Any]) -> str:
    canonical = json.dumps(
        {k: record[k] for k in _HASHED_FIELDS},
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class AuditLogEntry:
    """A single immutable audit entry.

    The timestamp is assigned at creation by the process recording the
    transition, never by the originating client.
    """
    entry_id: str
    user_id: str
    user_email: str
    user_role: str
    action: str
    resource_type: str
    resource_id: str
    details: str
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""
    previous_hash: str = CHAIN_ROOT_HASH
    entry_hash: str = ""

    @staticmethod
    def create(
        entry_id: str,
        user_id: str,
        user_email: str,
        user_role: str,
        action: str,
        resource_type: str,
        resource_id: str,
        details: str,
        metadata: Optional[dict[str, Any]] = None,
        previous_hash: str = CHAIN_ROOT_HASH,
        timestamp_utc: Optional[datetime] = None,
    ) -> AuditLogEntry:
        """Create a new entry with its chained hash computed."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        record = {
            "entryId": entry_id,
            "userId": user_id,
            "userEmail": user_email,
            "userRole": user_role,
            "action": action,
            "resourceType": resource_type,
            "resourceId": resource_id,
            "details": details,
            "metadata": dict(metadata or {}),
            "timestamp": ts.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "previousHash": previous_hash,
        }
        return AuditLogEntry.from_record({**record, "entryHash": _entry_hash(record)})

    def to_record(self) -> dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "userRole": self.user_role,
            "action": self.action,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "details": self.details,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
            "previousHash": self.previous_hash,
            "entryHash": self.entry_hash,
        }

    @staticmethod
    def from_record(data: dict[str, Any]) -> AuditLogEntry:
        return AuditLogEntry(
            entry_id=data["entryId"],
            user_id=data["userId"],
            user_email=data["userEmail"],
            user_role=data["userRole"],
            action=data["action"],
            resource_type=data["resourceType"],
            resource_id=data["resourceId"],
            details=data["details"],
            metadata=data.get("metadata", {}),
            timestamp=data["timestamp"],
            previous_hash=data["previousHash"],
            entry_hash=data["entryHash"],
        )

    def computed_hash(self) -> str:
        return _entry_hash(self.to_record())


class AuditLog:
    """Append-only, hash-chained audit log with optional file persistence.

    Entries can only be appended, never modified or deleted. Appending
    an entry whose previous_hash does not match the current head is
    rejected, so the chain cannot fork.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._entries: list[AuditLogEntry] = []
        self._entry_ids: set[str] = set()
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, entry: AuditLogEntry) -> None:
        """Append an entry to the log.

        Raises ValueError on a duplicate entry_id, a broken chain link,
        or an entry whose stored hash does not match its content.
        """
        if entry.entry_id in self._entry_ids:
            raise ValueError(f"Duplicate audit entry ID: {entry.entry_id}")
        if entry.previous_hash != self.head_hash:
            raise ValueError(
                f"Chain link mismatch for {entry.entry_id}: "
                f"previous {entry.previous_hash} != head {self.head_hash}"
            )
        if entry.entry_hash != entry.computed_hash():
            raise ValueError(f"Entry hash mismatch for {entry.entry_id}")

        if self._storage_path:
            self._append_to_file(entry)

        self._entries.append(entry)
        self._entry_ids.add(entry.entry_id)

    def entries(
        self,
        action: Optional[str] = None,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> list[AuditLogEntry]:
        """Return entries, optionally filtered."""
        result = list(self._entries)
        if action is not None:
            result = [e for e in result if e.action == action]
        if resource_id is not None:
            result = [e for e in result if e.resource_id == resource_id]
        if user_id is not None:
            result = [e for e in result if e.user_id == user_id]
        return result

    def entries_since(self, since_utc: str) -> list[AuditLogEntry]:
        return [e for e in self._entries if e.timestamp >= since_utc]

    def verify_chain(self) -> list[str]:
        """Re-verify every link and hash. Returns problems (empty = intact)."""
        problems: list[str] = []
        expected_prev = CHAIN_ROOT_HASH
        for e in self._entries:
            if e.previous_hash != expected_prev:
                problems.append(f"{e.entry_id}: broken chain link")
            if e.entry_hash != e.computed_hash():
                problems.append(f"{e.entry_id}: content hash mismatch")
            expected_prev = e.entry_hash
        return problems

    @property
    def count(self) -> int:
        return len(self._entries)

    @property
    def last_entry(self) -> Optional[AuditLogEntry]:
        return self._entries[-1] if self._entries else None

    @property
    def head_hash(self) -> str:
        last = self.last_entry
        return last.entry_hash if last else CHAIN_ROOT_HASH

    def _append_to_file(self, entry: AuditLogEntry) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_record(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load entries from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch), broken
        chain links, and duplicate entry IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                entry = AuditLogEntry.from_record(json.loads(line))

                if entry.entry_id in self._entry_ids:
                    raise ValueError(
                        f"Duplicate audit entry ID on recovery (line {line_num}): "
                        f"{entry.entry_id}"
                    )
                expected = entry.computed_hash()
                if entry.entry_hash != expected:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): entry "
                        f"{entry.entry_id} stored hash {entry.entry_hash} "
                        f"!= computed {expected}"
                    )
                if entry.previous_hash != self.head_hash:
                    raise ValueError(
                        f"Chain broken (line {line_num}): entry {entry.entry_id} "
                        f"does not follow {self.head_hash}"
                    )
                self._entries.append(entry)
                self._entry_ids.add(entry.entry_id)
