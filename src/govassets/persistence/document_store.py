"""Document store — versioned JSON documents with conditional writes.

Holds the three registry collections (accounts, ministries, assets).
Every document carries a monotonically increasing version. Writes are
conditional: ``update`` succeeds only when the caller's expected
version still matches, and ``transaction`` runs a read-verify-write
closure with the document pinned, so two writers racing on the same
document are serialised and the loser observes the winner's state.

With a storage path the whole store is mirrored to a single JSON file
after each committed write; without one it is purely in-memory.
"""

from __future__ import annotations

import copy
import json
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from govassets.errors import ConflictError, RegistryError

ACCOUNTS = "accounts"
MINISTRIES = "ministries"
ASSETS = "assets"

T = TypeVar("T")


@dataclass(frozen=True)
class Snapshot:
    """A point-in-time copy of one stored document."""
    collection: str
    doc_id: str
    data: dict[str, Any]
    version: int


class DocumentStore:
    """Thread-safe versioned document store.

    Usage:
        store = DocumentStore(Path("data/registry.json"))
        store.create(ACCOUNTS, "u1", {...})
        snap = store.get(ACCOUNTS, "u1")
        store.update(ACCOUNTS, "u1", new_data, expected_version=snap.version)

        def _approve(data):
            if data["status"] != "pending":
                raise RegistryError.failed_precondition("...")
            data["status"] = "approved"
        store.transaction(ASSETS, asset_id, _approve, not_found="Asset not found")
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._path = storage_path
        self._lock = threading.RLock()
        self._docs: dict[str, dict[str, dict[str, Any]]] = {}
        if storage_path and storage_path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, doc_id: str) -> Optional[Snapshot]:
        with self._lock:
            record = self._docs.get(collection, {}).get(doc_id)
            if record is None:
                return None
            return Snapshot(
                collection=collection,
                doc_id=doc_id,
                data=copy.deepcopy(record["data"]),
                version=record["version"],
            )

    def exists(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._docs.get(collection, {})

    def query(
        self,
        collection: str,
        predicate: Optional[Callable[[dict[str, Any]], bool]] = None,
    ) -> list[Snapshot]:
        """Return every document in the collection matching predicate."""
        with self._lock:
            result = []
            for doc_id, record in self._docs.get(collection, {}).items():
                if predicate is None or predicate(record["data"]):
                    result.append(Snapshot(
                        collection=collection,
                        doc_id=doc_id,
                        data=copy.deepcopy(record["data"]),
                        version=record["version"],
                    ))
            return result

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    # ------------------------------------------------------------------
    # Conditional writes
    # ------------------------------------------------------------------

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> Snapshot:
        """Create a document. Raises ConflictError if it already exists."""
        with self._lock:
            docs = self._docs.setdefault(collection, {})
            if doc_id in docs:
                raise ConflictError(f"{collection}/{doc_id} already exists")
            docs[doc_id] = {"version": 1, "data": copy.deepcopy(data)}
            self._save()
            return Snapshot(collection, doc_id, copy.deepcopy(data), 1)

    def update(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int,
    ) -> Snapshot:
        """Replace a document if its version still equals expected_version.

        Raises ConflictError when the document is missing or has moved on.
        """
        with self._lock:
            record = self._docs.get(collection, {}).get(doc_id)
            if record is None:
                raise ConflictError(f"{collection}/{doc_id} does not exist")
            if record["version"] != expected_version:
                raise ConflictError(
                    f"{collection}/{doc_id} version {record['version']} "
                    f"!= expected {expected_version}"
                )
            record["version"] += 1
            record["data"] = copy.deepcopy(data)
            self._save()
            return Snapshot(collection, doc_id, copy.deepcopy(data), record["version"])

    def transaction(
        self,
        collection: str,
        doc_id: str,
        mutate: Callable[[dict[str, Any]], T],
        not_found: str = "Document not found",
    ) -> T:
        """Atomically read, verify and rewrite one document.

        ``mutate`` receives a private copy of the current data and edits it
        in place; its return value is passed back to the caller. If it
        raises, nothing is written. A missing document raises not-found.
        """
        with self._lock:
            snap = self.get(collection, doc_id)
            if snap is None:
                raise RegistryError.not_found(not_found)
            data = snap.data
            result = mutate(data)
            self.update(collection, doc_id, data, expected_version=snap.version)
            return result

    # ------------------------------------------------------------------
    # File mirror
    # ------------------------------------------------------------------

    def _load(self) -> None:
        with self._path.open("r", encoding="utf-8") as f:
            state = json.load(f)
        self._docs = state.get("collections", {})

    def _save(self) -> None:
        if not self._path:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as f:
            json.dump(
                {"collections": self._docs},
                f,
                indent=2,
                sort_keys=True,
                ensure_ascii=False,
            )
