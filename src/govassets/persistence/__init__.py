"""Persistence layer — audit log and document storage."""

from govassets.persistence.audit_log import AuditLog, AuditLogEntry
from govassets.persistence.document_store import DocumentStore, Snapshot

__all__ = ["AuditLog", "AuditLogEntry", "DocumentStore", "Snapshot"]
