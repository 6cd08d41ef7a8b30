"""Audit trail — one chained entry per privileged transition."""

from govassets.audit.recorder import AuditAction, AuditRecorder, ResourceType

__all__ = ["AuditAction", "AuditRecorder", "ResourceType"]
