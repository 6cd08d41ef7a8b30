"""Audit recorder — appends exactly one entry per committed transition.

Managers call ``record`` after their conditional write has landed. An
append failure never reverses or masks the transition: it is logged at
ERROR level and the recorder is flagged degraded so operators can see
the audit trail needs attention.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Optional

from govassets.models.account import Account
from govassets.persistence.audit_log import AuditLog, AuditLogEntry

logger = logging.getLogger(__name__)


class AuditAction(str, enum.Enum):
    """Closed set of audited actions."""
    USER_REGISTER = "user.register"
    USER_EMAIL_VERIFY = "user.email.verify"
    FEDERAL_ADMIN_BOOTSTRAP = "federal_admin.bootstrap"
    MINISTRY_REGISTER = "ministry.register"
    MINISTRY_ADMIN_APPROVE = "ministry_admin.approve"
    MINISTRY_ADMIN_REJECT = "ministry_admin.reject"
    STAFF_APPROVE = "staff.approve"
    STAFF_REJECT = "staff.reject"
    STAFF_REMOVE = "staff.remove"
    ROLE_CHANGE = "user.role.change"
    ACCOUNT_DISABLE = "user.account.disable"
    ACCOUNT_ENABLE = "user.account.enable"
    MINISTRY_VERIFY = "ministry.verify"
    MINISTRY_REJECT = "ministry.reject"
    MINISTRY_SUSPEND = "ministry.suspend"
    MINISTRY_REACTIVATE = "ministry.reactivate"
    ASSET_UPLOAD = "asset.upload"
    ASSET_APPROVE = "asset.approve"
    ASSET_REJECT = "asset.reject"
    ASSET_RESUBMIT = "asset.resubmit"


class ResourceType(str, enum.Enum):
    USER = "user"
    MINISTRY = "ministry"
    ASSET = "asset"


class AuditRecorder:
    """Builds chained entries on behalf of the managers."""

    def __init__(self, log: AuditLog) -> None:
        self._log = log
        self._lock = threading.Lock()
        self._next_id = log.count
        self.audit_degraded: bool = False

    @property
    def log(self) -> AuditLog:
        return self._log

    def record(
        self,
        actor: Account,
        action: AuditAction,
        resource_type: ResourceType,
        resource_id: str,
        details: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditLogEntry]:
        """Append one entry. Returns it, or None if the append failed."""
        with self._lock:
            self._next_id += 1
            try:
                entry = AuditLogEntry.create(
                    entry_id=f"AUD-{self._next_id:08d}",
                    user_id=actor.user_id,
                    user_email=actor.email,
                    user_role=actor.role.value,
                    action=action.value,
                    resource_type=resource_type.value,
                    resource_id=resource_id,
                    details=details,
                    metadata=metadata,
                    previous_hash=self._log.head_hash,
                )
                self._log.append(entry)
            except (ValueError, OSError) as exc:
                self.audit_degraded = True
                logger.error(
                    "Audit append failed for %s on %s/%s: %s",
                    action.value, resource_type.value, resource_id, exc,
                )
                return None
        return entry
