"""Ministry lifecycle manager — ministry records and seat accounting.

A ministry holds two bounded seat sets (uploaders, approvers). Every
seat change is a single conditional write against the ministry
document: the size check and the add/remove happen on the same read,
so two approvals racing for the last seat cannot both land. The first
writer wins; the second sees the full set and fails.

Lifecycle:
    PENDING_VERIFICATION → VERIFIED ⇄ SUSPENDED
    PENDING_VERIFICATION → REJECTED (terminal)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from govassets.audit.recorder import AuditAction, AuditRecorder, ResourceType
from govassets.errors import RegistryError
from govassets.models.account import Account, PendingMinistry, Role
from govassets.models.common import format_ts, utc_now
from govassets.models.ministry import Ministry, MinistryStatus, SeatKind
from govassets.persistence.document_store import MINISTRIES, DocumentStore
from govassets.policy.resolver import RegistryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeatCapacity:
    """Seat usage for one kind in one ministry."""
    kind: SeatKind
    filled: int
    total: int

    @property
    def available(self) -> int:
        return max(0, self.total - self.filled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "filled": self.filled,
            "total": self.total,
            "available": self.available,
        }


class MinistryManager:
    """Owns the ministries collection.

    Usage:
        ministries = MinistryManager(store, policy, recorder)
        added = ministries.reserve_seat(mid, SeatKind.UPLOADER, uid)
        ministries.release_seat(mid, SeatKind.UPLOADER, uid)
    """

    def __init__(
        self,
        store: DocumentStore,
        policy: RegistryPolicy,
        recorder: AuditRecorder,
    ) -> None:
        self._store = store
        self._policy = policy
        self._recorder = recorder

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, ministry_id: str) -> Ministry:
        snap = self._store.get(MINISTRIES, ministry_id) if ministry_id else None
        if snap is None:
            raise RegistryError.not_found("Ministry not found")
        return Ministry.from_document(snap.data)

    def find(self, ministry_id: str) -> Optional[Ministry]:
        snap = self._store.get(MINISTRIES, ministry_id) if ministry_id else None
        return Ministry.from_document(snap.data) if snap else None

    def list_ministries(self, status: Optional[MinistryStatus] = None) -> list[Ministry]:
        snaps = self._store.query(
            MINISTRIES,
            None if status is None else (lambda d: d["status"] == status.value),
        )
        return [Ministry.from_document(s.data) for s in snaps]

    def seat_capacity(self, ministry_id: str, kind: SeatKind) -> SeatCapacity:
        ministry = self.get(ministry_id)
        return SeatCapacity(
            kind=kind,
            filled=len(ministry.seats(kind)),
            total=ministry.max_seats(kind),
        )

    def has_open_seat(self, ministry_id: str, kind: SeatKind) -> bool:
        """Advisory only. The binding check happens in reserve_seat."""
        return self.get(ministry_id).open_seats(kind) > 0

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_from_pending(
        self,
        owner: Account,
        pending: PendingMinistry,
        verified_by: Account,
    ) -> Ministry:
        """Create a verified ministry owned by ``owner``.

        Only called from ministry-admin approval, inside the owner's
        account transaction.
        """
        missing = pending.missing_fields()
        if missing:
            raise RegistryError.failed_precondition(
                f"Pending ministry data incomplete: {', '.join(missing)}"
            )
        limits = self._policy.seat_limits()
        now = utc_now()
        ministry = Ministry(
            ministry_id=self._store.new_id(),
            name=pending.name.strip(),
            official_email=pending.official_email.strip(),
            ministry_type=pending.ministry_type.strip(),
            location=pending.location.strip(),
            owner_id=owner.user_id,
            owner_email=owner.email,
            owner_name=owner.display_name(),
            max_uploaders=limits.max_uploaders,
            max_approvers=limits.max_approvers,
            status=MinistryStatus.VERIFIED,
            created_at=now,
            verified_at=now,
            verified_by=verified_by.user_id,
        )
        self._store.create(MINISTRIES, ministry.ministry_id, ministry.to_document())
        logger.info(
            "Ministry %s (%s) created for owner %s",
            ministry.ministry_id, ministry.name, owner.user_id,
        )
        return ministry

    # ------------------------------------------------------------------
    # Seat accounting
    # ------------------------------------------------------------------

    def reserve_seat(self, ministry_id: str, kind: SeatKind, account_id: str) -> bool:
        """Claim a seat for account_id.

        Returns True if the seat was newly taken, False if the account
        already held it (a re-run of an interrupted approval).
        """
        def _reserve(data: dict[str, Any]) -> bool:
            if data["status"] != MinistryStatus.VERIFIED.value:
                raise RegistryError.failed_precondition("Ministry is not verified")
            members: list[str] = data.setdefault(kind.members_field, [])
            if account_id in members:
                return False
            other = SeatKind.APPROVER if kind is SeatKind.UPLOADER else SeatKind.UPLOADER
            if account_id in data.get(other.members_field, []):
                raise RegistryError.failed_precondition(
                    f"Account already holds a {other.value} seat"
                )
            if len(members) >= data[kind.limit_field]:
                raise RegistryError.failed_precondition(
                    f"No {kind.value} slots available"
                )
            members.append(account_id)
            return True

        added = self._store.transaction(
            MINISTRIES, ministry_id, _reserve, not_found="Ministry not found",
        )
        if added:
            logger.info("Reserved %s seat in %s for %s", kind.value, ministry_id, account_id)
        return added

    def release_seat(self, ministry_id: str, kind: SeatKind, account_id: str) -> bool:
        """Give back a seat. Returns False if the account did not hold it."""
        def _release(data: dict[str, Any]) -> bool:
            members: list[str] = data.setdefault(kind.members_field, [])
            if account_id not in members:
                return False
            members.remove(account_id)
            return True

        removed = self._store.transaction(
            MINISTRIES, ministry_id, _release, not_found="Ministry not found",
        )
        if removed:
            logger.info("Released %s seat in %s for %s", kind.value, ministry_id, account_id)
        return removed

    def move_seat(
        self,
        ministry_id: str,
        account_id: str,
        from_kind: SeatKind,
        to_kind: SeatKind,
    ) -> None:
        """Move account_id between seat sets in one conditional write."""
        if from_kind is to_kind:
            raise RegistryError.invalid_argument("Seat kinds must differ")

        def _move(data: dict[str, Any]) -> None:
            if data["status"] != MinistryStatus.VERIFIED.value:
                raise RegistryError.failed_precondition("Ministry is not verified")
            source: list[str] = data.setdefault(from_kind.members_field, [])
            target: list[str] = data.setdefault(to_kind.members_field, [])
            if account_id not in source:
                raise RegistryError.failed_precondition(
                    f"Account does not hold a {from_kind.value} seat"
                )
            if len(target) >= data[to_kind.limit_field]:
                raise RegistryError.failed_precondition(
                    f"No {to_kind.value} slots available"
                )
            source.remove(account_id)
            target.append(account_id)

        self._store.transaction(MINISTRIES, ministry_id, _move, not_found="Ministry not found")
        logger.info(
            "Moved %s from %s to %s seat in %s",
            account_id, from_kind.value, to_kind.value, ministry_id,
        )

    # ------------------------------------------------------------------
    # Federal-admin status transitions
    # ------------------------------------------------------------------

    def verify_ministry(self, caller: Account, ministry_id: str) -> Ministry:
        return self._transition(
            caller, ministry_id,
            source=MinistryStatus.PENDING_VERIFICATION,
            target=MinistryStatus.VERIFIED,
            action=AuditAction.MINISTRY_VERIFY,
            verb="Verified",
        )

    def reject_ministry(self, caller: Account, ministry_id: str, reason: str) -> Ministry:
        if not reason or not reason.strip():
            raise RegistryError.invalid_argument("Rejection reason is required")
        return self._transition(
            caller, ministry_id,
            source=MinistryStatus.PENDING_VERIFICATION,
            target=MinistryStatus.REJECTED,
            action=AuditAction.MINISTRY_REJECT,
            verb="Rejected",
            reason=reason.strip(),
        )

    def suspend_ministry(
        self, caller: Account, ministry_id: str, reason: Optional[str] = None,
    ) -> Ministry:
        return self._transition(
            caller, ministry_id,
            source=MinistryStatus.VERIFIED,
            target=MinistryStatus.SUSPENDED,
            action=AuditAction.MINISTRY_SUSPEND,
            verb="Suspended",
            reason=reason,
        )

    def reactivate_ministry(self, caller: Account, ministry_id: str) -> Ministry:
        return self._transition(
            caller, ministry_id,
            source=MinistryStatus.SUSPENDED,
            target=MinistryStatus.VERIFIED,
            action=AuditAction.MINISTRY_REACTIVATE,
            verb="Reactivated",
        )

    def _transition(
        self,
        caller: Account,
        ministry_id: str,
        source: MinistryStatus,
        target: MinistryStatus,
        action: AuditAction,
        verb: str,
        reason: Optional[str] = None,
    ) -> Ministry:
        if caller.role != Role.FEDERAL_ADMIN:
            raise RegistryError.permission_denied(
                "Only federal admins can change ministry status"
            )

        def _apply(data: dict[str, Any]) -> dict[str, Any]:
            if data["status"] != source.value:
                raise RegistryError.failed_precondition(
                    f"Ministry is {data['status']}, expected {source.value}"
                )
            now = format_ts(utc_now())
            data["status"] = target.value
            if target is MinistryStatus.VERIFIED and source is MinistryStatus.PENDING_VERIFICATION:
                data["verifiedAt"] = now
                data["verifiedBy"] = caller.user_id
            elif target is MinistryStatus.REJECTED:
                data["rejectedAt"] = now
                data["rejectedBy"] = caller.user_id
                data["rejectionReason"] = reason
            elif target is MinistryStatus.SUSPENDED:
                data["suspendedAt"] = now
                data["suspendedBy"] = caller.user_id
            elif source is MinistryStatus.SUSPENDED:
                data["suspendedAt"] = None
                data["suspendedBy"] = None
            return data

        data = self._store.transaction(MINISTRIES, ministry_id, _apply, not_found="Ministry not found")
        ministry = Ministry.from_document(data)
        logger.info("%s ministry %s by %s", verb, ministry_id, caller.user_id)

        metadata: dict[str, Any] = {
            "ministryName": ministry.name,
            "ministryType": ministry.ministry_type,
            "location": ministry.location,
            "previousStatus": source.value,
        }
        if reason:
            metadata["reason"] = reason
        self._recorder.record(
            caller,
            action,
            ResourceType.MINISTRY,
            ministry_id,
            f"{verb} ministry: {ministry.name}",
            metadata,
        )
        return ministry
