"""Account lifecycle manager — registration, approval and staff management.

Lifecycle:
    PENDING_VERIFICATION → PENDING_MINISTRY_APPROVAL   (staff, e-mail confirmed)
    PENDING_VERIFICATION → VERIFIED                    (ministry-admin, federal approval)
    PENDING_MINISTRY_APPROVAL → VERIFIED               (staff, ministry-admin approval)
    VERIFIED ⇄ DISABLED
    PENDING_* → REJECTED                               (terminal)
    VERIFIED | DISABLED → REJECTED                     (staff removal)

Every mutating operation reads the target, verifies each precondition
against what it read, writes conditionally, and only then syncs claims
and records the audit entry. Preconditions are re-verified inside the
conditional write so a concurrent change is never overwritten.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from govassets.audit.recorder import AuditAction, AuditRecorder, ResourceType
from govassets.errors import ConflictError, RegistryError, parse_enum
from govassets.identity.claims import ClaimsAuthority, ClaimsSyncResult
from govassets.identity.provider import IdentityProviderError
from govassets.ministry.lifecycle import MinistryManager
from govassets.models.account import (
    STAFF_ROLES,
    Account,
    AccountStatus,
    PendingMinistry,
    Role,
)
from govassets.models.common import utc_now
from govassets.models.ministry import MinistryStatus, SeatKind
from govassets.persistence.document_store import ACCOUNTS, DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_REMOVAL_REASON = "Removed from ministry by admin"
DEFAULT_DISABLE_REASON = "Disabled by ministry admin"


@dataclass
class TransitionOutcome:
    """Result of an account transition.

    ``claims`` is set whenever the transition changed privilege; it may
    report a failed sync even though the account write committed.
    """
    account: Account
    claims: Optional[ClaimsSyncResult] = None
    data: dict[str, Any] = field(default_factory=dict)


class AccountManager:
    """Owns the accounts collection.

    Usage:
        accounts = AccountManager(store, ministries, claims, recorder)
        outcome = accounts.approve_staff(ministry_admin, staff_id)
        outcome.data["uuid"]
    """

    def __init__(
        self,
        store: DocumentStore,
        ministries: MinistryManager,
        claims: ClaimsAuthority,
        recorder: AuditRecorder,
    ) -> None:
        self._store = store
        self._ministries = ministries
        self._claims = claims
        self._recorder = recorder

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, account_id: str) -> Account:
        snap = self._store.get(ACCOUNTS, account_id) if account_id else None
        if snap is None:
            raise RegistryError.not_found("User not found")
        return Account.from_document(snap.data)

    def find(self, account_id: str) -> Optional[Account]:
        snap = self._store.get(ACCOUNTS, account_id) if account_id else None
        return Account.from_document(snap.data) if snap else None

    def list_accounts(
        self,
        ministry_id: Optional[str] = None,
        status: Optional[AccountStatus] = None,
        role: Optional[Role] = None,
    ) -> list[Account]:
        def _match(d: dict[str, Any]) -> bool:
            if ministry_id is not None and d.get("ministryId") != ministry_id:
                return False
            if status is not None and d["accountStatus"] != status.value:
                return False
            if role is not None and d["role"] != role.value:
                return False
            return True

        return [Account.from_document(s.data) for s in self._store.query(ACCOUNTS, _match)]

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_staff(
        self,
        account_id: str,
        email: str,
        role: object,
        ministry_id: str,
        name: Optional[str] = None,
        position: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> TransitionOutcome:
        """Register an uploader or approver against a verified ministry.

        The seat check here is advisory; the seat is only claimed when
        the ministry admin approves the registrant.
        """
        staff_role = parse_enum(Role, role, "role")
        if staff_role not in STAFF_ROLES:
            raise RegistryError.invalid_argument(
                "Staff role must be either uploader or approver"
            )
        _require_identity(account_id, email)
        if not ministry_id:
            raise RegistryError.invalid_argument("ministryId is required")

        ministry = self._ministries.get(ministry_id)
        if ministry.status != MinistryStatus.VERIFIED:
            raise RegistryError.failed_precondition("Ministry is not accepting registrations")
        kind = SeatKind.for_role(staff_role)
        if not self._ministries.has_open_seat(ministry_id, kind):
            raise RegistryError.failed_precondition(f"No {kind.value} slots available")

        account = Account(
            user_id=account_id,
            email=email.strip(),
            role=staff_role,
            name=name,
            ministry_id=ministry_id,
            position=position,
            staff_id=staff_id,
            created_at=utc_now(),
        )
        self._create(account)
        logger.info("Registered %s %s for ministry %s", staff_role.value, account_id, ministry_id)
        self._recorder.record(
            account,
            AuditAction.USER_REGISTER,
            ResourceType.USER,
            account_id,
            f"Registered as {staff_role.label}: {account.email}",
            {"ministryId": ministry_id, "role": staff_role.value},
        )
        return TransitionOutcome(account=account)

    def register_ministry_admin(
        self,
        account_id: str,
        email: str,
        pending: PendingMinistry,
        name: Optional[str] = None,
    ) -> TransitionOutcome:
        """Register a ministry admin with the ministry they want created."""
        _require_identity(account_id, email)
        missing = pending.missing_fields()
        if missing:
            raise RegistryError.invalid_argument(
                f"Ministry details missing: {', '.join(missing)}"
            )
        account = Account(
            user_id=account_id,
            email=email.strip(),
            role=Role.MINISTRY_ADMIN,
            name=name,
            pending_ministry=pending,
            created_at=utc_now(),
        )
        self._create(account)
        logger.info("Registered ministry admin %s for %s", account_id, pending.name)
        self._recorder.record(
            account,
            AuditAction.MINISTRY_REGISTER,
            ResourceType.USER,
            account_id,
            f"Registered ministry admin {account.email} for ministry: {pending.name}",
            {"ministryName": pending.name, "ministryType": pending.ministry_type},
        )
        return TransitionOutcome(account=account)

    def bootstrap_federal_admin(
        self,
        account_id: str,
        email: str,
        name: Optional[str] = None,
    ) -> TransitionOutcome:
        """Create an active federal admin. Deploy-time operation."""
        _require_identity(account_id, email)
        now = utc_now()
        account = Account(
            user_id=account_id,
            email=email.strip(),
            role=Role.FEDERAL_ADMIN,
            account_status=AccountStatus.VERIFIED,
            name=name,
            email_verified=True,
            verified_at=now,
            verified_by="system",
            created_at=now,
        )
        self._create(account)
        claims = self._claims.issue_claims(account_id, Role.FEDERAL_ADMIN)
        logger.info("Bootstrapped federal admin %s", account_id)
        self._recorder.record(
            account,
            AuditAction.FEDERAL_ADMIN_BOOTSTRAP,
            ResourceType.USER,
            account_id,
            f"Created federal admin: {account.email}",
        )
        return TransitionOutcome(account=account, claims=claims)

    def complete_email_verification(self, account_id: str) -> TransitionOutcome:
        """Record a confirmed e-mail address.

        Staff waiting on verification move on to ministry approval.
        Ministry admins stay pending until a federal admin approves them.
        Repeating the call after success changes nothing.
        """
        try:
            confirmed = self._claims.provider.is_email_verified(account_id)
        except IdentityProviderError as exc:
            raise RegistryError.failed_precondition(
                f"Could not confirm e-mail verification: {exc}"
            ) from exc
        if not confirmed:
            raise RegistryError.failed_precondition("Email address has not been verified")

        def _verify(data: dict[str, Any]) -> tuple[Account, bool]:
            account = Account.from_document(data)
            if account.email_verified:
                return account, False
            account.email_verified = True
            if account.is_staff() and account.account_status == AccountStatus.PENDING_VERIFICATION:
                account.account_status = AccountStatus.PENDING_MINISTRY_APPROVAL
            data.update(account.to_document())
            return account, True

        account, changed = self._store.transaction(
            ACCOUNTS, account_id, _verify, not_found="User not found",
        )
        if changed:
            logger.info("E-mail verified for %s, now %s", account_id, account.account_status.value)
            self._recorder.record(
                account,
                AuditAction.USER_EMAIL_VERIFY,
                ResourceType.USER,
                account_id,
                f"Verified e-mail address: {account.email}",
                {"accountStatus": account.account_status.value},
            )
        return TransitionOutcome(account=account)

    # ------------------------------------------------------------------
    # Federal admin: ministry admin approval
    # ------------------------------------------------------------------

    def approve_ministry_admin(self, caller: Account, target_id: str) -> TransitionOutcome:
        """Approve a ministry admin and create their ministry.

        The ministry is created and the admin's account rewritten under
        one store transaction; the staged ministry data is consumed.
        """
        _require_federal_admin(caller)
        _require_target_id(target_id)

        def _approve(data: dict[str, Any]) -> tuple[Account, str]:
            account = Account.from_document(data)
            _check_pending_ministry_admin(account)
            if account.pending_ministry is None:
                raise RegistryError.failed_precondition(
                    "No pending ministry data found for this user"
                )
            ministry = self._ministries.create_from_pending(
                account, account.pending_ministry, caller,
            )
            account.account_status = AccountStatus.VERIFIED
            account.verified_by = caller.user_id
            account.verified_at = utc_now()
            account.ministry_id = ministry.ministry_id
            account.is_ministry_owner = True
            account.owned_ministry_id = ministry.ministry_id
            account.pending_ministry = None
            data.update(account.to_document())
            return account, ministry.name

        account, ministry_name = self._store.transaction(
            ACCOUNTS, target_id, _approve, not_found="User not found",
        )
        claims = self._claims.issue_claims(target_id, Role.MINISTRY_ADMIN, account.ministry_id)
        logger.info(
            "Ministry admin %s approved by %s, ministry %s created",
            target_id, caller.user_id, account.ministry_id,
        )
        self._recorder.record(
            caller,
            AuditAction.MINISTRY_ADMIN_APPROVE,
            ResourceType.USER,
            target_id,
            f"Approved ministry admin: {account.email} and created ministry: {ministry_name}",
            {
                "targetUser": account.email,
                "ministryId": account.ministry_id,
                "ministryName": ministry_name,
            },
        )
        return TransitionOutcome(
            account=account,
            claims=claims,
            data={"ministryId": account.ministry_id},
        )

    def reject_ministry_admin(
        self, caller: Account, target_id: str, reason: str,
    ) -> TransitionOutcome:
        _require_federal_admin(caller)
        _require_target_id(target_id)
        reason = _require_reason(reason)

        def _reject(data: dict[str, Any]) -> Account:
            account = Account.from_document(data)
            _check_pending_ministry_admin(account)
            account.account_status = AccountStatus.REJECTED
            account.verified_by = caller.user_id
            account.verified_at = utc_now()
            account.rejection_reason = reason
            data.update(account.to_document())
            return account

        account = self._store.transaction(ACCOUNTS, target_id, _reject, not_found="User not found")
        logger.info("Ministry admin %s rejected by %s", target_id, caller.user_id)
        self._recorder.record(
            caller,
            AuditAction.MINISTRY_ADMIN_REJECT,
            ResourceType.USER,
            target_id,
            f"Rejected ministry admin: {account.email} - Reason: {reason}",
            {"targetUser": account.email, "rejectionReason": reason},
        )
        return TransitionOutcome(account=account)

    # ------------------------------------------------------------------
    # Ministry admin: staff management
    # ------------------------------------------------------------------

    def approve_staff(self, caller: Account, target_id: str) -> TransitionOutcome:
        """Approve a pending staff member into the caller's ministry.

        A seat is reserved before the account write. If the account
        write then fails, a seat this call newly took is handed back,
        unless a concurrent approval has since activated the account.
        Returns the generated tracking uuid, shown to the caller once.
        """
        ministry_id = _require_owner(caller, "approve")
        _require_target_id(target_id)

        def _check(account: Account) -> None:
            if account.account_status != AccountStatus.PENDING_MINISTRY_APPROVAL:
                raise RegistryError.failed_precondition("User is not pending ministry approval")
            _check_same_ministry(account, ministry_id, "approve users for")
            if not account.is_staff():
                raise RegistryError.failed_precondition(
                    "User must be an uploader or approver"
                )

        target = self.get(target_id)
        _check(target)
        kind = SeatKind.for_role(target.role)
        newly_reserved = self._ministries.reserve_seat(ministry_id, kind, target_id)

        tracking_id = str(uuid.uuid4())

        def _approve(data: dict[str, Any]) -> Account:
            account = Account.from_document(data)
            _check(account)
            if SeatKind.for_role(account.role) is not kind:
                raise RegistryError.failed_precondition("User role changed during approval")
            account.account_status = AccountStatus.VERIFIED
            account.verified_by = caller.user_id
            account.verified_at = utc_now()
            account.uuid = tracking_id
            data.update(account.to_document())
            return account

        try:
            account = self._store.transaction(ACCOUNTS, target_id, _approve, not_found="User not found")
        except (RegistryError, ConflictError):
            if newly_reserved and not self._holds_seat(target_id, kind):
                self._ministries.release_seat(ministry_id, kind, target_id)
            raise

        claims = self._claims.issue_claims(target_id, account.role, account.ministry_id)
        logger.info(
            "Staff %s approved by %s into %s seat of %s",
            target_id, caller.user_id, kind.value, ministry_id,
        )
        self._recorder.record(
            caller,
            AuditAction.STAFF_APPROVE,
            ResourceType.USER,
            target_id,
            f"Approved staff: {account.email} ({account.role.value}) - UUID: {tracking_id}",
            {
                "targetUser": account.email,
                "targetRole": account.role.value,
                "ministryId": ministry_id,
                "uuid": tracking_id,
            },
        )
        return TransitionOutcome(
            account=account,
            claims=claims,
            data={
                "uuid": tracking_id,
                "email": account.email,
                "name": account.display_name(),
            },
        )

    def reject_staff(self, caller: Account, target_id: str, reason: str) -> TransitionOutcome:
        ministry_id = _require_owner(caller, "reject")
        _require_target_id(target_id)
        reason = _require_reason(reason)

        def _reject(data: dict[str, Any]) -> Account:
            account = Account.from_document(data)
            _check_same_ministry(account, ministry_id, "reject users for")
            if account.account_status not in (
                AccountStatus.PENDING_VERIFICATION,
                AccountStatus.PENDING_MINISTRY_APPROVAL,
            ):
                raise RegistryError.failed_precondition("User is not pending approval")
            if not account.is_staff():
                raise RegistryError.failed_precondition("User must be an uploader or approver")
            account.account_status = AccountStatus.REJECTED
            account.verified_by = caller.user_id
            account.verified_at = utc_now()
            account.rejection_reason = reason
            data.update(account.to_document())
            return account

        account = self._store.transaction(ACCOUNTS, target_id, _reject, not_found="User not found")
        logger.info("Staff %s rejected by %s", target_id, caller.user_id)
        self._recorder.record(
            caller,
            AuditAction.STAFF_REJECT,
            ResourceType.USER,
            target_id,
            f"Rejected staff: {account.email} - Reason: {reason}",
            {"targetUser": account.email, "rejectionReason": reason},
        )
        return TransitionOutcome(account=account)

    def remove_staff(
        self, caller: Account, target_id: str, reason: Optional[str] = None,
    ) -> TransitionOutcome:
        """Soft-remove a staff member. The record stays, marked rejected."""
        _require_not_self(caller, target_id, "You cannot remove yourself")
        ministry_id = _require_owner(caller, "remove")
        _require_target_id(target_id)
        reason = (reason or "").strip() or DEFAULT_REMOVAL_REASON

        def _remove(data: dict[str, Any]) -> Account:
            account = Account.from_document(data)
            _check_same_ministry(account, ministry_id, "remove users from")
            if not account.is_staff():
                raise RegistryError.failed_precondition("Can only remove uploaders or approvers")
            if account.account_status == AccountStatus.REJECTED:
                raise RegistryError.failed_precondition("User has already been removed")
            account.account_status = AccountStatus.REJECTED
            account.rejection_reason = reason
            account.verified_by = caller.user_id
            account.verified_at = utc_now()
            data.update(account.to_document())
            return account

        account = self._store.transaction(ACCOUNTS, target_id, _remove, not_found="User not found")
        self._ministries.release_seat(ministry_id, SeatKind.for_role(account.role), target_id)
        claims = self._claims.revoke_claims(target_id)
        logger.info("Staff %s removed from %s by %s", target_id, ministry_id, caller.user_id)
        self._recorder.record(
            caller,
            AuditAction.STAFF_REMOVE,
            ResourceType.USER,
            target_id,
            f"Removed staff from ministry: {account.email}",
            {"targetUser": account.email, "ministryId": ministry_id, "reason": reason},
        )
        return TransitionOutcome(account=account, claims=claims)

    def disable_staff(
        self, caller: Account, target_id: str, reason: Optional[str] = None,
    ) -> TransitionOutcome:
        """Disable an active staff member and free their seat."""
        _require_not_self(caller, target_id, "You cannot disable your own account")
        ministry_id = _require_owner(caller, "disable")
        _require_target_id(target_id)
        reason = (reason or "").strip() or DEFAULT_DISABLE_REASON

        def _disable(data: dict[str, Any]) -> Account:
            account = Account.from_document(data)
            _check_same_ministry(account, ministry_id, "disable users in")
            if account.account_status != AccountStatus.VERIFIED:
                raise RegistryError.failed_precondition(
                    "Can only disable verified (active) staff members"
                )
            if not account.is_staff():
                raise RegistryError.failed_precondition("Can only disable uploaders or approvers")
            account.account_status = AccountStatus.DISABLED
            account.disabled_at = utc_now()
            account.disabled_by = caller.user_id
            account.disable_reason = reason
            data.update(account.to_document())
            return account

        account = self._store.transaction(ACCOUNTS, target_id, _disable, not_found="User not found")
        self._ministries.release_seat(ministry_id, SeatKind.for_role(account.role), target_id)
        claims = self._claims.revoke_claims(target_id)
        logger.info("Staff %s disabled by %s", target_id, caller.user_id)
        self._recorder.record(
            caller,
            AuditAction.ACCOUNT_DISABLE,
            ResourceType.USER,
            target_id,
            f"Disabled staff account: {account.email}",
            {"targetUser": account.email, "ministryId": ministry_id, "reason": reason},
        )
        return TransitionOutcome(account=account, claims=claims)

    def enable_staff(self, caller: Account, target_id: str) -> TransitionOutcome:
        """Re-enable a disabled staff member.

        The seat given up on disable must be available again; a full
        seat set fails the call and leaves the account disabled.
        """
        ministry_id = _require_owner(caller, "enable")
        _require_target_id(target_id)

        def _check(account: Account) -> None:
            _check_same_ministry(account, ministry_id, "enable users in")
            if account.account_status != AccountStatus.DISABLED:
                raise RegistryError.failed_precondition("Can only enable disabled staff members")
            if not account.is_staff():
                raise RegistryError.failed_precondition("Can only enable uploaders or approvers")

        target = self.get(target_id)
        _check(target)
        kind = SeatKind.for_role(target.role)
        newly_reserved = self._ministries.reserve_seat(ministry_id, kind, target_id)

        def _enable(data: dict[str, Any]) -> Account:
            account = Account.from_document(data)
            _check(account)
            account.account_status = AccountStatus.VERIFIED
            account.enabled_at = utc_now()
            account.enabled_by = caller.user_id
            account.disabled_at = None
            account.disabled_by = None
            account.disable_reason = None
            data.update(account.to_document())
            return account

        try:
            account = self._store.transaction(ACCOUNTS, target_id, _enable, not_found="User not found")
        except (RegistryError, ConflictError):
            if newly_reserved and not self._holds_seat(target_id, kind):
                self._ministries.release_seat(ministry_id, kind, target_id)
            raise

        claims = self._claims.issue_claims(target_id, account.role, account.ministry_id)
        logger.info("Staff %s enabled by %s", target_id, caller.user_id)
        self._recorder.record(
            caller,
            AuditAction.ACCOUNT_ENABLE,
            ResourceType.USER,
            target_id,
            f"Enabled staff account: {account.email}",
            {"targetUser": account.email, "ministryId": ministry_id},
        )
        return TransitionOutcome(account=account, claims=claims)

    def change_staff_role(
        self, caller: Account, target_id: str, new_role: object,
    ) -> TransitionOutcome:
        """Switch a verified staff member between uploader and approver."""
        role = parse_enum(Role, new_role, "newRole")
        if role not in STAFF_ROLES:
            raise RegistryError.invalid_argument(
                'newRole must be either "uploader" or "approver"'
            )
        _require_not_self(caller, target_id, "You cannot change your own role")
        ministry_id = _require_owner(caller, "change roles for")
        _require_target_id(target_id)

        def _check(account: Account) -> None:
            _check_same_ministry(account, ministry_id, "change roles for users in")
            if account.account_status != AccountStatus.VERIFIED:
                raise RegistryError.failed_precondition(
                    "Can only change role for verified staff members"
                )
            if not account.is_staff():
                raise RegistryError.failed_precondition(
                    "Can only change role for uploaders or approvers"
                )
            if account.role == role:
                raise RegistryError.invalid_argument(f"User is already an {role.value}")

        target = self.get(target_id)
        _check(target)
        old_role = target.role
        from_kind = SeatKind.for_role(old_role)
        to_kind = SeatKind.for_role(role)
        self._ministries.move_seat(ministry_id, target_id, from_kind, to_kind)

        def _change(data: dict[str, Any]) -> Account:
            account = Account.from_document(data)
            _check(account)
            if account.role != old_role:
                raise RegistryError.failed_precondition("User role changed concurrently")
            account.role = role
            account.role_changed_at = utc_now()
            account.role_changed_by = caller.user_id
            data.update(account.to_document())
            return account

        try:
            account = self._store.transaction(ACCOUNTS, target_id, _change, not_found="User not found")
        except (RegistryError, ConflictError):
            self._ministries.move_seat(ministry_id, target_id, to_kind, from_kind)
            raise

        claims = self._claims.issue_claims(target_id, role, account.ministry_id)
        logger.info(
            "Staff %s role changed %s -> %s by %s",
            target_id, old_role.value, role.value, caller.user_id,
        )
        self._recorder.record(
            caller,
            AuditAction.ROLE_CHANGE,
            ResourceType.USER,
            target_id,
            f"Changed staff role from {old_role.value} to {role.value}: {account.email}",
            {
                "targetUser": account.email,
                "oldRole": old_role.value,
                "newRole": role.value,
                "ministryId": ministry_id,
            },
        )
        return TransitionOutcome(account=account, claims=claims)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _holds_seat(self, account_id: str, kind: SeatKind) -> bool:
        """True if a concurrent call already activated the account in ``kind``.

        Its seat must then survive this call's compensation.
        """
        account = self.find(account_id)
        return (
            account is not None
            and account.is_active()
            and account.is_staff()
            and SeatKind.for_role(account.role) is kind
        )

    def _create(self, account: Account) -> None:
        try:
            self._store.create(ACCOUNTS, account.user_id, account.to_document())
        except ConflictError:
            raise RegistryError.failed_precondition("Account already registered") from None


# ----------------------------------------------------------------------
# Guards
# ----------------------------------------------------------------------

def _require_identity(account_id: str, email: str) -> None:
    if not account_id or not isinstance(account_id, str):
        raise RegistryError.invalid_argument("userId is required")
    if not email or not isinstance(email, str) or "@" not in email:
        raise RegistryError.invalid_argument("A valid email address is required")


def _require_target_id(target_id: str) -> None:
    if not target_id or not isinstance(target_id, str):
        raise RegistryError.invalid_argument("Target user id is required")


def _require_reason(reason: Optional[str]) -> str:
    if not reason or not isinstance(reason, str) or not reason.strip():
        raise RegistryError.invalid_argument("Rejection reason is required")
    return reason.strip()


def _require_not_self(caller: Account, target_id: str, message: str) -> None:
    if caller.user_id == target_id:
        raise RegistryError.invalid_argument(message)


def _require_federal_admin(caller: Account) -> None:
    if caller.role != Role.FEDERAL_ADMIN or not caller.is_active():
        raise RegistryError.permission_denied("Federal admin access required")


def _require_owner(caller: Account, verb: str) -> str:
    """Return the ministry the caller owns, or refuse."""
    if (
        caller.role != Role.MINISTRY_ADMIN
        or not caller.is_active()
        or not caller.is_ministry_owner
        or not caller.owned_ministry_id
    ):
        raise RegistryError.permission_denied(f"You must own a ministry to {verb} staff")
    return caller.owned_ministry_id


def _check_same_ministry(account: Account, ministry_id: str, verb: str) -> None:
    if account.ministry_id != ministry_id:
        raise RegistryError.permission_denied(f"You can only {verb} your own ministry")


def _check_pending_ministry_admin(account: Account) -> None:
    if account.role != Role.MINISTRY_ADMIN:
        raise RegistryError.failed_precondition("User is not a ministry admin")
    if account.account_status != AccountStatus.PENDING_VERIFICATION:
        raise RegistryError.failed_precondition("User is not pending verification")
