"""Account data model — roles, lifecycle states, staged ministry data.

An account's role and ministry binding are the inputs to the capability
token. Both fields are only ever written by the account lifecycle
transitions; nothing else touches them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from govassets.models.common import format_ts, parse_ts


class Role(str, enum.Enum):
    """Closed set of account roles."""
    UPLOADER = "uploader"
    APPROVER = "approver"
    MINISTRY_ADMIN = "ministry-admin"
    FEDERAL_ADMIN = "federal-admin"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ")


STAFF_ROLES = frozenset({Role.UPLOADER, Role.APPROVER})


class AccountStatus(str, enum.Enum):
    """Account lifecycle states.

    PENDING_VERIFICATION → PENDING_MINISTRY_APPROVAL (staff, after e-mail)
    PENDING_VERIFICATION → VERIFIED (ministry-admin, federal approval)
    PENDING_MINISTRY_APPROVAL → VERIFIED (staff, ministry-admin approval)
    VERIFIED ⇄ DISABLED
    PENDING_* → REJECTED (terminal)
    """
    PENDING_VERIFICATION = "pending_verification"
    PENDING_MINISTRY_APPROVAL = "pending_ministry_approval"
    VERIFIED = "verified"
    REJECTED = "rejected"
    DISABLED = "disabled"


@dataclass(frozen=True)
class PendingMinistry:
    """Ministry details staged at ministry-admin registration.

    Consumed exactly once, when a federal admin approves the registrant.
    """
    name: str
    official_email: str
    ministry_type: str
    location: str

    def missing_fields(self) -> list[str]:
        return [
            label for label, value in (
                ("name", self.name),
                ("officialEmail", self.official_email),
                ("ministryType", self.ministry_type),
                ("location", self.location),
            )
            if not value or not value.strip()
        ]

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "officialEmail": self.official_email,
            "ministryType": self.ministry_type,
            "location": self.location,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> PendingMinistry:
        return cls(
            name=data.get("name", ""),
            official_email=data.get("officialEmail", ""),
            ministry_type=data.get("ministryType", ""),
            location=data.get("location", ""),
        )


@dataclass
class Account:
    """A registered account.

    ministry_id is empty until a ministry binding exists. uuid is
    assigned when a ministry admin approves a staff member and is shown
    to the approver exactly once.
    """
    user_id: str
    email: str
    role: Role
    account_status: AccountStatus = AccountStatus.PENDING_VERIFICATION
    name: Optional[str] = None
    ministry_id: str = ""
    email_verified: bool = False

    is_ministry_owner: bool = False
    owned_ministry_id: Optional[str] = None

    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    uuid: Optional[str] = None
    pending_ministry: Optional[PendingMinistry] = None

    position: Optional[str] = None
    staff_id: Optional[str] = None

    created_at: Optional[datetime] = None
    role_changed_at: Optional[datetime] = None
    role_changed_by: Optional[str] = None
    disabled_at: Optional[datetime] = None
    disabled_by: Optional[str] = None
    disable_reason: Optional[str] = None
    enabled_at: Optional[datetime] = None
    enabled_by: Optional[str] = None

    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def is_active(self) -> bool:
        return self.account_status == AccountStatus.VERIFIED

    def display_name(self) -> str:
        return self.name or self.email

    def expected_claims(self) -> Optional[tuple[Role, Optional[str]]]:
        """The (role, ministryId) a synced token must carry, or None.

        Only verified accounts hold claims.
        """
        if not self.is_active():
            return None
        return self.role, (self.ministry_id or None)

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "userId": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "ministryId": self.ministry_id,
            "accountStatus": self.account_status.value,
            "emailVerified": self.email_verified,
            "isMinistryOwner": self.is_ministry_owner,
            "ownedMinistryId": self.owned_ministry_id,
            "verifiedBy": self.verified_by,
            "verifiedAt": format_ts(self.verified_at),
            "rejectionReason": self.rejection_reason,
            "uuid": self.uuid,
            "pendingMinistry": (
                self.pending_ministry.to_document()
                if self.pending_ministry else None
            ),
            "position": self.position,
            "staffId": self.staff_id,
            "createdAt": format_ts(self.created_at),
            "roleChangedAt": format_ts(self.role_changed_at),
            "roleChangedBy": self.role_changed_by,
            "disabledAt": format_ts(self.disabled_at),
            "disabledBy": self.disabled_by,
            "disableReason": self.disable_reason,
            "enabledAt": format_ts(self.enabled_at),
            "enabledBy": self.enabled_by,
        }
        return doc

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Account:
        pending = data.get("pendingMinistry")
        return cls(
            user_id=data["userId"],
            email=data["email"],
            name=data.get("name"),
            role=Role(data["role"]),
            ministry_id=data.get("ministryId") or "",
            account_status=AccountStatus(data["accountStatus"]),
            email_verified=data.get("emailVerified", False),
            is_ministry_owner=data.get("isMinistryOwner", False),
            owned_ministry_id=data.get("ownedMinistryId"),
            verified_by=data.get("verifiedBy"),
            verified_at=parse_ts(data.get("verifiedAt")),
            rejection_reason=data.get("rejectionReason"),
            uuid=data.get("uuid"),
            pending_ministry=(
                PendingMinistry.from_document(pending) if pending else None
            ),
            position=data.get("position"),
            staff_id=data.get("staffId"),
            created_at=parse_ts(data.get("createdAt")),
            role_changed_at=parse_ts(data.get("roleChangedAt")),
            role_changed_by=data.get("roleChangedBy"),
            disabled_at=parse_ts(data.get("disabledAt")),
            disabled_by=data.get("disabledBy"),
            disable_reason=data.get("disableReason"),
            enabled_at=parse_ts(data.get("enabledAt")),
            enabled_by=data.get("enabledBy"),
        )
