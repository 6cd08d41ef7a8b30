"""Ministry data model — tenant record with bounded staff seats."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from govassets.models.account import Role
from govassets.models.common import format_ts, parse_ts


class MinistryStatus(str, enum.Enum):
    """Ministry lifecycle states.

    PENDING_VERIFICATION → VERIFIED | REJECTED
    VERIFIED ⇄ SUSPENDED
    """
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class SeatKind(str, enum.Enum):
    """The two seat sets a ministry keeps."""
    UPLOADER = "uploader"
    APPROVER = "approver"

    @classmethod
    def for_role(cls, role: Role) -> SeatKind:
        if role == Role.UPLOADER:
            return cls.UPLOADER
        if role == Role.APPROVER:
            return cls.APPROVER
        raise ValueError(f"Role {role.value} does not occupy a ministry seat")

    @property
    def members_field(self) -> str:
        return "uploaders" if self is SeatKind.UPLOADER else "approvers"

    @property
    def limit_field(self) -> str:
        return "maxUploaders" if self is SeatKind.UPLOADER else "maxApprovers"


@dataclass
class Ministry:
    """A ministry and its seat accounting.

    Seat sets are kept as insertion-ordered lists of account ids;
    membership is unique within and across the two sets.
    """
    ministry_id: str
    name: str
    official_email: str
    ministry_type: str
    location: str
    owner_id: str
    max_uploaders: int
    max_approvers: int
    status: MinistryStatus = MinistryStatus.PENDING_VERIFICATION
    owner_email: str = ""
    owner_name: str = ""
    uploaders: list[str] = field(default_factory=list)
    approvers: list[str] = field(default_factory=list)

    created_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    suspended_at: Optional[datetime] = None
    suspended_by: Optional[str] = None

    def seats(self, kind: SeatKind) -> list[str]:
        return self.uploaders if kind is SeatKind.UPLOADER else self.approvers

    def max_seats(self, kind: SeatKind) -> int:
        return self.max_uploaders if kind is SeatKind.UPLOADER else self.max_approvers

    def open_seats(self, kind: SeatKind) -> int:
        return max(0, self.max_seats(kind) - len(self.seats(kind)))

    def seat_of(self, account_id: str) -> Optional[SeatKind]:
        """Which seat set holds account_id, if any."""
        if account_id in self.uploaders:
            return SeatKind.UPLOADER
        if account_id in self.approvers:
            return SeatKind.APPROVER
        return None

    def invariant_violations(self) -> list[str]:
        """Return seat-accounting violations (empty = consistent)."""
        violations: list[str] = []
        for kind in SeatKind:
            members = self.seats(kind)
            if len(members) > self.max_seats(kind):
                violations.append(
                    f"{kind.members_field}: {len(members)} seats used, "
                    f"limit is {self.max_seats(kind)}"
                )
            if len(set(members)) != len(members):
                violations.append(f"{kind.members_field}: duplicate member")
        both = set(self.uploaders) & set(self.approvers)
        if both:
            violations.append(
                f"Accounts in both seat sets: {sorted(both)}"
            )
        return violations

    def to_document(self) -> dict[str, Any]:
        return {
            "ministryId": self.ministry_id,
            "name": self.name,
            "officialEmail": self.official_email,
            "ministryType": self.ministry_type,
            "location": self.location,
            "status": self.status.value,
            "ownerId": self.owner_id,
            "ownerEmail": self.owner_email,
            "ownerName": self.owner_name,
            "uploaders": list(self.uploaders),
            "approvers": list(self.approvers),
            "maxUploaders": self.max_uploaders,
            "maxApprovers": self.max_approvers,
            "createdAt": format_ts(self.created_at),
            "verifiedAt": format_ts(self.verified_at),
            "verifiedBy": self.verified_by,
            "rejectedAt": format_ts(self.rejected_at),
            "rejectedBy": self.rejected_by,
            "rejectionReason": self.rejection_reason,
            "suspendedAt": format_ts(self.suspended_at),
            "suspendedBy": self.suspended_by,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Ministry:
        return cls(
            ministry_id=data["ministryId"],
            name=data["name"],
            official_email=data.get("officialEmail", ""),
            ministry_type=data.get("ministryType", ""),
            location=data.get("location", ""),
            status=MinistryStatus(data["status"]),
            owner_id=data.get("ownerId", ""),
            owner_email=data.get("ownerEmail", ""),
            owner_name=data.get("ownerName", ""),
            uploaders=list(data.get("uploaders", [])),
            approvers=list(data.get("approvers", [])),
            max_uploaders=data["maxUploaders"],
            max_approvers=data["maxApprovers"],
            created_at=parse_ts(data.get("createdAt")),
            verified_at=parse_ts(data.get("verifiedAt")),
            verified_by=data.get("verifiedBy"),
            rejected_at=parse_ts(data.get("rejectedAt")),
            rejected_by=data.get("rejectedBy"),
            rejection_reason=data.get("rejectionReason"),
            suspended_at=parse_ts(data.get("suspendedAt")),
            suspended_by=data.get("suspendedBy"),
        )
