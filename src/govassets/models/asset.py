"""Asset record data model — payload plus approval-workflow metadata.

Workflow fields are written only by the approval pipeline. Payload
fields are supplied by the uploader at upload and on resubmission.
Category-specific fields (vehicle registration, land survey number,
and so on) live in ``details`` and are flattened into the document.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from govassets.models.common import format_ts, parse_ts


class AssetStatus(str, enum.Enum):
    """Approval pipeline states.

    PENDING → PENDING_MINISTRY_REVIEW → APPROVED
    PENDING | PENDING_MINISTRY_REVIEW → REJECTED
    REJECTED → PENDING (resubmission)
    """
    PENDING = "pending"
    PENDING_MINISTRY_REVIEW = "pending_ministry_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class RejectionLevel(str, enum.Enum):
    """Which review stage produced a rejection."""
    APPROVER = "approver"
    MINISTRY_ADMIN = "ministry-admin"
    FEDERAL_ADMIN = "federal-admin"


# Document keys owned by the pipeline; uploaders may never set these.
WORKFLOW_FIELDS = frozenset({
    "assetId",
    "ministryId",
    "uploadedBy",
    "uploadTimestamp",
    "status",
    "approvedBy",
    "approvedAt",
    "ministryApprovedBy",
    "ministryApprovedAt",
    "rejectedBy",
    "rejectedAt",
    "rejectionReason",
    "rejectionLevel",
    "resubmissionCount",
    "resubmittedAt",
})

PAYLOAD_FIELDS = frozenset({
    "description",
    "category",
    "location",
    "purchasedDate",
    "purchaseCost",
    "marketValue",
    "remarks",
})


@dataclass(frozen=True)
class AssetDate:
    """Purchase date split into day, month (1-12) and year."""
    day: int
    month: int
    year: int

    def is_valid(self) -> bool:
        try:
            datetime(self.year, self.month, self.day)
        except (TypeError, ValueError):
            return False
        return True

    def as_date(self) -> date:
        return date(self.year, self.month, self.day)

    def to_document(self) -> dict[str, int]:
        return {"day": self.day, "month": self.month, "year": self.year}

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> AssetDate:
        return cls(day=data["day"], month=data["month"], year=data["year"])


@dataclass
class Asset:
    """A registered asset."""
    asset_id: str
    ministry_id: str
    uploaded_by: str
    description: str
    category: str
    location: str
    purchased_date: AssetDate
    purchase_cost: float
    status: AssetStatus = AssetStatus.PENDING
    market_value: Optional[float] = None
    remarks: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    upload_timestamp: Optional[datetime] = None

    # Stage one (approver)
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    # Stage two (ministry admin)
    ministry_approved_by: Optional[str] = None
    ministry_approved_at: Optional[datetime] = None

    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_level: Optional[RejectionLevel] = None

    resubmission_count: int = 0
    resubmitted_at: Optional[datetime] = None

    def clear_rejection(self) -> None:
        self.rejected_by = None
        self.rejected_at = None
        self.rejection_reason = None
        self.rejection_level = None

    def clear_approvals(self) -> None:
        self.approved_by = None
        self.approved_at = None
        self.ministry_approved_by = None
        self.ministry_approved_at = None

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = dict(self.details)
        doc.update({
            "assetId": self.asset_id,
            "ministryId": self.ministry_id,
            "uploadedBy": self.uploaded_by,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "purchasedDate": self.purchased_date.to_document(),
            "purchaseCost": self.purchase_cost,
            "marketValue": self.market_value,
            "remarks": self.remarks,
            "status": self.status.value,
            "uploadTimestamp": format_ts(self.upload_timestamp),
            "approvedBy": self.approved_by,
            "approvedAt": format_ts(self.approved_at),
            "ministryApprovedBy": self.ministry_approved_by,
            "ministryApprovedAt": format_ts(self.ministry_approved_at),
            "rejectedBy": self.rejected_by,
            "rejectedAt": format_ts(self.rejected_at),
            "rejectionReason": self.rejection_reason,
            "rejectionLevel": (
                self.rejection_level.value if self.rejection_level else None
            ),
            "resubmissionCount": self.resubmission_count,
            "resubmittedAt": format_ts(self.resubmitted_at),
        })
        return doc

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Asset:
        details = {
            k: v for k, v in data.items()
            if k not in WORKFLOW_FIELDS and k not in PAYLOAD_FIELDS
        }
        level = data.get("rejectionLevel")
        return cls(
            asset_id=data["assetId"],
            ministry_id=data["ministryId"],
            uploaded_by=data["uploadedBy"],
            description=data["description"],
            category=data["category"],
            location=data["location"],
            purchased_date=AssetDate.from_document(data["purchasedDate"]),
            purchase_cost=data["purchaseCost"],
            market_value=data.get("marketValue"),
            remarks=data.get("remarks"),
            details=details,
            status=AssetStatus(data["status"]),
            upload_timestamp=parse_ts(data.get("uploadTimestamp")),
            approved_by=data.get("approvedBy"),
            approved_at=parse_ts(data.get("approvedAt")),
            ministry_approved_by=data.get("ministryApprovedBy"),
            ministry_approved_at=parse_ts(data.get("ministryApprovedAt")),
            rejected_by=data.get("rejectedBy"),
            rejected_at=parse_ts(data.get("rejectedAt")),
            rejection_reason=data.get("rejectionReason"),
            rejection_level=RejectionLevel(level) if level else None,
            resubmission_count=data.get("resubmissionCount", 0),
            resubmitted_at=parse_ts(data.get("resubmittedAt")),
        )
