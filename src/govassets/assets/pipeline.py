"""Asset approval pipeline — two-stage review with resubmission.

Edges (each one hand-enumerated, nothing else is permitted):

    PENDING                 --approve(approver)-->       PENDING_MINISTRY_REVIEW
    PENDING_MINISTRY_REVIEW --approve(ministry-admin)--> APPROVED
    PENDING                 --reject(approver)-->        REJECTED
    PENDING_MINISTRY_REVIEW --reject(ministry-admin)-->  REJECTED
    REJECTED                --resubmit(uploader)-->      PENDING

Every edge reads the asset's current status inside the conditional
write. A status that no longer matches the edge's source state fails
with failed-precondition instead of overwriting, so a double-clicked
approval is refused rather than applied twice.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from govassets.audit.recorder import AuditAction, AuditRecorder, ResourceType
from govassets.errors import RegistryError
from govassets.ministry.lifecycle import MinistryManager
from govassets.models.account import Account, Role
from govassets.models.asset import (
    WORKFLOW_FIELDS,
    Asset,
    AssetDate,
    AssetStatus,
    RejectionLevel,
)
from govassets.models.common import utc_now
from govassets.models.ministry import MinistryStatus
from govassets.persistence.document_store import ASSETS, DocumentStore
from govassets.policy.resolver import RegistryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewEdge:
    """One reviewer's slice of the pipeline."""
    source: AssetStatus
    approve_to: AssetStatus
    level: RejectionLevel


_REVIEW_EDGES: dict[Role, ReviewEdge] = {
    Role.APPROVER: ReviewEdge(
        source=AssetStatus.PENDING,
        approve_to=AssetStatus.PENDING_MINISTRY_REVIEW,
        level=RejectionLevel.APPROVER,
    ),
    Role.MINISTRY_ADMIN: ReviewEdge(
        source=AssetStatus.PENDING_MINISTRY_REVIEW,
        approve_to=AssetStatus.APPROVED,
        level=RejectionLevel.MINISTRY_ADMIN,
    ),
}


class AssetPipeline:
    """Owns the assets collection.

    Usage:
        pipeline = AssetPipeline(store, ministries, policy, recorder)
        asset = pipeline.upload_asset(uploader, payload)
        pipeline.approve_asset(approver, asset.asset_id)
        pipeline.approve_asset(ministry_admin, asset.asset_id)
    """

    def __init__(
        self,
        store: DocumentStore,
        ministries: MinistryManager,
        policy: RegistryPolicy,
        recorder: AuditRecorder,
    ) -> None:
        self._store = store
        self._ministries = ministries
        self._policy = policy
        self._recorder = recorder

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, asset_id: str) -> Asset:
        snap = self._store.get(ASSETS, asset_id) if asset_id else None
        if snap is None:
            raise RegistryError.not_found("Asset not found")
        return Asset.from_document(snap.data)

    def list_assets(
        self,
        ministry_id: Optional[str] = None,
        status: Optional[AssetStatus] = None,
    ) -> list[Asset]:
        def _match(d: dict[str, Any]) -> bool:
            if ministry_id is not None and d["ministryId"] != ministry_id:
                return False
            return status is None or d["status"] == status.value

        return [Asset.from_document(s.data) for s in self._store.query(ASSETS, _match)]

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload_asset(self, caller: Account, payload: dict[str, Any]) -> Asset:
        """Create a PENDING asset in the uploader's ministry."""
        if caller.role != Role.UPLOADER or not caller.is_active():
            raise RegistryError.permission_denied("Only verified uploaders can upload assets")
        if not isinstance(payload, dict):
            raise RegistryError.invalid_argument("Asset payload must be an object")
        _reject_workflow_fields(payload)
        self._validate_payload(payload)

        ministry = self._ministries.get(caller.ministry_id)
        if ministry.status != MinistryStatus.VERIFIED:
            raise RegistryError.failed_precondition("Ministry is not verified")

        doc = dict(payload)
        doc.update({
            "assetId": self._store.new_id(),
            "ministryId": ministry.ministry_id,
            "uploadedBy": caller.user_id,
            "status": AssetStatus.PENDING.value,
        })
        asset = Asset.from_document(doc)
        asset.upload_timestamp = utc_now()
        self._store.create(ASSETS, asset.asset_id, asset.to_document())

        logger.info("Asset %s uploaded by %s to %s", asset.asset_id, caller.user_id, ministry.ministry_id)
        self._recorder.record(
            caller,
            AuditAction.ASSET_UPLOAD,
            ResourceType.ASSET,
            asset.asset_id,
            f"Uploaded asset: {asset.description} ({asset.category})",
            {"ministryId": ministry.ministry_id, "category": asset.category},
        )
        return asset

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def approve_asset(self, caller: Account, asset_id: str) -> Asset:
        edge = _review_edge(caller)
        ministry_id = _reviewer_ministry(caller)

        def _approve(data: dict[str, Any]) -> Asset:
            asset = Asset.from_document(data)
            _check_review(asset, ministry_id, edge.source)
            now = utc_now()
            if caller.role == Role.APPROVER:
                asset.approved_by = caller.user_id
                asset.approved_at = now
            else:
                asset.ministry_approved_by = caller.user_id
                asset.ministry_approved_at = now
            asset.status = edge.approve_to
            data.update(asset.to_document())
            return asset

        asset = self._store.transaction(ASSETS, asset_id, _approve, not_found="Asset not found")
        logger.info(
            "Asset %s approved by %s (%s), now %s",
            asset_id, caller.user_id, caller.role.value, asset.status.value,
        )
        self._recorder.record(
            caller,
            AuditAction.ASSET_APPROVE,
            ResourceType.ASSET,
            asset_id,
            f"Approved asset: {asset.description}",
            {
                "ministryId": asset.ministry_id,
                "previousStatus": edge.source.value,
                "status": asset.status.value,
            },
        )
        return asset

    def reject_asset(self, caller: Account, asset_id: str, reason: str) -> Asset:
        if not reason or not isinstance(reason, str) or not reason.strip():
            raise RegistryError.invalid_argument("Rejection reason is required")
        reason = reason.strip()
        edge = _review_edge(caller)
        ministry_id = _reviewer_ministry(caller)

        def _reject(data: dict[str, Any]) -> Asset:
            asset = Asset.from_document(data)
            _check_review(asset, ministry_id, edge.source)
            asset.status = AssetStatus.REJECTED
            asset.rejected_by = caller.user_id
            asset.rejected_at = utc_now()
            asset.rejection_reason = reason
            asset.rejection_level = edge.level
            data.update(asset.to_document())
            return asset

        asset = self._store.transaction(ASSETS, asset_id, _reject, not_found="Asset not found")
        logger.info("Asset %s rejected by %s at %s level", asset_id, caller.user_id, edge.level.value)
        self._recorder.record(
            caller,
            AuditAction.ASSET_REJECT,
            ResourceType.ASSET,
            asset_id,
            f"Rejected asset: {asset.description} - Reason: {reason}",
            {
                "ministryId": asset.ministry_id,
                "previousStatus": edge.source.value,
                "rejectionLevel": edge.level.value,
                "rejectionReason": reason,
            },
        )
        return asset

    # ------------------------------------------------------------------
    # Resubmission
    # ------------------------------------------------------------------

    def resubmit_asset(
        self,
        caller: Account,
        asset_id: str,
        updated_fields: Optional[dict[str, Any]] = None,
    ) -> Asset:
        """Send a rejected asset back to PENDING with corrected payload.

        Only the original uploader may resubmit. Workflow fields can
        never be supplied; all rejection and approval metadata is cleared.
        """
        updates = dict(updated_fields or {})
        _reject_workflow_fields(updates)

        if not caller.is_active():
            raise RegistryError.permission_denied("Account is not active")

        def _resubmit(data: dict[str, Any]) -> Asset:
            current = Asset.from_document(data)
            if current.uploaded_by != caller.user_id:
                raise RegistryError.permission_denied(
                    "Only the original uploader can resubmit this asset"
                )
            if current.status != AssetStatus.REJECTED:
                raise RegistryError.failed_precondition(
                    f"Only rejected assets can be resubmitted (asset is {current.status.value})"
                )
            merged = current.to_document()
            merged.update(updates)
            self._validate_payload(merged)
            asset = Asset.from_document(merged)
            asset.clear_rejection()
            asset.clear_approvals()
            asset.status = AssetStatus.PENDING
            asset.resubmission_count = current.resubmission_count + 1
            asset.resubmitted_at = utc_now()
            data.clear()
            data.update(asset.to_document())
            return asset

        asset = self._store.transaction(ASSETS, asset_id, _resubmit, not_found="Asset not found")
        logger.info("Asset %s resubmitted by %s (#%d)", asset_id, caller.user_id, asset.resubmission_count)
        self._recorder.record(
            caller,
            AuditAction.ASSET_RESUBMIT,
            ResourceType.ASSET,
            asset_id,
            f"Resubmitted asset: {asset.description}",
            {
                "ministryId": asset.ministry_id,
                "resubmissionCount": asset.resubmission_count,
                "updatedFields": sorted(updates),
            },
        )
        return asset

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_payload(self, payload: dict[str, Any]) -> None:
        for key in ("description", "category", "location"):
            value = payload.get(key)
            if not isinstance(value, str) or not value.strip():
                raise RegistryError.invalid_argument(f"{key} is required")

        category = payload["category"]
        if not self._policy.has_category(category):
            raise RegistryError.invalid_argument(f"Unknown asset category: {category}")

        cost = payload.get("purchaseCost")
        if not _is_number(cost) or cost <= self._policy.min_purchase_cost():
            raise RegistryError.invalid_argument("purchaseCost must be a positive number")
        market_value = payload.get("marketValue")
        if market_value is not None and (not _is_number(market_value) or market_value < 0):
            raise RegistryError.invalid_argument("marketValue must be a non-negative number")
        remarks = payload.get("remarks")
        if remarks is not None and not isinstance(remarks, str):
            raise RegistryError.invalid_argument("remarks must be text")

        self._validate_date(payload.get("purchasedDate"))

        missing = [
            f for f in self._policy.category(category).required_fields
            if payload.get(f) in (None, "")
        ]
        if missing:
            raise RegistryError.invalid_argument(
                f"Missing required fields for {category}: {', '.join(missing)}"
            )

    def _validate_date(self, value: Any) -> None:
        if not isinstance(value, dict):
            raise RegistryError.invalid_argument("purchasedDate is required")
        try:
            date = AssetDate.from_document(value)
        except KeyError as exc:
            raise RegistryError.invalid_argument(f"purchasedDate missing {exc.args[0]}") from None
        if not date.is_valid():
            raise RegistryError.invalid_argument("purchasedDate is not a valid date")
        if date.year < self._policy.min_purchase_year():
            raise RegistryError.invalid_argument(
                f"purchasedDate year must be {self._policy.min_purchase_year()} or later"
            )
        if date.as_date() > utc_now().date():
            raise RegistryError.invalid_argument("purchasedDate cannot be in the future")


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _reject_workflow_fields(payload: dict[str, Any]) -> None:
    forbidden = sorted(set(payload) & WORKFLOW_FIELDS)
    if forbidden:
        raise RegistryError.invalid_argument(
            f"Cannot set workflow fields: {', '.join(forbidden)}"
        )


def _review_edge(caller: Account) -> ReviewEdge:
    edge = _REVIEW_EDGES.get(caller.role)
    if edge is None or not caller.is_active():
        raise RegistryError.permission_denied("Only approvers and ministry admins can review assets")
    return edge


def _reviewer_ministry(caller: Account) -> str:
    if caller.role == Role.MINISTRY_ADMIN:
        if not caller.is_ministry_owner or not caller.owned_ministry_id:
            raise RegistryError.permission_denied("You must own a ministry to review assets")
        return caller.owned_ministry_id
    if not caller.ministry_id:
        raise RegistryError.permission_denied("You are not assigned to a ministry")
    return caller.ministry_id


def _check_review(asset: Asset, ministry_id: str, source: AssetStatus) -> None:
    if asset.ministry_id != ministry_id:
        raise RegistryError.permission_denied("You can only review assets in your own ministry")
    if asset.status != source:
        raise RegistryError.failed_precondition(
            f"Asset is {asset.status.value}, expected {source.value}"
        )
