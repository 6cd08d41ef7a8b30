"""Registry service — unified facade for the asset registry.

This is the primary interface for programmatic access to the registry.
It orchestrates all subsystems:
- Caller resolution (token verification, then the account re-read)
- Account lifecycle (registration, approval, staff management)
- Ministry lifecycle (seat accounting, federal status changes)
- Asset pipeline (upload, two-stage approval, resubmission)
- Claims sync (typed status surfaced on every privilege change)
- Audit trail (one chained entry per committed transition)

All operations produce typed results. A refused operation returns
``success=False`` with its error kind; nothing raises past this layer.
The role carried in a token is advisory only: every call re-reads the
caller's account and authorises against what it finds there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from govassets.accounts.lifecycle import AccountManager, TransitionOutcome
from govassets.assets.pipeline import AssetPipeline
from govassets.audit.recorder import AuditRecorder
from govassets.errors import ErrorKind, RegistryError, parse_enum
from govassets.identity.claims import ClaimsAuthority, ClaimsSyncResult
from govassets.identity.provider import IdentityProvider, InMemoryIdentityProvider
from govassets.ministry.lifecycle import MinistryManager
from govassets.models.account import Account, AccountStatus, PendingMinistry, Role
from govassets.models.asset import Asset, AssetStatus
from govassets.models.ministry import Ministry, SeatKind
from govassets.persistence.audit_log import AuditLog
from govassets.persistence.document_store import DocumentStore
from govassets.policy.resolver import RegistryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None
    claims: Optional[ClaimsSyncResult] = None
    warnings: list[str] = field(default_factory=list)


class RegistryService:
    """Unified asset registry facade.

    Usage:
        policy = RegistryPolicy.from_config_dir(config_dir)
        service = RegistryService(policy)

        service.bootstrap_federal_admin("fed-1", "fed@gov.example")
        token = service.sign_in("fed-1").data["token"]
        result = service.approve_ministry_admin(token, "madmin-1")
        result.data["ministryId"]

    Persistence (optional):
        service = RegistryService(
            policy,
            store=DocumentStore(Path("data/registry.json")),
            audit_log=AuditLog(Path("data/audit.jsonl")),
        )
    """

    def __init__(
        self,
        policy: RegistryPolicy,
        store: Optional[DocumentStore] = None,
        audit_log: Optional[AuditLog] = None,
        provider: Optional[IdentityProvider] = None,
        signing_key: Optional[Ed25519PrivateKey] = None,
    ) -> None:
        self._policy = policy
        self._store = store if store is not None else DocumentStore()
        self._audit_log = audit_log if audit_log is not None else AuditLog()
        self._provider = provider if provider is not None else InMemoryIdentityProvider()

        self._recorder = AuditRecorder(self._audit_log)
        self._claims = ClaimsAuthority(
            self._provider, policy.token_policy(), signing_key=signing_key,
        )
        self._ministries = MinistryManager(self._store, policy, self._recorder)
        self._accounts = AccountManager(
            self._store, self._ministries, self._claims, self._recorder,
        )
        self._assets = AssetPipeline(self._store, self._ministries, policy, self._recorder)

    @classmethod
    def from_paths(
        cls,
        config_dir: Path,
        data_dir: Path,
        provider: Optional[IdentityProvider] = None,
        signing_key: Optional[Ed25519PrivateKey] = None,
    ) -> RegistryService:
        """Build a file-backed service from a config and a data directory."""
        return cls(
            RegistryPolicy.from_config_dir(config_dir),
            store=DocumentStore(data_dir / "registry.json"),
            audit_log=AuditLog(data_dir / "audit.jsonl"),
            provider=provider,
            signing_key=signing_key,
        )

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    @property
    def audit_degraded(self) -> bool:
        return self._recorder.audit_degraded

    # ------------------------------------------------------------------
    # Sign-in and registration
    # ------------------------------------------------------------------

    def sign_in(self, account_id: str) -> ServiceResult:
        """Mint a token for an existing account.

        Stands in for the identity provider's sign-in: the token carries
        whatever claims the provider currently holds for the account.
        """
        def _op() -> ServiceResult:
            account = self._accounts.get(account_id)
            token = self._claims.mint_token(account.user_id, account.email)
            return ServiceResult(success=True, data={"token": token})

        return self._guard("sign_in", _op)

    def refresh_token(self, token: Optional[str]) -> ServiceResult:
        """Force-refresh: re-sign the caller's current claims."""
        def _op() -> ServiceResult:
            caller = self._resolve_caller(token)
            fresh = self._claims.mint_token(caller.user_id, caller.email)
            return ServiceResult(
                success=True,
                data={
                    "token": fresh,
                    "claims": self._claims.current_claims(caller.user_id),
                },
            )

        return self._guard("refresh_token", _op)

    def register_staff(
        self,
        account_id: str,
        email: str,
        role: str,
        ministry_id: str,
        name: Optional[str] = None,
        position: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> ServiceResult:
        return self._guard("register_staff", lambda: self._outcome(
            self._accounts.register_staff(
                account_id, email, role, ministry_id,
                name=name, position=position, staff_id=staff_id,
            ),
            lambda o: {"userId": o.account.user_id, "accountStatus": o.account.account_status.value},
        ))

    def register_ministry_admin(
        self,
        account_id: str,
        email: str,
        ministry_name: str,
        official_email: str,
        ministry_type: str,
        location: str,
        name: Optional[str] = None,
    ) -> ServiceResult:
        pending = PendingMinistry(
            name=ministry_name or "",
            official_email=official_email or "",
            ministry_type=ministry_type or "",
            location=location or "",
        )
        return self._guard("register_ministry_admin", lambda: self._outcome(
            self._accounts.register_ministry_admin(account_id, email, pending, name=name),
            lambda o: {"userId": o.account.user_id, "accountStatus": o.account.account_status.value},
        ))

    def bootstrap_federal_admin(
        self, account_id: str, email: str, name: Optional[str] = None,
    ) -> ServiceResult:
        """Deploy-time creation of a federal admin."""
        return self._guard("bootstrap_federal_admin", lambda: self._outcome(
            self._accounts.bootstrap_federal_admin(account_id, email, name=name),
            lambda o: {"userId": o.account.user_id},
        ))

    def complete_email_verification(self, token: Optional[str]) -> ServiceResult:
        def _op() -> ServiceResult:
            caller = self._resolve_caller(token)
            return self._outcome(
                self._accounts.complete_email_verification(caller.user_id),
                lambda o: {"accountStatus": o.account.account_status.value},
            )

        return self._guard("complete_email_verification", _op)

    # ------------------------------------------------------------------
    # Federal admin operations
    # ------------------------------------------------------------------

    def approve_ministry_admin(self, token: Optional[str], target_id: str) -> ServiceResult:
        return self._as_caller(
            "approve_ministry_admin", token,
            lambda caller: self._outcome(
                self._accounts.approve_ministry_admin(caller, target_id),
            ),
        )

    def reject_ministry_admin(
        self, token: Optional[str], target_id: str, reason: str,
    ) -> ServiceResult:
        return self._as_caller(
            "reject_ministry_admin", token,
            lambda caller: self._outcome(
                self._accounts.reject_ministry_admin(caller, target_id, reason),
            ),
        )

    def verify_ministry(self, token: Optional[str], ministry_id: str) -> ServiceResult:
        return self._as_caller(
            "verify_ministry", token,
            lambda caller: self._ministry_result(
                self._ministries.verify_ministry(caller, ministry_id)
            ),
        )

    def reject_ministry(
        self, token: Optional[str], ministry_id: str, reason: str,
    ) -> ServiceResult:
        return self._as_caller(
            "reject_ministry", token,
            lambda caller: self._ministry_result(
                self._ministries.reject_ministry(caller, ministry_id, reason)
            ),
        )

    def suspend_ministry(
        self, token: Optional[str], ministry_id: str, reason: Optional[str] = None,
    ) -> ServiceResult:
        return self._as_caller(
            "suspend_ministry", token,
            lambda caller: self._ministry_result(
                self._ministries.suspend_ministry(caller, ministry_id, reason)
            ),
        )

    def reactivate_ministry(self, token: Optional[str], ministry_id: str) -> ServiceResult:
        return self._as_caller(
            "reactivate_ministry", token,
            lambda caller: self._ministry_result(
                self._ministries.reactivate_ministry(caller, ministry_id)
            ),
        )

    def resync_claims(self, token: Optional[str], target_id: str) -> ServiceResult:
        """Re-derive a target's claims from its account document.

        Repairs drift left by a failed claims sync. Federal admins may
        resync anyone; other callers only themselves.
        """
        def _op(caller: Account) -> ServiceResult:
            if caller.user_id != target_id and caller.role != Role.FEDERAL_ADMIN:
                raise RegistryError.permission_denied("Federal admin access required")
            target = self._accounts.get(target_id)
            sync = self._claims.resync(target)
            return self._with_claims({"claims": sync.claims}, sync)

        return self._as_caller("resync_claims", token, _op)

    # ------------------------------------------------------------------
    # Ministry admin: staff management
    # ------------------------------------------------------------------

    def approve_staff(self, token: Optional[str], target_id: str) -> ServiceResult:
        return self._as_caller(
            "approve_staff", token,
            lambda caller: self._outcome(self._accounts.approve_staff(caller, target_id)),
        )

    def reject_staff(self, token: Optional[str], target_id: str, reason: str) -> ServiceResult:
        return self._as_caller(
            "reject_staff", token,
            lambda caller: self._outcome(self._accounts.reject_staff(caller, target_id, reason)),
        )

    def remove_staff(
        self, token: Optional[str], target_id: str, reason: Optional[str] = None,
    ) -> ServiceResult:
        return self._as_caller(
            "remove_staff", token,
            lambda caller: self._outcome(self._accounts.remove_staff(caller, target_id, reason)),
        )

    def disable_staff(
        self, token: Optional[str], target_id: str, reason: Optional[str] = None,
    ) -> ServiceResult:
        return self._as_caller(
            "disable_staff", token,
            lambda caller: self._outcome(self._accounts.disable_staff(caller, target_id, reason)),
        )

    def enable_staff(self, token: Optional[str], target_id: str) -> ServiceResult:
        return self._as_caller(
            "enable_staff", token,
            lambda caller: self._outcome(self._accounts.enable_staff(caller, target_id)),
        )

    def change_staff_role(
        self, token: Optional[str], target_id: str, new_role: str,
    ) -> ServiceResult:
        return self._as_caller(
            "change_staff_role", token,
            lambda caller: self._outcome(
                self._accounts.change_staff_role(caller, target_id, new_role),
            ),
        )

    def list_pending_staff(self, token: Optional[str]) -> ServiceResult:
        def _op(caller: Account) -> ServiceResult:
            if caller.role != Role.MINISTRY_ADMIN or not caller.owned_ministry_id:
                raise RegistryError.permission_denied("You must own a ministry to list staff")
            pending = self._accounts.list_accounts(
                ministry_id=caller.owned_ministry_id,
                status=AccountStatus.PENDING_MINISTRY_APPROVAL,
            )
            return ServiceResult(
                success=True,
                data={"accounts": [a.to_document() for a in pending]},
            )

        return self._as_caller("list_pending_staff", token, _op)

    # ------------------------------------------------------------------
    # Asset pipeline
    # ------------------------------------------------------------------

    def upload_asset(self, token: Optional[str], payload: dict[str, Any]) -> ServiceResult:
        return self._as_caller(
            "upload_asset", token,
            lambda caller: self._asset_result(self._assets.upload_asset(caller, payload)),
        )

    def approve_asset(self, token: Optional[str], asset_id: str) -> ServiceResult:
        return self._as_caller(
            "approve_asset", token,
            lambda caller: self._asset_result(self._assets.approve_asset(caller, asset_id)),
        )

    def reject_asset(self, token: Optional[str], asset_id: str, reason: str) -> ServiceResult:
        return self._as_caller(
            "reject_asset", token,
            lambda caller: self._asset_result(
                self._assets.reject_asset(caller, asset_id, reason)
            ),
        )

    def resubmit_asset(
        self,
        token: Optional[str],
        asset_id: str,
        updated_fields: Optional[dict[str, Any]] = None,
    ) -> ServiceResult:
        return self._as_caller(
            "resubmit_asset", token,
            lambda caller: self._asset_result(
                self._assets.resubmit_asset(caller, asset_id, updated_fields)
            ),
        )

    def list_assets(
        self, token: Optional[str], status: Optional[str] = None,
    ) -> ServiceResult:
        """Assets of the caller's ministry (all ministries for federal admins)."""
        def _op(caller: Account) -> ServiceResult:
            wanted = parse_enum(AssetStatus, status, "status") if status is not None else None
            ministry_id = None if caller.role == Role.FEDERAL_ADMIN else caller.ministry_id
            if ministry_id == "":
                raise RegistryError.permission_denied("You are not assigned to a ministry")
            assets = self._assets.list_assets(ministry_id=ministry_id, status=wanted)
            return ServiceResult(
                success=True,
                data={"assets": [a.to_document() for a in assets]},
            )

        return self._as_caller("list_assets", token, _op)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def seat_capacity(self, ministry_id: str, role: str) -> ServiceResult:
        """Open seats for a staff role. Consulted before offering registration."""
        def _op() -> ServiceResult:
            staff_role = parse_enum(Role, role, "role")
            try:
                kind = SeatKind.for_role(staff_role)
            except ValueError as e:
                raise RegistryError.invalid_argument(str(e)) from None
            capacity = self._ministries.seat_capacity(ministry_id, kind)
            return ServiceResult(success=True, data=capacity.to_dict())

        return self._guard("seat_capacity", _op)

    def get_account(self, token: Optional[str], account_id: str) -> ServiceResult:
        def _op(caller: Account) -> ServiceResult:
            target = self._accounts.get(account_id)
            visible = (
                caller.user_id == target.user_id
                or caller.role == Role.FEDERAL_ADMIN
                or (
                    caller.role == Role.MINISTRY_ADMIN
                    and bool(caller.owned_ministry_id)
                    and caller.owned_ministry_id == target.ministry_id
                )
            )
            if not visible:
                raise RegistryError.permission_denied("You cannot view this account")
            return ServiceResult(success=True, data=target.to_document())

        return self._as_caller("get_account", token, _op)

    def get_ministry(self, token: Optional[str], ministry_id: str) -> ServiceResult:
        return self._as_caller(
            "get_ministry", token,
            lambda caller: ServiceResult(
                success=True,
                data=self._ministries.get(ministry_id).to_document(),
            ),
        )

    def get_asset(self, token: Optional[str], asset_id: str) -> ServiceResult:
        def _op(caller: Account) -> ServiceResult:
            asset = self._assets.get(asset_id)
            if caller.role != Role.FEDERAL_ADMIN and caller.ministry_id != asset.ministry_id:
                raise RegistryError.permission_denied("You can only view assets in your own ministry")
            return ServiceResult(success=True, data=asset.to_document())

        return self._as_caller("get_asset", token, _op)

    def audit_entries(
        self,
        token: Optional[str],
        action: Optional[str] = None,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ServiceResult:
        def _op(caller: Account) -> ServiceResult:
            if caller.role != Role.FEDERAL_ADMIN:
                raise RegistryError.permission_denied("Federal admin access required")
            entries = self._audit_log.entries(
                action=action, resource_id=resource_id, user_id=user_id,
            )
            return ServiceResult(
                success=True,
                data={"entries": [e.to_record() for e in entries]},
            )

        return self._as_caller("audit_entries", token, _op)

    def integrity_report(self) -> dict[str, Any]:
        """Operator view: audit chain health and seat-accounting violations.

        ``seat_drift`` lists active staff whose ministry does not hold
        them in the seat set their role requires.
        """
        violations = {}
        ministries = {}
        for ministry in self._ministries.list_ministries():
            ministries[ministry.ministry_id] = ministry
            problems = ministry.invariant_violations()
            if problems:
                violations[ministry.ministry_id] = problems

        drift = {}
        for account in self._accounts.list_accounts(status=AccountStatus.VERIFIED):
            if not account.is_staff():
                continue
            ministry = ministries.get(account.ministry_id)
            expected = SeatKind.for_role(account.role)
            held = ministry.seat_of(account.user_id) if ministry else None
            if held is not expected:
                drift[account.user_id] = (
                    f"expected {expected.value} seat in {account.ministry_id or '-'}, "
                    f"holds {held.value if held else 'none'}"
                )
        return {
            "audit_entries": self._audit_log.count,
            "audit_chain_problems": self._audit_log.verify_chain(),
            "audit_degraded": self._recorder.audit_degraded,
            "seat_violations": violations,
            "seat_drift": drift,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _resolve_caller(self, token: Optional[str]) -> Account:
        ctx = self._claims.verify_token(token)
        account = self._accounts.find(ctx.uid)
        if account is None:
            raise RegistryError.unauthenticated("No account exists for this token")
        return account

    def _guard(self, op_name: str, fn: Callable[[], ServiceResult]) -> ServiceResult:
        try:
            return fn()
        except RegistryError as e:
            logger.warning("%s refused (%s): %s", op_name, e.kind.value, e.reason)
            return ServiceResult(success=False, errors=[e.reason], error_kind=e.kind)

    def _as_caller(
        self,
        op_name: str,
        token: Optional[str],
        fn: Callable[[Account], ServiceResult],
    ) -> ServiceResult:
        return self._guard(op_name, lambda: fn(self._resolve_caller(token)))

    def _outcome(
        self,
        outcome: TransitionOutcome,
        shape: Optional[Callable[[TransitionOutcome], dict[str, Any]]] = None,
    ) -> ServiceResult:
        data = shape(outcome) if shape else dict(outcome.data)
        return self._with_claims(data, outcome.claims)

    def _with_claims(
        self, data: dict[str, Any], claims: Optional[ClaimsSyncResult],
    ) -> ServiceResult:
        warnings: list[str] = []
        if claims is not None and not claims.synced:
            warnings.append(
                f"Claims sync failed for {claims.account_id}: {claims.error}"
            )
        if self._recorder.audit_degraded:
            warnings.append("Audit trail degraded: an audit append has failed")
        return ServiceResult(success=True, data=data, claims=claims, warnings=warnings)

    def _asset_result(self, asset: Asset) -> ServiceResult:
        return self._with_claims(
            {"assetId": asset.asset_id, "status": asset.status.value}, None,
        )

    def _ministry_result(self, ministry: Ministry) -> ServiceResult:
        return self._with_claims(
            {"ministryId": ministry.ministry_id, "status": ministry.status.value}, None,
        )
