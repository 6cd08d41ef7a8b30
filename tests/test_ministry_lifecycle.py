"""Tests for ministry lifecycle — seat accounting and federal status changes."""

import threading
from pathlib import Path

import pytest

from govassets.audit.recorder import AuditRecorder
from govassets.errors import ErrorKind, RegistryError
from govassets.ministry.lifecycle import MinistryManager
from govassets.models.account import Account, AccountStatus, PendingMinistry, Role
from govassets.models.ministry import Ministry, MinistryStatus, SeatKind
from govassets.persistence.audit_log import AuditLog
from govassets.persistence.document_store import MINISTRIES, DocumentStore
from govassets.policy.resolver import RegistryPolicy

CONFIG_DIR = Path(__file__).parent.parent / "config"


def _make_manager() -> tuple[MinistryManager, DocumentStore, AuditLog]:
    store = DocumentStore()
    log = AuditLog()
    policy = RegistryPolicy.from_config_dir(CONFIG_DIR)
    return MinistryManager(store, policy, AuditRecorder(log)), store, log


def _seed_ministry(
    store: DocumentStore,
    ministry_id: str = "MIN-1",
    status: MinistryStatus = MinistryStatus.VERIFIED,
    max_uploaders: int = 6,
    max_approvers: int = 5,
    uploaders: list = None,
    approvers: list = None,
) -> None:
    ministry = Ministry(
        ministry_id=ministry_id,
        name="Ministry of Works",
        official_email="works@gov.example",
        ministry_type="Federal Ministry",
        location="Abuja",
        owner_id="owner-1",
        max_uploaders=max_uploaders,
        max_approvers=max_approvers,
        status=status,
        uploaders=list(uploaders or []),
        approvers=list(approvers or []),
    )
    store.create(MINISTRIES, ministry_id, ministry.to_document())


def _federal_admin() -> Account:
    return Account(
        user_id="fed-1", email="fed@gov.example", role=Role.FEDERAL_ADMIN,
        account_status=AccountStatus.VERIFIED,
    )


def _ministry_admin() -> Account:
    return Account(
        user_id="owner-1", email="owner@gov.example", role=Role.MINISTRY_ADMIN,
        account_status=AccountStatus.VERIFIED, ministry_id="MIN-1",
        is_ministry_owner=True, owned_ministry_id="MIN-1",
    )


# =====================================================================
# Seat reservation
# =====================================================================


class TestReserveSeat:
    def test_reserve_adds_member(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store)
        assert mgr.reserve_seat("MIN-1", SeatKind.UPLOADER, "u-1") is True
        assert mgr.get("MIN-1").uploaders == ["u-1"]

    def test_reserve_is_idempotent_for_existing_member(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, uploaders=["u-1"])
        assert mgr.reserve_seat("MIN-1", SeatKind.UPLOADER, "u-1") is False
        assert mgr.get("MIN-1").uploaders == ["u-1"]

    def test_reserve_fails_when_full(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, max_approvers=2, approvers=["a-1", "a-2"])
        with pytest.raises(RegistryError) as exc:
            mgr.reserve_seat("MIN-1", SeatKind.APPROVER, "a-3")
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION
        assert "No approver slots available" in exc.value.reason
        assert mgr.get("MIN-1").approvers == ["a-1", "a-2"]

    def test_reserve_refuses_unverified_ministry(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, status=MinistryStatus.SUSPENDED)
        with pytest.raises(RegistryError) as exc:
            mgr.reserve_seat("MIN-1", SeatKind.UPLOADER, "u-1")
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION

    def test_reserve_refuses_member_of_other_set(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, approvers=["u-1"])
        with pytest.raises(RegistryError) as exc:
            mgr.reserve_seat("MIN-1", SeatKind.UPLOADER, "u-1")
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION
        assert mgr.get("MIN-1").invariant_violations() == []

    def test_reserve_unknown_ministry(self) -> None:
        mgr, _, _ = _make_manager()
        with pytest.raises(RegistryError) as exc:
            mgr.reserve_seat("MIN-404", SeatKind.UPLOADER, "u-1")
        assert exc.value.kind == ErrorKind.NOT_FOUND

    def test_concurrent_reservations_respect_limit(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, max_uploaders=6)
        barrier = threading.Barrier(20)
        outcomes: list[str] = []
        lock = threading.Lock()

        def _reserve(i: int) -> None:
            barrier.wait()
            try:
                mgr.reserve_seat("MIN-1", SeatKind.UPLOADER, f"u-{i}")
                result = "ok"
            except RegistryError as e:
                result = e.kind.value
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=_reserve, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 6
        assert outcomes.count("failed-precondition") == 14
        ministry = mgr.get("MIN-1")
        assert len(ministry.uploaders) == 6
        assert ministry.invariant_violations() == []


class TestReleaseAndMove:
    def test_release_removes_member(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, uploaders=["u-1", "u-2"])
        assert mgr.release_seat("MIN-1", SeatKind.UPLOADER, "u-1") is True
        assert mgr.get("MIN-1").uploaders == ["u-2"]

    def test_release_absent_member_is_noop(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, uploaders=["u-2"])
        assert mgr.release_seat("MIN-1", SeatKind.UPLOADER, "u-1") is False
        assert mgr.get("MIN-1").uploaders == ["u-2"]

    def test_release_works_on_suspended_ministry(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, status=MinistryStatus.SUSPENDED, approvers=["a-1"])
        assert mgr.release_seat("MIN-1", SeatKind.APPROVER, "a-1") is True

    def test_move_between_sets(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, uploaders=["u-1"])
        mgr.move_seat("MIN-1", "u-1", SeatKind.UPLOADER, SeatKind.APPROVER)
        ministry = mgr.get("MIN-1")
        assert ministry.uploaders == []
        assert ministry.approvers == ["u-1"]

    def test_move_into_full_set_changes_nothing(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, max_approvers=1, uploaders=["u-1"], approvers=["a-1"])
        with pytest.raises(RegistryError) as exc:
            mgr.move_seat("MIN-1", "u-1", SeatKind.UPLOADER, SeatKind.APPROVER)
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION
        ministry = mgr.get("MIN-1")
        assert ministry.uploaders == ["u-1"]
        assert ministry.approvers == ["a-1"]

    def test_move_requires_source_membership(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store)
        with pytest.raises(RegistryError) as exc:
            mgr.move_seat("MIN-1", "u-1", SeatKind.UPLOADER, SeatKind.APPROVER)
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION


class TestSeatCapacity:
    def test_capacity_counts(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, uploaders=["u-1", "u-2"])
        capacity = mgr.seat_capacity("MIN-1", SeatKind.UPLOADER)
        assert capacity.filled == 2
        assert capacity.total == 6
        assert capacity.available == 4
        assert capacity.to_dict()["kind"] == "uploader"

    def test_seat_of_and_open_seats(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, max_approvers=2, uploaders=["u-1"], approvers=["a-1"])
        ministry = mgr.get("MIN-1")
        assert ministry.seat_of("u-1") is SeatKind.UPLOADER
        assert ministry.seat_of("a-1") is SeatKind.APPROVER
        assert ministry.seat_of("x-9") is None
        assert ministry.open_seats(SeatKind.APPROVER) == 1
        assert ministry.open_seats(SeatKind.UPLOADER) == 5

    def test_has_open_seat(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, max_approvers=1, approvers=["a-1"])
        assert mgr.has_open_seat("MIN-1", SeatKind.APPROVER) is False
        assert mgr.has_open_seat("MIN-1", SeatKind.UPLOADER) is True


# =====================================================================
# Creation and status transitions
# =====================================================================


class TestCreateFromPending:
    def test_creates_verified_ministry_with_policy_limits(self) -> None:
        mgr, _, _ = _make_manager()
        owner = Account(
            user_id="owner-1", email="owner@gov.example", role=Role.MINISTRY_ADMIN,
            name="Amina Bello",
        )
        pending = PendingMinistry(
            name="Ministry of Health", official_email="health@gov.example",
            ministry_type="Federal Ministry", location="Abuja",
        )
        ministry = mgr.create_from_pending(owner, pending, _federal_admin())
        stored = mgr.get(ministry.ministry_id)
        assert stored.status == MinistryStatus.VERIFIED
        assert stored.owner_id == "owner-1"
        assert stored.owner_name == "Amina Bello"
        assert stored.verified_by == "fed-1"
        assert stored.max_uploaders == 6
        assert stored.max_approvers == 5
        assert stored.uploaders == [] and stored.approvers == []

    def test_incomplete_pending_data_refused(self) -> None:
        mgr, store, _ = _make_manager()
        owner = Account(user_id="owner-1", email="owner@gov.example", role=Role.MINISTRY_ADMIN)
        pending = PendingMinistry(name="", official_email="x@gov.example", ministry_type="", location="Abuja")
        with pytest.raises(RegistryError) as exc:
            mgr.create_from_pending(owner, pending, _federal_admin())
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION
        assert mgr.list_ministries() == []


class TestStatusTransitions:
    def test_suspend_and_reactivate(self) -> None:
        mgr, store, log = _make_manager()
        _seed_ministry(store)
        suspended = mgr.suspend_ministry(_federal_admin(), "MIN-1", "Audit pending")
        assert suspended.status == MinistryStatus.SUSPENDED
        assert suspended.suspended_by == "fed-1"
        active = mgr.reactivate_ministry(_federal_admin(), "MIN-1")
        assert active.status == MinistryStatus.VERIFIED
        assert active.suspended_by is None
        actions = [e.action for e in log.entries()]
        assert actions == ["ministry.suspend", "ministry.reactivate"]

    def test_verify_pending_ministry(self) -> None:
        mgr, store, log = _make_manager()
        _seed_ministry(store, status=MinistryStatus.PENDING_VERIFICATION)
        verified = mgr.verify_ministry(_federal_admin(), "MIN-1")
        assert verified.status == MinistryStatus.VERIFIED
        assert verified.verified_by == "fed-1"
        entry = log.last_entry
        assert entry.action == "ministry.verify"
        assert entry.metadata["previousStatus"] == "pending_verification"

    def test_reject_pending_ministry_requires_reason(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, status=MinistryStatus.PENDING_VERIFICATION)
        with pytest.raises(RegistryError) as exc:
            mgr.reject_ministry(_federal_admin(), "MIN-1", "  ")
        assert exc.value.kind == ErrorKind.INVALID_ARGUMENT
        rejected = mgr.reject_ministry(_federal_admin(), "MIN-1", "Not a real ministry")
        assert rejected.status == MinistryStatus.REJECTED
        assert rejected.rejection_reason == "Not a real ministry"

    def test_rejected_is_terminal(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store, status=MinistryStatus.REJECTED)
        with pytest.raises(RegistryError) as exc:
            mgr.verify_ministry(_federal_admin(), "MIN-1")
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION

    def test_reactivate_requires_suspended(self) -> None:
        mgr, store, log = _make_manager()
        _seed_ministry(store)
        with pytest.raises(RegistryError) as exc:
            mgr.reactivate_ministry(_federal_admin(), "MIN-1")
        assert exc.value.kind == ErrorKind.FAILED_PRECONDITION
        assert log.count == 0

    def test_only_federal_admin(self) -> None:
        mgr, store, _ = _make_manager()
        _seed_ministry(store)
        with pytest.raises(RegistryError) as exc:
            mgr.suspend_ministry(_ministry_admin(), "MIN-1")
        assert exc.value.kind == ErrorKind.PERMISSION_DENIED
        assert mgr.get("MIN-1").status == MinistryStatus.VERIFIED
