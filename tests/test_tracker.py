"""
Tests for the SQLAlchemy registration store.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from regtrack.errors import ConflictError, RegistrationNotFound
from regtrack.tracker.alerts import ExpiryAggregator, aggregate
from regtrack.tracker.lifecycle import FixedClock
from regtrack.tracker.models import RegistrationStatus, StatusPatch
from regtrack.tracker.tracker import TrackerDB
from regtrack.tracker.workflow import ApprovalWorkflow


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestTrackerDB:
    def setup_method(self):
        self.clock = FixedClock(NOW)
        self.db = TrackerDB("sqlite:///:memory:", clock=self.clock)

    def _create(self, customer_id: str, days_old: float = 1, **kwargs):
        fields = dict(
            name=f"Applicant {customer_id}",
            mobile_number="9876543210",
            address="Beach Road",
            ward="3",
            created_at=NOW - timedelta(days=days_old),
        )
        fields.update(kwargs)
        return self.db.create_registration(customer_id=customer_id, **fields)

    def test_create_and_retrieve(self):
        reg = self._create(
            "C-1",
            category="Self Employment",
            panchayath="Kadampuzha",
            district="Malappuram",
            fee_paid=Decimal("250.00"),
            agent_pro="Ravi",
        )
        fetched = self.db.get_registration(reg.id)
        assert fetched is not None
        assert fetched.customer_id == "C-1"
        assert fetched.status == RegistrationStatus.PENDING
        assert fetched.category.name == "Self Employment"
        assert fetched.panchayath.district == "Malappuram"
        assert fetched.fee_paid == Decimal("250.00")
        assert fetched.created_at.tzinfo is not None
        assert fetched.created_at == NOW - timedelta(days=1)
        assert fetched.updated_at == fetched.created_at

    def test_missing_relations_are_none(self):
        reg = self._create("C-2")
        assert reg.category is None
        assert reg.panchayath is None
        assert reg.verification is None

    def test_categories_are_shared(self):
        self._create("C-1", category="Farming")
        self._create("C-2", category="Farming")
        assert {r.category.name for r in self.db.list_registrations()} == {"Farming"}

    def test_get_by_customer_id(self):
        reg = self._create("C-77")
        assert self.db.get_by_customer_id("C-77").id == reg.id
        assert self.db.get_by_customer_id("nope") is None

    def test_list_pending_oldest_first(self):
        self._create("C-new", days_old=1)
        self._create("C-old", days_old=20)
        self._create("C-approved", days_old=30, status=RegistrationStatus.APPROVED)
        self._create("C-mid", days_old=10)
        assert [r.customer_id for r in self.db.list_pending()] == ["C-old", "C-mid", "C-new"]

    def test_list_registrations_by_date(self):
        self._create("C-1", days_old=1)   # 2026-02-28
        self._create("C-2", days_old=5)   # 2026-02-24
        self._create("C-3", days_old=9)   # 2026-02-20
        found = self.db.list_registrations(
            created_from=date(2026, 2, 20), created_to=date(2026, 2, 24)
        )
        assert [r.customer_id for r in found] == ["C-3", "C-2"]

    def test_search_matches_name_mobile_or_customer_id(self):
        self._create("ESEP0001", name="Lakshmi Nair", mobile_number="9847000001")
        self._create("ESEP0002", name="Arun Kumar", mobile_number="9847000002")
        self._create("KSD0003", name="Fathima", mobile_number="9446123456")
        assert [r.customer_id for r in self.db.list_registrations(search="lakshmi")] == ["ESEP0001"]
        assert [r.customer_id for r in self.db.list_registrations(search="9446")] == ["KSD0003"]
        assert {r.customer_id for r in self.db.list_registrations(search="esep")} == {"ESEP0001", "ESEP0002"}
        assert self.db.list_registrations(search="nobody") == []

    def test_search_combines_with_status(self):
        self._create("C-1", name="Anil")
        self._create("C-2", name="Anitha", status=RegistrationStatus.APPROVED)
        found = self.db.list_registrations(status=RegistrationStatus.APPROVED, search="ani")
        assert [r.customer_id for r in found] == ["C-2"]

    def test_list_newest_first(self):
        self._create("C-old", days_old=9)
        self._create("C-new", days_old=1)
        self._create("C-mid", days_old=5)
        found = self.db.list_registrations(newest_first=True)
        assert [r.customer_id for r in found] == ["C-new", "C-mid", "C-old"]

    def test_update_with_expected_status(self):
        reg = self._create("C-1")
        patch = StatusPatch(
            status=RegistrationStatus.APPROVED,
            approved_by="admin",
            approved_date=NOW,
            updated_at=NOW,
        )
        updated = self.db.update(reg.id, patch, expected_status=RegistrationStatus.PENDING)
        assert updated.status == RegistrationStatus.APPROVED
        assert updated.approved_by == "admin"
        assert updated.approved_date == NOW

    def test_update_stamps_updated_at(self):
        reg = self._create("C-1", days_old=3)
        self.clock.advance(hours=1)
        updated = self.db.update(reg.id, StatusPatch(status=RegistrationStatus.REJECTED))
        assert updated.updated_at == NOW + timedelta(hours=1)
        assert updated.created_at <= updated.updated_at

    def test_update_conflict(self):
        reg = self._create("C-1")
        self.db.update(reg.id, StatusPatch(status=RegistrationStatus.REJECTED))
        with pytest.raises(ConflictError) as excinfo:
            self.db.update(
                reg.id,
                StatusPatch(status=RegistrationStatus.APPROVED, approved_by="admin"),
                expected_status=RegistrationStatus.PENDING,
            )
        assert excinfo.value.actual == "rejected"
        assert self.db.get_registration(reg.id).status == RegistrationStatus.REJECTED

    def test_update_missing(self):
        with pytest.raises(RegistrationNotFound):
            self.db.update(
                "does-not-exist",
                StatusPatch(status=RegistrationStatus.REJECTED),
                expected_status=RegistrationStatus.PENDING,
            )

    def test_verification(self):
        reg = self._create("C-1", status=RegistrationStatus.APPROVED)
        verified_at = NOW - timedelta(hours=3)
        updated = self.db.add_verification(reg.id, "inspector", verified_at)
        assert updated.verification.verified_by == "inspector"
        assert updated.verification.verified_at == verified_at
        with pytest.raises(ConflictError):
            self.db.add_verification(reg.id, "someone else")

    def test_list_verified_by_date(self):
        a = self._create("C-a", status=RegistrationStatus.APPROVED)
        b = self._create("C-b", status=RegistrationStatus.APPROVED)
        self._create("C-c", status=RegistrationStatus.APPROVED)
        self.db.add_verification(a.id, "x", datetime(2026, 2, 10, 9, tzinfo=timezone.utc))
        self.db.add_verification(b.id, "y", datetime(2026, 2, 20, 9, tzinfo=timezone.utc))
        assert {r.customer_id for r in self.db.list_verified()} == {"C-a", "C-b"}
        found = self.db.list_verified(date(2026, 2, 15), date(2026, 2, 28))
        assert [r.customer_id for r in found] == ["C-b"]


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

class TestEndToEnd:
    def setup_method(self):
        self.clock = FixedClock(NOW)
        self.db = TrackerDB("sqlite:///:memory:", clock=self.clock)

    def test_aggregator_over_database(self):
        for cid, days in [("C-exp", 16), ("C-soon", 11), ("C-fresh", 2)]:
            self.db.create_registration(
                customer_id=cid, name=cid, mobile_number="1",
                created_at=NOW - timedelta(days=days),
            )
        report = ExpiryAggregator(self.db, clock=self.clock).check_all()
        assert [a.registration.customer_id for a in report.expired] == ["C-exp"]
        assert report.expired[0].classification.days_expired_by == 1
        assert [a.registration.customer_id for a in report.expiring_soon] == ["C-soon"]
        assert report.expiring_soon[0].classification.days_remaining == 4
        assert report.to_dict() == aggregate(self.db.list_pending(), NOW).to_dict()

    def test_approval_removes_from_alerts(self):
        reg = self.db.create_registration(
            customer_id="C-1", name="A", mobile_number="1",
            created_at=NOW - timedelta(days=20),
        )
        aggregator = ExpiryAggregator(self.db, clock=self.clock)
        assert len(aggregator.check_expired()) == 1

        approved = ApprovalWorkflow(self.db, clock=self.clock).approve(reg, "admin")
        assert approved.status == RegistrationStatus.APPROVED
        assert approved.approved_by == "admin"
        assert aggregator.check_expired() == []
