"""
Tests for expiry aggregation and alert rendering.
"""

from datetime import datetime, timedelta, timezone

import pytest

from regtrack.errors import InvalidTimestamp
from regtrack.tracker.alerts import ExpiryAggregator, aggregate
from regtrack.tracker.lifecycle import ExpiryBucket, FixedClock
from regtrack.tracker.models import Registration, RegistrationStatus


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_registration(
    reg_id: str,
    days_old: float,
    status: RegistrationStatus = RegistrationStatus.PENDING,
    **kwargs,
) -> Registration:
    defaults = dict(
        id=reg_id,
        customer_id=f"C-{reg_id}",
        name=f"Applicant {reg_id}",
        mobile_number="9876543210",
        address="Main Road",
        ward="4",
        created_at=NOW - timedelta(days=days_old),
        status=status,
    )
    defaults.update(kwargs)
    return Registration(**defaults)


class _ListStore:
    """Minimal read-only store over a list."""

    def __init__(self, records):
        self.records = records
        self.calls = 0

    def list_pending(self):
        self.calls += 1
        return [r for r in self.records if r.is_pending]


# ---------------------------------------------------------------------------
# aggregate()
# ---------------------------------------------------------------------------

class TestAggregate:
    def test_partitions_by_bucket(self):
        records = [
            _make_registration("a", 2),
            _make_registration("b", 11),
            _make_registration("c", 16),
            _make_registration("d", 15),
        ]
        report = aggregate(records, NOW)
        assert [a.registration.id for a in report.expiring_soon] == ["b"]
        assert [a.registration.id for a in report.expired] == ["c"]

    def test_expired_entry_carries_days_expired_by(self):
        report = aggregate([_make_registration("x", 16)], NOW)
        assert report.expired[0].classification.days_expired_by == 1

    def test_expiring_entry_carries_days_remaining(self):
        report = aggregate([_make_registration("x", 11)], NOW)
        assert report.expiring_soon[0].classification.days_remaining == 4

    def test_non_pending_records_never_returned(self):
        records = [
            _make_registration("a", 20, status=RegistrationStatus.APPROVED),
            _make_registration("b", 12, status=RegistrationStatus.REJECTED),
            _make_registration("c", 20),
        ]
        report = aggregate(records, NOW)
        returned = report.expired + report.expiring_soon
        assert all(a.registration.status == RegistrationStatus.PENDING for a in returned)
        assert [a.registration.id for a in returned] == ["c"]

    def test_outputs_sorted_oldest_first(self):
        records = [
            _make_registration("newer-expired", 17),
            _make_registration("expiring-1", 11),
            _make_registration("oldest-expired", 30),
            _make_registration("expiring-2", 14),
            _make_registration("mid-expired", 20),
        ]
        report = aggregate(records, NOW)
        assert [a.registration.id for a in report.expired] == [
            "oldest-expired", "mid-expired", "newer-expired",
        ]
        assert [a.registration.id for a in report.expiring_soon] == ["expiring-2", "expiring-1"]

    def test_empty_input(self):
        report = aggregate([], NOW)
        assert report.expiring_soon == []
        assert report.expired == []
        assert not report

    def test_invalid_timestamp_aborts_whole_call(self):
        records = [
            _make_registration("ok", 20),
            _make_registration("bad", -1),
        ]
        with pytest.raises(InvalidTimestamp):
            aggregate(records, NOW)

    def test_missing_created_at_among_several(self):
        records = [
            _make_registration("ok", 20),
            _make_registration("missing", 0, created_at=None),
            _make_registration("also-ok", 11),
        ]
        with pytest.raises(InvalidTimestamp):
            aggregate(records, NOW)

    def test_naive_created_at_among_aware(self):
        naive = (NOW - timedelta(days=3)).replace(tzinfo=None)
        records = [
            _make_registration("aware", 20),
            _make_registration("naive", 0, created_at=naive),
        ]
        with pytest.raises(InvalidTimestamp):
            aggregate(records, NOW)

    def test_naive_created_at_fails_check_all(self):
        naive = (NOW - timedelta(days=18)).replace(tzinfo=None)
        store = _ListStore([
            _make_registration("aware", 12),
            _make_registration("naive", 0, created_at=naive),
        ])
        with pytest.raises(InvalidTimestamp):
            ExpiryAggregator(store, clock=FixedClock(NOW)).check_all()

    def test_input_not_modified(self):
        records = [_make_registration("b", 11), _make_registration("a", 20)]
        aggregate(records, NOW)
        assert [r.id for r in records] == ["b", "a"]

    def test_registrations_for_bucket(self):
        report = aggregate([_make_registration("a", 11), _make_registration("b", 18)], NOW)
        assert [r.id for r in report.registrations(ExpiryBucket.EXPIRED)] == ["b"]
        assert [r.id for r in report.registrations(ExpiryBucket.EXPIRING_SOON)] == ["a"]


# ---------------------------------------------------------------------------
# ExpiryAggregator
# ---------------------------------------------------------------------------

class TestExpiryAggregator:
    def setup_method(self):
        self.store = _ListStore([
            _make_registration("a", 11),
            _make_registration("b", 16),
            _make_registration("c", 1),
            _make_registration("d", 25, status=RegistrationStatus.APPROVED),
        ])
        self.aggregator = ExpiryAggregator(self.store, clock=FixedClock(NOW))

    def test_check_all(self):
        report = self.aggregator.check_all()
        assert len(report.expiring_soon) == 1
        assert len(report.expired) == 1

    def test_check_expiring(self):
        assert [a.registration.id for a in self.aggregator.check_expiring()] == ["a"]

    def test_check_expired(self):
        assert [a.registration.id for a in self.aggregator.check_expired()] == ["b"]

    def test_recompute_is_stable(self):
        first = self.aggregator.check_all().to_dict()
        second = self.aggregator.check_all().to_dict()
        assert first == second
        assert self.store.calls == 2


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestAlertRendering:
    def test_expired_format_text(self):
        alert = aggregate([_make_registration("x", 18)], NOW).expired[0]
        text = alert.format_text()
        assert "[EXPIRED]" in text
        assert "C-x" in text
        assert "Expired 3 day(s) ago" in text

    def test_expiring_format_text(self):
        alert = aggregate([_make_registration("x", 12)], NOW).expiring_soon[0]
        text = alert.format_text()
        assert "[EXPIRING]" in text
        assert "3 day(s) left" in text

    def test_alert_to_dict(self):
        alert = aggregate([_make_registration("x", 16)], NOW).expired[0]
        data = alert.to_dict()
        assert data["customer_id"] == "C-x"
        assert data["bucket"] == "expired"
        assert data["expires_on"].startswith("2026-02-28")

    def test_digest_lists_both_sections(self):
        report = aggregate([_make_registration("a", 11), _make_registration("b", 17)], NOW)
        digest = report.render_digest(NOW)
        assert "Expiring soon (1)" in digest
        assert "Expired (1)" in digest
        assert "4 day(s) left" in digest
        assert "expired 2 day(s) ago" in digest
        assert "2026-03-01 12:00" in digest

    def test_digest_when_nothing_to_report(self):
        digest = aggregate([_make_registration("a", 1)], NOW).render_digest()
        assert "No pending registrations need attention." in digest
