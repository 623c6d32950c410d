"""
Expiry alerts for pending registrations.

Partitions pending records into "expiring soon" (operator-facing) and
"expired" (administrative) alerts. Nothing here is stateful, so alerts can
be recomputed on every poll; deciding whether a popup was already shown this
session is up to the presentation layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from jinja2 import BaseLoader, Environment

from regtrack.tracker.lifecycle import (
    Classification,
    Clock,
    ExpiryBucket,
    SystemClock,
    classify,
    expiry_date,
)
from regtrack.tracker.models import Registration
from regtrack.tracker.store import RegistrationStore


logger = logging.getLogger(__name__)


DIGEST_TEMPLATE = """\
Registration expiry digest ({{ generated_at }})
{% if not report.expiring_soon and not report.expired %}
No pending registrations need attention.
{% endif %}
{% if report.expiring_soon %}

Expiring soon ({{ report.expiring_soon | length }}):
{% for alert in report.expiring_soon %}
  {{ alert.registration.customer_id }} | {{ alert.registration.name }} | {{ alert.registration.mobile_number }} | {{ alert.classification.days_remaining }} day(s) left
{% endfor %}
{% endif %}
{% if report.expired %}

Expired ({{ report.expired | length }}):
{% for alert in report.expired %}
  {{ alert.registration.customer_id }} | {{ alert.registration.name }} | {{ alert.registration.mobile_number }} | expired {{ alert.classification.days_expired_by }} day(s) ago
{% endfor %}
{% endif %}
"""


@dataclass
class ExpiryAlert:
    """A pending registration that is close to, or past, its expiry window."""

    registration: Registration
    classification: Classification

    @property
    def bucket(self) -> ExpiryBucket:
        return self.classification.bucket

    @property
    def expires_on(self) -> datetime:
        return expiry_date(self.registration.created_at)

    def to_dict(self) -> dict:
        reg = self.registration
        return {
            "id": reg.id,
            "customer_id": reg.customer_id,
            "name": reg.name,
            "mobile_number": reg.mobile_number,
            "created_at": reg.created_at.isoformat(),
            "expires_on": self.expires_on.isoformat(),
            **self.classification.to_dict(),
        }

    def format_text(self) -> str:
        reg = self.registration
        if self.bucket is ExpiryBucket.EXPIRED:
            prefix = "[EXPIRED]"
            message = f"Expired {self.classification.days_expired_by} day(s) ago."
        else:
            prefix = "[EXPIRING]"
            message = f"{self.classification.days_remaining} day(s) left before expiry."
        return (
            f"{prefix} {reg.customer_id} — {reg.name}\n"
            f"  Mobile: {reg.mobile_number}\n"
            f"  Applied: {reg.created_at.date().isoformat()} | "
            f"Expires: {self.expires_on.date().isoformat()}\n"
            f"  {message}\n"
        )


@dataclass
class ExpiryReport:
    expiring_soon: list[ExpiryAlert] = field(default_factory=list)
    expired: list[ExpiryAlert] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.expiring_soon or self.expired)

    def registrations(self, bucket: ExpiryBucket) -> list[Registration]:
        """The plain records for one bucket, ready to hand to an exporter."""
        alerts = self.expired if bucket is ExpiryBucket.EXPIRED else self.expiring_soon
        return [a.registration for a in alerts]

    def to_dict(self) -> dict:
        return {
            "expiring_soon": [a.to_dict() for a in self.expiring_soon],
            "expired": [a.to_dict() for a in self.expired],
        }

    def render_digest(self, generated_at: Optional[datetime] = None) -> str:
        env = Environment(
            loader=BaseLoader(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        template = env.from_string(DIGEST_TEMPLATE)
        stamp = generated_at.strftime("%Y-%m-%d %H:%M") if generated_at else "now"
        return template.render(report=self, generated_at=stamp)


def aggregate(records: Iterable[Registration], now: datetime) -> ExpiryReport:
    """
    Split pending registrations into expiring-soon and expired alerts.

    Non-pending records are skipped, NORMAL ones are dropped. Both output
    lists are ordered oldest ``created_at`` first. An invalid timestamp on
    any record aborts the whole call.
    """
    pending = [r for r in records if r.is_pending]
    # classify before sorting so bad timestamps surface as InvalidTimestamp
    classified = [(reg, classify(reg.created_at, now)) for reg in pending]
    classified.sort(key=lambda pair: pair[0].created_at)

    report = ExpiryReport()
    for reg, result in classified:
        if result.bucket is ExpiryBucket.EXPIRED:
            report.expired.append(ExpiryAlert(reg, result))
        elif result.bucket is ExpiryBucket.EXPIRING_SOON:
            report.expiring_soon.append(ExpiryAlert(reg, result))

    logger.debug(
        "Classified %d pending registrations: %d expiring soon, %d expired",
        len(pending), len(report.expiring_soon), len(report.expired),
    )
    return report


class ExpiryAggregator:
    """
    Scan a store's pending registrations and produce expiry alerts.

    Usage:
        aggregator = ExpiryAggregator(db)
        report = aggregator.check_all()
        for alert in report.expired:
            print(alert.format_text())
    """

    def __init__(self, store: RegistrationStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()

    def check_all(self) -> ExpiryReport:
        return aggregate(self.store.list_pending(), self.clock.now())

    def check_expiring(self) -> list[ExpiryAlert]:
        """Operator-facing alerts: pending records in their last 5 days."""
        return self.check_all().expiring_soon

    def check_expired(self) -> list[ExpiryAlert]:
        """Administrative alerts: pending records past the 15-day window."""
        return self.check_all().expired
