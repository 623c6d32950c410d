"""
One-way approval decisions for registrations.

    pending -> approved   (stamps approved_date / approved_by)
    pending -> rejected   (status only)

Approved and rejected are terminal. Applying a decision to a record that is
not pending raises InvalidTransition instead of silently doing nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from regtrack.errors import InvalidTransition
from regtrack.tracker.lifecycle import Clock, SystemClock
from regtrack.tracker.models import Registration, RegistrationStatus, StatusPatch
from regtrack.tracker.store import RegistrationStore


logger = logging.getLogger(__name__)


def approval_patch(record: Registration, actor: str, now: datetime) -> StatusPatch:
    _require_pending(record, RegistrationStatus.APPROVED)
    if not actor or not actor.strip():
        raise ValueError("An approver name is required.")
    return StatusPatch(
        status=RegistrationStatus.APPROVED,
        approved_date=now,
        approved_by=actor.strip(),
        updated_at=now,
    )


def rejection_patch(record: Registration) -> StatusPatch:
    _require_pending(record, RegistrationStatus.REJECTED)
    return StatusPatch(status=RegistrationStatus.REJECTED)


def approve(record: Registration, actor: str, now: datetime) -> Registration:
    """Return a copy of ``record`` approved by ``actor`` at ``now``."""
    return record.with_changes(**approval_patch(record, actor, now).as_fields())


def reject(record: Registration) -> Registration:
    """Return a copy of ``record`` marked rejected. No approver metadata is kept."""
    return record.with_changes(**rejection_patch(record).as_fields())


def _require_pending(record: Registration, target: RegistrationStatus) -> None:
    if not record.is_pending:
        raise InvalidTransition(record.id, record.status.value, target.value)


class ApprovalWorkflow:
    """
    Apply approval decisions and persist them through a store.

    The store is called exactly once per decision, guarded by a
    compare-and-swap on the pending status. Store failures propagate
    unchanged and are not retried; the caller's record object is never
    modified, so whatever is on screen stays accurate.

    Usage:
        workflow = ApprovalWorkflow(db)
        approved = workflow.approve(registration, actor="admin")
    """

    def __init__(self, store: RegistrationStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()

    def approve(self, record: Registration, actor: str) -> Registration:
        patch = approval_patch(record, actor, self.clock.now())
        return self._persist(record, patch)

    def reject(self, record: Registration) -> Registration:
        return self._persist(record, rejection_patch(record))

    def _persist(self, record: Registration, patch: StatusPatch) -> Registration:
        updated = self.store.update(
            record.id, patch, expected_status=RegistrationStatus.PENDING
        )
        logger.info(
            "Registration %s (%s) moved to %s",
            record.id, record.customer_id, updated.status.value,
        )
        return updated
