"""
Registration tracking: storage, expiry classification, alerts, and approval decisions.
"""

from regtrack.tracker.models import (
    Category,
    Panchayath,
    Registration,
    RegistrationStatus,
    StatusPatch,
    Verification,
)
from regtrack.tracker.lifecycle import (
    EXPIRING_SOON_DAYS,
    EXPIRY_WINDOW_DAYS,
    Classification,
    ExpiryBucket,
    FixedClock,
    SystemClock,
    classify,
)
from regtrack.tracker.alerts import ExpiryAggregator, ExpiryAlert, ExpiryReport, aggregate
from regtrack.tracker.workflow import ApprovalWorkflow, approve, reject
from regtrack.tracker.tracker import Base, TrackerDB

__all__ = [
    "Base",
    "Category",
    "Panchayath",
    "Registration",
    "RegistrationStatus",
    "StatusPatch",
    "Verification",
    "EXPIRING_SOON_DAYS",
    "EXPIRY_WINDOW_DAYS",
    "Classification",
    "ExpiryBucket",
    "FixedClock",
    "SystemClock",
    "classify",
    "ExpiryAggregator",
    "ExpiryAlert",
    "ExpiryReport",
    "aggregate",
    "ApprovalWorkflow",
    "approve",
    "reject",
    "TrackerDB",
]
