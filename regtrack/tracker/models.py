"""
Domain model for tracked registrations.

Records are immutable in memory: workflow transitions and store updates
return new ``Registration`` instances rather than mutating the caller's copy.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from regtrack.errors import InvalidTimestamp


class RegistrationStatus(enum.Enum):
    """Approval states. Both APPROVED and REJECTED are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Category:
    name: str


@dataclass(frozen=True)
class Panchayath:
    name: str
    district: str = ""


@dataclass(frozen=True)
class Verification:
    """Post-approval verification stamp attached by an external step."""

    verified_by: str
    verified_at: datetime


@dataclass(frozen=True)
class Registration:
    """A single applicant registration and its decision metadata."""

    id: str
    customer_id: str
    name: str
    mobile_number: str
    address: str
    ward: str
    created_at: datetime
    status: RegistrationStatus = RegistrationStatus.PENDING
    fee_paid: Decimal = Decimal("0")
    updated_at: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    category: Optional[Category] = None
    panchayath: Optional[Panchayath] = None
    agent_pro: Optional[str] = None
    preference: Optional[str] = None
    verification: Optional[Verification] = None

    @property
    def is_pending(self) -> bool:
        return self.status is RegistrationStatus.PENDING

    def with_changes(self, **changes: Any) -> Registration:
        return replace(self, **changes)

    # ---- Wire format ----

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Registration:
        """Build a Registration from the snake_case JSON shape used by the HTTP backend.

        Related rows arrive nested: ``categories: {name}``,
        ``panchayaths: {name, district}`` and a ``registration_verifications``
        list of which only the first entry is used.
        """
        category = data.get("categories")
        panchayath = data.get("panchayaths")
        verifications = data.get("registration_verifications") or []
        if isinstance(verifications, dict):
            verifications = [verifications]
        verification = None
        if verifications and verifications[0].get("verified_at"):
            first = verifications[0]
            verification = Verification(
                verified_by=first.get("verified_by") or "",
                verified_at=_parse_timestamp(first["verified_at"]),
            )

        return cls(
            id=str(data["id"]),
            customer_id=data.get("customer_id") or "",
            name=data.get("name") or "",
            mobile_number=data.get("mobile_number") or "",
            address=data.get("address") or "",
            ward=data.get("ward") or "",
            created_at=_parse_timestamp(data.get("created_at")),
            status=RegistrationStatus(data.get("status", "pending")),
            fee_paid=Decimal(str(data.get("fee_paid") or 0)),
            updated_at=_parse_optional(data.get("updated_at")),
            approved_date=_parse_optional(data.get("approved_date")),
            approved_by=data.get("approved_by"),
            category=Category(category["name"]) if category else None,
            panchayath=(
                Panchayath(panchayath["name"], panchayath.get("district") or "")
                if panchayath else None
            ),
            agent_pro=data.get("agent_pro"),
            preference=data.get("preference"),
            verification=verification,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "name": self.name,
            "mobile_number": self.mobile_number,
            "address": self.address,
            "ward": self.ward,
            "status": self.status.value,
            "fee_paid": str(self.fee_paid),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "approved_date": self.approved_date.isoformat() if self.approved_date else None,
            "approved_by": self.approved_by,
            "agent_pro": self.agent_pro,
            "preference": self.preference,
            "categories": {"name": self.category.name} if self.category else None,
            "panchayaths": (
                {"name": self.panchayath.name, "district": self.panchayath.district}
                if self.panchayath else None
            ),
            "registration_verifications": (
                [{
                    "verified_by": self.verification.verified_by,
                    "verified_at": self.verification.verified_at.isoformat(),
                }]
                if self.verification else []
            ),
        }


# Patch keys a store is allowed to write through ``update``.
PATCHABLE_FIELDS = frozenset({"status", "updated_at", "approved_date", "approved_by"})


@dataclass(frozen=True)
class StatusPatch:
    """Field changes produced by a workflow transition."""

    status: RegistrationStatus
    approved_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    def as_fields(self) -> dict[str, Any]:
        """Return only the fields this transition sets."""
        fields: dict[str, Any] = {"status": self.status}
        if self.approved_date is not None:
            fields["approved_date"] = self.approved_date
        if self.approved_by is not None:
            fields["approved_by"] = self.approved_by
        if self.updated_at is not None:
            fields["updated_at"] = self.updated_at
        return fields

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, val in self.as_fields().items():
            if isinstance(val, RegistrationStatus):
                out[key] = val.value
            elif isinstance(val, datetime):
                out[key] = val.isoformat()
            else:
                out[key] = val
        return out


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        raise InvalidTimestamp("Registration is missing created_at.")
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise InvalidTimestamp(f"Malformed timestamp: {value!r}")


def _parse_optional(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return _parse_timestamp(value)
