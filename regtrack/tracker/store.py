"""
Interface the engine expects from a registration store.

``TrackerDB`` (SQLAlchemy) and ``RestRegistrationStore`` (HTTP) both satisfy
it; tests may pass any object with the same two methods.
"""

from __future__ import annotations

from typing import Optional, Protocol

from regtrack.tracker.models import Registration, RegistrationStatus, StatusPatch


class RegistrationStore(Protocol):
    def list_pending(self) -> list[Registration]:
        """Pending registrations, oldest ``created_at`` first."""
        ...

    def update(
        self,
        registration_id: str,
        patch: StatusPatch,
        expected_status: Optional[RegistrationStatus] = None,
    ) -> Registration:
        """
        Apply ``patch`` and return the stored record.

        Raises StoreError (or a subclass) on failure. When ``expected_status``
        is given and the stored status differs, raises ConflictError and
        writes nothing.
        """
        ...
