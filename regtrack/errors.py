"""
Exception hierarchy for the registration tracker.

Library code raises these and leaves reporting to the caller (the CLI, or
whatever presentation layer embeds the package).
"""

from __future__ import annotations

from typing import Optional


class RegtrackError(Exception):
    """Base class for every error raised by regtrack."""


class InvalidTimestamp(RegtrackError, ValueError):
    """A creation timestamp is missing, malformed, or lies in the future."""


class InvalidTransition(RegtrackError):
    """An approval decision was applied to a record that is no longer pending."""

    def __init__(self, registration_id: str, current: str, target: str) -> None:
        self.registration_id = registration_id
        self.current = current
        self.target = target
        super().__init__(
            f"Registration {registration_id} is already {current}; "
            f"cannot move it to {target}."
        )


class StoreError(RegtrackError):
    """Opaque failure reported by a registration store."""


class RegistrationNotFound(StoreError):
    def __init__(self, registration_id: str) -> None:
        self.registration_id = registration_id
        super().__init__(f"Registration {registration_id} not found.")


class ConflictError(StoreError):
    """The stored status changed between read and write."""

    def __init__(
        self,
        registration_id: str,
        expected: str,
        actual: Optional[str] = None,
    ) -> None:
        self.registration_id = registration_id
        self.expected = expected
        self.actual = actual
        detail = f" (found {actual})" if actual else ""
        super().__init__(
            f"Registration {registration_id} is no longer {expected}{detail}."
        )


class EmptyExportError(RegtrackError):
    """A document export was requested for zero records."""
