"""
Registration store backed by a PostgREST-style HTTP API.

Hosted Postgres backends (Supabase and friends) expose tables over REST
with ``column=op.value`` filters, ``select=`` embedding of related rows, and
``Prefer: return=representation`` to get updated rows back. This client
speaks just enough of that dialect to serve as a RegistrationStore.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

import httpx

from regtrack.errors import ConflictError, RegistrationNotFound, StoreError
from regtrack.tracker.models import Registration, RegistrationStatus, StatusPatch


logger = logging.getLogger(__name__)


REGISTRATION_SELECT = (
    "id,customer_id,name,mobile_number,address,ward,agent_pro,status,fee_paid,"
    "created_at,updated_at,approved_date,approved_by,category_id,panchayath_id,"
    "preference,categories(name),panchayaths(name,district),"
    "registration_verifications(verified_by,verified_at)"
)
SEARCH_COLUMNS = ("name", "mobile_number", "customer_id")


@dataclass
class RestStoreConfig:
    """Connection settings for the REST backend."""

    base_url: str
    api_key: str = ""
    table: str = "registrations"
    timeout: float = 30.0


class RestRegistrationStore:
    """
    Client for a registrations table exposed over PostgREST.

    Usage:
        with RestRegistrationStore(RestStoreConfig(base_url=..., api_key=...)) as store:
            pending = store.list_pending()
            store.update(reg.id, patch, expected_status=RegistrationStatus.PENDING)
    """

    def __init__(
        self,
        config: RestStoreConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.config = config
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["apikey"] = config.api_key
            headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = httpx.Client(
            base_url=config.base_url.rstrip("/"),
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ---- Read ----

    def list_registrations(
        self,
        status: Optional[RegistrationStatus] = None,
        created_from: Optional[date] = None,
        created_to: Optional[date] = None,
        search: Optional[str] = None,
        newest_first: bool = False,
    ) -> list[Registration]:
        params: list[tuple[str, str]] = [
            ("select", REGISTRATION_SELECT),
            ("order", "created_at.desc" if newest_first else "created_at.asc"),
        ]
        if status:
            params.append(("status", f"eq.{status.value}"))
        if created_from:
            params.append(("created_at", f"gte.{created_from.isoformat()}"))
        if created_to:
            params.append(("created_at", f"lt.{(created_to + timedelta(days=1)).isoformat()}"))
        if search:
            params.append(("or", "(" + ",".join(
                f"{column}.ilike.*{search}*" for column in SEARCH_COLUMNS
            ) + ")"))
        rows = self._request("GET", params=params)
        return [Registration.from_dict(row) for row in rows]

    def list_pending(self) -> list[Registration]:
        return self.list_registrations(status=RegistrationStatus.PENDING)

    def list_verified(
        self,
        verified_from: Optional[date] = None,
        verified_to: Optional[date] = None,
    ) -> list[Registration]:
        """Approved registrations with a verification stamp inside the date range."""
        verified = []
        for reg in self.list_registrations(status=RegistrationStatus.APPROVED):
            if reg.verification is None:
                continue
            day = reg.verification.verified_at.date()
            if verified_from and day < verified_from:
                continue
            if verified_to and day > verified_to:
                continue
            verified.append(reg)
        return verified

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        rows = self._request(
            "GET",
            params=[("select", REGISTRATION_SELECT), ("id", f"eq.{registration_id}")],
        )
        return Registration.from_dict(rows[0]) if rows else None

    # ---- Update ----

    def update(
        self,
        registration_id: str,
        patch: StatusPatch,
        expected_status: Optional[RegistrationStatus] = None,
    ) -> Registration:
        params: list[tuple[str, str]] = [
            ("id", f"eq.{registration_id}"),
            ("select", REGISTRATION_SELECT),
        ]
        if expected_status is not None:
            params.append(("status", f"eq.{expected_status.value}"))

        rows = self._request(
            "PATCH",
            params=params,
            json=patch.to_json(),
            headers={"Prefer": "return=representation"},
        )
        if rows:
            return Registration.from_dict(rows[0])

        # Nothing matched: either the id is unknown or the status moved on.
        current = self.get_registration(registration_id)
        if current is None or expected_status is None:
            raise RegistrationNotFound(registration_id)
        raise ConflictError(registration_id, expected_status.value, current.status.value)

    # ---- Utility ----

    def _request(self, method: str, **kwargs: Any) -> list[dict[str, Any]]:
        path = f"/{self.config.table}"
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StoreError(
                f"{method} {path} failed with HTTP {exc.response.status_code}: "
                f"{exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc
        logger.debug("%s %s -> %s", method, path, resp.status_code)
        data = resp.json()
        return data if isinstance(data, list) else [data]
