"""
Snapshot stores: a JSON file on disk and an in-memory variant.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol

import pendulum
from pendulum import DateTime

from ..domain.exceptions import StoreError
from ..domain.models import (
    BillingType,
    Booking,
    Client,
    PackageTier,
    Project,
    Snapshot,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class BookingStore(Protocol):
    """Protocol describing the persistence the application service needs."""

    def load(self) -> Snapshot:
        """Return the current clients, projects and bookings."""

    def save(self, snapshot: Snapshot) -> None:
        """Replace the stored data with ``snapshot``."""


class InMemoryStore:
    """Keeps the snapshot in process memory (demo mode and tests)."""

    def __init__(self, snapshot: Snapshot | None = None):
        self._snapshot = copy.deepcopy(snapshot or Snapshot())
        self.save_count = 0

    def load(self) -> Snapshot:
        return copy.deepcopy(self._snapshot)

    def save(self, snapshot: Snapshot) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1


class JsonFileStore:
    """
    Stores the whole snapshot as one JSON document.

    The file is read on every ``load`` and rewritten on every ``save``.
    A missing file is an empty calendar.
    """

    def __init__(self, path: Path, timezone: str = "UTC"):
        """
        Initialize the store.

        Args:
            path: Location of the JSON document
            timezone: IANA timezone that loaded instants are converted to
        """
        self.path = path
        self.timezone = timezone

    def load(self) -> Snapshot:
        if not self.path.exists():
            logger.info("No data file at %s, starting with an empty calendar", self.path)
            return Snapshot()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise StoreError(f"Invalid JSON in {self.path}: {exc}") from exc
        except OSError as exc:
            raise StoreError(f"Could not read {self.path}: {exc}") from exc

        snapshot = snapshot_from_dict(data, timezone=self.timezone)
        logger.debug(
            "Loaded %d client(s), %d project(s), %d booking(s) from %s",
            len(snapshot.clients),
            len(snapshot.projects),
            len(snapshot.bookings),
            self.path,
        )
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot_to_dict(snapshot), f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)
        logger.info("Saved %d booking(s) to %s", len(snapshot.bookings), self.path)


def _format_instant(value: DateTime | None) -> str | None:
    return value.to_iso8601_string() if value is not None else None


def _parse_instant(value: str, timezone: str) -> DateTime:
    parsed = pendulum.parse(value, tz=timezone)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Expected a date and time, got {value!r}")
    return parsed.in_timezone(timezone)


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    """Serialize a snapshot into JSON-compatible primitives."""
    return {
        "version": FORMAT_VERSION,
        "clients": [
            {
                "id": c.id,
                "name": c.name,
                "phone": c.phone,
                "email": c.email,
                "taxId": c.tax_id,
                "whatsapp": c.whatsapp,
                "notes": c.notes,
            }
            for c in snapshot.clients
        ],
        "projects": [
            {
                "id": p.id,
                "clientId": p.client_id,
                "name": p.name,
                "billingType": p.billing_type.value,
                "packageTier": p.package_tier.value if p.package_tier else None,
                "customRate": p.custom_rate,
                "targetHours": p.target_hours,
                "createdAt": _format_instant(p.created_at),
            }
            for p in snapshot.projects
        ],
        "bookings": [
            {
                "id": b.id,
                "clientId": b.client_id,
                "projectId": b.project_id,
                "startTime": _format_instant(b.start_time),
                "endTime": _format_instant(b.end_time),
                # Informational only, always recomputed on load
                "duration": b.duration,
            }
            for b in snapshot.bookings
        ],
    }


def _section(data: Dict[str, Any], key: str) -> List[Any]:
    if key not in data:
        return []
    records = data[key]
    if not isinstance(records, list):
        raise StoreError(f"{key!r} must be a list, got {type(records).__name__}")
    return records


def snapshot_from_dict(data: Dict[str, Any], timezone: str) -> Snapshot:
    """
    Rebuild a snapshot from ``snapshot_to_dict`` output.

    Raises:
        StoreError: If a record is missing fields or holds invalid values
    """
    if not isinstance(data, dict):
        raise StoreError("Stored data must be a JSON object")

    snapshot = Snapshot()

    for raw in _section(data, "clients"):
        try:
            snapshot.clients.append(Client(
                id=raw["id"],
                name=raw["name"],
                phone=raw.get("phone") or "",
                email=raw.get("email"),
                tax_id=raw.get("taxId"),
                whatsapp=raw.get("whatsapp"),
                notes=raw.get("notes"),
            ))
        except (AttributeError, KeyError, TypeError) as exc:
            raise StoreError(f"Invalid client record {raw!r}: {exc}") from exc

    for raw in _section(data, "projects"):
        try:
            tier = raw.get("packageTier")
            created_at = raw.get("createdAt")
            snapshot.projects.append(Project(
                id=raw["id"],
                client_id=raw["clientId"],
                name=raw["name"],
                billing_type=BillingType(raw["billingType"]),
                package_tier=PackageTier(tier) if tier else None,
                custom_rate=raw.get("customRate"),
                target_hours=raw.get("targetHours"),
                created_at=_parse_instant(created_at, timezone) if created_at else None,
            ))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Invalid project record {raw!r}: {exc}") from exc

    for raw in _section(data, "bookings"):
        try:
            snapshot.bookings.append(Booking(
                id=raw["id"],
                start_time=_parse_instant(raw["startTime"], timezone),
                end_time=_parse_instant(raw["endTime"], timezone),
                client_id=raw["clientId"],
                project_id=raw["projectId"],
            ))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Invalid booking record {raw!r}: {exc}") from exc

    return snapshot
