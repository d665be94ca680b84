"""
Domain models for bookings, slots and billing.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pendulum import DateTime

from .exceptions import InvalidBooking

SECONDS_PER_HOUR = 3600

UNKNOWN_CLIENT = "Unknown Client"
UNKNOWN_PROJECT = "Unknown Project"


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_hours(self) -> float:
        """Return the duration in (fractional) hours."""
        return (self.end - self.start).total_seconds() / SECONDS_PER_HOUR

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another (end-exclusive)."""
        return self.start < other.end and self.end > other.start

    def format_hours(self) -> str:
        """Format as ``HH:mm – HH:mm``."""
        return f"{self.start.format('HH:mm')} – {self.end.format('HH:mm')}"

    def __str__(self) -> str:
        return f"{self.start.format('DD/MM/YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class Booking:
    """
    A reservation of studio time for a client and project.

    The duration is derived from start and end and never stored.
    """
    id: str
    start_time: DateTime
    end_time: DateTime
    client_id: str
    project_id: str

    def __post_init__(self):
        if self.end_time <= self.start_time:
            raise InvalidBooking(
                f"Booking {self.id!r} must end after it starts "
                f"({self.start_time} -> {self.end_time})"
            )

    @property
    def duration(self) -> float:
        """Duration in hours."""
        return self.time_range.duration_hours()

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_time, end=self.end_time)


class SlotStatus(str, Enum):
    BOOKED = "booked"
    BUFFER = "buffer"
    AVAILABLE = "available"


@dataclass(frozen=True)
class TimeSlot:
    """
    One hour-aligned cell of the availability grid.

    ``booking`` references the booking responsible for a BOOKED or BUFFER
    classification and is ``None`` for available slots.
    """
    time: DateTime
    status: SlotStatus
    booking: Optional[Booking] = None

    @property
    def end(self) -> DateTime:
        return self.time.add(hours=1)

    @property
    def is_booked(self) -> bool:
        return self.status is SlotStatus.BOOKED

    @property
    def is_buffer(self) -> bool:
        return self.status is SlotStatus.BUFFER

    @property
    def is_available(self) -> bool:
        return self.status is SlotStatus.AVAILABLE

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD/MM/YYYY | HH:mm – HH:mm (status)
        """
        weekday = self.time.format("dddd")
        date_str = self.time.format("DD/MM/YYYY")
        time_str = f"{self.time.format('HH:mm')} – {self.end.format('HH:mm')}"
        return f"{weekday}, {date_str} | {time_str} ({self.status.value})"


@dataclass
class DaySlots:
    """All classified slots of a single calendar day."""
    date: DateTime
    slots: List[TimeSlot]


class BillingType(str, Enum):
    PACKAGE = "package"
    CUSTOM = "custom"


class PackageTier(str, Enum):
    SINGLE = "Single"
    HOURS_10 = "10h"
    HOURS_20 = "20h"
    HOURS_40 = "40h"


@dataclass
class Client:
    """A billing entity."""
    id: str
    name: str
    phone: str = ""
    email: Optional[str] = None
    tax_id: Optional[str] = None
    whatsapp: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Project:
    """
    Billing contract for a client's body of work.

    Stored projects may carry inconsistent billing fields, so nothing is
    validated here; see ``billing_problem``.
    """
    id: str
    client_id: str
    name: str
    billing_type: BillingType
    package_tier: Optional[PackageTier] = None
    custom_rate: Optional[float] = None
    target_hours: Optional[float] = None
    created_at: Optional[DateTime] = None

    def billing_problem(self) -> Optional[str]:
        """Describe why the billing configuration is unusable, or return None."""
        if self.billing_type is BillingType.PACKAGE:
            if self.package_tier is None:
                return f"Project {self.name!r} is billed by package but has no package tier"
            if self.custom_rate is not None:
                return f"Project {self.name!r} is billed by package but also sets a custom rate"
            return None

        if self.billing_type is BillingType.CUSTOM:
            if self.custom_rate is None:
                return f"Project {self.name!r} has a custom billing type but no custom rate"
            if math.isnan(self.custom_rate) or self.custom_rate <= 0:
                return f"Project {self.name!r} has an invalid custom rate: {self.custom_rate!r}"
            if self.package_tier is not None:
                return f"Project {self.name!r} has a custom rate but also sets a package tier"
            return None

        return f"Project {self.name!r} has an unknown billing type: {self.billing_type!r}"


@dataclass(frozen=True)
class CostMetrics:
    total_hours: float
    price_per_hour: float
    total_amount: float


class ProgressStatus(str, Enum):
    NO_TARGET = "no_target"
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ProjectProgress:
    total_hours: float
    target_hours: Optional[float]
    percent: Optional[float]
    status: ProgressStatus


@dataclass(frozen=True)
class PersistedRef:
    """Reference to a client or project that already exists in the store."""
    id: str


@dataclass(frozen=True)
class PendingClient:
    """A client that is created when the reservation is saved."""
    name: str
    phone: str = ""
    email: Optional[str] = None
    tax_id: Optional[str] = None


@dataclass(frozen=True)
class PendingProject:
    """A project that will be created for the reservation's client."""
    name: str
    billing_type: BillingType
    package_tier: Optional[PackageTier] = None
    custom_rate: Optional[float] = None
    target_hours: Optional[float] = None


@dataclass
class Snapshot:
    """Everything the store holds, loaded and saved as one unit."""
    clients: List[Client] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    bookings: List[Booking] = field(default_factory=list)

    def find_client(self, client_id: str) -> Client | None:
        for client in self.clients:
            if client.id == client_id:
                return client
        return None

    def find_project(self, project_id: str) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def bookings_for_project(self, project_id: str) -> List[Booking]:
        return [b for b in self.bookings if b.project_id == project_id]

    def projects_for_client(self, client_id: str) -> List[Project]:
        return [p for p in self.projects if p.client_id == client_id]


def client_display_name(client: Client | None) -> str:
    return client.name if client is not None else UNKNOWN_CLIENT


def project_display_name(project: Project | None) -> str:
    return project.name if project is not None else UNKNOWN_PROJECT
