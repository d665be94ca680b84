"""
Application service for the studio calendar.

The service loads a snapshot from the injected store, hands plain data to
the availability and cost engines, and writes new reservations back. The
engines never see the store, and pending client/project references are
turned into persisted ids here before any booking is created.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Callable, Dict, List, Sequence

import pendulum
from pendulum import DateTime

from ..adapters.json_store import BookingStore
from ..adapters.text_suggester import ShareContext, TextSuggester
from ..domain.availability import SLOT_HOURS, AvailabilityCalculator
from ..domain.cost_calculator import CostCalculator, PricingMode, merge_contiguous_sessions
from ..domain.exceptions import BillingConfigError, EntityNotFoundError, SlotUnavailableError
from ..domain.models import (
    Booking,
    Client,
    CostMetrics,
    DaySlots,
    PendingClient,
    PendingProject,
    PersistedRef,
    Project,
    ProjectProgress,
    Snapshot,
    TimeRange,
)

logger = logging.getLogger(__name__)

ClientRef = PersistedRef | PendingClient
ProjectRef = PersistedRef | PendingProject


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class StudioCalendarService:
    """
    Orchestrates storage, availability and billing.

    The store and the text suggester are typed by protocol; the CLI passes
    the JSON file store or, in demo mode, the in-memory store.
    """

    def __init__(
        self,
        store: BookingStore,
        availability: AvailabilityCalculator,
        costs: CostCalculator,
        suggester: TextSuggester,
        internal_client_id: str = "client_internal_000",
        currency: str = "R$",
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._store = store
        self._availability = availability
        self._costs = costs
        self._suggester = suggester
        self._internal_client_id = internal_client_id
        self._currency = currency
        self._clock = clock

    def week_grid(self, reference: DateTime) -> List[DaySlots]:
        """Classified slots for the week containing ``reference``."""
        snapshot = self._store.load()
        dates = self._availability.week_dates(reference)
        return self._availability.grid_for(dates, snapshot.bookings)

    def free_slots(self, reference: DateTime) -> List[DateTime]:
        """Bookable slot starts in the week containing ``reference``."""
        snapshot = self._store.load()
        dates = self._availability.week_dates(reference)
        return self._availability.available_slots(dates, snapshot.bookings)

    def reserve(
        self,
        slot_starts: Sequence[DateTime],
        client: ClientRef,
        project: ProjectRef,
    ) -> List[Booking]:
        """
        Book one 1-hour session per slot for a client and project.

        Every slot is checked against the stored bookings and against the
        other sessions of the request before anything is written, so either
        all slots are booked or none. Adjacent slots form one session.

        Raises:
            SlotUnavailableError: If a slot is outside opening hours, repeated,
                or not AVAILABLE
            EntityNotFoundError: If a persisted client or project does not exist
        """
        if not slot_starts:
            raise SlotUnavailableError("No slots selected.")

        snapshot = self._store.load()

        seen: set[DateTime] = set()
        for slot_start in slot_starts:
            if slot_start in seen:
                raise SlotUnavailableError(f"Slot {slot_start.format('DD/MM/YYYY HH:mm')} selected twice.")
            seen.add(slot_start)
            self._check_bookable(slot_start, snapshot.bookings)
        self._check_request_spacing(slot_starts)

        client_id = self._resolve_client(snapshot, client)
        project_id = self._resolve_project(snapshot, project, client_id)

        new_bookings = [
            Booking(
                id=_new_id("booking"),
                start_time=slot_start,
                end_time=slot_start.add(hours=SLOT_HOURS),
                client_id=client_id,
                project_id=project_id,
            )
            for slot_start in sorted(slot_starts)
        ]
        snapshot.bookings.extend(new_bookings)
        self._store.save(snapshot)

        logger.info(
            "Reserved %d slot(s) for client %s, project %s",
            len(new_bookings), client_id, project_id,
        )
        return new_bookings

    def project_cost(self, project_id: str) -> CostMetrics:
        """
        Raises:
            EntityNotFoundError: Unknown project id
            BillingConfigError: Inconsistent billing configuration
        """
        snapshot = self._store.load()
        project = self._require_project(snapshot, project_id)
        return self._costs.project_cost(snapshot.bookings_for_project(project_id), project)

    def project_progress(self, project_id: str) -> ProjectProgress:
        snapshot = self._store.load()
        project = self._require_project(snapshot, project_id)
        return self._costs.project_progress(snapshot.bookings_for_project(project_id), project)

    def project_receipt(self, project_id: str) -> str:
        """Receipt text for all of a project's sessions."""
        snapshot = self._store.load()
        project = self._require_project(snapshot, project_id)
        return self._costs.receipt_text(
            snapshot.find_client(project.client_id),
            project,
            snapshot.bookings_for_project(project_id),
            currency=self._currency,
        )

    def monthly_recipe(
        self,
        month: DateTime,
        mode: PricingMode = PricingMode.AGGREGATE_TIER,
    ) -> Dict[str, CostMetrics]:
        snapshot = self._store.load()
        return self._costs.client_monthly_metrics(
            snapshot.bookings,
            month,
            snapshot.clients,
            mode=mode,
            projects=snapshot.projects,
        )

    def list_clients(self) -> List[Client]:
        """Clients for management listings, without the internal client."""
        snapshot = self._store.load()
        return [c for c in snapshot.clients if c.id != self._internal_client_id]

    def list_projects(self, client_id: str | None = None) -> List[Project]:
        snapshot = self._store.load()
        if client_id is None:
            return list(snapshot.projects)
        return snapshot.projects_for_client(client_id)

    def share_message(self, context: ShareContext) -> str:
        return self._suggester.suggest(context)

    def _check_bookable(self, slot_start: DateTime, bookings: Sequence[Booking]) -> None:
        label = slot_start.format("DD/MM/YYYY HH:mm")
        hours = self._availability.studio_hours

        if not hours.is_open(slot_start):
            raise SlotUnavailableError(f"The studio is closed on {slot_start.format('dddd')} ({label}).")

        day_start = self._availability.to_studio_time(slot_start).start_of("day")
        if slot_start not in self._availability.day_slots(day_start):
            raise SlotUnavailableError(
                f"{label} is not a slot start; slots begin on the hour "
                f"between {hours.start_hour}:00 and {hours.end_hour - 1}:00."
            )

        slot = self._availability.classify(slot_start, bookings)
        if not slot.is_available:
            raise SlotUnavailableError(
                f"Slot {label} is {slot.status.value} (booking {slot.booking.id})."
            )

    def _check_request_spacing(self, slot_starts: Sequence[DateTime]) -> None:
        """
        Keep the buffer between separate sessions of one request.

        Adjacent slots form one continuous session. Each slot must still be
        AVAILABLE against every other session of the same request.
        """
        sessions = merge_contiguous_sessions(
            [TimeRange(start=s, end=s.add(hours=SLOT_HOURS)) for s in slot_starts],
            tolerance=timedelta(0),
        )
        if len(sessions) < 2:
            return

        requested = [
            Booking(
                id=f"requested {session}",
                start_time=session.start,
                end_time=session.end,
                client_id="",
                project_id="",
            )
            for session in sessions
        ]
        for index, session in enumerate(sessions):
            others = requested[:index] + requested[index + 1:]
            slot_start = session.start
            while slot_start < session.end:
                slot = self._availability.classify(slot_start, others)
                if not slot.is_available:
                    raise SlotUnavailableError(
                        f"Slot {slot_start.format('DD/MM/YYYY HH:mm')} falls in the "
                        f"{slot.status.value} margin of {slot.booking.id} in the same request."
                    )
                slot_start = slot_start.add(hours=SLOT_HOURS)

    def _resolve_client(self, snapshot: Snapshot, ref: ClientRef) -> str:
        if isinstance(ref, PersistedRef):
            if snapshot.find_client(ref.id) is None:
                raise EntityNotFoundError(f"Unknown client id: {ref.id}")
            return ref.id

        client = Client(
            id=_new_id("client"),
            name=ref.name,
            phone=ref.phone,
            email=ref.email,
            tax_id=ref.tax_id,
        )
        snapshot.clients.append(client)
        logger.info("Created client %s (%s)", client.id, client.name)
        return client.id

    def _resolve_project(self, snapshot: Snapshot, ref: ProjectRef, client_id: str) -> str:
        if isinstance(ref, PersistedRef):
            project = self._require_project(snapshot, ref.id)
            if project.client_id != client_id:
                raise EntityNotFoundError(
                    f"Project {ref.id} does not belong to client {client_id}"
                )
            return project.id

        project = Project(
            id=_new_id("project"),
            client_id=client_id,
            name=ref.name,
            billing_type=ref.billing_type,
            package_tier=ref.package_tier,
            custom_rate=ref.custom_rate,
            target_hours=ref.target_hours,
            created_at=self._clock(),
        )
        problem = project.billing_problem()
        if problem:
            raise BillingConfigError(problem)
        snapshot.projects.append(project)
        logger.info("Created project %s (%s) for client %s", project.id, project.name, client_id)
        return project.id

    @staticmethod
    def _require_project(snapshot: Snapshot, project_id: str) -> Project:
        project = snapshot.find_project(project_id)
        if project is None:
            raise EntityNotFoundError(f"Unknown project id: {project_id}")
        return project
