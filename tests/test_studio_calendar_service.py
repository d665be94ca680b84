"""
Tests for the StudioCalendarService orchestration layer.
"""

import pendulum
import pytest

from studiobook.adapters.json_store import InMemoryStore
from studiobook.adapters.text_suggester import ShareContext
from studiobook.domain.availability import AvailabilityCalculator, StudioHours
from studiobook.domain.cost_calculator import CostCalculator, PricingMode
from studiobook.domain.exceptions import (
    BillingConfigError,
    EntityNotFoundError,
    SlotUnavailableError,
)
from studiobook.domain.models import (
    BillingType,
    Booking,
    Client,
    PackageTier,
    PendingClient,
    PendingProject,
    PersistedRef,
    ProgressStatus,
    Project,
    SlotStatus,
    Snapshot,
)
from studiobook.services.studio_calendar import StudioCalendarService

TZ = "America/Sao_Paulo"


def at(text: str):
    return pendulum.parse(text, tz=TZ)


class StubSuggester:
    """Minimal stub matching the TextSuggester protocol."""

    def __init__(self):
        self.contexts = []

    def suggest(self, context):
        self.contexts.append(context)
        return f"Book {context.studio_name}"


def _snapshot() -> Snapshot:
    return Snapshot(
        clients=[
            Client(id="client_001", name="Estúdio Som & Arte"),
            Client(id="client_internal_000", name="Studio Internal"),
        ],
        projects=[
            Project(
                id="project_001", client_id="client_001", name="Album",
                billing_type=BillingType.PACKAGE, package_tier=PackageTier.HOURS_40,
                target_hours=40,
            ),
            Project(
                id="project_broken", client_id="client_001", name="Broken",
                billing_type=BillingType.CUSTOM,
            ),
        ],
        bookings=[
            Booking(
                id="b1",
                start_time=at("2024-11-25 10:00"),
                end_time=at("2024-11-25 11:00"),
                client_id="client_001",
                project_id="project_001",
            ),
        ],
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(_snapshot())


@pytest.fixture
def suggester() -> StubSuggester:
    return StubSuggester()


@pytest.fixture
def service(store, suggester) -> StudioCalendarService:
    return StudioCalendarService(
        store=store,
        availability=AvailabilityCalculator(StudioHours(timezone=TZ)),
        costs=CostCalculator(),
        suggester=suggester,
        clock=lambda: at("2024-11-20 12:00"),
    )


class TestWeekGrid:

    def test_grid_reflects_stored_bookings(self, service):
        grid = service.week_grid(at("2024-11-27 00:00"))

        monday = {slot.time.hour: slot.status for slot in grid[0].slots}
        assert monday[10] is SlotStatus.BOOKED
        assert monday[9] is SlotStatus.BUFFER
        assert monday[13] is SlotStatus.AVAILABLE

    def test_free_slots(self, service):
        free = service.free_slots(at("2024-11-27 00:00"))

        assert len(free) == 60 - 4  # 09, 10, 11, 12 on Monday
        assert at("2024-11-25 13:00") in free
        assert at("2024-11-25 12:00") not in free


class TestReserve:

    def test_reserve_for_existing_client_and_project(self, service, store):
        bookings = service.reserve(
            [at("2024-11-26 14:00"), at("2024-11-26 15:00")],
            PersistedRef("client_001"),
            PersistedRef("project_001"),
        )

        assert [b.start_time.hour for b in bookings] == [14, 15]
        assert all(b.duration == 1 for b in bookings)
        assert store.save_count == 1
        assert len(store.load().bookings) == 3

    def test_reserve_creates_pending_client_and_project(self, service, store):
        bookings = service.reserve(
            [at("2024-11-27 09:00")],
            PendingClient(name="Ana Lima", phone="+55 11 90000-0000"),
            PendingProject(name="Podcast", billing_type=BillingType.CUSTOM, custom_rate=300.0),
        )

        snapshot = store.load()
        client = snapshot.find_client(bookings[0].client_id)
        project = snapshot.find_project(bookings[0].project_id)

        assert client.name == "Ana Lima"
        assert project.client_id == client.id
        assert project.created_at == at("2024-11-20 12:00")
        assert service.project_cost(project.id).total_amount == 300.0

    def test_booked_slot_is_rejected(self, service, store):
        with pytest.raises(SlotUnavailableError, match="booked"):
            service.reserve([at("2024-11-25 10:00")], PersistedRef("client_001"), PersistedRef("project_001"))

        assert store.save_count == 0

    def test_buffer_slot_is_rejected(self, service):
        with pytest.raises(SlotUnavailableError, match="buffer"):
            service.reserve([at("2024-11-25 11:00")], PersistedRef("client_001"), PersistedRef("project_001"))

    def test_separate_sessions_in_one_request_keep_the_buffer(self, service, store):
        with pytest.raises(SlotUnavailableError, match="buffer"):
            service.reserve(
                [at("2024-11-26 10:00"), at("2024-11-26 12:00")],
                PersistedRef("client_001"),
                PersistedRef("project_001"),
            )

        assert store.save_count == 0

    def test_separate_sessions_far_enough_apart(self, service):
        bookings = service.reserve(
            [at("2024-11-26 17:00"), at("2024-11-26 10:00"), at("2024-11-26 11:00"), at("2024-11-26 14:00")],
            PersistedRef("client_001"),
            PersistedRef("project_001"),
        )

        assert [b.start_time.hour for b in bookings] == [10, 11, 14, 17]

    def test_slot_given_in_another_timezone(self, service, store):
        """13:00 UTC is 10:00 in the studio."""
        bookings = service.reserve(
            [pendulum.datetime(2024, 11, 26, 13, tz="UTC")],
            PersistedRef("client_001"),
            PersistedRef("project_001"),
        )

        assert bookings[0].start_time == at("2024-11-26 10:00")

    def test_one_bad_slot_rejects_the_whole_reservation(self, service, store):
        with pytest.raises(SlotUnavailableError):
            service.reserve(
                [at("2024-11-26 09:00"), at("2024-11-25 09:00")],
                PersistedRef("client_001"),
                PersistedRef("project_001"),
            )

        assert len(store.load().bookings) == 1

    @pytest.mark.parametrize(
        "slot",
        [
            "2024-12-01 10:00",  # Sunday
            "2024-11-26 08:00",  # before opening
            "2024-11-26 19:00",  # after the last slot
            "2024-11-26 10:30",  # not on the hour
        ],
    )
    def test_slots_outside_the_grid_are_rejected(self, service, slot):
        with pytest.raises(SlotUnavailableError):
            service.reserve([at(slot)], PersistedRef("client_001"), PersistedRef("project_001"))

    def test_duplicate_slot_is_rejected(self, service):
        with pytest.raises(SlotUnavailableError, match="twice"):
            service.reserve(
                [at("2024-11-26 14:00"), at("2024-11-26 14:00")],
                PersistedRef("client_001"),
                PersistedRef("project_001"),
            )

    def test_no_slots(self, service):
        with pytest.raises(SlotUnavailableError):
            service.reserve([], PersistedRef("client_001"), PersistedRef("project_001"))

    def test_unknown_client(self, service):
        with pytest.raises(EntityNotFoundError):
            service.reserve([at("2024-11-26 14:00")], PersistedRef("nobody"), PersistedRef("project_001"))

    def test_project_of_another_client(self, service):
        with pytest.raises(EntityNotFoundError):
            service.reserve(
                [at("2024-11-26 14:00")],
                PersistedRef("client_internal_000"),
                PersistedRef("project_001"),
            )

    def test_pending_project_with_inconsistent_billing(self, service, store):
        with pytest.raises(BillingConfigError):
            service.reserve(
                [at("2024-11-26 14:00")],
                PersistedRef("client_001"),
                PendingProject(name="No tier", billing_type=BillingType.PACKAGE),
            )

        assert store.save_count == 0


class TestBilling:

    def test_project_cost(self, service):
        metrics = service.project_cost("project_001")

        assert metrics.total_hours == 1
        assert metrics.price_per_hour == 160

    def test_project_cost_with_broken_billing(self, service):
        with pytest.raises(BillingConfigError):
            service.project_cost("project_broken")

    def test_unknown_project(self, service):
        with pytest.raises(EntityNotFoundError):
            service.project_cost("missing")

    def test_project_progress(self, service):
        result = service.project_progress("project_001")

        assert result.status is ProgressStatus.IN_PROGRESS
        assert result.percent == 2.5

    def test_receipt(self, service):
        text = service.project_receipt("project_001")

        assert "Receipt - Estúdio Som & Arte" in text
        assert "25/11/2024: 10:00 – 11:00" in text

    def test_monthly_recipe_modes(self, service):
        tiered = service.monthly_recipe(at("2024-11-01 00:00"))
        by_project = service.monthly_recipe(at("2024-11-01 00:00"), mode=PricingMode.PROJECT_RATE)

        assert tiered["Estúdio Som & Arte"].price_per_hour == 350
        assert by_project["Estúdio Som & Arte"].price_per_hour == 160


class TestDirectory:

    def test_internal_client_is_hidden(self, service):
        assert [c.id for c in service.list_clients()] == ["client_001"]

    def test_list_projects_for_client(self, service):
        assert {p.id for p in service.list_projects("client_001")} == {"project_001", "project_broken"}
        assert service.list_projects("client_internal_000") == []

    def test_share_message_uses_injected_suggester(self, service, suggester):
        context = ShareContext(studio_name="SessionSnap", calendar_link="https://example.com")

        assert service.share_message(context) == "Book SessionSnap"
        assert suggester.contexts == [context]
