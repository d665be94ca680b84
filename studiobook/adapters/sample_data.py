"""
Demo calendar data for trying the application without a data file.

Bookings are placed relative to the week of the reference date so the
grid always has something to show.
"""

import pendulum
from pendulum import DateTime

from ..domain.models import (
    BillingType,
    Booking,
    Client,
    PackageTier,
    Project,
    Snapshot,
)

INTERNAL_CLIENT_ID = "client_internal_000"
GENERAL_PROJECT_ID = "project_general_calendar"


def sample_snapshot(reference: DateTime) -> Snapshot:
    """
    Build a snapshot with four clients, six projects and a week of bookings.

    Args:
        reference: Any instant in the week the bookings should land in

    Returns:
        Snapshot ready to hand to a store
    """
    monday = reference.start_of("week")
    tz = reference.tz

    def at(day_offset: int, hour: int) -> DateTime:
        return monday.add(days=day_offset).set(hour=hour)

    clients = [
        Client(id="client_001", name="Estúdio Som & Arte", phone="+55 11 98888-1111"),
        Client(id="client_002", name="Rádio Onda Sonora", phone="+55 21 97777-2222"),
        Client(id="client_003", name="Produtora Visão Digital", phone="+55 31 96666-3333"),
        Client(id=INTERNAL_CLIENT_ID, name="Studio Internal", phone="+55 00 00000-0000"),
    ]

    projects = [
        Project(
            id=GENERAL_PROJECT_ID,
            client_id=INTERNAL_CLIENT_ID,
            name="General Calendar Bookings",
            billing_type=BillingType.PACKAGE,
            package_tier=PackageTier.SINGLE,
            created_at=pendulum.datetime(2023, 1, 1, tz=tz),
        ),
        Project(
            id="project_alpha_001",
            client_id="client_001",
            name='Album recording "Harmonias Urbanas"',
            billing_type=BillingType.PACKAGE,
            package_tier=PackageTier.HOURS_40,
            target_hours=40,
            created_at=pendulum.datetime(2023, 9, 10, 10, tz=tz),
        ),
        Project(
            id="project_beta_002",
            client_id="client_002",
            name="Radio spots",
            billing_type=BillingType.CUSTOM,
            custom_rate=380.0,
            target_hours=8,
            created_at=pendulum.datetime(2023, 9, 25, 11, 30, tz=tz),
        ),
        Project(
            id="project_gamma_003",
            client_id="client_001",
            name='EP mixing "Noite Adentro"',
            billing_type=BillingType.PACKAGE,
            package_tier=PackageTier.HOURS_20,
            target_hours=20,
            created_at=pendulum.datetime(2023, 11, 5, 9, tz=tz),
        ),
        Project(
            id="project_delta_004",
            client_id="client_003",
            name='Documentary score "Amazônia Viva"',
            billing_type=BillingType.CUSTOM,
            custom_rate=300.0,
            target_hours=15,
            created_at=pendulum.datetime(2024, 1, 15, 14, tz=tz),
        ),
        Project(
            id="project_epsilon_005",
            client_id="client_002",
            name="Institutional jingles",
            billing_type=BillingType.PACKAGE,
            package_tier=PackageTier.HOURS_10,
            target_hours=10,
            created_at=pendulum.datetime(2024, 2, 1, 16, tz=tz),
        ),
    ]

    bookings = [
        Booking(id="booking_sg001", start_time=at(0, 10), end_time=at(0, 11),
                client_id="client_001", project_id="project_alpha_001"),
        Booking(id="booking_rs001", start_time=at(1, 14), end_time=at(1, 16),
                client_id="client_002", project_id="project_beta_002"),
        Booking(id="booking_lv001", start_time=at(2, 9), end_time=at(2, 13),
                client_id="client_002", project_id="project_epsilon_005"),
        # contiguous with the previous session, merged on receipts
        Booking(id="booking_lv002", start_time=at(2, 13), end_time=at(2, 15),
                client_id="client_002", project_id="project_epsilon_005"),
        Booking(id="booking_td001", start_time=at(3, 9), end_time=at(3, 11),
                client_id="client_003", project_id="project_delta_004"),
        Booking(id="booking_mx001", start_time=at(3, 17), end_time=at(3, 18),
                client_id="client_001", project_id="project_gamma_003"),
        Booking(id="booking_cal001", start_time=at(5, 10), end_time=at(5, 11),
                client_id=INTERNAL_CLIENT_ID, project_id=GENERAL_PROJECT_ID),
    ]

    return Snapshot(clients=clients, projects=projects, bookings=bookings)
