"""
Billing logic: project costs, monthly client summaries and receipts.

Like the availability engine this module is pure: it works on the bookings,
projects and clients handed to it and never touches the store.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pendulum import Date, DateTime

from .exceptions import BillingConfigError
from .models import (
    BillingType,
    Booking,
    Client,
    CostMetrics,
    PackageTier,
    ProgressStatus,
    Project,
    ProjectProgress,
    TimeRange,
    client_display_name,
    project_display_name,
)

logger = logging.getLogger(__name__)

# Hour totals are rounded before tier lookups so float drift cannot move a
# client across a threshold.
HOURS_PRECISION = 6

DEFAULT_PACKAGE_RATES: Dict[PackageTier, float] = {
    PackageTier.SINGLE: 350.0,
    PackageTier.HOURS_10: 260.0,
    PackageTier.HOURS_20: 230.0,
    PackageTier.HOURS_40: 160.0,
}

# (minimum monthly hours, price per hour), highest threshold first
DEFAULT_MONTHLY_TIERS: List[Tuple[float, float]] = [
    (40.0, 160.0),
    (20.0, 230.0),
    (10.0, 260.0),
    (0.0, 350.0),
]

DEFAULT_MERGE_TOLERANCE = timedelta(minutes=1)


class PricingMode(str, Enum):
    """How the monthly recipe prices a client's hours."""
    AGGREGATE_TIER = "tiered"
    PROJECT_RATE = "project-rate"


@dataclass
class PricingRules:
    package_rates: Dict[PackageTier, float] = field(
        default_factory=lambda: dict(DEFAULT_PACKAGE_RATES)
    )
    monthly_tiers: List[Tuple[float, float]] = field(
        default_factory=lambda: list(DEFAULT_MONTHLY_TIERS)
    )


def total_hours(bookings: Iterable[Booking]) -> float:
    """Sum of booking durations, in hours."""
    return round(sum(b.duration for b in bookings), HOURS_PRECISION)


def merge_contiguous_sessions(
    bookings: Iterable[Booking | TimeRange],
    tolerance: timedelta = DEFAULT_MERGE_TOLERANCE
) -> List[TimeRange]:
    """
    Merge back-to-back bookings into continuous session ranges.

    A range is merged into the previous one when it starts no later than
    ``tolerance`` after the previous range ends. Accepts bookings or
    ranges, so merging an already merged list returns it unchanged.

    Example: [09:00-10:00, 10:00-11:00, 14:00-15:00] -> [09:00-11:00, 14:00-15:00]
    """
    ranges = [
        item.time_range if isinstance(item, Booking) else item
        for item in bookings
    ]
    if not ranges:
        return []

    sorted_ranges = sorted(ranges, key=lambda r: r.start)
    merged: List[TimeRange] = [sorted_ranges[0]]

    for current in sorted_ranges[1:]:
        last = merged[-1]

        if current.start <= last.end + tolerance:
            merged[-1] = TimeRange(
                start=last.start,
                end=max(last.end, current.end)
            )
        else:
            merged.append(current)

    return merged


def sessions_by_day(ranges: Iterable[TimeRange]) -> Dict[Date, List[TimeRange]]:
    """Group ranges by the calendar day they start on, days in order."""
    grouped: Dict[Date, List[TimeRange]] = defaultdict(list)
    for time_range in sorted(ranges, key=lambda r: r.start):
        grouped[time_range.start.date()].append(time_range)
    return dict(grouped)


def format_day_sessions(ranges: Iterable[TimeRange]) -> str:
    """Render ranges as ``HH:mm – HH:mm`` joined by commas."""
    return ", ".join(r.format_hours() for r in ranges)


def format_money(amount: float, currency: str) -> str:
    return f"{currency} {amount:,.2f}"


class CostCalculator:
    """
    Turns bookings into billable metrics.

    Two pricing regimes exist side by side:
    - project scoped: the owning project's custom rate or package tier
    - client month: one volume tier applied to the client's monthly total
    """

    def __init__(self, rules: PricingRules | None = None):
        self.rules = rules or PricingRules()
        self._tiers = sorted(self.rules.monthly_tiers, key=lambda tier: tier[0], reverse=True)

    def price_per_hour(self, project: Project) -> float:
        """
        Hourly rate of a project.

        Raises:
            BillingConfigError: If the billing fields do not match the billing type
        """
        problem = project.billing_problem()
        if problem:
            raise BillingConfigError(problem)

        if project.billing_type is BillingType.CUSTOM:
            return float(project.custom_rate)

        try:
            return self.rules.package_rates[project.package_tier]
        except KeyError:
            raise BillingConfigError(
                f"No rate configured for package tier {project.package_tier.value!r}"
            ) from None

    def project_cost(self, bookings: Sequence[Booking], project: Project) -> CostMetrics:
        """
        Compute hours, rate and amount for a project's bookings.

        Raises:
            BillingConfigError: If the project's billing configuration is inconsistent
        """
        rate = self.price_per_hour(project)
        hours = total_hours(bookings)
        return CostMetrics(
            total_hours=hours,
            price_per_hour=rate,
            total_amount=hours * rate
        )

    def project_progress(self, bookings: Sequence[Booking], project: Project) -> ProjectProgress:
        """Completion of a project against its optional target hours."""
        hours = total_hours(bookings)
        target = project.target_hours

        if not target or target <= 0:
            return ProjectProgress(
                total_hours=hours,
                target_hours=None,
                percent=None,
                status=ProgressStatus.NO_TARGET
            )

        percent = round(hours / target * 100, 2)
        if hours <= 0:
            status = ProgressStatus.NOT_STARTED
        elif hours >= target:
            status = ProgressStatus.COMPLETED
        else:
            status = ProgressStatus.IN_PROGRESS

        return ProjectProgress(
            total_hours=hours,
            target_hours=target,
            percent=percent,
            status=status
        )

    def tier_rate(self, hours: float) -> float:
        """Price per hour for a monthly total, inclusive at each threshold."""
        hours = round(hours, HOURS_PRECISION)
        for min_hours, rate in self._tiers:
            if hours >= min_hours:
                return rate
        # Below every configured floor
        return self._tiers[-1][1]

    def client_monthly_metrics(
        self,
        bookings: Sequence[Booking],
        month: DateTime,
        clients: Iterable[Client],
        mode: PricingMode = PricingMode.AGGREGATE_TIER,
        projects: Optional[Iterable[Project]] = None
    ) -> Dict[str, CostMetrics]:
        """
        Summarise each client's hours and amount for the month of ``month``.

        Args:
            bookings: All known bookings; only those starting in the month count
            month: Any instant in the target month (its timezone decides the month)
            clients: Client directory for display names
            mode: AGGREGATE_TIER prices the monthly total with the volume tiers,
                PROJECT_RATE prices every booking with its project's rate
            projects: Project directory, required for PROJECT_RATE

        Returns:
            Mapping of client display name to metrics
        """
        if mode is PricingMode.PROJECT_RATE:
            if projects is None:
                raise ValueError("Project-rate pricing needs the project directory")
            return self.monthly_recipe_by_project_rate(bookings, month, clients, projects)
        return self.monthly_recipe_tiered(bookings, month, clients)

    def monthly_recipe_tiered(
        self,
        bookings: Sequence[Booking],
        month: DateTime,
        clients: Iterable[Client]
    ) -> Dict[str, CostMetrics]:
        """Monthly recipe priced with one volume tier per client."""
        by_client: Dict[str, CostMetrics] = {}

        for client_id, client_bookings in self._group_month_by_client(bookings, month).items():
            hours = total_hours(client_bookings)
            rate = self.tier_rate(hours)
            by_client[client_id] = CostMetrics(
                total_hours=hours,
                price_per_hour=rate,
                total_amount=hours * rate
            )

        return self._label_by_client_name(by_client, clients)

    def monthly_recipe_by_project_rate(
        self,
        bookings: Sequence[Booking],
        month: DateTime,
        clients: Iterable[Client],
        projects: Iterable[Project]
    ) -> Dict[str, CostMetrics]:
        """
        Monthly recipe summing per-booking amounts priced by each project.

        The reported rate is the effective average, amount divided by hours.

        Raises:
            BillingConfigError: If a booking's project is unknown or misconfigured
        """
        project_index = {p.id: p for p in projects}
        by_client: Dict[str, CostMetrics] = {}

        for client_id, client_bookings in self._group_month_by_client(bookings, month).items():
            amount = 0.0
            for booking in client_bookings:
                project = project_index.get(booking.project_id)
                if project is None:
                    raise BillingConfigError(
                        f"Booking {booking.id!r} references unknown project {booking.project_id!r}"
                    )
                amount += booking.duration * self.price_per_hour(project)

            hours = total_hours(client_bookings)
            by_client[client_id] = CostMetrics(
                total_hours=hours,
                price_per_hour=amount / hours if hours > 0 else 0.0,
                total_amount=amount
            )

        return self._label_by_client_name(by_client, clients)

    def receipt_text(
        self,
        client: Client | None,
        project: Project | None,
        bookings: Sequence[Booking],
        currency: str = "R$"
    ) -> str:
        """
        Build a shareable receipt for a project's sessions.

        Raises:
            BillingConfigError: If the project is missing or its billing is inconsistent
        """
        if project is None:
            raise BillingConfigError(
                f"Cannot price a receipt for {project_display_name(project)}"
            )

        metrics = self.project_cost(bookings, project)

        lines = [
            f"Receipt - {client_display_name(client)}",
            f"Project: {project_display_name(project)}",
            "",
            "Sessions:",
        ]

        by_day = sessions_by_day(merge_contiguous_sessions(bookings))
        if not by_day:
            lines.append("  (no sessions)")
        for day, ranges in by_day.items():
            lines.append(f"  {day.format('DD/MM/YYYY')}: {format_day_sessions(ranges)}")

        lines.extend([
            "",
            "Summary:",
            f"  Total hours: {metrics.total_hours:.2f}h",
            f"  Price per hour: {format_money(metrics.price_per_hour, currency)}",
            f"  Total amount: {format_money(metrics.total_amount, currency)}",
        ])

        return "\n".join(lines)

    @staticmethod
    def _group_month_by_client(
        bookings: Sequence[Booking],
        month: DateTime
    ) -> Dict[str, List[Booking]]:
        """Bookings starting in ``month``, keyed by client id."""
        grouped: Dict[str, List[Booking]] = defaultdict(list)

        for booking in bookings:
            start = booking.start_time.in_timezone(month.tz)
            if start.year != month.year or start.month != month.month:
                continue
            grouped[booking.client_id].append(booking)

        logger.debug(
            "Grouped %d booking(s) into %d client(s) for %s",
            sum(len(v) for v in grouped.values()),
            len(grouped),
            month.format("MM/YYYY"),
        )
        return dict(grouped)

    @staticmethod
    def _label_by_client_name(
        metrics: Mapping[str, CostMetrics],
        clients: Iterable[Client]
    ) -> Dict[str, CostMetrics]:
        """
        Re-key per-client metrics by display name.

        Clients sharing a name (every unknown id shows as ``Unknown Client``)
        get their id appended so each keeps its own entry.
        """
        directory: Mapping[str, Client] = {c.id: c for c in clients}
        names = {
            client_id: client_display_name(directory.get(client_id))
            for client_id in metrics
        }
        name_counts = Counter(names.values())

        labelled: Dict[str, CostMetrics] = {}
        for client_id, client_metrics in metrics.items():
            name = names[client_id]
            if name_counts[name] > 1:
                name = f"{name} ({client_id})"
            labelled[name] = client_metrics
        return labelled
