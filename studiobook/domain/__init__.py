"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityCalculator, StudioHours
from .cost_calculator import CostCalculator, PricingMode, PricingRules, merge_contiguous_sessions
from .models import Booking, Client, Project, Snapshot, TimeRange, TimeSlot

__all__ = [
    "AvailabilityCalculator",
    "StudioHours",
    "CostCalculator",
    "PricingMode",
    "PricingRules",
    "merge_contiguous_sessions",
    "Booking",
    "Client",
    "Project",
    "Snapshot",
    "TimeRange",
    "TimeSlot",
]
