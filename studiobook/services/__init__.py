"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .studio_calendar import StudioCalendarService

__all__ = ["StudioCalendarService"]
