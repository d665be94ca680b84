"""
Share message suggestions.

The application only depends on the ``TextSuggester`` protocol; any text
generation backend can be plugged in. ``TemplateTextSuggester`` is the
offline default.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class ShareContext:
    studio_name: str
    calendar_link: str
    client_name: Optional[str] = None
    past_booking_data: Optional[str] = None


class TextSuggester(Protocol):
    """Anything that turns a share context into a message."""

    def suggest(self, context: ShareContext) -> str:
        """Return a message inviting a client to book."""


class TemplateTextSuggester:
    """Fills a fixed template, no external service involved."""

    def suggest(self, context: ShareContext) -> str:
        greeting = f"Hi {context.client_name}!" if context.client_name else "Hi!"
        lines = [
            greeting,
            f"{context.studio_name} has open sessions this week.",
        ]
        if context.past_booking_data:
            lines.append(
                f"Based on your previous sessions ({context.past_booking_data}), "
                "we'd love to have you back."
            )
        lines.append(f"Check availability and book here: {context.calendar_link}")
        return "\n".join(lines)
