"""
Adapters layer - persistence and text suggestion integrations.
"""

from .json_store import BookingStore, InMemoryStore, JsonFileStore
from .sample_data import sample_snapshot
from .text_suggester import ShareContext, TemplateTextSuggester, TextSuggester

__all__ = [
    "BookingStore",
    "InMemoryStore",
    "JsonFileStore",
    "sample_snapshot",
    "ShareContext",
    "TemplateTextSuggester",
    "TextSuggester",
]
