"""Completion service client and envelope models."""

from .client import BackendClient
from .envelope import (
    CompletionData,
    Envelope,
    Pricing,
    SearchResultItem,
    Timing,
    TokenUsage,
    parse_envelope,
)

__all__ = [
    "BackendClient",
    "CompletionData",
    "Envelope",
    "Pricing",
    "SearchResultItem",
    "Timing",
    "TokenUsage",
    "parse_envelope",
]
