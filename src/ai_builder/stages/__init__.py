"""Backend stages of a generation."""

from .base import Stage
from .completion import CompletionRequest, CompletionResponse, CompletionStage
from .image import ImageArtifact, ImageRequest, ImageStage, image_requested
from .search import (
    NO_SEARCH,
    SearchHit,
    SearchOutput,
    SearchQuery,
    SearchStage,
    format_search_results,
)
from .summarizer import SummarizerStage

__all__ = [
    "Stage",
    "CompletionRequest",
    "CompletionResponse",
    "CompletionStage",
    "ImageArtifact",
    "ImageRequest",
    "ImageStage",
    "image_requested",
    "NO_SEARCH",
    "SearchHit",
    "SearchOutput",
    "SearchQuery",
    "SearchStage",
    "format_search_results",
    "SummarizerStage",
]
