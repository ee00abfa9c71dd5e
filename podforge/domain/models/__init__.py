"""Domain models for podforge."""

from .batch import (
    BatchResult,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
    PartitionedCandidates,
    ProcessingError,
)
from .candidate import ArticleMetadata, Candidate
from .podcast import (
    ConversionOptions,
    ConversionResult,
    GeneratedPodcast,
    NotebookResult,
    PodcastDetails,
    UploadedEpisode,
)

__all__ = [
    # Board models
    "Candidate",
    "ArticleMetadata",
    # Podcast models
    "NotebookResult",
    "PodcastDetails",
    "GeneratedPodcast",
    "ConversionOptions",
    "ConversionResult",
    "UploadedEpisode",
    # Batch models
    "GenerationSuccess",
    "GenerationFailure",
    "GenerationOutcome",
    "ProcessingError",
    "PartitionedCandidates",
    "BatchResult",
]
