"""Domain layer for podforge - data models, enums and protocols."""

from .enums import BoardErrorType, ContentType, ErrorPhase, FailureReason
from .models import (
    ArticleMetadata,
    BatchResult,
    Candidate,
    ConversionOptions,
    ConversionResult,
    GeneratedPodcast,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
    NotebookResult,
    PartitionedCandidates,
    PodcastDetails,
    ProcessingError,
    UploadedEpisode,
)
from .protocols import (
    AudioConverter,
    BoardService,
    GenerationAdapter,
    MetadataExtractor,
    PublishAdapter,
)

__all__ = [
    # Enums
    "ErrorPhase",
    "FailureReason",
    "ContentType",
    "BoardErrorType",
    # Models
    "Candidate",
    "ArticleMetadata",
    "NotebookResult",
    "PodcastDetails",
    "GeneratedPodcast",
    "ConversionOptions",
    "ConversionResult",
    "UploadedEpisode",
    "GenerationSuccess",
    "GenerationFailure",
    "GenerationOutcome",
    "ProcessingError",
    "PartitionedCandidates",
    "BatchResult",
    # Protocols
    "GenerationAdapter",
    "PublishAdapter",
    "AudioConverter",
    "BoardService",
    "MetadataExtractor",
]
