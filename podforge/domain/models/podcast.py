"""Podcast artifacts passed between the generation and publish phases."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .candidate import ArticleMetadata


@dataclass(frozen=True)
class NotebookResult:
    """Reference to a started generation plus the title it was given."""

    notebook_url: str
    title: str


@dataclass(frozen=True)
class PodcastDetails:
    """Title and description extracted from the generation service."""

    title: str
    description: str


@dataclass(frozen=True)
class GeneratedPodcast:
    """Downloaded podcast audio ready for publishing."""

    metadata: ArticleMetadata
    details: PodcastDetails
    source_urls: List[str]
    audio_path: Path
    notebook_url: Optional[str] = None


@dataclass(frozen=True)
class ConversionOptions:
    """Encoder settings for the publishing format."""

    bitrate: str = "320k"
    quality: int = 0
    sample_rate: int = 44100
    channels: int = 2
    output_path: Optional[Path] = None


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of an audio conversion."""

    output_path: Path
    original_size: int
    converted_size: int


@dataclass(frozen=True)
class UploadedEpisode:
    """Published episode on the hosting platform."""

    podcast_url: str
    title: str
    uploaded_at: datetime = field(default_factory=datetime.now)
