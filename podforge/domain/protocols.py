"""Capability protocols for the collaborators of the batch pipeline.

The batch runners depend only on these protocols, so concrete adapters
(NotebookLM CLI, RedCircle UI, monday.com, ffmpeg) can be swapped for
in-memory fakes in tests.
"""

from pathlib import Path
from typing import List, Protocol, runtime_checkable

from .models import (
    ArticleMetadata,
    Candidate,
    ConversionOptions,
    ConversionResult,
    GeneratedPodcast,
    NotebookResult,
    PodcastDetails,
    UploadedEpisode,
)


@runtime_checkable
class GenerationAdapter(Protocol):
    """Protocol for the audio generation service.

    Holds single-session state: one active notebook at a time.
    """

    async def initialize(self) -> None:
        """Open and authenticate the session."""
        ...

    async def navigate_to_main_page(self) -> None:
        """Return to a neutral context. Must be idempotent."""
        ...

    async def create_notebook_and_generate_audio(self, source_url: str) -> NotebookResult:
        """Create a notebook for ``source_url`` and trigger audio generation.

        Raises:
            InvalidResourceError: If the service rejects the source
            GenerationError: For any other failure
        """
        ...

    async def open_existing_notebook(self, notebook_url: str) -> None:
        """Activate a notebook whose generation was started earlier."""
        ...

    async def download_audio(self) -> Path:
        """Wait for the active notebook's audio to finish, download it and return its path."""
        ...

    async def get_podcast_details(self) -> PodcastDetails:
        """Title and description of the active notebook's podcast."""
        ...

    async def close(self) -> None:
        """Release the session."""
        ...


@runtime_checkable
class PublishAdapter(Protocol):
    """Protocol for the podcast hosting platform."""

    async def initialize(self) -> None:
        ...

    async def navigate_to_main_page(self) -> None:
        ...

    async def upload_episode(
        self, podcast: GeneratedPodcast, title: str, description: str
    ) -> UploadedEpisode:
        """Create and publish an episode, returning its public URL."""
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class AudioConverter(Protocol):
    """Protocol for converting downloaded audio to the publishing format."""

    def convert(self, input_path: Path, options: ConversionOptions) -> ConversionResult:
        ...


@runtime_checkable
class BoardService(Protocol):
    """Protocol for the work-item board (candidate source and result sink)."""

    async def get_podcast_candidates(self, max_items: int) -> List[Candidate]:
        ...

    async def update_item_with_generated_podcast_url(self, item_id: str, podcast_url: str) -> None:
        ...

    async def mark_item_as_non_podcastable(self, item_id: str) -> None:
        ...

    async def update_item_with_notebooklm_audio_link_and_title(
        self, item_id: str, notebook_url: str, title: str
    ) -> None:
        ...

    def construct_item_url(self, item_id: str) -> str:
        """Link to the item on the board, used in episode descriptions."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for classifying a source URL."""

    async def extract_metadata_from_url(self, url: str) -> ArticleMetadata:
        ...
