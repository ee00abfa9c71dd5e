"""Shared fixtures for unit tests.

The pipeline collaborators are replaced with small in-memory fakes that
record every call, so tests can assert on ordering and side effects
without a browser, a CLI or network access.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from podforge.config import reset_config
from podforge.domain.models import (
    ArticleMetadata,
    Candidate,
    ConversionOptions,
    ConversionResult,
    GeneratedPodcast,
    GenerationSuccess,
    NotebookResult,
    PodcastDetails,
    UploadedEpisode,
)
from podforge.errors import GenerationError, InvalidResourceError, PublishError
from podforge.state import RateLimitTracker

NOW = datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_podforge_config():
    """Give every test a fresh global configuration."""
    reset_config()
    yield
    reset_config()


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def rate_log_path(tmp_path):
    return tmp_path / "logs" / "audio-generation.json"


@pytest.fixture
def tracker(rate_log_path, clock):
    """Tracker with the production defaults (3 per 24h, 7 day retention)."""
    return RateLimitTracker(log_path=rate_log_path, clock=clock, run_id="test-run")


def seed_rate_log(path: Path, timestamps: Iterable[datetime], url: str = "https://example.com/old"):
    """Write a rate log containing one entry per timestamp."""
    path.parent.mkdir(parents=True, exist_ok=True)
    entries = [
        {
            "timestamp": ts.isoformat().replace("+00:00", "Z"),
            "runId": "earlier-run",
            "resourceUrl": url,
        }
        for ts in timestamps
    ]
    path.write_text(json.dumps({"entries": entries}))


def make_candidate(
    item_id: str,
    url: Optional[str] = None,
    notebook_url: Optional[str] = None,
    fitness: float = 1.0,
) -> Candidate:
    return Candidate(
        id=item_id,
        name=f"Item {item_id}",
        source_url=url or f"https://example.com/articles/{item_id}",
        notebooklm_url=notebook_url,
        podcast_fitness=fitness,
    )


def make_resumable(item_id: str) -> Candidate:
    return make_candidate(
        item_id, notebook_url=f"https://notebooklm.google.com/notebook/nb-{item_id}"
    )


def make_metadata(url: str) -> ArticleMetadata:
    return ArticleMetadata(
        title=f"Article at {url}",
        code_content_percentage=2.5,
        total_text_length=4200,
    )


def make_success(candidate: Candidate, audio_path: Path) -> GenerationSuccess:
    audio_path.parent.mkdir(parents=True, exist_ok=True)
    audio_path.write_bytes(b"RIFF....WAVE")
    podcast = GeneratedPodcast(
        metadata=make_metadata(candidate.source_url),
        details=PodcastDetails(title=f"Episode {candidate.id}", description="A conversation."),
        source_urls=[candidate.source_url],
        audio_path=audio_path,
        notebook_url=candidate.notebooklm_url,
    )
    return GenerationSuccess(candidate=candidate, podcast=podcast)


class FakeGenerator:
    """In-memory generation adapter recording every call."""

    def __init__(
        self,
        audio_dir: Path,
        invalid_urls: Iterable[str] = (),
        failing_urls: Iterable[str] = (),
        init_error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ):
        self.audio_dir = Path(audio_dir)
        self.invalid_urls = set(invalid_urls)
        self.failing_urls = set(failing_urls)
        self.init_error = init_error
        self.close_error = close_error
        self.calls: List[Tuple[str, ...]] = []
        self.closed = False
        self._current: Optional[str] = None
        self._counter = 0

    @property
    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def initialize(self) -> None:
        self.calls.append(("initialize",))
        if self.init_error:
            raise self.init_error

    async def navigate_to_main_page(self) -> None:
        self.calls.append(("navigate",))

    async def create_notebook_and_generate_audio(self, source_url: str) -> NotebookResult:
        self.calls.append(("create", source_url))
        if source_url in self.invalid_urls:
            raise InvalidResourceError(f"Source rejected: {source_url}", source_url=source_url)
        if source_url in self.failing_urls:
            raise GenerationError(f"Audio generation did not start for {source_url}")
        self._counter += 1
        self._current = f"new-{self._counter}"
        return NotebookResult(
            notebook_url=f"https://notebooklm.google.com/notebook/{self._current}",
            title=f"Generated title {self._counter}",
        )

    async def open_existing_notebook(self, notebook_url: str) -> None:
        self.calls.append(("open", notebook_url))
        self._current = notebook_url.rsplit("/", 1)[-1]

    async def download_audio(self) -> Path:
        self.calls.append(("download",))
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        path = self.audio_dir / f"{self._current}.wav"
        path.write_bytes(b"RIFF....WAVE")
        return path

    async def get_podcast_details(self) -> PodcastDetails:
        self.calls.append(("details",))
        return PodcastDetails(title=f"Podcast {self._current}", description="Two hosts discuss.")

    async def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True
        if self.close_error:
            raise self.close_error


class FakePublisher:
    """In-memory publish adapter."""

    def __init__(
        self,
        failing_urls: Iterable[str] = (),
        init_error: Optional[Exception] = None,
    ):
        self.failing_urls = set(failing_urls)
        self.init_error = init_error
        self.calls: List[Tuple[str, ...]] = []
        self.uploads: List[Tuple[GeneratedPodcast, str, str]] = []
        self.closed = False

    async def initialize(self) -> None:
        self.calls.append(("initialize",))
        if self.init_error:
            raise self.init_error

    async def navigate_to_main_page(self) -> None:
        self.calls.append(("navigate",))

    async def upload_episode(
        self, podcast: GeneratedPodcast, title: str, description: str
    ) -> UploadedEpisode:
        self.calls.append(("upload", podcast.source_urls[0]))
        if podcast.source_urls[0] in self.failing_urls:
            raise PublishError(f"Upload rejected for '{title}'")
        self.uploads.append((podcast, title, description))
        return UploadedEpisode(
            podcast_url=f"https://redcircle.com/episodes/{len(self.uploads)}", title=title
        )

    async def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True


class FakeConverter:
    """Audio converter that writes a placeholder MP3."""

    def __init__(self):
        self.calls: List[Tuple[Path, ConversionOptions]] = []

    def convert(self, input_path: Path, options: ConversionOptions) -> ConversionResult:
        self.calls.append((input_path, options))
        output = options.output_path or input_path.with_suffix(".mp3")
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(b"ID3")
        return ConversionResult(
            output_path=output,
            original_size=input_path.stat().st_size,
            converted_size=output.stat().st_size,
        )


class FakeBoard:
    """In-memory board service."""

    def __init__(
        self,
        candidates: Iterable[Candidate] = (),
        fetch_error: Optional[Exception] = None,
        mark_error: Optional[Exception] = None,
        update_error: Optional[Exception] = None,
    ):
        self.candidates = list(candidates)
        self.fetch_error = fetch_error
        self.mark_error = mark_error
        self.update_error = update_error
        self.requested_max: List[int] = []
        self.podcast_urls: Dict[str, str] = {}
        self.notebook_links: Dict[str, Tuple[str, str]] = {}
        self.non_podcastable: List[str] = []

    async def get_podcast_candidates(self, max_items: int) -> List[Candidate]:
        self.requested_max.append(max_items)
        if self.fetch_error:
            raise self.fetch_error
        return self.candidates[:max_items]

    async def update_item_with_generated_podcast_url(self, item_id: str, podcast_url: str) -> None:
        if self.update_error:
            raise self.update_error
        self.podcast_urls[item_id] = podcast_url

    async def mark_item_as_non_podcastable(self, item_id: str) -> None:
        if self.mark_error:
            raise self.mark_error
        self.non_podcastable.append(item_id)

    async def update_item_with_notebooklm_audio_link_and_title(
        self, item_id: str, notebook_url: str, title: str
    ) -> None:
        self.notebook_links[item_id] = (notebook_url, title)

    def construct_item_url(self, item_id: str) -> str:
        return f"https://acme.monday.com/boards/123/pulses/{item_id}"


class FakeExtractor:
    """Metadata extractor returning canned article metadata."""

    def __init__(self):
        self.urls: List[str] = []

    async def extract_metadata_from_url(self, url: str) -> ArticleMetadata:
        self.urls.append(url)
        return make_metadata(url)


@pytest.fixture
def generator(tmp_path):
    return FakeGenerator(audio_dir=tmp_path / "temp")


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def converter():
    return FakeConverter()


@pytest.fixture
def extractor():
    return FakeExtractor()
