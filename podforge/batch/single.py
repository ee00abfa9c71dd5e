"""Generate (and optionally publish) one podcast from a single URL.

Unlike a batch, there is no board item behind the URL, so nothing is
written back to the board.
"""

import asyncio
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from ..core.metadata import finalize_podcast_details
from ..domain.models import ConversionOptions, GeneratedPodcast, UploadedEpisode
from ..domain.protocols import (
    AudioConverter,
    GenerationAdapter,
    MetadataExtractor,
    PublishAdapter,
)
from ..errors import QuotaExhaustedError, ValidationError
from ..logging import get_logger
from ..state.rate_limit import RateLimitTracker

logger = get_logger(__name__)


@dataclass(frozen=True)
class SingleRunResult:
    """Outcome of a single-URL run."""

    podcast: GeneratedPodcast
    episode: Optional[UploadedEpisode] = None


async def generate_podcast(
    source_url: str,
    generator: GenerationAdapter,
    metadata_extractor: MetadataExtractor,
    tracker: RateLimitTracker,
) -> GeneratedPodcast:
    """Start a new generation for ``source_url`` and download the audio.

    Raises:
        QuotaExhaustedError: If no generation slot is left
        GenerationError: If the generation service fails
    """
    if tracker.validate_rate_limit() <= 0:
        raise QuotaExhaustedError(
            f"Audio generation rate limit reached ({tracker.limit} per window). Try again later."
        )

    await generator.initialize()
    try:
        await generator.navigate_to_main_page()
        result = await generator.create_notebook_and_generate_audio(source_url)
        tracker.record_audio_generation(source_url)

        audio_path = await generator.download_audio()
        details, metadata = await asyncio.gather(
            generator.get_podcast_details(),
            metadata_extractor.extract_metadata_from_url(source_url),
        )
    finally:
        await generator.close()

    return GeneratedPodcast(
        metadata=metadata,
        details=details,
        source_urls=[source_url],
        audio_path=audio_path,
        notebook_url=result.notebook_url,
    )


async def generate_and_upload(
    source_url: str,
    generator: GenerationAdapter,
    metadata_extractor: MetadataExtractor,
    tracker: RateLimitTracker,
    converter: Optional[AudioConverter] = None,
    publisher: Optional[PublishAdapter] = None,
    downloads_dir: Path = Path("downloads"),
    conversion_options: Optional[ConversionOptions] = None,
    upload: bool = True,
) -> SingleRunResult:
    """Generate a podcast for one URL, then convert and publish it."""
    if not source_url.startswith(("http://", "https://")):
        raise ValidationError(f"Source URL must be http(s): {source_url}")

    podcast = await generate_podcast(source_url, generator, metadata_extractor, tracker)
    logger.info("Podcast generated", title=podcast.details.title, audio=str(podcast.audio_path))

    if not upload:
        return SingleRunResult(podcast=podcast)
    if converter is None or publisher is None:
        raise ValidationError("Uploading requires an audio converter and a publisher")

    final = finalize_podcast_details(podcast.metadata, podcast.details, source_url=source_url)
    options = replace(
        conversion_options or ConversionOptions(),
        output_path=Path(downloads_dir) / f"{podcast.audio_path.stem}.mp3",
    )
    loop = asyncio.get_running_loop()
    converted = await loop.run_in_executor(None, converter.convert, podcast.audio_path, options)

    await publisher.initialize()
    try:
        await publisher.navigate_to_main_page()
        episode = await publisher.upload_episode(
            replace(podcast, audio_path=converted.output_path),
            final.title,
            final.description,
        )
    finally:
        await publisher.close()

    logger.info("Podcast published", podcast_url=episode.podcast_url)
    return SingleRunResult(podcast=podcast, episode=episode)
