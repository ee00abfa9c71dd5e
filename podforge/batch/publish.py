"""Publish phase: convert, upload and link every generated podcast."""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from ..core.metadata import finalize_podcast_details
from ..domain.enums import ErrorPhase
from ..domain.models import (
    ConversionOptions,
    GenerationSuccess,
    ProcessingError,
    UploadedEpisode,
)
from ..domain.protocols import AudioConverter, BoardService, PublishAdapter
from ..logging import get_logger

logger = get_logger(__name__)


class PublishPhaseRunner:
    """Upload generated podcasts over one publishing session.

    A failure on one item is recorded as an upload error and the loop moves
    on to the next item.
    """

    def __init__(
        self,
        publisher: PublishAdapter,
        converter: AudioConverter,
        board: BoardService,
        downloads_dir: Path = Path("downloads"),
        conversion_options: Optional[ConversionOptions] = None,
    ):
        """Initialize publish phase runner.

        Args:
            publisher: Hosting platform adapter (single session)
            converter: Audio converter producing the publishing format
            board: Board receiving the public episode URL
            downloads_dir: Where converted audio is written
            conversion_options: Encoder settings (defaults to 320k MP3)
        """
        self.publisher = publisher
        self.converter = converter
        self.board = board
        self.downloads_dir = Path(downloads_dir)
        self.conversion_options = conversion_options or ConversionOptions()

    async def run(self, successes: Sequence[GenerationSuccess]) -> List[ProcessingError]:
        """Publish every generated podcast.

        Returns:
            One upload error per item that failed, in processing order
        """
        if not successes:
            logger.info("No successful generations to upload")
            return []

        logger.info("Starting upload phase", episodes=len(successes))

        try:
            await self.publisher.initialize()
        except Exception as e:
            logger.error("Failed to start publishing session", error=str(e))
            await self._close_session()
            return [
                ProcessingError(
                    url=s.candidate.source_url,
                    phase=ErrorPhase.UPLOAD,
                    message=f"Publishing session unavailable: {e}",
                )
                for s in successes
            ]

        errors: List[ProcessingError] = []
        try:
            for i, success in enumerate(successes, start=1):
                url = success.candidate.source_url
                logger.info("Uploading episode", position=f"{i}/{len(successes)}", url=url)
                try:
                    uploaded = await self.publish_one(success)
                except Exception as e:
                    message = str(e) or type(e).__name__
                    logger.error(
                        "Upload failed",
                        position=f"{i}/{len(successes)}",
                        url=url,
                        error=message,
                    )
                    errors.append(
                        ProcessingError(url=url, phase=ErrorPhase.UPLOAD, message=message)
                    )
                else:
                    logger.info(
                        "Uploaded episode",
                        position=f"{i}/{len(successes)}",
                        title=uploaded.title,
                        podcast_url=uploaded.podcast_url,
                    )
        finally:
            await self._close_session()

        return errors

    async def publish_one(self, success: GenerationSuccess) -> UploadedEpisode:
        """Run the full publish workflow for one item; raises on any failure."""
        candidate = success.candidate
        podcast = success.podcast

        # A previous item may have left the session on another page
        await self.publisher.navigate_to_main_page()

        final = finalize_podcast_details(
            podcast.metadata,
            podcast.details,
            source_url=candidate.source_url,
            item_url=self.board.construct_item_url(candidate.id),
        )

        options = replace(
            self.conversion_options,
            output_path=self.downloads_dir / f"{podcast.audio_path.stem}.mp3",
        )
        loop = asyncio.get_running_loop()
        converted = await loop.run_in_executor(
            None, self.converter.convert, podcast.audio_path, options
        )

        uploaded = await self.publisher.upload_episode(
            replace(podcast, audio_path=converted.output_path),
            final.title,
            final.description,
        )
        await self.board.update_item_with_generated_podcast_url(candidate.id, uploaded.podcast_url)
        return uploaded

    async def _close_session(self) -> None:
        try:
            await self.publisher.close()
        except Exception as e:
            logger.warning("Failed to close publishing session", error=str(e))
        else:
            logger.info("Publishing session closed")
