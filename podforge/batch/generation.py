"""Generation phase: turn candidates into downloaded podcast audio."""

import asyncio
from typing import List, Sequence

from ..domain.enums import FailureReason
from ..domain.models import (
    Candidate,
    GeneratedPodcast,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
)
from ..domain.protocols import BoardService, GenerationAdapter, MetadataExtractor
from ..errors import QuotaExhaustedError, RateLimitLogError, is_invalid_resource_error
from ..logging import get_logger
from ..state.rate_limit import RateLimitTracker

logger = get_logger(__name__)

DEFAULT_NEW_GENERATION_DELAY = 10.0


class GenerationPhaseRunner:
    """Run generation for every candidate over one adapter session.

    Resumable candidates go first, back to back. New candidates follow,
    separated by a fixed cooldown (none after the last one). Each
    candidate yields exactly one outcome; only rate log failures escape.
    """

    def __init__(
        self,
        generator: GenerationAdapter,
        board: BoardService,
        metadata_extractor: MetadataExtractor,
        tracker: RateLimitTracker,
        new_generation_delay: float = DEFAULT_NEW_GENERATION_DELAY,
    ):
        """Initialize generation phase runner.

        Args:
            generator: Generation service adapter (single session)
            board: Board receiving notebook links and rejection flags
            metadata_extractor: Source URL classifier
            tracker: Rate limit tracker consulted before each new generation
            new_generation_delay: Seconds to wait between new generations
        """
        self.generator = generator
        self.board = board
        self.metadata_extractor = metadata_extractor
        self.tracker = tracker
        self.new_generation_delay = new_generation_delay

    async def run(
        self, resumable: Sequence[Candidate], new: Sequence[Candidate]
    ) -> List[GenerationOutcome]:
        """Process resumable then new candidates.

        Returns:
            Outcomes in processing order

        Raises:
            RateLimitLogError: If the rate log cannot be read or written
        """
        if not resumable and not new:
            return []

        logger.info(
            "Starting generation phase",
            resumable=len(resumable),
            new=len(new),
            delay_seconds=self.new_generation_delay,
        )

        try:
            await self.generator.initialize()
        except Exception as e:
            logger.error("Failed to start generation session", error=str(e))
            await self._close_session()
            return [
                GenerationFailure(candidate=c, reason=FailureReason.GENERIC_ERROR, error=e)
                for c in [*resumable, *new]
            ]

        outcomes: List[GenerationOutcome] = []
        try:
            for i, candidate in enumerate(resumable, start=1):
                logger.info(
                    "Processing resumable candidate",
                    position=f"{i}/{len(resumable)}",
                    url=candidate.source_url,
                )
                outcomes.append(await self.process_candidate(candidate))

            for i, candidate in enumerate(new, start=1):
                logger.info(
                    "Processing new generation",
                    position=f"{i}/{len(new)}",
                    url=candidate.source_url,
                )
                outcomes.append(await self.process_candidate(candidate))

                if i < len(new) and self.new_generation_delay > 0:
                    logger.info(
                        "Waiting before next generation",
                        seconds=self.new_generation_delay,
                    )
                    await asyncio.sleep(self.new_generation_delay)
        finally:
            await self._close_session()

        return outcomes

    async def process_candidate(self, candidate: Candidate) -> GenerationOutcome:
        """Generate and download audio for one candidate, classifying failures."""
        try:
            podcast = await self._generate(candidate)
        except RateLimitLogError:
            raise
        except Exception as e:
            return await self._classify_failure(candidate, e)

        logger.info("Generated podcast", url=candidate.source_url, title=podcast.details.title)
        return GenerationSuccess(candidate=candidate, podcast=podcast)

    async def _generate(self, candidate: Candidate) -> GeneratedPodcast:
        await self.generator.navigate_to_main_page()

        if candidate.is_resumable:
            notebook_url = candidate.notebooklm_url
            logger.info("Opening existing notebook", notebook_url=notebook_url)
            await self.generator.open_existing_notebook(notebook_url)
        else:
            remaining = self.tracker.validate_rate_limit()
            if remaining <= 0:
                raise QuotaExhaustedError(
                    f"Audio generation rate limit reached ({self.tracker.limit} per window)"
                )

            result = await self.generator.create_notebook_and_generate_audio(candidate.source_url)
            self.tracker.record_audio_generation(candidate.source_url)
            notebook_url = result.notebook_url

            # Persist the link before downloading so a crash keeps it resumable
            await self.board.update_item_with_notebooklm_audio_link_and_title(
                candidate.id, result.notebook_url, result.title
            )

        audio_path = await self.generator.download_audio()
        details, metadata = await asyncio.gather(
            self.generator.get_podcast_details(),
            self.metadata_extractor.extract_metadata_from_url(candidate.source_url),
        )

        return GeneratedPodcast(
            metadata=metadata,
            details=details,
            source_urls=[candidate.source_url],
            audio_path=audio_path,
            notebook_url=notebook_url,
        )

    async def _classify_failure(
        self, candidate: Candidate, error: Exception
    ) -> GenerationFailure:
        if is_invalid_resource_error(error):
            logger.warning(
                "Source rejected by generation service",
                url=candidate.source_url,
                item_id=candidate.id,
                error=str(error),
            )
            await self._mark_non_podcastable(candidate)
            return GenerationFailure(
                candidate=candidate, reason=FailureReason.INVALID_RESOURCE, error=error
            )

        logger.error("Generation failed", url=candidate.source_url, error=str(error))
        return GenerationFailure(
            candidate=candidate, reason=FailureReason.GENERIC_ERROR, error=error
        )

    async def _mark_non_podcastable(self, candidate: Candidate) -> None:
        try:
            await self.board.mark_item_as_non_podcastable(candidate.id)
        except Exception as e:
            logger.error(
                "Failed to mark item as non-podcastable",
                item_id=candidate.id,
                error=str(e),
            )

    async def _close_session(self) -> None:
        try:
            await self.generator.close()
        except Exception as e:
            logger.warning("Failed to close generation session", error=str(e))
        else:
            logger.info("Generation session closed")
