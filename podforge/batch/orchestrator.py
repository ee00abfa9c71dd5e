"""Batch orchestration: board candidates in, reconciled batch result out."""

from typing import List

from ..domain.enums import ErrorPhase, FailureReason
from ..domain.models import (
    BatchResult,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
    ProcessingError,
)
from ..domain.protocols import BoardService
from ..logging import bind_run_context, clear_run_context, get_logger
from ..state.rate_limit import RateLimitTracker
from .generation import GenerationPhaseRunner
from .partition import partition_candidates
from .publish import PublishPhaseRunner

logger = get_logger(__name__)

DEFAULT_MAX_CANDIDATES = 3


def outcome_to_error(failure: GenerationFailure) -> ProcessingError:
    """Report entry for a failed generation."""
    phase = (
        ErrorPhase.INVALID_RESOURCE
        if failure.reason == FailureReason.INVALID_RESOURCE
        else ErrorPhase.GENERATION
    )
    return ProcessingError(url=failure.candidate.source_url, phase=phase, message=failure.message)


class BatchOrchestrator:
    """Drive one batch: fetch, quota, partition, generate, publish.

    Only board fetch failures and rate log failures propagate; every
    per-item failure ends up in ``BatchResult.errors``.
    """

    def __init__(
        self,
        board: BoardService,
        tracker: RateLimitTracker,
        generation: GenerationPhaseRunner,
        publish: PublishPhaseRunner,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ):
        self.board = board
        self.tracker = tracker
        self.generation = generation
        self.publish = publish
        self.max_candidates = max_candidates

    async def run(self) -> BatchResult:
        bind_run_context(run_id=self.tracker.run_id)
        try:
            return await self._run()
        finally:
            clear_run_context()

    async def _run(self) -> BatchResult:
        logger.info("Fetching podcast candidates", max_candidates=self.max_candidates)
        candidates = await self.board.get_podcast_candidates(self.max_candidates)
        logger.info("Found podcast candidates", count=len(candidates))

        if not candidates:
            logger.info(
                "No valid podcast candidates found",
                hint="board items need a source URL and positive podcast fitness",
            )
            return BatchResult.empty()

        remaining = self.tracker.validate_rate_limit()
        parts = partition_candidates(candidates, remaining)

        if parts.to_process_count == 0:
            logger.info("No candidates to process after rate limiting", deferred=len(parts.deferred))
            return BatchResult.empty()

        logger.info(
            "Starting batch processing",
            total=parts.to_process_count,
            resumable=len(parts.resumable),
            new=len(parts.new_to_process),
            deferred=len(parts.deferred),
        )

        outcomes = await self.generation.run(parts.resumable, parts.new_to_process)
        successes = [o for o in outcomes if isinstance(o, GenerationSuccess)]
        errors = self._generation_errors(outcomes)

        upload_errors = await self.publish.run(successes) if successes else []
        errors.extend(upload_errors)

        return BatchResult(
            total=parts.to_process_count,
            successful_generations=len(successes),
            successful_uploads=len(successes) - len(upload_errors),
            errors=tuple(errors),
        )

    @staticmethod
    def _generation_errors(outcomes: List[GenerationOutcome]) -> List[ProcessingError]:
        return [outcome_to_error(o) for o in outcomes if isinstance(o, GenerationFailure)]
