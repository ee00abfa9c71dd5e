"""End-to-end tests of one batch run over in-memory collaborators."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from conftest import (
    NOW,
    FakeBoard,
    FakeGenerator,
    FakePublisher,
    make_candidate,
    make_resumable,
    seed_rate_log,
)

from podforge.batch import BatchOrchestrator, GenerationPhaseRunner, PublishPhaseRunner
from podforge.batch.orchestrator import outcome_to_error
from podforge.domain.enums import BoardErrorType, ErrorPhase, FailureReason
from podforge.domain.models import BatchResult, GenerationFailure
from podforge.errors import BoardError, GenerationError, RateLimitLogError


def build(board, generator, publisher, converter, extractor, tracker, tmp_path, max_candidates=10):
    generation = GenerationPhaseRunner(
        generator=generator,
        board=board,
        metadata_extractor=extractor,
        tracker=tracker,
        new_generation_delay=10.0,
    )
    publish = PublishPhaseRunner(
        publisher=publisher,
        converter=converter,
        board=board,
        downloads_dir=tmp_path / "downloads",
    )
    return BatchOrchestrator(
        board=board,
        tracker=tracker,
        generation=generation,
        publish=publish,
        max_candidates=max_candidates,
    )


@pytest.fixture
def no_sleep():
    with patch("podforge.batch.generation.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


class TestBatchOrchestrator:
    """Test full batch runs."""

    @pytest.mark.asyncio
    async def test_no_candidates(self, generator, publisher, converter, extractor, tracker, tmp_path):
        """Test an empty board yields an empty result without touching quota."""
        board = FakeBoard()
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        result = await orchestrator.run()

        assert result == BatchResult.empty()
        assert not tracker.log_path.exists()
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_resumable_and_new_within_quota(
        self, generator, publisher, converter, extractor, tracker, tmp_path, no_sleep
    ):
        """Test 2 resumable + 3 new with 3 free slots all complete."""
        candidates = [
            make_resumable("r1"),
            make_candidate("n1"),
            make_candidate("n2"),
            make_resumable("r2"),
            make_candidate("n3"),
        ]
        board = FakeBoard(candidates)
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        result = await orchestrator.run()

        assert result.total == 5
        assert result.successful_generations == 5
        assert result.successful_uploads == 5
        assert result.errors == ()

        work = [c[0] for c in generator.calls if c[0] in ("open", "create")]
        assert work == ["open", "open", "create", "create", "create"]
        assert no_sleep.await_count == 2
        assert len(tracker.recent_entries()) == 3
        assert len(board.podcast_urls) == 5

    @pytest.mark.asyncio
    async def test_quota_exhausted_processes_nothing(
        self, generator, publisher, converter, extractor, tracker, tmp_path, rate_log_path
    ):
        """Test no session opens when every candidate is deferred."""
        seed_rate_log(rate_log_path, [NOW - timedelta(hours=2)] * 3)
        board = FakeBoard([make_candidate(f"n{i}") for i in range(4)])
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        result = await orchestrator.run()

        assert result.total == 0
        assert result.errors == ()
        assert generator.calls == []
        assert publisher.calls == []

    @pytest.mark.asyncio
    async def test_deferred_candidates_are_not_errors(
        self, generator, publisher, converter, extractor, tracker, tmp_path, rate_log_path, no_sleep
    ):
        """Test candidates cut by the quota are silently left for later."""
        seed_rate_log(rate_log_path, [NOW - timedelta(hours=2)] * 2)
        board = FakeBoard([make_candidate(f"n{i}") for i in range(3)])
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        result = await orchestrator.run()

        assert result.total == 1
        assert result.successful_uploads == 1
        assert result.errors == ()

    @pytest.mark.asyncio
    async def test_invalid_resource_reported_separately(
        self, publisher, converter, extractor, tracker, tmp_path, no_sleep
    ):
        """Test a rejected source is flagged once and not counted as a failure."""
        candidates = [make_candidate("n1"), make_candidate("bad"), make_candidate("n3")]
        generator = FakeGenerator(tmp_path / "temp", invalid_urls=[candidates[1].source_url])
        board = FakeBoard(candidates)
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        result = await orchestrator.run()

        assert result.total == 3
        assert result.successful_generations == 2
        assert result.successful_uploads == 2
        assert [e.url for e in result.invalid_resources] == [candidates[1].source_url]
        assert result.generation_errors == []
        assert not result.has_errors
        assert board.non_podcastable == ["bad"]

    @pytest.mark.asyncio
    async def test_upload_failures_reduce_successful_uploads(
        self, generator, converter, extractor, tracker, tmp_path, no_sleep
    ):
        """Test successful uploads equal generations minus upload errors."""
        candidates = [make_resumable("r1"), make_candidate("n1")]
        publisher = FakePublisher(failing_urls=[candidates[0].source_url])
        board = FakeBoard(candidates)
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        result = await orchestrator.run()

        assert result.successful_generations == 2
        assert result.successful_uploads == 1
        assert [e.phase for e in result.errors] == [ErrorPhase.UPLOAD]

    @pytest.mark.asyncio
    async def test_generation_session_failure_skips_publishing(
        self, publisher, converter, extractor, tracker, tmp_path
    ):
        """Test no upload session opens when nothing was generated."""
        generator = FakeGenerator(tmp_path / "temp", init_error=GenerationError("auth expired"))
        board = FakeBoard([make_resumable("r1"), make_candidate("n1")])
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        result = await orchestrator.run()

        assert result.total == 2
        assert result.successful_generations == 0
        assert len(result.generation_errors) == 2
        assert publisher.calls == []

    @pytest.mark.asyncio
    async def test_board_fetch_failure_propagates(
        self, generator, publisher, converter, extractor, tracker, tmp_path
    ):
        """Test a board read failure aborts the run."""
        board = FakeBoard(fetch_error=BoardError(BoardErrorType.API_ERROR, "Monday API error"))
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        with pytest.raises(BoardError):
            await orchestrator.run()

    @pytest.mark.asyncio
    async def test_rate_log_failure_propagates(
        self, generator, publisher, converter, extractor, tracker, tmp_path, rate_log_path
    ):
        """Test an unreadable rate log aborts the run."""
        rate_log_path.parent.mkdir(parents=True)
        rate_log_path.write_text("{")
        board = FakeBoard([make_candidate("n1")])
        orchestrator = build(board, generator, publisher, converter, extractor, tracker, tmp_path)

        with pytest.raises(RateLimitLogError):
            await orchestrator.run()

    @pytest.mark.asyncio
    async def test_max_candidates_passed_to_board(
        self, generator, publisher, converter, extractor, tracker, tmp_path
    ):
        """Test the board is asked for at most max_candidates items."""
        board = FakeBoard()
        orchestrator = build(
            board, generator, publisher, converter, extractor, tracker, tmp_path, max_candidates=3
        )

        await orchestrator.run()

        assert board.requested_max == [3]


class TestOutcomeToError:
    """Test mapping failed generations to report entries."""

    def test_invalid_resource_phase(self):
        """Test rejected sources map to the invalid resource phase."""
        candidate = make_candidate("1")
        failure = GenerationFailure(
            candidate=candidate, reason=FailureReason.INVALID_RESOURCE, error=ValueError("rejected")
        )

        error = outcome_to_error(failure)

        assert error.phase == ErrorPhase.INVALID_RESOURCE
        assert error.url == candidate.source_url
        assert error.message == "rejected"

    def test_generic_phase(self):
        """Test other failures map to the generation phase."""
        failure = GenerationFailure(
            candidate=make_candidate("1"), reason=FailureReason.GENERIC_ERROR, error=TimeoutError()
        )

        error = outcome_to_error(failure)

        assert error.phase == ErrorPhase.GENERATION
        assert error.message == "TimeoutError"
