"""Unit tests for the generation phase runner."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from conftest import NOW, FakeBoard, FakeGenerator, make_candidate, make_resumable, seed_rate_log

from podforge.batch import GenerationPhaseRunner
from podforge.domain.enums import FailureReason
from podforge.domain.models import GenerationFailure, GenerationSuccess
from podforge.errors import GenerationError, QuotaExhaustedError, RateLimitLogError


def make_runner(generator, tracker, extractor, board=None, delay=10.0):
    return GenerationPhaseRunner(
        generator=generator,
        board=board or FakeBoard(),
        metadata_extractor=extractor,
        tracker=tracker,
        new_generation_delay=delay,
    )


@pytest.mark.asyncio
async def test_empty_input_opens_no_session(generator, tracker, extractor):
    """Test nothing happens when there is nothing to generate."""
    runner = make_runner(generator, tracker, extractor)

    assert await runner.run([], []) == []
    assert generator.calls == []


@pytest.mark.asyncio
async def test_resumable_first_then_new_with_cooldowns(generator, tracker, extractor):
    """Test ordering and that only gaps between new items are delayed."""
    runner = make_runner(generator, tracker, extractor)
    resumable = [make_resumable("r1"), make_resumable("r2")]
    new = [make_candidate("n1"), make_candidate("n2"), make_candidate("n3")]

    with patch("podforge.batch.generation.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        outcomes = await runner.run(resumable, new)

    assert [o.candidate.id for o in outcomes] == ["r1", "r2", "n1", "n2", "n3"]
    assert all(isinstance(o, GenerationSuccess) for o in outcomes)

    work = [c for c in generator.calls if c[0] in ("open", "create")]
    assert [c[0] for c in work] == ["open", "open", "create", "create", "create"]

    assert mock_sleep.await_count == 2
    mock_sleep.assert_awaited_with(10.0)
    assert generator.call_names[0] == "initialize"
    assert generator.call_names[-1] == "close"


@pytest.mark.asyncio
async def test_resumable_consumes_no_quota(generator, tracker, extractor):
    """Test reopening an existing notebook is not recorded."""
    board = FakeBoard()
    runner = make_runner(generator, tracker, extractor, board=board)

    outcomes = await runner.run([make_resumable("r1")], [])

    assert isinstance(outcomes[0], GenerationSuccess)
    assert outcomes[0].podcast.notebook_url.endswith("nb-r1")
    assert tracker.recent_entries() == []
    assert board.notebook_links == {}


@pytest.mark.asyncio
async def test_new_generation_records_quota_and_board_link(generator, tracker, extractor):
    """Test a new generation is logged and linked on the board."""
    board = FakeBoard()
    runner = make_runner(generator, tracker, extractor, board=board)
    candidate = make_candidate("n1")

    outcomes = await runner.run([], [candidate])

    success = outcomes[0]
    assert isinstance(success, GenerationSuccess)
    assert [e.resource_url for e in tracker.recent_entries()] == [candidate.source_url]
    assert board.notebook_links["n1"] == (
        "https://notebooklm.google.com/notebook/new-1",
        "Generated title 1",
    )
    assert success.podcast.source_urls == [candidate.source_url]
    assert success.podcast.audio_path.exists()
    assert success.podcast.metadata.title == f"Article at {candidate.source_url}"
    assert extractor.urls == [candidate.source_url]


@pytest.mark.asyncio
async def test_invalid_resource_marks_board_and_continues(tmp_path, tracker, extractor):
    """Test a rejected source is flagged once and the next item still runs."""
    bad = make_candidate("bad")
    good = make_candidate("good")
    generator = FakeGenerator(tmp_path / "temp", invalid_urls=[bad.source_url])
    board = FakeBoard()
    runner = make_runner(generator, tracker, extractor, board=board, delay=0)

    outcomes = await runner.run([], [bad, good])

    failure, success = outcomes
    assert isinstance(failure, GenerationFailure)
    assert failure.reason == FailureReason.INVALID_RESOURCE
    assert isinstance(success, GenerationSuccess)
    assert board.non_podcastable == ["bad"]


@pytest.mark.asyncio
async def test_rejection_recognized_from_message(tmp_path, tracker, extractor):
    """Test text-only rejections are classified as invalid resources."""
    candidate = make_candidate("n1")
    generator = FakeGenerator(tmp_path / "temp")
    generator.create_notebook_and_generate_audio = AsyncMock(
        side_effect=GenerationError("Source could not be added to notebook")
    )
    board = FakeBoard()
    runner = make_runner(generator, tracker, extractor, board=board)

    outcomes = await runner.run([], [candidate])

    assert outcomes[0].reason == FailureReason.INVALID_RESOURCE
    assert board.non_podcastable == ["n1"]


@pytest.mark.asyncio
async def test_generic_failure_not_marked(tmp_path, tracker, extractor):
    """Test ordinary failures stay retryable on the board."""
    candidate = make_candidate("n1")
    generator = FakeGenerator(tmp_path / "temp", failing_urls=[candidate.source_url])
    board = FakeBoard()
    runner = make_runner(generator, tracker, extractor, board=board)

    outcomes = await runner.run([], [candidate])

    assert outcomes[0].reason == FailureReason.GENERIC_ERROR
    assert board.non_podcastable == []
    assert tracker.recent_entries() == []


@pytest.mark.asyncio
async def test_marking_failure_does_not_change_outcome(tmp_path, tracker, extractor):
    """Test a board write failure while flagging is only logged."""
    candidate = make_candidate("bad")
    generator = FakeGenerator(tmp_path / "temp", invalid_urls=[candidate.source_url])
    board = FakeBoard(mark_error=RuntimeError("board down"))
    runner = make_runner(generator, tracker, extractor, board=board)

    outcomes = await runner.run([], [candidate])

    assert outcomes[0].reason == FailureReason.INVALID_RESOURCE


@pytest.mark.asyncio
async def test_session_start_failure_fails_every_candidate(tmp_path, tracker, extractor):
    """Test every candidate gets a failure when the session cannot start."""
    generator = FakeGenerator(tmp_path / "temp", init_error=GenerationError("not logged in"))
    runner = make_runner(generator, tracker, extractor)

    outcomes = await runner.run([make_resumable("r1")], [make_candidate("n1")])

    assert [o.reason for o in outcomes] == [FailureReason.GENERIC_ERROR] * 2
    assert generator.call_names == ["initialize", "close"]


@pytest.mark.asyncio
async def test_quota_rechecked_before_each_new_generation(
    generator, tracker, extractor, rate_log_path
):
    """Test an exhausted quota at generation time fails the item."""
    seed_rate_log(rate_log_path, [NOW - timedelta(hours=1)] * 3)
    runner = make_runner(generator, tracker, extractor)

    outcomes = await runner.run([], [make_candidate("n1")])

    assert outcomes[0].reason == FailureReason.GENERIC_ERROR
    assert isinstance(outcomes[0].error, QuotaExhaustedError)
    assert "create" not in generator.call_names


@pytest.mark.asyncio
async def test_rate_log_failure_is_fatal(generator, tracker, extractor, rate_log_path):
    """Test an unreadable rate log aborts the phase but closes the session."""
    rate_log_path.parent.mkdir(parents=True)
    rate_log_path.write_text("not json")
    runner = make_runner(generator, tracker, extractor)

    with pytest.raises(RateLimitLogError):
        await runner.run([], [make_candidate("n1")])

    assert generator.closed


@pytest.mark.asyncio
async def test_close_failure_is_not_raised(tmp_path, tracker, extractor):
    """Test outcomes are returned even if the session fails to close."""
    generator = FakeGenerator(tmp_path / "temp", close_error=RuntimeError("browser gone"))
    runner = make_runner(generator, tracker, extractor)

    outcomes = await runner.run([make_resumable("r1")], [])

    assert isinstance(outcomes[0], GenerationSuccess)


@pytest.mark.asyncio
async def test_zero_delay_never_sleeps(generator, tracker, extractor):
    """Test a zero cooldown skips waiting."""
    runner = make_runner(generator, tracker, extractor, delay=0)

    with patch("podforge.batch.generation.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await runner.run([], [make_candidate("n1"), make_candidate("n2")])

    mock_sleep.assert_not_awaited()
