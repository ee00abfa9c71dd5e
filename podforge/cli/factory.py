"""Build pipeline components from configuration.

This is the only place where global configuration is read; everything
below it gets its settings injected.
"""

from datetime import timedelta

from ..batch import BatchOrchestrator, GenerationPhaseRunner, PublishPhaseRunner
from ..config import PodforgeConfig
from ..core.board import BoardColumns, MondayBoardService
from ..core.metadata import ArticleMetadataExtractor, load_podcast_instructions
from ..core.notebooklm import NotebookLMAdapter
from ..core.redcircle import RedCirclePublisher
from ..core.transcode import TranscodeEngine
from ..domain.models import ConversionOptions
from ..state import RateLimitTracker


def build_tracker(config: PodforgeConfig) -> RateLimitTracker:
    return RateLimitTracker(
        log_path=config.rate_log_path,
        limit=config.rate_limit_count,
        window=timedelta(hours=config.rate_limit_window_hours),
        retention=timedelta(days=config.rate_log_retention_days),
    )


def build_metadata_extractor(config: PodforgeConfig) -> ArticleMetadataExtractor:
    return ArticleMetadataExtractor(timeout=config.http_timeout)


def build_board(config: PodforgeConfig, prepare: bool = True) -> MondayBoardService:
    """Board service; ``prepare`` enables metadata backfill before selection."""
    columns = BoardColumns(
        source_url=config.monday_source_url_column,
        podcast_link=config.monday_podcast_link_column,
        notebooklm_link=config.monday_notebooklm_column,
        non_podcastable=config.monday_non_podcastable_column,
        metadata=config.monday_metadata_column,
        type=config.monday_type_column,
        podcast_fitness=config.monday_fitness_column,
    )
    return MondayBoardService(
        api_token=config.monday_api_token,
        board_url=config.monday_board_url,
        columns=columns,
        excluded_groups=config.excluded_groups,
        metadata_extractor=build_metadata_extractor(config) if prepare else None,
        timeout=config.http_timeout,
    )


def build_generator(config: PodforgeConfig) -> NotebookLMAdapter:
    return NotebookLMAdapter(
        binary=config.notebooklm_bin,
        temp_dir=config.temp_dir,
        language=config.notebooklm_language,
        instructions=load_podcast_instructions(config.podcast_instructions_path),
        start_attempts=config.generation_start_attempts,
        start_timeout=config.generation_start_timeout,
        start_pause=config.generation_start_pause,
    )


def build_publisher(config: PodforgeConfig) -> RedCirclePublisher:
    return RedCirclePublisher(
        show_url=config.redcircle_show_url,
        auth_state_path=config.redcircle_auth_state,
        headless=config.headless,
    )


def build_conversion_options(config: PodforgeConfig) -> ConversionOptions:
    return ConversionOptions(
        bitrate=config.mp3_bitrate,
        quality=config.mp3_quality,
        sample_rate=config.mp3_sample_rate,
    )


def build_orchestrator(config: PodforgeConfig, max_candidates: int) -> BatchOrchestrator:
    """Wire a full batch run. No external session is opened here."""
    board = build_board(config)
    tracker = build_tracker(config)

    generation = GenerationPhaseRunner(
        generator=build_generator(config),
        board=board,
        metadata_extractor=build_metadata_extractor(config),
        tracker=tracker,
        new_generation_delay=config.new_generation_delay,
    )
    publish = PublishPhaseRunner(
        publisher=build_publisher(config),
        converter=TranscodeEngine(),
        board=board,
        downloads_dir=config.downloads_dir,
        conversion_options=build_conversion_options(config),
    )
    return BatchOrchestrator(
        board=board,
        tracker=tracker,
        generation=generation,
        publish=publish,
        max_candidates=max_candidates,
    )
