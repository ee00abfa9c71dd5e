"""Generation adapter backed by the ``notebooklm`` CLI (notebooklm-py).

Every operation shells out to the CLI with asyncio subprocesses. The CLI
keeps the active notebook as its own context, so this adapter holds
single-session state and must not be shared between concurrent tasks.
"""

import asyncio
import json
import re
import time
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..domain.models import NotebookResult, PodcastDetails
from ..errors import (
    GenerationError,
    InvalidResourceError,
    NotebookLMCliError,
    is_invalid_resource_error,
)
from ..logging import get_logger

logger = get_logger(__name__)

NOTEBOOK_URL_TEMPLATE = "https://notebooklm.google.com/notebook/{notebook_id}"
NOTEBOOK_ID_PATTERN = re.compile(r"notebook/([a-zA-Z0-9_-]+)")
CLI_ID_PATTERN = re.compile(r"([a-zA-Z0-9_-]{10,})")

DEFAULT_TITLE = "Untitled Podcast"
DEFAULT_DESCRIPTION = "Generated podcast"

DEFAULT_TIMEOUT = 60.0
SOURCE_ADD_TIMEOUT = 120.0
ARTIFACT_WAIT_TIMEOUT = 900
DOWNLOAD_TIMEOUT = 300.0
START_POLL_INTERVAL = 3.0

# Artifact states showing generation actually started
STARTED_STATES = {"pending", "queued", "in_progress", "processing", "generating", "completed"}
FAILED_SOURCE_STATES = {"error", "failed"}
RATE_LIMIT_MARKERS = ("RATE_LIMITED", "CREATE_ARTIFACT failed")


def notebook_url_for(notebook_id: str) -> str:
    return NOTEBOOK_URL_TEMPLATE.format(notebook_id=notebook_id)


def parse_notebook_id(notebook_url: str) -> str:
    """Extract the notebook id from a NotebookLM URL.

    Raises:
        GenerationError: If the URL has no notebook id
    """
    match = NOTEBOOK_ID_PATTERN.search(notebook_url or "")
    if not match:
        raise GenerationError(f"Invalid NotebookLM URL: {notebook_url}")
    return match.group(1)


def output_path_for(title: str, output_dir: Path, today: Optional[date] = None) -> Path:
    """Build ``<sanitized title>_<YYYY-MM-DD>.mp3`` inside ``output_dir``."""
    sanitized = re.sub(r"[^a-zA-Z0-9\s_-]", "", title)
    sanitized = re.sub(r"\s+", "_", sanitized)[:50]
    stamp = (today or date.today()).isoformat()
    return Path(output_dir) / f"{sanitized}_{stamp}.mp3"


class NotebookLMAdapter:
    """Implements ``GenerationAdapter`` on top of the notebooklm CLI.

    Examples:
        >>> adapter = NotebookLMAdapter(temp_dir=Path("temp"))
        >>> await adapter.initialize()
        >>> result = await adapter.create_notebook_and_generate_audio(url)
        >>> audio = await adapter.download_audio()
    """

    def __init__(
        self,
        binary: str = "notebooklm",
        temp_dir: Path = Path("temp"),
        language: str = "en",
        instructions: Optional[str] = None,
        start_attempts: int = 3,
        start_timeout: float = 60.0,
        start_pause: float = 5.0,
        source_wait_attempts: int = 3,
    ):
        """Initialize NotebookLM adapter.

        Args:
            binary: notebooklm executable name or path
            temp_dir: Directory receiving downloaded audio
            language: Output language code
            instructions: Optional custom podcast instructions
            start_attempts: Tries to get audio generation started
            start_timeout: Seconds to wait for generation to start per try
            start_pause: Seconds between start tries
            source_wait_attempts: Tries to wait for source readiness
        """
        self.binary = binary
        self.temp_dir = Path(temp_dir)
        self.language = language
        self.instructions = instructions
        self.start_attempts = start_attempts
        self.start_timeout = start_timeout
        self.start_pause = start_pause
        self.source_wait_attempts = source_wait_attempts

        self.current_notebook_id: Optional[str] = None
        self.last_title = DEFAULT_TITLE

    async def _run(self, args: List[str], timeout: float = DEFAULT_TIMEOUT) -> str:
        """Run a notebooklm CLI command and return its stdout.

        Raises:
            NotebookLMCliError: If the command is missing, times out or fails
        """
        command = " ".join(["notebooklm", *args])
        logger.debug("Running notebooklm command", command=command)

        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise NotebookLMCliError(f"notebooklm CLI not found: {self.binary}", command=command) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise NotebookLMCliError(f"CLI command timed out after {timeout:.0f}s", command=command)

        if process.returncode != 0:
            raise NotebookLMCliError(
                f"CLI command failed with exit code {process.returncode}",
                stderr=stderr.decode(errors="replace"),
                command=command,
            )
        return stdout.decode(errors="replace")

    async def _run_json(self, args: List[str], timeout: float = DEFAULT_TIMEOUT) -> Dict[str, Any]:
        output = await self._run(args, timeout=timeout)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise NotebookLMCliError(
                "CLI returned invalid JSON", stderr=output[:200], command=" ".join(args)
            ) from e

    # ------------------------------------------------------------------
    # GenerationAdapter protocol
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        try:
            await self._run(["--version"])
        except NotebookLMCliError as e:
            raise GenerationError(
                "notebooklm-py CLI is not installed. Install it with 'pip install notebooklm-py'."
            ) from e

        try:
            status = await self._run_json(["auth", "check", "--json"])
        except NotebookLMCliError as e:
            raise GenerationError("Not authenticated with NotebookLM. Run 'notebooklm login' first.") from e
        if status.get("status") != "ok":
            raise GenerationError("Not authenticated with NotebookLM. Run 'notebooklm login' first.")

        logger.info("NotebookLM CLI adapter initialized")

    async def navigate_to_main_page(self) -> None:
        await self._run(["clear"])
        self.current_notebook_id = None
        logger.debug("Cleared active notebook context")

    async def create_notebook_and_generate_audio(self, source_url: str) -> NotebookResult:
        temp_title = f"Podcast {int(time.time() * 1000)}"

        notebook_id = await self._create_notebook(temp_title)
        self.current_notebook_id = notebook_id
        await self._run(["use", notebook_id])
        await self._run(["language", "set", self.language])

        source_id = await self._add_source(source_url)
        await self._wait_for_source(source_id, source_url)
        await self._start_generation(source_id, source_url)

        # Completion is awaited in download_audio
        artifact = await self._latest_audio_artifact()
        self.last_title = (artifact or {}).get("title") or temp_title

        notebook_url = notebook_url_for(notebook_id)
        logger.info("Created notebook and started audio generation", notebook_url=notebook_url, title=self.last_title)
        return NotebookResult(notebook_url=notebook_url, title=self.last_title)

    async def open_existing_notebook(self, notebook_url: str) -> None:
        notebook_id = parse_notebook_id(notebook_url)
        self.current_notebook_id = notebook_id
        await self._run(["use", notebook_id])

        artifact = await self._latest_audio_artifact()
        if artifact and artifact.get("title"):
            self.last_title = artifact["title"]
        logger.info("Opened existing notebook", notebook_id=notebook_id)

    async def download_audio(self) -> Path:
        if not self.current_notebook_id:
            raise GenerationError("No active notebook. Create or open a notebook first.")

        await self._wait_for_completion()
        artifact = await self._latest_audio_artifact()
        if artifact and artifact.get("title"):
            self.last_title = artifact["title"]

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        output = output_path_for(self.last_title, self.temp_dir)
        await self._run(["download", "audio", str(output), "--latest"], timeout=DOWNLOAD_TIMEOUT)
        logger.info("Audio downloaded", path=str(output))
        return output

    async def get_podcast_details(self) -> PodcastDetails:
        try:
            description = (await self._run(["summary"])).strip()
        except NotebookLMCliError as e:
            logger.warning("Failed to fetch notebook summary", error=str(e))
            description = ""
        return PodcastDetails(title=self.last_title, description=description or DEFAULT_DESCRIPTION)

    async def close(self) -> None:
        self.current_notebook_id = None

    # ------------------------------------------------------------------
    # Generation steps
    # ------------------------------------------------------------------

    async def _create_notebook(self, title: str) -> str:
        output = await self._run(["create", title])
        match = CLI_ID_PATTERN.search(output)
        if not match:
            raise NotebookLMCliError(
                "Could not parse notebook ID from create output",
                stderr=output,
                command=f'notebooklm create "{title}"',
            )
        return match.group(1)

    async def _add_source(self, source_url: str) -> str:
        try:
            output = await self._run(["source", "add", source_url], timeout=SOURCE_ADD_TIMEOUT)
        except NotebookLMCliError as e:
            if is_invalid_resource_error(e):
                raise InvalidResourceError(f"Source rejected: {e}", source_url=source_url) from e
            raise
        match = CLI_ID_PATTERN.search(output)
        return match.group(1) if match else "unknown"

    async def _wait_for_source(self, source_id: str, source_url: str) -> None:
        """Wait for server-side processing of the source.

        Readiness is reported slightly before the source is usable, so the
        wait is retried with backoff.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.source_wait_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                retry=retry_if_exception_type(NotebookLMCliError),
                reraise=True,
            ):
                with attempt:
                    await self._run(
                        ["source", "wait", source_id, "--timeout", str(int(SOURCE_ADD_TIMEOUT))],
                        timeout=SOURCE_ADD_TIMEOUT + 10,
                    )
        except NotebookLMCliError:
            if await self._source_failed(source_id):
                raise InvalidResourceError(
                    f"Source could not be processed: {source_url}", source_url=source_url
                )
            raise

    async def _start_generation(self, source_id: str, source_url: str) -> None:
        """Trigger audio generation until it is observably running."""
        for attempt in range(1, self.start_attempts + 1):
            logger.info("Starting audio generation", attempt=attempt, max_attempts=self.start_attempts)
            args = ["generate", "audio", "--json"]
            if self.instructions:
                args.append(self.instructions)

            try:
                await self._run(args)
            except NotebookLMCliError as e:
                if not any(marker in str(e) for marker in RATE_LIMIT_MARKERS):
                    raise
                logger.info("Generation request rate limited, checking for existing audio")

            if await self._generation_started():
                return

            if attempt < self.start_attempts:
                logger.warning("Audio generation did not start, retrying", pause=self.start_pause)
                await asyncio.sleep(self.start_pause)

        if await self._source_failed(source_id):
            raise InvalidResourceError(
                f"Source could not be processed: {source_url}", source_url=source_url
            )
        raise GenerationError(
            f"Audio generation did not start after {self.start_attempts} attempts"
        )

    async def _generation_started(self) -> bool:
        deadline = time.monotonic() + self.start_timeout
        while True:
            artifact = await self._latest_audio_artifact()
            if artifact and str(artifact.get("status", "")).lower() in STARTED_STATES:
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(START_POLL_INTERVAL)

    async def _wait_for_completion(self) -> None:
        artifact = await self._latest_audio_artifact()
        if not artifact:
            raise NotebookLMCliError("No audio artifact found after generation", command="generate audio")
        if artifact.get("status") == "completed":
            return

        logger.info("Waiting for audio artifact to complete", artifact_id=artifact.get("id"))
        try:
            result = await self._run_json(
                ["artifact", "wait", str(artifact.get("id")), "--timeout", str(ARTIFACT_WAIT_TIMEOUT), "--json"],
                timeout=ARTIFACT_WAIT_TIMEOUT + 30,
            )
            if result.get("status") == "completed":
                return
        except NotebookLMCliError as e:
            logger.warning("Artifact wait failed, checking status directly", error=str(e))

        final = await self._latest_audio_artifact()
        if final and final.get("status") == "completed":
            return
        raise NotebookLMCliError("Audio generation timed out or failed", command="artifact wait")

    async def _latest_audio_artifact(self) -> Optional[Dict[str, Any]]:
        try:
            result = await self._run_json(["artifact", "list", "--type", "audio", "--json"])
        except NotebookLMCliError as e:
            logger.debug("Could not list audio artifacts", error=str(e))
            return None
        artifacts = result.get("artifacts") or []
        return artifacts[0] if artifacts else None

    async def _source_failed(self, source_id: str) -> bool:
        try:
            result = await self._run_json(["source", "list", "--json"])
        except NotebookLMCliError as e:
            logger.debug("Could not list sources", error=str(e))
            return False
        for source in result.get("sources") or []:
            if source.get("id") == source_id:
                return str(source.get("status", "")).lower() in FAILED_SOURCE_STATES
        return False
