"""Publish adapter driving the RedCircle web UI with Playwright.

The session reuses a stored browser auth state (cookies + local storage)
created by logging in once by hand; no login flow is automated here.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import urljoin

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..domain.models import GeneratedPodcast, UploadedEpisode
from ..errors import PublishError
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RedCircleSelectors:
    """Selectors of the RedCircle show dashboard."""

    new_episode_button: str = "button:has-text('New Episode')"
    title_input: str = "input[name='title']"
    description_input: str = "[contenteditable='true']"
    file_input: str = "input[type='file']"
    upload_complete: str = "text=Upload complete"
    publish_button: str = "button:has-text('Publish')"
    episode_link: str = "a[href*='/episodes/']"


class RedCirclePublisher:
    """Implements ``PublishAdapter`` for RedCircle.

    One browser page is shared by all uploads of a batch.
    """

    def __init__(
        self,
        show_url: Optional[str],
        auth_state_path: Path,
        headless: bool = True,
        selectors: Optional[RedCircleSelectors] = None,
        timeout_ms: float = 30_000,
        upload_timeout_ms: float = 10 * 60 * 1000,
    ):
        """Initialize RedCircle publisher.

        Args:
            show_url: Dashboard URL of the show receiving episodes
            auth_state_path: Playwright storage state saved after logging in
            headless: Run the browser without a window
            selectors: Dashboard selectors
            timeout_ms: Default timeout for page interactions
            upload_timeout_ms: Timeout for the audio upload to finish
        """
        self.show_url = show_url
        self.auth_state_path = Path(auth_state_path)
        self.headless = headless
        self.selectors = selectors or RedCircleSelectors()
        self.timeout_ms = timeout_ms
        self.upload_timeout_ms = upload_timeout_ms

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def initialize(self) -> None:
        """Launch the browser with the saved RedCircle session.

        Raises:
            PublishError: If the show URL or auth state is missing, or the
                browser cannot start
        """
        if not self.show_url:
            raise PublishError("REDCIRCLE_SHOW_URL is not configured")
        if not self.auth_state_path.exists():
            raise PublishError(
                f"No RedCircle auth state at {self.auth_state_path}. Log in once and save the storage state."
            )

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._context = await self._browser.new_context(storage_state=str(self.auth_state_path))
            self._context.set_default_timeout(self.timeout_ms)
            self._page = await self._context.new_page()
        except PlaywrightError as e:
            await self._release()
            raise PublishError(f"Failed to start RedCircle browser session: {e}") from e

        try:
            await self.navigate_to_main_page()
        except PublishError:
            await self._release()
            raise
        logger.info("RedCircle session initialized", show_url=self.show_url)

    def _require_page(self) -> Page:
        if self._page is None:
            raise PublishError("RedCircle session not initialized")
        return self._page

    async def navigate_to_main_page(self) -> None:
        page = self._require_page()
        try:
            await page.goto(self.show_url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise PublishError(f"Failed to open RedCircle show page: {e}") from e

    async def upload_episode(
        self, podcast: GeneratedPodcast, title: str, description: str
    ) -> UploadedEpisode:
        page = self._require_page()
        sel = self.selectors
        audio_path = Path(podcast.audio_path)
        if not audio_path.exists():
            raise PublishError(f"Episode audio not found: {audio_path}")

        logger.info("Uploading episode to RedCircle", title=title, audio=str(audio_path))
        try:
            await page.click(sel.new_episode_button)
            await page.fill(sel.title_input, title)
            await page.fill(sel.description_input, description)
            await page.set_input_files(sel.file_input, str(audio_path))
            await page.wait_for_selector(sel.upload_complete, timeout=self.upload_timeout_ms)
            await page.click(sel.publish_button)

            link = await page.wait_for_selector(sel.episode_link)
            href = await link.get_attribute("href") if link else None
        except PlaywrightError as e:
            raise PublishError(f"RedCircle upload failed for '{title}': {e}") from e

        if not href:
            raise PublishError(f"Published episode link not found for '{title}'")

        episode = UploadedEpisode(podcast_url=urljoin(page.url, href), title=title)
        logger.info("Episode published", title=title, podcast_url=episode.podcast_url)
        return episode

    async def close(self) -> None:
        """Close the page, browser and Playwright driver.

        Raises:
            PublishError: If any handle failed to close; the others are
                still released
        """
        errors = await self._release()
        if errors:
            raise PublishError(f"Failed to close RedCircle session: {errors[0]}")

    async def _release(self) -> List[Exception]:
        errors: List[Exception] = []
        steps = (
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._playwright, "stop"),
        )
        for name, handle, method in steps:
            if handle is None:
                continue
            try:
                await getattr(handle, method)()
            except Exception as e:
                logger.warning("Failed to release RedCircle handle", handle=name, error=str(e))
                errors.append(e)

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        return errors
