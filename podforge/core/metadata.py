"""Article content analysis - decides whether a URL is worth narrating.

No UI dependencies. Pages are fetched with httpx and parsed with
BeautifulSoup; the scoring itself is pure and works on HTML text.
"""

import asyncio
import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import httpx
from bs4 import BeautifulSoup, Tag

from ..domain.enums import ContentType
from ..domain.models import ArticleMetadata, PodcastDetails
from ..errors import with_async_retries
from ..logging import get_logger

logger = get_logger(__name__)

CODE_PERCENTAGE_THRESHOLD = 8.0
BATCH_SIZE = 10
MAX_INSTRUCTIONS_LENGTH = 500
DESCRIPTION_SEPARATOR = "=============="
USER_AGENT = "Mozilla/5.0 (compatible; podforge/1.0; +https://github.com/podforge)"

TITLE_META = [
    {"property": "og:title"},
    {"name": "twitter:title"},
    {"name": "title"},
]
DESCRIPTION_META = [
    {"property": "og:description"},
    {"name": "twitter:description"},
    {"name": "description"},
]


@dataclass(frozen=True)
class ArticleAnalysis:
    """Raw content measurements for one page."""

    title: str
    description: Optional[str]
    code_content_percentage: float
    is_video_article: bool
    total_text_length: int


def _meta_content(soup: BeautifulSoup, candidates: List[Dict[str, str]]) -> Optional[str]:
    for attrs in candidates:
        tag = soup.find("meta", attrs=attrs)
        if isinstance(tag, Tag):
            content = (tag.get("content") or "").strip()
            if content:
                return content
    return None


def _main_content(soup: BeautifulSoup) -> Tag:
    for name in ("article", "main", "body"):
        tag = soup.find(name)
        if isinstance(tag, Tag):
            return tag
    return soup


def _is_video_iframe(src: Optional[str]) -> bool:
    return bool(src) and ("youtube" in src or "vimeo" in src)


def analyze_html(url: str, html: str) -> ArticleAnalysis:
    """Measure code share, video presence and titles of an HTML page.

    Only ``<pre>`` blocks count as code; inline ``<code>`` is prose.
    """
    soup = BeautifulSoup(html, "html.parser")
    main = _main_content(soup)

    code_length = sum(len(pre.get_text()) for pre in main.find_all("pre"))
    prose = copy.copy(main)
    for pre in prose.find_all("pre"):
        pre.decompose()
    total_text_length = code_length + len(prose.get_text())

    ratio = code_length / total_text_length if total_text_length else 0.0

    is_video = (
        main.find("video") is not None
        or main.find("iframe", src=_is_video_iframe) is not None
        or "watch the video" in main.get_text().lower()
    )

    title_tag = soup.find("title")
    page_title = title_tag.get_text().strip() if title_tag else ""
    title = _meta_content(soup, TITLE_META) or page_title or url

    return ArticleAnalysis(
        title=title,
        description=_meta_content(soup, DESCRIPTION_META),
        code_content_percentage=round(ratio * 100, 3),
        is_video_article=is_video,
        total_text_length=total_text_length,
    )


def to_article_metadata(analysis: ArticleAnalysis) -> ArticleMetadata:
    """Apply the podcastability rules to a page analysis."""
    return ArticleMetadata(
        title=analysis.title,
        description=analysis.description,
        content_type=ContentType.VIDEO if analysis.is_video_article else ContentType.ARTICLE,
        is_non_podcastable=(
            analysis.is_video_article
            or analysis.code_content_percentage > CODE_PERCENTAGE_THRESHOLD
        ),
        code_content_percentage=analysis.code_content_percentage,
        total_text_length=analysis.total_text_length,
    )


class ArticleMetadataExtractor:
    """Fetches source pages and classifies them.

    Pass an ``httpx.AsyncClient`` to share connections (or to inject a
    mock transport); otherwise a short-lived client is used per request.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        batch_size: int = BATCH_SIZE,
    ):
        self._client = client
        self.timeout = timeout
        self.batch_size = batch_size

    @with_async_retries()
    async def _fetch_html(self, url: str) -> str:
        if self._client is not None:
            response = await self._client.get(url)
        else:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.text

    async def analyze_url(self, url: str) -> ArticleAnalysis:
        logger.info("Analyzing article content", url=url)
        try:
            html = await self._fetch_html(url)
        except Exception as e:
            logger.error("Failed to analyze content", url=url, error=str(e))
            raise

        analysis = analyze_html(url, html)
        logger.info(
            "Content analysis complete",
            url=url,
            title=analysis.title,
            video=analysis.is_video_article,
            code_percentage=analysis.code_content_percentage,
        )
        return analysis

    async def extract_metadata_from_url(self, url: str) -> ArticleMetadata:
        return to_article_metadata(await self.analyze_url(url))

    async def extract_metadata_batch(self, urls: Iterable[str]) -> Dict[str, ArticleMetadata]:
        """Classify many URLs, ``batch_size`` at a time.

        Failed URLs are logged and left out of the result.
        """
        urls = list(urls)
        if not urls:
            logger.warning("No URLs provided for batch analysis")
            return {}

        results: Dict[str, ArticleMetadata] = {}
        total_batches = (len(urls) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(urls), self.batch_size):
            batch = urls[start : start + self.batch_size]
            batch_number = start // self.batch_size + 1
            logger.info(
                "Processing metadata batch",
                batch=f"{batch_number}/{total_batches}",
                size=len(batch),
            )

            outcomes = await asyncio.gather(
                *(self.extract_metadata_from_url(url) for url in batch),
                return_exceptions=True,
            )
            for url, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Failed to extract metadata", url=url, error=str(outcome))
                else:
                    results[url] = outcome

        logger.info("Batch analysis complete", processed=len(results), requested=len(urls))
        return results


def finalize_podcast_details(
    metadata: ArticleMetadata,
    details: PodcastDetails,
    source_url: Optional[str] = None,
    item_url: Optional[str] = None,
) -> PodcastDetails:
    """Compose the published title and description of an episode."""
    lines = []
    if source_url:
        lines.append(f"Source: {source_url}")
    if item_url:
        lines.append(f"Board item: {item_url}")
    lines.append(f"Code content percentage: {metadata.code_content_percentage}%")
    lines.append(f"Total text length: {metadata.total_text_length} characters")

    description = f"{details.description}\n\n{DESCRIPTION_SEPARATOR}\n\n" + "\n".join(lines)
    return PodcastDetails(title=details.title, description=description)


def load_podcast_instructions(
    path: Path, max_length: int = MAX_INSTRUCTIONS_LENGTH
) -> Optional[str]:
    """Read custom podcast instructions, if any.

    Returns:
        Trimmed instructions (truncated to ``max_length``), or None when the
        file is missing, empty or unreadable
    """
    path = Path(path)
    if not path.exists():
        logger.info("No podcast instructions found, using default style", path=str(path))
        return None

    try:
        content = path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning("Failed to read podcast instructions", path=str(path), error=str(e))
        return None

    if len(content) > max_length:
        logger.warning("Podcast instructions truncated", max_length=max_length)
        content = content[:max_length]

    if not content:
        return None

    logger.info("Loaded podcast instructions", length=len(content))
    return content
