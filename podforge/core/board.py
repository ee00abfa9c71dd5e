"""Work-item board service for monday.com.

Candidates come from board items; generation results are written back as
column values. Talks GraphQL to the monday.com API over httpx.
"""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from ..domain.enums import BoardErrorType, ContentType
from ..domain.models import ArticleMetadata, Candidate
from ..errors import BoardError, NetworkError, with_async_retries
from ..logging import get_logger
from .metadata import ArticleMetadataExtractor

logger = get_logger(__name__)

MONDAY_API_URL = "https://api.monday.com/v2"
MONDAY_API_VERSION = "2024-10"
BOARD_URL_PATTERN = re.compile(r"https://[^.]+\.monday\.com/boards/(\d+)")
BOARD_BASE_PATTERN = re.compile(r"^(https?://[^/]+/boards/\d+)")
ITEMS_LIMIT = 500
UPDATE_BATCH_SIZE = 10
UPDATE_BATCH_DELAY = 15.0

ITEMS_QUERY = """
query GetBoardItems($boardId: [ID!]) {
  boards(ids: $boardId) {
    items_page(limit: %(limit)d%(query_params)s) {
      items {
        id
        name
        group { id title }
        column_values {
          id
          value
          text
          type
          ... on FormulaValue { display_value }
        }
      }
    }
  }
}
"""

COLUMNS_QUERY = """
query GetBoard($boardId: ID!) {
  boards(ids: [$boardId]) {
    id
    name
    columns { id title type }
  }
}
"""

CHANGE_COLUMN_VALUE = """
mutation ChangeColumnValue($boardId: ID!, $itemId: ID!, $columnId: String!, $value: JSON!) {
  change_column_value(board_id: $boardId, item_id: $itemId, column_id: $columnId, value: $value) {
    id
  }
}
"""

CHANGE_MULTIPLE_COLUMN_VALUES = """
mutation ChangeMultipleColumnValues($boardId: ID!, $itemId: ID!, $columnValues: JSON!) {
  change_multiple_column_values(board_id: $boardId, item_id: $itemId, column_values: $columnValues) {
    id
  }
}
"""


@dataclass(frozen=True)
class BoardColumns:
    """Column ids of the board layout."""

    source_url: str = "link"
    podcast_link: str = "podcast_link"
    notebooklm_link: str = "notebooklm_link"
    non_podcastable: str = "non_podcastable"
    metadata: str = "metadata"
    type: str = "type"
    podcast_fitness: str = "podcast_fitness"

    def required_types(self) -> Dict[str, Optional[str]]:
        """Expected monday column type per column id (None = any type)."""
        return {
            self.source_url: "link",
            self.podcast_link: "link",
            self.notebooklm_link: "link",
            self.non_podcastable: "checkbox",
            self.metadata: "long_text",
            self.type: "status",
            self.podcast_fitness: None,
        }


@dataclass(frozen=True)
class BoardItem:
    """Parsed board item."""

    id: str
    name: str
    source_url: Optional[str] = None
    podcast_fitness: float = 0.0
    metadata: Optional[ArticleMetadata] = None
    non_podcastable: Optional[bool] = None
    content_type: Optional[str] = None
    notebooklm_url: Optional[str] = None
    podcast_link: Optional[str] = None
    group_id: Optional[str] = None


def extract_board_id(board_url: str) -> str:
    """Board id from a board URL; views and filters in the URL are fine.

    Raises:
        BoardError: If the URL is not a monday.com board URL
    """
    match = BOARD_URL_PATTERN.search(board_url or "")
    if not match:
        raise BoardError(
            BoardErrorType.INVALID_CONFIG,
            f"Invalid Monday.com board URL format: {board_url}. "
            "Expected format: https://company.monday.com/boards/123456789",
        )
    return match.group(1)


def is_url_only_name(name: str) -> bool:
    """True when an item name is nothing but an http(s) URL."""
    if not name or " " in name:
        return False
    parsed = urlparse(name)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _safe_json(raw: Optional[str]) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


def _link_url(raw: Optional[str]) -> Optional[str]:
    value = _safe_json(raw)
    if isinstance(value, dict):
        return value.get("url") or None
    return None


def _parse_metadata(raw: Optional[str]) -> Optional[ArticleMetadata]:
    value = _safe_json(raw)
    if isinstance(value, dict) and isinstance(value.get("text"), str):
        value = _safe_json(value["text"])
    if not isinstance(value, dict):
        return None
    try:
        return ArticleMetadata.model_validate(value)
    except ValueError:
        return None


def _parse_fitness(column: Optional[Dict[str, Any]]) -> float:
    if not column:
        return 0.0
    display = column.get("display_value") or column.get("text") or "0"
    try:
        return float(display)
    except (TypeError, ValueError):
        return 0.0


class MondayBoardService:
    """Implements ``BoardService`` against a monday.com board."""

    def __init__(
        self,
        api_token: Optional[str],
        board_url: Optional[str],
        columns: Optional[BoardColumns] = None,
        excluded_groups: Sequence[str] = (),
        metadata_extractor: Optional[ArticleMetadataExtractor] = None,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = MONDAY_API_URL,
        update_batch_size: int = UPDATE_BATCH_SIZE,
        update_batch_delay: float = UPDATE_BATCH_DELAY,
        timeout: float = 30.0,
    ):
        """Initialize board service.

        Args:
            api_token: monday.com API token
            board_url: Board URL (the board id is parsed from it)
            columns: Column ids of the board layout
            excluded_groups: Group ids never read
            metadata_extractor: Enables board preparation before candidate selection
            client: Shared httpx client (a per-request client is used otherwise)
            api_url: GraphQL endpoint
            update_batch_size: Items updated concurrently during preparation
            update_batch_delay: Seconds between preparation batches
            timeout: Request timeout in seconds

        Raises:
            BoardError: If the token or board URL is missing or malformed
        """
        if not api_token:
            raise BoardError(
                BoardErrorType.INVALID_CONFIG, "MONDAY_API_TOKEN environment variable is required"
            )
        if not board_url:
            raise BoardError(
                BoardErrorType.INVALID_CONFIG, "MONDAY_BOARD_URL environment variable is required"
            )

        self.api_token = api_token
        self.board_url = board_url
        self.board_id = extract_board_id(board_url)
        self.columns = columns or BoardColumns()
        self.excluded_groups = list(excluded_groups)
        self.metadata_extractor = metadata_extractor
        self._client = client
        self.api_url = api_url
        self.update_batch_size = update_batch_size
        self.update_batch_delay = update_batch_delay
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @with_async_retries()
    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Authorization": self.api_token,
            "API-Version": MONDAY_API_VERSION,
            "Content-Type": "application/json",
        }
        if self._client is not None:
            return await self._client.post(self.api_url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.api_url, json=payload, headers=headers)

    async def _request(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a GraphQL operation and return its ``data``.

        Raises:
            BoardError: On HTTP failures or GraphQL errors
        """
        try:
            response = await self._post({"query": query, "variables": variables})
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, NetworkError, ValueError) as e:
            raise BoardError(BoardErrorType.API_ERROR, f"Monday API request failed: {e}", cause=e) from e

        if body.get("errors"):
            messages = "; ".join(str(err.get("message", err)) for err in body["errors"])
            raise BoardError(BoardErrorType.API_ERROR, f"Monday API error: {messages}", cause=body["errors"])
        return body.get("data") or {}

    async def _change_column_value(self, item_id: str, column_id: str, value: Any) -> None:
        await self._request(
            CHANGE_COLUMN_VALUE,
            {
                "boardId": self.board_id,
                "itemId": item_id,
                "columnId": column_id,
                "value": json.dumps(value),
            },
        )

    async def _change_multiple_column_values(self, item_id: str, values: Dict[str, Any]) -> None:
        await self._request(
            CHANGE_MULTIPLE_COLUMN_VALUES,
            {
                "boardId": self.board_id,
                "itemId": item_id,
                "columnValues": json.dumps(values),
            },
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_board_items(self) -> List[BoardItem]:
        """Fetch every item outside the excluded groups.

        Raises:
            BoardError: On API failure, or when the page limit is hit
        """
        logger.info("Fetching board items", board_id=self.board_id, excluded_groups=self.excluded_groups)

        query_params = ""
        if self.excluded_groups:
            query_params = (
                ', query_params: {rules: [{column_id: "group", compare_value: %s, operator: not_any_of}]}'
                % json.dumps(self.excluded_groups)
            )
        query = ITEMS_QUERY % {"limit": ITEMS_LIMIT, "query_params": query_params}

        data = await self._request(query, {"boardId": [self.board_id]})
        boards = data.get("boards") or []
        page = (boards[0] or {}).get("items_page") if boards else None
        if not page or page.get("items") is None:
            raise BoardError(BoardErrorType.API_ERROR, "Unexpected response from Monday API - no items found")

        items = [self._parse_item(raw) for raw in page["items"]]
        if len(items) == ITEMS_LIMIT:
            raise BoardError(
                BoardErrorType.API_ERROR,
                f"Retrieved {len(items)} items, which is the page limit. Pagination is not supported.",
            )

        logger.info("Retrieved board items", count=len(items))
        return items

    def _parse_item(self, raw: Dict[str, Any]) -> BoardItem:
        values = {cv.get("id"): cv for cv in raw.get("column_values") or []}
        cols = self.columns

        def raw_value(column_id: str) -> Optional[str]:
            return (values.get(column_id) or {}).get("value")

        checked = _safe_json(raw_value(cols.non_podcastable))
        non_podcastable = None
        if isinstance(checked, dict) and checked.get("checked") is not None:
            non_podcastable = str(checked["checked"]).lower() == "true"

        return BoardItem(
            id=str(raw["id"]),
            name=raw.get("name") or "",
            source_url=_link_url(raw_value(cols.source_url)),
            podcast_fitness=_parse_fitness(values.get(cols.podcast_fitness)),
            metadata=_parse_metadata(raw_value(cols.metadata)),
            non_podcastable=non_podcastable,
            content_type=(values.get(cols.type) or {}).get("text") or None,
            notebooklm_url=_link_url(raw_value(cols.notebooklm_link)),
            podcast_link=_link_url(raw_value(cols.podcast_link)),
            group_id=(raw.get("group") or {}).get("id"),
        )

    async def get_podcast_candidates(self, max_items: int = 3) -> List[Candidate]:
        """Top ``max_items`` items by podcast fitness.

        Eligible items have positive fitness, an http(s) source URL, no
        published podcast and no non-podcastable flag.
        """
        if self.metadata_extractor is not None:
            await self.prepare_board_data()

        items = await self.get_board_items()
        eligible = [
            item
            for item in items
            if item.podcast_fitness > 0
            and (item.source_url or "").startswith("http")
            and not item.podcast_link
            and not item.non_podcastable
        ]
        eligible.sort(key=lambda item: item.podcast_fitness, reverse=True)
        selected = eligible[:max_items]

        logger.info("Selected podcast candidates", eligible=len(eligible), selected=len(selected))
        return [
            Candidate(
                id=item.id,
                name=item.name,
                source_url=item.source_url,
                notebooklm_url=item.notebooklm_url,
                metadata=item.metadata,
                podcast_fitness=item.podcast_fitness,
            )
            for item in selected
        ]

    # ------------------------------------------------------------------
    # Board preparation
    # ------------------------------------------------------------------

    async def prepare_board_data(self) -> None:
        """Fill in source URLs, titles and metadata the board is missing."""
        await self._update_items_with_urls_in_names()
        await self._update_items_with_missing_metadata()

    async def _update_items_with_urls_in_names(self) -> None:
        items = await self.get_board_items()
        targets = [i for i in items if is_url_only_name(i.name) and not i.source_url]
        if not targets:
            logger.info("No items with URLs in names found, skipping")
            return

        logger.info("Resolving titles for URL-named items", count=len(targets))
        metadata = await self.metadata_extractor.extract_metadata_batch([i.name for i in targets])

        async def update(item: BoardItem) -> None:
            found = metadata.get(item.name)
            if found is None:
                logger.warning("No metadata found for item", item_id=item.id, url=item.name)
                return
            await self._change_multiple_column_values(
                item.id,
                {"name": found.title, self.columns.source_url: {"url": item.name, "text": item.name}},
            )
            logger.info("Updated item with URL and title", item_id=item.id, title=found.title)

        await self._process_in_batches(targets, update)

    async def _update_items_with_missing_metadata(self) -> None:
        items = await self.get_board_items()
        articles = [
            i for i in items if i.content_type in (None, ContentType.ARTICLE.value)
        ]
        if items and not articles:
            raise BoardError(
                BoardErrorType.BOARD_ACCESS_ERROR,
                f"No article items found; check that the type column uses '{ContentType.ARTICLE.value}'",
            )

        targets = [i for i in articles if i.metadata is None and i.source_url]
        if not targets:
            logger.info("No items with missing metadata found, skipping")
            return

        logger.info("Extracting metadata for items", count=len(targets))
        metadata = await self.metadata_extractor.extract_metadata_batch([i.source_url for i in targets])

        async def update(item: BoardItem) -> None:
            found = metadata.get(item.source_url)
            if found is None:
                logger.warning("No metadata found for item", item_id=item.id, url=item.source_url)
                return
            await self._change_multiple_column_values(item.id, self._metadata_values(found))
            logger.info("Updated item with metadata", item_id=item.id, type=found.content_type.value)

        await self._process_in_batches(targets, update)

    def _metadata_values(self, metadata: ArticleMetadata) -> Dict[str, Any]:
        return {
            self.columns.type: {"label": metadata.content_type.value},
            self.columns.metadata: {
                "text": json.dumps(metadata.model_dump(mode="json", by_alias=True))
            },
            self.columns.non_podcastable: {
                "checked": "true" if metadata.is_non_podcastable else "false"
            },
        }

    async def _process_in_batches(self, items: Iterable[BoardItem], update) -> None:
        items = list(items)
        for start in range(0, len(items), self.update_batch_size):
            batch = items[start : start + self.update_batch_size]
            await asyncio.gather(*(update(item) for item in batch))
            if start + self.update_batch_size < len(items) and self.update_batch_delay > 0:
                logger.info("Waiting between board update batches", seconds=self.update_batch_delay)
                await asyncio.sleep(self.update_batch_delay)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_item_with_generated_podcast_url(self, item_id: str, podcast_url: str) -> None:
        await self._change_column_value(
            item_id, self.columns.podcast_link, {"url": podcast_url, "text": podcast_url}
        )
        logger.info("Updated item with podcast URL", item_id=item_id, podcast_url=podcast_url)

    async def mark_item_as_non_podcastable(self, item_id: str) -> None:
        logger.info("Marking item as non-podcastable", item_id=item_id)
        await self._change_column_value(item_id, self.columns.non_podcastable, {"checked": "true"})
        logger.info("Marked item as non-podcastable", item_id=item_id)

    async def update_item_with_notebooklm_audio_link_and_title(
        self, item_id: str, notebook_url: str, title: str
    ) -> None:
        logger.info("Updating item with NotebookLM link and title", item_id=item_id, title=title)
        await self._change_multiple_column_values(
            item_id,
            {
                "name": title,
                self.columns.notebooklm_link: {"url": notebook_url, "text": notebook_url},
            },
        )

    def construct_item_url(self, item_id: str) -> str:
        match = BOARD_BASE_PATTERN.search(self.board_url)
        if not match:
            raise BoardError(BoardErrorType.INVALID_CONFIG, "Invalid board URL format")
        return f"{match.group(1)}/pulses/{item_id}"

    async def validate_board_access(self) -> None:
        """Check the board is reachable and has the expected columns.

        Raises:
            BoardError: If the board or a required column is missing
        """
        data = await self._request(COLUMNS_QUERY, {"boardId": self.board_id})
        boards = data.get("boards") or []
        if not boards:
            raise BoardError(
                BoardErrorType.BOARD_ACCESS_ERROR, f"Board {self.board_id} not found or no access"
            )

        columns = {c["id"]: c for c in boards[0].get("columns") or [] if c}
        if not columns:
            raise BoardError(BoardErrorType.BOARD_ACCESS_ERROR, "Board has no columns available")

        for column_id, expected in self.columns.required_types().items():
            column = columns.get(column_id)
            if column is None:
                raise BoardError(
                    BoardErrorType.BOARD_ACCESS_ERROR, f'Required column "{column_id}" not found in board'
                )
            if expected and column.get("type") != expected:
                raise BoardError(
                    BoardErrorType.BOARD_ACCESS_ERROR,
                    f'Column "{column_id}" has incorrect type. Expected: {expected}, Got: {column.get("type")}',
                )
        logger.info("Board access validated", board_id=self.board_id, board=boards[0].get("name"))
