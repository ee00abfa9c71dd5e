"""Board candidate and article classification models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import ContentType


class ArticleMetadata(BaseModel):
    """Classification of a source article's suitability for narration."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str = Field(..., description="Resolved article title")
    description: Optional[str] = Field(None, description="Meta description, if any")
    content_type: ContentType = Field(
        ContentType.ARTICLE, alias="contentType", description="Article or Video"
    )
    is_non_podcastable: bool = Field(
        False, alias="isNonPodcastable", description="Video or code-heavy content"
    )
    code_content_percentage: float = Field(
        0.0, alias="codeContentPercentage", description="Share of text inside code blocks"
    )
    total_text_length: int = Field(
        0, alias="totalTextLength", description="Characters of main content text"
    )


class Candidate(BaseModel):
    """One board work item selected for podcast generation.

    Immutable for the duration of a batch run. ``notebooklm_url`` is the
    reference to a generation started in an earlier run; candidates that
    carry one are resumable.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    source_url: str
    notebooklm_url: Optional[str] = None
    metadata: Optional[ArticleMetadata] = None
    podcast_fitness: float = 0.0

    @property
    def is_resumable(self) -> bool:
        return bool(self.notebooklm_url)
