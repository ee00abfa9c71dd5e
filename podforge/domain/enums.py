"""Enums for the podforge domain layer."""

from enum import Enum


class ErrorPhase(str, Enum):
    """Batch phase an error is attributed to in the report."""

    GENERATION = "generation"
    UPLOAD = "upload"
    INVALID_RESOURCE = "invalid_resource"


class FailureReason(str, Enum):
    """Why a single generation attempt failed."""

    INVALID_RESOURCE = "invalid_resource"
    GENERIC_ERROR = "generic_error"


class ContentType(str, Enum):
    """Kind of source content on the board."""

    ARTICLE = "Article"
    VIDEO = "Video"


class BoardErrorType(str, Enum):
    """Failure categories for the work-item board."""

    INVALID_CONFIG = "invalid_config"
    BOARD_ACCESS_ERROR = "board_access_error"
    API_ERROR = "api_error"
