"""Persistent state for podforge batch runs."""

from .rate_limit import RateLimitEntry, RateLimitLog, RateLimitTracker, make_run_id

__all__ = [
    "RateLimitTracker",
    "RateLimitEntry",
    "RateLimitLog",
    "make_run_id",
]
