"""podforge - turn board articles into published podcast episodes.

Reads candidate articles from a monday.com board, generates narrated audio
with NotebookLM under a rolling daily quota, converts it to MP3 and
publishes it on RedCircle, writing every result back to the board.

Quick Start:
    $ podforge batch            # one full batch run
    $ podforge quota            # remaining generation slots
    $ podforge score --url URL  # is this article podcastable?
"""

# Version
__version__ = "1.0.0"

from podforge.batch import (
    BatchOrchestrator,
    GenerationPhaseRunner,
    PublishPhaseRunner,
    partition_candidates,
)
from podforge.config import get_config
from podforge.domain import BatchResult, Candidate, ErrorPhase, FailureReason
from podforge.errors import (
    BoardError,
    GenerationError,
    InvalidResourceError,
    PodforgeError,
    RateLimitLogError,
)
from podforge.state import RateLimitTracker

__all__ = [
    "__version__",
    "get_config",
    # Pipeline
    "BatchOrchestrator",
    "GenerationPhaseRunner",
    "PublishPhaseRunner",
    "RateLimitTracker",
    "partition_candidates",
    # Models
    "BatchResult",
    "Candidate",
    "ErrorPhase",
    "FailureReason",
    # Errors
    "PodforgeError",
    "BoardError",
    "GenerationError",
    "InvalidResourceError",
    "RateLimitLogError",
]
