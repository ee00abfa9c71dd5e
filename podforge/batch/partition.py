"""Split candidates into resumable and quota-limited new work."""

from typing import Sequence

from ..domain.models import Candidate, PartitionedCandidates
from ..logging import get_logger

logger = get_logger(__name__)


def partition_candidates(
    candidates: Sequence[Candidate], remaining_slots: int
) -> PartitionedCandidates:
    """Partition candidates for one batch run.

    Resumable candidates already have a started generation and cost no
    quota. The remaining candidates are truncated to ``remaining_slots``
    in input order; the overflow is deferred to a later run.

    Args:
        candidates: Candidates in board priority order
        remaining_slots: New generations still allowed

    Returns:
        PartitionedCandidates where every input lands in exactly one list
    """
    slots = max(0, remaining_slots)
    resumable = [c for c in candidates if c.is_resumable]
    new = [c for c in candidates if not c.is_resumable]

    new_to_process = new[:slots]
    deferred = new[slots:]

    if deferred:
        logger.info(
            "Rate limit truncated new candidates",
            requested=len(new),
            processing=len(new_to_process),
            deferred=len(deferred),
        )

    return PartitionedCandidates(
        resumable=resumable,
        new_to_process=new_to_process,
        deferred=deferred,
    )
