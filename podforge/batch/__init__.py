"""Batch generation-and-publish pipeline.

Candidates are partitioned against the generation quota, generated one at
a time over a single adapter session, then published over a single
publishing session.
"""

from .generation import GenerationPhaseRunner
from .orchestrator import BatchOrchestrator
from .partition import partition_candidates
from .publish import PublishPhaseRunner
from .report import print_batch_report

__all__ = [
    "partition_candidates",
    "GenerationPhaseRunner",
    "PublishPhaseRunner",
    "BatchOrchestrator",
    "print_batch_report",
]
