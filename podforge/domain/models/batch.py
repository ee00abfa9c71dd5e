"""Per-candidate outcomes and the batch report model."""

from dataclasses import dataclass, field
from typing import List, Tuple, Union

from ..enums import ErrorPhase, FailureReason
from .candidate import Candidate
from .podcast import GeneratedPodcast


@dataclass(frozen=True)
class GenerationSuccess:
    """Generation finished and the audio is downloaded."""

    candidate: Candidate
    podcast: GeneratedPodcast


@dataclass(frozen=True)
class GenerationFailure:
    """Generation failed for one candidate."""

    candidate: Candidate
    reason: FailureReason
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


GenerationOutcome = Union[GenerationSuccess, GenerationFailure]


@dataclass(frozen=True)
class ProcessingError:
    """One entry of the batch error report."""

    url: str
    phase: ErrorPhase
    message: str


@dataclass(frozen=True)
class PartitionedCandidates:
    """Candidates split by how they enter the generation phase.

    ``deferred`` holds new candidates cut off by the quota. They are left
    for a later run and never reported as errors.
    """

    resumable: List[Candidate] = field(default_factory=list)
    new_to_process: List[Candidate] = field(default_factory=list)
    deferred: List[Candidate] = field(default_factory=list)

    @property
    def to_process_count(self) -> int:
        return len(self.resumable) + len(self.new_to_process)


@dataclass(frozen=True)
class BatchResult:
    """Full accounting of one batch run."""

    total: int
    successful_generations: int
    successful_uploads: int
    errors: Tuple[ProcessingError, ...] = ()

    @classmethod
    def empty(cls) -> "BatchResult":
        return cls(total=0, successful_generations=0, successful_uploads=0)

    def errors_for(self, phase: ErrorPhase) -> List[ProcessingError]:
        return [e for e in self.errors if e.phase == phase]

    @property
    def generation_errors(self) -> List[ProcessingError]:
        return self.errors_for(ErrorPhase.GENERATION)

    @property
    def upload_errors(self) -> List[ProcessingError]:
        return self.errors_for(ErrorPhase.UPLOAD)

    @property
    def invalid_resources(self) -> List[ProcessingError]:
        return self.errors_for(ErrorPhase.INVALID_RESOURCE)

    @property
    def has_errors(self) -> bool:
        return bool(self.generation_errors or self.upload_errors)
