"""Data models for vodscribe."""

import enum
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

@dataclass(frozen=True)
class SourceVideo:
    """A downloaded video handed to the pipeline."""
    id: str
    file_path: str
    created_at: str

@dataclass(frozen=True)
class AudioChunk:
    """A bounded time-slice of the source audio, written to its own file."""
    index: int
    total_chunks: int
    file_path: str
    start_offset: float

@dataclass
class Segment:
    """Represents a single timed span of text."""
    id: int
    start: float
    end: float
    text: str

    def shifted(self, delta: float) -> "Segment":
        return Segment(id=self.id, start=self.start + delta, end=self.end + delta, text=self.text)

@dataclass
class ChunkTranscript:
    """Validated speech engine output for one chunk. Timestamps are chunk-relative."""
    chunk_index: int
    text: str
    segments: List[Segment] = field(default_factory=list)

@dataclass
class MergedTranscript:
    """The stitched transcript of a whole video on an absolute timeline."""
    text: str
    segments: List[Segment] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def segments_as_dicts(self) -> List[Dict[str, Any]]:
        return [asdict(segment) for segment in self.segments]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "segments": self.segments_as_dicts(),
            "metadata": dict(self.metadata),
        }

@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an operation and how long to wait in between (seconds)."""
    max_attempts: int = 3
    base_delay: float = 5.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

@dataclass(frozen=True)
class DeviceSelection:
    """Result of the acceleration probe."""
    use_cuda: bool

    @property
    def device_flag(self) -> str:
        return "cuda:0" if self.use_cuda else "cpu"

@dataclass(frozen=True)
class TranscriptRecord:
    """A row in the transcript store. Segments are kept as JSON text."""
    id: str
    video_id: str
    content: str
    segments: str
    created_at: str

class OutcomeStatus(str, enum.Enum):
    """Terminal states of one pipeline run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INVALID_OUTPUT = "invalid_output"

@dataclass
class PipelineOutcome:
    """What happened to a video; returned instead of raising."""
    video_id: str
    status: OutcomeStatus
    reason: Optional[str] = None
    transcript: Optional[MergedTranscript] = None

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED
