"""
Two-phase handling of speech engine output.

Reading turns a JSON file into an untyped document and fails with a
retryable TranscriptReadError. Validation checks that document against
the whisper output schema and fails with a fatal TranscriptValidationError.
"""

import json
import logging
from typing import Any, List

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import TranscriptReadError, TranscriptValidationError
from .models import ChunkTranscript, Segment

logger = logging.getLogger(__name__)


class WhisperSegment(BaseModel):
    # no coercion: "3" is not an id and True is not a timestamp
    model_config = ConfigDict(strict=True)

    id: int
    start: float
    end: float
    text: str


class WhisperOutput(BaseModel):
    """The subset of whisper's JSON output the pipeline relies on. Extra keys are ignored."""

    model_config = ConfigDict(strict=True)

    text: str
    segments: List[WhisperSegment]


def load_transcript_document(path: str) -> Any:
    """
    Reads and decodes a speech engine JSON file.

    Raises:
        TranscriptReadError: If the file is missing, unreadable or not valid JSON.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TranscriptReadError(f"Could not read transcript JSON {path}: {e}") from e


def validate_transcript(document: Any, chunk_index: int) -> ChunkTranscript:
    """
    Validates an untyped document and converts it into a ChunkTranscript.

    Raises:
        TranscriptValidationError: If the document does not match the schema.
    """
    try:
        parsed = WhisperOutput.model_validate(document)
    except ValidationError as e:
        logger.error(f"Transcript for chunk {chunk_index} does not match the expected schema: {e}")
        raise TranscriptValidationError(
            f"Transcript for chunk {chunk_index} failed validation: {e.error_count()} error(s)",
            chunk_index=chunk_index,
        ) from e

    return ChunkTranscript(
        chunk_index=chunk_index,
        text=parsed.text,
        segments=[
            Segment(id=seg.id, start=seg.start, end=seg.end, text=seg.text)
            for seg in parsed.segments
        ],
    )


def read_chunk_transcript(path: str, chunk_index: int) -> ChunkTranscript:
    """Loads then validates a chunk's JSON output."""
    return validate_transcript(load_transcript_document(path), chunk_index)
