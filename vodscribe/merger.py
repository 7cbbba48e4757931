"""Stitches per-chunk transcripts into one transcript on an absolute timeline."""

import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from .models import ChunkTranscript, MergedTranscript, Segment
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.8

_PUNCTUATION = re.compile(r"[.,!?;:]")
_WHITESPACE = re.compile(r"\s+")


def _words(text: str) -> List[str]:
    return _PUNCTUATION.sub("", text.lower()).split()


def is_text_similar(text1: str, text2: str, threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> bool:
    """
    Decides whether two snippets say the same thing.

    Both texts are lowercased and stripped of .,!?;: before being split on
    whitespace. The score is common / (len(words1) + len(words2) - common),
    where common counts the words of text1 that also occur in text2.
    """
    if not text1 or not text2:
        return False
    words1 = _words(text1)
    words2 = _words(text2)
    if not words1 or not words2:
        return False
    vocabulary = set(words2)
    common = sum(1 for word in words1 if word in vocabulary)
    similarity = common / (len(words1) + len(words2) - common)
    return similarity >= threshold


class TranscriptMerger:
    """
    Merges ordered chunk transcripts produced from overlapping audio.

    Segments that start inside the leading overlap of a chunk are compared
    with accepted text lying in the window [offset - overlap, offset) and
    dropped when they repeat it. With ``tail_window`` set, the comparison
    window moves back to the last ``overlap`` seconds the previous chunk
    actually produced. The running offset is anchored to the end
    of the last accepted segment rather than the nominal chunk length so
    that engine timing drift does not accumulate.
    """

    def __init__(
        self,
        overlap: float,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        include_total_duration: bool = False,
        tail_window: bool = False,
    ):
        self.overlap = overlap
        self.similarity_threshold = similarity_threshold
        self.include_total_duration = include_total_duration
        self.tail_window = tail_window

    def _overlap_reference(self, accepted: List[Segment], time_offset: float) -> str:
        if self.tail_window:
            # previous chunk output ends at time_offset - overlap
            window_end = time_offset - self.overlap
        else:
            window_end = time_offset
        window_start = window_end - self.overlap
        return " ".join(
            segment.text for segment in accepted
            if segment.end > window_start and segment.start < window_end
        )

    def merge_segments(self, transcripts: Sequence[ChunkTranscript]) -> List[Segment]:
        accepted: List[Segment] = []
        time_offset = 0.0

        for position, chunk in enumerate(transcripts):
            segments = sorted(chunk.segments, key=lambda segment: segment.start)

            if position > 0:
                reference = self._overlap_reference(accepted, time_offset)
                kept = []
                for segment in segments:
                    in_overlap = segment.start < self.overlap and segment.end > 0
                    if in_overlap and is_text_similar(segment.text, reference, self.similarity_threshold):
                        logger.debug(f"Dropping duplicated overlap segment in chunk {chunk.chunk_index}: {segment.text!r}")
                        continue
                    kept.append(segment)
                shift = time_offset - self.overlap
                segments = [segment.shifted(shift) for segment in kept]
            else:
                segments = [segment.shifted(0.0) for segment in segments]

            accepted.extend(segments)
            if segments:
                time_offset = segments[-1].end + self.overlap

        return accepted

    def merge(self, transcripts: Sequence[ChunkTranscript], video_id: str) -> MergedTranscript:
        """
        Builds the merged transcript for a video.

        Args:
            transcripts: Chunk transcripts ordered by chunk index.
            video_id: Recorded in the metadata.

        Returns:
            The merged transcript; its text is whitespace-normalized.
        """
        segments = self.merge_segments(transcripts)
        text = _WHITESPACE.sub(" ", " ".join(segment.text for segment in segments)).strip()

        metadata: Dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "num_segments": len(segments),
            "video_id": video_id,
        }
        if self.include_total_duration:
            metadata["total_duration"] = segments[-1].end if segments else 0

        logger.info(f"Merged {len(transcripts)} chunk(s) into {len(segments)} segment(s) for video {video_id}")
        return MergedTranscript(text=text, segments=segments, metadata=metadata)

    @staticmethod
    def write_merged(transcript: MergedTranscript, output_dir: str, video_id: str) -> str:
        """Writes <video_id>_merged.json and returns its path."""
        ensure_dir_exists(output_dir)
        path = os.path.join(output_dir, f"{video_id}_merged.json")
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(transcript.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Merged transcript JSON saved to: {path}")
        return path
