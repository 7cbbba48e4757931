"""Splits a long audio file into overlapping fixed-length chunks."""

import ffmpeg
import logging
import math
import os
from typing import List, Optional

from .audio_extractor import AudioExtractor
from .exceptions import ConfigurationError, EmptyOutputError
from .models import AudioChunk
from .process import run_command
from .utils import ensure_dir_exists, file_size, format_chunk_number

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_DURATION = 1800
DEFAULT_OVERLAP = 30


def expected_chunk_count(total_duration: float, chunk_duration: float, overlap: float) -> int:
    """Number of chunks needed to cover total_duration when consecutive chunks advance by the stride."""
    stride = chunk_duration - overlap
    return math.ceil(total_duration / stride)


def chunk_filename(video_id: str, index: int, total_chunks: int, extension: str = "wav") -> str:
    return f"chunk_{video_id}_{format_chunk_number(index, total_chunks)}.{extension}"


class ChunkSplitter:
    """
    Cuts audio into chunks of chunk_duration seconds whose starts are
    (chunk_duration - overlap) seconds apart.

    Example timeline with the defaults (1800s chunks, 30s overlap):
        Chunk 1:    0s - 1800s
        Chunk 2: 1770s - 3570s
        Chunk 3: 3540s - end of stream
    """

    def __init__(
        self,
        chunk_duration: int = DEFAULT_CHUNK_DURATION,
        overlap: int = DEFAULT_OVERLAP,
        audio_extractor: Optional[AudioExtractor] = None,
        ffmpeg_path: Optional[str] = None,
    ):
        if chunk_duration <= 0:
            raise ConfigurationError(f"Chunk duration must be positive, got {chunk_duration}")
        if overlap < 0 or overlap >= chunk_duration:
            raise ConfigurationError(
                f"Overlap must be in [0, chunk_duration), got overlap={overlap}, chunk_duration={chunk_duration}"
            )
        self.chunk_duration = chunk_duration
        self.overlap = overlap
        self.audio_extractor = audio_extractor or AudioExtractor(ffmpeg_path=ffmpeg_path)
        self.ffmpeg_cmd = ffmpeg_path or self.audio_extractor.ffmpeg_cmd

    @property
    def stride(self) -> int:
        return self.chunk_duration - self.overlap

    def build_chunk_command(self, audio_path: str, start: float, chunk_path: str) -> List[str]:
        # stream copy, no re-encode
        return (
            ffmpeg
            .input(audio_path)
            .output(chunk_path, ss=start, t=self.chunk_duration, acodec='copy')
            .global_args('-loglevel', 'error')
            .overwrite_output()
            .compile(cmd=self.ffmpeg_cmd)
        )

    async def split(
        self,
        audio_path: str,
        output_dir: str,
        video_id: str,
        total_duration: Optional[float] = None,
    ) -> List[AudioChunk]:
        """
        Splits audio_path into overlapping chunk files inside output_dir.

        Args:
            audio_path: The whole-video WAV file.
            output_dir: Where chunk files are written.
            video_id: Used to scope chunk file names.
            total_duration: Known duration in seconds; probed with ffprobe when None.

        Returns:
            Chunk descriptors ordered by index.

        Raises:
            CommandError: If ffmpeg fails for any chunk.
            EmptyOutputError: If any chunk file comes out empty.
            InvalidDurationError: If the audio duration cannot be determined.
        """
        if total_duration is None:
            total_duration = await self.audio_extractor.get_duration(audio_path)

        ensure_dir_exists(output_dir)
        expected = expected_chunk_count(total_duration, self.chunk_duration, self.overlap)
        logger.info(
            f"Splitting {audio_path} ({total_duration:.2f}s) into {expected} chunk(s) of "
            f"{self.chunk_duration}s with {self.overlap}s overlap for video {video_id}"
        )

        chunks: List[AudioChunk] = []
        index = 0
        while index * self.stride < total_duration:
            start = index * self.stride
            chunk_path = os.path.join(output_dir, chunk_filename(video_id, index, expected))
            logger.debug(f"Creating chunk {index + 1}/{expected}: {chunk_path}")

            await run_command(self.build_chunk_command(audio_path, start, chunk_path))

            size = file_size(chunk_path)
            if size == 0:
                raise EmptyOutputError(f"Chunk {index + 1}/{expected} is empty: {chunk_path}")
            logger.info(f"Chunk {format_chunk_number(index, expected)} created: {size} bytes")

            chunks.append(AudioChunk(index=index, total_chunks=expected, file_path=chunk_path, start_offset=start))
            index += 1

        return chunks
