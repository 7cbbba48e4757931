"""Handles audio extraction and duration probing using ffmpeg/ffprobe."""

import ffmpeg
import math
import os
import logging
from typing import List, Optional

from .exceptions import EmptyOutputError, InvalidDurationError
from .process import run_command
from .utils import ensure_dir_exists, file_size

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000


def parse_duration(raw: str) -> float:
    """
    Parses ffprobe's duration output into seconds.

    Raises:
        InvalidDurationError: If the value is not a finite, positive number.
    """
    try:
        duration = float(str(raw).strip())
    except ValueError as e:
        raise InvalidDurationError(f"Invalid duration value: {raw!r}") from e
    if not math.isfinite(duration) or duration <= 0:
        raise InvalidDurationError(f"Invalid duration: {duration}. File may be corrupted or empty.")
    return duration


class AudioExtractor:
    """Converts source video into normalized mono PCM audio and measures it."""

    def __init__(self, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None, threads: int = 4):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            ffprobe_path: Optional path to the ffprobe executable.
            threads: Thread count handed to ffmpeg for decoding.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.ffprobe_cmd = ffprobe_path or 'ffprobe'
        self.threads = threads
        logger.debug(f"Using ffmpeg command: {self.ffmpeg_cmd}, ffprobe command: {self.ffprobe_cmd}")

    def build_extract_command(self, video_filepath: str, output_audio_path: str) -> List[str]:
        # pcm_s16le at 16 kHz mono is what the speech engine expects
        return (
            ffmpeg
            .input(video_filepath)
            .output(
                output_audio_path,
                vn=None,
                acodec='pcm_s16le',
                ar=SAMPLE_RATE,
                ac=1,
                threads=self.threads,
            )
            .global_args('-loglevel', 'error')
            .overwrite_output()
            .compile(cmd=self.ffmpeg_cmd)
        )

    def build_probe_command(self, audio_path: str) -> List[str]:
        return [
            self.ffprobe_cmd,
            '-v', 'error',
            '-show_entries', 'format=duration',
            '-of', 'default=noprint_wrappers=1:nokey=1',
            audio_path,
        ]

    async def extract_audio(self, video_filepath: str, output_audio_path: str) -> str:
        """
        Extracts the audio stream from a video file to a WAV file, overwriting any existing one.

        Args:
            video_filepath: Path to the input video file.
            output_audio_path: Destination WAV path.

        Returns:
            The path of the extracted audio file.

        Raises:
            FileNotFoundError: If the input video file does not exist.
            CommandError: If ffmpeg exits with a nonzero code.
            EmptyOutputError: If ffmpeg produced no audio data.
            FileSystemError: If the output directory cannot be created/accessed.
        """
        logger.info(f"Converting video to audio: {video_filepath}")
        if not os.path.exists(video_filepath):
            raise FileNotFoundError(f"Input video file not found: {video_filepath}")

        output_dir = os.path.dirname(output_audio_path)
        if output_dir:
            ensure_dir_exists(output_dir)

        await run_command(self.build_extract_command(video_filepath, output_audio_path))

        size = file_size(output_audio_path)
        if size == 0:
            raise EmptyOutputError(f"Generated audio file is empty: {output_audio_path}")
        logger.info(f"Extracted audio to {output_audio_path} ({size} bytes)")
        return output_audio_path

    async def get_duration(self, audio_path: str) -> float:
        """
        Returns the duration of an audio file in seconds.

        Raises:
            CommandError: If ffprobe exits with a nonzero code.
            InvalidDurationError: If the probed value is not a finite, positive number.
        """
        logger.debug(f"Getting duration for: {audio_path}")
        output = await run_command(self.build_probe_command(audio_path))
        logger.debug(f"Raw ffprobe output: {output!r}")
        try:
            duration = parse_duration(output)
        except InvalidDurationError:
            logger.error(f"ffprobe returned an unusable duration for {audio_path} ({file_size(audio_path)} bytes on disk)")
            raise
        logger.info(f"Total audio duration: {duration:.2f}s")
        return duration
