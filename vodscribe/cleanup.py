"""Removal of intermediate audio and transcript artifacts."""

import logging
import os
from contextlib import contextmanager
from typing import Iterator, List

logger = logging.getLogger(__name__)


def audio_filename(video_id: str) -> str:
    return f"{video_id}_audio.wav"


def find_artifacts(audio_dir: str, transcripts_dir: str, video_id: str) -> List[str]:
    """Lists the intermediate files belonging to video_id that currently exist."""
    chunk_prefix = f"chunk_{video_id}_"
    found: List[str] = []

    if os.path.isdir(audio_dir):
        for entry in os.scandir(audio_dir):
            if entry.is_file() and (entry.name == audio_filename(video_id) or entry.name.startswith(chunk_prefix)):
                found.append(entry.path)

    if os.path.isdir(transcripts_dir):
        for entry in os.scandir(transcripts_dir):
            if entry.is_file() and entry.name.startswith(chunk_prefix) and entry.name.endswith(".json"):
                found.append(entry.path)

    return sorted(found)


def cleanup_artifacts(audio_dir: str, transcripts_dir: str, video_id: str) -> int:
    """
    Removes the whole-video audio file and every chunk audio/JSON file of a video.

    Failures to remove individual files are logged, never raised.

    Returns:
        The number of files removed.
    """
    removed = 0
    for path in find_artifacts(audio_dir, transcripts_dir, video_id):
        try:
            os.remove(path)
            removed += 1
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove file {path}: {e}")
    logger.info(f"Cleaned up {removed} intermediate file(s) for video {video_id}")
    return removed


@contextmanager
def artifact_scope(audio_dir: str, transcripts_dir: str, video_id: str) -> Iterator[None]:
    """Runs the enclosed block and cleans up the video's artifacts however it exits."""
    try:
        yield
    finally:
        cleanup_artifacts(audio_dir, transcripts_dir, video_id)
