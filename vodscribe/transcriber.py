"""Handles speech-to-text transcription of audio chunks using the whisper CLI."""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

from tqdm import tqdm

from .exceptions import TranscriptValidationError
from .models import AudioChunk, ChunkTranscript, RetryPolicy
from .process import run_command
from .retry import retry_async
from .schema import read_chunk_transcript
from .utils import format_chunk_number

logger = logging.getLogger(__name__)

class Transcriber(ABC):
    """Abstract base class for chunk transcription services."""

    @abstractmethod
    async def transcribe_chunk(self, chunk: AudioChunk, output_dir: str, device_flag: str) -> ChunkTranscript:
        """
        Transcribes a single audio chunk.

        Args:
            chunk: The chunk to transcribe.
            output_dir: Directory the engine writes its JSON output to.
            device_flag: Device identifier, "cpu" or "cuda:0".

        Returns:
            The validated transcript, timestamps relative to the chunk start.

        Raises:
            TransientIOError: If the engine fails or its output cannot be read.
            TranscriptValidationError: If the output does not match the schema.
        """
        pass

class WhisperCLITranscriber(Transcriber):
    """Implements transcription by shelling out to OpenAI's whisper command."""

    def __init__(self, model_name: str = "base", whisper_path: Optional[str] = None, beam_size: int = 5):
        """
        Initializes the WhisperCLITranscriber.

        Args:
            model_name: The name of the Whisper model to use (e.g., "base", "medium.en").
            whisper_path: Optional path to the whisper executable.
            beam_size: Beam width passed to the decoder.
        """
        self.model_name = model_name
        self.whisper_cmd = whisper_path or "whisper"
        self.beam_size = beam_size
        logger.info(f"Initializing WhisperCLITranscriber with model '{self.model_name}'")

    def build_command(self, chunk_path: str, output_dir: str, device_flag: str) -> List[str]:
        cmd = [
            self.whisper_cmd,
            chunk_path,
            "--model", self.model_name,
            "--output_format", "json",
            "--output_dir", output_dir,
            "--beam_size", str(self.beam_size),
            "--device", device_flag,
        ]
        if device_flag == "cpu":
            # FP16 only works on CUDA
            cmd += ["--fp16", "False"]
        return cmd

    @staticmethod
    def output_path_for(chunk_path: str, output_dir: str) -> str:
        """whisper names its output after the input file's stem."""
        stem = os.path.splitext(os.path.basename(chunk_path))[0]
        return os.path.join(output_dir, f"{stem}.json")

    async def transcribe_chunk(self, chunk: AudioChunk, output_dir: str, device_flag: str) -> ChunkTranscript:
        json_path = self.output_path_for(chunk.file_path, output_dir)
        logger.debug(f"Transcribing {chunk.file_path} -> {json_path} (device: {device_flag})")

        await run_command(self.build_command(chunk.file_path, output_dir, device_flag))
        return read_chunk_transcript(json_path, chunk.index)


class ChunkTranscriberPool:
    """
    Runs a Transcriber over many chunks, at most `concurrency` at a time.

    Chunks are processed in consecutive batches. Every task in a batch is
    allowed to settle before the batch's outcome is decided, so a failing
    chunk never leaves engine processes running while the next batch starts.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        concurrency: int = 2,
        retry_policy: Optional[RetryPolicy] = None,
        show_progress: bool = False,
    ):
        self.transcriber = transcriber
        self.concurrency = max(1, int(concurrency))
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=2)
        self.show_progress = show_progress

    async def _transcribe_into(
        self,
        chunk: AudioChunk,
        output_dir: str,
        device_flag: str,
        results: List[Optional[ChunkTranscript]],
        total: int,
    ) -> None:
        label = format_chunk_number(chunk.index, total)
        results[chunk.index] = await retry_async(
            lambda: self.transcriber.transcribe_chunk(chunk, output_dir, device_flag),
            f"Chunk {label} transcription",
            self.retry_policy,
            fatal=(TranscriptValidationError,),
        )
        logger.info(f"Completed chunk {label}/{total}")

    async def transcribe_all(self, chunks: List[AudioChunk], output_dir: str, device_flag: str) -> List[ChunkTranscript]:
        """
        Transcribes every chunk and returns results ordered by chunk index.

        Raises:
            TranscriptValidationError: If any chunk's output fails validation.
            RetryExhaustedError: If any chunk fails on all of its attempts.
        """
        total = len(chunks)
        results: List[Optional[ChunkTranscript]] = [None] * total
        logger.info(f"Starting transcription of {total} chunk(s), {self.concurrency} at a time")

        with tqdm(total=total, unit="chunk", desc="Transcribing", disable=not self.show_progress) as pbar:
            for batch_start in range(0, total, self.concurrency):
                batch = chunks[batch_start:batch_start + self.concurrency]
                for chunk in batch:
                    logger.info(f"Starting chunk {format_chunk_number(chunk.index, total)}/{total}")

                outcomes = await asyncio.gather(
                    *(self._transcribe_into(chunk, output_dir, device_flag, results, total) for chunk in batch),
                    return_exceptions=True,
                )
                pbar.update(sum(1 for outcome in outcomes if not isinstance(outcome, BaseException)))

                errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
                if errors:
                    fatal = [e for e in errors if isinstance(e, TranscriptValidationError)]
                    raise fatal[0] if fatal else errors[0]

                logger.info(
                    f"Completed chunks {format_chunk_number(batch[0].index, total)}-"
                    f"{format_chunk_number(batch[-1].index, total)} of {total}"
                )

        return [result for result in results if result is not None]
