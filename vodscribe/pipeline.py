"""Orchestrates the transcript generation pipeline."""

import asyncio
import enum
import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from .audio_extractor import AudioExtractor
from .capability import probe_acceleration
from .chunker import ChunkSplitter
from .cleanup import artifact_scope, audio_filename
from .config_loader import PipelineSettings
from .exceptions import RetryExhaustedError, StorageError, TranscriptValidationError, VodScribeError
from .merger import TranscriptMerger
from .models import DeviceSelection, MergedTranscript, OutcomeStatus, PipelineOutcome, SourceVideo, TranscriptRecord
from .retry import retry_async
from .storage import TranscriptStorage
from .transcriber import ChunkTranscriberPool, Transcriber, WhisperCLITranscriber
from .utils import format_time, prepare_directories

logger = logging.getLogger(__name__)


class PipelineStage(str, enum.Enum):
    PREPARING = "preparing"
    PROBING_CAPABILITY = "probing_capability"
    EXTRACTING = "extracting"
    PROBING_DURATION = "probing_duration"
    SPLITTING = "splitting"
    TRANSCRIBING = "transcribing"
    MERGING = "merging"
    PERSISTING = "persisting"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


class _RunState:
    """Where a single generate_transcript call currently is."""

    def __init__(self):
        self.stage = PipelineStage.PREPARING
        self.attempt = 0

    def enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.debug(f"Entering stage '{stage.value}' (attempt {self.attempt})")


class TranscriptPipeline:
    """
    Manages the end-to-end process of producing a transcript for a video.

    Extraction through persistence is retried as a whole: a chunk that
    exhausts its own retries restarts the run from audio extraction.
    Intermediate files are removed however the run ends.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        storage: TranscriptStorage,
        audio_extractor: Optional[AudioExtractor] = None,
        splitter: Optional[ChunkSplitter] = None,
        transcriber: Optional[Transcriber] = None,
        merger: Optional[TranscriptMerger] = None,
    ):
        """
        Initializes the TranscriptPipeline.

        Args:
            settings: Validated pipeline settings.
            storage: Where finished transcripts are written.
            audio_extractor: Defaults to an ffmpeg/ffprobe based extractor.
            splitter: Defaults to a ChunkSplitter using the configured chunk length and overlap.
            transcriber: Defaults to the whisper CLI with the configured model.
            merger: Defaults to a TranscriptMerger using the configured overlap.
        """
        self.settings = settings
        self.storage = storage
        self.audio_extractor = audio_extractor or AudioExtractor(
            ffmpeg_path=settings.ffmpeg_path,
            ffprobe_path=settings.ffprobe_path,
        )
        self.splitter = splitter or ChunkSplitter(
            chunk_duration=settings.chunk_duration_seconds,
            overlap=settings.overlap_seconds,
            audio_extractor=self.audio_extractor,
        )
        self.transcriber = transcriber or WhisperCLITranscriber(
            model_name=settings.model_name,
            whisper_path=settings.whisper_path,
            beam_size=settings.beam_size,
        )
        self.pool = ChunkTranscriberPool(
            self.transcriber,
            concurrency=settings.chunk_concurrency,
            retry_policy=settings.chunk_retry,
            show_progress=settings.show_progress,
        )
        self.merger = merger or TranscriptMerger(
            overlap=settings.overlap_seconds,
            similarity_threshold=settings.similarity_threshold,
            include_total_duration=settings.include_total_duration,
            tail_window=settings.dedup_previous_tail,
        )

    async def _run_attempt(
        self,
        video: SourceVideo,
        audio_path: str,
        device: DeviceSelection,
        state: _RunState,
    ) -> MergedTranscript:
        state.attempt += 1
        audio_dir = self.settings.audio_dir
        transcripts_dir = self.settings.transcripts_dir

        state.enter(PipelineStage.EXTRACTING)
        await self.audio_extractor.extract_audio(video.file_path, audio_path)

        state.enter(PipelineStage.PROBING_DURATION)
        duration = await self.audio_extractor.get_duration(audio_path)

        state.enter(PipelineStage.SPLITTING)
        chunks = await self.splitter.split(audio_path, audio_dir, video.id, total_duration=duration)

        state.enter(PipelineStage.TRANSCRIBING)
        transcripts = await self.pool.transcribe_all(chunks, transcripts_dir, device.device_flag)

        state.enter(PipelineStage.MERGING)
        merged = self.merger.merge(transcripts, video.id)
        self.merger.write_merged(merged, transcripts_dir, video.id)

        state.enter(PipelineStage.PERSISTING)
        self.storage.insert_transcript(
            TranscriptRecord(
                id=str(uuid.uuid4()),
                video_id=video.id,
                content=merged.text,
                segments=json.dumps(merged.segments_as_dicts()),
                created_at=datetime.now(timezone.utc).isoformat(),
            )
        )
        return merged

    def _rollback(self, video_id: str) -> None:
        logger.error(f"Fatal validation error for video {video_id}. Removing persisted transcript rows.")
        try:
            self.storage.delete_transcripts_by_video_id(video_id)
            logger.info(f"Deleted transcript entries for video ID: {video_id}")
        except StorageError as e:
            logger.error(f"Error deleting transcript entries for video {video_id}: {e}")

    async def generate_transcript(self, video: SourceVideo) -> PipelineOutcome:
        """
        Executes the full transcript pipeline for a single video.

        Args:
            video: The downloaded video to transcribe.

        Returns:
            A PipelineOutcome. Failures are reported through its status and
            reason rather than raised.
        """
        start_time = time.time()
        logger.info(f"--- Generating transcript for video: {video.id} ---")

        audio_dir = self.settings.audio_dir
        transcripts_dir = self.settings.transcripts_dir
        audio_path = os.path.join(audio_dir, audio_filename(video.id))
        state = _RunState()

        with artifact_scope(audio_dir, transcripts_dir, video.id):
            try:
                state.enter(PipelineStage.PREPARING)
                prepare_directories(audio_dir, transcripts_dir)

                state.enter(PipelineStage.PROBING_CAPABILITY)
                device = await probe_acceleration(self.settings.use_acceleration)

                merged = await retry_async(
                    lambda: self._run_attempt(video, audio_path, device, state),
                    f"Full transcription process for video {video.id}",
                    self.settings.pipeline_retry,
                    fatal=(TranscriptValidationError,),
                )
            except TranscriptValidationError as e:
                logger.error(f"Invalid speech engine output for video {video.id} during '{state.stage.value}' (attempt {state.attempt}): {e}")
                self._rollback(video.id)
                outcome = PipelineOutcome(video.id, OutcomeStatus.INVALID_OUTPUT, reason=str(e))
            except RetryExhaustedError as e:
                logger.error(
                    f"Transcript generation for video {video.id} failed during '{state.stage.value}' "
                    f"after {e.attempts} attempt(s): {e.last_error}"
                )
                outcome = PipelineOutcome(video.id, OutcomeStatus.FAILED, reason=str(e))
            except (VodScribeError, OSError, ValueError) as e:
                logger.error(f"Transcript generation for video {video.id} failed during '{state.stage.value}': {e}")
                outcome = PipelineOutcome(video.id, OutcomeStatus.FAILED, reason=str(e))
            else:
                logger.info(
                    f"Transcript generated and saved for video {video.id} "
                    f"({len(merged.segments)} segments, {format_time(merged.segments[-1].end if merged.segments else 0)} of speech)"
                )
                outcome = PipelineOutcome(video.id, OutcomeStatus.SUCCEEDED, transcript=merged)
            state.enter(PipelineStage.CLEANING_UP)

        state.enter(PipelineStage.DONE)
        logger.info(f"--- Finished video {video.id} ({outcome.status.value}) in {time.time() - start_time:.2f} seconds ---")
        return outcome


def run_generate_transcript(settings: PipelineSettings, storage: TranscriptStorage, video: SourceVideo) -> PipelineOutcome:
    """Synchronous entry point for callers without an event loop."""
    return asyncio.run(TranscriptPipeline(settings, storage).generate_transcript(video))
