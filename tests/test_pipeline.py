"""End-to-end tests for the transcript pipeline with faked external tools."""

from __future__ import annotations

import json
import os
from dataclasses import replace

import pytest

from vodscribe.cleanup import find_artifacts
from vodscribe.models import OutcomeStatus, SourceVideo, TranscriptRecord
from vodscribe.pipeline import TranscriptPipeline, run_generate_transcript
from vodscribe.storage import SQLiteTranscriptStorage

from conftest import whisper_document


@pytest.fixture
def storage(tmp_path):
    store = SQLiteTranscriptStorage(str(tmp_path / "transcripts.db"))
    yield store
    store.close()


@pytest.fixture
def video(tmp_path) -> SourceVideo:
    path = tmp_path / "stream.mp4"
    path.write_bytes(b"not really a video")
    return SourceVideo(id="vod1", file_path=str(path), created_at="2026-01-01T00:00:00Z")


def assert_no_artifacts(settings, video_id: str) -> None:
    assert find_artifacts(settings.audio_dir, settings.transcripts_dir, video_id) == []


class TestGenerateTranscript:
    @pytest.mark.asyncio
    async def test_success(self, settings, storage, video, fake_runner) -> None:
        fake_runner.whisper_documents = {
            "chunk_vod1_1": whisper_document([(0, 1700, "welcome to the stream"), (1700, 1790, "lets get started")]),
            "chunk_vod1_2": whisper_document([(0, 25, "lets get started"), (40, 60, "first question")]),
            "chunk_vod1_3": whisper_document([(10, 70, "thanks for watching")]),
        }

        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)

        assert outcome.status is OutcomeStatus.SUCCEEDED
        assert outcome.succeeded
        assert outcome.transcript.text == (
            "welcome to the stream lets get started lets get started first question thanks for watching"
        )
        assert [(s.start, s.end) for s in outcome.transcript.segments] == [
            (0, 1700),
            (1700, 1790),
            (1790, 1815),
            (1830, 1850),
            (1860, 1920),
        ]

        row = storage.get_transcript_by_video_id("vod1")
        assert row.content == outcome.transcript.text
        assert json.loads(row.segments)[0] == {"id": 0, "start": 0.0, "end": 1700.0, "text": "welcome to the stream"}

        merged_path = os.path.join(settings.transcripts_dir, "vod1_merged.json")
        with open(merged_path, encoding="utf-8") as f:
            assert json.load(f)["metadata"]["num_segments"] == 5
        assert_no_artifacts(settings, "vod1")

    @pytest.mark.asyncio
    async def test_previous_tail_dedup(self, settings, storage, video, fake_runner) -> None:
        settings = replace(settings, dedup_previous_tail=True)
        fake_runner.whisper_documents = {
            "chunk_vod1_1": whisper_document([(0, 1700, "welcome to the stream"), (1700, 1790, "lets get started")]),
            "chunk_vod1_2": whisper_document([(0, 25, "lets get started"), (40, 60, "first question")]),
            "chunk_vod1_3": whisper_document([(10, 70, "thanks for watching")]),
        }

        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)

        assert outcome.status is OutcomeStatus.SUCCEEDED
        assert outcome.transcript.text == "welcome to the stream lets get started first question thanks for watching"
        assert len(outcome.transcript.segments) == 4

    @pytest.mark.asyncio
    async def test_tool_invocations(self, settings, storage, video, fake_runner) -> None:
        settings = replace(settings, model_name="small", chunk_concurrency=3)
        await TranscriptPipeline(settings, storage).generate_transcript(video)

        assert len(fake_runner.calls_to("ffprobe")) == 1
        # one extraction plus three chunks for 3700 seconds of audio
        assert len(fake_runner.calls_to("ffmpeg")) == 4
        whisper_calls = fake_runner.calls_to("whisper")
        assert len(whisper_calls) == 3
        assert all(cmd[cmd.index("--model") + 1] == "small" for cmd in whisper_calls)
        assert all(cmd[cmd.index("--device") + 1] == "cpu" for cmd in whisper_calls)
        assert fake_runner.calls_to("nvidia-smi") == []

    @pytest.mark.asyncio
    async def test_engine_failure_restarts_whole_pipeline(self, settings, storage, video, fake_runner) -> None:
        fake_runner.fail = lambda cmd: cmd[0] == "whisper" and cmd[1].endswith("_2.wav")

        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)

        assert outcome.status is OutcomeStatus.FAILED
        assert "3 attempt" in outcome.reason
        # the outer policy reran extraction for every attempt
        extractions = [cmd for cmd in fake_runner.calls_to("ffmpeg") if "pcm_s16le" in cmd]
        assert len(extractions) == 3
        # chunk 2 got its two private attempts on each outer attempt
        assert sum(1 for cmd in fake_runner.calls_to("whisper") if cmd[1].endswith("_2.wav")) == 6
        assert storage.get_transcript_by_video_id("vod1") is None
        assert_no_artifacts(settings, "vod1")

    @pytest.mark.asyncio
    async def test_transient_failure_recovers(self, settings, storage, video, fake_runner) -> None:
        failures = {"left": 1}

        def fail_once(cmd) -> bool:
            if cmd[0] == "ffprobe" and failures["left"]:
                failures["left"] -= 1
                return True
            return False

        fake_runner.fail = fail_once
        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)
        assert outcome.succeeded
        assert len(fake_runner.calls_to("ffprobe")) == 2

    @pytest.mark.asyncio
    async def test_invalid_duration_fails(self, settings, storage, video, fake_runner) -> None:
        fake_runner.duration = "N/A"
        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)
        assert outcome.status is OutcomeStatus.FAILED
        assert "Invalid duration" in outcome.reason
        assert fake_runner.calls_to("whisper") == []
        assert_no_artifacts(settings, "vod1")

    @pytest.mark.asyncio
    async def test_validation_error_rolls_back(self, settings, storage, video, fake_runner) -> None:
        storage.insert_transcript(TranscriptRecord("old", "vod1", "stale", "[]", "2025-01-01T00:00:00Z"))
        fake_runner.whisper_documents["chunk_vod1_3"] = {"text": "x", "segments": [{"id": 0}]}

        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)

        assert outcome.status is OutcomeStatus.INVALID_OUTPUT
        assert storage.get_transcript_by_video_id("vod1") is None
        # neither the chunk nor the pipeline retried
        assert len([cmd for cmd in fake_runner.calls_to("whisper") if cmd[1].endswith("_3.wav")]) == 1
        assert len([cmd for cmd in fake_runner.calls_to("ffmpeg") if "pcm_s16le" in cmd]) == 1
        assert_no_artifacts(settings, "vod1")

    @pytest.mark.asyncio
    async def test_empty_audio_fails(self, settings, storage, video, fake_runner) -> None:
        fake_runner.empty_outputs = True
        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)
        assert outcome.status is OutcomeStatus.FAILED
        assert_no_artifacts(settings, "vod1")

    @pytest.mark.asyncio
    async def test_total_duration_metadata(self, settings, storage, video, fake_runner) -> None:
        settings = replace(settings, include_total_duration=True)
        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)
        assert outcome.transcript.metadata["total_duration"] == outcome.transcript.segments[-1].end

    @pytest.mark.asyncio
    async def test_acceleration_falls_back_to_cpu(self, settings, storage, video, fake_runner) -> None:
        settings = replace(settings, use_acceleration=True)
        fake_runner.fail = lambda cmd: cmd[0] == "nvidia-smi"
        outcome = await TranscriptPipeline(settings, storage).generate_transcript(video)
        assert outcome.succeeded
        whisper_calls = fake_runner.calls_to("whisper")
        assert all(cmd[cmd.index("--device") + 1] == "cpu" for cmd in whisper_calls)

    @pytest.mark.asyncio
    async def test_acceleration_used_when_available(self, settings, storage, video, fake_runner, monkeypatch) -> None:
        monkeypatch.setattr("vodscribe.capability.torch.cuda.is_available", lambda: True)
        settings = replace(settings, use_acceleration=True)
        await TranscriptPipeline(settings, storage).generate_transcript(video)
        whisper_calls = fake_runner.calls_to("whisper")
        assert all(cmd[cmd.index("--device") + 1] == "cuda:0" for cmd in whisper_calls)


def test_run_generate_transcript(settings, storage, video, fake_runner) -> None:
    outcome = run_generate_transcript(settings, storage, video)
    assert outcome.succeeded
    assert storage.search_transcripts("hello")[0].video_id == "vod1"
