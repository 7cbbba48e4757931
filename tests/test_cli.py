"""Tests for the command-line entry point."""

from __future__ import annotations

from typing import List

import pytest

from vodscribe.cli import CLIHandler
from vodscribe.storage import SQLiteTranscriptStorage


@pytest.fixture
def quiet_logging(monkeypatch) -> List[dict]:
    calls: List[dict] = []
    monkeypatch.setattr("vodscribe.cli.setup_logging", lambda **kwargs: calls.append(kwargs))
    for name in ("USE_GPU", "WHISPER_MODEL", "CONCURRENT_CHUNK_PROCESS", "INCLUDE_TRANSCRIPT_DURATION", "DATA_ROOT"):
        monkeypatch.delenv(name, raising=False)
    return calls


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "my_stream.mp4"
    path.write_bytes(b"video")
    return path


def base_args(tmp_path, video_file) -> List[str]:
    return [
        "--video", str(video_file),
        "--config", str(tmp_path / "absent.yaml"),
        "--database", str(tmp_path / "t.db"),
        "--data-root", str(tmp_path / "data"),
    ]


class TestCLIHandler:
    def test_success_exit_code_and_row(self, tmp_path, video_file, fake_runner, quiet_logging) -> None:
        code = CLIHandler().run(base_args(tmp_path, video_file))
        assert code == 0
        storage = SQLiteTranscriptStorage(str(tmp_path / "t.db"))
        assert storage.get_transcript_by_video_id("my_stream") is not None
        storage.close()

    def test_video_id_and_model_overrides(self, tmp_path, video_file, fake_runner, quiet_logging) -> None:
        code = CLIHandler().run(base_args(tmp_path, video_file) + ["--video-id", "abc", "--model", "tiny"])
        assert code == 0
        assert all(cmd[cmd.index("--model") + 1] == "tiny" for cmd in fake_runner.calls_to("whisper"))
        assert any("chunk_abc_" in cmd[1] for cmd in fake_runner.calls_to("whisper"))

    def test_invalid_output_exit_code(self, tmp_path, video_file, fake_runner, quiet_logging) -> None:
        fake_runner.default_document = {"segments": []}
        assert CLIHandler().run(base_args(tmp_path, video_file)) == 2

    def test_missing_video(self, tmp_path, fake_runner, quiet_logging) -> None:
        args = base_args(tmp_path, tmp_path / "nope.mp4")
        assert CLIHandler().run(args) == 1
        assert fake_runner.commands == []

    def test_config_file_is_applied(self, tmp_path, video_file, fake_runner, quiet_logging) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("model_name: medium\nlog_dir: somewhere\nchunk_concurrency: 1\n")
        args = base_args(tmp_path, video_file)
        args[args.index("--config") + 1] = str(config)
        assert CLIHandler().run(args) == 0
        assert all(cmd[cmd.index("--model") + 1] == "medium" for cmd in fake_runner.calls_to("whisper"))
        assert any(call.get("log_dir") == "somewhere" for call in quiet_logging)

    def test_invalid_config_exit_code(self, tmp_path, video_file, fake_runner, quiet_logging) -> None:
        config = tmp_path / "config.yaml"
        config.write_text("chunk_concurrency: 0\n")
        args = base_args(tmp_path, video_file)
        args[args.index("--config") + 1] = str(config)
        assert CLIHandler().run(args) == 1
