"""Shared fixtures: a fake command runner standing in for ffmpeg, ffprobe and whisper."""

from __future__ import annotations

import json
import os
from typing import Callable, Dict, List, Optional

import pytest

from vodscribe.config_loader import PipelineSettings
from vodscribe.exceptions import CommandError


def _output_wav(cmd: List[str]) -> str:
    candidates = [arg for i, arg in enumerate(cmd) if arg.endswith(".wav") and cmd[i - 1] != "-i"]
    return candidates[-1]


def whisper_document(segments: List[tuple]) -> Dict:
    """Builds whisper-style JSON from (start, end, text) tuples."""
    return {
        "text": " ".join(text for _, _, text in segments),
        "segments": [
            {"id": i, "start": start, "end": end, "text": text}
            for i, (start, end, text) in enumerate(segments)
        ],
        "language": "en",
    }


class FakeCommandRunner:
    """Records commands and imitates the external tools' side effects."""

    def __init__(self, duration: str = "3700.0") -> None:
        self.duration = duration
        self.commands: List[List[str]] = []
        self.whisper_documents: Dict[str, Dict] = {}
        self.default_document: Dict = whisper_document([(0.0, 5.0, "hello there")])
        self.fail: Optional[Callable[[List[str]], bool]] = None
        self.empty_outputs = False

    def calls_to(self, program: str) -> List[List[str]]:
        return [cmd for cmd in self.commands if os.path.basename(cmd[0]) == program]

    async def __call__(self, cmd):
        cmd = [str(part) for part in cmd]
        self.commands.append(cmd)
        if self.fail is not None and self.fail(cmd):
            raise CommandError(cmd, 1, "simulated failure")

        program = os.path.basename(cmd[0])
        if program == "ffmpeg":
            with open(_output_wav(cmd), "wb") as f:
                f.write(b"" if self.empty_outputs else b"RIFF0000WAVE")
            return ""
        if program == "ffprobe":
            return self.duration
        if program == "whisper":
            chunk_path = cmd[1]
            output_dir = cmd[cmd.index("--output_dir") + 1]
            stem = os.path.splitext(os.path.basename(chunk_path))[0]
            document = self.whisper_documents.get(stem, self.default_document)
            with open(os.path.join(output_dir, f"{stem}.json"), "w", encoding="utf-8") as f:
                json.dump(document, f)
            return ""
        if program == "nvidia-smi":
            return "GPU 0: Fake"
        raise AssertionError(f"Unexpected command: {cmd}")


@pytest.fixture
def fake_runner(monkeypatch) -> FakeCommandRunner:
    runner = FakeCommandRunner()
    for module in ("audio_extractor", "chunker", "transcriber", "capability"):
        monkeypatch.setattr(f"vodscribe.{module}.run_command", runner)
    return runner


@pytest.fixture
def settings(tmp_path) -> PipelineSettings:
    return PipelineSettings(
        data_root=str(tmp_path / "data"),
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
    )
