"""Testes do comando `streamscribe transcribe`."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from streamscribe.cli import cli
from streamscribe.cli.transcribe import iter_chunks
from streamscribe.exceptions import RecognitionStreamError
from tests.fakes import RECOGNIZER, FakeConnector, make_response, make_result

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractContextManager
    from pathlib import Path

    from streamscribe.config.settings import Settings
    from tests.fakes import FakeSpeechStream


def _final_on_end(stream: FakeSpeechStream) -> None:
    stream.trailing.append(make_response(make_result("hello world", is_final=True)))


def _fails_immediately(stream: FakeSpeechStream) -> None:
    stream.push(RecognitionStreamError(3, "Audio chunk too large"))


def _patched_connector(
    on_open: Callable[[FakeSpeechStream], None],
) -> AbstractContextManager[object]:
    def factory(settings: Settings) -> FakeConnector:
        return FakeConnector(settings, on_open=on_open)

    return patch("streamscribe.session.coordinator.SpeechConnector", side_effect=factory)


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "audio.raw"
    path.write_bytes(b"\x00\x01" * 100)
    return path


class TestTranscribeCommand:
    def test_transcribe_command_exists(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["transcribe", "--help"])
        assert result.exit_code == 0
        assert "Transcreve um arquivo de audio" in result.output

    def test_transcribe_help_shows_options(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["transcribe", "--help"])
        for option in (
            "--recognizer",
            "--language",
            "--model",
            "--interim-results",
            "--chunk-bytes",
            "--format",
            "--config",
        ):
            assert option in result.output

    def test_transcribe_file_not_found(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["transcribe", "/tmp/inexistente-streamscribe.raw"])
        assert result.exit_code != 0

    def test_missing_recognizer_exits_1(
        self, audio_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("STREAMSCRIBE_RECOGNIZER", raising=False)
        runner = CliRunner()
        result = runner.invoke(cli, ["transcribe", str(audio_file), "--insecure"])
        assert result.exit_code == 1
        assert "recognizer" in result.output.lower()

    def test_invalid_config_file_exits_1(self, audio_file: Path, tmp_path: Path) -> None:
        config = tmp_path / "settings.yaml"
        config.write_text("poll_timeout_ms: 99999\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["transcribe", str(audio_file), "--config", str(config)])
        assert result.exit_code == 1
        assert "Erro" in result.output

    def test_prints_final_transcript(self, audio_file: Path) -> None:
        runner = CliRunner()
        with _patched_connector(_final_on_end):
            result = runner.invoke(
                cli,
                [
                    "transcribe",
                    str(audio_file),
                    "--recognizer",
                    RECOGNIZER,
                    "--insecure",
                    "--chunk-bytes",
                    "64",
                ],
            )

        assert result.exit_code == 0, result.output
        assert "> hello world" in result.output

    def test_json_format(self, audio_file: Path) -> None:
        runner = CliRunner()
        with _patched_connector(_final_on_end):
            result = runner.invoke(
                cli,
                [
                    "transcribe",
                    str(audio_file),
                    "-r",
                    RECOGNIZER,
                    "--insecure",
                    "--format",
                    "json",
                ],
            )

        assert result.exit_code == 0, result.output
        events = [
            json.loads(line) for line in result.output.splitlines() if line.startswith("{")
        ]
        assert {"type": "transcript", "content": "hello world", "is_final": True} in events

    def test_stream_error_exits_1(self, audio_file: Path) -> None:
        runner = CliRunner()
        with _patched_connector(_fails_immediately):
            result = runner.invoke(
                cli,
                ["transcribe", str(audio_file), "-r", RECOGNIZER, "--insecure"],
            )

        assert result.exit_code == 1
        assert "[erro 3] Audio chunk too large" in result.output


class TestIterChunks:
    def test_splits_with_remainder(self) -> None:
        assert list(iter_chunks(b"abcdefg", 3)) == [b"abc", b"def", b"g"]

    def test_empty_input(self) -> None:
        assert list(iter_chunks(b"", 3)) == []
