"""Testes de Settings (env/YAML) e RecognitionOptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from streamscribe.config import (
    RecognitionOptions,
    Settings,
    configure_settings,
    get_settings,
)
from streamscribe.config.settings import DEFAULT_ENDPOINT, reset_settings
from streamscribe.exceptions import (
    RecognizerNotConfiguredError,
    SettingsParseError,
    SettingsValidationError,
)
from tests.fakes import RECOGNIZER

if TYPE_CHECKING:
    from pathlib import Path

VALID_YAML = f"""\
recognizer: {RECOGNIZER}
endpoint: localhost:50051
insecure: true
poll_timeout_ms: 20
"""


class TestSettingsDefaults:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.recognizer is None
        assert settings.endpoint == DEFAULT_ENDPOINT
        assert settings.insecure is False
        assert settings.poll_timeout_ms == 50
        assert settings.poll_timeout_s == pytest.approx(0.05)
        assert settings.connect_timeout_s == pytest.approx(10.0)

    def test_blank_recognizer_is_none(self) -> None:
        assert Settings(recognizer="   ").recognizer is None

    @pytest.mark.parametrize("value", [0, -1, 1001])
    def test_poll_timeout_must_be_short(self, value: int) -> None:
        with pytest.raises(ValidationError):
            Settings(poll_timeout_ms=value)

    def test_frozen(self) -> None:
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.endpoint = "other:443"  # type: ignore[misc]


class TestSettingsFromEnv:
    def test_reads_prefixed_variables(self) -> None:
        settings = Settings.from_env(
            {
                "STREAMSCRIBE_RECOGNIZER": RECOGNIZER,
                "STREAMSCRIBE_ENDPOINT": "localhost:50051",
                "STREAMSCRIBE_INSECURE": "yes",
                "STREAMSCRIBE_POLL_TIMEOUT_MS": "25",
            }
        )
        assert settings.recognizer == RECOGNIZER
        assert settings.endpoint == "localhost:50051"
        assert settings.insecure is True
        assert settings.poll_timeout_ms == 25

    def test_empty_env_gives_defaults(self) -> None:
        assert Settings.from_env({}) == Settings()

    def test_insecure_false_values(self) -> None:
        assert Settings.from_env({"STREAMSCRIBE_INSECURE": "0"}).insecure is False

    def test_invalid_value_raises_validation_error(self) -> None:
        with pytest.raises(SettingsValidationError) as exc_info:
            Settings.from_env({"STREAMSCRIBE_POLL_TIMEOUT_MS": "abc"})
        assert exc_info.value.path == "<env>"
        assert any("poll_timeout_ms" in e for e in exc_info.value.errors)

    def test_uses_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMSCRIBE_RECOGNIZER", RECOGNIZER)
        assert Settings.from_env().recognizer == RECOGNIZER


class TestSettingsFromYaml:
    def test_from_string(self) -> None:
        settings = Settings.from_yaml_string(VALID_YAML)
        assert settings.recognizer == RECOGNIZER
        assert settings.insecure is True
        assert settings.poll_timeout_ms == 20

    def test_from_path(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text(VALID_YAML)
        assert Settings.from_yaml_path(path).endpoint == "localhost:50051"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SettingsParseError, match="nao encontrado"):
            Settings.from_yaml_path(tmp_path / "missing.yaml")

    def test_empty_document_gives_defaults(self) -> None:
        assert Settings.from_yaml_string("") == Settings()

    def test_invalid_yaml(self) -> None:
        with pytest.raises(SettingsParseError):
            Settings.from_yaml_string("recognizer: [unclosed")

    def test_non_mapping(self) -> None:
        with pytest.raises(SettingsParseError, match="mapeamento"):
            Settings.from_yaml_string("- a\n- b\n")

    def test_invalid_field(self) -> None:
        with pytest.raises(SettingsValidationError) as exc_info:
            Settings.from_yaml_string("poll_timeout_ms: 5000\n", source_path="s.yaml")
        assert exc_info.value.path == "s.yaml"


class TestProcessSettings:
    def test_get_settings_loads_env_lazily(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STREAMSCRIBE_RECOGNIZER", RECOGNIZER)
        assert get_settings().recognizer == RECOGNIZER

    def test_configure_settings_wins(self) -> None:
        configured = Settings(recognizer=RECOGNIZER, endpoint="localhost:1")
        configure_settings(configured)
        assert get_settings() is configured

    def test_reset_rereads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        configure_settings(Settings(recognizer="projects/a/locations/global/recognizers/a"))
        reset_settings()
        monkeypatch.delenv("STREAMSCRIBE_RECOGNIZER", raising=False)
        assert get_settings().recognizer is None


class TestRecognitionOptions:
    def test_defaults(self) -> None:
        options = RecognitionOptions()
        assert options.language_codes == ("en-US",)
        assert options.enable_automatic_punctuation is True
        assert options.interim_results is False
        assert options.model == "latest_long"
        assert options.recognizer is None

    def test_empty_language_codes_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RecognitionOptions(language_codes=())

    def test_resolve_fills_recognizer_from_settings(self) -> None:
        resolved = RecognitionOptions().resolve(Settings(recognizer=RECOGNIZER))
        assert resolved.recognizer == RECOGNIZER

    def test_resolve_keeps_explicit_recognizer(self) -> None:
        options = RecognitionOptions(recognizer="projects/x/locations/global/recognizers/y")
        assert options.resolve(Settings(recognizer=RECOGNIZER)) is options

    def test_resolve_without_any_recognizer(self) -> None:
        with pytest.raises(RecognizerNotConfiguredError):
            RecognitionOptions().resolve(Settings())
