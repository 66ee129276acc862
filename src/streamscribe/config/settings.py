"""Settings do processo: recognizer default, endpoint e parametros de transporte.

Lidos uma vez (env ou YAML) antes de qualquer sessao iniciar. O core apenas
le os settings: nunca os altera.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from streamscribe.exceptions import SettingsParseError, SettingsValidationError

DEFAULT_ENDPOINT = "speech.googleapis.com:443"
DEFAULT_POLL_TIMEOUT_MS = 50
DEFAULT_MAX_MESSAGE_BYTES = 10 * 1024 * 1024
DEFAULT_CONNECT_TIMEOUT_MS = 10_000

_ENV_PREFIX = "STREAMSCRIBE_"
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class Settings(BaseModel):
    """Configuracao global do processo.

    Attributes:
        recognizer: Recognizer default
            (``projects/{project}/locations/{location}/recognizers/{id}``).
        endpoint: host:port do servico Speech-to-Text.
        insecure: Canal sem TLS e sem credenciais (emuladores, testes locais).
        poll_timeout_ms: Espera maxima do worker por comandos de saida.
        max_message_bytes: Limite de tamanho de mensagem do canal gRPC.
        connect_timeout_ms: Espera maxima pelo canal ficar pronto no connect.
    """

    model_config = ConfigDict(frozen=True)

    recognizer: str | None = None
    endpoint: str = DEFAULT_ENDPOINT
    insecure: bool = False
    poll_timeout_ms: int = DEFAULT_POLL_TIMEOUT_MS
    max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES
    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS

    @field_validator("poll_timeout_ms")
    @classmethod
    def poll_timeout_must_be_short(cls, v: int) -> int:
        if not 1 <= v <= 1000:
            msg = f"poll_timeout_ms deve estar entre 1 e 1000, recebeu {v}"
            raise ValueError(msg)
        return v

    @field_validator("recognizer")
    @classmethod
    def recognizer_must_not_be_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def poll_timeout_s(self) -> float:
        return self.poll_timeout_ms / 1000.0

    @property
    def connect_timeout_s(self) -> float:
        return self.connect_timeout_ms / 1000.0

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Carrega settings a partir de variaveis STREAMSCRIBE_*."""
        env = os.environ if environ is None else environ
        data: dict[str, object] = {}

        recognizer = env.get(f"{_ENV_PREFIX}RECOGNIZER")
        if recognizer is not None:
            data["recognizer"] = recognizer
        endpoint = env.get(f"{_ENV_PREFIX}ENDPOINT")
        if endpoint:
            data["endpoint"] = endpoint
        insecure = env.get(f"{_ENV_PREFIX}INSECURE")
        if insecure is not None:
            data["insecure"] = insecure.strip().lower() in _TRUE_VALUES
        poll_timeout = env.get(f"{_ENV_PREFIX}POLL_TIMEOUT_MS")
        if poll_timeout:
            data["poll_timeout_ms"] = poll_timeout

        return cls._validate(data, source_path="<env>")

    @classmethod
    def from_yaml_path(cls, path: str | Path) -> Settings:
        """Carrega settings a partir de arquivo YAML."""
        path = Path(path)
        if not path.exists():
            raise SettingsParseError(str(path), "Arquivo nao encontrado")

        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SettingsParseError(str(path), f"Erro ao ler arquivo: {e}") from e

        return cls.from_yaml_string(raw, source_path=str(path))

    @classmethod
    def from_yaml_string(cls, raw: str, source_path: str = "<string>") -> Settings:
        """Carrega settings a partir de string YAML."""
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise SettingsParseError(source_path, f"YAML invalido: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsParseError(source_path, "Conteudo YAML deve ser um mapeamento")

        return cls._validate(data, source_path=source_path)

    @classmethod
    def _validate(cls, data: dict[str, object], source_path: str) -> Settings:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
            raise SettingsValidationError(source_path, errors) from e


_settings: Settings | None = None


def configure_settings(settings: Settings) -> None:
    """Instala os settings globais do processo."""
    global _settings
    _settings = settings


def get_settings() -> Settings:
    """Retorna os settings globais, carregando do ambiente no primeiro uso."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Descarta os settings globais (proximo get_settings() rele o ambiente)."""
    global _settings
    _settings = None
