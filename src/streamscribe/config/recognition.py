"""Opcoes de reconhecimento de uma sessao.

Construidas uma vez no start da sessao e imutaveis depois disso.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

from streamscribe.exceptions import RecognizerNotConfiguredError

if TYPE_CHECKING:
    from streamscribe.config.settings import Settings

DEFAULT_MODEL = "latest_long"
DEFAULT_LANGUAGE_CODES = ("en-US",)


class RecognitionOptions(BaseModel):
    """Parametros de reconhecimento enviados no config request.

    ``model`` diferente de "latest_long" (ex: "latest_short") encerra o stream
    apos a primeira pausa na fala: cuidado ao trocar.
    """

    model_config = ConfigDict(frozen=True)

    language_codes: tuple[str, ...] = DEFAULT_LANGUAGE_CODES
    enable_automatic_punctuation: bool = True
    interim_results: bool = False
    model: str = DEFAULT_MODEL
    recognizer: str | None = None

    @field_validator("language_codes")
    @classmethod
    def language_codes_not_empty(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            msg = "language_codes deve conter ao menos um codigo"
            raise ValueError(msg)
        return v

    def resolve(self, settings: Settings) -> RecognitionOptions:
        """Retorna copia com o recognizer preenchido a partir dos settings.

        Raises:
            RecognizerNotConfiguredError: Se nem as opcoes nem os settings
                definem um recognizer.
        """
        if self.recognizer:
            return self
        if not settings.recognizer:
            raise RecognizerNotConfiguredError
        return self.model_copy(update={"recognizer": settings.recognizer})
