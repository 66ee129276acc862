"""Eventos entregues ao target de uma sessao de transcricao.

Discriminados pelo campo ``type``. Todos os modelos sao imutaveis e
serializaveis via ``model_dump_json()``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class TranscriptEvent(BaseModel):
    """Texto reconhecido (parcial ou final) de um response do servico."""

    model_config = ConfigDict(frozen=True)

    type: Literal["transcript"] = "transcript"
    content: str
    is_final: bool


class SpeechActivityEvent(BaseModel):
    """Evento de atividade de voz (ex: SPEECH_ACTIVITY_BEGIN)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["speech_activity"] = "speech_activity"
    kind: str


class StreamErrorEvent(BaseModel):
    """Erro de transporte encaminhado pelo worker.

    ``status`` e o codigo numerico gRPC (ex: 3 = INVALID_ARGUMENT).
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    status: int
    message: str


class StreamTimeoutEvent(BaseModel):
    """Deadline do stream expirou sem dados: condicao esperada, nao erro."""

    model_config = ConfigDict(frozen=True)

    type: Literal["stream_timeout"] = "stream_timeout"


# ---------------------------------------------------------------------------
# Union type for dispatch
# ---------------------------------------------------------------------------

SessionEvent = TranscriptEvent | SpeechActivityEvent | StreamErrorEvent | StreamTimeoutEvent
