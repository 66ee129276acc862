"""Conversores entre RecognitionOptions/responses proto e eventos da sessao.

Funcoes puras: sem side effects, sem IO.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import grpc
from google.cloud.speech_v2.types import cloud_speech

from streamscribe.exceptions import RecognitionStreamError
from streamscribe.models.events import (
    SpeechActivityEvent,
    StreamErrorEvent,
    StreamTimeoutEvent,
    TranscriptEvent,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from streamscribe.config.recognition import RecognitionOptions
    from streamscribe.models.events import SessionEvent

_SpeechEventType = cloud_speech.StreamingRecognizeResponse.SpeechEventType


def build_config_request(options: RecognitionOptions) -> cloud_speech.StreamingRecognizeRequest:
    """Monta o config request (primeira mensagem de todo stream).

    Voice activity events ficam sempre ligados: sem eles o servico so responde
    quando ha transcricao, e o stream de longa duracao nao recebe nada logo
    apos a abertura.

    Args:
        options: Opcoes ja resolvidas (recognizer preenchido).
    """
    recognition_config = cloud_speech.RecognitionConfig(
        auto_decoding_config=cloud_speech.AutoDetectDecodingConfig(),
        model=options.model,
        language_codes=list(options.language_codes),
        features=cloud_speech.RecognitionFeatures(
            enable_automatic_punctuation=options.enable_automatic_punctuation,
        ),
    )
    streaming_config = cloud_speech.StreamingRecognitionConfig(
        config=recognition_config,
        streaming_features=cloud_speech.StreamingRecognitionFeatures(
            enable_voice_activity_events=True,
            interim_results=options.interim_results,
        ),
    )
    return cloud_speech.StreamingRecognizeRequest(
        recognizer=options.recognizer,
        streaming_config=streaming_config,
    )


def build_audio_request(audio: bytes, recognizer: str) -> cloud_speech.StreamingRecognizeRequest:
    """Monta um audio request. O recognizer vai em toda mensagem."""
    return cloud_speech.StreamingRecognizeRequest(recognizer=recognizer, audio=audio)


def parse_response(message: object) -> list[SessionEvent]:
    """Converte uma mensagem recebida do worker em eventos para o target.

    - Response com results: um unico TranscriptEvent com os textos
      concatenados; is_final se qualquer result for final.
    - Response sem results com voice activity: um SpeechActivityEvent.
    - RecognitionStreamError DEADLINE_EXCEEDED: StreamTimeoutEvent.
    - Outro RecognitionStreamError: StreamErrorEvent.
    - Qualquer outra coisa (headers, metadata): nenhum evento.
    """
    if isinstance(message, cloud_speech.StreamingRecognizeResponse):
        if message.results:
            return [_results_to_transcript(message.results)]
        if message.speech_event_type != _SpeechEventType.SPEECH_EVENT_TYPE_UNSPECIFIED:
            return [SpeechActivityEvent(kind=_SpeechEventType(message.speech_event_type).name)]
        return []

    if isinstance(message, RecognitionStreamError):
        if message.status == grpc.StatusCode.DEADLINE_EXCEEDED.value[0]:
            return [StreamTimeoutEvent()]
        return [StreamErrorEvent(status=message.status, message=message.message)]

    return []


def _results_to_transcript(
    results: Sequence[cloud_speech.StreamingRecognitionResult],
) -> TranscriptEvent:
    # Continuacoes ja chegam com espaco inicial; concatenacao sem separador.
    content = "".join(_best_transcript(result) for result in results)
    is_final = any(result.is_final for result in results)
    return TranscriptEvent(content=content, is_final=is_final)


def _best_transcript(result: cloud_speech.StreamingRecognitionResult) -> str:
    if not result.alternatives:
        return ""
    return result.alternatives[0].transcript
