"""Fakes do transporte gRPC usados pelos testes.

FakeConnector/FakeSpeechStream substituem o transporte: nenhum canal real
e aberto. O stream fake devolve responses de uma fila controlada pelo teste
e registra tudo o que o worker escreve.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING

import grpc
from google.cloud.speech_v2.types import cloud_speech

from streamscribe.config.settings import Settings
from streamscribe.exceptions import ConnectError, RecognitionStreamError
from streamscribe.transport.stream import POLL_TIMEOUT_MESSAGE, STREAM_FINISHED_MESSAGE

if TYPE_CHECKING:
    from collections.abc import Callable

RECOGNIZER = "projects/test-project/locations/global/recognizers/_"


class FakeSpeechStream:
    """Stream em memoria com a mesma interface de SpeechStream."""

    def __init__(self, recognizer: str) -> None:
        self.recognizer = recognizer
        self.sent: list[cloud_speech.StreamingRecognizeRequest] = []
        self.inbound: deque[cloud_speech.StreamingRecognizeResponse | RecognitionStreamError] = (
            deque()
        )
        self.end_calls = 0
        self.cancelled = False
        self.closed = False
        self.send_error: RecognitionStreamError | None = None
        # Responses entregues quando o worker faz half-close (antes do fim do RPC).
        self.trailing: list[cloud_speech.StreamingRecognizeResponse] = []
        self.finish_on_end = True
        self._terminal: RecognitionStreamError | None = None

    def push(self, item: cloud_speech.StreamingRecognizeResponse | RecognitionStreamError) -> None:
        self.inbound.append(item)

    def finish(self) -> None:
        """Simula o servidor encerrando o RPC normalmente."""
        self.push(RecognitionStreamError.from_status(grpc.StatusCode.OK, STREAM_FINISHED_MESSAGE))

    def receive_nowait(self) -> cloud_speech.StreamingRecognizeResponse:
        if not self.inbound:
            if self._terminal is not None:
                raise RecognitionStreamError(self._terminal.status, self._terminal.message)
            raise RecognitionStreamError.from_status(
                grpc.StatusCode.DEADLINE_EXCEEDED, POLL_TIMEOUT_MESSAGE
            )
        item = self.inbound.popleft()
        if isinstance(item, RecognitionStreamError):
            self._terminal = item
            raise item
        return item

    async def send(self, request: cloud_speech.StreamingRecognizeRequest) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(request)

    async def end_stream(self) -> None:
        self.end_calls += 1
        for response in self.trailing:
            self.push(response)
        if self.finish_on_end:
            self.finish()

    def cancel(self) -> None:
        self.cancelled = True
        self.close()

    def close(self) -> None:
        self.closed = True

    @property
    def config_requests(self) -> list[cloud_speech.StreamingRecognizeRequest]:
        return [r for r in self.sent if "streaming_config" in r]

    @property
    def audio_chunks(self) -> list[bytes]:
        return [r.audio for r in self.sent if "audio" in r]


class FakeConnector:
    """Connector em memoria: cada open_stream cria um FakeSpeechStream."""

    def __init__(
        self,
        settings: Settings,
        on_open: Callable[[FakeSpeechStream], None] | None = None,
    ) -> None:
        self.settings = settings
        self.on_open = on_open
        self.streams: list[FakeSpeechStream] = []
        self.connects = 0
        self.disconnects = 0
        self.connect_error: ConnectError | None = None
        # Simula um servidor lento: connect() espera antes de completar.
        self.connect_delay = 0.0
        self.connecting = asyncio.Event()

    async def connect(self, recognizer: str | None = None) -> object:
        self.connecting.set()
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.connects += 1
        return object()

    async def disconnect(self, client: object) -> None:
        self.disconnects += 1

    async def open_stream(self, client: object, recognizer: str) -> FakeSpeechStream:
        stream = FakeSpeechStream(recognizer)
        if self.on_open is not None:
            self.on_open(stream)
        self.streams.append(stream)
        return stream

    @property
    def last_stream(self) -> FakeSpeechStream:
        return self.streams[-1]


# ---------------------------------------------------------------------------
# Builders de responses
# ---------------------------------------------------------------------------


def make_result(text: str, *, is_final: bool = False) -> cloud_speech.StreamingRecognitionResult:
    return cloud_speech.StreamingRecognitionResult(
        alternatives=[cloud_speech.SpeechRecognitionAlternative(transcript=text)],
        is_final=is_final,
    )


def make_response(
    *results: cloud_speech.StreamingRecognitionResult,
) -> cloud_speech.StreamingRecognizeResponse:
    return cloud_speech.StreamingRecognizeResponse(results=list(results))


def make_activity(kind: str) -> cloud_speech.StreamingRecognizeResponse:
    event_type = cloud_speech.StreamingRecognizeResponse.SpeechEventType[kind]
    return cloud_speech.StreamingRecognizeResponse(speech_event_type=event_type)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Espera ate predicate() ser verdadeiro, falhando apos timeout."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


