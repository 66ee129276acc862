"""Handle de um RPC StreamingRecognize aberto.

Requests saem de uma fila de saida consumida pelo proprio RPC
(``streaming_recognize(requests=...)``). O client so oferece leitura
bloqueante, entao um reader task drena os responses para uma fila de entrada
e ``receive_nowait()`` consulta essa fila. A fila de entrada e separada da
fila de comandos do worker.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import TYPE_CHECKING, Any

import grpc
from google.api_core import exceptions as core_exceptions

from streamscribe.exceptions import RecognitionStreamError
from streamscribe.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from google.cloud.speech_v2.types import cloud_speech

logger = get_logger("transport.stream")

# Sinal de "nenhum response disponivel ainda": nao e erro do servidor.
POLL_TIMEOUT_MESSAGE = "timeout when waiting for server"
# O servidor encerrou o RPC normalmente (fim da iteracao de responses).
STREAM_FINISHED_MESSAGE = "stream finished"

_stream_ids = itertools.count(1)


async def iter_requests(
    outbound: asyncio.Queue[cloud_speech.StreamingRecognizeRequest | None],
) -> AsyncIterator[cloud_speech.StreamingRecognizeRequest]:
    """Entrega os requests da fila ao RPC. ``None`` encerra a escrita (half-close)."""
    while True:
        request = await outbound.get()
        if request is None:
            return
        yield request


class SpeechStream:
    """Stream bidirecional de reconhecimento.

    - ``send()`` enfileira requests na ordem em que sao chamados.
    - ``receive_nowait()`` retorna o proximo response ou levanta
      RecognitionStreamError (poll sem dados, fim do RPC ou falha).
    - ``end_stream()`` fecha o lado de escrita (half-close).
    - ``cancel()`` aborta o RPC.
    - ``close()`` libera o reader task.

    Args:
        call: Chamada retornada por ``SpeechAsyncClient.streaming_recognize``.
        outbound: Fila consumida por ``iter_requests`` dentro do RPC.
    """

    def __init__(
        self,
        call: Any,
        outbound: asyncio.Queue[cloud_speech.StreamingRecognizeRequest | None],
    ) -> None:
        self._call = call
        self._outbound = outbound
        self._stream_id = next(_stream_ids)
        self._inbound: asyncio.Queue[
            cloud_speech.StreamingRecognizeResponse | RecognitionStreamError
        ] = asyncio.Queue()
        self._reader: asyncio.Task[None] | None = None
        self._terminal: RecognitionStreamError | None = None
        self._write_closed = False

    @property
    def stream_id(self) -> int:
        return self._stream_id

    def _ensure_reader(self) -> None:
        if self._reader is None:
            self._reader = asyncio.create_task(
                self._read_loop(), name=f"speech-stream-reader-{self._stream_id}"
            )

    async def _read_loop(self) -> None:
        try:
            async for response in self._call:
                self._inbound.put_nowait(response)
        except core_exceptions.GoogleAPICallError as e:
            self._inbound.put_nowait(RecognitionStreamError.from_api_error(e))
            return
        self._inbound.put_nowait(
            RecognitionStreamError.from_status(grpc.StatusCode.OK, STREAM_FINISHED_MESSAGE)
        )

    def receive_nowait(self) -> cloud_speech.StreamingRecognizeResponse:
        """Retorna o proximo response sem bloquear.

        Raises:
            RecognitionStreamError: DEADLINE_EXCEEDED com POLL_TIMEOUT_MESSAGE
                se nao ha response disponivel; OK com STREAM_FINISHED_MESSAGE se
                o servidor encerrou o RPC; o erro do RPC em caso de falha. Apos
                o fim do RPC, chamadas seguintes repetem o mesmo erro.
        """
        self._ensure_reader()
        try:
            item = self._inbound.get_nowait()
        except asyncio.QueueEmpty:
            if self._terminal is not None:
                raise RecognitionStreamError(
                    self._terminal.status, self._terminal.message
                ) from None
            raise RecognitionStreamError.from_status(
                grpc.StatusCode.DEADLINE_EXCEEDED, POLL_TIMEOUT_MESSAGE
            ) from None

        if isinstance(item, RecognitionStreamError):
            self._terminal = item
            raise item
        return item

    async def send(self, request: cloud_speech.StreamingRecognizeRequest) -> None:
        """Enfileira um request para o RPC.

        Raises:
            RecognitionStreamError: Se o stream ja foi half-closed.
        """
        if self._write_closed:
            raise RecognitionStreamError.from_status(
                grpc.StatusCode.FAILED_PRECONDITION, "stream nao aceita mais requests"
            )
        self._outbound.put_nowait(request)

    async def end_stream(self) -> None:
        """Half-close: nenhum request a mais; responses ainda podem chegar."""
        if not self._write_closed:
            self._write_closed = True
            self._outbound.put_nowait(None)
            logger.debug("stream_done_writing", stream_id=self._stream_id)

    def cancel(self) -> None:
        """Aborta o RPC imediatamente, sem flush."""
        self._call.cancel()
        self.close()

    def close(self) -> None:
        """Libera o reader task. Idempotente."""
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
        if not self._call.done():
            self._call.cancel()
