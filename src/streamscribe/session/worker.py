"""StreamWorker: dono de um unico RPC StreamingRecognize aberto.

O loop do worker alterna duas fases, sem nunca bloquear indefinidamente:
    1. drena responses disponiveis do stream (leitura nao bloqueante) e
       encaminha cada um, na ordem de chegada, para a inbox da sessao;
    2. espera um comando de saida (send/end/cancel/stop) por no maximo
       poll_timeout_s e o executa.

Entrada (responses) e saida (comandos) usam filas distintas. Uma espera
sem limite em qualquer uma delas deixaria a outra parada.

Erros de transporte sao classificados em:
- IGNORE: poll sem dados: o loop continua;
- STOP: encerramento normal/benigno do peer: termina sem encaminhar nada;
- FORWARD: qualquer outro: encaminha WorkerFailure e termina.
O worker nunca tenta retry.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import grpc

from streamscribe._types import ErrorDisposition
from streamscribe.config.settings import DEFAULT_POLL_TIMEOUT_MS
from streamscribe.exceptions import RecognitionStreamError
from streamscribe.logging import get_logger
from streamscribe.session.metrics import stream_errors_total, streams_opened_total
from streamscribe.transport.stream import POLL_TIMEOUT_MESSAGE, STREAM_FINISHED_MESSAGE

if TYPE_CHECKING:
    from google.cloud.speech_v2 import SpeechAsyncClient
    from google.cloud.speech_v2.types import cloud_speech

    from streamscribe.transport.connection import SpeechConnector
    from streamscribe.transport.stream import SpeechStream

logger = get_logger("session.worker")

_worker_ids = itertools.count(1)

# Erros benignos: {(status, mensagem) -> disposicao}.
_KNOWN_ERRORS: dict[tuple[grpc.StatusCode, str], ErrorDisposition] = {
    # Poll sem dados, gerado localmente: condicao normal de stream ocioso.
    (grpc.StatusCode.DEADLINE_EXCEEDED, POLL_TIMEOUT_MESSAGE): ErrorDisposition.IGNORE,
    # Servidor encerrou o RPC apos o half-close.
    (grpc.StatusCode.OK, STREAM_FINISHED_MESSAGE): ErrorDisposition.STOP,
    # Consequencia do nosso proprio cancel.
    (grpc.StatusCode.CANCELLED, "Locally cancelled by application!"): ErrorDisposition.STOP,
    # Reportados com outro codigo, mas significam conexao fechada pelo peer.
    (grpc.StatusCode.UNKNOWN, "Stream removed"): ErrorDisposition.STOP,
    (grpc.StatusCode.UNAVAILABLE, "Socket closed"): ErrorDisposition.STOP,
    (grpc.StatusCode.UNAVAILABLE, "Connection reset by peer"): ErrorDisposition.STOP,
}


def classify_stream_error(error: RecognitionStreamError) -> ErrorDisposition:
    """Decide o que o loop do worker faz com um erro de transporte."""
    code = error.code
    if code is None:
        return ErrorDisposition.FORWARD
    return _KNOWN_ERRORS.get((code, error.message), ErrorDisposition.FORWARD)


# ---------------------------------------------------------------------------
# Mensagens worker -> sessao
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class WorkerResponse:
    """Response recebido do servico, encaminhado sem alteracao."""

    worker_id: str
    response: cloud_speech.StreamingRecognizeResponse


@dataclass(frozen=True, slots=True)
class WorkerFailure:
    """Erro de transporte nao recuperavel. O worker termina logo em seguida."""

    worker_id: str
    error: RecognitionStreamError


@dataclass(frozen=True, slots=True)
class WorkerExited:
    """Ultima mensagem de todo worker, qualquer que seja o motivo do fim."""

    worker_id: str


WorkerMessage = WorkerResponse | WorkerFailure | WorkerExited


# ---------------------------------------------------------------------------
# Comandos sessao -> worker
# ---------------------------------------------------------------------------


class _Control(Enum):
    END_STREAM = "end_stream"
    CANCEL_STREAM = "cancel_stream"
    STOP = "stop"


@dataclass(frozen=True, slots=True)
class _SendRequest:
    request: cloud_speech.StreamingRecognizeRequest


class StreamWorker:
    """Worker de um stream de reconhecimento.

    Criado via ``await StreamWorker.start(...)``. Todos os comandos sao
    fire-and-forget: enfileiram e retornam imediatamente; a execucao ocorre
    no loop do worker, na ordem de enfileiramento.

    Args:
        worker_id: Identificador do worker (aparece nas mensagens e logs).
        client: Client exclusivo deste worker (dono do canal).
        stream: Stream aberto pelo client.
        inbox: Fila da sessao dona, destino de responses e falhas.
        connector: Provider usado para liberar o client no fim.
        poll_timeout_s: Espera maxima por comandos em cada volta do loop.
    """

    def __init__(
        self,
        *,
        worker_id: str,
        client: SpeechAsyncClient,
        stream: SpeechStream,
        inbox: asyncio.Queue[WorkerMessage],
        connector: SpeechConnector,
        poll_timeout_s: float,
    ) -> None:
        self._worker_id = worker_id
        self._client = client
        self._stream = stream
        self._inbox = inbox
        self._connector = connector
        self._poll_timeout_s = poll_timeout_s
        self._commands: asyncio.Queue[_SendRequest | _Control] = asyncio.Queue()
        self._eos = False
        self._task: asyncio.Task[None] | None = None
        self._logger = logger.bind(worker_id=worker_id)

    @classmethod
    async def start(
        cls,
        inbox: asyncio.Queue[WorkerMessage],
        *,
        connector: SpeechConnector,
        recognizer: str,
        poll_timeout_s: float = DEFAULT_POLL_TIMEOUT_MS / 1000.0,
    ) -> StreamWorker:
        """Conecta, abre o stream e inicia o loop do worker.

        Raises:
            ConnectError: Se o canal nao pode ser aberto (nenhum worker e criado).
            RecognitionStreamError: Se o RPC nao pode ser aberto.
        """
        worker_id = f"worker-{next(_worker_ids)}"
        client = await connector.connect(recognizer)
        try:
            stream = await connector.open_stream(client, recognizer)
        except (RecognitionStreamError, asyncio.CancelledError):
            await connector.disconnect(client)
            raise

        worker = cls(
            worker_id=worker_id,
            client=client,
            stream=stream,
            inbox=inbox,
            connector=connector,
            poll_timeout_s=poll_timeout_s,
        )
        worker._task = asyncio.create_task(worker._run(), name=f"stream-{worker_id}")

        if streams_opened_total is not None:
            streams_opened_total.inc()

        return worker

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def end_of_stream(self) -> bool:
        """True apos o half-close ter sido executado."""
        return self._eos

    def is_alive(self) -> bool:
        return self._task is not None and not self._task.done()

    async def wait_closed(self) -> None:
        """Aguarda o loop do worker terminar."""
        if self._task is not None:
            await asyncio.wait({self._task})

    # --- Comandos ---

    def send_request(self, request: cloud_speech.StreamingRecognizeRequest) -> None:
        """Enfileira um request (config ou audio) para o stream."""
        self._commands.put_nowait(_SendRequest(request))

    def end_stream(self) -> None:
        """Half-close gracioso. Apenas o primeiro tem efeito."""
        self._commands.put_nowait(_Control.END_STREAM)

    def cancel_stream(self) -> None:
        """Aborta o RPC e termina o worker. No-op apos end_stream."""
        self._commands.put_nowait(_Control.CANCEL_STREAM)

    def stop(self) -> None:
        """Libera o canal e termina o worker incondicionalmente."""
        self._commands.put_nowait(_Control.STOP)

    # --- Loop ---

    async def _run(self) -> None:
        self._logger.debug("worker_started")
        try:
            while self._drain_inbound():
                try:
                    command = await asyncio.wait_for(
                        self._commands.get(), timeout=self._poll_timeout_s
                    )
                except TimeoutError:
                    continue
                if not await self._execute(command):
                    break
        finally:
            self._stream.close()
            await self._connector.disconnect(self._client)
            self._inbox.put_nowait(WorkerExited(self._worker_id))
            self._logger.debug("worker_exited")

    def _drain_inbound(self) -> bool:
        """Encaminha todos os responses disponiveis. Retorna False se deve terminar."""
        while True:
            try:
                response = self._stream.receive_nowait()
            except RecognitionStreamError as error:
                return self._handle_error(error)
            self._inbox.put_nowait(WorkerResponse(self._worker_id, response))

    async def _execute(self, command: _SendRequest | _Control) -> bool:
        """Executa um comando. Retorna False se o worker deve terminar."""
        if isinstance(command, _SendRequest):
            try:
                await self._stream.send(command.request)
            except RecognitionStreamError as error:
                return self._handle_error(error)
            return True

        if command is _Control.END_STREAM:
            if not self._eos:
                await self._stream.end_stream()
                self._eos = True
                self._logger.debug("stream_half_closed")
            return True

        if command is _Control.CANCEL_STREAM:
            if self._eos:
                # Stream ja esta drenando ate o fim; cancelar truncaria os responses.
                self._logger.debug("cancel_ignored_after_end_of_stream")
                return True
            self._stream.cancel()
            self._logger.debug("stream_cancelled")
            return False

        self._logger.debug("worker_stop_requested")
        return False

    def _handle_error(self, error: RecognitionStreamError) -> bool:
        disposition = classify_stream_error(error)
        if disposition is ErrorDisposition.IGNORE:
            return True

        if disposition is ErrorDisposition.STOP:
            self._logger.debug("stream_closed_by_peer", status=error.status, detail=error.message)
            return False

        self._logger.warning("stream_error", status=error.status, detail=error.message)
        if stream_errors_total is not None:
            code = error.code
            stream_errors_total.labels(kind=code.name if code else "UNKNOWN").inc()
        self._inbox.put_nowait(WorkerFailure(self._worker_id, error))
        return False
