"""TranscriptionSession: coordenador de uma sessao de transcricao por caller.

A sessao e um ator: um unico task consome a inbox e e o unico que altera o
estado (worker, stream_state). A inbox recebe tanto chamadas do caller
(process_audio, get_or_start_worker, end_stream, stop) quanto mensagens
assincronas do StreamWorker (responses, falhas, fim do worker).

Maquina de estados do stream:
    CLOSED --get_or_start_worker--> OPEN   (cria worker + envia config request)
    OPEN   --get_or_start_worker--> OPEN   (reusa o worker, sem reenviar config)
    OPEN   --end_stream-----------> CLOSED (half-close gracioso)
    OPEN   --falha/fim do worker--> CLOSED
Um worker morto com estado OPEN e tratado como CLOSED (recriado no proximo
get_or_start_worker).

A sessao monitora o task dono do target: quando ele termina, o task do
ator e cancelado (inclusive no meio de uma chamada), as chamadas pendentes
falham com SessionClosedError e o worker recebe um stop() sem espera.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, cast

from streamscribe._types import StreamState
from streamscribe.config.recognition import RecognitionOptions
from streamscribe.config.settings import get_settings
from streamscribe.exceptions import SessionClosedError, StreamscribeError
from streamscribe.logging import get_logger
from streamscribe.session.converters import (
    build_audio_request,
    build_config_request,
    parse_response,
)
from streamscribe.session.metrics import active_sessions, audio_bytes_total
from streamscribe.session.target import EventTarget
from streamscribe.session.worker import (
    StreamWorker,
    WorkerExited,
    WorkerFailure,
    WorkerResponse,
)
from streamscribe.transport.connection import SpeechConnector

if TYPE_CHECKING:
    from streamscribe.config.settings import Settings

logger = get_logger("session.coordinator")


# ---------------------------------------------------------------------------
# Mensagens internas da inbox
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _ProcessAudio:
    audio: bytes


@dataclass(frozen=True, slots=True)
class _GetOrStartWorker:
    pass


@dataclass(frozen=True, slots=True)
class _EndStream:
    pass


@dataclass(frozen=True, slots=True)
class _Stop:
    reason: str


@dataclass(slots=True)
class _Call:
    request: _ProcessAudio | _GetOrStartWorker | _EndStream
    future: asyncio.Future[object] = field(repr=False)


class TranscriptionSession:
    """Sessao de transcricao de um caller.

    Criada via ``await TranscriptionSession.start(...)``. Todas as operacoes
    publicas sao serializadas pela inbox do ator.

    Lifecycle tipico:
        session = await TranscriptionSession.start(RecognitionOptions(...))
        await session.process_audio(chunk)      # abre o stream no primeiro chunk
        event = await session.target.receive()
        await session.end_stream()
        await session.stop()

    Args:
        options: Opcoes resolvidas (recognizer preenchido).
        target: Destino dos eventos; seu task dono e monitorado.
        settings: Settings do processo (poll timeout).
        connector: Provider de conexao usado pelos workers.
        session_id: Identificador da sessao.
    """

    def __init__(
        self,
        *,
        options: RecognitionOptions,
        target: EventTarget,
        settings: Settings,
        connector: SpeechConnector,
        session_id: str,
    ) -> None:
        if options.recognizer is None:
            msg = "options.recognizer deve estar resolvido (use RecognitionOptions.resolve)"
            raise ValueError(msg)
        self._session_id = session_id
        self._options = options
        self._recognizer: str = options.recognizer
        self._target = target
        self._settings = settings
        self._connector = connector
        self._config_request = build_config_request(options)

        self._inbox: asyncio.Queue[object] = asyncio.Queue()
        self._worker: StreamWorker | None = None
        self._stream_state = StreamState.CLOSED
        self._task: asyncio.Task[None] | None = None
        self._stop_reason = "cancelled"
        self._logger = logger.bind(session_id=session_id)

    @classmethod
    async def start(
        cls,
        options: RecognitionOptions | None = None,
        *,
        target: EventTarget | None = None,
        settings: Settings | None = None,
        connector: SpeechConnector | None = None,
        session_id: str | None = None,
    ) -> TranscriptionSession:
        """Cria a sessao e inicia o ator.

        Defaults: target ligado ao task chamador, RecognitionOptions() e
        recognizer vindo dos settings do processo.

        Raises:
            RecognizerNotConfiguredError: Se nenhum recognizer foi configurado.
        """
        resolved_settings = settings or get_settings()
        resolved_options = (options or RecognitionOptions()).resolve(resolved_settings)

        session = cls(
            options=resolved_options,
            target=target or EventTarget(),
            settings=resolved_settings,
            connector=connector or SpeechConnector(resolved_settings),
            session_id=session_id or f"sess_{uuid.uuid4().hex[:12]}",
        )
        session._task = asyncio.create_task(session._run(), name=f"session-{session.session_id}")
        session._target.monitor(session._on_target_down)

        if active_sessions is not None:
            active_sessions.inc()

        session._logger.info(
            "session_started",
            recognizer=resolved_options.recognizer,
            model=resolved_options.model,
            language_codes=list(resolved_options.language_codes),
            interim_results=resolved_options.interim_results,
        )
        return session

    # --- Propriedades ---

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def target(self) -> EventTarget:
        return self._target

    @property
    def options(self) -> RecognitionOptions:
        return self._options

    @property
    def recognizer(self) -> str:
        return self._recognizer

    @property
    def stream_state(self) -> StreamState:
        return self._stream_state

    def is_alive(self) -> bool:
        return self._task is not None and not self._task.done()

    async def wait_closed(self) -> None:
        """Aguarda o ator terminar."""
        if self._task is not None:
            await asyncio.wait({self._task})

    # --- API publica ---

    async def process_audio(self, audio: bytes) -> None:
        """Envia um chunk de audio, abrindo o stream se necessario.

        Raises:
            SessionClosedError: Se a sessao ja terminou.
            ConnectError: Se foi preciso abrir um stream e a conexao falhou.
        """
        await self._call(_ProcessAudio(audio))

    async def get_or_start_worker(self) -> StreamWorker:
        """Retorna o worker do stream aberto, criando um novo se preciso.

        Raises:
            SessionClosedError: Se a sessao ja terminou.
            ConnectError: Se a conexao falhou.
        """
        return cast(StreamWorker, await self._call(_GetOrStartWorker()))

    async def end_stream(self) -> None:
        """Encerra o stream aberto (half-close). No-op se ja esta fechado.

        Raises:
            SessionClosedError: Se a sessao ja terminou.
        """
        await self._call(_EndStream())

    async def stop(self) -> None:
        """Termina a sessao. Idempotente."""
        if self.is_alive():
            self._inbox.put_nowait(_Stop("stop_requested"))
        await self.wait_closed()

    async def _call(self, request: _ProcessAudio | _GetOrStartWorker | _EndStream) -> object:
        if not self.is_alive():
            raise SessionClosedError(self._session_id)
        future: asyncio.Future[object] = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait(_Call(request, future))
        return await future

    def _on_target_down(self) -> None:
        # Interrompe inclusive uma chamada em andamento (ex: connect lento).
        if self._task is not None and not self._task.done():
            self._stop_reason = "target_down"
            self._task.cancel()

    # --- Ator ---

    async def _run(self) -> None:
        try:
            while True:
                message = await self._inbox.get()
                if isinstance(message, _Stop):
                    self._stop_reason = message.reason
                    break
                if isinstance(message, _Call):
                    await self._handle_call(message)
                elif isinstance(message, WorkerResponse | WorkerFailure | WorkerExited):
                    self._handle_worker_message(message)
                else:
                    self._logger.debug("unexpected_message", message_type=type(message).__name__)
        finally:
            self._terminate(self._stop_reason)

    async def _handle_call(self, call: _Call) -> None:
        try:
            result = await self._dispatch(call.request)
        except asyncio.CancelledError:
            if not call.future.done():
                call.future.set_exception(SessionClosedError(self._session_id))
            raise
        except Exception as exc:
            if not call.future.done():
                call.future.set_exception(exc)
            if not isinstance(exc, StreamscribeError):
                raise
        else:
            if not call.future.done():
                call.future.set_result(result)

    async def _dispatch(self, request: _ProcessAudio | _GetOrStartWorker | _EndStream) -> object:
        if isinstance(request, _ProcessAudio):
            worker = await self._get_or_start_worker()
            worker.send_request(build_audio_request(request.audio, self._recognizer))
            if audio_bytes_total is not None:
                audio_bytes_total.inc(len(request.audio))
            return None
        if isinstance(request, _GetOrStartWorker):
            return await self._get_or_start_worker()
        self._end_stream()
        return None

    def _current_state(self) -> StreamState:
        """Estado reconciliado com a liveness do worker registrado."""
        if self._stream_state is StreamState.CLOSED or self._worker is None:
            return StreamState.CLOSED
        if not self._worker.is_alive():
            return StreamState.CLOSED
        return StreamState.OPEN

    async def _get_or_start_worker(self) -> StreamWorker:
        current = self._worker
        if current is not None and self._current_state() is StreamState.OPEN:
            return current

        if self._worker is not None:
            stale, self._worker = self._worker, None
            self._stream_state = StreamState.CLOSED
            self._logger.warning("stale_worker_replaced", worker_id=stale.worker_id)
            stale.stop()

        worker = await StreamWorker.start(
            self._inbox,  # type: ignore[arg-type]
            connector=self._connector,
            recognizer=self._recognizer,
            poll_timeout_s=self._settings.poll_timeout_s,
        )
        worker.send_request(self._config_request)
        self._worker = worker
        self._stream_state = StreamState.OPEN
        self._logger.info("stream_opened", worker_id=worker.worker_id)
        return worker

    def _end_stream(self) -> None:
        if self._worker is None:
            self._stream_state = StreamState.CLOSED
            return
        worker, self._worker = self._worker, None
        self._stream_state = StreamState.CLOSED
        if worker.is_alive():
            worker.end_stream()
        self._logger.info("stream_ended", worker_id=worker.worker_id)

    def _is_current(self, worker_id: str) -> bool:
        return self._worker is not None and self._worker.worker_id == worker_id

    def _handle_worker_message(
        self, message: WorkerResponse | WorkerFailure | WorkerExited
    ) -> None:
        if isinstance(message, WorkerExited):
            if self._is_current(message.worker_id):
                self._worker = None
                self._stream_state = StreamState.CLOSED
                self._logger.info("stream_closed_by_worker", worker_id=message.worker_id)
            return

        if isinstance(message, WorkerFailure):
            if self._is_current(message.worker_id):
                self._worker = None
                self._stream_state = StreamState.CLOSED
            self._logger.warning(
                "stream_failed",
                worker_id=message.worker_id,
                status=message.error.status,
                detail=message.error.message,
            )
            payload: object = message.error
        else:
            payload = message.response

        for event in parse_response(payload):
            self._target.send(event)

    def _terminate(self, reason: str) -> None:
        self._target.demonitor(self._on_target_down)
        if self._worker is not None:
            # Fire-and-forget: o teardown do worker e independente da sessao.
            self._worker.stop()
            self._worker = None
        self._stream_state = StreamState.CLOSED

        while not self._inbox.empty():
            message = self._inbox.get_nowait()
            if isinstance(message, _Call) and not message.future.done():
                message.future.set_exception(SessionClosedError(self._session_id))

        if active_sessions is not None:
            active_sessions.dec()

        self._logger.info("session_stopped", reason=reason)
