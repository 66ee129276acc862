"""Provider de conexao com o Google Speech-to-Text v2.

Cada StreamWorker recebe o seu proprio ``SpeechAsyncClient``, construido
sobre um canal exclusivo (TLS + Application Default Credentials resolvidas
pela biblioteca, ou plaintext para emuladores), e o libera no fim do stream.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import google.auth.exceptions
import grpc.aio
from google.api_core import exceptions as core_exceptions
from google.api_core.gapic_v1 import routing_header
from google.cloud.speech_v2 import SpeechAsyncClient
from google.cloud.speech_v2.services.speech.transports import SpeechGrpcAsyncIOTransport
from google.cloud.speech_v2.types import cloud_speech

from streamscribe.config.settings import DEFAULT_ENDPOINT
from streamscribe.exceptions import ConnectError, RecognitionStreamError
from streamscribe.logging import get_logger
from streamscribe.transport.stream import SpeechStream, iter_requests

if TYPE_CHECKING:
    from streamscribe.config.settings import Settings

logger = get_logger("transport.connection")


def request_metadata(recognizer: str) -> tuple[tuple[str, str], ...]:
    """Header de roteamento (x-goog-request-params) para o recognizer."""
    return (routing_header.to_grpc_metadata((("recognizer", recognizer),)),)


def endpoint_for_recognizer(recognizer: str | None, endpoint: str) -> str:
    """Resolve o endpoint regional para recognizers fora de ``global``.

    Recognizers regionais so aceitam chamadas no endpoint da propria regiao
    (ex: ``europe-west4-speech.googleapis.com``). Endpoints customizados
    nunca sao reescritos.
    """
    if recognizer is None or endpoint != DEFAULT_ENDPOINT:
        return endpoint
    location = SpeechAsyncClient.parse_recognizer_path(recognizer).get("location")
    if location is None or location == "global":
        return endpoint
    return f"{location}-{DEFAULT_ENDPOINT}"


class SpeechConnector:
    """Cria e libera clients de reconhecimento.

    Lifecycle tipico (conduzido pelo StreamWorker):
        client = await connector.connect(recognizer)
        stream = await connector.open_stream(client, recognizer)
        # ... usar stream ...
        await connector.disconnect(client)
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings

    def _channel_options(self) -> list[tuple[str, int]]:
        return [
            ("grpc.max_send_message_length", self._settings.max_message_bytes),
            ("grpc.max_receive_message_length", self._settings.max_message_bytes),
            ("grpc.keepalive_time_ms", 30_000),
            ("grpc.keepalive_timeout_ms", 10_000),
        ]

    def _create_channel(self, endpoint: str) -> grpc.aio.Channel:
        if self._settings.insecure:
            return grpc.aio.insecure_channel(endpoint, options=self._channel_options())
        try:
            return SpeechGrpcAsyncIOTransport.create_channel(
                endpoint, options=self._channel_options()
            )
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise ConnectError(endpoint, str(e)) from e

    async def connect(self, recognizer: str | None = None) -> SpeechAsyncClient:
        """Cria um client com canal proprio e espera o canal ficar pronto.

        Args:
            recognizer: Recognizer que sera usado no client (define o endpoint regional).

        Returns:
            Client conectado.

        Raises:
            ConnectError: Credenciais indisponiveis ou canal nao ficou pronto
                dentro de connect_timeout_ms.
        """
        endpoint = endpoint_for_recognizer(recognizer, self._settings.endpoint)
        channel = self._create_channel(endpoint)

        try:
            await asyncio.wait_for(channel.channel_ready(), timeout=self._settings.connect_timeout_s)
        except TimeoutError as e:
            await channel.close()
            raise ConnectError(
                endpoint, f"canal nao ficou pronto em {self._settings.connect_timeout_s}s"
            ) from e
        except asyncio.CancelledError:
            await channel.close()
            raise

        logger.debug("channel_connected", endpoint=endpoint)
        return SpeechAsyncClient(transport=SpeechGrpcAsyncIOTransport(channel=channel))

    async def disconnect(self, client: SpeechAsyncClient) -> None:
        """Fecha o canal do client. Falhas sao logadas, nunca propagadas."""
        try:
            await client.transport.close()
        except Exception:
            logger.warning("channel_close_error", exc_info=True)
        else:
            logger.debug("channel_disconnected")

    async def open_stream(self, client: SpeechAsyncClient, recognizer: str) -> SpeechStream:
        """Abre o RPC bidirecional StreamingRecognize.

        Os requests saem de uma fila alimentada por ``SpeechStream.send``.

        Raises:
            RecognitionStreamError: Se o RPC nao pode ser aberto.
        """
        outbound: asyncio.Queue[cloud_speech.StreamingRecognizeRequest | None] = asyncio.Queue()
        try:
            call = await client.streaming_recognize(
                requests=iter_requests(outbound),
                metadata=request_metadata(recognizer),
            )
        except core_exceptions.GoogleAPICallError as e:
            logger.error("stream_open_error", grpc_code=_code_name(e))
            raise RecognitionStreamError.from_api_error(e) from e
        return SpeechStream(call, outbound)


def _code_name(error: core_exceptions.GoogleAPICallError) -> str:
    code = error.grpc_status_code
    return code.name if code is not None else "UNKNOWN"
