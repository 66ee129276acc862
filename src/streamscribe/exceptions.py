"""Exceptions tipadas do streamscribe.

Hierarquia:
    StreamscribeError (base)
    +-- ConfigError
    |   +-- SettingsParseError
    |   +-- SettingsValidationError
    |   +-- RecognizerNotConfiguredError
    +-- TransportError
    |   +-- ConnectError
    |   +-- RecognitionStreamError
    +-- SessionError
        +-- SessionClosedError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import grpc

if TYPE_CHECKING:
    from google.api_core.exceptions import GoogleAPICallError


class StreamscribeError(Exception):
    """Base para todas as exceptions do streamscribe."""


# --- Configuracao ---


class ConfigError(StreamscribeError):
    """Erro de configuracao do runtime."""


class SettingsParseError(ConfigError):
    """Falha ao parsear arquivo de settings."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Falha ao parsear settings '{path}': {reason}")


class SettingsValidationError(ConfigError):
    """Settings invalidos (campos com tipo ou valor errado)."""

    def __init__(self, path: str, errors: list[str]) -> None:
        self.path = path
        self.errors = errors
        detail = "; ".join(errors)
        super().__init__(f"Settings '{path}' invalidos: {detail}")


class RecognizerNotConfiguredError(ConfigError):
    """Nenhum recognizer informado nas opcoes nem nos settings do processo."""

    def __init__(self) -> None:
        super().__init__(
            "Nenhum recognizer configurado. Informe 'recognizer' nas opcoes "
            "ou defina STREAMSCRIBE_RECOGNIZER."
        )


# --- Transporte ---


class TransportError(StreamscribeError):
    """Erro na conexao ou no stream gRPC com o servico de reconhecimento."""


class ConnectError(TransportError):
    """Falha ao abrir o canal gRPC."""

    def __init__(self, endpoint: str, reason: str) -> None:
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Falha ao conectar em '{endpoint}': {reason}")


class RecognitionStreamError(TransportError):
    """Falha reportada pelo RPC de streaming.

    Carrega o status numerico gRPC e a mensagem de detalhe, no mesmo
    formato em que o erro e entregue ao caller via evento de erro.
    """

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"RPC falhou (status {status}): {message}")

    @property
    def code(self) -> grpc.StatusCode | None:
        """StatusCode gRPC correspondente ao status numerico, se conhecido."""
        for code in grpc.StatusCode:
            if code.value[0] == self.status:
                return code
        return None

    @classmethod
    def from_status(cls, code: grpc.StatusCode, message: str) -> RecognitionStreamError:
        return cls(code.value[0], message)

    @classmethod
    def from_api_error(cls, error: GoogleAPICallError) -> RecognitionStreamError:
        """Converte o erro do client Google em RecognitionStreamError."""
        code = error.grpc_status_code or grpc.StatusCode.UNKNOWN
        return cls(code.value[0], error.message or "")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecognitionStreamError):
            return NotImplemented
        return (self.status, self.message) == (other.status, other.message)

    def __hash__(self) -> int:
        return hash((self.status, self.message))


# --- Sessao ---


class SessionError(StreamscribeError):
    """Erro relacionado a sessoes de transcricao."""


class SessionClosedError(SessionError):
    """Operacao tentada em sessao ja encerrada."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Sessao '{session_id}' ja esta encerrada")
