"""Tipos fundamentais do streamscribe.

Enums usados pelo coordenador de sessao e pelo stream worker.
"""

from __future__ import annotations

from enum import Enum


class StreamState(Enum):
    """Estado do stream de uma sessao.

    CLOSED: nenhum RPC ativo (worker e None).
    OPEN: RPC estabelecido e config request ja enviado.
    """

    CLOSED = "closed"
    OPEN = "open"


class ErrorDisposition(Enum):
    """Destino de um erro de transporte dentro do loop do worker."""

    IGNORE = "ignore"  # transiente, o loop continua
    STOP = "stop"  # encerramento silencioso, nada e encaminhado
    FORWARD = "forward"  # encaminha a sessao e encerra o worker
