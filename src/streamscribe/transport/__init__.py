"""Transporte gRPC com o servico de reconhecimento."""

from streamscribe.transport.connection import SpeechConnector
from streamscribe.transport.stream import SpeechStream

__all__ = ["SpeechConnector", "SpeechStream"]
