"""Coordenacao de sessoes de transcricao e stream workers."""

from streamscribe.session.coordinator import TranscriptionSession
from streamscribe.session.target import EventTarget
from streamscribe.session.worker import StreamWorker

__all__ = ["EventTarget", "StreamWorker", "TranscriptionSession"]
