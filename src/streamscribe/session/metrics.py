"""Metricas Prometheus para sessoes de transcricao.

Metricas sao opcionais: se prometheus_client nao estiver instalado,
o modulo exporta None para cada metrica e o codigo consumidor deve
verificar antes de usar.

Metricas definidas:
- streamscribe_active_sessions: Gauge de sessoes vivas
- streamscribe_streams_opened_total: Counter de streams abertos (config requests enviados)
- streamscribe_audio_bytes_total: Counter de bytes de audio enviados
- streamscribe_stream_errors_total: Counter de erros encaminhados, por tipo
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prometheus_client import Counter, Gauge

try:
    from prometheus_client import Counter as _Counter
    from prometheus_client import Gauge as _Gauge

    active_sessions: Gauge | None = _Gauge(
        "streamscribe_active_sessions",
        "Number of live transcription sessions",
    )

    streams_opened_total: Counter | None = _Counter(
        "streamscribe_streams_opened_total",
        "Total streaming recognize calls opened",
    )

    audio_bytes_total: Counter | None = _Counter(
        "streamscribe_audio_bytes_total",
        "Total audio bytes forwarded to the recognition service",
    )

    stream_errors_total: Counter | None = _Counter(
        "streamscribe_stream_errors_total",
        "Total stream errors forwarded to sessions by kind",
        ["kind"],
    )

    HAS_METRICS = True
except ImportError:
    active_sessions = None
    streams_opened_total = None
    audio_bytes_total = None
    stream_errors_total = None
    HAS_METRICS = False
