"""Structured logging para o streamscribe.

Usa structlog com stdlib logging como backend. Dois formatos:
- console: legivel para desenvolvimento (default)
- json: estruturado para producao

Loggers de bibliotecas de transporte (grpc, google.auth, urllib3) ficam em
WARNING para nao poluir a saida com ruido de conexao.
"""

from __future__ import annotations

import logging
import os

import structlog

_configured = False

_NOISY_LOGGERS = ("grpc", "google.auth", "urllib3")


def configure_logging(
    log_format: str | None = None,
    level: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Configura logging estruturado para o runtime.

    Idempotente: chamadas subsequentes sao ignoradas, exceto com force=True
    (usado pela CLI, que so conhece formato e nivel depois que os modulos
    ja obtiveram seus loggers).

    Args:
        log_format: "json" ou "console". Default via STREAMSCRIBE_LOG_FORMAT env ou "console".
        level: Nivel de log (DEBUG, INFO, WARNING, ERROR).
            Default via STREAMSCRIBE_LOG_LEVEL env ou "INFO".
        force: Reconfigura mesmo se ja configurado.
    """
    global _configured
    if _configured and not force:
        return

    resolved_format = log_format or os.environ.get("STREAMSCRIBE_LOG_FORMAT", "console")
    resolved_level = level or os.environ.get("STREAMSCRIBE_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if resolved_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, resolved_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Retorna logger com contexto de componente.

    Args:
        component: Nome do componente (ex: "session.worker", "transport.stream").

    Returns:
        BoundLogger com campo component vinculado.
    """
    configure_logging()
    return structlog.get_logger().bind(component=component)  # type: ignore[no-any-return]
