"""Comando `streamscribe transcribe`: envia um arquivo de audio em chunks por uma sessao."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from streamscribe._types import StreamState
from streamscribe.cli.main import cli
from streamscribe.config.recognition import DEFAULT_MODEL, RecognitionOptions
from streamscribe.config.settings import Settings, configure_settings
from streamscribe.exceptions import ConfigError, TransportError
from streamscribe.logging import configure_logging, get_logger
from streamscribe.models.events import (
    SpeechActivityEvent,
    StreamErrorEvent,
    StreamTimeoutEvent,
    TranscriptEvent,
)
from streamscribe.session.coordinator import TranscriptionSession

if TYPE_CHECKING:
    from collections.abc import Iterator

    from streamscribe.models.events import SessionEvent
    from streamscribe.session.target import EventTarget

logger = get_logger("cli.transcribe")

# Maior chunk aceito pelo servico por audio request.
DEFAULT_CHUNK_BYTES = 25_600
DEFAULT_DRAIN_TIMEOUT_S = 30.0


def iter_chunks(data: bytes, chunk_bytes: int) -> Iterator[bytes]:
    """Divide o audio em chunks de no maximo chunk_bytes."""
    for offset in range(0, len(data), chunk_bytes):
        yield data[offset : offset + chunk_bytes]


def _render(event: SessionEvent, output_format: str) -> bool:
    """Imprime um evento. Retorna True se for um erro."""
    if output_format == "json":
        click.echo(event.model_dump_json())
        return isinstance(event, StreamErrorEvent)

    if isinstance(event, TranscriptEvent):
        if event.is_final:
            click.echo(f"> {event.content.strip()}")
        else:
            click.echo(f"  ... {event.content.strip()}")
    elif isinstance(event, StreamErrorEvent):
        click.echo(f"[erro {event.status}] {event.message}", err=True)
        return True
    elif isinstance(event, StreamTimeoutEvent):
        click.echo("[timeout] stream sem dados", err=True)
    elif isinstance(event, SpeechActivityEvent):
        logger.debug("speech_activity", kind=event.kind)
    return False


def _flush(target: EventTarget, output_format: str) -> bool:
    failed = False
    while target.pending():
        failed = _render(target.receive_nowait(), output_format) or failed
    return failed


async def _transcribe_file(
    path: Path,
    options: RecognitionOptions,
    settings: Settings,
    chunk_bytes: int,
    output_format: str,
    drain_timeout_s: float,
) -> int:
    """Fluxo async principal: abre sessao, envia chunks, drena eventos finais."""
    session = await TranscriptionSession.start(options, settings=settings)
    failed = False
    try:
        for chunk in iter_chunks(path.read_bytes(), chunk_bytes):
            await session.process_audio(chunk)
            failed = _flush(session.target, output_format) or failed

        worker = None
        if session.stream_state is StreamState.OPEN:
            worker = await session.get_or_start_worker()
        await session.end_stream()
        if worker is not None:
            try:
                await asyncio.wait_for(worker.wait_closed(), timeout=drain_timeout_s)
            except TimeoutError:
                logger.warning("drain_timeout", timeout_s=drain_timeout_s)
                worker.stop()
        # Round-trip pela inbox: garante que os responses finais ja viraram eventos.
        await session.end_stream()
        failed = _flush(session.target, output_format) or failed
    finally:
        await session.stop()

    return 1 if failed else 0


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--recognizer", "-r", default=None, help="Recognizer (default: settings).")
@click.option(
    "--language",
    "-l",
    "language_codes",
    multiple=True,
    help="Codigo de idioma BCP-47 (repetivel). Default: en-US.",
)
@click.option("--model", "-m", default=DEFAULT_MODEL, show_default=True, help="Modelo.")
@click.option(
    "--interim-results",
    is_flag=True,
    default=False,
    help="Emite transcricoes parciais.",
)
@click.option(
    "--no-punctuation",
    is_flag=True,
    default=False,
    help="Desabilita pontuacao automatica.",
)
@click.option(
    "--chunk-bytes",
    type=click.IntRange(min=1),
    default=DEFAULT_CHUNK_BYTES,
    show_default=True,
    help="Tamanho de cada audio request.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Formato de saida dos eventos.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Arquivo YAML de settings (default: variaveis STREAMSCRIBE_*).",
)
@click.option("--endpoint", default=None, help="host:port do servico.")
@click.option("--insecure", is_flag=True, default=False, help="Canal sem TLS/credenciais.")
@click.option(
    "--drain-timeout",
    type=float,
    default=DEFAULT_DRAIN_TIMEOUT_S,
    show_default=True,
    help="Espera maxima (s) pelos responses finais apos o fim do audio.",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default="console",
    show_default=True,
    help="Formato de log.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    show_default=True,
    help="Nivel de log.",
)
def transcribe(
    file: Path,
    recognizer: str | None,
    language_codes: tuple[str, ...],
    model: str,
    interim_results: bool,
    no_punctuation: bool,
    chunk_bytes: int,
    output_format: str,
    config_path: Path | None,
    endpoint: str | None,
    insecure: bool,
    drain_timeout: float,
    log_format: str,
    log_level: str,
) -> None:
    """Transcreve um arquivo de audio via streaming."""
    configure_logging(log_format=log_format, level=log_level, force=True)

    try:
        settings = Settings.from_yaml_path(config_path) if config_path else Settings.from_env()
    except ConfigError as exc:
        click.echo(f"Erro: {exc}", err=True)
        sys.exit(1)

    overrides: dict[str, object] = {}
    if endpoint:
        overrides["endpoint"] = endpoint
    if insecure:
        overrides["insecure"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_settings(settings)

    options = RecognitionOptions(
        language_codes=language_codes or RecognitionOptions().language_codes,
        enable_automatic_punctuation=not no_punctuation,
        interim_results=interim_results,
        model=model,
        recognizer=recognizer,
    )

    try:
        exit_code = asyncio.run(
            _transcribe_file(
                file,
                options,
                settings,
                chunk_bytes=chunk_bytes,
                output_format=output_format,
                drain_timeout_s=drain_timeout,
            )
        )
    except (ConfigError, TransportError) as exc:
        click.echo(f"Erro: {exc}", err=True)
        sys.exit(1)

    sys.exit(exit_code)
