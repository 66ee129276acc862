"""CLI do streamscribe.

Registra todos os comandos no grupo principal.
"""

from streamscribe.cli.main import cli
from streamscribe.cli.transcribe import transcribe

__all__ = ["cli", "transcribe"]
