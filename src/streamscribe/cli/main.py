"""Grupo principal de comandos CLI do streamscribe."""

from __future__ import annotations

import click

import streamscribe


@click.group()
@click.version_option(version=streamscribe.__version__, prog_name="streamscribe")
def cli() -> None:
    """streamscribe: Transcricao em streaming com Google Speech-to-Text v2."""
