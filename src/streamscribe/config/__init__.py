"""Configuracao do processo e das sessoes."""

from streamscribe.config.recognition import RecognitionOptions
from streamscribe.config.settings import Settings, configure_settings, get_settings

__all__ = ["RecognitionOptions", "Settings", "configure_settings", "get_settings"]
