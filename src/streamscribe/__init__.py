"""streamscribe: sessoes de transcricao em streaming contra o Google Speech-to-Text v2."""

from __future__ import annotations

__version__ = "0.1.0"
