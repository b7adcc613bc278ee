"""
Kernel boot command line access.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class BootParameters:
    """Reads whitespace-separated ``key=value`` tokens from the boot command line."""

    def __init__(self, cmdline_path: str = "/proc/cmdline"):
        self.cmdline_path = Path(cmdline_path)

    def tokens(self) -> list[str]:
        """
        Tokens of the boot command line.

        Raises:
            OSError: If the command line cannot be read.
            UnicodeDecodeError: If it is not valid UTF-8.
        """
        return self.cmdline_path.read_text(encoding="utf-8").split()

    def values(self, key: str) -> list[str]:
        """All values given for ``key`` (``key=value`` tokens), in order."""
        marker = f"{key}="
        return [token[len(marker):] for token in self.tokens() if token.startswith(marker)]

    def single_value(self, key: str) -> Optional[str]:
        """The value of ``key`` if it is given exactly once, else None."""
        values = self.values(key)
        if len(values) != 1:
            return None
        return values[0]
