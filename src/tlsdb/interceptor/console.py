"""Operator console: where paused sessions read commands and print output."""
from __future__ import annotations

import sys
from typing import TextIO


class OperatorConsole:
    """Line-oriented terminal I/O.

    Args:
        stdin: command source (default sys.stdin)
        stdout: output sink (default sys.stdout)
        prompt: printed before every command read
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        prompt: str = ">",
    ) -> None:
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._prompt = prompt

    def read_line(self) -> str | None:
        """Prompt and read one line. Returns None at end of input."""
        self._stdout.write(self._prompt)
        self._stdout.flush()
        line = self._stdin.readline()
        if not line:
            return None
        return line.rstrip("\r\n")

    def write(self, text: str) -> None:
        self._stdout.write(text + "\n")
        self._stdout.flush()
