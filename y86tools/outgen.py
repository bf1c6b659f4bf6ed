"""Output generator that keeps generated lines within a column limit."""

from __future__ import annotations

import sys
from typing import Optional, TextIO


class OutputGenerator:
    """Writes tokens, breaking to an indented new line when a token would overflow."""

    def __init__(
        self,
        out: Optional[TextIO] = None,
        max_column: int = 80,
        first_indent: int = 4,
        other_indents: int = 2,
    ) -> None:
        self.out = out if out is not None else sys.stdout
        self.max_column = max_column
        self.first_indent = first_indent
        self.other_indents = other_indents
        self.cur_pos = 0
        self.indent = first_indent

    def print(self, text: str) -> None:
        """Write one token, starting a continuation line if it would not fit."""
        if len(text) + self.cur_pos > self.max_column:
            self.out.write("\n" + " " * max(self.indent, 0))
            self.cur_pos = self.indent
        self.out.write(text)
        self.cur_pos += len(text)

    def terminate(self) -> None:
        """End the current statement and reset the indentation."""
        self.out.write("\n")
        self.cur_pos = 0
        self.indent = self.first_indent

    def upindent(self) -> None:
        """Increase the indentation of continuation lines."""
        self.indent += self.other_indents

    def downindent(self) -> None:
        """Decrease the indentation of continuation lines."""
        self.indent -= self.other_indents