"""Conversions between LSP (line, character) positions and buffer offsets.

Offsets index the Python string holding the document, so characters are
counted in code points. Lines end at "\\r\\n", "\\r" or "\\n", as in LSP; a
document always has at least one (possibly empty) line.
"""

import bisect
import re
from typing import List, Optional, Tuple

from editor_lsp.lsp.types import Position

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class TextBuffer:
    """Immutable line index over a document's text."""

    __slots__ = ("text", "_starts", "_ends")

    def __init__(self, text: str):
        self.text = text
        starts = [0]
        ends = []
        for match in _LINE_BREAK.finditer(text):
            ends.append(match.start())
            starts.append(match.end())
        ends.append(len(text))
        self._starts: List[int] = starts
        self._ends: List[int] = ends

    def __len__(self) -> int:
        return len(self.text)

    @property
    def length(self) -> int:
        return len(self.text)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_start(self, line: int) -> int:
        """Offset of the first character of zero-based ``line``."""
        return self._starts[line]

    def line_end(self, line: int) -> int:
        """Offset just past the last character of ``line`` (before its line break)."""
        return self._ends[line]

    def line_text(self, line: int) -> str:
        return self.text[self.line_start(line) : self.line_end(line)]

    def line_at(self, offset: int) -> Tuple[int, int]:
        """Return (zero-based line, line start offset) containing ``offset``."""
        line = bisect.bisect_right(self._starts, offset) - 1
        return line, self._starts[line]

    def slice(self, start: int, end: Optional[int] = None) -> str:
        return self.text[start:end]


def pos_to_offset(doc: TextBuffer, pos: Position) -> Optional[int]:
    """Map a position to an offset, or None when it lies outside the document.

    Any line at or past ``line_count`` with ``character == 0`` is the
    end-of-document position and maps to ``doc.length``. A character past
    the end of its line is rejected rather than spilling into the next line.
    """
    line = pos["line"]
    character = pos["character"]
    if line < 0 or character < 0:
        return None
    if line >= doc.line_count:
        if character == 0:
            return doc.length
        return None
    offset = doc.line_start(line) + character
    if offset > doc.line_end(line):
        return None
    return offset


def pos_to_offset_or_zero(doc: TextBuffer, pos: Position) -> int:
    """Lenient pos_to_offset: malformed positions degrade to offset 0."""
    offset = pos_to_offset(doc, pos)
    return 0 if offset is None else offset


def offset_to_pos(doc: TextBuffer, offset: int) -> Position:
    """Map an offset in 0..length to its position."""
    if offset < 0 or offset > doc.length:
        raise ValueError(f"offset {offset} outside document of length {doc.length}")
    line, start = doc.line_at(offset)
    return {"line": line, "character": offset - start}


def compare_positions(a: Position, b: Position) -> int:
    """Negative, zero or positive as ``a`` sorts before, with or after ``b``."""
    if a["line"] != b["line"]:
        return a["line"] - b["line"]
    return a["character"] - b["character"]
