from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from lexer import Token


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str


@dataclass(frozen=True)
class LogicalLine:
    tokens: Tuple[Token, ...]
    indent: int
    location: SourceLocation

    @property
    def kind(self) -> Optional[str]:
        return self.tokens[0].type if self.tokens else None


@dataclass(frozen=True)
class Program:
    lines: Tuple[LogicalLine, ...]

    def __len__(self) -> int:
        return len(self.lines)

    def __getitem__(self, index: int) -> LogicalLine:
        return self.lines[index]

    def __iter__(self) -> Iterator[LogicalLine]:
        return iter(self.lines)


def count_leading_spaces(line: str) -> int:
    # Only literal spaces count; a tab stops the count like any other character.
    count = 0
    for ch in line:
        if ch != " ":
            break
        count += 1
    return count


class LineSegmenter:
    """Groups a flat token stream into indented logical lines.

    Indentation is not tokenized, so it is recovered from the raw source text:
    the n-th NEWLINE token closes the n-th physical line.
    """

    def __init__(self, tokens: Sequence[Token], source: str, filename: str = "<string>") -> None:
        self.tokens = tokens
        self.filename = filename
        self.source_lines = source.split("\n")
        self.indents = [count_leading_spaces(line) for line in self.source_lines]

    def segment(self) -> Program:
        lines: List[LogicalLine] = []
        buffer: List[Token] = []
        line_index = 0

        for token in self.tokens:
            if token.type == "NEWLINE":
                lines.append(self._make_line(buffer, line_index))
                buffer = []
                line_index += 1
            elif token.type == "EOF":
                if buffer:
                    lines.append(self._make_line(buffer, line_index))
                    buffer = []
            else:
                buffer.append(token)

        # Streams that were cut before their EOF marker.
        if buffer:
            lines.append(self._make_line(buffer, line_index))
        return Program(lines=tuple(lines))

    def _make_line(self, tokens: List[Token], line_index: int) -> LogicalLine:
        if line_index < len(self.indents):
            indent = self.indents[line_index]
            statement = self.source_lines[line_index].strip()
        else:
            indent = 0
            statement = ""
        column = tokens[0].column if tokens else indent + 1
        location = SourceLocation(
            file=self.filename,
            line=line_index + 1,
            column=column,
            statement=statement,
        )
        return LogicalLine(tokens=tuple(tokens), indent=indent, location=location)
