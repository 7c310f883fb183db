from __future__ import annotations
from dataclasses import dataclass
from typing import List


class MiniPyError(Exception):
    """Base class for interpreter errors."""


class MiniPyParseError(MiniPyError):
    """Raised when tokenizing fails."""


class UnexpectedCharacterError(MiniPyParseError):
    def __init__(self, char: str, filename: str, line: int, column: int) -> None:
        super().__init__(f"Unexpected character '{char}' at {filename}:{line}:{column}")
        self.char = char
        self.line = line
        self.column = column


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    line: int = 0
    column: int = 0


KEYWORDS = {
    "if": "IF",
    "else": "ELSE",
    "while": "WHILE",
    "print": "PRINT",
}

SYMBOLS = {
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "%": "MOD",
    "(": "LPAREN",
    ")": "RPAREN",
    ":": "COLON",
}

# Characters that form a two-character token when followed by '='.
COMPARE_PREFIXES = {
    "=": ("EQ", "EQEQ"),
    ">": ("GT", "GTE"),
    "<": ("LT", "LTE"),
}

IDENT_START = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_"
DIGITS = "0123456789"


class Lexer:
    def __init__(self, text: str, filename: str = "<string>") -> None:
        self.text = text
        self.filename = filename
        self.index = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        tokens_append = tokens.append
        _advance = self._advance
        symbols = SYMBOLS
        text = self.text
        n = len(text)

        while self.index < n:
            ch: str = text[self.index]
            if ch == " " or ch == "\t" or ch == "\r":
                _advance()
                continue
            if ch == "\n":
                tokens_append(Token("NEWLINE", "\n", self.line, self.column))
                _advance()
                continue
            if ch == "#":
                self._consume_comment()
                continue
            if ch in symbols:
                tokens_append(Token(symbols[ch], ch, self.line, self.column))
                _advance()
                continue
            if ch in COMPARE_PREFIXES:
                tokens_append(self._consume_comparison())
                continue
            if ch == "!":
                line, col = self.line, self.column
                _advance()
                if not self._eof and self._peek() == "=":
                    _advance()
                    tokens_append(Token("NEQ", "!=", line, col))
                # A lone '!' has no meaning and is dropped.
                continue
            if ch in DIGITS:
                tokens_append(self._consume_number())
                continue
            if ch in IDENT_START:
                tokens_append(self._consume_identifier())
                continue
            raise UnexpectedCharacterError(ch, self.filename, self.line, self.column)
        tokens_append(Token("EOF", "", self.line, self.column))
        return tokens

    def _consume_comment(self) -> None:
        text = self.text
        n = len(text)
        _advance = self._advance
        while self.index < n and text[self.index] != "\n":
            _advance()

    def _consume_comparison(self) -> Token:
        line, col = self.line, self.column
        ch = self._peek()
        single, double = COMPARE_PREFIXES[ch]
        self._advance()
        if not self._eof and self._peek() == "=":
            self._advance()
            return Token(double, ch + "=", line, col)
        return Token(single, ch, line, col)

    def _consume_number(self) -> Token:
        line, col = self.line, self.column
        chars: List[str] = []
        while not self._eof and self._peek() in DIGITS:
            chars.append(self._peek())
            self._advance()
        return Token("NUMBER", "".join(chars), line, col)

    def _consume_identifier(self) -> Token:
        line, col = self.line, self.column
        chars: List[str] = []
        text = self.text
        n = len(text)
        _advance = self._advance
        while self.index < n:
            ch = text[self.index]
            if ch in IDENT_START or ch in DIGITS:
                chars.append(ch)
                _advance()
                continue
            break
        value = "".join(chars)
        token_type: str = KEYWORDS.get(value, "IDENT")
        return Token(token_type, value, line, col)

    @property
    def _eof(self) -> bool:
        return self.index >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.index]

    def _advance(self) -> None:
        if self.text[self.index] == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.index += 1
