"""Minimal Rust lexer for fixture sources.

Only as much of Rust as the extractor needs: comments (nested block comments
included), string/char/raw-string literals, lifetimes, identifiers, numbers
and single-character punctuation. Literals are tokenized properly so braces
or marker text inside a string never affect structure or labels.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import List, NamedTuple, Optional


class TokenKind(str, Enum):
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING = "string"
    CHAR = "char"
    LIFETIME = "lifetime"
    IDENT = "ident"
    NUMBER = "number"
    PUNCT = "punct"


class Token(NamedTuple):
    kind: TokenKind
    text: str
    line: int
    start: int
    end: int

    @property
    def is_comment(self) -> bool:
        return self.kind in (TokenKind.LINE_COMMENT, TokenKind.BLOCK_COMMENT)

    def is_punct(self, ch: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text == ch

    def is_ident(self, name: Optional[str] = None) -> bool:
        return self.kind is TokenKind.IDENT and (name is None or self.text == name)


_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"[0-9][0-9A-Za-z_]*")
_RAW_STRING_RE = re.compile(r'b?r(#*)"')


def tokenize(source: str) -> List[Token]:
    """Split Rust source into tokens. Whitespace is dropped."""
    tokens: List[Token] = []
    i = 0
    n = len(source)
    line = 1

    def emit(kind: TokenKind, start: int, end: int, start_line: int) -> None:
        tokens.append(Token(kind, source[start:end], start_line, start, end))

    while i < n:
        c = source[i]

        if c == "\n":
            line += 1
            i += 1
            continue
        if c.isspace():
            i += 1
            continue

        start, start_line = i, line

        if source.startswith("//", i):
            end = source.find("\n", i)
            end = n if end < 0 else end
            emit(TokenKind.LINE_COMMENT, i, end, start_line)
            i = end
            continue

        if source.startswith("/*", i):
            depth = 0
            while i < n:
                if source.startswith("/*", i):
                    depth += 1
                    i += 2
                elif source.startswith("*/", i):
                    depth -= 1
                    i += 2
                    if depth == 0:
                        break
                else:
                    if source[i] == "\n":
                        line += 1
                    i += 1
            emit(TokenKind.BLOCK_COMMENT, start, i, start_line)
            continue

        raw = _RAW_STRING_RE.match(source, i)
        if raw:
            terminator = '"' + raw.group(1)
            end = source.find(terminator, raw.end())
            end = n if end < 0 else end + len(terminator)
            line += source.count("\n", i, end)
            emit(TokenKind.STRING, i, end, start_line)
            i = end
            continue

        if c == '"' or (c == "b" and source.startswith('b"', i)):
            i += 2 if c == "b" else 1
            while i < n and source[i] != '"':
                if source[i] == "\\":
                    i += 1
                if i < n and source[i] == "\n":
                    line += 1
                i += 1
            i = min(i + 1, n)
            emit(TokenKind.STRING, start, i, start_line)
            continue

        if c == "'":
            # 'x', '\n', '\u{1F600}' are chars; 'info, 'a, '_ are lifetimes
            if i + 1 < n and source[i + 1] == "\\":
                end = source.find("'", i + 2)
                end = n if end < 0 else end + 1
                emit(TokenKind.CHAR, i, end, start_line)
                i = end
                continue
            if i + 2 < n and source[i + 2] == "'":
                emit(TokenKind.CHAR, i, i + 3, start_line)
                i += 3
                continue
            m = _IDENT_RE.match(source, i + 1)
            if m:
                emit(TokenKind.LIFETIME, i, m.end(), start_line)
                i = m.end()
                continue
            emit(TokenKind.PUNCT, i, i + 1, start_line)
            i += 1
            continue

        m = _IDENT_RE.match(source, i)
        if m:
            emit(TokenKind.IDENT, i, m.end(), start_line)
            i = m.end()
            continue

        m = _NUMBER_RE.match(source, i)
        if m:
            emit(TokenKind.NUMBER, i, m.end(), start_line)
            i = m.end()
            continue

        emit(TokenKind.PUNCT, i, i + 1, start_line)
        i += 1

    return tokens
