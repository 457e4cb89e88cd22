"""Ground-truth marker grammar.

A marker is a line comment whose trimmed text starts with ``HYDRA_VULN:``
followed by a bare ``[a-z_]+`` class id, e.g.::

    // HYDRA_VULN:missing_signer_check

Markers inside block comments or string literals are not markers.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .tokenizer import Token, TokenKind, tokenize

MARKER_PREFIX = "HYDRA_VULN:"

_CLASS_ID_RE = re.compile(r"([a-z_]+)(?=\s|$)")


@dataclass(frozen=True)
class Marker:
    """A marker found in the token stream.

    ``token_index`` is the position in the full token list; ``instruction_index``
    is filled in by attribution (None means unattributed). ``class_id`` is None
    for a malformed marker, whose raw text is kept in ``text``.
    """
    token_index: int
    line: int
    class_id: Optional[str]
    text: str
    instruction_index: Optional[int] = None

    @property
    def is_malformed(self) -> bool:
        return self.class_id is None


def comment_body(token: Token) -> str:
    """Comment text with the ``//``, ``///`` or ``//!`` opener trimmed."""
    return token.text[2:].lstrip("/!").strip()


def parse_marker(token: Token, token_index: int) -> Optional[Marker]:
    if token.kind is not TokenKind.LINE_COMMENT:
        return None
    body = comment_body(token)
    if not body.startswith(MARKER_PREFIX):
        return None
    m = _CLASS_ID_RE.match(body, len(MARKER_PREFIX))
    return Marker(
        token_index=token_index,
        line=token.line,
        class_id=m.group(1) if m else None,
        text=body,
    )


def scan_markers(tokens: Iterable[Token]) -> List[Marker]:
    markers = []
    for idx, tok in enumerate(tokens):
        marker = parse_marker(tok, idx)
        if marker is not None:
            markers.append(marker)
    return markers


def strip_markers(source: str) -> str:
    """Remove ground-truth marker comments from fixture source.

    Detectors under evaluation must never see the labels. Line numbers are
    preserved (only the comment text is removed, the line stays) so expected
    findings keep matching.
    """
    out = []
    pos = 0
    for idx, tok in enumerate(tokenize(source)):
        if parse_marker(tok, idx) is None:
            continue
        out.append(source[pos:tok.start].rstrip(" \t"))
        pos = tok.end
    out.append(source[pos:])
    return "".join(out)
