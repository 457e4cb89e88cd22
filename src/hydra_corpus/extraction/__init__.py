"""Fixture extraction: tokenizer, marker grammar and record builder."""
from .extractor import extract_fixture
from .markers import MARKER_PREFIX, Marker, scan_markers, strip_markers
from .tokenizer import Token, TokenKind, tokenize

__all__ = [
    "extract_fixture",
    "MARKER_PREFIX",
    "Marker",
    "scan_markers",
    "strip_markers",
    "Token",
    "TokenKind",
    "tokenize",
]
