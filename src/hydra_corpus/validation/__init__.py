"""Corpus validation."""
from .findings import Finding, FindingKind, FindingSeverity, ValidationReport
from .validator import (
    DEFAULT_COUNTERPART_PREFIXES,
    ValidationOptions,
    instruction_shape,
    validate_corpus,
)

__all__ = [
    "DEFAULT_COUNTERPART_PREFIXES",
    "Finding",
    "FindingKind",
    "FindingSeverity",
    "ValidationOptions",
    "ValidationReport",
    "instruction_shape",
    "validate_corpus",
]
