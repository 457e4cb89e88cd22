"""Exception types raised at the registry, partition and config boundaries.

Structural problems found while extracting a fixture are NOT raised; they are
recorded as ``ExtractionIssue`` values on the fixture so one malformed file
never hides findings elsewhere in the corpus.
"""
from __future__ import annotations


class CorpusError(Exception):
    """Base class for hydra-corpus errors."""
    pass


class DuplicateClass(CorpusError):
    """Raised when a vulnerability class id is registered twice."""

    def __init__(self, class_id: str):
        super().__init__(f"Vulnerability class already registered: {class_id}")
        self.class_id = class_id


class UnknownClass(CorpusError):
    """Raised when a class id is not present in the taxonomy registry."""

    def __init__(self, class_id: str):
        super().__init__(f"Unknown vulnerability class: {class_id}")
        self.class_id = class_id


class RegistryClosed(CorpusError):
    """Raised when registering into a sealed taxonomy."""
    pass


class UnrecognizedGroup(CorpusError):
    """Raised when a fixture path does not map to a known partition group."""

    def __init__(self, path: str, segment: str):
        super().__init__(
            f"Unrecognized partition group '{segment}' for fixture {path}. "
            "Expected a top-level directory like '<prefix>_<control|seeded|holdout>_v<N>'"
        )
        self.path = path
        self.segment = segment


class ConfigValidationError(CorpusError):
    """Raised when config or taxonomy file validation fails."""
    pass
