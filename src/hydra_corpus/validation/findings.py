"""Validation findings and the per-run report."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from ..corpus.models import Fixture


class FindingKind(str, Enum):
    # structural
    UNRECOGNIZED_GROUP = "UnrecognizedGroup"
    UNATTRIBUTED_MARKER = "UnattributedMarker"
    DUPLICATE_TAG = "DuplicateTagInInstruction"
    MALFORMED_MARKER = "MalformedMarker"
    # referential
    UNKNOWN_CLASS = "UnknownClass"
    # invariant violations
    PARTITION_ROLE_VIOLATION = "PartitionRoleViolation"
    PARTITION_LEAKAGE = "PartitionLeakage"
    IDENTIFIER_COLLISION = "IdentifierCollision"
    # advisory
    COVERAGE_GAP = "CoverageGap"
    SINGLE_EXEMPLAR = "SingleExemplar"
    MIXED_HOLDOUT_FIXTURE = "MixedHoldoutFixture"


class FindingSeverity(str, Enum):
    ERROR = "error"      # blocking
    WARNING = "warning"  # advisory


class Finding(BaseModel):
    kind: FindingKind
    severity: FindingSeverity
    message: str
    fixture: Optional[str] = None
    instruction: Optional[str] = None
    class_id: Optional[str] = None
    class_ids: Tuple[str, ...] = ()
    partition: Optional[str] = None
    missing_side: Optional[str] = None
    line: Optional[int] = None
    related: Tuple[str, ...] = ()

    model_config = {"frozen": True}

    @property
    def is_blocking(self) -> bool:
        return self.severity is FindingSeverity.ERROR


@dataclass
class ValidationReport:
    """Result of one validation run. Derived data; never the source of truth."""
    taxonomy_version: str
    class_ids: Tuple[str, ...]
    fixtures: Tuple[Fixture, ...]
    validated: Tuple[Fixture, ...]
    findings: List[Finding] = field(default_factory=list)

    @property
    def blocking(self) -> List[Finding]:
        return [f for f in self.findings if f.is_blocking]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if not f.is_blocking]

    @property
    def passed(self) -> bool:
        return not self.blocking

    def by_kind(self, kind: FindingKind) -> List[Finding]:
        return [f for f in self.findings if f.kind is kind]

    def kind_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for f in self.findings:
            counts[f.kind.value] = counts.get(f.kind.value, 0) + 1
        return dict(sorted(counts.items()))
