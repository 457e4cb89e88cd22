"""Fixture records produced by extraction.

All records are frozen pydantic models: once the corpus is loaded nothing
mutates them, and ``model_dump_json()`` gives a stable serialization used for
idempotency checks and manifests.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from .partition import PartitionGroup, PartitionRole


class IssueKind(str, Enum):
    UNRECOGNIZED_GROUP = "UnrecognizedGroup"
    UNATTRIBUTED_MARKER = "UnattributedMarker"
    DUPLICATE_TAG = "DuplicateTagInInstruction"
    MALFORMED_MARKER = "MalformedMarker"


class AccountParam(BaseModel):
    name: str
    type: str

    model_config = {"frozen": True}


class Argument(BaseModel):
    name: str
    type: str

    model_config = {"frozen": True}


class Instruction(BaseModel):
    """A named instruction in a fixture's program module."""
    name: str
    index: int
    line: int
    accounts_struct: Optional[str] = None
    accounts: Tuple[AccountParam, ...] = ()
    arguments: Tuple[Argument, ...] = ()
    class_id: Optional[str] = None
    marker_line: Optional[int] = None

    model_config = {"frozen": True}

    @property
    def is_vulnerable(self) -> bool:
        return self.class_id is not None


class ExtractionIssue(BaseModel):
    """Structural problem found while extracting or classifying a fixture."""
    kind: IssueKind
    message: str
    instruction: Optional[str] = None
    line: Optional[int] = None
    class_ids: Tuple[str, ...] = ()

    model_config = {"frozen": True}


class Fixture(BaseModel):
    """One program module of the corpus."""
    path: str
    repo_id: str
    program_id: Optional[str] = None
    module: Optional[str] = None
    instructions: Tuple[Instruction, ...] = ()
    partition: Optional[PartitionGroup] = None
    issues: Tuple[ExtractionIssue, ...] = Field(default=())

    model_config = {"frozen": True}

    @property
    def role(self) -> Optional[PartitionRole]:
        return self.partition.role if self.partition else None

    @property
    def class_ids(self) -> Tuple[str, ...]:
        """Sorted union of the instructions' tags."""
        return tuple(sorted({i.class_id for i in self.instructions if i.class_id}))

    @property
    def vulnerable_instructions(self) -> Tuple[Instruction, ...]:
        return tuple(i for i in self.instructions if i.is_vulnerable)

    @property
    def safe_instructions(self) -> Tuple[Instruction, ...]:
        return tuple(i for i in self.instructions if not i.is_vulnerable)

    @property
    def is_mixed(self) -> bool:
        return bool(self.vulnerable_instructions) and bool(self.safe_instructions)

    @property
    def is_malformed(self) -> bool:
        return bool(self.issues)
