"""Partition model: which benchmark role a fixture plays.

The role is encoded purely by the top-level directory of the fixture path,
e.g. ``solana_seeded_v2/repo-template-c/src/lib.rs``. The convention lives in
one injectable policy object so it can be tested without touching the
filesystem and swapped per corpus.
"""
from __future__ import annotations

import re
from enum import Enum
from pathlib import PurePosixPath, PurePath
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from ..errors import UnrecognizedGroup

_ROLE_SUFFIX_RE = re.compile(r"_[a-z]+_v\d+$")

class PartitionRole(str, Enum):
    CONTROL = "control"
    SEEDED = "seeded"
    HOLDOUT = "holdout"


class PartitionGroup(BaseModel):
    """A partition role plus the version of the grouping it came from."""
    role: PartitionRole
    version: int
    name: str  # directory segment, verbatim

    model_config = {"frozen": True}

    @property
    def is_holdout(self) -> bool:
        return self.role is PartitionRole.HOLDOUT

    @property
    def dataset_id(self) -> str:
        """Dataset id used in exported ground-truth manifests, e.g. 'solana-seeded-v1'.

        The prefix is everything before ``_<role>_v<N>``: ``acme_dex_seeded_v1``
        gives ``acme-dex-seeded-v1``.
        """
        m = _ROLE_SUFFIX_RE.search(self.name)
        prefix = self.name[:m.start()] if m else self.name
        return f"{prefix.replace('_', '-')}-{self.role.value}-v{self.version}"


PartitionPolicy = Callable[[str], PartitionGroup]

# prefix may itself contain underscores: acme_dex_seeded_v1
DEFAULT_GROUP_PATTERN = r"^(?P<prefix>.+)_(?P<role>[a-z]+)_v(?P<version>\d+)$"

DEFAULT_ROLE_ALIASES: Dict[str, PartitionRole] = {
    "control": PartitionRole.CONTROL,
    "controls": PartitionRole.CONTROL,
    "seeded": PartitionRole.SEEDED,
    "holdout": PartitionRole.HOLDOUT,
    "holdouts": PartitionRole.HOLDOUT,
}


def _as_posix(path: str | PurePath) -> str:
    return PurePath(path).as_posix() if isinstance(path, PurePath) else str(path).replace("\\", "/")


class RegexPartitionPolicy:
    """Classify a corpus-relative path by matching its first segment.

    The pattern must define ``role`` and ``version`` groups. ``role`` is
    resolved through ``role_aliases``; an unmatched segment or unknown role
    is an ``UnrecognizedGroup`` error, never a default.
    """

    def __init__(
        self,
        pattern: str = DEFAULT_GROUP_PATTERN,
        role_aliases: Optional[Dict[str, PartitionRole]] = None,
    ):
        self.pattern = re.compile(pattern)
        if not {"role", "version"} <= set(self.pattern.groupindex):
            raise ValueError("Partition pattern must define 'role' and 'version' groups")
        self.role_aliases = dict(role_aliases or DEFAULT_ROLE_ALIASES)

    def __call__(self, fixture_path: str | PurePath) -> PartitionGroup:
        path = _as_posix(fixture_path)
        parts = [p for p in PurePosixPath(path).parts if p not in ("/", ".")]
        segment = parts[0] if parts else ""

        m = self.pattern.match(segment)
        if not m:
            raise UnrecognizedGroup(path, segment)
        role = self.role_aliases.get(m.group("role"))
        if role is None:
            raise UnrecognizedGroup(path, segment)
        return PartitionGroup(role=role, version=int(m.group("version")), name=segment)


classify: PartitionPolicy = RegexPartitionPolicy()
