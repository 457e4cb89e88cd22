from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .corpus.loader import DEFAULT_FIXTURE_GLOB
from .validation.validator import DEFAULT_COUNTERPART_PREFIXES, ValidationOptions


@dataclass
class CorpusConfig:
    root: str                        # corpus root, e.g. "golden_repos"
    corpus_id: Optional[str] = None  # recorded in the manifest
    fixture_glob: str = DEFAULT_FIXTURE_GLOB
    workers: int = 1                 # extraction threads (1 = sequential)
    coverage_gap_blocking: bool = False
    mixed_holdout_blocking: bool = False   # mixed safe/vulnerable holdout fixtures fail the run
    taxonomy: Optional[str] = None   # taxonomy YAML; None = built-in Solana taxonomy
    # Placeholder ids (e.g. the system program "111...1") shared on purpose by toy fixtures
    ignored_program_ids: List[str] = field(default_factory=list)
    counterpart_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_COUNTERPART_PREFIXES))
    partition_pattern: Optional[str] = None  # override for the <prefix>_<role>_v<N> convention

    def validation_options(self) -> ValidationOptions:
        return ValidationOptions(
            coverage_gap_blocking=self.coverage_gap_blocking,
            mixed_holdout_blocking=self.mixed_holdout_blocking,
            ignored_program_ids=frozenset(self.ignored_program_ids),
            counterpart_prefixes=tuple(self.counterpart_prefixes),
        )
