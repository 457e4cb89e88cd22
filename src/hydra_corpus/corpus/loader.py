"""Corpus loader: discover fixture files and extract them in parallel.

Expected layout::

    root/
      solana_controls_v1/
        repo-control-f/src/lib.rs
      solana_seeded_v1/
        repo-template-a/src/lib.rs
      solana_holdout_v1/
        repo-holdout-1/src/lib.rs

Each file is extracted independently; results are joined after every
worker finishes and returned sorted by path, so validation always sees the
whole corpus and the order never depends on scheduling.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from tqdm import tqdm

from ..extraction.extractor import extract_fixture
from .models import Fixture
from .partition import PartitionPolicy, classify

logger = logging.getLogger(__name__)

DEFAULT_FIXTURE_GLOB = "**/*.rs"


class CorpusLoader:
    """Loads a fixture tree into an immutable, path-sorted tuple of Fixtures."""

    def __init__(
        self,
        root: str | Path,
        *,
        fixture_glob: str = DEFAULT_FIXTURE_GLOB,
        policy: PartitionPolicy = classify,
        workers: int = 1,
        progress: bool = False,
    ):
        self.root = Path(root)
        self.fixture_glob = fixture_glob
        self.policy = policy
        self.workers = max(1, int(workers))
        self.progress = progress

    def discover(self) -> List[Path]:
        """Fixture files under root, sorted by their corpus-relative path."""
        if not self.root.is_dir():
            raise FileNotFoundError(f"Corpus root not found: {self.root}")
        files = [p for p in self.root.glob(self.fixture_glob) if p.is_file()]
        return sorted(files, key=lambda p: p.relative_to(self.root).as_posix())

    def _extract(self, path: Path) -> Fixture:
        rel = path.relative_to(self.root).as_posix()
        source = path.read_text(encoding="utf-8", errors="replace")
        return extract_fixture(source, rel, policy=self.policy)

    def load(self) -> Tuple[Fixture, ...]:
        files = self.discover()
        logger.info("Discovered %d fixture files under %s", len(files), self.root)

        if self.workers == 1:
            iterator: Iterable[Fixture] = map(self._extract, files)
            if self.progress:
                iterator = tqdm(iterator, total=len(files), desc="Extracting", unit="fixture")
            fixtures = list(iterator)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                futures = {executor.submit(self._extract, path): path for path in files}
                done = as_completed(futures)
                if self.progress:
                    done = tqdm(done, total=len(futures), desc="Extracting", unit="fixture")
                # a worker exception is a parser defect: let it propagate
                fixtures = [future.result() for future in done]

        return tuple(sorted(fixtures, key=lambda f: f.path))


def load_corpus(
    root: str | Path,
    *,
    fixture_glob: str = DEFAULT_FIXTURE_GLOB,
    policy: Optional[PartitionPolicy] = None,
    workers: int = 1,
    progress: bool = False,
) -> Tuple[Fixture, ...]:
    """Convenience wrapper around ``CorpusLoader``."""
    loader = CorpusLoader(
        root,
        fixture_glob=fixture_glob,
        policy=policy or classify,
        workers=workers,
        progress=progress,
    )
    return loader.load()
