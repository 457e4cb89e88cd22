"""hydra-corpus: integrity and partition-leakage checks for a labeled Solana fixture corpus."""
from .corpus.loader import load_corpus
from .corpus.partition import PartitionGroup, PartitionRole, classify
from .extraction.extractor import extract_fixture
from .manifest.generator import build_manifest, render_manifest
from .taxonomy.registry import TaxonomyRegistry, default_registry
from .validation.validator import ValidationOptions, validate_corpus

__version__ = "0.1.0"

__all__ = [
    "PartitionGroup",
    "PartitionRole",
    "TaxonomyRegistry",
    "ValidationOptions",
    "build_manifest",
    "classify",
    "default_registry",
    "extract_fixture",
    "load_corpus",
    "render_manifest",
    "validate_corpus",
]
