"""Corpus records and partition model.

The loader lives in ``hydra_corpus.corpus.loader`` (it depends on extraction,
which depends on these records).
"""
from .models import AccountParam, Argument, ExtractionIssue, Fixture, Instruction, IssueKind
from .partition import PartitionGroup, PartitionPolicy, PartitionRole, RegexPartitionPolicy, classify

__all__ = [
    "AccountParam",
    "Argument",
    "ExtractionIssue",
    "Fixture",
    "Instruction",
    "IssueKind",
    "PartitionGroup",
    "PartitionPolicy",
    "PartitionRole",
    "RegexPartitionPolicy",
    "classify",
]
