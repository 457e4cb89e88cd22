"""Vulnerability taxonomy registry."""
from .registry import (
    Category,
    Severity,
    SolanaVulnClass,
    TaxonomyRegistry,
    VulnerabilityClass,
    default_registry,
    load_taxonomy,
)

__all__ = [
    "Category",
    "Severity",
    "SolanaVulnClass",
    "TaxonomyRegistry",
    "VulnerabilityClass",
    "default_registry",
    "load_taxonomy",
]
