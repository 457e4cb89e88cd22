"""Manifest rendering and ground-truth dataset export."""
from .generator import (
    MANIFEST_SCHEMA_VERSION,
    build_dataset_manifests,
    build_manifest,
    class_partition_counts,
    counts_frame,
    render_manifest,
    write_manifest,
)

__all__ = [
    "MANIFEST_SCHEMA_VERSION",
    "build_dataset_manifests",
    "build_manifest",
    "class_partition_counts",
    "counts_frame",
    "render_manifest",
    "write_manifest",
]
