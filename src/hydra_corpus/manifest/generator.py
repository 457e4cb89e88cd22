"""Manifest generation.

The manifest is a deterministic JSON rendering of a ValidationReport: the
same corpus and taxonomy always produce byte-identical output, so manifests
can be diffed across corpus revisions. Nothing here reads the clock unless a
timestamp is passed in explicitly.
"""
from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from ..corpus.models import Fixture
from ..corpus.partition import PartitionRole
from ..taxonomy.registry import TaxonomyRegistry
from ..validation.findings import ValidationReport

MANIFEST_SCHEMA_VERSION = "1.0"
DATASET_SCHEMA_VERSION = "1.0"

PARTITION_NAMES: Tuple[str, ...] = tuple(sorted(r.value for r in PartitionRole))


def class_partition_counts(report: ValidationReport) -> List[Dict[str, Any]]:
    """One row per (class, partition), sorted by class id then partition name.

    Every registered class gets a row for every partition (zeros included);
    counts come from validated fixtures only.
    """
    instructions: Dict[Tuple[str, str], int] = defaultdict(int)
    fixtures: Dict[Tuple[str, str], set] = defaultdict(set)
    for fx in report.validated:
        for ins in fx.vulnerable_instructions:
            key = (ins.class_id, fx.role.value)
            instructions[key] += 1
            fixtures[key].add(fx.path)

    class_ids = sorted(set(report.class_ids) | {c for c, _ in instructions})
    rows = []
    for class_id in class_ids:
        for partition in PARTITION_NAMES:
            key = (class_id, partition)
            rows.append({
                "class_id": class_id,
                "partition": partition,
                "instructions": instructions.get(key, 0),
                "fixtures": len(fixtures.get(key, ())),
            })
    return rows


def _summary(report: ValidationReport) -> Dict[str, Any]:
    per_partition = {
        name: {"fixtures": 0, "safe_instructions": 0, "vulnerable_instructions": 0}
        for name in PARTITION_NAMES
    }
    for fx in report.validated:
        stats = per_partition[fx.role.value]
        stats["fixtures"] += 1
        stats["safe_instructions"] += len(fx.safe_instructions)
        stats["vulnerable_instructions"] += len(fx.vulnerable_instructions)

    return {
        "fixtures": len(report.fixtures),
        "fixtures_validated": len(report.validated),
        "fixtures_excluded": len(report.fixtures) - len(report.validated),
        "instructions": sum(len(f.instructions) for f in report.validated),
        "partitions": per_partition,
        "blocking_findings": len(report.blocking),
        "warnings": len(report.warnings),
        "finding_kinds": report.kind_counts(),
    }


def build_manifest(report: ValidationReport, *, corpus_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "schema_version": MANIFEST_SCHEMA_VERSION,
        "corpus_id": corpus_id,
        "taxonomy_version": report.taxonomy_version,
        "passed": report.passed,
        "summary": _summary(report),
        "counts": class_partition_counts(report),
        "fixtures": [fx.model_dump(mode="json") for fx in report.fixtures],
        "findings": [f.model_dump(mode="json") for f in report.findings],
    }


def render_manifest(manifest: Dict[str, Any]) -> str:
    """Byte-stable JSON text (sorted keys, 2-space indent, trailing newline)."""
    return json.dumps(manifest, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def write_manifest(manifest: Dict[str, Any], path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_manifest(manifest), encoding="utf-8")
    return path


def counts_frame(report: ValidationReport) -> pd.DataFrame:
    """Class x partition pivot of vulnerable-instruction counts."""
    df = pd.DataFrame(class_partition_counts(report))
    if df.empty:
        return pd.DataFrame(columns=list(PARTITION_NAMES))
    pivot = df.pivot(index="class_id", columns="partition", values="instructions")
    pivot = pivot.reindex(columns=list(PARTITION_NAMES), fill_value=0).sort_index()
    pivot.columns.name = None
    return pivot


def _repo_key(fx: Fixture) -> Tuple[str, str, str]:
    """(dataset id, repo id, repo path) for a fixture under <group>/<repo>/..."""
    parts = PurePosixPath(fx.path).parts
    repo_path = "/".join(parts[:2]) if len(parts) >= 3 else parts[0]
    return fx.partition.dataset_id, fx.repo_id, repo_path


def build_dataset_manifests(
    report: ValidationReport,
    registry: TaxonomyRegistry,
    *,
    path_prefix: str = "",
    created_at: Optional[str] = None,
) -> Dict[str, Dict[str, Any]]:
    """Ground-truth dataset manifests, one per partition group.

    Each repo lists ``expected_findings`` (class, file relative to the repo,
    marker line) for its vulnerable instructions. Only validated fixtures are
    exported, so unknown or malformed labels never reach an evaluation run.
    """
    repos: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
    roles: Dict[str, str] = {}
    for fx in report.validated:
        dataset_id, repo_id, repo_path = _repo_key(fx)
        roles[dataset_id] = fx.role.value
        repo = repos[dataset_id].setdefault(repo_id, {
            "id": repo_id,
            "path": f"{path_prefix.rstrip('/')}/{repo_path}" if path_prefix else repo_path,
            "language": "rust",
            "framework": "anchor",
            "expected_findings": [],
        })
        rel_file = fx.path[len(repo_path) + 1:] if fx.path.startswith(repo_path + "/") else fx.path
        for ins in fx.vulnerable_instructions:
            vc = registry.lookup(ins.class_id)
            repo["expected_findings"].append({
                "vuln_class": vc.class_id,
                "severity": vc.severity.value.upper(),
                "file": rel_file,
                "line": ins.marker_line,
                "title": vc.label,
            })

    manifests = {}
    for dataset_id in sorted(repos):
        repo_list = [repos[dataset_id][r] for r in sorted(repos[dataset_id])]
        for repo in repo_list:
            repo["expected_findings"].sort(key=lambda e: (e["file"], e["line"] or 0, e["vuln_class"]))
        manifest: Dict[str, Any] = {
            "schema_version": DATASET_SCHEMA_VERSION,
            "dataset_id": dataset_id,
            "description": f"{roles[dataset_id]} partition ({len(repo_list)} repos)",
            "repos": repo_list,
        }
        if created_at is not None:
            manifest["created_at"] = created_at
        manifests[dataset_id] = manifest
    return manifests
