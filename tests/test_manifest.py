"""Tests for manifest rendering, counts and dataset export."""
import json

import pytest

from hydra_corpus.corpus.loader import load_corpus
from hydra_corpus.manifest import (
    build_dataset_manifests,
    build_manifest,
    class_partition_counts,
    counts_frame,
    render_manifest,
    write_manifest,
)
from hydra_corpus.taxonomy import default_registry
from hydra_corpus.validation import ValidationOptions, validate_corpus


@pytest.fixture
def golden_report(golden_root):
    return validate_corpus(load_corpus(golden_root), default_registry())


def test_manifest_is_byte_stable(golden_root):
    first = render_manifest(build_manifest(
        validate_corpus(load_corpus(golden_root), default_registry()), corpus_id="golden",
    ))
    second = render_manifest(build_manifest(
        validate_corpus(load_corpus(golden_root, workers=4), default_registry()), corpus_id="golden",
    ))
    assert first == second
    assert first.endswith("}\n")


def test_manifest_contents(golden_report):
    manifest = build_manifest(golden_report, corpus_id="golden")
    assert manifest["corpus_id"] == "golden"
    assert manifest["taxonomy_version"] == "solana-v1"
    assert manifest["passed"] is False

    summary = manifest["summary"]
    assert summary["fixtures"] == 8
    assert summary["fixtures_excluded"] == 0
    assert summary["instructions"] == 16
    assert summary["partitions"]["holdout"] == {
        "fixtures": 2, "safe_instructions": 0, "vulnerable_instructions": 4,
    }
    assert summary["partitions"]["seeded"]["vulnerable_instructions"] == 9
    assert summary["partitions"]["control"]["safe_instructions"] == 1
    assert summary["finding_kinds"]["PartitionLeakage"] == 3

    assert [f["path"] for f in manifest["fixtures"]] == sorted(f["path"] for f in manifest["fixtures"])
    # round-trips through JSON unchanged
    assert json.loads(render_manifest(manifest)) == json.loads(json.dumps(manifest))


def test_counts_cover_every_class_and_partition(golden_report):
    rows = class_partition_counts(golden_report)
    assert len(rows) == 9 * 3
    keys = [(r["class_id"], r["partition"]) for r in rows]
    assert keys == sorted(keys)

    by_key = {(r["class_id"], r["partition"]): r for r in rows}
    assert by_key[("missing_signer_check", "holdout")]["instructions"] == 1
    assert by_key[("missing_signer_check", "seeded")]["instructions"] == 1
    assert by_key[("arbitrary_cpi", "seeded")] == {
        "class_id": "arbitrary_cpi", "partition": "seeded", "instructions": 2, "fixtures": 2,
    }
    assert by_key[("arbitrary_cpi", "control")]["instructions"] == 0


def test_counts_frame(golden_report):
    df = counts_frame(golden_report)
    assert list(df.columns) == ["control", "holdout", "seeded"]
    assert list(df.index) == sorted(df.index)
    assert df.loc["cpi_reentrancy", "holdout"] == 1
    assert df["control"].sum() == 0
    assert df.values.sum() == 13


def test_write_manifest(tmp_path, golden_report):
    path = write_manifest(build_manifest(golden_report), tmp_path / "out" / "manifest.json")
    assert path.read_text(encoding="utf-8") == render_manifest(build_manifest(golden_report))


def test_dataset_manifests(golden_report):
    manifests = build_dataset_manifests(golden_report, default_registry())
    assert list(manifests) == [
        "solana-control-v1", "solana-holdout-v1", "solana-seeded-v1", "solana-seeded-v2",
    ]

    holdout = manifests["solana-holdout-v1"]
    assert "created_at" not in holdout
    assert [r["id"] for r in holdout["repos"]] == ["repo-holdout-1", "repo-holdout-2"]
    repo = holdout["repos"][0]
    assert repo["path"] == "solana_holdout_v1/repo-holdout-1"
    assert repo["expected_findings"] == [
        {
            "vuln_class": "missing_signer_check",
            "severity": "HIGH",
            "file": "src/lib.rs",
            "line": 10,
            "title": "Missing signer check",
        },
        {
            "vuln_class": "cpi_reentrancy",
            "severity": default_registry().lookup("cpi_reentrancy").severity.value.upper(),
            "file": "src/lib.rs",
            "line": 16,
            "title": default_registry().lookup("cpi_reentrancy").label,
        },
    ]

    control = manifests["solana-control-v1"]
    assert control["repos"][0]["expected_findings"] == []


def test_dataset_manifest_options(golden_report):
    manifests = build_dataset_manifests(
        golden_report, default_registry(), path_prefix="golden_repos/", created_at="2024-01-01T00:00:00Z",
    )
    seeded = manifests["solana-seeded-v1"]
    assert seeded["created_at"] == "2024-01-01T00:00:00Z"
    assert seeded["repos"][0]["path"] == "golden_repos/solana_seeded_v1/repo-template-a"


def test_dataset_export_skips_excluded_fixtures(write_corpus, program):
    root = write_corpus({
        "solana_seeded_v1/good/src/lib.rs": program("good", [("insecure_pda", "non_canonical_bump")]),
        "solana_seeded_v1/bad/src/lib.rs": program("bad", [("x", "not_registered")]),
    })
    report = validate_corpus(load_corpus(root), default_registry(), ValidationOptions())
    manifests = build_dataset_manifests(report, default_registry())
    assert [r["id"] for r in manifests["solana-seeded-v1"]["repos"]] == ["good"]
