"""Tests for config loading, the corpus loader and the command line."""
import json
from pathlib import Path

import pytest

from hydra_corpus.cli import cli
from hydra_corpus.config import CorpusConfig
from hydra_corpus.corpus.loader import CorpusLoader, load_corpus
from hydra_corpus.errors import ConfigValidationError
from hydra_corpus.io import load_corpus_config
from hydra_corpus.runner import run_validation, strip_corpus

REPO_ROOT = Path(__file__).parent.parent


@pytest.fixture
def clean_corpus(write_corpus, program):
    return write_corpus({
        "solana_seeded_v1/repo-a/src/lib.rs": program(
            "repo_a", [("insecure_withdraw", "missing_signer_check"), ("safe_withdraw", None)], "ProgA",
        ),
        "solana_control_v1/repo-c/src/lib.rs": program("repo_c", [("checked_relay", None)], "ProgC"),
        "solana_holdout_v1/repo-h/src/lib.rs": program("repo_h", [("relay", "cpi_reentrancy")], "ProgH"),
    })


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    # keep ./hydra_corpus.yaml and env overrides from leaking into tests
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("HYDRA_CORPUS_CONFIG", raising=False)
    monkeypatch.delenv("HYDRA_CORPUS_ROOT", raising=False)


def _write_config(tmp_path, text):
    path = tmp_path / "cfg" / "hydra_corpus.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_resolves_relative_paths(tmp_path):
    path = _write_config(tmp_path, "root: ../corpus\nworkers: 3\nignored_program_ids: [abc]\n")
    cfg = load_corpus_config(path)
    assert Path(cfg.root) == (tmp_path / "corpus").resolve()
    assert cfg.workers == 3
    assert cfg.validation_options().ignored_program_ids == frozenset({"abc"})
    assert cfg.taxonomy is None


def test_load_config_reports_all_errors(tmp_path):
    path = _write_config(tmp_path, "workers: true\nbogus: 1\ncounterpart_prefixes: [1, 2]\n")
    with pytest.raises(ConfigValidationError) as exc:
        load_corpus_config(path)
    message = str(exc.value)
    assert "Missing required field: root" in message
    assert "Unknown field: bogus" in message
    assert "workers: expected int, got bool" in message
    assert "counterpart_prefixes: expected a list of strings" in message


def test_load_config_rejects_zero_workers(tmp_path):
    with pytest.raises(ConfigValidationError, match="workers"):
        load_corpus_config(_write_config(tmp_path, "root: x\nworkers: 0\n"))


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_corpus_config(tmp_path / "missing.yaml")


def test_shipped_config_validates_golden_corpus():
    cfg = load_corpus_config(REPO_ROOT / "hydra_corpus.yaml")
    assert Path(cfg.root) == (REPO_ROOT / "golden_repos").resolve()
    result = run_validation(cfg)
    kinds = result.report.kind_counts()
    assert "IdentifierCollision" not in kinds
    assert kinds["PartitionLeakage"] == 3
    assert result.exit_code == 1
    assert result.manifest["corpus_id"] == "solana-golden-v1"


def test_parallel_load_matches_sequential(golden_root):
    sequential = load_corpus(golden_root)
    parallel = CorpusLoader(golden_root, workers=4).load()
    assert sequential == parallel
    assert [f.path for f in parallel] == sorted(f.path for f in parallel)


def test_loader_missing_root(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_corpus(tmp_path / "nowhere")


def test_cli_validate_failing_corpus(golden_root, capsys):
    assert cli(["validate", "--root", str(golden_root)]) == 1
    manifest = json.loads(capsys.readouterr().out)
    assert manifest["passed"] is False
    assert manifest["summary"]["finding_kinds"]["IdentifierCollision"] == 1


def test_cli_validate_clean_corpus(clean_corpus, tmp_path, capsys):
    out = tmp_path / "reports" / "manifest.json"
    exports = tmp_path / "datasets"
    code = cli([
        "validate", "--root", str(clean_corpus), "--workers", "2",
        "--output", str(out), "--export-datasets", str(exports),
    ])
    assert code == 0
    manifest = json.loads(out.read_text(encoding="utf-8"))
    assert manifest["passed"] is True
    assert sorted(p.name for p in exports.iterdir()) == [
        "solana-control-v1.json", "solana-holdout-v1.json", "solana-seeded-v1.json",
    ]
    holdout = json.loads((exports / "solana-holdout-v1.json").read_text(encoding="utf-8"))
    assert holdout["repos"][0]["expected_findings"][0]["vuln_class"] == "cpi_reentrancy"
    assert capsys.readouterr().out == ""


def test_cli_coverage_blocking(clean_corpus, capsys):
    # seven built-in classes have no exemplar here
    assert cli(["validate", "--root", str(clean_corpus)]) == 0
    assert cli(["validate", "--root", str(clean_corpus), "--coverage-blocking"]) == 1


def test_cli_config_file(clean_corpus, tmp_path, capsys):
    path = _write_config(tmp_path, f"root: {clean_corpus}\ncorpus_id: tmp-corpus\n")
    assert cli(["validate", "--config", str(path)]) == 0
    assert json.loads(capsys.readouterr().out)["corpus_id"] == "tmp-corpus"


def test_cli_usage_errors(tmp_path, capsys):
    assert cli(["validate", "--root", str(tmp_path / "nowhere")]) == 2
    bad = _write_config(tmp_path, "root: x\nworkers: many\n")
    assert cli(["validate", "--config", str(bad)]) == 2
    assert "workers" in capsys.readouterr().err


def test_cli_taxonomy(golden_root, capsys):
    assert cli(["taxonomy", "--root", str(golden_root)]) == 0
    assert "cpi_reentrancy" in capsys.readouterr().err


def test_strip_corpus(golden_root, tmp_path):
    out = tmp_path / "stripped"
    assert cli(["strip", "--root", str(golden_root), "--out", str(out)]) == 0
    files = sorted(out.rglob("*.rs"))
    assert len(files) == 8
    for path in files:
        assert "HYDRA_VULN" not in path.read_text(encoding="utf-8")

    stripped = load_corpus(out)
    assert all(not f.vulnerable_instructions for f in stripped)
    assert [f.path for f in stripped] == [f.path for f in load_corpus(golden_root)]


def test_strip_refuses_in_place(clean_corpus):
    with pytest.raises(ValueError):
        strip_corpus(CorpusConfig(root=str(clean_corpus)), clean_corpus)
    assert cli(["strip", "--root", str(clean_corpus), "--out", str(clean_corpus)]) == 2


def test_corpus_root_discovery(tmp_path, monkeypatch):
    from hydra_corpus.paths import find_default_config, get_corpus_root

    (tmp_path / "golden_repos").mkdir()
    assert get_corpus_root() == tmp_path / "golden_repos"
    assert find_default_config() is None

    monkeypatch.setenv("HYDRA_CORPUS_ROOT", str(tmp_path / "missing"))
    with pytest.raises(FileNotFoundError):
        get_corpus_root()

    (tmp_path / "hydra_corpus.yaml").write_text("root: golden_repos\n", encoding="utf-8")
    assert find_default_config() == tmp_path / "hydra_corpus.yaml"


@pytest.mark.parametrize("text,message", [
    ("root: [unclosed\n", "invalid YAML"),
    ("root: x\npartition_pattern: '(?P<role>x'\n", "partition_pattern: invalid regex"),
    ("root: x\npartition_pattern: '^(?P<role>[a-z]+)$'\n", "partition_pattern: must define"),
])
def test_cli_config_errors_exit_usage(tmp_path, capsys, text, message):
    path = _write_config(tmp_path, text)
    with pytest.raises(ConfigValidationError, match=message):
        load_corpus_config(path)
    assert cli(["validate", "--config", str(path)]) == 2


def test_cli_bad_taxonomy_yaml_exits_usage(golden_root, tmp_path):
    taxonomy = tmp_path / "taxonomy.yaml"
    taxonomy.write_text("classes: [unclosed\n", encoding="utf-8")
    assert cli(["validate", "--root", str(golden_root), "--taxonomy", str(taxonomy)]) == 2


def test_strip_refuses_output_inside_root(clean_corpus):
    with pytest.raises(ValueError):
        strip_corpus(CorpusConfig(root=str(clean_corpus)), clean_corpus / "stripped")
    assert not (clean_corpus / "stripped").exists()


def test_parallel_load_with_progress(golden_root):
    assert CorpusLoader(golden_root, workers=3, progress=True).load() == load_corpus(golden_root)


def test_cli_mixed_holdout_blocking(clean_corpus, write_corpus, program):
    write_corpus({
        "solana_holdout_v1/repo-h/src/lib.rs": program(
            "repo_h", [("relay", "cpi_reentrancy"), ("helper", None)], "ProgH",
        ),
    })
    assert cli(["validate", "--root", str(clean_corpus)]) == 0
    assert cli(["validate", "--root", str(clean_corpus), "--mixed-holdout-blocking"]) == 1
