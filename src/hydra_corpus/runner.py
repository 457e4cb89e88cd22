"""Validation run: load corpus -> validate -> manifest, with console reporting."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .config import CorpusConfig
from .corpus.loader import CorpusLoader
from .corpus.partition import RegexPartitionPolicy, classify
from .extraction.markers import strip_markers
from .manifest.generator import (
    build_dataset_manifests,
    build_manifest,
    counts_frame,
    render_manifest,
)
from .taxonomy.registry import TaxonomyRegistry, default_registry, load_taxonomy
from .validation.findings import FindingSeverity, ValidationReport
from .validation.validator import validate_corpus

logger = logging.getLogger(__name__)

console = Console(stderr=True)


@dataclass
class RunResult:
    registry: TaxonomyRegistry
    report: ValidationReport
    manifest: Dict[str, Any]

    @property
    def exit_code(self) -> int:
        return 0 if self.report.passed else 1


def make_registry(cfg: CorpusConfig) -> TaxonomyRegistry:
    if cfg.taxonomy:
        return load_taxonomy(cfg.taxonomy)
    return default_registry()


def make_loader(cfg: CorpusConfig, *, progress: bool = False) -> CorpusLoader:
    policy = RegexPartitionPolicy(cfg.partition_pattern) if cfg.partition_pattern else classify
    return CorpusLoader(
        cfg.root,
        fixture_glob=cfg.fixture_glob,
        policy=policy,
        workers=cfg.workers,
        progress=progress,
    )


def run_validation(cfg: CorpusConfig, *, progress: bool = False) -> RunResult:
    """Load the whole corpus, then validate it. Extraction finishes before validation starts."""
    registry = make_registry(cfg)
    fixtures = make_loader(cfg, progress=progress).load()
    report = validate_corpus(fixtures, registry, cfg.validation_options())
    manifest = build_manifest(report, corpus_id=cfg.corpus_id)
    return RunResult(registry=registry, report=report, manifest=manifest)


def export_datasets(result: RunResult, out_dir: str | Path, *, path_prefix: str = "") -> List[Path]:
    """Write one ground-truth dataset manifest per partition group."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    manifests = build_dataset_manifests(result.report, result.registry, path_prefix=path_prefix)
    for dataset_id, manifest in manifests.items():
        path = out_dir / f"{dataset_id}.json"
        path.write_text(render_manifest(manifest), encoding="utf-8")
        written.append(path)
    return written


def strip_corpus(cfg: CorpusConfig, out_dir: str | Path) -> int:
    """Copy every fixture into out_dir with ground-truth markers removed.

    Returns the number of files written.
    """
    loader = make_loader(cfg)
    out_dir = Path(out_dir).resolve()
    root = loader.root.resolve()
    # copies under the root would be picked up as fixtures by the next run
    if out_dir == root or root in out_dir.parents:
        raise ValueError(f"Refusing to write marker-free copies inside the corpus root {root}")
    count = 0
    for src in loader.discover():
        dest = out_dir / src.relative_to(loader.root)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(strip_markers(src.read_text(encoding="utf-8", errors="replace")), encoding="utf-8")
        count += 1
    logger.info("Wrote %d marker-free fixtures to %s", count, out_dir)
    return count


def print_report(result: RunResult, *, verbose: bool = False) -> None:
    report = result.report
    summary = result.manifest["summary"]

    console.print(f"\n[bold blue]Corpus: {result.manifest.get('corpus_id') or '(unnamed)'}[/bold blue]")
    console.print(f"Taxonomy: {report.taxonomy_version} ({len(report.class_ids)} classes)")
    console.print(
        f"Fixtures: {summary['fixtures']} "
        f"({summary['fixtures_validated']} validated, {summary['fixtures_excluded']} excluded)"
    )

    df = counts_frame(report)
    table = Table(title="Vulnerable instructions per class x partition")
    table.add_column("class_id")
    for col in df.columns:
        table.add_column(str(col), justify="right")
    for class_id, row in df.iterrows():
        table.add_row(class_id, *[str(int(v)) if v else "[dim]0[/dim]" for v in row.tolist()])
    console.print(table)

    for finding in report.findings:
        if finding.severity is FindingSeverity.ERROR:
            console.print(f"  [red]✗ {finding.kind.value}[/red] {finding.message}")
        elif verbose or finding.kind.value != "SingleExemplar":
            console.print(f"  [yellow]! {finding.kind.value}[/yellow] {finding.message}")

    if report.passed:
        console.print(f"\n[bold green]Corpus valid[/bold green] ({len(report.warnings)} warnings)")
    else:
        console.print(
            f"\n[bold red]Corpus invalid:[/bold red] {len(report.blocking)} blocking findings, "
            f"{len(report.warnings)} warnings"
        )


def print_taxonomy(registry: TaxonomyRegistry) -> None:
    table = Table(title=f"Taxonomy {registry.version}")
    table.add_column("class_id")
    table.add_column("category")
    table.add_column("severity")
    table.add_column("label")
    for vc in registry.all():
        table.add_row(vc.class_id, vc.category.value, vc.severity.value, vc.label)
    console.print(table)


def main(
    cfg: CorpusConfig,
    *,
    output: Optional[str] = None,
    export_dir: Optional[str] = None,
    path_prefix: str = "",
    verbose: bool = False,
) -> int:
    """Entry point for ``hydra-corpus validate``. Returns the process exit status."""
    result = run_validation(cfg, progress=verbose)
    print_report(result, verbose=verbose)

    text = render_manifest(result.manifest)
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text, encoding="utf-8")
        console.print(f"Manifest written: {output}")
    else:
        print(text, end="")

    if export_dir:
        for path in export_datasets(result, export_dir, path_prefix=path_prefix):
            console.print(f"Dataset manifest written: {path}")

    return result.exit_code
