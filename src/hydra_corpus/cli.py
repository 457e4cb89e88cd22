from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from rich.markup import escape

from .config import CorpusConfig
from .errors import ConfigValidationError, CorpusError
from .io import load_corpus_config
from .paths import find_default_config, get_corpus_root
from .runner import console, main as run_main, print_taxonomy, make_registry, strip_corpus

EXIT_USAGE = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="hydra-corpus",
        description="Validate a labeled Solana fixture corpus for benchmark integrity and partition leakage",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", help="Path to corpus YAML (default: ./hydra_corpus.yaml if present)")
        p.add_argument("--root", help="Corpus root directory (overrides config)")
        p.add_argument("--taxonomy", help="Taxonomy YAML (default: built-in Solana taxonomy)")
        p.add_argument("--verbose", action="store_true", help="Enable debug logging and progress output")

    v = sub.add_parser("validate", help="Validate the corpus and emit a manifest")
    add_common(v)
    v.add_argument("--output", help="Write the manifest JSON here instead of stdout")
    v.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of parallel extraction workers (default: from config, else 1)",
    )
    v.add_argument(
        "--coverage-blocking",
        action="store_true",
        help="Treat CoverageGap findings as blocking errors",
    )
    v.add_argument(
        "--mixed-holdout-blocking",
        action="store_true",
        help="Treat holdout fixtures with safe instructions as blocking errors",
    )
    v.add_argument("--export-datasets", metavar="DIR", help="Also write per-partition ground-truth manifests")
    v.add_argument("--path-prefix", default="", help="Prefix for repo paths in exported dataset manifests")

    t = sub.add_parser("taxonomy", help="List the vulnerability taxonomy")
    add_common(t)

    s = sub.add_parser("strip", help="Copy the corpus with HYDRA_VULN markers removed")
    add_common(s)
    s.add_argument("--out", required=True, help="Output directory for marker-free fixtures")

    return ap.parse_args(argv)


def build_config(args: argparse.Namespace) -> CorpusConfig:
    config_path = args.config or find_default_config()
    if config_path:
        cfg = load_corpus_config(config_path)
    else:
        root = args.root or str(get_corpus_root())
        cfg = CorpusConfig(root=root)

    if args.root:
        cfg.root = args.root
    if args.taxonomy:
        cfg.taxonomy = args.taxonomy
    if getattr(args, "workers", None):
        cfg.workers = args.workers
    if getattr(args, "coverage_blocking", False):
        cfg.coverage_gap_blocking = True
    if getattr(args, "mixed_holdout_blocking", False):
        cfg.mixed_holdout_blocking = True
    return cfg


def cli(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = build_config(args)
        if args.command == "taxonomy":
            print_taxonomy(make_registry(cfg))
            return 0
        if args.command == "strip":
            count = strip_corpus(cfg, args.out)
            console.print(f"[green]Wrote {count} marker-free fixtures to {args.out}[/green]")
            return 0
        return run_main(
            cfg,
            output=args.output,
            export_dir=args.export_datasets,
            path_prefix=args.path_prefix,
            verbose=args.verbose,
        )
    except (ConfigValidationError, CorpusError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return EXIT_USAGE


def entrypoint() -> None:
    sys.exit(cli())


if __name__ == "__main__":
    entrypoint()
