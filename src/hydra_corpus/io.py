from __future__ import annotations

import re
import yaml
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict

from .config import CorpusConfig
from .errors import ConfigValidationError

_FIELD_TYPES = {
    "root": str,
    "corpus_id": str,
    "fixture_glob": str,
    "workers": int,
    "coverage_gap_blocking": bool,
    "mixed_holdout_blocking": bool,
    "taxonomy": str,
    "ignored_program_ids": list,
    "counterpart_prefixes": list,
    "partition_pattern": str,
}

_PATH_FIELDS = ("root", "taxonomy")


def validate_config(cfg: Dict[str, Any]) -> None:
    """Validate corpus configuration.

    Args:
        cfg: Parsed YAML config dict

    Raises:
        ConfigValidationError: If validation fails (all problems are reported together)
    """
    if not isinstance(cfg, dict):
        raise ConfigValidationError("Config must be a YAML mapping")

    errors = []
    known = {f.name for f in fields(CorpusConfig)}

    if "root" not in cfg:
        errors.append("Missing required field: root")

    for key, value in cfg.items():
        if key not in known:
            errors.append(f"Unknown field: {key}")
            continue
        if value is None:
            continue
        expected = _FIELD_TYPES[key]
        # bool is an int subclass; reject it for int fields
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            errors.append(f"{key}: expected {expected.__name__}, got {type(value).__name__}")
        elif expected is list and not all(isinstance(v, str) for v in value):
            errors.append(f"{key}: expected a list of strings")

    workers = cfg.get("workers")
    if isinstance(workers, int) and not isinstance(workers, bool) and workers < 1:
        errors.append("workers: must be >= 1")

    pattern = cfg.get("partition_pattern")
    if isinstance(pattern, str):
        try:
            groups = set(re.compile(pattern).groupindex)
        except re.error as e:
            errors.append(f"partition_pattern: invalid regex ({e})")
        else:
            if not {"role", "version"} <= groups:
                errors.append("partition_pattern: must define 'role' and 'version' groups")

    if errors:
        raise ConfigValidationError("\n".join(errors))


def load_corpus_config(path: str | Path, validate: bool = True) -> CorpusConfig:
    """Load and optionally validate corpus configuration from YAML file.

    Relative ``root`` and ``taxonomy`` paths are resolved against the
    directory containing the config file.

    Raises:
        ConfigValidationError: If validation is enabled and config is invalid
        FileNotFoundError: If config file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        cfg = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"{path}: invalid YAML: {e}") from e

    if validate:
        validate_config(cfg)

    cfg = {k: v for k, v in cfg.items() if v is not None}
    for key in _PATH_FIELDS:
        if key in cfg and not Path(cfg[key]).is_absolute():
            cfg[key] = str((path.parent / cfg[key]).resolve())

    return CorpusConfig(**cfg)
