"""
Corpus root and config discovery.

Works when running from a repository checkout, from an editable install, or
from any directory with ``HYDRA_CORPUS_ROOT`` / ``HYDRA_CORPUS_CONFIG`` set.
"""

from pathlib import Path
from typing import Optional
import os

CORPUS_DIR_NAME = "golden_repos"
CONFIG_FILE_NAME = "hydra_corpus.yaml"


def _find_repo_root() -> Optional[Path]:
    """Find the repository root by walking up to a pyproject.toml."""
    current = Path(__file__).resolve().parent
    for _ in range(10):  # Max 10 levels up
        if (current / "pyproject.toml").exists():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def get_corpus_root() -> Path:
    """Get the fixture corpus directory.

    Tries, in order:
    1. HYDRA_CORPUS_ROOT environment variable
    2. Current working directory / golden_repos
    3. Repository root / golden_repos

    Raises:
        FileNotFoundError: If no corpus directory can be found
    """
    env_root = os.environ.get("HYDRA_CORPUS_ROOT")
    if env_root:
        env_path = Path(env_root)
        if env_path.is_dir():
            return env_path
        raise FileNotFoundError(f"HYDRA_CORPUS_ROOT points to a missing directory: {env_root}")

    cwd_corpus = Path.cwd() / CORPUS_DIR_NAME
    if cwd_corpus.is_dir():
        return cwd_corpus

    repo_root = _find_repo_root()
    if repo_root and (repo_root / CORPUS_DIR_NAME).is_dir():
        return repo_root / CORPUS_DIR_NAME

    raise FileNotFoundError(
        "Could not find corpus directory. Tried:\n"
        "  - HYDRA_CORPUS_ROOT env var\n"
        f"  - Current working directory / {CORPUS_DIR_NAME}\n"
        f"  - Repository root / {CORPUS_DIR_NAME}\n"
        "Pass --root, set HYDRA_CORPUS_ROOT, or run from the repository root."
    )


def find_default_config() -> Optional[Path]:
    """Config file from HYDRA_CORPUS_CONFIG or ./hydra_corpus.yaml, if present."""
    env_cfg = os.environ.get("HYDRA_CORPUS_CONFIG")
    if env_cfg:
        return Path(env_cfg)
    cwd_cfg = Path.cwd() / CONFIG_FILE_NAME
    if cwd_cfg.exists():
        return cwd_cfg
    return None
