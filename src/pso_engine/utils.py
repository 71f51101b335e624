"""
Helpers shared by the CLI and the experiment runner.

Responsibilities:
  • Filesystem helpers (create directories, write the run manifest).
  • Reproducibility (deterministic per-run seeds).
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict


def ensure_dirs(*paths: Path) -> None:
    """
    Create all given directories (recursively) if they do not exist.

    Args:
        *paths: One or more Path objects (directories) to create.
    """
    for p in paths:
        Path(p).mkdir(parents=True, exist_ok=True)


def derive_seed(seed0: int, *key: Any) -> int:
    """
    Deterministic seed for one run, stable across processes.

    Args:
        seed0: base seed of the experiment.
        *key: anything identifying the run, e.g. (func, n, run, topology).
    """
    digest = hashlib.sha256(repr(key).encode()).digest()
    return (int(seed0) + int.from_bytes(digest[:4], "little")) % (2**31 - 1)


def save_manifest(cfg: Any, run_dir: Path, **extra: Any) -> Path:
    """
    Write a JSON manifest describing a run's configuration and outcome.

    Args:
        cfg: a PSOConfig (anything with to_dict()).
        run_dir: Run directory (manifest is saved as run_dir/manifest.json).
        **extra: additional JSON-serialisable fields (objective name, best_f, ...).
    """
    manifest: Dict[str, Any] = {"config": cfg.to_dict()}
    manifest.update(extra)
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    path = run_dir / "manifest.json"
    with open(path, "w") as f:
        json.dump(manifest, f, indent=2)
    return path
