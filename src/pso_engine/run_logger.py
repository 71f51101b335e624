"""CSV log of per-generation swarm metrics."""

from __future__ import annotations

import csv
import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, MutableMapping, Optional

import numpy as np

FIELDS = ("timestamp", "generation", "evaluations", "best_f", "mean_f", "pbest_mean")


@dataclass
class RunLogger:
    """Buffer one row per generation and write them out with shared metadata."""

    base_dir: Path
    filename: Optional[str] = None
    metadata: Optional[Dict[str, object]] = None

    _records: List[MutableMapping[str, object]] = field(default_factory=list, init=False)
    _resolved_path: Optional[Path] = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.metadata = dict(self.metadata or {})

    def log_generation(self, pso, evaluations: int) -> None:
        """Record the engine's state right after a generation committed."""
        scores = pso.model.scores
        finite = scores[np.isfinite(scores)]
        pbest = pso.pbest_f[np.isfinite(pso.pbest_f)]
        record: MutableMapping[str, object] = {
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds"),
            "generation": pso.generation,
            "evaluations": int(evaluations),
            "best_f": pso.model.best_f,
            "mean_f": float(finite.mean()) if finite.size else float("nan"),
            "pbest_mean": float(pbest.mean()) if pbest.size else float("nan"),
        }
        record.update(self.metadata)
        self._records.append(record)

    def reporter(self, pso):
        """Progress callback that logs every generation of `pso`."""
        def _report(evaluations: int, best_f: float) -> None:
            self.log_generation(pso, evaluations)
        return _report

    def update_metadata(self, **extra: object) -> None:
        """Merge additional metadata that all future rows will share."""
        self.metadata.update(extra)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path:
        """Write buffered records to disk and return the file path."""
        if not self._records:
            raise RuntimeError("No records to write; did you call log_generation()?")

        path = self._resolve_path()
        fieldnames = list(FIELDS) + [k for k in self.metadata if k not in FIELDS]
        with path.open("w", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=fieldnames, extrasaction="ignore")
            writer.writeheader()
            for record in self._records:
                writer.writerow(record)
        return path

    def _resolve_path(self) -> Path:
        if self._resolved_path is None:
            stamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S")
            self._resolved_path = self.base_dir / (self.filename or f"run_{stamp}.csv")
        return self._resolved_path
