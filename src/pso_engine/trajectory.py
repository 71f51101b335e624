"""Running record of the global best, one entry per generation."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple, Union

import numpy as np


class Trajectory:
    """Append-only (best_f, best_x) log. Entry 0 is the initial evaluation."""

    def __init__(self) -> None:
        self.best_f: List[float] = []
        self.best_x: List[np.ndarray] = []

    def record(self, best_f: float, best_x: np.ndarray) -> None:
        self.best_f.append(float(best_f))
        self.best_x.append(np.array(best_x, dtype=float, copy=True))

    def __len__(self) -> int:
        return len(self.best_f)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (scores of shape (T,), positions of shape (T, D))."""
        if not self.best_x:
            return np.empty(0), np.empty((0, 0))
        return np.asarray(self.best_f, dtype=float), np.vstack(self.best_x)

    def export(self,
               f_path: Union[str, Path],
               x_path: Union[str, Path]) -> Tuple[Path, Path]:
        """
        Write the log as two text files.

        f_path gets one best score per line; x_path one comma-separated
        position per line. Both follow generation order.
        """
        f_path, x_path = Path(f_path), Path(x_path)
        for p in (f_path, x_path):
            p.parent.mkdir(parents=True, exist_ok=True)

        with f_path.open("w") as fh:
            for f in self.best_f:
                fh.write(f"{f!r}\n")
        with x_path.open("w") as fh:
            for x in self.best_x:
                fh.write(",".join(repr(float(v)) for v in x) + "\n")
        return f_path, x_path
