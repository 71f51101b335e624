# experiment.py
from __future__ import annotations

import csv
import json
import logging
import os
import time
from typing import Callable, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import PSOConfig, bounds_for
from .core import run
from .functions import FUNCTIONS
from .utils import derive_seed

"""
Runs repeated trials over benchmark functions and persists results in a
reproducible way.
"""

logger = logging.getLogger(__name__)

DEFAULT_FUNCTIONS = ("sphere", "rosenbrock", "rastrigin", "ackley")


def run_suite(
    *,
    outdir: str,
    dims: Iterable[int],
    runs: int,
    topology: str,
    seed0: int,
    thresholds: Mapping[str, Optional[float]],
    config_factory: Callable[[int, str], PSOConfig],
    functions: Optional[Sequence[str]] = None,
) -> Tuple[str, str]:
    """
    Args (all required unless noted):
      outdir: output directory for CSVs and curves.
      dims: iterable of particle sizes to test (e.g., [2, 10, 30]).
      runs: number of independent runs per (function, n).
      topology: 'gbest' or 'lbest' (passed to config_factory).
      seed0: base integer seed to derive per-run RNG seeds deterministically.
      thresholds: dict mapping function name -> success threshold (float) or None.
                  A threshold also stops the run early once reached.
                  If None, success is not computed (treated as 0 in CSV).
      config_factory: callable (n:int, topology:str) -> PSOConfig. Bounds and
                      seed are filled in per function and run.
      functions: benchmark names from FUNCTIONS (default: the four classic ones).
    Returns:
      (log_csv_path, summary_csv_path)
    """
    # --- Basic checks  ---
    if not isinstance(outdir, str) or not outdir:
        raise ValueError("outdir must be a non-empty string.")
    dims = list(dims)
    if not dims or not all(isinstance(n, int) and n > 0 for n in dims):
        raise ValueError("dims must be a non-empty iterable of positive ints.")
    if not isinstance(runs, int) or runs <= 0:
        raise ValueError("runs must be a positive int.")
    if topology.lower() not in ("gbest", "lbest"):
        raise ValueError("topology must be 'gbest' or 'lbest'.")
    if not isinstance(seed0, int):
        raise ValueError("seed0 must be an int.")
    functions = list(functions or DEFAULT_FUNCTIONS)
    for fname in functions:
        if fname not in FUNCTIONS:
            raise ValueError(f"Unknown benchmark function '{fname}'.")
        # explicit None allowed
        if fname not in thresholds:
            raise ValueError(f"Missing threshold for function '{fname}' in thresholds.")

    os.makedirs(outdir, exist_ok=True)
    curves_dir = os.path.join(outdir, f"curves_{topology}")
    os.makedirs(curves_dir, exist_ok=True)

    log_path = os.path.join(outdir, f"runs_{topology}.csv")
    with open(log_path, "w", newline="") as fh:
        w = csv.writer(fh)
        w.writerow(["func", "n", "run", "best_f", "best_x_json", "evals", "success", "time_s"])

        for fname in functions:
            f = FUNCTIONS[fname]["f"]
            lo, hi = FUNCTIONS[fname]["bounds"]
            thr = thresholds.get(fname)

            for n in dims:
                for r in range(runs):
                    cfg = config_factory(n, topology)
                    # Seed per (func, n, run, topology) deterministically
                    run_seed = derive_seed(seed0, fname, n, r, topology)
                    cfg = cfg.replace(
                        bounds=bounds_for(cfg.dimensions, lo, hi),
                        seed=run_seed,
                        progress_bar=False,
                    )
                    terminate = (lambda best, t=thr: best <= t) if thr is not None else None

                    # --- Run PSO ---
                    t0 = time.time()
                    pso = run(cfg, f, terminate=terminate)
                    dt = time.time() - t0

                    # --- Persist per-generation curve ---
                    curve, _ = pso.trajectory.as_arrays()
                    curve_path = os.path.join(curves_dir, f"{fname}_n{n}_run{r}.npy")
                    np.save(curve_path, curve)

                    # --- Write result row ---
                    best_f = float(pso.model.best_f)
                    success = int(best_f <= thr) if thr is not None else 0
                    evals = cfg.population_size + pso.evaluations  # include initial evaluation
                    w.writerow([
                        fname,
                        n,
                        r,
                        best_f,
                        json.dumps([float(v) for v in pso.model.best_x]),
                        int(evals),
                        success,
                        float(dt),
                    ])
                    logger.info("[%s] %s n=%d run=%d best_f=%.4e evals=%d",
                                topology, fname, n, r, best_f, evals)

    agg_path = os.path.join(outdir, f"summary_{topology}.csv")
    _aggregate(log_path, agg_path)
    return log_path, agg_path


def _aggregate(log_csv: str, out_csv: str):
    df = pd.read_csv(log_csv)
    g = df.groupby(["func", "n"], as_index=False)
    summ = g["best_f"].agg(mean="mean", median="median", min="min", max="max", std="std")
    sr = g["success"].mean().rename(columns={"success": "success_rate"})
    out = pd.merge(summ, sr, on=["func", "n"])
    out.to_csv(out_csv, index=False)
