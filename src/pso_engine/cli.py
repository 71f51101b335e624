from __future__ import annotations

import argparse
import logging
import os
import sys
from contextlib import nullcontext
from math import isfinite
from pathlib import Path
from typing import Callable, List, Optional

import pandas as pd

from .config import PRESETS, PSOConfig, bounds_for
from .core import PSO, constriction
from .errors import InvalidConfiguration, NumericDivergence
from .experiment import DEFAULT_FUNCTIONS, run_suite
from .functions import FUNCTIONS, SUCCESS_THRESHOLDS
from .model import Model
from .progress import RichProgress
from .run_logger import RunLogger
from .utils import ensure_dirs, save_manifest

logger = logging.getLogger("pso_engine")

EXIT_OK = 0
EXIT_INVALID_CONFIG = 2
EXIT_DIVERGED = 3

DEFAULT_OUTDIR = Path("results")


def setup_logging(verbose: bool = False) -> None:
    from rich.logging import RichHandler
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
        force=True,
    )


# ---------- Simple boxplot helper  ----------
def boxplot_from_runs(runs_csv: str, outpath: str):
    """Create a compact boxplot of final best fitness per (function, n)."""
    import matplotlib
    matplotlib.use("Agg")  # Use non-interactive backend
    import matplotlib.pyplot as plt

    df = pd.read_csv(runs_csv)
    df["combo"] = df["func"] + "_n" + df["n"].astype(str)
    order = sorted(df["combo"].unique())
    data = [df.loc[df["combo"] == c, "best_f"].values for c in order]
    plt.figure()
    plt.boxplot(data, showfliers=False)
    plt.xticks(range(1, len(order) + 1), order, rotation=30, ha="right")
    plt.ylabel("Final best fitness")
    plt.title("PSO final fitness across runs")
    os.makedirs(os.path.dirname(outpath) or ".", exist_ok=True)
    plt.savefig(outpath, bbox_inches="tight")
    plt.close()


# ---------- CLI ----------
def _add_swarm_args(p: argparse.ArgumentParser) -> None:
    # Optional manual overrides: use None so they only apply if explicitly set
    p.add_argument("--preset", choices=sorted(PRESETS), default="quick")
    p.add_argument("--population", type=int, default=None)
    p.add_argument("--rho", type=int, default=None, help="ring radius (lbest)")
    p.add_argument("--alpha", type=float, default=None, help="max velocity = 5 * alpha")
    p.add_argument("--c1", type=float, default=None)
    p.add_argument("--c2", type=float, default=None)
    p.add_argument("--lr", type=float, default=None)
    p.add_argument("--t-max", dest="t_max", type=int, default=None,
                   help="budget in objective evaluations")
    p.add_argument("--workers", type=int, default=None)
    p.add_argument("--verbose", action="store_true")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pso-engine",
                                     description="Constriction-coefficient PSO.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    # ---- RUN ----
    p_run = sub.add_parser("run", help="Minimize one benchmark function")
    p_run.add_argument("--function", choices=sorted(FUNCTIONS), default="sum_squares")
    p_run.add_argument("--dims", type=int, nargs="+", default=[3],
                       help="particle shape, e.g. `--dims 13 3` for a 13-point cluster")
    p_run.add_argument("--topology", choices=["lbest", "gbest"], default="lbest")
    p_run.add_argument("--target", type=float, default=None,
                       help="stop once the best score is <= target")
    p_run.add_argument("--seed", type=int, default=None)
    p_run.add_argument("--outdir", type=Path, default=DEFAULT_OUTDIR)
    p_run.add_argument("--no-progress", dest="no_progress", action="store_true")
    _add_swarm_args(p_run)

    # ---- GRID ----
    p_grid = sub.add_parser("grid", help="Repeated runs over benchmark functions")
    p_grid.add_argument("--outdir", default=str(DEFAULT_OUTDIR))
    p_grid.add_argument("--runs", type=int, default=10)
    p_grid.add_argument("--dims", type=int, nargs="+", default=[2, 10])
    p_grid.add_argument("--seed", type=int, default=123)
    p_grid.add_argument("--topologies", choices=["gbest", "lbest", "both"], default="both")
    p_grid.add_argument("--functions", nargs="+", choices=sorted(FUNCTIONS),
                        default=list(DEFAULT_FUNCTIONS))
    p_grid.add_argument("--no-boxplots", dest="no_boxplots", action="store_true")
    _add_swarm_args(p_grid)
    return parser


def load_config(args, dimensions: List[int], topology: str) -> PSOConfig:
    """Preset values, then any explicitly given CLI overrides."""
    d = dict(PRESETS[getattr(args, "preset", "quick")])
    d["dimensions"] = tuple(dimensions)
    d["neighborhood_type"] = topology
    overrides = {
        "population_size": getattr(args, "population", None),
        "rho": getattr(args, "rho", None),
        "alpha": getattr(args, "alpha", None),
        "c1": getattr(args, "c1", None),
        "c2": getattr(args, "c2", None),
        "lr": getattr(args, "lr", None),
        "t_max": getattr(args, "t_max", None),
        "workers": getattr(args, "workers", None),
        "seed": getattr(args, "seed", None),
    }
    for k, v in overrides.items():
        if v is None or (isinstance(v, float) and not isfinite(v)):
            continue
        d[k] = v
    if "bounds" not in d or len(d["bounds"]) < dimensions[-1]:
        d["bounds"] = bounds_for(dimensions, -1.0, 1.0)
    return PSOConfig(**d)


def cmd_run(args) -> int:
    meta = FUNCTIONS[args.function]
    cfg = load_config(args, args.dims, args.topology)
    lo, hi = meta["bounds"]
    cfg = cfg.replace(bounds=bounds_for(cfg.dimensions, lo, hi),
                      progress_bar=not args.no_progress)

    constriction(cfg.c1, cfg.c2)
    model = Model(cfg, meta["f"])
    pso = PSO(model)

    run_dir = Path(args.outdir) / args.function
    ensure_dirs(run_dir)
    run_log = RunLogger(run_dir, filename="generations.csv",
                        metadata={"function": args.function, "topology": args.topology})
    reporters = [run_log.reporter(pso)]
    bar = RichProgress(cfg.t_max) if cfg.progress_bar else nullcontext()

    def progress(evals: int, best_f: float) -> None:
        for report in reporters:
            report(evals, best_f)

    terminate = (lambda f: f <= args.target) if args.target is not None else None
    with bar:
        if cfg.progress_bar:
            reporters.append(bar)
        evals = pso.run(terminate=terminate, progress=progress)

    f_path, x_path = pso.trajectory.export(run_dir / "best_f.txt", run_dir / "best_x.txt")
    if len(run_log):
        run_log.flush()
    save_manifest(cfg, run_dir, function=args.function, best_f=model.best_f,
                  evaluations=evals, generations=pso.generation)

    print(f"Found minimum: {model.best_f:.10g}")
    print(f"Found minimizer: {model.get_x_best().tolist()}")
    print(f"[{args.function}] wrote:", f_path, x_path)
    return EXIT_OK


def make_config_factory(args) -> Callable[[int, str], PSOConfig]:
    """Returns a callable (n:int, topo:str) -> PSOConfig for the grid runner."""
    def factory(n: int, topo: str) -> PSOConfig:
        return load_config(args, [n], topo).replace(progress_bar=False)
    return factory


def cmd_grid(args) -> int:
    outdir = Path(args.outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    factory = make_config_factory(args)
    # fail fast on bad swarm constants before the first trial
    probe = factory(args.dims[0], "gbest")
    constriction(probe.c1, probe.c2)

    topos = ["gbest", "lbest"] if args.topologies == "both" else [args.topologies]
    thresholds = {f: SUCCESS_THRESHOLDS.get(f) for f in args.functions}
    for topo in topos:
        runs_csv, summary_csv = run_suite(
            outdir=str(outdir),
            dims=tuple(args.dims),
            runs=args.runs,
            topology=topo,
            seed0=args.seed,
            thresholds=thresholds,
            config_factory=factory,
            functions=args.functions,
        )
        if not args.no_boxplots:
            boxplot_from_runs(runs_csv, str(outdir / f"boxplot_{topo}.png"))
        print(f"[{topo}] wrote:", runs_csv, summary_csv)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(getattr(args, "verbose", False))
    try:
        if args.cmd == "run":
            return cmd_run(args)
        return cmd_grid(args)
    except InvalidConfiguration as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_INVALID_CONFIG
    except NumericDivergence as exc:
        logger.error("Swarm diverged: %s", exc)
        return EXIT_DIVERGED


if __name__ == "__main__":
    sys.exit(main())
