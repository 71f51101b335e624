"""
Particle Swarm Optimization with a constriction coefficient.

Minimal use:

    from pso_engine import PSOConfig, run

    def sum_squares(p, flat_dim, dimensions):
        return sum(i * p[i] ** 2 for i in range(dimensions[0]))

    config = PSOConfig(dimensions=(3,), population_size=100,
                       bounds=((-10.0, 10.0),) * 3, progress_bar=False)
    pso = run(config, sum_squares, terminate=lambda f_best: f_best < 1e-4)
    print(pso.model.best_f, pso.model.best_x)

Particles are always flat vectors; structured problems (e.g. N points in
3-D) set `dimensions=(N, 3)` and reshape inside the objective.
"""

from .config import NeighborhoodType, PSOConfig, PRESETS, from_preset, uniform_bounds
from .core import PSO, constriction, run
from .errors import InvalidConfiguration, NumericDivergence, PSOError
from .model import Model, Objective, Particle
from .topologies import build_neighborhoods, global_best_neighbors, ring_lbest_neighbors
from .trajectory import Trajectory

__version__ = "0.4.0"

__all__ = [
    "NeighborhoodType",
    "PSOConfig",
    "PRESETS",
    "from_preset",
    "uniform_bounds",
    "PSO",
    "constriction",
    "run",
    "InvalidConfiguration",
    "NumericDivergence",
    "PSOError",
    "Model",
    "Objective",
    "Particle",
    "build_neighborhoods",
    "global_best_neighbors",
    "ring_lbest_neighbors",
    "Trajectory",
]
