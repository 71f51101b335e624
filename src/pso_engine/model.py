"""Population model: positions, fitness scores and the global best.

The model is the only owner of the global best. `evaluate` maps the
objective over every particle on a thread pool, then reduces once on the
calling thread.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from .config import PSOConfig

logger = logging.getLogger(__name__)

Particle = np.ndarray
# objective(particle, flat_dim, dimensions) -> float
Objective = Callable[[Particle, int, Tuple[int, ...]], float]


def coordinate_bounds(config: PSOConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Per-coordinate (lower, upper) arrays of length flat_dim.

    Coordinate j uses bound pair j mod dimensions[-1].
    """
    last = config.dimensions[-1]
    pairs = np.asarray(config.bounds[:last], dtype=float)
    idx = np.arange(config.flat_dim) % last
    return pairs[idx, 0].copy(), pairs[idx, 1].copy()


class Model:
    """Swarm positions and scores for one run."""

    def __init__(self,
                 config: PSOConfig,
                 objective: Objective,
                 rng: Optional[np.random.Generator] = None):
        self.config = config
        self.objective = objective
        self.flat_dim = config.flat_dim
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)

        self.lower, self.upper = coordinate_bounds(config)
        self.population = self.initialize()
        self.scores = np.full(config.population_size, np.inf)
        self.best_f = float("inf")
        self.best_x = self.population[0].copy()

        # first evaluation fixes the initial global best
        self.evaluate()
        logger.debug("Model initialized: %d particles x %d coords, best=%.6e",
                     config.population_size, self.flat_dim, self.best_f)

    def initialize(self) -> np.ndarray:
        """Uniform random positions inside each coordinate's bounds."""
        return self.rng.uniform(self.lower, self.upper,
                                size=(self.config.population_size, self.flat_dim))

    def _score(self, particle: Particle) -> float:
        return float(self.objective(particle, self.flat_dim, self.config.dimensions))

    def evaluate(self) -> np.ndarray:
        """
        Score every particle and update the global best.

        The objective sees read-only rows of a snapshot, so concurrent calls
        share no writable state. The global best only moves when the batch
        minimum is strictly lower than the stored best.

        Returns
        -------
        scores : (population_size,) float ndarray (a copy)
        """
        snapshot = np.array(self.population, dtype=float, copy=True)
        snapshot.setflags(write=False)
        rows: Sequence[Particle] = list(snapshot)

        workers = self.config.workers
        if workers == 1 or len(rows) == 1:
            scores = [self._score(p) for p in rows]
        else:
            with ThreadPoolExecutor(max_workers=workers) as ex:
                scores = list(ex.map(self._score, rows))

        self.scores = np.asarray(scores, dtype=float)

        # NaN never wins the min-scan
        ranked = np.where(np.isnan(self.scores), np.inf, self.scores)
        idx = int(np.argmin(ranked))
        if ranked[idx] < self.best_f:
            self.best_f = float(ranked[idx])
            self.best_x = snapshot[idx].copy()
        return self.scores.copy()

    def error(self) -> float:
        """Re-evaluate and return the global best score."""
        self.evaluate()
        return self.best_f

    def commit(self, positions: np.ndarray) -> None:
        """Swap in a freshly computed population buffer."""
        positions = np.asarray(positions, dtype=float)
        if positions.shape != self.population.shape:
            raise ValueError(
                f"Population shape {positions.shape} does not match {self.population.shape}"
            )
        self.population = positions

    def get_f_best(self) -> float:
        return self.best_f

    def get_x_best(self) -> np.ndarray:
        return self.best_x.copy()
