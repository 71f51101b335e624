"""Constriction-coefficient PSO engine.

Velocity rule (per particle i, coordinate j):

    v <- chi * (v + c1*r1*(pbest_i - x) + c2*r2*(pbest_lbest(i) - x))
    v <- clip(v, -v_max, v_max)
    x <- clip(x + lr*v, low_j, high_j)

with r1, r2 ~ U[-1, 1], phi = c1 + c2 and
chi = 2 / |2 - phi - sqrt(phi^2 - 4 phi)|.

Every generation computes all new velocities/positions from the previous
generation's committed arrays, swaps them in, then evaluates the swarm.
"""

from __future__ import annotations

import logging
import math
from contextlib import nullcontext
from typing import Callable, Optional, Tuple

import numpy as np

from .config import PSOConfig
from .errors import InvalidConfiguration, NumericDivergence
from .model import Model, Objective
from .progress import RichProgress
from .topologies import build_neighborhoods
from .trajectory import Trajectory

logger = logging.getLogger(__name__)

Terminate = Callable[[float], bool]
Reporter = Callable[[int, float], None]


def constriction(c1: float, c2: float) -> Tuple[float, float]:
    """Return (phi, chi). Requires c1 + c2 > 4."""
    phi = float(c1) + float(c2)
    if not math.isfinite(phi) or phi <= 4.0:
        raise InvalidConfiguration(
            f"c1 + c2 must be > 4 for a real constriction coefficient, got {phi}"
        )
    chi = 2.0 / abs(2.0 - phi - math.sqrt(phi * phi - 4.0 * phi))
    return phi, chi


class PSO:
    """Swarm engine wrapping a `Model`: velocities, personal bests and the loop."""

    def __init__(self, model: Model):
        cfg = model.config
        self.phi, self.chi = constriction(cfg.c1, cfg.c2)
        self.v_max = cfg.alpha * 5.0

        self.model = model
        self.rng = model.rng
        self.neighborhoods = build_neighborhoods(cfg)

        # Init
        self.velocities = self.rng.uniform(-self.v_max, self.v_max,
                                           size=model.population.shape)
        self.pbest_x = model.population.copy()
        self.pbest_f = np.where(np.isnan(model.scores), np.inf, model.scores)

        self.generation = 0
        self.evaluations = 0
        self.trajectory = Trajectory()
        self.trajectory.record(model.best_f, model.best_x)
        self.state = "initialized"

        logger.info(
            "PSO ready: %d particles, %s topology, phi=%.4f chi=%.6f v_max=%.4g",
            cfg.population_size, cfg.neighborhood_type.value, self.phi, self.chi, self.v_max,
        )

    @property
    def config(self) -> PSOConfig:
        return self.model.config

    def local_best_indices(self) -> np.ndarray:
        """
        For each particle, the neighbor with the lowest personal-best score.

        Ties go to whichever index comes first in a stable ascending sort of
        all personal-best scores, i.e. the lowest index.
        """
        order = np.argsort(self.pbest_f, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(order.size)
        nb = self.neighborhoods
        pick = np.argmin(rank[nb], axis=1)
        return nb[np.arange(nb.shape[0]), pick]

    def _check_finite(self, arr: np.ndarray, quantity: str) -> None:
        bad = ~np.isfinite(arr)
        if bad.any():
            i, j = (int(v) for v in np.argwhere(bad)[0])
            err = NumericDivergence(i, j, arr[i, j], generation=self.generation + 1,
                                    quantity=quantity)
            logger.error("%s", err)
            raise err

    def _update_velocity_and_pos(self) -> Tuple[np.ndarray, np.ndarray]:
        """Compute next (velocities, positions) without touching committed state."""
        cfg = self.config
        X = self.model.population
        G = self.pbest_x[self.local_best_indices()]   # (swarm, dim)

        r1 = self.rng.uniform(-1.0, 1.0, size=X.shape)
        r2 = self.rng.uniform(-1.0, 1.0, size=X.shape)
        cog = cfg.c1 * r1 * (self.pbest_x - X)
        soc = cfg.c2 * r2 * (G - X)

        V = self.chi * (self.velocities + cog + soc)
        self._check_finite(V, "velocity")
        # cap magnitude, keep sign
        V = np.clip(V, -self.v_max, self.v_max)

        candidate = X + cfg.lr * V
        self._check_finite(candidate, "position")
        return V, np.clip(candidate, self.model.lower, self.model.upper)

    def _update_best_positions(self) -> None:
        scores = self.model.scores
        improved = scores < self.pbest_f
        self.pbest_f[improved] = scores[improved]
        self.pbest_x[improved] = self.model.population[improved]

    def step(self) -> float:
        """Advance one generation and return the global best score."""
        V, X = self._update_velocity_and_pos()

        previous = self.model.population
        self.model.commit(X)
        try:
            # score the positions just produced
            self.model.evaluate()
        except Exception:
            self.model.commit(previous)
            raise
        self.velocities = V
        self._update_best_positions()

        self.generation += 1
        self.evaluations += self.config.population_size
        self.trajectory.record(self.model.best_f, self.model.best_x)
        logger.debug("generation %d: best=%.6e", self.generation, self.model.best_f)
        return self.model.best_f

    def run(self,
            t_max: Optional[int] = None,
            terminate: Optional[Terminate] = None,
            progress: Optional[Reporter] = None) -> int:
        """
        Step until the evaluation budget is spent or `terminate(best_f)` is true.

        The predicate is checked after each generation commits, so a predicate
        that is always true runs exactly one generation.

        Args:
            t_max: evaluation budget (defaults to config.t_max).
            terminate: predicate on the current global-best score.
            progress: callback(evaluations, best_f), called once per generation.
                Falls back to a rich progress bar when config.progress_bar is set.

        Returns:
            Number of objective evaluations performed by this call.
        """
        cfg = self.config
        t_max = cfg.t_max if t_max is None else int(t_max)
        if progress is None and cfg.progress_bar:
            reporter_ctx = RichProgress(t_max)
        else:
            reporter_ctx = nullcontext(progress)

        k = 0
        self.state = "running"
        try:
            with reporter_ctx as reporter:
                while k < t_max:
                    self.step()
                    k += cfg.population_size
                    if reporter is not None:
                        reporter(k, self.model.best_f)
                    if terminate is not None and terminate(self.model.best_f):
                        break
        finally:
            self.state = "terminated"

        logger.info("Run finished after %d generations (%d evaluations): best=%.6e",
                    self.generation, k, self.model.best_f)
        return k


def run(config: PSOConfig,
        objective: Objective,
        terminate: Optional[Terminate] = None,
        rng: Optional[np.random.Generator] = None,
        progress: Optional[Reporter] = None) -> PSO:
    """Create a model and run the PSO method until termination.

    Raises:
        InvalidConfiguration: c1 + c2 <= 4 or a malformed configuration.
        NumericDivergence: a velocity or coordinate became non-finite.
    """
    # reject bad swarm constants before the first evaluation
    constriction(config.c1, config.c2)
    model = Model(config, objective, rng=rng)
    pso = PSO(model)
    pso.run(terminate=terminate, progress=progress)
    return pso
