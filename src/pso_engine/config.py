from __future__ import annotations

import dataclasses
import enum
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .errors import InvalidConfiguration

"""
Run parameters for the swarm engine.

A `PSOConfig` is built once and never mutated during a run. Shape and bound
checks happen here; the swarm constants (c1 + c2 > 4) are checked by the
engine because they only matter once a velocity rule is applied.
"""


class NeighborhoodType(str, enum.Enum):
    LBEST = "lbest"    # ring of radius rho
    GBEST = "gbest"    # fully connected

    @classmethod
    def parse(cls, value: Union[str, "NeighborhoodType"]) -> "NeighborhoodType":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            "lbest": cls.LBEST, "ring": cls.LBEST,
            "gbest": cls.GBEST, "fully_connected": cls.GBEST, "full": cls.GBEST,
        }
        if key not in aliases:
            raise InvalidConfiguration(
                f"Only `lbest` and `gbest` are valid neighborhood types, got {value!r}"
            )
        return aliases[key]


Bounds = Tuple[Tuple[float, float], ...]


@dataclass(frozen=True)
class PSOConfig:
    dimensions: Tuple[int, ...] = (2,)
    population_size: int = 1000
    neighborhood_type: NeighborhoodType = NeighborhoodType.LBEST
    rho: int = 2                 # ring radius: 2*rho neighbors
    alpha: float = 0.01          # v_max = 5 * alpha
    c1: float = 2.05
    c2: float = 2.05
    lr: float = 0.5
    bounds: Bounds = ((-5.0, 10.0), (-5.0, 10.0))
    t_max: int = 10000           # budget in objective evaluations
    progress_bar: bool = True
    workers: Optional[int] = None
    seed: Optional[int] = None

    def __post_init__(self):
        # normalise sequences so the instance stays hashable
        try:
            dims = tuple(int(d) for d in self.dimensions)
            bounds = tuple((float(lo), float(hi)) for lo, hi in self.bounds)
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"Malformed dimensions/bounds: {exc}") from exc
        object.__setattr__(self, "dimensions", dims)
        object.__setattr__(self, "bounds", bounds)
        object.__setattr__(self, "neighborhood_type",
                           NeighborhoodType.parse(self.neighborhood_type))
        self._validate()

    def _validate(self) -> None:
        if not self.dimensions or any(d < 1 for d in self.dimensions):
            raise InvalidConfiguration(
                f"dimensions must be a non-empty sequence of positive ints, got {self.dimensions}"
            )
        if self.population_size < 1:
            raise InvalidConfiguration("population_size must be >= 1.")
        if self.neighborhood_type is NeighborhoodType.LBEST and self.rho < 1:
            raise InvalidConfiguration("rho must be >= 1 for a ring topology.")
        last = self.dimensions[-1]
        if len(self.bounds) < last:
            raise InvalidConfiguration(
                f"Need one (low, high) pair per innermost coordinate: "
                f"{len(self.bounds)} given, last dimension is {last}."
            )
        for k, (lo, hi) in enumerate(self.bounds):
            if not (math.isfinite(lo) and math.isfinite(hi)) or lo > hi:
                raise InvalidConfiguration(f"Invalid bound pair {k}: ({lo}, {hi})")
        if not self.alpha > 0:
            raise InvalidConfiguration("alpha must be > 0.")
        if not self.lr > 0:
            raise InvalidConfiguration("lr must be > 0.")
        if self.t_max < 0:
            raise InvalidConfiguration("t_max must be >= 0.")
        if self.workers is not None and self.workers < 1:
            raise InvalidConfiguration("workers must be >= 1 (or None).")

    @property
    def flat_dim(self) -> int:
        return math.prod(self.dimensions)

    def replace(self, **changes: Any) -> "PSOConfig":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        d = dataclasses.asdict(self)
        d["dimensions"] = list(self.dimensions)
        d["bounds"] = [list(b) for b in self.bounds]
        d["neighborhood_type"] = self.neighborhood_type.value
        return d


def uniform_bounds(low: float, high: float, n: int) -> Bounds:
    """Same (low, high) pair for each of the n innermost coordinates."""
    return tuple((float(low), float(high)) for _ in range(n))


def from_preset(name: str, **overrides: Any) -> PSOConfig:
    if name not in PRESETS:
        raise InvalidConfiguration(f"Unknown preset {name!r}; choose from {sorted(PRESETS)}")
    params = {**PRESETS[name], **overrides}
    return PSOConfig(**params)


def bounds_for(dimensions: Sequence[int], low: float, high: float) -> Bounds:
    return uniform_bounds(low, high, int(dimensions[-1]))


# ============= Presets =============

# Library defaults (2-D search, large ring swarm).
DEFAULT = {}

# Small swarm for smoke tests and quick CLI runs.
QUICK = {
    "population_size": 40,
    "rho": 2,
    "alpha": 0.1,
    "t_max": 4000,
}

# Cluster search: 13 points in 3-D, one bound pair per spatial axis.
LENNARD_JONES = {
    "dimensions": (13, 3),
    "population_size": 200,
    "rho": 2,
    "alpha": 0.01,
    "lr": 0.5,
    "bounds": ((-2.5, 2.5),) * 3,
    "t_max": 200000,
}

PRESETS = {
    "default": DEFAULT,
    "quick": QUICK,
    "lennard_jones": LENNARD_JONES,
}
