"""Benchmark objectives with the engine signature f(particle, flat_dim, dimensions)."""

from typing import Sequence

import numpy as np


def reshape(particle, dimensions: Sequence[int]) -> np.ndarray:
    """View a flat particle with its configured shape, e.g. (n_points, 3)."""
    return np.asarray(particle, dtype=np.float64).reshape(tuple(dimensions))


def sphere(x, flat_dim=None, dimensions=None) -> float:
    x = np.asarray(x, dtype=np.float64)
    return float(np.dot(x, x))  # stable and fast

def sum_squares(x, flat_dim=None, dimensions=None) -> float:
    # sum_i i * x_i^2 (coordinate 0 carries no weight)
    x = np.asarray(x, dtype=np.float64)
    return float(np.dot(np.arange(x.size), x * x))

def rosenbrock(x, flat_dim=None, dimensions=None) -> float:
    x = np.asarray(x, dtype=np.float64)
    return float(np.sum(100.0*(x[1:] - x[:-1]**2)**2 + (1.0 - x[:-1])**2))

def rastrigin(x, flat_dim=None, dimensions=None) -> float:
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    return float(10*n + np.sum(x**2 - 10*np.cos(2*np.pi*x)))

def ackley(x, flat_dim=None, dimensions=None) -> float:
    x = np.asarray(x, dtype=np.float64)
    n = x.size
    a, b, c = 20.0, 0.2, 2*np.pi
    mean_sq = np.dot(x, x) / n
    mean_cos = np.mean(np.cos(c * x))
    # Guard against tiny negative due to FP roundoff inside sqrt:
    return float(-a * np.exp(-b * np.sqrt(max(mean_sq, 0.0)))
                 - np.exp(mean_cos) + a + np.e)

def lennard_jones(x, flat_dim=None, dimensions=None) -> float:
    """
    Lennard-Jones cluster energy, 4 * sum_{i<j} (r_ij^-12 - r_ij^-6).

    The particle is read as `dimensions` = (n_points, spatial_dim); without
    dimensions it is taken as 3-D points.
    """
    if dimensions is None or len(dimensions) < 2:
        pts = np.asarray(x, dtype=np.float64).reshape(-1, 3)
    else:
        pts = reshape(x, dimensions)
    i, j = np.triu_indices(pts.shape[0], k=1)
    r = np.linalg.norm(pts[i] - pts[j], axis=1)
    inv6 = r ** -6.0
    return float(4.0 * np.sum(inv6 * inv6 - inv6))


FUNCTIONS = {
    "sphere":       {"f": sphere,        "bounds": (-5.12, 5.12)},
    "sum_squares":  {"f": sum_squares,   "bounds": (-10.0, 10.0)},
    "rosenbrock":   {"f": rosenbrock,    "bounds": (-5.0, 10.0)},
    "rastrigin":    {"f": rastrigin,     "bounds": (-5.12, 5.12)},
    "ackley":       {"f": ackley,        "bounds": (-32.768, 32.768)},
    "lennard_jones":{"f": lennard_jones, "bounds": (-2.5, 2.5)},
}

SUCCESS_THRESHOLDS = {
    "sphere": 1e-8,
    "sum_squares": 1e-4,
    "rosenbrock": 1e-8,
    "rastrigin": 1e-4,
    "ackley": 1e-4,
    "lennard_jones": None,
}
