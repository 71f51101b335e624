import numpy as np

from .config import NeighborhoodType, PSOConfig
from .errors import InvalidConfiguration


def global_best_neighbors(n_particles: int) -> np.ndarray:
    """
    Fully-connected neighborhood for gbest PSO.

    Row i lists every index 0..n-1 (self included).
    """
    if n_particles <= 0:
        raise InvalidConfiguration("n_particles must be positive.")
    return np.tile(np.arange(n_particles, dtype=np.intp), (n_particles, 1))


def ring_lbest_neighbors(n_particles: int, rho: int = 2) -> np.ndarray:
    """
    Ring neighborhood (lbest PSO).

    Particle i sees the 2*rho consecutive indices i-rho, ..., i+rho-1,
    wrapped modulo n_particles at both ends. With rho=2, particle 0 of a
    10-particle swarm sees [8, 9, 0, 1].

    Parameters
    ----------
    n_particles : int
        Number of particles in the swarm (>= 1).
    rho : int, default=2
        Ring radius (>= 1).

    Returns
    -------
    nb : (n_particles, 2*rho) int ndarray
        nb[i] holds the neighbor indices of particle i, in window order.

    Notes
    -----
    - Window is asymmetric: i-rho is included, i+rho is not.
    - When 2*rho > n_particles the window wraps more than once, so a row
      repeats indices. Every entry still lies in [0, n_particles).
    """
    if n_particles <= 0:
        raise InvalidConfiguration("n_particles must be positive.")
    if rho < 1:
        raise InvalidConfiguration("rho must be >= 1.")

    offsets = np.arange(-rho, rho, dtype=np.intp)
    idx = np.arange(n_particles, dtype=np.intp)[:, None] + offsets[None, :]
    # np.mod keeps negatives in [0, n)
    return np.mod(idx, n_particles)


def build_neighborhoods(config: PSOConfig) -> np.ndarray:
    """Neighbor index table for the configured topology; built once per engine."""
    if config.neighborhood_type is NeighborhoodType.GBEST:
        nb = global_best_neighbors(config.population_size)
    else:
        nb = ring_lbest_neighbors(config.population_size, rho=config.rho)
    nb.setflags(write=False)
    return nb
