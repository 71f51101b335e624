import pytest

from pso_engine import PSOConfig, uniform_bounds


def make_config(dims=(2,), low=-5.0, high=10.0, **overrides) -> PSOConfig:
    params = dict(
        dimensions=tuple(dims),
        population_size=10,
        bounds=uniform_bounds(low, high, dims[-1]),
        t_max=100,
        progress_bar=False,
        seed=7,
    )
    params.update(overrides)
    return PSOConfig(**params)


@pytest.fixture
def small_config():
    return make_config()
