import math

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st

from pso_engine import PSO, InvalidConfiguration, Model, NumericDivergence, PSOConfig, constriction, run
from pso_engine.functions import rastrigin, sphere, sum_squares

from conftest import make_config


def make_pso(**overrides) -> PSO:
    return PSO(Model(make_config(**overrides), sphere))


# ---------- swarm constants ----------

def test_constriction_known_value():
    phi, chi = constriction(2.05, 2.05)
    assert phi == pytest.approx(4.1)
    assert chi == pytest.approx(0.7298437881, rel=1e-9)


@settings(max_examples=200)
@given(c1=st.floats(min_value=2.0001, max_value=50.0),
       c2=st.floats(min_value=2.0001, max_value=50.0))
def test_chi_is_finite_and_positive(c1, c2):
    _, chi = constriction(c1, c2)
    assert math.isfinite(chi)
    assert chi > 0


@pytest.mark.parametrize("c1, c2", [(0.01, 0.99), (2.0, 2.0), (1.5, 1.5), (float("nan"), 3.0)])
def test_small_phi_rejected(c1, c2):
    with pytest.raises(InvalidConfiguration):
        constriction(c1, c2)


def test_invalid_coefficients_fail_engine_construction():
    model = Model(make_config(c1=0.01, c2=0.99), sphere)
    with pytest.raises(InvalidConfiguration):
        PSO(model)


def test_invalid_coefficients_fail_before_any_evaluation():
    calls = []

    def objective(p, flat_dim, dimensions):
        calls.append(1)
        return 0.0

    with pytest.raises(InvalidConfiguration):
        run(make_config(c1=0.01, c2=0.99), objective)
    assert calls == []


# ---------- construction ----------

def test_initial_state():
    pso = make_pso(alpha=0.5, population_size=50, dims=(4,), low=-5.0, high=5.0)
    assert pso.v_max == pytest.approx(2.5)
    assert pso.state == "initialized"
    assert pso.velocities.shape == (50, 4)
    assert np.abs(pso.velocities).max() <= 2.5
    # range is [-v_max, v_max], not [-1, 1]
    assert np.abs(pso.velocities).max() > 1.0
    assert np.array_equal(pso.pbest_x, pso.model.population)
    assert np.array_equal(pso.pbest_f, pso.model.scores)
    assert len(pso.trajectory) == 1
    assert pso.trajectory.best_f[0] == pso.model.best_f


def test_pbest_is_a_copy_of_population():
    pso = make_pso()
    pso.model.population[0, 0] = 123.0
    assert pso.pbest_x[0, 0] != 123.0


# ---------- neighborhood best ----------

def test_local_best_fully_connected_picks_global_minimum():
    pso = make_pso(population_size=4, neighborhood_type="gbest")
    pso.pbest_f[:] = [3.0, 1.0, 1.0, 2.0]
    assert pso.local_best_indices().tolist() == [1, 1, 1, 1]


def test_local_best_ring_with_ties():
    pso = make_pso(population_size=5, rho=1)
    # ring rho=1: particle i sees [i-1, i]
    pso.pbest_f[:] = [0.0, 5.0, 5.0, 1.0, 1.0]
    assert pso.local_best_indices().tolist() == [0, 0, 1, 3, 3]


# ---------- step ----------

def test_social_term_follows_neighbor_personal_best():
    pso = make_pso(population_size=2, neighborhood_type="gbest", alpha=10.0)
    pso.model.population = np.array([[1.0, 1.0], [1.0, 1.0]])
    pso.velocities[:] = 0.0
    pso.pbest_x[0] = [1.0, 1.0]
    pso.pbest_x[1] = [-4.0, -4.0]
    pso.pbest_f[:] = [2.0, 0.0]

    draws = np.random.default_rng(0)
    pso.rng = np.random.default_rng(0)
    draws.uniform(-1.0, 1.0, size=(2, 2))          # r1
    r2 = draws.uniform(-1.0, 1.0, size=(2, 2))

    V, _ = pso._update_velocity_and_pos()
    # particle 0 sits on its own pbest; only the pull toward pbest_x[1] remains
    expected = pso.chi * pso.config.c2 * r2[0] * (np.array([-4.0, -4.0]) - 1.0)
    np.testing.assert_allclose(V[0], expected)
    assert not np.allclose(V[0], 0.0)


@settings(max_examples=25, deadline=None)
@given(seed=st.integers(min_value=0, max_value=2**31 - 2),
       points=st.integers(min_value=1, max_value=5),
       width=st.integers(min_value=1, max_value=3),
       n=st.integers(min_value=1, max_value=12))
def test_step_keeps_every_coordinate_in_bounds(seed, points, width, n):
    bounds = tuple((float(k), float(k) + 0.5) for k in range(-1, width - 1))
    cfg = make_config(dims=(points, width), population_size=n, alpha=2.0, lr=1.0,
                      bounds=bounds, seed=seed)
    pso = PSO(Model(cfg, sphere))
    for _ in range(10):
        pso.step()
        pop = pso.model.population
        for j, (lo, hi) in enumerate(bounds):
            assert np.all((pop[:, j::width] >= lo) & (pop[:, j::width] <= hi))
        assert np.abs(pso.velocities).max() <= pso.v_max


def test_scores_match_positions_after_step():
    pso = make_pso(population_size=15)
    pso.step()
    expected = [sphere(p) for p in pso.model.population]
    np.testing.assert_allclose(pso.model.scores, expected)
    assert np.all(pso.pbest_f <= pso.model.scores)


@settings(max_examples=25, deadline=None)
@given(seed=st.integers(min_value=0, max_value=2**31 - 2),
       dim=st.integers(min_value=1, max_value=6),
       n=st.integers(min_value=1, max_value=20),
       topology=st.sampled_from(["gbest", "lbest"]))
def test_personal_and_global_best_never_increase(seed, dim, n, topology):
    cfg = make_config(dims=(dim,), low=-5.12, high=5.12, population_size=n,
                      neighborhood_type=topology, seed=seed)
    pso = PSO(Model(cfg, rastrigin))
    previous = pso.pbest_f.copy()
    for _ in range(15):
        pso.step()
        assert np.all(pso.pbest_f <= previous)
        assert np.all(pso.pbest_f <= pso.model.scores)
        previous = pso.pbest_f.copy()
        assert pso.model.best_f == pytest.approx(pso.pbest_f.min())
    curve, positions = pso.trajectory.as_arrays()
    assert len(curve) == 16
    assert np.all(np.diff(curve) <= 0)
    assert positions.shape == (16, dim)


def test_pbest_positions_score_their_pbest():
    pso = make_pso(population_size=10)
    for _ in range(5):
        pso.step()
    for x, f in zip(pso.pbest_x, pso.pbest_f):
        assert sphere(x) == pytest.approx(f)


def test_step_is_deterministic_for_a_seed():
    a = make_pso(seed=99)
    b = make_pso(seed=99)
    for _ in range(3):
        a.step()
        b.step()
    assert np.array_equal(a.model.population, b.model.population)
    assert a.model.best_f == b.model.best_f


def test_non_finite_velocity_is_fatal():
    pso = make_pso(population_size=4)
    pso.pbest_x[2, 1] = np.nan
    # keep particle 2 out of every other particle's social term
    pso.pbest_f[2] = np.inf
    with pytest.raises(NumericDivergence) as info:
        pso.step()
    err = info.value
    assert (err.particle, err.coordinate) == (2, 1)
    assert err.generation == 1
    assert "particle 2" in str(err)


def test_failed_evaluation_leaves_population_untouched():
    class Boom(RuntimeError):
        pass

    state = {"armed": False}

    def objective(p, flat_dim, dimensions):
        if state["armed"]:
            raise Boom("late failure")
        return sphere(p)

    pso = PSO(Model(make_config(workers=1), objective))
    before = pso.model.population.copy()
    velocities = pso.velocities.copy()
    state["armed"] = True
    with pytest.raises(Boom):
        pso.step()
    assert np.array_equal(pso.model.population, before)
    assert np.array_equal(pso.velocities, velocities)
    assert pso.generation == 0


# ---------- run loop ----------

def test_always_true_predicate_runs_exactly_one_generation():
    pso = make_pso(population_size=5, t_max=10000)
    evals = pso.run(terminate=lambda f_best: True)
    assert evals == 5
    assert pso.generation == 1
    assert len(pso.trajectory) == 2
    assert pso.state == "terminated"


def test_budget_counts_whole_generations():
    pso = make_pso(population_size=10)
    assert pso.run(t_max=35) == 40
    assert pso.generation == 4
    assert pso.evaluations == 40


def test_zero_budget_runs_nothing():
    pso = make_pso(t_max=0)
    assert pso.run() == 0
    assert pso.generation == 0


def test_progress_callback_sees_every_generation():
    seen = []
    pso = make_pso(population_size=10, t_max=50)
    pso.run(progress=lambda evals, best: seen.append((evals, best)))
    assert [e for e, _ in seen] == [10, 20, 30, 40, 50]
    bests = [b for _, b in seen]
    assert bests == sorted(bests, reverse=True)


def test_predicate_sees_current_global_best():
    seen = []

    def terminate(best):
        seen.append(best)
        return len(seen) == 3

    pso = make_pso(t_max=1000)
    pso.run(terminate=terminate)
    assert pso.generation == 3
    assert seen[-1] == pso.model.best_f


@pytest.mark.parametrize("topology", ["gbest", "lbest"])
def test_run_improves_on_sum_squares(topology):
    cfg = PSOConfig(dimensions=(3,), population_size=40, neighborhood_type=topology,
                    bounds=((-10.0, 10.0),) * 3, alpha=0.5, t_max=20000,
                    progress_bar=False, seed=5)
    pso = run(cfg, sum_squares, terminate=lambda f: f < 1e-4)
    assert pso.model.best_f < 1.0
    assert pso.model.best_f <= pso.trajectory.best_f[0]
    assert pso.state == "terminated"
