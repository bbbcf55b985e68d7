"""
pytest configuration and fixtures for sddp_stage tests.

Reference problem (one state, one control, one noise):

    x in [-10, 10], u in [-5, 5], xf = x + u + w, w in {-3, 5}
    cost(u) = max_a (2 a u - a^2), a in {-2, -1, 0, 1, 2}   (tangents of u^2)
    V_{t+1}(xf) = |xf|                                      (cuts (1, 0), (-1, 0))
"""

import pytest
import pyomo.environ as pyo

from sddp_stage import (
    CostModel,
    NoiseLaw,
    PolyhedralFunction,
    SDDPParameters,
    StochasticProblem,
)

TANGENTS = (-2.0, -1.0, 0.0, 1.0, 2.0)
NOISE_SUPPORT = (-3.0, 5.0)


def dynamics(t, x, u, w):
    return [x[0] + u[0] + w[0]]


def quadratic_pieces():
    return [(lambda t, x, u, w, a=a: 2 * a * u[0] - a * a) for a in TANGENTS]


def make_problem(**overrides):
    kw = dict(
        dim_states=1,
        dim_controls=1,
        dim_noises=1,
        x_bounds=[(-10.0, 10.0)],
        u_bounds=[(-5.0, 5.0)],
        dynamics=dynamics,
        cost_functions=quadratic_pieces(),
        cost_model=CostModel.PIECEWISE_LINEAR,
        noise_laws=[NoiseLaw.from_values(NOISE_SUPPORT) for _ in range(2)],
    )
    kw.update(overrides)
    return StochasticProblem(**kw)


def abs_value_function():
    V = PolyhedralFunction(dim=1)
    V.add_cut([1.0], 0.0)
    V.add_cut([-1.0], 0.0)
    return V


def highs_available() -> bool:
    try:
        return bool(pyo.SolverFactory("appsi_highs").available(exception_flag=False))
    except Exception:
        return False


@pytest.fixture
def problem():
    return make_problem()


@pytest.fixture
def V():
    return abs_value_function()


@pytest.fixture
def empty_V():
    return PolyhedralFunction(dim=1)


@pytest.fixture
def rebuild_params():
    if not highs_available():
        pytest.skip("HiGHS (highspy) is not available")
    return SDDPParameters(update_mode="rebuild")


@pytest.fixture
def slot_params():
    if not highs_available():
        pytest.skip("HiGHS (highspy) is not available")
    return SDDPParameters(update_mode="slot_reuse")
