import pyomo.environ as pyo
import pytest
from pyomo.core.expr.visitor import identify_variables

from conftest import abs_value_function, make_problem
from sddp_stage import (
    ConfigurationError,
    CostModel,
    Cut,
    DimensionMismatch,
    PolyhedralFunction,
    SDDPParameters,
    UnsupportedCostModel,
)
from sddp_stage.stage.builder import add_cut, build_stage_model, resolve_cost_pieces

INF = 1e20


def test_rebuild_model_structure():
    params = SDDPParameters(update_mode="rebuild")
    m = build_stage_model(make_problem(), params, 0, abs_value_function())

    assert len(m.x) == len(m.xf) == 1
    assert len(m.u) == 1
    assert m.x[0].bounds == (-10.0, 10.0)
    assert m.u[0].bounds == (-5.0, 5.0)
    assert m.w[0].fixed and pyo.value(m.w[0]) == 0.0
    assert m.alpha.lb == 0.0
    assert len(m.dynamics) == 1
    assert len(m.cost_pieces) == 5
    assert len(m.cuts) == 2
    # state fixing is left free until a state is targeted
    assert pyo.value(m.state_lo[0]) == -INF
    assert pyo.value(m.state_hi[0]) == INF
    assert not hasattr(m, "dyn_slot")


def test_linear_cost_has_no_auxiliary_variable():
    problem = make_problem(cost_model="linear", cost_functions=lambda t, x, u, w: 2 * u[0])
    m = build_stage_model(problem, SDDPParameters(), 0, PolyhedralFunction(dim=1))
    assert not hasattr(m, "cost")
    assert len(m.cuts) == 0


def test_slot_reuse_model_structure():
    params = SDDPParameters(update_mode="slot_reuse")
    problem = make_problem(
        equality_constraints=lambda t, x, u, w: [u[0] + w[0] + 3],
        inequality_constraints=lambda t, x, u, w: [u[0] - 0.25, -u[0] - 4],
    )
    m = build_stage_model(problem, params, 1, abs_value_function())

    assert list(m.N) == [0, 1]
    assert len(m.dyn_slot) == 2
    assert len(m.eq_slot) == 2
    assert len(m.ineq_slot) == 4
    assert len(m.cost_slot) == 2 * 5
    assert not hasattr(m, "dynamics")
    for k in m.N:
        assert pyo.value(m.dyn_lo[k, 0]) == -INF
        assert pyo.value(m.dyn_hi[k, 0]) == INF
        assert pyo.value(m.eq_lo[k, 0]) == -INF
        assert pyo.value(m.eq_hi[k, 0]) == INF
        assert all(pyo.value(m.ineq_hi[k, j]) == INF for j in m.INEQ)
        assert all(pyo.value(m.cost_lo[k, p]) == -INF for p in m.PIECES)


def test_slot_reuse_requires_noise_law():
    problem = make_problem(noise_laws=None)
    with pytest.raises(ConfigurationError):
        build_stage_model(problem, SDDPParameters(update_mode="slot_reuse"), 0, PolyhedralFunction(dim=1))


def test_sentinel_is_configurable():
    params = SDDPParameters(update_mode="slot_reuse", infinity=1e7)
    m = build_stage_model(make_problem(), params, 0, PolyhedralFunction(dim=1))
    assert pyo.value(m.dyn_hi[0, 0]) == 1e7
    assert pyo.value(m.state_lo[0]) == -1e7


def test_unsupported_cost_model_fails_at_build():
    problem = make_problem(cost_model="quadratic")
    with pytest.raises(UnsupportedCostModel):
        build_stage_model(problem, SDDPParameters(), 0, PolyhedralFunction(dim=1))


def test_cost_functions_must_match_variant():
    with pytest.raises(UnsupportedCostModel):
        resolve_cost_pieces(make_problem(cost_model=CostModel.LINEAR))
    with pytest.raises(UnsupportedCostModel):
        resolve_cost_pieces(make_problem(cost_functions=[]))
    model, pieces = resolve_cost_pieces(make_problem())
    assert model is CostModel.PIECEWISE_LINEAR
    assert len(pieces) == 5


def test_dynamics_dimension_checked():
    problem = make_problem(dynamics=lambda t, x, u, w: [x[0] + u[0], x[0]])
    with pytest.raises(DimensionMismatch):
        build_stage_model(problem, SDDPParameters(), 0, PolyhedralFunction(dim=1))
    with pytest.raises(DimensionMismatch):
        build_stage_model(make_problem(), SDDPParameters(), 0, PolyhedralFunction(dim=2))


def test_add_cut_appends_row():
    params = SDDPParameters()
    m = build_stage_model(make_problem(), params, 0, PolyhedralFunction(dim=1))
    add_cut(m, Cut((0.5,), 1.0), params)
    assert len(m.cuts) == 1
    with pytest.raises(DimensionMismatch):
        add_cut(m, Cut((0.5, 1.0), 1.0), params)


def test_cut_variable_selects_state_or_next_state():
    V = PolyhedralFunction(dim=1)
    V.add_cut([3.0], 1.0)
    for cut_variable, var_name in (("next_state", "xf"), ("state", "x")):
        m = build_stage_model(make_problem(), SDDPParameters(cut_variable=cut_variable), 0, V)
        con = next(iter(m.cuts.values()))
        names = {v.parent_component().name for v in identify_variables(con.body)}
        assert var_name in names
