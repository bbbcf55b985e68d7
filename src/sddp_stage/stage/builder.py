from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

import pyomo.environ as pyo

from ..config import SDDPParameters, UpdateMode
from ..exceptions import ConfigurationError, DimensionMismatch, UnsupportedCostModel
from .problem import StageFunction, StochasticProblem
from .types import CostModel, Cut
from .value_function import PolyhedralFunction

log = logging.getLogger(__name__)


def _as_rows(value: Any) -> list[Any]:
    try:
        return list(value)
    except TypeError:
        return [value]


def _rows(fn: StageFunction | None, stage: int, x, u, w) -> list[Any]:
    if fn is None:
        return []
    return _as_rows(fn(stage, x, u, w))


# --- Cost-model strategies: each returns the affine pieces of the stage cost ---

def _linear_pieces(cost_functions: Any) -> list[StageFunction]:
    if not callable(cost_functions):
        raise UnsupportedCostModel(f"{CostModel.LINEAR.value} expects a single callable, got {type(cost_functions).__name__}")
    return [cost_functions]


def _piecewise_pieces(cost_functions: Any) -> list[StageFunction]:
    if callable(cost_functions):
        pieces = [cost_functions]
    else:
        pieces = list(cost_functions)
    if not pieces or not all(callable(f) for f in pieces):
        raise UnsupportedCostModel(f"{CostModel.PIECEWISE_LINEAR.value} expects a non-empty list of callables")
    return pieces


_COST_STRATEGIES: dict[CostModel, Callable[[Any], list[StageFunction]]] = {
    CostModel.LINEAR: _linear_pieces,
    CostModel.PIECEWISE_LINEAR: _piecewise_pieces,
}


def resolve_cost_pieces(problem: StochasticProblem) -> tuple[CostModel, list[StageFunction]]:
    """Select the cost strategy once; unknown variants never fall back to a default."""
    cost_model = CostModel.parse(problem.cost_model)
    strategy = _COST_STRATEGIES.get(cost_model)
    if strategy is None:
        raise UnsupportedCostModel(cost_model)
    return cost_model, strategy(problem.cost_functions)


def _cut_target(m: pyo.ConcreteModel, params: SDDPParameters):
    return m.xf if params.cut_variable == "next_state" else m.x


def add_cut(m: pyo.ConcreteModel, cut: Cut, params: SDDPParameters) -> None:
    """
    alpha >= beta + sum_i lambda_i * xf_i   (x_i when cut_variable == "state")
    """
    target = _cut_target(m, params)
    if cut.dim != len(target):
        raise DimensionMismatch("cut lambdas", len(target), cut.dim)
    m.cuts.add(float(cut.beta) + sum(float(l) * target[i] for i, l in enumerate(cut.lambdas)) <= m.alpha)


def build_stage_model(
    problem: StochasticProblem,
    params: SDDPParameters,
    stage: int,
    value_function: PolyhedralFunction,
) -> pyo.ConcreteModel:
    """Build the one-step one-noise LP of `stage` against `value_function`.

    Mutable parts (state fixing RHS, noise values or per-noise slots) are
    left at their sentinels; see `ConstraintCache`.
    """
    cost_model, pieces = resolve_cost_pieces(problem)
    mode = params.update_mode
    inf = float(params.infinity)
    nx, nu, nw = problem.dim_states, problem.dim_controls, problem.dim_noises
    if value_function.dim != nx:
        raise DimensionMismatch("value function", nx, value_function.dim)

    m = pyo.ConcreteModel(name=f"stage{stage}")
    m.X = pyo.Set(initialize=range(nx), ordered=True)
    m.U = pyo.Set(initialize=range(nu), ordered=True)
    m.W = pyo.Set(initialize=range(nw), ordered=True)

    m.x = pyo.Var(m.X, bounds=lambda m, i: problem.x_bounds[i])
    m.u = pyo.Var(m.U, bounds=lambda m, j: problem.u_bounds[j])
    m.xf = pyo.Var(m.X, bounds=lambda m, i: problem.x_bounds[i])
    m.w = pyo.Var(m.W, initialize=0.0)
    for k in m.W:
        m.w[k].fix(0.0)
    m.alpha = pyo.Var(bounds=(float(params.alpha_lower_bound), None))

    # State fixing x == xt, encoded as a range whose bounds are set per solve
    m.state_lo = pyo.Param(m.X, mutable=True, initialize=-inf)
    m.state_hi = pyo.Param(m.X, mutable=True, initialize=inf)
    m.state_fix = pyo.Constraint(m.X, rule=lambda m, i: pyo.inequality(m.state_lo[i], m.x[i], m.state_hi[i]))

    x = [m.x[i] for i in m.X]
    u = [m.u[j] for j in m.U]

    if mode is UpdateMode.SLOT_REUSE:
        _add_noise_slots(m, problem, stage, pieces, x, u, inf)
        objective = m.cost + m.alpha
    else:
        w = [m.w[k] for k in m.W]
        dyn = _rows(problem.dynamics, stage, x, u, w)
        if len(dyn) != nx:
            raise DimensionMismatch("dynamics", nx, len(dyn))
        m.dynamics = pyo.Constraint(m.X, rule=lambda m, i: m.xf[i] == dyn[i])
        m.equalities = pyo.ConstraintList()
        for row in _rows(problem.equality_constraints, stage, x, u, w):
            m.equalities.add(row == 0)
        m.inequalities = pyo.ConstraintList()
        for row in _rows(problem.inequality_constraints, stage, x, u, w):
            m.inequalities.add(row <= 0)
        if cost_model is CostModel.LINEAR:
            objective = pieces[0](stage, x, u, w) + m.alpha
        else:
            m.cost = pyo.Var()
            m.cost_pieces = pyo.ConstraintList()
            for f in pieces:
                m.cost_pieces.add(m.cost >= f(stage, x, u, w))
            objective = m.cost + m.alpha

    m.obj = pyo.Objective(expr=objective, sense=pyo.minimize)

    m.cuts = pyo.ConstraintList()
    for cut in value_function.cuts:
        add_cut(m, cut, params)

    m.dual = pyo.Suffix(direction=pyo.Suffix.IMPORT)

    log.debug(
        "built stage %d model: mode=%s cost=%s cuts=%d",
        stage, mode.value, cost_model.value, value_function.num_cuts,
    )
    return m


def _add_noise_slots(
    m: pyo.ConcreteModel,
    problem: StochasticProblem,
    stage: int,
    pieces: Sequence[StageFunction],
    x: list[Any],
    u: list[Any],
    inf: float,
) -> None:
    """Pre-allocate every per-noise row of the stage, all pinned to the sentinels.

    Slot k substitutes support value k for the noise and holds
      lo <= xf - dynamics <= hi          per state dim
      lo <= equality <= hi               per equality row
      inequality <= hi                   per inequality row
      cost - piece >= lo                 per cost piece
    """
    law = problem.noise_law(stage)
    support = [list(xi) for xi in law.support]
    dyn = [_rows(problem.dynamics, stage, x, u, wk) for wk in support]
    eqs = [_rows(problem.equality_constraints, stage, x, u, wk) for wk in support]
    ineqs = [_rows(problem.inequality_constraints, stage, x, u, wk) for wk in support]
    costs = [[f(stage, x, u, wk) for f in pieces] for wk in support]
    for k, rows in enumerate(dyn):
        if len(rows) != problem.dim_states:
            raise DimensionMismatch(f"dynamics for noise index {k}", problem.dim_states, len(rows))
    n_eq, n_ineq = len(eqs[0]), len(ineqs[0])
    if any(len(r) != n_eq for r in eqs) or any(len(r) != n_ineq for r in ineqs):
        raise ConfigurationError(f"stage {stage} business constraints change row count across noise values")

    m.N = pyo.Set(initialize=range(len(support)), ordered=True)
    m.EQ = pyo.Set(initialize=range(n_eq), ordered=True)
    m.INEQ = pyo.Set(initialize=range(n_ineq), ordered=True)
    m.PIECES = pyo.Set(initialize=range(len(pieces)), ordered=True)

    m.dyn_lo = pyo.Param(m.N, m.X, mutable=True, initialize=-inf)
    m.dyn_hi = pyo.Param(m.N, m.X, mutable=True, initialize=inf)
    m.eq_lo = pyo.Param(m.N, m.EQ, mutable=True, initialize=-inf)
    m.eq_hi = pyo.Param(m.N, m.EQ, mutable=True, initialize=inf)
    m.ineq_hi = pyo.Param(m.N, m.INEQ, mutable=True, initialize=inf)
    m.cost_lo = pyo.Param(m.N, m.PIECES, mutable=True, initialize=-inf)

    m.cost = pyo.Var()
    m.dyn_slot = pyo.Constraint(
        m.N, m.X, rule=lambda m, k, i: pyo.inequality(m.dyn_lo[k, i], m.xf[i] - dyn[k][i], m.dyn_hi[k, i])
    )
    m.eq_slot = pyo.Constraint(
        m.N, m.EQ, rule=lambda m, k, j: pyo.inequality(m.eq_lo[k, j], eqs[k][j], m.eq_hi[k, j])
    )
    m.ineq_slot = pyo.Constraint(m.N, m.INEQ, rule=lambda m, k, j: ineqs[k][j] <= m.ineq_hi[k, j])
    m.cost_slot = pyo.Constraint(m.N, m.PIECES, rule=lambda m, k, p: m.cost - costs[k][p] >= m.cost_lo[k, p])


__all__ = ["resolve_cost_pieces", "add_cut", "build_stage_model"]
