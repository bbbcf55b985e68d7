from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import pyomo.environ as pyo

from ..config import SDDPParameters, UpdateMode
from ..exceptions import NoiseNotInSupport, SolverError
from .backend import Backend, BackendResult, PyomoBackend
from .builder import add_cut, build_stage_model
from .cache import ConstraintCache
from .problem import StochasticProblem
from .types import (
    InfeasibleStage,
    NextStep,
    SolveStatus,
    StageOutcome,
    StagePhase,
    Vector,
    as_vector,
)
from .value_function import PolyhedralFunction

log = logging.getLogger(__name__)


BackendFactory = Callable[[SDDPParameters], Backend]


@dataclass(eq=False)
class StageModel:
    """A built stage model with everything needed to re-solve it in place."""

    stage: int
    model: pyo.ConcreteModel
    cache: ConstraintCache
    backend: Backend
    value_function: PolyhedralFunction
    n_cuts: int
    phase: StagePhase = StagePhase.READY
    solves: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def set_phase(self, phase: StagePhase) -> None:
        log.debug("stage %d: %s -> %s", self.stage, self.phase.value, phase.value)
        self.phase = phase


class StageSolver:
    """Solve the Bellman equation of one stage for given (state, noise).

    min_u cost(t, x, u, w) + V_{t+1}(dynamics(t, x, u, w))  s.t. x == xt, w == xi

    One model per stage is built on first use and then retargeted in place:
    cuts appended to the value function are synced before each solve, and the
    state/noise are written into the `ConstraintCache`. Solves on the same
    stage model are serialized by its lock; use one StageSolver per worker
    for parallel solves.
    """

    def __init__(
        self,
        problem: StochasticProblem,
        params: SDDPParameters | None = None,
        backend_factory: BackendFactory | None = None,
    ):
        self.problem = problem
        self.params = params or SDDPParameters()
        self._backend_factory: BackendFactory = backend_factory or PyomoBackend
        self._models: dict[int, StageModel] = {}
        self._models_lock = threading.Lock()
        self.model_builds = 0

    @property
    def update_mode(self) -> UpdateMode:
        return self.params.update_mode  # type: ignore[return-value]

    def stage_model(self, stage: int, value_function: PolyhedralFunction) -> StageModel:
        """Cached model of `stage`, rebuilt when the value function is replaced or shrinks."""
        with self._models_lock:
            sm = self._models.get(stage)
            if sm is None or sm.value_function is not value_function or value_function.num_cuts < sm.n_cuts:
                sm = self._build(stage, value_function)
                self._models[stage] = sm
            return sm

    def _build(self, stage: int, value_function: PolyhedralFunction) -> StageModel:
        m = build_stage_model(self.problem, self.params, stage, value_function)
        cache = ConstraintCache(m, self.params.infinity, self.update_mode)
        self.model_builds += 1
        return StageModel(
            stage=stage,
            model=m,
            cache=cache,
            backend=self._backend_factory(self.params),
            value_function=value_function,
            n_cuts=value_function.num_cuts,
        )

    def _sync_cuts(self, sm: StageModel) -> None:
        cuts = sm.value_function.cuts
        if len(cuts) == sm.n_cuts:
            return
        for cut in cuts[sm.n_cuts:]:
            add_cut(sm.model, cut, self.params)
        log.debug("stage %d: synced %d new cut(s), %d total", sm.stage, len(cuts) - sm.n_cuts, len(cuts))
        sm.n_cuts = len(cuts)

    def _noise_index(self, stage: int, xi: Vector, noise_index: Optional[int]) -> int:
        law = self.problem.noise_law(stage)
        if noise_index is None:
            return law.index_of(xi, self.params.noise_tolerance)
        if not 0 <= noise_index < len(law):
            raise NoiseNotInSupport(f"noise index {noise_index} out of range for stage {stage} ({len(law)} values)")
        if law.index_of(xi, self.params.noise_tolerance) != noise_index:
            raise NoiseNotInSupport(f"noise {xi} does not match support value {noise_index} of stage {stage}")
        return noise_index

    def solve(
        self,
        stage: int,
        state: Sequence[float],
        noise: Sequence[float],
        value_function: PolyhedralFunction,
        noise_index: Optional[int] = None,
    ) -> StageOutcome:
        """Solve stage `stage` at `state` under `noise`.

        Returns a `NextStep` on optimal termination and an `InfeasibleStage`
        when the stage problem has no solution. Raises `SolverError` for
        any other termination (time limit, numerical failure, ...).
        """
        xt = as_vector(state, self.problem.dim_states, "state")
        xi = as_vector(noise, self.problem.dim_noises, "noise")
        k: Optional[int] = None
        if self.update_mode is UpdateMode.SLOT_REUSE:
            k = self._noise_index(stage, xi, noise_index)

        sm = self.stage_model(stage, value_function)
        with sm.lock:
            self._sync_cuts(sm)
            sm.cache.target_state(xt)
            if k is None:
                sm.cache.fix_noise(xi)
            else:
                sm.cache.activate(k)
            try:
                sm.set_phase(StagePhase.READY)
                sm.set_phase(StagePhase.SOLVING)
                result = sm.backend.solve(sm.model)
                sm.solves += 1
                return self._package(sm, result, xt, xi)
            finally:
                if k is not None:
                    sm.cache.deactivate(k)

    def _package(self, sm: StageModel, result: BackendResult, xt: Vector, xi: Vector) -> StageOutcome:
        if result.status is SolveStatus.INFEASIBLE:
            sm.set_phase(StagePhase.SOLVED_INFEASIBLE)
            log.warning(
                "stage %d infeasible at state=%s noise=%s (%s)", sm.stage, xt, xi, result.termination
            )
            return InfeasibleStage(stage=sm.stage, state=xt, noise=xi, termination=result.termination)
        if result.status is not SolveStatus.OPTIMAL:
            sm.set_phase(StagePhase.SOLVED_INFEASIBLE)
            raise SolverError(
                f"stage {sm.stage} solve ended with {result.termination} at state={xt} noise={xi}",
                termination=result.termination,
            )

        m = sm.model
        duals = []
        for con in sm.cache.state_constraints():
            d = m.dual.get(con)
            if d is None:
                raise SolverError(
                    f"{self.params.solver} returned no dual for {con.name}", termination=result.termination
                )
            duals.append(float(d))
        step = NextStep(
            next_state=tuple(float(pyo.value(m.xf[i])) for i in m.X),
            control=tuple(float(pyo.value(m.u[j])) for j in m.U),
            dual_state=tuple(duals),
            objective_value=float(pyo.value(m.obj)),
            future_cost_estimate=float(pyo.value(m.alpha)),
        )
        sm.set_phase(StagePhase.SOLVED_OPTIMAL)
        return step

    def solve_scenarios(
        self,
        stage: int,
        state: Sequence[float],
        value_function: PolyhedralFunction,
    ) -> list[StageOutcome]:
        """Solve `stage` at `state` for every value of its noise support, in support order."""
        law = self.problem.noise_law(stage)
        return [
            self.solve(stage, state, xi, value_function, noise_index=k) for k, xi in enumerate(law.support)
        ]


def solve_one_step_one_alea(
    problem: StochasticProblem,
    params: SDDPParameters,
    value_function: PolyhedralFunction,
    stage: int,
    state: Sequence[float],
    noise: Sequence[float],
    backend_factory: BackendFactory | None = None,
) -> StageOutcome:
    """Build a fresh model for `stage`, fix the noise and solve once."""
    fresh = dataclasses.replace(params, update_mode=UpdateMode.REBUILD)
    return StageSolver(problem, fresh, backend_factory).solve(stage, state, noise, value_function)


__all__ = ["BackendFactory", "StageModel", "StageSolver", "solve_one_step_one_alea"]
