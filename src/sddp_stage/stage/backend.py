from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import pyomo.environ as pyo
from pyomo.common.errors import ApplicationError

from ..config import SDDPParameters
from ..exceptions import SolverError
from .types import SolveStatus

log = logging.getLogger(__name__)


_STATUS_BY_TERMINATION = {
    pyo.TerminationCondition.optimal: SolveStatus.OPTIMAL,
    pyo.TerminationCondition.feasible: SolveStatus.FEASIBLE,
    pyo.TerminationCondition.maxTimeLimit: SolveStatus.FEASIBLE,
    pyo.TerminationCondition.infeasible: SolveStatus.INFEASIBLE,
    pyo.TerminationCondition.infeasibleOrUnbounded: SolveStatus.INFEASIBLE,
    pyo.TerminationCondition.unbounded: SolveStatus.UNBOUNDED,
}


@dataclass(slots=True)
class BackendResult:
    status: SolveStatus
    termination: str
    wall_time_s: float = 0.0


class Backend(Protocol):
    def solve(self, model: Any) -> BackendResult:
        ...


class PyomoBackend:
    """One Pyomo solver object bound to one stage model.

    Solutions are only loaded into the model on optimal termination, so the
    model never carries values from a failed solve.
    """

    def __init__(self, params: SDDPParameters):
        self.params = params
        self._solver = pyo.SolverFactory(params.solver)
        # Explicit path to the solver binary, for executable-based solvers
        if params.solver_executable:
            self._solver.set_executable(params.solver_executable, validate=False)
        for k, v in (params.solver_options or {}).items():
            self._solver.options[k] = v

    def available(self) -> bool:
        return bool(self._solver.available(exception_flag=False))

    def solve(self, model: pyo.ConcreteModel) -> BackendResult:
        kwargs: dict[str, Any] = {"tee": bool(self.params.tee), "load_solutions": False}
        if self.params.time_limit_s is not None:
            kwargs["timelimit"] = float(self.params.time_limit_s)
        t0 = time.time()
        try:
            results = self._solver.solve(model, **kwargs)
        except ApplicationError as exc:
            raise SolverError(f"{self.params.solver} failed on {model.name}: {exc}", termination="error") from exc
        elapsed = time.time() - t0

        term = getattr(results.solver, "termination_condition", None)
        status = _STATUS_BY_TERMINATION.get(term, SolveStatus.UNKNOWN)
        if status is SolveStatus.OPTIMAL:
            model.solutions.load_from(results)
        log.debug("%s on %s: %s (%.3fs)", self.params.solver, model.name, term, elapsed)
        return BackendResult(status=status, termination=str(term), wall_time_s=elapsed)


__all__ = ["BackendResult", "Backend", "PyomoBackend"]
