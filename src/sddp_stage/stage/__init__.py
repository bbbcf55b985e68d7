from .types import (
    Cut,
    CostModel,
    InfeasibleStage,
    NextStep,
    NoiseLaw,
    SolveStatus,
    StageOutcome,
    StagePhase,
)
from ..config import UpdateMode
from .problem import StochasticProblem
from .value_function import PolyhedralFunction
from .builder import add_cut, build_stage_model
from .cache import ConstraintCache
from .backend import BackendResult, PyomoBackend
from .solver import StageModel, StageSolver, solve_one_step_one_alea

__all__ = [
    "Cut",
    "CostModel",
    "InfeasibleStage",
    "NextStep",
    "NoiseLaw",
    "SolveStatus",
    "StageOutcome",
    "StagePhase",
    "UpdateMode",
    "StochasticProblem",
    "PolyhedralFunction",
    "add_cut",
    "build_stage_model",
    "ConstraintCache",
    "BackendResult",
    "PyomoBackend",
    "StageModel",
    "StageSolver",
    "solve_one_step_one_alea",
]
