"""sddp_stage

The per-stage Bellman solver of a Stochastic Dual Dynamic Programming
(SDDP) algorithm, built on Pyomo. The package provides:

- A declaration of the stochastic problem (dynamics, costs, constraints, noise laws)
- A polyhedral (cut-based) approximation of the future value function
- A stage model builder and an in-place update protocol for state and noise
- A stage solver returning the optimal step or an explicit infeasible outcome

The forward/backward SDDP loop, cut management and stopping rules are left
to the caller.
"""

from .config import SDDPParameters, load_config
from .exceptions import (
    ConfigurationError,
    DimensionMismatch,
    NoiseNotInSupport,
    SDDPError,
    SolverError,
    UnsupportedCostModel,
)
from .stage import (
    CostModel,
    Cut,
    InfeasibleStage,
    NextStep,
    NoiseLaw,
    PolyhedralFunction,
    StageSolver,
    StochasticProblem,
    UpdateMode,
    solve_one_step_one_alea,
)

__all__ = [
    "__version__",
    "SDDPParameters",
    "load_config",
    "SDDPError",
    "UnsupportedCostModel",
    "DimensionMismatch",
    "SolverError",
    "NoiseNotInSupport",
    "ConfigurationError",
    "CostModel",
    "Cut",
    "InfeasibleStage",
    "NextStep",
    "NoiseLaw",
    "PolyhedralFunction",
    "StageSolver",
    "StochasticProblem",
    "UpdateMode",
    "solve_one_step_one_alea",
]

__version__ = "0.1.0"
