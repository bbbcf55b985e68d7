from __future__ import annotations

from typing import Any, Optional


class SDDPError(Exception):
    """Base exception for all stage-solver errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnsupportedCostModel(SDDPError):
    """Raised at build time when the cost-model variant is not recognized."""

    def __init__(self, cost_model: Any) -> None:
        self.cost_model = cost_model
        super().__init__(f"Unsupported cost model: {cost_model!r}")


class DimensionMismatch(SDDPError, ValueError):
    """A state, noise or cut vector does not match the declared dimension."""

    def __init__(self, what: str, expected: int, got: int) -> None:
        self.what = what
        self.expected = expected
        self.got = got
        super().__init__(f"{what} has dimension {got}, expected {expected}")


class SolverError(SDDPError):
    """
    The backend terminated with neither an optimal nor an infeasible status.

    Covers time limits, numerical trouble, unboundedness and backend
    failures. Callers may retry, e.g. with a perturbed state.
    """

    def __init__(self, message: str, termination: Optional[str] = None) -> None:
        self.termination = termination
        super().__init__(message)


class NoiseNotInSupport(SDDPError, ValueError):
    """A noise value has no matching slot in the stage's noise support."""


class ConfigurationError(SDDPError, ValueError):
    """Invalid parameters or problem declaration."""


__all__ = [
    "SDDPError",
    "UnsupportedCostModel",
    "DimensionMismatch",
    "SolverError",
    "NoiseNotInSupport",
    "ConfigurationError",
]
