from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from ..exceptions import ConfigurationError, DimensionMismatch, NoiseNotInSupport, UnsupportedCostModel


Vector = tuple[float, ...]


class SolveStatus(str, Enum):
    OPTIMAL = "OPTIMAL"
    FEASIBLE = "FEASIBLE"
    INFEASIBLE = "INFEASIBLE"
    UNBOUNDED = "UNBOUNDED"
    UNKNOWN = "UNKNOWN"


class CostModel(str, Enum):
    """How the stage cost enters the objective."""

    LINEAR = "LINEAR"  # a single cost function
    PIECEWISE_LINEAR = "PIECEWISE_LINEAR"  # max over a list of affine pieces

    @classmethod
    def parse(cls, value: Any) -> "CostModel":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise UnsupportedCostModel(value)


class StagePhase(str, Enum):
    READY = "READY"
    SOLVING = "SOLVING"
    SOLVED_OPTIMAL = "SOLVED_OPTIMAL"
    SOLVED_INFEASIBLE = "SOLVED_INFEASIBLE"


def as_vector(values: Sequence[float], dim: int, what: str) -> Vector:
    vec = tuple(float(v) for v in values)
    if len(vec) != dim:
        raise DimensionMismatch(what, dim, len(vec))
    return vec


@dataclass(frozen=True, slots=True)
class Cut:
    """Affine minorant of a value function.

    Represents: beta + sum_i lambdas[i] * x_i <= V(x)
    """

    lambdas: Vector
    beta: float

    @property
    def dim(self) -> int:
        return len(self.lambdas)

    def evaluate(self, x: Sequence[float]) -> float:
        return self.beta + sum(l * float(v) for l, v in zip(self.lambdas, x))

    @classmethod
    def from_step(cls, state: Sequence[float], step: "NextStep") -> "Cut":
        """Supporting hyperplane of the stage value at `state`.

        With dual = d(objective)/d(state), the cut is
        objective + dual . (x - state), i.e. lambdas = dual and
        beta = objective - dual . state.
        """
        xt = as_vector(state, len(step.dual_state), "state")
        beta = step.objective_value - sum(d * v for d, v in zip(step.dual_state, xt))
        return cls(lambdas=tuple(step.dual_state), beta=float(beta))


@dataclass(frozen=True, slots=True)
class NextStep:
    """Solution of one Bellman step. Only built from an optimal solve."""

    next_state: Vector
    control: Vector
    dual_state: Vector
    objective_value: float
    future_cost_estimate: float

    @property
    def is_feasible(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class InfeasibleStage:
    """The stage problem has no solution for this (state, noise)."""

    stage: int
    state: Vector
    noise: Vector
    termination: str = "infeasible"

    @property
    def is_feasible(self) -> bool:
        return False


StageOutcome = NextStep | InfeasibleStage


@dataclass(frozen=True, slots=True)
class NoiseLaw:
    """Finite distribution of the noise at one stage.

    The position of a value in `support` is its discrete noise index.
    """

    support: tuple[Vector, ...]
    probabilities: tuple[float, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.support:
            raise ConfigurationError("noise support must not be empty")
        dims = {len(xi) for xi in self.support}
        if len(dims) != 1:
            raise ConfigurationError(f"noise support mixes dimensions {sorted(dims)}")
        if len(self.probabilities) != len(self.support):
            raise ConfigurationError(
                f"{len(self.probabilities)} probabilities for {len(self.support)} noise values"
            )
        if any(p < 0 for p in self.probabilities):
            raise ConfigurationError("noise probabilities must be non-negative")
        if abs(sum(self.probabilities) - 1.0) > 1e-8:
            raise ConfigurationError(f"noise probabilities sum to {sum(self.probabilities)}, expected 1")

    @classmethod
    def from_values(
        cls, support: Sequence[Sequence[float] | float], probabilities: Sequence[float] | None = None
    ) -> "NoiseLaw":
        """Build a law; scalars are promoted to 1-d vectors, probabilities default to uniform."""
        vecs = tuple(
            (float(xi),) if isinstance(xi, (int, float)) else tuple(float(v) for v in xi) for xi in support
        )
        if probabilities is None:
            n = len(vecs)
            probs = tuple(1.0 / n for _ in vecs) if n else ()
        else:
            probs = tuple(float(p) for p in probabilities)
        return cls(support=vecs, probabilities=probs)

    @property
    def dim(self) -> int:
        return len(self.support[0])

    def __len__(self) -> int:
        return len(self.support)

    def index_of(self, noise: Sequence[float], tol: float) -> int:
        """Discrete index of `noise`, matched component-wise within `tol`."""
        xi = as_vector(noise, self.dim, "noise")
        for k, candidate in enumerate(self.support):
            if all(math.isclose(a, b, rel_tol=0.0, abs_tol=tol) for a, b in zip(candidate, xi)):
                return k
        raise NoiseNotInSupport(f"noise {xi} is not in the stage support {self.support}")


__all__ = [
    "Vector",
    "SolveStatus",
    "CostModel",
    "StagePhase",
    "as_vector",
    "Cut",
    "NextStep",
    "InfeasibleStage",
    "StageOutcome",
    "NoiseLaw",
]
