from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .types import Cut, as_vector


@dataclass(slots=True)
class PolyhedralFunction:
    """Outer approximation of a value function as the maximum of its cuts.

    Cuts are only ever appended; stage models built against this object
    sync the new tail before each solve.
    """

    dim: int
    cuts: list[Cut] = field(default_factory=list)

    def add_cut(self, lambdas: Sequence[float] | Cut, beta: float | None = None) -> Cut:
        if isinstance(lambdas, Cut):
            cut = Cut(as_vector(lambdas.lambdas, self.dim, "cut lambdas"), float(lambdas.beta))
        else:
            if beta is None:
                raise TypeError("beta is required when lambdas is not a Cut")
            cut = Cut(as_vector(lambdas, self.dim, "cut lambdas"), float(beta))
        self.cuts.append(cut)
        return cut

    @property
    def num_cuts(self) -> int:
        return len(self.cuts)

    @property
    def lambdas(self) -> list[tuple[float, ...]]:
        return [c.lambdas for c in self.cuts]

    @property
    def betas(self) -> list[float]:
        return [c.beta for c in self.cuts]

    def evaluate(self, x: Sequence[float]) -> float:
        """max_i beta_i + lambda_i . x, or -inf without cuts."""
        xv = as_vector(x, self.dim, "state")
        return max((c.evaluate(xv) for c in self.cuts), default=float("-inf"))


__all__ = ["PolyhedralFunction"]
