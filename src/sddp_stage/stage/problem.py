from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from ..exceptions import ConfigurationError, DimensionMismatch
from .types import CostModel, NoiseLaw


# (stage, x, u, w) -> expression or sequence of expressions. At build time
# x, u and w are lists of Pyomo components (w may hold plain floats).
StageFunction = Callable[[int, Sequence[Any], Sequence[Any], Sequence[Any]], Any]
Bounds = tuple[Optional[float], Optional[float]]


@dataclass(slots=True)
class StochasticProblem:
    """Declaration of a multistage stochastic problem, as seen by one stage solve.

    `cost_functions` is a single callable for `CostModel.LINEAR` and a
    sequence of affine pieces for `CostModel.PIECEWISE_LINEAR`. The cost
    model is only interpreted when a stage model is built.
    """

    dim_states: int
    dim_controls: int
    dim_noises: int
    x_bounds: Sequence[Bounds]
    u_bounds: Sequence[Bounds]
    dynamics: StageFunction
    cost_functions: StageFunction | Sequence[StageFunction]
    cost_model: CostModel | str = CostModel.LINEAR
    equality_constraints: StageFunction | None = None
    inequality_constraints: StageFunction | None = None
    noise_laws: Sequence[NoiseLaw] | None = None

    def __post_init__(self) -> None:
        if self.dim_states < 1 or self.dim_controls < 1 or self.dim_noises < 0:
            raise ConfigurationError(
                f"invalid dimensions: states={self.dim_states} controls={self.dim_controls} noises={self.dim_noises}"
            )
        self.x_bounds = [tuple(b) for b in self.x_bounds]  # type: ignore[misc]
        self.u_bounds = [tuple(b) for b in self.u_bounds]  # type: ignore[misc]
        if len(self.x_bounds) != self.dim_states:
            raise DimensionMismatch("x_bounds", self.dim_states, len(self.x_bounds))
        if len(self.u_bounds) != self.dim_controls:
            raise DimensionMismatch("u_bounds", self.dim_controls, len(self.u_bounds))
        for name, bounds in (("x_bounds", self.x_bounds), ("u_bounds", self.u_bounds)):
            for i, (lo, hi) in enumerate(bounds):
                if lo is not None and hi is not None and float(lo) > float(hi):
                    raise ConfigurationError(f"{name}[{i}] is empty: ({lo}, {hi})")
        if self.noise_laws is not None:
            self.noise_laws = list(self.noise_laws)
            for t, law in enumerate(self.noise_laws):
                if law.dim != self.dim_noises:
                    raise DimensionMismatch(f"noise law of stage {t}", self.dim_noises, law.dim)

    @property
    def num_stages(self) -> Optional[int]:
        return len(self.noise_laws) if self.noise_laws is not None else None

    def noise_law(self, stage: int) -> NoiseLaw:
        if self.noise_laws is None:
            raise ConfigurationError("problem declares no noise laws")
        if not 0 <= stage < len(self.noise_laws):
            raise ConfigurationError(f"no noise law for stage {stage} ({len(self.noise_laws)} declared)")
        return self.noise_laws[stage]


__all__ = ["StageFunction", "Bounds", "StochasticProblem"]
