from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .exceptions import ConfigurationError


# Bound/RHS of rows that must never bind. HiGHS treats |bound| >= 1e20 as infinite.
DEFAULT_INFINITY: float = 1e20

CUT_VARIABLES = ("next_state", "state")


class UpdateMode(str, Enum):
    """How a cached stage model is retargeted between solves."""

    REBUILD = "REBUILD"  # fix the noise variables to the realized value
    SLOT_REUSE = "SLOT_REUSE"  # toggle pre-allocated per-noise RHS slots

    @classmethod
    def parse(cls, value: Any) -> "UpdateMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper().replace("-", "_"))
            except ValueError:
                pass
        raise ConfigurationError(f"Unknown update mode: {value!r}")


@dataclass(slots=True)
class SDDPParameters:
    # External solver (Pyomo SolverFactory name)
    solver: str = "appsi_highs"
    solver_executable: Optional[str] = None
    solver_options: dict[str, Any] = field(default_factory=dict)
    time_limit_s: Optional[float] = None
    tee: bool = False
    # Model update protocol between solves
    update_mode: UpdateMode | str = UpdateMode.REBUILD
    infinity: float = DEFAULT_INFINITY
    # Lower bound of the epigraph variable when no cut is active
    alpha_lower_bound: float = 0.0
    # Absolute tolerance to match a noise vector to its support index
    noise_tolerance: float = 1e-9
    # Which model variable the cuts of V_{t+1} are written over
    cut_variable: str = "next_state"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.update_mode = UpdateMode.parse(self.update_mode)
        if not self.infinity > 0:
            raise ConfigurationError(f"infinity sentinel must be positive, got {self.infinity}")
        if self.noise_tolerance < 0:
            raise ConfigurationError(f"noise_tolerance must be non-negative, got {self.noise_tolerance}")
        if self.time_limit_s is not None and self.time_limit_s <= 0:
            raise ConfigurationError(f"time_limit_s must be positive, got {self.time_limit_s}")
        if self.cut_variable not in CUT_VARIABLES:
            raise ConfigurationError(f"cut_variable must be one of {CUT_VARIABLES}, got {self.cut_variable!r}")


def _as_dict(m: Mapping[str, Any] | None) -> dict[str, Any]:
    return dict(m) if m else {}


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("Top-level YAML document must be a mapping")
        return data


def parameters_from_mapping(raw: Mapping[str, Any] | None) -> SDDPParameters:
    """Build parameters from a plain mapping; unknown keys are ignored."""
    d = _as_dict(raw)
    defaults = SDDPParameters()
    time_limit = d.get("time_limit_s", defaults.time_limit_s)
    return SDDPParameters(
        solver=str(d.get("solver", defaults.solver)),
        solver_executable=d.get("solver_executable") or None,
        solver_options=_as_dict(d.get("solver_options")),
        time_limit_s=float(time_limit) if time_limit is not None else None,
        tee=bool(d.get("tee", defaults.tee)),
        update_mode=d.get("update_mode", defaults.update_mode),
        infinity=float(d.get("infinity", defaults.infinity)),
        alpha_lower_bound=float(d.get("alpha_lower_bound", defaults.alpha_lower_bound)),
        noise_tolerance=float(d.get("noise_tolerance", defaults.noise_tolerance)),
        cut_variable=str(d.get("cut_variable", defaults.cut_variable)),
        log_level=str(d.get("log_level", defaults.log_level)),
    )


def load_config(path: str | Path | None) -> SDDPParameters:
    """Load parameters from the `sddp:` section of a YAML file or return defaults.

    The schema is minimal and forgiving; unknown keys are ignored. Only YAML is supported.
    """
    if path is None:
        return SDDPParameters()
    p = Path(path)
    if not p.exists():
        return SDDPParameters()

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError(f"Unsupported config format '{p.suffix}'. Please provide a YAML file.")
    raw = _load_yaml(p)
    return parameters_from_mapping(_as_dict(raw.get("sddp")))


__all__ = ["DEFAULT_INFINITY", "UpdateMode", "SDDPParameters", "parameters_from_mapping", "load_config"]
