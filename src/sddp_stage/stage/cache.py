from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import pyomo.environ as pyo

from ..exceptions import NoiseNotInSupport
from ..config import UpdateMode
from .types import as_vector

log = logging.getLogger(__name__)


@dataclass(slots=True)
class NoiseSlot:
    """Mutable RHS handles of one noise index (slot-reuse mode)."""

    dyn_lo: list[Any] = field(default_factory=list)
    dyn_hi: list[Any] = field(default_factory=list)
    eq_lo: list[Any] = field(default_factory=list)
    eq_hi: list[Any] = field(default_factory=list)
    ineq_hi: list[Any] = field(default_factory=list)
    cost_lo: list[Any] = field(default_factory=list)

    def lower(self) -> list[Any]:
        return self.dyn_lo + self.eq_lo + self.cost_lo

    def upper(self) -> list[Any]:
        return self.dyn_hi + self.eq_hi + self.ineq_hi


class ConstraintCache:
    """Index of the parts of a built stage model that change between solves.

    - `state_slots[i]`: (lower, upper) RHS of the fixing row x_i == xt_i
    - `noise_slots[k]`: every per-noise RHS of noise index k (slot-reuse only)

    In slot-reuse mode at most one noise index is live; every other slot
    holds -infinity / +infinity so it cannot bind.
    """

    def __init__(self, model: pyo.ConcreteModel, infinity: float, mode: UpdateMode):
        self.model = model
        self.infinity = float(infinity)
        self.mode = mode
        self.state_slots: list[tuple[Any, Any]] = [(model.state_lo[i], model.state_hi[i]) for i in model.X]
        self.noise_slots: list[NoiseSlot] = []
        self._live: Optional[int] = None
        if mode is UpdateMode.SLOT_REUSE:
            for k in model.N:
                self.noise_slots.append(
                    NoiseSlot(
                        dyn_lo=[model.dyn_lo[k, i] for i in model.X],
                        dyn_hi=[model.dyn_hi[k, i] for i in model.X],
                        eq_lo=[model.eq_lo[k, j] for j in model.EQ],
                        eq_hi=[model.eq_hi[k, j] for j in model.EQ],
                        ineq_hi=[model.ineq_hi[k, j] for j in model.INEQ],
                        cost_lo=[model.cost_lo[k, p] for p in model.PIECES],
                    )
                )

    @property
    def dim_states(self) -> int:
        return len(self.state_slots)

    @property
    def num_noise_slots(self) -> int:
        return len(self.noise_slots)

    @property
    def live_index(self) -> Optional[int]:
        return self._live

    def state_constraints(self) -> list[Any]:
        return [self.model.state_fix[i] for i in self.model.X]

    def target_state(self, xt: Sequence[float]) -> None:
        vec = as_vector(xt, self.dim_states, "state")
        for (lo, hi), v in zip(self.state_slots, vec):
            lo.set_value(v)
            hi.set_value(v)

    def fix_noise(self, xi: Sequence[float]) -> None:
        w = self.model.w
        vec = as_vector(xi, len(w), "noise")
        for k, v in zip(w, vec):
            w[k].fix(v)

    def activate(self, k: int) -> None:
        """Bind slot k to its true targets (0 for every per-noise row)."""
        self._check_slot(k)
        if self._live is not None:
            raise RuntimeError(f"noise slot {self._live} is still live; deactivate it before activating {k}")
        slot = self.noise_slots[k]
        for p in slot.lower() + slot.upper():
            p.set_value(0.0)
        self._live = k
        log.debug("noise slot %d live", k)

    def deactivate(self, k: Optional[int] = None) -> None:
        """Pin slot k (default: the live one) back to the sentinels."""
        if k is None:
            k = self._live
            if k is None:
                return
        self._check_slot(k)
        slot = self.noise_slots[k]
        for p in slot.lower():
            p.set_value(-self.infinity)
        for p in slot.upper():
            p.set_value(self.infinity)
        if self._live == k:
            self._live = None
        log.debug("noise slot %d pinned", k)

    def is_pinned(self, k: int) -> bool:
        slot = self.noise_slots[k]
        return all(pyo.value(p) <= -self.infinity for p in slot.lower()) and all(
            pyo.value(p) >= self.infinity for p in slot.upper()
        )

    def _check_slot(self, k: int) -> None:
        if self.mode is not UpdateMode.SLOT_REUSE:
            raise RuntimeError("noise slots only exist in slot-reuse mode")
        if not 0 <= k < len(self.noise_slots):
            raise NoiseNotInSupport(f"noise index {k} out of range [0, {len(self.noise_slots)})")


__all__ = ["NoiseSlot", "ConstraintCache"]
