import pyomo.environ as pyo
import pytest

from conftest import make_problem
from sddp_stage import NoiseNotInSupport, PolyhedralFunction, SDDPParameters, UpdateMode
from sddp_stage.stage.builder import build_stage_model
from sddp_stage.stage.cache import ConstraintCache

INF = 1e20


def _cache(mode: str):
    params = SDDPParameters(update_mode=mode)
    problem = make_problem(
        equality_constraints=lambda t, x, u, w: [u[0] + w[0] + 3],
        inequality_constraints=lambda t, x, u, w: [u[0] - 0.25],
    )
    m = build_stage_model(problem, params, 0, PolyhedralFunction(dim=1))
    return ConstraintCache(m, params.infinity, params.update_mode)


def test_target_state_sets_matching_bounds():
    cache = _cache("rebuild")
    cache.target_state([2.5])
    lo, hi = cache.state_slots[0]
    assert pyo.value(lo) == pyo.value(hi) == 2.5
    assert [c.name for c in cache.state_constraints()] == ["state_fix[0]"]


def test_fix_noise_rebuild_mode():
    cache = _cache("rebuild")
    cache.fix_noise([5.0])
    assert cache.model.w[0].fixed
    assert pyo.value(cache.model.w[0]) == 5.0
    with pytest.raises(RuntimeError):
        cache.activate(0)


def test_activate_and_deactivate_slot():
    cache = _cache("slot_reuse")
    m = cache.model
    assert cache.mode is UpdateMode.SLOT_REUSE
    assert cache.num_noise_slots == 2
    assert cache.live_index is None
    assert cache.is_pinned(0) and cache.is_pinned(1)

    cache.activate(1)
    assert cache.live_index == 1
    assert pyo.value(m.dyn_lo[1, 0]) == pyo.value(m.dyn_hi[1, 0]) == 0.0
    assert pyo.value(m.eq_lo[1, 0]) == pyo.value(m.eq_hi[1, 0]) == 0.0
    assert pyo.value(m.ineq_hi[1, 0]) == 0.0
    assert all(pyo.value(m.cost_lo[1, p]) == 0.0 for p in m.PIECES)
    # the other slot never binds
    assert cache.is_pinned(0)

    cache.deactivate(1)
    assert cache.live_index is None
    assert cache.is_pinned(1)
    assert pyo.value(m.dyn_lo[1, 0]) == -INF
    assert pyo.value(m.ineq_hi[1, 0]) == INF


def test_only_one_slot_live():
    cache = _cache("slot_reuse")
    cache.activate(0)
    with pytest.raises(RuntimeError):
        cache.activate(1)
    cache.deactivate()
    cache.activate(1)
    assert cache.live_index == 1
    assert cache.is_pinned(0)


def test_deactivate_without_live_slot_is_noop():
    cache = _cache("slot_reuse")
    cache.deactivate()
    assert cache.live_index is None


def test_slot_index_out_of_range():
    cache = _cache("slot_reuse")
    with pytest.raises(NoiseNotInSupport):
        cache.activate(2)
    with pytest.raises(NoiseNotInSupport):
        cache.activate(-1)
