"""Unit tests for SystemState stage tracking and derived-quantity caching."""

from __future__ import annotations

import numpy as np
import pytest

from odestep.errors import StageNotRealizedError
from odestep.stage import Stage
from odestep.state import SystemState

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _make_realized(n_yerr: int = 1, n_events: int = 2) -> SystemState:
    """Snapshot with every derived quantity cached at Stage.ACCELERATION."""
    state = SystemState([1.0, 2.0], time=0.5, discrete={"mode": "on"})
    state.set_model_sizes(n_yerr=n_yerr, n_events=n_events)
    state.set_yerr(np.full(n_yerr, 0.1))
    state.set_ydot([-1.0, -2.0])
    state.set_events(np.arange(n_events, dtype=float))
    state.mark_realized(Stage.ACCELERATION)
    return state


# -----------------------------------------------------------------------------
# Stage enumeration
# -----------------------------------------------------------------------------


def test_stage_prev_and_next_saturate_at_the_ends() -> None:
    """prev()/next() walk the ladder and stop at EMPTY/REPORT."""
    assert Stage.EMPTY.prev() is Stage.EMPTY
    assert Stage.REPORT.next() is Stage.REPORT
    assert Stage.POSITION.prev() is Stage.TIME
    assert Stage.POSITION.next() is Stage.VELOCITY
    assert Stage.MODEL < Stage.INSTANCE < Stage.TIME < Stage.POSITION


# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------


def test_constructor_copies_inputs_and_starts_empty() -> None:
    """y and discrete are copied; a new snapshot has no realized stage."""
    y0 = np.array([1.0, 2.0])
    discrete = {"k": 1}
    state = SystemState(y0, time=3.0, discrete=discrete)

    y0[0] = 99.0
    discrete["k"] = 2

    assert state.stage is Stage.EMPTY
    assert state.time == 3.0
    assert np.array_equal(state.y, [1.0, 2.0])
    assert state.discrete == {"k": 1}
    assert state.n_y == 2


def test_constructor_rejects_non_vector_state() -> None:
    """y must be one-dimensional."""
    with pytest.raises(ValueError, match="1D"):
        SystemState(np.zeros((2, 2)))


def test_y_view_is_read_only() -> None:
    """Writes must go through set_y so the stage can be lowered."""
    state = SystemState([1.0])

    with pytest.raises(ValueError, match="read-only"):
        state.y[0] = 2.0


def test_negative_model_sizes_are_rejected() -> None:
    """set_model_sizes refuses negative counts."""
    state = SystemState([1.0])

    with pytest.raises(ValueError, match="n_events"):
        state.set_model_sizes(n_yerr=0, n_events=-1)


# -----------------------------------------------------------------------------
# Invalidation
# -----------------------------------------------------------------------------


def test_time_write_drops_to_instance_and_clears_caches() -> None:
    """Setting time lowers the stage below TIME and forgets derived vectors."""
    state = _make_realized()

    state.time = 1.0

    assert state.stage is Stage.INSTANCE
    with pytest.raises(StageNotRealizedError):
        _ = state.ydot
    with pytest.raises(StageNotRealizedError):
        _ = state.yerr


def test_set_y_drops_to_time() -> None:
    """Writing y invalidates POSITION and above."""
    state = _make_realized()

    state.set_y([3.0, 4.0])

    assert state.stage is Stage.TIME
    assert np.array_equal(state.y, [3.0, 4.0])


def test_set_y_rejects_wrong_shape() -> None:
    """The continuous-state length is fixed at construction."""
    state = SystemState([1.0, 2.0])

    with pytest.raises(ValueError, match="does not match"):
        state.set_y([1.0])


def test_set_discrete_drops_to_model() -> None:
    """Writing a discrete variable invalidates INSTANCE and above."""
    state = _make_realized()

    state.set_discrete("mode", "off")

    assert state.stage is Stage.MODEL
    assert state.discrete["mode"] == "off"


def test_invalidating_an_unrealized_stage_keeps_current_stage() -> None:
    """Invalidation never raises the stage and is a no-op above it."""
    state = SystemState([1.0])
    state.mark_realized(Stage.TIME)

    state.invalidate(Stage.VELOCITY)

    assert state.stage is Stage.TIME


def test_velocity_invalidation_keeps_nothing_above() -> None:
    """Dropping to POSITION clears yerr, ydot and events."""
    state = _make_realized()

    state.invalidate(Stage.VELOCITY)

    assert state.stage is Stage.POSITION
    state.mark_realized(Stage.ACCELERATION)
    assert np.array_equal(state.yerr, [0.0])
    assert np.array_equal(state.events, [0.0, 0.0])
    with pytest.raises(StageNotRealizedError, match="without setting ydot"):
        _ = state.ydot


# -----------------------------------------------------------------------------
# Derived quantities
# -----------------------------------------------------------------------------


def test_derived_quantities_require_their_stage() -> None:
    """Reading a vector before its stage is realized raises."""
    state = SystemState([1.0])
    state.set_model_sizes(n_yerr=1, n_events=1)
    state.mark_realized(Stage.POSITION)

    with pytest.raises(StageNotRealizedError, match="VELOCITY"):
        _ = state.yerr
    with pytest.raises(StageNotRealizedError, match="ACCELERATION"):
        _ = state.events


def test_unset_optional_vectors_read_as_zeros() -> None:
    """yerr/events default to zeros of the model-stage sizes."""
    state = SystemState([1.0])
    state.set_model_sizes(n_yerr=2, n_events=3)
    state.set_ydot([0.0])
    state.mark_realized(Stage.ACCELERATION)

    assert state.yerr.shape == (2,)
    assert state.events.shape == (3,)
    assert not np.any(state.events)


def test_derived_setters_check_shape() -> None:
    """Derived vectors must match n_y, n_yerr or n_events."""
    state = SystemState([1.0, 2.0])
    state.set_model_sizes(n_yerr=1, n_events=0)

    with pytest.raises(ValueError, match="ydot"):
        state.set_ydot([1.0])
    with pytest.raises(ValueError, match="yerr"):
        state.set_yerr([1.0, 2.0])
    with pytest.raises(ValueError, match="events"):
        state.set_events([1.0])


# -----------------------------------------------------------------------------
# Copying
# -----------------------------------------------------------------------------


def test_copy_is_independent_including_discrete_content() -> None:
    """copy() duplicates y, caches and nested discrete values."""
    state = _make_realized()
    state.set_discrete("schedule", [1, 2])
    state.mark_realized(Stage.ACCELERATION)
    state.set_ydot([-1.0, -2.0])

    clone = state.copy()
    state.set_y([10.0, 20.0])
    state.discrete["schedule"].append(3)

    assert clone.stage is Stage.ACCELERATION
    assert np.array_equal(clone.y, [1.0, 2.0])
    assert np.array_equal(clone.ydot, [-1.0, -2.0])
    assert clone.discrete["schedule"] == [1, 2]
    assert clone.n_events == 2
    assert "ACCELERATION" in repr(clone)
