"""Unit tests for OdeSystem realization, weighting and projection."""

from __future__ import annotations

import numpy as np
import pytest

from odestep.errors import ProjectionFailedError, StageRealizationError
from odestep.stage import Stage
from odestep.state import SystemState
from odestep.system import OdeSystem, ProjectionOptions

# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _circle(**kwargs: object) -> OdeSystem:
    """Rigid rotation constrained to the unit circle."""
    return OdeSystem(
        lambda _t, y, _d: np.array([-y[1], y[0]]),
        n_y=2,
        constraints=lambda _t, y: np.array([y[0] ** 2 + y[1] ** 2 - 1.0]),
        n_constraints=1,
        **kwargs,
    )


def _counting_rhs(calls: list[float]):
    def rhs(t: float, y: np.ndarray, discrete: dict) -> np.ndarray:
        calls.append(t)
        return -float(discrete.get("rate", 1.0)) * y

    return rhs


# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------


def test_missing_constraint_function_is_rejected() -> None:
    """A positive constraint count needs a constraint function."""
    with pytest.raises(ValueError, match="constraints function required"):
        OdeSystem(lambda _t, y, _d: y, n_y=1, n_constraints=1)


def test_missing_event_function_is_rejected() -> None:
    """A positive event count needs an event function."""
    with pytest.raises(ValueError, match="events function required"):
        OdeSystem(lambda _t, y, _d: y, n_y=1, n_events=2)


@pytest.mark.parametrize(
    ("weights", "match"),
    [
        ([1.0], "must have shape"),
        ([1.0, 0.0], "strictly positive"),
    ],
)
def test_bad_unit_weights_are_rejected(weights: list[float], match: str) -> None:
    """y_weights must have n_y strictly positive entries."""
    with pytest.raises(ValueError, match=match):
        OdeSystem(lambda _t, y, _d: y, n_y=2, y_weights=weights)


def test_make_state_realizes_model_sizes() -> None:
    """make_state returns a snapshot at Stage.MODEL with sizes recorded."""
    system = _circle()

    state = system.make_state([1.0, 0.0], time=2.0, discrete={"a": 1})

    assert state.stage is Stage.MODEL
    assert state.n_yerr == 1
    assert state.n_events == 0
    assert state.time == 2.0
    assert state.discrete == {"a": 1}


# -----------------------------------------------------------------------------
# Realization
# -----------------------------------------------------------------------------


def test_realize_computes_all_derived_quantities() -> None:
    """ACCELERATION yields ydot, yerr and event triggers."""
    system = OdeSystem(
        lambda _t, y, d: -d["rate"] * y,
        n_y=1,
        constraints=lambda _t, y: y - 2.0,
        n_constraints=1,
        events=lambda t, y, _d: np.array([y[0] - 0.5, t - 1.0]),
        n_events=2,
    )
    state = system.make_state([3.0], time=0.25, discrete={"rate": 2.0})

    system.realize(state, Stage.ACCELERATION)

    assert state.stage is Stage.ACCELERATION
    assert np.allclose(state.ydot, [-6.0])
    assert np.allclose(state.yerr, [1.0])
    assert np.allclose(state.events, [2.5, -0.75])


def test_realize_is_idempotent_until_invalidated() -> None:
    """A realized stage is not recomputed until a write lowers it."""
    calls: list[float] = []
    system = OdeSystem(_counting_rhs(calls), n_y=1)
    state = system.make_state([1.0])

    system.realize(state, Stage.ACCELERATION)
    system.realize(state, Stage.ACCELERATION)
    assert len(calls) == 1

    state.set_discrete("rate", 4.0)
    system.realize(state, Stage.ACCELERATION)
    assert len(calls) == 2
    assert np.allclose(state.ydot, [-4.0])


def test_realize_rejects_non_finite_derivative() -> None:
    """A NaN derivative is a realization failure."""
    system = OdeSystem(lambda _t, y, _d: np.full_like(y, np.nan), n_y=1)
    state = system.make_state([1.0], time=0.5)

    with pytest.raises(StageRealizationError, match="rhs is not finite"):
        system.realize(state, Stage.ACCELERATION)
    assert state.stage < Stage.ACCELERATION


def test_realize_rejects_wrong_shaped_triggers() -> None:
    """Event functions must return n_events values."""
    system = OdeSystem(
        lambda _t, y, _d: y,
        n_y=1,
        events=lambda _t, y, _d: np.array([1.0, 2.0, 3.0]),
        n_events=2,
    )
    state = system.make_state([1.0])

    with pytest.raises(StageRealizationError, match="events returned shape"):
        system.realize(state, Stage.ACCELERATION)


def test_realize_rejects_state_of_another_size() -> None:
    """A snapshot must have the system's n_y."""
    system = OdeSystem(lambda _t, y, _d: y, n_y=2)

    with pytest.raises(StageRealizationError, match="expects n_y=2"):
        system.realize(SystemState([1.0]), Stage.MODEL)


def test_unit_weights_are_returned_as_copies() -> None:
    """Weights/tolerances are realized at POSITION and safe to mutate."""
    system = _circle(y_weights=[1.0, 2.0], constraint_tolerances=[0.5])
    state = system.make_state([1.0, 0.0])

    w = system.calc_y_unit_weights(state)
    w[:] = 0.0

    assert state.stage >= Stage.POSITION
    assert np.array_equal(system.calc_y_unit_weights(state), [1.0, 2.0])
    assert np.array_equal(system.calc_yerr_unit_tolerances(state), [0.5])


# -----------------------------------------------------------------------------
# Projection
# -----------------------------------------------------------------------------


def test_project_moves_state_onto_manifold() -> None:
    """An off-circle point is pulled back radially to |y| = 1."""
    system = _circle()
    state = system.make_state([1.1, 0.0])
    system.realize(state, Stage.ACCELERATION)
    err = np.zeros(0)

    system.project(state, 1e-10, np.ones(2), np.ones(1), err)

    assert np.allclose(state.y, [1.0, 0.0], atol=1e-9)
    assert state.stage is Stage.TIME


def test_project_leaves_satisfied_state_untouched() -> None:
    """No correction means no write (the stage is preserved)."""
    system = _circle()
    state = system.make_state([0.6, 0.8])
    system.realize(state, Stage.ACCELERATION)

    system.project(state, 1e-6, np.ones(2), np.ones(1), np.zeros(0))

    assert state.stage is Stage.ACCELERATION


def test_project_removes_normal_error_component() -> None:
    """The error estimate keeps only its tangential part."""
    system = _circle(
        constraint_jacobian=lambda _t, y: np.array([[2.0 * y[0], 2.0 * y[1]]]),
    )
    state = system.make_state([1.0, 0.0])
    err = np.array([0.1, 0.2])

    system.project(state, 1e-8, np.ones(2), np.ones(1), err)

    assert np.allclose(err, [0.0, 0.2])


def test_project_honours_constraint_tolerance_scaling() -> None:
    """Large unit tolerances accept a small violation without moving."""
    system = _circle()
    state = system.make_state([1.001, 0.0])

    system.project(state, 1.0, np.ones(2), np.array([10.0]), np.zeros(0))

    assert np.array_equal(state.y, [1.001, 0.0])


def test_project_raises_when_it_cannot_converge() -> None:
    """An unsatisfiable constraint exhausts the iteration budget."""
    system = OdeSystem(
        lambda _t, y, _d: y,
        n_y=1,
        constraints=lambda _t, y: np.array([y[0] ** 2 + 1.0]),
        n_constraints=1,
        projection=ProjectionOptions(max_iterations=3),
    )
    state = system.make_state([1.0])

    with pytest.raises(ProjectionFailedError):
        system.project(state, 1e-8, np.ones(1), np.ones(1), np.zeros(0))
    assert np.array_equal(state.y, [1.0])


def test_analytic_jacobian_shape_is_checked() -> None:
    """A wrong-shaped analytic Jacobian is a realization failure."""
    system = _circle(constraint_jacobian=lambda _t, y: np.ones((2, 2)))
    state = system.make_state([1.5, 0.0])

    with pytest.raises(StageRealizationError, match="constraint_jacobian"):
        system.project(state, 1e-8, np.ones(2), np.ones(1), np.zeros(0))
