"""Simulated-system collaborator: protocol and a function-backed implementation.

The integrator never computes physics itself. It drives a *system* object that
knows how to realize a :class:`~odestep.state.SystemState` to a computation
stage, how to weight state and constraint components, and how to project a
state back onto its constraint manifold. :class:`SystemLike` is that contract.

:class:`OdeSystem` implements it for systems described by plain callables:

    y' = rhs(t, y, discrete)          derivatives       (Stage.ACCELERATION)
    c(t, y) = 0                       constraints       (Stage.VELOCITY)
    g(t, y, discrete)                 event triggers    (Stage.ACCELERATION)

Projection is a weighted Gauss-Newton iteration. For a weight vector W and the
constraint Jacobian J, each correction solves

    minimize ||W dy||  subject to  J dy = -c

which gives dy = -W^-2 J^T (J W^-2 J^T)^-1 c. The same operator removes the
component of the error estimate normal to the manifold. The small normal-
equation system is factorized with a dense LU (scipy.linalg.lu_factor).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import numpy as np
import numpy.typing as npt
from scipy.linalg import lu_factor, lu_solve

from .errors import ProjectionFailedError, StageRealizationError
from .stage import Stage
from .state import FloatArray, SystemState

_LOGGER = logging.getLogger(__name__)

# Error / message constants -------------------------------------------------

_STATE_SIZE_ERROR = "State has n_y={actual}; system expects n_y={expected}"
_NONFINITE_ERROR = "{name} is not finite at t={time!r}"
_SHAPE_ERROR = "{name} returned shape {actual}; expected {expected}"
_MISSING_FUNCTION_ERROR = "{name} function required when {count_name} > 0"
_WEIGHTS_SHAPE_ERROR = "{name} must have shape {expected}, got {actual}"
_WEIGHTS_POSITIVE_ERROR = "{name} must be strictly positive"
_PROJECTION_DIVERGED_ERROR = (
    "Projection did not converge to tol={tol!r} in {iterations} iterations "
    "(constraint error {error!r})"
)
_PROJECTION_SINGULAR_ERROR = "Projection produced a non-finite correction at t={time!r}"


# Typing helpers ------------------------------------------------------------

RHSFunction = Callable[[float, FloatArray, Mapping[str, Any]], npt.ArrayLike]
ConstraintFunction = Callable[[float, FloatArray], npt.ArrayLike]
ConstraintJacobian = Callable[[float, FloatArray], npt.ArrayLike]
EventFunction = Callable[[float, FloatArray, Mapping[str, Any]], npt.ArrayLike]


class SystemLike(Protocol):
    """Minimal simulated-system interface required by the integrator."""

    def realize(self, state: SystemState, stage: Stage) -> None:
        """Compute everything up to stage on state (idempotent; may raise)."""
        ...

    def calc_y_unit_weights(self, state: SystemState) -> FloatArray:
        """Return positive per-component weights for the continuous state."""
        ...

    def calc_yerr_unit_tolerances(self, state: SystemState) -> FloatArray:
        """Return positive per-component unit tolerances for constraint errors."""
        ...

    def project(
        self,
        state: SystemState,
        tol: float,
        y_weights: FloatArray,
        yerr_tolerances: FloatArray,
        err: FloatArray,
    ) -> None:
        """Move state.y onto the constraint manifold; adjust err in place."""
        ...


@dataclass(slots=True, frozen=True)
class ProjectionOptions:
    """Options for OdeSystem.project.

    Attributes:
        max_iterations: Maximum number of Gauss-Newton corrections.
        fd_rel_step: Relative forward-difference step for the constraint
            Jacobian when no analytic Jacobian is supplied.
    """

    max_iterations: int = 10
    fd_rel_step: float = 1e-8


def _rms(values: FloatArray) -> float:
    if values.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(values))))


class OdeSystem:
    """Simulated system defined by right-hand-side, constraint and event callables."""

    def __init__(
        self,
        rhs: RHSFunction,
        n_y: int,
        *,
        constraints: ConstraintFunction | None = None,
        n_constraints: int = 0,
        constraint_jacobian: ConstraintJacobian | None = None,
        events: EventFunction | None = None,
        n_events: int = 0,
        y_weights: npt.ArrayLike | None = None,
        constraint_tolerances: npt.ArrayLike | None = None,
        projection: ProjectionOptions | None = None,
    ) -> None:
        """
        Initialize OdeSystem.

        Args:
            rhs: Derivative function rhs(t, y, discrete) -> ydot.
            n_y: Length of the continuous-state vector.
            constraints: Constraint function c(t, y) -> yerr.
            n_constraints: Number of constraint components.
            constraint_jacobian: Optional analytic Jacobian dc/dy, shape
                (n_constraints, n_y). Forward differences are used otherwise.
            events: Event-trigger function g(t, y, discrete) -> triggers.
            n_events: Number of event-trigger components.
            y_weights: Optional positive unit weights for y (default ones).
            constraint_tolerances: Optional positive unit tolerances for the
                constraint errors (default ones).
            projection: Optional projection options.

        Raises:
            ValueError: if a count is positive but its function is missing, or
                if weights/tolerances have the wrong shape or sign.
        """
        self._rhs = rhs
        self._n_y = int(n_y)
        self._constraints = constraints
        self._n_constraints = int(n_constraints)
        self._constraint_jacobian = constraint_jacobian
        self._events = events
        self._n_events = int(n_events)
        self._projection = projection or ProjectionOptions()

        if self._n_constraints > 0 and constraints is None:
            raise ValueError(
                _MISSING_FUNCTION_ERROR.format(
                    name="constraints", count_name="n_constraints"
                )
            )
        if self._n_events > 0 and events is None:
            raise ValueError(
                _MISSING_FUNCTION_ERROR.format(name="events", count_name="n_events")
            )

        self._y_weights = self._validated_weights("y_weights", y_weights, self._n_y)
        self._yerr_tolerances = self._validated_weights(
            "constraint_tolerances",
            constraint_tolerances,
            self._n_constraints,
        )

    @staticmethod
    def _validated_weights(
        name: str,
        values: npt.ArrayLike | None,
        size: int,
    ) -> FloatArray:
        if values is None:
            return np.ones(size, dtype=np.float64)
        arr = np.asarray(values, dtype=np.float64).reshape(-1)
        if arr.shape != (size,):
            raise ValueError(
                _WEIGHTS_SHAPE_ERROR.format(name=name, expected=(size,), actual=arr.shape)
            )
        if np.any(arr <= 0.0):
            raise ValueError(_WEIGHTS_POSITIVE_ERROR.format(name=name))
        return arr

    # ------------------------------------------------------------------
    # Sizes / construction
    # ------------------------------------------------------------------

    @property
    def n_y(self) -> int:
        """Length of the continuous-state vector."""
        return self._n_y

    @property
    def n_constraints(self) -> int:
        """Number of constraint-error components."""
        return self._n_constraints

    @property
    def n_events(self) -> int:
        """Number of event-trigger components."""
        return self._n_events

    def make_state(
        self,
        y0: npt.ArrayLike,
        *,
        time: float = 0.0,
        discrete: Mapping[str, Any] | None = None,
    ) -> SystemState:
        """
        Build a snapshot for this system, realized to Stage.MODEL.

        Args:
            y0: Initial continuous state.
            time: Initial time.
            discrete: Optional discrete variables.

        Returns:
            New SystemState realized to Stage.MODEL.
        """
        state = SystemState(y0, time=time, discrete=discrete)
        self.realize(state, Stage.MODEL)
        return state

    # ------------------------------------------------------------------
    # Realization
    # ------------------------------------------------------------------

    def _as_vector(
        self,
        name: str,
        values: npt.ArrayLike,
        size: int,
        time: float,
    ) -> FloatArray:
        arr = np.asarray(values, dtype=np.float64).reshape(-1)
        if arr.shape != (size,):
            raise StageRealizationError(
                _SHAPE_ERROR.format(name=name, actual=arr.shape, expected=(size,))
            )
        if not np.all(np.isfinite(arr)):
            raise StageRealizationError(_NONFINITE_ERROR.format(name=name, time=time))
        return arr

    def _eval_constraints(self, t: float, y: FloatArray) -> FloatArray:
        if self._n_constraints == 0 or self._constraints is None:
            return np.zeros(0, dtype=np.float64)
        return self._as_vector(
            "constraints",
            self._constraints(t, y),
            self._n_constraints,
            t,
        )

    def realize(self, state: SystemState, stage: Stage) -> None:
        """
        Realize state up to stage, computing derived quantities as needed.

        Args:
            state: Snapshot to realize.
            stage: Target stage.

        Raises:
            StageRealizationError: if the snapshot size does not match the
                system, or a callable returns a wrong-shaped or non-finite value.
        """
        stage = Stage(stage)
        current = state.stage
        if current >= stage:
            return
        if state.n_y != self._n_y:
            raise StageRealizationError(
                _STATE_SIZE_ERROR.format(actual=state.n_y, expected=self._n_y)
            )

        t = state.time
        y = state.y

        if current < Stage.MODEL <= stage:
            state.set_model_sizes(n_yerr=self._n_constraints, n_events=self._n_events)

        if current < Stage.VELOCITY <= stage:
            state.set_yerr(self._eval_constraints(t, y))

        if current < Stage.ACCELERATION <= stage:
            ydot = self._as_vector("rhs", self._rhs(t, y, state.discrete), self._n_y, t)
            state.set_ydot(ydot)
            if self._n_events > 0 and self._events is not None:
                triggers = self._as_vector(
                    "events",
                    self._events(t, y, state.discrete),
                    self._n_events,
                    t,
                )
                state.set_events(triggers)

        state.mark_realized(stage)

    # ------------------------------------------------------------------
    # Weights / tolerances
    # ------------------------------------------------------------------

    def calc_y_unit_weights(self, state: SystemState) -> FloatArray:
        """Return unit weights for y (requires Stage.POSITION)."""
        self.realize(state, Stage.POSITION)
        return self._y_weights.copy()

    def calc_yerr_unit_tolerances(self, state: SystemState) -> FloatArray:
        """Return unit tolerances for constraint errors (requires Stage.POSITION)."""
        self.realize(state, Stage.POSITION)
        return self._yerr_tolerances.copy()

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def _jacobian(self, t: float, y: FloatArray) -> FloatArray:
        if self._constraint_jacobian is not None:
            jac = np.asarray(self._constraint_jacobian(t, y), dtype=np.float64)
            expected = (self._n_constraints, self._n_y)
            if jac.shape != expected:
                raise StageRealizationError(
                    _SHAPE_ERROR.format(
                        name="constraint_jacobian", actual=jac.shape, expected=expected
                    )
                )
            return jac

        c0 = self._eval_constraints(t, y)
        jac = np.empty((self._n_constraints, self._n_y), dtype=np.float64)
        y_pert = np.array(y, dtype=np.float64, copy=True)
        for j in range(self._n_y):
            h = self._projection.fd_rel_step * max(1.0, abs(float(y[j])))
            y_pert[j] = y[j] + h
            jac[:, j] = (self._eval_constraints(t, y_pert) - c0) / h
            y_pert[j] = y[j]
        return jac

    def project(
        self,
        state: SystemState,
        tol: float,
        y_weights: FloatArray,
        yerr_tolerances: FloatArray,
        err: FloatArray,
    ) -> None:
        """
        Project state.y onto the constraint manifold.

        Iterates weighted Gauss-Newton corrections until the RMS of the
        tolerance-scaled constraint error is at most tol, then removes the
        component of err normal to the manifold (in place).

        Args:
            state: Snapshot whose y is corrected in place.
            tol: Target RMS of yerr / yerr_tolerances.
            y_weights: Positive weights for y components.
            yerr_tolerances: Positive unit tolerances for constraint errors.
            err: Error estimate for y (modified in place; may be empty).

        Raises:
            ProjectionFailedError: if the iteration diverges or stalls.
        """
        if self._n_constraints == 0:
            return

        t = state.time
        y = np.array(state.y, dtype=np.float64, copy=True)
        inv_w2 = 1.0 / np.square(np.asarray(y_weights, dtype=np.float64))
        scale = np.asarray(yerr_tolerances, dtype=np.float64)

        c = self._eval_constraints(t, y)
        error = _rms(c / scale)
        moved = False
        iterations = 0
        while error > tol:
            if iterations >= self._projection.max_iterations:
                raise ProjectionFailedError(
                    _PROJECTION_DIVERGED_ERROR.format(
                        tol=tol,
                        iterations=iterations,
                        error=error,
                    )
                )
            jac = self._jacobian(t, y)
            lu = lu_factor((jac * inv_w2) @ jac.T, check_finite=False)
            dy = -inv_w2 * (jac.T @ lu_solve(lu, c))
            if not np.all(np.isfinite(dy)):
                raise ProjectionFailedError(_PROJECTION_SINGULAR_ERROR.format(time=t))
            y += dy
            moved = True
            iterations += 1
            c = self._eval_constraints(t, y)
            error = _rms(c / scale)

        if moved:
            _LOGGER.debug(
                "Projected state at t=%s in %d iteration(s); constraint error %.3e",
                t,
                iterations,
                error,
            )
            state.set_y(y)

        if err.size == self._n_y and np.any(err != 0.0):
            jac = self._jacobian(t, y)
            lu = lu_factor((jac * inv_w2) @ jac.T, check_finite=False)
            err -= inv_w2 * (jac.T @ lu_solve(lu, jac @ err))


__all__ = [
    "ConstraintFunction",
    "ConstraintJacobian",
    "EventFunction",
    "OdeSystem",
    "ProjectionOptions",
    "RHSFunction",
    "SystemLike",
]
