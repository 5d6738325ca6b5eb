"""State Bridge: solver callbacks expressed in terms of the simulated system.

Each callback receives a flat (t, y) pair from the external solver, writes it
into a private copy of the integrator's Advanced State, realizes the stage that
makes the requested vector available and hands that vector back. The solver
may evaluate many speculative iterates before accepting a step, so the
authoritative Advanced State is never touched here.

Any exception raised while realizing a stage is caught at the callback edge and
reported to the solver as ``CallbackStatus.RECOVERABLE_ERROR``; the solver's
own retry logic (smaller step, new iterate) is the only recovery path.

Stages realized per callback:

    explicit_ode   Stage.ACCELERATION   -> ydot
    constraint     Stage.VELOCITY       -> yerr
    project        Stage.POSITION       -> ycorr, err
    root           Stage.ACCELERATION   -> event triggers
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import numpy as np

from .solver_api import CallbackStatus
from .stage import Stage

if TYPE_CHECKING:
    from .state import FloatArray, SystemState
    from .system import SystemLike

_LOGGER = logging.getLogger(__name__)


class BridgeHost(Protocol):
    """What the bridge needs from the owning integrator."""

    @property
    def advanced_state(self) -> SystemState:
        """Authoritative Advanced State."""
        ...

    @property
    def constraint_tolerance_in_use(self) -> float:
        """Constraint tolerance handed to the system's projection."""
        ...


class StateBridge:
    """SolverCallbacks implementation that delegates to a simulated system."""

    def __init__(self, host: BridgeHost, system: SystemLike) -> None:
        """
        Initialize StateBridge.

        Args:
            host: Integrator owning the Advanced State.
            system: Simulated system used to realize snapshots.
        """
        self._host = host
        self._system = system

    def _scratch(self, t: float, y: FloatArray) -> SystemState:
        state = self._host.advanced_state.copy()
        state.set_y(y)
        state.time = t
        return state

    def _recoverable(self, callback: str, t: float, exc: Exception) -> None:
        _LOGGER.debug(
            "%s callback failed at t=%s (%s: %s); reporting recoverable error",
            callback,
            t,
            type(exc).__name__,
            exc,
        )

    def explicit_ode(
        self,
        t: float,
        y: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray]:
        """Evaluate ydot = f(t, y)."""
        state = self._scratch(t, y)
        try:
            self._system.realize(state, Stage.ACCELERATION)
            ydot = np.array(state.ydot, copy=True)
        except Exception as exc:  # noqa: BLE001
            self._recoverable("explicit_ode", t, exc)
            return CallbackStatus.RECOVERABLE_ERROR, np.zeros_like(y)
        return CallbackStatus.SUCCESS, ydot

    def constraint(
        self,
        t: float,
        y: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray]:
        """Evaluate the constraint-error vector yerr = c(t, y)."""
        state = self._scratch(t, y)
        try:
            self._system.realize(state, Stage.VELOCITY)
            yerr = np.array(state.yerr, copy=True)
        except Exception as exc:  # noqa: BLE001
            self._recoverable("constraint", t, exc)
            return CallbackStatus.RECOVERABLE_ERROR, np.zeros(0, dtype=np.float64)
        return CallbackStatus.SUCCESS, yerr

    def project(
        self,
        t: float,
        y: FloatArray,
        eps_proj: float,  # noqa: ARG002
        err: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray, FloatArray]:
        """
        Project (t, y) onto the constraint manifold.

        The system's own projection is driven with the integrator's constraint
        tolerance; eps_proj is accepted for protocol compatibility.

        Args:
            t: Time.
            y: Possibly off-manifold continuous state.
            eps_proj: Solver-requested weighted-norm target.
            err: Solver error estimate for y.

        Returns:
            (status, ycorr, err) where ycorr is projected y minus y and err has
            had its manifold-normal component removed.
        """
        state = self._scratch(t, y)
        err_out = np.array(err, dtype=np.float64, copy=True)
        try:
            tol = self._host.constraint_tolerance_in_use
            self._system.realize(state, Stage.POSITION)
            y_weights = self._system.calc_y_unit_weights(state)
            yerr_tolerances = self._system.calc_yerr_unit_tolerances(state)
            self._system.project(state, tol, y_weights, yerr_tolerances, err_out)
        except Exception as exc:  # noqa: BLE001
            self._recoverable("project", t, exc)
            return CallbackStatus.RECOVERABLE_ERROR, np.zeros_like(y), err_out
        ycorr = np.asarray(state.y, dtype=np.float64) - np.asarray(y, dtype=np.float64)
        return CallbackStatus.SUCCESS, ycorr, err_out

    def root(
        self,
        t: float,
        y: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray]:
        """Evaluate the event-trigger vector at (t, y)."""
        state = self._scratch(t, y)
        try:
            self._system.realize(state, Stage.ACCELERATION)
            g = np.array(state.events, copy=True)
        except Exception as exc:  # noqa: BLE001
            self._recoverable("root", t, exc)
            return CallbackStatus.RECOVERABLE_ERROR, np.zeros(0, dtype=np.float64)
        return CallbackStatus.SUCCESS, g


__all__ = ["BridgeHost", "StateBridge"]
