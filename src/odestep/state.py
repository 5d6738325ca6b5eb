"""Snapshot container for the state of a simulated system.

A :class:`SystemState` owns a time scalar, a continuous-state vector ``y`` and a
mapping of discrete (non-continuous) variables. Derived quantities are cached on
the snapshot by the simulated system when it is *realized* to a stage:

- ``yerr`` (constraint errors) once realized to ``Stage.VELOCITY``,
- ``ydot`` (derivatives) and ``events`` (event triggers) at ``Stage.ACCELERATION``.

Writing time, ``y`` or a discrete variable lowers the snapshot stage so stale
derived quantities can never be read. The container intentionally does not
compute anything itself; that is the simulated system's job.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from .errors import StageNotRealizedError
from .stage import Stage

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numpy.typing import DTypeLike


# Error / message constants -------------------------------------------------

_Y_NDIM_ERROR = "y must be a 1D array, got ndim={ndim}"
_Y_SHAPE_ERROR = "y shape {actual} does not match expected {expected}"
_DERIVED_SHAPE_ERROR = "{name} shape {actual} does not match expected {expected}"
_NOT_REALIZED_ERROR = "{name} requires stage {required}; snapshot is at stage {current}"
_NEGATIVE_COUNT_ERROR = "{name} must be non-negative, got {value}"
_YDOT_MISSING_ERROR = "System realized Stage.ACCELERATION without setting ydot"


# Typing helpers ------------------------------------------------------------

FloatArray = npt.NDArray[np.floating[Any]]


def _readonly(arr: FloatArray) -> FloatArray:
    view = arr.view()
    view.flags.writeable = False
    return view


class SystemState:
    """Time, continuous state and cached derived quantities of a simulated system."""

    def __init__(
        self,
        y: npt.ArrayLike,
        *,
        time: float = 0.0,
        discrete: Mapping[str, Any] | None = None,
        dtype: DTypeLike = np.float64,
    ) -> None:
        """
        Initialize SystemState.

        Args:
            y: Initial continuous-state vector (1D).
            time: Initial time.
            discrete: Optional discrete variables (copied).
            dtype: Floating-point dtype for continuous and derived vectors.

        Raises:
            ValueError: if y is not one-dimensional.
        """
        self.dtype = np.dtype(dtype)
        y_arr = np.array(y, dtype=self.dtype, copy=True)
        if y_arr.ndim != 1:
            raise ValueError(_Y_NDIM_ERROR.format(ndim=y_arr.ndim))

        self._y: FloatArray = y_arr
        self._time = float(time)
        self._discrete: dict[str, Any] = dict(discrete or {})
        self._stage = Stage.EMPTY

        self._n_yerr = 0
        self._n_events = 0

        self._ydot: FloatArray | None = None
        self._yerr: FloatArray | None = None
        self._events: FloatArray | None = None

    # ------------------------------------------------------------------
    # Sizes / stage
    # ------------------------------------------------------------------

    @property
    def n_y(self) -> int:
        """Length of the continuous-state vector."""
        return int(self._y.size)

    @property
    def n_yerr(self) -> int:
        """Number of constraint-error components (valid from Stage.MODEL)."""
        return self._n_yerr

    @property
    def n_events(self) -> int:
        """Number of event-trigger components (valid from Stage.MODEL)."""
        return self._n_events

    @property
    def stage(self) -> Stage:
        """Highest stage realized on this snapshot."""
        return self._stage

    def set_model_sizes(self, *, n_yerr: int, n_events: int) -> None:
        """
        Record the model-stage sizes of the derived vectors.

        Args:
            n_yerr: Number of constraint-error components.
            n_events: Number of event-trigger components.

        Raises:
            ValueError: if a size is negative.
        """
        if n_yerr < 0:
            raise ValueError(_NEGATIVE_COUNT_ERROR.format(name="n_yerr", value=n_yerr))
        if n_events < 0:
            raise ValueError(
                _NEGATIVE_COUNT_ERROR.format(name="n_events", value=n_events)
            )
        self._n_yerr = int(n_yerr)
        self._n_events = int(n_events)

    def mark_realized(self, stage: Stage) -> None:
        """Record that the owning system has realized this snapshot to stage."""
        self._stage = max(self._stage, Stage(stage))

    def invalidate(self, stage: Stage) -> None:
        """
        Invalidate stage and everything above it.

        Args:
            stage: Lowest stage whose results are no longer valid.
        """
        stage = Stage(stage)
        if self._stage >= stage:
            self._stage = stage.prev()
        if self._stage < Stage.VELOCITY:
            self._yerr = None
        if self._stage < Stage.ACCELERATION:
            self._ydot = None
            self._events = None

    # ------------------------------------------------------------------
    # Time / continuous state / discrete variables
    # ------------------------------------------------------------------

    @property
    def time(self) -> float:
        """Current time."""
        return self._time

    @time.setter
    def time(self, value: float) -> None:
        self._time = float(value)
        self.invalidate(Stage.TIME)

    @property
    def y(self) -> FloatArray:
        """Read-only view of the continuous-state vector."""
        return _readonly(self._y)

    @y.setter
    def y(self, values: npt.ArrayLike) -> None:
        self.set_y(values)

    def set_y(self, values: npt.ArrayLike) -> None:
        """
        Overwrite the continuous-state vector.

        Args:
            values: New continuous state, shape (n_y,).

        Raises:
            ValueError: if values has the wrong shape.
        """
        arr = np.asarray(values, dtype=self.dtype)
        if arr.shape != self._y.shape:
            raise ValueError(
                _Y_SHAPE_ERROR.format(actual=arr.shape, expected=self._y.shape)
            )
        np.copyto(self._y, arr)
        self.invalidate(Stage.POSITION)

    @property
    def discrete(self) -> Mapping[str, Any]:
        """Discrete (non-continuous) variables. Use set_discrete to modify."""
        return self._discrete

    def set_discrete(self, name: str, value: object) -> None:
        """Set a discrete variable, invalidating Stage.INSTANCE and above."""
        self._discrete[name] = value
        self.invalidate(Stage.INSTANCE)

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    def _require(self, name: str, required: Stage) -> None:
        if self._stage < required:
            raise StageNotRealizedError(
                _NOT_REALIZED_ERROR.format(
                    name=name,
                    required=required.name,
                    current=self._stage.name,
                )
            )

    def _checked(self, name: str, values: npt.ArrayLike, size: int) -> FloatArray:
        arr = np.array(values, dtype=self.dtype, copy=True).reshape(-1)
        if arr.shape != (size,):
            raise ValueError(
                _DERIVED_SHAPE_ERROR.format(name=name, actual=arr.shape, expected=(size,))
            )
        return arr

    @property
    def ydot(self) -> FloatArray:
        """Derivative of y (requires Stage.ACCELERATION)."""
        self._require("ydot", Stage.ACCELERATION)
        if self._ydot is None:
            raise StageNotRealizedError(_YDOT_MISSING_ERROR)
        return _readonly(self._ydot)

    @property
    def yerr(self) -> FloatArray:
        """Constraint-error vector (requires Stage.VELOCITY)."""
        self._require("yerr", Stage.VELOCITY)
        if self._yerr is None:
            return np.zeros(self._n_yerr, dtype=self.dtype)
        return _readonly(self._yerr)

    @property
    def events(self) -> FloatArray:
        """Event-trigger vector (requires Stage.ACCELERATION)."""
        self._require("events", Stage.ACCELERATION)
        if self._events is None:
            return np.zeros(self._n_events, dtype=self.dtype)
        return _readonly(self._events)

    def set_ydot(self, values: npt.ArrayLike) -> None:
        """Cache the derivative vector (called by the owning system)."""
        self._ydot = self._checked("ydot", values, self.n_y)

    def set_yerr(self, values: npt.ArrayLike) -> None:
        """Cache the constraint-error vector (called by the owning system)."""
        self._yerr = self._checked("yerr", values, self._n_yerr)

    def set_events(self, values: npt.ArrayLike) -> None:
        """Cache the event-trigger vector (called by the owning system)."""
        self._events = self._checked("events", values, self._n_events)

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def copy(self) -> SystemState:
        """Return an independent copy, including discrete content and caches."""
        out = SystemState.__new__(SystemState)
        out.dtype = self.dtype
        out._y = self._y.copy()
        out._time = self._time
        out._discrete = copy.deepcopy(self._discrete)
        out._stage = self._stage
        out._n_yerr = self._n_yerr
        out._n_events = self._n_events
        out._ydot = None if self._ydot is None else self._ydot.copy()
        out._yerr = None if self._yerr is None else self._yerr.copy()
        out._events = None if self._events is None else self._events.copy()
        return out

    def __repr__(self) -> str:
        return (
            f"SystemState(time={self._time!r}, n_y={self.n_y}, "
            f"stage={self._stage.name})"
        )


__all__ = ["FloatArray", "SystemState"]
