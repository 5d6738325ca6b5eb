"""Interpolation Cache: off-grid snapshots from the solver's dense output."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import raise_usage_error

if TYPE_CHECKING:
    from .solver_api import MultistepSolver
    from .state import SystemState

_RANGE_ERROR = "t={t!r} must satisfy {lower!r} <= t < {upper!r}"


class StateInterpolator:
    """Builds Interpolated States within the most recent accepted step."""

    def __init__(self, solver: MultistepSolver) -> None:
        self._solver = solver

    @property
    def solver(self) -> MultistepSolver:
        """Solver queried for dense output."""
        return self._solver

    @solver.setter
    def solver(self, solver: MultistepSolver) -> None:
        self._solver = solver

    def build(
        self,
        advanced: SystemState,
        t: float,
        *,
        lower: float,
        upper: float,
    ) -> SystemState:
        """
        Return a snapshot at t carrying advanced's discrete content.

        Args:
            advanced: Advanced State providing discrete variables and sizes.
            t: Target time.
            lower: Start of the valid interval (inclusive).
            upper: Latest solver-returned time (exclusive).

        Returns:
            New snapshot with interpolated y and time t. Derived quantities are
            invalid until the caller realizes it.

        Raises:
            IntegratorUsageError: if t lies outside [lower, upper).
        """
        if not lower <= t < upper:
            raise_usage_error(
                "interpolate",
                _RANGE_ERROR.format(t=t, lower=lower, upper=upper),
            )
        state = advanced.copy()
        state.set_y(self._solver.get_dky(t, 0))
        state.time = t
        return state


__all__ = ["StateInterpolator"]
