"""Command/callback protocol between the integrator and an external ODE solver.

The external solver is a black box. The integrator drives it through
:class:`MultistepSolver` (initialize, configure, step, dense output, root info)
and the solver calls back into the simulated system through
:class:`SolverCallbacks` (derivative, constraint residual, projection, event
triggers). Both sides exchange flat float vectors only.

Raw integer step codes are resolved exactly once, at the boundary, into the
closed set :class:`SolverReturn`. Controller logic never branches on bare ints.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Protocol

import numpy as np

from .state import FloatArray

# =============================================================================
# Status / return codes
# =============================================================================


class CallbackStatus(IntEnum):
    """Tri-state outcome of a solver callback."""

    SUCCESS = 0
    RECOVERABLE_ERROR = 1
    NONRECOVERABLE_ERROR = -1


class StepReturnCode(IntEnum):
    """Raw integer codes a solver may return from init/step calls."""

    SUCCESS = 0
    TSTOP_RETURN = 1
    ROOT_RETURN = 2
    TOO_MUCH_WORK = -1
    TOO_MUCH_ACC = -2
    ERR_FAILURE = -3
    CONV_FAILURE = -4
    RHSFUNC_FAIL = -8
    REPTD_RHSFUNC_ERR = -10
    RTFUNC_FAIL = -12
    PROJFUNC_FAIL = -15
    ILL_INPUT = -22
    BAD_T = -25


class SolverReturn(Enum):
    """Tagged resolution of a raw solver step code."""

    SUCCESS = "success"
    RECOVERABLE_ERROR = "recoverable_error"
    STEP_LIMIT_REACHED = "step_limit_reached"
    STOP_TIME_REACHED = "stop_time_reached"
    ROOT_FOUND = "root_found"
    OTHER_FAILURE = "other_failure"

    @classmethod
    def from_code(cls, code: int) -> SolverReturn:
        """
        Resolve a raw solver code.

        Args:
            code: Integer returned by MultistepSolver.step (or init).

        Returns:
            Matching SolverReturn member. Unknown negative codes are failures;
            unknown positive codes are treated as recoverable.
        """
        code = int(code)
        if code == StepReturnCode.SUCCESS:
            return cls.SUCCESS
        if code == StepReturnCode.TSTOP_RETURN:
            return cls.STOP_TIME_REACHED
        if code == StepReturnCode.ROOT_RETURN:
            return cls.ROOT_FOUND
        if code == StepReturnCode.TOO_MUCH_WORK:
            return cls.STEP_LIMIT_REACHED
        if code < 0:
            return cls.OTHER_FAILURE
        return cls.RECOVERABLE_ERROR

    @property
    def is_failure(self) -> bool:
        """True only for OTHER_FAILURE (the step limit is not a failure)."""
        return self is SolverReturn.OTHER_FAILURE


# =============================================================================
# Modes / method selection
# =============================================================================


class StepMode(Enum):
    """Stepping mode: return after each internal step or at tout, with or without tstop."""

    NORMAL = "normal"
    ONE_STEP = "one_step"
    NORMAL_TSTOP = "normal_tstop"
    ONE_STEP_TSTOP = "one_step_tstop"

    @classmethod
    def select(cls, *, one_step: bool, use_stop_time: bool) -> StepMode:
        """Pick the mode from the two independent axes."""
        if one_step:
            return cls.ONE_STEP_TSTOP if use_stop_time else cls.ONE_STEP
        return cls.NORMAL_TSTOP if use_stop_time else cls.NORMAL

    @property
    def is_one_step(self) -> bool:
        """True when control returns after every accepted internal step."""
        return self in {StepMode.ONE_STEP, StepMode.ONE_STEP_TSTOP}

    @property
    def uses_stop_time(self) -> bool:
        """True when the solver must not step past its configured stop time."""
        return self in {StepMode.NORMAL_TSTOP, StepMode.ONE_STEP_TSTOP}


class LinearMultistepMethod(Enum):
    """Stepping family of the external solver."""

    BDF = "bdf"
    ADAMS = "adams"


class NonlinearIteration(Enum):
    """Nonlinear-iteration strategy of the external solver."""

    NEWTON = "newton"
    FUNCTIONAL = "functional"


class ProjectionNorm(Enum):
    """Norm minimized by the solver's built-in projection."""

    L2 = "l2"
    ERROR_NORM = "error_norm"


class ConstraintKind(Enum):
    """Constraint linearity declared to the solver's built-in projection."""

    LINEAR = "linear"
    NONLINEAR = "nonlinear"


class ProjectionFactorization(Enum):
    """Dense factorization used by the solver's built-in projection."""

    LU = "lu"
    QR = "qr"
    SCHUR = "schur"


# =============================================================================
# Data records
# =============================================================================


@dataclass(slots=True, frozen=True)
class StepResult:
    """
    Result of one MultistepSolver.step call.

    Attributes:
        code: Raw integer result (see StepReturnCode).
        t: Returned time.
        y: Continuous-state vector at t.
        yp: Derivative at t, if the solver provides it.
    """

    code: int
    t: float
    y: FloatArray
    yp: FloatArray | None = None


@dataclass(slots=True, frozen=True)
class SolverStats:
    """Cumulative solver counters since init/reinit."""

    n_steps: int = 0
    n_step_attempts: int = 0
    n_error_test_failures: int = 0
    n_rhs_evals: int = 0


# =============================================================================
# Protocols
# =============================================================================


class SolverCallbacks(Protocol):
    """Callbacks the external solver invokes while stepping."""

    def explicit_ode(
        self,
        t: float,
        y: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray]:
        """Return (status, ydot) at (t, y)."""
        ...

    def constraint(
        self,
        t: float,
        y: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray]:
        """Return (status, yerr) at (t, y)."""
        ...

    def project(
        self,
        t: float,
        y: FloatArray,
        eps_proj: float,
        err: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray, FloatArray]:
        """Return (status, ycorr, err) where ycorr = projected y - y."""
        ...

    def root(
        self,
        t: float,
        y: FloatArray,
    ) -> tuple[CallbackStatus, FloatArray]:
        """Return (status, g) event-trigger values at (t, y)."""
        ...


class MultistepSolver(Protocol):
    """Command interface of an external multistep ODE solver."""

    # Lifecycle ----------------------------------------------------------------

    def init(
        self,
        callbacks: SolverCallbacks,
        t0: float,
        y0: FloatArray,
        yp0: FloatArray,
        rtol: float,
        atol: float,
    ) -> int:
        """Initialize solver memory; return a raw code (0 on success)."""
        ...

    def reinit(
        self,
        t0: float,
        y0: FloatArray,
        yp0: FloatArray,
        rtol: float,
        atol: float,
    ) -> int:
        """Re-seed the solver, keeping callbacks and settings."""
        ...

    # Optional settings ---------------------------------------------------------

    def set_init_step(self, h: float) -> None:
        """Set the initial step size."""
        ...

    def set_min_step(self, h: float) -> None:
        """Set the minimum step size."""
        ...

    def set_max_step(self, h: float) -> None:
        """Set the maximum step size."""
        ...

    def set_stop_time(self, t: float) -> None:
        """Set a hard stop time."""
        ...

    def set_max_num_steps(self, n: int) -> None:
        """Set the internal step budget per step call."""
        ...

    def set_proj_frequency(self, n: int) -> None:
        """Project every n accepted steps (0 disables)."""
        ...

    def set_dense_linear_solver(self, n: int) -> None:
        """Select a dense linear solver for an n-dimensional system."""
        ...

    # Projection -------------------------------------------------------------

    def proj_init(
        self,
        norm: ProjectionNorm,
        kind: ConstraintKind,
        ctol: FloatArray,
    ) -> None:
        """Enable built-in projection using the constraint callback."""
        ...

    def set_dense_projection_solver(
        self,
        nc: int,
        ny: int,
        factorization: ProjectionFactorization,
    ) -> None:
        """Select the dense factorization for built-in projection."""
        ...

    def proj_define(self) -> None:
        """Enable projection through the project callback."""
        ...

    # Roots / stepping -------------------------------------------------------

    def root_init(self, n_roots: int) -> None:
        """Register the number of event-trigger functions."""
        ...

    def step(self, tout: float, mode: StepMode) -> StepResult:
        """Advance toward tout in mode."""
        ...

    def get_dky(self, t: float, k: int = 0) -> FloatArray:
        """Dense output (k-th derivative) within the last accepted step."""
        ...

    def get_root_info(self) -> np.ndarray:
        """Per-trigger flags after a root return (nonzero = fired)."""
        ...

    # Step sizes / statistics -------------------------------------------------

    def get_actual_init_step(self) -> float:
        """Initial step size actually used."""
        ...

    def get_last_step(self) -> float:
        """Size of the last accepted step."""
        ...

    def get_current_step(self) -> float:
        """Step size to be attempted next."""
        ...

    def stats(self) -> SolverStats:
        """Cumulative counters."""
        ...


__all__ = [
    "CallbackStatus",
    "ConstraintKind",
    "LinearMultistepMethod",
    "MultistepSolver",
    "NonlinearIteration",
    "ProjectionFactorization",
    "ProjectionNorm",
    "SolverCallbacks",
    "SolverReturn",
    "SolverStats",
    "StepMode",
    "StepResult",
    "StepReturnCode",
]
