"""Default external solver built on SciPy's multistep steppers.

:class:`ScipyMultistepSolver` implements the :class:`~odestep.solver_api.MultistepSolver`
command protocol on top of ``scipy.integrate.BDF`` (BDF family) and
``scipy.integrate.LSODA`` (Adams family, with automatic stiffness switching).

Semantics follow the usual multistep-solver conventions:

- Normal mode returns exactly at ``tout`` (dense output when the internal step
  went past it); one-step mode returns after every accepted internal step.
- With a stop time the stepper never integrates past it and the call returns
  ``TSTOP_RETURN`` when it is reached. The ``tout`` check precedes the stop
  check, so ``tout == tstop`` first returns success at ``tout``.
- The internal step budget applies per call and yields ``TOO_MUCH_WORK``.
- A recoverable callback failure restarts the stepper from the last accepted
  point with a quartered initial step, a bounded number of times.
- Event triggers are monitored by sign change over each search window and
  localized with ``scipy.optimize.brentq`` on the dense output. Components that
  start the window at exactly zero are ignored.
- Projection runs every ``proj_frequency`` accepted steps, either through the
  ``project`` callback (``proj_define``) or a built-in Gauss-Newton projection
  onto ``constraint(t, y) = 0`` (``proj_init``).

Notes:
    SciPy's steppers do not expose rejected error tests, so
    ``SolverStats.n_error_test_failures`` is always 0 and
    ``n_step_attempts`` counts accepted steps plus callback-driven retries.
    A projection or settings change restarts the stepper (history is lost).
"""

from __future__ import annotations

import logging
import warnings
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np
from scipy.integrate import BDF, LSODA
from scipy.linalg import lu_factor, lu_solve
from scipy.optimize import brentq

from .solver_api import (
    CallbackStatus,
    ConstraintKind,
    LinearMultistepMethod,
    NonlinearIteration,
    ProjectionFactorization,
    ProjectionNorm,
    SolverCallbacks,
    SolverStats,
    StepMode,
    StepResult,
    StepReturnCode,
)

if TYPE_CHECKING:
    from scipy.integrate import DenseOutput, OdeSolver

    from .state import FloatArray

_LOGGER = logging.getLogger(__name__)


# =============================================================================
# Constants / messages
# =============================================================================

_UNBOUNDED_TIME = 1.0e300
_DEFAULT_MAX_NUM_STEPS = 500
_DEFAULT_MAX_RETRIES = 10
_RETRY_STEP_FACTOR = 0.25
_DEFAULT_EPS_PROJ = 0.1
_MAX_PROJECTION_ITERATIONS = 5
_FD_REL_STEP = 1.0e-8
_ROUNDOFF_FACTOR = 100.0

_BDF_FUNCTIONAL_WARNING = (
    "SciPy's BDF stepper always uses Newton iteration; "
    "functional iteration was requested and is ignored"
)
_MIN_STEP_WARNING = (
    "min_step is only honoured by the Adams (LSODA) stepper; ignored for BDF"
)
_FACTORIZATION_WARNING = (
    "Projection factorization {requested} is not available; using LU"
)
_NOT_INITIALIZED_ERROR = "Solver has not been initialized"
_DKY_ORDER_ERROR = "Only k=0 dense output is supported, got k={k}"
_DKY_RANGE_ERROR = "t={t!r} is outside the last accepted step [{lo!r}, {hi!r}]"
_NEGATIVE_SETTING_ERROR = "{name} must be non-negative, got {value!r}"
_POSITIVE_SETTING_ERROR = "{name} must be positive, got {value!r}"


class _ProjectionMode(Enum):
    NONE = "none"
    CALLBACK = "callback"
    BUILT_IN = "built_in"


class _CallbackFailure(Exception):  # noqa: N818
    """Raised inside SciPy's stepper to abandon a step after a failed callback."""

    def __init__(self, status: int, code: StepReturnCode) -> None:
        super().__init__(f"callback returned status {status}")
        self.recoverable = status == CallbackStatus.RECOVERABLE_ERROR
        self.code = code


def _wrms(values: FloatArray) -> float:
    if values.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(values))))


class ScipyMultistepSolver:
    """MultistepSolver implementation backed by scipy.integrate BDF/LSODA."""

    def __init__(
        self,
        method: LinearMultistepMethod = LinearMultistepMethod.BDF,
        iteration: NonlinearIteration = NonlinearIteration.NEWTON,
        *,
        max_retries: int = _DEFAULT_MAX_RETRIES,
    ) -> None:
        """
        Initialize ScipyMultistepSolver.

        Args:
            method: Stepping family (BDF -> scipy BDF, ADAMS -> scipy LSODA).
            iteration: Nonlinear iteration. BDF always iterates with Newton.
            max_retries: Restarts allowed per step after recoverable callback
                failures before the step is reported as failed.
        """
        self.method = LinearMultistepMethod(method)
        self.iteration = NonlinearIteration(iteration)
        if (
            self.method is LinearMultistepMethod.BDF
            and self.iteration is NonlinearIteration.FUNCTIONAL
        ):
            warnings.warn(_BDF_FUNCTIONAL_WARNING, RuntimeWarning, stacklevel=2)
        self._max_retries = int(max_retries)

        self._callbacks: SolverCallbacks | None = None
        self._rtol = 1e-3
        self._atol = 1e-6
        self._t = 0.0
        self._y: FloatArray = np.zeros(0, dtype=np.float64)
        self._t_ret = 0.0

        # Optional settings
        self._init_step: float | None = None
        self._min_step = 0.0
        self._max_step = np.inf
        self._stop_time: float | None = None
        self._max_num_steps = _DEFAULT_MAX_NUM_STEPS
        self._proj_frequency = 1

        # Projection
        self._projection = _ProjectionMode.NONE
        self._proj_norm = ProjectionNorm.ERROR_NORM
        self._ctol: FloatArray = np.zeros(0, dtype=np.float64)

        # Roots
        self._n_roots = 0
        self._t_root_lo = 0.0
        self._g_lo: FloatArray | None = None
        self._root_info = np.zeros(0, dtype=np.int64)

        # Stepper / dense output
        self._stepper: OdeSolver | None = None
        self._stepper_bound = _UNBOUNDED_TIME
        self._stale = True
        self._restart_step: float | None = None
        self._dense: DenseOutput | None = None
        self._t_old: float | None = None

        self._reset_counters()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _reset_counters(self) -> None:
        self._n_steps = 0
        self._n_failed_attempts = 0
        self._n_rhs_evals = 0
        self._h_init_actual = 0.0
        self._h_last = 0.0

    def _seed(
        self,
        t0: float,
        y0: FloatArray,
        rtol: float,
        atol: float,
    ) -> int:
        y = np.array(y0, dtype=np.float64, copy=True).reshape(-1)
        if not (np.isfinite(rtol) and np.isfinite(atol)) or rtol < 0 or atol < 0:
            return int(StepReturnCode.ILL_INPUT)
        if not np.all(np.isfinite(y)):
            return int(StepReturnCode.ILL_INPUT)

        self._rtol = float(rtol)
        self._atol = float(atol)
        self._t = float(t0)
        self._y = y
        self._t_ret = self._t
        self._t_root_lo = self._t
        self._g_lo = None
        self._root_info = np.zeros(self._n_roots, dtype=np.int64)
        self._dense = None
        self._t_old = None
        self._stepper = None
        self._stale = True
        self._restart_step = None
        self._reset_counters()
        return int(StepReturnCode.SUCCESS)

    def init(
        self,
        callbacks: SolverCallbacks,
        t0: float,
        y0: FloatArray,
        yp0: FloatArray,  # noqa: ARG002
        rtol: float,
        atol: float,
    ) -> int:
        """
        Allocate solver state and seed it at (t0, y0).

        Args:
            callbacks: Callback object used for derivatives, constraints,
                projection and event triggers.
            t0: Initial time.
            y0: Initial continuous state.
            yp0: Initial derivative (SciPy re-evaluates it; accepted for protocol
                compatibility).
            rtol: Relative tolerance.
            atol: Absolute tolerance.

        Returns:
            StepReturnCode.SUCCESS, or ILL_INPUT for invalid tolerances/state.
        """
        self._callbacks = callbacks
        return self._seed(t0, y0, rtol, atol)

    def reinit(
        self,
        t0: float,
        y0: FloatArray,
        yp0: FloatArray,  # noqa: ARG002
        rtol: float,
        atol: float,
    ) -> int:
        """Re-seed at (t0, y0), keeping callbacks and optional settings."""
        if self._callbacks is None:
            return int(StepReturnCode.ILL_INPUT)
        return self._seed(t0, y0, rtol, atol)

    # ------------------------------------------------------------------
    # Optional settings
    # ------------------------------------------------------------------

    def set_init_step(self, h: float) -> None:
        """Set the initial step size (0 lets SciPy choose)."""
        if h < 0:
            raise ValueError(_NEGATIVE_SETTING_ERROR.format(name="init_step", value=h))
        self._init_step = float(h) if h > 0 else None
        self._stale = True

    def set_min_step(self, h: float) -> None:
        """Set the minimum step size (Adams/LSODA only)."""
        if h < 0:
            raise ValueError(_NEGATIVE_SETTING_ERROR.format(name="min_step", value=h))
        if self.method is LinearMultistepMethod.BDF and h > 0:
            warnings.warn(_MIN_STEP_WARNING, RuntimeWarning, stacklevel=2)
        self._min_step = float(h)
        self._stale = True

    def set_max_step(self, h: float) -> None:
        """Set the maximum step size (0 or inf means unbounded)."""
        if h < 0:
            raise ValueError(_NEGATIVE_SETTING_ERROR.format(name="max_step", value=h))
        self._max_step = float(h) if h > 0 else np.inf
        self._stale = True

    def set_stop_time(self, t: float) -> None:
        """Set the stop time honoured by the *_TSTOP step modes."""
        self._stop_time = float(t)
        self._stale = True

    def set_max_num_steps(self, n: int) -> None:
        """Set the internal step budget per step() call."""
        if n <= 0:
            raise ValueError(
                _POSITIVE_SETTING_ERROR.format(name="max_num_steps", value=n)
            )
        self._max_num_steps = int(n)

    def set_proj_frequency(self, n: int) -> None:
        """Project every n accepted steps (0 disables projection)."""
        if n < 0:
            raise ValueError(
                _NEGATIVE_SETTING_ERROR.format(name="proj_frequency", value=n)
            )
        self._proj_frequency = int(n)

    def set_dense_linear_solver(self, n: int) -> None:
        """Accept the dense linear-solver selection (SciPy's steppers are dense)."""
        if n < 0:
            raise ValueError(_NEGATIVE_SETTING_ERROR.format(name="n", value=n))

    # ------------------------------------------------------------------
    # Projection setup
    # ------------------------------------------------------------------

    def proj_init(
        self,
        norm: ProjectionNorm,
        kind: ConstraintKind,  # noqa: ARG002
        ctol: FloatArray,
    ) -> None:
        """
        Enable built-in projection onto constraint(t, y) = 0.

        Args:
            norm: Norm minimized by the correction.
            kind: Constraint linearity. Both kinds iterate Gauss-Newton.
            ctol: Per-constraint absolute tolerances.
        """
        self._projection = _ProjectionMode.BUILT_IN
        self._proj_norm = ProjectionNorm(norm)
        self._ctol = np.array(ctol, dtype=np.float64, copy=True).reshape(-1)

    def set_dense_projection_solver(
        self,
        nc: int,  # noqa: ARG002
        ny: int,  # noqa: ARG002
        factorization: ProjectionFactorization,
    ) -> None:
        """Select the dense factorization for built-in projection (LU only)."""
        factorization = ProjectionFactorization(factorization)
        if factorization is not ProjectionFactorization.LU:
            warnings.warn(
                _FACTORIZATION_WARNING.format(requested=factorization.name),
                RuntimeWarning,
                stacklevel=2,
            )

    def proj_define(self) -> None:
        """Enable projection through the callbacks' project method."""
        self._projection = _ProjectionMode.CALLBACK

    # ------------------------------------------------------------------
    # Roots
    # ------------------------------------------------------------------

    def root_init(self, n_roots: int) -> None:
        """Register n_roots event-trigger components (0 disables root finding)."""
        if n_roots < 0:
            raise ValueError(
                _NEGATIVE_SETTING_ERROR.format(name="n_roots", value=n_roots)
            )
        self._n_roots = int(n_roots)
        self._root_info = np.zeros(self._n_roots, dtype=np.int64)
        self._g_lo = None

    def get_root_info(self) -> np.ndarray:
        """Return +1/-1 for rising/falling triggers found at the last root return."""
        return self._root_info.copy()

    # ------------------------------------------------------------------
    # Callback wrappers
    # ------------------------------------------------------------------

    def _require_callbacks(self) -> SolverCallbacks:
        if self._callbacks is None:
            raise RuntimeError(_NOT_INITIALIZED_ERROR)
        return self._callbacks

    def _rhs(self, t: float, y: FloatArray) -> FloatArray:
        self._n_rhs_evals += 1
        status, ydot = self._require_callbacks().explicit_ode(t, y)
        if status != CallbackStatus.SUCCESS:
            raise _CallbackFailure(status, StepReturnCode.RHSFUNC_FAIL)
        return np.asarray(ydot, dtype=np.float64)

    def _g(self, t: float, y: FloatArray) -> FloatArray:
        status, g = self._require_callbacks().root(t, y)
        if status != CallbackStatus.SUCCESS:
            raise _CallbackFailure(status, StepReturnCode.RTFUNC_FAIL)
        return np.asarray(g, dtype=np.float64).reshape(-1)

    def _constraint(self, t: float, y: FloatArray) -> FloatArray:
        status, c = self._require_callbacks().constraint(t, y)
        if status != CallbackStatus.SUCCESS:
            raise _CallbackFailure(status, StepReturnCode.PROJFUNC_FAIL)
        return np.asarray(c, dtype=np.float64).reshape(-1)

    # ------------------------------------------------------------------
    # Time helpers
    # ------------------------------------------------------------------

    def _roundoff(self) -> float:
        return (
            _ROUNDOFF_FACTOR
            * np.finfo(np.float64).eps
            * (abs(self._t) + abs(self._h_last))
        )

    def _y_at(self, t: float) -> FloatArray:
        if t >= self._t or self._dense is None:
            return self._y.copy()
        return np.asarray(self._dense(t), dtype=np.float64)

    # ------------------------------------------------------------------
    # Stepper management
    # ------------------------------------------------------------------

    def _ensure_stepper(self, bound: float) -> OdeSolver:
        stepper = self._stepper
        if (
            stepper is not None
            and not self._stale
            and bound == self._stepper_bound
            and stepper.status == "running"
        ):
            return stepper

        kwargs: dict[str, float] = {
            "rtol": self._rtol,
            "atol": self._atol,
            "max_step": self._max_step,
        }
        first_step = self._restart_step or self._init_step
        span = bound - self._t
        if first_step is not None and span > 0:
            kwargs["first_step"] = min(first_step, span)

        if self.method is LinearMultistepMethod.ADAMS:
            kwargs["min_step"] = self._min_step
            stepper = LSODA(self._rhs, self._t, self._y.copy(), bound, **kwargs)
        else:
            stepper = BDF(self._rhs, self._t, self._y.copy(), bound, **kwargs)

        _LOGGER.debug(
            "Started %s stepper at t=%s (bound=%s, first_step=%s)",
            type(stepper).__name__,
            self._t,
            bound,
            kwargs.get("first_step"),
        )
        self._stepper = stepper
        self._stepper_bound = bound
        self._stale = False
        self._restart_step = None
        return stepper

    def _retry_step_size(self) -> float | None:
        base = self._h_last or self._init_step
        if base is None or base <= 0:
            return None
        return base * _RETRY_STEP_FACTOR

    def _advance_one_step(self, bound: float) -> StepReturnCode | None:
        """Take one accepted step; return None on success or a failure code."""
        retries = 0
        while True:
            try:
                stepper = self._ensure_stepper(bound)
                t_before = self._t
                message = stepper.step()
                if stepper.status == "failed":
                    _LOGGER.debug("Stepper failed at t=%s: %s", self._t, message)
                    self._stale = True
                    return StepReturnCode.ERR_FAILURE

                t_new = float(stepper.t)
                y_new = np.array(stepper.y, dtype=np.float64, copy=True)
                dense = stepper.dense_output()
                y_proj = self._maybe_project(t_new, y_new)
            except _CallbackFailure as failure:
                if not failure.recoverable:
                    self._stale = True
                    return failure.code
                retries += 1
                self._n_failed_attempts += 1
                if retries > self._max_retries:
                    self._stale = True
                    return (
                        StepReturnCode.REPTD_RHSFUNC_ERR
                        if failure.code is StepReturnCode.RHSFUNC_FAIL
                        else failure.code
                    )
                self._restart_step = self._retry_step_size()
                self._stale = True
                _LOGGER.debug(
                    "Recoverable callback failure near t=%s; retry %d with first_step=%s",
                    self._t,
                    retries,
                    self._restart_step,
                )
                continue

            self._n_steps += 1
            self._h_last = t_new - t_before
            if self._n_steps == 1:
                self._h_init_actual = self._h_last
            self._t_old = t_before
            self._dense = dense
            self._t = t_new
            self._y = y_proj
            if y_proj is not y_new:
                self._stale = True
                self._restart_step = self._h_last
            return None

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def _maybe_project(self, t: float, y: FloatArray) -> FloatArray:
        if self._projection is _ProjectionMode.NONE or self._proj_frequency == 0:
            return y
        if (self._n_steps + 1) % self._proj_frequency:
            return y

        if self._projection is _ProjectionMode.CALLBACK:
            status, ycorr, _ = self._require_callbacks().project(
                t,
                y,
                _DEFAULT_EPS_PROJ,
                np.zeros_like(y),
            )
            if status != CallbackStatus.SUCCESS:
                raise _CallbackFailure(status, StepReturnCode.PROJFUNC_FAIL)
            ycorr = np.asarray(ycorr, dtype=np.float64).reshape(-1)
            if not np.any(ycorr):
                return y
            return y + ycorr

        return self._built_in_projection(t, y)

    def _constraint_jacobian(self, t: float, y: FloatArray, c0: FloatArray) -> FloatArray:
        jac = np.empty((c0.size, y.size), dtype=np.float64)
        y_pert = y.copy()
        for j in range(y.size):
            h = _FD_REL_STEP * max(1.0, abs(float(y[j])))
            y_pert[j] = y[j] + h
            jac[:, j] = (self._constraint(t, y_pert) - c0) / h
            y_pert[j] = y[j]
        return jac

    def _built_in_projection(self, t: float, y: FloatArray) -> FloatArray:
        c = self._constraint(t, y)
        if c.size == 0 or _wrms(c / self._ctol) <= 1.0:
            return y

        if self._proj_norm is ProjectionNorm.ERROR_NORM:
            inv_w2 = np.square(self._rtol * np.abs(y) + self._atol)
        else:
            inv_w2 = np.ones_like(y)

        y_new = y.copy()
        for _ in range(_MAX_PROJECTION_ITERATIONS):
            jac = self._constraint_jacobian(t, y_new, c)
            lu = lu_factor((jac * inv_w2) @ jac.T, check_finite=False)
            y_new -= inv_w2 * (jac.T @ lu_solve(lu, c))
            c = self._constraint(t, y_new)
            if _wrms(c / self._ctol) <= 1.0:
                _LOGGER.debug("Built-in projection converged at t=%s", t)
                return y_new
        raise _CallbackFailure(
            CallbackStatus.RECOVERABLE_ERROR,
            StepReturnCode.PROJFUNC_FAIL,
        )

    # ------------------------------------------------------------------
    # Root localization
    # ------------------------------------------------------------------

    def _search_roots(self, t_hi: float) -> float | None:
        """Search (t_root_lo, t_hi] for trigger sign changes; return the root time."""
        if self._n_roots == 0 or t_hi <= self._t_root_lo:
            return None

        lo = self._t_root_lo
        if self._g_lo is None:
            self._g_lo = self._g(lo, self._y_at(lo))
        g_lo = self._g_lo
        g_hi = self._g(t_hi, self._y_at(t_hi))

        crossed = (g_lo != 0.0) & ((np.sign(g_lo) * np.sign(g_hi)) <= 0.0)
        if not np.any(crossed):
            self._t_root_lo = t_hi
            self._g_lo = g_hi
            return None

        ttol = max(self._roundoff(), np.finfo(np.float64).tiny)
        times = np.full(self._n_roots, np.inf)
        for i in np.flatnonzero(crossed):
            if g_hi[i] == 0.0:
                times[i] = t_hi
                continue
            times[i] = brentq(
                lambda s, idx=i: self._g(s, self._y_at(s))[idx],
                lo,
                t_hi,
                xtol=ttol / 4.0,
            )

        t_root = float(np.min(times))
        fired = crossed & (times <= t_root + ttol)
        info = np.zeros(self._n_roots, dtype=np.int64)
        info[fired] = np.where(g_hi[fired] > g_lo[fired], 1, -1)
        self._root_info = info

        self._t_root_lo = min(t_root + ttol, t_hi)
        self._g_lo = self._g(self._t_root_lo, self._y_at(self._t_root_lo))
        _LOGGER.debug(
            "Located root at t=%s for trigger(s) %s",
            t_root,
            np.flatnonzero(fired).tolist(),
        )
        return t_root

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def _check_return(
        self,
        tout: float,
        *,
        one_step: bool,
        use_stop_time: bool,
    ) -> StepResult | None:
        t_hi = self._t if one_step else min(self._t, tout)
        try:
            t_root = self._search_roots(t_hi)
        except _CallbackFailure as failure:
            return StepResult(int(failure.code), self._t, self._y.copy())
        if t_root is not None:
            return StepResult(
                int(StepReturnCode.ROOT_RETURN),
                t_root,
                self._y_at(t_root),
            )

        if not one_step and self._t >= tout:
            return StepResult(int(StepReturnCode.SUCCESS), tout, self._y_at(tout))

        if use_stop_time and self._stop_time is not None:
            if abs(self._t - self._stop_time) <= self._roundoff():
                return StepResult(
                    int(StepReturnCode.TSTOP_RETURN),
                    self._stop_time,
                    self._y.copy(),
                )

        if one_step and self._t > self._t_ret:
            return StepResult(int(StepReturnCode.SUCCESS), self._t, self._y.copy())
        return None

    def step(self, tout: float, mode: StepMode) -> StepResult:
        """
        Advance toward tout in the requested mode.

        Args:
            tout: Target output time.
            mode: Stepping mode.

        Returns:
            StepResult with a raw StepReturnCode value.
        """
        if self._callbacks is None:
            return StepResult(int(StepReturnCode.ILL_INPUT), self._t, self._y.copy())

        mode = StepMode(mode)
        one_step = mode.is_one_step
        use_stop_time = mode.uses_stop_time and self._stop_time is not None
        fuzz = self._roundoff()

        t_lo = self._t if self._t_old is None else self._t_old
        if not one_step and tout < t_lo - fuzz:
            return StepResult(int(StepReturnCode.BAD_T), self._t, self._y.copy())
        if use_stop_time and self._stop_time is not None and self._stop_time < self._t - fuzz:
            return StepResult(int(StepReturnCode.ILL_INPUT), self._t, self._y.copy())

        bound = (
            self._stop_time
            if use_stop_time and self._stop_time is not None
            else _UNBOUNDED_TIME
        )

        n_taken = 0
        while True:
            result = self._check_return(
                tout,
                one_step=one_step,
                use_stop_time=use_stop_time,
            )
            if result is not None:
                self._t_ret = result.t
                return result

            if n_taken >= self._max_num_steps:
                self._t_ret = self._t
                return StepResult(
                    int(StepReturnCode.TOO_MUCH_WORK),
                    self._t,
                    self._y.copy(),
                )

            failure = self._advance_one_step(bound)
            if failure is not None:
                return StepResult(int(failure), self._t, self._y.copy())
            n_taken += 1

    # ------------------------------------------------------------------
    # Dense output / step sizes / statistics
    # ------------------------------------------------------------------

    def get_dky(self, t: float, k: int = 0) -> FloatArray:
        """
        Interpolate y at t within the last accepted step.

        Args:
            t: Target time in [t_old, t_current].
            k: Derivative order (only 0 is supported).

        Returns:
            Interpolated continuous state.

        Raises:
            ValueError: if k != 0 or t lies outside the last accepted step.
        """
        if k != 0:
            raise ValueError(_DKY_ORDER_ERROR.format(k=k))
        fuzz = self._roundoff()
        lo = self._t if self._t_old is None else self._t_old
        if t < lo - fuzz or t > self._t + fuzz:
            raise ValueError(_DKY_RANGE_ERROR.format(t=t, lo=lo, hi=self._t))
        return self._y_at(t)

    def get_actual_init_step(self) -> float:
        """Size of the first accepted step since init/reinit."""
        return self._h_init_actual

    def get_last_step(self) -> float:
        """Size of the last accepted step."""
        return self._h_last

    def get_current_step(self) -> float:
        """Step size the stepper will attempt next (last step if unknown)."""
        h_abs = getattr(self._stepper, "h_abs", None)
        if h_abs is not None and not self._stale:
            return float(h_abs)
        return self._h_last

    def stats(self) -> SolverStats:
        """Return cumulative counters since init/reinit."""
        return SolverStats(
            n_steps=self._n_steps,
            n_step_attempts=self._n_steps + self._n_failed_attempts,
            n_error_test_failures=0,
            n_rhs_evals=self._n_rhs_evals,
        )


__all__ = ["ScipyMultistepSolver"]
