"""Multistep integrator: step controller and lifecycle around an external solver.

:class:`MultistepIntegrator` owns the Advanced State of a simulated system and
advances it by commanding a :class:`~odestep.solver_api.MultistepSolver`. Each
call to :meth:`MultistepIntegrator.step_to` returns exactly one
:class:`SuccessfulStepStatus`:

- START_OF_CONTINUOUS_INTERVAL: first call after an interval start; no progress.
- REACHED_REPORT_TIME: the requested report time was reached (report wins ties
  with a scheduled event when report_time <= scheduled_event_time).
- REACHED_SCHEDULED_EVENT: the scheduled event time was reached. If the solver
  overshot it, the Advanced State is rewound to the event time exactly and the
  overshoot is kept for the next call.
- REACHED_EVENT_TRIGGER: an event-trigger function changed sign.
- REACHED_STEP_LIMIT: the solver's internal step budget ran out (resumable).
- END_OF_SIMULATION: the configured final time was reached.
- TIME_HAS_ADVANCED: one internal step was taken (return_every_internal_step).

When the solver returns before the caller has "consumed" its result (report
time or scheduled event inside the last internal step), the result is kept as a
:class:`PendingResult`; the next call resumes from it instead of stepping.

Solver-facing failures are typed:
    - InitializationFailedError: no initial derivative, or the solver refused
      its seed.
    - StepFailedError: the solver returned a fatal code while stepping.
    - IntegratorUsageError: calls that violate the stepping contract.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TypeAlias

import numpy as np

from .bridge import StateBridge
from .errors import (
    IntegratorUsageError,
    StageRealizationError,
    raise_initialization_failed,
    raise_step_failed,
    raise_usage_error,
)
from .events import (
    EventIdPolicy,
    EventSink,
    TriggeredEvents,
    build_triggered_events,
    fired_indices,
    identity_event_ids,
)
from .interpolation import StateInterpolator
from .scipy_solver import ScipyMultistepSolver
from .solver_api import (
    CallbackStatus,
    ConstraintKind,
    LinearMultistepMethod,
    MultistepSolver,
    NonlinearIteration,
    ProjectionFactorization,
    ProjectionNorm,
    SolverReturn,
    SolverStats,
    StepMode,
    StepReturnCode,
)
from .stage import Stage

if TYPE_CHECKING:
    from .state import FloatArray, SystemState
    from .system import SystemLike

_LOGGER = logging.getLogger(__name__)


# =============================================================================
# Errors / messages
# =============================================================================

_NOT_INITIALIZED_MSG = "integrator has not been initialized"
_SIMULATION_OVER_MSG = "simulation is over ({reason})"
_REPORT_TIME_MSG = "report_time={report!r} is earlier than current time {current!r}"
_EVENT_TIME_MSG = (
    "scheduled_event_time={event!r} is earlier than current time {current!r}"
)
_PROJECTION_AFTER_INIT_MSG = (
    "may not be invoked after the integrator has been initialized"
)
_YDOT_FAILED_MSG = "failed to calculate ydot"
_SOLVER_INIT_MSG = "solver init() failed"
_SOLVER_REINIT_MSG = "solver reinit() failed"
_REALIZE_FAILED_MSG = "could not realize state: {error}"


# =============================================================================
# Enumerations
# =============================================================================


class SuccessfulStepStatus(Enum):
    """Outcome of one step_to / step_by call."""

    START_OF_CONTINUOUS_INTERVAL = "start_of_continuous_interval"
    REACHED_REPORT_TIME = "reached_report_time"
    REACHED_SCHEDULED_EVENT = "reached_scheduled_event"
    REACHED_EVENT_TRIGGER = "reached_event_trigger"
    REACHED_STEP_LIMIT = "reached_step_limit"
    END_OF_SIMULATION = "end_of_simulation"
    TIME_HAS_ADVANCED = "time_has_advanced"


class TerminationReason(Enum):
    """Why the simulation ended."""

    REACHED_FINAL_TIME = "reached_final_time"
    REACHED_TERMINATION_EVENT = "reached_termination_event"


class StepCommunicationStatus(Enum):
    """What the most recent step outcome communicated to the caller."""

    INVALID = "invalid"
    STEP_RETURNED_NO_EVENT = "step_returned_no_event"
    STEP_RETURNED_WITH_EVENT = "step_returned_with_event"
    FINAL_TIME_RETURNED = "final_time_returned"


# =============================================================================
# Configuration dataclasses
# =============================================================================


@dataclass(slots=True, frozen=True)
class IntegratorSettings:
    """
    User settings pushed into the solver at initialization.

    Optional values left as None keep the solver's own default.

    Attributes:
        accuracy: Relative tolerance.
        absolute_tolerance: Absolute tolerance (defaults to accuracy).
        constraint_tolerance: Projection tolerance (defaults to accuracy).
        initial_step_size: Initial step size.
        min_step_size: Minimum step size.
        max_step_size: Maximum step size.
        final_time: Hard stop time; reaching it ends the simulation.
        internal_step_limit: Internal step budget per step_to call.
        return_every_internal_step: Return TIME_HAS_ADVANCED after every step.
        project_every_step: Force projection after every accepted step.
        use_internal_projection: Use the solver's built-in projection instead
            of the system's own.
    """

    accuracy: float = 1e-3
    absolute_tolerance: float | None = None
    constraint_tolerance: float | None = None
    initial_step_size: float | None = None
    min_step_size: float | None = None
    max_step_size: float | None = None
    final_time: float | None = None
    internal_step_limit: int | None = None
    return_every_internal_step: bool = False
    project_every_step: bool | None = None
    use_internal_projection: bool = False


@dataclass(slots=True, frozen=True)
class MultistepMethod:
    """
    Method/iteration selection, immutable once the integrator is built.

    Attributes:
        family: BDF or ADAMS.
        iteration: Nonlinear iteration; None selects Newton for BDF and
            functional iteration for Adams.
    """

    family: LinearMultistepMethod = LinearMultistepMethod.BDF
    iteration: NonlinearIteration | None = None

    @property
    def resolved_iteration(self) -> NonlinearIteration:
        """Iteration strategy with the family default applied."""
        if self.iteration is not None:
            return self.iteration
        if self.family is LinearMultistepMethod.ADAMS:
            return NonlinearIteration.FUNCTIONAL
        return NonlinearIteration.NEWTON

    @property
    def name(self) -> str:
        """Human-readable method name."""
        if self.family is LinearMultistepMethod.BDF:
            return "MultistepBDF"
        return "MultistepAdams"

    @property
    def min_order(self) -> int:
        """Lowest order the method may use."""
        return 1

    @property
    def max_order(self) -> int:
        """Highest order the method may use."""
        return 5 if self.family is LinearMultistepMethod.BDF else 12

    @property
    def has_error_control(self) -> bool:
        """Whether the method controls local error."""
        return True


@dataclass(slots=True, frozen=True)
class PendingResult:
    """
    Solver result returned to the caller but not yet consumed.

    Attributes:
        code: Resolved solver return.
        raw_code: Raw integer from the solver.
        time: Time the solver returned.
        saved_y: Overshoot vector saved when the Advanced State was rewound to a
            scheduled event, else None.
    """

    code: SolverReturn
    raw_code: int
    time: float
    saved_y: FloatArray | None = None


SolverFactory: TypeAlias = Callable[
    [LinearMultistepMethod, NonlinearIteration],
    MultistepSolver,
]


def _add_stats(a: SolverStats, b: SolverStats, sign: int = 1) -> SolverStats:
    return SolverStats(
        n_steps=a.n_steps + sign * b.n_steps,
        n_step_attempts=a.n_step_attempts + sign * b.n_step_attempts,
        n_error_test_failures=a.n_error_test_failures + sign * b.n_error_test_failures,
        n_rhs_evals=a.n_rhs_evals + sign * b.n_rhs_evals,
    )


# =============================================================================
# Integrator
# =============================================================================


class MultistepIntegrator:
    """Report/event-oriented stepping on top of a black-box multistep solver."""

    def __init__(
        self,
        system: SystemLike,
        *,
        method: MultistepMethod | None = None,
        settings: IntegratorSettings | None = None,
        solver_factory: SolverFactory | None = None,
        event_id_policy: EventIdPolicy | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        """
        Initialize MultistepIntegrator.

        Args:
            system: Simulated system whose states are advanced.
            method: Method/iteration selection (default BDF/Newton).
            settings: Tolerances, step bounds and stepping options.
            solver_factory: Builds a MultistepSolver for (family, iteration);
                defaults to ScipyMultistepSolver.
            event_id_policy: Filters/remaps fired trigger indices to event ids.
            event_sink: Optional callable notified of every Event Set.
        """
        self._system = system
        self._method = method or MultistepMethod()
        self._settings = settings or IntegratorSettings()
        self._solver_factory: SolverFactory = solver_factory or ScipyMultistepSolver
        self._event_id_policy: EventIdPolicy = event_id_policy or identity_event_ids
        self._event_sink = event_sink

        self._solver = self._solver_factory(
            self._method.family,
            self._method.resolved_iteration,
        )
        self._bridge = StateBridge(self, system)
        self._interpolator = StateInterpolator(self._solver)

        self._initialized = False
        self._use_internal_projection = self._settings.use_internal_projection

        self._advanced: SystemState | None = None
        self._interpolated: SystemState | None = None
        self._use_interpolated = False
        self._pending: PendingResult | None = None
        self._previous_start_time = 0.0
        self._start_of_interval = False

        self._triggered: TriggeredEvents | None = None
        self._comm_status = StepCommunicationStatus.INVALID
        self._termination_reason: TerminationReason | None = None

        self._stats_accumulated = SolverStats()
        self._stats_baseline = SolverStats()

    # ------------------------------------------------------------------
    # Configuration accessors
    # ------------------------------------------------------------------

    @property
    def system(self) -> SystemLike:
        """Simulated system driven by this integrator."""
        return self._system

    @property
    def method(self) -> MultistepMethod:
        """Method/iteration currently in use."""
        return self._method

    @property
    def settings(self) -> IntegratorSettings:
        """User settings."""
        return self._settings

    @property
    def solver(self) -> MultistepSolver:
        """External solver instance currently in use."""
        return self._solver

    @property
    def is_initialized(self) -> bool:
        """True once initialize() has seeded the solver."""
        return self._initialized

    @property
    def accuracy_in_use(self) -> float:
        """Relative tolerance handed to the solver."""
        return self._settings.accuracy

    @property
    def absolute_tolerance_in_use(self) -> float:
        """Absolute tolerance handed to the solver."""
        atol = self._settings.absolute_tolerance
        return self._settings.accuracy if atol is None else atol

    @property
    def constraint_tolerance_in_use(self) -> float:
        """Tolerance used for manifold projection."""
        ctol = self._settings.constraint_tolerance
        return self._settings.accuracy if ctol is None else ctol

    @property
    def uses_internal_projection(self) -> bool:
        """True when the solver's built-in projection is selected."""
        return self._use_internal_projection

    def set_use_internal_projection(self) -> None:
        """
        Select the solver's built-in projection.

        Raises:
            IntegratorUsageError: if called after initialization.
        """
        if self._initialized:
            raise_usage_error("set_use_internal_projection", _PROJECTION_AFTER_INIT_MSG)
        self._use_internal_projection = True

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def advanced_state(self) -> SystemState:
        """Authoritative Advanced State (mutable; reinitialize after edits)."""
        advanced = self._advanced
        if advanced is None:
            raise IntegratorUsageError(f"advanced_state: {_NOT_INITIALIZED_MSG}")
        return advanced

    @property
    def interpolated_state(self) -> SystemState | None:
        """Most recent Interpolated State, if one was built."""
        return self._interpolated

    @property
    def is_state_interpolated(self) -> bool:
        """True when state refers to the Interpolated State."""
        return self._use_interpolated

    @property
    def state(self) -> SystemState:
        """Interpolated State when active, else the Advanced State."""
        if self._use_interpolated and self._interpolated is not None:
            return self._interpolated
        return self.advanced_state

    @property
    def time(self) -> float:
        """Time of the state the caller should read."""
        return self.state.time

    @property
    def advanced_time(self) -> float:
        """Time of the Advanced State."""
        return self.advanced_state.time

    @property
    def previous_time(self) -> float:
        """Advanced time at the start of the most recent fresh solver call."""
        return self._previous_start_time

    @property
    def triggered_events(self) -> TriggeredEvents | None:
        """Event Set from the most recent REACHED_EVENT_TRIGGER outcome."""
        return self._triggered

    @property
    def step_communication_status(self) -> StepCommunicationStatus:
        """What the most recent outcome communicated."""
        return self._comm_status

    @property
    def termination_reason(self) -> TerminationReason | None:
        """Why the simulation ended, or None while it is running."""
        return self._termination_reason

    @property
    def is_simulation_over(self) -> bool:
        """True once a termination reason has been recorded."""
        return self._termination_reason is not None

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _require_initialized(self, method: str) -> None:
        if not self._initialized:
            raise_usage_error(method, _NOT_INITIALIZED_MSG)

    def _fold_solver_stats(self) -> None:
        self._stats_accumulated = _add_stats(
            self._stats_accumulated,
            self._solver.stats(),
        )

    def _stats_since_reset(self) -> SolverStats:
        total = _add_stats(self._stats_accumulated, self._solver.stats())
        return _add_stats(total, self._stats_baseline, sign=-1)

    def reset_method_statistics(self) -> None:
        """Zero the step counters reported by n_steps_* accessors."""
        self._stats_baseline = _add_stats(self._stats_accumulated, self._solver.stats())

    @property
    def n_steps_taken(self) -> int:
        """Accepted internal steps since the last statistics reset."""
        self._require_initialized("n_steps_taken")
        return self._stats_since_reset().n_steps

    @property
    def n_steps_attempted(self) -> int:
        """Attempted internal steps since the last statistics reset."""
        self._require_initialized("n_steps_attempted")
        return self._stats_since_reset().n_step_attempts

    @property
    def n_error_test_failures(self) -> int:
        """Local error-test failures since the last statistics reset."""
        self._require_initialized("n_error_test_failures")
        return self._stats_since_reset().n_error_test_failures

    @property
    def actual_initial_step_size_taken(self) -> float:
        """Size of the first step the solver accepted."""
        self._require_initialized("actual_initial_step_size_taken")
        return self._solver.get_actual_init_step()

    @property
    def previous_step_size_taken(self) -> float:
        """Size of the most recent accepted step."""
        self._require_initialized("previous_step_size_taken")
        return self._solver.get_last_step()

    @property
    def predicted_next_step_size(self) -> float:
        """Step size the solver will attempt next."""
        self._require_initialized("predicted_next_step_size")
        return self._solver.get_current_step()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, state: SystemState) -> None:
        """
        Start a run from a copy of state.

        Args:
            state: Initial snapshot (copied into the Advanced State).

        Raises:
            InitializationFailedError: if the initial derivative cannot be
                computed or the solver rejects its seed.
        """
        self._advanced = state.copy()
        self._interpolated = None
        self._use_interpolated = False
        self._triggered = None
        self._comm_status = StepCommunicationStatus.INVALID
        self._termination_reason = None

        self._method_initialize(self._advanced)
        self._start_of_interval = True
        self.reset_method_statistics()

    def reinitialize(self, stage: Stage, *, should_terminate: bool = False) -> None:
        """
        Re-seed the solver after the Advanced State was modified.

        Args:
            stage: Lowest stage invalidated by the modification. Values below
                Stage.REPORT re-seed the solver from the Advanced State; if the
                Advanced State fell below Stage.MODEL the solver is rebuilt.
            should_terminate: End the simulation (termination event).

        Raises:
            IntegratorUsageError: if called before initialize().
            InitializationFailedError: if re-seeding fails.
        """
        self._require_initialized("reinitialize")
        if should_terminate:
            self._termination_reason = TerminationReason.REACHED_TERMINATION_EVENT
            self._comm_status = StepCommunicationStatus.FINAL_TIME_RETURNED

        if Stage(stage) >= Stage.REPORT:
            return

        self._use_interpolated = False
        self._pending = None
        advanced = self.advanced_state
        if advanced.stage < Stage.MODEL:
            self._method_initialize(advanced)
            return

        try:
            self._system.realize(advanced, Stage.ACCELERATION)
        except StageRealizationError as exc:
            raise_initialization_failed(
                time=advanced.time,
                detail=_REALIZE_FAILED_MSG.format(error=exc),
            )

        self._fold_solver_stats()
        code = self._solver.reinit(
            advanced.time,
            np.array(advanced.y, copy=True),
            np.array(advanced.ydot, copy=True),
            self.accuracy_in_use,
            self.absolute_tolerance_in_use,
        )
        if code != StepReturnCode.SUCCESS:
            raise_initialization_failed(
                time=advanced.time,
                code=code,
                detail=_SOLVER_REINIT_MSG,
            )
        _LOGGER.info("Re-seeded %s at t=%s", self._method.name, advanced.time)

    def start_continuous_interval(self) -> None:
        """Make the next step_to return START_OF_CONTINUOUS_INTERVAL."""
        self._start_of_interval = True

    def _reconstruct_for_new_model(self) -> None:
        self._initialized = False
        self._fold_solver_stats()
        self._method = MultistepMethod(
            LinearMultistepMethod.BDF,
            NonlinearIteration.NEWTON,
        )
        self._solver = self._solver_factory(
            self._method.family,
            self._method.resolved_iteration,
        )
        self._interpolator.solver = self._solver
        _LOGGER.info("Rebuilt solver for new model (%s)", self._method.name)

    def _push_settings(self) -> None:
        s = self._settings
        if s.initial_step_size is not None:
            self._solver.set_init_step(s.initial_step_size)
        if s.min_step_size is not None:
            self._solver.set_min_step(s.min_step_size)
        if s.max_step_size is not None:
            self._solver.set_max_step(s.max_step_size)
        if s.final_time is not None:
            self._solver.set_stop_time(s.final_time)
        if s.internal_step_limit is not None:
            self._solver.set_max_num_steps(s.internal_step_limit)
        if s.project_every_step:
            self._solver.set_proj_frequency(1)

    def _method_initialize(self, state: SystemState) -> None:
        if state.stage < Stage.MODEL and self._initialized:
            self._reconstruct_for_new_model()
        self._push_settings()
        self._initialized = True
        self._pending = None
        self._previous_start_time = state.time

        try:
            self._system.realize(state, Stage.VELOCITY)
        except StageRealizationError as exc:
            raise_initialization_failed(
                time=state.time,
                detail=_REALIZE_FAILED_MSG.format(error=exc),
            )

        y0 = np.array(state.y, copy=True)
        status, ydot = self._bridge.explicit_ode(state.time, y0)
        if status != CallbackStatus.SUCCESS:
            raise_initialization_failed(time=state.time, detail=_YDOT_FAILED_MSG)

        code = self._solver.init(
            self._bridge,
            state.time,
            y0,
            ydot,
            self.accuracy_in_use,
            self.absolute_tolerance_in_use,
        )
        if code != StepReturnCode.SUCCESS:
            raise_initialization_failed(
                time=state.time,
                code=code,
                detail=_SOLVER_INIT_MSG,
            )

        self._solver.set_dense_linear_solver(state.n_y)
        if self._use_internal_projection:
            ctol = self.constraint_tolerance_in_use * np.asarray(
                self._system.calc_yerr_unit_tolerances(state),
                dtype=np.float64,
            )
            self._solver.proj_init(
                ProjectionNorm.ERROR_NORM,
                ConstraintKind.NONLINEAR,
                ctol,
            )
            self._solver.set_dense_projection_solver(
                state.n_yerr,
                state.n_y,
                ProjectionFactorization.LU,
            )
        else:
            self._solver.proj_define()
        self._solver.root_init(state.n_events)

        _LOGGER.info(
            "Initialized %s at t=%s (n_y=%d, n_yerr=%d, n_events=%d, rtol=%g, atol=%g)",
            self._method.name,
            state.time,
            state.n_y,
            state.n_yerr,
            state.n_events,
            self.accuracy_in_use,
            self.absolute_tolerance_in_use,
        )

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def _realize_derivatives(self, state: SystemState, code: int | None) -> None:
        try:
            self._system.realize(state, Stage.ACCELERATION)
        except StageRealizationError as exc:
            raise_step_failed(
                time=state.time,
                code=code,
                detail=_REALIZE_FAILED_MSG.format(error=exc),
            )

    def _finish(
        self,
        status: SuccessfulStepStatus,
        comm: StepCommunicationStatus | None,
        *,
        tret: float | None = None,
        ceiling: float | None = None,
    ) -> SuccessfulStepStatus:
        if comm is not None:
            self._comm_status = comm
        _LOGGER.debug(
            "step_to -> %s (t=%s, returned=%s, ceiling=%s, interpolated=%s)",
            status.name,
            self.time,
            tret,
            ceiling,
            self._use_interpolated,
        )
        return status

    def _check_step_request(
        self,
        method: str,
        report_time: float,
        scheduled_event_time: float | None,
    ) -> None:
        self._require_initialized(method)
        if self._termination_reason is not None:
            raise_usage_error(
                method,
                _SIMULATION_OVER_MSG.format(reason=self._termination_reason.value),
            )
        if report_time < self.time:
            raise_usage_error(
                method,
                _REPORT_TIME_MSG.format(report=report_time, current=self.time),
            )
        if (
            scheduled_event_time is not None
            and scheduled_event_time > 0
            and scheduled_event_time < self.time
        ):
            raise_usage_error(
                method,
                _EVENT_TIME_MSG.format(event=scheduled_event_time, current=self.time),
            )

    def step_to(
        self,
        report_time: float,
        scheduled_event_time: float | None = None,
    ) -> SuccessfulStepStatus:
        """
        Advance until the report time, a scheduled event, a trigger or a limit.

        Args:
            report_time: Time at which the caller wants control back.
            scheduled_event_time: Time of a known time-triggered event. None or a
                non-positive value means there is none.

        Returns:
            The single outcome of this call.

        Raises:
            IntegratorUsageError: if the request violates the stepping contract.
            StepFailedError: if the solver fails or the returned state cannot be
                realized.
        """
        self._check_step_request("step_to", report_time, scheduled_event_time)

        if self._start_of_interval:
            self._start_of_interval = False
            return self._finish(SuccessfulStepStatus.START_OF_CONTINUOUS_INTERVAL, None)

        event_time = (
            math.inf
            if scheduled_event_time is None or scheduled_event_time <= 0
            else float(scheduled_event_time)
        )
        t_max = min(report_time, event_time)
        mode = StepMode.select(
            one_step=self._settings.return_every_internal_step,
            use_stop_time=self._settings.final_time is not None,
        )
        advanced = self.advanced_state

        while True:
            if self._pending is None:
                self._previous_start_time = advanced.time
                result = self._solver.step(t_max, mode)
                raw_code = int(result.code)
                code = SolverReturn.from_code(raw_code)
                tret = float(result.t)
                advanced.set_y(result.y)
            else:
                pending = self._pending
                raw_code = pending.raw_code
                code = pending.code
                tret = pending.time
                if pending.saved_y is not None:
                    advanced.set_y(pending.saved_y)
                self._pending = None

            advanced.time = tret
            self._realize_derivatives(advanced, raw_code)

            if code is SolverReturn.STEP_LIMIT_REACHED:
                return self._finish(
                    SuccessfulStepStatus.REACHED_STEP_LIMIT,
                    StepCommunicationStatus.STEP_RETURNED_NO_EVENT,
                    tret=tret,
                    ceiling=t_max,
                )
            if code.is_failure:
                raise_step_failed(time=advanced.time, code=raw_code)

            if tret > t_max:
                interpolated = self._interpolator.build(
                    advanced,
                    t_max,
                    lower=self._previous_start_time,
                    upper=tret,
                )
                self._realize_derivatives(interpolated, raw_code)
                self._interpolated = interpolated
                self._use_interpolated = True
            else:
                self._use_interpolated = False

            if tret >= report_time and report_time <= event_time:
                self._pending = PendingResult(code, raw_code, tret)
                return self._finish(
                    SuccessfulStepStatus.REACHED_REPORT_TIME,
                    StepCommunicationStatus.STEP_RETURNED_NO_EVENT,
                    tret=tret,
                    ceiling=t_max,
                )

            if tret >= event_time:
                saved_y = None
                if tret > event_time and self._interpolated is not None:
                    saved_y = np.array(advanced.y, copy=True)
                    advanced.set_y(self._interpolated.y)
                    advanced.time = event_time
                    self._realize_derivatives(advanced, raw_code)
                self._pending = PendingResult(code, raw_code, tret, saved_y)
                return self._finish(
                    SuccessfulStepStatus.REACHED_SCHEDULED_EVENT,
                    StepCommunicationStatus.STEP_RETURNED_WITH_EVENT,
                    tret=tret,
                    ceiling=t_max,
                )

            if code is SolverReturn.STOP_TIME_REACHED:
                self._termination_reason = TerminationReason.REACHED_FINAL_TIME
                return self._finish(
                    SuccessfulStepStatus.END_OF_SIMULATION,
                    StepCommunicationStatus.FINAL_TIME_RETURNED,
                    tret=tret,
                    ceiling=t_max,
                )

            if code is SolverReturn.ROOT_FOUND:
                fired = fired_indices(self._solver.get_root_info())
                event_ids = self._event_id_policy(fired)
                triggered = build_triggered_events(
                    self._previous_start_time,
                    tret,
                    event_ids,
                )
                self._triggered = triggered
                if self._event_sink is not None:
                    self._event_sink(triggered)
                return self._finish(
                    SuccessfulStepStatus.REACHED_EVENT_TRIGGER,
                    StepCommunicationStatus.STEP_RETURNED_WITH_EVENT,
                    tret=tret,
                    ceiling=t_max,
                )

            if self._settings.return_every_internal_step:
                return self._finish(
                    SuccessfulStepStatus.TIME_HAS_ADVANCED,
                    StepCommunicationStatus.STEP_RETURNED_NO_EVENT,
                    tret=tret,
                    ceiling=t_max,
                )

    def step_by(
        self,
        interval: float,
        scheduled_event_time: float | None = None,
    ) -> SuccessfulStepStatus:
        """Call step_to(time + interval, scheduled_event_time)."""
        self._require_initialized("step_by")
        return self.step_to(self.time + interval, scheduled_event_time)


__all__ = [
    "IntegratorSettings",
    "MultistepIntegrator",
    "MultistepMethod",
    "PendingResult",
    "SolverFactory",
    "StepCommunicationStatus",
    "SuccessfulStepStatus",
    "TerminationReason",
]
