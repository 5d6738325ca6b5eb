"""odestep: report/event-oriented stepping of stateful systems on multistep ODE solvers."""

from __future__ import annotations

import logging

from .bridge import StateBridge
from .config import IntegratorConfig
from .errors import (
    InitializationFailedError,
    IntegratorError,
    IntegratorUsageError,
    ProjectionFailedError,
    StageNotRealizedError,
    StageRealizationError,
    StepFailedError,
)
from .events import EventTrigger, TriggeredEvents
from .integrator import (
    IntegratorSettings,
    MultistepIntegrator,
    MultistepMethod,
    StepCommunicationStatus,
    SuccessfulStepStatus,
    TerminationReason,
)
from .interpolation import StateInterpolator
from .scipy_solver import ScipyMultistepSolver
from .solver_api import (
    CallbackStatus,
    LinearMultistepMethod,
    MultistepSolver,
    NonlinearIteration,
    SolverCallbacks,
    SolverReturn,
    StepMode,
    StepResult,
    StepReturnCode,
)
from .stage import Stage
from .state import SystemState
from .system import OdeSystem, ProjectionOptions, SystemLike

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "CallbackStatus",
    "EventTrigger",
    "InitializationFailedError",
    "IntegratorConfig",
    "IntegratorError",
    "IntegratorSettings",
    "IntegratorUsageError",
    "LinearMultistepMethod",
    "MultistepIntegrator",
    "MultistepMethod",
    "MultistepSolver",
    "NonlinearIteration",
    "OdeSystem",
    "ProjectionFailedError",
    "ProjectionOptions",
    "ScipyMultistepSolver",
    "SolverCallbacks",
    "SolverReturn",
    "Stage",
    "StageNotRealizedError",
    "StageRealizationError",
    "StateBridge",
    "StateInterpolator",
    "StepCommunicationStatus",
    "StepFailedError",
    "StepMode",
    "StepResult",
    "StepReturnCode",
    "SuccessfulStepStatus",
    "SystemLike",
    "SystemState",
    "TerminationReason",
    "TriggeredEvents",
]

__version__ = "0.1.0"
