"""Error types for odestep.

This module centralizes:
- explicit error classes with actionable messages, and
- small helpers that raise them with a consistent format.

Taxonomy:
- StageRealizationError: the simulated system could not compute a stage. Inside
  a solver callback this is downgraded to a recoverable status and never reaches
  the caller.
- InitializationFailedError: the solver could not be seeded; integration never
  starts.
- StepFailedError: the solver returned a fatal result while stepping.
- IntegratorUsageError: the integrator was driven in a way its contract forbids.
"""

from __future__ import annotations

from typing import Final

_STEP_FAILED_MSG: Final[str] = "Integration step failed at t={time!r} (solver code {code})"
_INIT_FAILED_MSG: Final[str] = "Integrator initialization failed at t={time!r}"
_USAGE_MSG: Final[str] = "{method}: {detail}"


class IntegratorError(Exception):
    """Base exception for odestep errors."""


class StageRealizationError(IntegratorError, ValueError):
    """Raised by a simulated system when a computation stage cannot be realized."""


class ProjectionFailedError(StageRealizationError):
    """Raised when manifold projection does not reach the requested tolerance."""


class StageNotRealizedError(IntegratorError, RuntimeError):
    """Raised when a derived quantity is read before its stage was realized."""


class IntegratorUsageError(IntegratorError, RuntimeError):
    """Raised when an integrator method is called in violation of its contract."""


class InitializationFailedError(IntegratorError, RuntimeError):
    """Raised when the external solver cannot be initialized.

    Attributes:
        time: Simulation time at which initialization was attempted.
        code: Raw solver return code, or None if the failure happened before
            the solver was consulted.
    """

    def __init__(self, msg: str, *, time: float, code: int | None = None) -> None:
        super().__init__(msg)
        self.time = float(time)
        self.code = code


class StepFailedError(IntegratorError, RuntimeError):
    """Raised when the external solver reports a fatal failure while stepping.

    Attributes:
        time: Advanced State time when the failure was detected.
        code: Raw solver return code.
    """

    def __init__(self, msg: str, *, time: float, code: int | None = None) -> None:
        super().__init__(msg)
        self.time = float(time)
        self.code = code


def raise_step_failed(*, time: float, code: int | None, detail: str | None = None) -> None:
    """Raise a standardized StepFailedError.

    Args:
        time: Advanced State time at the failure.
        code: Raw solver return code.
        detail: Optional additional context.

    Raises:
        StepFailedError: Always.
    """
    msg = _STEP_FAILED_MSG.format(time=float(time), code=code)
    if detail:
        msg = f"{msg}: {detail}"
    raise StepFailedError(msg, time=time, code=code)


def raise_initialization_failed(
    *,
    time: float,
    code: int | None = None,
    detail: str | None = None,
) -> None:
    """Raise a standardized InitializationFailedError.

    Args:
        time: Time at which initialization was attempted.
        code: Raw solver return code, if the solver rejected initialization.
        detail: Optional additional context.

    Raises:
        InitializationFailedError: Always.
    """
    parts = [_INIT_FAILED_MSG.format(time=float(time))]
    if code is not None:
        parts.append(f"(solver code {code})")
    if detail:
        parts.append(f"- {detail}")
    raise InitializationFailedError(" ".join(parts), time=time, code=code)


def raise_usage_error(method: str, detail: str) -> None:
    """Raise a standardized IntegratorUsageError.

    Args:
        method: Name of the integrator method whose contract was violated.
        detail: Human-readable description of the violation.

    Raises:
        IntegratorUsageError: Always.
    """
    raise IntegratorUsageError(_USAGE_MSG.format(method=method, detail=detail))


__all__ = [
    "InitializationFailedError",
    "IntegratorError",
    "IntegratorUsageError",
    "ProjectionFailedError",
    "StageNotRealizedError",
    "StageRealizationError",
    "StepFailedError",
    "raise_initialization_failed",
    "raise_step_failed",
    "raise_usage_error",
]
