"""Unit tests for odestep error types and raise helpers."""

from __future__ import annotations

import pytest

from odestep.errors import (
    InitializationFailedError,
    IntegratorError,
    IntegratorUsageError,
    ProjectionFailedError,
    StageNotRealizedError,
    StageRealizationError,
    StepFailedError,
    raise_initialization_failed,
    raise_step_failed,
    raise_usage_error,
)


@pytest.mark.parametrize(
    ("error_type", "builtin"),
    [
        (StageRealizationError, ValueError),
        (ProjectionFailedError, ValueError),
        (StageNotRealizedError, RuntimeError),
        (IntegratorUsageError, RuntimeError),
        (InitializationFailedError, RuntimeError),
        (StepFailedError, RuntimeError),
    ],
)
def test_errors_share_a_base_and_a_builtin(
    error_type: type[Exception],
    builtin: type[Exception],
) -> None:
    """Callers may catch either IntegratorError or the matching builtin."""
    assert issubclass(error_type, IntegratorError)
    assert issubclass(error_type, builtin)


def test_raise_step_failed_carries_time_and_code() -> None:
    """The message names the time, the raw code and any detail."""
    with pytest.raises(StepFailedError) as excinfo:
        raise_step_failed(time=1.5, code=-3, detail="error test failed")

    err = excinfo.value
    assert err.time == 1.5
    assert err.code == -3
    assert str(err) == (
        "Integration step failed at t=1.5 (solver code -3): error test failed"
    )


def test_raise_initialization_failed_without_code() -> None:
    """A failure before the solver was consulted has no code."""
    with pytest.raises(InitializationFailedError, match="at t=0.0 - no ydot") as excinfo:
        raise_initialization_failed(time=0.0, detail="no ydot")

    assert excinfo.value.code is None


def test_raise_initialization_failed_with_code() -> None:
    """A rejected seed reports the solver code."""
    with pytest.raises(InitializationFailedError, match=r"\(solver code -22\)"):
        raise_initialization_failed(time=2.0, code=-22)


def test_raise_usage_error_prefixes_method_name() -> None:
    """Usage errors read '<method>: <detail>'."""
    with pytest.raises(IntegratorUsageError, match="^step_to: too early$"):
        raise_usage_error("step_to", "too early")
