"""Event Set construction and event-identification hooks.

When the solver reports a root return, the integrator reads which trigger
components fired, passes their indices through an event-identification policy
(which may filter or remap them to the caller's own ids) and records the result
as a :class:`TriggeredEvents` window. Every member gets the returned time as its
trigger time and the ``ANY_SIGN_CHANGE`` transition.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import numpy.typing as npt


class EventTrigger(Enum):
    """Transition classification of a triggered event."""

    NO_EVENT_TRIGGER = "no_event_trigger"
    POSITIVE_TO_NEGATIVE = "positive_to_negative"
    NEGATIVE_TO_POSITIVE = "negative_to_positive"
    FALLING_EDGE = "falling_edge"
    RISING_EDGE = "rising_edge"
    ANY_SIGN_CHANGE = "any_sign_change"


@dataclass(slots=True, frozen=True)
class TriggeredEvents:
    """
    Events detected in one step window.

    Attributes:
        window_start: Advanced time at the start of the solver call.
        window_end: Time returned by the solver (the trigger time).
        event_ids: Event ids after the identification policy.
        event_times: Trigger time per id.
        transitions: Transition classification per id.
    """

    window_start: float
    window_end: float
    event_ids: tuple[int, ...] = ()
    event_times: tuple[float, ...] = ()
    transitions: tuple[EventTrigger, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.event_ids)


EventIdPolicy = Callable[[list[int]], list[int]]
EventSink = Callable[[TriggeredEvents], None]


def identity_event_ids(event_ids: list[int]) -> list[int]:
    """Default identification policy: trigger index == event id."""
    return list(event_ids)


def fired_indices(root_info: npt.ArrayLike) -> list[int]:
    """Return the trigger indices whose root flag is non-zero.

    Both rising (+1) and falling (-1) crossings count as fired, not only
    flags equal to +1. Direction-specific filtering belongs in the event id
    policy, which receives every fired index.
    """
    flags = np.asarray(root_info).reshape(-1)
    return [int(i) for i in np.flatnonzero(flags)]


def build_triggered_events(
    window_start: float,
    window_end: float,
    event_ids: Sequence[int],
) -> TriggeredEvents:
    """
    Assemble the Event Set for a root return.

    Args:
        window_start: Advanced time at the start of the solver call.
        window_end: Returned (trigger) time.
        event_ids: Identified event ids.

    Returns:
        TriggeredEvents with one ANY_SIGN_CHANGE entry per id at window_end.
    """
    ids = tuple(int(i) for i in event_ids)
    return TriggeredEvents(
        window_start=float(window_start),
        window_end=float(window_end),
        event_ids=ids,
        event_times=(float(window_end),) * len(ids),
        transitions=(EventTrigger.ANY_SIGN_CHANGE,) * len(ids),
    )


__all__ = [
    "EventIdPolicy",
    "EventSink",
    "EventTrigger",
    "TriggeredEvents",
    "build_triggered_events",
    "fired_indices",
    "identity_event_ids",
]
