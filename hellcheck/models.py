"""Hellcheck — Runtime Data Models.

Values that flow through the engine:
  - State: the two-valued health classification of a checker
  - StateMessage: one probe observation, produced by a probe loop
  - Notification: a confirmed state change, handed to a notifier backend
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class State(enum.Enum):
    """Health classification of a checker."""

    UP = "up"
    DOWN = "down"

    @property
    def is_up(self) -> bool:
        return self is State.UP

    def __str__(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class StateMessage:
    """An observation emitted by a probe loop to the reactor."""

    checker_id: str
    state: State


@dataclass(frozen=True)
class Notification:
    """A state change to deliver through one notifier backend.

    Attributes:
        checker_id: Identifier of the checker whose state changed.
        checker_url: The checker's URL rendered as text.
        state: The new state.
    """

    checker_id: str
    checker_url: str
    state: State
