"""
Asymmetric hysteresis between STANDING and WALKING.

Entering WALKING takes k_on consecutive WALKING labels, leaving it takes k_off
consecutive STANDING labels, with k_on < k_off by default so that a single
missed step during a stumble does not drop assistance. A label of the other
kind zeroes the opposing counter immediately.
"""

import logging
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Tuple

logger = logging.getLogger(__name__)

K_ON = 3
K_OFF = 5


class Label(IntEnum):
    """Classifier output and control command."""
    STANDING = 0
    WALKING = 1


@dataclass(frozen=True)
class FSMState:
    current: Label = Label.STANDING
    walk_counter: int = 0
    stand_counter: int = 0


def step(state: FSMState, label: Label, k_on: int = K_ON, k_off: int = K_OFF) -> Tuple[FSMState, bool]:
    """
    Pure transition function.

    Returns:
        (next_state, transitioned)
    """
    if not isinstance(label, Label):
        raise TypeError(f"FSM input must be a Label, got {label!r}")

    if label is Label.WALKING:
        state = replace(state, walk_counter=state.walk_counter + 1, stand_counter=0)
    else:
        state = replace(state, stand_counter=state.stand_counter + 1, walk_counter=0)

    if state.current is Label.STANDING and state.walk_counter >= k_on:
        return replace(state, current=Label.WALKING, stand_counter=0), True
    if state.current is Label.WALKING and state.stand_counter >= k_off:
        return replace(state, current=Label.STANDING, walk_counter=0), True
    return state, False


class HysteresisStateMachine:
    """
    Owns one FSMState and advances it one classifier label at a time.

    The state only changes through consume() or an explicit reset().
    """

    def __init__(self, k_on: int = K_ON, k_off: int = K_OFF):
        if k_on < 1 or k_off < 1:
            raise ValueError(f"k_on and k_off must be positive, got {k_on}, {k_off}")
        self.k_on = k_on
        self.k_off = k_off
        self._state = FSMState()

    @property
    def state(self) -> FSMState:
        return self._state

    @property
    def command(self) -> Label:
        return self._state.current

    def consume(self, label: Label) -> Tuple[Label, bool]:
        """Feed one label; returns (command, transitioned)."""
        previous = self._state.current
        self._state, transitioned = step(self._state, label, self.k_on, self.k_off)
        if transitioned:
            logger.info(f"FSM Transition: {previous.name} -> {self._state.current.name}")
        return self._state.current, transitioned

    def reset(self) -> None:
        self._state = FSMState()
