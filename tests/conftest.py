# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import List

import pytest

from statechart.core.states import StateNode
from statechart.runtime.timers import ManualTimerBackend


class RecordingHook:
    """Hook implementation recording lifecycle calls by state path."""

    def __init__(self):
        self.entered: List[str] = []
        self.exited: List[str] = []
        self.errors: List[Exception] = []

    def on_enter(self, state: StateNode) -> None:
        self.entered.append(state.path_id)

    def on_exit(self, state: StateNode) -> None:
        self.exited.append(state.path_id)

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)


@pytest.fixture
def clock():
    """A virtual clock; timers only fire when the test advances it."""
    return ManualTimerBackend()


@pytest.fixture
def recording_hook():
    return RecordingHook()


@pytest.fixture
def traffic_light_description():
    """Four-state traffic light cycling on timers, with a STOP request while green."""

    def show(colour):
        def entry(context):
            context["light"] = colour

        return entry

    return {
        "context": {
            "light": None,
            "timeout_periods": {"stop": 5000, "prepareToGo": 2000, "waitingToStop": 3000},
        },
        "events": ["STOP", "PING"],
        "initial": "stop",
        "states": {
            "stop": {
                "entry": show("red"),
                "after": {"delay": lambda ctx: ctx["timeout_periods"]["stop"], "target": "prepareToGo"},
            },
            "prepareToGo": {
                "entry": show("red+amber"),
                "after": {"delay": lambda ctx: ctx["timeout_periods"]["prepareToGo"], "target": "go"},
            },
            "go": {
                "entry": show("green"),
                "on": {"STOP": "waitingToStop"},
            },
            "waitingToStop": {
                "entry": show("amber"),
                "after": {"delay": lambda ctx: ctx["timeout_periods"]["waitingToStop"], "target": "stop"},
            },
        },
    }


@pytest.fixture
def climate_description():
    """Two parallel regions: power and temperature."""
    return {
        "context": {"switches": 0},
        "parallel": True,
        "states": {
            "power": {
                "initial": "off",
                "states": {
                    "off": {"on": {"TURN_ON": "on"}},
                    "on": {
                        "on": {
                            "TURN_OFF": {
                                "target": "off",
                                "action": lambda ctx: ctx.update(switches=ctx["switches"] + 1),
                            }
                        }
                    },
                },
            },
            "temperature": {
                "initial": "cold",
                "states": {
                    "cold": {"on": {"HEAT": "hot", "TOGGLE": "hot"}},
                    "hot": {"on": {"COOL": "cold", "TOGGLE": "cold"}},
                },
            },
        },
    }
