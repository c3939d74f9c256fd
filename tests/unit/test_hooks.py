# tests/unit/test_hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import MagicMock

from statechart.core.hooks import HookManager, HookProtocol
from statechart.core.states import StateNode


def test_hook_manager():
    hook = MagicMock()
    state = StateNode("idle")
    hm = HookManager(hooks=[hook])
    hm.execute_on_enter(state)
    hook.on_enter.assert_called_once_with(state)
    hm.execute_on_exit(state)
    hook.on_exit.assert_called_once_with(state)
    err = Exception("TestError")
    hm.execute_on_error(err)
    hook.on_error.assert_called_once_with(err)


def test_hook_manager_register():
    hm = HookManager()
    hook = MagicMock()
    hm.register_hook(hook)
    assert hm.hooks == [hook]


def test_hook_with_partial_methods_is_skipped_where_missing():
    class EnterOnly:
        def __init__(self):
            self.seen = []

        def on_enter(self, state):
            self.seen.append(state.id)

    hook = EnterOnly()
    hm = HookManager([hook])
    hm.execute_on_enter(StateNode("a"))
    hm.execute_on_exit(StateNode("a"))
    hm.execute_on_error(RuntimeError("boom"))
    assert hook.seen == ["a"]


def test_recording_hook_satisfies_protocol(recording_hook):
    assert isinstance(recording_hook, HookProtocol)
