# tests/unit/test_validations.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import pytest

from statechart.core.errors import BuildError, ValidationError
from statechart.core.states import StateKind, StateNode
from statechart.core.transitions import Transition
from statechart.core.validations import Validator
from statechart.runtime.graph import ActiveConfigurationResolver


def _validate(root, validator=None):
    (validator or Validator()).validate_tree(root, ActiveConfigurationResolver(root))


def test_build_error_is_a_validation_error():
    assert issubclass(BuildError, ValidationError)


def test_compound_without_initial_child():
    root = StateNode("root", StateKind.COMPOUND)
    root.add_child(StateNode("a"))
    with pytest.raises(BuildError, match="no initial child"):
        _validate(root)


def test_empty_compound_and_parallel():
    root = StateNode("root", StateKind.COMPOUND)
    root.add_child(StateNode("c", StateKind.COMPOUND), initial=True)
    root.add_child(StateNode("p", StateKind.PARALLEL))
    with pytest.raises(BuildError) as exc_info:
        _validate(root)
    message = str(exc_info.value)
    assert "Compound state 'c' has no children" in message
    assert "Parallel state 'p' has no regions" in message


def test_on_done_requires_compound():
    root = StateNode("root", StateKind.COMPOUND)
    root.add_child(StateNode("a", on_done=[Transition("a")]), initial=True)
    with pytest.raises(BuildError, match="on_done"):
        _validate(root)


def test_static_targets_must_resolve():
    root = StateNode("root", StateKind.COMPOUND)
    root.add_child(StateNode("a", handlers={"GO": [Transition("b")]}), initial=True)
    with pytest.raises(BuildError, match="Target 'b'"):
        _validate(root)
    root.add_child(StateNode("b"))
    _validate(root)


def test_dynamic_targets_are_not_checked():
    root = StateNode("root", StateKind.COMPOUND)
    root.add_child(StateNode("a", handlers={"GO": [Transition(lambda ctx: "zzz")]}), initial=True)
    _validate(root)


def test_custom_rule():
    def no_x(root, resolver):
        return [f"'{n.path_id}' is forbidden" for n in root.walk() if n.id == "x"]

    root = StateNode("root", StateKind.COMPOUND)
    root.add_child(StateNode("x"), initial=True)
    with pytest.raises(BuildError, match="'x' is forbidden"):
        _validate(root, Validator(rules=[no_x]))


def test_event_domain():
    root = StateNode("root", StateKind.COMPOUND)
    root.add_child(StateNode("a", handlers={"GO": [Transition("a")]}), initial=True)
    Validator().validate_event_domain(root, None)
    Validator().validate_event_domain(root, {"GO"})
    with pytest.raises(BuildError):
        Validator().validate_event_domain(root, {"STOP"})
