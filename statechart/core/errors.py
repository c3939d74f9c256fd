# statechart/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details


class StatechartError(Exception):
    """
    Base exception class for errors within the statechart library.
    """


class ValidationError(StatechartError):
    """
    Raised when validation detects configuration or runtime constraints violations.
    """


class BuildError(ValidationError):
    """
    Raised while building a machine from its description: missing or ambiguous
    initial states, unresolved static targets, malformed node descriptions.
    The machine is unusable when this is raised.
    """


class TransitionError(StatechartError):
    """
    Raised when an attempted state transition cannot be completed.
    """


class GuardError(TransitionError):
    """
    Raised when a guard predicate throws during event dispatch.
    """


class ActionError(TransitionError):
    """
    Raised when a transition action or an entry/exit action throws.
    Already-applied exits, entries and context mutations are not rolled back.
    """


class UnknownTargetError(TransitionError):
    """
    Raised when a dynamic or action-returned target does not resolve to a node.
    """


class RestoreError(StatechartError):
    """
    Raised when a snapshot cannot be applied to a machine.
    """


class MachineStateError(StatechartError):
    """
    Raised when an operation is invalid for the machine's lifecycle stage,
    such as dispatching before ``start``.
    """
