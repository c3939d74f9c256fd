# statechart/core/validations.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

from statechart.core.errors import BuildError
from statechart.core.states import StateKind, StateNode

if TYPE_CHECKING:
    from statechart.runtime.graph import ActiveConfigurationResolver

Rule = Callable[[StateNode, "ActiveConfigurationResolver"], List[str]]


class Validator:
    """
    Performs construction-time validation of a statechart tree, ensuring nodes
    and transitions conform to the structural rules. Extra rules may be added;
    each returns a list of problem descriptions.
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None) -> None:
        """
        :param rules: Additional rules run after the default ones.
        """
        self._rules_engine = _ValidationRulesEngine(list(rules or []))

    def add_rule(self, rule: Rule) -> None:
        self._rules_engine.add_rule(rule)

    def validate_tree(self, root: StateNode, resolver: "ActiveConfigurationResolver") -> None:
        """
        Check the tree's structure and static targets.

        :raises BuildError: Listing every problem found.
        """
        problems = self._rules_engine.collect(root, resolver)
        if problems:
            raise BuildError("; ".join(problems))

    def validate_event_domain(self, root: StateNode, events: Optional[Iterable[str]]) -> None:
        """
        Ensure every handled event type belongs to the declared domain.

        :raises BuildError: If a node handles an undeclared event type.
        """
        if events is None:
            return
        domain = set(events)
        problems = []
        for node in root.walk():
            for event_type in node.handlers:
                if event_type not in domain:
                    problems.append(f"'{node.path_id or '<root>'}' handles undeclared event '{event_type}'")
        if problems:
            raise BuildError("; ".join(problems))


class _ValidationRulesEngine:
    """
    Internal engine applying the default rules followed by any custom ones.
    """

    def __init__(self, rules: List[Rule]) -> None:
        self._rules: List[Rule] = [
            _DefaultValidationRules.check_structure,
            _DefaultValidationRules.check_static_targets,
        ]
        self._rules.extend(rules)

    def add_rule(self, rule: Rule) -> None:
        self._rules.append(rule)

    def collect(self, root: StateNode, resolver: "ActiveConfigurationResolver") -> List[str]:
        problems: List[str] = []
        for rule in self._rules:
            problems.extend(rule(root, resolver))
        return problems


class _DefaultValidationRules:
    """
    Built-in rules: compound nodes need children and exactly one initial child,
    parallel nodes need regions, the root is not atomic, and every static
    transition target resolves.
    """

    @staticmethod
    def check_structure(root: StateNode, resolver: "ActiveConfigurationResolver") -> List[str]:
        problems: List[str] = []
        if root.is_atomic:
            problems.append("The root state must declare child states")
        for node in root.walk():
            label = node.path_id or "<root>"
            if node.kind is StateKind.COMPOUND:
                if not node.children:
                    problems.append(f"Compound state '{label}' has no children")
                elif node.initial_child is None:
                    problems.append(f"Compound state '{label}' has no initial child")
            elif node.kind is StateKind.PARALLEL and not node.children:
                problems.append(f"Parallel state '{label}' has no regions")
            if node.on_done and node.kind is not StateKind.COMPOUND:
                problems.append(f"'on_done' is only supported on compound states ('{label}')")
        return problems

    @staticmethod
    def check_static_targets(root: StateNode, resolver: "ActiveConfigurationResolver") -> List[str]:
        problems: List[str] = []
        for node in root.walk():
            candidates = [t for ts in node.handlers.values() for t in ts]
            candidates.extend(node.on_done)
            if node.after is not None:
                candidates.append(node.after)
            for transition in candidates:
                if isinstance(transition.target, str) and resolver.resolve_target(transition.target, node) is None:
                    problems.append(
                        f"Target '{transition.target}' of '{node.path_id or '<root>'}' does not resolve to a state"
                    )
        return problems
