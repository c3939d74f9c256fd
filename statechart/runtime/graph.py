# statechart/runtime/graph.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""Active-configuration queries over a statechart tree."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from statechart.core.states import StateKind, StateNode

ActiveState = Dict[str, Union["ActiveState", bool]]


class ActiveConfigurationResolver:
    """
    Computes which nodes must become active for a target, which must become
    inactive for a transition, and reports the current active configuration.

    The resolver never mutates flags; :class:`~statechart.core.states.StateNode`
    ``enter``/``exit`` apply what it computes.
    """

    def __init__(self, root: StateNode) -> None:
        self._root = root
        self._index: Dict[str, StateNode] = {node.path_id: node for node in root.walk()}

    @property
    def root(self) -> StateNode:
        return self._root

    def find(self, path_id: str) -> Optional[StateNode]:
        """Look up a node by its absolute dotted path (``""`` is the root)."""
        return self._index.get(path_id)

    def resolve_target(self, ref: str, source: StateNode) -> Optional[StateNode]:
        """
        Resolve a target reference as seen from ``source``.

        ``#a.b`` is absolute from the root, ``.a.b`` is relative to ``source``
        itself; otherwise the dotted path is tried below each ancestor of
        ``source``, innermost first, so siblings shadow more distant states.
        """
        if not ref:
            return None
        if ref.startswith("#"):
            return self._descend(self._root, ref[1:])
        if ref.startswith("."):
            return self._descend(source, ref[1:])
        for scope in source.ancestors():
            node = self._descend(scope, ref)
            if node is not None:
                return node
        if source is self._root:
            return self._descend(self._root, ref)
        return None

    @staticmethod
    def _descend(scope: StateNode, dotted: str) -> Optional[StateNode]:
        if not dotted:
            return scope
        node: Optional[StateNode] = scope
        for part in dotted.split("."):
            node = node.child(part) if node is not None else None
            if node is None:
                return None
        return node

    @staticmethod
    def path_from_root(node: StateNode) -> List[StateNode]:
        """Nodes from just below the root down to ``node``, outermost first."""
        chain = [node]
        chain.extend(node.ancestors())
        chain.pop()
        chain.reverse()
        return chain

    def nearest_common_compound_ancestor(self, source: StateNode, target: StateNode) -> Optional[StateNode]:
        """
        Innermost compound proper ancestor of ``source`` that also contains
        ``target``. Parallel nodes are skipped: their regions move independently.
        """
        for ancestor in source.ancestors():
            if ancestor.kind is not StateKind.COMPOUND:
                continue
            if target is ancestor or target.is_descendant_of(ancestor):
                return ancestor
        return None

    def exit_set(self, source: StateNode, target: StateNode) -> List[StateNode]:
        """
        Topmost nodes to exit for a transition from ``source`` to ``target``.

        A self-transition exits the source. A transition to an ancestor exits
        only that ancestor's active children. A transition into the source's own
        subtree exits nothing up front. Otherwise the child of the nearest
        common compound ancestor (or of the root) on the source's side exits.
        """
        if target is source:
            return [source]
        if source.is_descendant_of(target):
            return [child for child in target.children if child.active]
        if target.is_descendant_of(source):
            return []
        domain = self.nearest_common_compound_ancestor(source, target) or self._root
        for node in [source, *source.ancestors()]:
            if node.parent is domain:
                return [node] if node.active else []
        return []

    def exit_path(self, source: StateNode) -> List[StateNode]:
        """``source`` and its active descendants, deepest first."""
        if not source.active:
            return []
        ordered: List[StateNode] = []
        for child in reversed(source.children):
            ordered.extend(self.exit_path(child))
        ordered.append(source)
        return ordered

    def entry_path(self, target: StateNode) -> List[StateNode]:
        """
        Nodes that entering ``target`` would activate, in entry order: the chain
        from below the nearest active ancestor down to ``target``, sibling
        regions of any parallel node on that chain, then ``target``'s default
        descendants.
        """
        chain: List[StateNode] = []
        node: Optional[StateNode] = target
        while node is not None and not node.active:
            chain.append(node)
            node = node.parent
        chain.reverse()
        ordered: List[StateNode] = []
        if chain:
            self._collect(chain[0], chain[1:], ordered)
        else:
            self._collect(target, [], ordered)
        return ordered

    def _collect(self, node: StateNode, path: List[StateNode], ordered: List[StateNode]) -> None:
        if not node.active:
            ordered.append(node)
        next_node = path[0] if path else None
        if node.kind is StateKind.COMPOUND:
            child = next_node or (node.active_child if node.active else None) or node.initial_child
            self._collect(child, path[1:], ordered)
        elif node.kind is StateKind.PARALLEL:
            for region in node.children:
                self._collect(region, path[1:] if region is next_node else [], ordered)

    def complete_configuration(self, targets: List[StateNode]) -> List[StateNode]:
        """
        The full configuration containing every node in ``targets``: their
        ancestors, then default descendants wherever a compound node has no
        requested child and every region of each parallel node. Flags are
        ignored, so this describes a configuration built from nothing.

        :return: Nodes in document order, root included; empty for no targets.
        :raises ValueError: If two targets need different children of one compound node.
        """
        if not targets:
            return []
        requested: Dict[int, StateNode] = {}
        for target in targets:
            for node in [target, *target.ancestors()]:
                requested[id(node)] = node
        for node in requested.values():
            if node.kind is StateKind.COMPOUND:
                chosen = [child.id for child in node.children if id(child) in requested]
                if len(chosen) > 1:
                    raise ValueError(f"Conflicting children {chosen} requested for '{node.path_id or '<root>'}'")

        ordered: List[StateNode] = []

        def fill(node: StateNode) -> None:
            ordered.append(node)
            if node.kind is StateKind.COMPOUND:
                chosen = [child for child in node.children if id(child) in requested]
                fill(chosen[0] if chosen else node.initial_child)
            elif node.kind is StateKind.PARALLEL:
                for region in node.children:
                    fill(region)

        fill(self._root)
        return ordered

    def active_nodes(self) -> List[StateNode]:
        """Every active node below the root, in document order."""
        return [node for node in self._root.walk() if node is not self._root and node.active]

    def active_leaves(self) -> List[StateNode]:
        """Active atomic nodes in document order."""
        return [node for node in self._root.walk() if node.active and node.is_atomic]

    def configuration(self, node: Optional[StateNode] = None) -> ActiveState:
        """
        Nested view of activity mirroring the tree: compound and parallel nodes
        map child ids to their own nested view, atomic nodes to a boolean.
        """
        node = node or self._root
        result: ActiveState = {}
        for child in node.children:
            if child.is_atomic:
                result[child.id] = child.active
            else:
                result[child.id] = self.configuration(child)
        return result

    def state_value(self, node: Optional[StateNode] = None) -> Any:
        """
        Compact view: a compound node yields its active child's id (or a
        one-entry mapping when that child has children), a parallel node yields
        a mapping of every region.
        """
        node = node or self._root
        if node.kind is StateKind.PARALLEL:
            return {region.id: self.state_value(region) for region in node.children}
        if node.kind is StateKind.COMPOUND:
            child = node.active_child
            if child is None:
                return None
            if child.is_atomic:
                return child.id
            return {child.id: self.state_value(child)}
        return None

    def validate_configuration(self) -> List[str]:
        """
        Check the active flags form valid root-to-leaf paths.

        :return: Human-readable problems, empty when consistent.
        """
        problems: List[str] = []
        if not self._root.active:
            if any(node.active for node in self._root.walk()):
                problems.append("Inactive root has active descendants")
            return problems
        for node in self._root.walk():
            if not node.active:
                for child in node.children:
                    if child.active:
                        problems.append(f"'{child.path_id}' is active under inactive '{node.path_id}'")
                continue
            active_children = [child for child in node.children if child.active]
            label = node.path_id or "<root>"
            if node.kind is StateKind.COMPOUND and len(active_children) != 1:
                problems.append(f"Compound '{label}' has {len(active_children)} active children")
            if node.kind is StateKind.PARALLEL and len(active_children) != len(node.children):
                problems.append(f"Parallel '{label}' has inactive regions")
        return problems
