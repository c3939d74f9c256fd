# tests/unit/runtime/test_graph.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import Mock

import pytest

from statechart.core.builder import build_tree
from statechart.runtime.graph import ActiveConfigurationResolver


@pytest.fixture
def tree():
    """
    root (compound, initial=work)
      work (compound, initial=edit)
        edit
        review (parallel)
          checks (compound, initial=pending): pending, passed
          approvals (compound, initial=waiting): waiting, approved
      archived
    """
    return build_tree(
        {
            "initial": "work",
            "states": {
                "work": {
                    "initial": "edit",
                    "states": {
                        "edit": {},
                        "review": {
                            "parallel": True,
                            "states": {
                                "checks": {"initial": "pending", "states": {"pending": {}, "passed": {}}},
                                "approvals": {"initial": "waiting", "states": {"waiting": {}, "approved": {}}},
                            },
                        },
                    },
                },
                "archived": {},
            },
        }
    )


@pytest.fixture
def resolver(tree):
    return ActiveConfigurationResolver(tree)


def _ids(nodes):
    return [node.path_id for node in nodes]


def test_find(resolver, tree):
    assert resolver.find("") is tree
    assert resolver.find("work.review.checks.passed").id == "passed"
    assert resolver.find("nope") is None


def test_resolve_target_scopes(resolver):
    pending = resolver.find("work.review.checks.pending")
    assert resolver.resolve_target("passed", pending).path_id == "work.review.checks.passed"
    assert resolver.resolve_target("approvals.approved", pending).path_id == "work.review.approvals.approved"
    assert resolver.resolve_target("archived", pending).path_id == "archived"
    assert resolver.resolve_target("#work.edit", pending).path_id == "work.edit"
    assert resolver.resolve_target("missing", pending) is None


def test_resolve_target_relative_to_source(resolver):
    work = resolver.find("work")
    assert resolver.resolve_target(".review.checks", work).path_id == "work.review.checks"
    assert resolver.resolve_target(".archived", work) is None


def test_resolve_target_from_root(resolver, tree):
    assert resolver.resolve_target("archived", tree).path_id == "archived"


def test_sibling_shadows_distant_state():
    root = build_tree(
        {
            "initial": "a",
            "states": {
                "a": {"initial": "x", "states": {"x": {}, "idle": {}}},
                "idle": {},
            },
        }
    )
    resolver = ActiveConfigurationResolver(root)
    assert resolver.resolve_target("idle", resolver.find("a.x")).path_id == "a.idle"
    assert resolver.resolve_target("#idle", resolver.find("a.x")).path_id == "idle"


def test_path_from_root(resolver, tree):
    assert _ids(resolver.path_from_root(resolver.find("work.review.checks"))) == [
        "work",
        "work.review",
        "work.review.checks",
    ]
    assert resolver.path_from_root(tree) == []


def test_entry_path_from_nothing(resolver):
    assert _ids(resolver.entry_path(resolver.find("work.review.approvals.approved"))) == [
        "",
        "work",
        "work.review",
        "work.review.checks",
        "work.review.checks.pending",
        "work.review.approvals",
        "work.review.approvals.approved",
    ]


def test_entry_path_stops_at_active_ancestor(resolver, tree):
    tree.enter({}, Mock())
    assert _ids(resolver.entry_path(resolver.find("work.review"))) == [
        "work.review",
        "work.review.checks",
        "work.review.checks.pending",
        "work.review.approvals",
        "work.review.approvals.waiting",
    ]


def test_exit_path_is_deepest_first(resolver, tree):
    tree.enter({}, Mock(), resolver.path_from_root(resolver.find("work.review")))
    assert _ids(resolver.exit_path(resolver.find("work"))) == [
        "work.review.approvals.waiting",
        "work.review.approvals",
        "work.review.checks.pending",
        "work.review.checks",
        "work.review",
        "work",
    ]
    assert resolver.exit_path(resolver.find("archived")) == []


def test_nearest_common_compound_ancestor_skips_parallel(resolver):
    pending = resolver.find("work.review.checks.pending")
    passed = resolver.find("work.review.checks.passed")
    waiting = resolver.find("work.review.approvals.waiting")
    assert resolver.nearest_common_compound_ancestor(pending, passed).path_id == "work.review.checks"
    assert resolver.nearest_common_compound_ancestor(pending, waiting).path_id == "work"
    assert resolver.nearest_common_compound_ancestor(pending, resolver.find("archived")).path_id == ""


def test_exit_set_rules(resolver, tree):
    tree.enter({}, Mock(), resolver.path_from_root(resolver.find("work.review")))
    pending = resolver.find("work.review.checks.pending")
    # self-transition
    assert _ids(resolver.exit_set(pending, pending)) == ["work.review.checks.pending"]
    # sibling within a region
    assert _ids(resolver.exit_set(pending, resolver.find("work.review.checks.passed"))) == [
        "work.review.checks.pending"
    ]
    # across regions: bounded by the compound above the parallel node
    assert _ids(resolver.exit_set(pending, resolver.find("work.review.approvals.approved"))) == ["work.review"]
    # to an ancestor: only its active children
    assert _ids(resolver.exit_set(pending, resolver.find("work.review.checks"))) == ["work.review.checks.pending"]
    assert _ids(resolver.exit_set(pending, resolver.find("work"))) == ["work.review"]
    # into the source's own subtree
    assert resolver.exit_set(resolver.find("work"), pending) == []
    # out to the root's other child
    assert _ids(resolver.exit_set(pending, resolver.find("archived"))) == ["work"]


def test_configuration_and_state_value(resolver, tree):
    assert resolver.configuration() == {
        "work": {
            "edit": False,
            "review": {
                "checks": {"pending": False, "passed": False},
                "approvals": {"waiting": False, "approved": False},
            },
        },
        "archived": False,
    }
    assert resolver.state_value() is None
    tree.enter({}, Mock(), resolver.path_from_root(resolver.find("work.review")))
    assert resolver.configuration()["work"]["review"]["checks"] == {"pending": True, "passed": False}
    assert resolver.state_value() == {"work": {"review": {"checks": "pending", "approvals": "waiting"}}}
    assert _ids(resolver.active_leaves()) == ["work.review.checks.pending", "work.review.approvals.waiting"]
    assert "work" in _ids(resolver.active_nodes())


def test_validate_configuration(resolver, tree):
    assert resolver.validate_configuration() == []
    tree.enter({}, Mock())
    assert resolver.validate_configuration() == []
    resolver.find("archived").activate()
    assert resolver.validate_configuration() == ["Compound '<root>' has 2 active children"]


def test_complete_configuration(resolver):
    nodes = resolver.complete_configuration([resolver.find("work.review.approvals.approved")])
    assert _ids(nodes) == [
        "",
        "work",
        "work.review",
        "work.review.checks",
        "work.review.checks.pending",
        "work.review.approvals",
        "work.review.approvals.approved",
    ]
    assert resolver.complete_configuration([]) == []


def test_complete_configuration_conflict(resolver):
    with pytest.raises(ValueError, match="Conflicting"):
        resolver.complete_configuration([resolver.find("archived"), resolver.find("work.edit")])
