#!/usr/bin/env python3
"""
Tests for forward call tree extraction.

Test Categories:
1. Cycle handling: first-visit-wins truncation, self-calls, mutual recursion
2. Tree shape: sibling multiplicity, node-count property, nested functions
3. Resolution: interface labels, ambiguous call sites, external targets
4. Dependency index: counts per run, reset between runs
5. Edge cases: unknown root, unbound call sites, very deep chains
"""

import asyncio
import sys
import os
from typing import Any, Dict, List

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from method_drill.analysis.call_graph import CallGraphBuilder
from method_drill.analysis.resolver import ImplementationResolver
from method_drill.core.interfaces import DisambiguationOracle, MethodNotFoundError, ProviderUnavailableError
from method_drill.core.models import MethodDescriptor
from method_drill.index.codebase_index import CodebaseIndex


# ============================================================================
# TEST DATA helpers
# ============================================================================

def method_entry(
    alias: str,
    calls: List[Any] = (),
    name: str = None,
    class_name: str = "Service",
    namespace: str = "App",
    project: str = "App.Core",
    **extra
) -> Dict[str, Any]:
    """Snapshot entry for one method; plain strings in calls are target aliases."""
    entry = {
        "id": alias,
        "name": name or alias.upper(),
        "class_name": class_name,
        "namespace": namespace,
        "project": project,
        "calls": [
            call if isinstance(call, dict) else {"target": call, "text": f"{call}()"}
            for call in calls
        ],
    }
    entry.update(extra)
    return entry


def build_index(*methods, implementations=None) -> CodebaseIndex:
    return CodebaseIndex.from_dict({"methods": list(methods), "implementations": implementations or {}})


def make_builder(index: CodebaseIndex, oracle: DisambiguationOracle = None) -> CallGraphBuilder:
    return CallGraphBuilder(index, ImplementationResolver(index, oracle))


async def extract(index: CodebaseIndex, alias: str, oracle: DisambiguationOracle = None):
    builder = make_builder(index, oracle)
    root = await index.get_descriptor(alias)
    tree = await builder.extract(root)
    return tree, builder


def names(node) -> List[str]:
    return [child.method.name for child in node.children]


class FixedOracle(DisambiguationOracle):

    def __init__(self, answer):
        self.answer = answer
        self.calls = 0

    async def choose(self, request):
        self.calls += 1
        return self.answer


# ============================================================================
# 1. Cycle handling
# ============================================================================

class TestCycles:

    @pytest.mark.asyncio
    async def test_mutual_recursion_is_truncated(self):
        """A -> B -> A: root A, child B, whose only child is a childless A."""
        index = build_index(method_entry("a", ["b"]), method_entry("b", ["a"]))

        tree, _ = await extract(index, "a")

        assert tree.method.name == "A"
        assert names(tree) == ["B"]
        b = tree.children[0]
        assert names(b) == ["A"]
        assert b.children[0].is_leaf

    @pytest.mark.asyncio
    async def test_self_call(self):
        index = build_index(method_entry("a", ["a"]))
        tree, _ = await extract(index, "a")
        assert names(tree) == ["A"]
        assert tree.children[0].is_leaf

    @pytest.mark.asyncio
    async def test_first_visit_wins_across_branches(self):
        """The second occurrence of D, in a different branch, is not expanded."""
        index = build_index(
            method_entry("a", ["b", "c"]),
            method_entry("b", ["d"]),
            method_entry("c", ["d"]),
            method_entry("d", ["e"]),
            method_entry("e"),
        )

        tree, _ = await extract(index, "a")

        b, c = tree.children
        assert names(b.children[0]) == ["E"]
        assert names(c) == ["D"]
        assert c.children[0].is_leaf

    @pytest.mark.asyncio
    async def test_no_node_repeats_its_ancestor_except_as_leaf(self):
        index = build_index(
            method_entry("a", ["b", "c"]),
            method_entry("b", ["c", "a"]),
            method_entry("c", ["a", "b", "d"]),
            method_entry("d", ["b"]),
        )
        tree, _ = await extract(index, "a")

        stack = [(tree, ())]
        while stack:
            node, ancestors = stack.pop()
            if node.method in ancestors:
                assert node.is_leaf
            for child in node.children:
                stack.append((child, ancestors + (node.method,)))


# ============================================================================
# 2. Tree shape
# ============================================================================

class TestTreeShape:

    @pytest.mark.asyncio
    async def test_sibling_multiplicity_is_kept(self):
        index = build_index(method_entry("a", ["b", "b"]), method_entry("b", ["c"]), method_entry("c"))

        tree, _ = await extract(index, "a")

        assert names(tree) == ["B", "B"]
        assert names(tree.children[0]) == ["C"]
        assert tree.children[1].is_leaf

    @pytest.mark.asyncio
    async def test_node_count_property_on_acyclic_graph(self):
        """Distinct reachable methods plus one terminal per re-encounter."""
        index = build_index(
            method_entry("a", ["b", "c", "d"]),
            method_entry("b", ["d", "e"]),
            method_entry("c", ["e", "e"]),
            method_entry("d", ["e"]),
            method_entry("e"),
        )

        tree, builder = await extract(index, "a")

        # Call edges: a->b, a->c, a->d, b->d, b->e, c->e, c->e, d->e
        distinct = 5
        edges = 8
        re_encounters = edges - (distinct - 1)
        assert tree.count_nodes() == distinct + re_encounters
        assert builder.last_stats.expanded == distinct
        assert builder.last_stats.truncated == re_encounters

    @pytest.mark.asyncio
    async def test_children_follow_source_order(self):
        index = build_index(
            method_entry("a", [
                {"target": "c", "text": "C()", "line": 12},
                {"target": "b", "text": "B()", "line": 10},
            ]),
            method_entry("b"),
            method_entry("c"),
        )
        tree, _ = await extract(index, "a")
        assert names(tree) == ["B", "C"]

    @pytest.mark.asyncio
    async def test_calls_inside_lambdas_belong_to_enclosing_method(self):
        index = build_index(
            method_entry("a", [
                {"target": "b", "text": "B()", "line": 10},
                {"target": "d", "text": "D()", "line": 14},
            ]),
            method_entry("a.lambda", [{"target": "c", "text": "C()", "line": 12}],
                         name="<A>b__0", kind="anonymous_function", parent="a"),
            method_entry("b"),
            method_entry("c"),
            method_entry("d"),
        )
        tree, _ = await extract(index, "a")
        assert names(tree) == ["B", "C", "D"]

    @pytest.mark.asyncio
    async def test_very_deep_chain_does_not_hit_recursion_limit(self):
        depth = 1500
        index = build_index(*[
            method_entry(f"m{i}", [f"m{i + 1}"] if i + 1 < depth else [], name=f"M{i}")
            for i in range(depth)
        ])

        tree, _ = await extract(index, "m0")

        assert tree.count_nodes() == depth


# ============================================================================
# 3. Resolution
# ============================================================================

class TestResolution:

    @pytest.mark.asyncio
    async def test_interface_call_is_labelled(self):
        index = build_index(
            method_entry("a", ["irepo.save"]),
            method_entry("irepo.save", name="Save", class_name="IRepository", is_abstract=True),
            method_entry("repo.save", ["repo.map"], name="Save", class_name="SqlRepository"),
            method_entry("repo.map", name="Map", class_name="SqlRepository"),
            implementations={"irepo.save": ["repo.save"]},
        )

        tree, _ = await extract(index, "a")

        child = tree.children[0]
        assert child.method.class_name == "SqlRepository"
        assert child.resolved_from_interface == "IRepository"
        assert names(child) == ["Map"]
        assert child.children[0].resolved_from_interface is None

    @pytest.mark.asyncio
    async def test_unimplemented_interface_becomes_leaf(self):
        index = build_index(
            method_entry("a", ["irepo.save"]),
            method_entry("irepo.save", name="Save", class_name="IRepository", is_abstract=True),
        )
        tree, _ = await extract(index, "a")
        child = tree.children[0]
        assert child.method.class_name == "IRepository"
        assert child.resolved_from_interface is None
        assert child.is_leaf

    @pytest.mark.asyncio
    async def test_oracle_choice_and_fallback_in_tree(self):
        snapshot = (
            method_entry("a", ["igw.charge"]),
            method_entry("igw.charge", name="Charge", class_name="IGateway", is_abstract=True),
            method_entry("stripe.charge", name="Charge", class_name="StripeGateway"),
            method_entry("paypal.charge", name="Charge", class_name="PayPalGateway"),
        )
        implementations = {"igw.charge": ["stripe.charge", "paypal.charge"]}

        chosen, _ = await extract(build_index(*snapshot, implementations=implementations), "a",
                                  FixedOracle("App.PayPalGateway"))
        fallback, builder = await extract(build_index(*snapshot, implementations=implementations), "a",
                                          FixedOracle("Nope"))

        assert chosen.children[0].method.class_name == "PayPalGateway"
        assert chosen.children[0].resolved_from_interface == "IGateway"
        assert fallback.children[0].method.class_name == "StripeGateway"
        assert builder.last_stats.fallbacks == 1

    @pytest.mark.asyncio
    async def test_ambiguous_call_site_uses_candidates(self):
        index = build_index(
            method_entry("a", [{"candidates": ["b1", "b2"], "text": "Handle(x)"}]),
            method_entry("b1", name="Handle", class_name="StringHandler"),
            method_entry("b2", name="Handle", class_name="IntHandler"),
        )
        oracle = FixedOracle("IntHandler")

        tree, _ = await extract(index, "a", oracle)

        assert [c.method.class_name for c in tree.children] == ["IntHandler"]
        assert oracle.calls == 1

    @pytest.mark.asyncio
    async def test_external_targets_contribute_no_child(self):
        index = build_index(
            method_entry("a", ["log", "b"]),
            method_entry("log", name="WriteLine", class_name="Console", namespace="System",
                         project="System.Console", source_available=False),
            method_entry("b"),
        )

        tree, builder = await extract(index, "a")

        assert names(tree) == ["B"]
        assert builder.last_stats.external_skipped == 1
        assert all(item.project_name != "System.Console" for item in builder.dependency_index.snapshot())

    @pytest.mark.asyncio
    async def test_unbound_and_unknown_call_sites_are_skipped(self):
        index = build_index(
            method_entry("a", [
                "missing",
                {"text": "dynamicThing.Go()"},
                {"candidates": ["also.missing"], "text": "x.Y()"},
                "b",
            ]),
            method_entry("b"),
        )

        tree, builder = await extract(index, "a")

        assert names(tree) == ["B"]
        assert builder.last_stats.unresolved == 3


# ============================================================================
# 4. Dependency index
# ============================================================================

class TestDependencyCounting:

    @pytest.mark.asyncio
    async def test_one_increment_per_expanded_method(self):
        index = build_index(
            method_entry("a", ["b", "c", "b"], project="Web", namespace="App.Web"),
            method_entry("b", ["c"], project="Core", namespace="App.Orders"),
            method_entry("c", project="Data", namespace="App.Data"),
        )

        _, builder = await extract(index, "a")

        rows = [(i.project_name, i.namespace, i.times_referenced) for i in builder.dependency_index.snapshot()]
        assert rows == [
            ("Core", "App.Orders", 1),
            ("Data", "App.Data", 1),
            ("Web", "App.Web", 1),
        ]

    @pytest.mark.asyncio
    async def test_repeated_extract_is_idempotent(self):
        index = build_index(
            method_entry("a", ["b", "c"]),
            method_entry("b", ["a", "c"]),
            method_entry("c", ["b"], namespace="App.Other"),
        )
        builder = make_builder(index)
        root = await index.get_descriptor("a")

        first = await builder.extract(root)
        first_counts = builder.dependency_index.snapshot()
        second = await builder.extract(root)

        assert first.shape() == second.shape()
        assert builder.dependency_index.snapshot() == first_counts
        assert builder.dependency_index.count("App.Core", "App") == 2

    @pytest.mark.asyncio
    async def test_concurrent_extractions_do_not_interfere(self):
        index = build_index(
            method_entry("a", ["b", "c"]),
            method_entry("b", ["c"]),
            method_entry("c", ["a"]),
        )
        root = await index.get_descriptor("a")

        builders = [make_builder(index) for _ in range(4)]
        trees = await asyncio.gather(*(b.extract(root) for b in builders))

        assert len({tree.shape() for tree in trees}) == 1
        assert all(b.dependency_index.count("App.Core", "App") == 3 for b in builders)


# ============================================================================
# 5. Edge cases
# ============================================================================

class TestEdgeCases:

    @pytest.mark.asyncio
    async def test_unknown_root_raises(self):
        index = build_index(method_entry("a"))
        builder = make_builder(index)
        stranger = MethodDescriptor(name="Gone", class_name="Ghost", namespace="App", project="App.Core")

        with pytest.raises(MethodNotFoundError):
            await builder.extract(stranger)

    @pytest.mark.asyncio
    async def test_provider_outage_propagates(self):
        class OfflineIndex(CodebaseIndex):
            async def get_call_sites(self, method_id):
                raise ProviderUnavailableError("workspace not loaded")

        index = OfflineIndex.from_dict({"methods": [method_entry("a", ["b"]), method_entry("b")]})
        builder = make_builder(index)

        with pytest.raises(ProviderUnavailableError):
            await builder.extract(await index.get_descriptor("a"))

    @pytest.mark.asyncio
    async def test_method_without_calls_is_single_node(self):
        index = build_index(method_entry("a"))
        tree, builder = await extract(index, "a")
        assert tree.is_leaf
        assert len(builder.dependency_index) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
