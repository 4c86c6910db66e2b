"""Tests for the dependency cache."""

import pytest

from callgraph.analysis.dependency_cache import Dependency, DependencyCache
from callgraph.analysis.direction import Direction
from tests.fakes import FakeIndex


class TestDependencies:
    """Tests for single cached edges."""

    def setup_method(self):
        self.index = FakeIndex({"caller": ["callee"], "other": []})
        self.cache = DependencyCache.new_session(self.index)

    def test_record_then_lookup(self):
        recorded = self.cache.record("caller", "callee")

        assert self.cache.lookup("caller", "callee") == recorded
        assert recorded == Dependency("caller", "callee", caller_version=1, callee_version=1)
        assert ("caller", "callee") in self.cache
        assert len(self.cache) == 1

    def test_missing_entry(self):
        assert self.cache.lookup("caller", "other") is None

    @pytest.mark.parametrize("edited", ["caller", "callee"])
    def test_edit_of_either_endpoint_invalidates(self, edited):
        self.cache.record("caller", "callee")
        self.index.touch(edited)

        assert self.cache.lookup("caller", "callee") is None
        assert len(self.cache) == 0

    def test_edit_of_unrelated_file_keeps_entry(self):
        recorded = self.cache.record("caller", "callee")
        self.index.touch("other")

        assert self.cache.lookup("caller", "callee") == recorded

    def test_vanished_function_is_stale(self):
        dependency = self.cache.record("caller", "callee")
        self.index.remove("callee")

        assert not dependency.is_fresh(self.index)
        assert self.cache.lookup("caller", "callee") is None

    def test_record_unindexed_function_raises(self):
        with pytest.raises(KeyError):
            self.cache.record("caller", "ghost")

    def test_prune_drops_out_of_scope_and_stale(self):
        self.cache.record("caller", "callee")
        self.cache.record("other", "callee")
        self.cache.record("caller", "other")
        self.index.touch("other")

        removed = self.cache.prune({"caller", "callee"})

        assert removed == 2
        assert [(d.caller, d.callee) for d in self.cache.dependencies()] == [("caller", "callee")]

    def test_prune_by_scope_only(self):
        self.cache.record("caller", "callee")

        assert self.cache.prune({"caller"}) == 1
        assert len(self.cache) == 0

    def test_clear(self):
        self.cache.record("caller", "callee")
        self.cache.record_expansion("caller", Direction.DOWNSTREAM, ["callee"])

        self.cache.clear()

        assert len(self.cache) == 0
        assert self.cache.expansion("caller", Direction.DOWNSTREAM) is None


class TestExpansions:
    """Tests for cached per-function neighbour sets."""

    def setup_method(self):
        self.index = FakeIndex({"a": ["b", "c"], "b": [], "c": [], "d": []})
        self.cache = DependencyCache(self.index)

    def test_downstream_expansion_records_edges(self):
        expansion = self.cache.record_expansion("a", Direction.DOWNSTREAM, ["b", "c"])

        assert expansion.neighbors == frozenset({"b", "c"})
        assert self.cache.expansion("a", Direction.DOWNSTREAM) == expansion
        assert ("a", "b") in self.cache
        assert ("a", "c") in self.cache

    def test_upstream_expansion_orients_edges_caller_to_callee(self):
        self.cache.record_expansion("b", Direction.UPSTREAM, ["a"])

        assert ("a", "b") in self.cache
        assert ("b", "a") not in self.cache

    def test_downstream_expansion_survives_unrelated_edit(self):
        self.cache.record_expansion("a", Direction.DOWNSTREAM, ["b", "c"])
        self.index.touch("d")

        assert self.cache.expansion("a", Direction.DOWNSTREAM) is not None

    def test_downstream_expansion_invalidated_by_own_file(self):
        self.cache.record_expansion("a", Direction.DOWNSTREAM, ["b", "c"])
        self.index.touch("a")

        assert self.cache.expansion("a", Direction.DOWNSTREAM) is None

    def test_downstream_expansion_invalidated_by_callee_file(self):
        self.cache.record_expansion("a", Direction.DOWNSTREAM, ["b", "c"])
        self.index.touch("c")

        assert self.cache.expansion("a", Direction.DOWNSTREAM) is None

    def test_downstream_expansion_invalidated_by_new_definition(self):
        self.cache.record_expansion("a", Direction.DOWNSTREAM, ["b", "c"])
        self.index.define("e", "extra.py")

        assert self.cache.expansion("a", Direction.DOWNSTREAM) is None

    def test_upstream_expansion_invalidated_by_any_edit(self):
        self.cache.record_expansion("b", Direction.UPSTREAM, ["a"])
        self.index.touch("d")

        assert self.cache.expansion("b", Direction.UPSTREAM) is None

    def test_both_is_rejected(self):
        with pytest.raises(ValueError):
            self.cache.record_expansion("a", Direction.BOTH, ["b"])

    def test_unindexed_function_is_not_cached(self):
        assert self.cache.record_expansion("ghost", Direction.DOWNSTREAM, []) is None
        assert self.cache.expansion("ghost", Direction.DOWNSTREAM) is None

    def test_prune_drops_expansions_leaving_scope(self):
        self.cache.record_expansion("a", Direction.DOWNSTREAM, ["b", "c"])
        self.cache.record_expansion("b", Direction.DOWNSTREAM, [])

        self.cache.prune({"a", "b"})

        assert self.cache.expansion("a", Direction.DOWNSTREAM) is None
        assert self.cache.expansion("b", Direction.DOWNSTREAM) is not None
