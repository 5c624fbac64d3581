"""Tests for AnalysisManager caching, invalidation and session lifecycle."""

import gc
import threading
import time

import pytest

from instcount.analysis import InstCountAnalysis, InstCountResult
from instcount.ir import BasicBlock, Function, Instruction, Module, Opcode
from instcount.manager import (
    AnalysisKey,
    AnalysisManager,
    PreservedAnalyses,
    default_manager,
)


class CountingAnalysis(InstCountAnalysis):
    """InstCountAnalysis that records how many times it traversed a module."""

    def __init__(self, delay: float = 0.0):
        self.runs = 0
        self._delay = delay

    def run(self, module, manager):
        self.runs += 1
        if self._delay:
            time.sleep(self._delay)
        return super().run(module, manager)


def _inst(value=0):
    return Instruction(opcode=Opcode.CONST, result_reg="%t0", operands=[value])


def _module(module_id="test.ll", **sizes):
    return Module(
        module_id=module_id,
        functions=[
            Function(
                name=name,
                blocks=[BasicBlock(label="entry", instructions=[_inst(i) for i in range(n)])],
            )
            for name, n in sizes.items()
        ],
    )


@pytest.fixture
def counting():
    return CountingAnalysis()


@pytest.fixture
def manager(counting):
    mgr = AnalysisManager()
    mgr.register(counting)
    return mgr


class TestRegistration:
    def test_unregistered_key_raises(self):
        with pytest.raises(ValueError, match="not registered"):
            AnalysisManager().get_result(_module(foo=1), AnalysisKey.INSTCOUNT)

    def test_first_registration_wins(self, manager, counting):
        assert manager.register(CountingAnalysis()) is False
        manager.get_result(_module(foo=1), AnalysisKey.INSTCOUNT)
        assert counting.runs == 1

    def test_is_registered(self, manager):
        assert manager.is_registered(AnalysisKey.INSTCOUNT)
        assert not AnalysisManager().is_registered(AnalysisKey.INSTCOUNT)

    def test_default_manager_has_instcount(self):
        assert default_manager().is_registered(AnalysisKey.INSTCOUNT)


class TestCaching:
    def test_first_lookup_computes(self, manager, counting):
        result = manager.get_result(_module(foo=3), AnalysisKey.INSTCOUNT)
        assert result == InstCountResult(counts={"foo": 3}, total=3)
        assert counting.runs == 1

    def test_second_lookup_reuses_result(self, manager, counting):
        module = _module(foo=3, bar=5)
        first = manager.get_result(module, AnalysisKey.INSTCOUNT)
        second = manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert first is second
        assert counting.runs == 1

    def test_modules_are_cached_separately(self, manager, counting):
        a = manager.get_result(_module("a.ll", foo=1), AnalysisKey.INSTCOUNT)
        b = manager.get_result(_module("b.ll", foo=2), AnalysisKey.INSTCOUNT)
        assert a.total == 1
        assert b.total == 2
        assert counting.runs == 2

    def test_distinct_modules_with_default_id_are_separate(self, manager, counting):
        first = Module(functions=[_module(foo=3).functions[0]])
        second = Module(functions=_module(foo=3, bar=5).functions)
        assert first.module_id == second.module_id

        a = manager.get_result(first, AnalysisKey.INSTCOUNT)
        b = manager.get_result(second, AnalysisKey.INSTCOUNT)
        assert a.counts == {"foo": 3}
        assert b.counts == {"foo": 3, "bar": 5}
        assert b.total == 8
        assert counting.runs == 2

    def test_copied_module_is_a_separate_entry(self, manager, counting):
        module = _module(foo=3)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        manager.get_result(module.model_copy(deep=True), AnalysisKey.INSTCOUNT)
        assert counting.runs == 2

    def test_cached_counts_cannot_be_altered(self, manager):
        module = _module(foo=3)
        result = manager.get_result(module, AnalysisKey.INSTCOUNT)
        with pytest.raises(TypeError):
            result.counts["foo"] = 99
        again = manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert again.counts == {"foo": 3}
        assert again.total == sum(again.counts.values())

    def test_get_cached_result_never_computes(self, manager, counting):
        module = _module(foo=1)
        assert manager.get_cached_result(module, AnalysisKey.INSTCOUNT) is None
        assert counting.runs == 0
        result = manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert manager.get_cached_result(module, AnalysisKey.INSTCOUNT) is result


class TestInvalidation:
    def test_invalidate_after_mutation_recomputes(self, manager, counting):
        module = _module(foo=3)
        assert manager.get_result(module, AnalysisKey.INSTCOUNT).total == 3

        module.functions[0].blocks[0].instructions.append(_inst(99))
        assert manager.invalidate(module) == 1

        result = manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert result.counts == {"foo": 4}
        assert result.total == 4
        assert counting.runs == 2

    def test_stale_result_without_invalidation(self, manager):
        module = _module(foo=3)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        module.functions[0].blocks[0].instructions.append(_inst())
        assert manager.get_result(module, AnalysisKey.INSTCOUNT).total == 3

    def test_added_function_after_invalidation(self, manager):
        module = _module(foo=3)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        module.functions.append(
            Function(name="bar", blocks=[BasicBlock(label="entry", instructions=[_inst()] * 5)])
        )
        manager.invalidate(module)
        result = manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert result.counts == {"foo": 3, "bar": 5}
        assert result.total == 8

    def test_preserved_all_keeps_entry(self, manager, counting):
        module = _module(foo=1)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert manager.invalidate(module, PreservedAnalyses.all()) == 0
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert counting.runs == 1

    def test_preserved_key_keeps_entry(self, manager, counting):
        module = _module(foo=1)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        preserved = PreservedAnalyses.none().preserve(AnalysisKey.INSTCOUNT)
        assert manager.invalidate(module, preserved) == 0
        assert counting.runs == 1

    def test_invalidate_only_touches_given_module(self, manager, counting):
        a = _module("a.ll", foo=1)
        b = _module("b.ll", foo=2)
        manager.get_result(a, AnalysisKey.INSTCOUNT)
        manager.get_result(b, AnalysisKey.INSTCOUNT)
        manager.invalidate(a)
        assert manager.get_cached_result(a, AnalysisKey.INSTCOUNT) is None
        assert manager.get_cached_result(b, AnalysisKey.INSTCOUNT) is not None

    def test_invalidate_uncomputed_is_noop(self, manager):
        assert manager.invalidate(_module(foo=1)) == 0


class TestPreservedAnalyses:
    def test_none_preserves_nothing(self):
        assert not PreservedAnalyses.none().is_preserved(AnalysisKey.INSTCOUNT)

    def test_all_preserves_everything(self):
        assert PreservedAnalyses.all().is_preserved(AnalysisKey.INSTCOUNT)

    def test_preserve_returns_new_set(self):
        none = PreservedAnalyses.none()
        kept = none.preserve(AnalysisKey.INSTCOUNT)
        assert kept.is_preserved(AnalysisKey.INSTCOUNT)
        assert not none.is_preserved(AnalysisKey.INSTCOUNT)


class TestLifecycle:
    def test_clear_module(self, manager, counting):
        module = _module(foo=1)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        manager.clear(module)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert counting.runs == 2

    def test_context_manager_releases_results(self, counting):
        module = _module(foo=1)
        with AnalysisManager() as mgr:
            mgr.register(counting)
            mgr.get_result(module, AnalysisKey.INSTCOUNT)
            assert mgr.get_cached_result(module, AnalysisKey.INSTCOUNT) is not None
        assert mgr.get_cached_result(module, AnalysisKey.INSTCOUNT) is None

    def test_entry_released_when_module_is_collected(self, manager):
        module = _module(foo=1)
        manager.get_result(module, AnalysisKey.INSTCOUNT)
        assert manager.cached_module_count == 1
        del module
        gc.collect()
        assert manager.cached_module_count == 0

    def test_collecting_one_module_keeps_others(self, manager):
        kept = _module(foo=1)
        dropped = _module(foo=2)
        manager.get_result(kept, AnalysisKey.INSTCOUNT)
        manager.get_result(dropped, AnalysisKey.INSTCOUNT)
        del dropped
        gc.collect()
        assert manager.cached_module_count == 1
        assert manager.get_cached_result(kept, AnalysisKey.INSTCOUNT).total == 1


class TestConcurrency:
    def test_concurrent_lookups_compute_once(self):
        slow = CountingAnalysis(delay=0.05)
        mgr = AnalysisManager()
        mgr.register(slow)
        module = _module(foo=3)
        results = []

        def lookup():
            results.append(mgr.get_result(module, AnalysisKey.INSTCOUNT))

        threads = [threading.Thread(target=lookup) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert slow.runs == 1
        assert len(results) == 8
        assert all(r is results[0] for r in results)
