"""Analysis manager — per-session memoization of module analyses."""

from __future__ import annotations

import logging
import threading
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .ir import Module

logger = logging.getLogger(__name__)


class AnalysisKey(str, Enum):
    """Registered identities of the module analyses."""

    INSTCOUNT = "instcount"


class Analysis(ABC):
    """A pure computation over a module whose result can be cached."""

    key: AnalysisKey

    @abstractmethod
    def run(self, module: Module, manager: AnalysisManager) -> Any: ...


@dataclass(frozen=True)
class PreservedAnalyses:
    """The set of analyses a module change left valid."""

    keys: frozenset[AnalysisKey] = frozenset()
    preserves_all: bool = False

    @classmethod
    def all(cls) -> PreservedAnalyses:
        return cls(preserves_all=True)

    @classmethod
    def none(cls) -> PreservedAnalyses:
        return cls()

    def preserve(self, key: AnalysisKey) -> PreservedAnalyses:
        return PreservedAnalyses(
            keys=self.keys | {key}, preserves_all=self.preserves_all
        )

    def is_preserved(self, key: AnalysisKey) -> bool:
        return self.preserves_all or key in self.keys


class AnalysisManager:
    """Caches analysis results per live module and per analysis key.

    One manager is one analysis session. Each module object gets its own
    result table, created on its first lookup and released when the module
    is garbage-collected, invalidated or cleared; ``module_id`` is only a
    display name, so distinct modules never share results. Compute-and-store
    runs under a re-entrant lock so concurrent callers share one result and
    an analysis may request other analyses while it runs.
    """

    def __init__(self):
        self._analyses: dict[AnalysisKey, Analysis] = {}
        # id(module) -> {analysis key -> result}; entries die with the module.
        self._results: dict[int, dict[AnalysisKey, Any]] = {}
        self._lock = threading.RLock()

    def __enter__(self) -> AnalysisManager:
        return self

    def __exit__(self, *exc_info) -> None:
        self.clear()

    @property
    def cached_module_count(self) -> int:
        """Number of modules that currently hold cached results."""
        return len(self._results)

    def register(self, analysis: Analysis) -> bool:
        """Register *analysis* under its key; the first registration wins."""
        with self._lock:
            if analysis.key in self._analyses:
                return False
            self._analyses[analysis.key] = analysis
            logger.debug("Registered analysis %s", analysis.key.value)
            return True

    def is_registered(self, key: AnalysisKey) -> bool:
        return key in self._analyses

    def _module_results(self, module: Module) -> dict[AnalysisKey, Any]:
        module_key = id(module)
        results = self._results.get(module_key)
        if results is None:
            results = self._results[module_key] = {}
            # The finalizer runs before the id can be reused by another object.
            weakref.finalize(module, self._results.pop, module_key, None)
        return results

    def get_result(self, module: Module, key: AnalysisKey) -> Any:
        """Return the result of analysis *key* on *module*, computing it once.

        Raises:
            ValueError: If no analysis is registered under *key*.
        """
        with self._lock:
            cached = self._results.get(id(module), {})
            if key in cached:
                logger.debug("Cache hit: %s on %s", key.value, module.module_id)
                return cached[key]

            analysis = self._analyses.get(key)
            if analysis is None:
                raise ValueError(
                    f"Analysis '{key.value}' is not registered. "
                    f"Available: {[k.value for k in self._analyses]}"
                )
            logger.debug("Cache miss: running %s on %s", key.value, module.module_id)
            result = analysis.run(module, self)
            self._module_results(module)[key] = result
            return result

    def get_cached_result(self, module: Module, key: AnalysisKey) -> Any:
        """Return the cached result for *key* on *module*, or None."""
        with self._lock:
            return self._results.get(id(module), {}).get(key)

    def invalidate(
        self,
        module: Module,
        preserved: PreservedAnalyses = PreservedAnalyses(),
    ) -> int:
        """Drop *module*'s cached results that *preserved* does not cover.

        Returns:
            The number of entries dropped.
        """
        with self._lock:
            cached = self._results.get(id(module), {})
            stale = [key for key in cached if not preserved.is_preserved(key)]
            for key in stale:
                del cached[key]
        if stale:
            logger.info(
                "Invalidated %d cached result(s) for %s", len(stale), module.module_id
            )
        return len(stale)

    def clear(self, module: Module | None = None) -> None:
        """Release cached results for *module*, or for every module."""
        with self._lock:
            if module is None:
                self._results.clear()
            else:
                self._results.pop(id(module), None)


def default_manager() -> AnalysisManager:
    """Create a manager with every built-in analysis registered."""
    from .analysis import InstCountAnalysis

    manager = AnalysisManager()
    manager.register(InstCountAnalysis())
    return manager
