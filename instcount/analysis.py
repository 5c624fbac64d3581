"""Instruction count analysis over a whole module."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping

from .counter import count_instructions
from .ir import Module
from .manager import Analysis, AnalysisKey, AnalysisManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstCountResult:
    """Per-function instruction counts plus the module total.

    ``counts`` maps function name to instruction count, in module order,
    for functions with a body only. It is a read-only view, so a result
    shared from the cache cannot be altered by one caller. Unpacks as
    ``(counts, total)``.
    """

    counts: Mapping[str, int] = field(default_factory=dict)
    total: int = 0

    def __post_init__(self):
        object.__setattr__(self, "counts", MappingProxyType(dict(self.counts)))

    def __iter__(self) -> Iterator:
        return iter((self.counts, self.total))


class InstCountAnalysis(Analysis):
    """Counts the instructions of every defined function in a module."""

    key = AnalysisKey.INSTCOUNT

    def run(self, module: Module, manager: AnalysisManager) -> InstCountResult:
        return analyze(module)


def analyze(module: Module) -> InstCountResult:
    """Count instructions per function and in total, without caching.

    Declarations are skipped: they get no entry and add nothing to the total.
    """
    counts: dict[str, int] = {}
    total = 0
    for function in module.functions:
        if function.is_declaration:
            continue
        count = count_instructions(function)
        counts[function.name] = count
        total += count

    logger.info(
        "Counted %d instructions across %d functions in %s",
        total,
        len(counts),
        module.module_id,
    )
    return InstCountResult(counts=counts, total=total)
