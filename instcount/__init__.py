"""Instruction counting analysis for IR modules."""

from .analysis import InstCountAnalysis, InstCountResult, analyze  # noqa: F401
from .api import count_file, dump_counts  # noqa: F401
from .counter import count_instructions  # noqa: F401
from .manager import (  # noqa: F401
    AnalysisKey,
    AnalysisManager,
    PreservedAnalyses,
    default_manager,
)
