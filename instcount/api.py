"""Composable API functions for the instruction counting pipeline.

Each function corresponds to a CLI workflow but is callable
programmatically without argparse.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .analysis import InstCountResult
from .loader import load_module
from .manager import AnalysisKey, AnalysisManager, default_manager
from .report import format_json, format_report

logger = logging.getLogger(__name__)


def count_file(
    path: str | Path,
    manager: Optional[AnalysisManager] = None,
) -> InstCountResult:
    """Load a module file and return its instruction counts.

    Args:
        path: Textual IR or ``.json`` module file.
        manager: Session to request the analysis from. A fresh manager
            with the built-in analyses is used when omitted.

    Returns:
        The per-function counts and the module total.

    Raises:
        ModuleLoadError: If the file cannot be loaded.
    """
    module = load_module(path)
    if manager is None:
        manager = default_manager()
    logger.info("Requesting %s for %s", AnalysisKey.INSTCOUNT.value, module.module_id)
    return manager.get_result(module, AnalysisKey.INSTCOUNT)


def dump_counts(path: str | Path, as_json: bool = False) -> str:
    """Load a module file and return the rendered instruction counts.

    Args:
        path: Textual IR or ``.json`` module file.
        as_json: Render JSON instead of the console listing.

    Returns:
        The rendered report.
    """
    result = count_file(path)
    return format_json(result) if as_json else format_report(result)
