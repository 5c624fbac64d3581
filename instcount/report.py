"""Console rendering of instruction count results."""

from __future__ import annotations

import json

from .analysis import InstCountResult
from . import constants


def format_report(result: InstCountResult) -> str:
    """Render *result* as the per-function listing followed by the total.

    Entries appear in module traversal order, one ``name => count`` line
    each, then a blank line and ``Total: N``.
    """
    lines = [constants.REPORT_HEADER, ""]
    lines.extend(
        constants.REPORT_ENTRY_TEMPLATE.format(name=name, count=count)
        for name, count in result.counts.items()
    )
    lines.append("")
    lines.append(constants.REPORT_TOTAL_TEMPLATE.format(total=result.total))
    return "\n".join(lines) + "\n"


def format_json(result: InstCountResult) -> str:
    """Render *result* as ``{"functions": {...}, "total": N}``."""
    return json.dumps(
        {"functions": dict(result.counts), "total": result.total}, indent=2
    )
