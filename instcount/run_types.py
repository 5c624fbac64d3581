"""Driver configuration types (pure data, no business logic)."""

from __future__ import annotations

import logging
from dataclasses import dataclass


@dataclass(frozen=True)
class RunConfig:
    """Groups command-line options for one counting run."""

    module_path: str
    as_json: bool = False
    verbose: bool = False

    @property
    def log_level(self) -> int:
        return logging.INFO if self.verbose else logging.WARNING
