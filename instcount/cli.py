"""Command-line driver: count the instructions of a module file."""

from __future__ import annotations

import argparse
import logging
import sys

from .loader import ModuleLoadError, load_module
from .manager import AnalysisKey, default_manager
from .report import format_json, format_report
from .run_types import RunConfig
from . import constants

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> RunConfig:
    parser = argparse.ArgumentParser(
        description="Count the number of instructions of a module "
        "(per function and in total)."
    )
    parser.add_argument("module", help="Module to be analyzed (textual IR or .json)")
    parser.add_argument(
        "--json", action="store_true", help="Print the counts as JSON on stdout"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log pipeline stages"
    )
    args = parser.parse_args(argv)
    return RunConfig(module_path=args.module, as_json=args.json, verbose=args.verbose)


def main(argv: list[str] | None = None) -> int:
    config = _parse_args(argv)
    logging.basicConfig(level=config.log_level, format="%(name)s: %(message)s")

    try:
        module = load_module(config.module_path)
    except ModuleLoadError as exc:
        print(f"Error reading module file: {config.module_path}", file=sys.stderr)
        print(exc, file=sys.stderr)
        return constants.EXIT_LOAD_ERROR

    with default_manager() as manager:
        result = manager.get_result(module, AnalysisKey.INSTCOUNT)
        if config.as_json:
            print(format_json(result))
        else:
            print(format_report(result), end="", file=sys.stderr)
    return constants.EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
