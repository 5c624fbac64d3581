#!/usr/bin/env python3
"""Count the instructions of a module, per function and in total.

Usage: count_instructions.py <module file> [--json] [--verbose]
"""
from __future__ import annotations

import sys

from instcount.cli import main

if __name__ == "__main__":
    sys.exit(main())
