"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

DEFAULT_MODULE_ID = "<module>"
IMPLICIT_ENTRY_LABEL = "entry"

COMMENT_PREFIX = ";"
FUNC_NAME_SIGIL = "@"
DEFINE_KEYWORD = "define"
DECLARE_KEYWORD = "declare"

JSON_SUFFIX = ".json"

REPORT_HEADER = "Number of instructions per function: "
REPORT_ENTRY_TEMPLATE = "\t{name} => {count}"
REPORT_TOTAL_TEMPLATE = "Total: {total}"

EXIT_OK = 0
EXIT_LOAD_ERROR = 1
