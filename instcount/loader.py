"""Module loader — reads textual IR or JSON from disk into a Module."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from .ir import (
    BRANCH_OPCODES,
    BasicBlock,
    Function,
    Instruction,
    Module,
    Opcode,
    SourceLocation,
)
from . import constants

logger = logging.getLogger(__name__)


class ModuleLoadError(ValueError):
    """Raised when a module file cannot be read or is malformed."""

    def __init__(self, source: str, message: str, line: int = 0):
        self.source = source
        self.line = line
        self.message = message
        location = f"{source}:{line}" if line else source
        super().__init__(f"{location}: {message}")


class _ModuleParser:
    """Line-oriented parser for the textual IR format.

    ``declare @name`` introduces a declaration, ``define @name {`` ... ``}``
    a definition. Inside a definition ``label:`` opens a basic block; any
    other non-blank line is an instruction. ``;`` starts a comment that runs
    to the end of the line.
    """

    def __init__(self, module_id: str):
        self._module_id = module_id
        self._functions: list[Function] = []
        self._names: set[str] = set()
        self._func_name: str | None = None
        self._func_line = 0
        self._blocks: list[BasicBlock] = []
        self._lineno = 0

    def parse(self, text: str) -> Module:
        for self._lineno, raw in enumerate(text.splitlines(), start=1):
            code = raw.split(constants.COMMENT_PREFIX, 1)[0]
            line = code.strip()
            if not line:
                continue
            if self._func_name is None:
                self._parse_top_level(line)
            elif line == "}":
                self._end_function()
            elif line.endswith(":") and len(line.split()) == 1:
                self._start_block(line[:-1])
            else:
                self._current_block().instructions.append(
                    self._parse_instruction(code, line)
                )

        if self._func_name is not None:
            raise self._error(
                f"Unterminated definition of '@{self._func_name}'", self._func_line
            )
        return Module(module_id=self._module_id, functions=self._functions)

    def _error(self, message: str, line: int = 0) -> ModuleLoadError:
        return ModuleLoadError(self._module_id, message, line or self._lineno)

    def _parse_function_name(self, token: str) -> str:
        if not token.startswith(constants.FUNC_NAME_SIGIL) or len(token) < 2:
            raise self._error(f"Expected a function name like '@foo', got '{token}'")
        name = token[1:]
        if name in self._names:
            raise self._error(f"Duplicate function '@{name}'")
        self._names.add(name)
        return name

    def _parse_top_level(self, line: str):
        tokens = line.split()
        keyword = tokens[0]
        if keyword == constants.DECLARE_KEYWORD and len(tokens) == 2:
            name = self._parse_function_name(tokens[1])
            self._functions.append(Function(name=name))
        elif keyword == constants.DEFINE_KEYWORD and len(tokens) == 3 and tokens[2] == "{":
            self._func_name = self._parse_function_name(tokens[1])
            self._func_line = self._lineno
            self._blocks = []
        else:
            raise self._error(
                f"Expected 'declare @name' or 'define @name {{', got '{line}'"
            )

    def _end_function(self):
        # A definition always has a body, even if it holds no instructions.
        if not self._blocks:
            self._blocks.append(BasicBlock(label=constants.IMPLICIT_ENTRY_LABEL))
        self._functions.append(Function(name=self._func_name, blocks=self._blocks))
        self._func_name = None
        self._blocks = []

    def _start_block(self, label: str):
        if any(block.label == label for block in self._blocks):
            raise self._error(
                f"Duplicate block label '{label}' in '@{self._func_name}'"
            )
        self._blocks.append(BasicBlock(label=label))

    def _current_block(self) -> BasicBlock:
        if not self._blocks:
            self._start_block(constants.IMPLICIT_ENTRY_LABEL)
        return self._blocks[-1]

    def _parse_instruction(self, code: str, line: str) -> Instruction:
        tokens = line.split()
        result_reg = None
        if len(tokens) >= 2 and tokens[1] == "=":
            result_reg = tokens[0]
            tokens = tokens[2:]
        if not tokens:
            raise self._error(f"Missing opcode after '{result_reg} ='")

        try:
            opcode = Opcode(tokens[0].upper())
        except ValueError:
            raise self._error(f"Unknown opcode '{tokens[0]}'") from None

        operands: list[str] = tokens[1:]
        label = None
        if opcode in BRANCH_OPCODES:
            if not operands:
                raise self._error(f"'{tokens[0]}' requires a target label")
            label = operands.pop()

        start_col = len(code) - len(code.lstrip()) + 1
        return Instruction(
            opcode=opcode,
            result_reg=result_reg,
            operands=operands,
            label=label,
            source_location=SourceLocation(
                start_line=self._lineno,
                start_col=start_col,
                end_line=self._lineno,
                end_col=len(code.rstrip()),
            ),
        )


def parse_module(text: str, module_id: str = constants.DEFAULT_MODULE_ID) -> Module:
    """Parse textual IR into a Module.

    Raises:
        ModuleLoadError: If the text is not well-formed IR.
    """
    return _ModuleParser(module_id).parse(text)


def _load_json(text: str, module_id: str) -> Module:
    try:
        module = Module.model_validate_json(text)
    except ValidationError as exc:
        raise ModuleLoadError(module_id, f"Invalid module JSON: {exc}") from exc
    if module.module_id == constants.DEFAULT_MODULE_ID:
        module = module.model_copy(update={"module_id": module_id})
    return module


def load_module(path: str | Path) -> Module:
    """Read a module from *path*.

    Files ending in ``.json`` are validated as a serialized Module; any
    other file is parsed as textual IR. The module's id is the path unless
    the JSON names one.

    Raises:
        ModuleLoadError: If the file cannot be read or is malformed.
    """
    path = Path(path)
    module_id = str(path)
    logger.info("Loading module from %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ModuleLoadError(module_id, f"Cannot read file: {exc}") from exc

    if path.suffix == constants.JSON_SUFFIX:
        module = _load_json(text, module_id)
    else:
        module = parse_module(text, module_id)
    logger.info("Loaded %d functions from %s", len(module.functions), path)
    return module
