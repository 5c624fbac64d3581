"""IR Design — modules, functions, basic blocks and instructions."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterator

from pydantic import BaseModel, model_validator

from . import constants


class Opcode(str, Enum):
    # Value producers
    CONST = "CONST"
    LOAD_VAR = "LOAD_VAR"
    LOAD_FIELD = "LOAD_FIELD"
    LOAD_INDEX = "LOAD_INDEX"
    NEW_OBJECT = "NEW_OBJECT"
    NEW_ARRAY = "NEW_ARRAY"
    BINOP = "BINOP"
    UNOP = "UNOP"
    CALL_FUNCTION = "CALL_FUNCTION"
    CALL_METHOD = "CALL_METHOD"
    CALL_UNKNOWN = "CALL_UNKNOWN"
    # Value consumers / control flow
    STORE_VAR = "STORE_VAR"
    STORE_FIELD = "STORE_FIELD"
    STORE_INDEX = "STORE_INDEX"
    BRANCH_IF = "BRANCH_IF"
    BRANCH = "BRANCH"
    RETURN = "RETURN"
    THROW = "THROW"
    # Special
    SYMBOLIC = "SYMBOLIC"


BRANCH_OPCODES: frozenset[Opcode] = frozenset({Opcode.BRANCH, Opcode.BRANCH_IF})


class SourceLocation(BaseModel):
    """Line/column span of an instruction in the IR file it was loaded from."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int


NO_SOURCE_LOCATION = SourceLocation(start_line=0, start_col=0, end_line=0, end_col=0)


class Instruction(BaseModel):
    opcode: Opcode
    result_reg: str | None = None
    operands: list[Any] = []
    label: str | None = None  # branch targets
    source_location: SourceLocation = NO_SOURCE_LOCATION

    def __str__(self) -> str:
        parts: list[str] = []
        if self.result_reg:
            parts.append(f"{self.result_reg} =")
        parts.append(self.opcode.value.lower())
        for op in self.operands:
            parts.append(str(op))
        if self.label:
            parts.append(self.label)
        return " ".join(parts)


class BasicBlock(BaseModel):
    label: str
    instructions: list[Instruction] = []

    def __str__(self) -> str:
        lines = [f"{self.label}:"]
        lines.extend(f"  {inst}" for inst in self.instructions)
        return "\n".join(lines)


class Function(BaseModel):
    """A named function; a declaration when it has no blocks."""

    name: str
    blocks: list[BasicBlock] = []

    @property
    def is_declaration(self) -> bool:
        return not self.blocks

    def instructions(self) -> Iterator[Instruction]:
        """Yield every instruction in block order, then in-block order."""
        for block in self.blocks:
            yield from block.instructions

    def __str__(self) -> str:
        if self.is_declaration:
            return f"declare @{self.name}"
        body = "\n".join(str(block) for block in self.blocks)
        return f"define @{self.name} {{\n{body}\n}}"


class Module(BaseModel):
    """The analyzed unit: an ordered collection of uniquely named functions."""

    module_id: str = constants.DEFAULT_MODULE_ID
    functions: list[Function] = []

    @model_validator(mode="after")
    def _check_unique_names(self) -> Module:
        seen: set[str] = set()
        for func in self.functions:
            if func.name in seen:
                raise ValueError(f"Duplicate function '@{func.name}' in module")
            seen.add(func.name)
        return self

    def get_function(self, name: str) -> Function | None:
        return next((f for f in self.functions if f.name == name), None)

    def __str__(self) -> str:
        header = f"; module {self.module_id}"
        return "\n\n".join([header] + [str(f) for f in self.functions]) + "\n"
