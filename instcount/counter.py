"""Pure function for counting the instructions of a single function."""

from __future__ import annotations

from instcount.ir import Function


def count_instructions(function: Function) -> int:
    """Return the number of instructions in *function*'s body.

    Args:
        function: A function definition or declaration.

    Returns:
        The number of instructions across all basic blocks, counted
        without regard to opcode. 0 for a declaration.
    """
    return sum(len(block.instructions) for block in function.blocks)
