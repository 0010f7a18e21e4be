from __future__ import annotations

import hashlib

from bprof.binary import BlockLike, FunctionLike


def dfs(func: FunctionLike) -> list[BlockLike]:
    """Depth-first preorder over the function's blocks.

    Entry blocks seed the stack in layout order, so the first entry is visited
    first. Landing pads are pushed before successors, which means successors
    are visited before landing pads and in reverse successor-list order.
    Blocks unreachable from an entry are not visited.
    """
    stack: list[BlockLike] = list(reversed(func.entry_blocks()))
    seen: set[int] = set()
    order: list[BlockLike] = []
    while stack:
        block = stack.pop()
        if id(block) in seen:
            continue
        seen.add(id(block))
        order.append(block)
        stack.extend(block.landing_pads)
        stack.extend(block.successors)
    return order


def dfs_positions(order: list[BlockLike]) -> dict[int, int]:
    """Map ``id(block)`` to its position in a DFS order."""
    return {id(block): pos for pos, block in enumerate(order)}


def function_hash(func: FunctionLike) -> int:
    """Order-sensitive 64-bit hash of the function's structure.

    Covers the opcodes of every non-pseudo instruction and every edge, with
    edges named by DFS position rather than layout index, so two functions
    that differ only in block layout hash the same.
    """
    order = dfs(func)
    position = dfs_positions(order)
    digest = hashlib.blake2b(digest_size=8)
    for block in order:
        digest.update(b"\x00block")
        for instr in block.instructions:
            if instr.is_pseudo():
                continue
            digest.update(instr.opcode.encode("utf-8"))
            digest.update(b"\x00")
        for succ in block.successors:
            digest.update(f"->{position.get(id(succ), -1)}".encode("ascii"))
        for pad in block.landing_pads:
            digest.update(f"=>{position.get(id(pad), -1)}".encode("ascii"))
    return int.from_bytes(digest.digest(), "little")
