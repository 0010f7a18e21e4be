from __future__ import annotations

from bprof.binary import BasicBlock, BinaryFunction, Instruction
from bprof.traversal import dfs, function_hash


def _block(index: int, opcode: str = "nop", entry: bool = False) -> BasicBlock:
    return BasicBlock(
        index=index,
        instructions=[Instruction(opcode=opcode)],
        is_entry_point=entry,
    )


def _diamond(layout: list[str]) -> BinaryFunction:
    blocks = {
        "entry": _block(0, "cmp", entry=True),
        "then": _block(0, "add"),
        "else": _block(0, "sub"),
        "join": _block(0, "ret"),
    }
    blocks["entry"].add_successor(blocks["then"])
    blocks["entry"].add_successor(blocks["else"])
    blocks["then"].add_successor(blocks["join"])
    blocks["else"].add_successor(blocks["join"])
    func = BinaryFunction(name="diamond", function_number=1)
    for idx, name in enumerate(layout):
        blocks[name].index = idx
        func.blocks.append(blocks[name])
    return func


def test_dfs_visits_last_successor_first() -> None:
    func = _diamond(["entry", "then", "else", "join"])
    assert [block.index for block in dfs(func)] == [0, 2, 3, 1]


def test_dfs_skips_unreachable_blocks() -> None:
    func = _diamond(["entry", "then", "else", "join"])
    orphan = _block(4)
    func.blocks.append(orphan)
    assert orphan not in dfs(func)


def test_dfs_visits_successors_before_landing_pads() -> None:
    func = BinaryFunction(name="eh", function_number=1)
    entry = _block(0, entry=True)
    body = _block(1)
    pad = _block(2)
    entry.add_successor(body)
    entry.add_landing_pad(pad)
    func.blocks.extend([entry, body, pad])
    assert [block.index for block in dfs(func)] == [0, 1, 2]
    assert pad.is_landing_pad


def test_dfs_starts_from_first_block_without_entry_flag() -> None:
    func = BinaryFunction(name="f", function_number=1)
    first = _block(0)
    second = _block(1)
    first.add_successor(second)
    func.blocks.extend([first, second])
    assert dfs(func) == [first, second]


def test_hash_ignores_block_layout() -> None:
    a = _diamond(["entry", "then", "else", "join"])
    b = _diamond(["entry", "join", "else", "then"])
    assert function_hash(a) == function_hash(b)


def test_hash_tracks_opcodes() -> None:
    a = _diamond(["entry", "then", "else", "join"])
    b = _diamond(["entry", "then", "else", "join"])
    b.blocks[1].instructions[0].opcode = "mul"
    assert function_hash(a) != function_hash(b)


def test_hash_ignores_pseudo_instructions() -> None:
    a = _diamond(["entry", "then", "else", "join"])
    b = _diamond(["entry", "then", "else", "join"])
    b.blocks[0].instructions.append(Instruction(kind="pseudo", opcode="cfi"))
    assert function_hash(a) == function_hash(b)


def test_hash_is_stable() -> None:
    func = _diamond(["entry", "then", "else", "join"])
    value = function_hash(func)
    assert value == function_hash(func)
    assert 0 <= value < 2**64
