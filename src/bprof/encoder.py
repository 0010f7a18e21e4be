from __future__ import annotations

from typing import Mapping

from bprof.binary import BlockLike, FunctionLike, FunctionRegistry, ProfileReaderLike
from bprof.callsites import block_call_sites
from bprof.errors import ProfileInvariantError
from bprof.model import (
    BlockProfile,
    FunctionProfile,
    ProfileFlags,
    SuccessorInfo,
    is_lbr_mode,
)
from bprof.traversal import dfs, dfs_positions, function_hash


def _known_count(count: int | None) -> int:
    return 0 if count is None else count


def _block_id(block: BlockLike, positions: Mapping[int, int] | None) -> int:
    if positions is None:
        return block.index
    return positions[id(block)]


def _successor_infos(
    block: BlockLike, positions: Mapping[int, int] | None
) -> tuple[SuccessorInfo, ...]:
    successors = block.successors
    branch_info = block.branch_info
    if len(successors) != len(branch_info):
        raise ProfileInvariantError(
            f"block {block.index}: {len(successors)} successors but "
            f"{len(branch_info)} branch counts"
        )
    return tuple(
        SuccessorInfo(
            index=_block_id(succ, positions),
            count=info.count,
            mispreds=info.mispredicted_count,
        )
        for succ, info in zip(successors, branch_info)
    )


def _keep_lbr_block(block: BlockLike, has_call_sites: bool, is_entry: bool) -> bool:
    if has_call_sites or is_entry:
        return True
    if block.is_landing_pad and _known_count(block.execution_count) != 0:
        return True
    return sum(info.count for info in block.branch_info) != 0


def encode_block(
    block: BlockLike,
    flags: ProfileFlags,
    registry: FunctionRegistry,
    *,
    positions: Mapping[int, int] | None = None,
    is_entry: bool | None = None,
) -> BlockProfile | None:
    """Profile record for one block, or None when the block is omitted.

    ``positions`` maps ``id(block)`` to the block's DFS position within its
    function; block and successor ids are taken from it. Without it the
    layout index is used. ``is_entry`` overrides the block's own entry flag.
    """
    block_id = _block_id(block, positions)
    exec_count = _known_count(block.execution_count)
    if not is_lbr_mode(flags):
        if not exec_count:
            return None
        return BlockProfile(
            index=block_id,
            num_instructions=block.num_non_pseudos(),
            event_count=exec_count,
        )

    if is_entry is None:
        is_entry = block.is_entry_point
    call_sites = block_call_sites(block, registry)
    if not _keep_lbr_block(block, bool(call_sites), is_entry):
        return None
    return BlockProfile(
        index=block_id,
        num_instructions=block.num_non_pseudos(),
        exec_count=exec_count,
        call_sites=call_sites,
        successors=_successor_infos(block, positions),
    )


def encode_function(func: FunctionLike, registry: FunctionRegistry) -> FunctionProfile:
    order = dfs(func)
    positions = dfs_positions(order)
    entries = {id(block) for block in func.entry_blocks()}
    blocks: list[BlockProfile] = []
    for block in order:
        encoded = encode_block(
            block,
            func.profile_flags,
            registry,
            positions=positions,
            is_entry=id(block) in entries,
        )
        if encoded is not None:
            blocks.append(encoded)
    return FunctionProfile(
        name=func.name,
        id=func.function_number,
        hash=function_hash(func),
        num_blocks=len(func.blocks),
        exec_count=_known_count(func.execution_count),
        blocks=tuple(blocks),
    )


def is_eligible(func: FunctionLike, reader: ProfileReaderLike) -> bool:
    """Only profiled functions, and only validated ones unless the source is trusted."""
    if not func.has_profile:
        return False
    return func.has_valid_profile or reader.is_trusted_source
