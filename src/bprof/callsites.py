from __future__ import annotations

from bprof.binary import (
    CALL_PROFILE_ANNOTATION,
    COUNT_ANNOTATION,
    CTC_MISPRED_ANNOTATION,
    CTC_TAKEN_ANNOTATION,
    OFFSET_ANNOTATION,
    BlockLike,
    FunctionRegistry,
    IndirectCallProfile,
    InstructionLike,
)
from bprof.model import UNKNOWN_FUNCTION_ID, CallSiteInfo


def _resolve(registry: FunctionRegistry, symbol: str | None) -> tuple[int, int]:
    resolved = registry.function_for_symbol(symbol)
    if resolved is None:
        return UNKNOWN_FUNCTION_ID, 0
    callee, entry_id = resolved
    return callee.function_number, entry_id


def _indirect_call_sites(
    instr: InstructionLike, offset: int, registry: FunctionRegistry
) -> list[CallSiteInfo]:
    profile: list[IndirectCallProfile] | None = instr.annotation(
        CALL_PROFILE_ANNOTATION
    )
    if profile is None:
        return []
    sites: list[CallSiteInfo] = []
    for entry in profile:
        dest_id, _ = _resolve(registry, entry.symbol)
        sites.append(
            CallSiteInfo(
                offset=offset,
                dest_id=dest_id,
                entry_discriminator=0,
                count=entry.count,
                mispreds=entry.mispreds,
            )
        )
    return sites


def _direct_call_site(
    instr: InstructionLike, offset: int, registry: FunctionRegistry
) -> CallSiteInfo | None:
    dest_id, entry_id = _resolve(registry, instr.target_symbol)
    count = 0
    mispreds = 0
    if instr.has_conditional_tail_call():
        taken = instr.annotation(CTC_TAKEN_ANNOTATION)
        if taken is not None:
            count = taken
            mispredicted = instr.annotation(CTC_MISPRED_ANNOTATION)
            if mispredicted is not None:
                mispreds = mispredicted
    else:
        direct = instr.annotation(COUNT_ANNOTATION)
        if direct is not None:
            count = direct
    if not count:
        return None
    return CallSiteInfo(
        offset=offset,
        dest_id=dest_id,
        entry_discriminator=entry_id,
        count=count,
        mispreds=mispreds,
    )


def extract_call_sites(
    instr: InstructionLike, block_offset: int, registry: FunctionRegistry
) -> list[CallSiteInfo]:
    """Call-site records for one instruction, in no particular order."""
    if not instr.is_call() and not instr.is_indirect_branch():
        return []
    input_offset = instr.annotation(OFFSET_ANNOTATION)
    if input_offset is None or input_offset < block_offset:
        return []
    offset = input_offset - block_offset

    if instr.is_indirect_call() or instr.is_indirect_branch():
        return _indirect_call_sites(instr, offset, registry)
    site = _direct_call_site(instr, offset, registry)
    return [] if site is None else [site]


def block_call_sites(
    block: BlockLike, registry: FunctionRegistry
) -> tuple[CallSiteInfo, ...]:
    sites: list[CallSiteInfo] = []
    for instr in block.instructions:
        sites.extend(extract_call_sites(instr, block.input_offset, registry))
    sites.sort()
    return tuple(sites)
