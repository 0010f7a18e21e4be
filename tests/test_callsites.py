from __future__ import annotations

from bprof.binary import BasicBlock, BinaryContext, BinaryFunction
from bprof.callsites import block_call_sites, extract_call_sites
from bprof.model import CallSiteInfo
from tests.profile_fixtures import (
    conditional_tail_call,
    direct_call,
    indirect,
    make_function,
    plain,
)


def _registry() -> BinaryContext:
    g = make_function("g", 2, address=0x2000)
    h = make_function("h", 3, address=0x3000)
    multi = BinaryFunction(
        name="multi",
        function_number=4,
        address=0x4000,
        entry_symbols=["multi", "multi.entry1", "multi.entry2"],
    )
    return BinaryContext("a.out", functions=[g, h, multi])


def test_non_call_instruction_is_skipped() -> None:
    assert extract_call_sites(plain(offset=4), 0, _registry()) == []


def test_call_without_offset_is_skipped() -> None:
    assert extract_call_sites(direct_call("g", None, count=5), 0, _registry()) == []


def test_call_before_block_start_is_skipped() -> None:
    assert extract_call_sites(direct_call("g", 8, count=5), 16, _registry()) == []


def test_direct_call_offset_is_block_relative() -> None:
    sites = extract_call_sites(direct_call("g", 20, count=5), 16, _registry())
    assert sites == [CallSiteInfo(offset=4, dest_id=2, entry_discriminator=0)]
    assert sites[0].count == 5
    assert sites[0].mispreds == 0


def test_zero_count_direct_call_is_dropped() -> None:
    registry = _registry()
    assert extract_call_sites(direct_call("g", 4, count=0), 0, registry) == []
    assert extract_call_sites(direct_call("g", 4), 0, registry) == []


def test_direct_call_to_secondary_entry_sets_discriminator() -> None:
    sites = extract_call_sites(direct_call("multi.entry2", 4, count=1), 0, _registry())
    assert len(sites) == 1
    assert sites[0].dest_id == 4
    assert sites[0].entry_discriminator == 2


def test_unresolved_direct_call_uses_unknown_id() -> None:
    sites = extract_call_sites(direct_call("memcpy@plt", 4, count=3), 0, _registry())
    assert len(sites) == 1
    assert sites[0].dest_id == 0
    assert sites[0].entry_discriminator == 0
    assert sites[0].count == 3


def test_conditional_tail_call_uses_taken_counts() -> None:
    instr = conditional_tail_call("g", 4, taken=7, mispreds=2, count=100)
    sites = extract_call_sites(instr, 0, _registry())
    assert len(sites) == 1
    assert sites[0].count == 7
    assert sites[0].mispreds == 2


def test_conditional_tail_call_without_taken_count_is_dropped() -> None:
    instr = conditional_tail_call("g", 4, mispreds=2, count=100)
    assert extract_call_sites(instr, 0, _registry()) == []


def test_indirect_call_emits_one_record_per_target() -> None:
    instr = indirect(12, [("h", 3, 1), ("dlsym_target", 0, 0)])
    sites = extract_call_sites(instr, 0, _registry())
    assert [(site.dest_id, site.count, site.mispreds) for site in sites] == [
        (3, 3, 1),
        (0, 0, 0),
    ]
    assert all(site.offset == 12 for site in sites)
    assert all(site.entry_discriminator == 0 for site in sites)


def test_indirect_call_without_profile_is_skipped() -> None:
    assert extract_call_sites(indirect(12, None), 0, _registry()) == []


def test_indirect_branch_is_treated_like_indirect_call() -> None:
    instr = indirect(6, [("g", 9, 4), (None, 1, 0)], kind="indirect_branch")
    sites = extract_call_sites(instr, 0, _registry())
    assert [site.dest_id for site in sites] == [2, 0]


def test_block_call_sites_are_sorted() -> None:
    block = BasicBlock(
        index=0,
        instructions=[
            direct_call("h", 12, count=1),
            indirect(4, [("h", 2, 0), ("g", 5, 0), (None, 1, 0)]),
            direct_call("g", 12, count=3),
        ],
    )
    sites = block_call_sites(block, _registry())
    keys = [(site.offset, site.dest_id, site.entry_discriminator) for site in sites]
    assert keys == sorted(keys)
    assert keys == [(4, 0, 0), (4, 2, 0), (4, 3, 0), (12, 2, 0), (12, 3, 0)]
