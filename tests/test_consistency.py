from __future__ import annotations

import pytest

from bprof.binary import BinaryContext, BinaryFunction
from bprof.consistency import (
    ConsistencyError,
    ConsistentProfile,
    build_header,
    check_profile_consistency,
)
from bprof.errors import ProfileInvariantError
from bprof.model import ProfileFlags
from tests.profile_fixtures import make_function, reader


def test_consistent_lbr_profile() -> None:
    functions = [
        make_function("a", 1, exec_count=3),
        make_function("b", 2, exec_count=0),
    ]
    assert check_profile_consistency(functions) == ConsistentProfile(ProfileFlags.LBR)


def test_no_profiled_functions_yields_none_flags() -> None:
    functions = [make_function("a", 1, exec_count=None)]
    assert check_profile_consistency(functions) == ConsistentProfile(ProfileFlags.NONE)


def test_unprofiled_and_empty_functions_are_ignored() -> None:
    functions = [
        make_function("a", 1, flags=ProfileFlags.SAMPLE, exec_count=None),
        BinaryFunction(
            name="stub",
            function_number=2,
            execution_count=1,
            profile_flags=ProfileFlags.SAMPLE,
        ),
        make_function("c", 3, flags=ProfileFlags.LBR, exec_count=1),
    ]
    assert check_profile_consistency(functions) == ConsistentProfile(ProfileFlags.LBR)


def test_mixed_flags_are_reported() -> None:
    functions = [
        make_function("a", 1, flags=ProfileFlags.LBR, exec_count=1),
        make_function("b", 2, flags=ProfileFlags.SAMPLE, exec_count=1),
    ]
    result = check_profile_consistency(functions)
    assert isinstance(result, ConsistencyError)
    assert result.function == "b"
    assert result.expected == ProfileFlags.LBR
    assert result.found == ProfileFlags.SAMPLE


def test_profiled_function_without_flags_is_reported() -> None:
    functions = [make_function("a", 1, flags=ProfileFlags.NONE, exec_count=1)]
    result = check_profile_consistency(functions)
    assert isinstance(result, ConsistencyError)
    assert result.function == "a"


def test_header_rejects_inconsistent_profile() -> None:
    functions = [
        make_function("a", 1, flags=ProfileFlags.LBR, exec_count=1),
        make_function("b", 2, flags=ProfileFlags.SAMPLE, exec_count=1),
    ]
    context = BinaryContext("a.out", functions=functions)
    result = check_profile_consistency(context.functions())
    with pytest.raises(ProfileInvariantError, match="consistent profile flags"):
        build_header(context, reader(), result)
    with pytest.raises(AssertionError):
        build_header(context, reader(), result)


def test_header_fields() -> None:
    context = BinaryContext("server.bin", build_id="0badc0de")
    header = build_header(
        context,
        reader(events=("cycles", "branch-misses")),
        ConsistentProfile(ProfileFlags.SAMPLE),
    )
    assert header.to_dict() == {
        "profile-version": 1,
        "binary-name": "server.bin",
        "binary-build-id": "0badc0de",
        "profile-flags": 2,
        "profile-origin": "perf",
        "profile-events": "cycles,branch-misses",
    }


def test_header_defaults_for_missing_metadata() -> None:
    header = build_header(
        BinaryContext("a.out"), reader(), ConsistentProfile(ProfileFlags.LBR)
    )
    assert header.build_id == "<unknown>"
    assert header.event_names == ""
    assert header.version == 1
