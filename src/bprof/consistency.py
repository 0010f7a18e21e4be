from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from bprof.binary import FunctionLike, FunctionRegistry, ProfileReaderLike
from bprof.errors import ProfileInvariantError
from bprof.model import PROFILE_VERSION, UNKNOWN_BUILD_ID, ProfileFlags, ProfileHeader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsistentProfile:
    flags: ProfileFlags


@dataclass(frozen=True)
class ConsistencyError:
    function: str
    expected: ProfileFlags
    found: ProfileFlags

    def describe(self) -> str:
        return (
            f"function {self.function} has profile flags {int(self.found)}, "
            f"expected {int(self.expected)}"
        )


ConsistencyResult = ConsistentProfile | ConsistencyError


def check_profile_consistency(functions: Iterable[FunctionLike]) -> ConsistencyResult:
    """Verify every profiled, non-empty function reports the same mode flags."""
    flags = ProfileFlags.NONE
    for func in functions:
        if not func.has_profile or not func.blocks:
            continue
        found = ProfileFlags(func.profile_flags)
        if found == ProfileFlags.NONE:
            return ConsistencyError(func.name, flags, found)
        if flags == ProfileFlags.NONE:
            flags = found
        elif found != flags:
            return ConsistencyError(func.name, flags, found)
    logger.debug("profile flags: %d", int(flags))
    return ConsistentProfile(flags)


def build_header(
    registry: FunctionRegistry,
    reader: ProfileReaderLike,
    result: ConsistencyResult,
    version: int = PROFILE_VERSION,
) -> ProfileHeader:
    if isinstance(result, ConsistencyError):
        raise ProfileInvariantError(
            "expected consistent profile flags across all functions: "
            + result.describe()
        )
    return ProfileHeader(
        version=version,
        file_name=registry.file_name,
        build_id=registry.build_id or UNKNOWN_BUILD_ID,
        origin=reader.name,
        event_names=",".join(reader.event_names),
        flags=result.flags,
    )
