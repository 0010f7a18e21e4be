"""Record types for a serialized binary profile.

Records are frozen and their sequences are tuples: a record is assembled from
fully built children and never changes afterwards.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

PROFILE_VERSION = 1
UNKNOWN_BUILD_ID = "<unknown>"
UNKNOWN_FUNCTION_ID = 0


class ProfileFlags(enum.IntFlag):
    NONE = 0
    LBR = 1
    SAMPLE = 2
    MEMEVENT = 4


def is_lbr_mode(flags: int) -> bool:
    """Sampled-branch (LBR) profiles carry edges and call sites."""
    return bool(flags & ProfileFlags.LBR)


@dataclass(frozen=True, order=True)
class CallSiteInfo:
    offset: int
    dest_id: int = UNKNOWN_FUNCTION_ID
    entry_discriminator: int = 0
    count: int = field(default=0, compare=False)
    mispreds: int = field(default=0, compare=False)

    def to_dict(self) -> dict[str, int]:
        return {
            "off": self.offset,
            "fid": self.dest_id,
            "disc": self.entry_discriminator,
            "cnt": self.count,
            "mis": self.mispreds,
        }


@dataclass(frozen=True)
class SuccessorInfo:
    index: int
    count: int = 0
    mispreds: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"bid": self.index, "cnt": self.count, "mis": self.mispreds}


@dataclass(frozen=True)
class BlockProfile:
    index: int
    num_instructions: int
    exec_count: int | None = None
    event_count: int | None = None
    call_sites: tuple[CallSiteInfo, ...] | None = None
    successors: tuple[SuccessorInfo, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        # None marks a field the producing mode never fills in.
        data: dict[str, Any] = {"bid": self.index, "insns": self.num_instructions}
        if self.exec_count is not None:
            data["exec"] = self.exec_count
        if self.event_count is not None:
            data["events"] = self.event_count
        if self.call_sites is not None:
            data["calls"] = [site.to_dict() for site in self.call_sites]
        if self.successors is not None:
            data["succ"] = [succ.to_dict() for succ in self.successors]
        return data


@dataclass(frozen=True)
class FunctionProfile:
    name: str
    id: int
    hash: int
    num_blocks: int
    exec_count: int
    blocks: tuple[BlockProfile, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "fid": self.id,
            "hash": self.hash,
            "exec": self.exec_count,
            "nblocks": self.num_blocks,
            "blocks": [block.to_dict() for block in self.blocks],
        }


@dataclass(frozen=True)
class ProfileHeader:
    version: int
    file_name: str
    build_id: str
    origin: str
    event_names: str
    flags: ProfileFlags

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile-version": self.version,
            "binary-name": self.file_name,
            "binary-build-id": self.build_id,
            "profile-flags": int(self.flags),
            "profile-origin": self.origin,
            "profile-events": self.event_names,
        }


@dataclass(frozen=True)
class BinaryProfile:
    header: ProfileHeader
    functions: tuple[FunctionProfile, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header.to_dict(),
            "functions": [func.to_dict() for func in self.functions],
        }
