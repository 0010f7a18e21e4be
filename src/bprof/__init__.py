"""bprof: deterministic encoder for per-block execution profiles of compiled binaries."""

from __future__ import annotations

from bprof.binary import (
    BasicBlock,
    BinaryContext,
    BinaryFunction,
    BranchInfo,
    IndirectCallProfile,
    Instruction,
    ProfileReader,
)
from bprof.consistency import (
    ConsistencyError,
    ConsistentProfile,
    build_header,
    check_profile_consistency,
)
from bprof.encoder import encode_block, encode_function
from bprof.errors import ProfileInvariantError, ProfileWriteError
from bprof.model import (
    BinaryProfile,
    BlockProfile,
    CallSiteInfo,
    FunctionProfile,
    ProfileFlags,
    ProfileHeader,
    SuccessorInfo,
)
from bprof.writer import ProfileWriter, build_binary_profile, dump_profile

__all__ = sorted(
    [
        "BasicBlock",
        "BinaryContext",
        "BinaryFunction",
        "BinaryProfile",
        "BlockProfile",
        "BranchInfo",
        "CallSiteInfo",
        "ConsistencyError",
        "ConsistentProfile",
        "FunctionProfile",
        "IndirectCallProfile",
        "Instruction",
        "ProfileFlags",
        "ProfileHeader",
        "ProfileInvariantError",
        "ProfileReader",
        "ProfileWriteError",
        "ProfileWriter",
        "SuccessorInfo",
        "build_binary_profile",
        "build_header",
        "check_profile_consistency",
        "dump_profile",
        "encode_block",
        "encode_function",
    ]
)
