from __future__ import annotations


class ProfileError(Exception):
    """Base error for bprof failures."""


class ProfileWriteError(OSError):
    """Output destination could not be created or opened."""


class ProfileInvariantError(AssertionError):
    """Upstream profile data broke an encoder invariant."""


class SnapshotError(ProfileError, ValueError):
    """Snapshot payload does not describe a valid binary."""


class CodecUnavailableError(ProfileError, RuntimeError):
    """Requested snapshot codec is not supported."""
