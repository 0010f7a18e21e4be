from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml

from bprof.binary import FunctionRegistry, ProfileReaderLike
from bprof.consistency import build_header, check_profile_consistency
from bprof.encoder import encode_function, is_eligible
from bprof.errors import ProfileWriteError
from bprof.model import PROFILE_VERSION, BinaryProfile, FunctionProfile

logger = logging.getLogger(__name__)

OutputFormat = Literal["yaml", "json"]
OUTPUT_FORMATS: tuple[str, ...] = ("yaml", "json")


class _FlowMapping(dict):
    pass


class _ProfileDumper(yaml.SafeDumper):
    pass


def _represent_flow_mapping(dumper: yaml.SafeDumper, data: _FlowMapping) -> Any:
    return dumper.represent_mapping("tag:yaml.org,2002:map", data, flow_style=True)


_ProfileDumper.add_representer(_FlowMapping, _represent_flow_mapping)


def build_binary_profile(
    registry: FunctionRegistry,
    reader: ProfileReaderLike,
    *,
    version: int = PROFILE_VERSION,
) -> BinaryProfile:
    functions = registry.functions()
    header = build_header(
        registry, reader, check_profile_consistency(functions), version=version
    )
    encoded: list[FunctionProfile] = []
    for func in functions:
        if not func.has_profile:
            continue
        if not is_eligible(func, reader):
            logger.debug("skipping %s: profile is not trusted", func.name)
            continue
        encoded.append(encode_function(func, registry))
    return BinaryProfile(header=header, functions=tuple(encoded))


def _flow_leaves(data: dict[str, Any]) -> dict[str, Any]:
    for func in data["functions"]:
        for block in func["blocks"]:
            for key in ("calls", "succ"):
                if key in block:
                    block[key] = [_FlowMapping(entry) for entry in block[key]]
    return data


def dump_profile(profile: BinaryProfile, fmt: OutputFormat = "yaml") -> str:
    data = profile.to_dict()
    if fmt == "yaml":
        return yaml.dump(
            _flow_leaves(data),
            Dumper=_ProfileDumper,
            default_flow_style=False,
            sort_keys=False,
            width=4096,
        )
    if fmt == "json":
        return json.dumps(data, indent=2) + "\n"
    raise ValueError(f"Unknown output format '{fmt}'")


class ProfileWriter:
    """Writes the profile of every eligible function to one file."""

    def __init__(
        self,
        filename: str | os.PathLike[str],
        *,
        fmt: OutputFormat = "yaml",
        version: int = PROFILE_VERSION,
    ) -> None:
        if fmt not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format '{fmt}'")
        self.path = Path(filename)
        self.fmt = fmt
        self.version = version

    def write_profile(
        self, registry: FunctionRegistry, reader: ProfileReaderLike
    ) -> BinaryProfile:
        try:
            handle = self.path.open("w", encoding="utf-8")
        except OSError as exc:
            cause = exc.strerror or str(exc)
            logger.warning("unable to open %s for output: %s", self.path, cause)
            raise ProfileWriteError(
                exc.errno, f"unable to open for output: {cause}", str(self.path)
            ) from exc
        try:
            with handle:
                profile = build_binary_profile(registry, reader, version=self.version)
                handle.write(dump_profile(profile, self.fmt))
        except Exception:
            self.path.unlink(missing_ok=True)
            raise
        logger.info(
            "wrote profile for %d functions to %s", len(profile.functions), self.path
        )
        return profile
