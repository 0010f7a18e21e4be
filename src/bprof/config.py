"""Writer settings from pyproject.toml and the environment.

Precedence, lowest first: built-in defaults, ``[tool.bprof]`` in
``pyproject.toml``, ``BPROF_*`` environment variables. Command-line flags are
applied on top by the caller.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from bprof.codec import CODECS
from bprof.model import PROFILE_VERSION
from bprof.writer import OUTPUT_FORMATS


@dataclass(frozen=True)
class WriterConfig:
    format: str = "yaml"
    version: int = PROFILE_VERSION
    codec: str = "json"

    def validate(self) -> WriterConfig:
        if self.format not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {self.format}")
        if self.codec not in CODECS:
            raise ValueError(f"Unsupported snapshot codec: {self.codec}")
        if self.version < 1:
            raise ValueError(f"Invalid profile version: {self.version}")
        return self


def _load_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    return tomllib.loads(path.read_text())


def load_config(root: Path | None = None) -> WriterConfig:
    root = root or Path.cwd()
    tool_cfg = _load_toml(root / "pyproject.toml").get("tool", {}).get("bprof", {})
    config = WriterConfig(
        format=str(tool_cfg.get("format", WriterConfig.format)),
        version=int(tool_cfg.get("version", WriterConfig.version)),
        codec=str(tool_cfg.get("codec", WriterConfig.codec)),
    )
    env_format = os.environ.get("BPROF_FORMAT", "").strip()
    if env_format:
        config = replace(config, format=env_format.lower())
    env_codec = os.environ.get("BPROF_CODEC", "").strip()
    if env_codec:
        config = replace(config, codec=env_codec.lower())
    return config.validate()
