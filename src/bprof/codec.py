from __future__ import annotations

import json
from typing import Any

import cbor2
import msgpack

from bprof.errors import CodecUnavailableError

CODECS: tuple[str, ...] = ("json", "msgpack", "cbor")

_SUFFIX_CODECS = {
    ".json": "json",
    ".msgpack": "msgpack",
    ".mpk": "msgpack",
    ".cbor": "cbor",
}


def codec_for_suffix(suffix: str, default: str = "json") -> str:
    return _SUFFIX_CODECS.get(suffix.lower(), default)


def encode_payload(obj: Any, codec: str) -> bytes:
    if codec == "json":
        return json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")
    if codec == "msgpack":
        return msgpack.packb(obj, use_bin_type=True)
    if codec == "cbor":
        return cbor2.dumps(obj)
    raise CodecUnavailableError(f"Unknown codec '{codec}'")


def decode_payload(data: bytes, codec: str) -> Any:
    if codec == "json":
        return json.loads(data.decode("utf-8"))
    if codec == "msgpack":
        return msgpack.unpackb(data, raw=False, strict_map_key=False)
    if codec == "cbor":
        return cbor2.loads(data)
    raise CodecUnavailableError(f"Unknown codec '{codec}'")
