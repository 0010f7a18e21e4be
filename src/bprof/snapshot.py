"""Build an in-memory binary model from a decoded snapshot.

A snapshot is a plain mapping (decoded from JSON, MsgPack or CBOR) with a
``binary`` section, a ``reader`` section and a ``functions`` list. Blocks are
listed in layout order; successor and landing-pad references use that
position.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from bprof.binary import (
    CALL_PROFILE_ANNOTATION,
    COUNT_ANNOTATION,
    CTC_MISPRED_ANNOTATION,
    CTC_TAKEN_ANNOTATION,
    INSTR_KINDS,
    OFFSET_ANNOTATION,
    BasicBlock,
    BinaryContext,
    BinaryFunction,
    IndirectCallProfile,
    Instruction,
    ProfileReader,
)
from bprof.codec import codec_for_suffix, decode_payload
from bprof.errors import SnapshotError
from bprof.model import ProfileFlags

_FLAG_NAMES = {
    "lbr": ProfileFlags.LBR,
    "sample": ProfileFlags.SAMPLE,
    "memevent": ProfileFlags.MEMEVENT,
}


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise SnapshotError(f"{where}: expected a mapping")
    return value


def _list(value: Any, where: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise SnapshotError(f"{where}: expected a list")
    return list(value)


def _int(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotError(f"{where}: expected an integer, got {value!r}")
    return value


def _optional_int(value: Any, where: str) -> int | None:
    return None if value is None else _int(value, where)


def _parse_flags(raw: Any, where: str) -> ProfileFlags:
    if raw is None:
        return ProfileFlags.NONE
    if isinstance(raw, int) and not isinstance(raw, bool):
        return ProfileFlags(raw)
    flags = ProfileFlags.NONE
    for name in _list(raw, where):
        flag = _FLAG_NAMES.get(str(name).lower())
        if flag is None:
            raise SnapshotError(f"{where}: unknown profile flag {name!r}")
        flags |= flag
    return flags


def _parse_instruction(data: Any, where: str) -> Instruction:
    data = _mapping(data, where)
    kind = data.get("kind", "other")
    if kind not in INSTR_KINDS:
        raise SnapshotError(f"{where}: unknown instruction kind {kind!r}")
    annotations: dict[str, Any] = {}
    if "offset" in data:
        annotations[OFFSET_ANNOTATION] = _int(data["offset"], f"{where}.offset")
    if "count" in data:
        annotations[COUNT_ANNOTATION] = _int(data["count"], f"{where}.count")
    if "ctc" in data:
        ctc = _mapping(data["ctc"], f"{where}.ctc")
        if "taken" in ctc:
            annotations[CTC_TAKEN_ANNOTATION] = _int(ctc["taken"], f"{where}.ctc")
        if "mispreds" in ctc:
            annotations[CTC_MISPRED_ANNOTATION] = _int(
                ctc["mispreds"], f"{where}.ctc"
            )
    if "targets" in data:
        profile: list[IndirectCallProfile] = []
        for idx, entry in enumerate(_list(data["targets"], f"{where}.targets")):
            entry_where = f"{where}.targets[{idx}]"
            entry = _list(entry, entry_where)
            if len(entry) != 3:
                raise SnapshotError(
                    f"{entry_where}: expected [symbol, count, mispreds]"
                )
            symbol, count, mispreds = entry
            profile.append(
                IndirectCallProfile(
                    None if symbol is None else str(symbol),
                    _int(count, entry_where),
                    _int(mispreds, entry_where),
                )
            )
        annotations[CALL_PROFILE_ANNOTATION] = profile
    target = data.get("target")
    return Instruction(
        kind=kind,
        opcode=str(data.get("opcode", kind)),
        target_symbol=None if target is None else str(target),
        annotations=annotations,
    )


def _block_ref(blocks: list[BasicBlock], raw: Any, where: str) -> BasicBlock:
    idx = _int(raw, where)
    if idx < 0 or idx >= len(blocks):
        raise SnapshotError(f"{where}: block index {idx} out of range")
    return blocks[idx]


def _parse_function(data: Any, where: str) -> BinaryFunction:
    data = _mapping(data, where)
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise SnapshotError(f"{where}: missing function name")
    symbols = [str(sym) for sym in _list(data.get("symbols"), f"{where}.symbols")]
    func = BinaryFunction(
        name=name,
        function_number=_int(data.get("id"), f"{where}.id"),
        address=_int(data.get("address", 0), f"{where}.address"),
        execution_count=_optional_int(data.get("exec"), f"{where}.exec"),
        profile_flags=_parse_flags(data.get("flags"), f"{where}.flags"),
        has_valid_profile=bool(data.get("valid", False)),
        entry_symbols=symbols,
    )

    raw_blocks = [
        _mapping(raw, f"{where}.blocks[{idx}]")
        for idx, raw in enumerate(_list(data.get("blocks"), f"{where}.blocks"))
    ]
    for idx, raw in enumerate(raw_blocks):
        block_where = f"{where}.blocks[{idx}]"
        func.blocks.append(
            BasicBlock(
                index=idx,
                input_offset=_int(raw.get("offset", 0), f"{block_where}.offset"),
                instructions=[
                    _parse_instruction(instr, f"{block_where}.insns[{pos}]")
                    for pos, instr in enumerate(
                        _list(raw.get("insns"), f"{block_where}.insns")
                    )
                ],
                execution_count=_optional_int(raw.get("exec"), f"{block_where}.exec"),
                is_entry_point=bool(raw.get("entry", idx == 0)),
                is_landing_pad=bool(raw.get("landing_pad", False)),
            )
        )
    for idx, raw in enumerate(raw_blocks):
        block_where = f"{where}.blocks[{idx}]"
        block = func.blocks[idx]
        for edge in _list(raw.get("succ"), f"{block_where}.succ"):
            edge = _list(edge, f"{block_where}.succ")
            if not edge:
                raise SnapshotError(f"{block_where}.succ: empty edge")
            succ = _block_ref(func.blocks, edge[0], f"{block_where}.succ")
            count = _int(edge[1], f"{block_where}.succ") if len(edge) > 1 else 0
            mispreds = _int(edge[2], f"{block_where}.succ") if len(edge) > 2 else 0
            block.add_successor(succ, count, mispreds)
        for pad in _list(raw.get("landing_pads"), f"{block_where}.landing_pads"):
            block.add_landing_pad(
                _block_ref(func.blocks, pad, f"{block_where}.landing_pads")
            )
    return func


def context_from_dict(data: Any) -> tuple[BinaryContext, ProfileReader]:
    data = _mapping(data, "snapshot")
    binary = _mapping(data.get("binary", {}), "binary")
    reader_data = _mapping(data.get("reader", {}), "reader")
    build_id = binary.get("build_id")
    context = BinaryContext(
        file_name=str(binary.get("name", "")),
        build_id=None if build_id is None else str(build_id),
    )
    for idx, raw in enumerate(_list(data.get("functions"), "functions")):
        func = _parse_function(raw, f"functions[{idx}]")
        try:
            context.add_function(func)
        except ValueError as exc:
            raise SnapshotError(f"functions[{idx}]: {exc}") from exc
    reader = ProfileReader(
        name=str(reader_data.get("name", "")),
        is_trusted_source=bool(reader_data.get("trusted", False)),
        event_names=tuple(
            str(event) for event in _list(reader_data.get("events"), "reader.events")
        ),
    )
    return context, reader


def load_snapshot(
    path: Path, codec: str | None = None, *, default_codec: str = "json"
) -> tuple[BinaryContext, ProfileReader]:
    codec = codec or codec_for_suffix(path.suffix, default_codec)
    try:
        data = decode_payload(path.read_bytes(), codec)
    except OSError as exc:
        raise SnapshotError(f"{path}: cannot read snapshot: {exc}") from exc
    except (ValueError, UnicodeDecodeError) as exc:
        raise SnapshotError(f"{path}: cannot decode {codec} snapshot: {exc}") from exc
    return context_from_dict(data)
