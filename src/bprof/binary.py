"""Binary model consumed by the profile encoder.

The encoder only talks to the protocols below. The dataclasses implement them
for snapshots, tests and tools that build a model in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Protocol, Sequence

from bprof.model import ProfileFlags

OFFSET_ANNOTATION = "Offset"
CALL_PROFILE_ANNOTATION = "CallProfile"
COUNT_ANNOTATION = "Count"
CTC_TAKEN_ANNOTATION = "CTCTakenCount"
CTC_MISPRED_ANNOTATION = "CTCMispredCount"

InstrKind = Literal[
    "other",
    "pseudo",
    "call",
    "indirect_call",
    "indirect_branch",
    "tail_call",
    "conditional_tail_call",
]
INSTR_KINDS: frozenset[str] = frozenset(
    {
        "other",
        "pseudo",
        "call",
        "indirect_call",
        "indirect_branch",
        "tail_call",
        "conditional_tail_call",
    }
)
_CALL_KINDS = {"call", "indirect_call", "tail_call", "conditional_tail_call"}


@dataclass(frozen=True)
class IndirectCallProfile:
    symbol: str | None
    count: int = 0
    mispreds: int = 0


@dataclass(frozen=True)
class BranchInfo:
    count: int = 0
    mispredicted_count: int = 0


class InstructionLike(Protocol):
    opcode: str
    target_symbol: str | None

    def is_call(self) -> bool: ...

    def is_indirect_call(self) -> bool: ...

    def is_indirect_branch(self) -> bool: ...

    def has_conditional_tail_call(self) -> bool: ...

    def is_pseudo(self) -> bool: ...

    def annotation(self, name: str) -> Any | None: ...


class BlockLike(Protocol):
    index: int
    input_offset: int
    execution_count: int | None
    is_entry_point: bool
    is_landing_pad: bool

    @property
    def instructions(self) -> Sequence[InstructionLike]: ...

    @property
    def successors(self) -> Sequence[BlockLike]: ...

    @property
    def branch_info(self) -> Sequence[BranchInfo]: ...

    @property
    def landing_pads(self) -> Sequence[BlockLike]: ...

    def num_non_pseudos(self) -> int: ...


class FunctionLike(Protocol):
    name: str
    function_number: int
    execution_count: int | None
    profile_flags: ProfileFlags
    has_valid_profile: bool

    @property
    def has_profile(self) -> bool: ...

    @property
    def blocks(self) -> Sequence[BlockLike]: ...

    def entry_blocks(self) -> list[BlockLike]: ...


class FunctionRegistry(Protocol):
    file_name: str
    build_id: str | None

    def functions(self) -> Sequence[FunctionLike]: ...

    def function_for_symbol(
        self, symbol: str | None
    ) -> tuple[FunctionLike, int] | None: ...


class ProfileReaderLike(Protocol):
    name: str
    is_trusted_source: bool
    event_names: Sequence[str]


@dataclass(eq=False)
class Instruction:
    kind: InstrKind = "other"
    opcode: str = ""
    target_symbol: str | None = None
    annotations: dict[str, Any] = field(default_factory=dict)

    def is_call(self) -> bool:
        return self.kind in _CALL_KINDS

    def is_indirect_call(self) -> bool:
        return self.kind == "indirect_call"

    def is_indirect_branch(self) -> bool:
        return self.kind == "indirect_branch"

    def has_conditional_tail_call(self) -> bool:
        return self.kind == "conditional_tail_call"

    def is_pseudo(self) -> bool:
        return self.kind == "pseudo"

    def annotation(self, name: str) -> Any | None:
        return self.annotations.get(name)


@dataclass(eq=False)
class BasicBlock:
    index: int
    input_offset: int = 0
    instructions: list[Instruction] = field(default_factory=list)
    execution_count: int | None = None
    is_entry_point: bool = False
    is_landing_pad: bool = False
    successors: list[BasicBlock] = field(default_factory=list, repr=False)
    branch_info: list[BranchInfo] = field(default_factory=list, repr=False)
    landing_pads: list[BasicBlock] = field(default_factory=list, repr=False)

    def add_successor(
        self, block: BasicBlock, count: int = 0, mispredicted_count: int = 0
    ) -> None:
        self.successors.append(block)
        self.branch_info.append(BranchInfo(count, mispredicted_count))

    def add_landing_pad(self, block: BasicBlock) -> None:
        if block not in self.landing_pads:
            self.landing_pads.append(block)
        block.is_landing_pad = True

    def num_non_pseudos(self) -> int:
        return sum(1 for instr in self.instructions if not instr.is_pseudo())


@dataclass(eq=False)
class BinaryFunction:
    name: str
    function_number: int
    address: int = 0
    blocks: list[BasicBlock] = field(default_factory=list, repr=False)
    execution_count: int | None = None
    profile_flags: ProfileFlags = ProfileFlags.NONE
    has_valid_profile: bool = False
    entry_symbols: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.entry_symbols:
            self.entry_symbols = [self.name]

    @property
    def has_profile(self) -> bool:
        return self.execution_count is not None

    def entry_blocks(self) -> list[BasicBlock]:
        entries = [block for block in self.blocks if block.is_entry_point]
        if not entries and self.blocks:
            entries = [self.blocks[0]]
        return entries


class BinaryContext:
    """Function registry for one binary.

    Iteration follows (address, function number) so that callers see the
    same order on every run.
    """

    def __init__(
        self,
        file_name: str,
        build_id: str | None = None,
        functions: Iterable[BinaryFunction] = (),
    ) -> None:
        self.file_name = file_name
        self.build_id = build_id
        self._functions: dict[int, BinaryFunction] = {}
        self._symbols: dict[str, tuple[BinaryFunction, int]] = {}
        for func in functions:
            self.add_function(func)

    def add_function(self, func: BinaryFunction) -> None:
        if func.function_number in self._functions:
            raise ValueError(f"Duplicate function id {func.function_number}")
        self._functions[func.function_number] = func
        for entry_id, symbol in enumerate(func.entry_symbols):
            self._symbols.setdefault(symbol, (func, entry_id))

    def functions(self) -> list[BinaryFunction]:
        return sorted(
            self._functions.values(),
            key=lambda func: (func.address, func.function_number),
        )

    def function_for_symbol(
        self, symbol: str | None
    ) -> tuple[BinaryFunction, int] | None:
        if symbol is None:
            return None
        return self._symbols.get(symbol)


@dataclass
class ProfileReader:
    name: str
    is_trusted_source: bool = False
    event_names: tuple[str, ...] = ()
