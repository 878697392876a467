"""
Target data models and record layout.

The adapter has no compiler behind it, so sizes, alignments and field
offsets are computed here for a chosen data model. The rules follow the
Itanium C++ ABI for the common cases: a vtable pointer for dynamic classes
without a dynamic primary base, non-virtual bases first (empty bases take no
space), members at their natural alignment, SysV bit-field packing, virtual
bases after the members, tail padding to the record alignment.

Anything that cannot be resolved (template parameters, unknown library
types, non-literal array bounds) is None and makes every later offset and
the record size None as well.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.naming import SCOPE_SEPARATOR, normalize_cpp_entity_name

logger = logging.getLogger(__name__)

BITS_PER_BYTE = 8


@dataclass(frozen=True)
class Layout:
    """Size and alignment in bytes; None when unknown."""

    size: Optional[int]
    align: Optional[int]

    @property
    def resolved(self) -> bool:
        return self.size is not None and self.align is not None


UNRESOLVED_LAYOUT = Layout(None, None)


@dataclass(frozen=True)
class DataModel:
    """Builtin type sizes for one target ABI."""

    name: str
    pointer_size: int
    sizes: Mapping[str, int]
    aligns: Mapping[str, int] = field(default_factory=dict)

    def builtin(self, canonical: str) -> Optional[Layout]:
        size = self.sizes.get(canonical)
        if size is None:
            return None
        return Layout(size, self.aligns.get(canonical, size))

    def pointer(self) -> Layout:
        return Layout(self.pointer_size, self.pointer_size)


_COMMON_SIZES: Dict[str, int] = {
    "bool": 1,
    "char": 1,
    "char8_t": 1,
    "short": 2,
    "char16_t": 2,
    "int": 4,
    "char32_t": 4,
    "float": 4,
    "long long": 8,
    "double": 8,
    "__int128": 16,
    "int8_t": 1,
    "uint8_t": 1,
    "int16_t": 2,
    "uint16_t": 2,
    "int32_t": 4,
    "uint32_t": 4,
    "int64_t": 8,
    "uint64_t": 8,
    "intmax_t": 8,
    "uintmax_t": 8,
    "byte": 1,
}

# Typedef names whose size follows the pointer width
_POINTER_SIZED = (
    "size_t",
    "ssize_t",
    "ptrdiff_t",
    "intptr_t",
    "uintptr_t",
    "nullptr_t",
)


def _model(
    name: str,
    pointer_size: int,
    overrides: Mapping[str, int],
    aligns: Optional[Mapping[str, int]] = None,
) -> DataModel:
    sizes = dict(_COMMON_SIZES)
    sizes.update({typedef: pointer_size for typedef in _POINTER_SIZED})
    sizes.update(overrides)
    return DataModel(name=name, pointer_size=pointer_size, sizes=sizes, aligns=dict(aligns or {}))


DATA_MODELS: Dict[str, DataModel] = {
    "lp64": _model("lp64", 8, {"long": 8, "wchar_t": 4, "long double": 16}),
    "llp64": _model("llp64", 8, {"long": 4, "wchar_t": 2, "long double": 8}),
    "ilp32": _model(
        "ilp32",
        4,
        {"long": 4, "wchar_t": 4, "long double": 12, "long long": 8, "int64_t": 8,
         "uint64_t": 8, "intmax_t": 8, "uintmax_t": 8},
        aligns={"long double": 4, "long long": 4, "double": 4, "int64_t": 4,
                "uint64_t": 4, "intmax_t": 4, "uintmax_t": 4},
    ),
}


def get_data_model(name: str) -> DataModel:
    """Look up a data model by name.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return DATA_MODELS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown data model '{name}'. Expected one of: {sorted(DATA_MODELS)}"
        ) from None


_QUALIFIER_TOKENS = frozenset({"const", "volatile", "signed", "unsigned", "__signed__", "struct", "class", "union", "enum"})


def canonical_builtin(spelling: str) -> str:
    """Reduce a builtin spelling to the key used in DataModel.sizes.

    Example:
        >>> canonical_builtin("unsigned long long int")
        'long long'
    """
    text = spelling.replace("std::", "").replace("::", " ")
    tokens = [t for t in text.split() if t not in _QUALIFIER_TOKENS]
    if not tokens:
        return "int"
    if "int" in tokens and ("long" in tokens or "short" in tokens):
        tokens.remove("int")
    return " ".join(tokens)


def _align_up(value: int, alignment: int) -> int:
    if alignment <= 1:
        return value
    return (value + alignment - 1) // alignment * alignment


@dataclass
class TypeEntry:
    """A named type known to the run."""

    name: str
    kind: str
    layout: Layout
    attributes: Tuple = ()
    dynamic: bool = False
    empty: bool = False


class TypeTable:
    """Records, aliases and enums seen so far in a run, plus builtins."""

    def __init__(self, data_model: DataModel):
        self.data_model = data_model
        self._entries: Dict[str, TypeEntry] = {}

    def define(self, entry: TypeEntry) -> None:
        name = normalize_cpp_entity_name(entry.name)
        if name in self._entries and self._entries[name].kind == "record" and entry.kind != "record":
            # typedef struct Foo Foo; keeps the record entry
            return
        self._entries[name] = entry
        logger.debug("Registered %s %s (%s)", entry.kind, name, entry.layout)

    def lookup(self, name: str, scope: Sequence[str] = ()) -> Optional[TypeEntry]:
        """Resolve ``name`` from inside ``scope``, innermost scope first."""
        spelled = normalize_cpp_entity_name(name)
        if spelled.startswith(SCOPE_SEPARATOR):
            return self._entries.get(spelled[len(SCOPE_SEPARATOR):])
        for depth in range(len(scope), -1, -1):
            prefix = SCOPE_SEPARATOR.join(scope[:depth])
            candidate = f"{prefix}{SCOPE_SEPARATOR}{spelled}" if prefix else spelled
            entry = self._entries.get(candidate)
            if entry is not None:
                return entry
        return None

    def builtin(self, spelling: str) -> Optional[Layout]:
        return self.data_model.builtin(canonical_builtin(spelling))

    def pointer(self) -> Layout:
        return self.data_model.pointer()

    def resolve(self, spelling: str, scope: Sequence[str] = ()) -> Tuple[Layout, Optional[TypeEntry]]:
        """Layout of a named type, trying user types before builtins."""
        entry = self.lookup(spelling, scope)
        if entry is not None:
            return entry.layout, entry
        builtin = self.builtin(spelling)
        if builtin is not None:
            return builtin, None
        logger.debug("Unresolved type %s", spelling)
        return UNRESOLVED_LAYOUT, None

    def __contains__(self, name: str) -> bool:
        return normalize_cpp_entity_name(name) in self._entries


class RecordLayoutBuilder:
    """Places bases and members of one record, tracking offsets in bits."""

    def __init__(self, data_model: DataModel, is_union: bool = False):
        self._data_model = data_model
        self._is_union = is_union
        self._offset: Optional[int] = 0
        self._union_size: Optional[int] = 0
        self._align: Optional[int] = 1
        self.has_data = False

    @property
    def resolved(self) -> bool:
        return self._offset is not None and self._align is not None

    def _raise_alignment(self, alignment: Optional[int]) -> None:
        if alignment is None or self._align is None:
            self._align = None
        else:
            self._align = max(self._align, alignment)

    def add_vptr(self) -> int:
        """Reserve the vtable pointer at the start of the record."""
        pointer = self._data_model.pointer()
        self.has_data = True
        return self.add_field(pointer)

    def add_base(self, layout: Layout, empty: bool = False) -> Optional[int]:
        """Place a non-virtual base subobject."""
        if empty and layout.resolved and not self._is_union:
            self._raise_alignment(layout.align)
            if self._offset is None:
                return None
            return _align_up(self._offset, layout.align * BITS_PER_BYTE)
        return self.add_field(layout)

    def add_field(self, layout: Layout) -> Optional[int]:
        """Place an ordinary member and return its bit offset."""
        self._raise_alignment(layout.align)
        if layout.size:
            self.has_data = True

        if self._is_union:
            if layout.size is None or self._union_size is None:
                self._union_size = None
            else:
                self._union_size = max(self._union_size, layout.size * BITS_PER_BYTE)
            return 0

        if self._offset is None or layout.align is None:
            self._offset = None
            return None
        start = _align_up(self._offset, layout.align * BITS_PER_BYTE)
        self._offset = None if layout.size is None else start + layout.size * BITS_PER_BYTE
        return start

    def add_bitfield(self, layout: Layout, width: int, named: bool = True) -> Optional[int]:
        """Place a bit-field using SysV packing rules."""
        if named:
            self._raise_alignment(layout.align)
        if not layout.resolved:
            self._offset = None
            if self._is_union:
                self._union_size = None
            return None
        if width:
            self.has_data = True

        if self._is_union:
            if self._union_size is not None:
                self._union_size = max(self._union_size, layout.size * BITS_PER_BYTE)
            return 0

        if self._offset is None:
            return None
        unit = layout.align * BITS_PER_BYTE
        if width == 0:
            self._offset = _align_up(self._offset, unit)
            return self._offset
        start = self._offset
        if start // unit != (start + width - 1) // unit:
            start = _align_up(start, unit)
        self._offset = start + width
        return start

    def mark_unresolved(self) -> None:
        self._offset = None
        self._union_size = None

    def finish(self) -> Layout:
        """Round up to the record alignment; empty records take one byte."""
        end_bits = self._union_size if self._is_union else self._offset
        if self._align is None:
            return Layout(None, None)
        if end_bits is None:
            return Layout(None, self._align)
        size = (end_bits + BITS_PER_BYTE - 1) // BITS_PER_BYTE
        size = _align_up(size, self._align)
        return Layout(max(size, 1), self._align)


def array_layout(element: Layout, count: Optional[int]) -> Layout:
    """Layout of ``element[count]``; a None count leaves the size unknown."""
    if count is None or element.size is None:
        return Layout(None, element.align)
    return Layout(element.size * count, element.align)


def order_bases(bases: Iterable[Tuple[object, Optional[TypeEntry], bool]]) -> List[Tuple[object, Optional[TypeEntry], bool]]:
    """Put the primary base (first dynamic non-virtual base) first.

    Items are ``(base, entry, is_virtual)``; virtual bases keep their
    relative order and are returned after the non-virtual ones.
    """
    items = list(bases)
    non_virtual = [item for item in items if not item[2]]
    virtual = [item for item in items if item[2]]
    for index, item in enumerate(non_virtual):
        entry = item[1]
        if entry is not None and entry.dynamic:
            non_virtual.insert(0, non_virtual.pop(index))
            break
    return non_virtual + virtual
