"""
Host-agnostic declaration model consumed by the walker.

A host adapter materializes these records from its own tree. The walker
dispatches on the concrete record type; member sequences may be any
iterable, including lazy ones that raise ``HostError`` mid-iteration.
"""

import enum
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple, Union

LITERAL_STRING = "string"
LITERAL_INTEGER = "integer"


def _freeze_attributes(instance: Any) -> None:
    # Attribute lists are read more than once; keep them as tuples.
    object.__setattr__(instance, "attributes", tuple(instance.attributes))


@dataclass(frozen=True)
class SourceLocation:
    """File and 1-indexed line of a declaration."""

    file: str
    line: int


@dataclass(frozen=True)
class Literal:
    """A single attribute argument as the front-end saw it.

    Attributes:
        kind: ``"string"``, ``"integer"`` or any other front-end kind name.
        value: Decoded value for known kinds, raw text otherwise.
    """

    kind: str
    value: Any


@dataclass(frozen=True)
class RawAttribute:
    """An attribute attached to a declaration or type, e.g. ``compex::tag``."""

    name: str
    arguments: Tuple[Literal, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "arguments", tuple(self.arguments))


@dataclass(frozen=True)
class TypeRef:
    """Shape of a type at one use site.

    ``size`` and ``align`` are in bytes and None when not statically known.
    ``attributes`` are those attached to the type at this use site,
    including the ones the referenced type carries itself.
    """

    name: Optional[str]
    size: Optional[int] = None
    align: Optional[int] = None
    attributes: Tuple[RawAttribute, ...] = ()

    def __post_init__(self):
        _freeze_attributes(self)


class Access(enum.Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


class FunctionRole(enum.Enum):
    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    DESTRUCTOR = "destructor"


class ConstructorKind(enum.Enum):
    DEFAULT = "default"
    COPY = "copy"
    MOVE = "move"


class FunctionFlags(enum.Flag):
    """Qualifiers of a function-like declaration."""

    NONE = 0
    CONST = enum.auto()
    STATIC = enum.auto()
    VIRTUAL = enum.auto()
    VARIADIC = enum.auto()
    DELETED = enum.auto()
    IMPLICIT = enum.auto()
    EXPLICIT = enum.auto()
    NORETURN = enum.auto()
    NOTHROW = enum.auto()
    CONSTEXPR = enum.auto()
    EXTERN_C = enum.auto()
    ARTIFICIAL = enum.auto()
    OPERATOR = enum.auto()
    CONVERSION = enum.auto()
    THUNK = enum.auto()


@dataclass(frozen=True)
class ParameterDecl:
    name: Optional[str]
    type: TypeRef
    attributes: Tuple[RawAttribute, ...] = ()

    def __post_init__(self):
        _freeze_attributes(self)


@dataclass(frozen=True)
class FieldDecl:
    """A data member.

    Attributes:
        name: Member name, None for anonymous members and unnamed bit-fields.
        type: Type of the member; its attributes carry the member's tags.
        bit_offset: Offset of the first bit from the start of the record.
        bit_width: Declared width for bit-fields, None otherwise.
        artificial: Compiler-generated member (e.g. a vtable pointer).
    """

    name: Optional[str]
    type: TypeRef
    bit_offset: Optional[int] = None
    bit_width: Optional[int] = None
    artificial: bool = False

    @property
    def is_bitfield(self) -> bool:
        return self.bit_width is not None


@dataclass(frozen=True)
class BaseRef:
    type: TypeRef
    access: Optional[Access] = None
    is_virtual: bool = False


@dataclass(frozen=True)
class FunctionDecl:
    name: Optional[str]
    location: SourceLocation
    role: FunctionRole = FunctionRole.FUNCTION
    flags: FunctionFlags = FunctionFlags.NONE
    constructor_kind: Optional[ConstructorKind] = None
    parameters: Iterable[ParameterDecl] = ()
    attributes: Tuple[RawAttribute, ...] = ()
    mangled_name: Optional[str] = None

    def __post_init__(self):
        _freeze_attributes(self)


@dataclass(frozen=True)
class RecordDecl:
    """A struct, class or union.

    ``is_complete`` is False for forward declarations; such records carry
    no size, members or bases.
    """

    name: Optional[str]
    location: SourceLocation
    kind: str = "struct"
    is_complete: bool = True
    size: Optional[int] = None
    align: Optional[int] = None
    fields: Iterable[FieldDecl] = ()
    methods: Iterable[FunctionDecl] = ()
    bases: Iterable[BaseRef] = ()
    attributes: Tuple[RawAttribute, ...] = ()

    def __post_init__(self):
        _freeze_attributes(self)


Declaration = Union[RecordDecl, FunctionDecl, FieldDecl, ParameterDecl, BaseRef]
