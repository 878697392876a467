"""
Declaration walker: the orchestrator of the emission core.

Given top-level declarations from a host adapter, the walker applies the
eligibility rule, walks every eligible record or function in full and
renders it through the structured emitter. Struct records get an anchor on
first definition; later base references to them become aliases.

A walker instance holds run-scoped state (identity registry, document keys,
carried forward-declaration tags). It is not safe for concurrent use: give
each run its own instance and serialize calls.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, Optional, Set, Tuple

from emission.emitter import KeyScope, StructuredEmitter
from emission.errors import HostError
from emission.identity import IdentityRegistry
from emission.model import (
    Access,
    BaseRef,
    ConstructorKind,
    Declaration,
    FieldDecl,
    FunctionDecl,
    FunctionFlags,
    FunctionRole,
    ParameterDecl,
    RecordDecl,
    SourceLocation,
)
from emission.policy import should_emit
from emission.tags import (
    DEFAULT_TAG_ATTRIBUTES,
    TagList,
    extract_tags,
    visible_instances,
)

logger = logging.getLogger(__name__)

UNRESOLVED = -1

# Qualifier keys in output order.
_FLAG_KEYS: Tuple[Tuple[FunctionFlags, str], ...] = (
    (FunctionFlags.CONSTEXPR, "constexpr"),
    (FunctionFlags.DELETED, "deleted"),
    (FunctionFlags.EXTERN_C, "externc"),
    (FunctionFlags.NORETURN, "noreturn"),
    (FunctionFlags.VARIADIC, "varargs"),
    (FunctionFlags.IMPLICIT, "implicit"),
    (FunctionFlags.STATIC, "static"),
    (FunctionFlags.CONST, "const"),
    (FunctionFlags.VIRTUAL, "virtual"),
    (FunctionFlags.NOTHROW, "nothrow"),
    (FunctionFlags.ARTIFICIAL, "artificial"),
    (FunctionFlags.OPERATOR, "operator"),
    (FunctionFlags.CONVERSION, "cast_operator"),
    (FunctionFlags.THUNK, "thunk"),
)


@dataclass
class WalkStats:
    """Counters for one run of the walker."""

    records_emitted: int = 0
    functions_emitted: int = 0
    skipped: int = 0
    duplicates: int = 0
    incomplete: int = 0
    aborted: int = 0
    unresolved: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class _PendingRecord:
    """An eligible forward declaration waiting for its definition."""

    declaration: RecordDecl
    tags: TagList


def _describe(declaration: Declaration) -> str:
    name = getattr(declaration, "name", None) or "<anonymous>"
    location = getattr(declaration, "location", None)
    if location is None:
        return name
    return f"{name} ({location.file}:{location.line})"


class DeclarationWalker:
    """Walks top-level declarations and writes the structured document.

    Args:
        sink: Destination with ``write(str)`` and ``flush()``.
        dump_all: Bypass the tag requirement for every declaration.
        registry: Identity registry; a fresh one per walker by default.
        tag_attributes: Attribute names that denote a tag.
    """

    def __init__(
        self,
        sink,
        dump_all: bool = False,
        registry: Optional[IdentityRegistry] = None,
        tag_attributes: Iterable[str] = DEFAULT_TAG_ATTRIBUTES,
    ):
        self._sink = sink
        self._emitter = StructuredEmitter(sink)
        self._registry = registry if registry is not None else IdentityRegistry()
        self._dump_all = dump_all
        self._tag_attributes = frozenset(tag_attributes)
        self._keys = KeyScope()
        self._function_signatures: Set[Tuple[Optional[str], Tuple[Optional[str], ...]]] = set()
        self._pending: Dict[str, _PendingRecord] = {}
        self.stats = WalkStats()

    @property
    def registry(self) -> IdentityRegistry:
        return self._registry

    @property
    def depth(self) -> int:
        return self._emitter.depth

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle_group(self, declarations: Iterable[Declaration]) -> int:
        """Process one group of top-level declarations, then flush.

        Returns:
            Number of declarations that produced output.
        """
        emitted = 0
        for declaration in declarations:
            if self.handle_declaration(declaration):
                emitted += 1
        self._sink.flush()
        return emitted

    def handle_declaration(self, declaration: Declaration) -> bool:
        """Process a single top-level declaration.

        Returns:
            True if any text was written for it.
        """
        lines_before = self._emitter.lines_written
        try:
            if isinstance(declaration, RecordDecl):
                return self._handle_record(declaration)
            if isinstance(declaration, FunctionDecl):
                return self._handle_function(declaration)
        except HostError as e:
            self.stats.aborted += 1
            logger.error("Aborted dump of %s: %s", _describe(declaration), e)
            return self._emitter.lines_written > lines_before

        logger.debug("Skipping top-level %s", type(declaration).__name__)
        return False

    def finish(self) -> None:
        """Emit header-only stubs for eligible types that were never defined."""
        for pending in self._pending.values():
            declaration = pending.declaration
            logger.warning(
                "Type %s is declared but never defined; emitting header only",
                _describe(declaration),
            )
            key = self._keys.claim(declaration.name)
            with self._emitter.mapping(key, tag="struct"):
                self._emit_location(declaration.location)
                self._emitter.flag("incomplete", True)
                self._emit_tags(pending.tags)
            self.stats.incomplete += 1
        self._pending.clear()
        self._sink.flush()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _handle_record(self, declaration: RecordDecl) -> bool:
        tags = extract_tags(declaration, self._tag_attributes)
        canonical = (
            self._registry.canonical_name(declaration.name)
            if declaration.name
            else None
        )

        if not declaration.is_complete:
            self._remember_forward(declaration, canonical, tags)
            return False

        pending = self._pending.get(canonical) if canonical else None
        if pending is not None:
            tags = pending.tags + tags

        if not should_emit(declaration, tags, self._dump_all):
            self.stats.skipped += 1
            return False

        if pending is not None:
            del self._pending[canonical]
        if canonical is None:
            canonical = self._registry.canonical_name(None)

        if not self._registry.try_define(canonical):
            logger.info(
                "Type %s already dumped, ignoring redeclaration",
                _describe(declaration),
            )
            self.stats.duplicates += 1
            return False

        key = self._keys.claim(declaration.name or canonical)
        self._emit_record(key, canonical, declaration, tags)
        self.stats.records_emitted += 1
        return True

    def _remember_forward(
        self,
        declaration: RecordDecl,
        canonical: Optional[str],
        tags: TagList,
    ) -> None:
        if canonical is None or self._registry.is_defined(canonical):
            return

        pending = self._pending.get(canonical)
        merged = (pending.tags if pending is not None else ()) + tags
        if not should_emit(declaration, merged, self._dump_all):
            self.stats.skipped += 1
            return

        if pending is None:
            self._pending[canonical] = _PendingRecord(declaration, merged)
        else:
            pending.tags = merged
        logger.debug("Forward declaration of %s carried", _describe(declaration))

    def _emit_record(
        self,
        key: str,
        canonical: str,
        declaration: RecordDecl,
        tags: TagList,
    ) -> None:
        name = declaration.name or canonical
        emitter = self._emitter
        with emitter.mapping(key, tag="struct", anchor=canonical):
            self._emit_location(declaration.location)
            emitter.scalar("$sizeof", self._resolved(declaration.size, "size", name))
            emitter.scalar("$alignof", self._resolved(declaration.align, "alignment", name))
            self._emit_tags(tags)

            slots = KeyScope()
            for index, base in enumerate(declaration.bases):
                with emitter.mapping(slots.claim(f"base_{index}$"), tag="base"):
                    self._emit_base(base)

            for field in declaration.fields:
                self._emit_field(field, name, slots)

            methods = list(declaration.methods)
            constructors = [m for m in methods if m.role is FunctionRole.CONSTRUCTOR]
            others = [m for m in methods if m.role is not FunctionRole.CONSTRUCTOR]
            for index, method in enumerate(constructors + others):
                with emitter.mapping(slots.claim(f"method_{index}$"), tag="method"):
                    self._emit_function_body(method)

    def _emit_base(self, base: BaseRef) -> None:
        access = base.access if base.access is not None else Access.PUBLIC
        self._emitter.scalar("access", access.value)
        self._emitter.flag("virtual", base.is_virtual)
        self._emitter.scalar("name", base.type.name or "")
        if not base.type.name:
            return

        canonical = self._registry.canonical_name(base.type.name)
        token = self._registry.reference_token(canonical)
        if token is not None:
            self._emitter.alias("ref", token)
        else:
            logger.debug("Base %s not dumped yet; no reference", base.type.name)

    def _emit_field(self, field: FieldDecl, owner: str, slots: KeyScope) -> None:
        emitter = self._emitter
        slot = field.name if field.name else self._registry.anonymous_name()
        with emitter.mapping(slots.claim(f"{slot}$"), tag="field"):
            if field.name:
                emitter.scalar("name", field.name)
            if field.type.name:
                emitter.scalar("type", field.type.name)
            what = f"{owner}.{slot}"
            emitter.scalar("size", self._resolved(field.type.size, "size", what))
            emitter.scalar("align", self._resolved(field.type.align, "alignment", what))
            offset = self._resolved(field.bit_offset, "offset", what)
            emitter.scalar("offset", offset)
            emitter.scalar("boffset", offset % 8 if offset != UNRESOLVED else UNRESOLVED)
            emitter.flag("artificial", field.artificial)
            emitter.flag("unknown", not field.name)
            if field.is_bitfield:
                emitter.flag("bitfield", True)
                emitter.scalar("width", field.bit_width)
            self._emit_tags(extract_tags(field, self._tag_attributes))

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _handle_function(self, declaration: FunctionDecl) -> bool:
        tags = extract_tags(declaration, self._tag_attributes)
        if not should_emit(declaration, tags, self._dump_all):
            self.stats.skipped += 1
            return False

        parameters = tuple(declaration.parameters)
        signature = (declaration.name, tuple(p.type.name for p in parameters))
        if signature in self._function_signatures:
            logger.info(
                "Function %s already dumped, ignoring redeclaration",
                _describe(declaration),
            )
            self.stats.duplicates += 1
            return False
        self._function_signatures.add(signature)

        key = self._keys.claim(
            declaration.name or self._registry.canonical_name(None)
        )
        with self._emitter.mapping(key, tag="function"):
            self._emit_location(declaration.location)
            self._emit_function_body(declaration, parameters, tags)
        self.stats.functions_emitted += 1
        return True

    def _emit_function_body(
        self,
        declaration: FunctionDecl,
        parameters: Optional[Tuple[ParameterDecl, ...]] = None,
        tags: Optional[TagList] = None,
    ) -> None:
        emitter = self._emitter
        emitter.scalar("name", declaration.name or "")
        if declaration.mangled_name:
            emitter.scalar("asm", declaration.mangled_name)

        flags = declaration.flags
        for flag, key in _FLAG_KEYS:
            emitter.flag(key, bool(flags & flag))

        if declaration.role is FunctionRole.CONSTRUCTOR:
            emitter.flag("constructor", True)
        emitter.flag("explicit", bool(flags & FunctionFlags.EXPLICIT))
        if declaration.role is FunctionRole.CONSTRUCTOR:
            kind = declaration.constructor_kind
            emitter.flag("default", kind is ConstructorKind.DEFAULT)
            emitter.flag("copy", kind is ConstructorKind.COPY)
            emitter.flag("move", kind is ConstructorKind.MOVE)
        emitter.flag("destructor", declaration.role is FunctionRole.DESTRUCTOR)

        if parameters is None:
            parameters = tuple(declaration.parameters)
        if not parameters:
            emitter.empty_sequence("args")
        else:
            with emitter.sequence("args"):
                for parameter in parameters:
                    with emitter.item(tag="param"):
                        emitter.scalar("name", parameter.name or "")
                        emitter.scalar("type", parameter.type.name or "")
                        self._emit_tags(extract_tags(parameter, self._tag_attributes))

        if tags is None:
            tags = extract_tags(declaration, self._tag_attributes)
        self._emit_tags(tags)

    # ------------------------------------------------------------------
    # Shared pieces
    # ------------------------------------------------------------------

    def _emit_location(self, location: SourceLocation) -> None:
        self._emitter.scalar("$srcFile", location.file)
        self._emitter.scalar("$srcLine", location.line)

    def _emit_tags(self, tags: TagList) -> None:
        instances = visible_instances(tags)
        if not instances:
            return
        with self._emitter.sequence("tags"):
            for instance in instances:
                with self._emitter.item():
                    for value in instance:
                        self._emitter.value_item(value)

    def _resolved(self, value: Optional[int], what: str, subject: str) -> int:
        if value is None:
            self.stats.unresolved += 1
            logger.warning("Could not resolve %s of %s; writing %d", what, subject, UNRESOLVED)
            return UNRESOLVED
        return value


def dump_declarations(
    groups: Iterable[Iterable[Declaration]],
    sink,
    dump_all: bool = False,
    tag_attributes: Iterable[str] = DEFAULT_TAG_ATTRIBUTES,
) -> WalkStats:
    """Run a fresh walker over ``groups`` and finish the document."""
    walker = DeclarationWalker(sink, dump_all=dump_all, tag_attributes=tag_attributes)
    for group in groups:
        walker.handle_group(group)
    walker.finish()
    return walker.stats
