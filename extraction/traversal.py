"""
AST traversal and declaration materialization.

This module walks a tree-sitter C++ tree and turns every top-level record,
function definition and prototype into the declaration model consumed by
the walker. Each top-level item becomes one group; records nested in a
record are placed in the same group, before their enclosing record.

Type layout is computed on the fly through a run-wide TypeTable, so types
must be defined before they are used as members or bases, as in C++.
"""

import codecs
import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from tree_sitter import Node, Tree

from core.naming import (
    SCOPE_SEPARATOR,
    normalize_cpp_entity_name,
    normalize_type_spelling,
    qualify_name,
)
from emission.errors import HostError
from emission.model import (
    LITERAL_INTEGER,
    LITERAL_STRING,
    Access,
    BaseRef,
    ConstructorKind,
    Declaration,
    FieldDecl,
    FunctionDecl,
    FunctionFlags,
    FunctionRole,
    Literal,
    ParameterDecl,
    RawAttribute,
    RecordDecl,
    SourceLocation,
    TypeRef,
)
from extraction.config import (
    ALIAS_NODE,
    ATTRIBUTE_DECLARATION,
    CONTAINER_TYPES,
    DECLARATION_NODE,
    ENUM_NODE,
    FIELD_DECLARATION,
    FUNCTION_DEFINITION,
    LINKAGE_SPECIFICATION,
    NAME_NODES,
    NAMESPACE_NODE,
    PREPROCESSOR_CONTAINERS,
    RECORD_KIND_MAP,
    RECORD_TYPES,
    TEMPLATE_WRAPPER,
    TRANSPARENT_DECLARATORS,
    TYPEDEF_NODE,
)
from extraction.layout import (
    UNRESOLVED_LAYOUT,
    Layout,
    RecordLayoutBuilder,
    TypeEntry,
    TypeTable,
    array_layout,
    order_bases,
)

logger = logging.getLogger(__name__)

DeclarationGroup = List[Declaration]

_INTEGER_SUFFIX_RE = re.compile(r"[uUlLzZ]+$")
_OCTAL_RE = re.compile(r"0[0-7]+")
_CV_AND_SPACE_RE = re.compile(r"\b(?:const|volatile)\b|\s+")
_INLINE_ATTRIBUTE_RE = re.compile(r"\[\[.*?\]\]")

_POINTER_DECLARATORS = {
    "pointer_declarator",
    "reference_declarator",
    "abstract_pointer_declarator",
    "abstract_reference_declarator",
}
_ARRAY_DECLARATORS = {"array_declarator", "abstract_array_declarator"}
_FUNCTION_DECLARATORS = {"function_declarator", "abstract_function_declarator"}
_PARAMETER_NODES = {
    "parameter_declaration",
    "optional_parameter_declaration",
    "variadic_parameter_declaration",
}
_FUNCTION_MEMBERS = {FIELD_DECLARATION, DECLARATION_NODE, FUNCTION_DEFINITION}
_SPECIFIER_NODES = {
    "storage_class_specifier",
    "virtual",
    "virtual_function_specifier",
    "type_qualifier",
    "explicit_function_specifier",
}


def node_text(node: Optional[Node]) -> str:
    """Decoded text of a node, empty for None."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _same_node(a: Optional[Node], b: Optional[Node]) -> bool:
    if a is None or b is None:
        return False
    return a.type == b.type and a.start_byte == b.start_byte and a.end_byte == b.end_byte


def _child_of_type(node: Node, *types: str) -> Optional[Node]:
    for child in node.children:
        if child.type in types:
            return child
    return None


def _bitfield_clause(member: Node) -> Optional[Node]:
    """Bit-field clause of a member, also when the grammar wraps it in an error node."""
    clause = _child_of_type(member, "bitfield_clause")
    if clause is not None:
        return clause
    for child in member.children:
        if not child.is_error:
            continue
        clause = _child_of_type(child, "bitfield_clause")
        if clause is not None:
            return clause
        # Recovered as ERROR(":" width); the width is its last named child.
        if child.children and child.children[0].type == ":" and child.named_children:
            return child
    return None


def _find_descendant(node: Optional[Node], node_type: str) -> Optional[Node]:
    """Breadth-first search for the first descendant of a given type."""
    if node is None:
        return None
    queue = list(node.children)
    while queue:
        current = queue.pop(0)
        if current.type == node_type:
            return current
        if current.type != "compound_statement":
            queue.extend(current.children)
    return None


@dataclass
class TraversalContext:
    """Per-file state shared by the materializers."""

    file_path: str
    types: TypeTable

    def location(self, node: Node) -> SourceLocation:
        return SourceLocation(self.file_path, node.start_point.row + 1)


# ----------------------------------------------------------------------
# Attributes and literals
# ----------------------------------------------------------------------


def parse_integer(text: str) -> Optional[int]:
    """Parse a C++ integer literal; None for anything else.

    Example:
        >>> parse_integer("0x1F'FFu")
        8191
    """
    digits = _INTEGER_SUFFIX_RE.sub("", text.strip().replace("'", ""))
    if _OCTAL_RE.fullmatch(digits):
        return int(digits, 8)
    try:
        return int(digits, 0)
    except ValueError:
        return None


def _decode_escape(sequence: str) -> str:
    try:
        return codecs.decode(sequence, "unicode_escape")
    except UnicodeDecodeError:
        return sequence


def _string_value(node: Node) -> str:
    if not node.named_children:
        text = node_text(node)
        start, end = text.find('"'), text.rfind('"')
        return text[start + 1:end] if 0 <= start < end else ""

    pieces = []
    for child in node.named_children:
        if child.type == "string_content":
            pieces.append(node_text(child))
        elif child.type == "escape_sequence":
            pieces.append(_decode_escape(node_text(child)))
    return "".join(pieces)


def parse_literal(node: Node) -> Literal:
    """Turn an attribute argument expression into a Literal.

    Strings (including adjacent-literal concatenation) and integers
    (including a leading minus) are decoded; any other expression keeps its
    node type as the literal kind and its source text as the value.
    """
    kind = node.type
    if kind == "string_literal":
        return Literal(LITERAL_STRING, _string_value(node))
    if kind == "raw_string_literal":
        content = _child_of_type(node, "raw_string_content")
        return Literal(LITERAL_STRING, node_text(content))
    if kind == "concatenated_string":
        parts = [parse_literal(child) for child in node.named_children]
        if parts and all(part.kind == LITERAL_STRING for part in parts):
            return Literal(LITERAL_STRING, "".join(part.value for part in parts))
    elif kind == "number_literal":
        value = parse_integer(node_text(node))
        if value is not None:
            return Literal(LITERAL_INTEGER, value)
        return Literal("float", node_text(node))
    elif kind == "unary_expression":
        operator = node_text(node.child_by_field_name("operator"))
        argument = node.child_by_field_name("argument")
        if argument is not None and operator in ("-", "+"):
            inner = parse_literal(argument)
            if inner.kind == LITERAL_INTEGER:
                return Literal(LITERAL_INTEGER, -inner.value if operator == "-" else inner.value)
    elif kind == "parenthesized_expression" and len(node.named_children) == 1:
        return parse_literal(node.named_children[0])
    return Literal(kind, node_text(node))


def parse_attribute(node: Node) -> RawAttribute:
    """Parse one ``attribute`` node, e.g. ``compex::tag("a", 1)``."""
    prefix = node.child_by_field_name("prefix")
    name = node.child_by_field_name("name")
    spelled = node_text(name) if name is not None else node_text(node).split("(", 1)[0]
    if prefix is not None:
        spelled = f"{node_text(prefix)}{SCOPE_SEPARATOR}{spelled}"

    arguments: Tuple[Literal, ...] = ()
    argument_list = _child_of_type(node, "argument_list")
    if argument_list is not None:
        arguments = tuple(
            parse_literal(child)
            for child in argument_list.named_children
            if child.type != "comment"
        )
    return RawAttribute(normalize_cpp_entity_name(spelled), arguments)


def collect_attributes(node: Optional[Node]) -> Tuple[RawAttribute, ...]:
    """All ``[[...]]`` attributes written directly on ``node``."""
    if node is None:
        return ()
    attributes: List[RawAttribute] = []
    for child in node.children:
        if child.type == ATTRIBUTE_DECLARATION:
            attributes.extend(
                parse_attribute(item) for item in child.named_children if item.type == "attribute"
            )
    return tuple(attributes)


# ----------------------------------------------------------------------
# Types and declarators
# ----------------------------------------------------------------------


@dataclass
class ResolvedType:
    """A type specifier resolved against the TypeTable."""

    spelling: str
    layout: Layout
    attributes: Tuple[RawAttribute, ...] = ()
    nested: List[RecordDecl] = field(default_factory=list)
    anonymous_record: bool = False


@dataclass
class DeclaratorInfo:
    """What a declarator adds on top of its type specifier."""

    name_node: Optional[Node]
    layout: Layout
    suffix: str = ""
    function: Optional[Node] = None
    derived: bool = False
    attributes: Tuple[RawAttribute, ...] = ()


def _qualifiers(decl_node: Node) -> str:
    return " ".join(
        node_text(child)
        for child in decl_node.children
        if child.type == "type_qualifier" and node_text(child) in ("const", "volatile")
    )


def _array_count(size_node: Optional[Node]) -> Optional[int]:
    if size_node is None:
        # flexible array member
        return 0
    if size_node.type == "number_literal":
        return parse_integer(node_text(size_node))
    return None


def _declarator_suffix(declarator: Optional[Node], name_node: Optional[Node]) -> str:
    if declarator is None:
        return ""
    text = declarator.text or b""
    if name_node is not None:
        start = name_node.start_byte - declarator.start_byte
        end = name_node.end_byte - declarator.start_byte
        text = text[:start] + text[end:]
    suffix = text.decode("utf-8", errors="replace")
    return _INLINE_ATTRIBUTE_RE.sub("", suffix)


def analyze_declarator(
    declarator: Optional[Node],
    base: Layout,
    types: TypeTable,
) -> DeclaratorInfo:
    """Apply a declarator chain to a base layout.

    Declarators are applied outermost first; the declared entity is a
    function when the declarator nearest to the name is a function
    declarator (``*f(int)``), not when it is a pointer (``(*f)(int)``).
    """
    layout = base
    function: Optional[Node] = None
    derived = False
    attributes: List[RawAttribute] = []
    node = declarator

    while node is not None and node.type not in NAME_NODES:
        kind = node.type
        if kind in _FUNCTION_DECLARATORS:
            function = node
            layout = UNRESOLVED_LAYOUT
            node = node.child_by_field_name("declarator")
        elif kind in _POINTER_DECLARATORS:
            function = None
            layout = types.pointer()
            inner = node.child_by_field_name("declarator")
            if inner is None:
                named = [c for c in node.named_children if c.type not in ("type_qualifier", ATTRIBUTE_DECLARATION)]
                inner = named[-1] if named else None
            node = inner
        elif kind in _ARRAY_DECLARATORS:
            function = None
            layout = array_layout(layout, _array_count(node.child_by_field_name("size")))
            node = node.child_by_field_name("declarator")
        elif kind in TRANSPARENT_DECLARATORS or kind == "variadic_declarator":
            attributes.extend(collect_attributes(node))
            named = [c for c in node.named_children if c.type != ATTRIBUTE_DECLARATION]
            node = named[0] if named else None
            continue
        elif node.child_by_field_name("declarator") is not None:
            node = node.child_by_field_name("declarator")
            continue
        else:
            logger.debug("Unhandled declarator %s", kind)
            node = None
            break
        derived = True

    return DeclaratorInfo(
        name_node=node,
        layout=layout,
        suffix=_declarator_suffix(declarator, node),
        function=function,
        derived=derived,
        attributes=tuple(attributes),
    )


def register_enum(node: Node, ctx: TraversalContext, scope: Sequence[str]) -> Layout:
    """Record an enum's underlying layout under its qualified name."""
    base = node.child_by_field_name("base")
    layout = ctx.types.builtin(node_text(base)) if base is not None else None
    if layout is None:
        layout = ctx.types.builtin("int")
    name_node = node.child_by_field_name("name")
    if name_node is not None and node.child_by_field_name("body") is not None:
        ctx.types.define(TypeEntry(qualify_name(scope, node_text(name_node)), "enum", layout))
    return layout


def resolve_type(
    type_node: Optional[Node],
    ctx: TraversalContext,
    scope: Sequence[str],
) -> ResolvedType:
    """Resolve a type specifier, materializing records defined in place."""
    if type_node is None:
        return ResolvedType("", UNRESOLVED_LAYOUT)

    kind = type_node.type
    spelling = normalize_type_spelling(node_text(type_node))

    if kind in ("primitive_type", "sized_type_specifier"):
        return ResolvedType(spelling, ctx.types.builtin(spelling) or UNRESOLVED_LAYOUT)

    if kind in RECORD_TYPES:
        name_node = type_node.child_by_field_name("name")
        if type_node.child_by_field_name("body") is None:
            if name_node is None:
                return ResolvedType(spelling, UNRESOLVED_LAYOUT)
            layout, entry = ctx.types.resolve(node_text(name_node), scope)
            return ResolvedType(spelling, layout, entry.attributes if entry else ())
        built = build_record(type_node, ctx, scope)
        record = built.declaration
        nested = list(built.nested)
        if name_node is not None:
            nested.append(record)
            spelling = normalize_cpp_entity_name(node_text(name_node))
        else:
            spelling = f"(anonymous {record.kind})"
        return ResolvedType(
            spelling,
            Layout(record.size, record.align),
            record.attributes,
            nested,
            anonymous_record=name_node is None,
        )

    if kind == ENUM_NODE:
        name_node = type_node.child_by_field_name("name")
        if type_node.child_by_field_name("body") is not None:
            layout = register_enum(type_node, ctx, scope)
            name = node_text(name_node) if name_node is not None else "(anonymous enum)"
            return ResolvedType(name, layout)
        layout, _ = ctx.types.resolve(node_text(name_node), scope)
        return ResolvedType(spelling, layout)

    if kind in ("type_identifier", "qualified_identifier", "template_type"):
        layout, entry = ctx.types.resolve(spelling, scope)
        return ResolvedType(spelling, layout, entry.attributes if entry else ())

    logger.debug("Type %s (%s) has no static layout", spelling, kind)
    return ResolvedType(spelling, UNRESOLVED_LAYOUT)


def register_alias(node: Node, ctx: TraversalContext, scope: Sequence[str]) -> None:
    """Register ``using Name = Type;``."""
    name_node = node.child_by_field_name("name")
    descriptor = node.child_by_field_name("type")
    if name_node is None or descriptor is None:
        return
    resolved = resolve_type(descriptor.child_by_field_name("type"), ctx, scope)
    info = analyze_declarator(descriptor.child_by_field_name("declarator"), resolved.layout, ctx.types)
    ctx.types.define(
        TypeEntry(
            qualify_name(scope, node_text(name_node)),
            "alias",
            info.layout,
            () if info.derived else resolved.attributes,
        )
    )


def materialize_typedef(node: Node, ctx: TraversalContext, scope: Sequence[str]) -> DeclarationGroup:
    """Register a typedef; an anonymous record it names takes that name."""
    type_node = node.child_by_field_name("type")
    declarators = node.children_by_field_name("declarator")
    group: DeclarationGroup = []

    if (
        type_node is not None
        and type_node.type in RECORD_TYPES
        and type_node.child_by_field_name("body") is not None
    ):
        override = None
        if type_node.child_by_field_name("name") is None and declarators:
            first = analyze_declarator(declarators[0], UNRESOLVED_LAYOUT, ctx.types)
            if first.name_node is not None and not first.derived:
                override = node_text(first.name_node)
        built = build_record(type_node, ctx, scope, name_override=override)
        group.extend(built.nested)
        group.append(built.declaration)
        base = Layout(built.declaration.size, built.declaration.align)
        attributes = built.declaration.attributes
    else:
        resolved = resolve_type(type_node, ctx, scope)
        group.extend(resolved.nested)
        base = resolved.layout
        attributes = resolved.attributes

    for declarator in declarators:
        info = analyze_declarator(declarator, base, ctx.types)
        if info.name_node is None:
            continue
        ctx.types.define(
            TypeEntry(
                qualify_name(scope, node_text(info.name_node)),
                "alias",
                info.layout,
                () if info.derived else attributes,
            )
        )
    return group


# ----------------------------------------------------------------------
# Functions
# ----------------------------------------------------------------------


def _simple_name(name: str) -> str:
    return name.split("<", 1)[0].rsplit(SCOPE_SEPARATOR, 1)[-1].strip()


def build_parameters(
    parameter_list: Optional[Node],
    ctx: TraversalContext,
    scope: Sequence[str],
) -> Tuple[List[ParameterDecl], List[bool], bool]:
    """Parameters of a function declarator.

    Returns:
        A tuple of (parameters, has_default flags, is_variadic).
    """
    parameters: List[ParameterDecl] = []
    defaults: List[bool] = []
    variadic = False
    if parameter_list is None:
        return parameters, defaults, variadic

    for child in parameter_list.children:
        if child.type in ("...", "variadic_parameter"):
            variadic = True
            continue
        if child.type not in _PARAMETER_NODES:
            continue

        type_node = child.child_by_field_name("type")
        declarator = child.child_by_field_name("declarator")
        spelling = normalize_type_spelling(node_text(type_node))
        if spelling == "void" and declarator is None:
            continue

        layout, entry = ctx.types.resolve(spelling, scope)
        info = analyze_declarator(declarator, layout, ctx.types)
        display = normalize_type_spelling(f"{_qualifiers(child)} {spelling} {info.suffix}")
        type_attributes = entry.attributes if entry is not None and not info.derived else ()
        parameters.append(
            ParameterDecl(
                name=node_text(info.name_node) if info.name_node is not None else "",
                type=TypeRef(display, info.layout.size, info.layout.align, type_attributes),
                attributes=collect_attributes(child) + info.attributes,
            )
        )
        defaults.append(child.type == "optional_parameter_declaration")
    return parameters, defaults, variadic


def _constructor_kind(
    parameters: Sequence[ParameterDecl],
    defaults: Sequence[bool],
    class_name: str,
) -> Optional[ConstructorKind]:
    if all(defaults):
        return ConstructorKind.DEFAULT
    if defaults[0] or not all(defaults[1:]):
        return None
    compact = _CV_AND_SPACE_RE.sub("", parameters[0].type.name or "")
    referenced = compact.rstrip("&")
    if _simple_name(referenced) != _simple_name(class_name):
        return None
    depth = len(compact) - len(referenced)
    if depth == 1:
        return ConstructorKind.COPY
    if depth == 2:
        return ConstructorKind.MOVE
    return None


def _declaration_flags(decl_node: Node, is_method: bool) -> FunctionFlags:
    flags = FunctionFlags.NONE
    for child in decl_node.children:
        if child.type == "delete_method_clause":
            flags |= FunctionFlags.DELETED
            continue
        if child.is_named and child.type not in _SPECIFIER_NODES:
            continue
        text = node_text(child)
        if text == "static" and is_method:
            flags |= FunctionFlags.STATIC
        elif text == "virtual":
            flags |= FunctionFlags.VIRTUAL
        elif child.type == "explicit_function_specifier" or text == "explicit":
            flags |= FunctionFlags.EXPLICIT
        elif text in ("constexpr", "consteval"):
            flags |= FunctionFlags.CONSTEXPR
    return flags


def _declarator_flags(function_node: Node) -> FunctionFlags:
    flags = FunctionFlags.NONE
    for child in function_node.children:
        kind = child.type
        text = normalize_type_spelling(node_text(child)).replace(" ", "")
        if kind == "type_qualifier" and text == "const":
            flags |= FunctionFlags.CONST
        elif kind == "virtual_specifier":
            flags |= FunctionFlags.VIRTUAL
        elif kind == "noexcept" and text in ("noexcept", "noexcept(true)"):
            flags |= FunctionFlags.NOTHROW
        elif kind == "throw_specifier" and text == "throw()":
            flags |= FunctionFlags.NOTHROW
    return flags


def _function_name(name_node: Node) -> str:
    if name_node.type == "operator_cast":
        return normalize_type_spelling(node_text(name_node).split("(", 1)[0])
    return normalize_cpp_entity_name(node_text(name_node))


def build_function(
    decl_node: Node,
    function_node: Node,
    name_node: Node,
    ctx: TraversalContext,
    scope: Sequence[str],
    class_name: Optional[str] = None,
    extern_c: bool = False,
    attributes: Tuple[RawAttribute, ...] = (),
) -> Optional[FunctionDecl]:
    """Materialize a method (``class_name`` set) or a free function.

    Returns:
        The FunctionDecl, or None for an out-of-line definition of a member
        of a record already known to the run.
    """
    is_method = class_name is not None
    name = _function_name(name_node)

    if not is_method and name_node.type == "qualified_identifier":
        owner = name.rsplit(SCOPE_SEPARATOR, 1)[0]
        entry = ctx.types.lookup(owner, scope)
        if entry is not None and entry.kind == "record":
            logger.debug("Skipping out-of-line member definition %s", name)
            return None

    role = FunctionRole.METHOD if is_method else FunctionRole.FUNCTION
    flags = _declaration_flags(decl_node, is_method) | _declarator_flags(function_node)
    if name_node.type == "destructor_name":
        role = FunctionRole.DESTRUCTOR if is_method else role
    elif name_node.type == "operator_name":
        flags |= FunctionFlags.OPERATOR
    elif name_node.type == "operator_cast":
        flags |= FunctionFlags.CONVERSION
    elif is_method and name == _simple_name(class_name):
        role = FunctionRole.CONSTRUCTOR

    all_attributes = collect_attributes(decl_node) + collect_attributes(function_node) + attributes
    if any(_simple_name(attribute.name) == "noreturn" for attribute in all_attributes):
        flags |= FunctionFlags.NORETURN
    if extern_c:
        flags |= FunctionFlags.EXTERN_C

    parameters, defaults, variadic = build_parameters(
        function_node.child_by_field_name("parameters"), ctx, scope
    )
    if variadic:
        flags |= FunctionFlags.VARIADIC

    constructor_kind = None
    if role is FunctionRole.CONSTRUCTOR:
        constructor_kind = _constructor_kind(parameters, defaults, class_name)

    return FunctionDecl(
        name=name if is_method else qualify_name(scope, name),
        location=ctx.location(name_node),
        role=role,
        flags=flags,
        constructor_kind=constructor_kind,
        parameters=tuple(parameters),
        attributes=all_attributes,
    )


# ----------------------------------------------------------------------
# Records
# ----------------------------------------------------------------------


@dataclass
class BuiltRecord:
    """A materialized record plus the named records defined inside it."""

    declaration: RecordDecl
    nested: List[RecordDecl]
    entry: Optional[TypeEntry] = None


def iter_items(container: Node) -> Iterator[Node]:
    """Named children, descending into the first branch of ``#if`` blocks."""
    excluded: List[Optional[Node]] = []
    if container.type in PREPROCESSOR_CONTAINERS:
        excluded = [
            container.child_by_field_name("alternative"),
            container.child_by_field_name("name"),
            container.child_by_field_name("condition"),
        ]
    for child in container.children:
        if not child.is_named or child.type == "comment":
            continue
        if any(_same_node(child, other) for other in excluded):
            continue
        if child.type in PREPROCESSOR_CONTAINERS:
            yield from iter_items(child)
        else:
            yield child


def _declares_virtual(member: Node) -> bool:
    if member.type not in _FUNCTION_MEMBERS:
        return False
    for child in member.children:
        if child.type in ("virtual", "virtual_function_specifier") or (
            not child.is_named and node_text(child) == "virtual"
        ):
            return True
    for declarator in member.children_by_field_name("declarator"):
        if _find_descendant(declarator, "virtual_specifier") is not None:
            return True
    return False


def _has_storage(node: Node, storage: str) -> bool:
    return any(
        child.type == "storage_class_specifier" and node_text(child) == storage
        for child in node.children
    )


def parse_bases(
    record_node: Node,
    ctx: TraversalContext,
    scope: Sequence[str],
    default_access: Access,
) -> List[Tuple[BaseRef, Optional[TypeEntry], bool]]:
    """Base specifiers in declaration order as (BaseRef, entry, is_virtual)."""
    clause = _child_of_type(record_node, "base_class_clause")
    if clause is None:
        return []

    bases: List[Tuple[BaseRef, Optional[TypeEntry], bool]] = []
    access: Optional[Access] = None
    is_virtual = False
    name_node: Optional[Node] = None

    def flush() -> None:
        if name_node is None:
            return
        spelled = normalize_cpp_entity_name(node_text(name_node))
        layout, entry = ctx.types.resolve(spelled, scope)
        if entry is None:
            logger.warning("Base %s of %s is not a known record", spelled, node_text(record_node.child_by_field_name("name")))
        type_ref = TypeRef(
            entry.name if entry is not None else spelled,
            layout.size,
            layout.align,
            entry.attributes if entry is not None else (),
        )
        bases.append((BaseRef(type_ref, access or default_access, is_virtual), entry, is_virtual))

    for child in clause.children:
        if child.type == ",":
            flush()
            access, is_virtual, name_node = None, False, None
        elif child.type == "access_specifier":
            try:
                access = Access(node_text(child).strip())
            except ValueError:
                logger.warning("Unknown access specifier %s", node_text(child))
        elif child.type in ("virtual", "virtual_function_specifier") or node_text(child) == "virtual":
            is_virtual = True
        elif child.type in ("type_identifier", "qualified_identifier", "template_type"):
            name_node = child
    flush()
    return bases


class _RecordMembers:
    """Collects fields, methods and nested records of one record body."""

    def __init__(
        self,
        ctx: TraversalContext,
        scope: Sequence[str],
        class_name: Optional[str],
        builder: RecordLayoutBuilder,
    ):
        self.ctx = ctx
        self.scope = list(scope)
        self.class_name = class_name
        self.builder = builder
        self.fields: List[FieldDecl] = []
        self.methods: List[FunctionDecl] = []
        self.nested: List[RecordDecl] = []

    def add(self, member: Node) -> None:
        kind = member.type
        if kind in _FUNCTION_MEMBERS:
            self._add_declaration(member)
        elif kind == TYPEDEF_NODE:
            self.nested.extend(materialize_typedef(member, self.ctx, self.scope))
        elif kind == ALIAS_NODE:
            register_alias(member, self.ctx, self.scope)
        elif kind == TEMPLATE_WRAPPER:
            logger.debug("Skipping member template in %s", self.class_name)

    def _add_declaration(self, member: Node) -> None:
        type_node = member.child_by_field_name("type")
        declarators = member.children_by_field_name("declarator")
        resolved = resolve_type(type_node, self.ctx, self.scope)
        self.nested.extend(resolved.nested)
        own_attributes = collect_attributes(member)
        prefix = _qualifiers(member)
        bitfield = _bitfield_clause(member)

        if not declarators:
            if bitfield is not None:
                self._add_field(None, resolved, None, prefix, own_attributes, bitfield)
            elif resolved.anonymous_record:
                self._add_field(None, resolved, None, prefix, own_attributes, None)
            return

        is_static = _has_storage(member, "static")
        for index, declarator in enumerate(declarators):
            if declarator.type == "operator_cast":
                function_node = _find_descendant(declarator, "abstract_function_declarator") or declarator
                self._add_method(member, function_node, declarator, ())
                continue

            info = analyze_declarator(declarator, resolved.layout, self.ctx.types)
            if info.function is not None and info.name_node is not None:
                self._add_method(member, info.function, info.name_node, info.attributes)
                continue
            if is_static or info.name_node is None or member.type == FUNCTION_DEFINITION:
                continue
            clause = bitfield if index == len(declarators) - 1 else None
            self._add_field(info.name_node, resolved, info, prefix, own_attributes + info.attributes, clause)

    def _add_method(
        self,
        member: Node,
        function_node: Node,
        name_node: Node,
        attributes: Tuple[RawAttribute, ...],
    ) -> None:
        method = build_function(
            member,
            function_node,
            name_node,
            self.ctx,
            self.scope,
            class_name=self.class_name or "",
            attributes=attributes,
        )
        if method is not None:
            self.methods.append(method)

    def _add_field(
        self,
        name_node: Optional[Node],
        resolved: ResolvedType,
        info: Optional[DeclaratorInfo],
        prefix: str,
        attributes: Tuple[RawAttribute, ...],
        bitfield: Optional[Node],
    ) -> None:
        layout = info.layout if info is not None else resolved.layout
        derived = info is not None and info.derived
        suffix = info.suffix if info is not None else ""
        spelling = normalize_type_spelling(f"{prefix} {resolved.spelling} {suffix}")
        type_attributes = (() if derived else resolved.attributes) + attributes
        name = None
        if name_node is not None and not name_node.is_missing:
            name = node_text(name_node) or None

        width = None
        if bitfield is not None:
            width_node = bitfield.named_children[-1] if bitfield.named_children else None
            width = parse_integer(node_text(width_node)) if width_node is not None else None
            if width is None:
                logger.warning(
                    "Bit-field width of %s in %s is not a literal",
                    name or "<anonymous>",
                    self.class_name or "<anonymous>",
                )
                self.builder.mark_unresolved()

        if width is not None:
            offset = self.builder.add_bitfield(layout, width, named=name is not None)
        else:
            offset = self.builder.add_field(layout)

        self.fields.append(
            FieldDecl(
                name=name,
                type=TypeRef(spelling, layout.size, layout.align, type_attributes),
                bit_offset=offset,
                bit_width=width,
            )
        )


def build_record(
    node: Node,
    ctx: TraversalContext,
    scope: Sequence[str],
    name_override: Optional[str] = None,
) -> BuiltRecord:
    """Materialize a class/struct/union specifier and register its layout.

    Args:
        node: The record specifier node.
        ctx: Per-file traversal context.
        scope: Enclosing namespaces and records.
        name_override: Name for an anonymous record (typedef-named structs).

    Returns:
        The record, with named records defined inside it in ``nested``.
    """
    kind = RECORD_KIND_MAP[node.type]
    name_node = node.child_by_field_name("name")
    raw_name = normalize_cpp_entity_name(node_text(name_node)) if name_node is not None else name_override
    qualified = qualify_name(scope, raw_name) if raw_name else None
    attributes = collect_attributes(node)
    location = ctx.location(name_node if name_node is not None else node)

    body = node.child_by_field_name("body")
    if body is None:
        return BuiltRecord(
            RecordDecl(
                name=qualified,
                location=location,
                kind=kind,
                is_complete=False,
                attributes=attributes,
            ),
            [],
        )

    if body.has_error:
        logger.warning("Record %s at %s:%d has syntax errors", qualified or "<anonymous>", location.file, location.line)

    if qualified:
        # Visible to its own members, e.g. for the copy constructor
        ctx.types.define(TypeEntry(qualified, "record", UNRESOLVED_LAYOUT, attributes))

    member_scope = list(scope) + [raw_name] if raw_name else list(scope)
    default_access = Access.PRIVATE if kind == "class" else Access.PUBLIC
    bases = parse_bases(node, ctx, scope, default_access)
    members = list(iter_items(body))

    builder = RecordLayoutBuilder(ctx.types.data_model, is_union=kind == "union")
    ordered = order_bases(bases)
    dynamic = any(_declares_virtual(member) for member in members) or any(
        is_virtual or (entry is not None and entry.dynamic) for _, entry, is_virtual in bases
    )
    has_primary = bool(ordered) and not ordered[0][2] and ordered[0][1] is not None and ordered[0][1].dynamic

    collector = _RecordMembers(ctx, member_scope, raw_name, builder)
    if dynamic and not has_primary:
        pointer = ctx.types.pointer()
        offset = builder.add_vptr()
        collector.fields.append(
            FieldDecl(
                name=f"_vptr.{raw_name or 'anonymous'}",
                type=TypeRef("void **", pointer.size, pointer.align),
                bit_offset=offset,
                artificial=True,
            )
        )

    for _, entry, is_virtual in ordered:
        if not is_virtual:
            builder.add_base(entry.layout if entry else UNRESOLVED_LAYOUT, empty=entry.empty if entry else False)

    for member in members:
        collector.add(member)

    for _, entry, is_virtual in ordered:
        if is_virtual:
            builder.add_field(entry.layout if entry else UNRESOLVED_LAYOUT)

    layout = builder.finish()
    entry = None
    if qualified:
        entry = TypeEntry(
            qualified,
            "record",
            layout,
            attributes,
            dynamic=dynamic,
            empty=not builder.has_data and all(e is not None and e.empty for _, e, _ in bases),
        )
        ctx.types.define(entry)

    declaration = RecordDecl(
        name=qualified,
        location=location,
        kind=kind,
        is_complete=True,
        size=layout.size,
        align=layout.align,
        fields=tuple(collector.fields),
        methods=tuple(collector.methods),
        bases=tuple(base for base, _, _ in bases),
        attributes=attributes,
    )
    return BuiltRecord(declaration, collector.nested, entry)


# ----------------------------------------------------------------------
# Top level
# ----------------------------------------------------------------------


def _materialize_function_definition(
    node: Node,
    ctx: TraversalContext,
    scope: Sequence[str],
    extern_c: bool,
) -> DeclarationGroup:
    info = analyze_declarator(node.child_by_field_name("declarator"), UNRESOLVED_LAYOUT, ctx.types)
    if info.function is None or info.name_node is None:
        logger.debug("Function definition at line %d has no declarator", node.start_point.row + 1)
        return []
    function = build_function(
        node, info.function, info.name_node, ctx, scope,
        extern_c=extern_c, attributes=info.attributes,
    )
    return [function] if function is not None else []


def _materialize_declaration(
    node: Node,
    ctx: TraversalContext,
    scope: Sequence[str],
    extern_c: bool,
) -> DeclarationGroup:
    type_node = node.child_by_field_name("type")
    declarators = node.children_by_field_name("declarator")
    group: DeclarationGroup = []

    if type_node is not None and type_node.type in RECORD_TYPES:
        if type_node.child_by_field_name("body") is not None or not declarators:
            built = build_record(type_node, ctx, scope)
            group.extend(built.nested)
            group.append(built.declaration)
    elif type_node is not None and type_node.type == ENUM_NODE:
        register_enum(type_node, ctx, scope)

    for declarator in declarators:
        info = analyze_declarator(declarator, UNRESOLVED_LAYOUT, ctx.types)
        if info.function is None or info.name_node is None:
            continue
        function = build_function(
            node, info.function, info.name_node, ctx, scope,
            extern_c=extern_c, attributes=info.attributes,
        )
        if function is not None:
            group.append(function)
    return group


def materialize_item(
    node: Node,
    ctx: TraversalContext,
    scope: Sequence[str],
    extern_c: bool = False,
) -> DeclarationGroup:
    """Materialize one top-level item into a declaration group."""
    kind = node.type
    if kind == TEMPLATE_WRAPPER:
        inner = next(
            (child for child in node.named_children if child.type != "template_parameter_list"),
            None,
        )
        return materialize_item(inner, ctx, scope, extern_c) if inner is not None else []
    if kind in RECORD_TYPES:
        built = build_record(node, ctx, scope)
        return built.nested + [built.declaration]
    if kind == ENUM_NODE:
        register_enum(node, ctx, scope)
        return []
    if kind == FUNCTION_DEFINITION:
        return _materialize_function_definition(node, ctx, scope, extern_c)
    if kind == DECLARATION_NODE:
        return _materialize_declaration(node, ctx, scope, extern_c)
    if kind == TYPEDEF_NODE:
        return materialize_typedef(node, ctx, scope)
    if kind == ALIAS_NODE:
        register_alias(node, ctx, scope)
    return []


def traverse_declarations(
    node: Node,
    ctx: TraversalContext,
    namespace_stack: Optional[List[str]] = None,
    extern_c: bool = False,
) -> Iterator[DeclarationGroup]:
    """Recursively traverse the AST and yield one group per top-level item.

    Args:
        node: The current AST node to traverse.
        ctx: Per-file traversal context.
        namespace_stack: Current namespace qualification stack.
        extern_c: Whether traversal is inside an ``extern "C"`` block.

    Yields:
        Non-empty declaration groups in source order.

    Raises:
        HostError: If an item cannot be materialized from the tree.
    """
    if namespace_stack is None:
        namespace_stack = []

    for child in iter_items(node):
        if child.type == NAMESPACE_NODE:
            name_node = child.child_by_field_name("name")
            new_stack = namespace_stack.copy()
            if name_node is not None:
                new_stack.extend(
                    part for part in normalize_cpp_entity_name(node_text(name_node)).split(SCOPE_SEPARATOR) if part
                )
            body = child.child_by_field_name("body")
            if body is not None:
                yield from traverse_declarations(body, ctx, new_stack, extern_c)

        elif child.type == LINKAGE_SPECIFICATION:
            is_c = extern_c or node_text(child.child_by_field_name("value")).strip('"') == "C"
            body = child.child_by_field_name("body")
            if body is None:
                continue
            if body.type == "declaration_list":
                yield from traverse_declarations(body, ctx, namespace_stack, is_c)
            else:
                group = _materialize_checked(body, ctx, namespace_stack, is_c)
                if group:
                    yield group

        elif child.type in CONTAINER_TYPES:
            yield from traverse_declarations(child, ctx, namespace_stack, extern_c)

        else:
            group = _materialize_checked(child, ctx, namespace_stack, extern_c)
            if group:
                yield group


def _materialize_checked(
    node: Node,
    ctx: TraversalContext,
    scope: Sequence[str],
    extern_c: bool,
) -> DeclarationGroup:
    try:
        return materialize_item(node, ctx, scope, extern_c)
    except (AttributeError, IndexError, TypeError, ValueError) as e:
        raise HostError(
            f"Cannot materialize {node.type} at {ctx.file_path}:{node.start_point.row + 1}: {e}"
        ) from e


def extract_declarations_from_tree(
    tree: Tree,
    file_path: str,
    types: TypeTable,
) -> Iterator[DeclarationGroup]:
    """Yield declaration groups for a parsed file.

    This is the main entry point for materialization. ``types`` is shared
    across the files of a run so later files see earlier definitions.
    """
    logger.info(f"Extracting declarations from {file_path}")
    ctx = TraversalContext(file_path=file_path, types=types)
    count = 0
    for group in traverse_declarations(tree.root_node, ctx):
        count += len(group)
        yield group
    logger.info(f"Extracted {count} declarations from {file_path}")
