"""
Configuration constants for the tree-sitter host adapter.

Defines the tree-sitter node type strings used to materialize declarations.
"""

from typing import Dict, FrozenSet, Set, Tuple

# Record specifiers materialized as RecordDecl
RECORD_TYPES: Set[str] = {
    "class_specifier",
    "struct_specifier",
    "union_specifier",
}

# Record kind mapping (node type -> RecordDecl.kind)
RECORD_KIND_MAP: Dict[str, str] = {
    "class_specifier": "class",
    "struct_specifier": "struct",
    "union_specifier": "union",
}

FUNCTION_DEFINITION: str = "function_definition"
FUNCTION_DECLARATOR: str = "function_declarator"

# Template wrapper node type
TEMPLATE_WRAPPER: str = "template_declaration"

# Namespace definition node type
NAMESPACE_NODE: str = "namespace_definition"

# Declaration node type (records can be wrapped in this; prototypes too)
DECLARATION_NODE: str = "declaration"
FIELD_DECLARATION: str = "field_declaration"

# Container types whose children we scan
CONTAINER_TYPES: Set[str] = {
    "translation_unit",
    "declaration_list",
}

# extern "C" { ... } and extern "C" void f();
LINKAGE_SPECIFICATION: str = "linkage_specification"

# Preprocessor conditionals; only the first branch is traversed
PREPROCESSOR_CONTAINERS: Set[str] = {
    "preproc_ifdef",
    "preproc_if",
}

TYPEDEF_NODE: str = "type_definition"
ALIAS_NODE: str = "alias_declaration"
ENUM_NODE: str = "enum_specifier"

ATTRIBUTE_DECLARATION: str = "attribute_declaration"

# Declarator wrappers that do not change the declared type
TRANSPARENT_DECLARATORS: Set[str] = {
    "attributed_declarator",
    "parenthesized_declarator",
}

# Leaf nodes carrying a declared name
NAME_NODES: Set[str] = {
    "identifier",
    "field_identifier",
    "type_identifier",
    "destructor_name",
    "operator_name",
    "operator_cast",
    "qualified_identifier",
    "template_function",
}

# C++ file extensions
CPP_EXTENSIONS: Set[str] = {
    ".cpp",
    ".cc",
    ".cxx",
    ".c",
    ".h",
    ".hpp",
    ".hxx",
}

# Directories never descended into during discovery
SKIPPED_DIRECTORIES: FrozenSet[str] = frozenset({
    "build",
    "cmake-build-debug",
    "cmake-build-release",
    "node_modules",
    "venv",
    "__pycache__",
    "dist",
    "out",
})

# Macros spelling a tag attachment in source
DEFAULT_TAG_MACROS: Tuple[str, ...] = ("COMPEX_TAG",)

# Attribute the tag macros expand to
TAG_ATTRIBUTE_SPELLING: str = "compex::tag"

DEFAULT_DATA_MODEL: str = "lp64"
DEFAULT_CONTINUE_ON_ERROR: bool = True
