"""
Emission core

Host-agnostic walker and structured-document emitter for tagged type
metadata: eligibility, tag model, identities, emitter, sink.
"""

from emission.document import CompexRecord, load_document
from emission.emitter import KeyScope, StructuredEmitter, format_scalar
from emission.errors import CompexError, HostError, SinkUnavailableError
from emission.identity import IdentityRegistry
from emission.model import (
    Access,
    BaseRef,
    ConstructorKind,
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
from emission.policy import should_emit
from emission.sink import OutputSink, open_sink
from emission.tags import extract_tags, tags_from_attributes
from emission.walker import DeclarationWalker, WalkStats, dump_declarations

__all__ = [
    # Declaration model
    "Access",
    "BaseRef",
    "ConstructorKind",
    "FieldDecl",
    "FunctionDecl",
    "FunctionFlags",
    "FunctionRole",
    "Literal",
    "ParameterDecl",
    "RawAttribute",
    "RecordDecl",
    "SourceLocation",
    "TypeRef",
    # Errors
    "CompexError",
    "HostError",
    "SinkUnavailableError",
    # Core components
    "IdentityRegistry",
    "KeyScope",
    "StructuredEmitter",
    "format_scalar",
    "should_emit",
    "extract_tags",
    "tags_from_attributes",
    "OutputSink",
    "open_sink",
    "DeclarationWalker",
    "WalkStats",
    "dump_declarations",
    # Reading documents back
    "CompexRecord",
    "load_document",
]
