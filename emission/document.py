"""Reader for emitted documents, for downstream generators and tests."""

from __future__ import annotations

from typing import Any

import yaml

from emission.emitter import TAG_PREFIX


class CompexRecord(dict):
    """A mapping read from a ``!compex/<kind>`` node."""

    def __init__(self, kind: str, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.kind = kind

    def __repr__(self) -> str:
        return f"CompexRecord({self.kind!r}, {dict.__repr__(self)})"


class DocumentLoader(yaml.SafeLoader):
    """Safe loader that understands the ``!compex/*`` tags."""


def _construct_compex_node(loader: DocumentLoader, kind: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.MappingNode):
        return CompexRecord(kind, loader.construct_mapping(node, deep=True))
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    # A tagged node with an empty body reads as an empty record.
    value = loader.construct_scalar(node)
    return CompexRecord(kind) if value in ("", None) else value


DocumentLoader.add_multi_constructor(TAG_PREFIX, _construct_compex_node)


def load_document(text: str) -> dict[str, Any]:
    """Parse an emitted document.

    Returns:
        Top-level records keyed by name; an empty document yields ``{}``.

    Raises:
        yaml.YAMLError: If the text is not a well-formed document.
    """
    payload = yaml.load(text, Loader=DocumentLoader)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Unexpected document type: {type(payload).__name__}")
    return payload
