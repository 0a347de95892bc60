"""YAML decoding helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

import yaml


class ManifestLoader(yaml.SafeLoader):
    """YAML loader that tolerates custom tags found in templated manifests."""


def _construct_tagged(loader: ManifestLoader, tag_suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        return loader.construct_scalar(node)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node)
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node)
    return None


ManifestLoader.add_multi_constructor("!", _construct_tagged)


@dataclass(frozen=True)
class RawDocument:
    """One decoded YAML document and the 1-based lines it spans."""

    data: Any
    start_line: int
    end_line: int


def iter_yaml_documents(text: str) -> Iterator[RawDocument]:
    """Yield every document of a (possibly multi-document) YAML stream.

    Raises ``yaml.YAMLError`` on malformed input.
    """

    loader = ManifestLoader(text)
    try:
        while loader.check_node():
            node = loader.get_node()
            if node is None:
                continue
            data = loader.construct_document(node)
            end_line = node.end_mark.line
            if node.end_mark.column > 0:
                end_line += 1
            yield RawDocument(data, node.start_mark.line + 1, max(end_line, node.start_mark.line + 1))
    finally:
        loader.dispose()

