"""Flatten parsed manifests into the engine's input batch."""

from __future__ import annotations

from typing import List

from .engine import Input
from .fs import FileSystem
from .parser import ParsedDocumentSet


def build_inputs(filesets: ParsedDocumentSet, target: FileSystem) -> List[Input]:
    """Return one :class:`Input` per document, in a stable order.

    Files are visited in sorted path order; documents keep the order they
    had in their file. Nothing is filtered or deduplicated here.
    """

    inputs: List[Input] = []
    for path in sorted(filesets):
        for document in filesets[path]:
            inputs.append(Input(path=path, fs=target, contents=document))
    return inputs
