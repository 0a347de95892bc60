"""Policy discovery and loading.

Policies come from three kinds of source, loaded in this order:

1. the embedded pack shipped in ``kube_guardrails/policies`` together with the
   built-in Python checks,
2. policy directories, every ``*.yaml``/``*.yml`` file below each directory,
3. binary streams, one policy file per stream.

Absolute directories are read from the local disk. Relative directories are
read through the filesystem being scanned, so a repository can carry its own
policies next to its manifests.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, BinaryIO, Dict, FrozenSet, Iterable, List, Optional, Protocol, Tuple, Union

import yaml

from ..exceptions import PolicyLoadError
from ..fs import FileSystem, LocalFileSystem
from ..options import PolicyStream
from ..result import PolicyMetadata
from ..rules import Check, builtin_checks
from .policy import Evaluation, load_policy_document

EMBEDDED_PACKAGE = "kube_guardrails.policies"
POLICY_EXTENSIONS = (".yaml", ".yml")

logger = logging.getLogger(__name__)


class EnginePolicy(Protocol):
    """What the engine needs from a policy, declarative or built in."""

    metadata: PolicyMetadata

    def applies_to(self, manifest: Dict[str, Any]) -> bool:
        ...

    def evaluate(self, manifest: Dict[str, Any]) -> Evaluation:
        ...


@dataclass(frozen=True)
class CheckPolicy:
    """Adapt a built-in :class:`Check` to the engine's policy interface."""

    check: Check

    @property
    def metadata(self) -> PolicyMetadata:
        return self.check.metadata

    @property
    def kinds(self) -> FrozenSet[str]:
        return self.check.kinds

    def applies_to(self, manifest: Dict[str, Any]) -> bool:
        return not self.kinds or manifest.get("kind") in self.kinds

    def evaluate(self, manifest: Dict[str, Any]) -> Evaluation:
        messages = self.check.check(manifest)
        return Evaluation(denials=list(messages), traces=[f"{self.metadata.id}: {len(messages)} violation(s)"])


class PolicyLoader:
    """Loads policies from every configured source, failing on the first bad one."""

    def __init__(self, debug: Optional[logging.Logger] = None) -> None:
        self._debug = debug or logger

    def load_all(
        self,
        use_embedded: bool,
        target: Optional[FileSystem],
        dirs: Iterable[str],
        readers: Iterable[Union[BinaryIO, PolicyStream]],
    ) -> List[EnginePolicy]:
        policies: List[EnginePolicy] = []
        if use_embedded:
            policies.extend(self.load_embedded())
        for directory in dirs:
            policies.extend(self.load_directory(directory, target))
        for index, reader in enumerate(readers):
            policies.extend(self.load_reader(reader, f"reader[{index}]"))
        return policies

    def load_embedded(self) -> List[EnginePolicy]:
        policies: List[EnginePolicy] = []
        package = resources.files(EMBEDDED_PACKAGE)
        entries = sorted(
            (entry for entry in package.iterdir() if entry.name.endswith(POLICY_EXTENSIONS)),
            key=lambda entry: entry.name,
        )
        for entry in entries:
            policies.extend(self._parse(entry.read_bytes(), f"embedded:{entry.name}"))
        policies.extend(CheckPolicy(check) for check in builtin_checks())
        self._debug.debug("Loaded %d embedded policies", len(policies))
        return policies

    def load_directory(self, directory: str, target: Optional[FileSystem]) -> List[EnginePolicy]:
        filesystem, root = self._resolve_directory(directory, target)
        try:
            paths = [path for path in filesystem.walk(root) if path.lower().endswith(POLICY_EXTENSIONS)]
        except OSError as exc:
            raise PolicyLoadError(f"unable to read policy directory '{directory}': {exc}", source=directory) from exc

        policies: List[EnginePolicy] = []
        for path in paths:
            try:
                raw = filesystem.read_bytes(path)
            except OSError as exc:
                raise PolicyLoadError(f"unable to read policy file '{path}': {exc}", source=path) from exc
            policies.extend(self._parse(raw, posixpath.join(directory, posixpath.relpath(path, root))))
        self._debug.debug("Loaded %d policies from '%s'", len(policies), directory)
        return policies

    def load_reader(self, reader: Union[BinaryIO, PolicyStream], source: str) -> List[EnginePolicy]:
        try:
            raw = reader.read()
        except OSError as exc:
            raise PolicyLoadError(f"unable to read policy stream {source}: {exc}", source=source) from exc
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        if not raw.strip():
            raise PolicyLoadError(f"policy stream {source} is empty", source=source)
        policies = self._parse(raw, source)
        self._debug.debug("Loaded %d policies from %s", len(policies), source)
        return policies

    @staticmethod
    def _resolve_directory(directory: str, target: Optional[FileSystem]) -> Tuple[FileSystem, str]:
        if Path(directory).is_absolute():
            return LocalFileSystem(directory), "."
        if target is None:
            return LocalFileSystem(), directory
        return target, directory

    @staticmethod
    def _parse(raw: bytes, source: str) -> List[EnginePolicy]:
        try:
            data = yaml.safe_load(raw.decode("utf-8"))
        except (UnicodeDecodeError, yaml.YAMLError) as exc:
            raise PolicyLoadError(f"{source}: not a valid YAML policy file: {exc}", source=source) from exc
        return list(load_policy_document(data, source))
