"""In-memory resolvers for tests and dry runs.

:class:`StaticVersionsResolver` serves versions and files from a dictionary and
counts calls, so tests can assert on which channel was asked what without any
network or repository layout.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import UnresolvedArtifactError

__all__ = ["StaticVersionsResolver", "StaticResolverFactory"]

_Key = Tuple[str, str]


class StaticVersionsResolver:
    """Resolver backed by ``{(group_id, artifact_id): versions}``.

    ``files`` lists the versions that can actually be materialised; it defaults
    to every advertised version.  A version advertised but absent from
    ``files`` behaves like a repository whose metadata is ahead of its content.
    """

    def __init__(
        self,
        versions: Optional[Mapping[_Key, Iterable[str]]] = None,
        *,
        files: Optional[Mapping[_Key, Iterable[str]]] = None,
        root: Path = Path("/static"),
        close_error: Optional[BaseException] = None,
    ) -> None:
        self.versions: Dict[_Key, Set[str]] = {key: set(value) for key, value in (versions or {}).items()}
        source = files if files is not None else self.versions
        self.files: Dict[_Key, Set[str]] = {key: set(value) for key, value in source.items()}
        self.root = Path(root)
        self.close_error = close_error
        self.calls: Counter = Counter()
        self.closed = 0

    def get_all_versions(self, group_id: str, artifact_id: str, extension: str, classifier: Optional[str]) -> Set[str]:
        self.calls["get_all_versions"] += 1
        return set(self.versions.get((group_id, artifact_id), set()))

    def resolve_artifact(
        self,
        group_id: str,
        artifact_id: str,
        extension: str,
        classifier: Optional[str],
        version: str,
    ) -> Path:
        self.calls["resolve_artifact"] += 1
        if version not in self.files.get((group_id, artifact_id), set()):
            raise UnresolvedArtifactError(
                f"{group_id}:{artifact_id}:{version} not available",
                group_id=group_id,
                artifact_id=artifact_id,
                extension=extension,
                classifier=classifier,
                version=version,
            )
        suffix = f"-{classifier}" if classifier else ""
        return self.root / group_id / artifact_id / version / f"{artifact_id}-{version}{suffix}.{extension}"

    def close(self) -> None:
        self.closed += 1
        if self.close_error is not None:
            raise self.close_error


class StaticResolverFactory:
    """Hands out pre-built resolvers in order, one per ``create`` call."""

    def __init__(
        self,
        resolvers: Sequence[StaticVersionsResolver],
        *,
        fail_on: Optional[int] = None,
    ) -> None:
        self._resolvers: List[StaticVersionsResolver] = list(resolvers)
        self._fail_on = fail_on
        self.created = 0

    def create(self, repositories) -> StaticVersionsResolver:
        index = self.created
        self.created += 1
        if self._fail_on is not None and index == self._fail_on:
            raise RuntimeError(f"resolver {index} failed to start")
        return self._resolvers[index]
