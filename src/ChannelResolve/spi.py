"""Service-provider protocols implemented by version resolvers.

A channel never talks to a repository directly: at session construction it asks
a :class:`VersionsResolverFactory` for a :class:`VersionsResolver` bound to the
channel's repositories and keeps it until the session closes.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol, Sequence, Set, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .config import RepositoryDefinition

__all__ = ["VersionsResolver", "VersionsResolverFactory"]


@runtime_checkable
class VersionsResolver(Protocol):
    """Lists versions and materialises artifacts from one set of repositories."""

    def get_all_versions(
        self,
        group_id: str,
        artifact_id: str,
        extension: str,
        classifier: Optional[str],
    ) -> Set[str]:
        """Return every version the repositories know for the artifact.

        An artifact that is not present yields an empty set rather than an
        error.
        """
        ...

    def resolve_artifact(
        self,
        group_id: str,
        artifact_id: str,
        extension: str,
        classifier: Optional[str],
        version: str,
    ) -> Path:
        """Return a local path to the artifact file.

        Raises:
            UnresolvedArtifactError: If that exact version cannot be retrieved.
        """
        ...

    def close(self) -> None:
        """Release any network clients or file handles held by the resolver."""
        ...


class VersionsResolverFactory(Protocol):
    """Creates one resolver per channel."""

    def create(self, repositories: Sequence["RepositoryDefinition"]) -> VersionsResolver:
        """Build a resolver for ``repositories`` (may be empty)."""
        ...
