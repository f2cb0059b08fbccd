"""Exception hierarchy shared across channel sessions, channels, and repositories.

Resolution spans three layers: the session that selects a winning channel, the
channels that answer version probes, and the repository resolvers that fetch
metadata and artifact bytes.  This module groups their failure modes so caller
code can react to high-level categories (an artifact nobody can supply vs. a
broken channel declaration) while still reaching the coordinate or channel
involved for diagnostics.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Tuple

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .coordinates import ArtifactCoordinate

__all__ = [
    "ChannelResolveError",
    "UnresolvedArtifactError",
    "ChannelInitError",
    "ChannelCloseError",
    "SessionClosedError",
    "ConfigurationError",
    "RepositoryError",
]


class ChannelResolveError(RuntimeError):
    """Base exception for channel resolution failures."""


class UnresolvedArtifactError(ChannelResolveError):
    """Raised when no channel can supply an artifact coordinate.

    Channels also raise it when one specific version cannot be materialised;
    the session treats that as a per-channel miss during base-version fallback.
    """

    def __init__(
        self,
        message: str,
        *,
        group_id: Optional[str] = None,
        artifact_id: Optional[str] = None,
        extension: Optional[str] = None,
        classifier: Optional[str] = None,
        version: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.group_id = group_id
        self.artifact_id = artifact_id
        self.extension = extension
        self.classifier = classifier
        self.version = version

    @classmethod
    def for_coordinate(
        cls,
        message: str,
        coordinate: "ArtifactCoordinate",
        *,
        version: Optional[str] = None,
    ) -> "UnresolvedArtifactError":
        """Build an error that carries every field of ``coordinate``."""

        return cls(
            f"{message}: {coordinate.describe(version)}",
            group_id=coordinate.group_id,
            artifact_id=coordinate.artifact_id,
            extension=coordinate.extension,
            classifier=coordinate.classifier,
            version=version if version is not None else coordinate.base_version,
        )


class ChannelInitError(ChannelResolveError):
    """Raised when a channel resolver cannot be initialised for a session."""

    def __init__(self, message: str, *, channel: Optional[str] = None) -> None:
        super().__init__(message)
        self.channel = channel


class ChannelCloseError(ChannelResolveError):
    """Raised when one or more channels fail to release their resolver."""

    def __init__(self, message: str, *, failures: Sequence[Tuple[str, BaseException]] = ()) -> None:
        super().__init__(message)
        self.failures = tuple(failures)


class SessionClosedError(ChannelResolveError):
    """Raised when a closed session is asked to resolve anything."""


class ConfigurationError(ChannelResolveError):
    """Raised when channel declarations, settings, or manifests are invalid."""


class RepositoryError(ChannelResolveError):
    """Raised when a repository request fails for reasons other than "not found"."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.retryable = retryable


# === NAVMAP v1 ===
# {
#   "module": "ChannelResolve.errors",
#   "purpose": "Define the exception hierarchy used across sessions, channels, and repositories",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "resolution", "name": "Resolution Errors", "anchor": "RES", "kind": "api"},
#     {"id": "lifecycle", "name": "Session Lifecycle Errors", "anchor": "LIF", "kind": "api"},
#     {"id": "repository", "name": "Configuration & Repository Errors", "anchor": "REP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
