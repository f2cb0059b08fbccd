# === NAVMAP v1 ===
# {
#   "module": "ChannelResolve.channel",
#   "purpose": "Channel and stream types that answer version probes and materialise artifacts",
#   "sections": [
#     {"id": "stream", "name": "Stream", "anchor": "class-stream", "kind": "class"},
#     {"id": "channel", "name": "Channel", "anchor": "class-channel", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Channels: independently configured version sources.

A :class:`Channel` couples a list of :class:`Stream` rules with the
repositories its resolver reads from.  Streams decide *which* versions of an
artifact the channel is willing to offer (a single pinned version or every
version matching a regular expression); the resolver, created per session via
:meth:`Channel.init_resolver`, answers which of those versions actually exist
and fetches the bytes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Pattern, Sequence, Tuple

from .coordinates import ArtifactCoordinate, VersionCandidate
from .errors import ChannelInitError, UnresolvedArtifactError
from .spi import VersionsResolver, VersionsResolverFactory
from .versioning import VersionComparator, compare_versions, latest_version

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .config import RepositoryDefinition

LOGGER = logging.getLogger(__name__)

WILDCARD_ARTIFACT = "*"

__all__ = ["Stream", "Channel", "WILDCARD_ARTIFACT"]


@dataclass(slots=True, frozen=True)
class Stream:
    """Version rule for one ``(group_id, artifact_id)`` inside a channel."""

    group_id: str
    artifact_id: str
    version: Optional[str] = None
    version_pattern: Optional[str] = None
    _compiled: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if (self.version is None) == (self.version_pattern is None):
            raise ValueError(
                f"stream {self.group_id}:{self.artifact_id} needs exactly one of version or version_pattern"
            )
        if self.version_pattern is not None:
            try:
                compiled = re.compile(self.version_pattern)
            except re.error as exc:
                raise ValueError(
                    f"stream {self.group_id}:{self.artifact_id} has an invalid version_pattern: {exc}"
                ) from exc
            object.__setattr__(self, "_compiled", compiled)

    @property
    def is_wildcard(self) -> bool:
        return self.artifact_id == WILDCARD_ARTIFACT

    def matches(self, group_id: str, artifact_id: str) -> bool:
        return self.group_id == group_id and (self.is_wildcard or self.artifact_id == artifact_id)

    def accepts(self, version: str) -> bool:
        """Return ``True`` when ``version`` is allowed by this stream."""

        if self.version is not None:
            return version == self.version
        compiled = self._compiled
        return compiled is not None and compiled.fullmatch(version) is not None


class Channel:
    """One prioritised version source with its own resolver resource.

    Channels compare by identity: two channels declaring the same streams are
    still distinct sources for provenance purposes.
    """

    def __init__(
        self,
        name: str,
        streams: Iterable[Stream] = (),
        repositories: Sequence["RepositoryDefinition"] = (),
        *,
        comparator: VersionComparator = compare_versions,
    ) -> None:
        if not name:
            raise ValueError("channel name must not be empty")
        self.name = name
        self.streams: Tuple[Stream, ...] = tuple(streams)
        self.repositories: Tuple["RepositoryDefinition", ...] = tuple(repositories)
        self.comparator = comparator
        self._resolver: Optional[VersionsResolver] = None
        self._closed = False

    def __repr__(self) -> str:
        return f"Channel(name={self.name!r}, streams={len(self.streams)})"

    # --- lifecycle -------------------------------------------------------

    @property
    def resolver(self) -> VersionsResolver:
        if self._resolver is None:
            raise ChannelInitError(
                f"channel '{self.name}' has no resolver; call init_resolver first",
                channel=self.name,
            )
        return self._resolver

    @property
    def is_initialized(self) -> bool:
        return self._resolver is not None and not self._closed

    def init_resolver(self, factory: VersionsResolverFactory) -> None:
        """Create this channel's resolver from ``factory``."""

        if self.is_initialized:
            raise ChannelInitError(
                f"channel '{self.name}' resolver is already initialised", channel=self.name
            )
        self._resolver = factory.create(self.repositories)
        self._closed = False
        LOGGER.debug(
            "channel resolver initialised",
            extra={"stage": "init", "channel": self.name, "repositories": len(self.repositories)},
        )

    def close(self) -> None:
        """Close the resolver once; later calls do nothing."""

        if self._resolver is None or self._closed:
            return
        self._closed = True
        self._resolver.close()
        LOGGER.debug("channel resolver closed", extra={"stage": "close", "channel": self.name})

    # --- resolution ------------------------------------------------------

    def find_stream(self, group_id: str, artifact_id: str) -> Optional[Stream]:
        """Return the stream governing ``group_id:artifact_id``.

        An exact artifact match wins over a ``*`` stream of the same group.
        """

        wildcard: Optional[Stream] = None
        for stream in self.streams:
            if stream.group_id != group_id:
                continue
            if stream.artifact_id == artifact_id:
                return stream
            if stream.is_wildcard and wildcard is None:
                wildcard = stream
        return wildcard

    def resolve_latest_version(self, coordinate: ArtifactCoordinate) -> Optional[VersionCandidate]:
        """Return the newest version this channel offers, or ``None``."""

        stream = self.find_stream(coordinate.group_id, coordinate.artifact_id)
        if stream is None:
            return None
        if stream.version is not None:
            return VersionCandidate(version=stream.version, channel=self)

        available = self.resolver.get_all_versions(
            coordinate.group_id,
            coordinate.artifact_id,
            coordinate.extension,
            coordinate.classifier,
        )
        allowed: List[str] = [version for version in available if stream.accepts(version)]
        latest = latest_version(allowed, self.comparator)
        if latest is None:
            LOGGER.debug(
                "no version matches stream",
                extra={
                    "stage": "probe",
                    "channel": self.name,
                    "coordinate": str(coordinate),
                    "pattern": stream.version_pattern,
                    "available": len(available),
                },
            )
            return None
        return VersionCandidate(version=latest, channel=self)

    def resolve_artifact(self, coordinate: ArtifactCoordinate, version: str) -> Path:
        """Materialise ``version`` of ``coordinate`` through this channel's resolver.

        Raises:
            UnresolvedArtifactError: If the resolver cannot retrieve that version.
        """

        path = self.resolver.resolve_artifact(
            coordinate.group_id,
            coordinate.artifact_id,
            coordinate.extension,
            coordinate.classifier,
            version,
        )
        if path is None:
            raise UnresolvedArtifactError.for_coordinate(
                f"channel '{self.name}' returned no file", coordinate, version=version
            )
        return Path(path)
