# === NAVMAP v1 ===
# {
#   "module": "ChannelResolve.session",
#   "purpose": "Channel session: newest-version selection, base-version fallback, provenance, and teardown",
#   "sections": [
#     {"id": "channelattempt", "name": "ChannelAttempt", "anchor": "class-channelattempt", "kind": "class"},
#     {"id": "channelsession", "name": "ChannelSession", "anchor": "class-channelsession", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Resolve artifact coordinates through an ordered list of channels.

A :class:`ChannelSession` owns the channels (and their resolvers) plus a
:class:`~ChannelResolve.recorder.ChannelRecorder` for a bounded span of time.
Each :meth:`ChannelSession.resolve` call:

1. asks every channel, in declared order, for the newest version it offers;
2. picks the greatest version under the comparator; when several channels
   advertise the identical version string the channel declared *last* wins;
3. materialises that version through the winning channel and records the pin;
4. if no channel advertised anything but a base version was given, tries each
   channel in order for that literal version and takes the first success;
5. otherwise raises :class:`~ChannelResolve.errors.UnresolvedArtifactError`.

Sessions are not thread-safe.  Confine a session to one thread or guard it with
an external lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cmp_to_key
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .channel import Channel
from .coordinates import ArtifactCoordinate, ResolvedArtifact, VersionCandidate
from .errors import (
    ChannelCloseError,
    ChannelInitError,
    SessionClosedError,
    UnresolvedArtifactError,
)
from .recorder import ChannelRecorder, ProvenanceEntry
from .spi import VersionsResolverFactory
from .versioning import VersionComparator, compare_versions

LOGGER = logging.getLogger(__name__)

__all__ = ["ChannelAttempt", "ChannelSession"]


@dataclass(slots=True, frozen=True)
class ChannelAttempt:
    """Outcome of asking one channel to materialise a specific version."""

    channel: Channel
    version: str
    path: Optional[Path] = None
    error: Optional[UnresolvedArtifactError] = None

    @property
    def succeeded(self) -> bool:
        return self.path is not None


class ChannelSession:
    """Owns channels and provenance while resolving many coordinates."""

    def __init__(
        self,
        channels: Sequence[Channel],
        factory: VersionsResolverFactory,
        *,
        comparator: VersionComparator = compare_versions,
    ) -> None:
        if channels is None:
            raise TypeError("channels must not be None")
        if factory is None:
            raise TypeError("factory must not be None")
        self._channels: List[Channel] = list(channels)
        self._comparator = comparator
        self._recorder = ChannelRecorder()
        self._closed = False

        initialised: List[Channel] = []
        for channel in self._channels:
            try:
                channel.init_resolver(factory)
            except Exception as exc:
                LOGGER.error(
                    "channel initialisation failed",
                    extra={"stage": "init", "channel": channel.name, "error": str(exc)},
                )
                try:
                    self._release(initialised)
                except ChannelCloseError as close_exc:
                    LOGGER.warning(
                        "cleanup after failed initialisation did not complete",
                        extra={"stage": "init", "error": str(close_exc)},
                    )
                if isinstance(exc, ChannelInitError):
                    raise
                raise ChannelInitError(
                    f"Failed to initialise channel '{channel.name}': {exc}", channel=channel.name
                ) from exc
            initialised.append(channel)

        LOGGER.info(
            "channel session opened",
            extra={"stage": "init", "channels": [channel.name for channel in self._channels]},
        )

    # --- context management -------------------------------------------------

    def __enter__(self) -> "ChannelSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def channels(self) -> List[Channel]:
        return list(self._channels)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError("channel session is closed")

    # --- resolution ---------------------------------------------------------

    def resolve_artifact(
        self,
        group_id: str,
        artifact_id: str,
        extension: Optional[str] = None,
        classifier: Optional[str] = None,
        base_version: Optional[str] = None,
    ) -> ResolvedArtifact:
        """Resolve ``group_id:artifact_id`` to the newest version any channel offers."""

        coordinate = ArtifactCoordinate(
            group_id=group_id,
            artifact_id=artifact_id,
            extension=extension or "",
            classifier=classifier,
            base_version=base_version,
        )
        return self.resolve(coordinate)

    def resolve(self, coordinate: ArtifactCoordinate) -> ResolvedArtifact:
        """Resolve ``coordinate``; see the module docstring for the algorithm.

        Raises:
            UnresolvedArtifactError: If no channel can supply the coordinate.
            SessionClosedError: If the session has been closed.
        """

        candidates = self.collect_candidates(coordinate)
        winner = self.select_latest(candidates)

        if winner is not None:
            path = winner.channel.resolve_artifact(coordinate, winner.version)
            return self._finish(coordinate, winner.version, winner.channel, path)

        base_version = coordinate.base_version
        if base_version is None:
            raise UnresolvedArtifactError.for_coordinate(
                "Can not resolve artifact (no stream found)", coordinate
            )

        attempt = next(
            (
                attempt
                for attempt in self._base_version_attempts(coordinate, base_version)
                if attempt.succeeded
            ),
            None,
        )
        if attempt is None or attempt.path is None:
            raise UnresolvedArtifactError.for_coordinate(
                "Can not resolve artifact (no stream found, base version unavailable)", coordinate
            )
        LOGGER.info(
            "resolved base version",
            extra={
                "stage": "resolve",
                "coordinate": str(coordinate),
                "channel": attempt.channel.name,
                "version": attempt.version,
            },
        )
        return self._finish(coordinate, attempt.version, attempt.channel, attempt.path)

    def resolve_artifacts(self, coordinates: Iterable[ArtifactCoordinate]) -> List[ResolvedArtifact]:
        """Resolve several coordinates in order, stopping at the first failure."""

        return [self.resolve(coordinate) for coordinate in coordinates]

    def find_latest_version(self, coordinate: ArtifactCoordinate) -> VersionCandidate:
        """Return the winning version and channel without fetching or recording.

        Raises:
            UnresolvedArtifactError: If no channel advertises a version.
        """

        winner = self.select_latest(self.collect_candidates(coordinate))
        if winner is None:
            raise UnresolvedArtifactError.for_coordinate(
                "Can not determine latest version (no stream found)", coordinate
            )
        return winner

    def collect_candidates(self, coordinate: ArtifactCoordinate) -> List[VersionCandidate]:
        """Probe every channel once, in declared order, and return what each offers.

        Channels offering nothing are left out; each candidate keeps its
        channel's position in ``index``.
        """

        self._ensure_open()
        candidates: List[VersionCandidate] = []
        for index, channel in enumerate(self._channels):
            found = channel.resolve_latest_version(coordinate)
            if found is None:
                continue
            LOGGER.debug(
                "channel offers version",
                extra={
                    "stage": "probe",
                    "coordinate": str(coordinate),
                    "channel": channel.name,
                    "version": found.version,
                },
            )
            candidates.append(VersionCandidate(version=found.version, channel=found.channel, index=index))
        return candidates

    def select_latest(self, candidates: Sequence[VersionCandidate]) -> Optional[VersionCandidate]:
        """Return the winning candidate, or ``None`` when there are none."""

        if not candidates:
            return None
        comparator = self._comparator

        def _order(left: VersionCandidate, right: VersionCandidate) -> int:
            outcome = comparator(left.version, right.version)
            if outcome:
                return outcome
            # identical versions: the later channel in declared order wins
            return (left.index > right.index) - (left.index < right.index)

        return max(candidates, key=cmp_to_key(_order))

    def _base_version_attempts(
        self, coordinate: ArtifactCoordinate, base_version: str
    ) -> Iterator[ChannelAttempt]:
        for channel in self._channels:
            yield self._attempt(channel, coordinate, base_version)

    def _attempt(self, channel: Channel, coordinate: ArtifactCoordinate, version: str) -> ChannelAttempt:
        try:
            path = channel.resolve_artifact(coordinate, version)
        except UnresolvedArtifactError as exc:
            LOGGER.debug(
                "channel cannot supply base version",
                extra={
                    "stage": "fallback",
                    "coordinate": str(coordinate),
                    "channel": channel.name,
                    "error": str(exc),
                },
            )
            return ChannelAttempt(channel=channel, version=version, error=exc)
        return ChannelAttempt(channel=channel, version=version, path=path)

    def _finish(
        self,
        coordinate: ArtifactCoordinate,
        version: str,
        channel: Channel,
        path: Path,
    ) -> ResolvedArtifact:
        self._recorder.record_stream(coordinate.group_id, coordinate.artifact_id, version, channel)
        LOGGER.info(
            "artifact resolved",
            extra={
                "stage": "resolve",
                "coordinate": str(coordinate),
                "channel": channel.name,
                "version": version,
            },
        )
        return ResolvedArtifact.from_coordinate(coordinate, version, path, channel.name)

    # --- provenance ---------------------------------------------------------

    @property
    def recorder(self) -> ChannelRecorder:
        return self._recorder

    def get_recorded_channels(self) -> List[Channel]:
        """Return the channels that satisfied at least one current pin."""

        return self._recorder.get_recorded_channels()

    def recorded_entries(self) -> List[ProvenanceEntry]:
        return self._recorder.entries()

    def recorded_manifest(self) -> dict:
        """Return the provenance snapshot as a reproducibility manifest mapping."""

        from .manifests import build_manifest

        return build_manifest(self._recorder)

    # --- teardown -----------------------------------------------------------

    def close(self) -> None:
        """Release every channel resolver in declared order.

        Every channel is closed even when an earlier one fails; the failures
        are then raised together as :class:`ChannelCloseError`.  Closing an
        already closed session does nothing.
        """

        if self._closed:
            return
        self._closed = True
        self._release(self._channels)
        LOGGER.info("channel session closed", extra={"stage": "close", "channels": len(self._channels)})

    @staticmethod
    def _release(channels: Sequence[Channel]) -> None:
        failures = []
        for channel in channels:
            try:
                channel.close()
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.warning(
                    "channel close failed",
                    extra={"stage": "close", "channel": channel.name, "error": str(exc)},
                )
                failures.append((channel.name, exc))
        if failures:
            names = ", ".join(name for name, _ in failures)
            raise ChannelCloseError(
                f"Failed to close {len(failures)} channel(s): {names}", failures=failures
            ) from failures[0][1]
