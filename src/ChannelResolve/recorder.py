"""Provenance recorder tracking which channel satisfied each coordinate.

The recorder holds the *current* pin per ``(group_id, artifact_id)``: resolving
the same pair again replaces the earlier entry instead of appending to a
history.  Its snapshot is what :mod:`ChannelResolve.manifests` serialises into a
reproducibility manifest.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Tuple

from .channel import Stream

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .channel import Channel

__all__ = ["ProvenanceEntry", "ChannelRecorder"]


@dataclass(slots=True, frozen=True)
class ProvenanceEntry:
    group_id: str
    artifact_id: str
    version: str
    channel: "Channel"

    @property
    def key(self) -> Tuple[str, str]:
        return (self.group_id, self.artifact_id)

    def as_stream(self) -> Stream:
        """Return a stream pinning exactly this version."""

        return Stream(group_id=self.group_id, artifact_id=self.artifact_id, version=self.version)


class ChannelRecorder:
    """Upsert map of ``(group_id, artifact_id)`` to the version and channel chosen.

    Not synchronised; the owning session is used by one caller at a time.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], ProvenanceEntry] = {}
        self._channel_order: List["Channel"] = []

    def __len__(self) -> int:
        return len(self._entries)

    def record_stream(self, group_id: str, artifact_id: str, version: str, channel: "Channel") -> None:
        """Record that ``channel`` supplied ``version`` for ``group_id:artifact_id``."""

        self._entries[(group_id, artifact_id)] = ProvenanceEntry(
            group_id=group_id,
            artifact_id=artifact_id,
            version=version,
            channel=channel,
        )
        if not any(known is channel for known in self._channel_order):
            self._channel_order.append(channel)

    def get_recorded_channels(self) -> List["Channel"]:
        """Return distinct channels referenced by current entries, first-recorded first."""

        live = [entry.channel for entry in self._entries.values()]
        return [
            channel for channel in self._channel_order if any(channel is used for used in live)
        ]

    def get_recorded_streams(self, channel: "Channel") -> List[Stream]:
        """Return the pinned streams ``channel`` currently supplies, sorted by key."""

        return [entry.as_stream() for entry in self.entries() if entry.channel is channel]

    def entries(self) -> List[ProvenanceEntry]:
        """Return a snapshot of all entries sorted by ``(group_id, artifact_id)``."""

        return [self._entries[key] for key in sorted(self._entries)]

    def get(self, group_id: str, artifact_id: str) -> ProvenanceEntry | None:
        return self._entries.get((group_id, artifact_id))
