"""Value types exchanged between sessions, channels, and callers.

An :class:`ArtifactCoordinate` names what to resolve, a
:class:`VersionCandidate` is one channel's answer to "what is the newest version
you can offer", and a :class:`ResolvedArtifact` is the immutable result handed
back to the caller once a channel has materialised the winning version.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .channel import Channel

__all__ = ["ArtifactCoordinate", "VersionCandidate", "ResolvedArtifact", "DEFAULT_EXTENSION"]

DEFAULT_EXTENSION = "jar"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(slots=True, frozen=True)
class ArtifactCoordinate:
    """Logical component coordinate; ``(group_id, artifact_id)`` is its identity."""

    group_id: str
    artifact_id: str
    extension: str = DEFAULT_EXTENSION
    classifier: Optional[str] = None
    base_version: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.group_id, str) or not self.group_id.strip():
            raise ValueError("group_id must be a non-empty string")
        if not isinstance(self.artifact_id, str) or not self.artifact_id.strip():
            raise ValueError("artifact_id must be a non-empty string")
        object.__setattr__(self, "extension", _blank_to_none(self.extension) or DEFAULT_EXTENSION)
        object.__setattr__(self, "classifier", _blank_to_none(self.classifier))
        object.__setattr__(self, "base_version", _blank_to_none(self.base_version))

    @property
    def key(self) -> Tuple[str, str]:
        """Return the ``(group_id, artifact_id)`` pair used for provenance."""

        return (self.group_id, self.artifact_id)

    @classmethod
    def parse(cls, text: str) -> "ArtifactCoordinate":
        """Parse ``group:artifact[:extension[:classifier[:base_version]]]``.

        Empty segments fall back to their defaults, so ``g:a::sources`` keeps
        the default extension while setting the classifier.

        Examples:
            >>> ArtifactCoordinate.parse("org.acme:core:pom").extension
            'pom'
        """

        parts = [part.strip() for part in text.strip().split(":")]
        if len(parts) < 2 or len(parts) > 5:
            raise ValueError(
                f"invalid coordinate '{text}': expected group:artifact[:extension[:classifier[:version]]]"
            )
        parts.extend([""] * (5 - len(parts)))
        group_id, artifact_id, extension, classifier, base_version = parts
        return cls(
            group_id=group_id,
            artifact_id=artifact_id,
            extension=extension or DEFAULT_EXTENSION,
            classifier=classifier or None,
            base_version=base_version or None,
        )

    def with_base_version(self, base_version: Optional[str]) -> "ArtifactCoordinate":
        return replace(self, base_version=base_version)

    def describe(self, version: Optional[str] = None) -> str:
        """Render the coordinate for diagnostics, substituting ``version`` when given."""

        shown = version if version is not None else self.base_version
        fields = (self.group_id, self.artifact_id, self.extension, self.classifier, shown)
        return ":".join("" if value is None else value for value in fields)

    def __str__(self) -> str:
        return self.describe()


@dataclass(slots=True, frozen=True)
class VersionCandidate:
    """A version advertised by one channel during a single resolve call."""

    version: str
    channel: "Channel"
    index: int = 0


@dataclass(slots=True, frozen=True)
class ResolvedArtifact:
    """Coordinate with its version filled in plus the retrieved file."""

    group_id: str
    artifact_id: str
    extension: str
    classifier: Optional[str]
    version: str
    path: Path
    channel: str

    @classmethod
    def from_coordinate(
        cls,
        coordinate: ArtifactCoordinate,
        version: str,
        path: Path,
        channel: str,
    ) -> "ResolvedArtifact":
        return cls(
            group_id=coordinate.group_id,
            artifact_id=coordinate.artifact_id,
            extension=coordinate.extension,
            classifier=coordinate.classifier,
            version=version,
            path=Path(path),
            channel=channel,
        )

    @property
    def coordinate(self) -> ArtifactCoordinate:
        return ArtifactCoordinate(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            extension=self.extension,
            classifier=self.classifier,
            base_version=self.version,
        )

    def to_dict(self) -> dict:
        """Return a JSON-friendly mapping used by the CLI output."""

        return {
            "group_id": self.group_id,
            "artifact_id": self.artifact_id,
            "extension": self.extension,
            "classifier": self.classifier,
            "version": self.version,
            "path": str(self.path),
            "channel": self.channel,
        }
