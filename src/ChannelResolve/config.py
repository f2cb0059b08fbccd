# === NAVMAP v1 ===
# {
#   "module": "ChannelResolve.config",
#   "purpose": "Parse YAML channel declarations into Channel objects",
#   "sections": []
# }
# === /NAVMAP ===

"""Channel declarations: YAML parsing and validation.

A channels file lists channels in priority order::

    channels:
      - name: platform
        repositories:
          - id: central
            url: https://repo.maven.apache.org/maven2
        streams:
          - group_id: org.acme
            artifact_id: "*"
            version_pattern: "2\\\\..*"
          - group_id: org.acme.tools
            artifact_id: lint
            version: 1.4.0

The order of the list is the order channels are queried in; this module does
not reorder or deduplicate them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional

try:  # pragma: no cover - dependency check
    import yaml  # type: ignore
except ModuleNotFoundError as exc:  # pragma: no cover - explicit guidance for users
    raise ImportError(
        "PyYAML is required for channel declarations. Install it with: pip install pyyaml"
    ) from exc

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .channel import Channel, Stream
from .errors import ConfigurationError
from .versioning import VersionComparator, compare_versions

LOGGER = logging.getLogger(__name__)

__all__ = [
    "RepositoryDefinition",
    "StreamDefinition",
    "ChannelDefinition",
    "ChannelsFile",
    "load_channels_file",
    "parse_channels",
    "build_channels",
]


class RepositoryDefinition(BaseModel):
    """A Maven-layout repository, remote (``http(s)://``) or local (path or ``file://``)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    url: str = Field(min_length=1)
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)

    @property
    def is_remote(self) -> bool:
        return self.url.lower().startswith(("http://", "https://"))

    def local_path(self) -> Path:
        """Return the filesystem root of a local repository."""

        if self.is_remote:
            raise ConfigurationError(f"repository '{self.id}' is remote: {self.url}")
        raw = self.url[len("file://") :] if self.url.startswith("file://") else self.url
        return Path(raw).expanduser()


class StreamDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    group_id: str = Field(min_length=1)
    artifact_id: str = Field(min_length=1)
    version: Optional[str] = None
    version_pattern: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_rule(self) -> "StreamDefinition":
        if (self.version is None) == (self.version_pattern is None):
            raise ValueError(
                f"stream {self.group_id}:{self.artifact_id} needs exactly one of version or version_pattern"
            )
        return self

    def to_stream(self) -> Stream:
        return Stream(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            version=self.version,
            version_pattern=self.version_pattern,
        )


class ChannelDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    description: Optional[str] = None
    repositories: List[RepositoryDefinition] = Field(default_factory=list)
    streams: List[StreamDefinition] = Field(default_factory=list)

    @field_validator("repositories")
    @classmethod
    def _unique_repository_ids(cls, value: List[RepositoryDefinition]) -> List[RepositoryDefinition]:
        seen = set()
        for repository in value:
            if repository.id in seen:
                raise ValueError(f"duplicate repository id '{repository.id}'")
            seen.add(repository.id)
        return value

    def to_channel(self, comparator: VersionComparator = compare_versions) -> Channel:
        try:
            streams = [definition.to_stream() for definition in self.streams]
        except ValueError as exc:
            raise ConfigurationError(f"channel '{self.name}': {exc}") from exc
        return Channel(self.name, streams, self.repositories, comparator=comparator)


class ChannelsFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channels: List[ChannelDefinition] = Field(default_factory=list)

    @field_validator("channels")
    @classmethod
    def _unique_names(cls, value: List[ChannelDefinition]) -> List[ChannelDefinition]:
        names = [channel.name for channel in value]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"duplicate channel names: {', '.join(duplicates)}")
        return value


def parse_channels(payload: Any, *, source: Optional[Path] = None) -> ChannelsFile:
    """Validate a decoded YAML/JSON payload as a :class:`ChannelsFile`."""

    where = f" in {source}" if source else ""
    if payload is None:
        raise ConfigurationError(f"Channel declaration{where} is empty")
    if isinstance(payload, list):
        payload = {"channels": payload}
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"Channel declaration{where} must be a mapping or a list")
    try:
        return ChannelsFile.model_validate(payload)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid channel declaration{where}: {exc}") from exc


def load_channels_file(path: Path) -> ChannelsFile:
    """Read and validate a YAML channels file.

    Raises:
        ConfigurationError: If the file is missing, not valid YAML, or fails validation.
    """

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read channels file {path}: {exc}") from exc
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Channels file {path} is not valid YAML: {exc}") from exc
    parsed = parse_channels(payload, source=path)
    LOGGER.debug(
        "channels file loaded",
        extra={"stage": "config", "path": str(path), "channels": len(parsed.channels)},
    )
    return parsed


def build_channels(
    definitions: ChannelsFile | List[ChannelDefinition],
    *,
    comparator: VersionComparator = compare_versions,
) -> List[Channel]:
    """Create :class:`Channel` objects in declaration order."""

    items = definitions.channels if isinstance(definitions, ChannelsFile) else definitions
    return [definition.to_channel(comparator) for definition in items]
