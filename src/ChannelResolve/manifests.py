"""Reproducibility manifests built from session provenance.

A manifest lists, per channel that satisfied at least one coordinate, the
exact versions it supplied.  Loading it back yields channels whose streams pin
those versions, so a later session resolves the identical set.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as JSONSchemaValidationError

from .channel import Channel, Stream
from .config import RepositoryDefinition
from .errors import ConfigurationError
from .recorder import ChannelRecorder

__all__ = [
    "MANIFEST_SCHEMA_VERSION",
    "MANIFEST_JSON_SCHEMA",
    "build_manifest",
    "validate_manifest_dict",
    "write_manifest",
    "read_manifest",
    "load_manifest_channels",
]

MANIFEST_SCHEMA_VERSION = "1.0"

MANIFEST_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "ChannelResolve provenance manifest",
    "type": "object",
    "required": ["schema_version", "generated_at", "channels"],
    "additionalProperties": False,
    "properties": {
        "schema_version": {"type": "string", "const": MANIFEST_SCHEMA_VERSION},
        "generated_at": {"type": "string", "format": "date-time"},
        "channels": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "streams"],
                "additionalProperties": False,
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "repositories": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["id", "url"],
                            "additionalProperties": False,
                            "properties": {
                                "id": {"type": "string", "minLength": 1},
                                "url": {"type": "string", "minLength": 1},
                            },
                        },
                    },
                    "streams": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["group_id", "artifact_id", "version"],
                            "additionalProperties": False,
                            "properties": {
                                "group_id": {"type": "string", "minLength": 1},
                                "artifact_id": {"type": "string", "minLength": 1},
                                "version": {"type": "string", "minLength": 1},
                            },
                        },
                    },
                },
            },
        },
    },
}

_VALIDATOR = Draft202012Validator(MANIFEST_JSON_SCHEMA)


def build_manifest(recorder: ChannelRecorder, *, generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    """Serialise the recorder's current pins into a manifest mapping.

    Channels appear in the order they were first recorded; streams within a
    channel are sorted by ``(group_id, artifact_id)``.  Repository credentials
    are never written.
    """

    timestamp = (generated_at or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
    channels: List[Dict[str, Any]] = []
    for channel in recorder.get_recorded_channels():
        channels.append(
            {
                "name": channel.name,
                "repositories": [{"id": repo.id, "url": repo.url} for repo in channel.repositories],
                "streams": [
                    {
                        "group_id": stream.group_id,
                        "artifact_id": stream.artifact_id,
                        "version": stream.version,
                    }
                    for stream in recorder.get_recorded_streams(channel)
                ],
            }
        )
    return {
        "schema_version": MANIFEST_SCHEMA_VERSION,
        "generated_at": timestamp,
        "channels": channels,
    }


def validate_manifest_dict(payload: Mapping[str, Any], *, source: Optional[Path] = None) -> None:
    """Raise :class:`ConfigurationError` when ``payload`` violates the manifest schema."""

    try:
        _VALIDATOR.validate(payload)
    except JSONSchemaValidationError as exc:
        location = f" ({source})" if source else ""
        pointer = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ConfigurationError(f"Manifest validation failed{location} at {pointer}: {exc.message}") from exc


def _serialise(manifest: Mapping[str, Any], fmt: str) -> str:
    if fmt == "json":
        return json.dumps(manifest, indent=2, sort_keys=False) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(dict(manifest), sort_keys=False)
    raise ValueError(f"unsupported manifest format '{fmt}' (expected json or yaml)")


def write_manifest(path: Path, manifest: Mapping[str, Any], *, fmt: Optional[str] = None) -> Path:
    """Validate and atomically write ``manifest``; format follows the suffix by default."""

    path = Path(path)
    if fmt is None:
        fmt = "yaml" if path.suffix.lower() in {".yaml", ".yml"} else "json"
    validate_manifest_dict(manifest, source=path)
    content = _serialise(manifest, fmt)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def read_manifest(path: Path) -> Dict[str, Any]:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read manifest {path}: {exc}") from exc
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Manifest {path} is not valid JSON/YAML: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Manifest {path} must contain a mapping")
    validate_manifest_dict(payload, source=path)
    return payload


def load_manifest_channels(source: Path | Mapping[str, Any]) -> List[Channel]:
    """Rebuild pinned channels (fixed-version streams) from a manifest."""

    if isinstance(source, Mapping):
        payload = dict(source)
        validate_manifest_dict(payload)
    else:
        payload = read_manifest(Path(source))

    channels: List[Channel] = []
    for entry in payload["channels"]:
        repositories = [RepositoryDefinition(**repo) for repo in entry.get("repositories", [])]
        streams = [Stream(**stream) for stream in entry["streams"]]
        channels.append(Channel(entry["name"], streams, repositories))
    return channels
