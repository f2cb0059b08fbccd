"""Public API for channel-based artifact resolution.

Callers pin an ordered list of channels once, open a :class:`ChannelSession`
over them, and resolve many coordinates through it.  Each resolution picks the
newest version any channel offers (falling back to an explicit base version
when none does) and records which channel supplied it, so the resolved set can
be written out as a manifest and reproduced later.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .channel import Channel, Stream
from .config import ChannelDefinition, RepositoryDefinition, StreamDefinition, build_channels, load_channels_file
from .coordinates import ArtifactCoordinate, ResolvedArtifact, VersionCandidate
from .errors import (
    ChannelCloseError,
    ChannelInitError,
    ChannelResolveError,
    ConfigurationError,
    RepositoryError,
    SessionClosedError,
    UnresolvedArtifactError,
)
from .manifests import build_manifest, load_manifest_channels, write_manifest
from .recorder import ChannelRecorder, ProvenanceEntry
from .repositories import RepositoryResolverFactory
from .session import ChannelSession
from .versioning import compare_versions

__all__ = [
    "__version__",
    "ArtifactCoordinate",
    "Channel",
    "ChannelCloseError",
    "ChannelDefinition",
    "ChannelInitError",
    "ChannelRecorder",
    "ChannelResolveError",
    "ChannelSession",
    "ConfigurationError",
    "ProvenanceEntry",
    "RepositoryDefinition",
    "RepositoryError",
    "RepositoryResolverFactory",
    "ResolvedArtifact",
    "SessionClosedError",
    "Stream",
    "StreamDefinition",
    "UnresolvedArtifactError",
    "VersionCandidate",
    "build_channels",
    "build_manifest",
    "compare_versions",
    "load_channels_file",
    "load_manifest_channels",
    "write_manifest",
]
