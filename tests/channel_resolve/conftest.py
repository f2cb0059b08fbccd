"""Shared fixtures for the channel_resolve test suite."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

import pytest

from ChannelResolve.channel import Channel, Stream
from ChannelResolve.repositories import artifact_path
from ChannelResolve.settings import invalidate_default_settings
from ChannelResolve.testing import StaticVersionsResolver

GROUP = "org.acme"
ARTIFACT = "core"


class RecordingResolver(StaticVersionsResolver):
    """Static resolver that appends its name to a shared log when closed."""

    def __init__(self, name: str, log: List[str], **kwargs) -> None:
        super().__init__(**kwargs)
        self.name = name
        self.log = log

    def close(self) -> None:
        self.log.append(self.name)
        super().close()


@pytest.fixture
def close_log() -> List[str]:
    return []


@pytest.fixture
def make_channel(close_log) -> Callable[..., Tuple[Channel, RecordingResolver]]:
    """Build a ``(channel, resolver)`` pair offering ``versions`` of org.acme:core."""

    def _make(
        name: str,
        versions: Iterable[str] = (),
        *,
        files: Optional[Iterable[str]] = None,
        pattern: str = ".*",
        close_error: Optional[BaseException] = None,
    ) -> Tuple[Channel, RecordingResolver]:
        advertised = {(GROUP, ARTIFACT): list(versions)}
        available = None if files is None else {(GROUP, ARTIFACT): list(files)}
        resolver = RecordingResolver(
            name,
            close_log,
            versions=advertised,
            files=available,
            root=Path("/repo") / name,
            close_error=close_error,
        )
        channel = Channel(name, [Stream(GROUP, "*", version_pattern=pattern)])
        return channel, resolver

    return _make


@pytest.fixture
def local_repository(tmp_path) -> Callable[..., Path]:
    """Create artifact files in a Maven layout under ``tmp_path/<name>``."""

    def _populate(name: str, group_id: str, artifact_id: str, versions: Iterable[str], extension: str = "jar") -> Path:
        root = tmp_path / name
        for version in versions:
            target = root / artifact_path(group_id, artifact_id, extension, None, version)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(f"{artifact_id}-{version}".encode())
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _populate


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for key in list(os.environ):
        if key.startswith("CHANNELRESOLVE_"):
            monkeypatch.delenv(key, raising=False)
    invalidate_default_settings()
    yield
    invalidate_default_settings()
    logger = logging.getLogger("ChannelResolve")
    for handler in list(logger.handlers):
        if getattr(handler, "_channelresolve_managed", False):
            logger.removeHandler(handler)
            handler.close()
