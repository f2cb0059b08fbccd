"""Maven-layout repository resolvers used by channels.

Artifacts live at
``<root>/<group as path>/<artifact>/<version>/<artifact>-<version>[-<classifier>].<ext>``
and versions are advertised by ``<root>/<group as path>/<artifact>/maven-metadata.xml``.
:class:`LocalRepository` reads that layout from disk, :class:`HttpRepository`
over HTTPX (streaming downloads into a cache directory), and
:class:`RepositoryVersionsResolver` combines the repositories declared by one
channel into the :class:`~ChannelResolve.spi.VersionsResolver` the channel uses.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Set, Tuple, TypeVar

import httpx

from .config import RepositoryDefinition
from .coordinates import ArtifactCoordinate
from .errors import RepositoryError, UnresolvedArtifactError
from .net import build_http_client, retry_with_backoff
from .settings import ResolverSettings, RetrySettings

LOGGER = logging.getLogger(__name__)

METADATA_FILENAME = "maven-metadata.xml"
_DOWNLOAD_CHUNK_SIZE = 1 << 16

T = TypeVar("T")

__all__ = [
    "artifact_filename",
    "artifact_path",
    "metadata_path",
    "cache_namespace",
    "parse_metadata_versions",
    "LocalRepository",
    "HttpRepository",
    "RepositoryVersionsResolver",
    "RepositoryResolverFactory",
]


def artifact_filename(artifact_id: str, version: str, extension: str, classifier: Optional[str]) -> str:
    suffix = f"-{classifier}" if classifier else ""
    return f"{artifact_id}-{version}{suffix}.{extension}"


def artifact_path(
    group_id: str,
    artifact_id: str,
    extension: str,
    classifier: Optional[str],
    version: str,
) -> str:
    """Return the repository-relative path of an artifact file.

    Examples:
        >>> artifact_path("org.acme", "core", "jar", None, "1.0")
        'org/acme/core/1.0/core-1.0.jar'
    """

    group_path = group_id.replace(".", "/")
    filename = artifact_filename(artifact_id, version, extension, classifier)
    return f"{group_path}/{artifact_id}/{version}/{filename}"


def metadata_path(group_id: str, artifact_id: str) -> str:
    return f"{group_id.replace('.', '/')}/{artifact_id}/{METADATA_FILENAME}"


def cache_namespace(repository_id: str, url: str) -> str:
    """Return the cache sub-directory for one remote repository.

    Repository ids are only unique within a channel, so the URL is part of the
    key: two ``central`` repositories on different hosts never share files.
    """

    digest = hashlib.sha256(url.rstrip("/").encode("utf-8")).hexdigest()[:12]
    return f"{repository_id}/{digest}"


def parse_metadata_versions(payload: bytes, *, source: str = "maven-metadata.xml") -> Set[str]:
    """Extract ``<versioning><versions><version>`` values from Maven metadata."""

    try:
        root = ET.fromstring(payload)
    except ET.ParseError as exc:
        raise RepositoryError(f"Malformed repository metadata at {source}: {exc}", url=source) from exc
    return {
        element.text.strip()
        for element in root.iterfind("./versioning/versions/version")
        if element.text and element.text.strip()
    }


class Repository(Protocol):
    id: str

    def list_versions(self, group_id: str, artifact_id: str, extension: str, classifier: Optional[str]) -> Set[str]:
        ...

    def fetch(self, coordinate: ArtifactCoordinate, version: str) -> Path:
        ...

    def close(self) -> None:
        ...


class LocalRepository:
    """Repository rooted in a local directory."""

    def __init__(self, repository_id: str, root: Path) -> None:
        self.id = repository_id
        self.root = Path(root)

    def list_versions(self, group_id: str, artifact_id: str, extension: str, classifier: Optional[str]) -> Set[str]:
        base = self.root / group_id.replace(".", "/") / artifact_id
        if not base.is_dir():
            return set()
        versions = set()
        for entry in base.iterdir():
            if not entry.is_dir():
                continue
            filename = artifact_filename(artifact_id, entry.name, extension, classifier)
            if (entry / filename).is_file():
                versions.add(entry.name)
        metadata = base / METADATA_FILENAME
        if metadata.is_file():
            versions |= parse_metadata_versions(metadata.read_bytes(), source=str(metadata))
        return versions

    def fetch(self, coordinate: ArtifactCoordinate, version: str) -> Path:
        relative = artifact_path(
            coordinate.group_id, coordinate.artifact_id, coordinate.extension, coordinate.classifier, version
        )
        candidate = self.root / relative
        if not candidate.is_file():
            raise UnresolvedArtifactError.for_coordinate(
                f"Artifact not found in repository '{self.id}'", coordinate, version=version
            )
        return candidate

    def close(self) -> None:
        return None


class HttpRepository:
    """Remote repository read over HTTPX; artifacts are cached on disk."""

    def __init__(
        self,
        repository_id: str,
        url: str,
        client: httpx.Client,
        cache_dir: Path,
        *,
        retry: Optional[RetrySettings] = None,
        auth: Optional[Tuple[str, str]] = None,
    ) -> None:
        self.id = repository_id
        self.url = url.rstrip("/")
        self.client = client
        self.cache_dir = Path(cache_dir) / cache_namespace(repository_id, self.url)
        self.retry = retry or RetrySettings()
        self.auth = auth

    def _url(self, relative: str) -> str:
        return f"{self.url}/{relative}"

    def _on_retry(self, attempt: int, exc: BaseException, delay: float) -> None:
        LOGGER.warning(
            "repository request retry",
            extra={
                "stage": "fetch",
                "repository": self.id,
                "attempt": attempt,
                "sleep_sec": delay,
                "error": str(exc),
            },
        )

    def _get(self, url: str, handle: Callable[[httpx.Response], T]) -> Optional[T]:
        """Stream ``url`` into ``handle``; ``None`` on 404, :class:`RepositoryError` on other failures.

        ``handle`` runs inside the retried block, so a connection dropped while
        the body is being read is retried like any other transient failure.
        """

        kwargs = {"auth": self.auth} if self.auth else {}

        def _perform() -> Optional[T]:
            with self.client.stream("GET", url, **kwargs) as response:
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return handle(response)

        try:
            return retry_with_backoff(_perform, settings=self.retry, callback=self._on_retry)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise RepositoryError(
                f"Repository '{self.id}' returned HTTP {status} for {url}", url=url, status_code=status
            ) from exc
        except httpx.TransportError as exc:
            raise RepositoryError(
                f"Repository '{self.id}' connection error for {url}: {exc}", url=url, retryable=True
            ) from exc

    def list_versions(self, group_id: str, artifact_id: str, extension: str, classifier: Optional[str]) -> Set[str]:
        url = self._url(metadata_path(group_id, artifact_id))
        payload = self._get(url, lambda response: response.read())
        if payload is None:
            return set()
        return parse_metadata_versions(payload, source=url)

    def fetch(self, coordinate: ArtifactCoordinate, version: str) -> Path:
        relative = artifact_path(
            coordinate.group_id, coordinate.artifact_id, coordinate.extension, coordinate.classifier, version
        )
        destination = self.cache_dir / relative
        if destination.is_file():
            LOGGER.debug(
                "artifact cache hit",
                extra={"stage": "fetch", "repository": self.id, "path": str(destination)},
            )
            return destination

        url = self._url(relative)
        written = self._get(url, lambda response: _stream_to_file(response, destination))
        if written is None:
            raise UnresolvedArtifactError.for_coordinate(
                f"Artifact not found in repository '{self.id}'", coordinate, version=version
            )
        LOGGER.info(
            "artifact downloaded",
            extra={"stage": "fetch", "repository": self.id, "url": url, "bytes": written},
        )
        return destination

    def close(self) -> None:
        return None


def _stream_to_file(response: httpx.Response, path: Path) -> int:
    """Write the response body to ``path`` chunk by chunk via an atomic rename."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".part")
    written = 0
    try:
        with os.fdopen(fd, "wb") as handle:
            for chunk in response.iter_bytes(_DOWNLOAD_CHUNK_SIZE):
                if not chunk:
                    continue
                handle.write(chunk)
                written += len(chunk)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return written


class RepositoryVersionsResolver:
    """Versions resolver over the repositories declared by one channel."""

    def __init__(self, repositories: Sequence[Repository], *, client: Optional[httpx.Client] = None) -> None:
        self.repositories: List[Repository] = list(repositories)
        self._client = client

    def get_all_versions(
        self,
        group_id: str,
        artifact_id: str,
        extension: str,
        classifier: Optional[str],
    ) -> Set[str]:
        versions: Set[str] = set()
        for repository in self.repositories:
            versions |= repository.list_versions(group_id, artifact_id, extension, classifier)
        return versions

    def resolve_artifact(
        self,
        group_id: str,
        artifact_id: str,
        extension: str,
        classifier: Optional[str],
        version: str,
    ) -> Path:
        coordinate = ArtifactCoordinate(group_id, artifact_id, extension, classifier)
        failures: List[str] = []
        last_error: Optional[Exception] = None
        for repository in self.repositories:
            try:
                return repository.fetch(coordinate, version)
            except (UnresolvedArtifactError, RepositoryError) as exc:
                failures.append(f"{repository.id}: {exc}")
                last_error = exc
                if isinstance(exc, RepositoryError):
                    LOGGER.warning(
                        "repository fetch failed",
                        extra={"stage": "fetch", "repository": repository.id, "error": str(exc)},
                    )
        details = "; ".join(failures) if failures else "no repositories configured"
        raise UnresolvedArtifactError.for_coordinate(
            f"Artifact unavailable ({details})", coordinate, version=version
        ) from last_error

    def close(self) -> None:
        for repository in self.repositories:
            repository.close()
        if self._client is not None:
            self._client.close()
            self._client = None


class RepositoryResolverFactory:
    """Builds a :class:`RepositoryVersionsResolver` per channel.

    Each resolver that reads a remote repository owns its own HTTPX client so
    closing one channel never affects another.
    """

    def __init__(
        self,
        settings: Optional[ResolverSettings] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.settings = settings or ResolverSettings()
        self._transport = transport

    def create(self, repositories: Sequence[RepositoryDefinition]) -> RepositoryVersionsResolver:
        client: Optional[httpx.Client] = None
        built: List[Repository] = []
        for definition in repositories:
            if definition.is_remote:
                if client is None:
                    client = build_http_client(self.settings.http, transport=self._transport)
                auth = None
                if definition.username is not None:
                    auth = (definition.username, definition.password or "")
                built.append(
                    HttpRepository(
                        definition.id,
                        definition.url,
                        client,
                        self.settings.cache_dir,
                        retry=self.settings.retry,
                        auth=auth,
                    )
                )
            else:
                built.append(LocalRepository(definition.id, definition.local_path()))
        return RepositoryVersionsResolver(built, client=client)
