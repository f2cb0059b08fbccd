# === NAVMAP v1 ===
# {
#   "module": "tests.channel_resolve.test_session",
#   "purpose": "Selection, fallback, provenance, and lifecycle behaviour of ChannelSession.",
#   "sections": [
#     {"id": "tests", "name": "Test Cases", "anchor": "TST", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Selection, fallback, provenance, and lifecycle behaviour of ChannelSession."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from ChannelResolve.channel import Channel, Stream
from ChannelResolve.coordinates import ArtifactCoordinate
from ChannelResolve.errors import (
    ChannelCloseError,
    ChannelInitError,
    SessionClosedError,
    UnresolvedArtifactError,
)
from ChannelResolve.session import ChannelSession
from ChannelResolve.testing import StaticResolverFactory, StaticVersionsResolver

GROUP = "org.acme"
ARTIFACT = "core"


def _open(*pairs) -> ChannelSession:
    channels = [channel for channel, _ in pairs]
    resolvers = [resolver for _, resolver in pairs]
    return ChannelSession(channels, StaticResolverFactory(resolvers))


# --- newest version selection -------------------------------------------------


def test_selects_greatest_version_across_channels(make_channel) -> None:
    """The result is the maximum of every channel's latest version."""

    first = make_channel("first", ["1.0.0", "1.5.0"])
    second = make_channel("second", ["2.0.0.Beta1"])
    third = make_channel("third", ["1.9.9"])
    session = _open(first, second, third)

    result = session.resolve_artifact(GROUP, ARTIFACT)

    assert result.version == "2.0.0.Beta1"
    assert result.channel == "second"
    assert result.path == Path("/repo/second/org.acme/core/2.0.0.Beta1/core-2.0.0.Beta1.jar")
    assert first[1].calls["resolve_artifact"] == 0
    assert third[1].calls["resolve_artifact"] == 0


def test_identical_latest_version_is_taken_from_last_channel(make_channel) -> None:
    """When channels tie on the maximal version, the later channel wins."""

    first = make_channel("first", ["2.0.0"])
    second = make_channel("second", ["2.0.0", "1.0.0"])
    session = _open(first, second)

    result = session.resolve_artifact(GROUP, ARTIFACT)

    assert result.version == "2.0.0"
    assert result.channel == "second"
    assert first[1].calls["resolve_artifact"] == 0
    assert session.get_recorded_channels() == [second[0]]


def test_tie_break_ignores_lower_versions_from_later_channels(make_channel) -> None:
    first = make_channel("first", ["3.0"])
    second = make_channel("second", ["2.0"])

    result = _open(first, second).resolve_artifact(GROUP, ARTIFACT)

    assert (result.version, result.channel) == ("3.0", "first")


def test_version_pattern_limits_offered_versions(make_channel) -> None:
    channel = make_channel("patterned", ["1.0", "1.1", "2.0"], pattern=r"1\..*")

    result = _open(channel).resolve_artifact(GROUP, ARTIFACT)

    assert result.version == "1.1"


def test_custom_comparator_drives_selection(make_channel) -> None:
    """A caller supplied comparator replaces the default order."""

    first, first_resolver = make_channel("first", ["10"])
    second, second_resolver = make_channel("second", ["9"])

    def lexical(left: str, right: str) -> int:
        return (left > right) - (left < right)

    session = ChannelSession(
        [first, second],
        StaticResolverFactory([first_resolver, second_resolver]),
        comparator=lexical,
    )

    assert session.resolve_artifact(GROUP, ARTIFACT).version == "9"


def test_materialisation_failure_of_winner_propagates(make_channel) -> None:
    """The winner is not silently replaced when it cannot deliver."""

    first = make_channel("first", ["1.0"])
    second = make_channel("second", ["2.0"], files=[])
    session = _open(first, second)

    with pytest.raises(UnresolvedArtifactError):
        session.resolve_artifact(GROUP, ARTIFACT)
    assert session.recorded_entries() == []


def test_unexpected_probe_failure_propagates(make_channel) -> None:
    channel, resolver = make_channel("broken", ["1.0"])

    def _explode(*args, **kwargs):
        raise RuntimeError("index corrupted")

    resolver.get_all_versions = _explode  # type: ignore[assignment]
    session = _open((channel, resolver))

    with pytest.raises(RuntimeError, match="index corrupted"):
        session.resolve_artifact(GROUP, ARTIFACT)


# --- base version fallback ------------------------------------------------------


def test_base_version_resolved_by_first_channel_that_has_it(make_channel) -> None:
    """Earlier channels that cannot materialise the base version do not block later ones."""

    first = make_channel("first", [], files=[])
    second = make_channel("second", [], files=["1.0.0"])
    third = make_channel("third", [], files=["1.0.0"])
    session = _open(first, second, third)

    result = session.resolve_artifact(GROUP, ARTIFACT, base_version="1.0.0")

    assert (result.version, result.channel) == ("1.0.0", "second")
    assert first[1].calls["resolve_artifact"] == 1
    assert third[1].calls["resolve_artifact"] == 0
    entry = session.recorder.get(GROUP, ARTIFACT)
    assert entry is not None and entry.version == "1.0.0" and entry.channel is second[0]


def test_base_version_matches_literally(make_channel) -> None:
    channel = make_channel("only", [], files=["1.0.1"])
    session = _open(channel)

    with pytest.raises(UnresolvedArtifactError):
        session.resolve_artifact(GROUP, ARTIFACT, base_version="1.0.0")


def test_base_version_ignored_when_a_channel_offers_a_version(make_channel) -> None:
    first = make_channel("first", ["2.0"])
    second = make_channel("second", [], files=["1.0"])

    result = _open(first, second).resolve_artifact(GROUP, ARTIFACT, base_version="1.0")

    assert (result.version, result.channel) == ("2.0", "first")
    assert second[1].calls["resolve_artifact"] == 0


def test_no_versions_and_no_base_version_fails_without_fallback(make_channel) -> None:
    first = make_channel("first", [], files=["1.0"])
    second = make_channel("second", [], files=["1.0"])
    session = _open(first, second)

    with pytest.raises(UnresolvedArtifactError) as excinfo:
        session.resolve_artifact(GROUP, ARTIFACT, extension="pom", classifier="tests")

    assert first[1].calls["resolve_artifact"] == 0
    assert second[1].calls["resolve_artifact"] == 0
    error = excinfo.value
    assert (error.group_id, error.artifact_id, error.extension, error.classifier) == (
        GROUP,
        ARTIFACT,
        "pom",
        "tests",
    )
    assert error.version is None
    assert "org.acme:core:pom:tests" in str(error)


def test_base_version_unavailable_everywhere_fails(make_channel) -> None:
    first = make_channel("first", [], files=[])
    second = make_channel("second", [], files=[])
    session = _open(first, second)

    with pytest.raises(UnresolvedArtifactError) as excinfo:
        session.resolve_artifact(GROUP, ARTIFACT, base_version="4.2")

    assert excinfo.value.version == "4.2"
    assert first[1].calls["resolve_artifact"] == 1
    assert second[1].calls["resolve_artifact"] == 1
    assert session.recorded_entries() == []


def test_channel_without_stream_offers_nothing() -> None:
    channel = Channel("other-group", [Stream("org.other", "*", version_pattern=".*")])
    resolver = StaticVersionsResolver({(GROUP, ARTIFACT): {"1.0"}})
    session = ChannelSession([channel], StaticResolverFactory([resolver]))

    with pytest.raises(UnresolvedArtifactError):
        session.resolve_artifact(GROUP, ARTIFACT)
    assert resolver.calls["get_all_versions"] == 0


# --- provenance -------------------------------------------------------------------


def test_second_resolve_of_same_pair_replaces_recorded_entry(make_channel) -> None:
    """Provenance holds the current pin per (group, artifact), not a history."""

    first = make_channel("c1", ["1.2.3"])
    second = make_channel("c2", [])
    session = _open(first, second)

    assert session.resolve_artifact(GROUP, ARTIFACT).version == "1.2.3"
    second[1].versions[(GROUP, ARTIFACT)] = {"1.3.0"}
    second[1].files[(GROUP, ARTIFACT)] = {"1.3.0"}
    assert session.resolve_artifact(GROUP, ARTIFACT).version == "1.3.0"

    entries = session.recorded_entries()
    assert len(entries) == 1
    assert (entries[0].version, entries[0].channel) == ("1.3.0", second[0])
    assert session.get_recorded_channels() == [second[0]]


def test_recorded_channels_are_distinct(make_channel) -> None:
    channel, resolver = make_channel("shared", [])
    resolver.versions = {(GROUP, "core"): {"1.0"}, (GROUP, "api"): {"2.0"}}
    resolver.files = {key: set(value) for key, value in resolver.versions.items()}
    session = _open((channel, resolver))

    session.resolve(ArtifactCoordinate(GROUP, "core"))
    session.resolve(ArtifactCoordinate(GROUP, "api"))

    assert session.get_recorded_channels() == [channel]
    assert [entry.artifact_id for entry in session.recorded_entries()] == ["api", "core"]


def test_find_latest_version_does_not_fetch_or_record(make_channel) -> None:
    first = make_channel("first", ["1.0"])
    second = make_channel("second", ["1.1"])
    session = _open(first, second)

    candidate = session.find_latest_version(ArtifactCoordinate(GROUP, ARTIFACT))

    assert candidate.version == "1.1"
    assert candidate.channel is second[0]
    assert candidate.index == 1
    assert second[1].calls["resolve_artifact"] == 0
    assert session.recorded_entries() == []


def test_collect_candidates_probes_each_channel_once(make_channel) -> None:
    first = make_channel("first", ["1.0"])
    empty = make_channel("empty", [])
    third = make_channel("third", ["1.1"])
    session = _open(first, empty, third)

    candidates = session.collect_candidates(ArtifactCoordinate(GROUP, ARTIFACT))
    winner = session.select_latest(candidates)

    assert [(candidate.channel.name, candidate.index) for candidate in candidates] == [("first", 0), ("third", 2)]
    assert winner is not None and winner.version == "1.1"
    assert [resolver.calls["get_all_versions"] for _, resolver in (first, empty, third)] == [1, 1, 1]
    assert session.select_latest([]) is None


def test_resolve_artifacts_resolves_in_order(make_channel) -> None:
    channel, resolver = make_channel("only", [])
    resolver.versions = {(GROUP, "a"): {"1.0"}, (GROUP, "b"): {"2.0"}}
    resolver.files = {key: set(value) for key, value in resolver.versions.items()}
    session = _open((channel, resolver))

    results = session.resolve_artifacts([ArtifactCoordinate(GROUP, "b"), ArtifactCoordinate(GROUP, "a")])

    assert [(r.artifact_id, r.version) for r in results] == [("b", "2.0"), ("a", "1.0")]


def test_recorded_manifest_lists_pins(make_channel) -> None:
    session = _open(make_channel("main", ["5.0"]))
    session.resolve_artifact(GROUP, ARTIFACT)

    manifest = session.recorded_manifest()

    assert manifest["channels"] == [
        {
            "name": "main",
            "repositories": [],
            "streams": [{"group_id": GROUP, "artifact_id": ARTIFACT, "version": "5.0"}],
        }
    ]


# --- lifecycle --------------------------------------------------------------------


def test_constructor_rejects_missing_arguments(make_channel) -> None:
    channel, resolver = make_channel("a", [])
    with pytest.raises(TypeError):
        ChannelSession(None, StaticResolverFactory([resolver]))  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        ChannelSession([channel], None)  # type: ignore[arg-type]


def test_constructor_initialises_channels_in_order(make_channel) -> None:
    pairs = [make_channel(name, []) for name in ("a", "b", "c")]
    factory = StaticResolverFactory([resolver for _, resolver in pairs])

    session = ChannelSession([channel for channel, _ in pairs], factory)

    assert factory.created == 3
    assert all(channel.resolver is resolver for channel, resolver in pairs)
    assert session.channels == [channel for channel, _ in pairs]


def test_initialisation_failure_aborts_and_releases_started_channels(make_channel, close_log) -> None:
    pairs = [make_channel(name, []) for name in ("a", "b", "c")]
    factory = StaticResolverFactory([resolver for _, resolver in pairs], fail_on=1)

    with pytest.raises(ChannelInitError) as excinfo:
        ChannelSession([channel for channel, _ in pairs], factory)

    assert excinfo.value.channel == "b"
    assert close_log == ["a"]
    assert factory.created == 2


def test_cleanup_failure_during_initialisation_keeps_original_error(make_channel, close_log, caplog) -> None:
    first = make_channel("a", [], close_error=RuntimeError("socket stuck"))
    pairs = [first] + [make_channel(name, []) for name in ("b", "c")]
    factory = StaticResolverFactory([resolver for _, resolver in pairs], fail_on=1)

    with caplog.at_level(logging.WARNING, logger="ChannelResolve.session"):
        with pytest.raises(ChannelInitError) as excinfo:
            ChannelSession([channel for channel, _ in pairs], factory)

    assert excinfo.value.channel == "b"
    assert not isinstance(excinfo.value, ChannelCloseError)
    assert close_log == ["a"]
    assert any(
        record.getMessage() == "cleanup after failed initialisation did not complete" for record in caplog.records
    )


def test_close_releases_every_channel_once_in_order(make_channel, close_log) -> None:
    pairs = [make_channel(name, []) for name in ("a", "b", "c")]
    session = _open(*pairs)

    session.close()
    session.close()

    assert close_log == ["a", "b", "c"]
    assert [resolver.closed for _, resolver in pairs] == [1, 1, 1]


def test_close_continues_after_failure_and_reports_it(make_channel, close_log) -> None:
    failing = make_channel("a", [], close_error=OSError("handle leak"))
    others = [make_channel(name, []) for name in ("b", "c")]
    session = _open(failing, *others)

    with pytest.raises(ChannelCloseError) as excinfo:
        session.close()

    assert close_log == ["a", "b", "c"]
    assert [name for name, _ in excinfo.value.failures] == ["a"]
    assert isinstance(excinfo.value.__cause__, OSError)
    assert session.closed


def test_closed_session_refuses_resolution_but_keeps_provenance(make_channel) -> None:
    pair = make_channel("main", ["1.0"])
    with _open(pair) as session:
        session.resolve_artifact(GROUP, ARTIFACT)

    assert session.closed
    with pytest.raises(SessionClosedError):
        session.resolve_artifact(GROUP, ARTIFACT)
    with pytest.raises(SessionClosedError):
        session.find_latest_version(ArtifactCoordinate(GROUP, ARTIFACT))
    with pytest.raises(SessionClosedError):
        session.collect_candidates(ArtifactCoordinate(GROUP, ARTIFACT))
    assert session.get_recorded_channels() == [pair[0]]
    assert pair[1].closed == 1
