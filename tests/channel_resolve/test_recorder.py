"""Provenance recorder upsert and snapshot behaviour."""

from __future__ import annotations

from ChannelResolve.channel import Channel
from ChannelResolve.recorder import ChannelRecorder


def test_record_stream_upserts_by_group_and_artifact() -> None:
    recorder = ChannelRecorder()
    c1, c2 = Channel("c1"), Channel("c2")

    recorder.record_stream("g", "a", "1.2.3", c1)
    recorder.record_stream("g", "a", "1.3.0", c2)

    assert len(recorder) == 1
    entry = recorder.get("g", "a")
    assert entry is not None
    assert (entry.version, entry.channel) == ("1.3.0", c2)
    assert recorder.get_recorded_channels() == [c2]


def test_recorded_channels_keep_first_recorded_order() -> None:
    recorder = ChannelRecorder()
    late, early = Channel("late"), Channel("early")

    recorder.record_stream("g", "z", "1", early)
    recorder.record_stream("g", "a", "1", late)
    recorder.record_stream("g", "b", "2", early)

    assert recorder.get_recorded_channels() == [early, late]


def test_recorded_streams_pin_versions_per_channel() -> None:
    recorder = ChannelRecorder()
    main, extra = Channel("main"), Channel("extra")
    recorder.record_stream("g", "b", "2.0", main)
    recorder.record_stream("g", "a", "1.0", main)
    recorder.record_stream("h", "x", "0.1", extra)

    streams = recorder.get_recorded_streams(main)

    assert [(s.artifact_id, s.version, s.version_pattern) for s in streams] == [
        ("a", "1.0", None),
        ("b", "2.0", None),
    ]
    assert recorder.get_recorded_streams(Channel("unused")) == []


def test_entries_is_a_snapshot() -> None:
    recorder = ChannelRecorder()
    channel = Channel("c")
    recorder.record_stream("g", "a", "1", channel)

    snapshot = recorder.entries()
    recorder.record_stream("g", "b", "1", channel)

    assert len(snapshot) == 1
    assert len(recorder.entries()) == 2
