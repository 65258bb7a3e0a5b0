"""Tests for radar snapshots and frame sampling."""

from roundsight.analysis.classifier import RoundClassifier
from roundsight.analysis.models import DetailedEvent
from roundsight.analysis.sampler import EventBucket, FrameSampler, SnapshotSampler
from roundsight.telemetry.events import PlayerSnapshot, Position


def _snapshot(steam_id: int = 1) -> PlayerSnapshot:
    return PlayerSnapshot(
        steam_id=steam_id,
        name=f"p{steam_id}",
        team="CT",
        position=Position(1, 2, 3),
        health=100,
        armor=100,
        money=800,
        weapon="usp_silencer",
        is_alive=True,
    )


def _event(tick: int, event_type: str = "kill") -> DetailedEvent:
    return DetailedEvent(
        event_type=event_type,
        tick=tick,
        time=tick / 64,
        round_number=1,
        position=Position(5, 6, 7),
        player="p1",
    )


class TestSnapshotSampler:
    """Interval-gated capture."""

    def test_interval_gating(self):
        sampler = SnapshotSampler(interval_ticks=512)
        captured = []
        for tick in range(0, 2049, 64):
            if sampler.maybe_capture(tick, tick / 64, 1, lambda: [_snapshot()]):
                captured.append(tick)

        assert captured == [512, 1024, 1536, 2048]
        assert len(sampler.snapshots) == 4

    def test_at_most_one_per_interval(self):
        sampler = SnapshotSampler(interval_ticks=100)
        assert sampler.maybe_capture(150, 0.0, 1, lambda: [_snapshot()]) is not None
        assert sampler.maybe_capture(200, 0.0, 1, lambda: [_snapshot()]) is None
        assert sampler.maybe_capture(250, 0.0, 1, lambda: [_snapshot()]) is not None

    def test_roster_only_queried_when_due(self):
        calls = []

        def roster():
            calls.append(1)
            return [_snapshot()]

        sampler = SnapshotSampler(interval_ticks=512)
        sampler.maybe_capture(10, 0.0, 0, roster)
        assert calls == []

    def test_empty_roster_not_captured(self):
        sampler = SnapshotSampler(interval_ticks=10)
        assert sampler.maybe_capture(20, 0.0, 0, list) is None
        assert sampler.maybe_capture(21, 0.0, 0, lambda: [_snapshot()]) is not None

    def test_snapshot_to_dict(self):
        sampler = SnapshotSampler(interval_ticks=1)
        snap = sampler.maybe_capture(64, 1.0, 3, lambda: [_snapshot(9)])
        d = snap.to_dict()
        assert d["tick"] == 64
        assert d["round"] == 3
        assert d["players"][0]["steam_id"] == 9
        assert d["players"][0]["position"] == {"x": 1, "y": 2, "z": 3}


class TestEventBucket:
    """Events grouped by cadence slot."""

    def test_exact_ticks(self):
        bucket = EventBucket(stride=1)
        bucket.add(_event(100))
        bucket.add(_event(100, "bomb_planted"))
        bucket.add(_event(101))

        assert len(bucket) == 3
        assert [e.event_type for e in bucket.at(100)] == ["kill", "bomb_planted"]
        assert bucket.at(99) == []

    def test_slot_floors_to_stride(self):
        bucket = EventBucket(stride=2)
        bucket.add(_event(101))
        assert bucket.slot(101) == 100
        assert len(bucket.at(100)) == 1
        assert bucket.at(102) == []
        assert bucket.ticks() == [100]


class TestFrameSampler:
    """Frame records joined with bucketed events."""

    def _classifier(self) -> RoundClassifier:
        classifier = RoundClassifier()
        classifier.on_round_start(0, 0, tick=640)
        return classifier

    def test_frame_carries_events_at_its_tick(self):
        bucket = EventBucket(stride=2)
        bucket.add(_event(1000))
        sampler = FrameSampler(self._classifier(), bucket, tick_rate=64)

        frame = sampler.build(1000, [_snapshot()])
        assert frame.round_number == 1
        assert frame.events == [
            {"type": "kill", "position": {"x": 5, "y": 6, "z": 7}, "player": "p1"}
        ]
        assert sampler.build(1002, []).events == []

    def test_round_clock(self):
        sampler = FrameSampler(self._classifier(), EventBucket(), tick_rate=64)
        assert sampler.build(640, []).clock == "01:55"
        # 64 seconds into the round
        assert sampler.build(640 + 64 * 64, []).clock == "00:51"
        # Floored once the timer runs out
        assert sampler.build(640 + 64 * 200, []).clock == "00:00"

    def test_frames_before_first_round(self):
        sampler = FrameSampler(self._classifier(), EventBucket(), tick_rate=64)
        frame = sampler.build(0, [])
        assert frame.round_number == 0
        assert frame.is_warmup is True
        assert frame.clock == "01:55"

    def test_frame_to_dict(self):
        sampler = FrameSampler(self._classifier(), EventBucket(), tick_rate=64)
        d = sampler.build(704, [_snapshot()]).to_dict()
        assert set(d) == {
            "tick", "time", "round", "clock", "is_warmup", "is_knife", "players", "events"
        }
        assert d["time"] == 11.0
