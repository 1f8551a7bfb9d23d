import http.client
import logging
import math
import threading
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from triptrack.io.location_source import ReplayLocationSource
from triptrack.output.sinks import CsvSink, SampleSinks
from triptrack.pipeline.config import TrackingConfig
from triptrack.pipeline.engine import TrackingEngine, _FlushJob
from triptrack.snapping.google_roads import GoogleRoadsSnapper
from triptrack.snapping.passthrough import PassthroughSnapper
from triptrack.speed_estimation.math import path_length_km
from triptrack.utils.errors import LocationPermissionError, SnapError, TrackingError
from triptrack.utils.types import LatLon, RawFix, to_latlon

M_PER_DEG = 6371000.0 * math.pi / 180.0


class _RecordingSnapper:
    def __init__(self, result: Optional[List[LatLon]] = None, fail: bool = False) -> None:
        self.result = result
        self.fail = fail
        self.calls: List[List[LatLon]] = []

    def snap(self, points: Sequence[LatLon]) -> List[LatLon]:
        self.calls.append(list(points))
        if self.fail:
            raise SnapError("service unavailable")
        return list(self.result) if self.result is not None else list(points)


def _cfg(**snapping) -> TrackingConfig:
    snap = {"async_flush": False}
    snap.update(snapping)
    return TrackingConfig.from_dict({"location": {"min_interval_ms": 0, "min_distance_m": 0.0}, "snapping": snap})


def _fix(north_m: float, t_s: float, speed: float = 15.0, accuracy: float = 5.0) -> RawFix:
    return RawFix(
        lat=45.0 + north_m / M_PER_DEG,
        lon=7.0,
        device_speed_mps=speed,
        heading_deg=0.0,
        accuracy_m=accuracy,
        timestamp_s=t_s,
    )


def _drive(n: int, start_i: int = 0, step_m: float = 30.0, dt_s: float = 2.0) -> List[RawFix]:
    return [_fix(step_m * i, dt_s * i) for i in range(start_i, start_i + n)]


def _engine(snapper, **snapping) -> TrackingEngine:
    return TrackingEngine(_cfg(**snapping), ReplayLocationSource([]), snapper=snapper)


def test_low_accuracy_fix_changes_nothing() -> None:
    eng = _engine(_RecordingSnapper())
    eng.start()
    eng.on_fix(_fix(0.0, 0.0))
    eng.on_fix(_fix(30.0, 2.0))
    before = eng.snapshot()
    pos_before = eng._state.position.position
    window_before = eng._state.estimator.window

    eng.on_fix(_fix(500.0, 4.0, accuracy=31.0))

    assert eng.snapshot() == before
    assert eng._state.position.position == pos_before
    assert eng._state.estimator.window == window_before


def test_stationary_oscillation_dwells_and_accrues_nothing() -> None:
    eng = _engine(_RecordingSnapper())
    eng.start()
    for i in range(11):
        offset = 1.2 if i % 2 == 0 else -1.2
        eng.on_fix(_fix(offset, float(i), speed=0.0))
        snap = eng.snapshot()
        assert snap.moving_time_s == 0.0
        assert snap.display_speed_kmh == 0.0
        assert snap.pending_points == 0
        if i >= 5:
            assert snap.is_dwelling
    assert eng.snapshot().official_distance_km == 0.0


def test_tenth_buffered_point_triggers_one_request() -> None:
    snapper = _RecordingSnapper()
    eng = _engine(snapper)
    eng.start()
    fixes = _drive(10)
    for fx in fixes[:9]:
        eng.on_fix(fx)
    assert snapper.calls == []
    assert eng.snapshot().pending_points == 9
    eng.on_fix(fixes[9])
    assert len(snapper.calls) == 1
    assert len(snapper.calls[0]) == 10


def test_failed_flush_keeps_buffer_intact() -> None:
    snapper = _RecordingSnapper(fail=True)
    eng = _engine(snapper)
    eng.start()
    for fx in _drive(10):
        eng.on_fix(fx)
    assert len(snapper.calls) == 1
    snap = eng.snapshot()
    assert snap.pending_points == 10
    assert snap.official_distance_km == 0.0
    assert snap.official_snapped_path == ()


def test_failed_flush_is_retried_on_next_trigger() -> None:
    snapper = _RecordingSnapper(fail=True)
    eng = _engine(snapper)
    eng.start()
    for fx in _drive(10):
        eng.on_fix(fx)
    snapper.fail = False
    eng.on_fix(_drive(1, start_i=10)[0])
    assert len(snapper.calls) == 2
    assert len(snapper.calls[1]) == 11
    assert eng.snapshot().pending_points == 1


def test_successful_flush_keeps_seed_and_adds_snapped_distance() -> None:
    snapped = [LatLon(45.0, 7.0), LatLon(45.001, 7.0), LatLon(45.002, 7.0005)]
    eng = _engine(_RecordingSnapper(result=snapped))
    eng.start()
    fixes = _drive(10)
    for fx in fixes:
        eng.on_fix(fx)
    snap = eng.snapshot()
    assert snap.pending_points == 1
    assert abs(snap.official_distance_km - path_length_km(snapped)) < 1e-12
    assert snap.official_snapped_path == tuple(snapped)
    seed = eng._state.buffer.points[0]
    assert seed.timestamp_s == fixes[-1].timestamp_s


def test_time_trigger_flushes_small_buffer() -> None:
    snapper = _RecordingSnapper()
    eng = _engine(snapper)
    eng.start()
    for fx in _drive(4):
        eng.on_fix(fx)
    assert snapper.calls == []
    # parked for a while: no new points, but the pending ones get flushed
    eng.on_fix(_fix(90.0, 40.0, speed=0.0))
    assert len(snapper.calls) == 1
    assert len(snapper.calls[0]) == 4


def test_distance_monotonic_and_reset_on_restart() -> None:
    eng = _engine(PassthroughSnapper())
    eng.start()
    distances = []
    i = 0
    while eng.snapshot().official_distance_km < 5.2 and i < 1000:
        eng.on_fix(_fix(30.0 * i, 2.0 * i))
        distances.append(eng.snapshot().official_distance_km)
        i += 1
    assert distances[-1] >= 5.2
    assert all(b >= a for a, b in zip(distances[:-1], distances[1:]))

    summary = eng.stop()
    assert summary.distance_km >= 5.2
    assert summary.moving_time_s > 0.0
    assert summary.max_speed_kmh > 0.0
    assert summary.unsnapped_points == 0

    eng.start()
    snap = eng.snapshot()
    assert snap.official_distance_km == 0.0
    assert snap.moving_time_s == 0.0
    assert snap.max_speed_kmh == 0.0
    assert snap.avg_speed_kmh == 0.0
    assert snap.official_snapped_path == ()
    assert snap.pending_points == 0
    assert snap.live_raw_location is None
    assert not snap.is_dwelling

    first = _fix(0.0, 10_000.0)
    eng.on_fix(first)
    assert eng._state.position.position == LatLon(first.lat, first.lon)
    assert len(eng._state.estimator.window) == 1
    eng.stop()


def test_stop_performs_final_flush_of_remaining_points() -> None:
    snapper = _RecordingSnapper()
    eng = _engine(snapper)
    eng.start()
    for fx in _drive(5):
        eng.on_fix(fx)
    summary = eng.stop()
    assert len(snapper.calls) == 1
    assert len(snapper.calls[0]) == 5
    assert eng.snapshot().pending_points == 0
    assert summary.distance_km > 0.0
    assert not eng.tracking


def test_fixes_after_stop_are_ignored() -> None:
    eng = _engine(_RecordingSnapper())
    eng.start()
    eng.on_fix(_fix(0.0, 0.0))
    eng.stop()
    before = eng.snapshot()
    eng.on_fix(_fix(30.0, 2.0))
    assert eng.snapshot() == before


def test_failed_final_flush_leaves_points_pending(caplog: pytest.LogCaptureFixture) -> None:
    snapper = _RecordingSnapper(fail=True)
    eng = _engine(snapper, final_flush_retries=2)
    eng.start()
    for fx in _drive(5):
        eng.on_fix(fx)
    with caplog.at_level(logging.ERROR, logger="triptrack.pipeline.engine"):
        summary = eng.stop()
    assert len(snapper.calls) == 3
    assert summary.unsnapped_points == 5
    assert "final flush failed" in caplog.text.lower()

    snapper.fail = False
    assert eng.flush_pending() is True
    assert eng.snapshot().pending_points == 0
    assert eng.summary().distance_km > 0.0


def test_flush_pending_while_tracking_is_an_error() -> None:
    eng = _engine(_RecordingSnapper())
    eng.start()
    with pytest.raises(TrackingError):
        eng.flush_pending()


def test_result_from_previous_session_is_discarded() -> None:
    eng = _engine(_RecordingSnapper())
    eng.start()
    old_generation = eng._state.generation
    eng.stop()
    eng.start()
    stale = _FlushJob(generation=old_generation, points=[])
    eng._apply_flush(stale, [LatLon(0.0, 0.0), LatLon(1.0, 1.0)])
    assert eng.snapshot().official_distance_km == 0.0
    assert eng.snapshot().official_snapped_path == ()


def test_permission_denied_is_surfaced() -> None:
    eng = TrackingEngine(_cfg(), ReplayLocationSource([], permission_granted=False), snapper=_RecordingSnapper())
    with pytest.raises(LocationPermissionError):
        eng.start()
    assert not eng.tracking


def test_replay_source_drives_engine() -> None:
    source = ReplayLocationSource(_drive(25))
    eng = TrackingEngine(_cfg(), source, snapper=_RecordingSnapper())
    eng.start()
    assert source.play() == 25
    summary = eng.stop()
    assert summary.started_at_s == 0.0
    assert summary.ended_at_s == 48.0
    assert summary.distance_km > 0.0
    assert summary.avg_speed_kmh > 0.0


def test_async_flush_applies_result() -> None:
    snapper = _RecordingSnapper()
    with _engine(snapper, async_flush=True) as eng:
        eng.start()
        for fx in _drive(10):
            eng.on_fix(fx)
        eng.wait_for_flush(timeout=5.0)
        snap = eng.snapshot()
        assert len(snapper.calls) == 1
        assert snap.pending_points == 1
        assert snap.official_distance_km > 0.0
    assert not eng.tracking


def test_time_trigger_counts_from_session_start() -> None:
    snapper = _RecordingSnapper()
    eng = _engine(snapper)
    eng.start()
    eng.on_fix(_fix(0.0, 0.0, speed=0.0))
    for i, t in enumerate((26.0, 28.0, 30.0)):
        eng.on_fix(_fix(30.0 * (i + 1), t))
    assert snapper.calls == []
    eng.on_fix(_fix(120.0, 32.0))
    assert len(snapper.calls) == 1
    assert len(snapper.calls[0]) == 4


def test_stop_waits_for_flush_scheduled_on_another_thread() -> None:
    snapper = _RecordingSnapper()
    eng = _engine(snapper, async_flush=True)
    eng.start()
    # hold the scheduled job back to reproduce a fix thread pre-empted before dispatch
    held = []
    eng._dispatch = held.append
    for fx in _drive(10):
        eng.on_fix(fx)
    del eng._dispatch
    assert len(held) == 1

    result = {}
    stopper = threading.Thread(target=lambda: result.setdefault("summary", eng.stop()))
    stopper.start()
    stopper.join(timeout=0.2)
    assert stopper.is_alive()

    eng._dispatch(held[0])
    stopper.join(timeout=5.0)
    assert not stopper.is_alive()

    expected_km = path_length_km(to_latlon(held[0].points))
    assert len(snapper.calls) == 1
    assert abs(result["summary"].distance_km - expected_km) < 1e-12
    assert abs(eng.snapshot().official_distance_km - expected_km) < 1e-12
    assert len(eng.snapshot().official_snapped_path) == 10
    eng.close()


class _TruncatedResponse:
    def read(self) -> bytes:
        raise http.client.IncompleteRead(b'{"snapped')

    def __enter__(self) -> "_TruncatedResponse":
        return self

    def __exit__(self, *exc) -> bool:
        return False


def test_truncated_roads_response_keeps_points_and_stops_cleanly(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("urllib.request.urlopen", lambda req, timeout=None: _TruncatedResponse())
    sinks = SampleSinks(csv=CsvSink(str(tmp_path / "fixes.csv")))
    eng = TrackingEngine(_cfg(), ReplayLocationSource([]), snapper=GoogleRoadsSnapper(api_key="k"), sinks=sinks)
    eng.start()
    for fx in _drive(10):
        eng.on_fix(fx)
    assert eng.snapshot().pending_points == 10

    summary = eng.stop()
    assert summary.unsnapped_points == 10
    assert summary.distance_km == 0.0
    assert sinks.csv is not None and sinks.csv._f is None
    assert not eng.tracking


def test_engine_restarted_after_close_still_flushes_in_background() -> None:
    snapper = _RecordingSnapper()
    eng = _engine(snapper, async_flush=True)
    eng.start()
    eng.close()
    eng.start()
    assert eng._executor is not None
    for fx in _drive(10):
        eng.on_fix(fx)
    assert eng.wait_for_flush(timeout=5.0)
    assert len(snapper.calls) == 1
    assert eng.snapshot().pending_points == 1
    eng.close()
