from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

from triptrack.io.location_source import LocationSource, Subscription
from triptrack.metrics.stats import average_speed_kmh
from triptrack.output.sinks import SampleSinks
from triptrack.pipeline.config import TrackingConfig
from triptrack.pipeline.session import SessionState
from triptrack.snapping.base import RoadSnapper
from triptrack.snapping.registry import create_snapper
from triptrack.speed_estimation.limits import accuracy_accepted, drift_filtered_speed_mps
from triptrack.speed_estimation.units import mps_to_kmh
from triptrack.utils.errors import LocationPermissionError, SnapError, TrackingError
from triptrack.utils.types import FixSample, LatLon, RawFix, TrackedPoint, TrackingSnapshot, TripSummary, to_latlon


logger = logging.getLogger("triptrack.pipeline.engine")


@dataclass(frozen=True)
class _FlushJob:
    generation: int
    points: List[TrackedPoint]
    final: bool = False


class TrackingEngine:
    """
    Turns a stream of GPS fixes into live display speed and official trip metrics.

    All session state lives in one ``SessionState`` guarded by a single lock,
    so fixes delivered from any thread are applied one at a time and in order.
    ``start()`` swaps in a fresh state before the first fix of the new trip is
    accepted. Road snapping runs on a worker thread; its result is applied
    only if the session it was taken from is still current. A flush counts as
    in flight from the moment it is scheduled, and the final flush waits for
    it, so no point is ever sent twice.
    """

    def __init__(
        self,
        cfg: TrackingConfig,
        source: LocationSource,
        snapper: Optional[RoadSnapper] = None,
        sinks: Optional[SampleSinks] = None,
    ) -> None:
        self._cfg = cfg
        self._source = source
        self._snapper: RoadSnapper = snapper if snapper is not None else create_snapper(cfg.snapping)
        self._sinks = sinks
        self._lock = threading.RLock()
        self._flush_done = threading.Condition(self._lock)
        self._generation = 0
        self._state = SessionState.fresh(cfg, self._generation)
        self._tracking = False
        self._subscription: Optional[Subscription] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "TrackingEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def tracking(self) -> bool:
        with self._lock:
            return self._tracking

    def start(self) -> None:
        with self._lock:
            if self._tracking:
                logger.warning("start() while already tracking; ignoring")
                return
            self._generation += 1
            self._state = SessionState.fresh(self._cfg, self._generation)
            self._tracking = True
            if self._cfg.snapping.async_flush and self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="triptrack-snap")
            if self._sinks is not None:
                self._sinks.open()
            try:
                self._subscription = self._source.subscribe(self._cfg.location, self.on_fix)
            except LocationPermissionError:
                logger.error("Location permission denied; session %d will receive no fixes", self._generation)
                self._tracking = False
                self._close_sinks()
                raise
        logger.info("tracking session %d started", self._generation)

    def stop(self) -> TripSummary:
        with self._lock:
            if not self._tracking:
                logger.warning("stop() while not tracking; returning current summary")
                return self.summary()
            self._tracking = False
            sub = self._subscription
            self._subscription = None
        if sub is not None:
            sub.unsubscribe()
        try:
            self._final_flush()
        finally:
            self._close_sinks()
        summary = self.summary()
        logger.info(
            "tracking session %d stopped: %.3f km, moving %.0f s, max %.1f km/h",
            self._generation,
            summary.distance_km,
            summary.moving_time_s,
            summary.max_speed_kmh,
        )
        return summary

    def close(self) -> None:
        if self.tracking:
            self.stop()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def on_fix(self, fix: RawFix) -> None:
        with self._lock:
            if not self._tracking:
                return
            sample = self._process(fix)
            if sample is None:
                return
            if self._sinks is not None:
                self._sinks.write(sample)
            job = self._schedule_flush(fix.timestamp_s)
        if job is not None:
            self._dispatch(job)

    def flush_pending(self) -> bool:
        """Retry snapping points left over by a failed final flush."""
        if self.tracking:
            raise TrackingError("flush_pending() is only valid after stop()")
        return self._final_flush()

    def wait_for_flush(self, timeout: Optional[float] = None) -> bool:
        """Block until no flush is in flight; False on timeout."""
        with self._flush_done:
            return self._flush_done.wait_for(lambda: not self._state.flush_in_flight, timeout=timeout)

    def snapshot(self) -> TrackingSnapshot:
        with self._lock:
            st = self._state
            distance_km = st.distance.distance_km
            moving_time_s = st.moving_time.moving_time_s
            return TrackingSnapshot(
                tracking=self._tracking,
                live_raw_location=st.live_raw_location,
                official_snapped_path=st.distance.path,
                official_distance_km=distance_km,
                moving_time_s=moving_time_s,
                max_speed_kmh=st.max_speed.max_speed_kmh,
                avg_speed_kmh=average_speed_kmh(distance_km, moving_time_s),
                display_speed_kmh=mps_to_kmh(st.display.value),
                is_dwelling=st.dwell.is_dwelling,
                is_moving=st.moving_time.is_moving,
                pending_points=len(st.buffer),
            )

    def summary(self) -> TripSummary:
        with self._lock:
            st = self._state
            distance_km = st.distance.distance_km
            moving_time_s = st.moving_time.moving_time_s
            return TripSummary(
                started_at_s=st.started_at_s,
                ended_at_s=st.last_fix_s,
                distance_km=distance_km,
                moving_time_s=moving_time_s,
                max_speed_kmh=st.max_speed.max_speed_kmh,
                avg_speed_kmh=average_speed_kmh(distance_km, moving_time_s),
                path=st.distance.path,
                unsnapped_points=len(st.buffer) if len(st.buffer) > 1 else 0,
            )

    def _process(self, fix: RawFix) -> Optional[FixSample]:
        st = self._state
        if not accuracy_accepted(fix.accuracy_m, self._cfg.speed.max_accuracy_m):
            logger.debug("dropped fix with accuracy %.1f m (> %.1f m)", fix.accuracy_m, self._cfg.speed.max_accuracy_m)
            return None

        t = float(fix.timestamp_s)
        st.live_raw_location = fix
        if st.started_at_s is None:
            st.started_at_s = t
            st.buffer.start_clock(t)
        st.last_fix_s = t

        pos = st.position.update(fix.lat, fix.lon, t)
        v_raw = st.estimator.update(pos, t, fix.accuracy_m, fix.device_speed_mps)
        dwelling = st.dwell.update(v_raw, t)
        v_filtered = 0.0 if dwelling else drift_filtered_speed_mps(v_raw, self._cfg.dwell.stationary_threshold_mps)
        v_display = st.display.update(v_filtered)
        if v_filtered > 0.0:
            st.max_speed.update(mps_to_kmh(v_filtered))

        moving = v_filtered > 0.0 and not dwelling
        st.moving_time.update(moving, t)
        if moving:
            st.buffer.append(
                TrackedPoint(
                    lat=pos.lat,
                    lon=pos.lon,
                    speed_mps=v_filtered,
                    heading_deg=fix.heading_deg,
                    timestamp_s=t,
                    accuracy_m=fix.accuracy_m,
                )
            )

        return FixSample(
            timestamp_s=t,
            lat=fix.lat,
            lon=fix.lon,
            smoothed_lat=pos.lat,
            smoothed_lon=pos.lon,
            accuracy_m=fix.accuracy_m,
            speed_mps_raw=v_raw,
            speed_mps_filtered=v_filtered,
            speed_mps_display=v_display,
            is_dwelling=dwelling,
            is_moving=st.moving_time.is_moving,
        )

    def _schedule_flush(self, now_s: float) -> Optional[_FlushJob]:
        st = self._state
        if st.flush_in_flight or not st.buffer.due(now_s):
            return None
        points = st.buffer.begin_flush(now_s)
        if points is None:
            return None
        st.flush_in_flight = True
        return _FlushJob(generation=st.generation, points=points)

    def _dispatch(self, job: _FlushJob) -> None:
        if self._executor is None:
            self._run_flush(job)
            return
        fut = self._executor.submit(self._run_flush, job)
        fut.add_done_callback(self._log_flush_crash)

    def _run_flush(self, job: _FlushJob) -> bool:
        snapped: Optional[List[LatLon]] = None
        try:
            snapped = self._snapper.snap(to_latlon(job.points))
        except SnapError as e:
            logger.warning("road snapping failed for %d points; keeping them for retry: %s", len(job.points), e)
        finally:
            self._apply_flush(job, snapped)
        return snapped is not None

    def _apply_flush(self, job: _FlushJob, snapped: Optional[List[LatLon]]) -> None:
        with self._flush_done:
            st = self._state
            if st.generation != job.generation:
                logger.info("discarding snap result from session %d (current %d)", job.generation, st.generation)
                return
            st.flush_in_flight = False
            self._flush_done.notify_all()
            if snapped is None:
                return
            added_km = st.distance.add_segment(snapped)
            st.buffer.consume(len(job.points), keep_seed=not job.final)
            logger.debug(
                "flushed %d points -> %d path points, +%.4f km (total %.4f km)",
                len(job.points),
                len(snapped),
                added_km,
                st.distance.distance_km,
            )

    def _final_flush(self) -> bool:
        attempts = 1 + int(self._cfg.snapping.final_flush_retries)
        for attempt in range(1, attempts + 1):
            with self._flush_done:
                # a regular flush may have been scheduled but not yet dispatched
                self._flush_done.wait_for(lambda: not self._state.flush_in_flight)
                st = self._state
                if len(st.buffer) < 2:
                    st.buffer.clear()
                    return True
                st.flush_in_flight = True
                job = _FlushJob(generation=st.generation, points=list(st.buffer.points), final=True)
            if self._run_flush(job):
                return True
            logger.info("final flush attempt %d/%d failed", attempt, attempts)
        with self._lock:
            pending = len(self._state.buffer)
        logger.error("final flush failed; %d points remain unsnapped (retry with flush_pending())", pending)
        return False

    def _close_sinks(self) -> None:
        if self._sinks is not None:
            self._sinks.close()

    @staticmethod
    def _log_flush_crash(fut: Future) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("road-snapping flush crashed", exc_info=exc)
