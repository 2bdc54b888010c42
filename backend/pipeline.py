"""
Frame-processing pipeline for FitTrack.

landmarks -> normalize -> window append + rep counter
full window -> classifier (throttled) -> switch arbiter

Two entry points share the same stages:
- process_frame: fully synchronous, classification inline.
- process_frame_async: classification runs in a worker thread against a
  snapshot of the window while frames keep flowing; results from an older
  session epoch are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, Optional

import numpy as np
from fastapi.concurrency import run_in_threadpool

from classifier import (
    ClassificationResult,
    ClassifierInvoker,
    InferenceEngine,
    InferenceFailure,
    InferenceRequest,
    InferenceUnavailable,
    UnavailableEngine,
)
from exercise_arbiter import ExerciseSwitchArbiter
from landmarks import normalize_frame
from rep_counter import HipRepCounter
from session import StaleSessionError, TrackingSession
from settings import PipelineSettings

logger = logging.getLogger(__name__)


class ExerciseTrackingPipeline:
    def __init__(
            self,
            settings: Optional[PipelineSettings] = None,
            engine: Optional[InferenceEngine] = None,
    ):
        self.settings = (settings or PipelineSettings()).validate()
        self.session = TrackingSession.create(self.settings)
        s = self.settings
        self.invoker = ClassifierInvoker(
            engine or UnavailableEngine(),
            labels=s.labels,
            window_size=s.window_size,
            interval=s.inference_interval,
            confidence_threshold=s.classifier_confidence,
            num_landmarks=s.num_landmarks,
            angle_visibility=s.angle_visibility_threshold,
        )
        self.arbiter = ExerciseSwitchArbiter(
            confidence_threshold=s.switch_confidence,
            switch_frames=s.switch_frames,
            standing_angle=s.standing_angle,
            min_visibility=s.angle_visibility_threshold,
        )
        self.rep_counter = HipRepCounter(
            self.session.calibration,
            calibration_frames=s.calibration_frames,
            down_threshold=s.down_threshold,
            up_threshold=s.up_threshold,
            min_rep_interval=s.min_rep_interval,
            min_hip_knee_span=s.min_hip_knee_span,
            min_knee_ankle_span=s.min_knee_ankle_span,
        )
        self.last_frame: Optional[np.ndarray] = None
        self.last_result: Optional[ClassificationResult] = None
        self._inflight: Optional[asyncio.Task] = None

    # ---- lifecycle ----

    def restart(self) -> None:
        self.session.restart()
        self._reset_stages()
        logger.info("Session %s restarted (epoch %d).", self.session.id, self.session.epoch)

    def recalibrate(self) -> None:
        self.session.recalibrate()
        self._reset_stages()
        logger.info("Recalibration requested (epoch %d).", self.session.epoch)

    def _reset_stages(self) -> None:
        self.invoker.reset()
        self.rep_counter.reset(recalibrate=True)
        self.last_frame = None
        self.last_result = None

    def close(self) -> None:
        if self._inflight and not self._inflight.done():
            self._inflight.cancel()
        self.invoker.engine.close()

    # ---- frame path ----

    def _ingest(self, landmarks: Optional[Iterable[Any]], t: float) -> Optional[np.ndarray]:
        """Normalize, feed the rep counter and append to the window."""
        landmarks = list(landmarks) if landmarks is not None else []
        if not landmarks:
            # No pose in this frame: nothing changes, not even the counters.
            logger.debug("Skipping frame without landmarks.")
            return None

        session = self.session
        session.frames_received += 1
        if session.frames_received % self.settings.frame_stride != 0:
            return None

        frame = normalize_frame(landmarks, self.settings.visibility_threshold, self.settings.num_landmarks)
        if self.rep_counter.update(frame, t, session.exercise):
            session.sync_current_set()
        session.window.append(frame)
        self.last_frame = frame
        session.frames_processed += 1
        return frame

    def apply_result(self, result: ClassificationResult) -> bool:
        """Hand a classifier verdict to the arbiter. Returns True on an exercise switch."""
        try:
            self.session.check_epoch(result.epoch)
        except StaleSessionError as exc:
            logger.debug("Dropping classification: %s", exc)
            return False

        self.last_result = result
        exercise = self.session.exercise
        previous_reps = exercise.rep_count
        decision = self.arbiter.update(exercise, result, self.last_frame)
        if decision.switched:
            self.session.record_switch(previous_reps)
        return decision.switched

    def process_frame(self, landmarks: Optional[Iterable[Any]], timestamp: Optional[float] = None) -> Dict[str, Any]:
        """Synchronous frame step. Never raises; a failing frame leaves state as it was."""
        t = time.monotonic() if timestamp is None else timestamp
        try:
            frame = self._ingest(landmarks, t)
            if frame is not None:
                result = self.invoker.try_classify(self.session.window, t, self.session.epoch)
                if result is not None:
                    self.apply_result(result)
        except Exception as processing_error:
            self.session.frames_failed += 1
            logger.error("Error processing frame: %s", processing_error)
        return self.get_progress()

    async def process_frame_async(self, landmarks: Optional[Iterable[Any]], timestamp: Optional[float] = None) -> Dict[str, Any]:
        """Frame step for event-loop hosts; inference is handed off, never awaited here."""
        t = time.monotonic() if timestamp is None else timestamp
        try:
            frame = self._ingest(landmarks, t)
            if frame is not None and not self.classification_pending:
                request = self.invoker.prepare(self.session.window, t, self.session.epoch)
                if request is not None:
                    self._inflight = asyncio.create_task(self._classify(request))
        except Exception as processing_error:
            self.session.frames_failed += 1
            logger.error("Error processing frame: %s", processing_error)
        return self.get_progress()

    @property
    def classification_pending(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def _classify(self, request: InferenceRequest) -> Optional[ClassificationResult]:
        try:
            result = await run_in_threadpool(self.invoker.run, request)
        except (InferenceFailure, InferenceUnavailable) as exc:
            logger.warning("Skipping classification cycle: %s", exc)
            return None
        try:
            if result.epoch == self.session.epoch:
                self.session.window.consume()
            self.apply_result(result)
        except Exception as apply_error:
            logger.error("Error applying classification: %s", apply_error)
            return None
        return result

    async def drain(self) -> None:
        """Wait for the in-flight classification, if any."""
        if self._inflight is not None:
            await asyncio.gather(self._inflight, return_exceptions=True)

    # ---- observable state ----

    def get_progress(self) -> Dict[str, Any]:
        progress = self.session.get_progress()
        progress["rep_phase"] = self.rep_counter.state.phase
        progress["classification"] = self.last_result.to_dict() if self.last_result else None
        return progress
