"""
Real-time control loop: orientation fusion every sample, classification every
step.

Two cadences share one clock. At every sample both orientation filters are
updated and the hip flexion angle is recomputed. Every ``step_size`` samples a
window of ``window_size`` back-IMU samples is turned into features, classified
and fed to the hysteresis FSM; the resulting command is held until the next
tick. Fusion for a sample always completes before a tick at that sample is
dispatched, and a tick must finish within its latency budget (one step
interval by default) or the run is aborted.

RealtimeController replays a finished recording. Its window for the tick at
sample i is [i, i + window_size - 1], i.e. it looks ahead of i; that matches
the offline evaluation the classifier was validated with and must not be used
on a live sensor. LiveController consumes a stream and uses the trailing
window [i - window_size + 1, i].
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

import numpy as np
import pandas as pd

from .classifier import Classifier, ModelMetadata
from .config import ControllerConfig
from .errors import ClassifierError, ClassifierLatencyError
from .features import FeatureVector, extract_features
from .fsm import FSMState, HysteresisStateMachine, Label
from .joint_angle import joint_angle
from .kalman.filters import OrientationFilter, create_filter
from .samples import Recording, SampleWindow, StreamFrame

logger = logging.getLogger(__name__)


def expected_tick_count(n_samples: int, window_size: int, step_size: int) -> int:
    """Classification ticks in a finite run of n_samples."""
    if n_samples < window_size:
        return 0
    return (n_samples - window_size) // step_size + 1


@dataclass(frozen=True)
class TickRecord:
    """One classification tick."""
    index: int
    window_start: int
    label: Label
    command: Label
    transitioned: bool
    features: FeatureVector
    latency_s: float


@dataclass(frozen=True)
class StepOutput:
    """Per-sample output of the live loop."""
    index: int
    angle: float
    command: Label
    tick: Optional[TickRecord] = None


@dataclass
class ControllerResult:
    """Traces of a finished replay run."""
    fs: float
    angles: np.ndarray
    commands: np.ndarray
    ticks: List[TickRecord] = field(default_factory=list)

    @property
    def n_ticks(self) -> int:
        return len(self.ticks)

    @property
    def n_transitions(self) -> int:
        return sum(t.transitioned for t in self.ticks)

    def to_frame(self) -> pd.DataFrame:
        """Per-sample trace: index, time_s, angle_deg, command."""
        n = len(self.angles)
        return pd.DataFrame({
            'index': np.arange(n),
            'time_s': np.arange(n) / self.fs,
            'angle_deg': self.angles,
            'command': self.commands,
        })

    def ticks_frame(self) -> pd.DataFrame:
        rows = []
        for t in self.ticks:
            row = {
                'index': t.index,
                'window_start': t.window_start,
                'label': int(t.label),
                'command': int(t.command),
                'transitioned': t.transitioned,
                'latency_ms': t.latency_s * 1000.0,
            }
            row.update(vars(t.features))
            rows.append(row)
        return pd.DataFrame(rows)


class _ControlLoop:
    """State and per-cadence work shared by the replay and live controllers."""

    def __init__(self,
                 config: ControllerConfig,
                 classifier: Classifier,
                 *,
                 back_filter: Optional[OrientationFilter] = None,
                 hip_filter: Optional[OrientationFilter] = None):
        metadata = getattr(classifier, 'metadata', None)
        if isinstance(metadata, ModelMetadata):
            config = config.with_metadata(metadata)
        self.config = config
        self.classifier = classifier

        self._back_filter = back_filter or create_filter(config.filter_type, config.fs,
                                                         **config.filter_params())
        self._hip_filter = hip_filter or create_filter(config.filter_type, config.fs,
                                                       **config.filter_params())
        self._fsm = HysteresisStateMachine(config.k_on, config.k_off)

    @property
    def fsm_state(self) -> FSMState:
        return self._fsm.state

    @property
    def command(self) -> Label:
        return self._fsm.command

    def orientations(self):
        """Copies of the (back, hip) quaternions."""
        return self._back_filter.orientation, self._hip_filter.orientation

    def reset(self) -> None:
        """Explicit re-initialization of the FSM and both filters."""
        self._fsm.reset()
        self._back_filter.reset()
        self._hip_filter.reset()
        logger.info("Controller state reset")

    def _fuse(self, back_acc, back_gyro, hip_acc, hip_gyro) -> float:
        q_back = self._back_filter.update(back_acc, back_gyro)
        q_hip = self._hip_filter.update(hip_acc, hip_gyro)
        return joint_angle(q_back, q_hip)

    def _extract_and_classify(self, window: SampleWindow):
        started = time.perf_counter()
        features = extract_features(window, self.config.fs)
        if not np.all(np.isfinite(features.as_array())):
            raise ClassifierError(f"Non-finite features for window starting at sample "
                                  f"{window.start}: {features}")
        label = self.classifier.classify(features)
        elapsed = time.perf_counter() - started

        budget = self.config.classification_budget_s
        if elapsed > budget:
            raise ClassifierLatencyError(elapsed, budget)
        return features, label, elapsed

    def _apply(self, index: int, window: SampleWindow, features: FeatureVector,
               label: Label, elapsed: float) -> TickRecord:
        command, transitioned = self._fsm.consume(label)
        logger.debug(f"Time step {index}: Classification Label={int(label)}, "
                     f"FSM State={int(command)}, Command={int(command)}")
        return TickRecord(index=index, window_start=window.start, label=label,
                          command=command, transitioned=transitioned,
                          features=features, latency_s=elapsed)


class RealtimeController(_ControlLoop):
    """Replays a finished recording through the control loop."""

    def run(self, recording: Recording) -> ControllerResult:
        cfg = self.config
        n = len(recording)
        angles = np.zeros(n)
        commands = np.zeros(n, dtype=int)
        ticks: List[TickRecord] = []
        held = self._fsm.command

        logger.info(f"Starting replay on {n} samples (fs={cfg.fs} Hz, window={cfg.window_size}, "
                    f"step={cfg.step_size}, expected ticks="
                    f"{expected_tick_count(n, cfg.window_size, cfg.step_size)})")

        for i in range(n):
            angles[i] = self._fuse(recording.back_acc[i], recording.back_gyro[i],
                                   recording.hip_acc[i], recording.hip_gyro[i])

            if i % cfg.step_size == 0 and i + cfg.window_size <= n:
                window = recording.window(i, cfg.window_size)
                features, label, elapsed = self._extract_and_classify(window)
                tick = self._apply(i, window, features, label, elapsed)
                ticks.append(tick)
                held = tick.command

            commands[i] = int(held)

        result = ControllerResult(fs=cfg.fs, angles=angles, commands=commands, ticks=ticks)
        logger.info(f"Replay complete: {result.n_ticks} ticks, {result.n_transitions} transitions, "
                    f"final command {held.name}")
        return result


class LiveController(_ControlLoop):
    """
    Runs the control loop over a stream of StreamFrames.

    stop() may be called from the consumer between frames or from another
    thread; a classification that finishes after stop() was requested is
    discarded so that its command is never applied.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._stop = threading.Event()
        self._acc_buf = deque(maxlen=self.config.window_size)
        self._gyro_buf = deque(maxlen=self.config.window_size)
        self._next_index = 0

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Stop requested")
        self._stop.set()

    def reset(self) -> None:
        super().reset()
        self._acc_buf.clear()
        self._gyro_buf.clear()
        self._next_index = 0
        self._stop.clear()

    def _tick_due(self, index: int) -> bool:
        filled = index + 1 - self.config.window_size
        return filled >= 0 and filled % self.config.step_size == 0

    def stream(self, frames: Iterable[StreamFrame]) -> Iterator[StepOutput]:
        cfg = self.config
        for frame in frames:
            if self._stop.is_set():
                break

            i = frame.back.index
            if i != self._next_index or frame.hip.index != i:
                raise ValueError(f"Out-of-order or missing sample: expected index "
                                 f"{self._next_index}, got back={i}, hip={frame.hip.index}")
            self._next_index += 1

            angle = self._fuse(frame.back.acc, frame.back.gyro, frame.hip.acc, frame.hip.gyro)
            self._acc_buf.append(frame.back.acc)
            self._gyro_buf.append(frame.back.gyro)

            tick = None
            if self._tick_due(i):
                window = SampleWindow(acc=np.stack(self._acc_buf), gyro=np.stack(self._gyro_buf),
                                      start=i - cfg.window_size + 1)
                features, label, elapsed = self._extract_and_classify(window)
                if self._stop.is_set():
                    logger.info(f"Discarding classification at sample {i} after stop request")
                    break
                tick = self._apply(i, window, features, label, elapsed)

            yield StepOutput(index=i, angle=angle, command=self._fsm.command, tick=tick)

        logger.info(f"Stream ended after {self._next_index} samples, "
                    f"final command {self._fsm.command.name}")
