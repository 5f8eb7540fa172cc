"""
Sample containers consumed by the control loop.

Inputs are already in SI units (acc in m/s², gyro in rad/s); unit detection and
conversion belong to the acquisition layer.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

BACK_COLUMNS = ['back_ax', 'back_ay', 'back_az', 'back_gx', 'back_gy', 'back_gz']
HIP_COLUMNS = ['hip_ax', 'hip_ay', 'hip_az', 'hip_gx', 'hip_gy', 'hip_gz']
LABEL_COLUMN = 'label'


def _as_xyz(data, name: str) -> np.ndarray:
    arr = np.asarray(data, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"{name} must have shape (T, 3), got {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class Sample:
    """One IMU reading."""
    acc: np.ndarray
    gyro: np.ndarray
    index: int

    @classmethod
    def from_values(cls, acc, gyro, index: int) -> 'Sample':
        acc = np.asarray(acc, dtype=float).reshape(3)
        gyro = np.asarray(gyro, dtype=float).reshape(3)
        acc.setflags(write=False)
        gyro.setflags(write=False)
        return cls(acc=acc, gyro=gyro, index=int(index))


class StreamFrame(NamedTuple):
    """Simultaneous back and hip samples, the unit of the live stream."""
    back: Sample
    hip: Sample


@dataclass(frozen=True, eq=False)
class SampleWindow:
    """Contiguous run of back-IMU samples handed to the feature extractor."""
    acc: np.ndarray
    gyro: np.ndarray
    start: int = 0

    def __post_init__(self):
        acc = _as_xyz(self.acc, 'acc')
        gyro = _as_xyz(self.gyro, 'gyro')
        if len(acc) != len(gyro):
            raise ValueError(f"acc/gyro length mismatch: {len(acc)} vs {len(gyro)}")
        object.__setattr__(self, 'acc', acc)
        object.__setattr__(self, 'gyro', gyro)

    def __len__(self) -> int:
        return len(self.acc)

    @property
    def stop(self) -> int:
        """Index one past the last sample of the window."""
        return self.start + len(self)


@dataclass(eq=False)
class Recording:
    """
    Finite replay input for the controller.

    Back IMU drives classification and the proximal side of the joint angle;
    the hip IMU drives the distal side. A missing hip IMU is replaced by zeros.
    """
    back_acc: np.ndarray
    back_gyro: np.ndarray
    hip_acc: Optional[np.ndarray] = None
    hip_gyro: Optional[np.ndarray] = None
    labels: Optional[np.ndarray] = None
    activity: str = ''

    def __post_init__(self):
        self.back_acc = _as_xyz(self.back_acc, 'back_acc')
        self.back_gyro = _as_xyz(self.back_gyro, 'back_gyro')
        n = len(self.back_acc)
        if len(self.back_gyro) != n:
            raise ValueError(f"back acc/gyro length mismatch: {n} vs {len(self.back_gyro)}")

        if self.hip_acc is None or self.hip_gyro is None:
            logger.debug("No hip IMU data, using zeros")
            self.hip_acc = np.zeros((n, 3))
            self.hip_gyro = np.zeros((n, 3))
        self.hip_acc = _as_xyz(self.hip_acc, 'hip_acc')
        self.hip_gyro = _as_xyz(self.hip_gyro, 'hip_gyro')
        if len(self.hip_acc) != n or len(self.hip_gyro) != n:
            raise ValueError("hip IMU length does not match back IMU length")

        if self.labels is not None:
            self.labels = np.asarray(self.labels)
            if len(self.labels) != n:
                logger.warning(f"Annotation mismatch: {len(self.labels)} labels vs {n} samples, "
                               "ignoring labels")
                self.labels = None

    def __len__(self) -> int:
        return len(self.back_acc)

    def frame(self, i: int) -> StreamFrame:
        return StreamFrame(
            back=Sample.from_values(self.back_acc[i], self.back_gyro[i], i),
            hip=Sample.from_values(self.hip_acc[i], self.hip_gyro[i], i),
        )

    def frames(self):
        for i in range(len(self)):
            yield self.frame(i)

    def window(self, start: int, size: int) -> SampleWindow:
        """Back-IMU samples [start, start + size - 1]."""
        if start < 0 or start + size > len(self):
            raise IndexError(f"window [{start}, {start + size}) outside recording of {len(self)}")
        return SampleWindow(acc=self.back_acc[start:start + size],
                            gyro=self.back_gyro[start:start + size],
                            start=start)

    @classmethod
    def from_arrays(cls, back_acc, back_gyro, hip_acc=None, hip_gyro=None,
                    labels=None, activity: str = '') -> 'Recording':
        return cls(back_acc=back_acc, back_gyro=back_gyro, hip_acc=hip_acc,
                   hip_gyro=hip_gyro, labels=labels, activity=activity)

    @classmethod
    def from_csv(cls, path: Union[str, Path], activity: Optional[str] = None) -> 'Recording':
        """
        Read a session CSV with columns back_ax..back_gz, optionally
        hip_ax..hip_gz and a per-sample ``label`` column.
        """
        path = Path(path)
        df = pd.read_csv(path)
        missing = [c for c in BACK_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Missing columns {missing} in {path.name}")

        back = df[BACK_COLUMNS].to_numpy(dtype=float)
        hip = None
        if all(c in df.columns for c in HIP_COLUMNS):
            hip = df[HIP_COLUMNS].to_numpy(dtype=float)
        labels = df[LABEL_COLUMN].to_numpy() if LABEL_COLUMN in df.columns else None

        logger.info(f"Loaded {len(df)} samples from {path} (hip IMU: {'yes' if hip is not None else 'no'})")
        return cls(
            back_acc=back[:, :3], back_gyro=back[:, 3:],
            hip_acc=None if hip is None else hip[:, :3],
            hip_gyro=None if hip is None else hip[:, 3:],
            labels=labels,
            activity=activity if activity is not None else path.stem,
        )
