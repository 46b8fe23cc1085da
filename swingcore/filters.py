# swingcore/filters.py
#
# One-Euro low-pass filtering of joint trajectories.
#
# The analysis pipeline accepts raw or pre-smoothed frames; smooth_frames
# produces the pre-smoothed variant. A joint missing in a frame stays
# missing in the output and leaves its filter state untouched.

from __future__ import annotations

from typing import List, Optional, Sequence, Union

import numpy as np

from swingcore.config import MIN_DT
from swingcore.joints import NUM_JOINTS
from swingcore.pose import Frame

ArrayLike = Union[float, np.ndarray]


class OneEuroFilter:
    """
    Speed-adaptive low-pass filter (Casiez et al.). Works on scalars or
    fixed-shape arrays.

    min_cutoff  cutoff (Hz) at rest; lower = smoother
    beta        how fast the cutoff rises with speed; higher = less lag
    d_cutoff    cutoff (Hz) for the derivative estimate
    """

    def __init__(self, min_cutoff: float = 1.0, beta: float = 0.007, d_cutoff: float = 1.0):
        if min_cutoff <= 0 or d_cutoff <= 0:
            raise ValueError("OneEuroFilter cutoffs must be positive")
        self.min_cutoff = float(min_cutoff)
        self.beta = float(beta)
        self.d_cutoff = float(d_cutoff)
        self.reset()

    def reset(self) -> None:
        self._x: Optional[np.ndarray] = None
        self._dx: Optional[np.ndarray] = None
        self._t: float = 0.0

    @staticmethod
    def _alpha(cutoff: ArrayLike, dt: float) -> ArrayLike:
        r = 2.0 * np.pi * cutoff * dt
        return r / (r + 1.0)

    def __call__(self, t: float, x: ArrayLike) -> ArrayLike:
        x = np.asarray(x, dtype=np.float64)
        if self._x is None:
            self._x = x.copy()
            self._dx = np.zeros_like(x)
            self._t = float(t)
            return x.copy() if x.ndim else float(x)

        dt = max(MIN_DT, float(t) - self._t)
        dx = (x - self._x) / dt
        a_d = self._alpha(self.d_cutoff, dt)
        dx_hat = a_d * dx + (1.0 - a_d) * self._dx
        cutoff = self.min_cutoff + self.beta * np.abs(dx_hat)
        a_x = self._alpha(cutoff, dt)
        x_hat = a_x * x + (1.0 - a_x) * self._x

        self._t = float(t)
        self._x = x_hat
        self._dx = dx_hat
        return x_hat.copy() if x_hat.ndim else float(x_hat)


def smooth_frames(
    frames: Sequence[Frame],
    min_cutoff: float = 1.0,
    beta: float = 0.007,
    d_cutoff: float = 1.0,
    time_scale: float = 1.0,
) -> List[Frame]:
    """
    One-Euro filter every joint's 3D trajectory.

    time_scale converts timestamps to seconds (0.001 for millisecond streams).
    Frame count, timestamps and visibility are preserved.
    """
    filters = [OneEuroFilter(min_cutoff, beta, d_cutoff) for _ in range(NUM_JOINTS)]
    out: List[Frame] = []
    for fr in frames:
        t = float(fr.timestamp) * time_scale
        xyz = np.array(fr.pose.xyz, dtype=np.float64)
        present = fr.pose.present_mask()
        for j in np.flatnonzero(present):
            xyz[j] = filters[j](t, xyz[j])
        out.append(Frame(fr.timestamp, fr.pose.with_points(xyz)))
    return out


__all__ = ["OneEuroFilter", "smooth_frames"]
