"""
Time indexed (azimuth, zenith) control track.

The non-repetitive scan is emulated by slowly re-aiming the whole scan pattern
with a pair of control angles sampled once per second. Row ``k`` of the track
holds the angles at ``t = k`` seconds; between rows the angles are linearly
interpolated, and queries within one tick period of a whole second snap to
that second's row so that sample(k) returns the stored value exactly.
"""

import numpy as np

from .errors import InvalidParameter, OutOfRange
from .math_utils import _lerp


class AzTransformTrack:
    """
    Piecewise-linear (azimuth, zenith) track in degrees.

    :param samples:     Array-like of shape (rows, 2), one (azimuth, zenith)
                        pair per whole second.
    :param tick_period: Snap window [s], normally 1 / tick_rate.
    """

    def __init__(self, samples, tick_period):
        samples = np.array(samples, dtype=float)
        if samples.ndim != 2 or samples.shape[1] != 2:
            raise InvalidParameter("samples must have shape (rows, 2) holding (azimuth, zenith).")
        if samples.shape[0] < 1:
            raise InvalidParameter("samples must contain at least one row.")
        if not np.all(np.isfinite(samples)):
            raise InvalidParameter("samples must be finite.")
        if not tick_period > 0:
            raise InvalidParameter("tick_period must be > 0.")
        samples.flags.writeable = False
        self.samples = samples  # [deg]
        self.tick_period = float(tick_period)  # [s]

    @classmethod
    def from_csv(cls, path, tick_period, usecols=(0, 1), skiprows=0):
        """
        Load a track from a comma separated file.

        Blank lines are ignored. ``usecols`` selects the azimuth and zenith
        columns and ``skiprows`` skips header lines.
        """
        samples = np.loadtxt(path, delimiter=",", usecols=usecols, skiprows=skiprows, ndmin=2)
        return cls(samples, tick_period)

    def __len__(self):
        return self.samples.shape[0]

    @property
    def duration(self):
        """Last covered timestamp [s]."""
        return float(self.samples.shape[0] - 1)

    def sample(self, t):
        """
        Control angles at time ``t``.

        :param t: Query time [s], within [0, duration].
        :return: (azimuth, zenith) in degrees.
        :raises OutOfRange: If t lies outside the covered duration.
        """
        t = float(t)
        if not np.isfinite(t) or t < 0.0 or t > self.duration:
            raise OutOfRange(f"az transform queried at t={t:.6f} s, track covers [0, {self.duration:g}] s.")

        lower = int(np.floor(t))
        upper = int(np.ceil(t))
        if abs(t - lower) < self.tick_period:
            row = self.samples[lower]
        elif abs(t - upper) < self.tick_period:
            row = self.samples[upper]
        else:
            row = _lerp(self.samples[lower], self.samples[upper], t - lower)
        return float(row[0]), float(row[1])
