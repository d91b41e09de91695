"""
Precomputed scan pattern of the sensor.

The grid holds one unit direction per (azimuth step, elevation step) in the
sensor body frame, stored azimuth major: entry ``az * elevation_steps + el``.
Each entry is the forward vector yawed by ``360 * az / azimuth_steps`` and then
pitched by ``lerp(min_elevation, max_elevation, el / (elevation_steps - 1))``
(see math_utils for the frame convention). The grid is built once and its
arrays are flagged read-only.
"""

import numpy as np

from .errors import InvalidParameter, OutOfRange
from .math_utils import _lerp, _normalize_rows, _yaw_pitch_directions


class RayGrid:
    """
    Immutable table of sensor-local unit ray directions.

    Use RayGrid.build() to construct one from the grid dimensions.
    """

    def __init__(self, azimuth_steps, elevation_steps, min_elevation, max_elevation, directions, yaw_angles, elevation_angles):
        self.azimuth_steps = int(azimuth_steps)
        self.elevation_steps = int(elevation_steps)
        self.min_elevation = float(min_elevation)  # [deg]
        self.max_elevation = float(max_elevation)  # [deg]
        self.directions = directions  # (A*E, 3) unit vectors
        self.yaw_angles = yaw_angles  # (A*E,) [deg]
        self.elevation_angles = elevation_angles  # (A*E,) [deg]
        for array in (self.directions, self.yaw_angles, self.elevation_angles):
            array.flags.writeable = False

    @classmethod
    def build(cls, azimuth_steps, elevation_steps, min_elevation, max_elevation):
        """
        Build the grid for the given dimensions.

        :param azimuth_steps:   Number of azimuth columns over 360 deg, >= 1.
        :param elevation_steps: Number of elevation rows, >= 2.
        :param min_elevation:   Lowest elevation row [deg].
        :param max_elevation:   Highest elevation row [deg], > min_elevation.
        :return: RayGrid
        :raises InvalidParameter: On invalid dimensions or elevation bounds.
        """
        if int(azimuth_steps) != azimuth_steps or azimuth_steps < 1:
            raise InvalidParameter("azimuth_steps must be an integer >= 1.")
        # The elevation lerp divides by elevation_steps - 1.
        if int(elevation_steps) != elevation_steps or elevation_steps < 2:
            raise InvalidParameter("elevation_steps must be an integer >= 2.")
        min_elevation = float(min_elevation)
        max_elevation = float(max_elevation)
        if not (np.isfinite(min_elevation) and np.isfinite(max_elevation)):
            raise InvalidParameter("elevation bounds must be finite.")
        if min_elevation >= max_elevation:
            raise InvalidParameter("min_elevation must be < max_elevation.")

        azimuth_steps = int(azimuth_steps)
        elevation_steps = int(elevation_steps)

        yaw_columns = 360.0 * np.arange(azimuth_steps, dtype=float) / azimuth_steps
        elevation_rows = _lerp(
            min_elevation,
            max_elevation,
            np.arange(elevation_steps, dtype=float) / (elevation_steps - 1),
        )

        # Azimuth major layout: index = az * elevation_steps + el
        yaw_angles = np.repeat(yaw_columns, elevation_steps)
        elevation_angles = np.tile(elevation_rows, azimuth_steps)
        directions = _normalize_rows(_yaw_pitch_directions(yaw_angles, elevation_angles))

        return cls(
            azimuth_steps,
            elevation_steps,
            min_elevation,
            max_elevation,
            directions,
            yaw_angles,
            elevation_angles,
        )

    def __len__(self):
        return self.azimuth_steps * self.elevation_steps

    def index(self, azimuth_index, elevation_index):
        """Flat index of a grid entry."""
        if not (0 <= azimuth_index < self.azimuth_steps):
            raise OutOfRange(f"azimuth index {azimuth_index} outside [0, {self.azimuth_steps}).")
        if not (0 <= elevation_index < self.elevation_steps):
            raise OutOfRange(f"elevation index {elevation_index} outside [0, {self.elevation_steps}).")
        return azimuth_index * self.elevation_steps + elevation_index

    def get(self, azimuth_index, elevation_index):
        """Unit direction of a single grid entry, sensor frame."""
        return self.directions[self.index(azimuth_index, elevation_index)]

    def ray_range(self, start_azimuth, count):
        """Flat [start, stop) indices covering ``count`` azimuth columns from ``start_azimuth``."""
        if count < 0 or start_azimuth < 0 or start_azimuth + count > self.azimuth_steps:
            raise OutOfRange(
                f"azimuth slice [{start_azimuth}, {start_azimuth + count}) outside [0, {self.azimuth_steps})."
            )
        return start_azimuth * self.elevation_steps, (start_azimuth + count) * self.elevation_steps

    def slice(self, start_azimuth, count):
        """
        Contiguous block of directions for ``count`` azimuth columns.

        Sections are scheduled to stay within the grid, so the slice does not
        wrap around; a request past the last column raises OutOfRange.

        :return: Read-only view of shape (count * elevation_steps, 3).
        """
        start, stop = self.ray_range(start_azimuth, count)
        return self.directions[start:stop]
