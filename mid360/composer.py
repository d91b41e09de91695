"""
World-space ray directions for the active section.

For every ray i of the section the final direction is

    d_world = R_pose @ R_az @ N_i(d_i)

    d_i     sensor frame grid direction
    N_i     angular noise about the ray's own axes: yaw by n_x * sigma about
            the sensor vertical, then pitch by n_y * sigma toward +Z
    R_az    az transform about the sensor body axes, Rz(azimuth) @ P(-zenith)
    R_pose  sensor orientation (sensor -> world)

which is the grid's yaw-then-pitch convention applied at each stage. Rays are
independent, so the kernel runs as a batched map through BatchExecutor and
writes into a caller owned output buffer that never aliases the grid.
"""

import numpy as np

from .errors import InvalidParameter
from .jobs import BatchExecutor
from .math_utils import UP, _as_rotation_matrix, _normalize_rows, _yaw_pitch_matrix, eps


def az_transform_matrix(azimuth, zenith):
    """Rotation of the whole scan pattern: yaw by azimuth, then pitch by -zenith [deg]."""
    return _yaw_pitch_matrix(azimuth, -zenith)


def perturb_directions(directions, yaw_deg, pitch_deg, out):
    """
    Rotate unit directions by small yaw/pitch offsets about their own axes.

    Yaw turns each ray about +Z. Pitch then tilts it within its vertical plane
    toward +Z along the unit tangent t = normalize(UP - (UP . d) d), so
        d' = d cos(p) + t sin(p).
    Rays parallel to +Z fall back to the +X tangent.

    :param directions: (N, 3) unit vectors.
    :param yaw_deg:    (N,) yaw offsets [deg].
    :param pitch_deg:  (N,) pitch offsets [deg].
    :param out:        (N, 3) destination, must not alias ``directions``.
    :return: ``out``
    """
    yaw = np.deg2rad(yaw_deg)
    pitch = np.deg2rad(pitch_deg)
    cos_y, sin_y = np.cos(yaw), np.sin(yaw)

    # Yaw about +Z.
    out[:, 0] = cos_y * directions[:, 0] - sin_y * directions[:, 1]
    out[:, 1] = sin_y * directions[:, 0] + cos_y * directions[:, 1]
    out[:, 2] = directions[:, 2]

    # Pitch toward +Z along the local vertical tangent.
    tangent = UP[None, :] - out[:, 2:3] * out
    norms = np.linalg.norm(tangent, axis=1)
    polar = norms < eps
    tangent[~polar] /= norms[~polar, None]
    tangent[polar] = (1.0, 0.0, 0.0)
    out *= np.cos(pitch)[:, None]
    out += tangent * np.sin(pitch)[:, None]
    return out


class DirectionComposer:
    """
    Batched composition of grid slice, noise, az transform and pose.

    :param angle_sigma: 1 sigma angular noise [deg].
    :param executor:    BatchExecutor running the per-batch kernel.
    :param batch_size:  Rays per batch.
    """

    def __init__(self, angle_sigma, executor=None, batch_size=64):
        if not (np.isfinite(angle_sigma) and angle_sigma >= 0.0):
            raise InvalidParameter("angle_sigma must be finite and >= 0.")
        if batch_size < 1:
            raise InvalidParameter("batch_size must be >= 1.")
        self.angle_sigma = float(angle_sigma)
        self.executor = executor if executor is not None else BatchExecutor(0)
        self.batch_size = int(batch_size)

    def compose(self, directions, noise_pairs, azimuth, zenith, orientation, out):
        """
        Compute world directions for one section.

        :param directions:  (N, 3) sensor frame grid slice.
        :param noise_pairs: (N, 2) standard normal (yaw, pitch) pairs.
        :param azimuth:     Az transform azimuth [deg].
        :param zenith:      Az transform zenith [deg].
        :param orientation: 3x3 sensor -> world rotation, None for identity.
        :param out:         (N, 3) output buffer, distinct from ``directions``.
        :return: ``out`` holding unit world directions.
        """
        count = directions.shape[0]
        if noise_pairs.shape[0] < count or out.shape[0] != count:
            raise InvalidParameter("noise_pairs and out must cover every ray of the slice.")
        if np.shares_memory(out, directions):
            raise InvalidParameter("out must not alias the grid directions.")

        rotation = np.eye(3) if orientation is None else _as_rotation_matrix(orientation, "orientation")
        sensor_to_world = rotation @ az_transform_matrix(azimuth, zenith)
        sigma = self.angle_sigma

        def kernel(start, stop):
            block = out[start:stop]
            noise = noise_pairs[start:stop]
            perturb_directions(directions[start:stop], noise[:, 0] * sigma, noise[:, 1] * sigma, block)
            block[:] = block @ sensor_to_world.T
            _normalize_rows(block, out=block)

        self.executor.run(kernel, count, self.batch_size)
        return out
