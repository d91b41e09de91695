"""
Math Utilities Module

This module provides helper functions for the vector and rotation operations
shared by the scan pipeline. It covers input validation for vectors and
rotation matrices, single and batched normalization, linear interpolation,
and the yaw/pitch rotation convention used by the ray grid, the az transform
and the angular noise model.

Frame convention (right handed):
    +X forward, +Y left, +Z up.
    Yaw is a rotation about +Z, positive from +X toward +Y.
    Pitch is a rotation about the local lateral axis, positive raises the
    forward vector toward +Z.
    A (yaw, pitch) pair is always composed yaw first, then pitch about the
    yawed local axes, i.e. R = Rz(yaw) @ P(pitch), so that
        R @ [1, 0, 0] = [cos(p) cos(y), cos(p) sin(y), sin(p)].
"""

import numpy as np

# Small numerical tolerance to prevent division by zero and handle
# degenerate edge cases like near-zero vector norms or tiny time gaps.
eps = 1e-12  # [dimensionless]

# Forward (boresight) vector of the sensor body frame.
FORWARD = np.array([1.0, 0.0, 0.0], dtype=float)
UP = np.array([0.0, 0.0, 1.0], dtype=float)


def _as_vector3(value, name):
    """
    Validate and convert an input into a flat 3-element float vector.

    :param value: Array-like input to convert into a 3D vector.
    :param name:  Human-readable parameter name, shown in error messages.

    :return: numpy array of shape (3,) with dtype float64.
    :raises ValueError: If the input does not contain exactly 3 elements.
    """
    vec = np.asarray(value, dtype=float).reshape(-1)
    if vec.size != 3:
        raise ValueError(f"{name} must be a 3D vector.")
    return vec


def _as_rotation_matrix(value, name):
    """
    Validate and convert an input into a 3x3 float rotation matrix.

    Only the shape is validated here; orthogonality and determinant checks
    are not performed.

    :param value: Array-like input to convert into a 3x3 matrix.
    :param name:  Human-readable parameter name, shown in error messages.

    :return: numpy array of shape (3, 3) with dtype float64.
    :raises ValueError: If the resulting shape is not (3, 3).
    """
    matrix = np.asarray(value, dtype=float)
    if matrix.shape != (3, 3):
        raise ValueError(f"{name} must be a 3x3 rotation matrix.")
    return matrix


def _normalize(vec, fallback=(1.0, 0.0, 0.0)):
    """
    Normalize a vector to unit length, with a safe fallback for zero-length vectors.

    :param vec:      Input vector (array-like, any dimension).
    :param fallback: Direction to return when the input has near-zero norm.

    :return: Unit-length numpy vector in the same direction as the input.
    :raises ValueError: If both the input and fallback vectors have near-zero norm.
    """
    vec = np.asarray(vec, dtype=float)
    norm = np.linalg.norm(vec)

    if norm < eps:
        fallback = np.asarray(fallback, dtype=float)
        fallback_norm = np.linalg.norm(fallback)
        if fallback_norm < eps:
            raise ValueError("Fallback vector must be non-zero.")
        return fallback / fallback_norm

    return vec / norm


def _normalize_rows(vectors, out=None, fallback=(1.0, 0.0, 0.0)):
    """
    Normalize every row of an (N, 3) array to unit length.

    Rows with near-zero norm are replaced by the normalized fallback, the
    batched counterpart of _normalize. Writing into ``out`` lets callers reuse
    a preallocated buffer; ``out`` may be the input array itself.

    :param vectors:  Array of shape (N, 3).
    :param out:      Optional destination array of shape (N, 3).
    :param fallback: Direction used for degenerate rows.
    :return: The normalized array (``out`` when given).
    """
    vectors = np.asarray(vectors, dtype=float)
    if out is None:
        out = np.empty_like(vectors)
    norms = np.linalg.norm(vectors, axis=1)
    degenerate = norms < eps
    np.divide(vectors, np.where(degenerate, 1.0, norms)[:, None], out=out)
    if np.any(degenerate):
        out[degenerate] = _normalize(fallback)
    return out


def _lerp(start, end, alpha):
    """Linear interpolation start + alpha * (end - start), broadcasting over arrays."""
    return start + alpha * (end - start)


def _yaw_matrix(yaw_deg):
    """Rotation about +Z by ``yaw_deg`` degrees."""
    yaw = np.deg2rad(float(yaw_deg))
    c, s = np.cos(yaw), np.sin(yaw)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=float)


def _pitch_matrix(pitch_deg):
    """
    Rotation about the lateral axis by ``pitch_deg`` degrees.

    Positive pitch raises +X toward +Z, which is a rotation about +Y by
    ``-pitch_deg`` in the right handed sense.
    """
    pitch = np.deg2rad(float(pitch_deg))
    c, s = np.cos(pitch), np.sin(pitch)
    return np.array([[c, 0.0, -s], [0.0, 1.0, 0.0], [s, 0.0, c]], dtype=float)


def _yaw_pitch_matrix(yaw_deg, pitch_deg):
    """Compose yaw then pitch about the yawed local axes: Rz(yaw) @ P(pitch)."""
    return _yaw_matrix(yaw_deg) @ _pitch_matrix(pitch_deg)


def _yaw_pitch_directions(yaw_deg, pitch_deg):
    """
    Batched forward vectors rotated by (yaw, pitch) pairs.

    Equivalent to ``_yaw_pitch_matrix(y, p) @ FORWARD`` for every pair but
    evaluated elementwise:
        x = cos(p) * cos(y)
        y = cos(p) * sin(y)
        z = sin(p)

    :param yaw_deg:   Array of yaw angles [deg].
    :param pitch_deg: Array of pitch angles [deg], same shape as yaw_deg.
    :return: Array of shape yaw_deg.shape + (3,) of unit vectors.
    """
    yaw = np.deg2rad(np.asarray(yaw_deg, dtype=float))
    pitch = np.deg2rad(np.asarray(pitch_deg, dtype=float))
    cos_p = np.cos(pitch)
    return np.stack((cos_p * np.cos(yaw), cos_p * np.sin(yaw), np.sin(pitch)), axis=-1)
