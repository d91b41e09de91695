"""
Hit registration: raycast, reflectivity-dependent acceptance and range noise.

A ray cast from the sensor position ``p`` along ``d`` starts at
``p + d * min_distance`` and searches up to ``max_distance``. A surface hit at
range ``r = min_distance + hit.distance`` with reflectivity ``rho`` in (0, 1]
is detected iff

    r < hit_registration_constant * rho ** hit_registration_exponent

so brighter surfaces are seen farther. Detected hits consume the next range
noise value from the NoiseSource (one per detection, not per ray) and are
moved along the ray by ``n * distance_sigma``.

Intersection primitives are assumed not to be thread safe, so this stage runs
on the calling thread in bounded batches.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from .errors import IntersectionError, InvalidParameter
from .jobs import BatchExecutor
from .math_utils import _as_vector3

logger = logging.getLogger(__name__)


def _as_reflectivity(value):
    """Reflectivity as a float, or None when the surface reports none or a non numeric value."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Detection:
    """
    One accepted return, world frame.

    :param point:           Noisy hit point [m].
    :param direction:       Unit world direction of the ray.
    :param range:           Noisy range from the sensor position [m].
    :param reflectivity:    Reflectivity of the hit surface [0..1].
    :param ray_index:       Index of the ray within the tick's section.
    :param azimuth_index:   Grid azimuth column.
    :param elevation_index: Grid elevation row.
    :param object_id:       Identifier of the hit surface.
    """
    point: np.ndarray
    direction: np.ndarray
    range: float
    reflectivity: float
    ray_index: int
    azimuth_index: int
    elevation_index: int
    object_id: str = ""

    def as_dict(self):
        return {
            "valid": True,
            "point": self.point.tolist(),
            "direction": self.direction.tolist(),
            "range": float(self.range),
            "reflectivity": float(self.reflectivity),
            "ray_index": int(self.ray_index),
            "azimuth_index": int(self.azimuth_index),
            "elevation_index": int(self.elevation_index),
            "object_id": self.object_id,
        }


class HitRegistrar:
    """
    Applies the detection law to raycast results.

    :param min_distance:      Skip-self offset and blind zone [m].
    :param max_distance:      Raycast bound [m].
    :param constant:          hit_registration_constant [m].
    :param exponent:          hit_registration_exponent [-].
    :param distance_sigma:    1 sigma range noise [m].
    :param batch_size:        Rays per sequential raycast batch.
    """

    def __init__(self, min_distance, max_distance, constant, exponent, distance_sigma, batch_size=256):
        if not (np.isfinite(min_distance) and min_distance >= 0.0):
            raise InvalidParameter("min_distance must be finite and >= 0.")
        if not (np.isfinite(max_distance) and max_distance > min_distance):
            raise InvalidParameter("max_distance must be finite and greater than min_distance.")
        if not (np.isfinite(constant) and constant > 0.0):
            raise InvalidParameter("hit_registration_constant must be finite and > 0.")
        # Detection range must not fall as reflectivity rises.
        if not (np.isfinite(exponent) and exponent >= 0.0):
            raise InvalidParameter("hit_registration_exponent must be finite and >= 0.")
        if not (np.isfinite(distance_sigma) and distance_sigma >= 0.0):
            raise InvalidParameter("distance_sigma must be finite and >= 0.")
        if batch_size < 1:
            raise InvalidParameter("raycast_batch_size must be >= 1.")

        self.min_distance = float(min_distance)  # [m]
        self.max_distance = float(max_distance)  # [m]
        self.constant = float(constant)  # [m]
        self.exponent = float(exponent)
        self.distance_sigma = float(distance_sigma)  # [m]
        self.batch_size = int(batch_size)

    def threshold(self, reflectivity):
        """Largest detectable range [m] for a surface of the given reflectivity."""
        return self.constant * float(reflectivity) ** self.exponent

    def accepts(self, distance, reflectivity):
        """True iff a hit at ``distance`` on a surface of ``reflectivity`` is detected."""
        reflectivity = _as_reflectivity(reflectivity)
        if reflectivity is None:
            return False
        if not (math.isfinite(reflectivity) and 0.0 < reflectivity <= 1.0):
            return False
        return float(distance) < self.threshold(reflectivity)

    def register(self, position, directions, scene, noise, azimuth_start=0, elevation_steps=1):
        """
        Raycast every direction and collect the accepted detections.

        :param position:        Sensor position in world space [m].
        :param directions:      (N, 3) unit world directions of this tick.
        :param scene:           Object exposing raycast(origin, direction, max_distance).
        :param noise:           NoiseSource refilled for this tick's N rays.
        :param azimuth_start:   First grid column of the section, for tagging.
        :param elevation_steps: Grid rows per column, for tagging.
        :return: (detections, counts). counts holds rays, hit, miss, failed
                 (IntersectionError), no_reflectivity, rejected and detected.
        """
        position = _as_vector3(position, "position")
        detections = []
        counts = {"rays": int(directions.shape[0]), "hit": 0, "miss": 0, "failed": 0, "no_reflectivity": 0, "rejected": 0}

        for start, stop in BatchExecutor.batches(directions.shape[0], self.batch_size):
            origins = position + directions[start:stop] * self.min_distance
            for offset, (origin, direction) in enumerate(zip(origins, directions[start:stop])):
                ray_index = start + offset
                try:
                    hit = scene.raycast(origin, direction, self.max_distance)
                    if hit is None:
                        counts["miss"] += 1
                        continue
                    reflectivity = getattr(hit, "reflectivity", None)
                except IntersectionError as error:
                    counts["failed"] += 1
                    logger.debug("Ray %d dropped: %s", ray_index, error)
                    continue

                counts["hit"] += 1
                reflectivity = _as_reflectivity(reflectivity)
                if reflectivity is None:
                    counts["no_reflectivity"] += 1
                    logger.debug("Ray %d dropped: hit without numeric reflectivity", ray_index)
                    continue

                true_range = self.min_distance + float(hit.distance)
                if not self.accepts(true_range, reflectivity):
                    counts["rejected"] += 1
                    continue

                range_error = noise.distance(len(detections)) * self.distance_sigma
                detections.append(
                    Detection(
                        point=np.asarray(hit.point, dtype=float) + direction * range_error,
                        direction=direction.copy(),
                        range=true_range + range_error,
                        reflectivity=float(reflectivity),
                        ray_index=ray_index,
                        azimuth_index=azimuth_start + ray_index // elevation_steps,
                        elevation_index=ray_index % elevation_steps,
                        object_id=str(getattr(hit, "object_id", "")),
                    )
                )

        counts["detected"] = len(detections)
        return detections, counts
