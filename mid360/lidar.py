"""
MID-360 class LiDAR Scan Simulator

This module wires the per tick scan pipeline of a rotating, non-repetitive
LiDAR:

    ScanScheduler      selects the section of azimuth columns active this tick
    AzTransformTrack   yields the (azimuth, zenith) control angles for the tick
    NoiseSource        refills the standard normal noise buffer
    DirectionComposer  turns the grid slice into world directions
    HitRegistrar       raycasts, applies the detection law and range noise

The primary entry points are:
    Mid360Lidar.tick()             One simulation tick against a scene.
    Mid360Lidar.scan_revolution()  All sections of one revolution.
"""

import logging

import numpy as np

from .Config import Mid360Config
from .composer import DirectionComposer
from .errors import InvalidParameter, OutOfRange, SensorClosed
from .jobs import BatchExecutor
from .math_utils import _as_rotation_matrix, _as_vector3
from .noise import NoiseSource
from .ray_grid import RayGrid
from .registrar import HitRegistrar
from .scheduler import ScanScheduler

logger = logging.getLogger(__name__)


class Mid360Lidar:
    """
    Configurable rotating scan sensor.

    Built from a Mid360Config (or any object exposing the same attributes).
    Owns the ray grid, the section scheduler, the noise and direction buffers
    and the worker pool for its whole lifetime; call close() (or use the
    sensor as a context manager) to release them.
    """
    def __init__(self, config=Mid360Config, az_track=None):
        """
        Initialize the sensor from a configuration object.

        :param config:   Class or instance with Mid360Config-compatible attributes.
        :param az_track: Optional AzTransformTrack. Without one the scan
                         pattern is never re-aimed (azimuth = zenith = 0).
        """
        # ---------- scheduling ----------
        self.tick_rate = float(getattr(config, "tick_rate", 60))  # [Hz]
        self.scan_rate = float(getattr(config, "scan_rate", 10))  # [Hz]
        if not (np.isfinite(self.tick_rate) and self.tick_rate > 0.0):
            raise InvalidParameter("tick_rate must be > 0.")
        if not (np.isfinite(self.scan_rate) and self.scan_rate > 0.0):
            raise InvalidParameter("scan_rate must be > 0.")
        self.tick_period = 1.0 / self.tick_rate  # [s]

        # ---------- ray grid ----------
        self.grid = RayGrid.build(
            getattr(config, "azimuth_steps", 360),
            getattr(config, "elevation_steps", 40),
            getattr(config, "min_elevation", -7.22),
            getattr(config, "max_elevation", 55.22),
        )
        self.scheduler = ScanScheduler(
            self.grid.azimuth_steps,
            self.scan_rate,
            self.tick_rate,
            rounding=getattr(config, "section_rounding", "strict"),
        )

        # ---------- batch execution ----------
        self.batch_size = int(getattr(config, "batch_size", 64))
        if self.batch_size < 1:
            raise InvalidParameter("batch_size must be >= 1.")
        self.executor = BatchExecutor(getattr(config, "num_workers", 0))

        # ---------- noise, composition, registration ----------
        self.max_rays = self.scheduler.section_size * self.grid.elevation_steps  # rays of the largest section
        self.noise = NoiseSource(
            self.max_rays,
            master_seed=getattr(config, "master_seed", 0),
            executor=self.executor,
            batch_size=self.batch_size,
        )
        self.composer = DirectionComposer(
            float(getattr(config, "angle_sigma", 0.15)),
            executor=self.executor,
            batch_size=self.batch_size,
        )
        self.registrar = HitRegistrar(
            min_distance=float(getattr(config, "min_distance", 0.1)),
            max_distance=float(getattr(config, "max_distance", 70.0)),
            constant=float(getattr(config, "hit_registration_constant", 15.23)),
            exponent=float(getattr(config, "hit_registration_exponent", 0.369)),
            distance_sigma=float(getattr(config, "distance_sigma", 0.02)),
            batch_size=int(getattr(config, "raycast_batch_size", 256)),
        )

        self.az_track = az_track
        self.include_metadata = bool(getattr(config, "include_metadata", True))

        # Preallocated once, sliced per tick.
        self.direction_buffer = np.zeros((self.max_rays, 3), dtype=float)
        self.tick_index = 0

        logger.info(
            "MID-360 sensor ready: %dx%d grid, %d sections of %d columns, %d rays per tick, %d workers",
            self.grid.azimuth_steps,
            self.grid.elevation_steps,
            self.scheduler.total_sections,
            self.scheduler.section_size,
            self.max_rays,
            self.executor.num_workers,
        )

    @property
    def total_sections(self):
        return self.scheduler.total_sections

    def _build_skipped_frame(self, timestamp, reason):
        """
        Frame returned when a tick cannot scan.

        :param timestamp: Tick epoch [s].
        :param reason:    Short cause string.
        :return: Dict with valid=False and an empty returns list.
        """
        return {
            "valid": False,
            "type": "frame",
            "timestamp": float(timestamp),
            "tick": self.tick_index,
            "reason": str(reason),
            "returns": [],
        }

    def _control_angles(self, timestamp):
        if self.az_track is None:
            return 0.0, 0.0
        return self.az_track.sample(timestamp)

    def tick(self, scene, sensor_position, sensor_orientation=None, current_time=None):
        """
        Run one simulation tick.

        1. Sample the az transform at the tick epoch (skip the tick when the
           track does not cover it).
        2. Take the active section from the scheduler.
        3. Refill the noise buffer for the section's rays.
        4. Compose world directions into the preallocated buffer.
        5. Raycast and register detections.
        6. Advance the scheduler and the tick counter.

        :param scene:              Object with raycast(origin, direction, max_distance).
        :param sensor_position:    Sensor origin in world space [m].
        :param sensor_orientation: 3x3 rotation matrix (sensor -> world). None = identity.
        :param current_time:       Tick epoch [s]; defaults to tick_index * tick_period.
        :return: Frame dict with the tick's detections in ``returns``.
        :raises SensorClosed: If close() has already been called.
        """
        if self.direction_buffer is None:
            raise SensorClosed("tick() called after close().")
        if not hasattr(scene, "raycast"):
            raise TypeError("scene must provide a raycast(origin, direction, max_distance) method.")

        timestamp = self.tick_index * self.tick_period if current_time is None else float(current_time)
        position = _as_vector3(sensor_position, "sensor_position")
        rotation = np.eye(3) if sensor_orientation is None else _as_rotation_matrix(
            sensor_orientation, "sensor_orientation"
        )

        try:
            azimuth, zenith = self._control_angles(timestamp)
        except OutOfRange as error:
            logger.warning("Tick %d skipped: %s", self.tick_index, error)
            frame = self._build_skipped_frame(timestamp, "az_transform_out_of_range")
            self.tick_index += 1
            return frame

        section = self.scheduler.section
        az_start, az_stop = self.scheduler.peek()
        directions = self.grid.slice(az_start, az_stop - az_start)
        ray_count = directions.shape[0]

        self.noise.refill(self.tick_index, ray_count)
        world_directions = self.composer.compose(
            directions,
            self.noise.angular_view(),
            azimuth,
            zenith,
            rotation,
            out=self.direction_buffer[:ray_count],
        )
        detections, counts = self.registrar.register(
            position,
            world_directions,
            scene,
            self.noise,
            azimuth_start=az_start,
            elevation_steps=self.grid.elevation_steps,
        )

        frame = {
            "valid": True,
            "type": "frame",
            "timestamp": float(timestamp),
            "tick": self.tick_index,
            "section": section,
            "azimuth_range": (az_start, az_stop),
            "num_rays": ray_count,
            "num_valid": len(detections),
            "returns": detections,
        }
        if self.include_metadata:
            frame["azimuth"] = float(azimuth)  # [deg]
            frame["zenith"] = float(zenith)  # [deg]
            frame["counts"] = counts
            frame["sensor_position"] = position.tolist()
            frame["sensor_orientation"] = rotation.tolist()

        self.scheduler.advance()
        self.tick_index += 1
        return frame

    def scan_revolution(self, scene, sensor_position, sensor_orientation=None, start_time=None):
        """
        Run total_sections consecutive ticks (one full revolution).

        :return: List of the per tick frames.
        """
        frames = []
        for offset in range(self.total_sections):
            current_time = None if start_time is None else float(start_time) + offset * self.tick_period
            frames.append(self.tick(scene, sensor_position, sensor_orientation, current_time=current_time))
        return frames

    def close(self):
        """Stop the worker pool and release the per tick buffers."""
        self.executor.shutdown()
        self.direction_buffer = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
