"""
Fixtures shared by the scan simulator tests.

Configurations are plain Mid360Config subclasses, the same way individual
tests override single fields inline.
"""

import numpy as np
import pytest

from mid360.Config import Mid360Config
from mid360.physics import Material, Scene, Sphere
from .helpers import wall


class NoiselessConfig(Mid360Config):
    """Small grid with every stochastic term disabled."""
    azimuth_steps = 36
    elevation_steps = 5
    min_elevation = -10.0
    max_elevation = 10.0
    scan_rate = 10
    tick_rate = 60
    angle_sigma = 0.0
    distance_sigma = 0.0
    master_seed = 1


class SmallNoisyConfig(NoiselessConfig):
    """Small grid with the default noise levels."""
    angle_sigma = 0.15
    distance_sigma = 0.02
    master_seed = 11


@pytest.fixture
def noiseless_config():
    return NoiselessConfig


@pytest.fixture
def small_noisy_config():
    return SmallNoisyConfig


@pytest.fixture
def wall_scene():
    """Factory for a one-wall scene at a given distance and reflectivity."""
    def _make(distance, reflectivity=1.0):
        return Scene([wall(distance, reflectivity)])
    return _make


@pytest.fixture
def enclosing_sphere_scene():
    """Sensor at the origin inside a reflective sphere of radius 5 m."""
    return Scene(
        [
            Sphere(
                center=np.zeros(3),
                radius=5.0,
                material=Material(reflectivity=1.0, name="dome"),
                object_id="dome",
            )
        ]
    )
