"""
Consumers of per tick output.

The scan pipeline keeps nothing beyond the current tick. These helpers sit on
the consumer side: MarkerTrail accumulates detection points for a viewer and
NoiseCsvLog records raw noise draws for offline validation.
"""

import csv
from pathlib import Path

import numpy as np


class MarkerTrail:
    """
    Bounded set of hit markers for visualization.

    Once the trail holds more than ``max_markers`` points it is cleared
    entirely before the next batch is added, so a viewer always shows the
    most recent partial revolutions.
    """

    def __init__(self, max_markers=1000):
        if max_markers < 1:
            raise ValueError("max_markers must be >= 1.")
        self.max_markers = int(max_markers)
        self._points = []
        self.clear_count = 0

    def __len__(self):
        return len(self._points)

    def extend(self, detections):
        """Add the points of a tick's detections."""
        if len(self._points) > self.max_markers:
            self._points.clear()
            self.clear_count += 1
        self._points.extend(np.asarray(d.point, dtype=float) for d in detections)

    def points(self):
        """(M, 3) array of the current marker positions [m]."""
        if not self._points:
            return np.zeros((0, 3), dtype=float)
        return np.vstack(self._points)


class NoiseCsvLog:
    """
    Append-only CSV of noise draws: one ``angular1,angular2,distance`` row per
    detection. The header is written when the file does not exist yet.
    """

    header = ("angular1", "angular2", "distance")

    def __init__(self, path):
        self.path = Path(path)
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", newline="") as handle:
                csv.writer(handle).writerow(self.header)

    def write(self, noise, detections):
        """
        Log the angular pair of each detected ray and the range noise it consumed.

        :param noise:      NoiseSource refilled for the tick that produced the detections.
        :param detections: Detections of that tick, in acceptance order.
        """
        with self.path.open("a", newline="") as handle:
            writer = csv.writer(handle)
            for accepted_index, detection in enumerate(detections):
                angular = noise.angular(detection.ray_index)
                writer.writerow((f"{angular[0]:.6f}", f"{angular[1]:.6f}", f"{noise.distance(accepted_index):.6f}"))

    def read(self):
        """Logged draws as an (rows, 3) array."""
        return np.loadtxt(self.path, delimiter=",", skiprows=1, ndmin=2)
