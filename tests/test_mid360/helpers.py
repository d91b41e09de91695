"""
Shared test helpers for the scan simulator test suite.

Provides plot embedding and chi-squared variance bounds used across the
statistical test modules.
"""

import base64
import io

import numpy as np

from mid360.physics import Material, Plane


def attach_plot_to_html_report(request, fig, name):
    """
    Embed a matplotlib figure into the pytest HTML report as an inline PNG.

    Does nothing when pytest-html is not active, so tests still pass without it.

    :param request: the pytest ``request`` fixture
    :param fig:     a ``matplotlib.figure.Figure`` to embed
    :param name:    a short label shown beside the image in the report
    """
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=160)

    html_plugin = request.config.pluginmanager.getplugin("html")
    if html_plugin is not None and hasattr(html_plugin, "extras"):
        png_b64 = base64.b64encode(buf.getvalue()).decode("ascii")
        extra = getattr(request.node, "extra", [])
        extra.append(html_plugin.extras.png(png_b64, name=name))
        request.node.extra = extra


def chi2_variance_bounds(n, confidence=0.99):
    """
    Chi-squared confidence interval ratio bounds for a sample variance.

    Uses the Wilson Hilferty approximation:
        chi2_q ~ nu * (1 - 2/(9 nu) +/- z sqrt(2/(9 nu)))^3
    Returns (lower_ratio, upper_ratio) for s^2 / sigma^2.

    :param n:          number of samples
    :param confidence: two-sided confidence level (default 0.99)
    """
    z_table = {0.99: 2.576, 0.95: 1.960, 0.90: 1.645}
    z = z_table.get(confidence, 2.576)

    nu = float(n - 1)
    a = 2.0 / (9.0 * nu)
    chi2_lo = nu * (1.0 - a - z * np.sqrt(a)) ** 3
    chi2_hi = nu * (1.0 - a + z * np.sqrt(a)) ** 3
    return chi2_lo / nu, chi2_hi / nu


def coverage_counts(ranges, azimuth_steps):
    """How many times each azimuth column appears in a list of [start, stop) ranges."""
    counts = np.zeros(azimuth_steps, dtype=int)
    for start, stop in ranges:
        counts[start:stop] += 1
    return counts


def wall(distance, reflectivity=1.0, object_id="wall"):
    """Infinite plane facing a sensor at the origin, at x = distance [m]."""
    return Plane(
        point=[distance, 0.0, 0.0],
        normal=[-1.0, 0.0, 0.0],
        material=Material(reflectivity=reflectivity, name=object_id),
        object_id=object_id,
    )
