"""
Section scheduling for the rotating scan.

A full revolution of ``azimuth_steps`` columns is spread over the ticks of one
revolution period. Each tick activates one contiguous section of columns,
starting at section 1 and cycling forever:

    section_size   = azimuth_steps * scan_rate / tick_rate   [columns per tick]
    total_sections = tick_rate / scan_rate                   [ticks per revolution]
    active columns = [(section - 1) * section_size, section * section_size)
    next section   = section % total_sections + 1

After total_sections consecutive advances every column has been active
exactly once.
"""

import logging
import math

from .errors import InvalidParameter, SchedulingMismatch

logger = logging.getLogger(__name__)

ROUNDING_POLICIES = ("strict", "ceil")


class ScanScheduler:
    """
    Cyclic section state machine.

    :param azimuth_steps: Number of azimuth columns in the ray grid.
    :param scan_rate:     Revolutions per second [Hz].
    :param tick_rate:     Simulation ticks per second [Hz].
    :param rounding:      "strict" raises SchedulingMismatch when the rates do
                          not split the revolution into whole sections;
                          "ceil" rounds the section size up and clips the last
                          section, keeping single coverage per cycle.
    """

    def __init__(self, azimuth_steps, scan_rate, tick_rate, rounding="strict"):
        if int(azimuth_steps) != azimuth_steps or azimuth_steps < 1:
            raise InvalidParameter("azimuth_steps must be an integer >= 1.")
        if not scan_rate > 0:
            raise InvalidParameter("scan_rate must be > 0.")
        if not tick_rate > 0:
            raise InvalidParameter("tick_rate must be > 0.")
        if scan_rate > tick_rate:
            raise InvalidParameter("scan_rate must not exceed tick_rate (at most one revolution per tick).")
        if rounding not in ROUNDING_POLICIES:
            raise InvalidParameter(f"rounding must be one of {ROUNDING_POLICIES}, got {rounding!r}.")

        self.azimuth_steps = int(azimuth_steps)
        self.scan_rate = scan_rate
        self.tick_rate = tick_rate
        self.rounding = rounding

        columns_per_tick = self.azimuth_steps * scan_rate / tick_rate
        ticks_per_revolution = tick_rate / scan_rate

        if rounding == "strict":
            if not (_is_integral(columns_per_tick) and _is_integral(ticks_per_revolution)):
                raise SchedulingMismatch(
                    f"azimuth_steps * scan_rate / tick_rate = {columns_per_tick:g} and "
                    f"tick_rate / scan_rate = {ticks_per_revolution:g} must both be integers."
                )
            self.section_size = int(round(columns_per_tick))
            self.total_sections = int(round(ticks_per_revolution))
            if self.section_size * self.total_sections != self.azimuth_steps:
                raise SchedulingMismatch("section_size * total_sections must equal azimuth_steps.")
        else:
            self.section_size = max(int(math.ceil(columns_per_tick - 1e-9)), 1)
            self.total_sections = int(math.ceil(self.azimuth_steps / self.section_size))
            if self.total_sections != ticks_per_revolution:
                logger.info(
                    "Rounded scan schedule: %d sections of %d columns, revolution period %.4f s (requested %.4f s)",
                    self.total_sections,
                    self.section_size,
                    self.revolution_period,
                    1.0 / scan_rate,
                )

        self.section = 1

    @property
    def revolution_period(self):
        """Actual time [s] to cover every column once."""
        return self.total_sections / self.tick_rate

    def peek(self):
        """Active azimuth column range [start, stop) of the current section."""
        start = (self.section - 1) * self.section_size
        stop = min(self.section * self.section_size, self.azimuth_steps)
        return start, stop

    def advance(self):
        """Return the active column range, then step to the next section."""
        active = self.peek()
        self.section = self.section % self.total_sections + 1
        return active

    def reset(self):
        self.section = 1


def _is_integral(value, tol=1e-9):
    return abs(value - round(value)) <= tol
