"""
Error taxonomy for the scan simulator.

Construction problems are fatal and raised as InvalidParameter (a ValueError),
table lookups outside their coverage raise OutOfRange (an IndexError), and
intersection primitives signal an unusable surface with IntersectionError so
that a single bad ray can be dropped without aborting the tick.
"""


class Mid360Error(Exception):
    """Base class for every error raised by the simulator."""


class InvalidParameter(Mid360Error, ValueError):
    """Bad grid dimensions, rates, sigmas or distance bounds."""


class SchedulingMismatch(InvalidParameter):
    """Tick rate and scan rate do not split the revolution into whole sections."""


class OutOfRange(Mid360Error, IndexError):
    """Query outside the covered range of a table (az transform track or ray grid)."""


class IntersectionError(Mid360Error, RuntimeError):
    """Raised by an intersection primitive when a hit surface cannot be evaluated."""


class SensorClosed(Mid360Error, RuntimeError):
    """The sensor was used after close() released its buffers."""
