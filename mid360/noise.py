"""
Standard normal noise for one tick of rays.

Every ray needs three N(0, 1) values: two angular (yaw, pitch) and one range
value. They are generated as pairs with the Marsaglia polar method and packed
in a reusable (pair_count, 2) buffer, pair_count = ceil(3 * N / 2):

    flat values [0, 2N)   angular noise, ray i -> pair i
    flat values [2N, 3N)  range noise, k-th accepted hit -> flat 2N + k,
                          i.e. pair N + k // 2, component k % 2
    (one unused leftover value when N is odd)

Marsaglia polar method:
    draw x, y ~ U[-1, 1), s = x^2 + y^2
    reject while s >= 1 or s <= 0
    emit (x * f, y * f), f = sqrt(-2 ln(s) / s)

No generator state is shared between draws. Each trial of pair ``i`` in tick
``t`` reads its uniforms from a counter based hash keyed by
(master_seed, t, i, attempt), so a refill is reproducible and independent of
how the pairs are split across worker batches.
"""

import numpy as np

from .errors import InvalidParameter, OutOfRange
from .jobs import BatchExecutor

_GOLDEN_GAMMA = np.uint64(0x9E3779B97F4A7C15)
_MIX_1 = np.uint64(0xBF58476D1CE4E5B9)
_MIX_2 = np.uint64(0x94D049BB133111EB)


def _splitmix64(values):
    """SplitMix64 finalizer, elementwise over a uint64 array (wrapping arithmetic)."""
    z = np.asarray(values, dtype=np.uint64) + _GOLDEN_GAMMA
    z = (z ^ (z >> np.uint64(30))) * _MIX_1
    z = (z ^ (z >> np.uint64(27))) * _MIX_2
    return z ^ (z >> np.uint64(31))


def _uniform_symmetric(key, counters):
    """Uniform draws on [-1, 1) from hashed 64 bit counters (53 bit mantissa)."""
    bits = _splitmix64(key ^ _splitmix64(counters))
    unit = (bits >> np.uint64(11)).astype(np.float64) * (2.0 ** -53)
    return 2.0 * unit - 1.0


def polar_transform(x, y):
    """
    Marsaglia polar acceptance and transform for arrays of uniform pairs.

    :param x: Uniform draws on [-1, 1].
    :param y: Uniform draws on [-1, 1], same shape as x.
    :return: (z0, z1, accepted). z0 and z1 hold the standard normal pair for
             accepted trials (0 < s < 1) and NaN elsewhere.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    s = x * x + y * y
    accepted = (s > 0.0) & (s < 1.0)
    z0 = np.full(s.shape, np.nan)
    z1 = np.full(s.shape, np.nan)
    s_ok = s[accepted]
    factor = np.sqrt(-2.0 * np.log(s_ok) / s_ok)
    z0[accepted] = x[accepted] * factor
    z1[accepted] = y[accepted] * factor
    return z0, z1, accepted


def pair_count_for(ray_count):
    """Number of noise pairs holding 3 values per ray."""
    return (3 * int(ray_count) + 1) // 2


class NoiseSource:
    """
    Reusable noise buffer for up to ``max_rays`` rays per tick.

    :param max_rays:     Largest ray batch of any tick; sizes the buffer once.
    :param master_seed:  Non-negative integer seed of this sensor instance.
    :param executor:     BatchExecutor used to fill the pairs in parallel.
    :param batch_size:   Pairs per executor batch.
    :param max_attempts: Rejection rounds before giving up (each round accepts
                         with probability pi / 4).
    """

    def __init__(self, max_rays, master_seed=0, executor=None, batch_size=64, max_attempts=64):
        if int(max_rays) != max_rays or max_rays < 1:
            raise InvalidParameter("max_rays must be an integer >= 1.")
        if int(master_seed) != master_seed or master_seed < 0:
            raise InvalidParameter("master_seed must be a non-negative integer.")
        if batch_size < 1:
            raise InvalidParameter("batch_size must be >= 1.")
        if max_attempts < 1:
            raise InvalidParameter("max_attempts must be >= 1.")

        self.max_rays = int(max_rays)
        self.master_seed = int(master_seed)
        self.executor = executor if executor is not None else BatchExecutor(0)
        self.batch_size = int(batch_size)
        self.max_attempts = int(max_attempts)

        # 64 bit instance key derived from the master seed.
        self._key = np.random.SeedSequence(self.master_seed).generate_state(1, dtype=np.uint64)

        self.buffer = np.zeros((pair_count_for(self.max_rays), 2), dtype=float)
        self._flat = self.buffer.reshape(-1)  # view, shares memory with buffer
        self.ray_count = 0
        self.tick = None

    def _tick_key(self, tick):
        return self._key ^ _splitmix64(np.array([tick], dtype=np.uint64))

    def _fill_pairs(self, tick_key, start, stop):
        """Fill pairs [start, stop) for one tick; each pair retries on its own counters."""
        out = self.buffer[start:stop]
        pair_index = np.arange(start, stop, dtype=np.uint64)
        pending = np.arange(stop - start)
        attempts = np.uint64(self.max_attempts)

        for attempt in range(self.max_attempts):
            counters = 2 * (pair_index[pending] * attempts + np.uint64(attempt))
            x = _uniform_symmetric(tick_key, counters)
            y = _uniform_symmetric(tick_key, counters + np.uint64(1))
            z0, z1, accepted = polar_transform(x, y)

            rows = pending[accepted]
            out[rows, 0] = z0[accepted]
            out[rows, 1] = z1[accepted]

            pending = pending[~accepted]
            if pending.size == 0:
                return
        raise RuntimeError(
            f"Marsaglia rejection did not converge for {pending.size} pairs after {self.max_attempts} attempts."
        )

    def refill(self, tick, ray_count=None):
        """
        Regenerate the noise for one tick.

        :param tick:      Tick counter, part of the stream key.
        :param ray_count: Rays in this tick, defaults to max_rays.
        :return: The buffer view of the pairs written this tick.
        """
        ray_count = self.max_rays if ray_count is None else int(ray_count)
        if not (0 <= ray_count <= self.max_rays):
            raise InvalidParameter(f"ray_count must be in [0, {self.max_rays}], got {ray_count}.")
        if int(tick) != tick or tick < 0:
            raise InvalidParameter("tick must be a non-negative integer.")

        pair_count = pair_count_for(ray_count)
        tick_key = self._tick_key(int(tick))
        self.executor.run(
            lambda start, stop: self._fill_pairs(tick_key, start, stop),
            pair_count,
            self.batch_size,
        )
        self.ray_count = ray_count
        self.tick = int(tick)
        return self.buffer[:pair_count]

    def angular_view(self):
        """(ray_count, 2) view of the angular noise pairs of the current tick."""
        return self.buffer[: self.ray_count]

    def angular(self, ray_index):
        """Angular (yaw, pitch) standard normal pair of one ray."""
        if not (0 <= ray_index < self.ray_count):
            raise OutOfRange(f"ray index {ray_index} outside [0, {self.ray_count}).")
        return self.buffer[ray_index]

    def distance(self, accepted_index):
        """Range noise value consumed by the ``accepted_index``-th accepted hit."""
        if not (0 <= accepted_index < self.ray_count):
            raise OutOfRange(f"accepted index {accepted_index} outside [0, {self.ray_count}).")
        return float(self._flat[2 * self.ray_count + accepted_index])
