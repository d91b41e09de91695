"""
Batched parallel map over index ranges.

Per tick kernels (noise refill, direction composition) are pure functions of
an index range that write into disjoint slices of preallocated buffers. The
executor splits [0, count) into fixed size batches, runs kernel(start, stop)
for each batch on a thread pool and joins before returning, so the dependent
stage can safely read the buffers afterwards.
"""

from concurrent.futures import ThreadPoolExecutor

from .errors import InvalidParameter


class BatchExecutor:
    """
    Thread-pool "parallel for" with an explicit join.

    :param num_workers: Worker threads. 0 or 1 runs every batch inline on the
                        calling thread, in index order.
    """

    def __init__(self, num_workers=0):
        if int(num_workers) != num_workers or num_workers < 0:
            raise InvalidParameter("num_workers must be an integer >= 0.")
        self.num_workers = int(num_workers)
        self._pool = None
        if self.num_workers > 1:
            self._pool = ThreadPoolExecutor(max_workers=self.num_workers, thread_name_prefix="mid360-batch")

    @staticmethod
    def batches(count, batch_size):
        """Yield (start, stop) pairs covering [0, count) in batch_size steps."""
        if batch_size < 1:
            raise InvalidParameter("batch_size must be >= 1.")
        for start in range(0, count, batch_size):
            yield start, min(start + batch_size, count)

    def run(self, kernel, count, batch_size):
        """
        Apply ``kernel(start, stop)`` to every batch of [0, count) and wait for all.

        Exceptions raised inside a batch are re-raised on the calling thread
        once every batch has finished.
        """
        ranges = list(self.batches(count, batch_size))
        if self._pool is None or len(ranges) <= 1:
            for start, stop in ranges:
                kernel(start, stop)
            return

        futures = [self._pool.submit(kernel, start, stop) for start, stop in ranges]
        errors = [future.exception() for future in futures]  # blocks until each batch is done
        for error in errors:
            if error is not None:
                raise error

    def shutdown(self):
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
