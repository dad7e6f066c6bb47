"""Worker-count control and guided scheduling of per-query work."""

import os
import threading
from concurrent.futures import ThreadPoolExecutor

_num_threads = None


def set_num_threads(n):
    """Set the number of worker threads; n <= 0 resets to the CPU count."""
    global _num_threads
    n = int(n)
    _num_threads = n if n > 0 else None


def get_num_threads():
    if _num_threads is not None:
        return _num_threads
    return os.cpu_count() or 1


def _guided_size(remaining, n_workers):
    return max(1, -(-remaining // (2 * n_workers)))


def guided_chunks(n_items, n_workers):
    """Yield (start, stop) ranges with sizes shrinking as work runs out."""
    start = 0
    while start < n_items:
        stop = min(n_items, start + _guided_size(n_items - start, n_workers))
        yield start, stop
        start = stop


class _GuidedCursor:
    """Shared position in the item range, handed out chunk by chunk."""

    def __init__(self, n_items, n_workers):
        self._chunks = guided_chunks(n_items, n_workers)
        self._lock = threading.Lock()

    def next_chunk(self):
        with self._lock:
            return next(self._chunks, None)


def run_guided(fn, n_items, n_workers):
    """Call ``fn(item, slot)`` for every item in ``range(n_items)``.

    ``n_workers`` tasks pull chunks from a shared cursor; ``slot`` is the
    0-based id of the task running the item, so per-slot scratch buffers
    are written by exactly one thread. Returns after every task finished;
    the first worker exception is re-raised in the caller.
    """
    n_workers = max(1, min(int(n_workers), n_items))
    if n_items == 0:
        return
    if n_workers == 1:
        for item in range(n_items):
            fn(item, 0)
        return

    cursor = _GuidedCursor(n_items, n_workers)

    def _work(slot):
        while True:
            chunk = cursor.next_chunk()
            if chunk is None:
                return
            for item in range(*chunk):
                fn(item, slot)

    with ThreadPoolExecutor(max_workers=n_workers) as executor:
        futures = [executor.submit(_work, slot) for slot in range(n_workers)]
        for future in futures:
            future.result()
