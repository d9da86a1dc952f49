"""pyhdg.assembly.workstream
Element loop with per-worker scratch and a serialised copier.

``run`` splits the element range into contiguous chunks, one per worker.
Every worker calls ``worker(elem_id, scratch)`` with its own scratch and
hands the returned copy data to ``copier``, which runs under a single lock
so that writes into shared global data never interleave.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, TypeVar

import numpy as np

from pyhdg.assembly.scratch import ScratchPool, ScratchData

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunk_ranges(n_items: int, n_chunks: int):
    """Contiguous, balanced ``(start, stop)`` ranges covering ``range(n_items)``."""
    bounds = np.linspace(0, n_items, max(1, n_chunks) + 1).astype(int)
    return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


def run(cells: Sequence[int],
        worker: Callable[[int, ScratchData], T],
        copier: Optional[Callable[[T], None]],
        pool: ScratchPool) -> None:
    n_workers = len(pool)
    lock = threading.Lock()

    def _process(worker_idx: int, start: int, stop: int) -> None:
        scratch = pool[worker_idx]
        for pos in range(start, stop):
            elem_id = cells[pos]
            scratch.reset(elem_id)
            data = worker(elem_id, scratch)
            if copier is not None:
                with lock:
                    copier(data)

    ranges = chunk_ranges(len(cells), n_workers)
    if n_workers == 1 or len(ranges) <= 1:
        for start, stop in ranges:
            _process(0, start, stop)
        return

    logger.debug("Element loop over %d cells on %d workers", len(cells), len(ranges))
    with ThreadPoolExecutor(max_workers=len(ranges)) as executor:
        futures = [executor.submit(_process, w, a, b) for w, (a, b) in enumerate(ranges)]
        for fut in futures:
            fut.result()  # re-raises the first worker error
