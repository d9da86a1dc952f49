"""pyhdg.assembly.scratch
Reusable per-worker buffers for the element loop.
"""
from __future__ import annotations

from typing import List

import numpy as np

from pyhdg.fem.spaces import HybridElement


class ScratchData:
    """Local block system of one element.

    ``LL`` (3n x 3n), ``LF`` (3n x 4(k+1)), ``FL`` (4(k+1) x 3n),
    ``FF`` (4(k+1) x 4(k+1)), ``l_rhs`` and ``f_rhs``.  Buffers are allocated
    once and zeroed by :meth:`reset` before each element.
    """

    def __init__(self, element: HybridElement):
        self.element = element
        nl, nt = element.n_local, element.n_trace
        self.LL = np.zeros((nl, nl))
        self.LF = np.zeros((nl, nt))
        self.FL = np.zeros((nt, nl))
        self.FF = np.zeros((nt, nt))
        self.l_rhs = np.zeros(nl)
        self.f_rhs = np.zeros(nt)
        self.elem_id = -1

    def reset(self, elem_id: int = -1) -> None:
        for buf in (self.LL, self.LF, self.FL, self.FF, self.l_rhs, self.f_rhs):
            buf.fill(0.0)
        self.elem_id = elem_id


class ScratchPool:
    """One :class:`ScratchData` per worker, indexed by worker number."""

    def __init__(self, element: HybridElement, n_workers: int = 1):
        self._scratch: List[ScratchData] = [ScratchData(element) for _ in range(max(1, n_workers))]

    def __len__(self) -> int:
        return len(self._scratch)

    def __getitem__(self, worker: int) -> ScratchData:
        return self._scratch[worker]
