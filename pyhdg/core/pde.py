"""pyhdg.core.pde
Problem data of the steady convection-diffusion equation

    q + grad u = 0,   div(q + c u) = f,

with unit diffusion.  All callables are pure and vectorised: they take
coordinate arrays ``x, y`` of equal shape and return arrays of that shape
(or a pair of arrays for vector data).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np

ScalarFn = Callable[[np.ndarray, np.ndarray], np.ndarray]
VectorFn = Callable[[np.ndarray, np.ndarray], Tuple[np.ndarray, np.ndarray]]
BoundaryData = Union[ScalarFn, Dict[str, ScalarFn]]


def _zero(x, y):
    return np.zeros_like(np.asarray(x, dtype=float))


def _no_convection(x, y):
    z = np.zeros_like(np.asarray(x, dtype=float))
    return z, z


@dataclass(frozen=True)
class ExactSolution:
    """Reference solution used for error measurement."""
    value: ScalarFn
    gradient: VectorFn


@dataclass(frozen=True)
class PDEData:
    """
    Data of one problem.

    ``dirichlet`` and ``neumann`` are either one callable for every face of
    that kind or a dict keyed by boundary marker.  ``neumann`` is the total
    outward normal flux ``(q + c u)·n``.
    """
    source: ScalarFn = _zero
    convection: VectorFn = _no_convection
    dirichlet: BoundaryData = _zero
    neumann: BoundaryData = _zero
    exact: Optional[ExactSolution] = None

    def eval_source(self, x: np.ndarray) -> np.ndarray:
        return _as_values(self.source(x[:, 0], x[:, 1]), len(x))

    def eval_convection(self, x: np.ndarray) -> np.ndarray:
        """(n, 2) convection velocity at points ``x`` (n, 2)."""
        cx, cy = self.convection(x[:, 0], x[:, 1])
        return np.column_stack([_as_values(cx, len(x)), _as_values(cy, len(x))])

    def eval_dirichlet(self, marker: str, x: np.ndarray) -> np.ndarray:
        return _as_values(_pick(self.dirichlet, marker, "Dirichlet")(x[:, 0], x[:, 1]), len(x))

    def eval_neumann(self, marker: str, x: np.ndarray) -> np.ndarray:
        return _as_values(_pick(self.neumann, marker, "Neumann")(x[:, 0], x[:, 1]), len(x))


def _pick(data: BoundaryData, marker: str, what: str) -> ScalarFn:
    if callable(data):
        return data
    try:
        return data[marker]
    except KeyError:
        raise KeyError(f"No {what} data for boundary marker '{marker}'.") from None


def _as_values(values, n: int) -> np.ndarray:
    # sympy-lambdified constants come back as scalars
    return np.broadcast_to(np.asarray(values, dtype=float), (n,)).copy()
