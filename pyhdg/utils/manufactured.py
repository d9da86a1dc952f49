"""pyhdg.utils.manufactured
Manufactured problems built with SymPy.

Given ``u`` and ``c`` the source is ``f = -Δu + div(c u)``; Dirichlet data is
``u`` itself and Neumann data on the sides of an axis-aligned rectangle is
the outward total flux ``(-grad u + c u)·n``.
"""
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
import sympy as sp

from pyhdg.core.pde import ExactSolution, PDEData

x, y = sp.symbols("x y")

GAUSSIAN_CENTERS = ((-0.5, 0.5), (-0.5, -0.5), (0.5, -0.5))
GAUSSIAN_WIDTH = sp.Rational(1, 5)

_SIDE_NORMALS = {"left": (-1, 0), "right": (1, 0), "bottom": (0, -1), "top": (0, 1)}


def _scalar(expr):
    return sp.lambdify((x, y), expr, "numpy")


def _vector(exprs):
    fx, fy = _scalar(exprs[0]), _scalar(exprs[1])

    def f(X, Y):
        return fx(X, Y), fy(X, Y)
    return f


def manufactured_problem(u_expr, c_expr: Sequence = (0, 0)) -> PDEData:
    """PDE data whose exact solution is the SymPy expression ``u_expr``."""
    u = sp.sympify(u_expr)
    c = [sp.sympify(ci) for ci in c_expr]
    grad = [sp.diff(u, x), sp.diff(u, y)]
    flux = [-grad[0] + c[0] * u, -grad[1] + c[1] * u]
    source = sp.diff(flux[0], x) + sp.diff(flux[1], y)

    neumann = {side: _scalar(nx * flux[0] + ny * flux[1])
               for side, (nx, ny) in _SIDE_NORMALS.items()}
    return PDEData(
        source=_scalar(source),
        convection=_vector(c),
        dirichlet=_scalar(u),
        neumann=neumann,
        exact=ExactSolution(value=_scalar(u), gradient=_vector(grad)),
    )


def gaussian_solution(centers=GAUSSIAN_CENTERS, width=GAUSSIAN_WIDTH):
    """Sum of normalised Gaussian bumps."""
    norm = (sp.sqrt(2 * sp.pi) * width) ** 2
    return sum(sp.exp(-((x - cx) ** 2 + (y - cy) ** 2) / width ** 2) / norm
               for cx, cy in centers)


def gaussian_problem(convection: Tuple = (y, -x)) -> PDEData:
    """Three Gaussians on [-1,1]^2 advected by a rotating field."""
    return manufactured_problem(gaussian_solution(), convection)
