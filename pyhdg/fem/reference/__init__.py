# pyhdg.fem.reference
"""
Order-agnostic reference-element factory.
"""
from functools import lru_cache
from importlib import import_module
import numpy as np


class Ref:
    """Lagrange basis on a reference cell (``dim`` = 1 for the line, 2 for the quad)."""

    def __init__(self, shape_lambda, deriv_lambdas, dim, n_basis):
        self.shape_lambda = shape_lambda
        self.deriv_lambdas = deriv_lambdas
        self.dim = dim
        self.n_basis = n_basis

    @lru_cache(maxsize=None)
    def shape(self, *coords):
        return np.asarray(self.shape_lambda(*coords), dtype=float).ravel()

    @lru_cache(maxsize=None)
    def derivative(self, *coords_and_alpha):
        coords, alpha = coords_and_alpha[:self.dim], tuple(coords_and_alpha[self.dim:])
        if alpha not in self.deriv_lambdas:
            raise ValueError(f"Derivative order {alpha} not computed.")
        return np.asarray(self.deriv_lambdas[alpha](*coords), dtype=float).ravel()

    @lru_cache(maxsize=None)
    def grad(self, *coords):
        """(n_basis, dim) reference gradient."""
        cols = []
        for d in range(self.dim):
            alpha = tuple(1 if a == d else 0 for a in range(self.dim))
            cols.append(self.derivative(*coords, *alpha))
        return np.column_stack(cols)

    def tabulate(self, points):
        """Values (n_pts, n_basis) and gradients (n_pts, n_basis, dim) at ``points``."""
        pts = np.asarray(points, dtype=float).reshape(-1, self.dim)
        vals = np.array([self.shape(*map(float, p)) for p in pts])
        grads = np.array([self.grad(*map(float, p)) for p in pts])
        return vals, grads


@lru_cache(maxsize=None)
def get_reference(element_type: str, poly_order: int = 1, max_deriv_order: int = 1):
    module = import_module("pyhdg.fem.reference.quad_qn")
    if element_type == "quad":
        shape_l, deriv_lambdas = module.quad_qn(poly_order, max_deriv_order)
        return Ref(shape_l, deriv_lambdas, 2, (poly_order + 1) ** 2)
    if element_type == "line":
        shape_l, deriv_lambdas = module.line_pn(poly_order, max_deriv_order)
        return Ref(shape_l, deriv_lambdas, 1, poly_order + 1)
    raise KeyError(element_type)
