from functools import lru_cache
import sympy as sp
import numpy as np


@lru_cache(maxsize=None)
def _lagrange_basis_1d(n: int, max_deriv_order: int):
    """Return 1D Lagrange basis + derivatives as NUMPY-callable lambdas."""
    x = sp.symbols('x')
    nodes = np.linspace(-1.0, 1.0, n+1)
    L = []
    dL = {k: [] for k in range(max_deriv_order+1)}
    for i, xi in enumerate(nodes):
        num = 1
        den = 1.0
        for j, xj in enumerate(nodes):
            if i == j:
                continue
            num *= (x - xj)
            den *= (xi - xj)
        Li = sp.expand(num/den)
        L.append(sp.lambdify(x, Li, 'numpy'))
        for k in range(max_deriv_order+1):
            dL[k].append(sp.lambdify(x, sp.diff(Li, x, k), 'numpy'))
    return nodes, L, dL


def _eval_1d(vals, z):
    # constant lambdas return scalars, so evaluate one point at a time
    return np.array([f(z) for f in vals], dtype=float)


@lru_cache(maxsize=None)
def line_pn(n: int, max_deriv_order: int = 1):
    """
    Lagrange P_n on [-1,1] with equispaced nodes.
    Returns: (shape_fn, deriv_fns) with shape_fn(t) -> (n+1,)
    and deriv_fns[(a,)](t) -> (n+1,).
    """
    _, L, dL = _lagrange_basis_1d(n, max_deriv_order)

    def shape(t):
        return _eval_1d(L, t)

    derivs = {}
    for a in range(max_deriv_order+1):
        def make(a=a):
            def d(t):
                return _eval_1d(dL[a], t)
            return d
        derivs[(a,)] = make()
    return shape, derivs


@lru_cache(maxsize=None)
def quad_qn(n: int, max_deriv_order: int = 1):
    """
    Tensor-product Q_n on [-1,1]^2.
    Returns: (shape_fn, deriv_fns) where
      shape_fn(xi,eta) -> ( (n+1)^2, )
      deriv_fns[(ax,ay)](xi,eta) -> ( (n+1)^2, ), ax+ay<=max_deriv_order
    Stacking order is (eta outer, xi inner): index = j*(n+1) + i
    """
    _, L, dL = _lagrange_basis_1d(n, max_deriv_order)

    def shape(xi, eta):
        lx = _eval_1d(L, xi)
        ly = _eval_1d(L, eta)
        return np.outer(ly, lx).reshape(-1)

    derivs = {}
    for ax in range(max_deriv_order+1):
        for ay in range(max_deriv_order+1):
            if ax + ay > max_deriv_order:
                continue
            def make(ax=ax, ay=ay):
                def d(xi, eta):
                    dx = _eval_1d(dL[ax], xi)
                    dy = _eval_1d(dL[ay], eta)
                    return np.outer(dy, dx).reshape(-1)
                return d
            derivs[(ax, ay)] = make()
    return shape, derivs
