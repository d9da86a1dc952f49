"""pyhdg.integration.quadrature
Gauss quadrature on the reference square [-1,1]^2 and its four faces.
"""
import numpy as np
from functools import lru_cache
from numpy.polynomial.legendre import leggauss


# -------------------------------------------------------------------------
# 1‑D Gauss–Legendre
# -------------------------------------------------------------------------
def gauss_legendre(order: int):
    if order < 1:
        raise ValueError(order)
    return leggauss(order)  # (points, weights)


# -------------------------------------------------------------------------
# Tensor‑product construction
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def quad_rule(order: int):
    xi, wi = gauss_legendre(order)
    pts = np.array([[x, y] for x in xi for y in xi])
    wts = np.array([wx * wy for wx in wi for wy in wi])
    return pts, wts


# -------------------------------------------------------------------------
# Face rules (reference domain)
# -------------------------------------------------------------------------
# Unit tangent of each reference face in CCW direction, up to sign the
# direction of d(xi,eta)/dt used for the face measure.
QUAD_FACE_TANGENTS = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 0.0], [0.0, 1.0]])


def edge(element_type: str, edge_index: int, order: int = 2):
    """
    Gauss points on one face of the reference quad.

    Point ``q`` sits at the counter-clockwise face parameter ``t[q]`` of the
    1-D rule, so the same parametrisation serves all four faces.
    """
    if element_type != 'quad':
        raise KeyError(element_type)
    t, wi = gauss_legendre(order)
    if edge_index == 0:   # bottom
        pts = np.column_stack([t, -np.ones_like(t)])
    elif edge_index == 1: # right
        pts = np.column_stack([np.ones_like(t), t])
    elif edge_index == 2: # top
        pts = np.column_stack([-t, np.ones_like(t)])
    elif edge_index == 3: # left
        pts = np.column_stack([-np.ones_like(t), -t])
    else:
        raise IndexError(edge_index)
    return pts, wi


# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------
def volume(element_type: str, order: int = 2):
    if element_type == 'quad':
        return quad_rule(order)
    raise KeyError(element_type)
