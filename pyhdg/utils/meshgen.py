"""pyhdg.utils.meshgen
Structured quadrilateral meshes for the refinement driver and tests.
"""
import numpy as np
import numba
from typing import Tuple, Optional

from pyhdg.core.mesh import Mesh
from pyhdg.core.topology import Node

__all__ = ["structured_quad", "hyper_cube_mesh", "tag_rectangle_sides"]


@numba.jit(nopython=True, cache=True)
def _translate_coords(coords: np.ndarray, offset: np.ndarray):
    """Translates all node coordinates by a given offset vector."""
    coords[:, 0] += offset[0]
    coords[:, 1] += offset[1]
    return coords


@numba.jit(nopython=True, parallel=True, cache=True)
def _structured_q1_numba(Lx: float, Ly: float, nx: int, ny: int):
    """
    Raw arrays of a structured bilinear quad mesh on [0, Lx] x [0, Ly].

    Elements are returned in lattice order (eta outer, xi inner) and corners
    in CCW order.
    """
    n_x = nx + 1
    n_y = ny + 1
    nodes_coords = np.zeros((n_x * n_y, 2), dtype=np.float64)
    x_coords = np.linspace(0.0, Lx, n_x)
    y_coords = np.linspace(0.0, Ly, n_y)
    for j in numba.prange(n_y):
        for i in range(n_x):
            nodes_coords[j * n_x + i, 0] = x_coords[i]
            nodes_coords[j * n_x + i, 1] = y_coords[j]

    num_elements = nx * ny
    elements = np.empty((num_elements, 4), dtype=np.int64)
    corners = np.empty((num_elements, 4), dtype=np.int64)
    for el in numba.prange(num_elements):
        ej = el // nx
        ei = el % nx
        bl = ej * n_x + ei
        br = bl + 1
        tl = bl + n_x
        tr = tl + 1
        elements[el, 0] = bl
        elements[el, 1] = br
        elements[el, 2] = tl
        elements[el, 3] = tr
        corners[el, 0] = bl
        corners[el, 1] = br
        corners[el, 2] = tr
        corners[el, 3] = tl
    return nodes_coords, elements, corners


def structured_quad(Lx: float, Ly: float, *, nx: int, ny: int,
                    offset: Optional[Tuple[float, float]] = None):
    """
    Structured bilinear quadrilateral mesh data.

    Returns node objects, element connectivity (lattice order) and CCW
    corner connectivity, ready for :class:`Mesh`.
    """
    if nx < 1 or ny < 1:
        raise ValueError("nx and ny must be positive integers.")
    nodes_coords, elements, corners = _structured_q1_numba(float(Lx), float(Ly), int(nx), int(ny))
    if offset is not None:
        nodes_coords = _translate_coords(nodes_coords, np.array(offset, dtype=np.float64))
    node_objects = [Node(id=i, x=float(c[0]), y=float(c[1])) for i, c in enumerate(nodes_coords)]
    return node_objects, elements, corners


def tag_rectangle_sides(mesh: Mesh, lower: Tuple[float, float], upper: Tuple[float, float],
                        tol: float = 1e-12) -> Mesh:
    """Mark boundary faces of a rectangle as 'left', 'right', 'bottom', 'top'."""
    (x0, y0), (x1, y1) = lower, upper
    mesh.tag_boundary_edges({
        "left": lambda x, y: abs(x - x0) < tol,
        "right": lambda x, y: abs(x - x1) < tol,
        "bottom": lambda x, y: abs(y - y0) < tol,
        "top": lambda x, y: abs(y - y1) < tol,
    })
    return mesh


def hyper_cube_mesh(n: int, lower: float = -1.0, upper: float = 1.0) -> Mesh:
    """n x n square mesh on [lower, upper]^2 with tagged sides."""
    L = upper - lower
    nodes, elems, corners = structured_quad(L, L, nx=n, ny=n, offset=(lower, lower))
    mesh = Mesh(nodes, elems, corners, element_type='quad')
    return tag_rectangle_sides(mesh, (lower, lower), (upper, upper))
