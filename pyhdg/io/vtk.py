import logging
import os
from typing import Tuple

import numpy as np
import meshio

from pyhdg.core.context import CyclePhase, DiscretizationContext
from pyhdg.fem import transform
from pyhdg.fem.reference import get_reference

logger = logging.getLogger(__name__)


def _pad3(xy: np.ndarray) -> np.ndarray:
    return np.pad(xy, ((0, 0), (0, 1)), constant_values=0)


def _sub_lattice(n_sub: int):
    """Reference points (eta outer, xi inner) and sub-quad connectivity (CCW)."""
    t = np.linspace(-1.0, 1.0, n_sub + 1)
    pts = np.array([[xi, eta] for eta in t for xi in t])
    cells = []
    for j in range(n_sub):
        for i in range(n_sub):
            bl = j * (n_sub + 1) + i
            cells.append([bl, bl + 1, bl + n_sub + 2, bl + n_sub + 1])
    return pts, np.array(cells, dtype=int)


def interior_mesh(ctx: DiscretizationContext) -> meshio.Mesh:
    """
    Discontinuous sampling of ``u_h``, ``q_h`` and ``u*``: every element gets
    its own ``(k+1) x (k+1)`` sub-lattice of quads.
    """
    dh = ctx.dof_handler
    el = dh.element
    k = dh.degree
    ref_pts, sub_cells = _sub_lattice(k + 1)
    phi, _ = get_reference('quad', k).tabulate(ref_pts)
    phi_post, _ = get_reference('quad', k + 1).tabulate(ref_pts)
    geo_N, _ = get_reference('quad', 1).tabulate(ref_pts)

    n_pts = len(ref_pts)
    points, cells = [], []
    solution, gradient, u_post = [], [], []
    for elem_id in range(ctx.mesh.n_elements):
        X = ctx.mesh.element_coords(elem_id)
        U = ctx.interior[dh.interior_slice(elem_id)]
        points.append(transform.map_points(X, geo_N))
        cells.append(sub_cells + elem_id * n_pts)
        solution.append(phi @ U[el.u_slice])
        gradient.append(np.column_stack([phi @ U[el.q_slice(0)], phi @ U[el.q_slice(1)]]))
        u_post.append(phi_post @ ctx.recovery[dh.post_slice(elem_id)])

    return meshio.Mesh(
        _pad3(np.vstack(points)),
        [meshio.CellBlock('quad', np.vstack(cells))],
        point_data={
            "solution": np.concatenate(solution),
            "gradient": _pad3(np.vstack(gradient)),
            "u_post": np.concatenate(u_post),
        },
    )


def skeleton_mesh(ctx: DiscretizationContext) -> meshio.Mesh:
    """Trace values on the face nodes, one polyline per face."""
    dh = ctx.dof_handler
    nf = dh.element.n_face_dofs
    points = np.vstack([dh.face_dof_points(g) for g in range(ctx.mesh.n_edges)])
    local = np.column_stack([np.arange(nf - 1), np.arange(1, nf)])
    lines = np.vstack([local + g * nf for g in range(ctx.mesh.n_edges)])
    return meshio.Mesh(_pad3(points), [meshio.CellBlock('line', lines)],
                       point_data={"lambda": np.asarray(ctx.trace, dtype=float)})


def export_vtk(ctx: DiscretizationContext, directory: str, mode: str, cycle: int) -> Tuple[str, str]:
    """
    Write ``solution-{mode}-q{k}-{cycle}.vtu`` and the matching ``-face-`` file.

    Returns both paths.
    """
    ctx.require_at_least(CyclePhase.POSTPROCESSED, "export_vtk")
    os.makedirs(directory, exist_ok=True)
    k = ctx.dof_handler.degree
    interior_path = os.path.join(directory, f"solution-{mode}-q{k}-{cycle:02d}.vtu")
    face_path = os.path.join(directory, f"solution-{mode}-face-q{k}-{cycle:02d}.vtu")
    interior_mesh(ctx).write(interior_path)
    skeleton_mesh(ctx).write(face_path)
    logger.info("Solution exported to %s and %s", interior_path, face_path)
    ctx.advance(CyclePhase.OUTPUT)
    return interior_path, face_path
