"""pyhdg.postprocess.norms
L2 error norms against an exact solution and the recovery-based cell indicator.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache

import numpy as np

from pyhdg.core.context import CyclePhase, DiscretizationContext
from pyhdg.fem import transform
from pyhdg.fem.reference import get_reference
from pyhdg.integration.quadrature import volume

logger = logging.getLogger(__name__)


@dataclass
class ErrorReport:
    value: float       # ‖u - u_h‖
    gradient: float    # ‖grad u + q_h‖
    post: float        # ‖u - u*‖


@lru_cache(maxsize=None)
def _tabulation(degree: int, n_quad: int):
    pts, wts = volume('quad', n_quad)
    phi, _ = get_reference('quad', degree).tabulate(pts)
    phi_post, _ = get_reference('quad', degree + 1).tabulate(pts)
    geo_N, geo_dN = get_reference('quad', 1).tabulate(pts)
    return wts, phi, phi_post, geo_N, geo_dN


def _cell_fields(ctx, elem_id, n_quad):
    dh = ctx.dof_handler
    el = dh.element
    wts, phi, phi_post, geo_N, geo_dN = _tabulation(dh.degree, n_quad)
    X = ctx.mesh.element_coords(elem_id)
    _, detJ, _ = transform.jacobians(X, geo_dN)
    U = ctx.interior[dh.interior_slice(elem_id)]
    return dict(
        x=transform.map_points(X, geo_N),
        JxW=wts * detJ,
        u_h=phi @ U[el.u_slice],
        q_h=np.column_stack([phi @ U[el.q_slice(0)], phi @ U[el.q_slice(1)]]),
        u_post=phi_post @ ctx.recovery[dh.post_slice(elem_id)],
    )


def compute_errors(ctx: DiscretizationContext) -> ErrorReport:
    """Global L2 errors of ``u_h``, ``q_h`` (against ``-grad u``) and ``u*``."""
    ctx.require_at_least(CyclePhase.POSTPROCESSED, "compute_errors")
    exact = ctx.pde.exact
    if exact is None:
        raise ValueError("PDE data carries no exact solution")
    k = ctx.dof_handler.degree
    e_val = e_grad = e_post = 0.0
    for elem_id in range(ctx.mesh.n_elements):
        c = _cell_fields(ctx, elem_id, k + 2)
        x, y = c["x"][:, 0], c["x"][:, 1]
        u = np.broadcast_to(np.asarray(exact.value(x, y), dtype=float), x.shape)
        gx, gy = exact.gradient(x, y)
        grad = np.column_stack([np.broadcast_to(np.asarray(gx, dtype=float), x.shape),
                                np.broadcast_to(np.asarray(gy, dtype=float), x.shape)])
        e_val += c["JxW"] @ (c["u_h"] - u) ** 2
        e_grad += c["JxW"] @ np.sum((c["q_h"] + grad) ** 2, axis=1)

        cp = _cell_fields(ctx, elem_id, k + 3)
        xp, yp = cp["x"][:, 0], cp["x"][:, 1]
        up = np.broadcast_to(np.asarray(exact.value(xp, yp), dtype=float), xp.shape)
        e_post += cp["JxW"] @ (cp["u_post"] - up) ** 2
    report = ErrorReport(float(np.sqrt(e_val)), float(np.sqrt(e_grad)), float(np.sqrt(e_post)))
    logger.info("Errors: value %.3e, gradient %.3e, post %.3e",
                report.value, report.gradient, report.post)
    return report


def postprocessing_indicator(ctx: DiscretizationContext) -> np.ndarray:
    """Per-cell ``‖u* - u_h‖_K``, the refinement indicator."""
    ctx.require_at_least(CyclePhase.POSTPROCESSED, "postprocessing_indicator")
    k = ctx.dof_handler.degree
    out = np.empty(ctx.mesh.n_elements)
    for elem_id in range(ctx.mesh.n_elements):
        c = _cell_fields(ctx, elem_id, k + 2)
        out[elem_id] = np.sqrt(c["JxW"] @ (c["u_post"] - c["u_h"]) ** 2)
    return out
