"""pyhdg.postprocess.superconvergence
Element-wise recovery of a ``Q_{k+1}`` potential from ``(q_h, u_h)``.

On every element ``u*`` solves

    (grad u*, grad w) = -(q_h, grad w)   for all w in Q_{k+1} with zero mean,
    (u*, 1)           = (u_h, 1),

which converges one order faster than ``u_h`` in L2.  The first test
function's stiffness row is replaced by the mean constraint.
"""
import logging

import numpy as np

from pyhdg.assembly import workstream
from pyhdg.assembly.condensation import local_solve
from pyhdg.assembly.scratch import ScratchPool
from pyhdg.core.context import CyclePhase, DiscretizationContext

logger = logging.getLogger(__name__)


def local_recovery_system(element, mesh, elem_id, U):
    """Recovery matrix and rhs of one element for interior values ``U``."""
    _, JxW, phi, grad_phi, phi_k, _ = element.reinit_post(mesh, elem_id)
    q_h = np.column_stack([phi_k @ U[element.q_slice(0)], phi_k @ U[element.q_slice(1)]])
    u_h = phi_k @ U[element.u_slice]

    K = np.einsum('q,qia,qja->ij', JxW, grad_phi, grad_phi)
    b = -np.einsum('q,qia,qa->i', JxW, grad_phi, q_h)
    K[0, :] = phi.T @ JxW
    b[0] = JxW @ u_h
    return K, b


def postprocess(ctx: DiscretizationContext) -> DiscretizationContext:
    ctx.require(CyclePhase.RECONSTRUCTED, "postprocess")
    dh = ctx.dof_handler
    element, mesh = dh.element, ctx.mesh
    recovery = ctx.recovery

    def worker(elem_id, scratch):
        K, b = local_recovery_system(element, mesh, elem_id, ctx.interior[dh.interior_slice(elem_id)])
        recovery[dh.post_slice(elem_id)] = local_solve(K, b, elem_id)

    workstream.run(range(mesh.n_elements), worker, None, ScratchPool(element, ctx.params.n_workers))
    logger.info("Post-processed %d cells into Q%d", mesh.n_elements, dh.degree + 1)
    ctx.advance(CyclePhase.POSTPROCESSED)
    return ctx
