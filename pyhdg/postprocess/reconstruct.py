"""pyhdg.postprocess.reconstruct
Recover the interior unknowns ``[q_x, q_y, u]`` from the solved trace.
"""
import logging

from pyhdg.assembly import workstream
from pyhdg.assembly.condensation import local_solve
from pyhdg.assembly.hdg_local import AssemblyMode, LocalAssembler
from pyhdg.assembly.scratch import ScratchPool
from pyhdg.core.context import CyclePhase, DiscretizationContext

logger = logging.getLogger(__name__)


def reconstruct_trace(ctx: DiscretizationContext) -> DiscretizationContext:
    """Per element: ``U = LL^-1 (l_rhs - LF lambda)`` written into ``ctx.interior``."""
    ctx.require(CyclePhase.SOLVED, "reconstruct_trace")
    dh = ctx.dof_handler
    assembler = LocalAssembler(dh, ctx.pde, ctx.params)
    pool = ScratchPool(dh.element, ctx.params.n_workers)
    interior = ctx.interior

    def worker(elem_id, scratch):
        assembler.assemble(elem_id, scratch, AssemblyMode.RECONSTRUCT, trace=ctx.trace)
        # every element owns a disjoint slice, no copier lock needed
        interior[dh.interior_slice(elem_id)] = local_solve(scratch.LL, scratch.l_rhs, elem_id)

    workstream.run(range(ctx.mesh.n_elements), worker, None, pool)
    logger.info("Reconstructed interior fields on %d cells", ctx.mesh.n_elements)
    ctx.advance(CyclePhase.RECONSTRUCTED)
    return ctx
