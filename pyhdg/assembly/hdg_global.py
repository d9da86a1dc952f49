"""pyhdg.assembly.hdg_global
Assembly of the condensed skeleton system.
"""
from __future__ import annotations

import logging

import numpy as np
import scipy.sparse as sp

from pyhdg.assembly import workstream
from pyhdg.assembly.condensation import condense
from pyhdg.assembly.constraints import (AffineConstraints, make_hanging_node_constraints,
                                        project_boundary_values)
from pyhdg.assembly.hdg_local import AssemblyMode, LocalAssembler
from pyhdg.assembly.scratch import ScratchPool
from pyhdg.core.context import CyclePhase, DiscretizationContext
from pyhdg.core.dofhandler import HybridDofHandler
from pyhdg.errors import MeshStateError

logger = logging.getLogger(__name__)


class TripletSink:
    """COO accumulator for the global matrix plus a dense rhs."""

    def __init__(self, n_dofs: int):
        self.n_dofs = n_dofs
        self.rows, self.cols, self.data = [], [], []
        self.rhs = np.zeros(n_dofs)

    def add(self, rows, cols, block) -> None:
        rr, cc = np.meshgrid(rows, cols, indexing='ij')
        self.rows.extend(rr.ravel())
        self.cols.extend(cc.ravel())
        self.data.extend(np.asarray(block).ravel())

    def add_rhs(self, rows, values) -> None:
        np.add.at(self.rhs, rows, values)

    def to_csr(self, pattern: sp.spmatrix | None = None) -> sp.csr_matrix:
        """Merge the triplets; entries outside ``pattern`` raise :class:`MeshStateError`."""
        # duplicate (i, j) pairs are summed by the conversion
        A = sp.csr_matrix((self.data, (self.rows, self.cols)), shape=(self.n_dofs, self.n_dofs))
        if pattern is not None:
            stray = A - A.multiply(pattern)
            stray.eliminate_zeros()
            if stray.nnz:
                raise MeshStateError(
                    f"{stray.nnz} skeleton couplings fall outside the sparsity pattern.")
        return A


def setup_system(ctx: DiscretizationContext) -> DiscretizationContext:
    """Number the dofs, build the constraints and size all vectors."""
    ctx.require(CyclePhase.CREATED, "setup_system")
    params = ctx.params
    dh = HybridDofHandler(ctx.mesh, params.degree, params.quadrature_order)
    constraints = AffineConstraints(dh.n_trace_dofs)
    make_hanging_node_constraints(dh, constraints)
    n_dirichlet = project_boundary_values(dh, ctx.pde, params.boundary_kinds, constraints)
    if n_dirichlet == 0:
        logger.warning("No Dirichlet faces; the skeleton system may be singular.")
    constraints.close()

    ctx.dof_handler = dh
    ctx.constraints = constraints
    ctx.sparsity_pattern = dh.sparsity_pattern(constraints)
    ctx.trace = np.zeros(dh.n_trace_dofs)
    ctx.interior = np.zeros(dh.n_interior_dofs)
    ctx.recovery = np.zeros(dh.n_post_dofs)
    ctx.advance(CyclePhase.SETUP)
    return ctx


def assemble_system(ctx: DiscretizationContext) -> DiscretizationContext:
    """Condense every element and accumulate the skeleton matrix and rhs."""
    ctx.require(CyclePhase.SETUP, "assemble_system")
    dh = ctx.dof_handler
    assembler = LocalAssembler(dh, ctx.pde, ctx.params)
    pool = ScratchPool(dh.element, ctx.params.n_workers)
    sink = TripletSink(dh.n_trace_dofs)

    def worker(elem_id, scratch):
        assembler.assemble(elem_id, scratch, AssemblyMode.CONDENSE)
        FF_c, f_c = condense(scratch)
        return dh.element_trace_dofs(elem_id), FF_c, f_c

    def copier(data):
        dofs, FF_c, f_c = data
        ctx.constraints.distribute_local_to_global(FF_c, f_c, dofs, sink)

    workstream.run(range(ctx.mesh.n_elements), worker, copier, pool)
    ctx.system_matrix = sink.to_csr(ctx.sparsity_pattern)
    ctx.system_rhs = sink.rhs
    logger.info("Assembled skeleton system: %d dofs, %d nonzeros",
                dh.n_trace_dofs, ctx.system_matrix.nnz)
    ctx.advance(CyclePhase.ASSEMBLED)
    return ctx
