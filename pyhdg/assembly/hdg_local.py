"""pyhdg.assembly.hdg_local
Element kernels of the hybridised mixed method for

    q + grad u = 0,   div(q + c u) = f.

One call fills the local block system of an element,

    [ LL  LF ] [ U      ]   [ l_rhs ]
    [ FL  FF ] [ Lambda ] = [ f_rhs ],

where ``U = [q_x, q_y, u]`` are the interior unknowns and ``Lambda`` the
trace unknowns on the four faces.  The skeleton rows state conservation of
the numerical flux ``q·n + c·n lambda + tau (u - lambda)`` across every face.
"""
from __future__ import annotations

import enum
import logging
from typing import Optional

import numpy as np

from pyhdg.assembly.scratch import ScratchData
from pyhdg.config import HDGParameters
from pyhdg.core.dofhandler import HybridDofHandler
from pyhdg.core.pde import PDEData
from pyhdg.errors import SingularLocalBlockError

logger = logging.getLogger(__name__)


class AssemblyMode(enum.Enum):
    CONDENSE = "condense"          # full local system incl. FF and Neumann data
    RECONSTRUCT = "reconstruct"    # known trace moved to the interior rhs


def stabilization_parameter(tau_diffusion: float, c_dot_n: np.ndarray) -> np.ndarray:
    """``tau = tau_diffusion + |c·n|`` at each face quadrature point."""
    tau = tau_diffusion + np.abs(np.asarray(c_dot_n, dtype=float))
    if not np.all(np.isfinite(tau)) or np.any(tau <= 0.0):
        raise SingularLocalBlockError("stabilisation parameter must be finite and strictly positive")
    return tau


def _mass(W, a, b):
    return np.einsum('q,qi,qj->ij', W, a, b)


class LocalAssembler:
    """Fills :class:`ScratchData` for one element at a time.

    The assembler itself is stateless between elements; all per-element
    storage lives in the scratch passed in by the caller.
    """

    def __init__(self, dof_handler: HybridDofHandler, pde: PDEData, params: HDGParameters):
        self.dof_handler = dof_handler
        self.mesh = dof_handler.mesh
        self.element = dof_handler.element
        self.pde = pde
        self.params = params
        self._neumann_faces = frozenset(dof_handler.neumann_faces(params.boundary_kinds))

    def assemble(self, elem_id: int, scratch: ScratchData,
                 mode: AssemblyMode = AssemblyMode.CONDENSE,
                 trace: Optional[np.ndarray] = None) -> ScratchData:
        if mode is AssemblyMode.RECONSTRUCT and trace is None:
            raise ValueError("reconstruct mode needs the solved trace vector")
        el = self.element
        us = el.u_slice
        qs = (el.q_slice(0), el.q_slice(1))
        LL, LF, FL, FF = scratch.LL, scratch.LF, scratch.FL, scratch.FF
        l_rhs, f_rhs = scratch.l_rhs, scratch.f_rhs

        cell, faces = el.reinit(self.mesh, elem_id)
        W, phi, G = cell.JxW, cell.phi, cell.grad_phi

        # ---- volume terms ------------------------------------------------
        M = _mass(W, phi, phi)
        c = self.pde.eval_convection(cell.x)
        grad_dot_c = np.einsum('qid,qd->qi', G, c)
        for d in range(2):
            B = _mass(W, G[:, :, d], phi)        # (d_d phi_i, phi_j)
            LL[qs[d], qs[d]] += M
            LL[qs[d], us] -= B
            LL[us, qs[d]] += B.T
        LL[us, us] -= _mass(W, grad_dot_c, phi)
        l_rhs[us] += phi.T @ (W * self.pde.eval_source(cell.x))

        # ---- face terms --------------------------------------------------
        elem = self.mesh.elements_list[elem_id]
        for f, fv in enumerate(faces):
            cs = el.face_slice(f)
            Wf, phi_f, psi, n = fv.JxW, fv.phi, fv.psi, fv.normal
            c_n = self.pde.eval_convection(fv.x) @ n
            tau = stabilization_parameter(self.params.tau_diffusion, c_n)

            LL[us, us] += _mass(Wf * tau, phi_f, phi_f)
            E = _mass(Wf, phi_f, psi)
            for d in range(2):
                LF[qs[d], cs] += n[d] * E
                FL[cs, qs[d]] -= n[d] * E.T
            LF[us, cs] += _mass(Wf * (c_n - tau), phi_f, psi)
            FL[cs, us] -= _mass(Wf * tau, phi_f, psi).T

            if mode is AssemblyMode.CONDENSE:
                FF[cs, cs] += _mass(Wf * (tau - c_n), psi, psi)
                if elem.edges[f] in self._neumann_faces:
                    g = self.pde.eval_neumann(self.mesh.edge(elem.edges[f]).tag, fv.x)
                    f_rhs[cs] -= psi.T @ (Wf * g)
            else:
                lam = psi @ trace[self.dof_handler.face_dofs(elem.edges[f])]
                for d in range(2):
                    l_rhs[qs[d]] -= n[d] * (phi_f.T @ (Wf * lam))
                l_rhs[us] -= phi_f.T @ (Wf * (c_n - tau) * lam)

        if not (np.all(np.isfinite(LL)) and np.all(np.isfinite(l_rhs))):
            raise SingularLocalBlockError("non-finite local data", element_id=elem_id)
        logger.debug("Assembled element %d (%s)", elem_id, mode.value)
        return scratch
