# dofhandler.py

from __future__ import annotations

import logging
from typing import List

import numpy as np
import scipy.sparse as sp

from pyhdg.core.mesh import Mesh
from pyhdg.fem.spaces import HybridElement, get_hybrid_element
from pyhdg.errors import MeshStateError

logger = logging.getLogger(__name__)


class HybridDofHandler:
    """DOF numbering of the three spaces of the hybridised method."""

    def __init__(self, mesh: Mesh, degree: int, n_quad: int | None = None):
        """
        Parameters
        ----------
        mesh : Mesh
            Quadrilateral mesh with face adjacency.
        degree : int
            Polynomial degree ``k`` shared by the interior and skeleton spaces.
        n_quad : int, optional
            Gauss points per direction, ``k+1`` by default.

        Attributes
        ----------
        element : HybridElement
            Reference tabulations.
        n_trace_dofs : int
            Size of the global skeleton system, ``n_edges*(k+1)``.  Face ``g``
            owns dofs ``g*(k+1) .. g*(k+1)+k`` running from ``edge.nodes[0]``
            to ``edge.nodes[1]``.
        n_interior_dofs : int
            ``n_elements * 3*(k+1)^2``, element blocks ``[q_x, q_y, u]``.
        n_post_dofs : int
            ``n_elements * (k+2)^2``.
        trace_dof_table : ndarray, shape (n_elements, 4*(k+1))
            Element-local trace index ``f*(k+1)+j`` -> global trace dof.
        """
        if mesh.n_elements == 0:
            raise MeshStateError("Cannot distribute dofs on a mesh without active elements.")
        self.mesh = mesh
        self.degree = int(degree)
        self.element: HybridElement = get_hybrid_element(self.degree, n_quad)
        nf = self.element.n_face_dofs

        self.n_trace_dofs = mesh.n_edges * nf
        self.n_interior_dofs = mesh.n_elements * self.element.n_local
        self.n_post_dofs = mesh.n_elements * self.element.n_post

        edges = np.array([el.edges for el in mesh.elements_list], dtype=int)   # (n_el, 4)
        self.trace_dof_table = (edges[:, :, None] * nf + np.arange(nf)[None, None, :]).reshape(
            mesh.n_elements, -1)
        logger.info("Distributed dofs: %d cells, %d trace, %d interior, %d recovery",
                    mesh.n_elements, self.n_trace_dofs, self.n_interior_dofs, self.n_post_dofs)

    # ------------------------------------------------------------------
    def face_dofs(self, edge_gid: int) -> np.ndarray:
        nf = self.element.n_face_dofs
        return np.arange(edge_gid * nf, (edge_gid + 1) * nf)

    def element_trace_dofs(self, elem_id: int) -> np.ndarray:
        return self.trace_dof_table[elem_id]

    def interior_slice(self, elem_id: int) -> slice:
        n = self.element.n_local
        return slice(elem_id * n, (elem_id + 1) * n)

    def post_slice(self, elem_id: int) -> slice:
        n = self.element.n_post
        return slice(elem_id * n, (elem_id + 1) * n)

    def face_dof_points(self, edge_gid: int) -> np.ndarray:
        """Physical location of the face's Lagrange nodes, in dof order."""
        p0, p1 = self.mesh.edge_coords(edge_gid)
        s = 0.5 * (self.element.trace_nodes + 1.0)
        return p0[None, :] + s[:, None] * (p1 - p0)[None, :]

    def dirichlet_faces(self, boundary_kinds) -> List[int]:
        return [e.gid for e in self.mesh.boundary_edges() if boundary_kinds.is_dirichlet(e.tag)]

    def neumann_faces(self, boundary_kinds) -> List[int]:
        return [e.gid for e in self.mesh.boundary_edges() if boundary_kinds.is_neumann(e.tag)]

    def sparsity_pattern(self, constraints=None) -> sp.csr_matrix:
        """
        Boolean coupling of trace dofs through shared elements.

        With ``constraints`` each local dof is replaced by the dofs its line
        refers to and every constrained dof keeps its diagonal, which is the
        structure :meth:`AffineConstraints.distribute_local_to_global` writes.
        """
        rows, cols = [], []
        for dofs in self.trace_dof_table:
            if constraints is not None:
                dofs = np.unique(np.concatenate([constraints.line_targets(d) for d in dofs]))
            rows.append(np.repeat(dofs, dofs.size))
            cols.append(np.tile(dofs, dofs.size))
        if constraints is not None:
            rows.append(constraints.constrained_dofs())
            cols.append(constraints.constrained_dofs())
        rows, cols = np.concatenate(rows), np.concatenate(cols)
        data = np.ones(rows.size, dtype=bool)
        pattern = sp.coo_matrix((data, (rows, cols)), shape=(self.n_trace_dofs,) * 2).tocsr()
        pattern.data[:] = True
        return pattern
