"""pyhdg.fem.spaces
Tabulated function spaces of the hybridised method on the reference quad.

``HybridElement`` bundles everything that depends only on the polynomial
degree: interior ``Q_k`` values and gradients at the volume and face
quadrature points, face ``P_k`` trace values in both orientations, the
``Q_{k+1}`` recovery basis and the bilinear geometry basis.  Physical
quantities are produced per element by :meth:`HybridElement.reinit`.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import List

import numpy as np

from pyhdg.fem import transform
from pyhdg.fem.reference import get_reference
from pyhdg.integration.quadrature import edge, gauss_legendre, volume

N_FACES = 4


@dataclass
class FaceValues:
    """Physical data on one face of one element."""
    x: np.ndarray          # (n_qf, 2) quadrature points
    JxW: np.ndarray        # (n_qf,)
    normal: np.ndarray     # (2,) outward unit normal
    phi: np.ndarray        # (n_qf, n_u) interior basis traced on the face
    psi: np.ndarray        # (n_qf, k+1) trace basis in the global face direction


@dataclass
class CellValues:
    """Physical data on the interior of one element."""
    x: np.ndarray          # (n_q, 2)
    JxW: np.ndarray        # (n_q,)
    phi: np.ndarray        # (n_q, n_u)
    grad_phi: np.ndarray   # (n_q, n_u, 2)


class HybridElement:
    """Degree-``k`` interior, trace and recovery bases with their tabulations."""

    def __init__(self, degree: int, n_quad: int | None = None):
        if degree < 1:
            raise ValueError("degree must be >= 1")
        self.degree = k = int(degree)
        self.n_quad = int(n_quad) if n_quad is not None else k + 1
        self.n_u = (k + 1) ** 2
        self.n_local = 3 * self.n_u
        self.n_face_dofs = k + 1
        self.n_trace = N_FACES * self.n_face_dofs
        self.n_post = (k + 2) ** 2

        ref = get_reference('quad', k)
        geo = get_reference('quad', 1)
        line = get_reference('line', k)

        # volume
        self.q_pts, self.q_wts = volume('quad', self.n_quad)
        self.phi, self.dphi_ref = ref.tabulate(self.q_pts)
        self.geo_N, self.geo_dN = geo.tabulate(self.q_pts)

        # faces: point q sits at ccw parameter t[q] on every face
        t, _ = gauss_legendre(self.n_quad)
        psi, _ = line.tabulate(t)
        self.psi_forward = psi
        self.psi_reverse = psi[:, ::-1].copy()
        self.face_pts: List[np.ndarray] = []
        self.face_wts: List[np.ndarray] = []
        self.face_phi: List[np.ndarray] = []
        self.face_geo_N: List[np.ndarray] = []
        self.face_geo_dN: List[np.ndarray] = []
        for f in range(N_FACES):
            pts, wts = edge('quad', f, self.n_quad)
            self.face_pts.append(pts)
            self.face_wts.append(wts)
            self.face_phi.append(ref.tabulate(pts)[0])
            gN, gdN = geo.tabulate(pts)
            self.face_geo_N.append(gN)
            self.face_geo_dN.append(gdN)

        # recovery space, integrated one order higher
        self.post_pts, self.post_wts = volume('quad', k + 2)
        self.post_phi, self.post_dphi_ref = get_reference('quad', k + 1).tabulate(self.post_pts)
        self.post_phi_k, self.post_dphi_k_ref = ref.tabulate(self.post_pts)
        self.post_geo_N, self.post_geo_dN = geo.tabulate(self.post_pts)

        # face lattice for the trace dofs (ccw parameter of node j)
        self.trace_nodes = np.linspace(-1.0, 1.0, k + 1)

    # ------------------------------------------------------------------
    def q_slice(self, d: int) -> slice:
        return slice(d * self.n_u, (d + 1) * self.n_u)

    @property
    def u_slice(self) -> slice:
        return slice(2 * self.n_u, 3 * self.n_u)

    def face_slice(self, f: int) -> slice:
        return slice(f * self.n_face_dofs, (f + 1) * self.n_face_dofs)

    # ------------------------------------------------------------------
    def reinit(self, mesh, elem_id: int):
        """Map the volume and face tabulations onto element ``elem_id``."""
        X = mesh.element_coords(elem_id)
        J, detJ, invJ = transform.jacobians(X, self.geo_dN)
        cell = CellValues(
            x=transform.map_points(X, self.geo_N),
            JxW=self.q_wts * detJ,
            phi=self.phi,
            grad_phi=transform.physical_gradients(self.dphi_ref, invJ),
        )
        elem = mesh.elements_list[elem_id]
        faces = []
        for f in range(N_FACES):
            edge_obj = mesh.edge(elem.edges[f])
            Jf = np.einsum('qna,nb->qab', self.face_geo_dN[f], X)
            forward = elem.corner_nodes[f] == edge_obj.nodes[0]
            faces.append(FaceValues(
                x=transform.map_points(X, self.face_geo_N[f]),
                JxW=self.face_wts[f] * transform.face_measure(Jf, f),
                normal=edge_obj.outward_normal(elem_id),
                phi=self.face_phi[f],
                psi=self.psi_forward if forward else self.psi_reverse,
            ))
        return cell, faces

    def reinit_post(self, mesh, elem_id: int):
        """Points, JxW, recovery basis/gradients and degree-k basis/gradients at the recovery rule."""
        X = mesh.element_coords(elem_id)
        J, detJ, invJ = transform.jacobians(X, self.post_geo_dN)
        return (transform.map_points(X, self.post_geo_N),
                self.post_wts * detJ,
                self.post_phi,
                transform.physical_gradients(self.post_dphi_ref, invJ),
                self.post_phi_k,
                transform.physical_gradients(self.post_dphi_k_ref, invJ))


@lru_cache(maxsize=None)
def get_hybrid_element(degree: int, n_quad: int | None = None) -> HybridElement:
    return HybridElement(degree, n_quad)
