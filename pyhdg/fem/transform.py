"""pyhdg.fem.transform
Reference → physical mapping for bilinear quadrilaterals.

Jacobians follow the row convention ``J[a, b] = ∂x_b/∂ξ_a`` throughout.
"""
import numpy as np
from pyhdg.integration.quadrature import QUAD_FACE_TANGENTS


def map_points(X, N):
    """Physical points for geometry shape values ``N`` (n_q, n_geo)."""
    return N @ X


def jacobians(X, dN):
    """J (n_q, 2, 2), det J and J^{-1} from geometry gradients ``dN`` (n_q, n_geo, 2)."""
    J = np.einsum('qna,nb->qab', dN, X)
    detJ = np.linalg.det(J)
    if np.any(detJ <= 0.0):
        raise ValueError("Non-positive Jacobian determinant; element is inverted or degenerate.")
    return J, detJ, np.linalg.inv(J)


def physical_gradients(dphi_ref, invJ):
    """Push reference gradients (n_q, n_basis, 2) to physical space."""
    return np.einsum('qia,qba->qib', dphi_ref, invJ)


def face_measure(J, local_face):
    """|dx/dt| along a reference face, i.e. the 1D Jacobian at each face point."""
    t_ref = QUAD_FACE_TANGENTS[local_face]
    return np.linalg.norm(np.einsum('a,qab->qb', t_ref, J), axis=1)
