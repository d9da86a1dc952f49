"""pyhdg.assembly.constraints
Affine constraints on trace dofs,

    x[i] = sum_k a_ik x[k] + b_i,

used for Dirichlet data (no entries, inhomogeneity = projected value) and
for the fine side of non-conforming faces (entries = coarse trace basis
evaluated at the fine trace nodes).
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np

from pyhdg.fem.reference import get_reference
from pyhdg.integration.quadrature import gauss_legendre

logger = logging.getLogger(__name__)

_DROP_TOL = 1e-14


class AffineConstraints:
    """Store of constraint lines with the local-to-global distribution contract."""

    def __init__(self, n_dofs: int):
        self.n_dofs = int(n_dofs)
        self.lines: Dict[int, Tuple[Dict[int, float], float]] = {}
        self.closed = False

    # ---- building ------------------------------------------------------
    def add_line(self, dof: int, entries: Mapping[int, float] | None = None,
                 inhomogeneity: float = 0.0) -> None:
        if self.closed:
            raise RuntimeError("constraints are closed")
        dof = int(dof)
        if not 0 <= dof < self.n_dofs:
            raise IndexError(f"dof {dof} out of range")
        clean = {int(k): float(v) for k, v in (entries or {}).items() if abs(v) > _DROP_TOL}
        if dof in clean:
            raise ValueError(f"dof {dof} cannot be constrained to itself")
        self.lines[dof] = (clean, float(inhomogeneity))

    def is_constrained(self, dof: int) -> bool:
        return int(dof) in self.lines

    __contains__ = is_constrained

    def constrained_dofs(self) -> np.ndarray:
        return np.array(sorted(self.lines), dtype=int)

    def line_targets(self, dof: int) -> np.ndarray:
        """Dofs a local row of ``dof`` is distributed to: itself if free, else its entries."""
        line = self.lines.get(int(dof))
        if line is None:
            return np.array([int(dof)], dtype=int)
        return np.array(sorted(line[0]), dtype=int)

    def close(self) -> "AffineConstraints":
        """Resolve chains so that every entry refers to an unconstrained dof."""
        resolved: Dict[int, Tuple[Dict[int, float], float]] = {}

        def resolve(dof: int, visiting: set) -> Tuple[Dict[int, float], float]:
            if dof in resolved:
                return resolved[dof]
            if dof in visiting:
                raise ValueError(f"cyclic constraint through dof {dof}")
            visiting.add(dof)
            entries, b = self.lines[dof]
            out: Dict[int, float] = {}
            for col, a in entries.items():
                if col in self.lines:
                    sub, sub_b = resolve(col, visiting)
                    b += a * sub_b
                    for c2, a2 in sub.items():
                        out[c2] = out.get(c2, 0.0) + a * a2
                else:
                    out[col] = out.get(col, 0.0) + a
            visiting.discard(dof)
            resolved[dof] = ({k: v for k, v in out.items() if abs(v) > _DROP_TOL}, b)
            return resolved[dof]

        for dof in list(self.lines):
            resolve(dof, set())
        self.lines = resolved
        self.closed = True
        logger.info("Closed %d constraint lines", len(self.lines))
        return self

    # ---- use -----------------------------------------------------------
    def distribute_local_to_global(self, local_matrix: np.ndarray, local_rhs: np.ndarray,
                                   dofs: Iterable[int], sink) -> None:
        """
        Condense a local contribution through the constraints into ``sink``.

        With ``x_local = T x_free + b`` the contribution becomes
        ``T^T K T`` and ``T^T (f - K b)``.  Each constrained dof receives a
        diagonal entry ``|K_ii|`` so the global matrix stays regular; for
        lines without entries the rhs gets ``|K_ii| b_i`` so the solve
        already returns the prescribed value.
        """
        if not self.closed:
            raise RuntimeError("call close() before distributing")
        dofs = np.asarray(dofs, dtype=int)
        K = np.asarray(local_matrix, dtype=float)
        f = np.asarray(local_rhs, dtype=float)
        if not any(int(d) in self.lines for d in dofs):
            sink.add(dofs, dofs, K)
            sink.add_rhs(dofs, f)
            return

        targets: List[int] = []
        index: Dict[int, int] = {}

        def slot(d: int) -> int:
            if d not in index:
                index[d] = len(targets)
                targets.append(d)
            return index[d]

        m = len(dofs)
        cols, b = [], np.zeros(m)
        for i, d in enumerate(dofs):
            d = int(d)
            line = self.lines.get(d)
            if line is None:
                cols.append([(slot(d), 1.0)])
            else:
                cols.append([(slot(c), a) for c, a in line[0].items()])
                b[i] = line[1]
        T = np.zeros((m, len(targets)))
        for i, row in enumerate(cols):
            for j, a in row:
                T[i, j] += a

        tdofs = np.array(targets, dtype=int)
        sink.add(tdofs, tdofs, T.T @ K @ T)
        sink.add_rhs(tdofs, T.T @ (f - K @ b))

        diag_rows, diag_vals, rhs_vals = [], [], []
        for i, d in enumerate(dofs):
            d = int(d)
            if d in self.lines:
                kii = abs(K[i, i])
                scale = kii if kii > 0.0 else 1.0
                diag_rows.append(d)
                diag_vals.append(scale)
                rhs_vals.append(scale * b[i] if not self.lines[d][0] else 0.0)
        rows = np.array(diag_rows, dtype=int)
        sink.add(rows, rows, np.diag(diag_vals))
        sink.add_rhs(rows, np.array(rhs_vals))

    def distribute(self, x: np.ndarray) -> np.ndarray:
        """Overwrite constrained entries of ``x`` in place from the free ones."""
        for dof, (entries, b) in self.lines.items():
            x[dof] = sum(a * x[c] for c, a in entries.items()) + b
        return x


# ---------------------------------------------------------------------------
# builders
# ---------------------------------------------------------------------------

def project_boundary_values(dof_handler, pde, boundary_kinds, constraints: AffineConstraints,
                            n_quad: int | None = None) -> int:
    """
    Constrain the trace dofs of every Dirichlet face to the L2 projection of
    ``g_D`` onto ``P_k`` on that face.  Returns the number of faces handled.
    """
    k = dof_handler.degree
    t, w = gauss_legendre(n_quad if n_quad is not None else k + 1)
    psi, _ = get_reference('line', k).tabulate(t)
    M_ref = np.einsum('q,qi,qj->ij', w, psi, psi)
    n_faces = 0
    for gid in dof_handler.dirichlet_faces(boundary_kinds):
        edge = dof_handler.mesh.edge(gid)
        p0, p1 = dof_handler.mesh.edge_coords(edge.gid)
        x = p0[None, :] + (0.5 * (t + 1.0))[:, None] * (p1 - p0)[None, :]
        g = pde.eval_dirichlet(edge.tag, x)
        # the face length cancels between mass matrix and rhs
        values = np.linalg.solve(M_ref, psi.T @ (w * g))
        for dof, val in zip(dof_handler.face_dofs(edge.gid), values):
            constraints.add_line(dof, None, val)
        n_faces += 1
    logger.debug("Projected Dirichlet data on %d faces", n_faces)
    return n_faces


def make_hanging_node_constraints(dof_handler, constraints: AffineConstraints) -> int:
    """
    Tie the trace on each fine side of a non-conforming face to the coarse
    trace polynomial.  Returns the number of constrained fine faces.
    """
    mesh = dof_handler.mesh
    line = get_reference('line', dof_handler.degree)
    n_faces = 0
    for fine in mesh.hanging_edges():
        coarse_dofs = dof_handler.face_dofs(fine.parent)
        c0, c1 = mesh.edge_coords(fine.parent)
        D = c1 - c0
        pts = dof_handler.face_dof_points(fine.gid)
        s = 2.0 * ((pts - c0[None, :]) @ D) / (D @ D) - 1.0
        for dof, sj in zip(dof_handler.face_dofs(fine.gid), s):
            weights = line.shape(float(sj))
            constraints.add_line(dof, dict(zip(coarse_dofs.tolist(), weights)), 0.0)
        n_faces += 1
    if n_faces:
        logger.info("Constrained %d hanging faces", n_faces)
    return n_faces
