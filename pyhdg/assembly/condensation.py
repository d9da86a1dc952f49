"""pyhdg.assembly.condensation
Static condensation of the interior unknowns of one element.

With the local system ``[[LL, LF], [FL, FF]]`` the skeleton contribution is
the Schur complement

    FF' = FF - FL LL^-1 LF,      f' = f_rhs - FL LL^-1 l_rhs.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np
import scipy.linalg as sla

from pyhdg.assembly.scratch import ScratchData
from pyhdg.errors import SingularLocalBlockError

logger = logging.getLogger(__name__)

_PIVOT_RTOL = 1e-13


def _lu(A: np.ndarray, elem_id: Optional[int]):
    if not np.all(np.isfinite(A)):
        raise SingularLocalBlockError("matrix has non-finite entries", element_id=elem_id)
    lu, piv = sla.lu_factor(A, check_finite=False)
    pivots = np.abs(np.diag(lu))
    scale = pivots.max() if pivots.size else 0.0
    if scale == 0.0 or pivots.min() <= _PIVOT_RTOL * scale:
        raise SingularLocalBlockError(
            f"matrix is singular (pivot ratio {pivots.min() / scale if scale else 0.0:.2e})",
            element_id=elem_id)
    return lu, piv


def local_solve(A: np.ndarray, b: np.ndarray, elem_id: Optional[int] = None) -> np.ndarray:
    """Solve a dense local system exactly, raising on a singular matrix."""
    return sla.lu_solve(_lu(A, elem_id), b, check_finite=False)


def invert_local_block(A: np.ndarray, elem_id: Optional[int] = None,
                       out: Optional[np.ndarray] = None) -> np.ndarray:
    """Exact inverse of a dense block via LU.  ``out=A`` inverts in place."""
    inv = sla.lu_solve(_lu(A, elem_id), np.eye(A.shape[0]), check_finite=False)
    if out is None:
        return inv
    out[...] = inv
    return out


def schur_complement(LL, LF, FL, FF, l_rhs, f_rhs, elem_id: Optional[int] = None,
                     *, inverted: bool = False) -> Tuple[np.ndarray, np.ndarray]:
    """Eliminate the cell unknowns.  With ``inverted`` set, ``LL`` already holds its inverse."""
    LL_inv = LL if inverted else invert_local_block(LL, elem_id)
    FL_LLinv = FL @ LL_inv
    return FF - FL_LLinv @ LF, f_rhs - FL_LLinv @ l_rhs


def condense(scratch: ScratchData) -> Tuple[np.ndarray, np.ndarray]:
    """Condensed ``(FF', f')`` of the element held in ``scratch``.

    ``scratch.LL`` is overwritten with its inverse.
    """
    invert_local_block(scratch.LL, scratch.elem_id, out=scratch.LL)
    return schur_complement(scratch.LL, scratch.LF, scratch.FL, scratch.FF,
                            scratch.l_rhs, scratch.f_rhs, inverted=True)
