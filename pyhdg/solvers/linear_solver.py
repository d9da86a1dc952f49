"""pyhdg.solvers.linear_solver
Sparse solve of the condensed skeleton system.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from pyhdg.config import LinearSolverParameters
from pyhdg.core.context import CyclePhase, DiscretizationContext
from pyhdg.errors import SolverConvergenceError

logger = logging.getLogger(__name__)


@dataclass
class SolverInfo:
    method: str
    iterations: int
    residual: float          # ‖b - A x‖ / ‖b‖ (absolute when b = 0)


def _relative_residual(A, x, b) -> float:
    r = np.linalg.norm(b - A @ x)
    nb = np.linalg.norm(b)
    return float(r / nb) if nb > 0.0 else float(r)


def _ilu_preconditioner(A: sp.spmatrix) -> spla.LinearOperator:
    try:
        ilu = spla.spilu(A.tocsc())
    except RuntimeError as exc:
        raise SolverConvergenceError(0, float("nan"), f"ILU factorisation failed: {exc}") from exc
    return spla.LinearOperator(A.shape, ilu.solve)


def solve_linear_system(A: sp.spmatrix, b: np.ndarray,
                        params: LinearSolverParameters | None = None):
    """
    Solve ``A x = b``.

    GMRES stops at ``‖r‖ <= rtol ‖b‖`` with at most ``max_iter_factor * n``
    inner iterations; ``method='direct'`` uses a sparse LU.  Returns
    ``(x, SolverInfo)`` and raises :class:`SolverConvergenceError` when no
    acceptable solution was found.
    """
    params = params or LinearSolverParameters()
    n = A.shape[0]
    if n == 0:
        return np.zeros(0), SolverInfo(params.method, 0, 0.0)

    if params.method == "direct":
        with np.errstate(all="ignore"):
            x = spla.spsolve(sp.csc_matrix(A), b)
        x = np.atleast_1d(x)
        residual = _relative_residual(A, x, b) if np.all(np.isfinite(x)) else float("inf")
        if not residual <= max(params.rtol, 1e-8):
            raise SolverConvergenceError(1, residual, "direct solve produced an inaccurate solution")
        return x, SolverInfo("direct", 1, residual)

    iterations = 0

    def _count(_):
        nonlocal iterations
        iterations += 1

    restart = min(params.restart, n)
    max_cycles = max(1, math.ceil(params.max_iter_factor * n / restart))
    M = _ilu_preconditioner(A) if params.preconditioner == "ilu" else None
    x, info = spla.gmres(A, b, rtol=params.rtol, atol=0.0, restart=restart,
                         maxiter=max_cycles, M=M, callback=_count, callback_type="pr_norm")
    residual = _relative_residual(A, x, b)
    if info != 0 or not np.all(np.isfinite(x)):
        raise SolverConvergenceError(iterations, residual,
                                     "breakdown" if info < 0 else "iteration budget exhausted")
    logger.debug("GMRES converged in %d iterations", iterations)
    return x, SolverInfo("gmres", iterations, residual)


def solve(ctx: DiscretizationContext) -> DiscretizationContext:
    """Solve the skeleton system and fill in the constrained trace values."""
    ctx.require(CyclePhase.ASSEMBLED, "solve")
    x, info = solve_linear_system(ctx.system_matrix, ctx.system_rhs, ctx.solver_params)
    ctx.constraints.distribute(x)
    ctx.trace = x
    ctx.solver_info = info
    logger.info("Solved skeleton system with %s: %d iterations, residual %.3e",
                info.method, info.iterations, info.residual)
    ctx.advance(CyclePhase.SOLVED)
    return ctx
