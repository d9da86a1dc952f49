"""pyhdg.driver
Refinement cycles: mesh -> setup -> assemble -> solve -> reconstruct ->
post-process -> errors/output -> refine.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from pyhdg.assembly.hdg_global import assemble_system, setup_system
from pyhdg.config import HDGParameters, LinearSolverParameters, RefinementParameters
from pyhdg.core.context import DiscretizationContext
from pyhdg.core.mesh import Mesh
from pyhdg.core.pde import PDEData
from pyhdg.errors import HDGError
from pyhdg.io.vtk import export_vtk
from pyhdg.postprocess.norms import compute_errors, postprocessing_indicator
from pyhdg.postprocess.reconstruct import reconstruct_trace
from pyhdg.postprocess.superconvergence import postprocess
from pyhdg.solvers.linear_solver import solve
from pyhdg.utils.adaptive_mesh import AdaptiveQuadRefiner
from pyhdg.utils.meshgen import hyper_cube_mesh

logger = logging.getLogger(__name__)

ERROR_COLUMNS = ("val L2", "grad L2", "val L2-post")


@dataclass
class CycleResult:
    cycle: int
    cells: int
    dofs: int
    value_error: float = float("nan")
    gradient_error: float = float("nan")
    post_error: float = float("nan")
    iterations: int = 0


class ConvergenceTable:
    """Per-cycle errors with observed rates, backed by a pandas DataFrame.

    Rates use the cell count as the mesh measure,
    ``rate = 2 log(e_prev / e) / log(cells / cells_prev)``, so they read as
    powers of ``h`` in 2D.
    """

    def __init__(self):
        self.results: List[CycleResult] = []

    def add(self, result: CycleResult) -> None:
        self.results.append(result)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def frame(self) -> pd.DataFrame:
        df = pd.DataFrame([asdict(r) for r in self.results]).rename(columns={
            "value_error": "val L2", "gradient_error": "grad L2", "post_error": "val L2-post"})
        if df.empty:
            return df
        log_cells = np.log(df["cells"].astype(float))
        for col in ERROR_COLUMNS:
            ratio = np.log(df[col].shift(1) / df[col])
            df[f"{col} rate"] = 2.0 * ratio / (log_cells - log_cells.shift(1))
        return df.set_index("cycle")

    def rates(self, column: str) -> np.ndarray:
        return self.frame[f"{column} rate"].to_numpy()[1:]

    def to_string(self) -> str:
        return self.frame.to_string(float_format=lambda v: f"{v:.3e}")


def global_mesh_size(cycle: int, initial_subdivisions: int = 2) -> int:
    """
    Cells per direction in global mode.

    Cycle 0 is the coarse ``initial_subdivisions`` mesh; later cycles
    alternate the base subdivision between two counts before refining.
    """
    if cycle == 0:
        return initial_subdivisions
    return (initial_subdivisions + cycle % 2) * 2 ** (1 + cycle // 2)


def run_cycle(mesh: Mesh, pde: PDEData, params: HDGParameters | None = None,
              solver_params: LinearSolverParameters | None = None) -> DiscretizationContext:
    """All stages on one mesh; returns the post-processed context."""
    ctx = DiscretizationContext(mesh, pde, params or HDGParameters(),
                                solver_params or LinearSolverParameters())
    setup_system(ctx)
    assemble_system(ctx)
    solve(ctx)
    reconstruct_trace(ctx)
    postprocess(ctx)
    return ctx


def run_cycles(pde: PDEData,
               params: HDGParameters | None = None,
               solver_params: LinearSolverParameters | None = None,
               refinement: RefinementParameters | None = None,
               output_dir: Optional[str] = None) -> ConvergenceTable:
    params = params or HDGParameters()
    solver_params = solver_params or LinearSolverParameters()
    refinement = refinement or RefinementParameters()
    lo, hi = refinement.bounds
    table = ConvergenceTable()
    refiner = None
    if refinement.mode == "adaptive":
        n0 = refinement.initial_subdivisions
        refiner = AdaptiveQuadRefiner((lo, lo), (hi, hi), n0, n0)

    for cycle in range(refinement.n_cycles):
        if refiner is None:
            mesh = hyper_cube_mesh(global_mesh_size(cycle, refinement.initial_subdivisions), lo, hi)
        else:
            mesh = refiner.to_mesh()
        logger.info("Cycle %d: %r", cycle, mesh)
        try:
            ctx = run_cycle(mesh, pde, params, solver_params)
            result = CycleResult(cycle=cycle, cells=mesh.n_elements,
                                 dofs=ctx.dof_handler.n_trace_dofs,
                                 iterations=ctx.solver_info.iterations)
            if pde.exact is not None:
                report = compute_errors(ctx)
                result.value_error = report.value
                result.gradient_error = report.gradient
                result.post_error = report.post
            if output_dir is not None:
                export_vtk(ctx, output_dir, refinement.mode, cycle)
            if refiner is not None and cycle + 1 < refinement.n_cycles:
                refiner.refine_by_indicator(postprocessing_indicator(ctx), refinement.refine_fraction,
                                            conforming=refinement.conforming)
        except HDGError:
            logger.exception("Cycle %d failed", cycle)
            raise
        table.add(result)

    if len(table) > 1 and pde.exact is not None:
        logger.info("Convergence table:\n%s", table.to_string())
    return table
