import numpy as np
import pytest

from pyhdg.assembly.hdg_global import assemble_system, setup_system
from pyhdg.assembly.workstream import chunk_ranges
from pyhdg.config import HDGParameters, LinearSolverParameters
from pyhdg.core.context import CyclePhase, DiscretizationContext
from pyhdg.errors import PipelineStateError
from pyhdg.postprocess.reconstruct import reconstruct_trace
from pyhdg.postprocess.superconvergence import postprocess
from pyhdg.solvers.linear_solver import solve
from pyhdg.utils.manufactured import gaussian_problem
from pyhdg.utils.meshgen import hyper_cube_mesh


def test_stages_out_of_order_raise():
    ctx = DiscretizationContext(hyper_cube_mesh(2), gaussian_problem())
    with pytest.raises(PipelineStateError):
        assemble_system(ctx)
    setup_system(ctx)
    assert ctx.phase is CyclePhase.SETUP
    with pytest.raises(PipelineStateError):
        setup_system(ctx)
    with pytest.raises(PipelineStateError):
        solve(ctx)
    with pytest.raises(PipelineStateError):
        reconstruct_trace(ctx)
    with pytest.raises(PipelineStateError):
        postprocess(ctx)


def test_full_pipeline_advances_phases():
    ctx = DiscretizationContext(hyper_cube_mesh(2), gaussian_problem(),
                                solver_params=LinearSolverParameters(method="direct"))
    for stage, phase in [(setup_system, CyclePhase.SETUP),
                         (assemble_system, CyclePhase.ASSEMBLED),
                         (solve, CyclePhase.SOLVED),
                         (reconstruct_trace, CyclePhase.RECONSTRUCTED),
                         (postprocess, CyclePhase.POSTPROCESSED)]:
        stage(ctx)
        assert ctx.phase is phase
    assert ctx.interior.shape == (ctx.dof_handler.n_interior_dofs,)
    assert np.all(np.isfinite(ctx.recovery))


def test_chunk_ranges_cover_all_cells():
    ranges = chunk_ranges(10, 3)
    assert ranges[0][0] == 0 and ranges[-1][1] == 10
    assert sum(b - a for a, b in ranges) == 10
    assert all(r1[1] == r2[0] for r1, r2 in zip(ranges, ranges[1:]))
    assert chunk_ranges(2, 4) == [(0, 1), (1, 2)]


def test_parallel_assembly_matches_serial():
    mats = []
    for workers in (1, 3):
        ctx = DiscretizationContext(hyper_cube_mesh(4), gaussian_problem(),
                                    HDGParameters(degree=2, n_workers=workers))
        setup_system(ctx)
        assemble_system(ctx)
        mats.append((ctx.system_matrix.toarray(), ctx.system_rhs.copy()))
    assert np.allclose(mats[0][0], mats[1][0], atol=1e-12)
    assert np.allclose(mats[0][1], mats[1][1], atol=1e-12)
