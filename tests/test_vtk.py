import os

import meshio
import numpy as np

from pyhdg.config import HDGParameters, LinearSolverParameters
from pyhdg.core.context import CyclePhase
from pyhdg.driver import run_cycle
from pyhdg.io.visualization import plot_mesh
from pyhdg.io.vtk import export_vtk
from pyhdg.utils.manufactured import gaussian_problem
from pyhdg.utils.meshgen import hyper_cube_mesh


def test_export_writes_interior_and_skeleton(tmp_path):
    ctx = run_cycle(hyper_cube_mesh(2), gaussian_problem(), HDGParameters(degree=2),
                    LinearSolverParameters(method="direct"))
    interior, face = export_vtk(ctx, str(tmp_path), "global", 3)
    assert os.path.basename(interior) == "solution-global-q2-03.vtu"
    assert os.path.basename(face) == "solution-global-face-q2-03.vtu"
    assert ctx.phase is CyclePhase.OUTPUT

    m = meshio.read(interior)
    assert {"solution", "gradient", "u_post"} <= set(m.point_data)
    assert len(m.points) == 4 * 16
    assert m.point_data["gradient"].shape[1] == 3

    f = meshio.read(face)
    assert np.allclose(f.point_data["lambda"], ctx.trace)
    assert len(f.points) == ctx.mesh.n_edges * 3


def test_plot_mesh_with_cell_values():
    mesh = hyper_cube_mesh(2)
    ax = plot_mesh(mesh, cell_values=np.arange(4.0), show=False)
    assert ax.get_title() == "Mesh"
