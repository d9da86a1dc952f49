import numpy as np

from pyhdg.config import HDGParameters, LinearSolverParameters, RefinementParameters
from pyhdg.driver import run_cycles
from pyhdg.utils.adaptive_mesh import AdaptiveQuadRefiner
from pyhdg.utils.manufactured import gaussian_problem


def _levels_across_faces(refiner):
    worst = 0
    for cid in refiner.active_cells:
        cell = refiner.cells[cid]
        for side in ('left', 'right', 'top', 'bottom'):
            for n in refiner.find_neighbors(cell, side):
                worst = max(worst, abs(n.level - cell.level))
    return worst


def test_one_irregular_balancing():
    r = AdaptiveQuadRefiner((0.0, 0.0), (1.0, 1.0), 2, 2)
    for _ in range(3):
        corner = min(r.active_cells, key=lambda c: (r.cells[c].x0, r.cells[c].y0, -r.cells[c].level))
        r.refine([corner])
    assert _levels_across_faces(r) <= 1
    mesh = r.to_mesh()
    assert np.isclose(mesh.areas().sum(), 1.0)
    for e in mesh.edges_list:
        if e.children:
            assert len(e.children) == 2


def test_conforming_propagation_leaves_no_hanging_faces():
    r = AdaptiveQuadRefiner((0.0, 0.0), (1.0, 1.0), 3, 3)
    r.refine([4], conforming=True)
    mesh = r.to_mesh()
    assert mesh.hanging_edges() == []
    assert np.isclose(mesh.areas().sum(), 1.0)
    assert r.n_active_cells > 9


def test_refine_by_indicator_marks_largest_cells():
    r = AdaptiveQuadRefiner((0.0, 0.0), (1.0, 1.0), 2, 2)
    mesh = r.to_mesh()
    ind = np.zeros(mesh.n_elements)
    ind[2] = 1.0
    target = r._mesh_cells[2]
    r.refine_by_indicator(ind, 0.25)
    assert target not in r.active_cells
    assert len(r.cells[target].children_ids) == 4
    assert r.n_active_cells == 7


def test_adaptive_cycles_increase_cells():
    table = run_cycles(gaussian_problem(), HDGParameters(degree=1),
                       LinearSolverParameters(method="direct"),
                       RefinementParameters(mode="adaptive", n_cycles=3, refine_fraction=0.3))
    cells = list(table.frame["cells"])
    assert cells[0] == 4
    assert cells[0] < cells[1] < cells[2]
    assert np.all(np.isfinite(table.frame["val L2"]))
