import numpy as np
import pytest
import scipy.sparse as sp

from pyhdg.assembly.constraints import (AffineConstraints, make_hanging_node_constraints,
                                        project_boundary_values)
from pyhdg.assembly.hdg_global import TripletSink, assemble_system, setup_system
from pyhdg.config import BoundaryKinds
from pyhdg.core.context import DiscretizationContext
from pyhdg.core.dofhandler import HybridDofHandler
from pyhdg.core.pde import PDEData
from pyhdg.errors import MeshStateError
from pyhdg.utils.adaptive_mesh import AdaptiveQuadRefiner
from pyhdg.utils.manufactured import gaussian_problem
from pyhdg.utils.meshgen import hyper_cube_mesh


def test_close_resolves_chains_and_distribute():
    c = AffineConstraints(5)
    c.add_line(0, {1: 0.5, 2: 0.5}, 1.0)
    c.add_line(1, {3: 2.0}, 0.0)
    c.add_line(4, None, 3.0)
    c.close()
    entries, b = c.lines[0]
    assert entries == {2: 0.5, 3: 1.0}
    assert b == 1.0
    x = np.array([0.0, 0.0, 2.0, 1.0, 0.0])
    c.distribute(x)
    assert np.allclose(x, [1.0 + 1.0 + 1.0, 2.0, 2.0, 1.0, 3.0])


def test_cyclic_constraints_are_rejected():
    c = AffineConstraints(2)
    c.add_line(0, {1: 1.0})
    c.add_line(1, {0: 1.0})
    with pytest.raises(ValueError):
        c.close()


def test_distribute_local_to_global_dirichlet_and_linear():
    K = np.array([[4.0, 1.0, 0.5], [1.0, 3.0, 1.0], [0.5, 1.0, 2.0]])
    f = np.array([1.0, 2.0, 3.0])
    c = AffineConstraints(3)
    c.add_line(0, None, 2.0)           # x0 = 2
    c.add_line(2, {1: 0.5}, 0.0)       # x2 = x1 / 2
    c.close()
    sink = TripletSink(3)
    c.distribute_local_to_global(K, f, [0, 1, 2], sink)
    A = sink.to_csr().toarray()
    x = np.linalg.solve(A, sink.rhs)
    assert np.isclose(x[0], 2.0)
    c.distribute(x)

    # reference: minimise over x1 with x = T x1 + b
    T = np.array([0.0, 1.0, 0.5])
    b = np.array([2.0, 0.0, 0.0])
    x1 = (T @ (f - K @ b)) / (T @ K @ T)
    assert np.allclose(x, T * x1 + b)


def test_boundary_projection_reproduces_linear_data():
    mesh = hyper_cube_mesh(2)
    dh = HybridDofHandler(mesh, 2)
    pde = PDEData(dirichlet=lambda x, y: 1.0 + 2.0 * x - y)
    c = AffineConstraints(dh.n_trace_dofs)
    n = project_boundary_values(dh, pde, BoundaryKinds.neumann_on("top"), c)
    assert n == 6
    for e in mesh.boundary_edges():
        dofs = dh.face_dofs(e.gid)
        if e.tag == "top":
            assert not any(c.is_constrained(d) for d in dofs)
            continue
        pts = dh.face_dof_points(e.gid)
        vals = [c.lines[d][1] for d in dofs]
        assert np.allclose(vals, 1.0 + 2.0 * pts[:, 0] - pts[:, 1])


def test_hanging_constraints_interpolate_coarse_trace():
    refiner = AdaptiveQuadRefiner((-1.0, -1.0), (1.0, 1.0), 2, 2)
    refiner.refine([0])
    mesh = refiner.to_mesh()
    dh = HybridDofHandler(mesh, 1)
    c = AffineConstraints(dh.n_trace_dofs)
    assert make_hanging_node_constraints(dh, c) == 4
    c.close()

    # a linear field on the skeleton is reproduced on the fine sides
    g = lambda p: 0.3 + p[:, 0] - 2.0 * p[:, 1]
    x = np.zeros(dh.n_trace_dofs)
    for e in mesh.edges_list:
        x[dh.face_dofs(e.gid)] = g(dh.face_dof_points(e.gid))
    expected = x.copy()
    x[c.constrained_dofs()] = 0.0
    c.distribute(x)
    assert np.allclose(x, expected)


def test_assembled_matrix_lies_in_constrained_pattern():
    refiner = AdaptiveQuadRefiner((-1.0, -1.0), (1.0, 1.0), 2, 2)
    refiner.refine([0])
    ctx = DiscretizationContext(refiner.to_mesh(), gaussian_problem())
    setup_system(ctx)
    assemble_system(ctx)
    pattern, A = ctx.sparsity_pattern, ctx.system_matrix
    assert (A - A.multiply(pattern)).count_nonzero() == 0
    constrained = ctx.constraints.constrained_dofs()
    assert all(pattern[d, d] for d in constrained)
    # constrained dofs only ever couple to themselves
    sub = pattern[constrained].tocoo()
    assert np.array_equal(constrained[sub.row], sub.col)


def test_entries_outside_pattern_raise():
    c = AffineConstraints(3)
    c.close()
    sink = TripletSink(3)
    c.distribute_local_to_global(np.ones((2, 2)), np.zeros(2), [0, 2], sink)
    pattern = sp.identity(3, dtype=bool, format='csr')
    with pytest.raises(MeshStateError):
        sink.to_csr(pattern)
    assert sink.to_csr().nnz == 4


def test_line_targets():
    c = AffineConstraints(4)
    c.add_line(0, {3: 0.25, 1: 0.75})
    c.add_line(2, None, 1.0)
    c.close()
    assert c.line_targets(0).tolist() == [1, 3]
    assert c.line_targets(1).tolist() == [1]
    assert c.line_targets(2).size == 0
