import numpy as np

from pyhdg.config import BoundaryKinds
from pyhdg.core.dofhandler import HybridDofHandler
from pyhdg.utils.meshgen import hyper_cube_mesh


def test_dof_counts():
    mesh = hyper_cube_mesh(3)
    dh = HybridDofHandler(mesh, 2)
    assert dh.n_trace_dofs == mesh.n_edges * 3
    assert dh.n_interior_dofs == mesh.n_elements * 3 * 9
    assert dh.n_post_dofs == mesh.n_elements * 16
    assert dh.trace_dof_table.shape == (mesh.n_elements, 12)


def test_shared_face_has_one_set_of_dofs():
    mesh = hyper_cube_mesh(2)
    dh = HybridDofHandler(mesh, 1)
    for e in mesh.edges_list:
        if e.right is None:
            continue
        fl = mesh.elements_list[e.left].edges.index(e.gid)
        fr = mesh.elements_list[e.right].edges.index(e.gid)
        left = dh.element_trace_dofs(e.left)[2 * fl:2 * fl + 2]
        right = dh.element_trace_dofs(e.right)[2 * fr:2 * fr + 2]
        assert np.array_equal(left, right)
        assert np.array_equal(left, dh.face_dofs(e.gid))


def test_face_dof_points_run_along_edge():
    mesh = hyper_cube_mesh(1, 0.0, 1.0)
    dh = HybridDofHandler(mesh, 2)
    for e in mesh.edges_list:
        pts = dh.face_dof_points(e.gid)
        p0, p1 = mesh.edge_coords(e.gid)
        assert np.allclose(pts[0], p0) and np.allclose(pts[-1], p1)
        assert np.allclose(pts[1], 0.5 * (p0 + p1))


def test_sparsity_couples_only_faces_of_common_elements():
    mesh = hyper_cube_mesh(3)
    dh = HybridDofHandler(mesh, 1)
    pattern = dh.sparsity_pattern()
    # corner dof of the bottom-left boundary face vs a face of the top-right cell
    a = dh.face_dofs(mesh.elements_list[0].edges[0])[0]
    b = dh.face_dofs(mesh.elements_list[-1].edges[2])[0]
    assert pattern[a, a]
    assert not pattern[a, b]
    # every row of an interior face touches two cells: 7 faces * 2 dofs
    interior = next(e for e in mesh.edges_list if e.right is not None)
    row = dh.face_dofs(interior.gid)[0]
    assert pattern[row].nnz == 14


def test_boundary_faces_split_by_kind():
    mesh = hyper_cube_mesh(2)
    dh = HybridDofHandler(mesh, 1)
    kinds = BoundaryKinds.neumann_on("left", "top")
    dirichlet, neumann = dh.dirichlet_faces(kinds), dh.neumann_faces(kinds)
    assert len(dirichlet) == len(neumann) == 4
    assert sorted(dirichlet + neumann) == sorted(e.gid for e in mesh.boundary_edges())
    assert {mesh.edge(g).tag for g in neumann} == {"left", "top"}
