import numpy as np
import pytest

from pyhdg.fem import transform
from pyhdg.fem.reference import get_reference
from pyhdg.utils.meshgen import hyper_cube_mesh


def test_reference_to_global_mapping():
    mesh = hyper_cube_mesh(1, 0.0, 2.0)
    X = mesh.element_coords(0)
    pts = np.array([[0.0, 0.0], [0.3, -0.2]])
    N, dN = get_reference('quad', 1).tabulate(pts)
    assert np.allclose(transform.map_points(X, N)[0], [1.0, 1.0])
    J, detJ, _ = transform.jacobians(X, dN)
    # detJ of the bilinear map is a quarter of the cell area
    assert np.allclose(detJ, mesh.areas()[0] / 4)
    for f in range(4):
        assert np.allclose(transform.face_measure(J, f), 1.0)


def test_parallelogram_gradients_are_exact():
    X = np.array([[0.0, 0.0], [2.0, 0.0], [1.0, 1.0], [3.0, 1.0]])
    pts = np.array([[-0.5, 0.2], [0.7, -0.9], [0.0, 0.0]])
    N, dN = get_reference('quad', 1).tabulate(pts)
    J, detJ, invJ = transform.jacobians(X, dN)
    assert np.allclose(detJ, 0.5)
    nodal = 3.0 * X[:, 0] + X[:, 1]
    grads = np.einsum('i,qia->qa', nodal, transform.physical_gradients(dN, invJ))
    assert np.allclose(grads, [[3.0, 1.0]] * 3)
    assert np.allclose(transform.map_points(X, N)[2], [1.5, 0.5])
    # bottom face has length 2 on a reference face of length 2
    assert np.allclose(transform.face_measure(J, 0), 1.0)
    # the slanted left face (0,0)-(1,1) has length sqrt(2)
    assert np.allclose(transform.face_measure(J, 3), np.sqrt(2.0) / 2.0)


def test_inverted_cell_is_rejected():
    X = np.array([[1.0, 0.0], [0.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    _, dN = get_reference('quad', 1).tabulate(np.array([[0.0, 0.0]]))
    with pytest.raises(ValueError):
        transform.jacobians(X, dN)
