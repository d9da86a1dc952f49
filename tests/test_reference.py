import numpy as np
import pytest

from pyhdg.fem.reference import get_reference


@pytest.mark.parametrize("k", [1, 2, 3])
def test_quad_basis_kronecker_and_partition_of_unity(k):
    ref = get_reference('quad', k)
    nodes = np.linspace(-1.0, 1.0, k + 1)
    lattice = [(xi, eta) for eta in nodes for xi in nodes]  # eta outer, xi inner
    for idx, (xi, eta) in enumerate(lattice):
        N = ref.shape(float(xi), float(eta))
        assert np.isclose(N[idx], 1.0)
        assert np.allclose(np.delete(N, idx), 0.0, atol=1e-12)
    N = ref.shape(0.123, -0.456)
    G = ref.grad(0.123, -0.456)
    assert np.isclose(N.sum(), 1.0)
    assert np.allclose(G.sum(axis=0), 0.0, atol=1e-12)


def test_line_basis_is_symmetric_under_reversal():
    ref = get_reference('line', 2)
    t = 0.37
    assert np.allclose(ref.shape(t), ref.shape(-t)[::-1])
    vals, grads = ref.tabulate(np.array([-1.0, 0.0, 1.0]))
    assert np.allclose(vals, np.eye(3), atol=1e-12)
    assert grads.shape == (3, 3, 1)


def test_unknown_reference_raises():
    with pytest.raises(KeyError):
        get_reference('hex', 1)
