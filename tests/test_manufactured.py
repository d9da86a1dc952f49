import numpy as np

from pyhdg.utils.manufactured import gaussian_problem, manufactured_problem, x, y


def test_source_is_minus_laplacian_plus_convective_flux_divergence():
    pde = manufactured_problem(x**2 * y, (y, -x))
    X, Y = np.array([0.3]), np.array([-0.7])
    # -Δu + c·∇u  (c divergence free): -2y + y*2xy - x*x^2
    expected = -2 * Y + Y * 2 * X * Y - X * X**2
    assert np.allclose(pde.eval_source(np.column_stack([X, Y])), expected)
    gx, gy = pde.exact.gradient(X, Y)
    assert np.allclose([gx[0], gy[0]], [2 * 0.3 * -0.7, 0.09])


def test_neumann_data_is_outward_total_flux():
    pde = manufactured_problem(x + 2 * y, (1, 0))
    pts = np.array([[1.0, 0.2]])
    # right side: (-u_x + c_x u) * 1 = -1 + (1 + 0.4)
    assert np.allclose(pde.eval_neumann("right", pts), 0.4)
    assert np.allclose(pde.eval_neumann("top", np.array([[0.1, 1.0]])), -2.0)


def test_gaussian_peaks_at_centres():
    pde = gaussian_problem()
    vals = pde.exact.value(np.array([-0.5, 0.5, 0.9]), np.array([0.5, 0.5, 0.9]))
    assert vals[0] > vals[2] and vals[0] > vals[1]
    cx, cy = pde.convection(np.array([0.2]), np.array([0.3]))
    assert np.allclose([cx[0], cy[0]], [0.3, -0.2])
