import numpy as np
import pytest

from pyhdg.assembly.hdg_local import AssemblyMode, LocalAssembler, stabilization_parameter
from pyhdg.assembly.scratch import ScratchData, ScratchPool
from pyhdg.config import BoundaryKinds, HDGParameters
from pyhdg.core.dofhandler import HybridDofHandler
from pyhdg.core.pde import PDEData
from pyhdg.errors import SingularLocalBlockError
from pyhdg.utils.meshgen import hyper_cube_mesh


def _setup(k=1, convection=(1.0, 0.5)):
    mesh = hyper_cube_mesh(2)
    dh = HybridDofHandler(mesh, k)
    cx, cy = convection
    pde = PDEData(source=lambda x, y: 1.0 + 0 * x,
                  convection=lambda x, y: (cx + 0 * x, cy + 0 * y))
    return dh, LocalAssembler(dh, pde, HDGParameters(degree=k))


def test_stabilization_parameter_positive():
    tau = stabilization_parameter(5.0, np.array([-2.0, 0.0, 3.0]))
    assert np.allclose(tau, [7.0, 5.0, 8.0])
    with pytest.raises(SingularLocalBlockError):
        stabilization_parameter(0.0, np.zeros(3))
    with pytest.raises(ValueError):
        HDGParameters(tau_diffusion=-1.0)


@pytest.mark.parametrize("tau_diffusion", [1e-3, 1.0, 5.0, 100.0])
def test_stabilization_positive_for_sampled_convection(tau_diffusion):
    rng = np.random.default_rng(7)
    angles = rng.uniform(0.0, 2.0 * np.pi, 200)
    magnitudes = np.concatenate([[0.0], np.logspace(-6, 4, 199)])
    for nx, ny in [(1.0, 0.0), (0.0, -1.0), (np.sqrt(0.5), np.sqrt(0.5))]:
        c_n = magnitudes * (np.cos(angles) * nx + np.sin(angles) * ny)
        assert np.all(stabilization_parameter(tau_diffusion, c_n) > 0.0)


def test_local_blocks_shapes_and_invertibility():
    dh, assembler = _setup(k=2)
    scratch = ScratchData(dh.element)
    scratch.reset(0)
    assembler.assemble(0, scratch)
    n = 3 * 9
    assert scratch.LL.shape == (n, n)
    assert scratch.LF.shape == (n, 12)
    assert scratch.FL.shape == (12, n)
    assert scratch.FF.shape == (12, 12)
    assert np.linalg.matrix_rank(scratch.LL) == n
    # flux mass blocks are SPD copies of the element mass matrix
    el = dh.element
    M = scratch.LL[el.q_slice(0), el.q_slice(0)]
    assert np.allclose(M, M.T)
    assert np.allclose(M, scratch.LL[el.q_slice(1), el.q_slice(1)])
    assert np.isclose(M.sum(), 1.0)   # element area of a 2x2 mesh on [-1,1]^2


def test_source_enters_only_the_primal_rows():
    dh, assembler = _setup()
    scratch = ScratchData(dh.element)
    scratch.reset(0)
    assembler.assemble(0, scratch)
    el = dh.element
    assert np.allclose(scratch.l_rhs[el.q_slice(0)], 0.0)
    assert np.isclose(scratch.l_rhs[el.u_slice].sum(), 1.0)   # ∫ f over the cell


def test_scratch_reset_reuses_buffers():
    dh, assembler = _setup()
    pool = ScratchPool(dh.element, 2)
    s = pool[1]
    LL_id = id(s.LL)
    assembler.assemble(0, s)
    first = s.LL.copy()
    s.reset(0)
    assert id(s.LL) == LL_id and not s.LL.any()
    assembler.assemble(0, s)
    assert np.allclose(s.LL, first)


def test_reconstruct_mode_moves_trace_to_rhs():
    dh, assembler = _setup()
    trace = np.linspace(0.0, 1.0, dh.n_trace_dofs)
    s_c, s_r = ScratchData(dh.element), ScratchData(dh.element)
    s_c.reset(3), s_r.reset(3)
    assembler.assemble(3, s_c, AssemblyMode.CONDENSE)
    assembler.assemble(3, s_r, AssemblyMode.RECONSTRUCT, trace=trace)
    expected = s_c.l_rhs - s_c.LF @ trace[dh.element_trace_dofs(3)]
    assert np.allclose(s_r.l_rhs, expected)
    assert np.allclose(s_r.LL, s_c.LL)
    assert not s_r.FF.any()
    with pytest.raises(ValueError):
        assembler.assemble(3, s_r, AssemblyMode.RECONSTRUCT)


def test_neumann_data_enters_only_on_neumann_faces():
    mesh = hyper_cube_mesh(1)
    dh = HybridDofHandler(mesh, 1)
    pde = PDEData(neumann=lambda x, y: 2.0 + 0 * x)
    params = HDGParameters(degree=1, boundary_kinds=BoundaryKinds.neumann_on("left"))
    scratch = ScratchData(dh.element)
    scratch.reset(0)
    LocalAssembler(dh, pde, params).assemble(0, scratch)
    left = dh.element.face_slice(3)
    # face length 2, two linear hat functions: -g * 1 per dof
    assert np.allclose(scratch.f_rhs[left], -2.0)
    others = np.ones(scratch.f_rhs.size, dtype=bool)
    others[left] = False
    assert np.allclose(scratch.f_rhs[others], 0.0)
