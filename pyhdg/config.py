"""pyhdg.config
Parameter dataclasses for one HDG run.  Each block is validated on
construction so that malformed settings fail before any assembly starts.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

DIRICHLET = "dirichlet"
NEUMANN = "neumann"
_KINDS = (DIRICHLET, NEUMANN)


@dataclass
class BoundaryKinds:
    """Boundary marker -> condition kind.

    Markers are the string tags carried by boundary faces.  A marker that is
    not listed falls back to ``default``.
    """

    mapping: Dict[str, str] = field(default_factory=dict)
    default: str = DIRICHLET

    def __post_init__(self):
        for marker, kind in self.mapping.items():
            if kind not in _KINDS:
                raise ValueError(f"Unknown boundary kind '{kind}' for marker '{marker}'.")
        if self.default not in _KINDS:
            raise ValueError(f"Unknown default boundary kind '{self.default}'.")

    def kind(self, marker: str) -> str:
        return self.mapping.get(marker, self.default)

    def is_neumann(self, marker: str) -> bool:
        return self.kind(marker) == NEUMANN

    def is_dirichlet(self, marker: str) -> bool:
        return self.kind(marker) == DIRICHLET

    @classmethod
    def neumann_on(cls, *markers: str) -> "BoundaryKinds":
        """Neumann on the given markers, Dirichlet everywhere else."""
        return cls({m: NEUMANN for m in markers})


@dataclass
class HDGParameters:
    """Discretisation settings."""

    degree: int = 1                      # polynomial degree k of u, q and the trace
    tau_diffusion: float = 5.0           # diffusive part of the stabilisation
    quadrature_order: int | None = None  # Gauss points per direction, k+1 if None
    n_workers: int = 1                   # element-loop workers (1 = serial)
    boundary_kinds: BoundaryKinds = field(default_factory=BoundaryKinds)

    def __post_init__(self):
        if int(self.degree) < 1:
            raise ValueError(f"degree must be >= 1, got {self.degree}")
        if not self.tau_diffusion > 0.0:
            raise ValueError(f"tau_diffusion must be strictly positive, got {self.tau_diffusion}")
        if self.quadrature_order is not None and self.quadrature_order < 1:
            raise ValueError("quadrature_order must be >= 1")
        if self.n_workers < 1:
            raise ValueError("n_workers must be >= 1")
        self.degree = int(self.degree)

    @property
    def n_quad(self) -> int:
        return self.quadrature_order if self.quadrature_order is not None else self.degree + 1


@dataclass
class LinearSolverParameters:
    """Skeleton solve settings."""

    method: str = "gmres"          # 'gmres' | 'direct'
    rtol: float = 1e-10            # relative to the initial residual ‖b‖
    restart: int = 50
    max_iter_factor: int = 10      # iteration budget = factor * system size
    preconditioner: str = "none"   # 'none' | 'ilu'

    def __post_init__(self):
        if self.method not in {"gmres", "direct"}:
            raise ValueError(f"Unknown solver method '{self.method}'.")
        if self.preconditioner not in {"none", "ilu"}:
            raise ValueError(f"Unknown preconditioner '{self.preconditioner}'.")
        if self.rtol <= 0.0:
            raise ValueError("rtol must be positive")
        if self.restart < 1 or self.max_iter_factor < 1:
            raise ValueError("restart and max_iter_factor must be >= 1")


@dataclass
class RefinementParameters:
    """Outer cycle settings."""

    mode: str = "global"                 # 'global' | 'adaptive'
    n_cycles: int = 4
    refine_fraction: float = 0.3         # adaptive: share of cells marked per cycle
    bounds: Tuple[float, float] = (-1.0, 1.0)
    initial_subdivisions: int = 2
    conforming: bool = False             # adaptive: propagate splits instead of hanging nodes

    def __post_init__(self):
        if self.mode not in {"global", "adaptive"}:
            raise ValueError(f"Unknown refinement mode '{self.mode}'.")
        if self.n_cycles < 1:
            raise ValueError("n_cycles must be >= 1")
        if not 0.0 < self.refine_fraction <= 1.0:
            raise ValueError("refine_fraction must lie in (0, 1]")
        if not self.bounds[0] < self.bounds[1]:
            raise ValueError(f"Invalid domain bounds {self.bounds}")
        if self.initial_subdivisions < 1:
            raise ValueError("initial_subdivisions must be >= 1")
