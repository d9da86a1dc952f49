"""pyhdg.core.context
Per-cycle state of the discretisation.

A ``DiscretizationContext`` is created fresh for every refinement cycle and
owns the dof handler, the constraints, the skeleton system and all solution
vectors of that cycle.  Stage functions receive the context, check that they
run in order and advance ``phase``.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import scipy.sparse as sp

from pyhdg.config import HDGParameters, LinearSolverParameters
from pyhdg.core.mesh import Mesh
from pyhdg.core.pde import PDEData
from pyhdg.errors import PipelineStateError

logger = logging.getLogger(__name__)


class CyclePhase(enum.IntEnum):
    CREATED = 0
    SETUP = 1
    ASSEMBLED = 2
    SOLVED = 3
    RECONSTRUCTED = 4
    POSTPROCESSED = 5
    OUTPUT = 6


@dataclass
class DiscretizationContext:
    mesh: Mesh
    pde: PDEData
    params: HDGParameters = field(default_factory=HDGParameters)
    solver_params: LinearSolverParameters = field(default_factory=LinearSolverParameters)
    phase: CyclePhase = CyclePhase.CREATED

    dof_handler: Optional[object] = None          # HybridDofHandler
    constraints: Optional[object] = None          # AffineConstraints
    sparsity_pattern: Optional[sp.spmatrix] = None
    system_matrix: Optional[sp.spmatrix] = None
    system_rhs: Optional[np.ndarray] = None
    trace: Optional[np.ndarray] = None
    interior: Optional[np.ndarray] = None
    recovery: Optional[np.ndarray] = None
    solver_info: Optional[object] = None          # SolverInfo

    def require(self, expected: CyclePhase, stage: str) -> None:
        """Raise unless the context sits exactly at ``expected``."""
        if self.phase != expected:
            raise PipelineStateError(
                f"'{stage}' needs phase {expected.name}, context is at {self.phase.name}.")

    def require_at_least(self, expected: CyclePhase, stage: str) -> None:
        if self.phase < expected:
            raise PipelineStateError(
                f"'{stage}' needs phase {expected.name} or later, context is at {self.phase.name}.")

    def advance(self, phase: CyclePhase) -> None:
        logger.debug("Cycle phase %s -> %s", self.phase.name, phase.name)
        self.phase = phase
