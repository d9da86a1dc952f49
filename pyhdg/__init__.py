"""pyhdg: hybridised discontinuous Galerkin for steady convection-diffusion."""
import logging

from pyhdg.config import (BoundaryKinds, HDGParameters, LinearSolverParameters,
                          RefinementParameters)
from pyhdg.errors import (HDGError, MeshStateError, PipelineStateError,
                          SingularLocalBlockError, SolverConvergenceError)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
