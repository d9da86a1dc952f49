"""pyhdg.errors
Exception hierarchy.  Every error here is fatal for the refinement cycle in
which it is raised; nothing downstream of a failed stage is trusted.
"""


class HDGError(RuntimeError):
    """Base class for all pyhdg failures."""


class SingularLocalBlockError(HDGError):
    """A per-element dense block could not be inverted."""

    def __init__(self, message: str, element_id: int | None = None):
        if element_id is not None:
            message = f"element {element_id}: {message}"
        super().__init__(message)
        self.element_id = element_id


class SolverConvergenceError(HDGError):
    """The skeleton linear solve did not reach its tolerance within budget."""

    def __init__(self, iterations: int, residual: float, message: str = ""):
        text = f"linear solver failed after {iterations} iterations (residual {residual:.3e})"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)
        self.iterations = iterations
        self.residual = residual


class MeshStateError(HDGError):
    """Mesh is empty, has an unsupported dimension or inconsistent faces."""


class PipelineStateError(HDGError):
    """A stage of the cycle pipeline was called out of order."""
