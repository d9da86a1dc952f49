import numpy as np
from dataclasses import dataclass, field
from typing import Tuple, Optional


class Node:
    def __init__(self, id, x, y, tag=None):
        self.x = x
        self.y = y
        self.id = id
        self.tag = tag

    def __repr__(self):
        return f"Node {self.id}({self.x:.3f}, {self.y:.3f}, tag='{self.tag}')"


@dataclass(slots=True)
class Edge:
    """A mesh face.  Trace DOFs on it run from ``nodes[0]`` to ``nodes[1]``."""
    gid: int
    nodes: Tuple[int, int]      # Global node indices, CCW order of the left element
    left: Optional[int]         # Owning element
    right: Optional[int]        # Neighbour, None on the boundary or on a hanging side
    normal: np.ndarray          # Unit normal, pointing out of the left element
    tag: str = ""               # Boundary marker
    length: float = 0.0
    parent: Optional[int] = None                      # coarse face this face lies inside
    children: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def at_boundary(self) -> bool:
        """True only for faces on the domain boundary (not hanging sides)."""
        return self.right is None and self.parent is None and not self.children

    def outward_normal(self, elem_id: int) -> np.ndarray:
        if elem_id == self.left:
            return self.normal
        if elem_id == self.right:
            return -self.normal
        raise ValueError(f"Element {elem_id} is not adjacent to edge {self.gid}.")


@dataclass(slots=True)
class Element:
    id: int                     # Element ID
    nodes: Tuple[int, ...]      # Geometry node ids in lattice order (eta outer, xi inner)
    corner_nodes: Tuple[int, ...] = field(default_factory=tuple)  # CCW corners
    edges: Tuple[int, ...] = field(default_factory=tuple)         # bottom, right, top, left
