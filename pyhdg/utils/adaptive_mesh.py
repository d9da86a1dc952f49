"""
Adaptive refinement of axis-aligned quadrilateral meshes.

Cells are tracked in a parent/child tree.  Marked cells are split 1-to-4;
afterwards the mesh is made admissible in one of two ways:

* ``conforming=False`` (default): cells are split until every face is shared
  by at most one coarse and two fine cells (1-irregular mesh).  The hanging
  nodes this leaves behind are handled by trace constraints.
* ``conforming=True``: larger neighbours are split horizontally or vertically
  until all faces match, so no hanging nodes remain.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

import numpy as np

from pyhdg.core.mesh import Mesh
from pyhdg.core.topology import Node
from pyhdg.utils.meshgen import tag_rectangle_sides

logger = logging.getLogger(__name__)


@dataclass
class Cell:
    """A single quadrilateral cell of the refinement tree."""
    id: int
    x0: float
    y0: float
    dx: float
    dy: float
    level: int
    parent_id: int | None = None
    children_ids: List[int] = field(default_factory=list)


class AdaptiveQuadRefiner:
    """Owns the cell tree of a rectangle and hands out :class:`Mesh` snapshots."""

    _TOL = 1e-12

    def __init__(self, lower: Tuple[float, float], upper: Tuple[float, float], nx: int, ny: int):
        self.lower = (float(lower[0]), float(lower[1]))
        self.upper = (float(upper[0]), float(upper[1]))
        self.cells: Dict[int, Cell] = {}
        self.active_cells: Set[int] = set()
        self._next_cell_id = 0
        self._mesh_cells: List[int] = []

        dx = (self.upper[0] - self.lower[0]) / nx
        dy = (self.upper[1] - self.lower[1]) / ny
        for j in range(ny):
            for i in range(nx):
                self._new_cell(self.lower[0] + i * dx, self.lower[1] + j * dy, dx, dy, 0, None)

    def _new_cell(self, x0, y0, dx, dy, level, parent_id) -> Cell:
        cell = Cell(id=self._next_cell_id, x0=x0, y0=y0, dx=dx, dy=dy, level=level, parent_id=parent_id)
        self.cells[cell.id] = cell
        self.active_cells.add(cell.id)
        self._next_cell_id += 1
        return cell

    @property
    def n_active_cells(self) -> int:
        return len(self.active_cells)

    def subdivide_cell(self, parent_id: int, split_type: str = 'symm') -> List[Cell]:
        """Split a cell symmetrically ('symm'), horizontally ('horz') or vertically ('vert')."""
        if parent_id not in self.active_cells:
            return []
        parent = self.cells[parent_id]
        x0, y0, dx, dy = parent.x0, parent.y0, parent.dx, parent.dy
        hx, hy = 0.5 * dx, 0.5 * dy
        if split_type == 'symm':
            boxes = [(x0, y0, hx, hy), (x0 + hx, y0, hx, hy), (x0 + hx, y0 + hy, hx, hy), (x0, y0 + hy, hx, hy)]
        elif split_type == 'horz':
            boxes = [(x0, y0, dx, hy), (x0, y0 + hy, dx, hy)]
        elif split_type == 'vert':
            boxes = [(x0, y0, hx, dy), (x0 + hx, y0, hx, dy)]
        else:
            raise ValueError(f"Unknown split type '{split_type}'.")

        children = [self._new_cell(*box, parent.level + 1, parent_id) for box in boxes]
        parent.children_ids.extend(c.id for c in children)
        self.active_cells.remove(parent_id)
        return children

    def find_neighbors(self, cell: Cell, side: str) -> List[Cell]:
        """All active cells touching the given side of ``cell`` along a segment."""
        tol = self._TOL
        out = []
        for other_id in self.active_cells:
            other = self.cells[other_id]
            if side == 'right':
                hit = math.isclose(other.x0, cell.x0 + cell.dx, abs_tol=tol)
                lo, hi, olo, ohi = cell.y0, cell.y0 + cell.dy, other.y0, other.y0 + other.dy
            elif side == 'left':
                hit = math.isclose(other.x0 + other.dx, cell.x0, abs_tol=tol)
                lo, hi, olo, ohi = cell.y0, cell.y0 + cell.dy, other.y0, other.y0 + other.dy
            elif side == 'top':
                hit = math.isclose(other.y0, cell.y0 + cell.dy, abs_tol=tol)
                lo, hi, olo, ohi = cell.x0, cell.x0 + cell.dx, other.x0, other.x0 + other.dx
            elif side == 'bottom':
                hit = math.isclose(other.y0 + other.dy, cell.y0, abs_tol=tol)
                lo, hi, olo, ohi = cell.x0, cell.x0 + cell.dx, other.x0, other.x0 + other.dx
            else:
                raise ValueError(side)
            if hit and max(lo, olo) < min(hi, ohi) - tol:
                out.append(other)
        return out

    # ------------------------------------------------------------------
    def refine(self, marked: Sequence[int], *, conforming: bool = False) -> None:
        """Split the marked cell ids and restore mesh admissibility."""
        for cell_id in marked:
            self.subdivide_cell(int(cell_id), 'symm')
        if conforming:
            self._propagate_conforming()
        else:
            self._balance_one_irregular()
        logger.info("Refined %d cells -> %d active cells", len(marked), self.n_active_cells)

    def refine_by_indicator(self, indicator: np.ndarray, fraction: float, *, conforming: bool = False) -> None:
        """Refine the given share of cells of the last mesh with the largest indicator."""
        indicator = np.asarray(indicator, dtype=float)
        if indicator.shape != (len(self._mesh_cells),):
            raise ValueError("Indicator must hold one value per cell of the last exported mesh.")
        n_mark = max(1, int(fraction * indicator.size))
        order = np.argsort(-indicator, kind='stable')[:n_mark]
        self.refine([self._mesh_cells[i] for i in order], conforming=conforming)

    def _balance_one_irregular(self) -> None:
        while True:
            to_split = set()
            for cell_id in self.active_cells:
                cell = self.cells[cell_id]
                for side in ('right', 'left', 'top', 'bottom'):
                    if any(n.level > cell.level + 1 for n in self.find_neighbors(cell, side)):
                        to_split.add(cell_id)
                        break
            if not to_split:
                return
            for cell_id in to_split:
                self.subdivide_cell(cell_id, 'symm')

    def _propagate_conforming(self) -> None:
        tol = self._TOL
        while True:
            cells_to_split: Dict[int, str] = {}
            for cell_id in list(self.active_cells):
                cell = self.cells[cell_id]
                # taller than a left/right neighbour -> horizontal split
                for neighbor in self.find_neighbors(cell, 'right') + self.find_neighbors(cell, 'left'):
                    if cell.dy > neighbor.dy + tol:
                        cells_to_split[cell.id] = 'symm' if cells_to_split.get(cell.id) == 'vert' else 'horz'
                # wider than a top/bottom neighbour -> vertical split
                for neighbor in self.find_neighbors(cell, 'top') + self.find_neighbors(cell, 'bottom'):
                    if cell.dx > neighbor.dx + tol:
                        cells_to_split[cell.id] = 'symm' if cells_to_split.get(cell.id) == 'horz' else 'vert'
            if not cells_to_split:
                return
            for cell_id, split_type in cells_to_split.items():
                self.subdivide_cell(cell_id, split_type)

    # ------------------------------------------------------------------
    def to_mesh(self) -> Mesh:
        """Snapshot of the active cells as a tagged :class:`Mesh`."""
        nodes: List[Node] = []
        loc_to_id: Dict[Tuple[int, int], int] = {}
        scale = 1e-9 * max(self.upper[0] - self.lower[0], self.upper[1] - self.lower[1])

        def get_node_id(x: float, y: float) -> int:
            key = (round(x / scale), round(y / scale))
            if key in loc_to_id:
                return loc_to_id[key]
            nid = len(nodes)
            nodes.append(Node(id=nid, x=x, y=y))
            loc_to_id[key] = nid
            return nid

        self._mesh_cells = sorted(self.active_cells,
                                  key=lambda cid: (self.cells[cid].y0, self.cells[cid].x0))
        elements, corners = [], []
        for cell_id in self._mesh_cells:
            c = self.cells[cell_id]
            bl = get_node_id(c.x0, c.y0)
            br = get_node_id(c.x0 + c.dx, c.y0)
            tl = get_node_id(c.x0, c.y0 + c.dy)
            tr = get_node_id(c.x0 + c.dx, c.y0 + c.dy)
            elements.append([bl, br, tl, tr])
            corners.append([bl, br, tr, tl])

        mesh = Mesh(nodes, np.array(elements, dtype=int), np.array(corners, dtype=int),
                    element_type='quad')
        return tag_rectangle_sides(mesh, self.lower, self.upper)
