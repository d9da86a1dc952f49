import numpy as np
from typing import Tuple, List, Dict, Callable

from pyhdg.core.topology import Edge, Node, Element
from pyhdg.errors import MeshStateError


class Mesh:
    """
    Quadrilateral mesh topology: nodes, elements and faces (edges).

    The connectivity graph is built from node coordinates plus element
    definitions.  Shared edges get a geometrically consistent "left" and
    "right" element, and every edge carries the unit normal pointing out of
    its left element.  Edges that only touch one element but lie inside a
    longer single-sided edge are recognised as the two sides of a
    non-conforming (hanging-node) interface and linked via ``parent`` /
    ``children``; they are not domain boundary.
    """
    # Local-corner indices that form each edge, in CCW order.
    _EDGE_TABLE = {
        'quad': ((0, 1), (1, 2), (2, 3), (3, 0)),
    }
    _TOL = 1e-10

    def __init__(self,
                 nodes: List['Node'],
                 element_connectivity: np.ndarray,
                 elements_corner_nodes: np.ndarray = None,
                 *,
                 element_type: str = 'quad',
                 spatial_dim: int = 2):
        if element_type not in self._EDGE_TABLE:
            raise MeshStateError(f"Unsupported element type '{element_type}'.")
        if spatial_dim != 2:
            raise MeshStateError(f"Unsupported spatial dimension {spatial_dim}; only 2D meshes are handled.")
        self.element_type = element_type
        self.spatial_dim = spatial_dim
        self.nodes_list: List['Node'] = list(nodes)
        self.nodes_x_y_pos = np.array([[n.x, n.y] for n in self.nodes_list], dtype=float).reshape(-1, 2)
        self.elements_connectivity = np.asarray(element_connectivity, dtype=int).reshape(-1, 4)
        if elements_corner_nodes is None:
            # lattice order (bl, br, tl, tr) -> CCW corners
            elements_corner_nodes = self.elements_connectivity[:, [0, 1, 3, 2]]
        self.corner_connectivity = np.asarray(elements_corner_nodes, dtype=int).reshape(-1, 4)
        self.n_elements = len(self.elements_connectivity)
        if self.n_elements == 0:
            raise MeshStateError("Mesh has no active elements.")
        self.elements_list: List['Element'] = []
        self.edges_list: List['Edge'] = []
        self._edge_dict: Dict[Tuple[int, int], 'Edge'] = {}
        self._build_topology()
        self._link_hanging_edges()
        self.check()

    def _build_topology(self):
        """Builds Elements and Edges."""
        edge_defs = self._EDGE_TABLE[self.element_type]

        for eid, elem_nodes in enumerate(self.elements_connectivity):
            self.elements_list.append(Element(
                id=eid,
                nodes=tuple(int(n) for n in elem_nodes),
                corner_nodes=tuple(int(n) for n in self.corner_connectivity[eid]),
            ))

        # edge -> elements sharing it
        edge_incidences: Dict[Tuple[int, int], List[int]] = {}
        for eid, corners in enumerate(self.corner_connectivity):
            for c1, c2 in edge_defs:
                key = tuple(sorted((int(corners[c1]), int(corners[c2]))))
                edge_incidences.setdefault(key, []).append(eid)

        for edge_gid, ((n_min, n_max), shared_eids) in enumerate(edge_incidences.items()):
            if len(shared_eids) > 2:
                raise MeshStateError(f"Edge ({n_min}, {n_max}) is shared by {len(shared_eids)} elements.")
            left_eid = shared_eids[0]
            vA, vB = -1, -1
            left_corners = self.corner_connectivity[left_eid]
            for c1, c2 in edge_defs:
                if {int(left_corners[c1]), int(left_corners[c2])} == {n_min, n_max}:
                    vA, vB = int(left_corners[c1]), int(left_corners[c2])
                    break
            right_eid = shared_eids[1] if len(shared_eids) > 1 else None
            normal_vec, length = self._compute_normal((vA, vB))
            edge_obj = Edge(gid=edge_gid, nodes=(vA, vB), left=left_eid, right=right_eid,
                            normal=normal_vec, length=length)
            self.edges_list.append(edge_obj)
            self._edge_dict[(n_min, n_max)] = edge_obj

        for elem in self.elements_list:
            elem.edges = tuple(
                self._edge_dict[tuple(sorted((elem.corner_nodes[c1], elem.corner_nodes[c2])))].gid
                for c1, c2 in edge_defs)

    def _compute_normal(self, directed_edge_nodes: Tuple[int, int]):
        """Outward unit normal and length of a directed (CCW) edge."""
        v_start = self.nodes_x_y_pos[directed_edge_nodes[0]]
        v_end = self.nodes_x_y_pos[directed_edge_nodes[1]]
        directed_vec = v_end - v_start
        raw_normal = np.array([directed_vec[1], -directed_vec[0]], dtype=float)
        length = float(np.linalg.norm(raw_normal))
        if length <= 1e-14:
            raise MeshStateError(f"Degenerate edge between nodes {directed_edge_nodes}.")
        return raw_normal / length, length

    def _link_hanging_edges(self):
        """Pair fine single-sided edges with the coarse edge containing them."""
        single = [e for e in self.edges_list if e.right is None]
        if len(single) < 3:
            return
        P0 = np.array([self.nodes_x_y_pos[e.nodes[0]] for e in single])
        P1 = np.array([self.nodes_x_y_pos[e.nodes[1]] for e in single])
        D = P1 - P0
        L2 = np.einsum('ij,ij->i', D, D)
        lengths = np.sqrt(L2)
        tol = self._TOL
        for k, fine in enumerate(single):
            a, b = P0[k], P1[k]
            ra, rb = a - P0, b - P0
            cross_a = np.abs(ra[:, 0] * D[:, 1] - ra[:, 1] * D[:, 0])
            cross_b = np.abs(rb[:, 0] * D[:, 1] - rb[:, 1] * D[:, 0])
            ta = np.einsum('ij,ij->i', ra, D) / L2
            tb = np.einsum('ij,ij->i', rb, D) / L2
            hit = ((cross_a <= tol * L2) & (cross_b <= tol * L2)
                   & (np.minimum(ta, tb) >= -tol) & (np.maximum(ta, tb) <= 1.0 + tol)
                   & (lengths > lengths[k] * (1.0 + 1e-6)))
            candidates = np.flatnonzero(hit)
            if candidates.size == 0:
                continue
            coarse = single[int(candidates[np.argmin(lengths[candidates])])]
            fine.parent = coarse.gid
            coarse.children = coarse.children + (fine.gid,)

    def check(self):
        """Raise MeshStateError on inconsistent geometry or faces."""
        areas = self.signed_areas()
        if np.any(areas <= 0.0):
            bad = int(np.flatnonzero(areas <= 0.0)[0])
            raise MeshStateError(f"Element {bad} is degenerate or not counter-clockwise.")
        for edge in self.edges_list:
            if edge.children:
                covered = sum(self.edges_list[c].length for c in edge.children)
                if not np.isclose(covered, edge.length, rtol=1e-8):
                    raise MeshStateError(
                        f"Edge {edge.gid} is only partially covered by its hanging children.")

    # --- Public API ---
    @property
    def n_edges(self) -> int:
        return len(self.edges_list)

    def edge(self, edge_id: int) -> 'Edge':
        """Return the Edge object corresponding to a global `edge_id`."""
        if not 0 <= edge_id < len(self.edges_list):
            raise IndexError(f"Edge ID {edge_id} out of range.")
        return self.edges_list[edge_id]

    def edge_coords(self, edge_id: int) -> np.ndarray:
        """(2, 2) array with the start and end point of the edge."""
        return self.nodes_x_y_pos[list(self.edge(edge_id).nodes)]

    def element_coords(self, elem_id: int) -> np.ndarray:
        """Geometry node coordinates of an element in lattice order."""
        return self.nodes_x_y_pos[self.elements_connectivity[elem_id]]

    def boundary_edges(self) -> List['Edge']:
        return [e for e in self.edges_list if e.at_boundary]

    def hanging_edges(self) -> List['Edge']:
        """Fine sides of non-conforming interfaces."""
        return [e for e in self.edges_list if e.parent is not None]

    def tag_boundary_edges(self, tag_functions: Dict[str, Callable[[float, float], bool]]):
        """Applies tags to boundary edges based on their midpoint location."""
        for edge in self.boundary_edges():
            midpoint = self.nodes_x_y_pos[list(edge.nodes)].mean(axis=0)
            for tag_name, func in tag_functions.items():
                if func(midpoint[0], midpoint[1]):
                    edge.tag = tag_name
                    break

    def signed_areas(self) -> np.ndarray:
        x = self.nodes_x_y_pos[self.corner_connectivity, 0]
        y = self.nodes_x_y_pos[self.corner_connectivity, 1]
        return 0.5 * (np.sum(x * np.roll(y, -1, axis=1), axis=1)
                      - np.sum(y * np.roll(x, -1, axis=1), axis=1))

    def areas(self) -> np.ndarray:
        """Calculates the geometric area of each element."""
        return np.abs(self.signed_areas())

    def __repr__(self):
        return (f"<Mesh n_nodes={len(self.nodes_list)}, "
                f"n_elems={len(self.elements_list)}, "
                f"n_edges={len(self.edges_list)}, "
                f"n_hanging={len(self.hanging_edges())}, "
                f"elem_type='{self.element_type}'>")
