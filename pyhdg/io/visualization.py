"""pyhdg.io.visualization"""
import numpy as np
from matplotlib.collections import LineCollection, PolyCollection
import matplotlib.pyplot as plt


_EDGE_COLOR = {
    "boundary": "dimgray",
    "hanging": "red",
    "default": "black",
}


def plot_mesh(mesh, *, cell_values=None, plot_edges=True, show=True, ax=None, title="Mesh"):
    """
    Plot a quadrilateral mesh, optionally coloured by one value per cell.

    Args:
        mesh (Mesh): The mesh to plot.
        cell_values (np.ndarray, optional): Per-element values, e.g. the
            refinement indicator.
        plot_edges (bool, optional): Draw faces; hanging sides in red.
        show (bool, optional): Call ``plt.show()`` at the end.
        ax (matplotlib.axes.Axes, optional): Existing axes to draw on.
    Returns:
        matplotlib.axes.Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    polys = [mesh.nodes_x_y_pos[list(el.corner_nodes)] for el in mesh.elements_list]
    if cell_values is not None:
        cell_values = np.asarray(cell_values, dtype=float)
        if cell_values.shape != (mesh.n_elements,):
            raise ValueError("cell_values must hold one value per element.")
        coll = PolyCollection(polys, array=cell_values, cmap='viridis', edgecolors='none', zorder=1)
        ax.add_collection(coll)
        plt.colorbar(coll, ax=ax)
    else:
        ax.add_collection(PolyCollection(polys, facecolors=(0.9, 0.9, 0.9, 0.5),
                                         edgecolors='none', zorder=1))

    if plot_edges:
        segments, colors = [], []
        for edge in mesh.edges_list:
            segments.append(mesh.edge_coords(edge.gid))
            if edge.parent is not None:
                colors.append(_EDGE_COLOR["hanging"])
            elif edge.at_boundary:
                colors.append(_EDGE_COLOR["boundary"])
            else:
                colors.append(_EDGE_COLOR["default"])
        ax.add_collection(LineCollection(segments, colors=colors, linewidths=0.9, zorder=2))

    ax.set_aspect('equal', 'box')
    xmin, ymin = mesh.nodes_x_y_pos.min(axis=0)
    xmax, ymax = mesh.nodes_x_y_pos.max(axis=0)
    xpad = (xmax - xmin) * 0.05 or 0.1
    ypad = (ymax - ymin) * 0.05 or 0.1
    ax.set_xlim(xmin - xpad, xmax + xpad)
    ax.set_ylim(ymin - ypad, ymax + ypad)
    ax.set_title(title)
    ax.set_xlabel("X-coordinate")
    ax.set_ylabel("Y-coordinate")

    if show:
        plt.show()
    return ax


def plot_convergence(table, *, ax=None, show=True):
    """Log-log plot of the error columns of a convergence table against dofs."""
    if ax is None:
        _, ax = plt.subplots(figsize=(7, 5))
    for column in ("val L2", "grad L2", "val L2-post"):
        ax.loglog(table["dofs"], table[column], 'o-', label=column)
    ax.set_xlabel("trace dofs")
    ax.set_ylabel("L2 error")
    ax.grid(True, which='both', alpha=0.3)
    ax.legend()
    if show:
        plt.show()
    return ax
