"""Grid flood-label visualization.

Renders the labeled grid as a centroid scatter (flooded cells highlighted)
with the AOI-wide flooded area in the title. Uses the Agg backend; plots go
to files only.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.colors import ListedColormap

__all__ = ['FloodGridPlotter', 'plot_grid_labels']

logger = logging.getLogger(__name__)

LABEL_COLORS = ListedColormap(["#d9d9d9", "#2166ac"])


class FloodGridPlotter:
    """Scatter plot of grid centroids colored by flood label.

    Cells with ``flood_label == 1`` are drawn in blue, dry cells in light
    gray. Marker size and figure settings come from the ``visualization``
    config section.

    Example usage::

        plotter = FloodGridPlotter(config.visualization)
        path = plotter.plot(result, output_dirs["plots"] / "labels.png")
    """

    def __init__(self, viz_config=None):
        self.dpi = getattr(viz_config, "dpi", 150)
        self.figsize = tuple(getattr(viz_config, "figsize", (8, 8)))
        self.output_format = getattr(viz_config, "output_format", "png")
        self.marker_size = getattr(viz_config, "marker_size", 60.0)

    def _setup_figure(self) -> Tuple[plt.Figure, plt.Axes]:
        fig, ax = plt.subplots(1, 1, figsize=self.figsize, dpi=self.dpi)
        return fig, ax

    def _title(self, result) -> str:
        title = result.aoi_name or "Flood labels"
        if result.flooded_km2 is not None:
            title += f"\nflooded {result.flooded_km2:.2f} km²"
        if result.flood_cell_count is not None and result.grid_cell_count:
            title += f" | {result.flood_cell_count}/{result.grid_cell_count} cells"
        if result.after_acquired_utc is not None:
            title += f" | after {result.after_acquired_utc:%Y-%m-%d %H:%M} UTC"
        return title

    def plot(self, result, output_path: Path) -> Path:
        """Render ``result.cells`` to ``output_path``.

        Raises
        ------
        ValueError
            If the result has no labeled cells.
        """
        if result.cells is None or result.cells.empty:
            raise ValueError(f"Run {result.run_id} has no labeled cells to plot")

        cells = result.cells
        labels = cells["flood_label"].to_numpy(dtype=int)

        fig, ax = self._setup_figure()
        try:
            ax.scatter(
                cells["centroid_lon"], cells["centroid_lat"],
                c=labels, cmap=LABEL_COLORS, vmin=0, vmax=1,
                s=self.marker_size, marker="s", edgecolors="none",
            )
            flooded = labels == 1
            if np.any(flooded):
                ax.scatter(
                    cells.loc[flooded, "centroid_lon"], cells.loc[flooded, "centroid_lat"],
                    s=self.marker_size, marker="s", facecolors="none",
                    edgecolors="black", linewidths=0.5, label="flood_label = 1",
                )
                ax.legend(loc="upper right", fontsize=8)

            ax.set_xlabel("Longitude")
            ax.set_ylabel("Latitude")
            ax.set_aspect("equal", adjustable="datalim")
            ax.set_title(self._title(result), fontsize=10)
            ax.grid(True, alpha=0.3)

            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(output_path, dpi=self.dpi, bbox_inches="tight", format=self.output_format)
        finally:
            plt.close(fig)

        logger.info("Plot saved: %s", output_path)
        return output_path


def plot_grid_labels(result, output_dirs: Dict[str, Path], viz_config=None,
                     output_path: Optional[Path] = None) -> Path:
    """Plot a run's labeled grid to ``plots/flood_labels_{run_id}.{fmt}``."""
    plotter = FloodGridPlotter(viz_config)
    if output_path is None:
        output_path = Path(output_dirs["plots"]) / f"flood_labels_{result.run_id}.{plotter.output_format}"
    return plotter.plot(result, output_path)
