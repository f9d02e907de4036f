"""Visualization module for labeled flood grids."""

from .plotter import FloodGridPlotter, plot_grid_labels

__all__ = ['FloodGridPlotter', 'plot_grid_labels']
