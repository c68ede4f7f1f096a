"""Plotting API for stagerank diagnostics."""

from stagerank.plotting.fits import (
    plot_comparison_fit,
    plot_comparison_fit_to_file,
    plot_score_ranking,
    plot_score_ranking_to_file,
)
from stagerank.plotting.styles import DEFAULT_PLOT_STYLE, PlotStyle, apply_plot_style
from stagerank.plotting.utils import sanitize_label, save_figure

__all__ = [
    "DEFAULT_PLOT_STYLE",
    "PlotStyle",
    "apply_plot_style",
    "plot_comparison_fit",
    "plot_comparison_fit_to_file",
    "plot_score_ranking",
    "plot_score_ranking_to_file",
    "sanitize_label",
    "save_figure",
]
