"""Figures bound to precomputed FitResult and score tables."""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from stagerank.core.types import FitResult
from stagerank.plotting.styles import DEFAULT_PLOT_STYLE, PlotStyle
from stagerank.plotting.utils import save_figure


def plot_comparison_fit(
    fit: FitResult,
    *,
    title: str | None = None,
    ax: plt.Axes | None = None,
    log_axes: bool = True,
    style: PlotStyle = DEFAULT_PLOT_STYLE,
) -> tuple[plt.Figure, plt.Axes]:
    """Scatter predictor vs response with the robust line (no refitting).

    Both axes go to log scale when `log_axes` is set and every plotted value
    is positive.
    """
    if not fit.ok:
        raise ValueError(f"Cannot plot failed fit '{fit.pair.label}': {fit.error}")
    x = fit.residuals["predictor"].to_numpy(dtype=float)
    y = fit.residuals["response"].to_numpy(dtype=float)

    if ax is None:
        fig, ax = plt.subplots(figsize=style.figsize_fit)
    else:
        fig = ax.figure

    use_log = bool(log_axes) and x.size > 0 and bool(np.all(x > 0.0) and np.all(y > 0.0))
    ax.scatter(x, y, s=style.s_point, alpha=style.alpha_point, color=style.point_color, lw=0)
    if x.size > 0:
        lo, hi = float(np.min(x)), float(np.max(x))
        grid = np.geomspace(lo, hi, num=100) if use_log else np.linspace(lo, hi, num=100)
        ax.plot(
            grid,
            fit.intercept + fit.slope * grid,
            color=style.line_color,
            lw=1.5,
            label=f"y = {fit.intercept:.3g} + {fit.slope:.3g}x",
        )
        ax.legend(loc="upper left", frameon=False)
    if use_log:
        ax.set_xscale("log")
        ax.set_yscale("log")
    ax.set_xlabel(str(fit.pair.predictor))
    ax.set_ylabel(str(fit.pair.response))
    ax.set_title(title or fit.pair.label)
    fig.tight_layout()
    return fig, ax


def plot_score_ranking(
    scores: pd.DataFrame,
    *,
    top_k: int = 20,
    title: str | None = None,
    ax: plt.Axes | None = None,
    style: PlotStyle = DEFAULT_PLOT_STYLE,
) -> tuple[plt.Figure, plt.Axes]:
    """Horizontal bars of the top-k composite scores, best at the top."""
    if int(top_k) <= 0:
        raise ValueError("top_k must be positive.")
    top = scores.head(int(top_k))
    if ax is None:
        fig, ax = plt.subplots(figsize=style.figsize_ranking)
    else:
        fig = ax.figure

    pos = np.arange(top.shape[0])
    ax.barh(pos, top["score"].to_numpy(dtype=float), color=style.highlight_color)
    ax.set_yticks(pos)
    ax.set_yticklabels(top["label"].astype(str).tolist())
    ax.invert_yaxis()
    ax.axvline(0.0, color="black", lw=0.8)
    ax.set_xlabel("Score = F1 x F2 x F3")
    ax.set_title(title or f"Top {top.shape[0]} genes")
    fig.tight_layout()
    return fig, ax


def plot_comparison_fit_to_file(
    fit: FitResult,
    out_png: str | Path,
    *,
    style: PlotStyle = DEFAULT_PLOT_STYLE,
) -> None:
    fig, _ = plot_comparison_fit(fit, style=style)
    save_figure(fig, Path(out_png), style=style)


def plot_score_ranking_to_file(
    scores: pd.DataFrame,
    out_png: str | Path,
    *,
    top_k: int = 20,
    style: PlotStyle = DEFAULT_PLOT_STYLE,
) -> None:
    fig, _ = plot_score_ranking(scores, top_k=top_k, style=style)
    save_figure(fig, Path(out_png), style=style, bbox_tight=True)
