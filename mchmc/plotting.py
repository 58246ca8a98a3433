"""Shared plotting utilities for mchmc.

Provides consistent Nord-inspired, editorial styling across demos and scripts, and
`plot_chain` for a quick look at a sampler run.
"""

import os

import matplotlib.pyplot as plt
import numpy as np


# Publication-ready figure sizes (in inches)
FIG_WIDTH_SINGLE = 3.25
FIG_WIDTH_DOUBLE = 6.75
GOLDEN_RATIO = (5**0.5 - 1) / 2

FONT_SIZE_TITLE = 10
FONT_SIZE_LABEL = 9
FONT_SIZE_TICK = 8
FONT_SIZE_LEGEND = 8

LW = 1.5

PLOT_STYLE = {
    "font.family": "monospace",
    "font.monospace": ["JetBrains Mono", "DejaVu Sans Mono", "Menlo", "Monaco"],
    "font.size": FONT_SIZE_LABEL,
    "axes.titlesize": FONT_SIZE_TITLE,
    "axes.labelsize": FONT_SIZE_LABEL,
    "xtick.labelsize": FONT_SIZE_TICK,
    "ytick.labelsize": FONT_SIZE_TICK,
    "legend.fontsize": FONT_SIZE_LEGEND,
    "axes.grid": True,
    "grid.alpha": 0.2,
    "grid.linewidth": 0.5,
    "axes.spines.top": False,
    "axes.spines.right": False,
    "legend.frameon": True,
    "legend.framealpha": 0.95,
    "legend.edgecolor": "0.9",
    "figure.facecolor": "#FAFBFC",
    "axes.facecolor": "#FFFFFF",
    "savefig.facecolor": "#FAFBFC",
    "lines.linewidth": LW,
}

COLORS = {
    "blue": "#5E81AC",
    "orange": "#D08770",
    "green": "#A3BE8C",
    "red": "#BF616A",
    "purple": "#B48EAD",
    "cyan": "#88C0D0",
    "gray": "#4C566A",

    # Semantic aliases
    "single-stage": "#5E81AC",
    "minimal-norm": "#B48EAD",
    "energy": "#D08770",
    "theory": "#4C566A",
    "trajectory": "#88C0D0",
}


def apply_style():
    """Apply the shared plotting style to matplotlib."""
    plt.rcParams.update(PLOT_STYLE)


def get_figsize(width, nrows=1, ncols=1, aspect=None):
    """(width, height) in inches for a subplot grid, golden ratio by default."""
    if aspect is None:
        aspect = GOLDEN_RATIO
    return (width, width * (nrows / ncols) * aspect)


def get_assets_dir():
    """Get the assets directory path relative to this module."""
    return os.path.join(os.path.dirname(__file__), "..", "assets")


def plot_chain(records, coord: int = 0, axes=None, color=None, label=None):
    """Trace, histogram and (if monitored) energy trace of one coordinate.

    Args:
        records: SampleRecords returned by the sampler.
        coord: coordinate to show.
        axes: three matplotlib axes; a new figure is made if None.

    Returns:
        (fig, axes)
    """
    x = np.array([r.position[coord].item() for r in records])
    has_energy = all(r.energy is not None for r in records)
    trace_color = color or COLORS["blue"]

    if axes is None:
        fig, axes = plt.subplots(1, 3, figsize=get_figsize(FIG_WIDTH_DOUBLE, ncols=3, aspect=0.8),
                                 constrained_layout=True)
    else:
        fig = axes[0].figure

    ax = axes[0]
    ax.plot(x, color=trace_color, lw=0.8, label=label)
    ax.set_xlabel("Step")
    ax.set_ylabel(f"x[{coord}]")
    ax.set_title("Trace", fontweight="bold")

    ax = axes[1]
    ax.hist(x, bins=40, density=True, color=trace_color, alpha=0.6, label=label)
    ax.set_xlabel(f"x[{coord}]")
    ax.set_title("Marginal", fontweight="bold")

    ax = axes[2]
    if has_energy:
        E = np.array([r.energy for r in records])
        ax.plot(E, color=color or COLORS["energy"], lw=0.8, label=label)
        ax.set_xlabel("Step")
        ax.set_ylabel("E")
    else:
        ax.text(0.5, 0.5, "energy not monitored", ha="center", va="center",
                transform=ax.transAxes, color=COLORS["gray"])
    ax.set_title("Energy", fontweight="bold")

    return fig, axes
