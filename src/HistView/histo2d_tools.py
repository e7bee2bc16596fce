import matplotlib.colors as colors
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import PolyCollection
from matplotlib.patches import PathPatch

from .cut import Cut2D
from .histo2d import Histogram2D


def histo2d(
        hist: Histogram2D,
        subplots: (plt.Figure, plt.Axes) = None,
        title: str = None,
        xlabel: str = None,
        ylabel: str = None,
        display_stats: bool = True,
        cmap: str = None,
        cbar: bool = True,
        cuts: list = None,
        ):
        """
        Draw only the populated bins of hist as coloured rectangles (log scale).

        Returns (fig, ax, collection); collection is None for an empty histogram.
        """

        fig, ax = (plt.subplots() if subplots is None else subplots)

        if cmap is None: cmap = "viridis"

        collection = populated_bins_collection(hist, cmap=cmap)
        if collection is not None:
            ax.add_collection(collection)
            if cbar: fig.colorbar(collection, ax=ax)

        ax.set_xlim(hist.x_range)
        ax.set_ylim(hist.y_range)
        ax.set_xlabel(xlabel if xlabel is not None else "")
        ax.set_ylabel(ylabel if ylabel is not None else "")
        ax.set_title(title if title is not None else hist.name)

        ax.minorticks_on()
        ax.tick_params(axis='both',which='minor',direction='in',top=True,right=True,left=True,bottom=True,length=2)
        ax.tick_params(axis='both',which='major',direction='in',top=True,right=True,left=True,bottom=True,length=4)

        if display_stats: histogram2d_stats_box(ax=ax, hist=hist)

        for cut in (cuts or []):
            draw_cut(ax, cut)

        fig.tight_layout()

        return fig, ax, collection


def populated_bins_collection(hist: Histogram2D, cmap: str = "viridis"):
    bars = hist.bar_data()
    if not bars:
        return None

    rects = []
    counts = np.empty(len(bars), dtype=np.float64)
    for i, bar in enumerate(bars):
        x0, x1 = bar.x - bar.width / 2, bar.x + bar.width / 2
        y0, y1 = bar.y - bar.height / 2, bar.y + bar.height / 2
        rects.append([(x0, y0), (x1, y0), (x1, y1), (x0, y1)])
        counts[i] = bar.count

    collection = PolyCollection(rects, cmap=cmap, norm=colors.LogNorm(vmin=max(hist.min_count, 1), vmax=max(hist.max_count, 1)),
                                edgecolors='none')
    collection.set_array(counts)
    return collection


def stats_text(hist: Histogram2D, x_lims, y_lims) -> str:
    stats = hist.statistics(tuple(sorted(x_lims)), tuple(sorted(y_lims)))
    return (f"Integral: {stats.count:.0f}\nMean: ({stats.mean_x:.2f}, {stats.mean_y:.2f})"
            f"\nStd Dev: ({stats.stdev_x:.2f}, {stats.stdev_y:.2f})")


def histogram2d_stats_box(ax, hist: Histogram2D):
    """Stats box recomputed from the populated bins inside the visible window."""

    props = dict(boxstyle='round', facecolor='white', alpha=0.5, edgecolor='black')
    text_box = ax.text(0.95, 0.95, stats_text(hist, ax.get_xlim(), ax.get_ylim()), transform=ax.transAxes, fontsize=10,
                       verticalalignment='top', horizontalalignment='right', bbox=props)

    def on_lims_change(ax):
        text_box.set_text(stats_text(hist, ax.get_xlim(), ax.get_ylim()))
        ax.figure.canvas.draw_idle()

    ax.callbacks.connect('xlim_changed', on_lims_change)
    ax.callbacks.connect('ylim_changed', on_lims_change)

    return text_box


def draw_cut(ax, cut: Cut2D, color: str = 'red'):
    """Outline of the cut and its vertices; returns the artists, nothing for an empty cut."""

    if not cut.vertices:
        return []

    patch = PathPatch(cut.path, facecolor='none', edgecolor=color, linewidth=2)
    ax.add_patch(patch)

    vertices = cut.get_vertices()
    points, = ax.plot(vertices[:, 0], vertices[:, 1], 'o', color=color, markersize=4)

    return [patch, points]
