import matplotlib.pyplot as plt
import numpy as np

from .fitting import GaussianFit
from .histo1d import Histogram1D


def histo1d(
    hist: Histogram1D,
    subplots: (plt.Figure, plt.Axes) = None,
    xlabel: str = None,
    ylabel: str = None,
    label: str = None,
    title: str = None,
    color: str = None,
    linestyle: str = None,
    linewidth: float = None,
    display_stats: bool = True,
    ):

    fig, ax = (plt.subplots() if subplots is None else subplots)

    if linewidth is None: linewidth = 0.5

    # repeat the last count so the final bin gets its right edge
    ax.step(hist.edges, np.append(hist.bins, hist.bins[-1]), where='post', label=label, linewidth=linewidth, color=color, linestyle=linestyle)
    ax.set_xlim(hist.range)
    ax.set_ylim(bottom=0)

    ax.set_xlabel(xlabel if xlabel is not None else hist.name)
    ax.set_ylabel(ylabel if ylabel is not None else "Counts")
    if label is not None: ax.legend()
    if title is not None: ax.set_title(title)

    ax.minorticks_on()
    ax.tick_params(axis='both',which='minor',direction='in',top=True,right=True,left=True,bottom=True,length=2)
    ax.tick_params(axis='both',which='major',direction='in',top=True,right=True,left=True,bottom=True,length=4)

    if display_stats: histogram1d_stats_box(ax=ax, hist=hist)

    fig.tight_layout()

    return fig, ax


def stats_text(hist: Histogram1D, x_lims) -> str:
    stats = hist.statistics(*sorted(x_lims))
    return f"Mean: {stats.mean:.2f}\nStd Dev: {stats.stdev:.2f}\nIntegral: {stats.count:.0f}"


def histogram1d_stats_box(ax, hist: Histogram1D):
    """Stats box in the corner of ax, recomputed from the bins whenever the x-limits change."""

    props = dict(boxstyle='round', facecolor='white', alpha=0.5, edgecolor='black')
    text_box = ax.text(0.95, 0.95, stats_text(hist, ax.get_xlim()), transform=ax.transAxes, fontsize=10,
                       verticalalignment='top', horizontalalignment='right', bbox=props)

    def on_xlims_change(ax):
        text_box.set_text(stats_text(hist, ax.get_xlim()))
        ax.figure.canvas.draw_idle()

    ax.callbacks.connect('xlim_changed', on_xlims_change)

    return text_box


def plot_gaussian_fit(ax, fit: GaussianFit, color: str = 'blue', background_color: str = 'green', points: int = 2000):
    """Draw the total fit, each gaussian on top of the background, and the background."""

    lines = []
    x = np.linspace(fit.window[0], fit.window[1], points)

    lines.append(ax.plot(x, fit.background_result.eval(x=x), color=background_color, linewidth=0.5)[0])
    lines.append(ax.plot(x, fit.eval(x), color=color, linewidth=0.5)[0])

    components = fit.result.eval_components(x=x)
    for i, peak in enumerate(fit.peaks):
        lines.append(ax.plot(x, components[f'g{i}_'] + fit.background_result.eval(x=x), color=color, linewidth=0.5, linestyle='--')[0])
        line = ax.axvline(x=peak.center, color='purple', linewidth=0.5)
        line.set_antialiased(False)
        lines.append(line)

    return lines
