"""
Peak fitting on a window of a Histogram1D.

Everything works on bin contents: a linear background is fitted through the
counts nearest a set of positions, subtracted, and a sum of gaussians is fitted
to what is left. Areas are reported in counts (amplitude / bin width).
"""

from dataclasses import dataclass, field

import numpy as np
from lmfit.models import GaussianModel, LinearModel
from scipy.signal import find_peaks as scipy_find_peaks
from tabulate import tabulate

from .errors import InvalidConfiguration
from .histo1d import Histogram1D
from .log import get_logger
from .statistics import window_bins

logger = get_logger(__name__)


@dataclass
class GaussianPeak:
    center: float
    center_uncertainty: float
    area: float
    area_uncertainty: float
    fwhm: float
    fwhm_uncertainty: float
    relative_width: float
    relative_width_uncertainty: float


@dataclass
class GaussianFit:
    window: tuple
    result: object
    model: object
    background_result: object
    peaks: list = field(default_factory=list)

    def eval(self, x):
        """Gaussians plus background at x."""
        return self.result.eval(x=x) + self.background_result.eval(x=x)


def _window(hist: Histogram1D, start: float, end: float):
    low, high = sorted((start, end))
    first, last = window_bins(hist.range, hist.bin_count, low, high)
    if last - first + 1 < 3:
        raise InvalidConfiguration(f"fit window ({low}, {high}) covers fewer than 3 bins")
    return (low, high), hist.centers[first:last + 1], hist.bins[first:last + 1].astype(np.float64)


def _nearest_counts(hist: Histogram1D, positions) -> np.ndarray:
    centers = hist.centers
    return np.array([hist.bins[np.argmin(np.abs(centers - position))] for position in positions], dtype=np.float64)


def fit_background(hist: Histogram1D, positions):
    """Linear fit through the bin contents nearest each position (at least two)."""

    positions = sorted(float(position) for position in positions)
    if len(positions) < 2:
        raise InvalidConfiguration("Must have two or more background positions")

    background_model = LinearModel()
    background_result = background_model.fit(_nearest_counts(hist, positions), x=np.array(positions))
    return background_result


def _edge_background(hist: Histogram1D, centers: np.ndarray, edge_bins: int = 3):
    # no background positions: use the bins at both ends of the window
    edge_bins = min(edge_bins, len(centers) // 2)
    positions = np.concatenate([centers[:edge_bins], centers[-edge_bins:]])
    return fit_background(hist, positions)


def find_peaks(hist: Histogram1D, start: float, end: float, background=None, height_fraction: float = 0.05) -> list:
    """Bin centers of the peaks in the window, after subtracting background if given."""

    _, centers, counts = _window(hist, start, end)
    if background is not None:
        counts = counts - background.eval(x=centers)

    peaks, _ = scipy_find_peaks(counts, height=np.max(counts) * height_fraction)
    return [float(center) for center in centers[peaks]]


def initial_gaussian_parameters(counts, centers, peak_positions, position_uncertainty, bin_width):
    """Starting values for each peak: center near the marker, sigma one bin, area split by height."""

    if len(peak_positions) == 0:  # no peak markers, assume a single peak at the maximum
        peak_positions = [centers[np.argmax(counts)]]

    def nearest_count(position):
        return counts[np.argmin(np.abs(centers - position))]

    total_peak_height = sum(nearest_count(peak) for peak in peak_positions)
    window_width = centers[-1] - centers[0] + bin_width

    initial_parameters = []
    for peak in peak_positions:
        amp_scale = nearest_count(peak) / total_peak_height if total_peak_height > 0 else 1 / len(peak_positions)
        initial_parameters.append({
            "center": dict(value=peak, min=peak - position_uncertainty, max=peak + position_uncertainty),
            "sigma": dict(value=bin_width, min=0, max=window_width),
            "amplitude": dict(value=max(bin_width * np.sum(counts) * amp_scale, bin_width), min=0),
        })

    return peak_positions, initial_parameters


def _gaussian_peak(result, prefix: str, bin_width: float) -> GaussianPeak:
    center = result.params[f'{prefix}center']
    amplitude = result.params[f'{prefix}amplitude']
    fwhm = result.params[f'{prefix}fwhm']

    center_value = center.value
    fwhm_value = abs(fwhm.value)
    relative_width = abs(fwhm_value / center_value * 100) if center_value else float("nan")

    center_uncertainty = center.stderr if center.stderr is not None else float("nan")
    area_uncertainty = amplitude.stderr / bin_width if amplitude.stderr is not None else float("nan")
    fwhm_uncertainty = fwhm.stderr if fwhm.stderr is not None else float("nan")
    relative_width_uncertainty = relative_width * np.sqrt(
        (fwhm_uncertainty / fwhm_value) ** 2 + (center_uncertainty / abs(center_value)) ** 2
    ) if fwhm_value and center_value else float("nan")

    return GaussianPeak(
        center=center_value,
        center_uncertainty=center_uncertainty,
        area=amplitude.value / bin_width,
        area_uncertainty=area_uncertainty,
        fwhm=fwhm_value,
        fwhm_uncertainty=fwhm_uncertainty,
        relative_width=relative_width,
        relative_width_uncertainty=float(relative_width_uncertainty),
    )


def fit_gaussians(hist: Histogram1D, start: float, end: float, peak_positions=None, background_positions=None) -> GaussianFit:
    """
    Fit one gaussian per peak position between start and end.

    Without peak positions a single peak is assumed at the maximum. Without
    background positions the background is estimated from the bins at both
    edges of the window.
    """
    window, centers, counts = _window(hist, start, end)

    if background_positions:
        background_result = fit_background(hist, background_positions)
    else:
        background_result = _edge_background(hist, centers)

    subtracted = counts - background_result.eval(x=centers)

    peaks_in_window = sorted(peak for peak in (peak_positions or []) if window[0] < peak < window[1])
    peaks_in_window, initial_parameters = initial_gaussian_parameters(
        subtracted, centers, peaks_in_window, position_uncertainty=3 * hist.bin_width, bin_width=hist.bin_width
    )

    composite_model = None
    params = None
    for i, init in enumerate(initial_parameters):
        gauss = GaussianModel(prefix=f'g{i}_')
        gauss_params = gauss.make_params(**init)
        if composite_model is None:
            composite_model, params = gauss, gauss_params
        else:
            composite_model += gauss
            params.update(gauss_params)

    result = composite_model.fit(subtracted, params, x=centers)
    if not result.success:
        logger.warning(f"Gaussian fit over {window} did not converge: {result.message}")

    peaks = [_gaussian_peak(result, f'g{i}_', hist.bin_width) for i in range(len(initial_parameters))]
    return GaussianFit(window=window, result=result, model=composite_model, background_result=background_result, peaks=peaks)


def fit_report_table(fit: GaussianFit, tablefmt: str = "pretty") -> str:
    rows = []
    for i, peak in enumerate(fit.peaks):
        rows.append([
            i,
            f"{peak.center:.4f} ± {peak.center_uncertainty:.4f}",
            f"{peak.area:.4f} ± {peak.area_uncertainty:.4f}",
            f"{peak.fwhm:.4f} ± {peak.fwhm_uncertainty:.4f}",
            f"{peak.relative_width:.4f} ± {peak.relative_width_uncertainty:.4f}",
        ])

    headers = ["Gaussian", "Position", "Volume", "FWHM", "Relative Width [%]"]
    return tabulate(rows, headers, tablefmt=tablefmt)
