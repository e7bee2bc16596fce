"""Tests for background and gaussian fitting on histogram windows."""
import pytest

from HistView import InvalidConfiguration
from HistView.fitting import find_peaks, fit_background, fit_gaussians, fit_report_table

FWHM_PER_SIGMA = 2.3548200


class TestFindPeaks:
    def test_two_peaks(self, smooth_peaks):
        peaks = find_peaks(smooth_peaks(), 20, 80)
        assert len(peaks) == 2
        assert peaks[0] == pytest.approx(30, abs=0.5)
        assert peaks[1] == pytest.approx(70, abs=0.5)

    def test_window_too_small(self, smooth_peaks):
        with pytest.raises(InvalidConfiguration):
            find_peaks(smooth_peaks(), 50, 50.6)


class TestBackground:
    def test_needs_two_positions(self, smooth_peaks):
        with pytest.raises(InvalidConfiguration):
            fit_background(smooth_peaks(), [10])

    def test_flat_background(self, smooth_peaks):
        background = fit_background(smooth_peaks(), [90, 10])
        assert background.eval(x=50.0) == pytest.approx(0, abs=1e-6)


class TestGaussianFit:
    def test_single_peak(self, smooth_peaks):
        hist = smooth_peaks(centers=(50.0,))
        fit = fit_gaussians(hist, 40, 60)
        assert len(fit.peaks) == 1
        peak = fit.peaks[0]
        assert peak.center == pytest.approx(50, abs=0.1)
        assert peak.area == pytest.approx(hist.statistics(40, 60).count, rel=0.02)
        assert peak.fwhm == pytest.approx(2 * FWHM_PER_SIGMA, rel=0.05)
        assert peak.relative_width == pytest.approx(peak.fwhm / peak.center * 100)

    def test_window_is_sorted(self, smooth_peaks):
        fit = fit_gaussians(smooth_peaks(centers=(50.0,)), 60, 40)
        assert fit.window == (40, 60)

    def test_two_peaks(self, smooth_peaks):
        fit = fit_gaussians(smooth_peaks(), 20, 80, peak_positions=[70, 30], background_positions=[5, 95])
        centers = sorted(peak.center for peak in fit.peaks)
        assert centers[0] == pytest.approx(30, abs=0.1)
        assert centers[1] == pytest.approx(70, abs=0.1)
        assert fit.eval(30.0) == pytest.approx(fit.result.eval(x=30.0) + fit.background_result.eval(x=30.0))

    def test_peaks_outside_window_dropped(self, smooth_peaks):
        fit = fit_gaussians(smooth_peaks(), 20, 50, peak_positions=[30, 70])
        assert len(fit.peaks) == 1
        assert fit.peaks[0].center == pytest.approx(30, abs=0.1)

    def test_report_table(self, smooth_peaks):
        fit = fit_gaussians(smooth_peaks(centers=(50.0,)), 40, 60)
        table = fit_report_table(fit)
        assert "Position" in table
        assert "Relative Width [%]" in table
