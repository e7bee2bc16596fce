import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from HistView import Histogram1D


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def smooth_peaks():
    """Noiseless histogram with gaussians (sigma 2, height 1000) at 30 and 70."""

    def build(centers=(30.0, 70.0), sigma=2.0, height=1000.0):
        hist = Histogram1D(200, (0.0, 100.0), name="peaks")
        shape = sum(height * np.exp(-((hist.centers - center) ** 2) / (2 * sigma ** 2)) for center in centers)
        hist.fill_many(np.repeat(hist.centers, np.round(shape).astype(np.int64)))
        return hist

    return build
