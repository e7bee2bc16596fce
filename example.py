import polars as pl
import matplotlib.pyplot as plt

from HistView import SPS_HISTOGRAMS, CutHandler, build_histograms, configure_logging
from HistView.fitting import fit_gaussians, fit_report_table
from HistView.histo1d_tools import histo1d, plot_gaussian_fit
from HistView.histo2d_tools import histo2d

configure_logging()

# read in the data
df = pl.read_parquet("52Cr_July2023_REU_CeBrA/built/run_83.parquet")


def NoCutPlotExample():
    h = build_histograms(df, SPS_HISTOGRAMS)
    print(h.summary())

    # particle identification and the focal plane spectrum without a cut
    fig, ax = plt.subplots(2,1)
    histo2d(h.get("AnodeBack_ScintLeft"), subplots=(fig, ax[0]), xlabel="ScintLeftEnergy", ylabel="AnodeBackEnergy", cbar=False)
    histo1d(h.get("Xavg_bothplanes"), subplots=(fig, ax[1]))
    plt.show()


def CutPlotExample(CutFile):
    # proton cut on the particle identification plot
    cuts = CutHandler()
    cuts.load(CutFile)

    h = build_histograms(df, SPS_HISTOGRAMS, cuts=cuts)

    fig, ax = plt.subplots(2,1)
    histo2d(h.get("AnodeBack_ScintLeft"), subplots=(fig, ax[0]), cbar=False, cuts=[cuts.active])
    histo1d(h.get("Xavg_bothplanes"), subplots=(fig, ax[1]))

    fit = fit_gaussians(h.get("Xavg_bothplanes"), -50, 50)
    plot_gaussian_fit(ax[1], fit)
    print(fit_report_table(fit))

    # write out the rows that pass the cut
    cuts.filter_df(df).write_parquet("run_83_cut.parquet")

    plt.show()


if __name__ == "__main__":

    NoCutPlotExample()

    CutFile="./AnodeBackEnergy_ScintLeftEnergy_cut.json"

    CutPlotExample(CutFile=CutFile)
