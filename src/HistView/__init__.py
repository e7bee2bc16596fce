from .config import SENTINEL, SPS_HISTOGRAMS, HistogramDefinition, load_histogram_definitions, write_histogram_definitions
from .cut import Cut2D, CutHandler, load_cut_json, write_cut_json
from .errors import HistViewError, InvalidConfiguration, LengthMismatch, NotFound
from .histo1d import Histogram1D
from .histo2d import BarData, Histogram2D
from .histogrammer import HistogramEntry, Histogrammer, build_histograms
from .log import configure_logging, get_logger
from .statistics import Statistics1D, Statistics2D

__version__ = "0.1.0"
