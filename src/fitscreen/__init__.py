"""
fitscreen package initialization.

Bayesian inference of population mean fitness and barcode frequencies from
longitudinal barcode-count data.
"""

from .__version__ import __version__

from . import errors
from . import util
from . import analysis
from . import plot
