"""Data acquisition with two Solartron 7150 multimeters over GPIB."""

from .config import VERSION, Mode, SessionConfig
from .datafile import DataFile, Sample, read_samples
from .instruments import Solartron7150
from .runner import Acquisition

__version__ = VERSION

__all__ = ["Acquisition", "DataFile", "Mode", "Sample", "SessionConfig", "Solartron7150", "read_samples"]
