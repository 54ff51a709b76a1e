"""
Tab-delimited acquisition log.

  # s7150duo V20250811
  # <comment>
  # Acquisition start: Sat Oct 17 17:38:00 2026
  # min<TAB>readout  errflag  unit  mode  unit mode
  0.0083<TAB><reading 1><TAB><reading 2>
  ...
  # Acquisition stop: Sat Oct 17 17:40:00 2026

Readings are written exactly as the instruments return them.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import NamedTuple, Optional

import pandas as pd

from .config import PROGRAM, VERSION
from .errors import DataFileError, UsageError

logger = logging.getLogger(__name__)

LEGEND = "# min\treadout  errflag  unit  mode  unit mode"
START_PREFIX = "# Acquisition start: "
STOP_PREFIX = "# Acquisition stop: "


class Sample(NamedTuple):
    elapsed_min: float
    reading1: str
    reading2: str


def confirm_overwrite(path: Path, stdin=None, stderr=None) -> bool:
    stdin = stdin or sys.stdin
    stderr = stderr or sys.stderr
    stderr.write(f"\a\nFile '{path}' exists - Overwrite? [Y/*] ")
    stderr.flush()
    answer = stdin.read(1)
    return answer in ("y", "Y")


class DataFile:
    def __init__(self, path, overwrite: bool = False, confirm=confirm_overwrite):
        self.path = Path(path)
        self.count = 0
        self.header_written = False
        self.footer_written = False
        if self.path.exists() and not overwrite and not confirm(self.path):
            raise UsageError(f"'{self.path}' exists and was not overwritten")
        try:
            self._f = open(self.path, "w", encoding="ascii", errors="replace")
        except OSError as e:
            raise DataFileError(f"Could not open '{self.path}' for writing: {e}") from e

    @property
    def closed(self) -> bool:
        return self._f.closed

    def _write(self, text: str):
        if self._f.closed:
            raise DataFileError(f"'{self.path}' is already closed")
        try:
            self._f.write(text)
        except OSError as e:
            raise DataFileError(f"Could not write to '{self.path}': {e}") from e

    def write_header(self, comment: str = "", started: Optional[float] = None):
        if self.header_written:
            raise DataFileError("header already written")
        self._write(f"# {PROGRAM} {VERSION}\n")
        self._write(f"# {comment}\n")
        self._write(f"{START_PREFIX}{time.ctime(started)}\n")
        self._write(LEGEND + "\n")
        self.header_written = True

    def append(self, sample: Sample):
        if not self.header_written:
            raise DataFileError("header must be written before samples")
        if self.footer_written:
            raise DataFileError("acquisition already stopped")
        self._write(f"{sample.elapsed_min:.4f}\t{sample.reading1}\t{sample.reading2}\n")
        self.count += 1

    def flush(self):
        """Push everything written so far to disk."""
        self._f.flush()
        os.fsync(self._f.fileno())
        logger.debug("flushed %d samples to %s", self.count, self.path)

    def write_footer(self, stopped: Optional[float] = None):
        if self.footer_written:
            raise DataFileError("footer already written")
        self._write(f"{STOP_PREFIX}{time.ctime(stopped)}\n")
        self.footer_written = True

    def close(self):
        if not self._f.closed:
            self._f.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def read_samples(path) -> list[Sample]:
    samples = []
    with open(path, "r", encoding="ascii", errors="replace") as f:
        for line in f:
            line = line.rstrip("\n")
            if not line or line.startswith("#"):
                continue
            parts = line.split("\t")
            if len(parts) != 3:
                raise DataFileError(f"malformed sample line in {path}: {line!r}")
            samples.append(Sample(float(parts[0]), parts[1], parts[2]))
    return samples


def read_header(path) -> dict:
    info = {"program": None, "comment": None, "start": None, "stop": None}
    with open(path, "r", encoding="ascii", errors="replace") as f:
        lines = [line.rstrip("\n") for line in f if line.startswith("#")]
    if lines:
        info["program"] = lines[0][2:]
    if len(lines) > 1:
        info["comment"] = lines[1][2:]
    for line in lines:
        if line.startswith(START_PREFIX):
            info["start"] = line[len(START_PREFIX):]
        elif line.startswith(STOP_PREFIX):
            info["stop"] = line[len(STOP_PREFIX):]
    return info


def load_frame(path, columns=(1, 2, 5)) -> pd.DataFrame:
    """
    Whitespace-split view of the data lines, numbered from 1 like gnuplot does.
    Column 1 is minutes, 2 the readout of instrument 1 and 5 of instrument 2
    for the usual 7150 record layout. Non-numeric fields become NaN.
    """
    rows = []
    with open(path, "r", encoding="ascii", errors="replace") as f:
        for line in f:
            if line.startswith("#") or not line.strip():
                continue
            fields = line.split()
            rows.append([fields[c - 1] if c <= len(fields) else None for c in columns])
    df = pd.DataFrame(rows, columns=[str(c) for c in columns])
    return df.apply(pd.to_numeric, errors="coerce")
