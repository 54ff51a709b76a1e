import logging
import math
import time
from enum import Enum

from ..config import Mode
from ..errors import (
    InstrumentCloseError,
    InstrumentConfigureError,
    InstrumentOpenError,
    InstrumentReadError,
    InstrumentStateError,
)
from .base import BUS_ERRORS, InstrumentBase

logger = logging.getLogger(__name__)

RECORD_LENGTH = 16      # 15 characters plus terminator
SETTLE_S = 2.0          # after device clear


class State(Enum):
    NEW = "new"
    OPEN = "open"
    CONFIGURED = "configured"
    CLOSED = "closed"


def integration_code(freq: float) -> int:
    """
    Pick the integration time for a sampling rate in Hz:
      I0 = 6.7 ms    above 10 Hz (free-running)
      I1 = 40 ms     above 1.5 Hz
      I3 = 400 ms    default
      I4 = averaging below one sample in 4 s
    """
    code = 3
    if freq < 0.25:
        code = 4
    if freq > 1.5:
        code = 1
    if freq > 10.0:
        code = 0
    return code


def sample_frequency(half_delay: int) -> float:
    """Sampling rate seen by one instrument when each read waits ``half_delay`` tenths."""
    if half_delay <= 0:
        return math.inf
    return 10.0 / half_delay


def setup_command(display: bool, mode: Mode, rng: int, freq: float) -> str:
    # the 7150 uses D1 to switch the display OFF
    d = 0 if display else 1
    return f"D{d}M{int(mode)}R{int(rng)}I{integration_code(freq)}"


class Solartron7150(InstrumentBase):
    """
    Solartron 7150 / 7150-plus DMM in tracking mode.

      A          device clear
      U7N0T1     CR delimiter, verbose output, tracking on
      D.M.R.I.   display, function, range, integration
      DC1, A     reset on close
    """

    def __init__(self, address: int, rm=None, sleep=time.sleep):
        super().__init__(address, rm=rm)
        self.state = State.NEW
        self.mode = None
        self._sleep = sleep

    def _require(self, *states: State):
        if self.state not in states:
            raise InstrumentStateError(
                f"GPIB address {self.address} is {self.state.value}, "
                f"expected {' or '.join(s.value for s in states)}",
                self.address,
            )

    def open(self):
        self._require(State.NEW)
        try:
            self.connect()
        except BUS_ERRORS + (ValueError,) as e:
            # ValueError: the VISA backend cannot serve GPIB resources at all
            self.state = State.CLOSED
            raise InstrumentOpenError(f"Error trying to open GPIB address {self.address}: {e}",
                                      self.address, e) from e
        try:
            self.write("A", InstrumentOpenError, "during init step 1")
            self._sleep(SETTLE_S)
            self.write("U7N0T1", InstrumentOpenError, "during init step 2")
        except InstrumentOpenError:
            self.disconnect()
            self.state = State.CLOSED
            raise
        self.state = State.OPEN
        logger.info("opened %s", self.resource)
        return self

    def configure(self, display: bool, mode: Mode, rng: int = 0, freq: float = 1.0):
        self._require(State.OPEN, State.CONFIGURED)
        cmd = setup_command(display, mode, rng, freq)
        logger.info("%s: %.2f Hz -> %s", self.resource, freq, cmd)
        self.write(cmd, InstrumentConfigureError, "during mode setting")
        self.mode = mode
        self.state = State.CONFIGURED

    def read(self, delay: int = 0) -> str:
        """Return the instrument's reading verbatim, e.g. '+1.23456E+00 DCV'."""
        self._require(State.CONFIGURED)
        if delay > 0:     # delay == 0 is free-running
            self._sleep(delay / 10.0)
        raw = self.read_raw(RECORD_LENGTH, InstrumentReadError)
        if not raw:
            raise InstrumentReadError(f"empty response from GPIB address {self.address}",
                                      self.address)
        try:
            text = raw.decode("ascii")
        except UnicodeDecodeError as e:
            raise InstrumentReadError(f"GPIB address {self.address} sent non-ASCII data: {raw!r}",
                                      self.address, e) from e
        return text.rstrip("\r\n")

    def close(self):
        self._require(State.OPEN, State.CONFIGURED)
        try:
            self.write("DC1", InstrumentCloseError, "during reset")
            self.write("A", InstrumentCloseError, "during reset")
        finally:
            self.disconnect()
            self.state = State.CLOSED
        logger.info("reset and closed %s", self.resource)

    def release(self):
        """Drop the VISA session without talking to the instrument (error path)."""
        if self.state is not State.CLOSED:
            self.disconnect()
            self.state = State.CLOSED
