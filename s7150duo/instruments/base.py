from __future__ import annotations

import logging

import pyvisa

from ..errors import InstrumentError, InstrumentStateError
from ..visa_utils import gpib_resource, open_resource

logger = logging.getLogger(__name__)

# what a VISA backend raises when the bus rejects a transfer
BUS_ERRORS = (pyvisa.errors.VisaIOError, pyvisa.errors.InvalidSession, OSError)


class InstrumentBase:
    """GPIB instrument owning a single VISA session."""

    timeout_ms = 1000

    def __init__(self, address: int, rm=None):
        self.address = address
        self.resource = gpib_resource(address)
        self.rm = rm
        self.inst = None

    def connect(self):
        self.inst = open_resource(self.resource, timeout_ms=self.timeout_ms, rm=self.rm)
        return self.inst

    def disconnect(self):
        if self.inst is not None:
            try:
                self.inst.close()
            except BUS_ERRORS as e:
                logger.warning("closing %s failed: %s", self.resource, e)
        self.inst = None

    def write(self, cmd: str, error=InstrumentError, context: str = ""):
        if self.inst is None:
            raise InstrumentStateError(f"GPIB address {self.address} is not open", self.address)
        logger.debug("%s <- %r", self.resource, cmd)
        try:
            self.inst.write(cmd)
        except BUS_ERRORS as e:
            raise error(f"Error {context or 'writing'} of GPIB address {self.address}: {e}",
                        self.address, e) from e

    def read_raw(self, count: int, error=InstrumentError) -> bytes:
        if self.inst is None:
            raise InstrumentStateError(f"GPIB address {self.address} is not open", self.address)
        try:
            data = self.inst.read_bytes(count, break_on_termchar=True)
        except BUS_ERRORS as e:
            raise error(f"Error trying to read from GPIB address {self.address}: {e}",
                        self.address, e) from e
        logger.debug("%s -> %r", self.resource, data)
        return data
