"""Exceptions raised by s7150duo and the exit codes they map to."""

from __future__ import annotations

from typing import Optional

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FILE = 4
EXIT_INSTRUMENT = 5


class S7150Error(Exception):
    """Base exception for all s7150duo errors."""

    exit_code = EXIT_USAGE


class UsageError(S7150Error):
    """Raised when command line values are invalid."""

    exit_code = EXIT_USAGE


class DataFileError(S7150Error):
    """Raised when the output data file cannot be opened or written."""

    exit_code = EXIT_FILE


class InstrumentError(S7150Error):
    """Raised when talking to a multimeter fails. Always fatal for the session."""

    exit_code = EXIT_INSTRUMENT

    def __init__(self, message: str, address: Optional[int] = None,
                 visa_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.address = address
        self.visa_error = visa_error


class InstrumentOpenError(InstrumentError):
    pass


class InstrumentConfigureError(InstrumentError):
    pass


class InstrumentReadError(InstrumentError):
    pass


class InstrumentCloseError(InstrumentError):
    pass


class InstrumentStateError(InstrumentError):
    """Raised when an operation is called in the wrong driver state."""
