import matplotlib
import pytest
import pyvisa

matplotlib.use("Agg")

from s7150duo.config import Mode, SessionConfig


def visa_error():
    return pyvisa.errors.VisaIOError(pyvisa.constants.StatusCode.error_timeout)


class FakeClock:
    """time.monotonic / time.sleep pair that only moves when slept on."""

    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t

    def sleep(self, s):
        self.t += s


class FakeResource:
    def __init__(self, resource, responses=None, fail_write=None, fail_read=False):
        self.resource = resource
        self.writes = []
        self.responses = list(responses or [])
        self.fail_write = fail_write     # command that is rejected by the bus
        self.fail_read = fail_read
        self.closed = False
        self.timeout = None
        self.write_termination = None

    def write(self, cmd):
        if self.closed:
            raise pyvisa.errors.InvalidSession()
        if cmd == self.fail_write:
            raise visa_error()
        self.writes.append(cmd)

    def read_bytes(self, count, break_on_termchar=False):
        if self.fail_read:
            raise visa_error()
        if self.responses:
            data = self.responses.pop(0)
        else:
            data = b"+1.23456E+00 0 V\r"
        return data[:count]

    def close(self):
        self.closed = True


class FakeResourceManager:
    def __init__(self, missing=(), resources=None):
        self.missing = set(missing)
        self.resources = resources or {}
        self.opened = {}

    def open_resource(self, resource):
        if resource in self.missing:
            raise visa_error()
        inst = FakeResource(resource, **self.resources.get(resource, {}))
        self.opened[resource] = inst
        return inst


class FakeDVM:
    """Stands in for Solartron7150 in loop tests."""

    instances = []

    def __init__(self, address, clock=None, readings=None, fail_open=False,
                 fail_read_at=None, fail_close=False):
        self.address = address
        self.clock = clock
        self.readings = readings
        self.fail_open = fail_open
        self.fail_read_at = fail_read_at
        self.fail_close = fail_close
        self.reads = 0
        self.delays = []
        self.calls = []
        self.released = False
        FakeDVM.instances.append(self)

    def open(self):
        from s7150duo.errors import InstrumentOpenError
        self.calls.append("open")
        if self.fail_open:
            raise InstrumentOpenError(f"Error trying to open GPIB address {self.address}",
                                      self.address)
        return self

    def configure(self, display, mode, rng=0, freq=1.0):
        self.calls.append(("configure", display, mode, rng, freq))

    def read(self, delay=0):
        from s7150duo.errors import InstrumentReadError
        self.reads += 1
        self.delays.append(delay)
        if self.fail_read_at is not None and self.reads >= self.fail_read_at:
            raise InstrumentReadError("Error trying to read from instrument!", self.address)
        if self.clock is not None and delay > 0:
            self.clock.sleep(delay / 10.0)
        if self.readings:
            return self.readings[(self.reads - 1) % len(self.readings)]
        return f"+{self.address}.{self.reads:05d}E+00 0 V"

    def close(self):
        from s7150duo.errors import InstrumentCloseError
        self.calls.append("close")
        if self.fail_close:
            raise InstrumentCloseError("Error during reset of instrument!", self.address)

    def release(self):
        self.released = True


class CountingStop:
    """Requests a stop after ``after`` polls."""

    def __init__(self, after=None):
        self.after = after
        self.polls = 0

    def is_set(self):
        self.polls += 1
        return self.after is not None and self.polls >= self.after


class RecordingPlot:
    def __init__(self, active=True):
        self.active = active
        self.hold_message = "press a key"
        self.events = []

    def start(self):
        self.events.append("start")

    def replot(self):
        self.events.append("replot")

    def close(self, hold=None):
        self.events.append(("close", hold is not None))
        if hold is not None:
            hold()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cfg(tmp_path):
    return SessionConfig(output=tmp_path / "run.dat", mode1=Mode.DCV, mode2=Mode.DCA)


@pytest.fixture(autouse=True)
def _reset_fake_dvms():
    FakeDVM.instances.clear()
    yield
    FakeDVM.instances.clear()
