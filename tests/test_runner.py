import dataclasses
import io
import math
import os

import pytest

from conftest import CountingStop, FakeDVM, FakeResourceManager, RecordingPlot
from s7150duo.config import Mode
from s7150duo.datafile import DataFile, read_header, read_samples
from s7150duo.errors import InstrumentCloseError, InstrumentOpenError, InstrumentReadError, UsageError
from s7150duo.instruments import Solartron7150
from s7150duo.runner import Acquisition


class SpyDataFile(DataFile):
    """DataFile remembering at which sample count each flush happened."""

    last = None

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.flushed_at = []
        self.flushed_bytes = []
        SpyDataFile.last = self

    def flush(self):
        super().flush()
        self.flushed_at.append(self.count)
        self.flushed_bytes.append(os.path.getsize(self.path))


def make_acq(cfg, clock, stop=None, plot=None, hold=None, **dvm_kwargs):
    per_address = dvm_kwargs.pop("per_address", {})

    def factory(adr):
        kwargs = dict(dvm_kwargs)
        kwargs.update(per_address.get(adr, {}))
        return FakeDVM(adr, clock=clock, **kwargs)

    return Acquisition(
        cfg,
        instrument_factory=factory,
        stop=stop if stop is not None else CountingStop(),
        plot=plot,
        hold=hold,
        datafile_factory=SpyDataFile,
        clock=clock,
        out=io.StringIO(),
    )


def test_stop_time_scenario(cfg, clock):
    cfg = dataclasses.replace(cfg, stop_after_min=2.0, delay=10, flush_every=100)
    plot = RecordingPlot()
    acq = make_acq(cfg, clock, plot=plot)

    count = acq.run()

    # each line waits 2 x 0.5 s, the first line past 2 min ends the run
    assert count == 121
    samples = read_samples(cfg.output)
    assert len(samples) == 121
    assert samples[-1].elapsed_min > 2.0
    assert samples[-2].elapsed_min <= 2.0
    assert SpyDataFile.last.flushed_at == [100, 121]
    assert plot.events == ["start", "replot", "replot", ("close", False)]
    assert read_header(cfg.output)["stop"] is not None


def test_delay_is_halved_for_each_read(cfg, clock):
    cfg = dataclasses.replace(cfg, delay=15)
    acq = make_acq(cfg, clock, stop=CountingStop(after=3))
    acq.run()
    dvm1, dvm2 = FakeDVM.instances
    assert dvm1.delays == [7, 7, 7]
    assert dvm2.delays == [7, 7, 7]
    # both instruments configured for 10 / 7 Hz
    assert dvm1.calls[1] == ("configure", True, Mode.DCV, 0, pytest.approx(10 / 7))
    assert dvm2.calls[1][2] is Mode.DCA


def test_free_running(cfg, clock):
    cfg = dataclasses.replace(cfg, delay=1)
    acq = make_acq(cfg, clock, stop=CountingStop(after=5))
    assert acq.run() == 5
    dvm1, _ = FakeDVM.instances
    assert dvm1.delays == [0] * 5
    assert dvm1.calls[1][4] == math.inf


def test_one_record_per_iteration_in_read_order(cfg, clock):
    acq = make_acq(cfg, clock, stop=CountingStop(after=4))
    acq.run()
    samples = read_samples(cfg.output)
    assert [s.reading1 for s in samples] == [f"+16.{i:05d}E+00 0 V" for i in range(1, 5)]
    assert [s.reading2 for s in samples] == [f"+12.{i:05d}E+00 0 V" for i in range(1, 5)]
    elapsed = [s.elapsed_min for s in samples]
    assert elapsed == sorted(elapsed)


def test_zero_stop_time_never_ends_by_time(cfg, clock):
    cfg = dataclasses.replace(cfg, stop_after_min=0.0, delay=600, flush_every=1000)
    stop = CountingStop(after=500)
    acq = make_acq(cfg, clock, stop=stop)
    # 500 lines at 60 s each is far beyond any stop time
    assert acq.run() == 500
    assert stop.polls == 500


def test_flush_cadence(cfg, clock):
    cfg = dataclasses.replace(cfg, flush_every=3)
    plot = RecordingPlot()
    acq = make_acq(cfg, clock, stop=CountingStop(after=10), plot=plot)
    acq.run()
    assert SpyDataFile.last.flushed_at == [3, 6, 9, 10]
    assert plot.events.count("replot") == 4     # 3, 6, 9 and once after the loop
    assert acq.flushes == 4
    # the last flush happens after the footer, so it covers the whole file
    assert SpyDataFile.last.flushed_bytes[-1] == os.path.getsize(cfg.output)


def test_instruments_closed_after_stop(cfg, clock):
    acq = make_acq(cfg, clock, stop=CountingStop(after=2))
    acq.run()
    for dvm in FakeDVM.instances:
        assert dvm.calls[0] == "open"
        assert dvm.calls[-1] == "close"
        assert not dvm.released


def test_second_instrument_fails_to_open(cfg, clock):
    acq = make_acq(cfg, clock, per_address={12: {"fail_open": True}})
    with pytest.raises(InstrumentOpenError):
        acq.run()
    assert SpyDataFile.last.closed
    assert read_samples(cfg.output) == []
    assert cfg.output.read_text() == ""
    assert all(dvm.released for dvm in FakeDVM.instances)


def test_read_failure_aborts(cfg, clock):
    plot = RecordingPlot()
    acq = make_acq(cfg, clock, plot=plot, per_address={12: {"fail_read_at": 3}})
    with pytest.raises(InstrumentReadError):
        acq.run()
    assert len(read_samples(cfg.output)) == 2
    assert SpyDataFile.last.closed
    assert read_header(cfg.output)["stop"] is None
    assert ("close", False) in plot.events
    assert all(dvm.released for dvm in FakeDVM.instances)


def test_close_failure_is_fatal(cfg, clock):
    acq = make_acq(cfg, clock, stop=CountingStop(after=1), per_address={16: {"fail_close": True}})
    with pytest.raises(InstrumentCloseError):
        acq.run()
    # the file is already complete at this point
    assert read_header(cfg.output)["stop"] is not None


def test_plot_held_until_key(cfg, clock):
    held = []
    plot = RecordingPlot()
    acq = make_acq(cfg, clock, stop=CountingStop(after=1), plot=plot, hold=lambda: held.append(1))
    acq.run()
    assert held == [1]
    assert plot.events[-1] == ("close", True)
    assert "press a key" in acq.out.getvalue()


def test_declined_overwrite_touches_no_instrument(cfg, clock):
    cfg.output.write_text("precious\n")
    acq = make_acq(cfg, clock)
    acq.confirm = lambda path: False
    with pytest.raises(UsageError):
        acq.run()
    assert FakeDVM.instances == []
    assert cfg.output.read_text() == "precious\n"


def test_summary(cfg, clock):
    cfg = dataclasses.replace(cfg, comment="leak current", stop_after_min=1.5)
    acq = make_acq(cfg, clock, stop=CountingStop(after=1))
    acq.run()
    text = acq.out.getvalue()
    assert "GPIB address :  16 and 12" in text
    assert "Comment :  leak current" in text
    assert "Sampling :  1.0 s" in text
    assert "Halt after :  1.5 min" in text
    assert "Press 'q' or ESC." in text


def test_with_visa_driver(cfg, clock):
    rm = FakeResourceManager()
    acq = Acquisition(
        cfg,
        instrument_factory=lambda adr: Solartron7150(adr, rm=rm, sleep=clock.sleep),
        stop=CountingStop(after=3),
        clock=clock,
        out=io.StringIO(),
    )
    assert acq.run() == 3
    dvm16 = rm.opened["GPIB0::16::INSTR"]
    dvm12 = rm.opened["GPIB0::12::INSTR"]
    assert dvm16.writes == ["A", "U7N0T1", "D0M0R0I1", "DC1", "A"]
    assert dvm12.writes == ["A", "U7N0T1", "D0M3R0I1", "DC1", "A"]
    assert dvm16.closed and dvm12.closed
    assert read_samples(cfg.output)[0].reading1 == "+1.23456E+00 0 V"
