import logging
import sys
import time

from .config import SessionConfig
from .datafile import DataFile, Sample, confirm_overwrite
from .instruments import Solartron7150, sample_frequency
from .plots import NullPlot
from .stop import EventStop

logger = logging.getLogger(__name__)


class Acquisition:
    """
    Reads instrument 1, then instrument 2, then writes one line; repeats until
    the stop time has passed, a stop is requested or an instrument fails.

    Each read waits half of the configured delay, so the two readings of a
    line are taken roughly delay/2 apart rather than simultaneously.
    """

    def __init__(
        self,
        cfg: SessionConfig,
        instrument_factory=Solartron7150,
        stop=None,
        plot=None,
        hold=None,
        datafile_factory=DataFile,
        confirm=confirm_overwrite,
        clock=time.monotonic,
        out=None,
    ):
        self.cfg = cfg
        self.instrument_factory = instrument_factory
        self.stop = stop if stop is not None else EventStop()
        self.plot = plot if plot is not None else NullPlot()
        self.hold = hold
        self.datafile_factory = datafile_factory
        self.confirm = confirm
        self.clock = clock
        self.out = out or sys.stdout
        self.count = 0
        self.flushes = 0

    def _print(self, *args, **kwargs):
        print(*args, file=self.out, flush=True, **kwargs)

    def print_summary(self):
        cfg = self.cfg
        self._print(f"\n GPIB address :  {cfg.address1} and {cfg.address2}")
        self._print(f"  Output file :  {cfg.output}")
        if cfg.comment:
            self._print(f"      Comment :  {cfg.comment}")
        self._print(f"     Sampling :  {cfg.sample_interval_s:.1f} s")
        self._print(f"      Refresh :  {cfg.flush_every}")
        if cfg.stop_after_min > 0:
            self._print(f"   Halt after :  {cfg.stop_after_min:g} min")
        self._print("         Stop :  Press 'q' or ESC.\n")
        self._print("     Count           Time      Reading")

    def open_instruments(self):
        cfg = self.cfg
        dvms = []
        try:
            for adr in (cfg.address1, cfg.address2):
                dvm = self.instrument_factory(adr)
                dvms.append(dvm)
                dvm.open()
            freq = sample_frequency(cfg.half_delay)
            dvms[0].configure(cfg.display, cfg.mode1, cfg.range1, freq)
            dvms[1].configure(cfg.display, cfg.mode2, cfg.range2, freq)
        except Exception:
            for dvm in dvms:
                dvm.release()
            raise
        return dvms

    def _flush(self, datafile):
        datafile.flush()
        self.plot.replot()
        self.flushes += 1

    def run(self) -> int:
        """Run one session and return the number of samples written."""
        cfg = self.cfg
        datafile = self.datafile_factory(cfg.output, overwrite=cfg.overwrite, confirm=self.confirm)
        dvms = []
        try:
            self.plot.start()
            dvms = self.open_instruments()
            dvm1, dvm2 = dvms
            self.print_summary()

            datafile.write_header(cfg.comment, time.time())
            t0 = self.clock()
            half = cfg.half_delay
            while True:
                r1 = dvm1.read(half)
                r2 = dvm2.read(half)
                elapsed = (self.clock() - t0) / 60.0
                self.count += 1
                datafile.append(Sample(elapsed, r1, r2))
                self._print(f"{self.count:10d} {elapsed:10.2f} min    {r1}\t{r2}", end="\r")

                done = cfg.stop_after_min > 0 and elapsed > cfg.stop_after_min
                if self.count % cfg.flush_every == 0:
                    self._flush(datafile)
                if self.stop.is_set():
                    done = True
                if done:
                    break

            datafile.write_footer(time.time())
            self._flush(datafile)
        except BaseException:
            for dvm in dvms:
                dvm.release()
            self.plot.close()
            raise
        finally:
            datafile.close()

        logger.info("acquisition stopped after %d samples", self.count)
        try:
            for dvm in dvms:
                dvm.close()
        except Exception:
            for dvm in dvms:
                dvm.release()
            self.plot.close()
            raise

        if self.plot.active and self.hold is not None:
            self._print(f"\nAcquisition finished. {self.plot.hold_message}")
        self.plot.close(self.hold)
        self._print("\n")
        return self.count
