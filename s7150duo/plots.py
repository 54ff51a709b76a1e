from __future__ import annotations

import logging
import shlex
import subprocess

import matplotlib.pyplot as plt

from .config import SessionConfig
from .datafile import load_frame

logger = logging.getLogger(__name__)


class NullPlot:
    active = False
    hold_message = ""

    def start(self):
        pass

    def replot(self):
        pass

    def close(self, hold=None):
        pass


class GnuplotBridge:
    """
    Drives an external gnuplot through its stdin. Every replot re-reads the
    data file, so the file must be flushed first.
    """

    hold_message = "Press any key to terminate graphic display and exit."

    def __init__(self, cfg: SessionConfig, popen=subprocess.Popen):
        self.cfg = cfg
        self.filename = str(cfg.output)
        self._popen = popen
        self.proc = None
        self.active = False

    def start(self):
        try:
            self.proc = self._popen(
                shlex.split(self.cfg.gnuplot),
                stdin=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            logger.warning('Cannot launch %s (%s), will continue "as is".', self.cfg.gnuplot, e)
            self.proc = None
            return
        self.active = True
        self.send(
            f"set mouse;set mouse labels; set style data lines; set title '{self.filename}'",
            f"set grid xt; set grid yt; set xlabel 'min'; set ylabel '{self.cfg.mode1.unit}'",
            f"set y2label '{self.cfg.mode2.unit}'; set y2tics",
        )

    def plot_command(self) -> str:
        cfg = self.cfg
        return (
            f"plot '{self.filename}' using 1:2 title '{cfg.address1}: {cfg.mode1.unit}', "
            f"'' using 1:5 title '{cfg.address2}: {cfg.mode2.unit}'"
        )

    def send(self, *lines: str):
        if not self.active:
            return
        try:
            for line in lines:
                self.proc.stdin.write(line + "\n")
            self.proc.stdin.flush()
        except (OSError, ValueError) as e:
            # gnuplot went away; keep acquiring without it
            logger.warning("gnuplot pipe closed (%s), plotting disabled", e)
            self.active = False

    def replot(self):
        self.send(self.plot_command())

    def close(self, hold=None):
        """Close the pipe, after ``hold()`` returns if given."""
        if self.proc is None:
            return
        if hold is not None and self.active:
            hold()
        self.active = False
        try:
            self.proc.stdin.close()
        except OSError:
            pass
        self.proc.wait()
        self.proc = None


class MatplotlibBridge:
    """In-process live plot, one y-axis per instrument, 'q' in the window stops."""

    hold_message = "Close the plot window to exit."

    def __init__(self, cfg: SessionConfig, on_quit=None):
        self.cfg = cfg
        self.on_quit = on_quit
        self.active = False
        self.fig = None

    def start(self):
        cfg = self.cfg

        plt.ion()
        try:
            self.fig, self.ax1 = plt.subplots()
        except Exception as e:
            # no usable GUI backend; acquisition goes on without the plot
            logger.warning("Cannot open plot window (%s), will continue \"as is\".", e)
            plt.ioff()
            return
        self.ax2 = self.ax1.twinx()
        self.ax1.set_title(str(cfg.output))
        self.ax1.set_xlabel("min")
        self.ax1.set_ylabel(cfg.mode1.unit)
        self.ax2.set_ylabel(cfg.mode2.unit)
        self.ax1.grid(True)
        (self.line1,) = self.ax1.plot([], [], color="tab:blue",
                                      label=f"{cfg.address1}: {cfg.mode1.unit}")
        (self.line2,) = self.ax2.plot([], [], color="tab:orange",
                                      label=f"{cfg.address2}: {cfg.mode2.unit}")
        self.ax1.legend(handles=[self.line1, self.line2], loc="upper left")
        self.fig.canvas.mpl_connect("key_press_event", self._on_key)
        self.fig.tight_layout()
        self.active = True

    def _on_key(self, event):
        if event.key in ("q", "escape") and self.on_quit is not None:
            self.on_quit()

    def replot(self):
        if not self.active:
            return
        df = load_frame(self.cfg.output)
        self.line1.set_data(df["1"], df["2"])
        self.line2.set_data(df["1"], df["5"])
        for ax in (self.ax1, self.ax2):
            ax.relim()
            ax.autoscale_view()
        self.fig.canvas.draw()
        self.fig.canvas.flush_events()

    def close(self, hold=None):
        if not self.active:
            return
        self.active = False
        plt.ioff()
        if hold is not None:
            # leave the window up until it is closed by the user
            plt.show()
        plt.close(self.fig)


def make_plot(cfg: SessionConfig, on_quit=None):
    if cfg.plot == "gnuplot":
        return GnuplotBridge(cfg)
    if cfg.plot == "matplotlib":
        return MatplotlibBridge(cfg, on_quit=on_quit)
    return NullPlot()
