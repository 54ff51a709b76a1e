from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

from .errors import UsageError

VERSION = "V20250811"
PROGRAM = "s7150duo"


class Mode(IntEnum):
    """Measurement functions, numbered as the 7150 expects them after 'M'."""

    DCV = 0
    ACV = 1
    OHM = 2
    DCA = 3
    ACA = 4
    DIODE = 5
    DEGC = 6    # 7150-plus only
    DEGF = 7    # 7150-plus only

    @property
    def unit(self) -> str:
        return UNITS[self]

    @property
    def needs_plus(self) -> bool:
        return self in (Mode.DEGC, Mode.DEGF)


UNITS = {
    Mode.DCV: "V",
    Mode.ACV: "V",
    Mode.OHM: "kOhms",
    Mode.DCA: "mA",
    Mode.ACA: "mA",
    Mode.DIODE: "mV",
    Mode.DEGC: "deg C",
    Mode.DEGF: "deg F",
}


class VoltageRange(IntEnum):
    AUTO = 0
    V0_2 = 1
    V2 = 2
    V20 = 3
    V200 = 4
    V2000 = 5


class CurrentRange(IntEnum):
    AUTO = 0
    MA2000 = 5


class ResistanceRange(IntEnum):
    AUTO = 0
    K20 = 3
    K200 = 4
    M2 = 5
    M20 = 6


class AutoRange(IntEnum):
    AUTO = 0


RANGE_TABLES = {
    Mode.DCV: VoltageRange,
    Mode.ACV: VoltageRange,
    Mode.OHM: ResistanceRange,
    Mode.DCA: CurrentRange,
    Mode.ACA: CurrentRange,
    Mode.DIODE: AutoRange,
    Mode.DEGC: AutoRange,
    Mode.DEGF: AutoRange,
}


def parse_mode(text: str, plus: bool = False) -> Mode:
    """Accept a mode number ('3') or name ('dca')."""
    text = str(text).strip()
    try:
        mode = Mode(int(text))
    except ValueError:
        try:
            mode = Mode[text.upper()]
        except KeyError:
            raise UsageError(f"unknown measurement mode {text!r}; {mode_help(plus)}") from None
    if mode.needs_plus and not plus:
        raise UsageError(f"mode {mode.name} needs a 7150-plus (--plus); {mode_help(plus)}")
    return mode


def mode_help(plus: bool = False) -> str:
    modes = [m for m in Mode if plus or not m.needs_plus]
    return ", ".join(f"{m.value} = {m.name}" for m in modes)


def parse_range(text: str, mode: Mode) -> int:
    """Resolve a range name or code against the range table of ``mode``."""
    table = RANGE_TABLES[mode]
    text = str(text).strip()
    try:
        return table(int(text)).value
    except ValueError:
        pass
    try:
        return table[text.upper().replace(".", "_")].value
    except KeyError:
        names = ", ".join(f"{r.value} = {r.name}" for r in table)
        raise UsageError(f"range {text!r} is not valid for {mode.name} ({names})") from None


def clean_comment(text: str) -> str:
    """Cut the comment at the first line break so it stays on one header line."""
    for i, ch in enumerate(text):
        if ch in "\r\n":
            return text[:i]
    return text


@dataclass(frozen=True)
class SessionConfig:
    output: Path
    address1: int = 16
    address2: int = 12
    mode1: Mode = Mode.DCV
    mode2: Mode = Mode.DCA
    range1: int = 0              # 0 => auto
    range2: int = 0
    delay: int = 10              # 1/10 s between samples, 0 => free-running
    display: bool = True
    flush_every: int = 100       # samples between forced writes / replots
    overwrite: bool = False
    stop_after_min: float = 0.0  # 0 => run until 'q' or ESC
    comment: str = ""
    gnuplot: str = "gnuplot"
    plot: str = "gnuplot"        # "gnuplot", "matplotlib" or "none"
    plus: bool = False           # 7150-plus: temperature modes
    hold_plot: bool = True

    @property
    def half_delay(self) -> int:
        # two instruments share the requested delay; each read waits half of it
        return self.delay // 2

    @property
    def sample_interval_s(self) -> float:
        return 2.0 * self.half_delay / 10.0

    def validate(self) -> "SessionConfig":
        for name, adr in (("instrument 1", self.address1), ("instrument 2", self.address2)):
            if not 0 <= adr <= 30:
                raise UsageError(f"primary address of {name} must be between 0 and 30, got {adr}")
        if self.address1 == self.address2:
            raise UsageError(f"both instruments use GPIB address {self.address1}")
        if not 0 <= self.delay <= 600:
            raise UsageError("delay must be 0 ... 600 (1/10 s)")
        if self.flush_every < 1:
            raise UsageError("write interval must be at least 1 sample")
        if self.stop_after_min < 0:
            raise UsageError("timeout must be positive")
        if self.plot not in ("gnuplot", "matplotlib", "none"):
            raise UsageError(f"unknown plot backend {self.plot!r}")
        for mode, rng in ((self.mode1, self.range1), (self.mode2, self.range2)):
            if mode.needs_plus and not self.plus:
                raise UsageError(f"mode {mode.name} needs a 7150-plus")
            parse_range(str(rng), mode)
        return self
