"""
Command line front end.

Examples
--------
Log DC voltage on address 16 and DC current on address 12 every second:
    s7150duo run1.dat

Two voltmeters, 5 s sampling, stop after one hour, no graphics:
    s7150duo -a 16 -A 17 -m DCV -M DCV -t 50 -T 60 -n -c "cell 3 warm-up" run2.dat
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import errors
from .config import PROGRAM, VERSION, SessionConfig, clean_comment, mode_help, parse_mode, parse_range
from .datafile import confirm_overwrite
from .plots import make_plot
from .runner import Acquisition
from .stop import AnyStop, EventStop, KeyboardStop

logger = logging.getLogger(__name__)

DISCLAIMER = (
    f"\n{PROGRAM} - Data acquisition using two Solartron 7150 over GPIB. {VERSION}.\n"
    "This program is free software; you can redistribute it and/or modify it under\n"
    "the terms of the GNU General Public License, version 2.\n"
)


class UsageArgumentParser(argparse.ArgumentParser):
    """argparse reports errors through UsageError instead of exiting."""

    def error(self, message):
        raise errors.UsageError(f"{message}\n'{self.prog} -h' for help.")


def build_parser() -> UsageArgumentParser:
    p = UsageArgumentParser(
        prog=PROGRAM,
        description="Read two Solartron 7150 DMMs over GPIB and log the raw readings.",
        epilog=f"Modes: {mode_help(plus=True)} (6 and 7 need --plus). Stop with 'q' or ESC.",
    )
    p.add_argument("datafile", type=Path, help="output data file")
    p.add_argument("-a", dest="address1", type=int, default=16, metavar="ID",
                   help="use instrument 1 at GPIB address ID (default: %(default)s)")
    p.add_argument("-A", dest="address2", type=int, default=12, metavar="ID",
                   help="use instrument 2 at GPIB address ID (default: %(default)s)")
    p.add_argument("-m", dest="mode1", default="DCV", metavar="MODE",
                   help="measurement mode of instrument 1 (default: %(default)s)")
    p.add_argument("-M", dest="mode2", default="DCA", metavar="MODE",
                   help="measurement mode of instrument 2 (default: %(default)s)")
    p.add_argument("-r", dest="range1", default="AUTO", metavar="RANGE",
                   help="range of instrument 1, name or code (default: %(default)s)")
    p.add_argument("-R", dest="range2", default="AUTO", metavar="RANGE",
                   help="range of instrument 2, name or code (default: %(default)s)")
    p.add_argument("-t", dest="delay", type=int, default=10, metavar="DT",
                   help="delay between measurements in 0.1 s (default: %(default)s)")
    p.add_argument("-d", dest="display", action="store_false",
                   help="disable instrument display")
    p.add_argument("-w", dest="flush_every", type=int, default=100, metavar="N",
                   help="force write to disk every N samples (default: %(default)s)")
    p.add_argument("-f", dest="overwrite", action="store_true",
                   help="force overwriting of existing file")
    p.add_argument("-T", dest="stop_after", type=float, default=0.0, metavar="MIN",
                   help="stop acquisition after MIN minutes (default: 0 = endless)")
    p.add_argument("-c", dest="comment", default="", metavar="TXT", help="comment text")
    p.add_argument("-g", dest="gnuplot", default="gnuplot", metavar="PATH",
                   help="path/to/gnuplot (if not in your PATH)")
    p.add_argument("-n", dest="no_graph", action="store_true", help="no graphics")
    p.add_argument("--matplotlib", action="store_true",
                   help="plot in-process with matplotlib instead of gnuplot")
    p.add_argument("--plus", action="store_true",
                   help="instruments are 7150-plus (enables DEGC and DEGF)")
    p.add_argument("--no-hold", dest="hold", action="store_false",
                   help="do not keep the plot open after acquisition")
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="more log output (-vv for bus traffic)")
    return p


def config_from_args(args: argparse.Namespace) -> SessionConfig:
    mode1 = parse_mode(args.mode1, args.plus)
    mode2 = parse_mode(args.mode2, args.plus)
    if args.no_graph:
        plot = "none"
    elif args.matplotlib:
        plot = "matplotlib"
    else:
        plot = "gnuplot"
    cfg = SessionConfig(
        output=args.datafile,
        address1=args.address1,
        address2=args.address2,
        mode1=mode1,
        mode2=mode2,
        range1=parse_range(args.range1, mode1),
        range2=parse_range(args.range2, mode2),
        delay=args.delay,
        display=args.display,
        flush_every=args.flush_every,
        overwrite=args.overwrite,
        stop_after_min=args.stop_after,
        comment=clean_comment(args.comment),
        gnuplot=args.gnuplot,
        plot=plot,
        plus=args.plus,
        hold_plot=args.hold,
    )
    return cfg.validate()


def setup_logging(verbosity: int):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    sys.stderr.write(DISCLAIMER + "\n")
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        setup_logging(args.verbose)
        cfg = config_from_args(args)
    except errors.UsageError as e:
        sys.stderr.write(f"Error: {e}\n")
        return errors.EXIT_USAGE
    except SystemExit as e:
        # -h
        return e.code or errors.EXIT_OK

    plot_stop = EventStop()
    try:
        # ask before the terminal switches to single-key mode
        if cfg.output.exists() and not cfg.overwrite:
            if not confirm_overwrite(cfg.output):
                raise errors.UsageError(f"'{cfg.output}' exists and was not overwritten")
            cfg = dataclasses.replace(cfg, overwrite=True)
        with KeyboardStop() as keyboard:
            acq = Acquisition(
                cfg,
                stop=AnyStop(keyboard, plot_stop),
                plot=make_plot(cfg, on_quit=plot_stop.set),
                hold=keyboard.wait_for_key if cfg.hold_plot else None,
            )
            acq.run()
    except errors.S7150Error as e:
        logger.error("%s", e)
        sys.stderr.write(f"{e}\nQuit.\n")
        return e.exit_code
    return errors.EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
