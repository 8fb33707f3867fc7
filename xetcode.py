#!/usr/bin/env python3

# Copyright (c) 2026 XetCode contributors
# SPDX-License-Identifier: ISC

"""
Overview
========

A terminal text editor, built on xetterm (pure-Python raw terminal I/O).

This is the editor's foundation: it puts the terminal in raw mode, works out
the window size, and redraws an empty screen (a '~' at the start of every
row) before each keypress.

Keys:

  Ctrl-Q : Quit

All other keys are read and ignored for now.

The window size is normally taken from the terminal driver. With
--probe-size, the size is instead found by moving the cursor to the far
bottom-right corner and asking the terminal where it ended up. This works on
terminals that don't report their size through the driver.

The exit status is 0 after Ctrl-Q and 1 if the terminal could not be set
up or read from. The terminal is restored to its previous state either way.
"""

import argparse

import xetterm
from xetterm import CLEAR_SCREEN, CURSOR_HOME

# Drawn at the start of every screen row that has no content
_ROW_MARKER = b"~"
_LINE_END = b"\r\n"


def ctrl_key(ch):
    """Return the byte a terminal sends for Ctrl + 'ch'."""
    return ord(ch) & 0x1F


_QUIT_KEY = ctrl_key("q")


class EditorSession:
    """Editor-wide state: screen size and the pre-raw-mode terminal state.

    rows/cols:
      Resolved window size. Only set when the session is created.

    orig_state:
      xetterm.TerminalState captured by RawMode before raw mode was
      entered (None if raw mode was never entered)
    """

    __slots__ = ("rows", "cols", "orig_state")

    def __init__(self, rows, cols, orig_state=None):
        self.rows = rows
        self.cols = cols
        self.orig_state = orig_state

    @classmethod
    def from_device(cls, device, raw_mode, force_probe=False):
        rows, cols = xetterm.get_window_size(device, force_probe)
        return cls(rows, cols, raw_mode.original)

    def __repr__(self):
        return f"<EditorSession {self.rows}x{self.cols}>"


class Editor:
    """The render loop.

    Alternates between drawing a full frame and waiting for one key, until
    the quit key is pressed.
    """

    DRAWING = "drawing"
    AWAITING_INPUT = "awaiting_input"
    TERMINATED = "terminated"

    def __init__(self, device, session):
        self._device = device
        self.session = session
        self.state = Editor.DRAWING

    def draw_rows(self):
        return (_ROW_MARKER + _LINE_END) * self.session.rows

    def refresh_screen(self):
        # Full redraw every time. The frame goes out in a single write so
        # the terminal never shows a half-cleared screen.
        self.state = Editor.DRAWING
        xetterm.write(
            self._device,
            b"".join((CLEAR_SCREEN, CURSOR_HOME, self.draw_rows(), CURSOR_HOME)),
        )
        self.state = Editor.AWAITING_INPUT

    def process_keypress(self):
        """Read one key and act on it. Returns the key."""
        c = xetterm.read_key(self._device)

        if c == _QUIT_KEY:
            xetterm.write(self._device, CLEAR_SCREEN + CURSOR_HOME)
            self.state = Editor.TERMINATED

        return c

    def run(self):
        while self.state != Editor.TERMINATED:
            self.refresh_screen()
            self.process_keypress()


def _main():
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter, description=__doc__
    )

    parser.add_argument(
        "--probe-size",
        action="store_true",
        help="Find the window size by probing the cursor position instead of "
        "asking the terminal driver",
    )

    args = parser.parse_args()

    xetcode(force_probe=args.probe_size)


def xetcode(device=None, force_probe=False):
    """
    Runs the editor on the terminal, returning after the user quits.

    device:
      Terminal to run on. Defaults to xetterm.TtyDevice() (stdin/stdout).

    force_probe:
      If True, skip the driver size query and always use the cursor probe.

    Exits with status 1 through xetterm.fail() if the terminal can't be
    set up, sized, or read.
    """

    def _xetcode(device, raw_mode):
        session = EditorSession.from_device(device, raw_mode, force_probe)
        Editor(device, session).run()

    xetterm.run(_xetcode, device)


if __name__ == "__main__":
    _main()
