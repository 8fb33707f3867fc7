#!/usr/bin/env python3
"""Validate xetterm on a real terminal.

Exercises the TerminalState raw-mode derivation and cursor report parser
(no terminal required), then the full RawMode enter/restore round trip and
window size discovery on the controlling terminal.

Run from the project root: python .ci/validate-xetterm.py
"""

import os
import sys

# Ensure the project root (CWD) is on the import path, since Python
# adds the script's directory (.ci/) rather than CWD by default.
sys.path.insert(0, os.getcwd())


def check_xetterm_units():
    """TerminalState and parse_cursor_report -- no terminal required."""
    import termios

    from xetterm import TerminalState, GeometryParseError, parse_cursor_report

    cc = [b"\x00"] * termios.NCCS
    state = TerminalState(
        termios.ICRNL | termios.IXON,
        termios.OPOST,
        termios.CS7,
        termios.ECHO | termios.ICANON,
        termios.B9600,
        termios.B9600,
        tuple(cc),
    )
    raw = state.raw()
    assert not raw.iflag & (termios.ICRNL | termios.IXON), "input flags"
    assert not raw.oflag & termios.OPOST, "OPOST"
    assert raw.cflag & termios.CSIZE == termios.CS8, "CS8"
    assert not raw.lflag & (termios.ECHO | termios.ICANON), "local flags"
    assert raw.cc[termios.VMIN] == 0 and raw.cc[termios.VTIME] == 1, "timing"
    assert TerminalState.from_attrs(state.to_attrs()) == state, "attrs round trip"

    assert parse_cursor_report(b"\x1b[24;80R") == (24, 80), "cursor report"
    for bad in (b"\x1b[;80R", b"\x1b[24;80", b"24;80R"):
        try:
            parse_cursor_report(bad)
        except GeometryParseError:
            pass
        else:
            raise AssertionError("accepted bad cursor report {!r}".format(bad))

    print("xetterm unit checks passed")


def check_terminal_round_trip():
    """RawMode enter/restore and window size on the controlling terminal.

    Requires a real TTY on stdin/stdout.
    """
    if not (os.isatty(sys.stdin.fileno()) and os.isatty(sys.stdout.fileno())):
        print("Terminal round trip skipped (no TTY)")
        return

    import termios

    from xetterm import RawMode, TtyDevice, get_window_size

    device = TtyDevice(sys.stdin.fileno(), sys.stdout.fileno())
    before = termios.tcgetattr(device.in_fd)

    with RawMode(device) as raw_mode:
        assert raw_mode.active, "raw mode active"
        now = termios.tcgetattr(device.in_fd)
        assert not now[3] & termios.ICANON, "ICANON cleared"
        assert not now[3] & termios.ECHO, "ECHO cleared"
        rows, cols = get_window_size(device)
        assert rows > 0 and cols > 0, "window size"

    after = termios.tcgetattr(device.in_fd)
    assert after == before, "terminal attributes restored"

    print("Terminal round trip passed ({}x{})".format(rows, cols))


if __name__ == "__main__":
    check_xetterm_units()
    check_terminal_round_trip()
    print("All checks passed")
