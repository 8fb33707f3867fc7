#!/usr/bin/env python3

# Copyright (c) 2026 XetCode contributors
# SPDX-License-Identifier: ISC

"""
xetterm -- raw-mode terminal core for xetcode

Takes over a POSIX character terminal: switches it into raw mode (every
keystroke delivered immediately, unechoed and unprocessed), discovers the
window size, reads single bytes with a bounded wait, and funnels fatal
errors through one handler that resets the screen before exiting.

Zero external dependencies. Uses only Python stdlib: termios, os, atexit,
collections, sys.

The only blocking point is read_key(). The terminal is configured with
VMIN=0 and a short VTIME, so each read() returns after at most one timeout
interval, and read_key() simply retries until a byte arrives.

Minimum: Python 3.6+, any VT100-capable terminal.
"""

import atexit
import os
import sys
import termios
from collections import namedtuple

# ---------------------------------------------------------------------------
# Escape sequences
# ---------------------------------------------------------------------------

CLEAR_SCREEN = b"\x1b[2J"
CURSOR_HOME = b"\x1b[H"
# The terminal clamps the cursor to its actual bounds
CURSOR_FAR_BOTTOM_RIGHT = b"\x1b[999C\x1b[999B"
REQUEST_CURSOR_POSITION = b"\x1b[6n"

# Cursor position report: "\x1b[<row>;<col>R"
_CPR_PREFIX = b"\x1b["
_CPR_SEPARATOR = b";"
_CPR_TERMINATOR = b"R"
# Longest report we are willing to read before giving up
_CPR_MAX_LEN = 32

# VTIME is in deciseconds
DEFAULT_READ_TIMEOUT = 1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TerminalError(Exception):
    """Base class for unrecoverable terminal failures.

    operation:
      Name of the step that failed, e.g. "tcgetattr" or "read"

    cause:
      The underlying exception (usually an OSError or termios.error), a
      string describing the problem, or None
    """

    def __init__(self, operation, cause=None):
        super().__init__(operation, cause)
        self.operation = operation
        self.cause = cause

    def __str__(self):
        if self.cause is None:
            return self.operation
        return f"{self.operation}: {_cause_text(self.cause)}"


class TerminalQueryError(TerminalError):
    """Reading the terminal configuration failed."""


class TerminalConfigureError(TerminalError):
    """Applying a terminal configuration failed."""


class GeometryError(TerminalError):
    """The window size could not be determined."""


class GeometryParseError(GeometryError):
    """A cursor position report was malformed."""


class InputError(TerminalError):
    """Reading from the terminal failed for a reason other than a timeout."""


class OutputError(TerminalError):
    """Writing to the terminal failed."""


def _cause_text(cause):
    # Mirrors perror(): prefer the OS error text over the repr

    if isinstance(cause, OSError) and cause.strerror:
        return cause.strerror
    if isinstance(cause, termios.error) and len(cause.args) == 2:
        return cause.args[1]
    return str(cause)


# ---------------------------------------------------------------------------
# Terminal state
# ---------------------------------------------------------------------------


class TerminalState(
    namedtuple("TerminalState", "iflag oflag cflag lflag ispeed ospeed cc")
):
    """Immutable snapshot of termios attributes.

    Same field order as the list used by termios.tcgetattr() and
    termios.tcsetattr(). 'cc' is stored as a tuple so the snapshot can't be
    mutated by accident.
    """

    __slots__ = ()

    @classmethod
    def from_attrs(cls, attrs):
        iflag, oflag, cflag, lflag, ispeed, ospeed, cc = attrs
        return cls(iflag, oflag, cflag, lflag, ispeed, ospeed, tuple(cc))

    def to_attrs(self):
        """Return a fresh attribute list for termios.tcsetattr()."""
        return [
            self.iflag,
            self.oflag,
            self.cflag,
            self.lflag,
            self.ispeed,
            self.ospeed,
            list(self.cc),
        ]

    def raw(self, read_timeout=DEFAULT_READ_TIMEOUT):
        """Return the raw-mode variant of this state.

        Disables CR-to-NL translation, flow control, break signals, parity
        checking, 8th-bit stripping, output post-processing, echo, canonical
        input, extended input processing and signal characters. Forces 8-bit
        characters. read() returns as soon as any byte is available, or
        after 'read_timeout' deciseconds with nothing.
        """
        cc = list(self.cc)
        cc[termios.VMIN] = 0
        cc[termios.VTIME] = read_timeout

        return self._replace(
            iflag=self.iflag
            & ~(
                termios.BRKINT
                | termios.ICRNL
                | termios.INPCK
                | termios.ISTRIP
                | termios.IXON
            ),
            oflag=self.oflag & ~termios.OPOST,
            cflag=(self.cflag & ~termios.CSIZE) | termios.CS8,
            lflag=self.lflag
            & ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG),
            cc=tuple(cc),
        )


# ---------------------------------------------------------------------------
# Device
# ---------------------------------------------------------------------------


class TtyDevice:
    """The controlling terminal, as a pair of file descriptors.

    Everything else in this module talks to the terminal through an object
    with this interface, so tests can substitute a fake. Methods raise
    OSError/termios.error unchanged.
    """

    def __init__(self, in_fd=0, out_fd=1):
        self.in_fd = in_fd
        self.out_fd = out_fd

    def tcgetattr(self):
        return termios.tcgetattr(self.in_fd)

    def tcsetattr(self, attrs):
        # TCSAFLUSH discards pending unread input before applying
        termios.tcsetattr(self.in_fd, termios.TCSAFLUSH, attrs)

    def read(self, n=1):
        return os.read(self.in_fd, n)

    def write(self, data):
        return os.write(self.out_fd, data)

    def window_size(self):
        """Return (rows, cols) from the TIOCGWINSZ ioctl."""
        sz = os.get_terminal_size(self.out_fd)
        return sz.lines, sz.columns


# ---------------------------------------------------------------------------
# Raw mode
# ---------------------------------------------------------------------------


class RawMode:
    """Owns the switch between cooked and raw mode.

    Use as a context manager. The original attributes are captured on the
    first activate() and restored by restore(), which also runs at
    interpreter exit as a safety net. restore() is idempotent and a no-op
    if raw mode was never entered.
    """

    def __init__(self, device, read_timeout=DEFAULT_READ_TIMEOUT):
        self._device = device
        self._read_timeout = read_timeout
        self._orig = None
        self._active = False

    @property
    def original(self):
        """TerminalState captured before raw mode was entered, or None."""
        return self._orig

    @property
    def active(self):
        return self._active

    def activate(self):
        if self._active:
            return

        try:
            attrs = self._device.tcgetattr()
        except (termios.error, OSError) as e:
            raise TerminalQueryError("tcgetattr", e) from e

        if self._orig is None:
            self._orig = TerminalState.from_attrs(attrs)

        # Armed before the mutation, so a partially applied configuration
        # still gets undone
        self._active = True
        atexit.register(self.restore)

        try:
            self._device.tcsetattr(self._orig.raw(self._read_timeout).to_attrs())
        except (termios.error, OSError) as e:
            raise TerminalConfigureError("tcsetattr", e) from e

    def restore(self):
        if not self._active:
            return

        self._active = False
        atexit.unregister(self.restore)

        try:
            self._device.tcsetattr(self._orig.to_attrs())
        except (termios.error, OSError) as e:
            raise TerminalConfigureError("tcsetattr", e) from e

    def __enter__(self):
        self.activate()
        return self

    def __exit__(self, *exc_info):
        self.restore()
        return False


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def write(device, data):
    """Write all of 'data' to the terminal, raising OutputError on failure."""
    view = memoryview(data)
    while view:
        try:
            n = device.write(view)
        except OSError as e:
            raise OutputError("write", e) from e
        if not n:
            raise OutputError("write", "terminal accepted no data")
        view = view[n:]


def _write_exact(device, data):
    # Single write that must go through in full. Used by the size probe,
    # where a partial escape sequence would leave the terminal confused.

    try:
        n = device.write(data)
    except OSError as e:
        raise GeometryError("write", e) from e

    if n != len(data):
        raise GeometryError("write", f"wrote {n} of {len(data)} bytes")


# ---------------------------------------------------------------------------
# Window geometry
# ---------------------------------------------------------------------------


def parse_cursor_report(data):
    """Parse a cursor position report, returning (row, col).

    'data' is the complete response, e.g. b"\\x1b[24;80R". Raises
    GeometryParseError unless both numbers are present and positive.
    """
    if not data.endswith(_CPR_TERMINATOR):
        raise GeometryParseError(
            "cursor position report", f"no terminator in {data!r}"
        )
    if not data.startswith(_CPR_PREFIX):
        raise GeometryParseError(
            "cursor position report", f"missing escape prefix in {data!r}"
        )

    row, sep, col = data[len(_CPR_PREFIX) : -len(_CPR_TERMINATOR)].partition(
        _CPR_SEPARATOR
    )
    if not sep:
        raise GeometryParseError(
            "cursor position report", f"missing separator in {data!r}"
        )

    # bytes.isdigit() only accepts ASCII digits, and is False for b""
    if not (row.isdigit() and col.isdigit()):
        raise GeometryParseError(
            "cursor position report", f"non-numeric position in {data!r}"
        )

    row = int(row)
    col = int(col)
    if row <= 0 or col <= 0:
        raise GeometryParseError(
            "cursor position report", f"zero position in {data!r}"
        )

    return row, col


def get_cursor_position(device):
    """Ask the terminal where the cursor is, returning (row, col).

    Reads the response one byte at a time until the terminator. Gives up
    after _CPR_MAX_LEN bytes, or when a read times out, and lets the parser
    reject what was collected.
    """
    _write_exact(device, REQUEST_CURSOR_POSITION)

    buf = bytearray()
    while len(buf) < _CPR_MAX_LEN:
        try:
            c = device.read(1)
        except OSError as e:
            raise GeometryError("read", e) from e

        if len(c) != 1:
            break

        buf += c
        if c == _CPR_TERMINATOR:
            break

    return parse_cursor_report(bytes(buf))


def get_window_size(device, force_probe=False):
    """Return the terminal size as (rows, cols).

    Tries the TIOCGWINSZ ioctl first. If that fails, reports a zero size,
    or 'force_probe' is True, moves the cursor as far down and right as it
    will go and reads back its position instead.

    Raises GeometryError (or GeometryParseError) if the probe fails. Never
    returns a zero dimension.
    """
    if not force_probe:
        try:
            rows, cols = device.window_size()
        except OSError:
            # Not fatal, the probe below still has a chance
            pass
        else:
            if rows > 0 and cols > 0:
                return rows, cols

    _write_exact(device, CURSOR_FAR_BOTTOM_RIGHT)
    return get_cursor_position(device)


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


def read_key(device):
    """Block until a byte arrives and return it as an int.

    Each read() returns after at most VTIME. Timeouts, EAGAIN and EINTR are
    retried. Any other failure raises InputError.
    """
    while True:
        try:
            c = device.read(1)
        except (BlockingIOError, InterruptedError):
            continue
        except OSError as e:
            raise InputError("read", e) from e

        if c:
            return c[0]


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


def fail(device, error, prog="xetcode"):
    """Reset the screen, report 'error' on stderr, and exit with status 1.

    Terminal attributes are left to RawMode, which restores them while the
    resulting SystemExit unwinds (or at interpreter exit).
    """
    try:
        device.write(CLEAR_SCREEN + CURSOR_HOME)
    except OSError:
        pass

    print(f"{prog}: {error}", file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Safe entry point
# ---------------------------------------------------------------------------


def run(fn, device=None, read_timeout=DEFAULT_READ_TIMEOUT, prog="xetcode"):
    """Safe wrapper: enter raw mode, call fn(device, raw_mode), restore.

    Terminal attributes are restored exactly once on every way out:
    normal return, an exception, or fail(). A TerminalError from any step,
    including the restore itself, is routed to fail(). Ctrl-C only
    arrives as SIGINT if it was delivered before raw mode was entered, and
    is treated as a normal quit.
    """
    if device is None:
        device = TtyDevice()

    try:
        with RawMode(device, read_timeout) as raw_mode:
            return fn(device, raw_mode)
    except KeyboardInterrupt:
        return None
    except TerminalError as e:
        fail(device, e, prog)
