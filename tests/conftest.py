# Copyright (c) 2026 XetCode contributors
# SPDX-License-Identifier: ISC
#
# Shared fixtures for the xetterm/xetcode pytest suite. Tests run against
# FakeTty, never the real terminal.

import errno
import os
import sys
import termios

import pytest

# Ensure xetterm/xetcode are importable from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import xetterm  # noqa: E402

# ---------------------------------------------------------------------------
# Fake terminal
# ---------------------------------------------------------------------------


def cooked_attrs():
    """A typical cooked-mode attribute list, as termios.tcgetattr() returns."""
    cc = [b"\x00"] * termios.NCCS
    cc[termios.VINTR] = b"\x03"
    cc[termios.VEOF] = b"\x04"
    cc[termios.VMIN] = b"\x01"
    cc[termios.VTIME] = b"\x00"
    return [
        termios.BRKINT | termios.ICRNL | termios.IXON | termios.INPCK,
        termios.OPOST | termios.ONLCR,
        termios.CS7 | termios.CREAD,
        termios.ECHO | termios.ECHOE | termios.ICANON | termios.ISIG | termios.IEXTEN,
        termios.B38400,
        termios.B38400,
        cc,
    ]


def _copy_attrs(attrs):
    return list(attrs[:6]) + [list(attrs[6])]


class FakeTty:
    """Stand-in for xetterm.TtyDevice.

    attrs:
      Current termios attribute list

    reads:
      Script for read(). Each item is returned in turn (bytes) or raised
      (exception instance). Reading past the end is a test bug and raises
      AssertionError, which nothing in xetterm catches.

    size:
      (rows, cols) returned by window_size(), or an exception to raise

    fail_on:
      Names of methods ("tcgetattr", "tcsetattr", "write") that raise
    """

    def __init__(self, reads=(), size=(24, 80), attrs=None, fail_on=()):
        self.attrs = _copy_attrs(attrs or cooked_attrs())
        self.reads = list(reads)
        self.size = size
        self.fail_on = set(fail_on)
        self.set_calls = []
        self.written = bytearray()
        # Ordered ("read", bytes) / ("write", bytes) log
        self.events = []
        # Largest number of bytes a single write() accepts
        self.max_write = None

    def tcgetattr(self):
        if "tcgetattr" in self.fail_on:
            raise termios.error(errno.ENOTTY, "Inappropriate ioctl for device")
        return _copy_attrs(self.attrs)

    def tcsetattr(self, attrs):
        if "tcsetattr" in self.fail_on:
            raise termios.error(errno.EIO, "Input/output error")
        self.attrs = _copy_attrs(attrs)
        self.set_calls.append(_copy_attrs(attrs))

    def read(self, n=1):
        assert self.reads, "read past end of script"
        item = self.reads.pop(0)
        if isinstance(item, BaseException):
            raise item
        self.events.append(("read", item))
        return item

    def write(self, data):
        if "write" in self.fail_on:
            raise OSError(errno.EIO, "Input/output error")
        data = bytes(data)
        if self.max_write is not None:
            data = data[: self.max_write]
        self.written += data
        self.events.append(("write", data))
        return len(data)

    def window_size(self):
        if isinstance(self.size, BaseException):
            raise self.size
        return self.size


class AtexitRecorder:
    """Replaces the atexit module inside xetterm during tests."""

    def __init__(self):
        self.callbacks = []

    def register(self, fn):
        self.callbacks.append(fn)
        return fn

    def unregister(self, fn):
        self.callbacks = [cb for cb in self.callbacks if cb != fn]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def atexit_hooks(monkeypatch):
    """Keep RawMode from registering hooks with the real atexit module.

    A hook left behind by a test would run against a FakeTty at
    interpreter exit.
    """
    recorder = AtexitRecorder()
    monkeypatch.setattr(xetterm, "atexit", recorder)
    return recorder


@pytest.fixture
def tty():
    return FakeTty()
