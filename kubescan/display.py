"""Console output, quiet mode, progress spinner and shared run environment."""

from __future__ import annotations

import itertools
import sys
import threading
from dataclasses import dataclass
from typing import Iterable, Sequence, TextIO

from termcolor import colored

COMPONENT_IDENTIFIER = "Posture"

_SPINNER_FRAMES = ("◐", "◓", "◑", "◒")
_SPINNER_INTERVAL = 0.1


@dataclass
class _Environment:
    customer_guid: str = ""
    cluster_name: str = ""
    event_receiver_url: str = ""
    notification_server_url: str = ""
    dashboard_backend_url: str = ""
    rest_api_port: str = "4001"


environment = _Environment()

_silent = False


def set_silent_mode(silent: bool) -> None:
    """Turn progress output off or on."""
    global _silent
    _silent = bool(silent)


def is_silent() -> bool:
    """Return whether progress output is switched off."""
    return _silent


def _write(stream: TextIO, text: str, color: str | None = None, attrs: Iterable[str] = ()) -> None:
    isatty = getattr(stream, "isatty", None)
    if (color or attrs) and isatty is not None and isatty():
        text = colored(text, color, attrs=list(attrs))
    stream.write(text)


def scan_start_display() -> None:
    """Announce the start of a scan."""
    if is_silent():
        return
    _write(sys.stdout, "ARMO security scanner starting\n", "yellow", ("bold",))


def success_text_display(text: str) -> None:
    """Print a success line."""
    if is_silent():
        return
    _write(sys.stdout, "[success] ", "green", ("bold",))
    _write(sys.stdout, f"{text}\n")


def error_display(text: str) -> None:
    """Print an error line."""
    if is_silent():
        return
    _write(sys.stdout, "[Error] ", "green", ("bold",))
    _write(sys.stdout, f"{text}\n")


def progress_text_display(text: str) -> None:
    """Print a progress line."""
    if is_silent():
        return
    _write(sys.stdout, "[progress] ", "yellow", ("bold",))
    _write(sys.stdout, f"{text}\n")


def info_text_display(stream: TextIO, text: str) -> None:
    """Write informational text to ``stream`` regardless of quiet mode."""
    _write(stream, text, "yellow", ("bold",))


class _Spinner:
    def __init__(self, frames: Sequence[str], interval: float, stream: TextIO) -> None:
        self._frames = frames
        self._interval = interval
        self._stream = stream
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        for frame in itertools.cycle(self._frames):
            self._stream.write(f"\r{frame}")
            self._stream.flush()
            if self._stop.wait(self._interval):
                break

    def stop(self) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        self._thread.join()
        self._stream.write("\r \r")
        self._stream.flush()


_spinner: _Spinner | None = None


def start_spinner() -> None:
    """Show a spinner on an interactive terminal unless quiet."""
    global _spinner
    if is_silent() or not sys.stdout.isatty():
        return
    _spinner = _Spinner(_SPINNER_FRAMES, _SPINNER_INTERVAL, sys.stdout)
    _spinner.start()


def stop_spinner() -> None:
    """Stop the running spinner, if any."""
    global _spinner
    if _spinner is None:
        return
    _spinner.stop()
    _spinner = None