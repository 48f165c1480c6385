"""Commands to be watched and the results of running them."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class Command:
    """A shell command line together with what is known about its last run."""

    raw: str
    url: str = ""
    output_file: str = ""
    last_run: datetime | None = None
    last_hash: str = ""
    last_output: bytes = b""

    def extract_url(self) -> None:
        """Take the first space-separated word that starts with an HTTP(S) scheme as the URL."""
        for part in self.raw.split(" "):
            if part.startswith(("https://", "http://")):
                self.url = part
                return

    def extract_output_file(self) -> None:
        """Take the word following the first ``-o`` as the output file."""
        parts = self.raw.split(" ")
        for option, value in zip(parts, parts[1:]):
            if option == "-o":
                self.output_file = value
                return


def new_command(raw: str) -> Command:
    """Build a command from its raw text, filling in its URL and output file."""
    cmd = Command(raw=raw)
    cmd.extract_url()
    cmd.extract_output_file()
    return cmd


def hash_content(content: bytes) -> str:
    """Return the hex MD5 digest of ``content``."""
    return hashlib.md5(content).hexdigest()


def _with_fraction(value: int, scale: int) -> str:
    whole, frac = divmod(value, scale)
    if not frac:
        return str(whole)
    digits = str(frac).rjust(len(str(scale)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(duration: timedelta) -> str:
    """Render a duration compactly, e.g. ``1.5s``, ``250ms`` or ``1h2m3s``."""
    ns = ((duration.days * 86400 + duration.seconds) * 10**6 + duration.microseconds) * 1000
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 10**9:
        for unit, scale in (("ns", 1), ("µs", 10**3), ("ms", 10**6)):
            if ns < scale * 1000:
                return f"{sign}{_with_fraction(ns, scale)}{unit}"
    seconds, rest = divmod(ns, 10**9)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    text = _with_fraction(seconds * 10**9 + rest, 10**9) + "s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


@dataclass
class CommandResult:
    """The outcome of one execution of a command."""

    command: Command
    output: bytes = b""
    output_hash: str = ""
    error: Exception | None = None
    time_taken: timedelta = timedelta(0)
    has_changed: bool = False
    executed_at: datetime = field(default_factory=datetime.now)
    differences: str = ""

    def __str__(self) -> str:
        status = "Success" if self.error is None else f"Error: {self.error}"
        change_status = " (CHANGED)" if self.has_changed else ""
        return (
            f"[{self.executed_at.strftime(TIMESTAMP_FORMAT)}] {self.command.raw} - "
            f"{status}{change_status} (took: {format_duration(self.time_taken)})"
        )