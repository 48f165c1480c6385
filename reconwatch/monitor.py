"""Periodic execution of watched commands, with alerts when their output changes."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from reconwatch.executor import CommandExecutor
from reconwatch.models import Command, CommandResult, format_duration, new_command
from reconwatch.notifier import DiscordNotifier, NotificationError

DEFAULT_INTERVAL = timedelta(minutes=30)
DEFAULT_MODE = "MR"
CYCLE_MARGIN = timedelta(seconds=5)
TERMINAL_SLOTS = 5
SLOT_RELEASE_DELAY = 2.0
SCRIPT_REMOVE_DELAY = 5.0

_SCRIPT_TEMPLATE = """#!/bin/bash
# Keep the terminal open even if the command fails
set -e

# Function to clean up on exit
cleanup() {{
    echo "Monitoring stopped at: $(date)"
    # Keep the window open for 5 seconds before closing
    sleep 5
}}

# Set up trap for cleanup
trap cleanup EXIT

echo "=== Monitoring Command ==="
echo "Command: {raw}"
echo "Started at: $(date)"
echo "========================"

while true; do
    echo "Running command at: $(date)"
    echo "------------------------"
    {raw}
    echo "------------------------"
    echo "Command completed at: $(date)"
    echo "========================"
    echo "Waiting {seconds} seconds until next run..."
    sleep {seconds}
done"""


@dataclass
class MonitorOptions:
    """Settings for a monitor."""

    ffuf_commands_file: str = ""
    x8_commands_file: str = ""
    discord_webhook: str = ""
    interval: timedelta = DEFAULT_INTERVAL
    mode: str = DEFAULT_MODE
    monitoring: bool = False


def load_commands_from_file(path: str | os.PathLike[str]) -> list[Command]:
    """Read one command per non-blank line of the file at ``path``."""
    with open(path, encoding="utf-8") as handle:
        text = handle.read()
    return [new_command(line.strip()) for line in text.split("\n") if line.strip()]


def build_monitor_script(raw: str, interval_seconds: int) -> str:
    """Return a bash script that runs ``raw`` forever, pausing between runs."""
    return _SCRIPT_TEMPLATE.format(raw=raw, seconds=interval_seconds)


def _later(delay: float, action: Callable[[], object]) -> None:
    timer = threading.Timer(delay, action)
    timer.daemon = True
    timer.start()


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


class Monitor:
    """Runs the loaded commands at a fixed interval and reports changes."""

    def __init__(self, options: MonitorOptions, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.executor = CommandExecutor(self.logger)
        self.notifier = (
            DiscordNotifier(options.discord_webhook, self.logger)
            if options.discord_webhook
            else None
        )
        self.interval = options.interval
        self.mode = options.mode
        self.monitoring = options.monitoring
        self._stop_event = threading.Event()
        self.ffuf_commands: list[Command] = (
            load_commands_from_file(options.ffuf_commands_file)
            if options.ffuf_commands_file
            else []
        )
        self.x8_commands: list[Command] = (
            load_commands_from_file(options.x8_commands_file)
            if options.x8_commands_file
            else []
        )

    @property
    def commands(self) -> list[Command]:
        """All loaded commands, ffuf ones first."""
        return self.ffuf_commands + self.x8_commands

    def _on_signal(self, signum: int, frame: object) -> None:
        self.logger.info("Received termination signal, shutting down...")
        self._stop_event.set()

    def _install_signal_handlers(self) -> dict[int, object]:
        if threading.current_thread() is not threading.main_thread():
            return {}
        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, self._on_signal)
        return previous

    def _spawn_cycle(self) -> None:
        threading.Thread(target=self.execute_commands, daemon=True).start()

    def start(self) -> None:
        """Run a cycle now and then once per interval until stopped or signalled."""
        seconds = self.interval.total_seconds()
        if seconds <= 0:
            raise ValueError("non-positive interval for monitor")

        previous = self._install_signal_handlers()
        try:
            self.logger.info(
                "Starting WatchTower monitor in %s mode, checking every %s",
                self.mode,
                format_duration(self.interval),
            )
            self.logger.info(
                "Loaded %d ffuf commands and %d x8 commands",
                len(self.ffuf_commands),
                len(self.x8_commands),
            )
            self._spawn_cycle()
            while not self._stop_event.wait(seconds):
                self._spawn_cycle()
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

    def stop(self) -> None:
        """Make a running or future ``start`` return."""
        self._stop_event.set()

    def _open_monitor_terminals(self, commands: list[Command]) -> None:
        slots = threading.BoundedSemaphore(TERMINAL_SLOTS)
        seconds = int(self.interval.total_seconds())
        for cmd in commands:
            script = build_monitor_script(cmd.raw, seconds)
            path = os.path.join(
                tempfile.gettempdir(), f"watchtower_monitor_{time.time_ns()}.sh"
            )
            try:
                with open(path, "w", encoding="utf-8") as handle:
                    handle.write(script)
                os.chmod(path, 0o755)
            except OSError as exc:
                self.logger.error("Failed to create monitoring script: %s", exc)
                continue

            slots.acquire()
            try:
                subprocess.Popen(
                    ["gnome-terminal", "--", "bash", "-c", f"bash {path}; exec bash"]
                )
            except OSError as exc:
                self.logger.error("Failed to open monitoring terminal: %s", exc)
                _remove_quietly(path)
                slots.release()
                continue

            _later(SCRIPT_REMOVE_DELAY, lambda p=path: _remove_quietly(p))
            _later(SLOT_RELEASE_DELAY, slots.release)

    def execute_commands(self) -> list[CommandResult]:
        """Run one cycle of all commands, send alerts and return the results."""
        self.logger.info("Starting command execution cycle")
        deadline = time.monotonic() + (self.interval - CYCLE_MARGIN).total_seconds()
        commands = self.commands

        if self.monitoring:
            self._open_monitor_terminals(commands)

        results = self.executor.execute_grouped_commands(commands, deadline)
        for result in results:
            if (result.has_changed or result.error is not None) and self.notifier is not None:
                try:
                    self.notifier.send_alert(result)
                except NotificationError as exc:
                    self.logger.error("Failed to send notification: %s", exc)
            self.logger.info(str(result))

        self.logger.info("Finished command execution cycle")
        return results