"""Running watched commands, detecting changed output and reporting differences."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable

from reconwatch.models import TIMESTAMP_FORMAT, Command, CommandResult, hash_content

DEFAULT_RESULTS_DIR = "res_files"
MAX_WORKERS = 5
DIFF_LINE_LIMIT = 10


def _meaningful_lines(output: bytes) -> list[str]:
    text = output.decode("utf-8", errors="replace")
    return [line for line in text.split("\n") if line.strip()]


def _diff_section(title: str, marker: str, kind: str, lines: list[str]) -> str:
    shown = [f"{marker} {line}\n" for line in lines[:DIFF_LINE_LIMIT]]
    if len(lines) > DIFF_LINE_LIMIT:
        shown.append(f"... and {len(lines) - DIFF_LINE_LIMIT} more {kind} lines\n")
    return f"{title}\n" + "".join(shown)


def calculate_differences(old_output: bytes, new_output: bytes) -> str:
    """Summarise the lines added and removed between two outputs."""
    if not old_output:
        return "No previous output to compare with"

    old_lines = _meaningful_lines(old_output)
    new_lines = _meaningful_lines(new_output)
    old_set = set(old_lines)
    new_set = set(new_lines)

    removed = [line for line in old_lines if line not in new_set]
    added = [line for line in new_lines if line not in old_set]

    sections = []
    if added:
        sections.append(_diff_section("Added lines:", "+", "added", added))
    if removed:
        sections.append(_diff_section("Removed lines:", "-", "removed", removed))

    if not sections:
        return "Changes detected but exact differences couldn't be determined"
    return "\n".join(sections)


def _ffuf_key(cmd: Command) -> str:
    if not cmd.url:
        return cmd.raw
    domain = cmd.url
    if domain.startswith(("http://", "https://")):
        parts = domain.split("/", 2)
        if len(parts) > 2:
            domain = parts[2]
    return domain


def group_commands(commands: Iterable[Command]) -> list[list[Command]]:
    """Group commands so that ffuf runs against one target never overlap.

    ffuf commands sharing a target are placed in one group and run one after
    another; every other command gets a group of its own.
    """
    groups: dict[str, list[Command]] = {}
    for cmd in commands:
        if "ffuf" in cmd.raw:
            key = _ffuf_key(cmd)
        else:
            key = f"{cmd.url}_{len(groups)}"
        groups.setdefault(key, []).append(cmd)
    return list(groups.values())


def _expired(deadline: float | None) -> bool:
    return deadline is not None and time.monotonic() >= deadline


class CommandExecutor:
    """Runs shell commands through bash and tracks changes in their output."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        results_dir: str | os.PathLike[str] = DEFAULT_RESULTS_DIR,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.results_dir = os.fspath(results_dir)
        self.max_workers = MAX_WORKERS
        try:
            os.makedirs(self.results_dir, exist_ok=True)
        except OSError as exc:
            self.logger.error("Failed to create %s directory: %s", self.results_dir, exc)

    def _redirect_output(self, cmd: Command) -> str:
        if not cmd.output_file:
            return cmd.raw
        new_output_file = os.path.join(self.results_dir, os.path.basename(cmd.output_file))
        modified = cmd.raw.replace(cmd.output_file, new_output_file, 1)
        cmd.output_file = new_output_file
        return modified

    def _run(self, script: str, deadline: float | None) -> tuple[bytes, Exception | None]:
        if _expired(deadline):
            return b"", TimeoutError("context deadline exceeded")
        timeout = None if deadline is None else max(deadline - time.monotonic(), 0.0)
        try:
            completed = subprocess.run(
                ["bash", "-c", script],
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            self.logger.error("Command execution failed: %s", exc)
            return b"", exc
        except OSError as exc:
            self.logger.error("Command execution failed: %s", exc)
            return b"", exc
        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace")
            error = subprocess.CalledProcessError(
                completed.returncode, script, completed.stdout, completed.stderr
            )
            self.logger.error("Command execution failed: %s, stderr: %s", error, stderr)
            return completed.stdout, error
        return completed.stdout, None

    def _report_change(self, cmd: Command, differences: str) -> None:
        print("\n=== Changes Detected ===")
        print(f"Command: {cmd.raw}")
        print(f"Time: {datetime.now().strftime(TIMESTAMP_FORMAT)}")
        print("\nDifferences:")
        print(differences)
        print("=====================\n")

    def execute_command(self, cmd: Command, deadline: float | None = None) -> CommandResult:
        """Run ``cmd`` once and return its result, updating its last-run state.

        ``deadline`` is a ``time.monotonic()`` value after which the command is
        stopped; None means no limit.
        """
        started_at = datetime.now()
        start = time.monotonic()
        self.logger.info("Executing command: %s", cmd.raw)

        script = self._redirect_output(cmd)
        stdout, error = self._run(script, deadline)

        result = CommandResult(
            command=cmd,
            executed_at=started_at,
            time_taken=datetime.now() - started_at,
        )
        if error is not None:
            result.error = error
            return result

        output = stdout
        if cmd.output_file:
            try:
                with open(cmd.output_file, "rb") as handle:
                    output = handle.read()
            except OSError as exc:
                self.logger.warning("Could not read output file %s: %s", cmd.output_file, exc)
        result.output = output
        result.output_hash = hash_content(output)

        if cmd.last_hash and cmd.last_hash != result.output_hash:
            result.has_changed = True
            self.logger.info("Output changed for command: %s", cmd.raw)
            result.differences = calculate_differences(cmd.last_output, output)
            self._report_change(cmd, result.differences)
            self.logger.debug("Differences: %s", result.differences)

        cmd.last_run = started_at
        cmd.last_hash = result.output_hash
        cmd.last_output = output
        result.time_taken = datetime.now() - started_at
        del start
        return result

    def _execute_group(
        self, group: list[Command], deadline: float | None
    ) -> list[CommandResult]:
        results = []
        for cmd in group:
            if _expired(deadline):
                self.logger.warning("Command execution cancelled")
                break
            results.append(self.execute_command(cmd, deadline))
        return results

    def execute_grouped_commands(
        self, commands: Iterable[Command], deadline: float | None = None
    ) -> list[CommandResult]:
        """Run all commands, groups in parallel and each group's commands in order."""
        commands = list(commands)
        groups = group_commands(commands)
        self.logger.info(
            "Grouped %d commands into %d URL groups for execution", len(commands), len(groups)
        )
        self.logger.debug("Starting %d workers for parallel execution", self.max_workers)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._execute_group, group, deadline) for group in groups]
            return [result for future in futures for result in future.result()]