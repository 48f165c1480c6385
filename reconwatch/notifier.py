"""Alerts about changed or failed commands, delivered through a Discord webhook."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import requests

from reconwatch.models import CommandResult

USERNAME = "WatchTower Monitor"
COLOR_CHANGED = 65280
COLOR_ERROR = 16711680
REQUEST_TIMEOUT = 10.0


class NotificationError(Exception):
    """Raised when a notification could not be delivered."""


def truncate_string(s: str, max_len: int) -> str:
    """Cut ``s`` to ``max_len`` characters, ending in an ellipsis when shortened."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."


def _rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    text = moment.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


class DiscordNotifier:
    """Posts command results to a Discord webhook."""

    def __init__(self, webhook_url: str, logger: logging.Logger | None = None) -> None:
        self.webhook_url = webhook_url
        self.logger = logger or logging.getLogger(__name__)

    def build_message(self, result: CommandResult) -> dict[str, Any] | None:
        """Return the webhook payload for ``result``, or None when no alert is due."""
        if not result.has_changed and result.error is None:
            return None

        description = f"Command: `{truncate_string(result.command.raw, 100)}`\n"
        description += f"Executed at: {_rfc3339(result.executed_at)}\n"
        if result.error is not None:
            description += f"Error: {result.error}\n"
            content = "⚠️ Error executing command!"
            color = COLOR_ERROR
        else:
            description += "Output has changed since last execution"
            content = "🔍 Change detected in command output!"
            color = COLOR_CHANGED

        embed: dict[str, Any] = {
            "title": "Command Execution Result",
            "description": description,
            "color": color,
            "timestamp": _rfc3339(datetime.now().astimezone()),
        }
        if result.has_changed and result.differences:
            diff_text = truncate_string(result.differences, 1024)
            embed["fields"] = [
                {"name": "Differences Detected", "value": "```diff\n" + diff_text + "\n```"}
            ]

        return {"username": USERNAME, "content": content, "embeds": [embed]}

    def send_alert(self, result: CommandResult) -> bool:
        """Send an alert for ``result`` if one is due; return whether one was sent."""
        message = self.build_message(result)
        if message is None:
            return False

        try:
            response = requests.post(
                self.webhook_url,
                data=json.dumps(message),
                headers={"Content-Type": "application/json"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            self.logger.error("Failed to send Discord notification: %s", exc)
            raise NotificationError(str(exc)) from exc

        if not 200 <= response.status_code <= 299:
            self.logger.error(
                "Discord API returned non-2xx status code: %d", response.status_code
            )
            raise NotificationError(f"discord API returned status code {response.status_code}")

        self.logger.info(
            "Successfully sent Discord notification for command: %s", result.command.raw
        )
        return True