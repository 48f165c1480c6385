import json
import threading
from datetime import timedelta

import pytest
import responses

from reconwatch.monitor import (
    Monitor,
    MonitorOptions,
    build_monitor_script,
    load_commands_from_file,
)

WEBHOOK = "https://discord.example.com/api/webhooks/hook"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_load_commands_skips_blank_lines(tmp_path):
    path = _write(
        tmp_path / "cmds.txt",
        "ffuf -u https://example.com/FUZZ -w wordlist -o example_f.out\n\n   \n"
        "  x8 -u https://example.com/client -w wordlist -X GET POST -o example_p.out  \n",
    )
    commands = load_commands_from_file(path)
    assert [c.raw for c in commands] == [
        "ffuf -u https://example.com/FUZZ -w wordlist -o example_f.out",
        "x8 -u https://example.com/client -w wordlist -X GET POST -o example_p.out",
    ]
    assert commands[0].url == "https://example.com/FUZZ"
    assert commands[1].output_file == "example_p.out"


def test_load_commands_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_commands_from_file(tmp_path / "absent.txt")


def test_build_monitor_script_embeds_command_and_interval():
    script = build_monitor_script("echo hello", 60)
    assert script.startswith("#!/bin/bash\n")
    assert 'echo "Command: echo hello"' in script
    assert "\n    echo hello\n" in script
    assert 'echo "Waiting 60 seconds until next run..."' in script
    assert "sleep 60\ndone" in script
    assert "cleanup() {\n" in script


def test_options_defaults():
    options = MonitorOptions()
    assert options.interval == timedelta(minutes=30)
    assert options.mode == "MR"
    assert options.monitoring is False


def test_monitor_loads_both_files(workdir):
    ffuf = _write(workdir / "ffuf.txt", "ffuf -u https://example.com/FUZZ -w w\n")
    x8 = _write(workdir / "x8.txt", "x8 -u https://example.com/a\nx8 -u https://example.com/b\n")
    monitor = Monitor(MonitorOptions(ffuf_commands_file=ffuf, x8_commands_file=x8))
    assert len(monitor.ffuf_commands) == 1
    assert len(monitor.x8_commands) == 2
    assert monitor.notifier is None
    assert [c.raw for c in monitor.commands][0].startswith("ffuf")


def test_monitor_missing_file_raises(workdir):
    with pytest.raises(FileNotFoundError):
        Monitor(MonitorOptions(x8_commands_file=str(workdir / "nope.txt")))


def test_execute_commands_without_notifier(workdir):
    x8 = _write(workdir / "x8.txt", "echo first\necho second\n")
    monitor = Monitor(MonitorOptions(x8_commands_file=x8, interval=timedelta(minutes=1)))
    results = monitor.execute_commands()
    outputs = sorted(r.output for r in results)
    assert outputs == [b"first\n", b"second\n"]
    assert all(r.error is None for r in results)


def test_change_triggers_notification(workdir):
    x8 = _write(workdir / "x8.txt", "echo line >> counter.txt; wc -l < counter.txt\n")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, WEBHOOK, status=204)
        monitor = Monitor(
            MonitorOptions(
                x8_commands_file=x8, discord_webhook=WEBHOOK, interval=timedelta(minutes=1)
            )
        )
        first = monitor.execute_commands()
        assert first[0].has_changed is False
        assert len(rsps.calls) == 0

        second = monitor.execute_commands()
        assert second[0].has_changed is True
        assert len(rsps.calls) == 1
        payload = json.loads(rsps.calls[0].request.body)
    assert payload["content"] == "🔍 Change detected in command output!"
    assert payload["embeds"][0]["fields"][0]["name"] == "Differences Detected"


def test_error_triggers_notification(workdir):
    x8 = _write(workdir / "x8.txt", "exit 3\n")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, WEBHOOK, status=200)
        monitor = Monitor(
            MonitorOptions(
                x8_commands_file=x8, discord_webhook=WEBHOOK, interval=timedelta(minutes=1)
            )
        )
        results = monitor.execute_commands()
        assert results[0].error is not None
        assert len(rsps.calls) == 1
        payload = json.loads(rsps.calls[0].request.body)
    assert payload["content"] == "⚠️ Error executing command!"


def test_failed_notification_does_not_abort_cycle(workdir):
    x8 = _write(workdir / "x8.txt", "exit 1\necho fine\n")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, WEBHOOK, status=500)
        monitor = Monitor(
            MonitorOptions(
                x8_commands_file=x8, discord_webhook=WEBHOOK, interval=timedelta(minutes=1)
            )
        )
        results = monitor.execute_commands()
    assert len(results) == 2
    assert sum(r.error is not None for r in results) == 1


def test_start_returns_after_stop(workdir):
    x8 = _write(workdir / "x8.txt", "echo hi\n")
    monitor = Monitor(MonitorOptions(x8_commands_file=x8, interval=timedelta(minutes=1)))
    runner = threading.Thread(target=monitor.start)
    runner.start()
    monitor.stop()
    runner.join(timeout=10)
    assert not runner.is_alive()


def test_start_rejects_non_positive_interval(workdir):
    x8 = _write(workdir / "x8.txt", "echo hi\n")
    monitor = Monitor(MonitorOptions(x8_commands_file=x8, interval=timedelta(0)))
    with pytest.raises(ValueError):
        monitor.start()