# reconwatch

`reconwatch` runs a list of shell commands again and again on a fixed
interval. After each run it hashes the command's output and compares it with
the previous run. When the output changes, it prints a summary of the added
and removed lines. It can also post an alert to a Discord webhook. Failed
commands are sent as alerts as well.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

Put one command per line in a text file. Blank lines are ignored, and
surrounding whitespace is stripped from each line.

```
ffuf -u https://example.com/FUZZ -w wordlist -o example_f.out
ffuf -u https://test.example.com/FUZZ -w wordlist -o test_f.out
```

Then start the monitor:

```
reconwatch --ffuf-cmds ffuf_cmds.txt --x8-cmds x8_cmds.txt --interval 1m --verbose
```

The monitor runs one cycle right away. After that it runs one cycle per
interval until it gets SIGINT or SIGTERM. Log lines go to standard output.

### Options

| Option | Default | Meaning |
| --- | --- | --- |
| `--ffuf-cmds PATH` | | File of ffuf commands |
| `--x8-cmds PATH` | | File of x8 commands |
| `--discord-webhook URL` | | Discord webhook for alerts |
| `--interval DURATION` | `30m` | Time between cycles. Takes units `ns`, `us`, `ms`, `s`, `m` and `h`, for example `90s`, `1.5m` or `1h30m` |
| `--mode MODE` | `MR` | Operating mode. It is only shown in the log |
| `--verbose` | off | Debug logging |
| `--monitoring` | off | On each cycle, open a `gnome-terminal` window per command that runs it in a loop of its own |

You must give at least one of `--ffuf-cmds` or `--x8-cmds`. If you give
neither, the command exits with status 1. It also exits with status 1 when a
command file cannot be read or the interval is not positive.

## How it works

* A command's URL is the first space-separated word that starts with
  `http://` or `https://`. Its output file is the word after the first `-o`.
* The output file is moved into a `res_files/` directory: the first
  occurrence of its path in the command is replaced by
  `res_files/<basename>`. After a run, that file is read back as the output.
  If the file cannot be read, or there is no output file, stdout is used.
* A command that exits with a non-zero status, or cannot be started, is
  recorded as an error.
* Commands that contain `ffuf` and target the same host go into one group,
  and the commands in a group run one after another. Each other command gets
  a group of its own. At most five groups run at once.
* Each cycle has a deadline of the interval minus five seconds. A command
  still running at the deadline is stopped and recorded as an error, and the
  rest of its group is skipped. With an interval of five seconds or less,
  every command hits the deadline.
* The first run of a command only records its output. A change is reported
  from the second run on. A change summary lists up to ten added lines and up
  to ten removed lines, and then counts the rest.

## Using it as a library

```python
import logging
from reconwatch.models import new_command
from reconwatch.executor import CommandExecutor, calculate_differences

executor = CommandExecutor(logging.getLogger("reconwatch"), "res_files")
cmd = new_command("echo hello")
result = executor.execute_command(cmd, None)
print(result)

print(calculate_differences(b"a\nb\n", b"b\nc\n"))
```

* `reconwatch.models` holds `Command`, `CommandResult`, `new_command` and
  `hash_content` (the MD5 hex digest).
* `reconwatch.executor` holds `CommandExecutor`, `group_commands` and
  `calculate_differences`. `CommandExecutor.execute_grouped_commands` takes an
  optional deadline, given as a `time.monotonic()` value.
* `reconwatch.notifier.DiscordNotifier` builds the webhook payload
  (`build_message`) and posts it (`send_alert`). `send_alert` returns `False`
  when no alert is due. It raises `NotificationError` when the request fails
  or the webhook answers with a status outside 2xx.
* `reconwatch.monitor` holds `MonitorOptions`, `Monitor` (with `start`,
  `stop` and `execute_commands`), `load_commands_from_file` and
  `build_monitor_script`.
* `reconwatch.cli` holds `main`, `build_parser` and `parse_duration`.

## What it does not do

The last output and hash of each command are kept in memory only. Nothing is
saved between invocations, so after a restart no change can be reported until
each command has run twice.