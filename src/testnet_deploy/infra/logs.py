#!/usr/bin/env python3
"""
Log files for the testnet deployment tool.

Every concern writes its own plaintext file (client.log, oom-monitor.log,
net-stats.log), one line per event, opened in append mode. Each file has
exactly one writer process.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import IO, Optional

CLIENT_LOG = "client.log"
OOM_MONITOR_LOG = "oom-monitor.log"
NET_STATS_LOG = "net-stats.log"


def timestamp() -> str:
    """Local time formatted like date(1)."""
    return datetime.now().astimezone().strftime("%a %b %d %H:%M:%S %Z %Y")


class LogFile:
    """An append-only plaintext log."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def reset(self, first_line: str) -> None:
        """Truncate the log and write its header line."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            f.write(first_line.rstrip("\n") + "\n")

    def append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(line.rstrip("\n") + "\n")

    def open_for_output(self) -> IO[bytes]:
        """Open the log for a child process's stdout/stderr."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return open(self.path, "ab")


def log_and_print(message: str, log: Optional[LogFile] = None, step_name: str = "", error: bool = False) -> None:
    """
    Print a message to the terminal and optionally append it to a log.

    Args:
        message: Text to emit
        log: Log file the plain message is appended to
        step_name: Optional tag shown in brackets on the terminal
        error: Print to stderr with the failure marker
    """
    if error:
        formatted = f"  ✗ {message}"
    elif step_name:
        formatted = f"  [{step_name:^8}] {message}"
    else:
        formatted = f"  {message}"
    print(formatted, file=sys.stderr if error else sys.stdout, flush=True)

    if log is not None:
        log.append(message)
