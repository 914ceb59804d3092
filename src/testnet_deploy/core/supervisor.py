#!/usr/bin/env python3
"""
Process supervision for benchmark clients.

The Supervisor runs one command over and over according to a RestartPolicy,
appending the command's combined output to a log and emitting begin and
complete datapoints around every run. Benchmark clients use
RestartPolicy.ALWAYS: success and failure both lead to an immediate restart
to keep load on the cluster.
"""

import shlex
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from ..infra.logs import LogFile, timestamp
from ..infra.metrics import MetricsSink, NullMetricsSink
from ..models.session import ClientSessionState

METRIC_MEASUREMENT = "testnet-deploy"
CLIENT_BEGIN = f"{METRIC_MEASUREMENT} client-begin=1"
CLIENT_COMPLETE = f"{METRIC_MEASUREMENT} client-complete=1"

# Exit code used when the command cannot be spawned at all
SPAWN_FAILURE_CODE = 127


class RestartPolicy(Enum):
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    NEVER = "never"

    def should_restart(self, return_code: int) -> bool:
        if self is RestartPolicy.ALWAYS:
            return True
        if self is RestartPolicy.ON_FAILURE:
            return return_code != 0
        return False


class ProcessRunner(ABC):
    @abstractmethod
    def run(self, argv: Sequence[str], log: LogFile) -> int:
        """Run argv to completion with stdout and stderr appended to log."""
        pass


class SubprocessRunner(ProcessRunner):
    def __init__(self, cwd: Optional[Path] = None, env: Optional[Mapping[str, str]] = None):
        self.cwd = cwd
        self.env = dict(env) if env is not None else None

    def run(self, argv: Sequence[str], log: LogFile) -> int:
        with log.open_for_output() as output:
            try:
                return subprocess.call(
                    list(argv),
                    cwd=str(self.cwd) if self.cwd else None,
                    env=self.env,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                )
            except OSError as e:
                output.write(f"{argv[0]}: {e}\n".encode("utf-8", errors="replace"))
                return SPAWN_FAILURE_CODE


class Supervisor:
    """
    Runs a command under a restart policy.

    Nothing that happens to the command is fatal to the loop; the loop only
    ends when the policy says so or max_runs is reached.
    """

    def __init__(
        self,
        name: str,
        argv: Sequence[str],
        log: LogFile,
        runner: Optional[ProcessRunner] = None,
        metrics: Optional[MetricsSink] = None,
        policy: RestartPolicy = RestartPolicy.ALWAYS,
        echo: Callable[[str], None] = print,
    ):
        if not argv:
            raise ValueError("argv must not be empty")
        self.argv = list(argv)
        self.log = log
        self.runner = runner or SubprocessRunner()
        self.metrics = metrics or NullMetricsSink()
        self.policy = policy
        self._echo = echo
        self.state = ClientSessionState(
            session_name=name,
            command=shlex.join(self.argv),
            log_file=str(log.path),
        )

    def _tee(self, line: str) -> None:
        self._echo(line)
        try:
            self.log.append(line)
        except OSError as e:
            self._echo(f"⚠ Could not write {self.log.path}: {e}")

    def _emit(self, datapoint: str) -> None:
        try:
            self.metrics.write_datapoint(datapoint)
        except Exception as e:
            # A broken sink must never stop the benchmark
            self._echo(f"⚠ Metrics write failed: {e}")

    def run_once(self) -> int:
        """Run the command one time, bracketed by begin/complete datapoints."""
        self._tee(f"=== Client start: {timestamp()}")
        self._emit(CLIENT_BEGIN)
        self._tee(f"$ {self.state.command}")
        try:
            return_code = self.runner.run(self.argv, self.log)
        except OSError as e:
            # An unwritable log counts as a failed run
            self._echo(f"⚠ Could not run {self.state.command}: {e}")
            return_code = SPAWN_FAILURE_CODE
        self._emit(CLIENT_COMPLETE)
        self.state.record_exit(return_code)
        return return_code

    def run(self, max_runs: Optional[int] = None) -> ClientSessionState:
        """
        Supervise the command.

        Args:
            max_runs: Stop after this many runs; None runs until the policy
                stops (forever for ALWAYS)

        Returns:
            The final session state
        """
        self.state.running = True
        self.state.started_at = datetime.now()
        try:
            while max_runs is None or self.state.restart_count < max_runs:
                return_code = self.run_once()
                if not self.policy.should_restart(return_code):
                    break
        finally:
            self.state.running = False
        return self.state
