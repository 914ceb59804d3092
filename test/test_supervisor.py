#!/usr/bin/env python3
"""
Tests for the restart-policy supervisor and its entry point.
"""

import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent))

from fakes import RecordingMetricsSink
from testnet_deploy import supervise
from testnet_deploy.core.supervisor import (
    CLIENT_BEGIN,
    CLIENT_COMPLETE,
    SPAWN_FAILURE_CODE,
    ProcessRunner,
    RestartPolicy,
    SubprocessRunner,
    Supervisor,
)
from testnet_deploy.infra.logs import LogFile
from testnet_deploy.infra.metrics import MetricsSink


class ScriptedRunner(ProcessRunner):
    """Returns exit codes from a list and records each run."""

    def __init__(self, codes):
        self.codes = list(codes)
        self.runs = []

    def run(self, argv, log):
        self.runs.append(list(argv))
        log.append(f"output of run {len(self.runs)}")
        return self.codes.pop(0)


class BrokenSink(MetricsSink):
    def write_datapoint(self, measurement):
        raise RuntimeError("sink is down")


class FullDiskLog(LogFile):
    def append(self, line):
        raise OSError(28, "No space left on device")

    def open_for_output(self):
        raise OSError(28, "No space left on device")


class TestRestartPolicy(unittest.TestCase):
    def test_should_restart(self):
        self.assertTrue(RestartPolicy.ALWAYS.should_restart(0))
        self.assertTrue(RestartPolicy.ALWAYS.should_restart(1))
        self.assertTrue(RestartPolicy.ON_FAILURE.should_restart(1))
        self.assertFalse(RestartPolicy.ON_FAILURE.should_restart(0))
        self.assertFalse(RestartPolicy.NEVER.should_restart(1))


class TestSupervisor(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.log = LogFile(Path(self.tmp.name) / "client.log")
        self.echoed = []

    def tearDown(self):
        self.tmp.cleanup()

    def make(self, codes, policy=RestartPolicy.ALWAYS, metrics=None):
        runner = ScriptedRunner(codes)
        supervisor = Supervisor(
            "solana-bench-tps",
            ["solana-bench-tps", "--duration", "7500"],
            self.log,
            runner=runner,
            metrics=metrics,
            policy=policy,
            echo=self.echoed.append,
        )
        return supervisor, runner

    def test_always_restarts_after_success_and_failure(self):
        metrics = RecordingMetricsSink()
        supervisor, runner = self.make([0, 1, 0], metrics=metrics)

        state = supervisor.run(max_runs=3)

        self.assertEqual(len(runner.runs), 3)
        self.assertEqual(state.restart_count, 3)
        self.assertEqual(state.last_exit_code, 0)
        self.assertFalse(state.running)
        self.assertIsNotNone(state.started_at)
        self.assertEqual(metrics.datapoints, [CLIENT_BEGIN, CLIENT_COMPLETE] * 3)

    def test_log_records_each_run(self):
        supervisor, _ = self.make([0, 0])
        supervisor.run(max_runs=2)

        lines = self.log.path.read_text().splitlines()
        starts = [line for line in lines if line.startswith("=== Client start: ")]
        self.assertEqual(len(starts), 2)
        self.assertIn("$ solana-bench-tps --duration 7500", lines)
        self.assertIn("output of run 2", lines)
        self.assertTrue(self.echoed[0].startswith("=== Client start: "))

    def test_on_failure_stops_after_success(self):
        supervisor, runner = self.make([2, 1, 0, 5], policy=RestartPolicy.ON_FAILURE)
        state = supervisor.run()
        self.assertEqual(len(runner.runs), 3)
        self.assertEqual(state.last_exit_code, 0)

    def test_never_runs_once(self):
        supervisor, runner = self.make([1, 0], policy=RestartPolicy.NEVER)
        state = supervisor.run()
        self.assertEqual(len(runner.runs), 1)
        self.assertEqual(state.restart_count, 1)

    def test_broken_metrics_sink_does_not_stop_the_loop(self):
        supervisor, runner = self.make([0, 0], metrics=BrokenSink())
        state = supervisor.run(max_runs=2)
        self.assertEqual(state.restart_count, 2)
        self.assertTrue(any("Metrics write failed" in line for line in self.echoed))

    def test_empty_command_is_rejected(self):
        with self.assertRaises(ValueError):
            Supervisor("x", [], self.log)


class TestSubprocessRunner(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.log = LogFile(Path(self.tmp.name) / "client.log")

    def tearDown(self):
        self.tmp.cleanup()

    def test_output_is_appended_to_log(self):
        self.log.append("existing line")
        code = SubprocessRunner().run([sys.executable, "-c", "print('hello'); raise SystemExit(3)"], self.log)
        self.assertEqual(code, 3)
        self.assertEqual(self.log.path.read_text().splitlines(), ["existing line", "hello"])

    def test_spawn_failure(self):
        code = SubprocessRunner().run(["/nonexistent/solana-bench-tps"], self.log)
        self.assertEqual(code, SPAWN_FAILURE_CODE)
        self.assertIn("/nonexistent/solana-bench-tps", self.log.path.read_text())

    def test_spawn_failure_is_restarted(self):
        supervisor = Supervisor(
            "client", ["/nonexistent/client"], self.log,
            runner=SubprocessRunner(), echo=lambda line: None,
        )
        state = supervisor.run(max_runs=2)
        self.assertEqual(state.restart_count, 2)
        self.assertEqual(state.last_exit_code, SPAWN_FAILURE_CODE)

    def test_unwritable_log_does_not_stop_the_loop(self):
        echoed = []
        log = FullDiskLog(Path(self.tmp.name) / "client.log")
        supervisor = Supervisor(
            "client", [sys.executable, "-c", "pass"], log,
            runner=SubprocessRunner(), echo=echoed.append,
        )
        state = supervisor.run(max_runs=2)
        self.assertEqual(state.restart_count, 2)
        self.assertEqual(state.last_exit_code, SPAWN_FAILURE_CODE)
        self.assertFalse(state.running)
        self.assertTrue(any("Could not write" in line for line in echoed))
        self.assertTrue(any("No space left on device" in line for line in echoed))


class TestSuperviseMain(unittest.TestCase):
    def test_main_runs_command(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_file = Path(tmp) / "client.log"
            with patch.dict("os.environ", {"SOLANA_METRICS_CONFIG": ""}):
                code = supervise.main([
                    "--name", "client",
                    "--log-file", str(log_file),
                    "--restart-policy", "never",
                    "--", sys.executable, "-c", "print('bench done')",
                ])
            self.assertEqual(code, 0)
            self.assertIn("bench done", log_file.read_text())

    def test_main_reports_failed_last_run(self):
        with tempfile.TemporaryDirectory() as tmp:
            code = supervise.main([
                "--log-file", str(Path(tmp) / "client.log"),
                "--max-runs", "2",
                "--", sys.executable, "-c", "raise SystemExit(1)",
            ])
        self.assertEqual(code, 1)

    def test_main_requires_command(self):
        with self.assertRaises(SystemExit):
            supervise.main(["--name", "client"])


if __name__ == "__main__":
    unittest.main()
