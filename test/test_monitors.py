"""
Tests for the best-effort background monitors and keypair generation.
"""

import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeRunner
from testnet_deploy.builders.programs import Command
from testnet_deploy.core.monitors import MonitorSpec, start_background_monitors, start_monitor
from testnet_deploy.errors import KeypairGenerationError
from testnet_deploy.infra.communicator import CommandResult
from testnet_deploy.infra.keygen import KeypairGenerator


def test_missing_monitor_is_skipped(tmp_path, capsys):
    handle = start_monitor(MonitorSpec("oom-monitor", ("/nonexistent/oom-monitor.sh",), "oom-monitor.log"), tmp_path)
    assert not handle.started
    assert handle.error
    assert "Could not start oom-monitor" in capsys.readouterr().out


def test_monitor_output_goes_to_its_log(tmp_path):
    spec = MonitorSpec("net-stats", (sys.executable, "-c", "print('rx=1 tx=2')"), "net-stats.log")
    handle = start_monitor(spec, tmp_path)
    assert handle.started

    log = tmp_path / "net-stats.log"
    deadline = time.time() + 10
    while time.time() < deadline and "rx=1" not in log.read_text():
        time.sleep(0.05)
    assert "rx=1 tx=2" in log.read_text()


def test_one_failing_monitor_does_not_stop_the_others(tmp_path):
    monitors = (
        MonitorSpec("broken", ("/nonexistent/monitor",), "broken.log"),
        MonitorSpec("sleeper", (sys.executable, "-c", "pass"), "sleeper.log"),
    )
    handles = start_background_monitors(tmp_path, None, monitors)
    assert [h.started for h in handles] == [False, True]


class TestKeypairGenerator:
    def test_generate_keypair(self, tmp_path):
        runner = FakeRunner()
        KeypairGenerator(Command("solana-keygen"), runner).generate_keypair(tmp_path / "bench.keypair")
        assert runner.commands == [["solana-keygen", "new", "-f", "-o", str(tmp_path / "bench.keypair")]]

    def test_generate_without_force(self, tmp_path):
        runner = FakeRunner()
        keygen = Command("cargo", ("run", "--bin", "solana-keygen", "--"))
        KeypairGenerator(keygen, runner).generate_keypair(Path("id.json"), force=False)
        assert runner.commands == [["cargo", "run", "--bin", "solana-keygen", "--", "new", "-o", "id.json"]]

    def test_failure_raises(self, tmp_path):
        runner = FakeRunner([CommandResult(stdout="", stderr="permission denied", return_code=1)])
        with pytest.raises(KeypairGenerationError) as exc:
            KeypairGenerator(Command("solana-keygen"), runner).generate_keypair(tmp_path / "k")
        assert "permission denied" in str(exc.value)
