#!/usr/bin/env python3
"""
Tests for DeploymentConfig loading and validation.
"""

import sys
from pathlib import Path

import pytest
import yaml

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from testnet_deploy.errors import (
    DeployError,
    InvalidConfigValue,
    MissingRequiredConfig,
    UnknownDeployMethod,
    UnsupportedClientKind,
)
from testnet_deploy.models.config import (
    DEFAULT_LOG_LEVEL,
    ClientKind,
    DeployMethod,
    DeploymentConfig,
    SyncSettings,
    load_config_file,
)


def load(*params, env=None, **kwargs):
    return DeploymentConfig.load(*params, env=env or {}, root=Path("/srv/solana"), **kwargs)


class TestValidation:
    def test_missing_deploy_method(self):
        with pytest.raises(MissingRequiredConfig) as exc:
            load()
        assert str(exc.value) == "deployMethod not specified"

    def test_missing_entrypoint(self):
        with pytest.raises(MissingRequiredConfig) as exc:
            load("skip")
        assert str(exc.value) == "entrypointIp not specified"

    def test_unknown_deploy_method(self):
        with pytest.raises(UnknownDeployMethod) as exc:
            load("ftp", "10.0.0.1", "solana-bench-tps")
        assert "Unknown deployment method: ftp" in str(exc.value)

    def test_unknown_client(self):
        with pytest.raises(UnsupportedClientKind) as exc:
            load("skip", "10.0.0.1", "bogus")
        assert "Unknown client name: bogus" in str(exc.value)

    def test_deploy_method_is_checked_before_client(self):
        with pytest.raises(UnknownDeployMethod):
            load("ftp", "10.0.0.1", "bogus")

    def test_every_config_error_is_a_deploy_error(self):
        for params in [(), ("skip",), ("ftp", "h", "solana-bench-tps"), ("skip", "h", "bogus")]:
            with pytest.raises(DeployError) as exc:
                load(*params)
            assert exc.value.exit_code == 1

    @pytest.mark.parametrize("index", ["x", "-1", "1.5"])
    def test_invalid_client_index(self, index):
        with pytest.raises(InvalidConfigValue):
            load("skip", "10.0.0.1", "solana-bench-tps", client_index=index)

    def test_unbalanced_quotes_in_extra_args(self):
        with pytest.raises(InvalidConfigValue):
            load("skip", "10.0.0.1", "solana-bench-tps", bench_tps_extra_args="--name 'open")


class TestResolution:
    def test_defaults(self):
        config = load("skip", "10.0.0.1", "solana-bench-tps")
        assert config.deploy_method is DeployMethod.SKIP
        assert config.client_kind is ClientKind.BENCH_TPS
        assert config.log_level == DEFAULT_LOG_LEVEL == "solana=info"
        assert config.client_index is None
        assert config.client_index_suffix == ""
        assert config.bench_tps_extra_args == ()
        assert not config.installed_mode
        assert not config.release_mode
        assert config.root == Path("/srv/solana")

    def test_log_level_precedence(self):
        assert load("skip", "h", "solana-bench-tps", env={"RUST_LOG": "debug"}).log_level == "debug"
        assert load("skip", "h", "solana-bench-tps", "trace", env={"RUST_LOG": "debug"}).log_level == "trace"

    def test_environment_flags(self):
        env = {"NDEBUG": "1", "USE_INSTALL": "1", "SOLANA_METRICS_CONFIG": "host=http://m:8086,db=tds"}
        config = load("skip", "h", "solana-bench-exchange", env=env)
        assert config.release_mode
        assert config.installed_mode
        assert config.metrics_config == "host=http://m:8086,db=tds"

    @pytest.mark.parametrize("method", ["local", "tar"])
    def test_binary_deployments_run_installed_programs(self, method):
        config = load(method, "h", "solana-bench-tps")
        assert config.deploy_method.installs_binaries
        assert config.installed_mode

    def test_extra_args_are_split(self):
        config = load(
            "skip", "h", "solana-bench-tps", "",
            "--tx_count 1000 --label 'two words'", "--chunk-size 10", "7",
        )
        assert config.bench_tps_extra_args == ("--tx_count", "1000", "--label", "two words")
        assert config.extra_args_for(ClientKind.BENCH_EXCHANGE) == ("--chunk-size", "10")
        assert config.client_index == 7
        assert config.client_index_suffix == "7"
        assert config.log_level == DEFAULT_LOG_LEVEL

    def test_yaml_fills_empty_positionals(self):
        data = {
            "deployment": {
                "deploy_method": "tar",
                "entrypoint_host": "10.0.0.9",
                "client": "solana-bench-exchange",
                "client_index": 3,
                "log_level": "solana=warn",
            }
        }
        config = load(config_data=data)
        assert config.deploy_method is DeployMethod.TAR
        assert config.entrypoint_host == "10.0.0.9"
        assert config.client_kind is ClientKind.BENCH_EXCHANGE
        assert config.client_index == 3
        assert config.log_level == "solana=warn"

        overridden = load("skip", config_data=data)
        assert overridden.deploy_method is DeployMethod.SKIP
        assert overridden.entrypoint_host == "10.0.0.9"


class TestSettings:
    def test_sync_and_session_sections(self):
        data = {
            "sync": {"max_attempts": "3", "delay": 0.5, "probe_remote": "false"},
            "session": {"settle_delay": 0, "log_file": "bench.log"},
        }
        config = load("skip", "h", "solana-bench-tps", config_data=data)
        assert config.sync.max_attempts == 3
        assert config.sync.delay == 0.5
        assert config.sync.probe_remote is False
        assert config.session.settle_delay == 0.0
        assert config.session.log_file == "bench.log"
        assert config.session.capture_lines == 100

        policy = config.sync.retry_policy()
        assert list(policy.delays()) == [0.5, 1.0]

    def test_unknown_setting(self):
        with pytest.raises(InvalidConfigValue) as exc:
            load("skip", "h", "solana-bench-tps", config_data={"sync": {"retries": 3}})
        assert "retries" in str(exc.value)

    def test_uncoercible_setting(self):
        with pytest.raises(InvalidConfigValue):
            load("skip", "h", "solana-bench-tps", config_data={"session": {"capture_lines": "many"}})

    def test_invalid_retry_policy(self):
        with pytest.raises(InvalidConfigValue):
            SyncSettings(max_attempts=0).retry_policy()


class TestConfigFile:
    def test_load_config_file(self, tmp_path):
        path = tmp_path / "deploy.yaml"
        path.write_text("deployment:\n  deploy_method: skip\nsync:\n  max_attempts: 2\n")
        assert load_config_file(path) == {
            "deployment": {"deploy_method": "skip"},
            "sync": {"max_attempts": 2},
        }

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config_file(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config_file(tmp_path / "missing.yaml")

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- skip\n- local\n")
        with pytest.raises(InvalidConfigValue):
            load_config_file(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("deployment: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_config_file(path)
