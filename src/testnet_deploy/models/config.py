#!/usr/bin/env python3
"""
Deployment configuration.

DeploymentConfig is built once when the launcher starts and is read-only
afterwards. Values are layered: an optional YAML file provides defaults,
environment variables override the file and positional command line
arguments override both. All validation happens here, so a bad
configuration fails before anything is spawned.
"""

import os
import shlex
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from ..errors import InvalidConfigValue, MissingRequiredConfig, UnknownDeployMethod, UnsupportedClientKind
from ..infra.environment import cuda_enabled
from ..infra.logs import CLIENT_LOG
from ..infra.sync import RetryPolicy

DEFAULT_LOG_LEVEL = "solana=info"


class DeployMethod(Enum):
    LOCAL = "local"
    TAR = "tar"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: str) -> "DeployMethod":
        try:
            return cls(value)
        except ValueError:
            raise UnknownDeployMethod(value) from None

    @property
    def installs_binaries(self) -> bool:
        return self in (DeployMethod.LOCAL, DeployMethod.TAR)


class ClientKind(Enum):
    BENCH_TPS = "solana-bench-tps"
    BENCH_EXCHANGE = "solana-bench-exchange"

    @classmethod
    def parse(cls, value: str) -> "ClientKind":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedClientKind(value) from None

    @property
    def program(self) -> str:
        """Logical program name, e.g. "bench-tps"."""
        return self.value.split("-", 1)[1]


@dataclass(frozen=True)
class SyncSettings:
    """Retry and probing behaviour of ClusterSync."""
    max_attempts: int = 5
    delay: float = 2.0
    backoff: float = 2.0
    max_delay: float = 30.0
    probe_remote: bool = True

    @classmethod
    def from_yaml(cls, data: Optional[Dict[str, Any]]) -> "SyncSettings":
        return _from_mapping(cls, data or {}, "sync")

    def retry_policy(self) -> RetryPolicy:
        try:
            return RetryPolicy(
                max_attempts=self.max_attempts,
                delay=self.delay,
                backoff=self.backoff,
                max_delay=self.max_delay,
            )
        except ValueError as e:
            raise InvalidConfigValue("sync", self, str(e)) from None


@dataclass(frozen=True)
class SessionSettings:
    """How the client session is launched and observed."""
    settle_delay: float = 1.0
    capture_lines: int = 100
    log_file: str = CLIENT_LOG

    @classmethod
    def from_yaml(cls, data: Optional[Dict[str, Any]]) -> "SessionSettings":
        return _from_mapping(cls, data or {}, "session")


@dataclass(frozen=True)
class DeploymentConfig:
    """
    Everything the launcher needs, resolved and validated.

    Extra argument fields hold already-split tokens.
    """
    deploy_method: DeployMethod
    entrypoint_host: str
    client_kind: ClientKind
    log_level: str = DEFAULT_LOG_LEVEL
    bench_tps_extra_args: Tuple[str, ...] = ()
    bench_exchange_extra_args: Tuple[str, ...] = ()
    client_index: Optional[int] = None
    root: Path = field(default_factory=Path.cwd)
    release_mode: bool = False
    installed_mode: bool = False
    cuda_enabled: bool = False
    metrics_config: str = ""
    sync: SyncSettings = field(default_factory=SyncSettings)
    session: SessionSettings = field(default_factory=SessionSettings)

    @property
    def client_name(self) -> str:
        return self.client_kind.value

    @property
    def client_index_suffix(self) -> str:
        return "" if self.client_index is None else str(self.client_index)

    def extra_args_for(self, kind: ClientKind) -> Tuple[str, ...]:
        if kind is ClientKind.BENCH_TPS:
            return self.bench_tps_extra_args
        return self.bench_exchange_extra_args

    @classmethod
    def load(
        cls,
        deploy_method: Optional[str] = None,
        entrypoint_host: Optional[str] = None,
        client_to_run: Optional[str] = None,
        log_level: Optional[str] = None,
        bench_tps_extra_args: Optional[str] = None,
        bench_exchange_extra_args: Optional[str] = None,
        client_index: Optional[str] = None,
        root: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        config_data: Optional[Dict[str, Any]] = None,
    ) -> "DeploymentConfig":
        """
        Build and validate a configuration.

        Args:
            deploy_method .. client_index: Positional launcher arguments;
                empty values fall back to the YAML "deployment" section
            root: Deployment checkout, defaults to the current directory
            env: Environment (default: os.environ)
            config_data: Parsed YAML configuration

        Raises:
            MissingRequiredConfig: deploy method or entrypoint is empty
            UnknownDeployMethod: deploy method is not local, tar or skip
            UnsupportedClientKind: client is not a known benchmark client
            InvalidConfigValue: client index or settings are malformed
        """
        env = os.environ if env is None else env
        data = config_data or {}
        deployment = data.get("deployment") or {}

        def pick(value: Optional[str], key: str) -> str:
            if value:
                return value
            fallback = deployment.get(key)
            return "" if fallback is None else str(fallback)

        method = pick(deploy_method, "deploy_method")
        entrypoint = pick(entrypoint_host, "entrypoint_host")
        if not method:
            raise MissingRequiredConfig("deployMethod")
        if not entrypoint:
            raise MissingRequiredConfig("entrypointIp")

        method_enum = DeployMethod.parse(method)
        client_kind = ClientKind.parse(pick(client_to_run, "client"))

        level = log_level or env.get("RUST_LOG") or deployment.get("log_level") or DEFAULT_LOG_LEVEL

        return cls(
            deploy_method=method_enum,
            entrypoint_host=entrypoint,
            client_kind=client_kind,
            log_level=level,
            bench_tps_extra_args=_split_args(pick(bench_tps_extra_args, "bench_tps_extra_args")),
            bench_exchange_extra_args=_split_args(pick(bench_exchange_extra_args, "bench_exchange_extra_args")),
            client_index=_parse_index(pick(client_index, "client_index")),
            root=Path(root or deployment.get("root") or Path.cwd()),
            release_mode=bool(env.get("NDEBUG")),
            # local and tar deployments always run the synced binaries
            installed_mode=bool(env.get("USE_INSTALL")) or method_enum.installs_binaries,
            cuda_enabled=cuda_enabled(env),
            metrics_config=env.get("SOLANA_METRICS_CONFIG", ""),
            sync=SyncSettings.from_yaml(data.get("sync")),
            session=SessionSettings.from_yaml(data.get("session")),
        )


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Read a YAML configuration file.

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file contains invalid YAML
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r") as file:
        data = yaml.safe_load(file)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigValue("config file", path, "top level must be a mapping")
    return data


def _split_args(value: str) -> Tuple[str, ...]:
    try:
        return tuple(shlex.split(value or ""))
    except ValueError as e:
        raise InvalidConfigValue("extra args", value, str(e)) from None


def _parse_index(value: str) -> Optional[int]:
    if value == "":
        return None
    try:
        index = int(value)
    except ValueError:
        raise InvalidConfigValue("clientIndex", value, "must be an integer") from None
    if index < 0:
        raise InvalidConfigValue("clientIndex", value, "must not be negative")
    return index


def _from_mapping(cls, data: Dict[str, Any], section: str):
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise InvalidConfigValue(section, ", ".join(unknown), "unknown setting")
    values = {}
    for name, value in data.items():
        # Coerce to the type of the default so "3" and 3 both work
        default = getattr(cls, name)
        if isinstance(default, bool) and isinstance(value, str):
            values[name] = value.strip().lower() in ("1", "true", "yes", "on")
            continue
        try:
            values[name] = type(default)(value)
        except (TypeError, ValueError):
            raise InvalidConfigValue(f"{section}.{name}", value, f"expected {type(default).__name__}") from None
    return cls(**values)
