"""
Command builders for the benchmark clients.

This module turns a client kind and the deployment configuration into the
client's command line. Each builder also names the per-client accounts
file it needs from the entrypoint, and whether a fresh identity keypair
must be generated first.
"""

import os
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..errors import UnsupportedClientKind
from ..models.config import ClientKind, DeploymentConfig
from .arguments import ArgumentPlan
from .programs import Command, ProgramResolver

ENTRYPOINT_PORT = 8001
DRONE_PORT = 9900
BENCH_DURATION_SECS = 7500
MAX_CLIENT_THREADS = 4

CLIENT_ACCOUNTS_FILE = "./client-accounts.yml"
REMOTE_ACCOUNTS_DIR = "~/solana/solana-client-accounts"
BENCH_KEYPAIR_FILE = "bench.keypair"


def select_thread_count(cpu_count: Optional[int] = None) -> int:
    """
    Number of client threads: the usable core count, capped at 4.

    Cores outside this process's CPU affinity mask are not counted.
    """
    if cpu_count is None:
        affinity = getattr(os, "sched_getaffinity", None)
        cpu_count = len(affinity(0)) if affinity else (os.cpu_count() or 1)
    return max(1, min(cpu_count, MAX_CLIENT_THREADS))


@dataclass(frozen=True)
class ClientLaunch:
    """What the session needs to start one benchmark client."""
    kind: ClientKind
    command: Command
    accounts_remote_path: str
    accounts_local_path: str = CLIENT_ACCOUNTS_FILE
    keypair_path: Optional[str] = None


def _accounts_path(kind: ClientKind, config: DeploymentConfig) -> str:
    return f"{REMOTE_ACCOUNTS_DIR}/{kind.program}{config.client_index_suffix}.yml"


def _endpoint_args(plan: ArgumentPlan, config: DeploymentConfig) -> None:
    plan.default_arg("--entrypoint", f"{config.entrypoint_host}:{ENTRYPOINT_PORT}")
    plan.default_arg("--drone", f"{config.entrypoint_host}:{DRONE_PORT}")


# =============================================================================
# CLIENT COMMAND BUILDERS
# =============================================================================


def build_bench_tps_launch(config: DeploymentConfig, resolver: ProgramResolver, threads: int) -> ClientLaunch:
    """Build the solana-bench-tps launch."""
    kind = ClientKind.BENCH_TPS
    plan = ArgumentPlan()
    _endpoint_args(plan, config)
    plan.default_arg("--duration", str(BENCH_DURATION_SECS))
    plan.default_arg("--sustained")
    plan.default_arg("--threads", str(threads))
    plan.extend_tokens(config.extra_args_for(kind))
    plan.default_arg("--read-client-keys", CLIENT_ACCOUNTS_FILE)

    return ClientLaunch(
        kind=kind,
        command=resolver.resolve(kind.program).with_args(plan.render()),
        accounts_remote_path=_accounts_path(kind, config),
    )


def build_bench_exchange_launch(config: DeploymentConfig, resolver: ProgramResolver, threads: int) -> ClientLaunch:
    """Build the solana-bench-exchange launch, identified by a fresh keypair."""
    kind = ClientKind.BENCH_EXCHANGE
    plan = ArgumentPlan()
    _endpoint_args(plan, config)
    plan.default_arg("--threads", str(threads))
    plan.default_arg("--batch-size", "1000")
    plan.default_arg("--fund-amount", "20000")
    plan.default_arg("--duration", str(BENCH_DURATION_SECS))
    plan.default_arg("--identity", BENCH_KEYPAIR_FILE)
    plan.extend_tokens(config.extra_args_for(kind))
    plan.default_arg("--read-client-keys", CLIENT_ACCOUNTS_FILE)

    return ClientLaunch(
        kind=kind,
        command=resolver.resolve(kind.program).with_args(plan.render()),
        accounts_remote_path=_accounts_path(kind, config),
        keypair_path=BENCH_KEYPAIR_FILE,
    )


CLIENT_BUILDERS: Dict[ClientKind, Callable[[DeploymentConfig, ProgramResolver, int], ClientLaunch]] = {
    ClientKind.BENCH_TPS: build_bench_tps_launch,
    ClientKind.BENCH_EXCHANGE: build_bench_exchange_launch,
}


def build_client_launch(
    config: DeploymentConfig,
    resolver: ProgramResolver,
    threads: Optional[int] = None,
) -> ClientLaunch:
    """
    Build the launch for the configured client kind.

    Raises:
        UnsupportedClientKind: If no builder exists for the client kind
    """
    builder = CLIENT_BUILDERS.get(config.client_kind)
    if builder is None:
        raise UnsupportedClientKind(str(config.client_kind))
    return builder(config, resolver, threads if threads is not None else select_thread_count())


def get_supported_clients() -> list:
    """Return the client names accepted on the command line."""
    return [kind.value for kind in CLIENT_BUILDERS]
