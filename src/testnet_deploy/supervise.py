#!/usr/bin/env python3
"""
Supervising loop entry point.

Runs inside the detached client session:

    python -m testnet_deploy.supervise --name solana-bench-tps \\
        --log-file client.log -- solana-bench-tps --duration 7500 ...
"""

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from .core.supervisor import RestartPolicy, SubprocessRunner, Supervisor
from .infra.logs import CLIENT_LOG, LogFile
from .infra.metrics import create_metrics_sink


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remote-client-supervise",
        description="Run a benchmark client under a restart policy",
    )
    parser.add_argument("--name", default="client", help="Session name, used in the session state")
    parser.add_argument("--log-file", type=Path, default=Path(CLIENT_LOG), help="Log the client output is appended to")
    parser.add_argument(
        "--restart-policy",
        choices=[policy.value for policy in RestartPolicy],
        default=RestartPolicy.ALWAYS.value,
    )
    parser.add_argument("--max-runs", type=int, default=None, help="Stop after this many runs")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Client command, after --")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("no command given")

    supervisor = Supervisor(
        name=args.name,
        argv=command,
        log=LogFile(args.log_file),
        runner=SubprocessRunner(),
        metrics=create_metrics_sink(os.environ),
        policy=RestartPolicy(args.restart_policy),
        echo=lambda line: print(line, flush=True),
    )
    try:
        state = supervisor.run(max_runs=args.max_runs)
    except KeyboardInterrupt:
        return 130
    return 0 if state.last_exit_code in (None, 0) else 1


if __name__ == "__main__":
    sys.exit(main())
