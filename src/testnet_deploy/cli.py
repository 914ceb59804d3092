#!/usr/bin/env python3
"""
Command line launcher for a benchmark client on a cluster node.

Usage:
    remote-client [--root DIR] [--config FILE] deployMethod entrypointIp \\
        clientToRun [logLevel] [benchTpsExtraArgs] [benchExchangeExtraArgs] \\
        [clientIndex]

Exit codes: 0 on success, 1 for configuration, dispatch and sync errors,
2 for an unreadable YAML config, 3 for anything unexpected.
"""

import argparse
import shlex
import sys
import traceback
from pathlib import Path
from typing import List, Optional

import yaml

from .builders.client_commands import get_supported_clients
from .core.orchestrator import DeploymentOrchestrator
from .errors import DeployError
from .models.config import DeploymentConfig, load_config_file

POSITIONAL_NAMES = (
    "deploy_method",
    "entrypoint_host",
    "client_to_run",
    "log_level",
    "bench_tps_extra_args",
    "bench_exchange_extra_args",
    "client_index",
)


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the command-line argument parser.

    Positional values are collected verbatim because the extra-argument
    positionals usually start with "--".
    """
    parser = argparse.ArgumentParser(
        prog="remote-client",
        description="Deploy and supervise a benchmark client against a cluster entrypoint",
        epilog=(
            "Example: remote-client skip 10.0.0.1 solana-bench-tps solana=info '--tx_count 1000' '' 0\n"
            f"Clients: {', '.join(get_supported_clients())}"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--root", type=Path, default=None, help="Deployment checkout (default: current directory)")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with deployment, sync and session settings")
    parser.add_argument(
        "params",
        nargs=argparse.REMAINDER,
        metavar="deployMethod entrypointIp clientToRun ...",
        help="Positional launcher arguments",
    )
    return parser


def build_config(args: argparse.Namespace) -> DeploymentConfig:
    values = dict(zip(POSITIONAL_NAMES, args.params))
    config_data = load_config_file(args.config) if args.config else None
    return DeploymentConfig.load(
        root=args.root.resolve() if args.root else None,
        config_data=config_data,
        **values,
    )


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if len(args.params) > len(POSITIONAL_NAMES):
        print(f"Error: too many arguments ({len(args.params)} > {len(POSITIONAL_NAMES)})", file=sys.stderr)
        return 1

    try:
        config = build_config(args)
        orchestrator = DeploymentOrchestrator(config, invocation=shlex.join(["remote-client", *argv]))
        state = orchestrator.deploy()
    except DeployError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except yaml.YAMLError as e:
        print(f"Error parsing YAML: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        traceback.print_exc()
        return 3

    if state.pane_output:
        print(state.pane_output)
    return 0 if state.running else 1


if __name__ == "__main__":
    sys.exit(main())
