#!/usr/bin/env python3
"""
Environment provisioning for deployment hosts.

Covers the pieces of host setup the client launcher needs: the CUDA
platform gate, fetching the performance libraries and loading the
variables their env.sh exports.
"""

import os
import platform
import subprocess
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..errors import ProvisioningError

PERF_LIBS_FETCH_SCRIPT = "fetch-perf-libs.sh"
PERF_LIBS_ENV = Path("target") / "perf-libs" / "env.sh"

# Printed by the env dump so sourced output can be told apart from the dump
_ENV_MARKER = "__TESTNET_DEPLOY_ENV__"


def cuda_enabled(env: Mapping[str, str], system: Optional[str] = None) -> bool:
    """
    Return whether CUDA should be used on this host.

    SOLANA_CUDA is only honoured on Linux. Elsewhere it is ignored with a
    warning rather than failing, so misconfigured hosts still deploy.
    """
    requested = bool(env.get("SOLANA_CUDA"))
    system = system or platform.system()
    if requested and system != "Linux":
        print(f"⚠ Warning: CUDA is not supported on {system}", flush=True)
        return False
    return requested


class EnvironmentProvisioner:
    """Prepares the performance libraries under a deployment root."""

    def __init__(self, root: Path, base_env: Optional[Dict[str, str]] = None):
        self.root = Path(root)
        self.base_env = base_env if base_env is not None else dict(os.environ)

    @property
    def env_script(self) -> Path:
        return self.root / PERF_LIBS_ENV

    def fetch_perf_libs(self) -> bool:
        """
        Run the fetch script in the deployment root.

        Returns:
            True if the script exited successfully, False otherwise
        """
        script = self.root / PERF_LIBS_FETCH_SCRIPT
        if not script.exists():
            print(f"✗ {script} not found", flush=True)
            return False
        result = subprocess.run(
            [str(script)],
            cwd=str(self.root),
            env=self.base_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
        )
        if result.returncode != 0:
            print(f"✗ {PERF_LIBS_FETCH_SCRIPT} failed (code: {result.returncode})", flush=True)
            print(result.stdout, flush=True)
            return False
        return True

    def load_perf_library_env(self) -> Dict[str, str]:
        """
        Source env.sh in a child shell and return the variables it changed.

        Returns:
            Mapping of variables that are new or differ from the base
            environment

        Raises:
            ProvisioningError: env.sh is missing or fails when sourced
        """
        if not self.env_script.is_file():
            raise ProvisioningError(f"{self.env_script} not found")
        script = f'source "$1" >/dev/null 2>&1 || exit 1; echo {_ENV_MARKER}; env -0'
        result = subprocess.run(
            ["bash", "-c", script, "bash", str(self.env_script)],
            cwd=str(self.root),
            env=self.base_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ProvisioningError(f"could not load {self.env_script}: {stderr}")
        output = result.stdout.decode("utf-8", errors="replace")
        _, _, dump = output.partition(_ENV_MARKER + "\n")
        return diff_environment(self.base_env, parse_env_dump(dump))


def parse_env_dump(dump: str) -> Dict[str, str]:
    """Parse the NUL separated output of `env -0`."""
    variables: Dict[str, str] = {}
    for entry in dump.split("\0"):
        if "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        variables[key] = value
    return variables


def diff_environment(before: Mapping[str, str], after: Mapping[str, str]) -> Dict[str, str]:
    # Shell bookkeeping variables change on every invocation
    ignored = {"_", "SHLVL", "PWD", "OLDPWD"}
    return {
        key: value
        for key, value in after.items()
        if key not in ignored and before.get(key) != value
    }
