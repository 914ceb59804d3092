#!/usr/bin/env python3
"""
Best-effort background monitors.

The OOM watcher and the network statistics sampler are started detached and
left running after the launcher exits. A monitor that cannot be started is
reported and skipped; it never stops the deployment.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from ..infra.logs import NET_STATS_LOG, OOM_MONITOR_LOG, LogFile


@dataclass(frozen=True)
class MonitorSpec:
    name: str
    argv: Sequence[str]
    log_name: str


DEFAULT_MONITORS = (
    MonitorSpec("oom-monitor", ("sudo", "scripts/oom-monitor.sh"), OOM_MONITOR_LOG),
    MonitorSpec("net-stats", ("scripts/net-stats.sh",), NET_STATS_LOG),
)


@dataclass
class MonitorHandle:
    spec: MonitorSpec
    pid: Optional[int] = None
    error: Optional[str] = None

    @property
    def started(self) -> bool:
        return self.pid is not None


def start_monitor(spec: MonitorSpec, root: Path, env: Optional[Mapping[str, str]] = None) -> MonitorHandle:
    """
    Start one monitor with its output redirected to its own log.

    Returns:
        MonitorHandle with the pid, or with error set if it could not start
    """
    log = LogFile(Path(root) / spec.log_name)
    try:
        with log.open_for_output() as output:
            proc = subprocess.Popen(
                list(spec.argv),
                cwd=str(root),
                env=dict(env) if env is not None else None,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
    except OSError as e:
        print(f"⚠ Could not start {spec.name}: {e}", flush=True)
        return MonitorHandle(spec, error=str(e))
    print(f"✓ Started {spec.name} (pid {proc.pid}), logging to {spec.log_name}", flush=True)
    return MonitorHandle(spec, pid=proc.pid)


def start_background_monitors(
    root: Path,
    env: Optional[Mapping[str, str]] = None,
    monitors: Sequence[MonitorSpec] = DEFAULT_MONITORS,
) -> List[MonitorHandle]:
    """Start every monitor independently; failures are logged only."""
    return [start_monitor(spec, root, env) for spec in monitors]
