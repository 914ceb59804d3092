"""
Infrastructure and I/O for the deployment tool.

Contains:
- communicator: local and SSH command execution
- sync: rsync from the entrypoint with retries
- sessions: tmux session registry
- metrics: InfluxDB datapoint sink
- environment: perf-libs and CUDA detection
- keygen: keypair generation
- logs: append-only log files
"""

from .communicator import CommandResult, LocalCommunicator, SSHCommunicator
from .sync import ClusterSync, RetryPolicy
from .sessions import SessionManager, TmuxSessionManager
from .metrics import InfluxMetricsSink, MetricsSink, NullMetricsSink
