"""
Testnet deployment tool

Deploys and supervises benchmark clients on the nodes of a test cluster.

Package structure:
- builders/: Argument plans, program resolution and client command lines
- models/: Deployment configuration and session state
- infra/: Command runners, rsync, tmux, metrics, keygen, perf-libs, logs
- core/: Client sessions, supervision, monitors and the orchestrator
- cli.py: remote-client launcher
- supervise.py: supervising loop run inside the client session
"""

__version__ = "1.0.0"
