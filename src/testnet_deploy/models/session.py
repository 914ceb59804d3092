#!/usr/bin/env python3
"""
Client session module for the testnet deployment tool.

ClientSessionState describes one benchmark client running inside a named,
detached session. It is created when the orchestrator launches a client;
the session itself only ends through an explicit kill.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class ClientSessionState:
    """Observable state of a supervised client session."""

    session_name: str
    command: str = ""
    log_file: Optional[str] = None
    running: bool = False
    restart_count: int = 0
    started_at: Optional[datetime] = None
    last_exit_code: Optional[int] = None

    # Terminal output captured right after launch
    pane_output: str = ""

    metadata: Dict[str, Any] = field(default_factory=dict)

    def record_exit(self, return_code: int) -> None:
        """Count a finished run of the client command."""
        self.last_exit_code = return_code
        self.restart_count += 1

    def __str__(self) -> str:
        status = "running" if self.running else "stopped"
        return f"ClientSessionState({self.session_name}, {status}, restarts={self.restart_count})"
