#!/usr/bin/env python3
"""
Detached session management.

Sessions are named, persistent execution contexts that survive the process
that created them. The registry is global per host, which is why callers
kill existing sessions before creating new ones.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .communicator import CommandResult, Communicator, LocalCommunicator


class SessionManager(ABC):
    """Interface to a terminal multiplexer's session registry."""

    @abstractmethod
    def create_session(self, name: str, command: str) -> CommandResult:
        """Start command in a new detached session called name."""
        pass

    @abstractmethod
    def list_sessions(self) -> List[str]:
        pass

    @abstractmethod
    def kill_session(self, name: Optional[str] = None) -> bool:
        """Kill the named session, or the most recent one when name is None."""
        pass

    @abstractmethod
    def capture_pane(self, name: str, lines: int = 100) -> str:
        """Return the last lines of the session's terminal output."""
        pass

    def has_session(self, name: str) -> bool:
        return name in self.list_sessions()

    def kill_all_sessions(self) -> int:
        """
        Kill every session in the registry.

        Returns:
            Number of sessions killed
        """
        killed = 0
        for name in self.list_sessions():
            if self.kill_session(name):
                killed += 1
        return killed

    def replace_session(self, name: str, command: str) -> CommandResult:
        """Create a session, killing any existing session with the same name first."""
        if self.has_session(name):
            self.kill_session(name)
        return self.create_session(name, command)


class TmuxSessionManager(SessionManager):
    """SessionManager backed by the tmux command line."""

    def __init__(self, runner: Optional[Communicator] = None, tmux: str = "tmux"):
        self.runner = runner or LocalCommunicator()
        self.tmux = tmux

    def _tmux(self, *args: str) -> CommandResult:
        return self.runner.execute_command([self.tmux, *args])

    def create_session(self, name: str, command: str) -> CommandResult:
        return self._tmux("new-session", "-d", "-s", name, command)

    def list_sessions(self) -> List[str]:
        result = self._tmux("list-sessions", "-F", "#{session_name}")
        # tmux exits non-zero when no server is running: no sessions
        if not result.success:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def has_session(self, name: str) -> bool:
        return self._tmux("has-session", "-t", f"={name}").success

    def kill_session(self, name: Optional[str] = None) -> bool:
        if name is None:
            return self._tmux("kill-session").success
        return self._tmux("kill-session", "-t", f"={name}").success

    def capture_pane(self, name: str, lines: int = 100) -> str:
        result = self._tmux("capture-pane", "-t", name, "-p", "-S", f"-{lines}")
        if not result.success:
            return ""
        return result.stdout
