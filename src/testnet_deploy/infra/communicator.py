#!/usr/bin/env python3
"""
Communicator module for the testnet deployment tool.

This module provides abstract and concrete implementations for running
commands either on the local host or on a remote cluster node such as the
entrypoint. Failures are reported through CommandResult instead of raising.

Uses Fabric for SSH communication, which provides a clean Python API
for remote command execution.
"""

import shlex
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from fabric import Connection
from invoke.exceptions import CommandTimedOut, UnexpectedExit
from paramiko.ssh_exception import SSHException

CommandLine = Union[str, Sequence[str]]


@dataclass
class CommandResult:
    """Result of a command execution."""
    stdout: str
    stderr: str
    return_code: int

    @property
    def success(self) -> bool:
        """Check if the command executed successfully."""
        return self.return_code == 0

    def __str__(self) -> str:
        status = "SUCCESS" if self.success else f"FAILED (code: {self.return_code})"
        return f"CommandResult({status})\nstdout: {self.stdout}\nstderr: {self.stderr}"


def _as_shell(command: CommandLine) -> str:
    if isinstance(command, str):
        return command
    return shlex.join(command)


class Communicator(ABC):
    """
    Abstract base class for host communication.

    Concrete implementations provide the actual mechanism (local
    subprocess, SSH).
    """

    def __init__(self, target: str):
        """
        Initialize the communicator.

        Args:
            target: Host the commands run on (hostname, IP or SSH alias)
        """
        self.target = target

    @abstractmethod
    def connect(self) -> bool:
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def execute_command(
        self,
        command: CommandLine,
        working_dir: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        """
        Execute a command on the target host.

        Args:
            command: Shell string or argument vector
            working_dir: Optional working directory for command execution
            timeout: Optional timeout in seconds

        Returns:
            CommandResult containing stdout, stderr, and return code
        """
        pass

    def path_exists(self, path: str) -> Optional[bool]:
        """
        Check whether a path (or glob) exists on the target.

        Returns:
            True or False when the target answered, None when it could not
            be asked (connection failure, timeout)
        """
        # Unquoted so ~ and globs expand on the target
        result = self.execute_command(f"ls -d {path} >/dev/null 2>&1 && echo PRESENT || echo MISSING")
        if not result.success:
            return None
        if "PRESENT" in result.stdout:
            return True
        if "MISSING" in result.stdout:
            return False
        return None

    def __enter__(self) -> "Communicator":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()


class LocalCommunicator(Communicator):
    """Runs commands on this host with subprocess."""

    def __init__(self, env: Optional[Dict[str, str]] = None, cwd: Optional[Path] = None):
        super().__init__("localhost")
        # Kept by reference so callers can update PATH after construction
        self.env = env
        self.cwd = cwd

    def connect(self) -> bool:
        return True

    def disconnect(self) -> None:
        pass

    def execute_command(
        self,
        command: CommandLine,
        working_dir: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        shell = isinstance(command, str)
        cwd = working_dir or (str(self.cwd) if self.cwd else None)
        try:
            proc = subprocess.run(
                command if shell else list(command),
                shell=shell,
                cwd=cwd,
                env=self.env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            return CommandResult(stdout="", stderr=f"Timed out after {e.timeout}s", return_code=-1)
        except OSError as e:
            # Missing executable behaves like the shell's "command not found"
            return CommandResult(stdout="", stderr=str(e), return_code=127)
        return CommandResult(
            stdout=proc.stdout.decode("utf-8", errors="replace").strip(),
            stderr=proc.stderr.decode("utf-8", errors="replace").strip(),
            return_code=proc.returncode,
        )


class SSHCommunicator(Communicator):
    """
    SSH-based communicator using Fabric.

    This implementation uses Fabric (built on Paramiko) for SSH command
    execution. It supports SSH config files, so aliases defined in
    ~/.ssh/config work as targets.
    """

    def __init__(
        self,
        target: str,
        user: Optional[str] = None,
        port: Optional[int] = None,
        connect_timeout: int = 30,
        command_timeout: int = 60,
    ):
        """
        Initialize the SSH communicator with Fabric.

        Args:
            target: SSH alias or hostname of the entrypoint
            user: Optional username for SSH connection (if not in SSH config)
            port: SSH port (if not in SSH config, defaults to 22)
            connect_timeout: Timeout for establishing connection (seconds)
            command_timeout: Default timeout for command execution (seconds)
        """
        super().__init__(target)
        self.user = user
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._connection: Optional[Connection] = None

    def _create_connection(self) -> Connection:
        return Connection(
            host=self.target,
            user=self.user,
            port=self.port,
            connect_timeout=self.connect_timeout,
        )

    def connect(self) -> bool:
        """
        Establish an SSH connection to the target.

        Returns:
            True if connection was successful, False otherwise
        """
        try:
            self._connection = self._create_connection()
            self._connection.open()
            return True
        except (SSHException, OSError) as e:
            print(f"⚠ SSH connection to {self.target} failed: {e}", flush=True)
            self._connection = None
            return False

    def disconnect(self) -> None:
        """Close the SSH connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    @property
    def connection(self) -> Connection:
        """Get the active connection, creating one if necessary."""
        if self._connection is None or not self._connection.is_connected:
            self._connection = self._create_connection()
        return self._connection

    def execute_command(
        self,
        command: CommandLine,
        working_dir: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        command = _as_shell(command)
        if working_dir:
            command = f"cd {working_dir} && {command}"

        try:
            result = self.connection.run(
                command,
                hide=True,
                warn=True,
                timeout=timeout or self.command_timeout,
            )
            return CommandResult(
                stdout=result.stdout.strip() if result.stdout else "",
                stderr=result.stderr.strip() if result.stderr else "",
                return_code=result.return_code,
            )
        except UnexpectedExit as e:
            return CommandResult(
                stdout=e.result.stdout.strip() if e.result.stdout else "",
                stderr=e.result.stderr.strip() if e.result.stderr else "",
                return_code=e.result.return_code,
            )
        except (CommandTimedOut, SSHException, OSError) as e:
            return CommandResult(stdout="", stderr=str(e), return_code=-1)

