#!/usr/bin/env python3
"""
File synchronization from the cluster entrypoint.

Wraps rsync with an explicit, bounded retry policy. Transient transport
failures are retried with exponential backoff; local write failures and
missing sources fail immediately.
"""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from ..errors import LocalWriteFailure, SourceUnavailable
from .communicator import CommandResult, Communicator, LocalCommunicator

# verbose, partial-resume, recursive, checksum, compress
RSYNC_FLAGS = "-vPrcz"

# Socket I/O, protocol stream, timeouts, and ssh/connection failures
TRANSIENT_RETURN_CODES = frozenset({5, 10, 12, 30, 35, 255})
# File selection and file I/O errors on the receiving side
LOCAL_WRITE_RETURN_CODES = frozenset({3, 11})


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry schedule.

    With the defaults a sync is attempted 5 times, sleeping 2, 4, 8 and 16
    seconds between attempts.
    """
    max_attempts: int = 5
    delay: float = 2.0
    backoff: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")
        if self.backoff < 1:
            raise ValueError(f"backoff must be at least 1, got {self.backoff}")

    def delays(self) -> Iterator[float]:
        """Yield the sleep before each retry (max_attempts - 1 values)."""
        delay = self.delay
        for _ in range(self.max_attempts - 1):
            yield min(delay, self.max_delay)
            delay *= self.backoff


class ClusterSync:
    """Retry-wrapped rsync from a remote host into the local filesystem."""

    def __init__(
        self,
        host: str,
        runner: Optional[Communicator] = None,
        retry_policy: Optional[RetryPolicy] = None,
        probe: Optional[Communicator] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            host: Remote host files are pulled from (the entrypoint)
            runner: Runs rsync locally (default: LocalCommunicator)
            retry_policy: Retry schedule (default: RetryPolicy())
            probe: Optional remote communicator used to check that the source
                exists before spending retries on it
            sleep: Sleep function, replaced in tests
        """
        self.host = host
        self.runner = runner or LocalCommunicator()
        self.retry_policy = retry_policy or RetryPolicy()
        self.probe = probe
        self._sleep = sleep

    def remote_spec(self, remote_path: str) -> str:
        return f"{self.host}:{remote_path}"

    def sync_from(self, remote_path: str, local_path) -> CommandResult:
        """
        Copy remote_path on the host to local_path.

        Args:
            remote_path: Path or glob on the remote host (expanded there)
            local_path: Local file or directory destination

        Returns:
            The CommandResult of the successful rsync run

        Raises:
            LocalWriteFailure: The destination cannot be written
            SourceUnavailable: The source is missing or every attempt failed
        """
        source = self.remote_spec(remote_path)
        destination = os.path.expanduser(str(local_path))
        self._check_destination(source, destination)

        if self.probe is not None and self.probe.path_exists(remote_path) is False:
            raise SourceUnavailable(f"{source} does not exist", source, destination)

        command = ["rsync", RSYNC_FLAGS, source, destination]
        delays = self.retry_policy.delays()
        attempt = 0
        while True:
            attempt += 1
            result = self.runner.execute_command(command)
            if result.success:
                return result

            if result.return_code in LOCAL_WRITE_RETURN_CODES:
                raise LocalWriteFailure(
                    f"rsync could not write {destination} (code: {result.return_code}): {result.stderr}",
                    source, destination, result.return_code,
                )
            if result.return_code not in TRANSIENT_RETURN_CODES:
                raise SourceUnavailable(
                    f"rsync of {source} failed (code: {result.return_code}): {result.stderr}",
                    source, destination, result.return_code,
                )

            delay = next(delays, None)
            if delay is None:
                raise SourceUnavailable(
                    f"rsync of {source} failed after {attempt} attempt(s) (code: {result.return_code})",
                    source, destination, result.return_code,
                )
            print(
                f"  Sync attempt {attempt}/{self.retry_policy.max_attempts} failed "
                f"(code: {result.return_code}), retrying in {delay:g}s...",
                flush=True,
            )
            self._sleep(delay)

    def _check_destination(self, source: str, destination: str) -> None:
        # A trailing slash or an existing directory means "copy into"
        path = Path(destination)
        directory = path if destination.endswith(os.sep) or path.is_dir() else path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalWriteFailure(f"Cannot create {directory}: {e}", source, destination) from e
        if not os.access(directory, os.W_OK):
            raise LocalWriteFailure(f"{directory} is not writable", source, destination)
