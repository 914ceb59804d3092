#!/usr/bin/env python3
"""Key material generation through the cluster's keygen program."""

from pathlib import Path
from typing import Optional

from ..builders.programs import Command
from ..errors import KeypairGenerationError
from .communicator import CommandResult, Communicator, LocalCommunicator


class KeypairGenerator:
    """Runs `<keygen> new [-f] -o <path>`."""

    def __init__(self, keygen: Command, runner: Optional[Communicator] = None):
        self.keygen = keygen
        self.runner = runner or LocalCommunicator()

    def generate_keypair(self, output_path: Path, force: bool = True) -> CommandResult:
        """
        Generate a keypair file.

        Args:
            output_path: Where the keypair is written
            force: Overwrite an existing file, making the call idempotent

        Raises:
            KeypairGenerationError: If the keygen program fails
        """
        args = ["new"]
        if force:
            args.append("-f")
        args.extend(["-o", str(output_path)])
        result = self.runner.execute_command(self.keygen.with_args(args).argv())
        if not result.success:
            raise KeypairGenerationError(
                f"{self.keygen.executable} failed (code: {result.return_code}): {result.stderr}"
            )
        return result
