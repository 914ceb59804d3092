#!/usr/bin/env python3
"""
Program resolution for cluster binaries.

Maps a logical program name ("validator", "bench-tps", "validator-cuda")
to an invocable Command. In installed mode the prebuilt binary on PATH is
used. In build mode the program is built and run from the source checkout
through cargo.
"""

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

PROGRAM_PREFIX = "solana"
BUILD_TOOL = "cargo"
MANIFEST_NAME = "Cargo.toml"
CUDA_SUFFIX = "-cuda"

# Programs resolved once at start-up
STANDARD_PROGRAMS = (
    "bench-tps",
    "bench-exchange",
    "drone",
    "validator",
    "validator-cuda",
    "genesis",
    "gossip",
    "keygen",
    "ledger-tool",
    "wallet",
    "replicator",
)


@dataclass(frozen=True)
class Command:
    """An executable plus its ordered arguments."""
    executable: str
    args: Tuple[str, ...] = ()

    def with_args(self, extra: Iterable[str]) -> "Command":
        """Return a new Command with extra arguments forwarded after the existing ones."""
        return Command(self.executable, self.args + tuple(str(arg) for arg in extra))

    def argv(self) -> list:
        return [self.executable, *self.args]

    def __str__(self) -> str:
        return shlex.join(self.argv())


@dataclass(frozen=True)
class ProgramSpec:
    """A logical program and the build settings it is resolved under."""
    logical_name: str
    feature_flags: FrozenSet[str] = field(default_factory=frozenset)
    release_mode: bool = False
    installed_mode: bool = False

    @classmethod
    def parse(cls, program: str, release_mode: bool = False, installed_mode: bool = False) -> "ProgramSpec":
        """
        Split a "<base>-cuda" name into its base program and the cuda feature.

        In installed mode the name is kept as-is and no features are derived.
        """
        features = set()
        name = program
        if not installed_mode and program.endswith(CUDA_SUFFIX) and len(program) > len(CUDA_SUFFIX):
            name = program[: -len(CUDA_SUFFIX)]
            features.add("cuda")
        return cls(
            logical_name=name,
            feature_flags=frozenset(features),
            release_mode=release_mode,
            installed_mode=installed_mode,
        )

    @property
    def binary_name(self) -> str:
        return f"{PROGRAM_PREFIX}-{self.logical_name}"


class ProgramResolver:
    """
    Resolve logical program names into Commands.

    The mode is decided once from the configuration: installed mode when
    installed_mode is set or the checkout has no top-level manifest, build
    mode otherwise. Resolutions are cached per logical name.
    """

    def __init__(self, root: Path, release_mode: bool = False, installed_mode: bool = False):
        self.root = Path(root)
        self.release_mode = release_mode
        self.installed_mode = installed_mode or not (self.root / MANIFEST_NAME).is_file()
        self._cache: Dict[str, Command] = {}

    def resolve(self, program: str) -> Command:
        """
        Resolve a program name, using the cached Command when available.

        Args:
            program: Logical program name, e.g. "validator-cuda"

        Returns:
            Command ready to be extended with forwarded arguments
        """
        if program not in self._cache:
            spec = ProgramSpec.parse(program, self.release_mode, self.installed_mode)
            self._cache[program] = self._resolve_spec(spec)
        return self._cache[program]

    def resolve_all(self, programs: Iterable[str] = STANDARD_PROGRAMS) -> Dict[str, Command]:
        return {program: self.resolve(program) for program in programs}

    def spec_for(self, program: str) -> ProgramSpec:
        return ProgramSpec.parse(program, self.release_mode, self.installed_mode)

    def _resolve_spec(self, spec: ProgramSpec) -> Command:
        if spec.installed_mode:
            return Command(spec.binary_name)

        manifest = self.root / spec.logical_name / MANIFEST_NAME
        args = ["run", f"--manifest-path={manifest}"]
        if spec.release_mode:
            args.append("--release")
        # An unreadable manifest drops --package; cargo reports the real error
        if _is_readable(manifest):
            args.extend(["--package", spec.binary_name])
        args.extend(["--bin", spec.binary_name])
        if spec.feature_flags:
            args.append("--features=" + ",".join(sorted(spec.feature_flags)))
        args.append("--")
        return Command(BUILD_TOOL, tuple(args))


def _is_readable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)
