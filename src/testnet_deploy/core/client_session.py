#!/usr/bin/env python3
"""
Benchmark client sessions.

A ClientSession prepares the chosen benchmark client (keypair, accounts
file, command line), renders a launcher script from a Jinja2 template and
starts it in a named detached session. The launcher execs the supervisor,
which restarts the client forever. The caller only gets a snapshot of the
session's terminal shortly after launch; the session outlives this process.
"""

import os
import shlex
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..builders.client_commands import ClientLaunch, build_client_launch
from ..builders.programs import ProgramResolver
from ..infra.keygen import KeypairGenerator
from ..infra.sessions import SessionManager
from ..infra.sync import ClusterSync
from ..models.config import DeploymentConfig
from ..models.session import ClientSessionState
from .supervisor import RestartPolicy

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
LAUNCHER_TEMPLATE = "client-session.sh.j2"


def session_environment(config: DeploymentConfig, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Variables exported inside the session before the supervisor starts."""
    env = dict(extra or {})
    env["RUST_LOG"] = config.log_level
    env["RUST_BACKTRACE"] = "1"
    # Empty unless CUDA was requested on a supported platform
    env["SOLANA_CUDA"] = "1" if config.cuda_enabled else ""
    if config.metrics_config:
        env["SOLANA_METRICS_CONFIG"] = config.metrics_config
    return env


class ClientSession:
    """Launches and observes the supervised benchmark client."""

    def __init__(
        self,
        config: DeploymentConfig,
        resolver: ProgramResolver,
        sync: ClusterSync,
        sessions: SessionManager,
        keygen: Optional[KeypairGenerator] = None,
        session_env: Optional[Mapping[str, str]] = None,
        template_dir: Optional[Path] = None,
        threads: Optional[int] = None,
        python: str = sys.executable,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: Validated deployment configuration
            resolver: Resolves client and keygen programs
            sync: Pulls the accounts file from the entrypoint
            sessions: Detached session registry
            keygen: Keypair generator (default: resolved "keygen" program)
            session_env: Extra variables exported in the session (perf-libs)
            template_dir: Directory containing the launcher template
            threads: Client thread count (default: detected, capped at 4)
            python: Interpreter that runs the supervisor
            sleep: Sleep function, replaced in tests
        """
        self.config = config
        self.resolver = resolver
        self.sync = sync
        self.sessions = sessions
        self.keygen = keygen or KeypairGenerator(resolver.resolve("keygen"))
        self.session_env = dict(session_env or {})
        self.threads = threads
        self.python = python
        self._sleep = sleep

        self.template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.jinja_env.filters["quote"] = lambda value: shlex.quote(str(value))

    @property
    def session_name(self) -> str:
        return self.config.client_name

    @property
    def log_path(self) -> Path:
        return self.config.root / self.config.session.log_file

    @property
    def launcher_path(self) -> Path:
        return self.config.root / f"{self.session_name}.session.sh"

    def prepare(self) -> ClientLaunch:
        """
        Build the client command and fetch what it needs.

        Raises:
            UnsupportedClientKind: Unknown client, before anything runs
            KeypairGenerationError: The identity keypair could not be written
            SyncError: The accounts file could not be fetched
        """
        launch = build_client_launch(self.config, self.resolver, self.threads)
        if launch.keypair_path:
            self.keygen.generate_keypair(self.config.root / launch.keypair_path, force=True)
        self.sync.sync_from(launch.accounts_remote_path, self.config.root / launch.accounts_local_path)
        return launch

    def supervise_command(self, launch: ClientLaunch) -> str:
        argv = [
            self.python, "-m", "testnet_deploy.supervise",
            "--name", self.session_name,
            "--log-file", str(self.log_path),
            "--restart-policy", RestartPolicy.ALWAYS.value,
            "--",
            *launch.command.argv(),
        ]
        return shlex.join(argv)

    def render_launcher(self, launch: ClientLaunch) -> str:
        """Render the session launcher script."""
        template = self.jinja_env.get_template(LAUNCHER_TEMPLATE)
        return template.render(
            session_name=self.session_name,
            generated_at=datetime.now().isoformat(timespec="seconds"),
            root=str(self.config.root),
            env=session_environment(self.config, self.session_env),
            supervise_command=self.supervise_command(launch),
        )

    def write_launcher(self, launch: ClientLaunch) -> Path:
        path = self.launcher_path
        path.write_text(self.render_launcher(launch))
        os.chmod(path, 0o755)
        return path

    def start(self) -> ClientSessionState:
        """
        Prepare the client and start it in a fresh detached session.

        Returns:
            ClientSessionState with the captured pane output; running is
            True when the session was created
        """
        launch = self.prepare()
        launcher = self.write_launcher(launch)

        result = self.sessions.replace_session(self.session_name, shlex.join(["bash", str(launcher)]))
        state = ClientSessionState(
            session_name=self.session_name,
            command=str(launch.command),
            log_file=str(self.log_path),
            running=result.success,
            started_at=datetime.now(),
            metadata={"launcher": str(launcher)},
        )
        if not result.success:
            print(f"✗ Failed to create session {self.session_name}: {result.stderr}", file=sys.stderr, flush=True)
            return state

        self._sleep(self.config.session.settle_delay)
        state.pane_output = self.sessions.capture_pane(self.session_name, self.config.session.capture_lines)
        return state
