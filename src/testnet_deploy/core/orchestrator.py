#!/usr/bin/env python3
"""
Orchestrator module for the testnet deployment tool.

The DeploymentOrchestrator drives one client launch on a cluster node:
1. Reset the client log
2. Install binaries from the entrypoint (local/tar deployments)
3. Start the background monitors
4. Clear the session registry
5. Launch the supervised benchmark client and report its first output

The configuration it receives is already validated, so every fatal
configuration error has happened before this module spawns anything.
"""

import os
import time
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from ..builders.programs import ProgramResolver
from ..errors import ProvisioningError
from ..infra.communicator import Communicator, LocalCommunicator, SSHCommunicator
from ..infra.environment import PERF_LIBS_FETCH_SCRIPT, EnvironmentProvisioner
from ..infra.keygen import KeypairGenerator
from ..infra.logs import LogFile, log_and_print, timestamp
from ..infra.sessions import SessionManager, TmuxSessionManager
from ..infra.sync import ClusterSync
from ..models.config import DeploymentConfig
from ..models.session import ClientSessionState
from .client_session import ClientSession
from .monitors import MonitorHandle, start_background_monitors

REMOTE_BINARIES = "~/.cargo/bin/solana*"


class DeploymentOrchestrator:
    """Top-level driver for a client deployment."""

    def __init__(
        self,
        config: DeploymentConfig,
        env: Optional[Mapping[str, str]] = None,
        runner: Optional[Communicator] = None,
        sessions: Optional[SessionManager] = None,
        sync: Optional[ClusterSync] = None,
        provisioner: Optional[EnvironmentProvisioner] = None,
        probe: Optional[Communicator] = None,
        monitor_starter: Callable[..., List[MonitorHandle]] = start_background_monitors,
        sleep: Callable[[float], None] = time.sleep,
        invocation: str = "",
    ):
        """
        Initialize the orchestrator.

        Collaborators default to the real implementations (subprocess, tmux,
        rsync, Fabric SSH probe); tests inject fakes.

        Args:
            config: Validated deployment configuration
            env: Base process environment (default: os.environ)
            runner: Local command runner
            sessions: Session registry
            sync: ClusterSync against the entrypoint
            provisioner: Perf-libs provisioner
            probe: Remote communicator for the sync source probe
            monitor_starter: Starts the background monitors
            sleep: Sleep function passed to the client session
            invocation: Command line recorded at the top of the client log
        """
        self.config = config
        self.env: Dict[str, str] = dict(os.environ if env is None else env)
        if not config.cuda_enabled and "SOLANA_CUDA" in self.env:
            self.env["SOLANA_CUDA"] = ""
        self.session_env: Dict[str, str] = {}
        self.runner = runner or LocalCommunicator(env=self.env, cwd=config.root)
        self.sessions = sessions or TmuxSessionManager(self.runner)
        self.provisioner = provisioner or EnvironmentProvisioner(config.root, self.env)
        self._owns_probe = False
        if probe is None and sync is None and config.sync.probe_remote:
            probe = SSHCommunicator(config.entrypoint_host)
            self._owns_probe = True
        self.probe = probe
        self.sync = sync or ClusterSync(
            config.entrypoint_host,
            runner=self.runner,
            retry_policy=config.sync.retry_policy(),
            probe=self.probe,
        )
        self.monitor_starter = monitor_starter
        self.sleep = sleep
        self.invocation = invocation
        self.client_log = LogFile(config.root / config.session.log_file)
        self.monitors: List[MonitorHandle] = []
        self.resolver: Optional[ProgramResolver] = None

    @property
    def cargo_bin(self) -> Path:
        home = self.env.get("HOME") or str(Path.home())
        return Path(home) / ".cargo" / "bin"

    def install_binaries(self) -> None:
        """
        Prepare a local/tar deployment.

        Puts ~/.cargo/bin first on PATH, fetches the perf-libs, loads their
        environment and pulls the cluster binaries from the entrypoint.

        Raises:
            ProvisioningError: The perf-libs could not be fetched or loaded
            SyncError: The binaries could not be synced
        """
        path = f"{self.cargo_bin}{os.pathsep}{self.env.get('PATH', '')}"
        self.env["PATH"] = path
        self.env["USE_INSTALL"] = "1"

        if not self.provisioner.fetch_perf_libs():
            raise ProvisioningError(f"{PERF_LIBS_FETCH_SCRIPT} failed in {self.config.root}")
        perf_env = self.provisioner.load_perf_library_env()
        self.env.update(perf_env)
        self.session_env.update(perf_env)
        self.session_env["PATH"] = self.env["PATH"]

        log_and_print(f"Syncing binaries from {self.config.entrypoint_host}", self.client_log, "INSTALL")
        self.sync.sync_from(REMOTE_BINARIES, f"{self.cargo_bin}{os.sep}")
        log_and_print(f"Binaries installed in {self.cargo_bin}", self.client_log, "INSTALL")

    def deploy(self) -> ClientSessionState:
        """
        Run the whole launch.

        Returns:
            State of the started client session, including the pane snapshot

        Raises:
            ProvisioningError: The perf-libs of a local/tar deployment failed
            SyncError: A required sync failed
            KeypairGenerationError: The bench-exchange identity could not be created
        """
        self.client_log.reset(f"{timestamp()} | {self.invocation}".rstrip(" |"))
        try:
            if self.config.deploy_method.installs_binaries:
                self.install_binaries()

            self.resolver = ProgramResolver(
                self.config.root,
                release_mode=self.config.release_mode,
                installed_mode=self.config.installed_mode,
            )
            self.resolver.resolve_all()

            self.monitors = self.monitor_starter(self.config.root, self.env)

            killed = self.sessions.kill_all_sessions()
            if killed:
                log_and_print(f"Killed {killed} existing session(s)", self.client_log, "SESSION")

            session = ClientSession(
                self.config,
                self.resolver,
                self.sync,
                self.sessions,
                keygen=KeypairGenerator(self.resolver.resolve("keygen"), self.runner),
                session_env=self.session_env,
                sleep=self.sleep,
            )
            state = session.start()
        finally:
            if self._owns_probe and self.probe is not None:
                self.probe.disconnect()

        if state.running:
            print(f"✓ Session {state.session_name} started", flush=True)
        return state
