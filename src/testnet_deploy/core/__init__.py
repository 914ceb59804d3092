"""
Core logic of the deployment tool.

Contains:
- orchestrator: DeploymentOrchestrator
- client_session: ClientSession
- supervisor: restart-policy process supervision
- monitors: best-effort background monitors
"""

from .orchestrator import DeploymentOrchestrator
from .client_session import ClientSession
from .supervisor import RestartPolicy, Supervisor
