"""
Data models for the deployment tool.

Contains:
- config: DeploymentConfig and its settings
- session: ClientSessionState
"""

from .config import ClientKind, DeployMethod, DeploymentConfig
from .session import ClientSessionState
