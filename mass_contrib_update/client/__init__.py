"""
Mass Contrib Update
Copyright (C) 2024 HOMESERVER LLC

Platform API client: records, HTTP session and workflow waits.
"""

from .models import Site, Environment, Workflow, WorkflowOutcome, CONNECTION_MODE_GIT, CONNECTION_MODE_SFTP
from .api import PlatformClient
from .workflows import WorkflowWaiter

__all__ = [
    'Site',
    'Environment',
    'Workflow',
    'WorkflowOutcome',
    'CONNECTION_MODE_GIT',
    'CONNECTION_MODE_SFTP',
    'PlatformClient',
    'WorkflowWaiter',
]
