"""
Mass Contrib Update Components
Copyright (C) 2024 HOMESERVER LLC

One component per step of a site update, coordinated by the orchestrator.
"""

from .report import UpdateReport, UpdateStatus
from .site_filter import apply_filters
from .environment_resolver import EnvironmentResolver
from .update_runner import UpdateRunner, UpdateCheckResult, parse_update_check
from .provisioner import EnvironmentProvisioner
from .backup_manager import BackupManager

__all__ = [
    'UpdateReport',
    'UpdateStatus',
    'apply_filters',
    'EnvironmentResolver',
    'UpdateRunner',
    'UpdateCheckResult',
    'parse_update_check',
    'EnvironmentProvisioner',
    'BackupManager',
]
