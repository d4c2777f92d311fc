"""
Mass Contrib Update Components
Copyright (C) 2024 HOMESERVER LLC

Backup Manager Component

Everything around the drush run that changes the environment:
- Full backup (code, database, files) before updating
- Connection mode switches between git and sftp
- Committing the updated code

Each step waits for its platform workflow and reports success as a bool.
"""

from typing import Any, Dict, Optional

from mass_contrib_update.client.models import Site, WorkflowOutcome
from mass_contrib_update.exceptions import ApiError
from mass_contrib_update.utils.index import log_message


class BackupManager:
    """Backup, connection mode and commit steps for one environment."""

    def __init__(self, client, waiter, config: Dict[str, Any]):
        self.client = client
        self.waiter = waiter
        self.keep_for_days = config.get('config', {}).get('backup', {}).get('keep_for_days', 365)
        self.default_message = config.get('config', {}).get('commit', {}).get(
            'default_message', 'Updates applied by Mass Contrib Update.')

    def _run_workflow(self, label: str, start) -> bool:
        try:
            workflow = start()
        except ApiError as e:
            log_message(f"[BACKUP] {label} failed: {e}", "ERROR")
            return False
        return self.waiter.wait(workflow) == WorkflowOutcome.SUCCEEDED

    def create_backup(self, site: Site, env: str) -> bool:
        """
        Back up code, database and files of an environment.

        Returns:
            bool: True if the backup workflow succeeded
        """
        log_message(f"[BACKUP] Started automatic backup for the {env} environment of {site.name} site.")
        success = self._run_workflow(
            "Backup",
            lambda: self.client.create_backup(site, env, self.keep_for_days),
        )
        if success:
            log_message(f"[BACKUP] ✓ Finished backup for the {env} environment of {site.name} site.")
        else:
            log_message(f"[BACKUP] ✗ Backup failed for the {env} environment of {site.name} site.", "ERROR")
        return success

    def set_connection_mode(self, site: Site, env: str, mode: str) -> bool:
        log_message(f"[BACKUP] Switching the {env} environment of {site.name} site to {mode} mode")
        success = self._run_workflow(
            f"Switch to {mode}",
            lambda: self.client.change_connection_mode(site, env, mode),
        )
        if not success:
            log_message(f"[BACKUP] ✗ Unable to switch the {env} environment of {site.name} site "
                        f"to {mode} mode.", "ERROR")
        return success

    def commit(self, site: Site, env: str, message: Optional[str] = None) -> bool:
        """Commit the on-server changes with message, or the configured default."""
        message = message or self.default_message
        log_message(f"[BACKUP] Committing updates on the {env} environment of {site.name} site")
        success = self._run_workflow(
            "Commit",
            lambda: self.client.commit_changes(site, env, message),
        )
        if not success:
            log_message(f"[BACKUP] ✗ Unable to perform automatic update commit for the {env} "
                        f"environment of {site.name} site.", "ERROR")
        return success
