"""
Mass Contrib Update Components
Copyright (C) 2024 HOMESERVER LLC

Environment Provisioner Component

Creates and deletes the multidev environment updates are tried on. Both
operations block until the platform workflow has finished.
"""

from typing import Any, Dict

from mass_contrib_update.client.models import Site, WorkflowOutcome
from mass_contrib_update.exceptions import ApiError
from mass_contrib_update.utils.index import log_message


class EnvironmentProvisioner:
    """Multidev lifecycle for a single site at a time."""

    def __init__(self, client, waiter, config: Dict[str, Any]):
        self.client = client
        self.waiter = waiter
        env_config = config.get('config', {}).get('environments', {})
        self.clone_from = env_config.get('clone_from', 'dev')
        self.core_environments = list(env_config.get('core', ['dev', 'test', 'live']))
        self.drush_version = config.get('config', {}).get('drush', {}).get('version', 8)

    def has_multidev(self, site: Site) -> bool:
        try:
            features = self.client.get_features(site)
        except ApiError as e:
            log_message(f"[ENV] Unable to read features of {site.name} site: {e}", "ERROR")
            return False
        return bool(features.get('multidev'))

    def create_environment(self, site: Site, env: str) -> bool:
        """
        Clone the dev environment into a new multidev named env, then pin the
        drush version on it.

        Returns:
            bool: True if the environment exists and is usable afterwards
        """
        if not self.has_multidev(site):
            log_message(f"[ENV] {site.name} site does not have the multidev feature. "
                        f"Unable to create the {env} environment.", "ERROR")
            return False

        log_message(f"[ENV] Cloning the {self.clone_from} environment of {site.name} site to create {env}")
        try:
            workflow = self.client.create_multidev(site, env, self.clone_from)
        except ApiError as e:
            log_message(f"[ENV] Unable to create the {env} multidev environment: {e}", "ERROR")
            return False

        if self.waiter.wait(workflow) != WorkflowOutcome.SUCCEEDED:
            log_message(f"[ENV] Unable to create the {env} multidev environment.", "ERROR")
            return False

        if not self.set_drush_version(site, env):
            log_message(f"[ENV] Unable to set the Drush version for the {env} multidev environment.", "ERROR")
            return False

        log_message(f"[ENV] ✓ Created the {env} environment of {site.name} site")
        return True

    def set_drush_version(self, site: Site, env: str) -> bool:
        log_message(f"[ENV] Setting Drush version {self.drush_version} on the {env} environment")
        try:
            workflow = self.client.set_drush_version(site, env, self.drush_version)
        except ApiError as e:
            log_message(f"[ENV] {e}", "ERROR")
            return False
        return self.waiter.wait(workflow) == WorkflowOutcome.SUCCEEDED

    def delete_environment(self, site: Site, env: str) -> bool:
        """
        Delete the multidev named env together with its git branch.

        Returns:
            bool: True if the environment was deleted
        """
        if env in self.core_environments:
            log_message(f"[ENV] Refusing to delete the {env} environment of {site.name} site.", "ERROR")
            return False

        try:
            environments = self.client.get_environments(site)
        except ApiError as e:
            log_message(f"[ENV] Unable to list environments of {site.name} site: {e}", "ERROR")
            return False

        multidevs = [e for e in environments if e not in self.core_environments]
        if not multidevs:
            log_message(f"[ENV] {site.name} does not have any multidev environments to delete.", "ERROR")
            return False
        if env not in multidevs:
            log_message(f"[ENV] {site.name} does not have a {env} environment to delete.", "ERROR")
            return False

        log_message(f"[ENV] Deleting the {env} environment of {site.name} site")
        try:
            workflow = self.client.delete_multidev(site, env, delete_branch=True)
        except ApiError as e:
            log_message(f"[ENV] Unable to delete the {env} environment: {e}", "ERROR")
            return False

        if self.waiter.wait(workflow) != WorkflowOutcome.SUCCEEDED:
            log_message(f"[ENV] Unable to delete the {env} environment of {site.name} site.", "ERROR")
            return False

        log_message(f"[ENV] ✓ Deleted the {env} environment of {site.name} site")
        return True
