"""
Mass Contrib Update
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Mass Contrib Update Orchestrator

Runs contrib updates across every selected site, one site at a time:
    filter sites -> validate environment -> for each site:
    check -> confirm -> [delete] -> [create] -> wake -> pending changes ->
    backup -> sftp mode -> drush -> commit -> restore mode

A failing site ends up as an error row in the report and the loop moves on.
Only UsageError stops the whole run.
"""

from typing import List, Optional

from mass_contrib_update.client.models import CONNECTION_MODE_GIT, CONNECTION_MODE_SFTP, Site
from mass_contrib_update.client.workflows import WorkflowWaiter
from mass_contrib_update.components import (
    BackupManager,
    EnvironmentProvisioner,
    EnvironmentResolver,
    UpdateReport,
    UpdateRunner,
    UpdateStatus,
    apply_filters,
)
from mass_contrib_update.context import RunContext
from mass_contrib_update.exceptions import (
    BackupError,
    OperationError,
    PreconditionError,
)
from mass_contrib_update.utils.index import log_message
from mass_contrib_update.utils.site_cache import SiteCache


class MassContribUpdate:
    """
    Coordinates the components for one invocation.

    Components default to the real implementations built from the context;
    tests pass their own.
    """

    def __init__(self, context: RunContext, resolver: EnvironmentResolver = None,
                 runner: UpdateRunner = None, provisioner: EnvironmentProvisioner = None,
                 backups: BackupManager = None, waiter: WorkflowWaiter = None,
                 cache: SiteCache = None):
        self.context = context
        self.options = context.options
        self.client = context.client
        config = context.config

        self.waiter = waiter or WorkflowWaiter(self.client, config)
        self.resolver = resolver or EnvironmentResolver(self.client, config)
        self.runner = runner or UpdateRunner(config, security_only=self.options.security_only,
                                             projects=self.options.project_list)
        self.provisioner = provisioner or EnvironmentProvisioner(self.client, self.waiter, config)
        self.backups = backups or BackupManager(self.client, self.waiter, config)
        self.cache = cache or SiteCache(context.section('cache').get(
            'sites_file', '~/.cache/mass-contrib-update/sites.json'))
        self.frameworks = list(config.get('config', {}).get('frameworks', ['backdrop', 'drupal', 'drupal8']))
        self.report = UpdateReport()

    # Site selection

    def load_sites(self) -> List[Site]:
        """Cached sites with --cached when a usable cache exists, a fresh listing otherwise."""
        if self.options.cached:
            sites = self.cache.load()
            if sites is not None:
                return sites
            log_message("No usable site cache, fetching a fresh site list", "WARNING")

        log_message("Fetching the site list...")
        sites = self.client.get_sites()
        self.cache.save(sites)
        return sites

    def select_sites(self) -> List[Site]:
        sites = apply_filters(
            self.load_sites(),
            team=self.options.team,
            org=self.options.org,
            name=self.options.name,
            owner=self.options.owner,
            user_id=self.context.user_id,
        )
        log_message(f"{len(sites)} sites selected")
        return sites

    # Run

    def run(self) -> UpdateReport:
        """
        Process every selected site.

        Raises:
            UsageError: invalid environment or unusable tooling, before any
                site has been processed
        """
        sites = self.select_sites()
        if not sites:
            log_message("You have no sites.", "WARNING")
            return self.report

        env = self.resolver.resolve_name(self.options.env, self.options.report)
        self.resolver.validate(env, sites)
        log_message(f"Target environment: {env}")

        self.runner.verify_binary()

        for site in sites:
            try:
                new = self.resolver.is_new(site, env)
                status = self.update_site(site, env, new)
            except (PreconditionError, OperationError) as e:
                log_message(f"Contrib updates aborted for the {env} environment of {site.name} site: {e}", "ERROR")
                self.report.add(site.name, str(e))
                continue

            if status is not None:
                self.report.add(site.name, status)

        return self.report

    def update_site(self, site: Site, env: str, new: bool) -> Optional[UpdateStatus]:
        """
        Check and, unless reporting, apply contrib updates on one site.

        Returns:
            Optional[UpdateStatus]: Terminal status for the report, or None
            when the user declined a prompt

        Raises:
            PreconditionError: the site cannot be updated in its current state
            OperationError: a platform or drush step failed
        """
        options = self.options

        if site.framework not in self.frameworks:
            raise PreconditionError(f"{site.framework or 'unknown'} is not a supported framework")

        log_message(f"Started checking contrib updates for the {env} environment of {site.name} site.")

        # A new or reset environment is cloned from dev, so dev is what gets checked
        resetting = options.reset and env not in self.resolver.core_environments
        check_env = self.resolver.clone_from if (new or resetting) else env
        check = self.runner.check(site, check_env)
        if check is None:
            raise OperationError(f"Unable to check contrib updates for the {check_env} environment")

        if not check.needs_update:
            log_message(f"The {check_env} environment of {site.name} site is up to date.")
            return UpdateStatus.UP_TO_DATE
        if options.report:
            return UpdateStatus.NEEDS_UPDATE

        log_message(f"Finished checking contrib updates for the {env} environment of {site.name} site.")

        if options.confirm and not self.context.ask(
                f"Apply contrib updates to the {env} environment of {site.name} site? "):
            log_message(f"Skipping {site.name} site.")
            return None

        log_message(f"Started applying contrib updates for the {env} environment of {site.name} site.")
        env, new = self.prepare_environment(site, env, new)
        self.apply_updates(site, env, new)

        log_message(f"Finished applying contrib updates for the {env} environment of {site.name} site.")
        return UpdateStatus.UPDATED

    def prepare_environment(self, site: Site, env: str, new: bool):
        """
        Delete and/or create the target multidev as needed.

        Returns:
            tuple: (environment to update, whether it was freshly created)
        """
        if self.options.reset and not new:
            if env in self.resolver.core_environments:
                log_message(f"Not resetting the {env} environment of {site.name} site: "
                            f"only multidev environments can be reset.", "WARNING")
            elif self.provisioner.delete_environment(site, env):
                new = True
            else:
                raise OperationError(f"Unable to delete the {env} environment")

        if new:
            if self.provisioner.create_environment(site, env):
                self.resolver.environments_for(site, refresh=True)
                return env, True

            fallback = self.resolver.clone_from
            if not self.context.ask(f"Would you like to apply contrib updates to the {fallback} "
                                    f"environment of {site.name} site instead? "):
                raise OperationError(f"Unable to create the {env} environment")
            # The fallback environment already exists and gets a backup like any other
            return fallback, False

        return env, False

    def apply_updates(self, site: Site, env: str, new: bool) -> None:
        """Back up, run drush and commit on an existing environment."""
        environment = self.resolver.environments_for(site, refresh=True).get(env)
        if environment is None:
            raise OperationError(f"The {env} environment does not exist")

        self.client.wake(site, env)
        mode = environment.connection_mode

        if mode == CONNECTION_MODE_SFTP and self.client.get_diffstat(site, env):
            raise PreconditionError("Pending changes. Commit changes and try again.")

        if not self.options.skip_backup and not new:
            if not self.backups.create_backup(site, env):
                raise BackupError()

        if mode == CONNECTION_MODE_GIT:
            if not self.backups.set_connection_mode(site, env, CONNECTION_MODE_SFTP):
                raise OperationError("Unable to switch to sftp mode")

        if not self.runner.apply(site, env):
            raise OperationError(f"Unable to perform contrib updates for the {env} environment")

        if not self.backups.commit(site, env, self.options.message):
            raise OperationError("Unable to commit the updates")

        if mode == CONNECTION_MODE_GIT:
            if not self.backups.set_connection_mode(site, env, CONNECTION_MODE_GIT):
                raise OperationError("Updates committed but unable to switch back to git mode")
