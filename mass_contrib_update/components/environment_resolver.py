"""
Mass Contrib Update Components
Copyright (C) 2024 HOMESERVER LLC

Environment Resolver Component

Decides which environment a run targets and validates it once for the whole
site list. An invalid environment is a usage error raised before any site is
processed.
"""

from typing import Any, Dict, List, Optional

from mass_contrib_update.client.models import Environment, Site
from mass_contrib_update.exceptions import ApiError, UsageError
from mass_contrib_update.utils.index import log_message

DEPLOY_ENVIRONMENTS = ("test", "live")


class EnvironmentResolver:
    """Resolves and validates the target environment name."""

    def __init__(self, client, config: Dict[str, Any]):
        self.client = client
        env_config = config.get('config', {}).get('environments', {})
        self.preview_name = env_config.get('preview_name', 'mcu')
        self.report_default = env_config.get('report_default', 'dev')
        self.clone_from = env_config.get('clone_from', 'dev')
        self.core_environments = list(env_config.get('core', ['dev', 'test', 'live']))
        self._environments: Dict[str, Dict[str, Environment]] = {}

    def resolve_name(self, env: Optional[str] = None, report: bool = False) -> str:
        """--env wins; otherwise "dev" for reports and the preview name for updates."""
        if env:
            return env
        return self.report_default if report else self.preview_name

    def environments_for(self, site: Site, refresh: bool = False) -> Dict[str, Environment]:
        """Environments of a site, fetched once per run unless refresh is set."""
        if refresh or site.id not in self._environments:
            self._environments[site.id] = self.client.get_environments(site)
        return self._environments[site.id]

    def is_always_valid(self, env: str) -> bool:
        return env in self.core_environments or env == self.preview_name

    def validate(self, env: str, sites: List[Site]) -> str:
        """
        Check env against the filtered sites.

        dev, test, live and the preview name are always accepted. Anything else
        must already exist on at least one site. A site whose environments cannot
        be listed is skipped.

        Raises:
            UsageError: if no site has the requested environment
        """
        if env in DEPLOY_ENVIRONMENTS:
            log_message(f"Updating the {env} environment directly. The usual practice is "
                        f"to update dev and deploy to {env} instead.", "WARNING")

        if self.is_always_valid(env):
            return env

        for site in sites:
            try:
                environments = self.environments_for(site)
            except ApiError as e:
                log_message(f"Unable to list environments of {site.name} site: {e}", "WARNING")
                continue
            if env in environments:
                log_message(f"Environment {env} found on {site.name}", "DEBUG")
                return env

        raise UsageError(
            f"Invalid --env argument value '{env}'. Allowed values are "
            f"{', '.join(self.core_environments)}, {self.preview_name} or an existing "
            f"multidev environment."
        )

    def is_new(self, site: Site, env: str) -> bool:
        """True when the site does not have env yet and it would have to be created."""
        return env not in self.environments_for(site)
