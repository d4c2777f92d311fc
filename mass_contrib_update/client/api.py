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
Platform API Client

Thin wrapper around the hosting platform's REST API:
- Authentication with a machine token or an existing Terminus session
- Site enumeration through team and organization memberships
- Environment, feature and diffstat lookups
- Workflow creation for every mutating operation
- Environment wake-up through the health check URL

Every HTTP failure is raised as ApiError. Callers decide whether that ends
the run or only the current site.
"""

import json
import os
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests

from mass_contrib_update.client.models import Environment, Site, Workflow
from mass_contrib_update.exceptions import ApiError, AuthenticationError
from mass_contrib_update.utils.index import log_message

USER_AGENT = "mass-contrib-update"


class PlatformClient:
    """Authenticated session against the platform API."""

    def __init__(self, config: Dict[str, Any], http: Optional[requests.Session] = None):
        self.config = config
        self.api_config = config.get('config', {}).get('api', {})
        self.base_url = self.api_config.get('base_url', 'https://terminus.pantheon.io/api/')
        self.timeout = self.api_config.get('timeout', 60)
        self.page_limit = self.api_config.get('page_limit', 100)
        self.http = http or requests.Session()
        self.http.headers.update({
            'User-Agent': USER_AGENT,
            'Content-Type': 'application/json',
        })
        self.user_id: Optional[str] = None

    # Authentication

    def authenticate(self, machine_token: Optional[str] = None) -> str:
        """
        Establish an API session and return the current user's id.

        A machine token (argument or one of the configured environment
        variables) takes precedence over the Terminus session file.

        Raises:
            AuthenticationError: if neither source yields a valid session
        """
        if not machine_token:
            for var in self.api_config.get('token_env_vars', []):
                if os.environ.get(var):
                    machine_token = os.environ[var]
                    break

        if machine_token:
            session = self._login_with_machine_token(machine_token)
        else:
            session = self._load_session_file()

        self.http.headers['Authorization'] = f"Bearer {session['session']}"
        self.user_id = session['user_id']
        log_message(f"Authenticated as user {self.user_id}", "DEBUG")
        return self.user_id

    def _login_with_machine_token(self, machine_token: str) -> Dict[str, Any]:
        log_message("Logging in with machine token", "DEBUG")
        try:
            data = self.request('POST', 'authorize/machine-token',
                                json={'machine_token': machine_token, 'client': 'terminus'})
        except ApiError as e:
            raise AuthenticationError(f"Machine token login failed: {e}")
        if not data or 'session' not in data or 'user_id' not in data:
            raise AuthenticationError("Machine token login returned no session")
        return data

    def _load_session_file(self) -> Dict[str, Any]:
        path = os.path.expanduser(self.api_config.get('session_file', '~/.terminus/cache/session'))
        if not os.path.exists(path):
            raise AuthenticationError(
                "No machine token given and no Terminus session found. "
                "Use --machine-token or log in with Terminus first."
            )
        try:
            with open(path, 'r') as f:
                session = json.load(f)
        except (OSError, ValueError) as e:
            raise AuthenticationError(f"Unable to read session file {path}: {e}")

        if 'session' not in session or 'user_id' not in session:
            raise AuthenticationError(f"Session file {path} is incomplete")
        expires_at = session.get('expires_at')
        if expires_at and float(expires_at) < time.time():
            raise AuthenticationError("Your Terminus session has expired. Log in again.")
        return session

    # Transport

    def request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request relative to the API base URL and decode the JSON body."""
        url = urljoin(self.base_url, path)
        kwargs.setdefault('timeout', self.timeout)
        log_message(f"{method} {url}", "DEBUG")
        try:
            response = self.http.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}")

        if response.status_code >= 400:
            raise ApiError(
                f"{method} {path} returned HTTP {response.status_code}: {response.text.strip()[:200]}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise ApiError(f"{method} {path} returned a non-JSON body")

    def get_paged(self, path: str) -> List[Dict[str, Any]]:
        """Collect every page of a list endpoint."""
        items: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {'limit': self.page_limit}
        while True:
            page = self.request('GET', path, params=params) or []
            items.extend(page)
            if len(page) < self.page_limit:
                return items
            params['start'] = page[-1].get('id')

    # Sites

    def get_sites(self) -> List[Site]:
        """
        Enumerate every site the user can reach, tagging each with the
        memberships it was found through.
        """
        if not self.user_id:
            raise AuthenticationError("Not authenticated")

        sites: Dict[str, Site] = {}

        for item in self.get_paged(f"users/{self.user_id}/memberships/sites"):
            site = self._site_from_membership(sites, item)
            if site:
                site.add_membership(self.user_id, "Team", "team")

        for item in self.get_paged(f"users/{self.user_id}/memberships/organizations"):
            organization = item.get('organization') or {}
            org_id = organization.get('id') or item.get('id')
            if not org_id:
                continue
            org_name = (organization.get('profile') or {}).get('name', org_id)
            for site_item in self.get_paged(f"organizations/{org_id}/memberships/sites"):
                site = self._site_from_membership(sites, site_item)
                if site:
                    site.add_membership(org_id, org_name, "organization")

        log_message(f"Found {len(sites)} sites", "DEBUG")
        return list(sites.values())

    @staticmethod
    def _site_from_membership(sites: Dict[str, Site], item: Dict[str, Any]) -> Optional[Site]:
        data = item.get('site') or {}
        if 'id' not in data:
            return None
        if data['id'] not in sites:
            sites[data['id']] = Site.from_api(data)
        return sites[data['id']]

    def get_features(self, site: Site) -> Dict[str, Any]:
        return self.request('GET', f"sites/{site.id}/features") or {}

    # Environments

    def get_environments(self, site: Site) -> Dict[str, Environment]:
        data = self.request('GET', f"sites/{site.id}/environments") or {}
        return {env_id: Environment.from_api(site.id, env_id, env_data)
                for env_id, env_data in data.items()}

    def get_environment(self, site: Site, env_id: str) -> Optional[Environment]:
        return self.get_environments(site).get(env_id)

    def get_diffstat(self, site: Site, env_id: str) -> Dict[str, Any]:
        """Uncommitted on-server changes of an sftp-mode environment."""
        data = self.request('GET', f"sites/{site.id}/environments/{env_id}/on-server-development/diffstat")
        return data or {}

    def wake(self, site: Site, env_id: str) -> bool:
        """
        Hit the environment's health check so drush finds a running container.

        The site itself serves this URL, so the request goes out without the
        API session headers.
        """
        template = self.api_config.get('wake_url_template',
                                       'https://{env}-{site_name}.pantheonsite.io/pantheon_healthcheck')
        url = template.format(env=env_id, site_name=site.name, site_id=site.id)
        try:
            response = requests.get(url, headers={'User-Agent': USER_AGENT}, timeout=self.timeout)
        except requests.RequestException as e:
            log_message(f"Unable to wake the {env_id} environment of {site.name} site: {e}", "WARNING")
            return False
        if response.status_code >= 400:
            log_message(f"Wake request for the {env_id} environment of {site.name} site "
                        f"returned HTTP {response.status_code}", "WARNING")
            return False
        return True

    # Workflows

    @staticmethod
    def _workflow_from(site_id: str, workflow_type: str, data: Any) -> Workflow:
        if not isinstance(data, dict) or not data.get('id'):
            raise ApiError(f"Workflow {workflow_type} on site {site_id} returned no workflow")
        return Workflow.from_api(site_id, data)

    def create_site_workflow(self, site: Site, workflow_type: str, params: Dict[str, Any]) -> Workflow:
        data = self.request('POST', f"sites/{site.id}/workflows",
                            json={'type': workflow_type, 'params': params})
        return self._workflow_from(site.id, workflow_type, data)

    def create_environment_workflow(self, site: Site, env_id: str, workflow_type: str,
                                    params: Dict[str, Any]) -> Workflow:
        data = self.request('POST', f"sites/{site.id}/environments/{env_id}/workflows",
                            json={'type': workflow_type, 'params': params})
        return self._workflow_from(site.id, workflow_type, data)

    def get_workflow(self, workflow: Workflow) -> Workflow:
        data = self.request('GET', f"sites/{workflow.site_id}/workflows/{workflow.id}")
        return self._workflow_from(workflow.site_id, workflow.type or workflow.id, data)

    def create_multidev(self, site: Site, to_env: str, from_env: str) -> Workflow:
        return self.create_site_workflow(site, 'create_cloud_development_environment', {
            'environment_id': to_env,
            'deploy': {
                'clone_database': {'from_environment': from_env},
                'clone_files': {'from_environment': from_env},
                'annotation': f"Create the {to_env} environment",
            },
        })

    def delete_multidev(self, site: Site, env_id: str, delete_branch: bool = True) -> Workflow:
        return self.create_site_workflow(site, 'delete_cloud_development_environment', {
            'environment_id': env_id,
            'delete_branch': delete_branch,
        })

    def create_backup(self, site: Site, env_id: str, keep_for_days: int) -> Workflow:
        return self.create_environment_workflow(site, env_id, 'do_export', {
            'code': True,
            'database': True,
            'files': True,
            'entry_type': 'backup',
            'ttl': keep_for_days * 86400,
        })

    def change_connection_mode(self, site: Site, env_id: str, mode: str) -> Workflow:
        workflow_type = ('enable_on_server_development' if mode == 'sftp'
                         else 'disable_on_server_development')
        return self.create_environment_workflow(site, env_id, workflow_type, {})

    def commit_changes(self, site: Site, env_id: str, message: str) -> Workflow:
        return self.create_environment_workflow(site, env_id, 'commit_and_push_on_server_changes', {
            'message': message,
        })

    def set_drush_version(self, site: Site, env_id: str, version: int) -> Workflow:
        return self.create_environment_workflow(site, env_id, 'update_environment_variables', {
            'environment_variables': {'DRUSH_VERSION': int(version)},
        })
