"""
Shared fixtures for the mass contrib update test suite.
"""
import os
import subprocess
import sys

import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from mass_contrib_update.client.models import Environment, Site, Workflow
from mass_contrib_update.context import RunContext, RunOptions
from mass_contrib_update.utils.moduleUtils import DEFAULT_CONFIG, merge_config

PENDING_OUTPUT = """Update information last refreshed: Mon, 01/06/2025 - 10:12
 Name                Installed Version  Proposed version  Message
 Chaos tool suite    7.x-1.14           7.x-1.15          Update available
 Views               7.x-3.20           7.x-3.24          SECURITY UPDATE available

Code updates will be made to the following projects: Chaos tool suite (ctools) [ctools-7.x-1.15], Views [views-7.x-3.24],

Note: Updated projects can potentially break your site. It is NOT recommended to update production sites without prior testing.
Do you really want to continue? (y/n): n
"""

UP_TO_DATE_OUTPUT = """Update information last refreshed: Mon, 01/06/2025 - 10:12
No code updates available.
"""


def make_site(name, site_id=None, owner="owner-1", framework="drupal", memberships=None):
    return Site(
        id=site_id or f"{name}-id",
        name=name,
        owner=owner,
        framework=framework,
        memberships=list(memberships or []),
    )


class FakePlatformClient:
    """In-memory stand-in for PlatformClient. Every workflow finishes immediately."""

    READS = {"get_sites", "get_environments", "get_features", "get_diffstat", "wake", "get_workflow"}

    def __init__(self, sites=None, user_id="user-1"):
        self.sites = list(sites or [])
        self.user_id = user_id
        self.environments = {}
        self.features = {}
        self.diffstats = {}
        self.failing = set()
        self.calls = []
        for site in self.sites:
            self.add_environments(site, "dev", "test", "live")
            self.features[site.id] = {"multidev": True}

    def add_environments(self, site, *env_ids, sftp=False):
        envs = self.environments.setdefault(site.id, {})
        for env_id in env_ids:
            envs[env_id] = Environment(id=env_id, site_id=site.id, on_server_development=sftp)

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] not in self.READS]

    def _workflow(self, site, workflow_type):
        result = "failed" if workflow_type in self.failing else "succeeded"
        return Workflow(id=f"wf-{len(self.calls)}", site_id=site.id, type=workflow_type,
                        result=result, finished_at=1.0)

    def get_sites(self):
        self.calls.append(("get_sites",))
        return list(self.sites)

    def get_environments(self, site):
        self.calls.append(("get_environments", site.name))
        return dict(self.environments.get(site.id, {}))

    def get_environment(self, site, env_id):
        return self.get_environments(site).get(env_id)

    def get_features(self, site):
        self.calls.append(("get_features", site.name))
        return self.features.get(site.id, {})

    def get_diffstat(self, site, env_id):
        self.calls.append(("get_diffstat", site.name, env_id))
        return self.diffstats.get((site.id, env_id), {})

    def wake(self, site, env_id):
        self.calls.append(("wake", site.name, env_id))
        return True

    def get_workflow(self, workflow):
        self.calls.append(("get_workflow", workflow.id))
        return workflow

    def create_multidev(self, site, to_env, from_env):
        self.calls.append(("create_multidev", site.name, to_env, from_env))
        workflow = self._workflow(site, "create_multidev")
        if workflow.is_successful:
            self.add_environments(site, to_env)
        return workflow

    def delete_multidev(self, site, env_id, delete_branch=True):
        self.calls.append(("delete_multidev", site.name, env_id, delete_branch))
        workflow = self._workflow(site, "delete_multidev")
        if workflow.is_successful:
            self.environments.get(site.id, {}).pop(env_id, None)
        return workflow

    def create_backup(self, site, env_id, keep_for_days):
        self.calls.append(("create_backup", site.name, env_id))
        return self._workflow(site, "create_backup")

    def change_connection_mode(self, site, env_id, mode):
        self.calls.append(("change_connection_mode", site.name, env_id, mode))
        workflow = self._workflow(site, "change_connection_mode")
        if workflow.is_successful:
            self.environments[site.id][env_id].on_server_development = (mode == "sftp")
        return workflow

    def commit_changes(self, site, env_id, message):
        self.calls.append(("commit_changes", site.name, env_id, message))
        return self._workflow(site, "commit_changes")

    def set_drush_version(self, site, env_id, version):
        self.calls.append(("set_drush_version", site.name, env_id, version))
        return self._workflow(site, "set_drush_version")


class FakeDrush:
    """Replaces subprocess.run for the update runner."""

    def __init__(self, check_output=UP_TO_DATE_OUTPUT, check_returncode=0,
                 apply_output="Project ctools was updated successfully.", apply_returncode=0):
        self.check_output = check_output
        self.check_returncode = check_returncode
        self.apply_output = apply_output
        self.apply_returncode = apply_returncode
        self.commands = []

    def __call__(self, command, **kwargs):
        self.commands.append(command)
        if " -n " in f" {command[-1]} ":
            return subprocess.CompletedProcess(command, self.check_returncode, self.check_output, "")
        return subprocess.CompletedProcess(command, self.apply_returncode, self.apply_output, "")

    @property
    def checks(self):
        return [c for c in self.commands if " -n " in f" {c[-1]} "]

    @property
    def applies(self):
        return [c for c in self.commands if " -y " in f" {c[-1]} "]


@pytest.fixture
def config(tmp_path):
    """Default configuration with a temporary site cache and instant polling."""
    return merge_config(DEFAULT_CONFIG, {
        "config": {
            "cache": {"sites_file": str(tmp_path / "sites.json")},
            "workflows": {"poll_interval": 0, "timeout": 5},
        }
    })


@pytest.fixture
def drush():
    return FakeDrush()


@pytest.fixture
def make_context(config):
    def _make(client, prompt=None, **options):
        return RunContext(
            config=config,
            client=client,
            user_id=client.user_id,
            options=RunOptions(**options),
            prompt=prompt or (lambda question, assume_yes: True),
        )
    return _make


@pytest.fixture
def make_updater(config, drush, monkeypatch):
    """Build a MassContribUpdate wired to a fake client and fake drush."""
    from mass_contrib_update.components.update_runner import UpdateRunner
    from mass_contrib_update.orchestrator import MassContribUpdate

    monkeypatch.setattr("shutil.which", lambda binary: f"/usr/bin/{binary}")

    def _make(context):
        runner = UpdateRunner(config, security_only=context.options.security_only,
                              projects=context.options.project_list, run=drush)
        return MassContribUpdate(context, runner=runner)
    return _make


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop console handlers installed by main() so they never outlive a test's stdout."""
    import logging
    from mass_contrib_update.utils.index import LOGGER_NAME

    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
