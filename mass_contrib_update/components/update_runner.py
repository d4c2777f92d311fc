"""
Mass Contrib Update Components
Copyright (C) 2024 HOMESERVER LLC

Update Runner Component

Runs drush pm-update on a site environment over the platform's SSH gateway:
- check: simulated run (-n) whose output tells whether updates are pending
- apply: real run (-y) whose output is logged verbatim

Deciding "pending updates" means matching a fixed English phrase in drush's
output. parse_update_check() is the only place that knows about it.
"""

import re
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from mass_contrib_update.client.models import Site
from mass_contrib_update.components.report import UpdateStatus
from mass_contrib_update.exceptions import UsageError
from mass_contrib_update.utils.index import log_message

PENDING_UPDATES_PHRASE = "updates will be made to the following projects"
PROJECT_TOKEN = re.compile(r"\[([A-Za-z0-9_]+)-[^\]]*\]")


@dataclass
class UpdateCheckResult:
    """Interpreted output of a simulated pm-update."""
    status: UpdateStatus
    projects: List[str] = field(default_factory=list)
    output: str = ""

    @property
    def needs_update(self) -> bool:
        return self.status == UpdateStatus.NEEDS_UPDATE


def parse_update_check(output: str) -> UpdateCheckResult:
    """
    Interpret the output of `drush pm-update -n`.

    drush prints "Code updates will be made to the following projects:"
    followed by "Title [name-version], ..." when something is pending. The
    project name is the bracketed token up to the version. Without that phrase
    the environment is up to date.
    """
    index = output.find(PENDING_UPDATES_PHRASE)
    if index < 0:
        return UpdateCheckResult(status=UpdateStatus.UP_TO_DATE, output=output)

    # The listing may wrap, so it runs up to the next blank line
    listing = output[index + len(PENDING_UPDATES_PHRASE):].split("\n\n", 1)[0]
    projects = PROJECT_TOKEN.findall(listing)
    return UpdateCheckResult(status=UpdateStatus.NEEDS_UPDATE, projects=projects, output=output)


class UpdateRunner:
    """Invokes drush pm-update for one site environment at a time."""

    def __init__(self, config: Dict[str, Any], security_only: bool = False,
                 projects: Optional[List[str]] = None,
                 run: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.config = config
        self.drush_config = config.get('config', {}).get('drush', {})
        self.ssh_binary = self.drush_config.get('ssh_binary', 'ssh')
        self.port = self.drush_config.get('port', 2222)
        self.host_template = self.drush_config.get('host_template', 'appserver.{env}.{site_id}.drush.in')
        self.user_template = self.drush_config.get('user_template', '{env}.{site_id}')
        self.timeout = self.drush_config.get('timeout', 1800)
        self.security_only = security_only
        self.projects = list(projects or [])
        self._run = run

    def verify_binary(self) -> str:
        """
        Make sure the SSH client used to reach drush is installed.

        Raises:
            UsageError: if the binary is not on PATH
        """
        path = shutil.which(self.ssh_binary)
        if not path:
            raise UsageError(f"{self.ssh_binary} command not found. It is required to run drush remotely.")
        log_message(f"Using {path} for remote drush", "DEBUG")
        return path

    def pm_update_arguments(self, simulate: bool) -> List[str]:
        """pm-update [-n|-y] --no-core [--security-only] [project,list]"""
        arguments = ["pm-update", "-n" if simulate else "-y", "--no-core"]
        if self.security_only:
            arguments.append("--security-only")
        if self.projects:
            arguments.append(",".join(self.projects))
        return arguments

    def build_command(self, site: Site, env: str, drush_arguments: List[str]) -> List[str]:
        user = self.user_template.format(env=env, site_id=site.id, site_name=site.name)
        host = self.host_template.format(env=env, site_id=site.id, site_name=site.name)
        remote = " ".join(["drush"] + [shlex.quote(arg) for arg in drush_arguments])
        return [
            self.ssh_binary, "-T",
            f"{user}@{host}",
            "-p", str(self.port),
            "-o", "StrictHostKeyChecking=no",
            "-o", "AddressFamily=inet",
            remote,
        ]

    def _execute(self, site: Site, env: str, simulate: bool) -> Optional[subprocess.CompletedProcess]:
        command = self.build_command(site, env, self.pm_update_arguments(simulate))
        log_message(f"[DRUSH] Running: {command[-1]} on the {env} environment of {site.name} site")
        try:
            return self._run(command, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            log_message(f"[DRUSH] Timed out after {self.timeout} seconds on the {env} "
                        f"environment of {site.name} site", "ERROR")
        except OSError as e:
            log_message(f"[DRUSH] Unable to start {self.ssh_binary}: {e}", "ERROR")
        return None

    @staticmethod
    def _combined_output(result: subprocess.CompletedProcess) -> str:
        parts = [result.stdout or "", result.stderr or ""]
        return "\n".join(part.rstrip("\n") for part in parts if part)

    def check(self, site: Site, env: str) -> Optional[UpdateCheckResult]:
        """
        Simulate pm-update and report whether contrib updates are pending.

        Returns:
            Optional[UpdateCheckResult]: The interpreted result, or None if
            drush could not be run or failed without reporting pending updates
        """
        result = self._execute(site, env, simulate=True)
        if result is None:
            return None

        output = self._combined_output(result)
        if output:
            log_message(output)

        check = parse_update_check(output)
        # Answering "no" makes drush exit non-zero after listing the updates
        if result.returncode != 0 and not check.needs_update:
            log_message(f"[DRUSH] Check exited with status {result.returncode} on the {env} "
                        f"environment of {site.name} site", "ERROR")
            return None
        if check.needs_update:
            log_message(f"[DRUSH] Pending updates: {', '.join(check.projects) or 'unknown projects'}")
        return check

    def apply(self, site: Site, env: str) -> bool:
        """Run pm-update for real. Returns True when drush exited cleanly."""
        result = self._execute(site, env, simulate=False)
        if result is None:
            return False

        output = self._combined_output(result)
        if output:
            log_message(output)

        if result.returncode != 0:
            log_message(f"[DRUSH] Update exited with status {result.returncode} on the {env} "
                        f"environment of {site.name} site", "ERROR")
            return False
        return True
