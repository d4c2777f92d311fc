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

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from mass_contrib_update.utils.index import confirm


@dataclass
class RunOptions:
    """Command line options that shape a run."""
    env: Optional[str] = None
    report: bool = False
    message: Optional[str] = None
    confirm: bool = False
    skip_backup: bool = False
    security_only: bool = False
    projects: Optional[str] = None
    reset: bool = False
    team: bool = False
    owner: Optional[str] = None
    org: Optional[str] = None
    name: Optional[str] = None
    cached: bool = False
    yes: bool = False
    format: str = "table"

    @classmethod
    def from_args(cls, args) -> 'RunOptions':
        return cls(**{name: getattr(args, name) for name in cls.__dataclass_fields__
                      if hasattr(args, name)})

    @property
    def project_list(self):
        if not self.projects:
            return []
        return [p.strip() for p in self.projects.split(',') if p.strip()]


@dataclass
class RunContext:
    """
    Everything a component needs for one run: configuration, the
    authenticated client, the resolved user and the parsed options.
    """
    config: Dict[str, Any]
    client: Any
    user_id: str
    options: RunOptions = field(default_factory=RunOptions)
    prompt: Callable[[str, bool], bool] = confirm

    def section(self, name: str) -> Dict[str, Any]:
        return self.config.get('config', {}).get(name, {})

    def ask(self, question: str) -> bool:
        return self.prompt(question, self.options.yes)
