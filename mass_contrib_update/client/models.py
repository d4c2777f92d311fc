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
Platform records: sites, environments and workflows.

Plain dataclasses built from the platform API's JSON. Sites also round-trip
through the on-disk site cache, so they carry to_dict/from_dict like the
backup records in the state manager.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

CONNECTION_MODE_GIT = "git"
CONNECTION_MODE_SFTP = "sftp"


@dataclass
class Site:
    """A hosted site visible to the current user."""
    id: str
    name: str
    owner: str = ""
    framework: str = ""
    memberships: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Site':
        return cls(
            id=data["id"],
            name=data["name"],
            owner=data.get("owner", "") or "",
            framework=data.get("framework", "") or "",
            memberships=list(data.get("memberships", [])),
        )

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Site':
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            owner=data.get("owner", "") or "",
            framework=data.get("framework", "") or "",
        )

    def add_membership(self, membership_id: str, name: str, membership_type: str) -> None:
        membership = {"id": membership_id, "name": name, "type": membership_type}
        if membership not in self.memberships:
            self.memberships.append(membership)


@dataclass
class Environment:
    """One environment (dev, test, live or a multidev) of a site."""
    id: str
    site_id: str
    on_server_development: bool = False

    @property
    def connection_mode(self) -> str:
        return CONNECTION_MODE_SFTP if self.on_server_development else CONNECTION_MODE_GIT

    @classmethod
    def from_api(cls, site_id: str, env_id: str, data: Dict[str, Any]) -> 'Environment':
        return cls(
            id=env_id,
            site_id=site_id,
            on_server_development=bool(data.get("on_server_development", False)),
        )


class WorkflowOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class Workflow:
    """Handle for an asynchronous platform operation."""
    id: str
    site_id: str
    type: str = ""
    description: str = ""
    result: Optional[str] = None
    finished_at: Optional[float] = None
    messages: List[str] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.result is not None or self.finished_at is not None

    @property
    def is_successful(self) -> bool:
        return self.result == "succeeded"

    @classmethod
    def from_api(cls, site_id: str, data: Dict[str, Any]) -> 'Workflow':
        final_task = data.get("final_task") or {}
        raw_messages = final_task.get("messages") or []
        if isinstance(raw_messages, dict):
            raw_messages = list(raw_messages.values())

        messages = []
        for message in raw_messages:
            if isinstance(message, dict):
                message = message.get("message", "")
            if message:
                messages.append(str(message))
        if final_task.get("reason"):
            messages.append(final_task["reason"])

        return cls(
            id=data["id"],
            site_id=data.get("site_id") or site_id,
            type=data.get("type", ""),
            description=data.get("active_description") or data.get("description", ""),
            result=data.get("result"),
            finished_at=data.get("finished_at"),
            messages=messages,
        )
