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
On-disk cache of the site list.

Enumerating every site through team and organization memberships is the
slowest part of a run, so each fresh listing is written here and --cached
reads it back. A cache written by an older schema is treated as missing.
"""

import json
import os
import tempfile
from datetime import datetime
from typing import List, Optional

from packaging import version

from mass_contrib_update.client.models import Site
from mass_contrib_update.utils.index import log_message

CACHE_SCHEMA_VERSION = "1.0.0"


class SiteCache:
    """Reads and writes the cached site list as JSON."""

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)

    def load(self) -> Optional[List[Site]]:
        """
        Load cached sites.

        Returns:
            Optional[List[Site]]: Cached sites, or None if the cache is
            missing, unreadable or from an incompatible schema
        """
        if not os.path.exists(self.path):
            log_message(f"No site cache at {self.path}", "DEBUG")
            return None
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log_message(f"Ignoring unreadable site cache {self.path}: {e}", "WARNING")
            return None

        if not isinstance(data, dict):
            log_message(f"Ignoring site cache {self.path}: unexpected format", "WARNING")
            return None

        cached_version = str(data.get("schema_version", "0.0.0"))
        try:
            outdated = version.parse(cached_version) < version.parse(CACHE_SCHEMA_VERSION)
        except version.InvalidVersion:
            outdated = True
        if outdated:
            log_message(f"Ignoring site cache with schema {cached_version} "
                        f"(need {CACHE_SCHEMA_VERSION})", "WARNING")
            return None

        sites = [Site.from_dict(item) for item in data.get("sites", [])]
        log_message(f"Loaded {len(sites)} sites from cache written {data.get('written_at', 'unknown')}")
        return sites

    def save(self, sites: List[Site]) -> bool:
        """Write the site list atomically. Returns False if the write failed."""
        payload = {
            "schema_version": CACHE_SCHEMA_VERSION,
            "written_at": datetime.now().isoformat(timespec='seconds'),
            "sites": [site.to_dict() for site in sites],
        }
        directory = os.path.dirname(self.path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".sites-", suffix=".json")
            with os.fdopen(fd, 'w') as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            log_message(f"Failed to write site cache {self.path}: {e}", "WARNING")
            return False
        log_message(f"Cached {len(sites)} sites to {self.path}", "DEBUG")
        return True
