"""
Mass Contrib Update Components
Copyright (C) 2024 HOMESERVER LLC

Report Emitter Component

Collects one status row per site and prints the summary at the end of the
run, either as a table or as JSON.
"""

import json
from enum import Enum
from typing import Dict, List

from mass_contrib_update.utils.index import log_message


class UpdateStatus(str, Enum):
    UP_TO_DATE = "Up to date"
    NEEDS_UPDATE = "Needs update"
    UPDATED = "Updated"
    BACKUP_FAILED = "Backup failed"


class UpdateReport:
    """Per-site outcomes of a run. Later rows for the same site replace earlier ones."""

    def __init__(self):
        self._rows: Dict[str, str] = {}

    def add(self, site_name: str, status) -> None:
        if isinstance(status, UpdateStatus):
            status = status.value
        self._rows[site_name] = str(status)

    def __len__(self) -> int:
        return len(self._rows)

    def rows(self) -> List[Dict[str, str]]:
        """Rows sorted by site name."""
        return [{"site": name, "status": self._rows[name]} for name in sorted(self._rows)]

    def status_of(self, site_name: str):
        return self._rows.get(site_name)

    def render_table(self) -> List[str]:
        rows = self.rows()
        site_width = max([len("Site")] + [len(r["site"]) for r in rows])
        lines = [
            f"{'Site':<{site_width}}  Status",
            "-" * 80,
        ]
        for row in rows:
            lines.append(f"{row['site']:<{site_width}}  {row['status']}")
        lines.append("-" * 80)
        return lines

    def render_json(self) -> str:
        return json.dumps(self.rows(), indent=2)

    def emit(self, output_format: str = "table") -> None:
        """Print the summary, or a notice when no site produced a row."""
        if not self._rows:
            log_message("No sites in need of updating.")
            return

        if output_format == "json":
            print(self.render_json())
            return

        for line in self.render_table():
            print(line)
        counts: Dict[str, int] = {}
        for status in self._rows.values():
            counts[status] = counts.get(status, 0) + 1
        summary = ", ".join(f"{count} {status.lower()}" for status, count in sorted(counts.items()))
        log_message(f"Total: {len(self._rows)} sites ({summary})")
