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
Exception types for the mass update run.

UsageError aborts the whole run. PreconditionError and OperationError end
only the site being processed; the orchestrator records them in the report
and moves on to the next site.
"""


class MassUpdateError(Exception):
    """Base class for every error raised by this package."""
    pass


class UsageError(MassUpdateError):
    """Invalid options, invalid environment, no usable tooling."""
    pass


class AuthenticationError(UsageError):
    """No usable platform session could be established."""
    pass


class PreconditionError(MassUpdateError):
    """The site is not in a state where updates can be applied."""
    pass


class OperationError(MassUpdateError):
    """A platform or drush operation failed for the current site."""
    pass


class ApiError(OperationError):
    """HTTP failure talking to the platform API."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class BackupError(OperationError):
    """The pre-update backup did not complete. Updates are never applied after this."""

    def __init__(self, message: str = "Backup failed"):
        super().__init__(message)
