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
Mass Contrib Update

Checks and applies Drupal/Backdrop contrib module updates across every
hosted site the user can reach, in one invocation.

Key Features:
- Site filters by team, organization, name regex and owner
- Updates tried on a multidev environment cloned from dev
- Full backup before updating, commit afterwards
- Connection mode switched to sftp and back around the drush run
- Summary report of every site's outcome

Usage:
    mass-contrib-update mcu --report --name=my-site
    mass-contrib-update mcu --reset --confirm
"""

import os

from .utils.index import get_module_version

__version__ = get_module_version(os.path.dirname(os.path.abspath(__file__)))
