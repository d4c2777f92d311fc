"""
Mass Contrib Update Components
Copyright (C) 2024 HOMESERVER LLC

Site Filter Component

Narrows the enumerated site list before any site is touched:
- Team membership
- Organization membership (one id, or "all")
- Name regex (unanchored search)
- Owner UUID ("me" is the authenticated user)

Filters are conjunctive and each one is idempotent, so they compose in any
order. A filter that is not given leaves the list unchanged.
"""

import re
from typing import List, Optional

from mass_contrib_update.client.models import Site
from mass_contrib_update.exceptions import UsageError
from mass_contrib_update.utils.index import log_message

ALL_ORGANIZATIONS = "all"
OWNER_ME = "me"


def filter_by_team_membership(sites: List[Site]) -> List[Site]:
    """Keep sites the user reaches as a team member."""
    return [site for site in sites
            if any(m.get("name") == "Team" for m in site.memberships)]


def filter_by_organizational_membership(sites: List[Site], org_id: str = ALL_ORGANIZATIONS) -> List[Site]:
    """Keep sites belonging to org_id, or to any organization when org_id is "all"."""
    def matches(membership):
        if org_id == ALL_ORGANIZATIONS and membership.get("type") == "organization":
            return True
        return membership.get("id") == org_id

    return [site for site in sites if any(matches(m) for m in site.memberships)]


def filter_by_name(sites: List[Site], regex: str) -> List[Site]:
    """Keep sites whose name contains a match for regex."""
    try:
        pattern = re.compile(regex)
    except re.error as e:
        raise UsageError(f"Invalid --name regex '{regex}': {e}")
    return [site for site in sites if pattern.search(site.name)]


def filter_by_owner(sites: List[Site], owner_uuid: str) -> List[Site]:
    """Keep sites owned by owner_uuid."""
    return [site for site in sites if site.owner == owner_uuid]


def resolve_owner(owner: str, user_id: str) -> str:
    """Translate "me" into the authenticated user's id."""
    return user_id if owner == OWNER_ME else owner


def apply_filters(sites: List[Site], team: bool = False, org: Optional[str] = None,
                  name: Optional[str] = None, owner: Optional[str] = None,
                  user_id: Optional[str] = None) -> List[Site]:
    """
    Apply every requested filter in turn.

    Args:
        sites: Full site list
        team: Keep team-membership sites only
        org: Organization id or "all"
        name: Regex searched in the site name
        owner: Owner UUID or "me"
        user_id: Authenticated user, needed to resolve "me"

    Returns:
        List[Site]: Sites passing every filter, in their original order
    """
    filtered = list(sites)

    if team:
        filtered = filter_by_team_membership(filtered)
        log_message(f"Team filter: {len(filtered)} sites remain", "DEBUG")

    if org:
        filtered = filter_by_organizational_membership(filtered, org)
        log_message(f"Organization filter ({org}): {len(filtered)} sites remain", "DEBUG")

    if name:
        filtered = filter_by_name(filtered, name)
        log_message(f"Name filter ({name}): {len(filtered)} sites remain", "DEBUG")

    if owner:
        owner_uuid = resolve_owner(owner, user_id)
        if not owner_uuid:
            raise UsageError("Unable to resolve --owner=me without an authenticated user")
        filtered = filter_by_owner(filtered, owner_uuid)
        log_message(f"Owner filter ({owner_uuid}): {len(filtered)} sites remain", "DEBUG")

    return filtered
