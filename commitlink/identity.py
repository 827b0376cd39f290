# commitlink/identity.py
import logging
from typing import Callable, List, Optional, Tuple

from .payload import CommitFact

logger = logging.getLogger(__name__)

# Recorded as the actor when nobody could be matched.
UNRESOLVED_USER_ID = 0

Lookup = Callable[[str], Optional[int]]


def lookup_strategies(directory, commit: CommitFact) -> List[Tuple[str, Lookup, str]]:
    """Ordered (label, lookup, value) candidates; the first hit wins."""
    exact = directory.find_user_by_username_or_email
    full = directory.find_user_by_full_name
    partial = directory.find_user_by_partial_name
    return [
        ("author email", exact, commit.author_email),
        ("pusher email", exact, commit.pusher_email),
        ("author username", exact, commit.author_username),
        ("author full name", full, commit.author_name),
        ("pusher full name", full, commit.pusher_name),
        ("pusher login as name", full, commit.pusher_login),
        ("author partial name", partial, commit.author_name),
        ("author username as name", partial, commit.author_username),
        ("pusher partial name", partial, commit.pusher_name),
        ("pusher login partial", partial, commit.pusher_login),
    ]


def resolve_user_id(directory, commit: CommitFact) -> int:
    """
    Map the people named in a commit to an internal user id.

    Lookup errors are logged and leave the commit unattributed.
    """
    try:
        for label, lookup, value in lookup_strategies(directory, commit):
            if not value:
                continue
            uid = lookup(value)
            if uid is not None:
                logger.debug("Resolved commit %s author via %s to user %s", commit.sha, label, uid)
                return int(uid)
    except Exception as e:
        logger.warning("Could not resolve author of commit %s to a user: %s", commit.sha, e)
    return UNRESOLVED_USER_ID
