# commitlink/payload.py
"""
Best-effort extraction of branch, commit and author facts from push payloads.

Gitea, GitHub and GitLab push events share most of their shape; Bitbucket
nests the branch under ``push.changes``. Nothing here raises on missing or
oddly typed fields: absent values come back as empty strings.
"""
import fnmatch
import re
from dataclasses import dataclass, asdict
from typing import Any, List, Mapping
from urllib.parse import quote, urlsplit

BRANCH_PREFIX = "refs/heads/"


@dataclass
class PusherIdentity:
    name: str = ""
    login: str = ""
    email: str = ""


@dataclass
class CommitFact:
    sha: str = ""
    message: str = ""
    branch: str = ""
    commit_url: str = ""
    author_name: str = ""
    author_email: str = ""
    author_username: str = ""
    pusher_name: str = ""
    pusher_login: str = ""
    pusher_email: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def _obj(value: Any, key: str) -> Mapping:
    nested = value.get(key) if isinstance(value, Mapping) else None
    return nested if isinstance(nested, Mapping) else {}


def _text(value: Any, *keys: str) -> str:
    """First non-empty string (or number) found under ``keys``."""
    if not isinstance(value, Mapping):
        return ""
    for key in keys:
        item = value.get(key)
        if isinstance(item, bool) or item is None:
            continue
        if isinstance(item, (int, float)):
            item = str(item)
        if isinstance(item, str) and item.strip():
            return item.strip()
    return ""


def _raw_text(value: Any, key: str) -> str:
    """String under ``key`` exactly as sent, or "" when blank or not a string."""
    item = value.get(key) if isinstance(value, Mapping) else None
    return item if isinstance(item, str) and item.strip() else ""


def extract_branch(payload: Mapping) -> str:
    ref = _text(payload, "ref")
    if ref:
        return ref[len(BRANCH_PREFIX):] if ref.startswith(BRANCH_PREFIX) else ref

    changes = _obj(payload, "push").get("changes")
    if isinstance(changes, list) and changes:
        return _text(_obj(changes[0], "new"), "name")
    return ""


def extract_pusher(payload: Mapping) -> PusherIdentity:
    pusher = _obj(payload, "pusher")
    sender = _obj(payload, "sender")
    return PusherIdentity(
        name=_text(pusher, "full_name", "fullname", "name") or _text(sender, "full_name", "fullname", "name"),
        login=_text(pusher, "login", "username") or _text(sender, "login", "username"),
        email=_text(pusher, "email") or _text(sender, "email"),
    )


def build_commit_link(repository_url: str, sha: str) -> str:
    """
    Web link to ``sha`` under a registered repository URL.

    The last two path segments are taken as owner and repo; anything before
    them is kept as the prefix of a sub-path install.
    """
    if not repository_url or not sha:
        return ""
    parsed = urlsplit(repository_url.strip().rstrip("/"))
    if not parsed.scheme or not parsed.hostname:
        return ""

    parts = [p for p in parsed.path.strip("/").split("/") if p]
    if len(parts) < 2:
        return ""
    owner, repo = parts[-2], re.sub(r"\.git$", "", parts[-1])

    try:
        port = parsed.port
    except ValueError:
        return ""

    base = f"{parsed.scheme}://{parsed.hostname}"
    if port:
        base += f":{port}"
    prefix = "".join("/" + p for p in parts[:-2])
    return f"{base}{prefix}/{quote(owner, safe='')}/{quote(repo, safe='')}/commit/{quote(sha, safe='')}"


def _is_null_sha(sha: str) -> bool:
    return bool(sha) and set(sha) == {"0"}


def extract_commits(payload: Mapping, repository_url: str = "") -> List[CommitFact]:
    """
    One CommitFact per commit in the delivery.

    A ``commits`` list with at least one commit object wins; otherwise ``head_commit`` and then
    ``after`` describe a single commit.
    """
    if not isinstance(payload, Mapping):
        return []

    branch = extract_branch(payload)
    pusher = extract_pusher(payload)

    def fact(commit: Mapping, sha: str = "") -> CommitFact:
        author = _obj(commit, "author")
        sha = sha or _text(commit, "id", "sha")
        return CommitFact(
            sha=sha,
            message=_raw_text(commit, "message"),
            branch=branch,
            commit_url=_text(commit, "url") or build_commit_link(repository_url, sha),
            author_name=_text(author, "name"),
            author_email=_text(author, "email"),
            author_username=_text(author, "username", "login"),
            pusher_name=pusher.name,
            pusher_login=pusher.login,
            pusher_email=pusher.email,
        )

    commits = payload.get("commits")
    if isinstance(commits, list):
        facts = [fact(c) for c in commits if isinstance(c, Mapping)]
        if facts:
            return facts

    head = _obj(payload, "head_commit")
    sha = _text(head, "id", "sha")
    if not sha:
        after = _text(payload, "after")
        sha = "" if _is_null_sha(after) else after
    if not sha and not _text(head, "message"):
        return []
    return [fact(head, sha)]


def branch_matches(branch_filter: str, branch: str) -> bool:
    """
    Whether ``branch`` passes a stored branch filter.

    The filter holds one or more glob patterns separated by commas or
    whitespace; ``*`` or an empty filter lets everything through.
    """
    patterns = [p for p in re.split(r"[,\s]+", branch_filter or "") if p]
    if not patterns or "*" in patterns or not branch:
        return True
    return any(fnmatch.fnmatchcase(branch, p) for p in patterns)
