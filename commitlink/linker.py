# commitlink/linker.py
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from .identity import resolve_user_id
from .payload import CommitFact, branch_matches, extract_branch, extract_commits

logger = logging.getLogger(__name__)

TICKET_REF_RE = re.compile(r"#(\d+)")
CHANGE_TYPE = "commit"


@dataclass
class LinkResult:
    linked: List[int] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)


def extract_ticket_ids(*texts: str) -> List[int]:
    """Unique positive ticket ids referenced as ``#123``, in order of appearance."""
    seen = []
    for text in texts:
        if not text:
            continue
        for digits in TICKET_REF_RE.findall(text):
            ticket_id = int(digits)
            if ticket_id > 0 and ticket_id not in seen:
                seen.append(ticket_id)
    return seen


def build_change_value(commit_url: str, message: str) -> str:
    return "||".join(part for part in (commit_url, message) if part)


def link_commit(ledger, commit: CommitFact, user_id: int) -> LinkResult:
    """
    Record ``commit`` on every existing ticket it references.

    Unknown tickets are skipped. A failure on one ticket is logged and
    reported in ``errors``; the remaining tickets are still processed.
    """
    result = LinkResult()
    change_value = build_change_value(commit.commit_url, commit.message)

    for ticket_id in extract_ticket_ids(commit.message, commit.branch):
        try:
            if not ledger.ticket_exists(ticket_id):
                logger.debug("Ticket #%s referenced by %s does not exist", ticket_id, commit.sha)
                continue
            if not ledger.add_history(ticket_id, user_id, CHANGE_TYPE, change_value):
                logger.error("Failed to record history for ticket #%s", ticket_id)
                result.errors.append({"ticket_id": ticket_id, "error": "history insert failed"})
                continue
            logger.info("Recorded commit %s for ticket #%s", commit.sha, ticket_id)
            result.linked.append(ticket_id)
        except Exception as e:
            logger.error("Error writing history for ticket #%s: %s", ticket_id, e)
            result.errors.append({"ticket_id": ticket_id, "error": str(e)})

    return result


def process_push(source, payload: Mapping, ledger) -> dict:
    """
    Link every commit of a verified push delivery to its tickets.

    Returns the response summary; commit_* fields describe the head commit.
    """
    branch = extract_branch(payload)
    summary = {
        "branch": branch,
        "commit_sha": "",
        "commit_message": "",
        "commit_link": "",
        "tickets_linked": [],
        "ticket_errors": [],
        "commits": [],
    }

    if not branch_matches(source.branch_filter, branch):
        logger.info("Branch %s excluded by filter %r for %s", branch, source.branch_filter, source.repository_url)
        summary["skipped"] = "branch filtered"
        return summary

    for commit in extract_commits(payload, source.repository_url):
        user_id = resolve_user_id(ledger, commit)
        result = link_commit(ledger, commit, user_id)

        summary["commits"].append({
            "commit_sha": commit.sha,
            "commit_link": commit.commit_url,
            "user_id": user_id,
            "tickets_linked": result.linked,
            "ticket_errors": result.errors,
        })
        summary["commit_sha"] = commit.sha
        summary["commit_message"] = commit.message
        summary["commit_link"] = commit.commit_url
        for ticket_id in result.linked:
            if ticket_id not in summary["tickets_linked"]:
                summary["tickets_linked"].append(ticket_id)
        summary["ticket_errors"].extend(result.errors)

    return summary
