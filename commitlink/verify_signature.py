import hmac
import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

# Checked in this order; the first usable value wins.
SIGNATURE_HEADERS = ("X-Gitea-Signature", "X-Hub-Signature", "X-Hub-Signature-256")

REPOSITORY_URL_KEYS = ("html_url", "url", "clone_url", "git_http_url", "ssh_url")

FOREIGN_DIGEST_PREFIXES = ("sha1=", "sha512=")

MATCHED = "matched"
NO_MATCH = "no_match"
SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass
class MatchResult:
    status: str
    source: Optional[object] = None
    matched_by: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == MATCHED


def extract_signature(headers: Mapping[str, str]) -> Optional[str]:
    """
    Return the first non-empty signature header value, or None.

    A value announcing another digest (``sha1=...``, as GitHub sends in
    X-Hub-Signature) gives way to a later header carrying a usable one. When
    only foreign digests are present the first is returned, so it still
    fails verification.
    """
    present = [(headers.get(name) or "").strip() for name in SIGNATURE_HEADERS]
    present = [value for value in present if value]
    for value in present:
        if not value.lower().startswith(FOREIGN_DIGEST_PREFIXES):
            return value
    return present[0] if present else None


def normalize_signature(signature: str) -> str:
    sig = (signature or "").strip()
    if sig[:7].lower() == "sha256=":
        sig = sig[7:]
    return sig.strip().lower()


def compute_signature(secret: str, body: bytes) -> str:
    mac = hmac.new(secret.encode("utf-8"), msg=body, digestmod=hashlib.sha256)
    return mac.hexdigest()


def verify_signature(secret: str, body: bytes, signature: str, allow_raw_secret: bool = False) -> bool:
    """
    Verify a webhook signature.

    secret: the source's hook secret
    body: raw request body (bytes), exactly as received
    signature: header value, with or without the ``sha256=`` prefix
    allow_raw_secret: also accept the bare secret as the signature
    """
    if not secret or not signature:
        return False

    expected = compute_signature(secret, body)
    if hmac.compare_digest(expected.encode(), normalize_signature(signature).encode()):
        return True

    if allow_raw_secret:
        return hmac.compare_digest(secret.encode("utf-8"), signature.strip().encode("utf-8"))
    return False


def normalize_repo_url(url: str) -> str:
    url = (url or "").strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


def repository_urls(payload: Mapping) -> List[str]:
    """Candidate repository URLs from the payload's ``repository`` object."""
    repo = payload.get("repository") if isinstance(payload, Mapping) else None
    if not isinstance(repo, Mapping):
        return []
    urls = []
    for key in REPOSITORY_URL_KEYS:
        value = repo.get(key)
        if isinstance(value, str) and value.strip():
            urls.append(value.strip())
    return urls


def urls_match(candidate: str, registered: str) -> bool:
    a = normalize_repo_url(candidate)
    b = normalize_repo_url(registered)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def match_source(
    sources: Iterable,
    body: bytes,
    signature: Optional[str],
    payload: Mapping,
    allow_raw_secret: bool = False,
) -> MatchResult:
    """
    Pick the registered source an inbound delivery belongs to.

    Sources are tried by signature first, then by repository URL. A source
    found by URL that has a secret while the request carries a signature
    that does not verify against it is rejected.
    """
    sources = list(sources)

    if signature:
        for source in sources:
            if source.hook_secret and verify_signature(source.hook_secret, body, signature, allow_raw_secret):
                return MatchResult(MATCHED, source, "signature")

    matched = None
    for source in sources:
        for url in repository_urls(payload):
            if urls_match(url, source.repository_url or ""):
                matched = source
                break
        if matched is not None:
            break

    if matched is None:
        return MatchResult(NO_MATCH)

    if signature and matched.hook_secret:
        if not verify_signature(matched.hook_secret, body, signature, allow_raw_secret):
            logger.warning("Signature mismatch for %s", matched.repository_url)
            return MatchResult(SIGNATURE_MISMATCH, matched, "url")

    return MatchResult(MATCHED, matched, "url")
