from __future__ import annotations

import logging
from typing import Callable
from urllib.parse import urlparse, urlunparse

import httpx

from .config import DEFAULT_USER_AGENT
from .models import TransportSecurity

logger = logging.getLogger(__name__)

_PERMANENT_REDIRECTS = {301, 308}

# (url, html) -> evidence
TransportValidatorFn = Callable[[str, str], TransportSecurity]

_INSECURE_REFERENCES = (
    'src="http://',
    "src='http://",
    'href="http://',
)


def has_mixed_content(html: str) -> bool:
    """Naive substring check for http:// resource references in markup."""
    h = (html or "").lower()
    return any(ref in h for ref in _INSECURE_REFERENCES)


def probe_https_enforcement(url: str, timeout_ms: int = 20000, user_agent: str = DEFAULT_USER_AGENT) -> bool:
    """Ask the plain-http listener for the page and look for a permanent redirect to https.

    No http listener at all (connect refused, timeout) counts as enforced.
    """
    parsed = urlparse(url)
    insecure_url = urlunparse(parsed._replace(scheme="http"))
    timeout = timeout_ms / 1000
    try:
        with httpx.Client(timeout=timeout, follow_redirects=False) as client:
            res = client.head(insecure_url, headers={"user-agent": user_agent})
    except httpx.TransportError as e:
        logger.info("No plain-http listener for %s (%s); treating https as enforced", insecure_url, e)
        return True

    if res.status_code not in _PERMANENT_REDIRECTS:
        return False
    location = res.headers.get("location", "")
    return location.strip().lower().startswith("https://")


def validate_transport(
    url: str,
    html: str,
    timeout_ms: int = 20000,
    user_agent: str = DEFAULT_USER_AGENT,
) -> TransportSecurity:
    """Scheme, http->https enforcement and mixed-content signals for the target.

    Certificate validity is not checked here: reaching this point over https
    means the fetch already succeeded, which is taken as a valid certificate.
    """
    try:
        is_secure = urlparse(url).scheme == "https"
        enforced = probe_https_enforcement(url, timeout_ms, user_agent) if is_secure else False
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        logger.warning("Transport validation failed for %s: %s", url, e)
        return TransportSecurity()

    return TransportSecurity(
        is_secure_scheme=is_secure,
        insecure_redirects_to_secure=enforced,
        certificate_assumed_valid=is_secure,
        mixed_content_detected=is_secure and has_mixed_content(html),
    )
