from __future__ import annotations

import logging
from typing import Callable, Mapping

import httpx

from .config import DEFAULT_USER_AGENT
from .models import SecurityHeaders

logger = logging.getLogger(__name__)

POINTS_PER_HEADER = 25

HeaderInspectorFn = Callable[[str], SecurityHeaders]


def score_security_headers(headers: Mapping[str, str]) -> SecurityHeaders:
    """Presence of the four tracked response headers, 25 points each."""
    present = {k.lower() for k in headers.keys()}

    csp = "content-security-policy" in present or "content-security-policy-report-only" in present
    frame_options = "x-frame-options" in present
    hsts = "strict-transport-security" in present
    content_type_options = "x-content-type-options" in present

    count = sum((csp, frame_options, hsts, content_type_options))
    return SecurityHeaders(
        csp_present=csp,
        frame_options_present=frame_options,
        hsts_present=hsts,
        content_type_options_present=content_type_options,
        header_score=POINTS_PER_HEADER * count,
    )


def inspect_security_headers(
    url: str,
    timeout_ms: int = 20000,
    user_agent: str = DEFAULT_USER_AGENT,
) -> SecurityHeaders:
    """HEAD the target and score its security headers.

    A network failure is not fatal: it yields the all-absent result.
    """
    timeout = timeout_ms / 1000
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            res = client.head(url, headers={"user-agent": user_agent})
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Security header check failed for %s: %s", url, e)
        return SecurityHeaders()

    return score_security_headers(res.headers)
