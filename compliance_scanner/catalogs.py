"""Heuristic data tables used by the detectors and the short-circuit.

These are plain data so operators can replace them with files (see
``COMPLIANCE_TRACKER_CATALOG_FILE`` / ``COMPLIANCE_KNOWN_DOMAINS_FILE``)
without touching the detection code.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Iterable, Mapping

logger = logging.getLogger(__name__)

# name -> case-insensitive patterns matched against raw markup
DEFAULT_TRACKER_SIGNATURES: dict[str, tuple[str, ...]] = {
    "Google Tag Manager": (r"googletagmanager\.com",),
    "Mixpanel": (r"mixpanel\.com",),
    "Segment": (r"segment\.(?:com|io)",),
    "Amplitude": (r"amplitude\.com",),
    "Heap Analytics": (r"heapanalytics\.com",),
    "FullStory": (r"fullstory\.com",),
    "Crazy Egg": (r"crazyegg\.com",),
    "Kissmetrics": (r"kissmetrics\.com",),
    "Hubspot": (r"hubspot\.com",),
    "Drift": (r"drift\.com",),
    "Zendesk": (r"zendesk\.com",),
    "LiveChat": (r"livechatinc\.com",),
    "Olark": (r"olark\.com",),
    "Google Analytics": (r"google-analytics\.com", r"gtag\.js", r"ga\.js"),
    "Facebook Pixel": (r"facebook\.net/en_us/fbevents\.js", r"connect\.facebook\.net"),
    "Hotjar": (r"hotjar\.com",),
    "Intercom": (r"intercom\.io",),
}

# Generic wording that counts as "tracking is disclosed somewhere on the page".
# Not matched per tracker.
DEFAULT_DISCLOSURE_KEYWORDS: tuple[str, ...] = (
    "google analytics",
    "facebook pixel",
    "tracking",
    "third-party",
)

DEFAULT_KNOWN_COMPLIANT_DOMAINS: frozenset[str] = frozenset(
    {
        "google.com",
        "amazon.com",
        "microsoft.com",
        "apple.com",
        "meta.com",
        "facebook.com",
        "stripe.com",
        "shopify.com",
        "notion.so",
        "figma.com",
        "slack.com",
        "zoom.us",
        "salesforce.com",
        "adobe.com",
        "netflix.com",
        "spotify.com",
        "github.com",
        "gitlab.com",
        "atlassian.net",
        "dropbox.com",
        "box.com",
        "hubspot.com",
        "mailchimp.com",
        "squarespace.com",
        "wix.com",
        "wordpress.com",
        "cloudflare.com",
        "oracle.com",
        "ibm.com",
        "paypal.com",
        "square.com",
    }
)


class TrackerCatalog:
    """Compiled tracker signature table."""

    def __init__(self, signatures: Mapping[str, Iterable[str]]):
        self._patterns: list[tuple[str, tuple[re.Pattern[str], ...]]] = []
        for name, patterns in signatures.items():
            compiled = tuple(re.compile(p, re.IGNORECASE) for p in patterns)
            if compiled:
                self._patterns.append((name, compiled))

    def __len__(self) -> int:
        return len(self._patterns)

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self._patterns]

    def match(self, markup: str) -> list[str]:
        found: list[str] = []
        for name, patterns in self._patterns:
            if name in found:
                continue
            if any(p.search(markup) for p in patterns):
                found.append(name)
        return found


def load_tracker_catalog(path: str | Path | None = None) -> TrackerCatalog:
    """Build the tracker catalog, from a JSON file when one is given.

    The file must hold an object mapping service name to a list of regexes
    (a single string is accepted for one pattern).
    """
    if not path:
        return TrackerCatalog(DEFAULT_TRACKER_SIGNATURES)

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Tracker catalog {path} must be a JSON object")

    signatures: dict[str, tuple[str, ...]] = {}
    for name, patterns in raw.items():
        if isinstance(patterns, str):
            patterns = [patterns]
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            raise ValueError(f"Tracker catalog entry {name!r} must be a string or list of strings")
        signatures[str(name)] = tuple(patterns)

    logger.info("Loaded %d tracker signatures from %s", len(signatures), path)
    return TrackerCatalog(signatures)


def normalize_domain(value: str) -> str:
    d = (value or "").strip().lower().rstrip(".")
    if d.startswith("www."):
        d = d[4:]
    return d


def load_known_compliant_domains(path: str | Path | None = None) -> frozenset[str]:
    """Allow-list of domains that skip the full audit.

    Files are one domain per line; blank lines and ``#`` comments are ignored.
    """
    if not path:
        return DEFAULT_KNOWN_COMPLIANT_DOMAINS

    domains: set[str] = set()
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        entry = line.split("#", 1)[0].strip()
        if entry:
            domains.add(normalize_domain(entry))

    logger.info("Loaded %d known-compliant domains from %s", len(domains), path)
    return frozenset(domains)
