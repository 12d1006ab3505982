from __future__ import annotations

from typing import Iterable

from .catalogs import DEFAULT_DISCLOSURE_KEYWORDS, TrackerCatalog, load_tracker_catalog
from .models import ThirdPartyScripts

_DEFAULT_CATALOG: TrackerCatalog | None = None


def _default_catalog() -> TrackerCatalog:
    global _DEFAULT_CATALOG
    if _DEFAULT_CATALOG is None:
        _DEFAULT_CATALOG = load_tracker_catalog()
    return _DEFAULT_CATALOG


def mentions_tracking(text: str, keywords: Iterable[str] = DEFAULT_DISCLOSURE_KEYWORDS) -> bool:
    """Whether page text talks about tracking / third parties at all.

    A single generic keyword anywhere on the page counts.
    """
    lowered = (text or "").lower()
    return any(k in lowered for k in keywords)


def detect_third_party_scripts(
    html: str,
    text: str,
    catalog: TrackerCatalog | None = None,
    disclosure_keywords: Iterable[str] = DEFAULT_DISCLOSURE_KEYWORDS,
) -> ThirdPartyScripts:
    if catalog is None:
        catalog = _default_catalog()
    return ThirdPartyScripts(
        detected=tuple(catalog.match(html or "")),
        disclosure_mentions=mentions_tracking(text, disclosure_keywords),
    )
