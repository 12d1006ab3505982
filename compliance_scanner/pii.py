from __future__ import annotations

import re
from typing import Protocol

from .models import PiiExposure, Severity

_EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
_PHONE_RE = re.compile(r"(?<!\d)(?:\+?1[ .-]?)?\(?\d{3}\)?[ .-]\d{3}[ .-]\d{4}(?!\d)")
_SSN_RE = re.compile(r"(?<!\d)(?!000|666|9\d\d)\d{3}-(?!00)\d{2}-(?!0000)\d{4}(?!\d)")
_CARD_RE = re.compile(r"(?<!\d)(?:\d[ -]?){12,18}\d(?!\d)")
_ACCESS_KEY_RE = re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b")

_SEVERITY_BY_TYPE: dict[str, Severity] = {
    "ssn": "critical",
    "credit_card": "critical",
    "access_key": "high",
    "phone": "medium",
    "email": "low",
}
_SEVERITY_ORDER: tuple[Severity, ...] = ("low", "medium", "high", "critical")


class PiiDetector(Protocol):
    def detect(self, text: str) -> PiiExposure: ...


def _luhn_ok(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def _has_card_number(text: str) -> bool:
    for m in _CARD_RE.finditer(text):
        digits = re.sub(r"\D", "", m.group(0))
        if 13 <= len(digits) <= 19 and _luhn_ok(digits):
            return True
    return False


class PatternPiiDetector:
    """Regex-based detector for identifiers exposed in page text."""

    def detect(self, text: str) -> PiiExposure:
        if not text:
            return PiiExposure()

        found: list[str] = []
        if _SSN_RE.search(text):
            found.append("ssn")
        if _has_card_number(text):
            found.append("credit_card")
        if _ACCESS_KEY_RE.search(text):
            found.append("access_key")
        if _PHONE_RE.search(text):
            found.append("phone")
        if _EMAIL_RE.search(text):
            found.append("email")

        if not found:
            return PiiExposure()

        severity = max((_SEVERITY_BY_TYPE[t] for t in found), key=_SEVERITY_ORDER.index)
        return PiiExposure(detected=True, types=tuple(found), severity=severity)
