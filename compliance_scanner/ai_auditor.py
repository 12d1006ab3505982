"""
Semantic compliance audit using a text-generation model.
This module builds the audit prompt from collected evidence and parses the
model's answer into a strictly validated ``SemanticFindings`` record.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from .errors import MalformedModelOutputError
from .llm import TextGenerator
from .models import PageContent, SecurityHeaders, SemanticFindings, ThirdPartyScripts, TransportSecurity

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 6000
MAX_LINKS = 20

SYSTEM_PROMPT = (
    "You are a website compliance auditor specializing in AI transparency law, "
    "ADA website accessibility, GDPR and CCPA. "
    "Return only one valid JSON object with no additional commentary."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


def build_audit_prompt(
    url: str,
    page: PageContent,
    security_headers: SecurityHeaders,
    scripts: ThirdPartyScripts,
    transport: TransportSecurity,
) -> str:
    """Build the user instruction for the audit."""
    content = (page.text or "")[:MAX_CONTENT_CHARS]
    links = page.links[-MAX_LINKS:]
    tracker_list = ", ".join(scripts.detected) or "none detected"

    return f"""Audit the following website for regulatory compliance risk.

## WEBSITE DATA

URL: {url}
Third-Party Scripts: {tracker_list}
Security Headers: CSP={_yes_no(security_headers.csp_present)}, HSTS={_yes_no(security_headers.hsts_present)}, X-Frame-Options={_yes_no(security_headers.frame_options_present)}, X-Content-Type-Options={_yes_no(security_headers.content_type_options_present)}
Transport: HTTPS={_yes_no(transport.is_secure_scheme)}, HTTP redirects to HTTPS={_yes_no(transport.insecure_redirects_to_secure)}, Mixed content={_yes_no(transport.mixed_content_detected)}

### Footer / Navigation Links:
{", ".join(links) or "None found"}

### Page Content:
{content or "Not available"}

## FRAMEWORKS TO CHECK

### 1. AI disclosure law (Texas HB 149 / TRAIGA)
- AI-Disclosure: any chatbot, assistant or AI-generated interaction must be disclosed clearly and BEFORE the user interacts with it ("You are interacting with an AI system" or equivalent).
- Healthcare, financial, legal and government sites get enhanced scrutiny: disclosure must be unmistakable.
- Social scoring: no reputation, ranking or profiling of people based on their behavior. There is NO cure period for this.
- Fairness: AI decision-making should show bias testing or mitigation; unmitigated discriminatory outcomes count as discrimination.

### 2. Privacy (GDPR / CCPA)
- Cookie consent: a banner or equivalent opt-in/opt-out mechanism before non-essential cookies.
- Privacy policy: present, reachable from the page, describes collection, use, retention, third-party sharing and user rights.
- Third-party disclosure: the detected third-party scripts ({tracker_list}) should be disclosed.
- Biometric data: explicit consent before any biometric collection.

### 3. Accessibility (ADA Title III / WCAG 2.1)
- Screen readers: ARIA labels, image alt text, semantic structure.
- Keyboard navigation: logical tab order, visible focus, no keyboard traps.
- Color contrast: at least 4.5:1 for body text; text resizable without loss of function.

### 4. Trust signals (risk reducers)
- Trust center or security portal, data processing agreement, SOC 2 / ISO 27001 certification, bug bounty program, thorough privacy documentation.

## RESPONSE FORMAT

Respond with ONLY valid JSON (no markdown, no code blocks), using exactly these fields:

{{
  "hasCookieBanner": <boolean>,
  "hasPrivacyPolicy": <boolean>,
  "hasAiFeatures": <boolean>,
  "hasAiDisclosure": <boolean>,
  "hasBiometricConsent": <boolean>,
  "socialScoring": <boolean>,
  "discrimination": <boolean>,
  "adaIssues": <boolean>,
  "trustSignals": <boolean>,
  "riskScore": <number 0-100, where 0 is fully compliant and 100 is critical>,
  "issues": ["<specific compliance gaps found>"]
}}"""


def _extract_json_object(text: str) -> dict[str, Any]:
    cleaned = _FENCE_RE.sub("", (text or "").strip()).strip()
    if not cleaned:
        raise MalformedModelOutputError("Model returned an empty response")

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedModelOutputError(f"Model response is not valid JSON: {e} ({cleaned[:200]!r})") from e

    if not isinstance(parsed, dict):
        raise MalformedModelOutputError(f"Model response is a JSON {type(parsed).__name__}, expected an object")
    return parsed


def parse_findings(text: str) -> SemanticFindings:
    """Parse model output into ``SemanticFindings``.

    Missing fields and wrong types are errors; nothing is defaulted.
    """
    raw = _extract_json_object(text)
    try:
        return SemanticFindings.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise MalformedModelOutputError(f"Model response violates the audit contract: {problems}") from e


class SemanticAuditor:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    def audit(
        self,
        url: str,
        page: PageContent,
        security_headers: SecurityHeaders,
        scripts: ThirdPartyScripts,
        transport: TransportSecurity,
    ) -> SemanticFindings:
        prompt = build_audit_prompt(url, page, security_headers, scripts, transport)
        text = self.generator.generate(SYSTEM_PROMPT, prompt)
        findings = parse_findings(text)
        logger.info(
            "Semantic audit for %s: base risk %s, %d issue(s)",
            url,
            findings.base_risk_score,
            len(findings.issues),
        )
        return findings
