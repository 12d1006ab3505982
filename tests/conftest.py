from __future__ import annotations

import json
from typing import Any

import pytest

from compliance_scanner.models import (
    EvidenceBundle,
    PageContent,
    PiiExposure,
    SecurityHeaders,
    SemanticFindings,
    ThirdPartyScripts,
    TransportSecurity,
)


def findings_payload(**overrides: Any) -> dict[str, Any]:
    """A clean, fully compliant model answer; override individual wire fields."""
    payload: dict[str, Any] = {
        "hasCookieBanner": True,
        "hasPrivacyPolicy": True,
        "hasAiFeatures": False,
        "hasAiDisclosure": False,
        "hasBiometricConsent": False,
        "socialScoring": False,
        "discrimination": False,
        "adaIssues": False,
        "trustSignals": True,
        "riskScore": 20,
        "issues": [],
    }
    payload.update(overrides)
    return payload


def make_findings(**overrides: Any) -> SemanticFindings:
    return SemanticFindings.model_validate(findings_payload(**overrides))


def strong_headers() -> SecurityHeaders:
    return SecurityHeaders(
        csp_present=True,
        frame_options_present=True,
        hsts_present=True,
        content_type_options_present=True,
        header_score=100,
    )


def secure_transport() -> TransportSecurity:
    return TransportSecurity(
        is_secure_scheme=True,
        insecure_redirects_to_secure=True,
        certificate_assumed_valid=True,
        mixed_content_detected=False,
    )


def make_bundle(
    findings: SemanticFindings | None = None,
    *,
    headers: SecurityHeaders | None = None,
    transport: TransportSecurity | None = None,
    scripts: ThirdPartyScripts | None = None,
    pii: PiiExposure | None = None,
) -> EvidenceBundle:
    return EvidenceBundle(
        security_headers=headers or strong_headers(),
        third_party_scripts=scripts or ThirdPartyScripts(),
        transport=transport or secure_transport(),
        semantic_findings=findings or make_findings(),
        pii_exposure=pii,
    )


class FakeGenerator:
    """In-process stand-in for the text-generation service."""

    def __init__(self, reply: str | Exception | None = None):
        self.reply = json.dumps(findings_payload()) if reply is None else reply
        self.calls: list[tuple[str, str]] = []

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class FakeFetcher:
    def __init__(self, page: PageContent | Exception | None = None):
        self.page = page if page is not None else PageContent(
            text="Welcome. Read our privacy policy.",
            links=["https://shop.example/privacy"],
            html="<html><body><p>Welcome.</p></body></html>",
        )
        self.calls: list[str] = []

    def fetch(self, url: str) -> PageContent:
        self.calls.append(url)
        if isinstance(self.page, Exception):
            raise self.page
        return self.page


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()
