from __future__ import annotations

import json

import pytest

from compliance_scanner.ai_auditor import (
    MAX_CONTENT_CHARS,
    SYSTEM_PROMPT,
    SemanticAuditor,
    build_audit_prompt,
    parse_findings,
)
from compliance_scanner.errors import MalformedModelOutputError
from compliance_scanner.models import PageContent, SecurityHeaders, ThirdPartyScripts, TransportSecurity

from conftest import FakeGenerator, findings_payload, secure_transport, strong_headers


def _prompt(page: PageContent, scripts: ThirdPartyScripts | None = None) -> str:
    return build_audit_prompt(
        "https://shop.example/",
        page,
        strong_headers(),
        scripts or ThirdPartyScripts(),
        secure_transport(),
    )


def test_prompt_truncates_content():
    body = "a" * MAX_CONTENT_CHARS + "TAIL-MARKER"
    prompt = _prompt(PageContent(text=body))
    assert "a" * MAX_CONTENT_CHARS in prompt
    assert "TAIL-MARKER" not in prompt


def test_prompt_keeps_last_twenty_links():
    links = [f"https://shop.example/page-{i:02d}" for i in range(30)]
    prompt = _prompt(PageContent(text="x", links=links))
    assert "https://shop.example/page-09," not in prompt
    assert "https://shop.example/page-10" in prompt
    assert "https://shop.example/page-29" in prompt


def test_prompt_includes_evidence_and_contract():
    scripts = ThirdPartyScripts(detected=("Hotjar", "Intercom"))
    prompt = build_audit_prompt(
        "https://shop.example/",
        PageContent(text="Chat with our assistant"),
        SecurityHeaders(hsts_present=True, header_score=25),
        scripts,
        TransportSecurity(is_secure_scheme=True),
    )
    assert "URL: https://shop.example/" in prompt
    assert "Third-Party Scripts: Hotjar, Intercom" in prompt
    assert "CSP=no, HSTS=yes" in prompt
    assert "None found" in prompt
    for field in ("hasCookieBanner", "adaIssues", "riskScore", "issues"):
        assert f'"{field}"' in prompt


def test_parse_plain_json():
    findings = parse_findings(json.dumps(findings_payload(riskScore=42, issues=["No cookie banner"])))
    assert findings.base_risk_score == 42
    assert findings.issues == ["No cookie banner"]
    assert findings.has_cookie_banner is True


def test_parse_fenced_json():
    text = "```json\n" + json.dumps(findings_payload(adaIssues=True)) + "\n```"
    assert parse_findings(text).accessibility_issues is True


def test_json_wrapped_in_prose_is_rejected():
    text = "Sure! Here is my analysis: " + json.dumps(findings_payload(riskScore=10)) + " Hope this helps."
    with pytest.raises(MalformedModelOutputError):
        parse_findings(text)


def test_extra_fields_are_ignored():
    payload = findings_payload()
    payload["confidence"] = "high"
    assert parse_findings(json.dumps(payload)).trust_signals is True


@pytest.mark.parametrize(
    "text",
    [
        "",
        "I could not audit this site.",
        "[1, 2, 3]",
        "{not json at all}",
    ],
)
def test_unparseable_responses(text):
    with pytest.raises(MalformedModelOutputError):
        parse_findings(text)


def test_missing_field_is_rejected():
    payload = findings_payload()
    del payload["hasPrivacyPolicy"]
    with pytest.raises(MalformedModelOutputError, match="hasPrivacyPolicy"):
        parse_findings(json.dumps(payload))


def test_string_boolean_is_rejected():
    with pytest.raises(MalformedModelOutputError):
        parse_findings(json.dumps(findings_payload(hasCookieBanner="true")))


def test_string_score_is_rejected():
    with pytest.raises(MalformedModelOutputError):
        parse_findings(json.dumps(findings_payload(riskScore="40")))


@pytest.mark.parametrize("score", [-1, 100.5, 250])
def test_out_of_range_score_is_rejected(score):
    with pytest.raises(MalformedModelOutputError):
        parse_findings(json.dumps(findings_payload(riskScore=score)))


def test_issues_must_be_a_list_of_strings():
    with pytest.raises(MalformedModelOutputError):
        parse_findings(json.dumps(findings_payload(issues="none")))


def test_malformed_error_classification():
    with pytest.raises(MalformedModelOutputError) as exc_info:
        parse_findings("nope")
    failure = exc_info.value.to_failure()
    assert failure.kind == "malformed_response"
    assert failure.collaborator == "text-generation"


def test_auditor_calls_generator_once():
    generator = FakeGenerator(json.dumps(findings_payload(hasAiFeatures=True)))
    findings = SemanticAuditor(generator).audit(
        "https://shop.example/",
        PageContent(text="hello"),
        strong_headers(),
        ThirdPartyScripts(),
        secure_transport(),
    )
    assert findings.has_ai_features is True
    assert len(generator.calls) == 1
    system_prompt, user_prompt = generator.calls[0]
    assert system_prompt == SYSTEM_PROMPT
    assert "hello" in user_prompt
