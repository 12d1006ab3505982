from __future__ import annotations

import pytest

from compliance_scanner.config import ScannerSettings
from compliance_scanner.models import PiiExposure, ScanResult, SecurityHeaders, ThirdPartyScripts, TransportSecurity
from compliance_scanner.scoring import (
    aggregate_risk,
    compare_scores,
    determine_cure_eligibility,
    has_curable_violations,
    has_non_curable_violations,
    risk_adjustments,
    should_notify,
)

from conftest import make_bundle, make_findings


def _trackers(n: int) -> tuple[str, ...]:
    return tuple(f"Tracker {i}" for i in range(n))


def _result(score: int, *, success: bool = True, known_compliant: bool = False) -> ScanResult:
    return ScanResult(
        success=success,
        url="https://shop.example",
        risk_score=score,
        accessibility_issues=False,
        ai_retention_issues=False,
        privacy_issues=False,
        shadow_ai_issues=False,
        scan_data="{}",
        known_compliant=known_compliant,
    )


def test_clean_bundle_keeps_base_score():
    assessment = aggregate_risk(make_bundle(make_findings(riskScore=20)))
    assert assessment.adjustments == ()
    assert assessment.risk_score == 20
    assert assessment.base_score == 20


def test_all_adjustments_stack():
    bundle = make_bundle(
        make_findings(riskScore=40),
        headers=SecurityHeaders(header_score=25, csp_present=True),
        transport=TransportSecurity(is_secure_scheme=False, mixed_content_detected=True),
        scripts=ThirdPartyScripts(detected=_trackers(6), disclosure_mentions=False),
    )
    keys = [a.key for a in risk_adjustments(bundle)]
    assert keys == ["insecureTransport", "mixedContent", "weakSecurityHeaders", "undisclosedTrackers"]
    assert aggregate_risk(bundle).risk_score == 40 + 15 + 10 + 10 + 10


def test_score_is_clamped_at_100():
    bundle = make_bundle(
        make_findings(riskScore=95),
        headers=SecurityHeaders(),
        transport=TransportSecurity(),
    )
    assessment = aggregate_risk(bundle)
    assert assessment.base_score == 95
    assert assessment.risk_score == 100


def test_maximum_base_with_every_adjustment_clamps_to_100():
    bundle = make_bundle(
        make_findings(riskScore=100),
        headers=SecurityHeaders(),
        transport=TransportSecurity(mixed_content_detected=True),
        scripts=ThirdPartyScripts(detected=_trackers(8)),
    )
    assessment = aggregate_risk(bundle)
    assert len(assessment.adjustments) == 4
    assert assessment.risk_score == 100


def test_score_zero_stays_zero():
    assert aggregate_risk(make_bundle(make_findings(riskScore=0))).risk_score == 0


def test_fractional_base_score_is_truncated():
    assert aggregate_risk(make_bundle(make_findings(riskScore=33.9))).risk_score == 33


@pytest.mark.parametrize(
    "count,disclosed,expected",
    [
        (6, False, True),
        (6, True, False),
        (5, False, False),
        (0, False, False),
    ],
)
def test_undisclosed_tracker_penalty(count, disclosed, expected):
    bundle = make_bundle(scripts=ThirdPartyScripts(detected=_trackers(count), disclosure_mentions=disclosed))
    keys = {a.key for a in risk_adjustments(bundle)}
    assert ("undisclosedTrackers" in keys) is expected


@pytest.mark.parametrize("score,penalized", [(0, True), (25, True), (50, False), (100, False)])
def test_weak_header_threshold(score, penalized):
    bundle = make_bundle(headers=SecurityHeaders(header_score=score))
    keys = {a.key for a in risk_adjustments(bundle)}
    assert ("weakSecurityHeaders" in keys) is penalized


def test_mixed_content_penalty_without_insecure_scheme():
    transport = TransportSecurity(is_secure_scheme=True, mixed_content_detected=True)
    keys = [a.key for a in risk_adjustments(make_bundle(transport=transport))]
    assert keys == ["mixedContent"]


@pytest.mark.parametrize(
    "ai,policy,expected",
    [(True, False, True), (True, True, False), (False, False, False), (False, True, False)],
)
def test_ai_retention_issue(ai, policy, expected):
    findings = make_findings(hasAiFeatures=ai, hasPrivacyPolicy=policy)
    assert aggregate_risk(make_bundle(findings)).ai_retention_issues is expected


@pytest.mark.parametrize(
    "ai,disclosure,expected",
    [(True, False, True), (True, True, False), (False, False, False), (False, True, False)],
)
def test_shadow_ai_issue(ai, disclosure, expected):
    findings = make_findings(hasAiFeatures=ai, hasAiDisclosure=disclosure)
    assert aggregate_risk(make_bundle(findings)).shadow_ai_issues is expected


@pytest.mark.parametrize(
    "banner,policy,expected",
    [(True, True, False), (False, True, True), (True, False, True), (False, False, True)],
)
def test_privacy_issue(banner, policy, expected):
    findings = make_findings(hasCookieBanner=banner, hasPrivacyPolicy=policy)
    assert aggregate_risk(make_bundle(findings)).privacy_issues is expected


def test_accessibility_issue_is_passed_through():
    assert aggregate_risk(make_bundle(make_findings(adaIssues=True))).accessibility_issues is True


@pytest.mark.parametrize(
    "curable,non_curable,eligible",
    [
        (True, False, True),
        (True, True, False),
        (False, True, False),
        (False, False, False),
    ],
)
def test_cure_eligibility_matrix(curable, non_curable, eligible):
    findings = make_findings(
        hasPrivacyPolicy=not curable,
        socialScoring=non_curable,
    )
    assert has_curable_violations(findings) is curable
    assert has_non_curable_violations(findings) is non_curable
    assert determine_cure_eligibility(make_bundle(findings)) is eligible


def test_discrimination_is_non_curable():
    findings = make_findings(adaIssues=True, discrimination=True)
    assert determine_cure_eligibility(make_bundle(findings)) is False


def test_undisclosed_ai_is_curable():
    findings = make_findings(hasAiFeatures=True, hasAiDisclosure=False)
    assert determine_cure_eligibility(make_bundle(findings)) is True


def test_critical_pii_blocks_cure():
    findings = make_findings(hasCookieBanner=False)
    pii = PiiExposure(detected=True, types=("ssn",), severity="critical")
    assert determine_cure_eligibility(make_bundle(findings, pii=pii)) is False


def test_low_severity_pii_does_not_block_cure():
    findings = make_findings(hasCookieBanner=False)
    pii = PiiExposure(detected=True, types=("email",), severity="low")
    assert determine_cure_eligibility(make_bundle(findings, pii=pii)) is True


def test_compare_scores_directions():
    assert compare_scores(None, _result(40)).direction == "new"
    worse = compare_scores(30, _result(45))
    assert (worse.direction, worse.delta) == ("worse", 15)
    assert compare_scores(50, _result(45)).direction == "better"
    assert compare_scores(45, _result(45)).direction == "unchanged"


def test_should_notify_first_scan_uses_alert_threshold():
    settings = ScannerSettings(alert_threshold=50, drift_threshold=10)
    assert should_notify(_result(50), None, settings) is True
    assert should_notify(_result(49), None, settings) is False


def test_should_notify_on_drift():
    settings = ScannerSettings(alert_threshold=50, drift_threshold=10)
    assert should_notify(_result(40), 30, settings) is True
    assert should_notify(_result(39), 30, settings) is False
    assert should_notify(_result(20), 60, settings) is False


def test_failed_and_baseline_scans_never_notify():
    assert should_notify(_result(0, success=False), None) is False
    assert should_notify(_result(100, success=False), 0) is False
    assert should_notify(_result(90, known_compliant=True), None) is False
