"""Risk aggregation, cure-notice eligibility and score drift.

Everything here is a pure function of its inputs.
"""
from __future__ import annotations

from .config import ScannerSettings
from .models import (
    EvidenceBundle,
    PiiExposure,
    RiskAdjustment,
    RiskAssessment,
    ScanResult,
    ScoreDrift,
    SemanticFindings,
)

INSECURE_TRANSPORT_POINTS = 15
MIXED_CONTENT_POINTS = 10
WEAK_HEADERS_POINTS = 10
UNDISCLOSED_TRACKERS_POINTS = 10

WEAK_HEADER_SCORE = 50
TRACKER_DISCLOSURE_THRESHOLD = 5

_NON_CURABLE_PII_SEVERITIES = {"critical", "high"}


def _clamp_score(score: float) -> int:
    return max(0, min(100, int(score)))


def risk_adjustments(bundle: EvidenceBundle) -> list[RiskAdjustment]:
    """Additive penalties derived from the structural detectors."""
    out: list[RiskAdjustment] = []
    if not bundle.transport.is_secure_scheme:
        out.append(RiskAdjustment(key="insecureTransport", points=INSECURE_TRANSPORT_POINTS))
    if bundle.transport.mixed_content_detected:
        out.append(RiskAdjustment(key="mixedContent", points=MIXED_CONTENT_POINTS))
    if bundle.security_headers.header_score < WEAK_HEADER_SCORE:
        out.append(RiskAdjustment(key="weakSecurityHeaders", points=WEAK_HEADERS_POINTS))
    scripts = bundle.third_party_scripts
    if scripts.count > TRACKER_DISCLOSURE_THRESHOLD and not scripts.disclosure_mentions:
        out.append(RiskAdjustment(key="undisclosedTrackers", points=UNDISCLOSED_TRACKERS_POINTS))
    return out


def aggregate_risk(bundle: EvidenceBundle) -> RiskAssessment:
    """Combine the model's base score with the detector adjustments.

    The total is clamped to [0, 100] once, after every adjustment is summed.
    """
    findings = bundle.semantic_findings
    adjustments = risk_adjustments(bundle)
    total = findings.base_risk_score + sum(a.points for a in adjustments)

    return RiskAssessment(
        base_score=findings.base_risk_score,
        adjustments=tuple(adjustments),
        risk_score=_clamp_score(total),
        accessibility_issues=findings.accessibility_issues,
        ai_retention_issues=findings.has_ai_features and not findings.has_privacy_policy,
        privacy_issues=not findings.has_cookie_banner or not findings.has_privacy_policy,
        shadow_ai_issues=findings.has_ai_features and not findings.has_ai_disclosure,
    )


def has_curable_violations(findings: SemanticFindings) -> bool:
    """Gaps that can be fixed inside the cure period."""
    return (
        (findings.has_ai_features and not findings.has_ai_disclosure)
        or not findings.has_privacy_policy
        or not findings.has_cookie_banner
        or findings.accessibility_issues
    )


def has_non_curable_violations(findings: SemanticFindings, pii: PiiExposure | None = None) -> bool:
    """Violations with immediate liability, whatever else is wrong."""
    pii_exposed = pii is not None and pii.detected and pii.severity in _NON_CURABLE_PII_SEVERITIES
    return findings.social_scoring or findings.discrimination or pii_exposed


def determine_cure_eligibility(bundle: EvidenceBundle) -> bool:
    findings = bundle.semantic_findings
    return has_curable_violations(findings) and not has_non_curable_violations(findings, bundle.pii_exposure)


def compare_scores(previous: int | None, result: ScanResult) -> ScoreDrift:
    current = result.risk_score
    if previous is None:
        return ScoreDrift(previous=None, current=current, delta=0, direction="new")

    delta = current - previous
    if delta > 0:
        direction = "worse"
    elif delta < 0:
        direction = "better"
    else:
        direction = "unchanged"
    return ScoreDrift(previous=previous, current=current, delta=delta, direction=direction)


def should_notify(result: ScanResult, previous: int | None, settings: ScannerSettings | None = None) -> bool:
    """Whether a finished scan warrants a notification to the site owner.

    Technical failures and short-circuit baselines never notify.
    """
    if not result.success or result.known_compliant:
        return False
    settings = settings or ScannerSettings()
    drift = compare_scores(previous, result)
    if drift.direction == "new":
        return result.risk_score >= settings.alert_threshold
    return drift.delta >= settings.drift_threshold
