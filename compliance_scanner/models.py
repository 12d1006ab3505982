from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high", "critical"]
FailureKind = Literal["input_error", "collaborator_unavailable", "malformed_response", "unclassified"]
DriftDirection = Literal["new", "worse", "better", "unchanged"]


class ScanTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    hostname: str
    # Best-effort guess (last two labels); no public-suffix list.
    domain: str


class PageContent(BaseModel):
    """What the content fetcher hands back for one page."""

    text: str
    links: list[str] = Field(default_factory=list)
    html: str = ""


class SecurityHeaders(BaseModel):
    model_config = ConfigDict(frozen=True)

    csp_present: bool = False
    frame_options_present: bool = False
    hsts_present: bool = False
    content_type_options_present: bool = False
    header_score: int = Field(0, ge=0, le=100)


class ThirdPartyScripts(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Catalog order, de-duplicated.
    detected: tuple[str, ...] = ()
    disclosure_mentions: bool = False

    @property
    def count(self) -> int:
        return len(self.detected)

    @property
    def google_analytics(self) -> bool:
        return "Google Analytics" in self.detected

    @property
    def facebook_pixel(self) -> bool:
        return "Facebook Pixel" in self.detected

    @property
    def hotjar(self) -> bool:
        return "Hotjar" in self.detected

    @property
    def intercom(self) -> bool:
        return "Intercom" in self.detected


class TransportSecurity(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_secure_scheme: bool = False
    insecure_redirects_to_secure: bool = False
    # Inferred from a successful https retrieval, not a chain check.
    certificate_assumed_valid: bool = False
    mixed_content_detected: bool = False


class SemanticFindings(BaseModel):
    """Strictly-typed view of the JSON object the model service must return.

    Every field is required and no coercion is applied: a string "true" or a
    missing key is a validation error, never a silent ``False``.
    """

    model_config = ConfigDict(frozen=True, strict=True, populate_by_name=True, extra="ignore")

    has_cookie_banner: bool = Field(alias="hasCookieBanner")
    has_privacy_policy: bool = Field(alias="hasPrivacyPolicy")
    has_ai_features: bool = Field(alias="hasAiFeatures")
    has_ai_disclosure: bool = Field(alias="hasAiDisclosure")
    has_biometric_consent: bool = Field(alias="hasBiometricConsent")
    social_scoring: bool = Field(alias="socialScoring")
    discrimination: bool = Field(alias="discrimination")
    accessibility_issues: bool = Field(alias="adaIssues")
    trust_signals: bool = Field(alias="trustSignals")
    base_risk_score: float = Field(alias="riskScore", ge=0, le=100)
    issues: list[str] = Field(alias="issues")


class PiiExposure(BaseModel):
    model_config = ConfigDict(frozen=True)

    detected: bool = False
    types: tuple[str, ...] = ()
    severity: Severity = "low"


class EvidenceBundle(BaseModel):
    model_config = ConfigDict(frozen=True)

    security_headers: SecurityHeaders
    third_party_scripts: ThirdPartyScripts
    transport: TransportSecurity
    semantic_findings: SemanticFindings
    pii_exposure: PiiExposure | None = None


class RiskAdjustment(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    points: int


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_score: float
    adjustments: tuple[RiskAdjustment, ...] = ()
    risk_score: int = Field(ge=0, le=100)
    accessibility_issues: bool
    ai_retention_issues: bool
    privacy_issues: bool
    shadow_ai_issues: bool


class FailureInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    collaborator: str | None = None
    category: str | None = None
    detail: str


class ScanResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    url: str
    domain: str | None = None
    risk_score: int = Field(ge=0, le=100)

    has_cookie_banner: bool = False
    has_privacy_policy: bool = False
    has_ai_features: bool = False
    has_ai_disclosure: bool = False

    accessibility_issues: bool
    ai_retention_issues: bool
    privacy_issues: bool
    shadow_ai_issues: bool

    detected_issues: tuple[str, ...] = ()
    cure_notice_eligible: bool = False

    security_headers: SecurityHeaders | None = None
    third_party_scripts: ThirdPartyScripts | None = None
    transport: TransportSecurity | None = None
    pii_exposure: PiiExposure | None = None

    # Deterministic JSON snapshot for audit/debugging.
    scan_data: str
    failure: FailureInfo | None = None
    known_compliant: bool = False


class ScoreDrift(BaseModel):
    model_config = ConfigDict(frozen=True)

    previous: int | None
    current: int
    delta: int
    direction: DriftDirection
