from __future__ import annotations

import json
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable
from urllib.parse import urlparse, urlunparse

from .ai_auditor import SemanticAuditor
from .catalogs import TrackerCatalog, load_known_compliant_domains, load_tracker_catalog, normalize_domain
from .config import ScannerSettings, load_settings
from .errors import (
    InvalidTargetError,
    ModelErrorCategory,
    ScanError,
    TextGenerationError,
    model_error_reason,
)
from .fetcher import ContentFetcher, build_content_fetcher
from .headers import HeaderInspectorFn, inspect_security_headers
from .llm import TextGenerator, build_text_generator
from .models import (
    EvidenceBundle,
    FailureInfo,
    PageContent,
    PiiExposure,
    ScanResult,
    ScanTarget,
    SecurityHeaders,
    ThirdPartyScripts,
    TransportSecurity,
)
from .pii import PatternPiiDetector, PiiDetector
from .scoring import aggregate_risk, determine_cure_eligibility
from .scripts import detect_third_party_scripts
from .transport import TransportValidatorFn, validate_transport

logger = logging.getLogger(__name__)

KNOWN_COMPLIANT_SCORE = 15
FAILED_SCAN_SCORE = 0
TECHNICAL_ERROR_NOTICE = "This is a technical error, not a compliance issue with the target site."

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z\d+.-]*://")
_HOST_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")


def _registrable_domain_guess(hostname: str) -> str:
    parts = [p for p in hostname.split(".") if p]
    if len(parts) <= 2:
        return hostname
    return ".".join(parts[-2:])


def normalize_target(raw: str) -> ScanTarget:
    """Coerce user input into an absolute http(s) URL; bare domains get https."""
    value = (raw or "").strip()
    if not value:
        raise InvalidTargetError("Please provide a URL.")

    if not _SCHEME_RE.match(value):
        value = "https://" + value

    try:
        parsed = urlparse(value)
        hostname = (parsed.hostname or "").lower()
        _ = parsed.port  # raises on a malformed port
    except ValueError as e:
        raise InvalidTargetError(f"Invalid URL format: {raw!r}") from e

    if parsed.scheme not in ("http", "https"):
        raise InvalidTargetError(f"Invalid URL format: {raw!r} (use an http(s) website URL)")
    labels = hostname.rstrip(".").split(".")
    if len(labels) < 2 or not all(_HOST_LABEL_RE.match(label) for label in labels):
        raise InvalidTargetError(f"Invalid URL format: {raw!r}")

    url = urlunparse(parsed._replace(fragment=""))
    host = normalize_domain(hostname)
    return ScanTarget(url=url, hostname=hostname, domain=_registrable_domain_guess(host))


def is_known_compliant(hostname: str, domains: Iterable[str]) -> bool:
    host = normalize_domain(hostname)
    return any(host == d or host.endswith("." + d) for d in domains)


def _dump(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def known_compliant_result(target: ScanTarget) -> ScanResult:
    """Fixed low-risk baseline for allow-listed domains. Not an audit."""
    return ScanResult(
        success=True,
        url=target.url,
        domain=target.domain,
        risk_score=KNOWN_COMPLIANT_SCORE,
        has_cookie_banner=True,
        has_privacy_policy=True,
        has_ai_features=False,
        has_ai_disclosure=False,
        accessibility_issues=False,
        ai_retention_issues=False,
        privacy_issues=False,
        shadow_ai_issues=False,
        detected_issues=(),
        cure_notice_eligible=False,
        security_headers=SecurityHeaders(
            csp_present=True,
            frame_options_present=True,
            hsts_present=True,
            content_type_options_present=True,
            header_score=100,
        ),
        third_party_scripts=ThirdPartyScripts(),
        transport=TransportSecurity(
            is_secure_scheme=True,
            insecure_redirects_to_secure=True,
            certificate_assumed_valid=True,
            mixed_content_detected=False,
        ),
        scan_data=_dump(
            {
                "note": "Known compliant domain - baseline assessment",
                "domain": target.domain,
                "url": target.url,
            }
        ),
        known_compliant=True,
    )


def _failure_issues(failure: FailureInfo) -> list[str]:
    if failure.kind == "input_error":
        return [failure.detail, "Correct the URL and run the scan again."]

    if failure.category == ModelErrorCategory.NOT_CONFIGURED.value:
        return [
            f"TECHNICAL ERROR: {failure.detail}",
            "Set GEMINI_API_KEY in the scanner environment",
            TECHNICAL_ERROR_NOTICE,
        ]
    return [f"Scan failed: {failure.detail}", TECHNICAL_ERROR_NOTICE]


def failed_result(url: str, failure: FailureInfo, domain: str | None = None) -> ScanResult:
    """Failed scan shaped like a real one, with every issue flag raised so it reads as 're-scan needed'."""
    return ScanResult(
        success=False,
        url=url,
        domain=domain,
        risk_score=FAILED_SCAN_SCORE,
        accessibility_issues=True,
        ai_retention_issues=True,
        privacy_issues=True,
        shadow_ai_issues=True,
        detected_issues=tuple(_failure_issues(failure)),
        cure_notice_eligible=False,
        scan_data=_dump(
            {
                "error": True,
                "errorType": failure.kind,
                "collaborator": failure.collaborator,
                "category": failure.category,
                "errorMessage": failure.detail,
                "url": url,
            }
        ),
        failure=failure,
    )


class ScanOrchestrator:
    """Runs one compliance scan per ``scan()`` call; holds no per-scan state."""

    def __init__(
        self,
        fetcher: ContentFetcher,
        generator: TextGenerator | None,
        *,
        settings: ScannerSettings | None = None,
        known_domains: Iterable[str] | None = None,
        tracker_catalog: TrackerCatalog | None = None,
        pii_detector: PiiDetector | None = None,
        header_inspector: HeaderInspectorFn | None = None,
        transport_validator: TransportValidatorFn | None = None,
    ):
        self.settings = settings or ScannerSettings()
        self.fetcher = fetcher
        self.generator = generator
        self.known_domains = frozenset(
            normalize_domain(d)
            for d in (known_domains if known_domains is not None else load_known_compliant_domains(self.settings.known_domains_file))
        )
        if tracker_catalog is None:
            tracker_catalog = load_tracker_catalog(self.settings.tracker_catalog_file)
        self.tracker_catalog = tracker_catalog
        self.pii_detector = pii_detector
        self.header_inspector = header_inspector or self._inspect_headers
        self.transport_validator = transport_validator or self._validate_transport

    @classmethod
    def from_settings(cls, settings: ScannerSettings) -> "ScanOrchestrator":
        return cls(
            build_content_fetcher(settings),
            build_text_generator(settings),
            settings=settings,
            pii_detector=PatternPiiDetector() if settings.pii_detection else None,
        )

    def _inspect_headers(self, url: str) -> SecurityHeaders:
        return inspect_security_headers(url, self.settings.timeout_ms, self.settings.user_agent)

    def _validate_transport(self, url: str, html: str) -> TransportSecurity:
        return validate_transport(url, html, self.settings.timeout_ms, self.settings.user_agent)

    def _collect_headers(self, url: str) -> SecurityHeaders:
        try:
            return self.header_inspector(url)
        except Exception:
            logger.warning("Security header inspection failed for %s; treating headers as absent", url, exc_info=True)
            return SecurityHeaders()

    def _collect_transport(self, url: str, html: str) -> TransportSecurity:
        try:
            return self.transport_validator(url, html)
        except Exception:
            logger.warning("Transport validation failed for %s; treating transport as insecure", url, exc_info=True)
            return TransportSecurity()

    def _detect_pii(self, text: str) -> PiiExposure | None:
        if self.pii_detector is None:
            return None
        try:
            return self.pii_detector.detect(text)
        except Exception:
            logger.warning("PII detection failed; treating as not detected", exc_info=True)
            return None

    def scan(self, raw_url: str) -> ScanResult:
        """Scan one URL. Never raises: failures come back as ``success=False`` results."""
        try:
            target = normalize_target(raw_url)
        except InvalidTargetError as e:
            logger.info("Rejected scan target %r: %s", raw_url, e.detail)
            return failed_result((raw_url or "").strip(), e.to_failure())

        if is_known_compliant(target.hostname, self.known_domains):
            logger.info("Known compliant domain %s, returning baseline score", target.domain)
            return known_compliant_result(target)

        try:
            return self._audit(target)
        except ScanError as e:
            failure = e.to_failure()
            logger.error(
                "Scan of %s failed [%s/%s/%s]: %s",
                target.url,
                failure.kind,
                failure.collaborator,
                failure.category,
                failure.detail,
            )
            return failed_result(target.url, failure, target.domain)
        except Exception as e:
            logger.exception("Unexpected error while scanning %s", target.url)
            failure = FailureInfo(kind="unclassified", detail=f"{type(e).__name__}: {e}")
            return failed_result(target.url, failure, target.domain)

    def _audit(self, target: ScanTarget) -> ScanResult:
        if self.generator is None:
            raise TextGenerationError(
                model_error_reason(ModelErrorCategory.NOT_CONFIGURED),
                category=ModelErrorCategory.NOT_CONFIGURED,
            )

        timings: dict[str, int] = {}

        def timed(name: str, fn: Callable[[], Any]) -> Any:
            start = time.perf_counter()
            try:
                return fn()
            finally:
                timings[name] = int((time.perf_counter() - start) * 1000)

        page: PageContent = timed("fetch", lambda: self.fetcher.fetch(target.url))

        with ThreadPoolExecutor(max_workers=4) as pool:
            headers_f = pool.submit(timed, "headers", lambda: self._collect_headers(target.url))
            transport_f = pool.submit(timed, "transport", lambda: self._collect_transport(target.url, page.html))
            scripts_f = pool.submit(
                timed, "scripts", lambda: detect_third_party_scripts(page.html, page.text, self.tracker_catalog)
            )
            pii_f = pool.submit(timed, "pii", lambda: self._detect_pii(page.text))

            security_headers: SecurityHeaders = headers_f.result()
            transport: TransportSecurity = transport_f.result()
            scripts: ThirdPartyScripts = scripts_f.result()
            pii: PiiExposure | None = pii_f.result()

        auditor = SemanticAuditor(self.generator)
        findings = timed(
            "semantic",
            lambda: auditor.audit(target.url, page, security_headers, scripts, transport),
        )

        bundle = EvidenceBundle(
            security_headers=security_headers,
            third_party_scripts=scripts,
            transport=transport,
            semantic_findings=findings,
            pii_exposure=pii,
        )
        assessment = aggregate_risk(bundle)
        cure_eligible = determine_cure_eligibility(bundle)
        logger.debug("Scan timings for %s: %s", target.url, timings)

        return ScanResult(
            success=True,
            url=target.url,
            domain=target.domain,
            risk_score=assessment.risk_score,
            has_cookie_banner=findings.has_cookie_banner,
            has_privacy_policy=findings.has_privacy_policy,
            has_ai_features=findings.has_ai_features,
            has_ai_disclosure=findings.has_ai_disclosure,
            accessibility_issues=assessment.accessibility_issues,
            ai_retention_issues=assessment.ai_retention_issues,
            privacy_issues=assessment.privacy_issues,
            shadow_ai_issues=assessment.shadow_ai_issues,
            detected_issues=tuple(findings.issues),
            cure_notice_eligible=cure_eligible,
            security_headers=security_headers,
            third_party_scripts=scripts,
            transport=transport,
            pii_exposure=pii,
            scan_data=_dump(
                {
                    "url": target.url,
                    "evidence": bundle.model_dump(mode="json", by_alias=False),
                    "assessment": assessment.model_dump(mode="json"),
                    "cureNoticeEligible": cure_eligible,
                }
            ),
        )


def scan_url(raw_url: str, settings: ScannerSettings | None = None) -> ScanResult:
    """One-shot helper: builds a fresh orchestrator, then scans.

    Every call re-reads ``.env`` and the override files. Long-running callers
    should build one ``ScanOrchestrator.from_settings(...)`` and reuse it.
    Unlike ``scan()``, this raises ``OSError`` / ``ValueError`` when an
    override file is missing or malformed.
    """
    return ScanOrchestrator.from_settings(settings or load_settings()).scan(raw_url)
