"""Runtime settings, read from the environment (and a local ``.env``)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

__version__ = "0.1.0"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    f"(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 ComplianceScanner/{__version__}"
)

_HERE = Path(__file__).resolve()
_REPO_ROOT = _HERE.parents[1]


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _str_env(name: str) -> str | None:
    value = (os.getenv(name) or "").strip()
    return value or None


@dataclass
class ScannerSettings:
    """Scanner defaults. ``from_env`` reads overrides at call time."""

    gemini_api_key: str | None = None
    gemini_model: str = "gemini-3-flash-preview"
    llm_temperature: float = 0.3
    llm_max_tokens: int = 4096

    firecrawl_api_key: str | None = None

    timeout_ms: int = 20000
    max_html_kb: int = 512
    user_agent: str = DEFAULT_USER_AGENT

    known_domains_file: str | None = None
    tracker_catalog_file: str | None = None
    pii_detection: bool = False

    alert_threshold: int = 50
    drift_threshold: int = 10

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    @classmethod
    def from_env(cls) -> "ScannerSettings":
        timeout_ms = _int_env("COMPLIANCE_HTTP_TIMEOUT_MS", cls.timeout_ms)
        if timeout_ms <= 0:
            timeout_ms = cls.timeout_ms
        max_html_kb = _int_env("COMPLIANCE_MAX_HTML_KB", cls.max_html_kb)
        if max_html_kb <= 0:
            max_html_kb = cls.max_html_kb
        return cls(
            gemini_api_key=_str_env("GEMINI_API_KEY"),
            gemini_model=_str_env("GEMINI_MODEL") or cls.gemini_model,
            llm_temperature=_float_env("COMPLIANCE_LLM_TEMPERATURE", cls.llm_temperature),
            llm_max_tokens=_int_env("COMPLIANCE_LLM_MAX_TOKENS", cls.llm_max_tokens),
            firecrawl_api_key=_str_env("FIRECRAWL_API_KEY"),
            timeout_ms=timeout_ms,
            max_html_kb=max_html_kb,
            user_agent=_str_env("COMPLIANCE_USER_AGENT") or cls.user_agent,
            known_domains_file=_str_env("COMPLIANCE_KNOWN_DOMAINS_FILE"),
            tracker_catalog_file=_str_env("COMPLIANCE_TRACKER_CATALOG_FILE"),
            pii_detection=_bool_env("COMPLIANCE_PII_DETECTION", cls.pii_detection),
            alert_threshold=_int_env("COMPLIANCE_ALERT_THRESHOLD", cls.alert_threshold),
            drift_threshold=_int_env("COMPLIANCE_DRIFT_THRESHOLD", cls.drift_threshold),
        )


def load_settings(dotenv: bool = True) -> ScannerSettings:
    """Load settings, picking up the repo-root ``.env`` for local development."""
    if dotenv:
        load_dotenv(_REPO_ROOT / ".env", override=False)
    return ScannerSettings.from_env()


__all__ = ["DEFAULT_USER_AGENT", "ScannerSettings", "__version__", "load_settings"]
