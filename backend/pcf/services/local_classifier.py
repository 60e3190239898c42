"""
Extension-side preliminary bot/trust judgement.

This runs before anything leaves the browser; the backend accepts its output
as-is. Keeping the judgement local means the backend receives a hashed
fingerprint and a verdict instead of the raw collected data.
"""
import hashlib
import json
import re
from typing import Any, Mapping, Optional, Union

from pcf.schemas.fingerprint import RawFingerprint
from pcf.schemas.pcf import LocalClassification, SecuritySignal
from pcf.services.security_signal import is_agent_outdated, is_outdated_browser, is_outdated_os

AGENT_VERSION = "v1.0.0"

START_TRUST = 80
STRONG_SIGNAL_PENALTY = 60
WEAK_SIGNAL_PENALTY = 10
BOT_TRUST_CEILING = 30
MAX_REASONABLE_CPUS = 32

BOT_UA_KEYWORDS = (
    "headless",
    "bot",
    "crawler",
    "spider",
    "phantomjs",
    "selenium",
    "puppeteer",
    "playwright",
    "slimerjs",
)

_DNT_ON = {"1", "yes", "true"}


def _as_raw(raw_fp: Union[RawFingerprint, Mapping[str, Any], None]) -> RawFingerprint:
    if raw_fp is None:
        return RawFingerprint()
    if isinstance(raw_fp, RawFingerprint):
        return raw_fp
    return RawFingerprint.model_validate(dict(raw_fp))


def _as_signal(signal: Union[SecuritySignal, Mapping[str, Any], None]) -> SecuritySignal:
    if signal is None:
        return SecuritySignal()
    if isinstance(signal, SecuritySignal):
        return signal
    return SecuritySignal.model_validate(dict(signal))


def browser_major_from_ua(ua: Optional[str]) -> Optional[int]:
    if not isinstance(ua, str):
        return None
    m = re.search(r"Chrome/(\d+)", ua)
    return int(m.group(1)) if m else None


def os_label_from_ua(ua: Optional[str]) -> str:
    low = (ua or "").lower()
    if "windows nt 11" in low:
        return "Windows 11"
    if "windows nt 10" in low:
        return "Windows 10"
    if "windows nt 6.1" in low:
        return "Windows 7"
    if "windows nt 6.0" in low:
        return "Windows Vista"
    if "windows nt 5.1" in low:
        return "Windows XP"
    if "mac os x" in low:
        m = re.search(r"mac os x (\d+)_(\d+)", low)
        if m:
            return f"macOS {m.group(1)}.{m.group(2)}"
        return "macOS (unknown)"
    if "linux" in low:
        return "Linux"
    return "Unknown OS"


def build_security_signal(raw_fp: Union[RawFingerprint, Mapping[str, Any], None]) -> SecuritySignal:
    """Reduce the raw fingerprint to browser major, OS label and agent version."""
    raw = _as_raw(raw_fp)
    ua = raw.browser.userAgent
    return SecuritySignal(
        browser_major=browser_major_from_ua(ua),
        os_major=os_label_from_ua(ua),
        security_version=AGENT_VERSION,
    )


def compute_safe_fp(domain_salt: Optional[str], raw_fp: Union[RawFingerprint, Mapping[str, Any], None]) -> str:
    """Salted SHA-256 of the raw fingerprint; only this hash ever leaves the browser."""
    raw = _as_raw(raw_fp)
    raw_string = json.dumps(raw.model_dump(mode="json", exclude_unset=True), separators=(",", ":"), ensure_ascii=False)
    salted = f"{domain_salt or ''}|{raw_string}"
    return "fp-" + hashlib.sha256(salted.encode("utf-8")).hexdigest()[:32]


def _has_bot_keyword(ua: Optional[str]) -> bool:
    low = (ua or "").lower()
    return any(k in low for k in BOT_UA_KEYWORDS)


def _zero_sized_window(raw: RawFingerprint) -> bool:
    w = raw.window
    return w.innerWidth == 0 or w.innerHeight == 0 or w.outerWidth == 0 or w.outerHeight == 0


def _all_apis_blocked(raw: RawFingerprint) -> bool:
    a = raw.apis
    probes = [a.localStorage, a.sessionStorage, a.indexedDB, a.mediaDevices]
    return all(p is False for p in probes)


def _any_storage_unavailable(raw: RawFingerprint) -> bool:
    a = raw.apis
    return any(p is False for p in (a.localStorage, a.sessionStorage, a.indexedDB))


def strong_bot_signals(raw: RawFingerprint) -> list[str]:
    signals = []
    if raw.automation.webdriver:
        signals.append("webdriver")
    if _has_bot_keyword(raw.browser.userAgent):
        signals.append("bot_user_agent")
    if _zero_sized_window(raw):
        signals.append("zero_window")
    if _all_apis_blocked(raw):
        signals.append("apis_blocked")
    return signals


def weak_signals(raw: RawFingerprint, signal: SecuritySignal) -> list[str]:
    found = []
    if not raw.browser.languages:
        found.append("no_languages")
    dnt = raw.privacy.doNotTrack
    if dnt is True or (isinstance(dnt, str) and dnt.strip().lower() in _DNT_ON):
        found.append("do_not_track")
    cpus = raw.device.hardwareConcurrency
    if cpus is None or cpus >= MAX_REASONABLE_CPUS:
        found.append("cpu_count")
    if _any_storage_unavailable(raw):
        found.append("storage_unavailable")
    if is_outdated_browser(signal.browser_major):
        found.append("outdated_browser")
    if is_outdated_os(signal.os_major):
        found.append("legacy_os")
    if is_agent_outdated(signal.security_version):
        found.append("agent_outdated")
    return found


def classify(
    raw_fp: Union[RawFingerprint, Mapping[str, Any], None],
    security_signal: Union[SecuritySignal, Mapping[str, Any], None] = None,
) -> LocalClassification:
    raw = _as_raw(raw_fp)
    signal = _as_signal(security_signal) if security_signal is not None else build_security_signal(raw)

    trust_score = START_TRUST
    is_bot = False
    if strong_bot_signals(raw):
        trust_score -= STRONG_SIGNAL_PENALTY
        is_bot = True
    else:
        trust_score -= WEAK_SIGNAL_PENALTY * len(weak_signals(raw, signal))

    trust_score = max(0, min(100, trust_score))
    if not is_bot and trust_score <= BOT_TRUST_CEILING:
        is_bot = True
    return LocalClassification(is_bot=is_bot, trust_score=trust_score)
