"""
Advisory flags from the low-resolution security signal.

The flags ride along in the downstream notification; they never feed the
risk score. Parsers here are total: anything they cannot read comes back as
an UNPARSEABLE Version instead of falling through silently.
"""
import math
import re
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

from pcf.schemas.pcf import SecuritySignal

UNPARSEABLE = "unparseable"

MIN_BROWSER_MAJOR = 100
MIN_WINDOWS_MAJOR = 10
MIN_MACOS_MAJOR = 11
CURRENT_AGENT_PREFIX = "v1."

_LEGACY_WINDOWS_MARKERS = ("xp", "vista", "me", "2000", "98", "95")
_LEGACY_WINDOWS_RE = re.compile(r"\b(" + "|".join(_LEGACY_WINDOWS_MARKERS) + r")\b")
# Windows NT kernel versions as they appear in user agents
_NT_VERSIONS = {
    "5.0": 5,
    "5.1": 5,
    "5.2": 5,
    "6.0": 6,
    "6.1": 7,
    "6.2": 8,
    "6.3": 8,
    "10.0": 10,
}
_FIRST_INT_RE = re.compile(r"(\d+)")
_MAC_RE = re.compile(r"(?:mac\s*os\s*x|macos|os\s*x)\s*(\d+)(?:[._](\d+))?")


class Version(NamedTuple):
    family: str
    major: Optional[int] = None
    minor: Optional[int] = None
    marker: Optional[str] = None

    @property
    def parsed(self) -> bool:
        return self.family != UNPARSEABLE


NOT_PARSED = Version(UNPARSEABLE)


def parse_browser_major(value: Any) -> Version:
    """Accept 119, 119.0, '119', 'Chrome 119' or 'Chrome/119.0.6045'."""
    if isinstance(value, bool) or value is None:
        return NOT_PARSED
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value) or value < 0:
            return NOT_PARSED
        return Version("browser", int(value))
    if isinstance(value, str):
        m = _FIRST_INT_RE.search(value)
        if m:
            return Version("browser", int(m.group(1)))
    return NOT_PARSED


def parse_os(value: Any) -> Version:
    """Parse an OS label such as 'Windows 10', 'Windows NT 6.1', 'Windows XP' or 'macOS 10.15'."""
    if not isinstance(value, str) or not value.strip():
        return NOT_PARSED
    low = value.strip().lower()

    if "windows" in low or low.startswith("win"):
        m = _LEGACY_WINDOWS_RE.search(low)
        if m:
            return Version("windows", marker=m.group(1))
        nt = re.search(r"nt\s*(\d+\.\d+)", low)
        if nt:
            major = _NT_VERSIONS.get(nt.group(1))
            if major is not None:
                return Version("windows", major)
            return Version("windows", int(float(nt.group(1))))
        num = re.search(r"windows\s*(\d+)(?:\.(\d+))?", low)
        if num:
            minor = int(num.group(2)) if num.group(2) else None
            return Version("windows", int(num.group(1)), minor)
        return Version("windows")

    m = _MAC_RE.search(low)
    if m:
        minor = int(m.group(2)) if m.group(2) else None
        return Version("macos", int(m.group(1)), minor)
    if "mac" in low or "os x" in low:
        return Version("macos")

    return Version("other")


def is_outdated_browser(browser_major: Any) -> bool:
    v = parse_browser_major(browser_major)
    return v.parsed and v.major is not None and v.major < MIN_BROWSER_MAJOR


def is_outdated_os(os_label: Any) -> bool:
    v = parse_os(os_label)
    if v.family == "windows":
        if v.marker:
            return True
        return v.major is not None and v.major < MIN_WINDOWS_MAJOR
    if v.family == "macos":
        return v.major is not None and v.major < MIN_MACOS_MAJOR
    return False


def is_agent_outdated(security_version: Any) -> bool:
    # Missing or non-string versions count as outdated
    if not isinstance(security_version, str):
        return True
    return not security_version.startswith(CURRENT_AGENT_PREFIX)


def analyze_security_signal(signal: Optional[Union[SecuritySignal, Mapping[str, Any]]]) -> Dict[str, bool]:
    if signal is None:
        return {}
    if isinstance(signal, SecuritySignal):
        data = signal.model_dump()
    else:
        data = dict(signal)
    return {
        "outdated_browser": is_outdated_browser(data.get("browser_major")),
        "outdated_os": is_outdated_os(data.get("os_major")),
        "agent_outdated": is_agent_outdated(data.get("security_version")),
    }
