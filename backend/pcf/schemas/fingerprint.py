from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")


class BrowserInfo(_Section):
    userAgent: Optional[str] = None
    language: Optional[str] = None
    languages: Optional[List[str]] = None


class DeviceInfo(_Section):
    platform: Optional[str] = None
    hardwareConcurrency: Optional[int] = None
    deviceMemory: Optional[float] = None


class ScreenInfo(_Section):
    width: Optional[int] = None
    height: Optional[int] = None
    colorDepth: Optional[int] = None
    pixelRatio: Optional[float] = None


class WindowInfo(_Section):
    innerWidth: Optional[int] = None
    innerHeight: Optional[int] = None
    outerWidth: Optional[int] = None
    outerHeight: Optional[int] = None


class TimeInfo(_Section):
    timezoneOffset: Optional[int] = None
    timezone: Optional[str] = None


class PrivacyInfo(_Section):
    # navigator.doNotTrack is "1", "0", "unspecified" or null depending on the browser
    doNotTrack: Optional[Union[str, bool]] = None


class AutomationInfo(_Section):
    webdriver: Optional[bool] = None


class ApiAvailability(_Section):
    """True when the API answered, False when it threw or was missing, None when not probed"""

    localStorage: Optional[bool] = None
    sessionStorage: Optional[bool] = None
    indexedDB: Optional[bool] = None
    mediaDevices: Optional[bool] = None


class RawFingerprint(BaseModel):
    """Structured output of the browser-side collection primitives."""

    model_config = ConfigDict(extra="allow")

    browser: BrowserInfo = Field(default_factory=BrowserInfo)
    device: DeviceInfo = Field(default_factory=DeviceInfo)
    screen: ScreenInfo = Field(default_factory=ScreenInfo)
    window: WindowInfo = Field(default_factory=WindowInfo)
    time: TimeInfo = Field(default_factory=TimeInfo)
    privacy: PrivacyInfo = Field(default_factory=PrivacyInfo)
    automation: AutomationInfo = Field(default_factory=AutomationInfo)
    apis: ApiAvailability = Field(default_factory=ApiAvailability)
