from typing import Optional


class PCFError(Exception):
    """Base error for per-request failures. Never fatal to the process."""

    code = "pcf_error"
    status_code = 400

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> dict:
        detail = {"error": self.code, "message": self.message}
        if self.details:
            detail.update(self.details)
        return detail


class InvalidInput(PCFError):
    code = "invalid_input"
    status_code = 400


class UnknownLoginEvent(PCFError):
    code = "unknown_login_event"
    status_code = 400


class UpstreamLookupFailure(PCFError):
    """Geolocation or notification sink unreachable. Logged, never surfaced."""

    code = "upstream_lookup_failure"
    status_code = 502
