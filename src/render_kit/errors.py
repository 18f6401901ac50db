"""Normalized error codes and exceptions for browser setup and conversion.

Location and launch failures are raised to the converter; dependency and
detection problems are recorded on their outcome objects instead.
"""
from enum import Enum


class ErrorCode(Enum):
    """Normalized failure codes shared by every component."""
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_FILE = "MISSING_FILE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    CONVERSION_FAILED = "CONVERSION_FAILED"
    BROWSER_NOT_FOUND = "BROWSER_NOT_FOUND"   # nothing usable located
    LAUNCH_FAILED = "LAUNCH_FAILED"           # located, would not start
    DEPENDENCY_INSTALL = "DEPENDENCY_INSTALL" # absorbed, never raised
    DETECTION_TIMEOUT = "DETECTION_TIMEOUT"   # absorbed, never raised
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RenderError(Exception):
    """Exception carrying a normalized ErrorCode."""

    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str = "", code: ErrorCode | None = None, details: dict | None = None):
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(message or self.code.value)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "details": self.details,
        }


class BrowserNotFoundError(RenderError):
    """No usable Chromium executable could be located."""
    code = ErrorCode.BROWSER_NOT_FOUND


class LaunchError(RenderError):
    """A browser was located but failed to start after retries and fallback."""
    code = ErrorCode.LAUNCH_FAILED


class DependencyInstallError(RenderError):
    """OS package installation problem. Downgraded to an InstallOutcome."""
    code = ErrorCode.DEPENDENCY_INSTALL


class DetectionTimeoutError(RenderError):
    """A system sub-probe timed out. Downgraded to an unknown field value."""
    code = ErrorCode.DETECTION_TIMEOUT


class ConversionError(RenderError):
    """A converter failed. ``cause_code`` keeps the underlying browser error's code."""
    code = ErrorCode.CONVERSION_FAILED

    def __init__(self, message: str = "", code: ErrorCode | None = None,
                 details: dict | None = None, cause_code: ErrorCode | None = None):
        super().__init__(message, code=code, details=details)
        self.cause_code = cause_code

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["cause_code"] = self.cause_code.value if self.cause_code else None
        return d
