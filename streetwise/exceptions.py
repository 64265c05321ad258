"""
Custom Exceptions for the Streetwise client
===========================================

The API client raises these; views catch them where the user acted and turn
them into notifications. Nothing here is fatal to the process.

Usage:
    from streetwise.exceptions import SessionExpiredError

    try:
        await flow.submit(report_type, description)
    except SessionExpiredError:
        notifier.error("Please login again")
"""

from typing import Optional, Any, Dict


class StreetwiseError(Exception):
    """Base exception for all Streetwise client errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(StreetwiseError):
    """Input rejected before any request was sent"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field} if field else {}
        )


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthorizationError(StreetwiseError):
    """Backend answered 403 for the current role"""

    def __init__(self, message: str = "Not authorized", path: Optional[str] = None):
        super().__init__(
            message,
            code="NOT_AUTHORIZED",
            details={"path": path} if path else {}
        )


class SessionExpiredError(StreetwiseError):
    """Session cookie is missing, expired or rejected"""

    def __init__(self, message: str = "Session expired"):
        super().__init__(message, code="SESSION_EXPIRED")


# ============================================
# Transport Errors
# ============================================

class TransportError(StreetwiseError):
    """Request failed: network error or an unclassified non-2xx status"""

    def __init__(
        self,
        message: str = "Network error",
        status_code: Optional[int] = None,
        path: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if path:
            details["path"] = path
        super().__init__(message, code="TRANSPORT_ERROR", details=details)
        self.status_code = status_code


# ============================================
# Map Errors
# ============================================

class MapUnavailableError(StreetwiseError):
    """Map surface could not be initialised"""

    def __init__(self, reason: str = "Map SDK failed to initialise"):
        super().__init__(reason, code="MAP_UNAVAILABLE")
