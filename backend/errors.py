# errors.py — Error taxonomy with FG-DOMAIN-NUMBER codes
# Every error carries the HTTP status it maps to; main.py renders them as
# {"error": <message>, "code": <code>, "request_id": <id>}.
from typing import Optional

# ============================================================
# ERROR CODE CATALOGUE
# FG-{DOMAIN}-{NUMBER}
# ============================================================

ERROR_CATALOGUE = {
    "FG-VAL-001": {"message": "Request validation failed", "http_status": 400},
    "FG-AUTH-001": {"message": "Unauthorized", "http_status": 401},
    "FG-DB-001": {"message": "Record not found", "http_status": 404},
    "FG-UP-001": {"message": "Upstream service failure", "http_status": 500},
    "FG-GH-001": {"message": "GitHub request failed", "http_status": 500},
    "FG-SYS-001": {"message": "Internal server error", "http_status": 500},
}


class PlatformError(Exception):
    """Base class for errors surfaced to API callers"""
    code = "FG-SYS-001"
    status_code = 500

    def __init__(self, message: Optional[str] = None):
        self.message = message or ERROR_CATALOGUE[self.code]["message"]
        super().__init__(self.message)


class ValidationError(PlatformError):
    code = "FG-VAL-001"
    status_code = 400


class AuthorizationError(PlatformError):
    code = "FG-AUTH-001"
    status_code = 401


class NotFoundError(PlatformError):
    code = "FG-DB-001"
    status_code = 404

    def __init__(self, entity: str = "Record"):
        super().__init__(f"{entity} not found")


class UpstreamError(PlatformError):
    """Datastore or third-party failure; also logged server-side with the route"""
    code = "FG-UP-001"
    status_code = 500


class GitHubError(UpstreamError):
    code = "FG-GH-001"

    def __init__(self, message: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def error_body(code: str, message: str, request_id: Optional[str] = None) -> dict:
    return {"error": message, "code": code, "request_id": request_id}
