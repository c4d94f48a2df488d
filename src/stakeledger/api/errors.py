from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from stakeledger.runtime.errors import ApplyError

# ApplyError code -> HTTP status. Anything not listed is a client error.
_APPLY_STATUS: Dict[str, int] = {
    "forbidden": 403,
    "not_found": 404,
    "invalid_state": 409,
}


@dataclass(slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}


def apply_error_status(e: ApplyError) -> int:
    return _APPLY_STATUS.get(str(e.code or ""), 400)


def apply_error_body(e: ApplyError) -> Dict[str, Any]:
    return {"ok": False, "error": {"code": e.code, "reason": e.reason, "details": e.details}}
