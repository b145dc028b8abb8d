"""
JSON envelope shared by every API response:
``{"success": bool, "message": str, "data": ..., "error": ...}``.
"""
from typing import Any, List, Optional

from fastapi.responses import JSONResponse


def envelope(message: str = "OK", data: Any = None) -> dict:
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


def error_response(
    status_code: int,
    message: str,
    error: Optional[str] = None,
    errors: Optional[List[dict]] = None,
) -> JSONResponse:
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    if errors is not None:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)
