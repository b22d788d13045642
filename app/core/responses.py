from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_response(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    """`{"success": true, "data"?, "message"?}`"""
    content = {"success": True}
    if data is not None:
        content["data"] = jsonable_encoder(data)
    if message:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)


def error_content(message: str, code: Optional[str] = None, details: Any = None) -> dict:
    content = {"error": message}
    if code:
        content["code"] = code
    if details:
        content["details"] = jsonable_encoder(details)
    return content
