"""Standard response envelope: ``{success, data?, error?, message?, pagination?, timestamp}``."""
from datetime import datetime, timezone

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from blogapi.pagination import Page


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def success(data=None, message: str | None = None, pagination: dict | None = None) -> dict:
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    body["timestamp"] = _timestamp()
    return body


def paginated(page: Page) -> dict:
    return success(page.items, pagination=page.pagination)


def error(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    body: dict = {"success": False, "error": code, "message": message}
    if details is not None:
        body["details"] = details
    body["timestamp"] = _timestamp()
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
