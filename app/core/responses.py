"""Response envelope shared by every route: ``{success, data, message, errors}``."""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, NoReturn
from uuid import UUID

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse


class EnvelopeJSONEncoder(json.JSONEncoder):
    """Encodes the values asyncpg rows and domain enums carry."""

    def default(self, obj):
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        return super().default(obj)


def success_response(data: Any = None, message: str | None = None) -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def paginated_response(
    items: list,
    page: int,
    limit: int,
    total: int,
    message: str | None = None,
) -> dict[str, Any]:
    return success_response(
        data={
            "data": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": (total + limit - 1) // limit,
            },
        },
        message=message,
    )


def error_envelope(
    message: str,
    status_code: int,
    errors: dict[str, Any] | None = None,
    data: Any = None,
) -> JSONResponse:
    """Error envelope as a response, for exception handlers."""
    body = {"success": False, "message": message, "data": data, "errors": errors}
    content = json.loads(json.dumps(body, cls=EnvelopeJSONEncoder))
    return JSONResponse(status_code=status_code, content=content)


def error_response(
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    errors: dict[str, Any] | None = None,
) -> NoReturn:
    """Abort the request with an error envelope."""
    raise HTTPException(
        status_code=status_code,
        detail={"success": False, "message": message, "data": None, "errors": errors},
    )


def not_found_response(resource: str = "Resource") -> NoReturn:
    error_response(f"{resource} not found", status.HTTP_404_NOT_FOUND)


def forbidden_response(message: str = "Access denied") -> NoReturn:
    error_response(message, status.HTTP_403_FORBIDDEN)


def conflict_response(message: str) -> NoReturn:
    error_response(message, status.HTTP_409_CONFLICT)


def unprocessable_response(message: str, errors: dict[str, Any] | None = None) -> NoReturn:
    error_response(message, 422, errors)
