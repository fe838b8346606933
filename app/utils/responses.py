from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request

from app.schemas.workflows.response import ApiResponse, ErrorDetail, ResponseMeta


def _request_id(request: Optional[Request]) -> str:
    if request is not None and hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid4())


def create_api_response(
    data: Optional[Dict[str, Any]],
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1",
) -> Dict[str, Any]:
    """Wrap a payload in the standard response envelope.

    Pydantic models inside ``data`` are dumped in JSON mode so UUIDs and
    timestamps serialize as strings.
    """
    payload = {
        key: value.model_dump(mode="json") if hasattr(value, "model_dump") else value
        for key, value in (data or {}).items()
    }

    response = ApiResponse(
        status=status,
        message=message,
        data=payload,
        meta=ResponseMeta(
            timestamp=datetime.now(timezone.utc),
            request_id=_request_id(request),
            api_version=api_version,
        ),
    )
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None,
) -> ErrorDetail:
    """Create a standardized error detail (RFC 7807)."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance or (request.url.path if request else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc),
    )
