"""Standard JSON envelope: ``{success, message, data, pagination?}``."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel

from hrms.common.pagination import PaginationMeta


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def success_response(
    data: Any = None,
    message: str = "OK",
    *,
    pagination: Optional[PaginationMeta] = None,
) -> dict[str, Any]:
    """Wrap *data* in the API envelope (pydantic models are dumped to JSON types)."""
    body: dict[str, Any] = {
        "success": True,
        "message": message,
        "data": _jsonable(data),
    }
    if pagination is not None:
        body["pagination"] = pagination.to_dict()
    return body
