"""모든 API 응답이 공유하는 봉투(envelope) 스키마입니다."""

from math import ceil
from pydantic import BaseModel
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str = "OK"
    data: Optional[T] = None
    errors: Optional[Dict[str, List[str]]] = None
    meta: Optional[Dict[str, Any]] = None


def envelope(data: Any = None, message: str = "OK", meta: Optional[Dict[str, Any]] = None) -> dict:
    return {"success": True, "message": message, "data": data, "meta": meta}


def pagination_meta(page: int, per_page: int, total: int) -> Dict[str, int]:
    last_page = max(1, ceil(total / per_page)) if per_page else 1
    start = (page - 1) * per_page
    return {
        "current_page": page,
        "per_page": per_page,
        "total": total,
        "last_page": last_page,
        "from": start + 1 if total else 0,
        "to": min(start + per_page, total),
    }
