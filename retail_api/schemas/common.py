"""
Base schemas shared across the API

Requests use one canonical snake_case shape and reject unknown fields.
Responses are emitted in camelCase.
"""

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    """Canonical snake_case request body"""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class CamelModel(BaseModel):
    """Response body serialized with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Pagination(CamelModel):
    page: int
    limit: int
    total_items: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total_items=total_items,
            total_pages=math.ceil(total_items / limit) if limit else 0,
        )


def parse_positive_int(value: Any, default: int, maximum: Optional[int] = None) -> int:
    """Lenient query-string integer: malformed or non-positive values fall back to default"""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def parse_limit(value: Any, default: int, maximum: int) -> int:
    """Clamp a page size into 1..maximum"""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return max(1, min(number, maximum))
