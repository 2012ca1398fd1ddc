from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, items: list, *, page: int, limit: int, total_count: int) -> "Page[T]":
        total_pages = math.ceil(total_count / limit) if limit else 0
        return cls(
            items=items,
            page=page,
            limit=limit,
            total_count=total_count,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    def as_schema(self, schema: type[BaseModel]) -> "Page":
        """Re-type ORM items as `schema` (a model with `from_attributes`)."""
        return Page[schema](
            items=[schema.model_validate(item) for item in self.items],
            **self.model_dump(exclude={"items"}),
        )
