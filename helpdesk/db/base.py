from __future__ import annotations

import enum

from sqlalchemy import Enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def value_enum(enum_cls: type[enum.Enum]) -> Enum:
    """Store a Python enum by its `.value` in a plain VARCHAR column."""

    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
