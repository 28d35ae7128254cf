"""
Row <-> object mapping interface.

Database.insert()/update() accept objects as well as dicts, and the
get_object()/fetch_object() helpers build objects from rows. Classes opt in by
implementing RowMappable; pydantic models and dataclasses work as-is.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

T = TypeVar("T")


@runtime_checkable
class RowMappable(Protocol):
    def to_row(self) -> dict[str, Any]: ...

    @classmethod
    def from_row(cls: type[T], row: Mapping[str, Any]) -> T: ...


def to_row(obj: Any) -> dict[str, Any]:
    """Column -> value mapping for *obj*."""
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, RowMappable):
        return obj.to_row()
    if isinstance(obj, BaseModel):
        return obj.model_dump()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Cannot map {type(obj).__name__} to a row")


def from_row(cls: type[T], row: Mapping[str, Any]) -> T:
    """Build a *cls* instance from a result row; unknown columns are ignored."""
    from_row_fn = getattr(cls, "from_row", None)
    if callable(from_row_fn):
        return from_row_fn(row)
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        fields = cls.model_fields
        return cls.model_validate({k: v for k, v in row.items() if k in fields})
    if dataclasses.is_dataclass(cls):
        names = {f.name for f in dataclasses.fields(cls) if f.init}
        return cls(**{k: v for k, v in row.items() if k in names})
    raise TypeError(f"Cannot map a row to {getattr(cls, '__name__', cls)!r}")
