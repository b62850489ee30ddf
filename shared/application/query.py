"""一覧系APIで共通利用するクエリ指定の値オブジェクト"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

SortDirection = Literal["asc", "desc"]

FILTER_MODIFIERS: tuple[str, ...] = (
    "equals",
    "not",
    "contains",
    "starts",
    "ends",
    "in",
    "notin",
    "min",
    "max",
)


@dataclass(frozen=True, slots=True)
class SortField:
    field: str
    direction: SortDirection = "asc"

    def __str__(self) -> str:
        return f"{self.field}.{self.direction}"


@dataclass(frozen=True, slots=True)
class PageInfo:
    """offset/limit/sort の組"""

    offset: int = 0
    limit: int = 10
    sort: tuple[SortField, ...] = field(default_factory=tuple)

    def sort_string(self) -> str:
        return ",".join(str(item) for item in self.sort)


@dataclass(frozen=True, slots=True)
class FilterCondition:
    """``field:modifier=value`` 形式のフィルタ1件"""

    field: str
    modifier: str
    values: tuple[str, ...]

    @property
    def value(self) -> str:
        return self.values[0] if self.values else ""


__all__ = [
    "FILTER_MODIFIERS",
    "FilterCondition",
    "PageInfo",
    "SortDirection",
    "SortField",
]
