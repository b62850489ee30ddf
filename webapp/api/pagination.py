# -*- coding: utf-8 -*-
"""
共通ページング機能

一覧APIのクエリパラメータから offset/limit/sort、フィルタ、expand を
取り出す共通ロジック。解釈できない指定は :class:`QueryParseError` とする。
"""

from __future__ import annotations

from collections.abc import Collection
from typing import Iterable, List, Mapping, Optional

from werkzeug.datastructures import MultiDict

from shared.application.query import FILTER_MODIFIERS, FilterCondition, PageInfo, SortField

RESERVED_QUERY_KEYS = frozenset({"offset", "limit", "sort", "expand"})

# 部分一致系の修飾子は文字列の項目にだけ使える
TEXT_MODIFIERS = frozenset({"contains", "starts", "ends"})

_BOOLEAN_WORDS = frozenset({"1", "0", "true", "false", "yes", "no", "on", "off"})


class QueryParseError(ValueError):
    """クエリパラメータの解釈に失敗した場合の例外"""


def _parse_non_negative_int(raw: Optional[str], name: str, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise QueryParseError(f"{name} must be an integer") from None
    if value < 0:
        raise QueryParseError(f"{name} must not be negative")
    return value


def parse_sort(raw: Optional[str], sortable: Collection[str]) -> tuple[SortField, ...]:
    """``name.asc,id.desc`` 形式のソート指定を解釈"""

    if not raw:
        return ()

    fields: List[SortField] = []
    seen: set[str] = set()
    for segment in raw.split(","):
        segment = segment.strip()
        if not segment:
            continue
        name, _, direction = segment.partition(".")
        direction = (direction or "asc").lower()
        if direction not in ("asc", "desc"):
            raise QueryParseError(f"Invalid sort direction: {segment}")
        if name not in sortable:
            raise QueryParseError(f"Invalid sort field: {name}")
        if name in seen:
            continue
        seen.add(name)
        fields.append(SortField(field=name, direction=direction))  # type: ignore[arg-type]
    return tuple(fields)


def parse_page_info(
    args: Mapping[str, str],
    *,
    sortable: Collection[str],
    default_sort: Iterable[SortField] = (),
    default_limit: int = 10,
    max_limit: int = 100,
) -> PageInfo:
    """リクエストパラメータから PageInfo を生成"""

    offset = _parse_non_negative_int(args.get("offset"), "offset", 0)
    limit = _parse_non_negative_int(args.get("limit"), "limit", default_limit)
    if limit < 1 or limit > max_limit:
        raise QueryParseError(f"limit must be between 1 and {max_limit}")

    sort = parse_sort(args.get("sort"), sortable) or tuple(default_sort)
    return PageInfo(offset=offset, limit=limit, sort=sort)


def _check_filter_value(name: str, kind: str, value: str) -> None:
    if kind == "integer":
        try:
            int(value)
        except ValueError:
            raise QueryParseError(f"Filter {name} must be an integer") from None
    elif kind == "boolean" and value.strip().lower() not in _BOOLEAN_WORDS:
        raise QueryParseError(f"Filter {name} must be a boolean")


def parse_filters(
    args: MultiDict,
    *,
    filterable: Collection[str],
    value_kinds: Optional[Mapping[str, str]] = None,
) -> list[FilterCondition]:
    """予約キー以外のクエリを ``field[:modifier]=value`` のフィルタとして解釈

    ``value_kinds`` に ``integer``/``boolean`` と指定された項目は値の形式を検査し、
    部分一致系の修飾子を拒否する。
    """

    value_kinds = value_kinds or {}

    conditions: list[FilterCondition] = []
    for key in args.keys():
        if key in RESERVED_QUERY_KEYS:
            continue
        name, _, modifier = key.partition(":")
        modifier = modifier or "equals"
        if name not in filterable:
            raise QueryParseError(f"Invalid filter field: {name}")
        if modifier not in FILTER_MODIFIERS:
            raise QueryParseError(f"Invalid filter modifier: {modifier}")
        kind = value_kinds.get(name, "text")
        if kind != "text" and modifier in TEXT_MODIFIERS:
            raise QueryParseError(f"Filter modifier {modifier} is not supported for {name}")

        values: list[str] = []
        for raw in args.getlist(key):
            if modifier in ("in", "notin"):
                values.extend(part.strip() for part in raw.split(",") if part.strip())
            else:
                values.append(raw)
        if not values:
            raise QueryParseError(f"Filter {key} requires a value")
        for value in values:
            _check_filter_value(name, kind, value)
        conditions.append(FilterCondition(field=name, modifier=modifier, values=tuple(values)))
    return conditions


def parse_expand(raw: Optional[str]) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(part.strip().lower() for part in raw.split(",") if part.strip())


__all__ = [
    "QueryParseError",
    "RESERVED_QUERY_KEYS",
    "TEXT_MODIFIERS",
    "parse_expand",
    "parse_filters",
    "parse_page_info",
    "parse_sort",
]
