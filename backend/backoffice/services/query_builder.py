"""Turn loose query-string parameters into a typed, store-ready query.

Parameters are parsed into clause objects first and only those clauses are
compiled into the store's ``where`` dialect, so raw caller strings never
reach the store as operators or field names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
import json
import re
from typing import Any, Mapping, Sequence, Union

from backoffice.repositories.record_repository import (
    MAX_LIMIT,
    is_object_id,
    lc_date,
    parse_date,
    pointer,
)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_ORDER = "desc"
SEARCH_PARAMS = ("search", "q")
RESERVED_PARAMS = frozenset({"page", "limit", "sortBy", "sortOrder", "includeDeleted", *SEARCH_PARAMS})
RANGE_SEPARATOR = " to "

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

ParamValue = Union[str, Sequence[str]]


@dataclass(frozen=True)
class QueryRules:
    searchable_fields: tuple[str, ...] = ()
    list_fields: tuple[str, ...] = ()
    field_types: Mapping[str, str] = field(default_factory=dict)
    reference_fields: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any

    def compile(self) -> dict[str, Any]:
        return {self.field: self.value}


@dataclass(frozen=True)
class DateRange:
    field: str
    start: datetime | None
    end: datetime | None

    def compile(self) -> dict[str, Any]:
        bounds: dict[str, Any] = {}
        if self.start is not None:
            bounds["$gte"] = lc_date(self.start)
        if self.end is not None:
            bounds["$lte"] = lc_date(self.end)
        return {self.field: bounds}


@dataclass(frozen=True)
class Membership:
    field: str
    values: tuple[Any, ...]

    def compile(self) -> dict[str, Any]:
        return {self.field: {"$in": list(self.values)}}


@dataclass(frozen=True)
class PartialMatch:
    field: str
    term: str

    def compile(self) -> dict[str, Any]:
        return {self.field: _regex(self.term)}


@dataclass(frozen=True)
class TextSearch:
    fields: tuple[str, ...]
    term: str

    def compile(self) -> dict[str, Any]:
        return {"$or": [{name: _regex(self.term)} for name in self.fields]}


Clause = Union[Equals, DateRange, Membership, PartialMatch, TextSearch]


def _regex(term: str) -> dict[str, str]:
    return {"$regex": re.escape(term), "$options": "i"}


def merge_where(clauses: Sequence[dict[str, Any]]) -> dict[str, Any]:
    """AND compiled clauses together, nesting under ``$and`` on key clashes."""
    merged: dict[str, Any] = {}
    overflow: list[dict[str, Any]] = []
    for clause in clauses:
        for key, value in clause.items():
            if key in merged:
                overflow.append({key: value})
            else:
                merged[key] = value
    if overflow:
        return {"$and": [merged, *overflow]}
    return merged


@dataclass(frozen=True)
class QueryDescriptor:
    filters: tuple[Clause, ...] = ()
    sort_field: str = DEFAULT_SORT_BY
    sort_direction: int = -1
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def sort(self) -> dict[str, int]:
        return {self.sort_field: self.sort_direction}

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def order(self) -> str:
        primary = self.sort_field if self.sort_direction > 0 else f"-{self.sort_field}"
        if self.sort_field == DEFAULT_SORT_BY:
            return primary
        return f"{primary},{DEFAULT_SORT_BY}"

    def where(self, *extra: dict[str, Any]) -> dict[str, Any]:
        return merge_where([clause.compile() for clause in self.filters] + list(extra))

    def with_filters(self, *clauses: Clause) -> "QueryDescriptor":
        return QueryDescriptor(
            filters=self.filters + tuple(clauses),
            sort_field=self.sort_field,
            sort_direction=self.sort_direction,
            page=self.page,
            limit=self.limit,
        )

    def cache_key(self, *extra: dict[str, Any]) -> str:
        return json.dumps(
            {
                "where": self.where(*extra),
                "order": self.order,
                "page": self.page,
                "limit": self.limit,
            },
            sort_keys=True,
            default=str,
        )


def _positive_int(value: ParamValue | None, default: int) -> int:
    text = _single(value)
    if text is None:
        return default
    try:
        number = int(text)
    except ValueError:
        return default
    return number if number > 0 else default


def _single(value: ParamValue | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip()
    values = [item.strip() for item in value if item is not None]
    return values[-1] if values else None


def _values(value: ParamValue) -> list[str]:
    raw = [value] if isinstance(value, str) else list(value)
    parts: list[str] = []
    for item in raw:
        parts.extend(part.strip() for part in item.split(","))
    return [part for part in parts if part]


def _is_date_field(name: str) -> bool:
    leaf = name.rsplit(".", 1)[-1]
    return leaf.endswith("Date") or leaf.endswith("At")


def _day_bounds(text: str) -> tuple[datetime, datetime] | None:
    parsed = parse_date(text)
    if parsed is None:
        return None
    if _DATE_ONLY.match(text):
        start = datetime.combine(parsed.date(), time.min, tzinfo=timezone.utc)
        return start, start + timedelta(days=1) - timedelta(milliseconds=1)
    return parsed, parsed


def _date_clause(name: str, text: str) -> Clause | None:
    if RANGE_SEPARATOR in text:
        start_text, _, end_text = text.partition(RANGE_SEPARATOR)
        start = _day_bounds(start_text.strip())
        end = _day_bounds(end_text.strip())
        if start is None and end is None:
            return None
        return DateRange(name, start[0] if start else None, end[1] if end else None)
    bounds = _day_bounds(text)
    if bounds is None:
        return None
    if bounds[0] == bounds[1]:
        return Equals(name, lc_date(bounds[0]))
    return DateRange(name, bounds[0], bounds[1])


def _coerce(value: str, kind: str | None) -> tuple[bool, Any]:
    if kind == "number":
        try:
            number = float(value)
        except ValueError:
            return False, None
        return True, int(number) if number.is_integer() else number
    if kind == "boolean":
        lowered = value.lower()
        if lowered in {"true", "1"}:
            return True, True
        if lowered in {"false", "0"}:
            return True, False
        return False, None
    return True, value


def _field_clause(
    name: str, value: ParamValue, rules: QueryRules, *, partial: bool
) -> Clause | None:
    if name.endswith("In") and len(name) > 2:
        target = name[:-2]
        if not _FIELD_NAME.match(target):
            return None
        return _membership(target, _values(value), rules)

    if _is_date_field(name):
        text = _single(value)
        return _date_clause(name, text) if text else None

    if name in rules.reference_fields:
        ids = [item for item in _values(value) if is_object_id(item)]
        class_name = rules.reference_fields[name]
        if not ids:
            return None
        if len(ids) == 1:
            return Equals(name, pointer(class_name, ids[0]))
        return Membership(name, tuple(pointer(class_name, item) for item in ids))

    if not isinstance(value, str) or name in rules.list_fields:
        values = _values(value)
        if len(values) > 1:
            return _membership(name, values, rules)
        value = values[0] if values else ""

    text = value.strip()
    if not text:
        return None
    if partial and name in rules.searchable_fields:
        return PartialMatch(name, text)
    ok, coerced = _coerce(text, rules.field_types.get(name))
    return Equals(name, coerced) if ok else None


def _membership(name: str, values: list[str], rules: QueryRules) -> Clause | None:
    kind = rules.field_types.get(name)
    coerced = []
    for item in values:
        ok, converted = _coerce(item, kind)
        if ok:
            coerced.append(converted)
    if not coerced:
        return None
    return Membership(name, tuple(coerced))


def build_query(
    params: Mapping[str, ParamValue],
    rules: QueryRules,
    *,
    search_mode: bool = False,
) -> QueryDescriptor:
    """Parse ``params`` into a :class:`QueryDescriptor`; never raises.

    In ``search_mode`` explicit filters on searchable fields match partially
    instead of exactly. The free-text term is ANDed with the other filters in
    both modes.
    """
    page = _positive_int(params.get("page"), DEFAULT_PAGE)
    limit = min(_positive_int(params.get("limit"), DEFAULT_LIMIT), MAX_LIMIT)

    sort_field = _single(params.get("sortBy")) or DEFAULT_SORT_BY
    if not _FIELD_NAME.match(sort_field):
        sort_field = DEFAULT_SORT_BY
    sort_order = (_single(params.get("sortOrder")) or DEFAULT_SORT_ORDER).lower()
    sort_direction = 1 if sort_order == "asc" else -1

    filters: list[Clause] = []
    for name, value in params.items():
        if name in RESERVED_PARAMS or value is None or not _FIELD_NAME.match(name):
            continue
        clause = _field_clause(name, value, rules, partial=search_mode)
        if clause is not None:
            filters.append(clause)

    term = next(
        (text for text in (_single(params.get(key)) for key in SEARCH_PARAMS) if text),
        None,
    )
    if term and rules.searchable_fields:
        filters.append(TextSearch(tuple(rules.searchable_fields), term))

    return QueryDescriptor(
        filters=tuple(filters),
        sort_field=sort_field,
        sort_direction=sort_direction,
        page=page,
        limit=limit,
    )
