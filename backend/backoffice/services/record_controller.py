from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
import logging
import math
from typing import Any, Callable, Iterator, Mapping, Sequence

from backoffice.clients.leancloud import LeanCloudError
from backoffice.errors import DuplicateEntry, InternalError, InvalidArgument, NotFound, ValidationFailed
from backoffice.repositories.history_repository import FieldChange
from backoffice.repositories.record_repository import (
    RecordRepository,
    is_object_id,
    lc_date,
    parse_date,
    pointer,
)
from backoffice.services.change_tracking import diff_fields
from backoffice.services.history_service import HistoryRecorder
from backoffice.services.query_builder import (
    Clause,
    ParamValue,
    QueryDescriptor,
    QueryRules,
    build_query,
)
from backoffice.services.response_cache import NullCache, ResponseCache
from backoffice.services.validation import ValidationRuleSet, validate
from backoffice.telemetry.tracing import emit_event, emit_metric

logger = logging.getLogger(__name__)

PROTECTED_FIELDS = frozenset(
    {"objectId", "id", "createdAt", "updatedAt", "createdBy", "updatedBy", "deletedAt", "deletedBy", "ACL"}
)
UPLOADED_FILES_KEY = "uploadedFiles"
REDACTED = "[redacted]"
NOT_DELETED = {"deletedAt": {"$exists": False}}

Record = dict[str, Any]


@dataclass(frozen=True)
class Formatter:
    full: Callable[[Record], Record]
    list: Callable[[Record], Record]
    summary: Callable[[Record], Record]


def _passthrough(record: Record) -> Record:
    return {"id": record.get("objectId"), **record}


DEFAULT_FORMATTER = Formatter(full=_passthrough, list=_passthrough, summary=_passthrough)


@dataclass(frozen=True)
class ControllerConfig:
    entity: str
    class_name: str
    rules: ValidationRuleSet = field(default_factory=ValidationRuleSet)
    searchable_fields: tuple[str, ...] = ()
    populate: tuple[str, ...] = ()
    list_fields: tuple[str, ...] = ()
    field_types: Mapping[str, str] = field(default_factory=dict)
    reference_fields: Mapping[str, str] = field(default_factory=dict)
    unique_fields: tuple[str, ...] = ()
    soft_delete: bool = False
    upload_field: str | None = None
    redacted_fields: tuple[str, ...] = ()
    formatter: Formatter = DEFAULT_FORMATTER

    @property
    def query_rules(self) -> QueryRules:
        return QueryRules(
            searchable_fields=self.searchable_fields,
            list_fields=self.list_fields,
            field_types=self.field_types,
            reference_fields=self.reference_fields,
        )


@dataclass(frozen=True)
class ListResult:
    items: list[Record]
    total: int
    total_pages: int
    current_page: int
    limit: int

    def pagination(self) -> dict[str, int]:
        return {
            "total": self.total,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "limit": self.limit,
        }


@dataclass(frozen=True)
class UpdateResult:
    record: Record
    changed: bool
    changes: list[FieldChange] = field(default_factory=list)


@dataclass(frozen=True)
class BulkResult:
    count: int


@dataclass(frozen=True)
class StatsResult:
    period: str
    total: int
    date_range: dict[str, str] | None

    def to_dict(self) -> dict[str, Any]:
        return {"period": self.period, "total": self.total, "dateRange": self.date_range}


def require_id(record_id: str) -> str:
    if not is_object_id(record_id):
        raise InvalidArgument("Invalid ID format")
    return record_id


def require_ids(ids: Any) -> list[str]:
    if not isinstance(ids, list) or not ids:
        raise InvalidArgument("IDs array is required")
    for record_id in ids:
        require_id(record_id)
    return list(dict.fromkeys(ids))


def resolve_window(
    period: str, start: str | None, end: str | None, *, now: datetime | None = None
) -> tuple[datetime, datetime] | None:
    """Date window for stats: explicit ``start``/``end``, else ``day`` or ``month`` in UTC."""
    if bool(start) != bool(end):
        raise InvalidArgument("startDate and endDate must be provided together")
    if start and end:
        start_at = parse_date(start)
        end_at = parse_date(end)
        if start_at is None or end_at is None:
            raise InvalidArgument("startDate and endDate must be valid dates")
        if len(end.strip()) == 10:
            end_at = end_at + timedelta(days=1) - timedelta(milliseconds=1)
        return start_at, end_at
    now = now or datetime.now(timezone.utc)
    if period == "day":
        day_start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
        return day_start, day_start + timedelta(days=1) - timedelta(milliseconds=1)
    if period == "month":
        month_start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
        next_month = (month_start + timedelta(days=32)).replace(day=1)
        return month_start, next_month - timedelta(milliseconds=1)
    return None


class RecordController:
    """Generic list/get/create/update/delete/search/bulk/stats for one entity."""

    def __init__(
        self,
        repo: RecordRepository,
        config: ControllerConfig,
        *,
        history: HistoryRecorder | None = None,
        cache: ResponseCache | None = None,
        cache_ttl_seconds: int = 300,
    ) -> None:
        self.repo = repo
        self.config = config
        self.history = history
        self.cache = cache or NullCache()
        self.cache_ttl_seconds = cache_ttl_seconds

    @contextmanager
    def store_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except LeanCloudError as exc:
            logger.exception("%s %s failed", self.config.entity, action)
            raise InternalError(
                f"Failed to {action} {self.config.entity}", detail=str(exc)
            ) from exc

    def _visible(self, *extra: dict[str, Any]) -> list[dict[str, Any]]:
        clauses = list(extra)
        if self.config.soft_delete:
            clauses.append(NOT_DELETED)
        return clauses

    def format(self, record: Record) -> Record:
        return self.config.formatter.full(record)

    def encode(self, data: Mapping[str, Any]) -> Record:
        """Translate request values into store values for references and dates."""
        encoded = dict(data)
        for name, class_name in self.config.reference_fields.items():
            value = encoded.get(name)
            if isinstance(value, str) and is_object_id(value):
                encoded[name] = pointer(class_name, value)
            elif value == "":
                encoded[name] = None
        for name, kind in self.config.field_types.items():
            if kind == "date" and name in encoded:
                parsed = parse_date(encoded[name])
                encoded[name] = lc_date(parsed) if parsed else None
        return encoded

    def _clean(self, data: Mapping[str, Any]) -> Record:
        cleaned = {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}
        for name, kind in self.config.field_types.items():
            value = cleaned.get(name)
            if kind != "number" or not isinstance(value, str) or not value.strip():
                continue
            try:
                number = float(value)
            except ValueError:
                continue
            cleaned[name] = int(number) if number.is_integer() else number
        return cleaned

    def _merge_uploads(self, data: Record, existing: Record | None = None) -> Record:
        uploaded = data.pop(UPLOADED_FILES_KEY, None)
        target = self.config.upload_field
        if not uploaded or not target:
            return data
        if isinstance(uploaded, str):
            uploaded = [uploaded]
        current = data.get(target)
        if current is None and existing is not None:
            current = existing.get(target)
        data[target] = [*(current or []), *uploaded]
        return data

    async def _audit(
        self,
        record_id: str,
        action: str,
        actor_id: str | None,
        changes: Sequence[FieldChange] = (),
    ) -> None:
        if self.history is None:
            return
        changes = [
            FieldChange(change.field, REDACTED, REDACTED)
            if change.field in self.config.redacted_fields
            else change
            for change in changes
        ]
        result = await self.history.record(record_id, action, actor_id, changes)
        if not result.recorded:
            logger.debug(
                "History %s for %s %s: %s", result.status, self.config.entity, record_id, result.reason
            )

    # ---- reads -------------------------------------------------------------

    def build_query(
        self, params: Mapping[str, ParamValue], *, search_mode: bool = False
    ) -> QueryDescriptor:
        return build_query(params, self.config.query_rules, search_mode=search_mode)

    async def list(
        self, params: Mapping[str, ParamValue], *, filters: Sequence[Clause] = ()
    ) -> ListResult:
        descriptor = self.build_query(params).with_filters(*filters)
        return await self.run_query(descriptor, cached=True)

    async def search(
        self, params: Mapping[str, ParamValue], *, filters: Sequence[Clause] = ()
    ) -> ListResult:
        descriptor = self.build_query(params, search_mode=True).with_filters(*filters)
        return await self.run_query(descriptor)

    async def run_query(self, descriptor: QueryDescriptor, *, cached: bool = False) -> ListResult:
        visibility = self._visible()
        cache_key = f"list:{self.config.class_name}:{descriptor.cache_key(*visibility)}"
        if cached:
            hit = await self.cache.get(cache_key)
            if hit is not None:
                return hit

        with self.store_errors("fetch"):
            page = await self.repo.find(
                descriptor.where(*visibility),
                order=descriptor.order,
                skip=descriptor.skip,
                limit=descriptor.limit,
                include=list(self.config.populate),
                count=True,
            )
        result = ListResult(
            items=[self.config.formatter.list(item) for item in page.items],
            total=page.total,
            total_pages=math.ceil(page.total / descriptor.limit),
            current_page=descriptor.page,
            limit=descriptor.limit,
        )
        emit_metric("records.list.total", page.total, self.config.entity, page=descriptor.page)
        if cached:
            await self.cache.set(cache_key, result, self.cache_ttl_seconds)
        return result

    async def fetch(self, record_id: str, *, include_deleted: bool = False) -> Record:
        """Raw stored record with populated references; raises NotFound."""
        require_id(record_id)
        with self.store_errors("fetch"):
            record = await self.repo.get(record_id, include=list(self.config.populate))
        if record is None or (
            self.config.soft_delete and record.get("deletedAt") and not include_deleted
        ):
            raise NotFound(f"{self.config.entity} not found")
        return record

    async def get_by_id(self, record_id: str, *, include_deleted: bool = False) -> Record:
        return self.format(await self.fetch(record_id, include_deleted=include_deleted))

    # ---- writes ------------------------------------------------------------

    async def ensure_unique(self, data: Mapping[str, Any], *, exclude_id: str | None = None) -> None:
        for name in self.config.unique_fields:
            value = data.get(name)
            if value is None or value == "":
                continue
            where: dict[str, Any] = {name: value}
            if exclude_id:
                where["objectId"] = {"$ne": exclude_id}
            with self.store_errors("check"):
                existing = await self.repo.first(where)
            if existing is not None:
                raise DuplicateEntry(name, f"{self.config.entity} with this {name} already exists")

    async def _duplicate_from_store(
        self, exc: LeanCloudError, data: Mapping[str, Any], exclude_id: str | None = None
    ) -> DuplicateEntry:
        try:
            await self.ensure_unique(data, exclude_id=exclude_id)
        except DuplicateEntry as duplicate:
            return duplicate
        field_name = next(
            (name for name in self.config.unique_fields if data.get(name) not in (None, "")),
            "unknown",
        )
        logger.warning("Store rejected duplicate %s on %s: %s", self.config.entity, field_name, exc)
        return DuplicateEntry(field_name, f"{self.config.entity} with this {field_name} already exists")

    async def insert(self, data: Mapping[str, Any], actor_id: str | None) -> Record:
        """Validate, stamp and persist a new record; returns the stored record."""
        payload = self._merge_uploads(self._clean(data))
        errors = validate(payload, self.config.rules.create)
        if errors:
            raise ValidationFailed(errors)
        await self.ensure_unique(payload)

        if actor_id:
            payload["createdBy"] = actor_id
            payload["updatedBy"] = actor_id
        try:
            created = await self.repo.create(self.encode(payload))
        except LeanCloudError as exc:
            if exc.is_duplicate:
                raise await self._duplicate_from_store(exc, payload) from exc
            logger.exception("%s create failed", self.config.entity)
            raise InternalError(f"Failed to create {self.config.entity}", detail=str(exc)) from exc

        record_id = created["objectId"]
        await self._audit(record_id, "created", actor_id)
        emit_event("record.created", self.config.entity, record_id, actor_id=actor_id)
        return created

    async def create(self, data: Mapping[str, Any], actor_id: str | None) -> Record:
        created = await self.insert(data, actor_id)
        return self.format(await self.fetch(created["objectId"]))

    async def apply_update(
        self,
        record_id: str,
        data: Mapping[str, Any],
        actor_id: str | None,
        *,
        action: str = "updated",
    ) -> tuple[Record, list[FieldChange]]:
        """Write only the fields that actually change; returns the fresh record."""
        require_id(record_id)
        existing = await self.fetch(record_id)
        payload = self._merge_uploads(self._clean(data), existing)
        errors = validate(payload, self.config.rules.update)
        if errors:
            raise ValidationFailed(errors)

        changes = diff_fields(existing, payload)
        if not changes:
            return existing, []

        updates = self.encode({change.field: change.new_value for change in changes})
        await self.ensure_unique(updates, exclude_id=record_id)
        if actor_id:
            updates["updatedBy"] = actor_id
        try:
            await self.repo.update(record_id, updates)
        except LeanCloudError as exc:
            if exc.is_duplicate:
                raise await self._duplicate_from_store(exc, updates, record_id) from exc
            logger.exception("%s update failed", self.config.entity)
            raise InternalError(f"Failed to update {self.config.entity}", detail=str(exc)) from exc

        await self._audit(record_id, action, actor_id, changes)
        emit_event(
            f"record.{action}",
            self.config.entity,
            record_id,
            actor_id=actor_id,
            fields=[change.field for change in changes],
        )
        return await self.fetch(record_id), changes

    async def update(self, record_id: str, data: Mapping[str, Any], actor_id: str | None) -> UpdateResult:
        record, changes = await self.apply_update(record_id, data, actor_id)
        return UpdateResult(record=self.format(record), changed=bool(changes), changes=changes)

    async def delete(self, record_id: str, actor_id: str | None) -> None:
        await self.fetch(record_id)
        with self.store_errors("delete"):
            if self.config.soft_delete:
                stamp: Record = {"deletedAt": lc_date(datetime.now(timezone.utc))}
                if actor_id:
                    stamp["deletedBy"] = actor_id
                await self.repo.update(record_id, stamp)
            else:
                await self.repo.delete(record_id)
        await self._audit(record_id, "deleted", actor_id)
        emit_event(
            "record.deleted",
            self.config.entity,
            record_id,
            actor_id=actor_id,
            soft=self.config.soft_delete,
        )

    async def _existing_many(self, ids: list[str]) -> list[Record]:
        with self.store_errors("fetch"):
            page = await self.repo.find(
                {"objectId": {"$in": ids}, **(NOT_DELETED if self.config.soft_delete else {})},
                limit=len(ids),
            )
        return page.items

    async def bulk_update(self, ids: Any, data: Any, actor_id: str | None) -> BulkResult:
        record_ids = require_ids(ids)
        if not isinstance(data, Mapping) or not data:
            raise InvalidArgument("Update data is required")
        payload = self._clean(data)
        payload.pop(UPLOADED_FILES_KEY, None)
        errors = validate(payload, self.config.rules.update)
        if errors:
            raise ValidationFailed(errors)
        if any(name in payload for name in self.config.unique_fields) and len(record_ids) > 1:
            field_name = next(name for name in self.config.unique_fields if name in payload)
            raise DuplicateEntry(field_name, f"{field_name} cannot be set on several records at once")

        targets: list[tuple[str, list[FieldChange]]] = []
        for existing in await self._existing_many(record_ids):
            changes = diff_fields(existing, payload)
            if changes:
                targets.append((existing["objectId"], changes))
        if not targets:
            return BulkResult(count=0)

        updates = self.encode(payload)
        if actor_id:
            updates["updatedBy"] = actor_id
        with self.store_errors("bulk update"):
            modified = await self.repo.batch_update([record_id for record_id, _ in targets], updates)
        for record_id, changes in targets:
            await self._audit(record_id, "updated", actor_id, changes)
        emit_event("record.bulk_updated", self.config.entity, actor_id=actor_id, count=modified)
        return BulkResult(count=modified)

    async def bulk_delete(self, ids: Any, actor_id: str | None) -> BulkResult:
        record_ids = require_ids(ids)
        present = [record["objectId"] for record in await self._existing_many(record_ids)]
        if not present:
            return BulkResult(count=0)
        with self.store_errors("bulk delete"):
            if self.config.soft_delete:
                stamp: Record = {"deletedAt": lc_date(datetime.now(timezone.utc))}
                if actor_id:
                    stamp["deletedBy"] = actor_id
                removed = await self.repo.batch_update(present, stamp)
            else:
                removed = await self.repo.batch_delete(present)
        for record_id in present:
            await self._audit(record_id, "deleted", actor_id)
        emit_event("record.bulk_deleted", self.config.entity, actor_id=actor_id, count=removed)
        return BulkResult(count=removed)

    # ---- stats -------------------------------------------------------------

    async def stats(
        self,
        period: str = "month",
        start_date: str | None = None,
        end_date: str | None = None,
        *,
        now: datetime | None = None,
    ) -> StatsResult:
        window = resolve_window(period, start_date, end_date, now=now)
        clauses = self._visible()
        date_range = None
        if window is not None:
            date_range = {"start": lc_date(window[0])["iso"], "end": lc_date(window[1])["iso"]}
            clauses.append(
                {"createdAt": {"$gte": lc_date(window[0]), "$lte": lc_date(window[1])}}
            )
        where: dict[str, Any] = {}
        for clause in clauses:
            where.update(clause)
        with self.store_errors("count"):
            total = await self.repo.count(where)
        return StatsResult(period=period, total=total, date_range=date_range)
