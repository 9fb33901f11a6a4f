"""Local progress cache on top of a key-value store.

Every read and write here is best-effort: a failing store is logged and
treated as a cache miss (reads) or a lost write.
"""

import json
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from cognify_client.errors import StorageError
from cognify_client.models.progress import CachedPercentage, ModuleProgressRecord, SubjectAggregate
from cognify_client.storage.key_value import KeyValueStore

logger = structlog.get_logger()

DIAGNOSTIC_TAKEN_KEY = "diagnostic_taken"


def module_key(module_id: str) -> str:
    return f"module_progress:{module_id}"


def subject_module_key(subject_id: str) -> str:
    return f"subject_module_progress:{subject_id}"


def subject_assessment_key(subject_id: str) -> str:
    return f"subject_assessment_progress:{subject_id}"


def subject_aggregate_key(subject_id: str) -> str:
    return f"subject_progress:{subject_id}"


def assessment_taken_key(assessment_id: str) -> str:
    return f"assessment_taken:{assessment_id}"


class ProgressCache:
    """Typed access to the per-module, per-subject and per-assessment keys."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    # -- module records --------------------------------------------------

    async def get_module(self, module_id: str) -> ModuleProgressRecord | None:
        data = await self._read_json(module_key(module_id))
        if data is None:
            return None
        data.setdefault("module_id", module_id)
        return self._parse(ModuleProgressRecord, data, module_key(module_id))

    async def save_module(self, record: ModuleProgressRecord) -> bool:
        return await self._write_model(module_key(record.module_id), record)

    # -- subject side percentages ------------------------------------------

    async def get_subject_module_percentage(self, subject_id: str) -> int | None:
        return await self._read_percentage(subject_module_key(subject_id))

    async def set_subject_module_percentage(self, subject_id: str, percentage: int) -> bool:
        return await self._write_model(
            subject_module_key(subject_id), CachedPercentage(percentage=percentage)
        )

    async def get_subject_assessment_percentage(self, subject_id: str) -> int | None:
        return await self._read_percentage(subject_assessment_key(subject_id))

    async def set_subject_assessment_percentage(self, subject_id: str, percentage: int) -> bool:
        return await self._write_model(
            subject_assessment_key(subject_id), CachedPercentage(percentage=percentage)
        )

    # -- subject aggregate ------------------------------------------------

    async def get_subject_aggregate(self, subject_id: str) -> SubjectAggregate | None:
        data = await self._read_json(subject_aggregate_key(subject_id))
        if data is None:
            return None
        return self._parse(SubjectAggregate, data, subject_aggregate_key(subject_id))

    async def save_subject_aggregate(self, aggregate: SubjectAggregate) -> bool:
        return await self._write_model(subject_aggregate_key(aggregate.subject_id), aggregate)

    # -- taken markers ----------------------------------------------------

    async def is_assessment_taken(self, assessment_id: str) -> bool:
        return await self._read_flag(assessment_taken_key(assessment_id))

    async def mark_assessment_taken(self, assessment_id: str) -> bool:
        return await self._write(assessment_taken_key(assessment_id), "true")

    async def is_diagnostic_taken(self) -> bool:
        return await self._read_flag(DIAGNOSTIC_TAKEN_KEY)

    async def mark_diagnostic_taken(self) -> bool:
        return await self._write(DIAGNOSTIC_TAKEN_KEY, "true")

    # -- helpers ----------------------------------------------------------

    async def _read(self, key: str) -> str | None:
        try:
            return await self._store.get_item(key)
        except StorageError as exc:
            logger.warning("cache_read_failed", key=key, error=str(exc))
            return None

    async def _write(self, key: str, value: str) -> bool:
        try:
            await self._store.set_item(key, value)
        except StorageError as exc:
            logger.warning("cache_write_failed", key=key, error=str(exc))
            return False
        return True

    async def _read_json(self, key: str) -> dict[str, Any] | None:
        raw = await self._read(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("cache_entry_corrupt", key=key)
            return None
        return data if isinstance(data, dict) else None

    async def _read_percentage(self, key: str) -> int | None:
        data = await self._read_json(key)
        if data is None:
            return None
        cached = self._parse(CachedPercentage, data, key)
        return cached.percentage if cached else None

    async def _read_flag(self, key: str) -> bool:
        raw = await self._read(key)
        return raw is not None and raw.strip().lower() in ("true", "1")

    async def _write_model(self, key: str, model: BaseModel) -> bool:
        return await self._write(key, model.model_dump_json())

    @staticmethod
    def _parse(model_cls, data: dict[str, Any], key: str):
        try:
            return model_cls.model_validate(data)
        except ValidationError:
            logger.warning("cache_entry_invalid", key=key)
            return None
