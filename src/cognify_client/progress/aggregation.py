"""Pure reconciliation and merge rules for subject progress."""

from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from cognify_client.models.progress import (
    ModuleProgressRecord,
    coerce_number,
    round_half_up,
)


class ProgressSource(StrEnum):
    """Sources a subject percentage can be read from."""

    ANALYTICS = "analytics"
    PROFILE_REPORT = "profile_report"
    LOCAL_CACHE = "local_cache"


# Trust order: server-computed analytics, then the server-stored aggregate,
# then the on-device cache, which can be stale across devices.
SOURCE_PRIORITY: tuple[ProgressSource, ...] = (
    ProgressSource.ANALYTICS,
    ProgressSource.PROFILE_REPORT,
    ProgressSource.LOCAL_CACHE,
)


def reconcile_percentage(candidates: Mapping[ProgressSource, float | None]) -> int:
    """Pick the first usable value in ``SOURCE_PRIORITY`` order, else 0."""
    for source in SOURCE_PRIORITY:
        value = candidates.get(source)
        if value is not None:
            return round_half_up(value)
    return 0


def local_percentage(module_pct: float | None, assessment_pct: float | None) -> int:
    """Combine the cached module and assessment percentages of a subject."""
    m = module_pct or 0
    a = assessment_pct or 0
    if m and a:
        return round_half_up((m + a) / 2)
    return round_half_up(a or m or 0)


def entry_subject_id(entry: Mapping[str, Any]) -> str:
    return str(entry.get("subject_id") or entry.get("subjectId") or entry.get("id") or "")


def analytics_percentage(
    performance: Iterable[Mapping[str, Any]], subject_id: str, title: str | None = None
) -> float | None:
    """``average_score`` of the subject's analytics entry, matched by id or title."""
    wanted_title = title.lower() if title else None
    for entry in performance:
        matched = entry_subject_id(entry) == subject_id
        if not matched and wanted_title:
            entry_title = str(entry.get("subject_title") or entry.get("title") or "")
            matched = entry_title.lower() == wanted_title
        if matched:
            return coerce_number(entry.get("average_score"))
    return None


def report_percentage(report: Iterable[Mapping[str, Any]], subject_id: str) -> float | None:
    """Overall completeness stored for the subject in the profile report."""
    entry = find_report_entry(report, subject_id)
    if entry is None:
        return None
    for name in ("overall_completeness", "completeness", "percentage"):
        value = coerce_number(entry.get(name))
        if value is not None:
            return value
    return None


def find_report_entry(
    report: Iterable[Mapping[str, Any]], subject_id: str
) -> Mapping[str, Any] | None:
    for entry in report:
        if entry_subject_id(entry) == subject_id:
            return entry
    return None


def merge_report_entry(
    report: Iterable[Mapping[str, Any]], entry: Mapping[str, Any]
) -> list[dict[str, Any]]:
    """Replace the entry with the same subject id, or append it.

    Fields of an existing entry that ``entry`` does not carry (``created_at``
    for instance) are preserved. Duplicate entries for the subject collapse
    into one.
    """
    subject_id = entry_subject_id(entry)
    merged: list[dict[str, Any]] = []
    found = False
    for existing in report:
        if entry_subject_id(existing) != subject_id:
            merged.append(dict(existing))
        elif not found:
            merged.append({**existing, **entry})
            found = True
    if not found:
        merged.append(dict(entry))
    return merged


def module_completeness(
    module_ids: Iterable[str], records: Mapping[str, ModuleProgressRecord | None]
) -> int | None:
    """Share of the subject's modules at 100%, as a rounded percentage.

    Returns None when the subject has no known modules.
    """
    ids = list(dict.fromkeys(module_ids))
    if not ids:
        return None
    completed = sum(
        1 for module_id in ids
        if (record := records.get(module_id)) is not None and record.percentage >= 100
    )
    return round_half_up(completed * 100 / len(ids))


def extract_subject_performance(body: Any) -> list[dict[str, Any]]:
    """``subject_performance`` list from an analytics report body."""
    if not isinstance(body, dict):
        return []
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    performance = data.get("subject_performance")
    if not isinstance(performance, list):
        return []
    return [entry for entry in performance if isinstance(entry, dict)]


def coerce_taken(body: Any) -> bool:
    """Interpret the many shapes a "has taken" answer can come in."""
    if isinstance(body, bool):
        return body
    if isinstance(body, (int, float)):
        return body == 1
    if isinstance(body, str):
        return body.strip().lower() in ("true", "1")
    if isinstance(body, list):
        return len(body) > 0
    if isinstance(body, dict):
        for name in ("taken", "has_taken", "is_taken", "result", "data"):
            if name in body:
                return coerce_taken(body[name])
        for name in ("items", "results", "submissions"):
            if isinstance(body.get(name), list):
                return len(body[name]) > 0
        return "id" in body
    return False
