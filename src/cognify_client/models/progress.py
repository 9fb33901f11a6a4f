"""Progress models for modules and subjects."""

import math
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def coerce_number(value: Any) -> float | None:
    """Return ``value`` as a float, or None when it is not usable as a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clamp_percentage(value: Any) -> int:
    """Coerce any numeric-ish value to an integer percentage in 0-100."""
    number = coerce_number(value)
    if number is None:
        return 0
    return max(0, min(100, round_half_up(number)))


def overall_completeness(modules_completeness: float, assessment_completeness: float) -> int:
    """Mean of the two completeness components, rounded half-up."""
    return round_half_up((modules_completeness + assessment_completeness) / 2)


class ProgressStatus(StrEnum):
    """Module progress states."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_percentage(cls, percentage: int) -> "ProgressStatus":
        return cls.COMPLETED if percentage >= 100 else cls.IN_PROGRESS


class ModuleProgressRecord(BaseModel):
    """Progress of a single module, owned by the local cache."""

    module_id: str
    percentage: int = 0
    subject_id: str | None = None
    status: ProgressStatus = ProgressStatus.IN_PROGRESS
    times_taken: int | None = Field(default=None, ge=0)
    time_spent_seconds: int | None = Field(default=None, ge=0)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("percentage", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_percentage(value)


class CachedPercentage(BaseModel):
    """Subject-level percentage blob (module or assessment side)."""

    percentage: int = 0
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("percentage", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_percentage(value)


class SubjectAggregate(BaseModel):
    """Per-subject completion, mirrored as one entry of the profile progress report.

    ``overall_completeness`` is derived from the two components and cannot be
    set directly.
    """

    subject_id: str
    modules_completeness: int = 0
    assessment_completeness: int = 0
    weakest_competencies: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("modules_completeness", "assessment_completeness", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_percentage(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def overall_completeness(self) -> int:
        return overall_completeness(self.modules_completeness, self.assessment_completeness)

    @classmethod
    def from_report_entry(cls, entry: dict[str, Any]) -> "SubjectAggregate":
        """Parse a remote progress report entry, tolerating camelCase keys."""
        return cls(
            subject_id=str(entry.get("subject_id") or entry.get("subjectId") or ""),
            modules_completeness=entry.get("modules_completeness", 0),
            assessment_completeness=entry.get("assessment_completeness", 0),
            weakest_competencies=list(entry.get("weakest_competencies") or []),
        )

    def to_report_entry(self) -> dict[str, Any]:
        """Serialize to the remote progress report entry shape."""
        return {
            "subject_id": self.subject_id,
            "modules_completeness": self.modules_completeness,
            "assessment_completeness": self.assessment_completeness,
            "overall_completeness": self.overall_completeness,
            "weakest_competencies": list(self.weakest_competencies),
            "updated_at": self.updated_at.isoformat(),
        }
