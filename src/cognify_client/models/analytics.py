"""Student analytics report returned by the analytics service."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Keys that mark a body as an analytics report
REPORT_FIELDS = ("student_id", "summary", "prediction", "performance_by_bloom", "subject_performance")


class AnalyticsSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_activities: int = 0
    overall_score: float = 0.0
    time_spent_sec: float = 0.0


class PassPrediction(BaseModel):
    model_config = ConfigDict(extra="allow")

    predicted_to_pass: bool = False
    pass_probability: float = 0.0
    overall_score: float = 0.0


class StudentAnalytics(BaseModel):
    """Full analytics report of one student.

    ``performance_by_bloom`` maps a Bloom taxonomy level ("remembering",
    "applying", ...) to the average score at that level.
    """

    model_config = ConfigDict(extra="allow")

    student_id: str = ""
    summary: AnalyticsSummary = Field(default_factory=AnalyticsSummary)
    performance_by_bloom: dict[str, float] = Field(default_factory=dict)
    prediction: PassPrediction = Field(default_factory=PassPrediction)
    subject_performance: list[dict[str, Any]] = Field(default_factory=list)
    last_updated: str | None = None


def unwrap_report(body: Any) -> dict[str, Any] | None:
    """Return the report object from a bare or ``{"data": ...}`` body."""
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict) and any(name in data for name in REPORT_FIELDS):
        return data
    if any(name in body for name in REPORT_FIELDS):
        return body
    return None
