"""Subject overview: status bands and weakest/strongest subjects."""

import re
from typing import Any

from pydantic import BaseModel, Field

from cognify_client.models.progress import round_half_up

UNTITLED_SUBJECT = "Untitled Subject"

# (lower bound, label), checked top-down
STATUS_BANDS: list[tuple[float, str]] = [
    (85, "Strong"),
    (60, "Developing"),
    (40, "Needs Improvement"),
]


def status_for_percentage(percentage: float) -> str:
    """Map a completion percentage to its overview status label."""
    if round_half_up(percentage) <= 0:
        return "No Progress"
    for lower, label in STATUS_BANDS:
        if percentage >= lower:
            return label
    return "Weak"


def subject_identifier(subject: dict[str, Any]) -> str:
    for name in ("id", "subject_id", "_id", "uid"):
        if subject.get(name):
            return str(subject[name])
    return ""


def subject_title(subject: dict[str, Any]) -> str:
    return str(subject.get("title") or subject.get("subject_title") or subject.get("name") or UNTITLED_SUBJECT)


def format_subject_display(raw: str | None) -> str:
    """Human-readable subject name from a title or an id-like code."""
    if not raw:
        return ""
    s = str(raw).strip()
    s = re.sub(r"^sub[_\-\s]+", "", s, flags=re.IGNORECASE)
    s = re.sub(r"^subject[_\-\s]+", "", s, flags=re.IGNORECASE)
    s = re.sub(r"[._\-]+", " ", s)
    s = re.sub(r"\s+", " ", s)
    # Keep alphabetic words of codes like "psych 101"
    cleaned = " ".join(p for p in s.split(" ") if re.search(r"[a-zA-Z]", p)).strip()
    return " ".join(w[:1].upper() + w[1:] for w in (cleaned or s).lower().split())


class SubjectProgress(BaseModel):
    subject_id: str
    title: str
    percentage: int
    status: str


class SubjectOverview(BaseModel):
    subjects: list[SubjectProgress] = Field(default_factory=list)
    weakest: list[SubjectProgress] = Field(default_factory=list)
    strongest: list[SubjectProgress] = Field(default_factory=list)

    @property
    def no_progress(self) -> bool:
        return bool(self.subjects) and all(s.percentage <= 0 for s in self.subjects)


def build_overview(subjects: list[dict[str, Any]], percentages: dict[str, int]) -> SubjectOverview:
    """Combine subject records with their reconciled percentages.

    Subjects without a usable title are left out. Every subject tied at the
    lowest (highest) rounded percentage is listed as weakest (strongest).
    """
    items = []
    for subject in subjects:
        title = subject_title(subject)
        if title == UNTITLED_SUBJECT:
            continue
        subject_id = subject_identifier(subject)
        percentage = percentages.get(subject_id, 0)
        items.append(SubjectProgress(
            subject_id=subject_id,
            title=title,
            percentage=percentage,
            status=status_for_percentage(percentage),
        ))

    if not items:
        return SubjectOverview()
    lowest = min(s.percentage for s in items)
    highest = max(s.percentage for s in items)
    return SubjectOverview(
        subjects=items,
        weakest=[s for s in items if s.percentage == lowest],
        strongest=[s for s in items if s.percentage == highest],
    )
