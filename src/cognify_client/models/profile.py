"""User profile model and helpers for the shapes returned by /profiles/me."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StudentInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    user_id: str | None = None
    progress_report: list[dict[str, Any]] | None = None
    recommended_study_modules: list[str] | None = None


class UserProfile(BaseModel):
    """Profile of the signed-in user.

    Unknown fields are kept so that a profile can be written back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    id: str = ""
    email: str = ""
    username: str = ""
    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    role_id: str | None = None
    student_info: StudentInfo | None = Field(default=None)

    @classmethod
    def from_response(cls, body: Any) -> "UserProfile":
        data = unwrap_profile(body)
        user_id = data.get("id") or data.get("uid") or ""
        email = data.get("email") or ""
        username = data.get("username") or email
        return cls.model_validate({**data, "id": str(user_id), "email": email, "username": username})


def unwrap_profile(body: Any) -> dict[str, Any]:
    """Return the profile object from ``{"data": {"profile": ...}}`` or a bare profile."""
    if not isinstance(body, dict):
        return {}
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("profile"), dict):
        return data["profile"]
    return body


def find_student_info(body: Any) -> dict[str, Any] | None:
    """Find the ``student_info`` object in any of the known profile shapes.

    Checked on the body, then ``data``, then ``data.profile``. The first
    object holding a progress report wins, else the first object found.
    """
    if not isinstance(body, dict):
        return None
    holders = [body]
    data = body.get("data")
    if isinstance(data, dict):
        holders.extend([data, data.get("profile")])
    infos = [
        holder["student_info"]
        for holder in holders
        if isinstance(holder, dict) and isinstance(holder.get("student_info"), dict)
    ]
    for info in infos:
        if isinstance(info.get("progress_report"), list):
            return info
    return infos[0] if infos else None


def extract_progress_report(body: Any) -> list[dict[str, Any]]:
    """Find the progress report list in any of the known profile shapes."""
    if not isinstance(body, dict):
        return []
    student_info = find_student_info(body)
    report = student_info.get("progress_report") if student_info else None
    if not isinstance(report, list):
        report = body.get("progress_report")
    if not isinstance(report, list):
        return []
    return [entry for entry in report if isinstance(entry, dict)]


def profile_user_id(body: Any) -> str | None:
    data = unwrap_profile(body)
    user_id = data.get("id") or data.get("uid") or data.get("user_id")
    return str(user_id) if user_id else None
