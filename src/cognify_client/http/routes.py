"""Backend routes.

Operations whose route differs between deployments are described by an
ordered list of candidates, most specific first. The resolver tries them in
that order.
"""

from dataclasses import dataclass, field
from typing import Any

LOGIN_PATH = "/auth/login"
SIGNUP_PATH = "/auth/signup"
REFRESH_PATH = "/auth/refresh"
LOGOUT_PATH = "/auth/logout"
PROFILE_PATH = "/profiles/me"


@dataclass(frozen=True)
class EndpointCandidate:
    """One possible server route for a logical operation."""

    path: str
    method: str = "GET"
    params: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.method} {self.path}"


def subjects() -> list[EndpointCandidate]:
    return [
        EndpointCandidate("/subjects/"),
        EndpointCandidate("/subjects"),
    ]


def subject_detail(subject_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/subjects/{subject_id}/topics"),
        EndpointCandidate(f"/subjects/{subject_id}"),
    ]


def create_subject() -> list[EndpointCandidate]:
    return [
        EndpointCandidate("/subjects/", method="POST"),
        EndpointCandidate("/subjects", method="POST"),
    ]


def modules_by_subject(subject_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/modules/subject/{subject_id}"),
        EndpointCandidate("/modules/", params={"subject_id": subject_id}),
        EndpointCandidate(f"/subjects/{subject_id}/modules"),
    ]


def module_detail(module_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/modules/{module_id}"),
    ]


def assessments_by_module(module_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/assessments/module/{module_id}"),
        EndpointCandidate("/assessments/", params={"module_id": module_id}),
        EndpointCandidate(f"/modules/{module_id}/assessments"),
    ]


def assessment_submissions(assessment_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/assessments/{assessment_id}/submissions/me"),
        EndpointCandidate(f"/assessments/{assessment_id}/taken"),
        EndpointCandidate("/submissions/me", params={"assessment_id": assessment_id}),
    ]


def submit_assessment(assessment_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/assessments/{assessment_id}/submit", method="POST"),
        EndpointCandidate("/submissions/", method="POST"),
        EndpointCandidate("/assessment_submissions/", method="POST"),
    ]


def diagnostic_questions() -> list[EndpointCandidate]:
    return [
        EndpointCandidate("/assessments/diagnostic"),
        EndpointCandidate("/assessments/", params={"type": "diagnostic"}),
    ]


def submit_diagnostic() -> list[EndpointCandidate]:
    return [
        EndpointCandidate("/assessments/diagnostic/submit", method="POST"),
        EndpointCandidate("/submissions/", method="POST"),
    ]


def diagnostic_recommendations() -> list[EndpointCandidate]:
    return [
        EndpointCandidate("/recommendations/diagnostic"),
        EndpointCandidate("/recommendations/me"),
    ]


def student_report(user_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/analytics/student_report/{user_id}"),
        EndpointCandidate(f"/analytics/student/{user_id}/report"),
        EndpointCandidate(f"/analytics/reports/{user_id}"),
    ]


def start_study_session() -> list[EndpointCandidate]:
    return [
        EndpointCandidate("/study_sessions/start", method="POST"),
        EndpointCandidate("/study_sessions/", method="POST"),
    ]


def update_study_session(session_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/study_sessions/{session_id}", method="PUT"),
        EndpointCandidate(f"/study_sessions/{session_id}/end", method="POST"),
    ]


def module_summary(module_id: str) -> list[EndpointCandidate]:
    return [
        EndpointCandidate(f"/generate/generated_summaries/for_module/{module_id}"),
        EndpointCandidate("/generate/generated_summaries/", params={"module_id": module_id}),
    ]


def log_activity() -> list[EndpointCandidate]:
    return [
        EndpointCandidate("/activities/", method="POST"),
        EndpointCandidate("/activities", method="POST"),
    ]
