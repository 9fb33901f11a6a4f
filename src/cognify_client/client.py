"""Client facade used by the app screens."""

from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from cognify_client.config import Settings, get_settings
from cognify_client.errors import EndpointUnavailableError, SessionExpiredError
from cognify_client.http import routes
from cognify_client.http.pipeline import RequestPipeline, build_http_client
from cognify_client.http.resolver import EndpointResolver
from cognify_client.models.analytics import StudentAnalytics, unwrap_report
from cognify_client.models.profile import UserProfile
from cognify_client.models.progress import ModuleProgressRecord, SubjectAggregate, coerce_number
from cognify_client.models.session import TokenPair
from cognify_client.progress.engine import ProgressEngine
from cognify_client.progress.insights import (
    SubjectOverview,
    build_overview,
    subject_identifier,
    subject_title,
)
from cognify_client.storage.credentials import CredentialStore
from cognify_client.storage.key_value import FileKeyValueStore, KeyValueStore
from cognify_client.storage.progress_cache import ProgressCache

logger = structlog.get_logger()


class CognifyClient:
    """Data-access layer for the learning app.

    Args:
        settings: Client settings; defaults to ``get_settings()``.
        store: Local key-value store; defaults to a file store under the
            configured storage directory.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: KeyValueStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store or FileKeyValueStore(
            self.settings.resolved_storage_dir, self.settings.storage_scope
        )
        self.credentials = CredentialStore(self.store)
        self.http = build_http_client(self.settings, transport=transport)
        self.pipeline = RequestPipeline(self.http, self.credentials)
        self.resolver = EndpointResolver(self.pipeline)
        self.cache = ProgressCache(self.store)
        self.progress = ProgressEngine(self.pipeline, self.resolver, self.cache)

    async def __aenter__(self) -> "CognifyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    # -- auth -------------------------------------------------------------

    async def login(self, email: str, password: str) -> UserProfile:
        """Log in, persist both tokens and return the user's profile."""
        body = await self.pipeline.request_json(
            "POST",
            routes.LOGIN_PATH,
            json={"email": email, "password": password},
            authenticated=False,
        )
        await self.credentials.save(TokenPair.from_response(body))
        self.pipeline.reset_session()
        logger.info("logged_in", email=email)
        try:
            return await self.get_current_user_profile()
        except (httpx.HTTPError, SessionExpiredError):
            logger.exception("profile_fetch_after_login_failed")
            await self.logout()
            raise

    async def signup(self, email: str, password: str, first_name: str, last_name: str) -> UserProfile:
        await self.pipeline.execute(
            "POST",
            routes.SIGNUP_PATH,
            json={
                "email": email,
                "password": password,
                "first_name": first_name,
                "last_name": last_name,
            },
            authenticated=False,
        )
        logger.info("signed_up", email=email)
        return await self.login(email, password)

    async def logout(self) -> None:
        """Notify the backend (best effort) and always drop local credentials."""
        try:
            if await self.credentials.get_access_token():
                await self.pipeline.execute("POST", routes.LOGOUT_PATH, retry=False)
        except (httpx.HTTPError, SessionExpiredError) as e:
            logger.warning("logout_call_failed", error=str(e))
        finally:
            await self.credentials.clear()
            logger.info("logged_out")

    async def has_session(self) -> bool:
        if self.pipeline.coordinator.session_expired:
            return False
        return bool(await self.credentials.get_access_token())

    # -- profile ----------------------------------------------------------

    async def get_current_user_profile(self) -> UserProfile:
        body = await self.pipeline.request_json("GET", routes.PROFILE_PATH)
        return UserProfile.from_response(body)

    async def update_profile(self, updates: dict[str, Any]) -> Any:
        return await self.pipeline.request_json("PUT", routes.PROFILE_PATH, json=updates)

    # -- catalog ----------------------------------------------------------

    async def list_subjects(self) -> list[dict[str, Any]]:
        return await self.resolver.resolve_list(routes.subjects())

    async def get_subject(self, subject_id: str) -> dict[str, Any] | None:
        """Subject detail including its topics."""
        return await self.resolver.resolve_one(routes.subject_detail(subject_id))

    async def create_subject(self, payload: dict[str, Any]) -> Any:
        return await self.resolver.resolve_write(routes.create_subject(), payload)

    async def list_modules_by_subject(self, subject_id: str) -> list[dict[str, Any]]:
        return await self.resolver.resolve_list(routes.modules_by_subject(subject_id))

    async def get_module(self, module_id: str) -> dict[str, Any] | None:
        return await self.resolver.resolve_one(routes.module_detail(module_id))

    async def get_module_summary(self, module_id: str) -> dict[str, Any] | None:
        """Most recent generated summary of a module, None when there is none."""
        try:
            return await self.resolver.resolve_one(routes.module_summary(module_id))
        except httpx.HTTPError as e:
            logger.warning("module_summary_unavailable", module_id=module_id, error=str(e))
            return None

    async def list_assessments_by_module(self, module_id: str) -> list[dict[str, Any]]:
        return await self.resolver.resolve_list(routes.assessments_by_module(module_id))

    # -- analytics --------------------------------------------------------

    async def get_student_report_analytics(self, user_id: str) -> list[dict[str, Any]]:
        """Per-subject performance entries of the student's analytics report."""
        return await self.progress.fetch_subject_performance(user_id)

    async def get_student_analytics(self, user_id: str) -> StudentAnalytics | None:
        """Full analytics report (summary, pass prediction, Bloom levels).

        Returns None when no analytics endpoint has a report for the student.
        """

        def report(body: Any) -> list[dict[str, Any]]:
            data = unwrap_report(body)
            return [data] if data is not None else []

        try:
            reports = await self.resolver.resolve_list(routes.student_report(user_id), normalizer=report)
        except httpx.HTTPError as e:
            logger.warning("analytics_unavailable", user_id=user_id, error=str(e))
            return None
        if not reports:
            return None
        try:
            return StudentAnalytics.model_validate(reports[0])
        except ValidationError as e:
            logger.warning("analytics_report_invalid", user_id=user_id, error=str(e))
            return None

    async def subject_overview(self, subjects: list[dict[str, Any]] | None = None) -> SubjectOverview:
        """Reconciled percentage, status and weakest/strongest subjects."""
        if subjects is None:
            try:
                subjects = await self.list_subjects()
            except httpx.HTTPError as e:
                logger.warning("subjects_unavailable", error=str(e))
                subjects = []
        pairs = [
            (subject_identifier(s), subject_title(s))
            for s in subjects
            if subject_identifier(s)
        ]
        percentages = await self.progress.compute_subject_percentages(pairs) if pairs else {}
        return build_overview(subjects, percentages)

    # -- progress ---------------------------------------------------------

    async def compute_subject_percentage(self, subject_id: str, title: str | None = None) -> int:
        return await self.progress.compute_subject_percentage(subject_id, title)

    async def get_module_progress(self, module_id: str) -> ModuleProgressRecord | None:
        return await self.progress.get_module_progress(module_id)

    async def update_module_progress(
        self,
        module_id: str,
        subject_id: str | None,
        percentage: float,
        *,
        times_taken: int | None = None,
        time_spent_seconds: int | None = None,
    ) -> SubjectAggregate | None:
        return await self.progress.update_module_progress(
            module_id,
            subject_id,
            percentage,
            times_taken=times_taken,
            time_spent_seconds=time_spent_seconds,
        )

    async def update_assessment_progress(self, subject_id: str, percentage: float) -> SubjectAggregate:
        return await self.progress.update_assessment_progress(subject_id, percentage)

    # -- assessments ------------------------------------------------------

    async def submit_assessment(self, assessment_id: str, payload: dict[str, Any]) -> Any:
        """Submit answers; the one write that reports failure to the caller.

        On success the assessment is marked taken and, when the payload
        carries ``subject_id``, ``score`` and ``total_items``, the subject's
        assessment completeness is set to the score percentage.

        Raises:
            EndpointUnavailableError: If no submit endpoint accepted it.
        """
        body = await self.resolver.resolve_write(routes.submit_assessment(assessment_id), payload)
        await self.progress.mark_assessment_taken(assessment_id)

        subject_id = payload.get("subject_id")
        score = coerce_number(payload.get("score"))
        total = coerce_number(payload.get("total_items"))
        if subject_id and score is not None and total:
            await self.progress.update_assessment_progress(str(subject_id), score * 100 / total)
        return body

    async def has_taken_assessment(self, assessment_id: str) -> bool:
        return await self.progress.has_taken_assessment(assessment_id)

    async def get_diagnostic_questions(self) -> list[dict[str, Any]]:
        return await self.resolver.resolve_list(routes.diagnostic_questions())

    async def submit_diagnostic_submission(self, payload: dict[str, Any]) -> Any:
        body = await self.resolver.resolve_write(routes.submit_diagnostic(), payload)
        await self.cache.mark_diagnostic_taken()
        return body

    async def get_diagnostic_recommendations(self) -> list[str]:
        def recommended(body: Any) -> list[Any]:
            if not isinstance(body, dict):
                return []
            value = body.get("recommendedSubjects") or body.get("recommended_subjects")
            return value if isinstance(value, list) else []

        try:
            return await self.resolver.resolve_list(
                routes.diagnostic_recommendations(), normalizer=recommended
            )
        except httpx.HTTPError as e:
            logger.warning("recommendations_unavailable", error=str(e))
            return []

    async def has_taken_diagnostic(self) -> bool:
        return await self.cache.is_diagnostic_taken()

    async def set_diagnostic_status(self, taken: bool) -> None:
        """Mark the diagnostic as taken; the marker is never cleared here."""
        if taken:
            await self.cache.mark_diagnostic_taken()

    # -- activities -------------------------------------------------------

    async def log_activity(
        self,
        subject_id: str,
        activity_type: str,
        *,
        activity_ref: str | None = None,
        bloom_level: str | None = None,
        score: float | None = None,
        completion_rate: float = 1.0,
        duration: int = 0,
        user_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Record a learning activity (a finished quiz, for instance) for analytics.

        Best effort: returns None when no activity endpoint accepted it.
        """
        payload: dict[str, Any] = {
            "subject_id": subject_id,
            "activity_type": activity_type,
            "activity_ref": activity_ref,
            "bloom_level": bloom_level,
            "score": score,
            "completion_rate": completion_rate,
            "duration": duration,
            "timestamp": datetime.now().isoformat(),
        }
        if user_id:
            payload["user_id"] = user_id
        try:
            body = await self.resolver.resolve_write(routes.log_activity(), payload)
        except EndpointUnavailableError:
            logger.warning("activity_log_failed", subject_id=subject_id, activity_type=activity_type)
            return None
        return body if isinstance(body, dict) else None

    # -- study sessions ---------------------------------------------------

    async def start_study_session(self, resource_id: str, resource_type: str) -> dict[str, Any] | None:
        payload = {
            "resource_id": resource_id,
            "resource_type": resource_type,
            "start_time": datetime.now().isoformat(),
        }
        try:
            body = await self.resolver.resolve_write(routes.start_study_session(), payload)
        except EndpointUnavailableError:
            logger.warning("study_session_start_failed", resource_id=resource_id)
            return None
        return body if isinstance(body, dict) else None

    async def update_study_session(
        self,
        session_id: str,
        interruptions_count: int = 0,
        idle_time_seconds: int = 0,
        finished: bool = False,
    ) -> dict[str, Any] | None:
        payload: dict[str, Any] = {
            "interruptions_count": interruptions_count,
            "idle_time_seconds": idle_time_seconds,
            "completion_status": "completed" if finished else "in_progress",
        }
        if finished:
            payload["end_time"] = datetime.now().isoformat()
        try:
            body = await self.resolver.resolve_write(routes.update_study_session(session_id), payload)
        except EndpointUnavailableError:
            logger.warning("study_session_update_failed", session_id=session_id)
            return None
        return body if isinstance(body, dict) else None
