"""Progress aggregation engine.

Reads reconcile a subject percentage from server analytics, the profile
progress report and the local cache. Writes update the local cache first
and then merge the subject entry into the remote profile report. Local and
remote write failures are logged and swallowed; there is no retry queue.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import httpx
import structlog

from cognify_client.http import routes
from cognify_client.http.pipeline import RequestPipeline
from cognify_client.http.resolver import EndpointResolver
from cognify_client.models.profile import (
    extract_progress_report,
    find_student_info,
    profile_user_id,
)
from cognify_client.models.progress import (
    ModuleProgressRecord,
    ProgressStatus,
    SubjectAggregate,
    clamp_percentage,
)
from cognify_client.progress.aggregation import (
    ProgressSource,
    analytics_percentage,
    coerce_taken,
    extract_subject_performance,
    find_report_entry,
    local_percentage,
    merge_report_entry,
    module_completeness,
    reconcile_percentage,
    report_percentage,
)
from cognify_client.storage.progress_cache import ProgressCache

logger = structlog.get_logger()


class ProgressEngine:
    """Keeps per-subject completion consistent across server and device.

    Args:
        pipeline: Authenticated request pipeline (profile reads and writes).
        resolver: Endpoint resolver (analytics, module lists, submissions).
        cache: Local progress cache.
    """

    def __init__(self, pipeline: RequestPipeline, resolver: EndpointResolver, cache: ProgressCache):
        self.pipeline = pipeline
        self.resolver = resolver
        self.cache = cache

    # -- reads ------------------------------------------------------------

    async def compute_subject_percentage(self, subject_id: str, title: str | None = None) -> int:
        """Reconciled completion percentage of one subject."""
        percentages = await self.compute_subject_percentages([(subject_id, title)])
        return percentages[subject_id]

    async def compute_subject_percentages(
        self, subjects: Iterable[tuple[str, str | None]]
    ) -> dict[str, int]:
        """Reconciled percentages for several subjects.

        The profile and the analytics report are fetched once for the batch.

        Args:
            subjects: ``(subject_id, title)`` pairs; the title is used to match
                analytics entries that carry no subject id.
        """
        subjects = list(subjects)
        profile = await self._fetch_profile()
        report = extract_progress_report(profile) if profile is not None else []
        user_id = profile_user_id(profile) if profile is not None else None
        performance = await self.fetch_subject_performance(user_id) if user_id else []

        percentages: dict[str, int] = {}
        for subject_id, title in subjects:
            module_pct = await self.cache.get_subject_module_percentage(subject_id)
            assessment_pct = await self.cache.get_subject_assessment_percentage(subject_id)
            percentages[subject_id] = reconcile_percentage({
                ProgressSource.ANALYTICS: analytics_percentage(performance, subject_id, title),
                ProgressSource.PROFILE_REPORT: report_percentage(report, subject_id),
                ProgressSource.LOCAL_CACHE: local_percentage(module_pct, assessment_pct),
            })
        return percentages

    async def fetch_subject_performance(self, user_id: str) -> list[dict[str, Any]]:
        """Per-subject analytics of a student, empty when unavailable."""
        try:
            return await self.resolver.resolve_list(
                routes.student_report(user_id), normalizer=extract_subject_performance
            )
        except httpx.HTTPError as e:
            logger.warning("analytics_unavailable", user_id=user_id, error=str(e))
            return []

    async def get_module_progress(self, module_id: str) -> ModuleProgressRecord | None:
        return await self.cache.get_module(module_id)

    async def rescan_module_completeness(self, subject_id: str) -> int | None:
        """Recount completed modules of a subject from the server module list.

        Returns None when the module list cannot be obtained.
        """
        try:
            modules = await self.resolver.resolve_list(routes.modules_by_subject(subject_id))
        except httpx.HTTPError as e:
            logger.warning("module_list_unavailable", subject_id=subject_id, error=str(e))
            return None
        module_ids = [
            str(m.get("id") or m.get("_id"))
            for m in modules
            if isinstance(m, dict) and (m.get("id") or m.get("_id"))
        ]
        records = {module_id: await self.cache.get_module(module_id) for module_id in module_ids}
        return module_completeness(module_ids, records)

    # -- writes -----------------------------------------------------------

    async def update_module_progress(
        self,
        module_id: str,
        subject_id: str | None,
        percentage: float,
        *,
        times_taken: int | None = None,
        time_spent_seconds: int | None = None,
    ) -> SubjectAggregate | None:
        """Record module progress and fold it into the subject aggregate.

        The subject's cached module percentage only ever increases here. The
        aggregate itself uses a fresh count of completed modules when the
        module list is reachable, and the cached estimate otherwise.

        Returns:
            The updated subject aggregate, or None when the module has no
            known subject.
        """
        pct = clamp_percentage(percentage)
        previous_record = await self.cache.get_module(module_id)
        if subject_id is None and previous_record is not None:
            subject_id = previous_record.subject_id

        record = ModuleProgressRecord(
            module_id=module_id,
            percentage=pct,
            subject_id=subject_id,
            status=ProgressStatus.from_percentage(pct),
            times_taken=times_taken,
            time_spent_seconds=time_spent_seconds,
        )
        await self.cache.save_module(record)
        if not subject_id:
            logger.debug("module_progress_without_subject", module_id=module_id)
            return None

        previous = await self.cache.get_subject_module_percentage(subject_id) or 0
        estimate = max(previous, pct)
        await self.cache.set_subject_module_percentage(subject_id, estimate)

        rescanned = await self.rescan_module_completeness(subject_id)
        modules_pct = rescanned if rescanned is not None else estimate
        logger.info(
            "module_progress_updated",
            module_id=module_id,
            subject_id=subject_id,
            percentage=pct,
            modules_completeness=modules_pct,
        )
        return await self._merge_subject(subject_id, modules_completeness=modules_pct)

    async def update_assessment_progress(self, subject_id: str, percentage: float) -> SubjectAggregate:
        """Set the subject's assessment completeness to the latest score."""
        pct = clamp_percentage(percentage)
        await self.cache.set_subject_assessment_percentage(subject_id, pct)
        logger.info("assessment_progress_updated", subject_id=subject_id, percentage=pct)
        return await self._merge_subject(subject_id, assessment_completeness=pct)

    async def has_taken_assessment(self, assessment_id: str) -> bool:
        """Local marker first, then the remote submissions as corroboration."""
        if await self.cache.is_assessment_taken(assessment_id):
            return True
        try:
            answers = await self.resolver.resolve_list(
                routes.assessment_submissions(assessment_id),
                normalizer=lambda body: [True] if coerce_taken(body) else [],
            )
        except httpx.HTTPError as e:
            logger.warning("submissions_unavailable", assessment_id=assessment_id, error=str(e))
            return False
        if answers:
            await self.cache.mark_assessment_taken(assessment_id)
            return True
        return False

    async def mark_assessment_taken(self, assessment_id: str) -> None:
        await self.cache.mark_assessment_taken(assessment_id)

    # -- internals --------------------------------------------------------

    async def _merge_subject(
        self,
        subject_id: str,
        *,
        modules_completeness: int | None = None,
        assessment_completeness: int | None = None,
    ) -> SubjectAggregate:
        profile = await self._fetch_profile()
        report = extract_progress_report(profile) if profile is not None else []
        existing = find_report_entry(report, subject_id)

        if existing is not None:
            aggregate = SubjectAggregate.from_report_entry({**existing, "subject_id": subject_id})
        else:
            aggregate = await self.cache.get_subject_aggregate(subject_id)
            if aggregate is None:
                aggregate = SubjectAggregate(
                    subject_id=subject_id,
                    modules_completeness=await self.cache.get_subject_module_percentage(subject_id) or 0,
                    assessment_completeness=(
                        await self.cache.get_subject_assessment_percentage(subject_id) or 0
                    ),
                )

        updates: dict[str, Any] = {"updated_at": datetime.now()}
        if modules_completeness is not None:
            updates["modules_completeness"] = clamp_percentage(modules_completeness)
        if assessment_completeness is not None:
            updates["assessment_completeness"] = clamp_percentage(assessment_completeness)
        aggregate = aggregate.model_copy(update=updates)

        await self.cache.save_subject_aggregate(aggregate)
        if profile is not None:
            await self._write_report(profile, merge_report_entry(report, aggregate.to_report_entry()))
        return aggregate

    async def _fetch_profile(self) -> dict[str, Any] | None:
        try:
            body = await self.pipeline.request_json("GET", routes.PROFILE_PATH)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("profile_unavailable", error=str(e))
            return None
        return body if isinstance(body, dict) else None

    async def _write_report(self, profile: dict[str, Any], report: list[dict[str, Any]]) -> None:
        student_info = dict(find_student_info(profile) or {})
        student_info["progress_report"] = report
        try:
            await self.pipeline.execute(
                "PUT", routes.PROFILE_PATH, json={"student_info": student_info}
            )
        except httpx.HTTPError as e:
            logger.warning("progress_report_write_failed", error=str(e))
