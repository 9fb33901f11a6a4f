"""Tests for the client facade: auth, catalog, assessments and study sessions."""

import json

import httpx
import pytest

from cognify_client.errors import EndpointUnavailableError
from cognify_client.storage.credentials import REFRESH_TOKEN_KEY, TOKEN_KEY

PROFILE = {
    "id": "u1",
    "email": "student@example.com",
    "first_name": "Sam",
    "student_info": {"user_id": "u1", "progress_report": []},
}


class TestAuth:
    async def test_login_persists_tokens_and_returns_profile(self, client, backend, store):
        backend.add("POST", "/auth/login", {"token": "access-1", "refresh_token": "refresh-1"})
        backend.add("GET", "/profiles/me", {"data": {"profile": PROFILE}})

        profile = await client.login("student@example.com", "secret")

        assert profile.id == "u1"
        assert profile.first_name == "Sam"
        assert await store.get_item(TOKEN_KEY) == "access-1"
        assert await store.get_item(REFRESH_TOKEN_KEY) == "refresh-1"
        login_call = backend.calls("POST", "/auth/login")[0]
        assert json.loads(login_call.content) == {"email": "student@example.com", "password": "secret"}
        assert backend.calls("GET", "/profiles/me")[0].headers["Authorization"] == "Bearer access-1"
        assert await client.has_session() is True

    async def test_login_rejected(self, client, backend, store):
        backend.add("POST", "/auth/login", 401)
        with pytest.raises(httpx.HTTPStatusError):
            await client.login("student@example.com", "wrong")
        assert await store.get_item(TOKEN_KEY) is None
        assert backend.count("POST", "/auth/refresh") == 0

    async def test_login_without_tokens(self, client, backend):
        backend.add("POST", "/auth/login", {"message": "ok"})
        with pytest.raises(ValueError):
            await client.login("student@example.com", "secret")

    async def test_profile_failure_after_login_logs_out(self, client, backend, store):
        backend.add("POST", "/auth/login", {"token": "access-1", "refresh_token": "refresh-1"})
        backend.add("GET", "/profiles/me", 500)

        with pytest.raises(httpx.HTTPStatusError):
            await client.login("student@example.com", "secret")

        assert await store.get_item(TOKEN_KEY) is None
        assert await client.has_session() is False

    async def test_signup_then_login(self, client, backend):
        backend.add("POST", "/auth/signup", {"id": "u1"})
        backend.add("POST", "/auth/login", {"token": "access-1", "refresh_token": "refresh-1"})
        backend.add("GET", "/profiles/me", PROFILE)

        profile = await client.signup("student@example.com", "secret", "Sam", "Lee")

        assert profile.email == "student@example.com"
        sent = json.loads(backend.calls("POST", "/auth/signup")[0].content)
        assert sent["first_name"] == "Sam"
        assert sent["last_name"] == "Lee"
        assert "Authorization" not in backend.calls("POST", "/auth/signup")[0].headers

    async def test_logout_clears_tokens(self, client, backend, store, logged_in):
        backend.add("POST", "/auth/logout", {"ok": True})
        await client.logout()
        assert backend.count("POST", "/auth/logout") == 1
        assert await store.get_item(TOKEN_KEY) is None
        assert await store.get_item(REFRESH_TOKEN_KEY) is None
        assert await client.has_session() is False

    async def test_logout_clears_tokens_when_server_fails(self, client, backend, store, logged_in):
        backend.add("POST", "/auth/logout", 500)
        await client.logout()
        assert await store.get_item(TOKEN_KEY) is None

    async def test_logout_with_stale_token_does_not_refresh(self, client, backend, store, logged_in):
        backend.add("POST", "/auth/logout", 401)
        backend.add("POST", "/auth/refresh", {"token": "access-2", "refresh_token": "refresh-2"})

        await client.logout()

        assert backend.count("POST", "/auth/logout") == 1
        assert backend.count("POST", "/auth/refresh") == 0
        assert await store.get_item(TOKEN_KEY) is None
        assert await store.get_item(REFRESH_TOKEN_KEY) is None

    async def test_logout_without_session_sends_nothing(self, client, backend):
        await client.logout()
        assert backend.requests == []


class TestProfileAndCatalog:
    async def test_update_profile(self, client, backend, logged_in):
        backend.add("PUT", "/profiles/me", lambda request: json.loads(request.content))
        result = await client.update_profile({"first_name": "Alex"})
        assert result == {"first_name": "Alex"}

    async def test_list_subjects_falls_back(self, client, backend, logged_in):
        backend.add("GET", "/subjects", {"subjects": [{"id": "s1", "title": "Algebra"}]})
        assert await client.list_subjects() == [{"id": "s1", "title": "Algebra"}]
        assert backend.count("GET", "/subjects/") == 1

    async def test_get_subject(self, client, backend, logged_in):
        backend.add("GET", "/subjects/s1", {"data": {"id": "s1", "topics": [{"id": "t1"}]}})
        subject = await client.get_subject("s1")
        assert subject["topics"] == [{"id": "t1"}]

    async def test_get_missing_module(self, client, backend, logged_in):
        assert await client.get_module("m404") is None

    async def test_modules_by_subject_query_fallback(self, client, backend, logged_in):
        backend.add("GET", "/modules/", [{"id": "m1"}])
        assert await client.list_modules_by_subject("s1") == [{"id": "m1"}]
        assert backend.calls("GET", "/modules/")[0].url.params["subject_id"] == "s1"

    async def test_assessments_by_module(self, client, backend, logged_in):
        backend.add("GET", "/modules/m1/assessments", {"assessments": [{"id": "a1"}]})
        assert await client.list_assessments_by_module("m1") == [{"id": "a1"}]

    async def test_module_summary(self, client, backend, logged_in):
        backend.add(
            "GET",
            "/generate/generated_summaries/for_module/m1",
            {"items": [{"id": "g2", "summary_text": "Key ideas"}, {"id": "g1"}]},
        )
        summary = await client.get_module_summary("m1")
        assert summary == {"id": "g2", "summary_text": "Key ideas"}

    async def test_module_without_summary(self, client, backend, logged_in):
        backend.add("GET", "/generate/generated_summaries/for_module/m1", {"items": []})
        assert await client.get_module_summary("m1") is None

    async def test_create_subject(self, client, backend, logged_in):
        backend.add("POST", "/subjects/", {"id": "s9", "title": "Logic"})
        assert await client.create_subject({"title": "Logic"}) == {"id": "s9", "title": "Logic"}


class TestSubjectOverview:
    async def test_overview_from_profile_report(self, client, backend, logged_in):
        backend.add("GET", "/subjects/", [
            {"id": "s1", "title": "Algebra"},
            {"id": "s2", "title": "Biology"},
            {"id": "s3", "title": "Chemistry"},
            {"id": "s4"},
        ])
        backend.serve_profile({
            **PROFILE,
            "student_info": {"progress_report": [
                {"subject_id": "s1", "overall_completeness": 90},
                {"subject_id": "s2", "overall_completeness": 20},
                {"subject_id": "s3", "overall_completeness": 20},
            ]},
        })

        overview = await client.subject_overview()

        assert [s.title for s in overview.subjects] == ["Algebra", "Biology", "Chemistry"]
        assert [s.subject_id for s in overview.weakest] == ["s2", "s3"]
        assert [s.subject_id for s in overview.strongest] == ["s1"]
        assert overview.subjects[0].status == "Strong"
        assert backend.count("GET", "/profiles/me") == 1

    async def test_overview_with_analytics(self, client, backend, logged_in):
        backend.serve_profile(PROFILE)
        backend.add(
            "GET",
            "/analytics/student/u1/report",
            {"subject_performance": [{"subject_id": "s1", "average_score": 64}]},
        )
        overview = await client.subject_overview([{"id": "s1", "title": "Algebra"}])
        assert overview.subjects[0].percentage == 64
        assert overview.subjects[0].status == "Developing"

    async def test_overview_when_offline(self, client, backend, logged_in):
        def unreachable(request):
            raise httpx.ConnectError("offline", request=request)

        backend.add("GET", "/subjects/", unreachable)
        backend.add("GET", "/subjects", unreachable)
        overview = await client.subject_overview()
        assert overview.subjects == []

    async def test_full_student_analytics(self, client, backend, logged_in):
        backend.add("GET", "/analytics/student_report/u1", {
            "student_id": "u1",
            "summary": {"total_activities": 12, "overall_score": 71.5, "time_spent_sec": 3600},
            "performance_by_bloom": {"remembering": 85.0, "applying": 72.0},
            "prediction": {"predicted_to_pass": True, "pass_probability": 0.82, "overall_score": 71.5},
            "subject_performance": [{"subject_id": "s1", "average_score": 64}],
            "last_updated": "2026-03-01T00:00:00",
        })

        analytics = await client.get_student_analytics("u1")

        assert analytics.student_id == "u1"
        assert analytics.summary.total_activities == 12
        assert analytics.summary.time_spent_sec == 3600
        assert analytics.prediction.predicted_to_pass is True
        assert analytics.prediction.pass_probability == 0.82
        assert analytics.performance_by_bloom == {"remembering": 85.0, "applying": 72.0}
        assert analytics.subject_performance == [{"subject_id": "s1", "average_score": 64}]

    async def test_student_analytics_wrapped_on_fallback_route(self, client, backend, logged_in):
        backend.add(
            "GET",
            "/analytics/reports/u1",
            {"data": {"student_id": "u1", "summary": {"total_activities": 3}}},
        )
        analytics = await client.get_student_analytics("u1")
        assert analytics.summary.total_activities == 3
        assert analytics.prediction.predicted_to_pass is False

    async def test_student_analytics_missing(self, client, backend, logged_in):
        backend.add("GET", "/analytics/student_report/u1", {"detail": "No activities"})
        assert await client.get_student_analytics("u1") is None

    async def test_student_report_analytics(self, client, backend, logged_in):
        backend.add(
            "GET",
            "/analytics/student/u1/report",
            {"data": {"subject_performance": [{"subject_id": "s1", "average_score": 50}]}},
        )
        assert await client.get_student_report_analytics("u1") == [
            {"subject_id": "s1", "average_score": 50}
        ]


class TestAssessments:
    async def test_submit_marks_taken_and_records_score(self, client, backend, store, logged_in):
        backend.serve_profile(PROFILE)
        backend.add("POST", "/assessments/a1/submit", {"id": "sub-1"})

        result = await client.submit_assessment(
            "a1", {"subject_id": "s1", "score": 8, "total_items": 10, "answers": []}
        )

        assert result == {"id": "sub-1"}
        assert await client.has_taken_assessment("a1") is True
        [entry] = backend.progress_report
        assert entry["assessment_completeness"] == 80
        assert entry["overall_completeness"] == 40

    async def test_submit_falls_back_to_generic_route(self, client, backend, logged_in):
        backend.add("POST", "/submissions/", {"id": "sub-2"})
        assert await client.submit_assessment("a1", {"answers": []}) == {"id": "sub-2"}
        assert backend.count("POST", "/assessments/a1/submit") == 1

    async def test_submit_failure_is_reported(self, client, backend, store, logged_in):
        with pytest.raises(EndpointUnavailableError, match="Unable to complete operation"):
            await client.submit_assessment("a1", {"subject_id": "s1", "score": 1, "total_items": 2})
        assert await store.get_item("assessment_taken:a1") is None
        assert backend.count("PUT", "/profiles/me") == 0


class TestDiagnostic:
    async def test_questions(self, client, backend, logged_in):
        backend.add("GET", "/assessments/diagnostic", {"items": [{"id": "q1"}]})
        assert await client.get_diagnostic_questions() == [{"id": "q1"}]

    async def test_submission_marks_taken(self, client, backend, logged_in):
        backend.add("POST", "/assessments/diagnostic/submit", {"id": "d1"})
        assert await client.has_taken_diagnostic() is False
        await client.submit_diagnostic_submission({"answers": []})
        assert await client.has_taken_diagnostic() is True

    async def test_recommendations(self, client, backend, logged_in):
        backend.add("GET", "/recommendations/diagnostic", {"recommendedSubjects": ["Algebra", "Logic"]})
        assert await client.get_diagnostic_recommendations() == ["Algebra", "Logic"]

    async def test_recommendations_unavailable(self, client, backend, logged_in):
        assert await client.get_diagnostic_recommendations() == []

    async def test_status_is_never_cleared(self, client, backend, logged_in):
        await client.set_diagnostic_status(True)
        await client.set_diagnostic_status(False)
        assert await client.has_taken_diagnostic() is True


class TestActivities:
    async def test_log_quiz_activity(self, client, backend, logged_in):
        backend.add("POST", "/activities/", {"id": "act-1"})

        result = await client.log_activity(
            "s1",
            "quiz",
            activity_ref="q1",
            bloom_level="applying",
            score=80.0,
            user_id="u1",
        )

        assert result == {"id": "act-1"}
        sent = json.loads(backend.calls("POST", "/activities/")[0].content)
        assert sent["subject_id"] == "s1"
        assert sent["activity_type"] == "quiz"
        assert sent["activity_ref"] == "q1"
        assert sent["bloom_level"] == "applying"
        assert sent["score"] == 80.0
        assert sent["completion_rate"] == 1.0
        assert sent["user_id"] == "u1"
        assert "timestamp" in sent

    async def test_log_activity_unavailable(self, client, backend, logged_in):
        backend.add("POST", "/activities/", 500)
        assert await client.log_activity("s1", "quiz") is None
        assert backend.count("POST", "/activities") == 1


class TestStudySessions:
    async def test_start(self, client, backend, logged_in):
        backend.add("POST", "/study_sessions/start", {"id": "ss-1"})
        session = await client.start_study_session("m1", "module")
        assert session == {"id": "ss-1"}
        sent = json.loads(backend.calls("POST", "/study_sessions/start")[0].content)
        assert sent["resource_id"] == "m1"
        assert sent["resource_type"] == "module"
        assert "start_time" in sent

    async def test_start_unavailable(self, client, backend, logged_in):
        assert await client.start_study_session("m1", "module") is None

    async def test_finish(self, client, backend, logged_in):
        backend.add("POST", "/study_sessions/ss-1/end", {"id": "ss-1", "completion_status": "completed"})
        result = await client.update_study_session("ss-1", interruptions_count=2, finished=True)
        assert result["completion_status"] == "completed"
        assert backend.count("PUT", "/study_sessions/ss-1") == 1
        sent = json.loads(backend.calls("POST", "/study_sessions/ss-1/end")[0].content)
        assert sent["interruptions_count"] == 2
        assert "end_time" in sent
