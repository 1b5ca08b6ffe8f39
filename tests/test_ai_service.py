import anthropic
import pytest

from ai_service import (
    EXTRACTION_TOOL_NAME, RESUME_TOOL_NAME, AIService, load_api_keys, load_resume_text, transient_kind,
)
from conftest import StubClientFactory, api_error, text_response, tool_response
from exceptions import ConfigError
from models import VERDICT_AVERAGE, VERDICT_GOOD, VERDICT_NO_RESUME

EXTRACTION_PAYLOAD = {
    "details": {
        "description": "- Build REST APIs",
        "stipend": "₹12,000 /month",
        "company": "Acme Labs",
        "location": "Pune",
        "locationType": "On-site",
        "duration": "3 Months",
        "ppo": True,
        "skills": ["Python", "Django"],
        "applyBy": "30 Nov 2025",
        "postedOn": "1 week ago",
    },
    "match": {
        "score": 78,
        "verdict": "Good Match",
        "summary": "Solid fit.",
        "pros": ["Django projects"],
        "cons": ["No cloud experience"],
    },
}


def make_service(outcomes, keys=("key-a", "key-b")):
    factory = StubClientFactory(outcomes)
    sleeps = []
    service = AIService(
        api_keys=list(keys),
        base_delay=2.0,
        politeness_delay=4.0,
        client_factory=factory,
        sleep=sleeps.append,
    )
    return service, factory, sleeps


class TestDegradedMode:
    def test_no_keys_returns_none_without_calls(self):
        factory = StubClientFactory([])
        service = AIService(api_keys="", client_factory=factory, sleep=lambda _: None)

        assert service.enabled is False
        assert service.extract_and_match("meta", "desc", "resume") is None
        assert service.analyze_company("Acme") is None
        assert service.tailor_resume("job", "resume") is None
        assert factory.keys_used == []

    def test_delimited_key_string(self):
        service = AIService(api_keys="k1, k2;k3", sleep=lambda _: None)

        assert service.api_keys == ["k1", "k2", "k3"]

    @pytest.mark.parametrize("raw", ["", " ,; ", [], None, ["key-a", ""], [None]])
    def test_unusable_keys_raise_config_error(self, raw):
        with pytest.raises(ConfigError):
            load_api_keys(raw)

    def test_invalid_key_entries_mean_degraded(self):
        factory = StubClientFactory([])
        service = AIService(api_keys=["key-a", None], client_factory=factory, sleep=lambda _: None)

        assert service.enabled is False
        assert service.analyze_company("Acme") is None
        assert factory.keys_used == []


class TestRetryPolicy:
    def test_rate_limit_rotates_key_then_succeeds(self):
        service, factory, sleeps = make_service([
            api_error(anthropic.RateLimitError, 429),
            api_error(anthropic.RateLimitError, 429),
            text_response("**Rating:** 8/10"),
        ], keys=("key-a", "key-b", "key-c"))

        assert service.analyze_company("Acme Labs") == "**Rating:** 8/10"
        assert service.key_index == 2
        assert factory.keys_used == ["key-a", "key-b", "key-c"]
        # politeness delay, then 2s and 4s backoff
        assert sleeps == [4.0, 2.0, 4.0]

    def test_rotation_wraps_around(self):
        service, factory, _ = make_service([
            api_error(anthropic.RateLimitError, 429),
            api_error(anthropic.RateLimitError, 429),
            text_response("ok"),
        ])

        service.analyze_company("Acme Labs")

        assert service.key_index == 0

    def test_server_errors_exhaust_budget(self):
        service, factory, sleeps = make_service([
            api_error(anthropic.InternalServerError, 500),
            api_error(anthropic.InternalServerError, 503),
            api_error(anthropic.InternalServerError, 500),
        ])

        assert service.analyze_company("Acme Labs") is None
        assert len(factory.messages.calls) == 3
        # no key rotation on 5xx
        assert service.key_index == 0
        assert sleeps == [4.0, 2.0, 4.0]

    def test_non_transient_error_not_retried(self):
        service, factory, sleeps = make_service([
            api_error(anthropic.BadRequestError, 400),
            text_response("never reached"),
        ])

        assert service.analyze_company("Acme Labs") is None
        assert len(factory.messages.calls) == 1
        assert sleeps == [4.0]

    def test_key_rotates_before_backoff_sleep(self):
        factory = StubClientFactory([
            api_error(anthropic.RateLimitError, 429),
            text_response("ok"),
        ])
        keys_at_sleep = []
        service = AIService(
            api_keys=["key-a", "key-b"],
            base_delay=2.0,
            politeness_delay=0.0,
            client_factory=factory,
            sleep=lambda seconds: keys_at_sleep.append((seconds, service.key_index)),
        )

        assert service.analyze_company("Acme Labs") == "ok"
        assert keys_at_sleep == [(0.0, 0), (2.0, 1)]

    def test_attempt_budget_is_configurable(self):
        factory = StubClientFactory([api_error(anthropic.InternalServerError, 500)] * 5)
        sleeps = []
        service = AIService(
            api_keys=["key-a"],
            max_attempts=5,
            base_delay=1.0,
            politeness_delay=0.0,
            client_factory=factory,
            sleep=sleeps.append,
        )

        assert service.analyze_company("Acme Labs") is None
        assert len(factory.messages.calls) == 5
        assert sleeps == [0.0, 1.0, 2.0, 4.0, 8.0]

    @pytest.mark.parametrize("error, expected", [
        (api_error(anthropic.RateLimitError, 429), "rate limit"),
        (api_error(anthropic.InternalServerError, 502), "service unavailable"),
        (api_error(anthropic.AuthenticationError, 401), None),
        (ValueError("bad"), None),
    ])
    def test_transient_kind(self, error, expected):
        assert transient_kind(error) == expected


class TestExtractAndMatch:
    def test_reads_forced_tool_call(self):
        service, factory, _ = make_service([tool_response(EXTRACTION_TOOL_NAME, EXTRACTION_PAYLOAD)])

        result = service.extract_and_match("Title: Backend Intern", "Build APIs", "Python dev")

        assert result.details.location_type == "On-site"
        assert result.details.skills == ["Python", "Django"]
        assert result.details.ppo is True
        assert result.match.score == 78
        assert result.match.verdict == VERDICT_GOOD

        request = factory.messages.calls[0]
        assert request["tool_choice"] == {"type": "tool", "name": EXTRACTION_TOOL_NAME}
        assert request["tools"][0]["name"] == EXTRACTION_TOOL_NAME

    def test_empty_resume_means_no_resume_verdict(self):
        service, _, _ = make_service([tool_response(EXTRACTION_TOOL_NAME, EXTRACTION_PAYLOAD)])

        result = service.extract_and_match("meta", "desc", "   ")

        assert result.match.verdict == VERDICT_NO_RESUME
        assert result.match.score == 0

    def test_score_clamped_and_verdict_derived(self):
        payload = {
            "details": EXTRACTION_PAYLOAD["details"],
            "match": {**EXTRACTION_PAYLOAD["match"], "score": 55, "verdict": "Great!"},
        }
        service, _, _ = make_service([tool_response(EXTRACTION_TOOL_NAME, payload)])

        result = service.extract_and_match("meta", "desc", "resume")

        assert result.match.verdict == VERDICT_AVERAGE

        payload["match"]["score"] = 140
        service, _, _ = make_service([tool_response(EXTRACTION_TOOL_NAME, payload)])
        assert service.extract_and_match("meta", "desc", "resume").match.score == 100

    def test_missing_tool_call_is_none(self):
        service, _, _ = make_service([text_response("I cannot help")])

        assert service.extract_and_match("meta", "desc", "resume") is None


class TestAnalyzeCompany:
    def test_uses_web_search_and_joins_text(self):
        service, factory, _ = make_service([text_response("**Rating:** 7/10\n", "**Verdict:** Good")])

        analysis = service.analyze_company("Acme Labs", "Pune", "Rockets")

        assert analysis == "**Rating:** 7/10\n**Verdict:** Good"
        tool = factory.messages.calls[0]["tools"][0]
        assert tool["type"] == "web_search_20250305"
        assert tool["name"] == "web_search"
        assert "Acme Labs" in factory.messages.calls[0]["messages"][0]["content"]


class TestTailorResume:
    def test_returns_structured_resume_with_profile(self):
        resume = {"summary": "Backend dev", "skills": [], "experience": [], "projects": [], "education": []}
        service, factory, _ = make_service([tool_response(RESUME_TOOL_NAME, resume)])

        result = service.tailor_resume("Build APIs", "[REDACTED] resume", {"name": "A. Student"})

        assert result["summary"] == "Backend dev"
        assert result["profile"] == {"name": "A. Student"}
        assert factory.messages.calls[0]["tool_choice"]["name"] == RESUME_TOOL_NAME


class TestLoadResume:
    def test_missing_file(self, tmp_path):
        assert load_resume_text(tmp_path / "resume.pdf") == ""

    def test_plain_text(self, tmp_path):
        path = tmp_path / "resume.txt"
        path.write_text("  Python, SQL  \n", encoding="utf-8")

        assert load_resume_text(path) == "Python, SQL"

    def test_unreadable_pdf(self, tmp_path):
        path = tmp_path / "resume.pdf"
        path.write_bytes(b"not a pdf")

        assert load_resume_text(path) == ""
