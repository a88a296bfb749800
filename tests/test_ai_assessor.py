import json

import pytest

from guardnomad.ai_assessor import AISafetyAssessor, build_prompt, parse_assessment
from guardnomad.cache import ResponseCache
from guardnomad.errors import MalformedResponse
from guardnomad.models import Location, SourceStatus
from guardnomad.rate_limit import RateLimiter

from conftest import ai_json

ATLANTIS = Location(lat=10.0, lng=10.0, city="Poseidonia", country="Atlantis")


def make_assessor(generate=None, api_key="", clock=None):
    kw = {"clock": clock} if clock else {}
    return AISafetyAssessor(
        ResponseCache(1800, 50, **kw), RateLimiter(10, 60, **kw),
        api_key=api_key, generate=generate,
    )


class TestParseAssessment:
    def test_valid_document(self, tokyo):
        text = ai_json(88, activeAlerts=[
            {"type": "crime", "severity": "medium", "title": "Pickpockets in Shinjuku",
             "description": "Busy stations at rush hour", "actionRequired": "Keep bags zipped",
             "affectedAreas": ["Shinjuku"], "source": "JNTO"},
            {"type": "alien", "severity": "low", "title": "Unusual lights"},
            {"severity": "extreme", "title": "Bad severity"},
            {"type": "crime", "severity": "high"},
            "junk",
        ])
        result = parse_assessment(text, tokyo)

        assert result.safetyScore == 88
        assert result.riskLevel == "low"
        assert result.recordCount == 1
        assert [a.type for a in result.alerts] == ["crime", "safety"]
        assert result.alerts[0].affectedAreas == ("Shinjuku",)
        assert result.alerts[1].affectedAreas == ("Tokyo, Japan",)
        assert result.alerts[1].source == "AI Safety Assessment"
        assert result.commonScams == ["Bar touts in nightlife districts"]
        assert result.emergencyNumbers == ["Police: 110", "Fire/Medical: 119"]

    def test_code_fenced_json_is_accepted(self, tokyo):
        result = parse_assessment("```json\n" + ai_json(70) + "\n```", tokyo)
        assert result.safetyScore == 70

    def test_score_is_clamped(self, tokyo):
        assert parse_assessment(ai_json(150), tokyo).safetyScore == 100

    def test_unknown_risk_level_is_derived_from_score(self, tokyo):
        result = parse_assessment(ai_json(45, riskLevel="spicy"), tokyo)
        assert result.riskLevel == "high"

    @pytest.mark.parametrize("text", [
        "",
        "I cannot help with that",
        "{not json}",
        json.dumps({"riskLevel": "low"}),
        json.dumps({"safetyScore": "high"}),
        json.dumps({"safetyScore": True}),
    ])
    def test_malformed_output_raises(self, tokyo, text):
        with pytest.raises(MalformedResponse):
            parse_assessment(text, tokyo)

    def test_alert_ids_are_stable(self, tokyo):
        text = ai_json(80, activeAlerts=[{"type": "scam", "severity": "low", "title": "Bar touts"}])
        assert parse_assessment(text, tokyo).alerts[0].id == parse_assessment(text, tokyo).alerts[0].id


def test_prompt_mentions_location(tokyo):
    prompt = build_prompt(tokyo)
    assert "Tokyo, Japan" in prompt
    assert "35.6762, 139.6503" in prompt
    assert '"safetyScore"' in prompt


async def test_live_assessment_then_cache(tokyo):
    calls = []

    def generate(prompt):
        calls.append(prompt)
        return ai_json(88)

    assessor = make_assessor(generate)
    first = await assessor.fetch(tokyo)
    second = await assessor.fetch(tokyo)

    assert first.status == SourceStatus.LIVE
    assert first.safetyScore == 88
    assert second.status == SourceStatus.CACHED
    assert len(calls) == 1


async def test_malformed_output_falls_back_to_country_profile(tokyo):
    assessor = make_assessor(lambda prompt: "sorry, no JSON today")
    result = await assessor.fetch(tokyo)

    assert result.status == SourceStatus.SYNTHESIZED
    assert result.safetyScore == 90
    assert result.alerts[0].source.startswith("Synthesized")
    assert "Police: 110" in result.emergencyNumbers


async def test_generate_exception_falls_back(tokyo):
    def generate(prompt):
        raise ConnectionError("quota exceeded")

    result = await make_assessor(generate).fetch(tokyo)
    assert result.status == SourceStatus.SYNTHESIZED


async def test_unknown_country_reaches_static_defaults():
    result = await make_assessor(lambda prompt: "garbage").fetch(ATLANTIS)
    assert result.status == SourceStatus.STATIC
    assert result.safetyScore == 75
    assert result.commonScams and result.emergencyNumbers


async def test_missing_api_key_skips_live_call(tokyo):
    assessor = make_assessor(generate=None, api_key="")
    assert not assessor.available()
    result = await assessor.fetch(tokyo)
    assert result.status == SourceStatus.SYNTHESIZED


def test_gemini_call_carries_request_timeout(monkeypatch, tokyo):
    import google.generativeai as genai

    seen = {}

    class FakeModel:
        def __init__(self, model_name):
            seen["model"] = model_name

        def generate_content(self, prompt, generation_config=None, request_options=None):
            seen["request_options"] = request_options
            return type("Response", (), {"text": ai_json(88)})()

    monkeypatch.setattr(genai, "configure", lambda api_key: None)
    monkeypatch.setattr(genai, "GenerativeModel", FakeModel)

    assessor = AISafetyAssessor(
        ResponseCache(1800, 50), RateLimiter(10, 60), timeout_sec=4.0,
        api_key="key", model_name="gemini-test",
    )
    assert assessor._gemini_generate(build_prompt(tokyo)) == ai_json(88)
    assert seen == {"model": "gemini-test", "request_options": {"timeout": 4.0}}
