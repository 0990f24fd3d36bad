import json

import pytest
from unittest.mock import AsyncMock, MagicMock
from openai import APIConnectionError

from app.features.scan.exceptions import InferenceUnavailable
from app.features.scan.models.scan import ComplianceLevel
from app.features.scan.models.scan_issue import IssueSeverity
from app.features.scan.schemas.insight import IssueDraft, normalize_severity
from app.features.scan.services.analysis.inference_client import OpenAIInferenceClient
from app.features.scan.services.analysis.insight_generator import (
    FALLBACK_INSIGHTS,
    FALLBACK_SCORE,
    InsightGenerator,
)
from app.features.scan.services.analysis.prompt_builder import SYSTEM_PROMPT, build_prompt
from app.features.scan.services.analysis.response_decoder import (
    Decoded,
    Malformed,
    decode_insight_response,
    extract_json_text,
)
from tests.fakes import VALID_RESPONSE, FakeInferenceClient, element


def assert_fallback(result):
    assert result.is_fallback is True
    assert result.score == FALLBACK_SCORE
    assert result.insights == FALLBACK_INSIGHTS
    assert len(result.issues) == 1
    issue = result.issues[0]
    assert issue.type == "AI Analysis Unavailable"
    assert issue.severity == IssueSeverity.info
    assert issue.element == "N/A"
    assert issue.compliance_reference == "N/A"


class TestPromptBuilder:
    def test_contains_page_and_level(self, synthetic_snapshot):
        prompt = build_prompt(synthetic_snapshot, ComplianceLevel.strict)

        assert "WCAG AAA" in prompt
        assert "Page Title: Example Domain" in prompt
        assert "URL: https://example.com/" in prompt
        assert "Images (3):" in prompt
        assert "Headings (1):" in prompt
        assert "Form Inputs (1):" in prompt
        assert '"complianceReference": "string"' in prompt

    @pytest.mark.parametrize(
        "level,wcag",
        [(ComplianceLevel.minimal, "WCAG A "), (ComplianceLevel.standard, "WCAG AA "), (ComplianceLevel.strict, "WCAG AAA ")],
    )
    def test_level_mapping(self, synthetic_snapshot, level, wcag):
        assert wcag in build_prompt(synthetic_snapshot, level)

    def test_caps_elements_but_not_headings(self, synthetic_snapshot):
        synthetic_snapshot.links = [element("a", text=f"link-{i}", href=f"/{i}") for i in range(15)]
        synthetic_snapshot.headings = [element("h2", text=f"heading-{i}") for i in range(15)]

        prompt = build_prompt(synthetic_snapshot, ComplianceLevel.standard, element_limit=10)

        assert "Links (15):" in prompt
        assert "link-9" in prompt
        assert "link-10" not in prompt
        assert "heading-14" in prompt


class TestResponseDecoder:
    def test_valid(self):
        outcome = decode_insight_response(VALID_RESPONSE)

        assert isinstance(outcome, Decoded)
        assert outcome.payload.score == 62
        assert len(outcome.payload.issues) == 3

    def test_code_fences_are_stripped(self):
        fenced = f"```json\n{VALID_RESPONSE}\n```"

        assert extract_json_text(fenced) == VALID_RESPONSE
        assert isinstance(decode_insight_response(fenced), Decoded)

    def test_surrounding_prose_is_ignored(self):
        outcome = decode_insight_response(f"Here is the analysis:\n{VALID_RESPONSE}\nThanks!")
        assert isinstance(outcome, Decoded)

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "not json at all",
            "[1, 2, 3]",
            json.dumps({"score": 50, "issues": []}),
            json.dumps({"score": "high", "issues": [], "insights": "x"}),
            json.dumps({"score": True, "issues": [], "insights": "x"}),
            json.dumps({"score": 50, "issues": [{"severity": "critical"}], "insights": "x"}),
        ],
    )
    def test_malformed(self, raw):
        outcome = decode_insight_response(raw)

        assert isinstance(outcome, Malformed)
        assert outcome.raw_text == raw

    def test_score_is_clamped(self):
        high = decode_insight_response(json.dumps({"score": 140, "issues": [], "insights": "x"}))
        low = decode_insight_response(json.dumps({"score": -3.5, "issues": [], "insights": "x"}))

        assert high.payload.score == 100
        assert low.payload.score == 0


class TestSeverity:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("CRITICAL", IssueSeverity.critical),
            ("critical", IssueSeverity.critical),
            ("Error", IssueSeverity.critical),
            ("warning", IssueSeverity.warning),
            ("moderate", IssueSeverity.warning),
            ("info", IssueSeverity.info),
            ("something-else", IssueSeverity.info),
            (None, IssueSeverity.info),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_severity(raw) == expected

    def test_wcag_reference_is_accepted(self):
        issue = IssueDraft.model_validate(
            {"type": "Contrast", "description": "Low contrast", "wcagReference": "WCAG 1.4.3"}
        )
        assert issue.compliance_reference == "WCAG 1.4.3"

    def test_short_fields_are_truncated(self):
        issue = IssueDraft.model_validate(
            {"type": "T" * 300, "description": "Long reference", "complianceReference": "W" * 300}
        )
        assert len(issue.type) == 255
        assert len(issue.compliance_reference) == 255
        assert issue.compliance_reference == "W" * 255


class TestInsightGenerator:
    @pytest.mark.asyncio
    async def test_valid_response(self, synthetic_snapshot):
        client = FakeInferenceClient(response=VALID_RESPONSE)

        result = await InsightGenerator(client, timeout=5).generate(synthetic_snapshot, ComplianceLevel.standard)

        assert result.is_fallback is False
        assert result.score == 62
        assert [issue.severity for issue in result.issues] == [
            IssueSeverity.critical,
            IssueSeverity.info,
            IssueSeverity.warning,
        ]
        assert result.insights == "Images and form inputs need text alternatives."

        system_prompt, user_prompt = client.calls[0]
        assert system_prompt == SYSTEM_PROMPT
        assert "Images (3):" in user_prompt
        assert "WCAG AA " in user_prompt

    @pytest.mark.asyncio
    async def test_fallback_when_client_raises(self, synthetic_snapshot):
        client = FakeInferenceClient(error=InferenceUnavailable("connection refused"))

        result = await InsightGenerator(client, timeout=5).generate(synthetic_snapshot, ComplianceLevel.standard)

        assert_fallback(result)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RuntimeError("provider SDK blew up"), ValueError("bad"), KeyError("choices")])
    async def test_fallback_on_unexpected_client_error(self, synthetic_snapshot, error):
        client = FakeInferenceClient(error=error)

        result = await InsightGenerator(client, timeout=5).generate(synthetic_snapshot, ComplianceLevel.standard)

        assert_fallback(result)

    @pytest.mark.asyncio
    async def test_fallback_on_non_json(self, synthetic_snapshot):
        client = FakeInferenceClient(response="I'm sorry, I can't help with that.")

        result = await InsightGenerator(client, timeout=5).generate(synthetic_snapshot, ComplianceLevel.minimal)

        assert_fallback(result)

    @pytest.mark.asyncio
    async def test_fallback_on_timeout(self, synthetic_snapshot):
        client = FakeInferenceClient(response=VALID_RESPONSE, delay=1)

        result = await InsightGenerator(client, timeout=0.05).generate(synthetic_snapshot, ComplianceLevel.standard)

        assert_fallback(result)

    @pytest.mark.asyncio
    async def test_fenced_response(self, synthetic_snapshot):
        client = FakeInferenceClient(response=f"```json\n{VALID_RESPONSE}\n```")

        result = await InsightGenerator(client, timeout=5).generate(synthetic_snapshot, ComplianceLevel.standard)

        assert result.is_fallback is False
        assert result.score == 62


class TestOpenAIInferenceClient:
    @pytest.fixture
    def mock_openai(self):
        openai_client = MagicMock()
        openai_client.chat.completions.create = AsyncMock()
        return openai_client

    @staticmethod
    def completion(content):
        message = MagicMock()
        message.content = content
        choice = MagicMock()
        choice.message = message
        result = MagicMock()
        result.choices = [choice]
        return result

    @pytest.mark.asyncio
    async def test_complete(self, mock_openai):
        mock_openai.chat.completions.create.return_value = self.completion(VALID_RESPONSE)
        client = OpenAIInferenceClient(client=mock_openai, model="gpt-4")

        content = await client.complete("system", "user")

        assert content == VALID_RESPONSE
        kwargs = mock_openai.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 2000
        assert kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "user"},
        ]

    @pytest.mark.asyncio
    async def test_empty_content(self, mock_openai):
        mock_openai.chat.completions.create.return_value = self.completion(None)
        client = OpenAIInferenceClient(client=mock_openai)

        with pytest.raises(InferenceUnavailable):
            await client.complete("system", "user")

    @pytest.mark.asyncio
    async def test_transport_error(self, mock_openai):
        mock_openai.chat.completions.create.side_effect = APIConnectionError(request=MagicMock())
        client = OpenAIInferenceClient(client=mock_openai)

        with pytest.raises(InferenceUnavailable):
            await client.complete("system", "user")
