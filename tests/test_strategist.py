"""Tests for the Strategist agent and the reply parser it shares."""
from unittest.mock import MagicMock, patch

import pytest

from agents.replies import parse_json_object
from models.schemas import BriefPlan, ClientProfile

PLAN_REPLY = """```json
{
  "title": "CRM Pricing, Decoded",
  "unique_angle": "Total cost over three years",
  "target_word_count": 1800,
  "required_sections": ["Pricing tiers", "Hidden costs"],
  "semantic_keywords": ["crm pricing"],
  "priority_level": "high"
}
```"""


def _client() -> ClientProfile:
    return ClientProfile(
        id="client-1",
        name="Acme",
        domain="acme.com",
        industry="SaaS",
        target_keywords=["crm", "sales software"],
    )


class TestParseJsonObject:
    def test_fenced_reply(self):
        """Markdown fences around the object are ignored."""
        assert parse_json_object(PLAN_REPLY)["priority_level"] == "high"

    def test_no_object(self):
        with pytest.raises(ValueError):
            parse_json_object("I could not produce a brief.")

    def test_broken_json(self):
        with pytest.raises(ValueError):
            parse_json_object('{"title": "unterminated}')


class TestStrategistAgent:
    """Unit tests for StrategistAgent — mocks the Vertex AI client."""

    @patch("agents.strategist.genai.Client")
    def test_plan_parses_reply(self, mock_client_cls):
        from agents.strategist import StrategistAgent

        mock_instance = MagicMock()
        mock_instance.models.generate_content.return_value = MagicMock(text=PLAN_REPLY)
        mock_client_cls.return_value = mock_instance

        plan = StrategistAgent().plan(_client(), "crm pricing", "blog_post", [], [])

        assert isinstance(plan, BriefPlan)
        assert plan.title == "CRM Pricing, Decoded"
        assert plan.target_word_count == 1800
        assert plan.required_sections == ["Pricing tiers", "Hidden costs"]

    @patch("agents.strategist.genai.Client")
    def test_prompt_carries_client_context(self, mock_client_cls):
        """Client, keyword, snapshots and citations reach the prompt."""
        from agents.strategist import StrategistAgent

        mock_instance = MagicMock()
        mock_instance.models.generate_content.return_value = MagicMock(text=PLAN_REPLY)
        mock_client_cls.return_value = mock_instance

        StrategistAgent().plan(
            _client(),
            "crm pricing",
            "guide",
            [{"analysis_type": "keyword_gap", "data": {"gap": "pricing"}}],
            [{"query": "best crm for startups"}],
        )

        prompt = mock_instance.models.generate_content.call_args.kwargs["contents"]
        assert "Acme (acme.com)" in prompt
        assert "INDUSTRY: SaaS" in prompt
        assert "crm, sales software" in prompt
        assert "CONTENT TYPE: guide" in prompt
        assert '"gap": "pricing"' in prompt
        assert "best crm for startups" in prompt

    @patch("agents.strategist.genai.Client")
    def test_prompt_without_intelligence(self, mock_client_cls):
        """Missing data is stated, not left blank."""
        from agents.strategist import StrategistAgent

        mock_instance = MagicMock()
        mock_instance.models.generate_content.return_value = MagicMock(text=PLAN_REPLY)
        mock_client_cls.return_value = mock_instance

        StrategistAgent().plan(_client(), "crm pricing", "blog_post", [], [])

        prompt = mock_instance.models.generate_content.call_args.kwargs["contents"]
        assert "No competitive data available yet." in prompt
        assert "No AI citation data available yet." in prompt

    @patch("agents.strategist.genai.Client")
    def test_unparseable_reply_raises(self, mock_client_cls):
        from agents.strategist import StrategistAgent

        mock_instance = MagicMock()
        mock_instance.models.generate_content.return_value = MagicMock(text="Sorry.")
        mock_client_cls.return_value = mock_instance

        with pytest.raises(ValueError):
            StrategistAgent().plan(_client(), "crm pricing", "blog_post", [], [])
